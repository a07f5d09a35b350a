"""
Finished transport network graph.

Nodes live in an arena addressed by integer id (the order in which growth
created them); segments are undirected networkx edges carrying only the
`is_highway` flag. The network is read-only once returned by the growth engine.
"""

import math
from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, List, Optional, Sequence, Tuple

try:
    import networkx as nx
except ImportError:
    raise ImportError(
        "NetworkX is required for road network generation. "
        "Install it with: pip install networkx"
    )

from roadweave.core.errors import InvalidIndexError
from roadweave.core.geometry import Site


@dataclass(frozen=True)
class Neighbor:
    """
    A node adjacent to a queried node.

    Attributes:
        index: Neighbor node id
        is_highway: Whether the connecting segment is a highway
    """

    index: int
    is_highway: bool


@dataclass(frozen=True)
class GrowthStats:
    """
    Counters collected while growing a network.

    Attributes:
        iterations: Candidates popped from the queue
        accepted: Candidates that created a new node
        merged: Candidates joined to an existing nearby node
        snapped: Candidates joined at a crossing with an existing segment
        rejected: Popped candidates dropped without changing the network
        pending: Candidates still queued when growth stopped
        rejections: Drop counts by reason, including proposals discarded before queuing
    """

    iterations: int = 0
    accepted: int = 0
    merged: int = 0
    snapped: int = 0
    rejected: int = 0
    pending: int = 0
    rejections: Dict[str, int] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        """Convert stats to dictionary."""
        return {
            "iterations": self.iterations,
            "accepted": self.accepted,
            "merged": self.merged,
            "snapped": self.snapped,
            "rejected": self.rejected,
            "pending": self.pending,
            "rejections": dict(self.rejections),
        }


class TransportNetwork:
    """
    Immutable road network: node sites plus highway/local segments.
    """

    def __init__(self, sites: Sequence[Site], graph: nx.Graph, stats: Optional[GrowthStats] = None):
        """
        Initialize the network.

        Args:
            sites: Node sites indexed by node id
            graph: Graph over node ids with an ``is_highway`` edge attribute
            stats: Growth counters (empty when omitted)
        """
        self._sites: Tuple[Site, ...] = tuple(sites)
        self._graph = nx.freeze(graph)
        self.stats = stats if stats is not None else GrowthStats()

    def node_count(self) -> int:
        """Number of nodes."""
        return len(self._sites)

    def edge_count(self) -> int:
        """Number of segments."""
        return self._graph.number_of_edges()

    @property
    def sites(self) -> Tuple[Site, ...]:
        """Node sites in id order."""
        return self._sites

    @property
    def graph(self) -> nx.Graph:
        """The frozen underlying graph."""
        return self._graph

    def site_of(self, index: int) -> Site:
        """
        Get the site of a node.

        Args:
            index: Node id

        Returns:
            Site of the node

        Raises:
            InvalidIndexError: If the id is out of range
        """
        self._check_index(index)
        return self._sites[index]

    def neighbors_of(self, index: int) -> List[Neighbor]:
        """
        Get the nodes adjacent to a node.

        Args:
            index: Node id

        Returns:
            One Neighbor per incident segment, in the order segments were added

        Raises:
            InvalidIndexError: If the id is out of range
        """
        self._check_index(index)
        return [
            Neighbor(index=neighbor, is_highway=bool(attrs["is_highway"]))
            for neighbor, attrs in self._graph.adj[index].items()
        ]

    def has_edge(self, a: int, b: int) -> bool:
        """Whether a segment joins two nodes."""
        return self._graph.has_edge(a, b)

    def is_highway(self, a: int, b: int) -> bool:
        """
        Get the highway flag of a segment.

        Raises:
            KeyError: If no segment joins the nodes
        """
        if not self._graph.has_edge(a, b):
            raise KeyError((a, b))
        return bool(self._graph.edges[a, b]["is_highway"])

    def edges(self) -> Iterator[Tuple[int, int, bool]]:
        """Iterate segments as ``(a, b, is_highway)`` with ``a < b``."""
        for a, b, is_highway in self._graph.edges(data="is_highway"):
            yield (a, b, bool(is_highway)) if a < b else (b, a, bool(is_highway))

    def segment_length(self, a: int, b: int) -> float:
        """Euclidean length of the segment between two nodes."""
        return self.site_of(a).distance_to(self.site_of(b))

    def get_total_length(self, highway: Optional[bool] = None) -> float:
        """
        Get total segment length.

        Args:
            highway: Restrict to highways (True) or local roads (False)

        Returns:
            Summed length
        """
        return math.fsum(
            self.segment_length(a, b)
            for a, b, is_highway in self.edges()
            if highway is None or is_highway == highway
        )

    def get_network_stats(self) -> Dict[str, Any]:
        """
        Get comprehensive network statistics.

        Returns:
            Dictionary with network statistics
        """
        highway_count = sum(1 for _, _, is_highway in self.edges() if is_highway)
        degrees = [degree for _, degree in self._graph.degree()]

        return {
            "num_nodes": self.node_count(),
            "num_edges": self.edge_count(),
            "highway_segments": {
                "count": highway_count,
                "total_length": self.get_total_length(highway=True),
            },
            "local_segments": {
                "count": self.edge_count() - highway_count,
                "total_length": self.get_total_length(highway=False),
            },
            "num_junctions": sum(1 for degree in degrees if degree >= 3),
            "num_dead_ends": sum(1 for degree in degrees if degree == 1),
            "num_components": nx.number_connected_components(self._graph)
            if self.node_count() > 0
            else 0,
            "avg_degree": sum(degrees) / len(degrees) if degrees else 0.0,
            "growth": self.stats.to_dict(),
        }

    def export_to_geojson(self) -> Dict[str, Any]:
        """
        Export network to GeoJSON format.

        Returns:
            GeoJSON FeatureCollection with one Point per node and one
            LineString per segment
        """
        features = []

        for index, site in enumerate(self._sites):
            features.append(
                {
                    "type": "Feature",
                    "geometry": {"type": "Point", "coordinates": [site.x, site.y]},
                    "properties": {
                        "id": index,
                        "degree": self._graph.degree(index),
                        "feature_type": "node",
                    },
                }
            )

        for a, b, is_highway in self.edges():
            site_a = self._sites[a]
            site_b = self._sites[b]
            features.append(
                {
                    "type": "Feature",
                    "geometry": {
                        "type": "LineString",
                        "coordinates": [[site_a.x, site_a.y], [site_b.x, site_b.y]],
                    },
                    "properties": {
                        "from": a,
                        "to": b,
                        "is_highway": is_highway,
                        "length": site_a.distance_to(site_b),
                        "feature_type": "road_segment",
                    },
                }
            )

        return {"type": "FeatureCollection", "features": features}

    def _check_index(self, index: Any) -> None:
        if (
            isinstance(index, bool)
            or not isinstance(index, int)
            or index < 0
            or index >= len(self._sites)
        ):
            raise InvalidIndexError(index, len(self._sites))
