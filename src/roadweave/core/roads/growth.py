"""
Priority-driven road network growth.

The engine grows highways and local roads outward from a start site. Every
pending road segment is a GrowthCandidate in a heap ordered by cost; popping a
candidate resolves it against the network built so far:

- Crossing an existing segment snaps it to the crossing point (or rejects
  it, depending on the intersection policy)
- Ending near an existing node merges it into that node
- Ending near an existing segment rejects it
- Otherwise a new node is created and up to three follow-on candidates are
  proposed from it: one continuing straight and two perpendicular branches

Candidate cost for a child of class (is_highway, is_even):

    w    = (even weight if is_even) * (highway weight if is_highway)
    L    = branch_length * w
    T    = |w * (e_child - e_parent)| * |e_child|
    P    = P_parent + L
    cost = (T + P) * (1 / highway_construction_priority + (0 if is_highway else 1))

Lower cost pops first, ties break on insertion order, and all randomness comes
from one seeded numpy Generator, so a run is fully reproducible.
"""

import heapq
import logging
import math
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Set, Tuple

import numpy as np
from shapely.geometry import LineString, Point as ShapelyPoint

try:
    import networkx as nx
except ImportError:
    raise ImportError(
        "NetworkX is required for road network generation. "
        "Install it with: pip install networkx"
    )

from roadweave.core.config import settings
from roadweave.core.errors import ConfigurationError
from roadweave.core.geometry import Bounds, Site, point_segment_distance, segment_cross
from roadweave.core.roads.graph import GrowthStats, TransportNetwork
from roadweave.core.roads.spatial_index import DynamicSpatialIndex
from roadweave.core.terrain.model import MAX_SEED, SEA_LEVEL, Terrain
from roadweave.core.validation import (
    validate_angle,
    validate_float,
    validate_int,
    validate_probability,
)
from roadweave.utils.logging import log_performance

logger = logging.getLogger(__name__)


class IntersectionPolicy(str, Enum):
    """What to do with a candidate that crosses an existing segment."""

    SNAP = "snap"  # End the candidate at the crossing, creating a junction
    REJECT = "reject"  # Drop the candidate


class CandidateOutcome(str, Enum):
    """Terminal states of a resolved candidate."""

    ACCEPTED = "accepted"
    MERGED = "merged"
    SNAPPED = "snapped"
    REJECTED = "rejected"


def sea_level_admissible(elevation: float) -> bool:
    """Default terrain policy: buildable above sea level."""
    return elevation >= SEA_LEVEL


@dataclass(frozen=True)
class PathAttr:
    """
    Road class of a segment.

    Attributes:
        is_highway: Highway or local road
        is_even: Parity flag, flipped on every perpendicular branch
    """

    is_highway: bool = False
    is_even: bool = False


@dataclass
class GrowthConfig:
    """
    Configuration for network growth.

    Attributes:
        start: Seed node of the network
        iterations: Maximum number of candidates resolved (>= 0)
        branch_length: Nominal segment length (> 0)
        branch_angle_deviation: Angular step of the heading fan, in [0, pi]
        branch_max_angle: Largest fan offset from the base heading, in [0, pi]
        normal_rotation_probability: Chance a perpendicular local branch spawns
        highway_rotation_probability: Chance a highway's perpendicular branch stays a highway
        highway_construction_priority: Class boost making highways pop first (> 0)
        even_path_length_weight: Length and slope multiplier for even-parity roads (>= 0)
        highway_path_length_weight: Length and slope multiplier for highways (>= 0)
        snap_tolerance_factor: Snap tolerance as a fraction of branch_length, in (0, 1]
        intersection_policy: Behaviour on crossing an existing segment
        admissibility: Predicate deciding whether an elevation is buildable
        bounds: Growth rectangle, required when no terrain is supplied
    """

    start: Site
    iterations: int
    branch_length: float = 0.5
    branch_angle_deviation: float = math.pi / 40.0
    branch_max_angle: float = math.pi / 40.0
    normal_rotation_probability: float = 0.8
    highway_rotation_probability: float = 0.02
    highway_construction_priority: float = 30.0
    even_path_length_weight: float = 1.5
    highway_path_length_weight: float = 1.5
    snap_tolerance_factor: float = 0.8
    intersection_policy: IntersectionPolicy = IntersectionPolicy.SNAP
    admissibility: Callable[[float], bool] = sea_level_admissible
    bounds: Optional[Bounds] = None

    def __post_init__(self) -> None:
        """Validate configuration."""
        if not isinstance(self.start, Site):
            try:
                x, y = self.start
                self.start = Site(float(x), float(y))
            except (TypeError, ValueError):
                raise ConfigurationError(
                    "start must be a Site or an (x, y) pair", config_key="start", value=self.start
                )
        if not (math.isfinite(self.start.x) and math.isfinite(self.start.y)):
            raise ConfigurationError(
                "start must have finite coordinates", config_key="start", value=self.start
            )

        self.iterations = validate_int(
            "iterations", self.iterations, minimum=0, maximum=settings.max_growth_iterations
        )
        self.branch_length = validate_float(
            "branch_length", self.branch_length, minimum=0.0, exclusive_minimum=True
        )
        self.branch_angle_deviation = validate_angle(
            "branch_angle_deviation", self.branch_angle_deviation
        )
        self.branch_max_angle = validate_angle("branch_max_angle", self.branch_max_angle)
        self.normal_rotation_probability = validate_probability(
            "normal_rotation_probability", self.normal_rotation_probability
        )
        self.highway_rotation_probability = validate_probability(
            "highway_rotation_probability", self.highway_rotation_probability
        )
        self.highway_construction_priority = validate_float(
            "highway_construction_priority",
            self.highway_construction_priority,
            minimum=0.0,
            exclusive_minimum=True,
        )
        self.even_path_length_weight = validate_float(
            "even_path_length_weight", self.even_path_length_weight, minimum=0.0
        )
        self.highway_path_length_weight = validate_float(
            "highway_path_length_weight", self.highway_path_length_weight, minimum=0.0
        )
        self.snap_tolerance_factor = validate_float(
            "snap_tolerance_factor",
            self.snap_tolerance_factor,
            minimum=0.0,
            maximum=1.0,
            exclusive_minimum=True,
        )

        try:
            self.intersection_policy = IntersectionPolicy(self.intersection_policy)
        except ValueError:
            raise ConfigurationError(
                "intersection_policy must be 'snap' or 'reject'",
                config_key="intersection_policy",
                value=self.intersection_policy,
            )

        if not callable(self.admissibility):
            raise ConfigurationError(
                "admissibility must be callable", config_key="admissibility"
            )

        if self.bounds is not None and not isinstance(self.bounds, Bounds):
            raise ConfigurationError(
                "bounds must be a Bounds instance", config_key="bounds", value=self.bounds
            )

    @property
    def snap_tolerance(self) -> float:
        """Minimum distance between distinct nodes."""
        return self.snap_tolerance_factor * self.branch_length

    @property
    def fan_steps(self) -> int:
        """Number of fan offsets tried on each side of the base heading."""
        if self.branch_angle_deviation <= 0.0:
            return 0
        return int(math.floor(self.branch_max_angle / self.branch_angle_deviation))


@dataclass
class GrowthCandidate:
    """
    A proposed segment waiting in the growth queue.

    Attributes:
        parent: Node id the segment starts from
        site: Proposed end site
        angle: Heading of the segment in radians
        cost: Priority cost (lower pops first)
        elevation: Terrain elevation at the end site, None without terrain
        attr: Road class
        path_length: Accumulated length from the start including this segment
        sequence: Insertion counter used to break cost ties
    """

    parent: int
    site: Site
    angle: float
    cost: float
    elevation: Optional[float]
    attr: PathAttr
    path_length: float
    sequence: int


class NetworkGrowthEngine:
    """
    Grows a TransportNetwork from a GrowthConfig.

    An engine performs a single run; grow() returns the same network when
    called again.
    """

    def __init__(
        self,
        config: GrowthConfig,
        seed: int = 0,
        terrain: Optional[Terrain] = None,
    ):
        """
        Initialize the engine.

        Args:
            config: Validated growth configuration
            seed: Unsigned 32-bit seed of the growth random stream
            terrain: Optional terrain consulted for elevation and buildability

        Raises:
            ConfigurationError: If bounds are missing or the start lies outside them
        """
        self.config = config
        self.seed = validate_int("seed", seed, minimum=0, maximum=MAX_SEED)
        self.terrain = terrain

        if terrain is not None:
            self.bounds = terrain.bounds
        elif config.bounds is not None:
            self.bounds = config.bounds
        else:
            raise ConfigurationError(
                "Growth without terrain needs explicit bounds",
                config_key="bounds",
            )

        if not self.bounds.contains(config.start):
            raise ConfigurationError(
                "start must lie within the growth bounds",
                config_key="start",
                value=config.start.as_tuple(),
            )

        self._rng = np.random.default_rng(self.seed)

        # Network under construction
        self._sites: List[Site] = []
        self._elevations: List[Optional[float]] = []
        self._graph: nx.Graph = nx.Graph()
        self._node_index = DynamicSpatialIndex()
        self._segment_index = DynamicSpatialIndex()
        self._segment_ends: Dict[int, Tuple[int, int]] = {}
        self._segment_attrs: Dict[int, PathAttr] = {}
        self._segment_counter = 0

        # Queue and counters
        self._heap: List[Tuple[float, int, GrowthCandidate]] = []
        self._sequence = 0
        self._counts: Dict[CandidateOutcome, int] = {outcome: 0 for outcome in CandidateOutcome}
        self._rejections: Dict[str, int] = {}
        self._iterations = 0

        self._network: Optional[TransportNetwork] = None

    @log_performance(log_level=logging.DEBUG)
    def grow(self) -> TransportNetwork:
        """
        Run growth until the iteration budget is spent or the queue empties.

        Returns:
            The finished, immutable network
        """
        if self._network is not None:
            return self._network

        start = self.config.start
        self._add_node(start, self._elevation_or_none(start))

        initial_angle = float(self._rng.uniform(0.0, math.pi))
        for angle in (initial_angle, initial_angle + math.pi):
            self._propose(0, angle, PathAttr(is_highway=True, is_even=False), 0.0)

        while self._iterations < self.config.iterations and self._heap:
            _, _, candidate = heapq.heappop(self._heap)
            self._iterations += 1
            outcome = self._resolve(candidate)
            self._counts[outcome] += 1

        stats = GrowthStats(
            iterations=self._iterations,
            accepted=self._counts[CandidateOutcome.ACCEPTED],
            merged=self._counts[CandidateOutcome.MERGED],
            snapped=self._counts[CandidateOutcome.SNAPPED],
            rejected=self._counts[CandidateOutcome.REJECTED],
            pending=len(self._heap),
            rejections=dict(sorted(self._rejections.items())),
        )

        self._network = TransportNetwork(self._sites, self._graph, stats)
        logger.info(
            f"Grew transport network: nodes={self._network.node_count()}, "
            f"edges={self._network.edge_count()}, iterations={stats.iterations}, "
            f"rejected={stats.rejected}, pending={stats.pending}"
        )
        return self._network

    # Candidate proposal

    def _length_weight(self, attr: PathAttr) -> float:
        weight = 1.0
        if attr.is_even:
            weight *= self.config.even_path_length_weight
        if attr.is_highway:
            weight *= self.config.highway_path_length_weight
        return weight

    def _class_factor(self, attr: PathAttr) -> float:
        return 1.0 / self.config.highway_construction_priority + (0.0 if attr.is_highway else 1.0)

    def _elevation_or_none(self, site: Site) -> Optional[float]:
        if self.terrain is None:
            return None
        return self.terrain.elevation_at(site)

    def _evaluate_site(
        self, site: Site, from_elevation: Optional[float], weight: float
    ) -> Optional[Tuple[float, Optional[float]]]:
        """
        Check a trial site and price its slope.

        Returns:
            ``(slope_cost, elevation)``, or None when the site is not buildable
        """
        if not self.bounds.contains(site):
            return None
        if self.terrain is None:
            return 0.0, None

        elevation = self.terrain.elevation_at(site)
        if elevation is None or not self.config.admissibility(elevation):
            return None

        base = elevation if from_elevation is None else from_elevation
        return abs(weight * (elevation - base)) * abs(elevation), elevation

    def _propose(self, parent: int, heading: float, attr: PathAttr, parent_path_length: float) -> None:
        """Pick the cheapest heading in the fan and enqueue a candidate for it."""
        config = self.config
        weight = self._length_weight(attr)
        length = config.branch_length * weight

        deviation = config.branch_angle_deviation
        heading += float(self._rng.uniform(-deviation / 2.0, deviation / 2.0))

        origin = self._sites[parent]
        origin_elevation = self._elevations[parent]

        best: Optional[Tuple[float, float, Site, Optional[float]]] = None
        for step in range(config.fan_steps + 1):
            for sign in (1.0, -1.0) if step else (1.0,):
                angle = heading + sign * deviation * step
                site = origin.offset(angle, length)
                evaluated = self._evaluate_site(site, origin_elevation, weight)
                if evaluated is None:
                    continue
                slope_cost, elevation = evaluated
                if best is None or slope_cost < best[0]:
                    best = (slope_cost, angle, site, elevation)

        if best is None:
            self._reject("inadmissible_terrain")
            return

        slope_cost, angle, site, elevation = best
        path_length = parent_path_length + length
        candidate = GrowthCandidate(
            parent=parent,
            site=site,
            angle=angle,
            cost=(slope_cost + path_length) * self._class_factor(attr),
            elevation=elevation,
            attr=attr,
            path_length=path_length,
            sequence=self._sequence,
        )
        self._sequence += 1
        heapq.heappush(self._heap, (candidate.cost, candidate.sequence, candidate))

    def _spawn_children(self, node: int, candidate: GrowthCandidate) -> None:
        """Propose the straight continuation and the perpendicular branches."""
        config = self.config
        for rotation in (-1, 0, 1):
            attr = candidate.attr
            if rotation != 0:
                is_highway = False
                if candidate.attr.is_highway and self._rng.random() < config.highway_rotation_probability:
                    is_highway = True
                elif not self._rng.random() < config.normal_rotation_probability:
                    continue
                attr = PathAttr(is_highway=is_highway, is_even=not candidate.attr.is_even)

            heading = candidate.angle + rotation * math.pi * 0.5
            self._propose(node, heading, attr, candidate.path_length)

    # Candidate resolution

    def _resolve(self, candidate: GrowthCandidate) -> CandidateOutcome:
        tolerance = self.config.snap_tolerance
        parent = candidate.parent
        start = self._sites[parent]
        end = candidate.site

        if start.distance_to(end) < tolerance:
            return self._reject("too_short")

        crossing = self._find_crossing(start, end, {parent})
        if crossing is not None:
            if self.config.intersection_policy == IntersectionPolicy.REJECT:
                return self._reject("crossing")
            return self._snap_to_crossing(candidate, *crossing)

        target = self._nearest_node(end, tolerance, {parent})
        if target is not None:
            return self._connect_existing(candidate, target, CandidateOutcome.MERGED)

        if self._near_segment(end, tolerance, {parent}):
            return self._reject("crowded")

        node = self._add_node(end, candidate.elevation)
        self._add_segment(parent, node, candidate.attr)
        self._spawn_children(node, candidate)
        return CandidateOutcome.ACCEPTED

    def _snap_to_crossing(
        self, candidate: GrowthCandidate, segment_id: int, cross: Site
    ) -> CandidateOutcome:
        """End a candidate at the point where it crosses an existing segment."""
        tolerance = self.config.snap_tolerance
        parent = candidate.parent

        ends = sorted(self._segment_ends[segment_id], key=lambda n: (cross.distance_to(self._sites[n]), n))
        for endpoint in ends:
            if cross.distance_to(self._sites[endpoint]) < tolerance:
                return self._connect_existing(candidate, endpoint, CandidateOutcome.SNAPPED)

        if cross.distance_to(self._sites[parent]) < tolerance:
            return self._reject("crossing_too_close")
        if self._nearest_node(cross, tolerance, {parent}) is not None:
            return self._reject("crowded")

        elevation = None
        if self.terrain is not None:
            elevation = self.terrain.elevation_at(cross)
            if elevation is None or not self.config.admissibility(elevation):
                return self._reject("inadmissible_terrain")

        node = self._add_node(cross, elevation)
        self._split_segment(segment_id, node)
        self._add_segment(parent, node, candidate.attr)
        return CandidateOutcome.SNAPPED

    def _connect_existing(
        self, candidate: GrowthCandidate, target: int, outcome: CandidateOutcome
    ) -> CandidateOutcome:
        """Join a candidate's parent to an existing node."""
        parent = candidate.parent
        if self._graph.has_edge(parent, target):
            return self._reject("duplicate_segment")

        if self._find_crossing(self._sites[parent], self._sites[target], {parent, target}) is not None:
            return self._reject("crossing")

        self._add_segment(parent, target, candidate.attr)
        return outcome

    def _reject(self, reason: str) -> CandidateOutcome:
        self._rejections[reason] = self._rejections.get(reason, 0) + 1
        return CandidateOutcome.REJECTED

    # Spatial queries

    def _find_crossing(
        self, start: Site, end: Site, excluded_nodes: Set[int]
    ) -> Optional[Tuple[int, Site]]:
        """Find the existing segment crossed closest to ``start``."""
        best: Optional[Tuple[float, int, Site]] = None
        for segment_id in self._segment_index.query(
            min(start.x, end.x), min(start.y, end.y), max(start.x, end.x), max(start.y, end.y)
        ):
            a, b = self._segment_ends[segment_id]
            if a in excluded_nodes or b in excluded_nodes:
                continue

            result = segment_cross(start, end, self._sites[a], self._sites[b])
            if result is None or not result[1]:
                continue

            distance = start.distance_to(result[0])
            if best is None or distance < best[0]:
                best = (distance, segment_id, result[0])

        if best is None:
            return None
        return best[1], best[2]

    def _nearest_node(self, site: Site, radius: float, excluded_nodes: Set[int]) -> Optional[int]:
        """Closest node strictly within ``radius`` of a site."""
        best: Optional[Tuple[float, int]] = None
        for node in self._node_index.query_radius(site.x, site.y, radius):
            if node in excluded_nodes:
                continue
            distance = site.distance_to(self._sites[node])
            if distance < radius and (best is None or distance < best[0]):
                best = (distance, node)
        return None if best is None else best[1]

    def _near_segment(self, site: Site, radius: float, excluded_nodes: Set[int]) -> bool:
        """Whether a segment not touching the excluded nodes passes within ``radius``."""
        for segment_id in self._segment_index.query_radius(site.x, site.y, radius):
            a, b = self._segment_ends[segment_id]
            if a in excluded_nodes or b in excluded_nodes:
                continue
            if point_segment_distance(site, self._sites[a], self._sites[b]) < radius:
                return True
        return False

    # Network mutation

    def _add_node(self, site: Site, elevation: Optional[float]) -> int:
        node = len(self._sites)
        self._sites.append(site)
        self._elevations.append(elevation)
        self._graph.add_node(node)
        self._node_index.insert(node, ShapelyPoint(site.x, site.y))
        return node

    def _add_segment(self, a: int, b: int, attr: PathAttr) -> int:
        segment_id = self._segment_counter
        self._segment_counter += 1

        self._graph.add_edge(a, b, is_highway=attr.is_highway)
        self._segment_ends[segment_id] = (a, b)
        self._segment_attrs[segment_id] = attr
        self._segment_index.insert(
            segment_id, LineString([self._sites[a].as_tuple(), self._sites[b].as_tuple()])
        )
        return segment_id

    def _split_segment(self, segment_id: int, node: int) -> None:
        """Replace segment a-b with a-node and node-b, keeping its road class."""
        a, b = self._segment_ends.pop(segment_id)
        attr = self._segment_attrs.pop(segment_id)
        self._segment_index.remove(segment_id)
        self._graph.remove_edge(a, b)

        self._add_segment(a, node, attr)
        self._add_segment(node, b, attr)


class TransportNetworkBuilder:
    """
    Fluent builder for transport networks.

    Each setter returns a new builder; validation happens once in config().

    Example:
        network = (
            TransportNetworkBuilder()
            .set_start(100.0, 50.0)
            .set_iterations(34000)
            .set_branch_length(0.5)
            .build(seed=0, terrain=terrain)
        )
    """

    def __init__(self, **params: Any):
        """
        Initialize the builder.

        Args:
            **params: Initial GrowthConfig fields
        """
        self._params: Dict[str, Any] = dict(params)

    def _with(self, **params: Any) -> "TransportNetworkBuilder":
        return TransportNetworkBuilder(**{**self._params, **params})

    def set_start(self, x: float, y: float) -> "TransportNetworkBuilder":
        return self._with(start=Site(x, y))

    def set_iterations(self, iterations: int) -> "TransportNetworkBuilder":
        return self._with(iterations=iterations)

    def set_branch_length(self, branch_length: float) -> "TransportNetworkBuilder":
        return self._with(branch_length=branch_length)

    def set_branch_angle_deviation(self, deviation: float) -> "TransportNetworkBuilder":
        return self._with(branch_angle_deviation=deviation)

    def set_branch_max_angle(self, max_angle: float) -> "TransportNetworkBuilder":
        return self._with(branch_max_angle=max_angle)

    def set_normal_rotation_probability(self, probability: float) -> "TransportNetworkBuilder":
        return self._with(normal_rotation_probability=probability)

    def set_highway_rotation_probability(self, probability: float) -> "TransportNetworkBuilder":
        return self._with(highway_rotation_probability=probability)

    def set_highway_construction_priority(self, priority: float) -> "TransportNetworkBuilder":
        return self._with(highway_construction_priority=priority)

    def set_even_path_length_weight(self, weight: float) -> "TransportNetworkBuilder":
        return self._with(even_path_length_weight=weight)

    def set_highway_path_length_weight(self, weight: float) -> "TransportNetworkBuilder":
        return self._with(highway_path_length_weight=weight)

    def set_snap_tolerance_factor(self, factor: float) -> "TransportNetworkBuilder":
        return self._with(snap_tolerance_factor=factor)

    def set_intersection_policy(self, policy: IntersectionPolicy) -> "TransportNetworkBuilder":
        return self._with(intersection_policy=policy)

    def set_admissibility(self, predicate: Callable[[float], bool]) -> "TransportNetworkBuilder":
        return self._with(admissibility=predicate)

    def set_bounds(self, bounds: Bounds) -> "TransportNetworkBuilder":
        return self._with(bounds=bounds)

    def config(self) -> GrowthConfig:
        """
        Validate the collected parameters.

        Raises:
            ConfigurationError: If a parameter is missing or out of range
        """
        missing = [name for name in ("start", "iterations") if name not in self._params]
        if missing:
            raise ConfigurationError(
                f"Missing growth parameters: {', '.join(missing)}",
                config_key=missing[0],
            )
        return GrowthConfig(**self._params)

    def build(self, seed: int = 0, terrain: Optional[Terrain] = None) -> TransportNetwork:
        """
        Validate and grow a network.

        Args:
            seed: Growth seed
            terrain: Optional terrain to grow across

        Returns:
            The finished network
        """
        return NetworkGrowthEngine(self.config(), seed=seed, terrain=terrain).grow()
