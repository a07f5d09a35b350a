"""
Tests for the finished transport network.
"""

import networkx as nx
import pytest

from roadweave.core.errors import InvalidIndexError
from roadweave.core.geometry import Site
from roadweave.core.roads.graph import GrowthStats, Neighbor, TransportNetwork


@pytest.fixture
def network():
    """Create a small network: a highway spine with one local spur."""
    sites = [Site(0.0, 0.0), Site(3.0, 0.0), Site(6.0, 0.0), Site(3.0, 4.0)]
    graph = nx.Graph()
    graph.add_nodes_from(range(len(sites)))
    graph.add_edge(0, 1, is_highway=True)
    graph.add_edge(1, 2, is_highway=True)
    graph.add_edge(1, 3, is_highway=False)
    stats = GrowthStats(iterations=5, accepted=3, rejected=2, rejections={"crowded": 2})
    return TransportNetwork(sites, graph, stats)


class TestTransportNetwork:
    """Tests for TransportNetwork queries."""

    def test_counts(self, network):
        """Test node and edge counts."""
        assert network.node_count() == 4
        assert network.edge_count() == 3

    def test_site_of(self, network):
        """Test site lookup by id."""
        assert network.site_of(3) == Site(3.0, 4.0)
        assert network.sites[0] == Site(0.0, 0.0)

    @pytest.mark.parametrize("index", [-1, 4, 100, True, 1.0, "0"])
    def test_invalid_index(self, network, index):
        """Test out-of-range and non-integer ids are rejected."""
        with pytest.raises(InvalidIndexError):
            network.site_of(index)
        with pytest.raises(InvalidIndexError):
            network.neighbors_of(index)

    def test_neighbors_of(self, network):
        """Test adjacency with highway flags in insertion order."""
        assert network.neighbors_of(1) == [
            Neighbor(index=0, is_highway=True),
            Neighbor(index=2, is_highway=True),
            Neighbor(index=3, is_highway=False),
        ]
        assert network.neighbors_of(3) == [Neighbor(index=1, is_highway=False)]

    def test_neighbors_symmetric(self, network):
        """Test every adjacency is seen from both ends."""
        for a in range(network.node_count()):
            for neighbor in network.neighbors_of(a):
                back = [n.index for n in network.neighbors_of(neighbor.index)]
                assert a in back

    def test_edges(self, network):
        """Test edge iteration with ordered endpoints."""
        assert sorted(network.edges()) == [(0, 1, True), (1, 2, True), (1, 3, False)]
        assert network.has_edge(3, 1)
        assert not network.has_edge(0, 2)

    def test_is_highway(self, network):
        """Test highway flag lookup."""
        assert network.is_highway(2, 1)
        assert not network.is_highway(1, 3)
        with pytest.raises(KeyError):
            network.is_highway(0, 3)

    def test_lengths(self, network):
        """Test segment and total lengths."""
        assert network.segment_length(1, 3) == pytest.approx(4.0)
        assert network.get_total_length() == pytest.approx(10.0)
        assert network.get_total_length(highway=True) == pytest.approx(6.0)
        assert network.get_total_length(highway=False) == pytest.approx(4.0)

    def test_frozen(self, network):
        """Test the graph cannot be modified."""
        with pytest.raises(nx.NetworkXError):
            network.graph.add_edge(0, 2, is_highway=False)

    def test_network_stats(self, network):
        """Test summary statistics."""
        stats = network.get_network_stats()

        assert stats["num_nodes"] == 4
        assert stats["num_edges"] == 3
        assert stats["highway_segments"]["count"] == 2
        assert stats["local_segments"]["count"] == 1
        assert stats["num_junctions"] == 1
        assert stats["num_dead_ends"] == 3
        assert stats["num_components"] == 1
        assert stats["avg_degree"] == pytest.approx(1.5)
        assert stats["growth"]["rejections"] == {"crowded": 2}

    def test_export_to_geojson(self, network):
        """Test GeoJSON export."""
        geojson = network.export_to_geojson()

        assert geojson["type"] == "FeatureCollection"
        nodes = [f for f in geojson["features"] if f["properties"]["feature_type"] == "node"]
        roads = [f for f in geojson["features"] if f["properties"]["feature_type"] == "road_segment"]

        assert len(nodes) == 4
        assert len(roads) == 3
        assert nodes[1]["properties"]["degree"] == 3
        spur = next(f for f in roads if not f["properties"]["is_highway"])
        assert spur["geometry"]["coordinates"] == [[3.0, 0.0], [3.0, 4.0]]
        assert spur["properties"]["length"] == pytest.approx(4.0)


class TestGrowthStats:
    """Tests for GrowthStats."""

    def test_to_dict(self):
        """Test conversion to dictionary."""
        stats = GrowthStats(iterations=3, accepted=1, merged=1, rejected=1, rejections={"crossing": 1})

        assert stats.to_dict() == {
            "iterations": 3,
            "accepted": 1,
            "merged": 1,
            "snapped": 0,
            "rejected": 1,
            "pending": 0,
            "rejections": {"crossing": 1},
        }

    def test_default_stats_not_shared(self):
        """Test networks built without stats get independent counters."""
        first = TransportNetwork([Site(0.0, 0.0)], nx.empty_graph(1))
        second = TransportNetwork([Site(1.0, 1.0)], nx.empty_graph(1))

        assert first.stats == GrowthStats()
        assert first.stats is not second.stats
        assert first.stats.rejections is not second.stats.rejections
