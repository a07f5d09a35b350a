"""
Tests for the insertable STRtree spatial index.
"""

import numpy as np
import pytest
from shapely.geometry import LineString, Point

from roadweave.core.roads.spatial_index import DynamicSpatialIndex


@pytest.fixture
def grid_index():
    """Create an index of points on a 10 x 10 integer grid."""
    index = DynamicSpatialIndex(buffer_size=4)
    for i in range(100):
        index.insert(i, Point(i % 10, i // 10))
    return index


class TestDynamicSpatialIndex:
    """Tests for DynamicSpatialIndex."""

    def test_empty(self):
        """Test queries on an empty index."""
        index = DynamicSpatialIndex()
        assert len(index) == 0
        assert index.query(0.0, 0.0, 1.0, 1.0) == []

    def test_query_rectangle(self, grid_index):
        """Test rectangle queries find exactly the covered points."""
        found = grid_index.query(1.5, 1.5, 3.5, 2.5)
        assert found == [22, 23]

    def test_query_sorted(self, grid_index):
        """Test results come back in ascending id order."""
        found = grid_index.query(0.0, 0.0, 9.0, 9.0)
        assert found == list(range(100))

    def test_query_radius(self, grid_index):
        """Test square neighbourhood queries."""
        assert grid_index.query_radius(5.0, 5.0, 1.0) == [44, 45, 46, 54, 55, 56, 64, 65, 66]

    def test_buffer_only(self):
        """Test items are found before any flush."""
        index = DynamicSpatialIndex(buffer_size=10)
        index.insert(3, Point(1.0, 1.0))
        assert index.block_sizes == []
        assert index.query(0.0, 0.0, 2.0, 2.0) == [3]

    def test_blocks_merge(self):
        """Test flushed blocks merge into power-of-two sizes."""
        index = DynamicSpatialIndex(buffer_size=2)
        for i in range(6):
            index.insert(i, Point(i, 0.0))
        assert index.block_sizes == [4, 2]

        index.insert(6, Point(6.0, 0.0))
        index.insert(7, Point(7.0, 0.0))
        assert index.block_sizes == [8]
        assert index.query(-1.0, -1.0, 10.0, 1.0) == list(range(8))

    def test_remove(self, grid_index):
        """Test removed items disappear from queries."""
        grid_index.remove(55)

        assert 55 not in grid_index
        assert len(grid_index) == 99
        assert 55 not in grid_index.query_radius(5.0, 5.0, 0.5)
        with pytest.raises(KeyError):
            grid_index.remove(55)

    def test_remove_missing(self, grid_index):
        """Test removing an unknown id fails."""
        with pytest.raises(KeyError):
            grid_index.remove(1000)

    def test_ids_not_reusable(self, grid_index):
        """Test ids cannot be inserted twice, even after removal."""
        grid_index.remove(3)
        with pytest.raises(ValueError):
            grid_index.insert(3, Point(0.0, 0.0))

    def test_segments(self):
        """Test line geometries are found by their bounding boxes."""
        index = DynamicSpatialIndex(buffer_size=1)
        index.insert(0, LineString([(0.0, 0.0), (10.0, 0.0)]))
        index.insert(1, LineString([(0.0, 5.0), (0.0, 6.0)]))

        assert index.query(4.0, -1.0, 5.0, 1.0) == [0]
        assert index.query(-1.0, 5.5, 1.0, 5.6) == [1]

    def test_invalid_buffer_size(self):
        """Test the buffer must hold at least one item."""
        with pytest.raises(ValueError):
            DynamicSpatialIndex(buffer_size=0)


class TestAgainstBruteForce:
    """Tests comparing queries with a linear scan."""

    def test_random_workload(self):
        """Test random inserts, removals and queries match brute force."""
        rng = np.random.default_rng(12)
        index = DynamicSpatialIndex(buffer_size=8)
        boxes = {}

        for item_id in range(300):
            x0, y0 = rng.uniform(0.0, 100.0, 2)
            x1, y1 = x0 + rng.uniform(0.0, 5.0), y0 + rng.uniform(0.0, 5.0)
            index.insert(item_id, LineString([(x0, y0), (x1, y1)]))
            boxes[item_id] = (x0, y0, x1, y1)

            if item_id % 7 == 3:
                victim = int(rng.choice(sorted(boxes)))
                index.remove(victim)
                del boxes[victim]

        for _ in range(50):
            qx, qy = rng.uniform(0.0, 100.0, 2)
            size = rng.uniform(1.0, 20.0)
            expected = sorted(
                item_id
                for item_id, (x0, y0, x1, y1) in boxes.items()
                if x0 <= qx + size and x1 >= qx and y0 <= qy + size and y1 >= qy
            )
            assert index.query(qx, qy, qx + size, qy + size) == expected

        assert len(index) == len(boxes)
