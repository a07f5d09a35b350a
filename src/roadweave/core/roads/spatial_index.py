"""
Insertable spatial index built from static shapely STRtrees.

Shapely's STRtree cannot be modified once built. DynamicSpatialIndex keeps a
small unindexed buffer of recent insertions and a list of STRtree blocks whose
sizes are distinct powers of two times the buffer size. Flushing the buffer
merges equal-sized blocks, so each item is re-indexed O(log n) times and a
query visits O(log n) trees. Removal marks items as deleted.
"""

import logging
from dataclasses import dataclass
from typing import Dict, List, Set, Tuple

import numpy as np
from numpy.typing import NDArray
from shapely import STRtree, box
from shapely.geometry.base import BaseGeometry

logger = logging.getLogger(__name__)

BoundsTuple = Tuple[float, float, float, float]


@dataclass
class _Block:
    """One immutable STRtree and the item ids of its geometries."""

    tree: STRtree
    item_ids: NDArray[np.int64]

    def __len__(self) -> int:
        return len(self.item_ids)


class DynamicSpatialIndex:
    """
    Spatial index over integer-keyed geometries supporting insert and remove.

    Queries return ids whose bounding boxes intersect a rectangle, in
    ascending id order, so callers iterate deterministically.
    """

    def __init__(self, buffer_size: int = 32):
        """
        Initialize an empty index.

        Args:
            buffer_size: Number of insertions kept unindexed before flushing
        """
        if buffer_size < 1:
            raise ValueError("buffer_size must be positive")

        self.buffer_size = buffer_size
        self._geometries: Dict[int, BaseGeometry] = {}
        self._bounds: Dict[int, BoundsTuple] = {}
        self._buffer: List[int] = []
        self._blocks: List[_Block] = []
        self._removed: Set[int] = set()

    def __len__(self) -> int:
        return len(self._geometries) - len(self._removed)

    def __contains__(self, item_id: int) -> bool:
        return item_id in self._geometries and item_id not in self._removed

    @property
    def block_sizes(self) -> List[int]:
        """Sizes of the indexed blocks, for diagnostics."""
        return [len(block) for block in self._blocks]

    def insert(self, item_id: int, geometry: BaseGeometry) -> None:
        """
        Add a geometry.

        Args:
            item_id: Unique id; ids of removed items cannot be reused
            geometry: Shapely geometry

        Raises:
            ValueError: If the id was used before
        """
        if item_id in self._geometries:
            raise ValueError(f"Item id {item_id} already used")

        self._geometries[item_id] = geometry
        self._bounds[item_id] = tuple(geometry.bounds)
        self._buffer.append(item_id)

        if len(self._buffer) >= self.buffer_size:
            self._flush()

    def remove(self, item_id: int) -> None:
        """
        Remove a geometry.

        Raises:
            KeyError: If the id is not present
        """
        if item_id not in self:
            raise KeyError(item_id)
        self._removed.add(item_id)

    def query(self, min_x: float, min_y: float, max_x: float, max_y: float) -> List[int]:
        """
        Find items whose bounding box intersects a rectangle.

        Args:
            min_x: Rectangle lower x
            min_y: Rectangle lower y
            max_x: Rectangle upper x
            max_y: Rectangle upper y

        Returns:
            Sorted list of live item ids
        """
        found: Set[int] = set()

        if self._blocks:
            envelope = box(min_x, min_y, max_x, max_y)
            for block in self._blocks:
                hits = block.tree.query(envelope)
                found.update(int(i) for i in block.item_ids[hits])

        for item_id in self._buffer:
            bx0, by0, bx1, by1 = self._bounds[item_id]
            if bx0 <= max_x and bx1 >= min_x and by0 <= max_y and by1 >= min_y:
                found.add(item_id)

        return sorted(found - self._removed)

    def query_radius(self, x: float, y: float, radius: float) -> List[int]:
        """Find items whose bounding box intersects a square around a point."""
        return self.query(x - radius, y - radius, x + radius, y + radius)

    def _flush(self) -> None:
        """Move the buffer into an STRtree block, merging equal-sized blocks."""
        pending = [i for i in self._buffer if i not in self._removed]
        self._buffer = []

        while self._blocks and len(self._blocks[-1]) <= len(pending):
            block = self._blocks.pop()
            pending = [int(i) for i in block.item_ids if int(i) not in self._removed] + pending

        if not pending:
            return

        item_ids = np.array(pending, dtype=np.int64)
        tree = STRtree([self._geometries[i] for i in pending])
        self._blocks.append(_Block(tree=tree, item_ids=item_ids))
        logger.debug(f"Spatial index flushed: blocks={self.block_sizes}")
