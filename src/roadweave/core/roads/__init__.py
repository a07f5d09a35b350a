"""
Road network generation for Roadweave.

This module grows transport networks across a terrain, including:
- Priority-driven growth of highways and local roads
- Crossing, merge and crowding resolution against the existing network
- Read-only network queries and GeoJSON export
"""

from roadweave.core.roads.graph import GrowthStats, Neighbor, TransportNetwork
from roadweave.core.roads.growth import (
    GrowthCandidate,
    GrowthConfig,
    IntersectionPolicy,
    NetworkGrowthEngine,
    PathAttr,
    TransportNetworkBuilder,
    sea_level_admissible,
)
from roadweave.core.roads.spatial_index import DynamicSpatialIndex

__all__ = [
    "GrowthStats",
    "Neighbor",
    "TransportNetwork",
    "GrowthCandidate",
    "GrowthConfig",
    "IntersectionPolicy",
    "NetworkGrowthEngine",
    "PathAttr",
    "TransportNetworkBuilder",
    "sea_level_admissible",
    "DynamicSpatialIndex",
]
