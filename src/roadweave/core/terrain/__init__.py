"""
Terrain generation module for Roadweave.

This module provides the seeded elevation field:
- Fractal OpenSimplex noise for elevation synthesis
- Uniform site scattering with Lloyd relaxation
- Barycentric interpolation over a Delaunay triangulation
"""

from roadweave.core.terrain.model import (
    SEA_LEVEL,
    Terrain,
    TerrainBuilder,
    TerrainConfig,
    TerrainSample,
)
from roadweave.core.terrain.noise import OctaveNoise

__all__ = [
    "SEA_LEVEL",
    "Terrain",
    "TerrainBuilder",
    "TerrainConfig",
    "TerrainSample",
    "OctaveNoise",
]
