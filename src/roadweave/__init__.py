"""
Roadweave - seeded terrain and road network generation.

This package builds an interpolated elevation field from a scattered, seeded
sample set and grows a branching network of highways and local roads across it.
"""

__version__ = "0.1.0"
