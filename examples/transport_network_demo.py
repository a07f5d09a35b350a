"""
Demo script for terrain and transport network generation.

This example runs the complete pipeline with the classic map parameters:
1. Build a 200 x 100 terrain from 20000 relaxed samples
2. Grow highways and local roads from the centre of the map
3. Print statistics and export the network to GeoJSON

Usage:
    python examples/transport_network_demo.py [output.geojson]
"""

import json
import logging
import sys
from pathlib import Path

from roadweave.core.logging_config import LogContext, setup_logging
from roadweave.core.roads import TransportNetworkBuilder
from roadweave.core.terrain import TerrainBuilder
from roadweave.utils.logging import PerformanceTimer

TERRAIN_SEED = 100
NETWORK_SEED = 0


def main():
    """Run terrain and transport network generation demo."""
    setup_logging(log_level="INFO")
    output = Path(sys.argv[1]) if len(sys.argv) > 1 else Path("transport_network.geojson")

    print("=" * 60)
    print("Transport Network Generation Demo")
    print("=" * 60)

    # 1. Build terrain
    print("\n1. Building terrain (200 x 100, 20000 samples)...")
    with PerformanceTimer("terrain", log_level=logging.DEBUG) as timer:
        terrain = (
            TerrainBuilder()
            .set_bound_max(200.0, 100.0)
            .set_sample_count(20000)
            .set_seed(TERRAIN_SEED)
            .build()
        )

    low, high = terrain.elevation_range()
    print(f"   - Elevation range: {low:.2f} - {high:.2f}")
    print(f"   - Built in {timer.duration_ms:.0f}ms")

    # 2. Grow the network from the centre
    print("\n2. Growing transport network (34000 iterations)...")
    centre = terrain.bounds.center
    with LogContext(terrain_seed=TERRAIN_SEED, network_seed=NETWORK_SEED):
        with PerformanceTimer("network", log_level=logging.DEBUG) as timer:
            network = (
                TransportNetworkBuilder()
                .set_start(centre.x, centre.y)
                .set_iterations(34000)
                .set_branch_length(0.5)
                .build(seed=NETWORK_SEED, terrain=terrain)
            )
    print(f"   - Grown in {timer.duration_ms:.0f}ms")

    # 3. Display network statistics
    print("\n3. Network Statistics:")
    print("-" * 60)

    stats = network.get_network_stats()
    print(f"   Nodes: {stats['num_nodes']}")
    print(f"   Segments: {stats['num_edges']}")
    print(f"   Junctions: {stats['num_junctions']}")
    print(f"   Dead Ends: {stats['num_dead_ends']}")
    print(f"   Average Degree: {stats['avg_degree']:.2f}")
    print(f"   Highways: {stats['highway_segments']['count']} "
          f"({stats['highway_segments']['total_length']:.1f} units)")
    print(f"   Local Roads: {stats['local_segments']['count']} "
          f"({stats['local_segments']['total_length']:.1f} units)")

    growth = stats["growth"]
    print("\n   Growth:")
    print(f"     - Iterations: {growth['iterations']}")
    print(f"     - Accepted: {growth['accepted']}")
    print(f"     - Merged: {growth['merged']}")
    print(f"     - Snapped: {growth['snapped']}")
    for reason, count in growth["rejections"].items():
        print(f"     - Rejected ({reason}): {count}")

    # 4. Export to GeoJSON
    print(f"\n4. Exporting to {output}...")
    geojson = network.export_to_geojson()
    output.write_text(json.dumps(geojson), encoding="utf-8")
    print(f"   - Features: {len(geojson['features'])}")

    print("\n" + "=" * 60)
    print("Demo Complete!")
    print("=" * 60)


if __name__ == "__main__":
    main()
