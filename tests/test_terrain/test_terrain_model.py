"""
Tests for the seeded terrain model.

Tests generation determinism, interpolation, degenerate terrains and
configuration validation.
"""

import numpy as np
import pytest

from roadweave.core.errors import ConfigurationError, NoDataError
from roadweave.core.geometry import Bounds, Site
from roadweave.core.terrain import SEA_LEVEL, Terrain, TerrainBuilder, TerrainConfig
from roadweave.core.terrain.model import relax_sites, scatter_sites, synthesize_elevations


@pytest.fixture(scope="module")
def small_terrain():
    """Create a small generated terrain for testing."""
    return (
        TerrainBuilder()
        .set_bound_max(40.0, 20.0)
        .set_sample_count(800)
        .set_seed(100)
        .build()
    )


@pytest.fixture
def triangle_terrain():
    """Create a hand-made terrain with three samples."""
    config = TerrainConfig(bound_max=Site(10.0, 10.0), sample_count=3)
    sites = np.array([[1.0, 1.0], [9.0, 1.0], [5.0, 9.0]])
    elevations = np.array([1.0, 2.0, 3.0])
    return Terrain(config, sites, elevations)


@pytest.fixture
def planar_terrain():
    """Create a terrain whose samples lie on the plane e = 2x + 3y + 1."""
    config = TerrainConfig(bound_max=Site(10.0, 10.0), sample_count=121)
    xs, ys = np.meshgrid(np.linspace(0.0, 10.0, 11), np.linspace(0.0, 10.0, 11))
    sites = np.column_stack([xs.ravel(), ys.ravel()])
    elevations = 2.0 * sites[:, 0] + 3.0 * sites[:, 1] + 1.0
    return Terrain(config, sites, elevations)


class TestTerrainConfig:
    """Tests for TerrainConfig validation."""

    def test_defaults(self):
        """Test default configuration."""
        config = TerrainConfig(bound_max=Site(200.0, 100.0), sample_count=20000)

        assert config.seed == 0
        assert config.bound_min == Site(0.0, 0.0)
        assert config.bounds == Bounds(max=Site(200.0, 100.0))
        assert config.relaxation_iterations == 1

    def test_tuple_corners(self):
        """Test corners given as plain pairs."""
        config = TerrainConfig(bound_max=(4, 2), sample_count=3, bound_min=(-1, -1))
        assert config.bound_max == Site(4.0, 2.0)
        assert config.bounds.width == 5.0

    @pytest.mark.parametrize(
        "overrides",
        [
            {"sample_count": 0},
            {"sample_count": -5},
            {"sample_count": 2.5},
            {"seed": -1},
            {"seed": 2**32},
            {"bound_max": Site(0.0, 10.0)},
            {"bound_max": "corner"},
            {"octaves": 0},
            {"persistence": 0.0},
            {"frequency": -1.0},
            {"height_scale": 0.0},
            {"relaxation_iterations": -1},
        ],
    )
    def test_invalid(self, overrides):
        """Test out-of-range parameters are rejected."""
        params = {"bound_max": Site(10.0, 10.0), "sample_count": 10}
        params.update(overrides)

        with pytest.raises(ConfigurationError):
            TerrainConfig(**params)

    def test_sample_limit(self, monkeypatch):
        """Test the sample count is capped by settings."""
        from roadweave.core.config import settings

        monkeypatch.setattr(settings, "max_terrain_samples", 100)
        with pytest.raises(ConfigurationError):
            TerrainConfig(bound_max=Site(10.0, 10.0), sample_count=101)


class TestTerrainBuilder:
    """Tests for TerrainBuilder."""

    def test_missing_parameters(self):
        """Test that bounds and sample count are required."""
        with pytest.raises(ConfigurationError) as exc_info:
            TerrainBuilder().set_seed(1).build()
        assert "bound_max" in exc_info.value.message
        assert "sample_count" in exc_info.value.message

    def test_setters_return_new_builders(self):
        """Test setters leave the original builder untouched."""
        base = TerrainBuilder().set_bound_max(10.0, 10.0)
        seeded = base.set_sample_count(5).set_seed(7)

        with pytest.raises(ConfigurationError):
            base.config()
        assert seeded.config().seed == 7

    def test_all_setters(self):
        """Test every setter reaches the configuration."""
        config = (
            TerrainBuilder()
            .set_bound_min(-5.0, -5.0)
            .set_bound_max(5.0, 5.0)
            .set_sample_count(50)
            .set_seed(3)
            .set_relaxation_iterations(2)
            .set_octaves(4)
            .set_persistence(0.6)
            .set_frequency(3.0)
            .set_height_scale(20.0)
            .config()
        )

        assert config.bound_min == Site(-5.0, -5.0)
        assert config.relaxation_iterations == 2
        assert config.octaves == 4
        assert config.persistence == 0.6
        assert config.frequency == 3.0
        assert config.height_scale == 20.0


class TestGeneration:
    """Tests for terrain generation."""

    def test_deterministic(self, small_terrain):
        """Test the same configuration reproduces the same terrain."""
        again = Terrain.build(small_terrain.config)

        assert np.array_equal(again.sites, small_terrain.sites)
        assert np.array_equal(again.elevations, small_terrain.elevations)

    def test_seed_changes_terrain(self, small_terrain):
        """Test a different seed gives different samples."""
        other = TerrainBuilder(bound_max=Site(40.0, 20.0), sample_count=800, seed=101).build()
        assert not np.array_equal(other.sites, small_terrain.sites)

    def test_samples_within_bounds(self, small_terrain):
        """Test all samples lie inside the rectangle."""
        sites = small_terrain.sites
        assert small_terrain.sample_count == 800
        assert sites[:, 0].min() >= 0.0
        assert sites[:, 0].max() <= 40.0
        assert sites[:, 1].min() >= 0.0
        assert sites[:, 1].max() <= 20.0

    def test_elevation_range(self, small_terrain):
        """Test elevations are non-negative and below the synthesis maximum."""
        low, high = small_terrain.elevation_range()
        assert low >= 0.0
        assert high <= 0.8 * small_terrain.config.height_scale
        assert high > SEA_LEVEL

    def test_read_only(self, small_terrain):
        """Test sample arrays cannot be modified."""
        with pytest.raises(ValueError):
            small_terrain.elevations[0] = 99.0

    def test_samples(self, small_terrain):
        """Test samples mirror the arrays."""
        samples = small_terrain.samples
        assert len(samples) == 800
        assert samples[0].site == Site(*small_terrain.sites[0])
        assert samples[0].elevation == small_terrain.elevations[0]

    def test_elevation_at_sample_sites(self, small_terrain):
        """Test interpolation reproduces elevations at the samples."""
        for i in range(0, 800, 97):
            x, y = small_terrain.sites[i]
            value = small_terrain.elevation_at(Site(float(x), float(y)))
            assert value == pytest.approx(small_terrain.elevations[i], abs=1e-9)

    def test_centre_above_sea(self, small_terrain):
        """Test the raised centre of the map is land."""
        assert small_terrain.elevation_at(Site(20.0, 10.0)) > SEA_LEVEL


class TestSiteHelpers:
    """Tests for scattering, relaxation and synthesis."""

    def test_scatter_within_bounds(self):
        """Test scattered sites stay in the rectangle."""
        bounds = Bounds(min=Site(-2.0, 3.0), max=Site(2.0, 4.0))
        sites = scatter_sites(np.random.default_rng(1), bounds, 200)

        assert sites.shape == (200, 2)
        assert sites[:, 0].min() >= -2.0
        assert sites[:, 1].max() <= 4.0

    def test_relaxation_keeps_count_and_bounds(self):
        """Test relaxation moves sites without losing any."""
        bounds = Bounds(max=Site(10.0, 10.0))
        sites = scatter_sites(np.random.default_rng(2), bounds, 100)

        relaxed = relax_sites(sites, bounds, iterations=2)
        assert relaxed.shape == sites.shape
        assert relaxed.min() >= 0.0
        assert relaxed.max() <= 10.0
        assert not np.array_equal(relaxed, sites)

    def test_relaxation_skips_tiny_inputs(self):
        """Test fewer than three sites are returned unchanged."""
        bounds = Bounds(max=Site(10.0, 10.0))
        sites = np.array([[1.0, 1.0], [2.0, 2.0]])
        assert relax_sites(sites, bounds, iterations=3) is sites

    def test_synthesis_centre_floor(self):
        """Test the centre of the map is always raised."""
        config = TerrainConfig(bound_max=Site(10.0, 10.0), sample_count=1, height_scale=10.0)
        elevations = synthesize_elevations(np.array([[5.0, 5.0]]), config)
        assert elevations[0] >= 0.15 * 10.0 - 1e-9


class TestInterpolation:
    """Tests for elevation queries."""

    def test_triangle_centroid(self, triangle_terrain):
        """Test barycentric interpolation at the centroid."""
        centroid = Site(5.0, 11.0 / 3.0)
        assert triangle_terrain.elevation_at(centroid) == pytest.approx(2.0)

    def test_outside_hull(self, triangle_terrain):
        """Test in-bounds points outside the hull have no data."""
        assert triangle_terrain.elevation_at(Site(0.0, 0.0)) is None
        assert triangle_terrain.elevation_at(Site(0.5, 9.5)) is None

    def test_outside_bounds(self, triangle_terrain):
        """Test points outside the rectangle have no data."""
        assert triangle_terrain.elevation_at(Site(-1.0, 5.0)) is None
        assert triangle_terrain.elevation_at(Site(5.0, 10.5)) is None

    def test_require_elevation(self, triangle_terrain):
        """Test strict lookups raise instead of returning None."""
        assert triangle_terrain.require_elevation(Site(5.0, 11.0 / 3.0)) == pytest.approx(2.0)
        with pytest.raises(NoDataError):
            triangle_terrain.require_elevation(Site(0.0, 0.0))

    def test_reproduces_plane(self, planar_terrain):
        """Test interpolation is exact for planar samples."""
        rng = np.random.default_rng(4)
        for x, y in rng.uniform(0.0, 10.0, size=(50, 2)):
            expected = 2.0 * x + 3.0 * y + 1.0
            assert planar_terrain.elevation_at(Site(float(x), float(y))) == pytest.approx(expected)

    def test_continuity(self, planar_terrain):
        """Test nearby points have nearby elevations."""
        a = planar_terrain.elevation_at(Site(4.3, 6.1))
        b = planar_terrain.elevation_at(Site(4.3 + 1e-6, 6.1))
        assert abs(a - b) < 1e-4

    def test_elevations_at(self, triangle_terrain):
        """Test batch queries mark missing data with NaN."""
        values = triangle_terrain.elevations_at([Site(5.0, 11.0 / 3.0), Site(0.0, 0.0), Site(50.0, 50.0)])

        assert values[0] == pytest.approx(2.0)
        assert np.isnan(values[1])
        assert np.isnan(values[2])

    def test_elevation_grid(self, triangle_terrain):
        """Test grid sampling shape and masking."""
        grid = triangle_terrain.elevation_grid(20, 10)

        assert grid.shape == (10, 20)
        assert grid.mask[0, 0]  # Corner is outside the hull
        assert not grid.mask[4, 10]

    def test_elevation_grid_invalid(self, triangle_terrain):
        """Test grid dimensions are validated."""
        with pytest.raises(ConfigurationError):
            triangle_terrain.elevation_grid(0, 10)


class TestDegenerateTerrain:
    """Tests for terrains that cannot be triangulated."""

    def test_single_sample(self):
        """Test a one-sample terrain answers every in-bounds query."""
        terrain = TerrainBuilder(bound_max=Site(10.0, 10.0), sample_count=1, seed=42).build()

        assert terrain.is_degenerate
        only = float(terrain.elevations[0])
        assert terrain.elevation_at(Site(0.0, 0.0)) == only
        assert terrain.elevation_at(Site(10.0, 10.0)) == only
        assert terrain.elevation_at(Site(11.0, 10.0)) is None

    def test_two_samples_nearest(self):
        """Test two samples answer with the nearest one."""
        config = TerrainConfig(bound_max=Site(10.0, 10.0), sample_count=2)
        terrain = Terrain(config, np.array([[1.0, 1.0], [9.0, 9.0]]), np.array([1.0, 5.0]))

        assert terrain.elevation_at(Site(2.0, 2.0)) == 1.0
        assert terrain.elevation_at(Site(8.0, 7.0)) == 5.0

    def test_collinear_samples(self):
        """Test collinear samples fall back to nearest lookup."""
        config = TerrainConfig(bound_max=Site(10.0, 10.0), sample_count=3)
        sites = np.array([[1.0, 1.0], [5.0, 5.0], [9.0, 9.0]])
        terrain = Terrain(config, sites, np.array([1.0, 2.0, 3.0]))

        assert terrain.is_degenerate
        assert terrain.elevation_at(Site(5.0, 4.0)) == 2.0

    def test_mismatched_arrays(self):
        """Test sites and elevations must pair up."""
        config = TerrainConfig(bound_max=Site(10.0, 10.0), sample_count=2)
        with pytest.raises(ConfigurationError):
            Terrain(config, np.array([[1.0, 1.0], [2.0, 2.0]]), np.array([1.0]))
