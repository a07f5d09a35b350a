"""
Seeded terrain model with interpolated elevation queries.

The terrain is a scattered set of sample sites, relaxed towards an even
spacing, each carrying an elevation synthesized from fractal noise and a
radial falloff. Queries between samples use barycentric interpolation inside
the Delaunay triangle that encloses the query point:

    e(p) = sum(b_i * e_i)   for the triangle's vertices i

Points outside the convex hull of the samples have no data. Terrains with
fewer than three samples (or collinear samples) cannot be triangulated and
answer in-bounds queries with the nearest sample's elevation instead.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Sequence, Tuple, Union

import numpy as np
from numpy.typing import NDArray
from scipy.spatial import Delaunay, QhullError, Voronoi, cKDTree
from shapely.geometry import MultiPoint

from roadweave.core.config import settings
from roadweave.core.errors import ConfigurationError, NoDataError
from roadweave.core.geometry import Bounds, Site
from roadweave.core.terrain.noise import OctaveNoise
from roadweave.core.validation import validate_float, validate_int
from roadweave.utils.logging import PerformanceTimer, log_performance

logger = logging.getLogger(__name__)

# Elevation below which terrain counts as water
SEA_LEVEL = 1e-3

# Elevation synthesis weights
NOISE_WEIGHT = 0.65
FALLOFF_WEIGHT = 0.35
SEA_OFFSET = 0.2

# Seeds are unsigned 32-bit integers
MAX_SEED = 2**32 - 1

SiteLike = Union[Site, Tuple[float, float]]


def _as_site(value: SiteLike, name: str) -> Site:
    """Coerce an ``(x, y)`` pair into a Site."""
    if isinstance(value, Site):
        return value
    try:
        x, y = value
        return Site(float(x), float(y))
    except (TypeError, ValueError):
        raise ConfigurationError(f"{name} must be a Site or an (x, y) pair", config_key=name, value=value)


@dataclass(frozen=True)
class TerrainSample:
    """
    A sample site with its elevation.

    Attributes:
        site: Sample location
        elevation: Elevation at the sample
    """

    site: Site
    elevation: float


@dataclass
class TerrainConfig:
    """
    Configuration for terrain generation.

    Attributes:
        bound_max: Upper corner of the terrain rectangle
        sample_count: Number of scattered samples (>= 1)
        seed: Unsigned 32-bit seed for site placement and noise
        bound_min: Lower corner of the terrain rectangle (default: origin)
        relaxation_iterations: Rounds of Lloyd relaxation applied to the sites
        octaves: Noise octaves
        persistence: Amplitude decay between octaves, in (0, 1]
        frequency: Noise frequency across the normalised rectangle
        height_scale: Elevation of a fully raised site
    """

    bound_max: Site
    sample_count: int
    seed: int = 0
    bound_min: Site = Site(0.0, 0.0)
    relaxation_iterations: int = 1
    octaves: int = 8
    persistence: float = 0.5
    frequency: float = 2.0
    height_scale: float = 10.0
    bounds: Bounds = field(init=False, repr=False)

    def __post_init__(self) -> None:
        """Validate configuration."""
        self.bound_max = _as_site(self.bound_max, "bound_max")
        self.bound_min = _as_site(self.bound_min, "bound_min")
        self.bounds = Bounds(max=self.bound_max, min=self.bound_min)

        self.sample_count = validate_int(
            "sample_count", self.sample_count, minimum=1, maximum=settings.max_terrain_samples
        )
        self.seed = validate_int("seed", self.seed, minimum=0, maximum=MAX_SEED)
        self.relaxation_iterations = validate_int(
            "relaxation_iterations", self.relaxation_iterations, minimum=0
        )
        self.octaves = validate_int("octaves", self.octaves, minimum=1)
        self.persistence = validate_float(
            "persistence", self.persistence, minimum=0.0, maximum=1.0, exclusive_minimum=True
        )
        self.frequency = validate_float(
            "frequency", self.frequency, minimum=0.0, exclusive_minimum=True
        )
        self.height_scale = validate_float(
            "height_scale", self.height_scale, minimum=0.0, exclusive_minimum=True
        )


class TerrainBuilder:
    """
    Fluent builder for Terrain.

    Each setter returns a new builder; validation happens once in build().

    Example:
        terrain = (
            TerrainBuilder()
            .set_bound_max(200.0, 100.0)
            .set_sample_count(20000)
            .set_seed(100)
            .build()
        )
    """

    def __init__(self, **params: Any):
        """
        Initialize the builder.

        Args:
            **params: Initial TerrainConfig fields
        """
        self._params: Dict[str, Any] = dict(params)

    def _with(self, **params: Any) -> "TerrainBuilder":
        return TerrainBuilder(**{**self._params, **params})

    def set_bound_min(self, x: float, y: float) -> "TerrainBuilder":
        return self._with(bound_min=Site(x, y))

    def set_bound_max(self, x: float, y: float) -> "TerrainBuilder":
        return self._with(bound_max=Site(x, y))

    def set_sample_count(self, sample_count: int) -> "TerrainBuilder":
        return self._with(sample_count=sample_count)

    def set_seed(self, seed: int) -> "TerrainBuilder":
        return self._with(seed=seed)

    def set_relaxation_iterations(self, iterations: int) -> "TerrainBuilder":
        return self._with(relaxation_iterations=iterations)

    def set_octaves(self, octaves: int) -> "TerrainBuilder":
        return self._with(octaves=octaves)

    def set_persistence(self, persistence: float) -> "TerrainBuilder":
        return self._with(persistence=persistence)

    def set_frequency(self, frequency: float) -> "TerrainBuilder":
        return self._with(frequency=frequency)

    def set_height_scale(self, height_scale: float) -> "TerrainBuilder":
        return self._with(height_scale=height_scale)

    def config(self) -> TerrainConfig:
        """
        Validate the collected parameters.

        Returns:
            TerrainConfig

        Raises:
            ConfigurationError: If a parameter is missing or out of range
        """
        missing = [name for name in ("bound_max", "sample_count") if name not in self._params]
        if missing:
            raise ConfigurationError(
                f"Missing terrain parameters: {', '.join(missing)}",
                config_key=missing[0],
            )
        return TerrainConfig(**self._params)

    def build(self) -> "Terrain":
        """Validate and build the terrain."""
        return Terrain.build(self.config())


def scatter_sites(rng: np.random.Generator, bounds: Bounds, count: int) -> NDArray[np.float64]:
    """
    Scatter sites uniformly over a rectangle.

    Args:
        rng: Seeded generator
        bounds: Target rectangle
        count: Number of sites

    Returns:
        ``(count, 2)`` array of coordinates
    """
    xs = rng.uniform(bounds.min.x, bounds.max.x, size=count)
    ys = rng.uniform(bounds.min.y, bounds.max.y, size=count)
    return np.column_stack([xs, ys])


def relax_sites(
    sites: NDArray[np.float64], bounds: Bounds, iterations: int
) -> NDArray[np.float64]:
    """
    Apply Lloyd relaxation, moving each site to its Voronoi cell centroid.

    Cells are clipped to the rectangle by mirroring the sites across its four
    edges before computing the diagram.

    Args:
        sites: ``(n, 2)`` site coordinates
        bounds: Clipping rectangle
        iterations: Number of relaxation rounds

    Returns:
        Relaxed ``(n, 2)`` coordinates (the input when n < 3)
    """
    count = len(sites)
    if count < 3 or iterations == 0:
        return sites

    lower = np.array([bounds.min.x, bounds.min.y])
    upper = np.array([bounds.max.x, bounds.max.y])

    for _ in range(iterations):
        xs, ys = sites[:, 0], sites[:, 1]
        mirrored = np.vstack(
            [
                sites,
                np.column_stack([2.0 * bounds.min.x - xs, ys]),
                np.column_stack([2.0 * bounds.max.x - xs, ys]),
                np.column_stack([xs, 2.0 * bounds.min.y - ys]),
                np.column_stack([xs, 2.0 * bounds.max.y - ys]),
            ]
        )

        try:
            diagram = Voronoi(mirrored)
        except QhullError as e:
            logger.warning(f"Skipping site relaxation, Voronoi diagram failed: {e}")
            return sites

        centroids = sites.copy()
        for i in range(count):
            region = diagram.regions[diagram.point_region[i]]
            if not region or -1 in region:
                continue
            cell = MultiPoint(diagram.vertices[region]).convex_hull
            if cell.area <= 0.0:
                continue
            centroid = cell.centroid
            centroids[i] = (centroid.x, centroid.y)

        sites = np.clip(centroids, lower, upper)

    return sites


def synthesize_elevations(sites: NDArray[np.float64], config: TerrainConfig) -> NDArray[np.float64]:
    """
    Compute the elevation of each site.

    With ``u, v`` the site normalised to the unit square and ``d`` its
    distance from the centre:

        e = height_scale * max(0, 0.65 * (0.5 * n + 0.5) + 0.35 * (1 - 2d) - 0.2)

    where ``n`` is octaved noise sampled at ``(u, v) * frequency``.

    Args:
        sites: ``(n, 2)`` site coordinates
        config: Terrain configuration

    Returns:
        Array of n elevations, zero at sea
    """
    bounds = config.bounds
    u = (sites[:, 0] - bounds.min.x) / bounds.width
    v = (sites[:, 1] - bounds.min.y) / bounds.height
    dist_from_center = np.hypot(u - 0.5, v - 0.5)

    noise = OctaveNoise(config.seed, octaves=config.octaves, persistence=config.persistence)
    n = noise.values(u * config.frequency, v * config.frequency)

    raw = (
        NOISE_WEIGHT * (0.5 * n + 0.5)
        + FALLOFF_WEIGHT * (1.0 - 2.0 * dist_from_center)
        - SEA_OFFSET
    )
    return config.height_scale * np.maximum(raw, 0.0)


class Terrain:
    """
    Immutable elevation field over a rectangle.

    Build with Terrain.build(config) or TerrainBuilder. After construction
    only read-only queries are available, so a Terrain may be shared between
    threads.
    """

    def __init__(
        self,
        config: TerrainConfig,
        sites: NDArray[np.float64],
        elevations: NDArray[np.float64],
    ):
        """
        Initialize the terrain from precomputed samples.

        Args:
            config: Configuration the samples were generated from
            sites: ``(n, 2)`` sample coordinates
            elevations: n sample elevations
        """
        if len(sites) == 0 or len(sites) != len(elevations):
            raise ConfigurationError(
                "Terrain needs at least one sample and one elevation per site",
                config_key="sample_count",
                value=len(sites),
            )

        self.config = config
        self.bounds = config.bounds

        self._sites = np.array(sites, dtype=np.float64)
        self._elevations = np.array(elevations, dtype=np.float64)
        self._sites.setflags(write=False)
        self._elevations.setflags(write=False)

        self._kdtree = cKDTree(self._sites)
        self._triangulation: Optional[Delaunay] = None
        if len(self._sites) >= 3:
            try:
                self._triangulation = Delaunay(self._sites)
            except QhullError:
                logger.warning(
                    "Terrain samples cannot be triangulated, falling back to nearest-sample lookup"
                )

    @classmethod
    @log_performance(log_level=logging.DEBUG)
    def build(cls, config: TerrainConfig) -> "Terrain":
        """
        Generate a terrain.

        Args:
            config: Validated terrain configuration

        Returns:
            Terrain instance
        """
        rng = np.random.default_rng(config.seed)

        sites = scatter_sites(rng, config.bounds, config.sample_count)

        with PerformanceTimer("site_relaxation", log_level=logging.DEBUG):
            sites = relax_sites(sites, config.bounds, config.relaxation_iterations)

        with PerformanceTimer("elevation_synthesis", log_level=logging.DEBUG):
            elevations = synthesize_elevations(sites, config)

        terrain = cls(config, sites, elevations)
        logger.info(
            f"Built terrain: samples={config.sample_count}, seed={config.seed}, "
            f"bounds=({config.bound_min.x}, {config.bound_min.y})-"
            f"({config.bound_max.x}, {config.bound_max.y}), "
            f"degenerate={terrain.is_degenerate}"
        )
        return terrain

    @property
    def sample_count(self) -> int:
        """Number of samples."""
        return len(self._sites)

    @property
    def is_degenerate(self) -> bool:
        """Whether queries use nearest-sample lookup instead of interpolation."""
        return self._triangulation is None

    @property
    def sites(self) -> NDArray[np.float64]:
        """Read-only ``(n, 2)`` array of sample coordinates."""
        return self._sites

    @property
    def elevations(self) -> NDArray[np.float64]:
        """Read-only array of sample elevations."""
        return self._elevations

    @property
    def samples(self) -> Tuple[TerrainSample, ...]:
        """Samples in generation order."""
        return tuple(
            TerrainSample(Site(float(x), float(y)), float(e))
            for (x, y), e in zip(self._sites, self._elevations)
        )

    def contains(self, site: Site) -> bool:
        """Whether the site lies within the terrain bounds."""
        return self.bounds.contains(site)

    def elevation_range(self) -> Tuple[float, float]:
        """Minimum and maximum sample elevation."""
        return float(self._elevations.min()), float(self._elevations.max())

    def elevation_at(self, site: Site) -> Optional[float]:
        """
        Interpolate the elevation at a point.

        Args:
            site: Query point

        Returns:
            Elevation, or None when the point has no data (outside the bounds
            or outside the convex hull of the samples)
        """
        if not self.bounds.contains(site):
            return None

        value = self._interpolate(np.array([[site.x, site.y]], dtype=np.float64))[0]
        if np.isnan(value):
            return None
        return float(value)

    def require_elevation(self, site: Site) -> float:
        """
        Interpolate the elevation at a point, failing when there is no data.

        Raises:
            NoDataError: If elevation_at() would return None
        """
        elevation = self.elevation_at(site)
        if elevation is None:
            raise NoDataError(site.x, site.y)
        return elevation

    def elevations_at(self, points: Union[Sequence[Site], NDArray[np.floating[Any]]]) -> NDArray[np.float64]:
        """
        Interpolate elevations at many points.

        Args:
            points: Sites or an ``(m, 2)`` coordinate array

        Returns:
            Array of m elevations, NaN where there is no data
        """
        if isinstance(points, np.ndarray):
            coords = np.asarray(points, dtype=np.float64).reshape(-1, 2)
        else:
            coords = np.array([[p.x, p.y] for p in points], dtype=np.float64).reshape(-1, 2)

        in_bounds = (
            (coords[:, 0] >= self.bounds.min.x)
            & (coords[:, 0] <= self.bounds.max.x)
            & (coords[:, 1] >= self.bounds.min.y)
            & (coords[:, 1] <= self.bounds.max.y)
        )

        out = np.full(len(coords), np.nan)
        if in_bounds.any():
            out[in_bounds] = self._interpolate(coords[in_bounds])
        return out

    def elevation_grid(self, width: int, height: int) -> np.ma.MaskedArray:
        """
        Sample the terrain on a pixel grid.

        Pixel ``(row, col)`` samples
        ``(min.x + extent.x * col / width, min.y + extent.y * row / height)``.

        Args:
            width: Number of columns
            height: Number of rows

        Returns:
            ``(height, width)`` masked array, masked where there is no data
        """
        width = validate_int("width", width, minimum=1)
        height = validate_int("height", height, minimum=1)

        xs = self.bounds.min.x + self.bounds.width * (np.arange(width) / width)
        ys = self.bounds.min.y + self.bounds.height * (np.arange(height) / height)
        grid_x, grid_y = np.meshgrid(xs, ys)

        values = self.elevations_at(np.column_stack([grid_x.ravel(), grid_y.ravel()]))
        return np.ma.masked_invalid(values.reshape(height, width))

    def _interpolate(self, coords: NDArray[np.float64]) -> NDArray[np.float64]:
        """Interpolate in-bounds coordinates; NaN outside the hull."""
        if self._triangulation is None:
            _, nearest = self._kdtree.query(coords)
            return self._elevations[nearest].astype(np.float64)

        triangulation = self._triangulation
        simplex = triangulation.find_simplex(coords)
        out = np.full(len(coords), np.nan)

        inside = simplex >= 0
        if not inside.any():
            return out

        found = simplex[inside]
        transform = triangulation.transform[found]
        delta = coords[inside] - transform[:, 2]
        partial = np.einsum("ijk,ik->ij", transform[:, :2], delta)
        barycentric = np.column_stack([partial, 1.0 - partial.sum(axis=1)])

        vertex_elevations = self._elevations[triangulation.simplices[found]]
        out[inside] = np.einsum("ij,ij->i", barycentric, vertex_elevations)
        return out
