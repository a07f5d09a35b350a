"""
Planar geometry primitives shared by the terrain and road generators.

Coordinates are plain floats in an unprojected, bounded 2D space.
"""

import math
from dataclasses import dataclass
from typing import Iterator, Optional, Tuple

from roadweave.core.errors import ConfigurationError

# Tolerance on the segment parameters when deciding whether lines meet on both segments
CROSS_EPSILON = 1e-9


@dataclass(frozen=True)
class Site:
    """
    An immutable 2D point.

    Attributes:
        x: X coordinate
        y: Y coordinate
    """

    x: float
    y: float

    def __iter__(self) -> Iterator[float]:
        """Allow tuple unpacking: ``x, y = site``."""
        yield self.x
        yield self.y

    def as_tuple(self) -> Tuple[float, float]:
        """Return the site as an ``(x, y)`` tuple."""
        return (self.x, self.y)

    def distance_to(self, other: "Site") -> float:
        """Euclidean distance to another site."""
        return math.hypot(other.x - self.x, other.y - self.y)

    def offset(self, angle: float, length: float) -> "Site":
        """
        Step from this site along a heading.

        Args:
            angle: Heading in radians, counter-clockwise from +x
            length: Step length

        Returns:
            The site ``length`` away along ``angle``
        """
        return Site(self.x + length * math.cos(angle), self.y + length * math.sin(angle))


@dataclass(frozen=True)
class Bounds:
    """
    Axis-aligned rectangle ``[min.x, max.x] x [min.y, max.y]``.

    Attributes:
        max: Upper corner
        min: Lower corner (defaults to the origin)
    """

    max: Site
    min: Site = Site(0.0, 0.0)

    def __post_init__(self) -> None:
        """Validate that both extents are positive and finite."""
        for name, value in (
            ("min.x", self.min.x),
            ("min.y", self.min.y),
            ("max.x", self.max.x),
            ("max.y", self.max.y),
        ):
            if not math.isfinite(value):
                raise ConfigurationError(
                    f"Bounds coordinate {name} must be finite", config_key="bounds", value=value
                )
        if self.max.x <= self.min.x or self.max.y <= self.min.y:
            raise ConfigurationError(
                "Bounds must have positive width and height",
                config_key="bounds",
                value=(self.min.as_tuple(), self.max.as_tuple()),
            )

    @property
    def width(self) -> float:
        """Horizontal extent."""
        return self.max.x - self.min.x

    @property
    def height(self) -> float:
        """Vertical extent."""
        return self.max.y - self.min.y

    @property
    def center(self) -> Site:
        """Center of the rectangle."""
        return Site(self.min.x + self.width / 2.0, self.min.y + self.height / 2.0)

    def contains(self, site: Site) -> bool:
        """Whether the site lies inside the rectangle (edges included)."""
        return self.min.x <= site.x <= self.max.x and self.min.y <= site.y <= self.max.y


def segment_cross(
    a_start: Site, a_end: Site, b_start: Site, b_end: Site
) -> Optional[Tuple[Site, bool]]:
    """
    Intersect the lines through two segments.

    Solves ``a_start + t * (a_end - a_start) = b_start + u * (b_end - b_start)``;
    the point lies on both segments when ``t`` and ``u`` are in ``[0, 1]``
    (widened by CROSS_EPSILON).

    Args:
        a_start: First segment start
        a_end: First segment end
        b_start: Second segment start
        b_end: Second segment end

    Returns:
        None when the lines are parallel, otherwise the intersection point of
        the two lines and whether it lies on both segments
    """
    dx_a = a_end.x - a_start.x
    dy_a = a_end.y - a_start.y
    dx_b = b_end.x - b_start.x
    dy_b = b_end.y - b_start.y

    denominator = dx_a * dy_b - dy_a * dx_b
    if denominator == 0.0:
        return None

    wx = b_start.x - a_start.x
    wy = b_start.y - a_start.y
    t = (wx * dy_b - wy * dx_b) / denominator
    u = (wx * dy_a - wy * dx_a) / denominator

    on_both = (
        -CROSS_EPSILON <= t <= 1.0 + CROSS_EPSILON
        and -CROSS_EPSILON <= u <= 1.0 + CROSS_EPSILON
    )

    return Site(a_start.x + t * dx_a, a_start.y + t * dy_a), on_both


def point_segment_distance(point: Site, seg_start: Site, seg_end: Site) -> float:
    """
    Shortest distance from a point to a closed segment.

    Args:
        point: Query point
        seg_start: Segment start
        seg_end: Segment end

    Returns:
        Euclidean distance
    """
    dx = seg_end.x - seg_start.x
    dy = seg_end.y - seg_start.y
    length_sq = dx * dx + dy * dy
    if length_sq == 0.0:
        return point.distance_to(seg_start)

    t = ((point.x - seg_start.x) * dx + (point.y - seg_start.y) * dy) / length_sq
    t = max(0.0, min(1.0, t))
    return math.hypot(point.x - (seg_start.x + t * dx), point.y - (seg_start.y + t * dy))
