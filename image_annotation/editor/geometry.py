"""
Polygon validity checks.

A polygon annotation is valid when it has at least four stored points, its
ring is closed (first point equals last point exactly) and no two
non-adjacent edges cross. Edge i runs from point i to point i + 1.

The crossing test only reports proper crossings. Collinear overlaps and
edges that merely touch are not reported; polygons with such edges pass.
"""

from typing import Sequence

from PySide6.QtCore import QPointF

MIN_POLYGON_POINTS = 4


def points_equal(a: QPointF, b: QPointF) -> bool:
    """Exact coordinate equality (QPointF.__eq__ is fuzzy)."""
    return a.x() == b.x() and a.y() == b.y()


def _cross(ox: float, oy: float, ax: float, ay: float, bx: float, by: float) -> float:
    """Z component of (a - o) x (b - o)."""
    return (ax - ox) * (by - oy) - (ay - oy) * (bx - ox)


def segments_cross(a: QPointF, b: QPointF, c: QPointF, d: QPointF) -> bool:
    """
    Test whether segments A-B and C-D properly cross.

    Each segment's endpoints must lie strictly on opposite sides of the
    other segment's supporting line.
    """
    d1 = _cross(a.x(), a.y(), b.x(), b.y(), c.x(), c.y())
    d2 = _cross(a.x(), a.y(), b.x(), b.y(), d.x(), d.y())
    d3 = _cross(c.x(), c.y(), d.x(), d.y(), a.x(), a.y())
    d4 = _cross(c.x(), c.y(), d.x(), d.y(), b.x(), b.y())
    return d1 * d2 < 0 and d3 * d4 < 0


def is_ring_closed(points: Sequence[QPointF]) -> bool:
    if not points:
        return False
    return points_equal(points[0], points[-1])


def has_self_intersections(points: Sequence[QPointF]) -> bool:
    """Return True if any two edges at least two indices apart cross."""
    edge_count = len(points) - 1
    for i in range(edge_count - 1):
        for j in range(i + 2, edge_count):
            if segments_cross(points[i], points[i + 1], points[j], points[j + 1]):
                return True
    return False


def is_valid_polygon(points: Sequence[QPointF]) -> bool:
    """Check point count, ring closure and self-intersection in that order."""
    if len(points) < MIN_POLYGON_POINTS:
        return False
    if not is_ring_closed(points):
        return False
    return not has_self_intersections(points)
