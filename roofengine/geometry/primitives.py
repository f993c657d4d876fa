"""
Plan-view geometry primitives.

Points are plain ``(x, y)`` tuples in millimetres. The convention is fixed
once for the whole package: x to the right, y up, and a ring with positive
signed area runs counter-clockwise. Every tolerance comes from
``roofengine.contract``.
"""

from __future__ import annotations

import math
from enum import Enum
from typing import NamedTuple, Sequence, Tuple

from roofengine.contract import EPSILON_MM, PARALLEL_TOLERANCE

Vec2 = Tuple[float, float]


class PointLocation(str, Enum):
    INSIDE = "inside"
    OUTSIDE = "outside"
    BOUNDARY = "boundary"


class Overlap(NamedTuple):
    """Shared stretch of two collinear segments."""
    start: Vec2
    end: Vec2


def add(a: Vec2, b: Vec2) -> Vec2:
    return (a[0] + b[0], a[1] + b[1])


def sub(a: Vec2, b: Vec2) -> Vec2:
    return (a[0] - b[0], a[1] - b[1])


def scale(v: Vec2, s: float) -> Vec2:
    return (v[0] * s, v[1] * s)


def dot(a: Vec2, b: Vec2) -> float:
    return a[0] * b[0] + a[1] * b[1]


def cross(a: Vec2, b: Vec2) -> float:
    """z component of the 3D cross product; positive when b turns left of a."""
    return a[0] * b[1] - a[1] * b[0]


def length(v: Vec2) -> float:
    return math.hypot(v[0], v[1])


def distance(a: Vec2, b: Vec2) -> float:
    return math.hypot(a[0] - b[0], a[1] - b[1])


def normalize(v: Vec2) -> Vec2:
    ln = length(v)
    if ln < 1e-12:
        return (0.0, 0.0)
    return (v[0] / ln, v[1] / ln)


def perp_left(v: Vec2) -> Vec2:
    """90-degree counterclockwise rotation (the inward normal of a CCW edge)."""
    return (-v[1], v[0])


def angle_of(v: Vec2) -> float:
    """Direction angle in radians, in (-pi, pi]."""
    return math.atan2(v[1], v[0])


def points_equal(a: Vec2, b: Vec2, tolerance: float = EPSILON_MM) -> bool:
    return distance(a, b) <= tolerance


def signed_area(ring: Sequence[Vec2]) -> float:
    """Shoelace area; positive for counter-clockwise rings."""
    n = len(ring)
    if n < 3:
        return 0.0
    total = 0.0
    for i in range(n):
        x1, y1 = ring[i]
        x2, y2 = ring[(i + 1) % n]
        total += x1 * y2 - x2 * y1
    return total / 2.0


def orientation(ring: Sequence[Vec2]) -> int:
    """1 for counter-clockwise, -1 for clockwise, 0 for degenerate rings."""
    area = signed_area(ring)
    if abs(area) <= EPSILON_MM * EPSILON_MM:
        return 0
    return 1 if area > 0 else -1


def normalize_orientation(ring: Sequence[Vec2]) -> list[Vec2]:
    """Return the ring counter-clockwise, keeping the first vertex in place."""
    pts = [(float(x), float(y)) for x, y in ring]
    if signed_area(pts) < 0:
        return [pts[0]] + pts[:0:-1]
    return pts


def remove_duplicate_points(ring: Sequence[Vec2], tolerance: float = EPSILON_MM) -> list[Vec2]:
    """Drop consecutive repeated vertices and a closing vertex equal to the first."""
    cleaned: list[Vec2] = []
    for pt in ring:
        p = (float(pt[0]), float(pt[1]))
        if cleaned and points_equal(cleaned[-1], p, tolerance):
            continue
        cleaned.append(p)
    while len(cleaned) > 1 and points_equal(cleaned[0], cleaned[-1], tolerance):
        cleaned.pop()
    return cleaned


def bounding_box(points: Sequence[Vec2]) -> tuple[float, float, float, float]:
    xs = [p[0] for p in points]
    ys = [p[1] for p in points]
    return min(xs), min(ys), max(xs), max(ys)


def line_intersection(p1: Vec2, d1: Vec2, p2: Vec2, d2: Vec2) -> Vec2 | None:
    """Intersection of the infinite lines ``p1 + s*d1`` and ``p2 + u*d2``."""
    denom = cross(d1, d2)
    if abs(denom) <= PARALLEL_TOLERANCE * length(d1) * length(d2):
        return None
    s = cross(sub(p2, p1), d2) / denom
    return (p1[0] + s * d1[0], p1[1] + s * d1[1])


def point_segment_distance(p: Vec2, a: Vec2, b: Vec2) -> float:
    ab = sub(b, a)
    ln2 = dot(ab, ab)
    if ln2 <= 0.0:
        return distance(p, a)
    t = max(0.0, min(1.0, dot(sub(p, a), ab) / ln2))
    return distance(p, (a[0] + t * ab[0], a[1] + t * ab[1]))


def segment_intersection(p1: Vec2, p2: Vec2, q1: Vec2, q2: Vec2) -> Vec2 | Overlap | None:
    """Intersect two closed segments.

    Returns None when they are disjoint, the intersection point when they
    cross or touch at a single point, or an ``Overlap`` for collinear
    segments sharing a stretch longer than the tolerance.
    """
    r = sub(p2, p1)
    s = sub(q2, q1)
    denom = cross(r, s)
    qp = sub(q1, p1)
    r_len = length(r)
    s_len = length(s)

    if abs(denom) <= PARALLEL_TOLERANCE * max(r_len * s_len, 1.0):
        # parallel; only collinear segments can meet
        if r_len == 0.0:
            return p1 if point_segment_distance(p1, q1, q2) <= EPSILON_MM else None
        if abs(cross(qp, r)) / r_len > EPSILON_MM:
            return None
        rr = dot(r, r)
        t0 = dot(qp, r) / rr
        t1 = t0 + dot(s, r) / rr
        lo, hi = max(0.0, min(t0, t1)), min(1.0, max(t0, t1))
        if (hi - lo) * r_len < -EPSILON_MM:
            return None
        start = (p1[0] + lo * r[0], p1[1] + lo * r[1])
        end = (p1[0] + hi * r[0], p1[1] + hi * r[1])
        if distance(start, end) <= EPSILON_MM:
            return start
        return Overlap(start, end)

    t = cross(qp, s) / denom
    u = cross(qp, r) / denom
    tol_t = EPSILON_MM / r_len if r_len else 0.0
    tol_u = EPSILON_MM / s_len if s_len else 0.0
    if -tol_t <= t <= 1.0 + tol_t and -tol_u <= u <= 1.0 + tol_u:
        return (p1[0] + t * r[0], p1[1] + t * r[1])
    return None


def classify_point(p: Vec2, ring: Sequence[Vec2]) -> PointLocation:
    """Locate a point against a ring; points on an edge are BOUNDARY."""
    n = len(ring)
    for i in range(n):
        if point_segment_distance(p, ring[i], ring[(i + 1) % n]) <= EPSILON_MM:
            return PointLocation.BOUNDARY

    inside = False
    x, y = p
    j = n - 1
    for i in range(n):
        xi, yi = ring[i]
        xj, yj = ring[j]
        if (yi > y) != (yj > y):
            x_cross = (xj - xi) * (y - yi) / (yj - yi) + xi
            if x < x_cross:
                inside = not inside
        j = i
    return PointLocation.INSIDE if inside else PointLocation.OUTSIDE


def is_simple(ring: Sequence[Vec2]) -> bool:
    """True when no two non-adjacent edges meet and adjacent edges share only their vertex."""
    n = len(ring)
    if n < 3:
        return False
    for i in range(n):
        a1, a2 = ring[i], ring[(i + 1) % n]
        for j in range(i + 1, n):
            b1, b2 = ring[j], ring[(j + 1) % n]
            hit = segment_intersection(a1, a2, b1, b2)
            if hit is None:
                continue
            adjacent = j == i + 1 or (i == 0 and j == n - 1)
            if not adjacent or isinstance(hit, Overlap):
                return False
    return True
