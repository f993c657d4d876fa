"""Polygon boolean operations on plan rings, backed by shapely.

A polygon set is a list of rings; every ring is a list of ``(x, y)``
vertices, counter-clockwise, without the closing vertex. An empty list is
the explicit "empty result": degenerate inputs never raise here, callers
check for emptiness.
"""

from __future__ import annotations

from typing import Iterable, List, Sequence

from loguru import logger
from shapely.geometry import GeometryCollection, MultiPolygon, Polygon
from shapely.geometry.base import BaseGeometry
from shapely.ops import unary_union

from roofengine.contract import EPSILON_MM, MITRE_LIMIT
from roofengine.geometry.primitives import Vec2, normalize_orientation, remove_duplicate_points

Ring = List[Vec2]


def to_shapely(ring: Sequence[Vec2]) -> Polygon:
    """Build a shapely polygon from a ring, repairing it with buffer(0) when invalid."""
    if len(ring) < 3:
        return Polygon()
    poly = Polygon([(float(x), float(y)) for x, y in ring])
    if not poly.is_valid:
        repaired = poly.buffer(0)
        if isinstance(repaired, Polygon):
            return repaired
        if isinstance(repaired, MultiPolygon) and repaired.geoms:
            return max(repaired.geoms, key=lambda p: p.area)
        return Polygon()
    return poly


def set_to_shapely(rings: Iterable[Sequence[Vec2]]) -> BaseGeometry:
    """Union of a polygon set as one shapely geometry."""
    polys = [to_shapely(r) for r in rings]
    polys = [p for p in polys if not p.is_empty]
    if not polys:
        return Polygon()
    if len(polys) == 1:
        return polys[0]
    return unary_union(polys)


def polygons_of(geom: BaseGeometry) -> list[Polygon]:
    """Polygon parts of any shapely geometry, dropping lines and points."""
    if geom is None or geom.is_empty:
        return []
    if isinstance(geom, Polygon):
        return [geom]
    if isinstance(geom, (MultiPolygon, GeometryCollection)):
        parts: list[Polygon] = []
        for part in geom.geoms:
            parts.extend(polygons_of(part))
        return parts
    return []


def from_shapely(geom: BaseGeometry) -> list[Ring]:
    """Convert a shapely geometry back into CCW shell rings; interior rings are dropped."""
    rings: list[Ring] = []
    for poly in polygons_of(geom):
        if poly.area <= EPSILON_MM * EPSILON_MM:
            continue
        shell = remove_duplicate_points(list(poly.exterior.coords))
        if len(shell) >= 3:
            rings.append(normalize_orientation(shell))
    return rings


def offset(polygon: Sequence[Vec2], distance: float) -> list[Ring]:
    """Straight-line offset of a ring, outward for positive distance.

    Corners are mitred, so reflex vertices get a clean corner instead of a
    loop. Returns an empty list when an inward offset consumes the polygon.
    """
    base = to_shapely(polygon)
    if base.is_empty:
        return []
    if distance == 0.0:
        return from_shapely(base)
    shifted = base.buffer(distance, join_style="mitre", mitre_limit=MITRE_LIMIT)
    rings = from_shapely(shifted)
    if not rings:
        logger.debug(f"Offset by {distance:.1f} mm collapsed the polygon")
    return rings


def union(polygons: Iterable[Sequence[Vec2]]) -> list[Ring]:
    """Merge overlapping or touching rings; disjoint parts stay separate rings."""
    return from_shapely(set_to_shapely(polygons))


def intersection(a: Iterable[Sequence[Vec2]], b: Iterable[Sequence[Vec2]]) -> list[Ring]:
    """Intersection of two polygon sets."""
    ga = set_to_shapely(a)
    gb = set_to_shapely(b)
    if ga.is_empty or gb.is_empty:
        return []
    return from_shapely(ga.intersection(gb))


def difference(a: Iterable[Sequence[Vec2]], b: Iterable[Sequence[Vec2]]) -> list[Ring]:
    """Part of set ``a`` not covered by set ``b``."""
    ga = set_to_shapely(a)
    gb = set_to_shapely(b)
    if ga.is_empty:
        return []
    if gb.is_empty:
        return from_shapely(ga)
    return from_shapely(ga.difference(gb))


def close_gaps(polygons: Iterable[Sequence[Vec2]], distance: float) -> BaseGeometry:
    """Morphological closing: grow every ring by ``distance``, union, shrink back.

    Gaps up to ``2 * distance`` between the inputs are bridged. Returns the
    shapely geometry so callers can inspect interior rings.
    """
    polys = [to_shapely(r) for r in polygons]
    polys = [p for p in polys if not p.is_empty]
    if not polys:
        return Polygon()
    unioned = unary_union(polys)
    if distance <= 0.0:
        return unioned
    grown = unary_union([p.buffer(distance, join_style="mitre", mitre_limit=MITRE_LIMIT) for p in polys])
    closed = grown.buffer(-distance, join_style="mitre", mitre_limit=MITRE_LIMIT)
    # the closing never loses input area; guard against mitre rounding
    return unary_union([closed, unioned])


def total_area(rings: Iterable[Sequence[Vec2]]) -> float:
    """Area covered by a polygon set (overlaps counted once)."""
    geom = set_to_shapely(rings)
    return 0.0 if geom.is_empty else float(geom.area)


def touches_or_overlaps(a: Sequence[Vec2], b: Sequence[Vec2], tolerance: float = EPSILON_MM) -> bool:
    """True when two rings share area or touch within the tolerance."""
    pa = to_shapely(a)
    pb = to_shapely(b)
    if pa.is_empty or pb.is_empty:
        return False
    return pa.distance(pb) <= tolerance
