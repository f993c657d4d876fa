"""
Roof Result Validation

Runtime checks of a solved roof: faces must partition the eave polygon and
every coordinate must be finite and lie inside the eave bounds.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Any, Iterable, Sequence

from loguru import logger
from shapely.geometry import Polygon
from shapely.ops import unary_union

from roofengine.contract import AREA_TOLERANCE_RATIO, BOUNDS_MARGIN_MM, EPSILON_MM, MIN_FACE_AREA_MM2
from roofengine.geometry.polygon_ops import set_to_shapely, to_shapely
from roofengine.geometry.primitives import Vec2, bounding_box
from roofengine.models import RoofResult


@dataclass
class RoofValidationResult:
    """Result of roof validation."""

    is_valid: bool
    warnings: list[str] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)
    statistics: dict[str, Any] = field(default_factory=dict)

    def has_critical_issues(self) -> bool:
        return len(self.errors) > 0


def area_tolerance(area: float, ratio: float = AREA_TOLERANCE_RATIO) -> float:
    return max(area * ratio, MIN_FACE_AREA_MM2)


def check_partition(
    faces: Iterable[Sequence[Vec2]],
    eave_polygons: Iterable[Sequence[Vec2]],
    tolerance_ratio: float = AREA_TOLERANCE_RATIO,
) -> RoofValidationResult:
    """Check that ``faces`` tile the eave polygons: no gaps, no overlaps.

    The union of the faces must cover the eaves and the face areas
    must add up to it, which rules out overlaps.
    """
    eave = set_to_shapely(eave_polygons)
    polys = [to_shapely(f) for f in faces]
    polys = [p for p in polys if not p.is_empty]

    eave_area = float(eave.area)
    sum_area = float(sum(p.area for p in polys))
    covered = unary_union(polys) if polys else Polygon()
    union_area = float(covered.area)
    gap_area = float(eave.difference(covered).area) if not covered.is_empty else eave_area
    outside_area = float(covered.difference(eave).area) if not covered.is_empty else 0.0

    tolerance = area_tolerance(eave_area, tolerance_ratio)
    errors: list[str] = []
    if abs(sum_area - union_area) > tolerance:
        errors.append(f"Faces overlap by {sum_area - union_area:.3f} mm²")
    if gap_area > tolerance:
        errors.append(f"Faces leave {gap_area:.3f} mm² of the eave polygon uncovered")
    if outside_area > tolerance:
        errors.append(f"Faces extend {outside_area:.3f} mm² beyond the eave polygon")

    return RoofValidationResult(
        is_valid=not errors,
        errors=errors,
        statistics={
            "eave_area": eave_area,
            "face_area_sum": sum_area,
            "face_union_area": union_area,
            "gap_area": gap_area,
            "outside_area": outside_area,
            "face_count": len(polys),
        },
    )


def validate_roof_result(
    result: RoofResult,
    eave_polygons: Sequence[Sequence[Vec2]],
    *,
    margin: float = BOUNDS_MARGIN_MM,
    min_height: float | None = None,
    check_faces: bool = True,
) -> RoofValidationResult:
    """
    Validate a solved roof against the eave polygons it was built from.

    Checks:
    - every segment coordinate is finite
    - every segment lies inside the eave bounding box grown by ``margin``
    - no segment dips below ``min_height``
    - the faces partition the eave polygons

    Args:
        result: Solved roof
        eave_polygons: Eave rings the roof covers
        margin: Safety margin around the eave bounding box (mm)
        min_height: Lowest admissible z, usually the lowest baseline
        check_faces: Whether to run the partition check

    Returns:
        RoofValidationResult with validation status
    """
    errors: list[str] = []
    warnings: list[str] = []
    stats: dict[str, Any] = {}

    points = [p for ring in eave_polygons for p in ring]
    if points:
        min_x, min_y, max_x, max_y = bounding_box(points)
        min_x, min_y, max_x, max_y = min_x - margin, min_y - margin, max_x + margin, max_y + margin
    else:
        min_x = min_y = -math.inf
        max_x = max_y = math.inf

    segment_count = 0
    for kind, segments in result.segments().items():
        for index, seg in enumerate(segments):
            segment_count += 1
            for pt in (seg.start, seg.end):
                if not all(math.isfinite(v) for v in (pt.x, pt.y, pt.z)):
                    errors.append(f"{kind}[{index}] has a non-finite coordinate")
                    continue
                if not (min_x <= pt.x <= max_x and min_y <= pt.y <= max_y):
                    errors.append(f"{kind}[{index}] leaves the eave bounds at ({pt.x:.1f}, {pt.y:.1f})")
                if min_height is not None and pt.z < min_height - EPSILON_MM:
                    errors.append(f"{kind}[{index}] dips below the eave at z={pt.z:.1f}")
    stats["segment_count"] = segment_count
    if not result.faces:
        warnings.append("Roof has no faces")

    if check_faces and eave_polygons:
        face_rings = [[(p.x, p.y) for p in f.polygon] for f in result.faces]
        partition = check_partition(face_rings, eave_polygons)
        errors.extend(partition.errors)
        stats.update(partition.statistics)

    if errors:
        logger.warning(f"Roof validation failed with {len(errors)} error(s): {errors[0]}")

    return RoofValidationResult(
        is_valid=not errors,
        warnings=warnings,
        errors=errors,
        statistics=stats,
    )
