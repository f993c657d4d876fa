"""Footprint preparation: coercion, validation, simplification and eave offset.

A prepared footprint is a simple counter-clockwise ring with one fully
resolved ``EdgeDirective`` per edge; edge ``i`` runs from vertex ``i`` to
vertex ``i + 1``.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any, List, Mapping, Optional, Sequence

from loguru import logger
from pydantic import ValidationError

from roofengine.contract import (
    DEFAULT_PITCH_DEG,
    DEFAULT_PLATE_HEIGHT_MM,
    EPSILON_MM,
    MAX_PITCH_DEG,
)
from roofengine.exceptions import DegenerateOffset, InvalidDirective, InvalidFootprint
from roofengine.geometry.primitives import (
    Vec2,
    add,
    cross,
    distance,
    dot,
    is_simple,
    line_intersection,
    normalize,
    orientation,
    perp_left,
    point_segment_distance,
    points_equal,
    scale,
    signed_area,
    sub,
)
from roofengine.models import EdgeDirective, Point2, RoofBehavior


@dataclass
class PreparedFootprint:
    points: List[Vec2]
    directives: List[EdgeDirective]
    reversed: bool = False

    @property
    def edge_count(self) -> int:
        return len(self.points)

    def edge(self, index: int) -> tuple[Vec2, Vec2]:
        return self.points[index], self.points[(index + 1) % len(self.points)]


@dataclass
class EavePolygon:
    """Overhang-offset ring of a prepared footprint.

    Eave edge ``i`` carries ``directives[i]`` and lies on the offset line of
    footprint edge ``sources[i]``.
    """
    points: List[Vec2]
    directives: List[EdgeDirective]
    sources: List[int]


def coerce_point(value: Any) -> Vec2:
    """Accept ``Point2``, ``{"x", "y"}`` mappings or ``(x, y)`` pairs."""
    try:
        if isinstance(value, Point2):
            x, y = value.x, value.y
        elif isinstance(value, Mapping):
            x, y = value["x"], value["y"]
        else:
            x, y = value[0], value[1]
        pt = (float(x), float(y))
    except (KeyError, IndexError, TypeError, ValueError) as exc:
        raise InvalidFootprint(f"Invalid footprint point: {value!r}", {"point": repr(value)}) from exc
    if not (math.isfinite(pt[0]) and math.isfinite(pt[1])):
        raise InvalidFootprint(f"Non-finite footprint point: {value!r}", {"point": repr(value)})
    return pt


def coerce_directive(value: Any) -> EdgeDirective:
    if isinstance(value, EdgeDirective):
        return value
    try:
        return EdgeDirective.model_validate(value)
    except ValidationError as exc:
        raise InvalidDirective(f"Invalid edge directive: {exc.errors()[0]['msg']}", {"directive": repr(value)}) from exc


def resolve_directive(
    directive: EdgeDirective,
    *,
    default_pitch: float,
    plate_height: float,
) -> EdgeDirective:
    """Fill pitch and baseline height from the solve defaults and range-check the pitch."""
    pitch = directive.pitch if directive.pitch is not None else default_pitch
    if not math.isfinite(pitch) or pitch < 0.0 or pitch >= MAX_PITCH_DEG:
        raise InvalidDirective(
            f"Pitch {pitch} outside [0, {MAX_PITCH_DEG})",
            {"pitch": str(pitch)},
        )
    baseline = directive.baseline_height if directive.baseline_height is not None else plate_height
    if not math.isfinite(baseline):
        raise InvalidDirective(f"Non-finite baseline height {baseline}", {"baseline_height": str(baseline)})
    return directive.model_copy(update={"pitch": float(pitch), "baseline_height": float(baseline)})


def _drop_zero_length_edges(points: List[Vec2], directives: List[EdgeDirective]) -> tuple[List[Vec2], List[EdgeDirective]]:
    n = len(points)
    keep = [i for i in range(n) if not points_equal(points[i], points[(i + 1) % n])]
    return [points[i] for i in keep], [directives[i] for i in keep]


def simplify_footprint(
    points: Sequence[Vec2],
    directives: Sequence[EdgeDirective],
    min_edge_length: float = 0.0,
) -> tuple[List[Vec2], List[EdgeDirective]]:
    """Merge short edges and drop collinear vertices.

    An edge shorter than ``min_edge_length`` collapses to its midpoint and
    its directive is dropped. A collinear vertex is removed only when the two
    edges meeting there carry equal directives, so behaviour boundaries
    survive. Directives follow their surviving edges.
    """
    pts = list(points)
    dirs = list(directives)

    changed = True
    while changed and len(pts) > 3:
        changed = False
        n = len(pts)

        if min_edge_length > 0.0:
            for i in range(n):
                j = (i + 1) % n
                if distance(pts[i], pts[j]) < min_edge_length:
                    mid = ((pts[i][0] + pts[j][0]) / 2.0, (pts[i][1] + pts[j][1]) / 2.0)
                    logger.debug(f"Merging short edge {i} ({distance(pts[i], pts[j]):.1f} mm)")
                    pts[i] = mid
                    del pts[j]
                    del dirs[i]
                    if j == 0:
                        # the merged vertex moved to the end of the ring
                        pts.insert(0, pts.pop())
                    changed = True
                    break
            if changed:
                continue

        for i in range(n):
            prev_pt = pts[i - 1]
            nxt = pts[(i + 1) % n]
            if dirs[i - 1] != dirs[i]:
                continue
            if dot(sub(pts[i], prev_pt), sub(nxt, pts[i])) <= 0.0:
                continue
            if point_segment_distance(pts[i], prev_pt, nxt) <= EPSILON_MM:
                del pts[i]
                del dirs[i]
                changed = True
                break

    return pts, dirs


def prepare_footprint(
    points: Sequence[Any],
    directives: Optional[Sequence[Any]] = None,
    *,
    default_pitch: float = DEFAULT_PITCH_DEG,
    plate_height: float = DEFAULT_PLATE_HEIGHT_MM,
    min_edge_length: float = 0.0,
    require_hip: bool = True,
) -> PreparedFootprint:
    """Validate a footprint and its directives and normalize it to counter-clockwise.

    Raises:
        InvalidFootprint: fewer than 3 distinct points, zero area or self-intersection.
        InvalidDirective: directive count mismatch, pitch out of range, mixed
            baseline heights or no hip edge.
    """
    try:
        raw_points = list(points)
    except TypeError as exc:
        raise InvalidFootprint(
            f"Footprint must be a sequence of points, got {type(points).__name__}",
            {"footprint": repr(points)},
        ) from exc
    pts = [coerce_point(p) for p in raw_points]
    if len(pts) > 3 and points_equal(pts[0], pts[-1]):
        pts = pts[:-1]
    if len(pts) < 3:
        raise InvalidFootprint(f"Footprint needs at least 3 points, got {len(pts)}", {"points": str(len(pts))})

    if directives is None:
        dirs = [EdgeDirective() for _ in pts]
    else:
        try:
            raw_directives = list(directives)
        except TypeError as exc:
            raise InvalidDirective(
                f"Edge directives must be a sequence, got {type(directives).__name__}",
                {"directives": repr(directives)},
            ) from exc
        dirs = [coerce_directive(d) for d in raw_directives]
        if len(dirs) != len(pts):
            raise InvalidDirective(
                f"Got {len(dirs)} edge directives for {len(pts)} edges",
                {"directives": str(len(dirs)), "edges": str(len(pts))},
            )
    dirs = [resolve_directive(d, default_pitch=default_pitch, plate_height=plate_height) for d in dirs]
    baselines = [d.baseline_height for d in dirs]
    if max(baselines) - min(baselines) > EPSILON_MM:
        raise InvalidDirective(
            "Edges of one footprint must share a baseline height",
            {"min_baseline": f"{min(baselines):.1f}", "max_baseline": f"{max(baselines):.1f}"},
        )

    pts, dirs = _drop_zero_length_edges(pts, dirs)
    if len(pts) < 3:
        raise InvalidFootprint("Footprint has fewer than 3 distinct points", {"points": str(len(pts))})

    pts, dirs = simplify_footprint(pts, dirs, min_edge_length)

    if orientation(pts) == 0:
        raise InvalidFootprint("Footprint has zero area", {"area": f"{signed_area(pts):.6f}"})
    if not is_simple(pts):
        raise InvalidFootprint("Footprint is self-intersecting")

    flipped = signed_area(pts) < 0
    if flipped:
        n = len(pts)
        pts = [pts[0]] + pts[:0:-1]
        dirs = [dirs[n - 1 - k] for k in range(n)]

    if require_hip and not any(d.behavior == RoofBehavior.HIP for d in dirs):
        raise InvalidDirective("Footprint needs at least one hip edge")

    return PreparedFootprint(points=pts, directives=dirs, reversed=flipped)


def edge_overhangs(
    directives: Sequence[EdgeDirective],
    overhang: float,
    gable_overhang: Optional[float] = None,
) -> List[float]:
    """Horizontal offset per edge: directive override, then gable overhang, then the eave overhang."""
    distances = []
    for d in directives:
        if d.overhang is not None:
            distances.append(float(d.overhang))
        elif d.behavior == RoofBehavior.GABLE and gable_overhang is not None:
            distances.append(float(gable_overhang))
        else:
            distances.append(float(overhang))
    return distances


def _offset_corners(
    active: Sequence[int],
    dirs: Sequence[Vec2],
    starts: Sequence[Vec2],
    ends: Sequence[Vec2],
    directives: Sequence[EdgeDirective],
) -> tuple[List[Vec2], set[int]]:
    """Corner ``k`` joins the offset lines of ``active[k - 1]`` and ``active[k]``.

    Returns the corners, or the edges to drop when two neighbouring lines
    are parallel: facing lines that closed a recess both go, a coincident
    continuation with the same directive merges into its predecessor.
    """
    corners: List[Vec2] = []
    for pos, j in enumerate(active):
        i = active[pos - 1]
        hit = line_intersection(starts[i], dirs[i], starts[j], dirs[j])
        if hit is None:
            if dot(dirs[i], dirs[j]) < 0.0:
                return corners, {i, j}
            coincident = abs(cross(dirs[i], sub(starts[j], starts[i]))) <= EPSILON_MM
            if coincident and directives[i] == directives[j]:
                return corners, {j}
            hit = ((ends[i][0] + starts[j][0]) / 2.0, (ends[i][1] + starts[j][1]) / 2.0)
        corners.append(hit)
    return corners, set()


def offset_eave_polygon(
    footprint: Sequence[Vec2],
    directives: Sequence[EdgeDirective],
    overhang: float,
    gable_overhang: Optional[float] = None,
) -> EavePolygon:
    """Move every edge outward by its overhang.

    An edge the offset turns around (a recess narrower than twice the
    overhang) is eliminated and its neighbours are re-intersected, until no
    edge is reversed. Surviving edges keep their directives, which a generic
    buffer cannot guarantee at sharp corners.

    Raises:
        DegenerateOffset: fewer than 3 edges survive, or the ring flips,
            loses its area or self-intersects.
    """
    n = len(footprint)
    distances = edge_overhangs(directives, overhang, gable_overhang)
    if all(d == 0.0 for d in distances):
        return EavePolygon(points=list(footprint), directives=list(directives), sources=list(range(n)))

    dirs = [normalize(sub(footprint[(i + 1) % n], footprint[i])) for i in range(n)]
    # outward normal of a CCW edge
    outward = [scale(perp_left(d), -1.0) for d in dirs]
    starts = [add(footprint[i], scale(outward[i], distances[i])) for i in range(n)]
    ends = [add(footprint[(i + 1) % n], scale(outward[i], distances[i])) for i in range(n)]

    active = list(range(n))
    while True:
        if len(active) < 3:
            raise DegenerateOffset(
                "Overhang offset collapsed the footprint",
                {"surviving_edges": str(len(active)), "overhang": f"{max(distances):.1f}"},
            )
        corners, dropped = _offset_corners(active, dirs, starts, ends, directives)
        if dropped:
            active = [k for k in active if k not in dropped]
            continue

        m = len(active)
        worst: Optional[int] = None
        worst_length = 0.0
        for pos in range(m):
            length = dot(sub(corners[(pos + 1) % m], corners[pos]), dirs[active[pos]])
            if length <= EPSILON_MM and (worst is None or length < worst_length):
                worst, worst_length = pos, length
        if worst is None:
            break
        logger.debug(f"Overhang offset reverses edge {active[worst]} ({worst_length:.1f} mm); eliminating it")
        del active[worst]

    if orientation(corners) != 1:
        raise DegenerateOffset("Overhang offset collapsed the footprint", {"area": f"{signed_area(corners):.3f}"})
    if not is_simple(corners):
        raise DegenerateOffset("Overhang offset is self-intersecting")
    if len(active) < n:
        logger.info(f"Overhang offset closed {n - len(active)} of {n} footprint edges")
    return EavePolygon(points=corners, directives=[directives[k] for k in active], sources=list(active))
