"""
Multi-footprint roof merge.

Wings whose overhang-offset eave polygons touch or overlap are roofed as
one piece: their footprints are merged, the merged edges inherit the
directive of the nearest original edge, and one skeleton solve covers the
whole component. Every other wing is solved on its own, as are meeting
wings at different plate heights. One component's failure never aborts
the others.
"""

from __future__ import annotations

from concurrent.futures import ProcessPoolExecutor
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

from loguru import logger
from pydantic import ValidationError

from roofengine.assembly.builder import RoofBuilder, failure_from, solve_options
from roofengine.contract import (
    DEFAULT_OVERHANG_MM,
    DEFAULT_PITCH_DEG,
    DEFAULT_PLATE_HEIGHT_MM,
    EPSILON_MM,
    EVENT_BUDGET_FACTOR,
    PARALLEL_TOLERANCE,
)
from roofengine.exceptions import ConfigurationError, InvalidDirective, InvalidFootprint, RoofEngineError
from roofengine.geometry import polygon_ops
from roofengine.geometry.footprint import edge_overhangs, offset_eave_polygon
from roofengine.geometry.primitives import Vec2, bounding_box, cross, dot, normalize, point_segment_distance, sub
from roofengine.models import (
    ComponentReport,
    EdgeDirective,
    MultiRoofResult,
    RoofFailure,
    RoofResult,
    RoomDescriptor,
)

# added to the distance of a non-parallel candidate edge
_NON_PARALLEL_PENALTY = 1e9


@dataclass
class Wing:
    """A roofed room after footprint preparation."""
    index: int
    points: List[Vec2]
    directives: List[EdgeDirective]
    eave: List[Vec2]


@dataclass
class ComponentJob:
    """Independent unit of work: one or more rings solved for a group of wings."""
    wing_indices: List[int]
    pieces: List[Tuple[List[Vec2], List[EdgeDirective]]] = field(default_factory=list)
    merged: bool = False


def find_roof_components(eaves: Sequence[Sequence[Vec2]], tolerance: float = EPSILON_MM) -> List[List[int]]:
    """Group eave polygons that touch or overlap (transitively).

    Returns lists of positions into ``eaves``, each sorted, ordered by their
    first member.
    """
    parent = list(range(len(eaves)))

    def find(i: int) -> int:
        while parent[i] != i:
            parent[i] = parent[parent[i]]
            i = parent[i]
        return i

    boxes = [bounding_box(e) for e in eaves]
    for i in range(len(eaves)):
        for j in range(i + 1, len(eaves)):
            ax0, ay0, ax1, ay1 = boxes[i]
            bx0, by0, bx1, by1 = boxes[j]
            if ax0 > bx1 + tolerance or bx0 > ax1 + tolerance or ay0 > by1 + tolerance or by0 > ay1 + tolerance:
                continue
            if polygon_ops.touches_or_overlaps(eaves[i], eaves[j], tolerance):
                parent[find(j)] = find(i)

    groups: Dict[int, List[int]] = {}
    for i in range(len(eaves)):
        groups.setdefault(find(i), []).append(i)
    return sorted(groups.values(), key=lambda g: g[0])


def nearest_directive(a: Vec2, b: Vec2, wings: Sequence[Wing]) -> EdgeDirective:
    """Directive of the original edge closest to the merged edge ``a -> b``.

    Parallel, same-direction edges win over closer edges at an angle.
    """
    mid = ((a[0] + b[0]) / 2.0, (a[1] + b[1]) / 2.0)
    direction = normalize(sub(b, a))
    best: Optional[EdgeDirective] = None
    best_score = float("inf")
    for wing in wings:
        n = len(wing.points)
        for i in range(n):
            p, q = wing.points[i], wing.points[(i + 1) % n]
            score = point_segment_distance(mid, p, q)
            d = normalize(sub(q, p))
            if abs(cross(direction, d)) > 1e3 * PARALLEL_TOLERANCE or dot(direction, d) <= 0.0:
                score += _NON_PARALLEL_PENALTY
            if score < best_score:
                best_score = score
                best = wing.directives[i]
    if best is None:
        return EdgeDirective()
    return best


def merge_component_footprint(wings: Sequence[Wing], reach: float) -> Optional[List[Tuple[List[Vec2], List[EdgeDirective]]]]:
    """Merge the footprints of one component into rings with directives.

    Gaps of up to twice ``reach`` are bridged. A result with several
    rings yields one piece per ring. Returns None when the merged footprint
    encloses a courtyard, which a single roof cannot cover.
    """
    merged = polygon_ops.close_gaps([w.points for w in wings], reach)
    if any(len(p.interiors) > 0 for p in polygon_ops.polygons_of(merged)):
        return None
    pieces = []
    for ring in polygon_ops.from_shapely(merged):
        n = len(ring)
        directives = [nearest_directive(ring[i], ring[(i + 1) % n], wings) for i in range(n)]
        pieces.append((ring, directives))
    return pieces


def _solve_job(job: ComponentJob, options: Dict[str, Any]) -> RoofResult | RoofFailure:
    builder = RoofBuilder(**options)
    results = []
    try:
        for ring, directives in job.pieces:
            results.append(builder.build(ring, directives))
    except RoofEngineError as exc:
        logger.warning(f"Roof component {job.wing_indices} failed ({type(exc).__name__}): {exc.message}")
        return failure_from(exc, job.wing_indices)
    return RoofResult.concat(results)


def _coerce_room(room: Any) -> RoomDescriptor:
    if isinstance(room, RoomDescriptor):
        return room
    try:
        return RoomDescriptor.model_validate(room)
    except ValidationError as exc:
        locations = {str(err["loc"][0]) for err in exc.errors() if err["loc"]}
        message = f"Invalid room descriptor: {exc.errors()[0]['msg']}"
        if locations & {"edge_directives", "edgeDirectives"}:
            raise InvalidDirective(message) from exc
        raise InvalidFootprint(message) from exc


def _room_list(rooms: Any) -> List[Any]:
    if isinstance(rooms, (str, bytes, Mapping)):
        raise InvalidFootprint(f"Rooms must be a list of room descriptors, got {type(rooms).__name__}")
    try:
        return list(rooms)
    except TypeError as exc:
        raise InvalidFootprint(f"Rooms must be a list of room descriptors, got {type(rooms).__name__}") from exc


class RoofMergeOrchestrator:
    """Solves a list of rooms, merging wings whose eaves meet."""

    def __init__(
        self,
        *,
        default_pitch: float = DEFAULT_PITCH_DEG,
        overhang: float = DEFAULT_OVERHANG_MM,
        gable_overhang: Optional[float] = None,
        plate_height: float = DEFAULT_PLATE_HEIGHT_MM,
        min_edge_length: float = 0.0,
        event_budget_factor: int = EVENT_BUDGET_FACTOR,
        max_workers: Optional[int] = None,
    ):
        opts = solve_options(
            default_pitch=default_pitch,
            overhang=overhang,
            gable_overhang=gable_overhang,
            plate_height=plate_height,
            min_edge_length=min_edge_length,
            event_budget_factor=event_budget_factor,
        )
        if max_workers is not None and (not isinstance(max_workers, int) or max_workers < 1):
            raise ConfigurationError(
                f"Invalid solve option max_workers: {max_workers!r}",
                {"option": "max_workers", "value": repr(max_workers)},
            )
        self.options: Dict[str, Any] = opts.model_dump()
        self.overhang = opts.overhang
        self.gable_overhang = opts.gable_overhang
        self.max_workers = max_workers
        self.builder = RoofBuilder(**self.options)

    def _prepare_wing(self, index: int, room: Any) -> Optional[Wing]:
        descriptor = _coerce_room(room)
        if not descriptor.has_roof:
            return None
        prepared = self.builder.prepare(descriptor.polygon, descriptor.edge_directives)
        # the same eave the builder emits, so overlap here means overlapping roofs
        eave = offset_eave_polygon(prepared.points, prepared.directives, self.overhang, self.gable_overhang)
        return Wing(index=index, points=prepared.points, directives=prepared.directives, eave=eave.points)

    def _reach(self, wings: Sequence[Wing]) -> float:
        """Largest edge overhang among the wings; the merge closes gaps up to twice this."""
        reach = max(max(edge_overhangs(w.directives, self.overhang, self.gable_overhang)) for w in wings)
        return max(reach, 0.0)

    @staticmethod
    def _separate(members: Sequence[Wing]) -> List[ComponentJob]:
        return [ComponentJob(wing_indices=[w.index], pieces=[(w.points, w.directives)]) for w in members]

    def plan(self, rooms: Sequence[Any]) -> Tuple[List[ComponentJob], List[RoofFailure]]:
        """Prepare the wings and group them into independent jobs.

        Raises:
            InvalidFootprint: ``rooms`` is not a list of room descriptors.
        """
        wings: List[Wing] = []
        failures: List[RoofFailure] = []
        for index, room in enumerate(_room_list(rooms)):
            try:
                wing = self._prepare_wing(index, room)
            except RoofEngineError as exc:
                logger.warning(f"Room {index} rejected ({type(exc).__name__}): {exc.message}")
                failures.append(failure_from(exc, [index]))
                continue
            if wing is not None:
                wings.append(wing)

        jobs: List[ComponentJob] = []
        for group in find_roof_components([w.eave for w in wings]):
            members = [wings[i] for i in group]
            indices = [w.index for w in members]
            if len(members) == 1:
                jobs.extend(self._separate(members))
                continue
            baselines = [w.directives[0].baseline_height for w in members]
            if max(baselines) - min(baselines) > EPSILON_MM:
                logger.warning(f"Rooms {indices} sit at different plate heights; roofing them separately")
                jobs.extend(self._separate(members))
                continue
            pieces = merge_component_footprint(members, self._reach(members))
            if pieces is None:
                logger.warning(f"Merged footprint of rooms {indices} encloses a courtyard; roofing them separately")
                jobs.extend(self._separate(members))
                continue
            logger.info(f"Merging rooms {indices} into {len(pieces)} footprint(s)")
            jobs.append(ComponentJob(wing_indices=indices, pieces=pieces, merged=True))
        return jobs, failures

    def solve(self, rooms: Sequence[Any]) -> MultiRoofResult:
        jobs, failures = self.plan(rooms)

        if self.max_workers and self.max_workers > 1 and len(jobs) > 1:
            with ProcessPoolExecutor(max_workers=self.max_workers) as executor:
                outcomes = list(executor.map(_solve_job, jobs, [self.options] * len(jobs)))
        else:
            outcomes = [_solve_job(job, self.options) for job in jobs]

        results: List[RoofResult] = []
        reports: List[ComponentReport] = []
        for job, outcome in zip(jobs, outcomes):
            solved = isinstance(outcome, RoofResult)
            if solved:
                results.append(outcome)
            else:
                failures.append(outcome)
            reports.append(ComponentReport(wing_indices=job.wing_indices, merged=job.merged, solved=solved))

        failures.sort(key=lambda f: min(f.wing_indices, default=-1))
        logger.info(f"Solved {len(results)} of {len(jobs)} roof component(s), {len(failures)} failure(s)")
        return MultiRoofResult(result=RoofResult.concat(results), failures=failures, components=reports)


def solve_rooms(
    rooms: Sequence[Any],
    *,
    default_pitch: float = DEFAULT_PITCH_DEG,
    overhang: float = DEFAULT_OVERHANG_MM,
    gable_overhang: Optional[float] = None,
    plate_height: float = DEFAULT_PLATE_HEIGHT_MM,
    min_edge_length: float = 0.0,
    event_budget_factor: int = EVENT_BUDGET_FACTOR,
    max_workers: Optional[int] = None,
) -> MultiRoofResult:
    """Solve every roofed room; never raises a ``RoofEngineError``.

    Invalid options or a ``rooms`` value that is not a list come back as a
    single failure without wing indices.
    """
    try:
        orchestrator = RoofMergeOrchestrator(
            default_pitch=default_pitch,
            overhang=overhang,
            gable_overhang=gable_overhang,
            plate_height=plate_height,
            min_edge_length=min_edge_length,
            event_budget_factor=event_budget_factor,
            max_workers=max_workers,
        )
        return orchestrator.solve(rooms)
    except RoofEngineError as exc:
        logger.warning(f"Roof merge failed ({type(exc).__name__}): {exc.message}")
        return MultiRoofResult(failures=[failure_from(exc)])
