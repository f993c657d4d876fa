"""
Roof assembly: footprint to classified 3D roof lines.

Pipeline per footprint: normalize orientation, offset by the overhang,
solve the wavefront skeleton on the eave polygon, trace and reconcile the
faces, annotate heights and classify every skeleton arc.
"""

from __future__ import annotations

import math
from typing import Any, Dict, List, Optional, Sequence

from loguru import logger
from pydantic import ValidationError

from roofengine.assembly.faces import TracedFace, reconcile_faces, trace_faces
from roofengine.contract import (
    DEFAULT_OVERHANG_MM,
    DEFAULT_PITCH_DEG,
    DEFAULT_PLATE_HEIGHT_MM,
    EPSILON_MM,
    EVENT_BUDGET_FACTOR,
)
from roofengine.exceptions import ConfigurationError, RoofEngineError, SkeletonInconsistent
from roofengine.geometry.footprint import EavePolygon, PreparedFootprint, offset_eave_polygon, prepare_footprint
from roofengine.geometry.primitives import signed_area
from roofengine.models import (
    Point2,
    Point3,
    RoofBehavior,
    RoofFace,
    RoofFailure,
    RoofResult,
    Segment3,
    SolveOptions,
)
from roofengine.skeleton.graph import ArcKind, SkeletonGraph
from roofengine.skeleton.wavefront import build_wavefront_edges, solve_skeleton
from roofengine.validate.roof_validation import check_partition, validate_roof_result


def solve_options(**options: Any) -> SolveOptions:
    """Validate solve options, raising ``ConfigurationError`` for unknown or non-numeric values."""
    try:
        return SolveOptions(**options)
    except ValidationError as exc:
        error = exc.errors()[0]
        name = ".".join(str(part) for part in error["loc"]) or "options"
        raise ConfigurationError(
            f"Invalid solve option {name}: {error['msg']}",
            {"option": name, "value": repr(options.get(name))},
        ) from exc


def slope_area(plan_area: float, pitch_deg: float) -> float:
    """Slope-corrected area of a plane of the given pitch."""
    return plan_area / math.cos(math.radians(pitch_deg))


class RoofBuilder:
    """Builds the roof of a single footprint.

    Stateless between calls: every ``build`` works on fresh geometry, so one
    builder may serve any number of footprints.
    """

    def __init__(
        self,
        *,
        default_pitch: float = DEFAULT_PITCH_DEG,
        overhang: float = DEFAULT_OVERHANG_MM,
        gable_overhang: Optional[float] = None,
        plate_height: float = DEFAULT_PLATE_HEIGHT_MM,
        min_edge_length: float = 0.0,
        event_budget_factor: int = EVENT_BUDGET_FACTOR,
    ):
        opts = solve_options(
            default_pitch=default_pitch,
            overhang=overhang,
            gable_overhang=gable_overhang,
            plate_height=plate_height,
            min_edge_length=min_edge_length,
            event_budget_factor=event_budget_factor,
        )
        self.default_pitch = opts.default_pitch
        self.overhang = opts.overhang
        self.gable_overhang = opts.gable_overhang
        self.plate_height = opts.plate_height
        self.min_edge_length = opts.min_edge_length
        self.event_budget_factor = opts.event_budget_factor

    def prepare(self, footprint: Sequence[Any], directives: Optional[Sequence[Any]] = None) -> PreparedFootprint:
        return prepare_footprint(
            footprint,
            directives,
            default_pitch=self.default_pitch,
            plate_height=self.plate_height,
            min_edge_length=self.min_edge_length,
        )

    def build(self, footprint: Sequence[Any], directives: Optional[Sequence[Any]] = None) -> RoofResult:
        """Solve one footprint.

        Raises:
            InvalidFootprint, InvalidDirective, DegenerateOffset, SkeletonInconsistent
        """
        prepared = self.prepare(footprint, directives)
        eave = offset_eave_polygon(prepared.points, prepared.directives, self.overhang, self.gable_overhang)

        flat = [i for i, d in enumerate(eave.directives) if d.behavior == RoofBehavior.HIP and d.pitch == 0.0]
        if flat:
            result = self._flat_roof(eave, flat[0])
        else:
            result = self._pitched_roof(eave)

        validation = validate_roof_result(result, [eave.points], min_height=eave.directives[0].baseline_height)
        if not validation.is_valid:
            raise SkeletonInconsistent(
                f"Solved roof failed validation: {validation.errors[0]}",
                {"errors": "; ".join(validation.errors[:5])},
            )

        logger.info(
            f"Roof solved: {len(prepared.points)} edges, {len(result.ridges)} ridges, "
            f"{len(result.hips)} hips, {len(result.valleys)} valleys, {len(result.rakes)} rakes"
        )
        return result

    # ---------------------------------------------------------------- helpers

    @staticmethod
    def _eaves(eave: EavePolygon) -> List[Segment3]:
        n = len(eave.points)
        segments = []
        for i in range(n):
            z = eave.directives[i].baseline_height
            a, b = eave.points[i], eave.points[(i + 1) % n]
            segments.append(Segment3(start=Point3(x=a[0], y=a[1], z=z), end=Point3(x=b[0], y=b[1], z=z)))
        return segments

    @staticmethod
    def _face(face: TracedFace, eave: EavePolygon) -> RoofFace:
        pitch = eave.directives[face.edge_index].pitch
        plan = signed_area(face.ring)
        return RoofFace(
            edge_index=eave.sources[face.edge_index],
            pitch=pitch,
            polygon=[Point2(x=x, y=y) for x, y in face.ring],
            plan_area=plan,
            slope_area=slope_area(plan, pitch),
        )

    def _flat_roof(self, eave: EavePolygon, edge_index: int) -> RoofResult:
        logger.info(f"Edge {eave.sources[edge_index]} has zero pitch; building a flat roof")
        face = TracedFace(edge_index=edge_index, ring=list(eave.points))
        return RoofResult(eaves=self._eaves(eave), faces=[self._face(face, eave)])

    def _pitched_roof(self, eave: EavePolygon) -> RoofResult:
        ring, directives = eave.points, eave.directives
        roofed = [d.behavior == RoofBehavior.HIP for d in directives]
        edges = build_wavefront_edges(ring, [d.pitch for d in directives], [not r for r in roofed])
        graph = solve_skeleton(ring, edges, self.event_budget_factor)

        traced = trace_faces(graph, ring, roofed)
        partition = check_partition([f.ring for f in traced], [ring])
        if not partition.is_valid:
            raise SkeletonInconsistent(
                f"Skeleton faces do not partition the eave polygon: {partition.errors[0]}",
                {key: f"{value:.3f}" for key, value in partition.statistics.items() if isinstance(value, float)},
            )
        faces = reconcile_faces(traced, ring)

        heights = self._node_heights(graph, directives[0].baseline_height)
        lines: Dict[ArcKind, List[Segment3]] = {kind: [] for kind in ArcKind}
        for arc in graph.arcs:
            za, zb = heights[arc.start], heights[arc.end]
            if abs(za - zb) <= EPSILON_MM:
                arc.kind = ArcKind.RIDGE
            elif not all(roofed[f] for f in arc.faces):
                arc.kind = ArcKind.RAKE
            elif arc.reflex:
                arc.kind = ArcKind.VALLEY
            else:
                arc.kind = ArcKind.HIP
            a, b = graph.nodes[arc.start], graph.nodes[arc.end]
            if zb < za:
                a, b, za, zb = b, a, zb, za
            lines[arc.kind].append(
                Segment3(start=Point3(x=a.x, y=a.y, z=za), end=Point3(x=b.x, y=b.y, z=zb))
            )

        return RoofResult(
            eaves=self._eaves(eave),
            ridges=lines[ArcKind.RIDGE],
            hips=lines[ArcKind.HIP],
            valleys=lines[ArcKind.VALLEY],
            rakes=lines[ArcKind.RAKE],
            faces=[self._face(f, eave) for f in faces],
        )

    @staticmethod
    def _node_heights(graph: SkeletonGraph, baseline: float) -> Dict[int, float]:
        """Every plane starts at the shared baseline, so a node sits at baseline plus rise."""
        return {node_id: node.t + baseline for node_id, node in graph.nodes.items()}


def build_roof(
    footprint: Sequence[Any],
    edge_directives: Optional[Sequence[Any]] = None,
    *,
    default_pitch: float = DEFAULT_PITCH_DEG,
    overhang: float = DEFAULT_OVERHANG_MM,
    gable_overhang: Optional[float] = None,
    plate_height: float = DEFAULT_PLATE_HEIGHT_MM,
    min_edge_length: float = 0.0,
    event_budget_factor: int = EVENT_BUDGET_FACTOR,
) -> RoofResult:
    """Solve one footprint, raising a ``GeometryError`` subclass on failure.

    Raises ``ConfigurationError`` for an unknown or non-numeric option.
    """
    builder = RoofBuilder(
        default_pitch=default_pitch,
        overhang=overhang,
        gable_overhang=gable_overhang,
        plate_height=plate_height,
        min_edge_length=min_edge_length,
        event_budget_factor=event_budget_factor,
    )
    return builder.build(footprint, edge_directives)


def failure_from(exc: RoofEngineError, wing_indices: Sequence[int] = ()) -> RoofFailure:
    return RoofFailure(
        kind=type(exc).__name__,
        message=exc.message,
        details={k: str(v) for k, v in exc.details.items()},
        wing_indices=list(wing_indices),
    )


def solve_roof(
    footprint: Sequence[Any],
    edge_directives: Optional[Sequence[Any]] = None,
    **options: Any,
) -> RoofResult | RoofFailure:
    """Solve one footprint; failures come back as a ``RoofFailure`` value instead of an exception.

    Accepts the same keyword options as ``build_roof``; an invalid option is
    reported as a ``ConfigurationError`` failure.
    """
    try:
        builder = RoofBuilder(**solve_options(**options).model_dump())
        return builder.build(footprint, edge_directives)
    except RoofEngineError as exc:
        logger.warning(f"Roof solve failed ({type(exc).__name__}): {exc.message}")
        return failure_from(exc)
