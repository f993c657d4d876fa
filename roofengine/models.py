"""Input and output models of the roof engine.

Field names are snake_case; the camelCase names used by the surrounding
application (``baselineHeight``, ``hasRoof``, ``edgeDirectives``) are
accepted as aliases and produced by ``model_dump(by_alias=True)``.
"""

from __future__ import annotations

import math
from enum import Enum
from typing import Dict, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field

from roofengine.contract import (
    DEFAULT_OVERHANG_MM,
    DEFAULT_PITCH_DEG,
    DEFAULT_PLATE_HEIGHT_MM,
    EVENT_BUDGET_FACTOR,
    MAX_PITCH_DEG,
)


class Point2(BaseModel):
    """Plan point in millimetres."""
    model_config = ConfigDict(frozen=True)

    x: float
    y: float

    def to_tuple(self) -> Tuple[float, float]:
        return (self.x, self.y)


class Point3(BaseModel):
    """Point in space; z is the height in millimetres."""
    model_config = ConfigDict(frozen=True)

    x: float
    y: float
    z: float

    def distance_to(self, other: Point3) -> float:
        return math.sqrt(
            (self.x - other.x) ** 2
            + (self.y - other.y) ** 2
            + (self.z - other.z) ** 2
        )


class Segment3(BaseModel):
    """Roof line between two 3D points."""
    model_config = ConfigDict(frozen=True)

    start: Point3
    end: Point3

    @property
    def length(self) -> float:
        """True (sloped) length."""
        return self.start.distance_to(self.end)

    @property
    def plan_length(self) -> float:
        return math.hypot(self.end.x - self.start.x, self.end.y - self.start.y)


class RoofBehavior(str, Enum):
    HIP = "hip"
    GABLE = "gable"


class EdgeDirective(BaseModel):
    """Roofing behaviour of one footprint edge.

    ``pitch`` and ``baseline_height`` fall back to the solve defaults when
    omitted. ``overhang`` overrides the solve-wide overhang for this edge.
    """
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    behavior: RoofBehavior = RoofBehavior.HIP
    pitch: Optional[float] = None  # degrees
    baseline_height: Optional[float] = Field(default=None, alias="baselineHeight")
    overhang: Optional[float] = None


class RoomDescriptor(BaseModel):
    """One building wing as handed over by the application."""
    model_config = ConfigDict(populate_by_name=True)

    polygon: List[Point2]
    has_roof: bool = Field(default=True, alias="hasRoof")
    edge_directives: Optional[List[EdgeDirective]] = Field(default=None, alias="edgeDirectives")
    id: Optional[str] = None


class SolveOptions(BaseModel):
    """Numeric options of a roof solve, shared by ``solve_roof`` and ``solve_rooms``."""
    model_config = ConfigDict(frozen=True, extra="forbid", allow_inf_nan=False)

    default_pitch: float = Field(default=DEFAULT_PITCH_DEG, ge=0.0, lt=MAX_PITCH_DEG)
    overhang: float = DEFAULT_OVERHANG_MM
    gable_overhang: Optional[float] = None
    plate_height: float = DEFAULT_PLATE_HEIGHT_MM
    min_edge_length: float = Field(default=0.0, ge=0.0)
    event_budget_factor: int = Field(default=EVENT_BUDGET_FACTOR, ge=1)


class RoofFace(BaseModel):
    """Reconciled roof plane region belonging to one hip edge."""
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    edge_index: int = Field(alias="edgeIndex")
    pitch: float
    polygon: List[Point2]
    plan_area: float = Field(alias="planArea")
    slope_area: float = Field(alias="slopeArea")


class RoofResult(BaseModel):
    """Classified roof lines of one or more solved footprints."""
    model_config = ConfigDict(frozen=True)

    eaves: List[Segment3] = Field(default_factory=list)
    ridges: List[Segment3] = Field(default_factory=list)
    hips: List[Segment3] = Field(default_factory=list)
    valleys: List[Segment3] = Field(default_factory=list)
    rakes: List[Segment3] = Field(default_factory=list)
    faces: List[RoofFace] = Field(default_factory=list)

    @classmethod
    def concat(cls, results: List[RoofResult]) -> RoofResult:
        return cls(
            eaves=[s for r in results for s in r.eaves],
            ridges=[s for r in results for s in r.ridges],
            hips=[s for r in results for s in r.hips],
            valleys=[s for r in results for s in r.valleys],
            rakes=[s for r in results for s in r.rakes],
            faces=[f for r in results for f in r.faces],
        )

    def segments(self) -> Dict[str, List[Segment3]]:
        return {
            "eaves": self.eaves,
            "ridges": self.ridges,
            "hips": self.hips,
            "valleys": self.valleys,
            "rakes": self.rakes,
        }

    def summary(self) -> Dict[str, float]:
        """Counts and lengths per line kind plus plan and slope areas.

        These are the quantities the BOQ layer derives materials from.
        """
        stats: Dict[str, float] = {}
        for kind, segments in self.segments().items():
            stats[f"{kind}_count"] = len(segments)
            stats[f"{kind}_plan_length"] = sum(s.plan_length for s in segments)
            stats[f"{kind}_length"] = sum(s.length for s in segments)
        stats["plan_area"] = sum(f.plan_area for f in self.faces)
        stats["slope_area"] = sum(f.slope_area for f in self.faces)
        return stats


class RoofFailure(BaseModel):
    """Explicit failure value for a footprint (or merged component) that could not be solved."""
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    kind: str
    message: str
    details: Dict[str, str] = Field(default_factory=dict)
    wing_indices: List[int] = Field(default_factory=list, alias="wingIndices")


class ComponentReport(BaseModel):
    """How a group of wings was solved."""
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    wing_indices: List[int] = Field(alias="wingIndices")
    merged: bool
    solved: bool


class MultiRoofResult(BaseModel):
    """Concatenated result of all cleanly solved components plus per-component failures."""
    model_config = ConfigDict(frozen=True)

    result: RoofResult = Field(default_factory=RoofResult)
    failures: List[RoofFailure] = Field(default_factory=list)
    components: List[ComponentReport] = Field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failures

    def failed_wings(self) -> List[int]:
        return sorted({i for f in self.failures for i in f.wing_indices})
