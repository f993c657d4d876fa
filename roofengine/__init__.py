"""Roof geometry engine: hipped and gabled roof lines from building footprints."""

from roofengine.assembly.builder import RoofBuilder, build_roof, solve_roof
from roofengine.exceptions import (
    ConfigurationError,
    DegenerateOffset,
    GeometryError,
    InvalidDirective,
    InvalidFootprint,
    RoofEngineError,
    SkeletonInconsistent,
)
from roofengine.merge.orchestrator import RoofMergeOrchestrator, solve_rooms
from roofengine.models import (
    ComponentReport,
    EdgeDirective,
    MultiRoofResult,
    Point2,
    Point3,
    RoofBehavior,
    RoofFace,
    RoofFailure,
    RoofResult,
    RoomDescriptor,
    Segment3,
    SolveOptions,
)

__version__ = "0.1.0"

__all__ = [
    "ComponentReport",
    "ConfigurationError",
    "DegenerateOffset",
    "EdgeDirective",
    "GeometryError",
    "InvalidDirective",
    "InvalidFootprint",
    "MultiRoofResult",
    "Point2",
    "Point3",
    "RoofBehavior",
    "RoofBuilder",
    "RoofEngineError",
    "RoofFace",
    "RoofFailure",
    "RoofMergeOrchestrator",
    "RoofResult",
    "RoomDescriptor",
    "Segment3",
    "SkeletonInconsistent",
    "SolveOptions",
    "build_roof",
    "solve_roof",
    "solve_rooms",
]
