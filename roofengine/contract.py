from __future__ import annotations

"""
Roof Geometry Contract

Single source of truth for numerical tolerances and defaults used by the roof
engine. All modules import from here instead of hardcoding thresholds.

Coordinates are millimetres in plan (x right, y up). A ring with positive
signed area is counter-clockwise.
"""

# Tolerances
EPSILON_MM = 1e-3  # mm, absolute tolerance for coordinates, lengths and heights
PARALLEL_TOLERANCE = 1e-9  # |cross| of unit vectors below which two directions are parallel
AREA_TOLERANCE_RATIO = 1e-6  # relative area mismatch accepted by the partition check
MIN_FACE_AREA_MM2 = 1.0  # mm², reconciled faces below this are slivers
BOUNDS_MARGIN_MM = 1.0  # mm, safety margin around the eave bounding box

# Solver
EVENT_BUDGET_FACTOR = 4  # processed events allowed per footprint vertex
EVENT_BUDGET_SLACK = 8

# Roof defaults
DEFAULT_PITCH_DEG = 30.0
DEFAULT_OVERHANG_MM = 600.0
DEFAULT_PLATE_HEIGHT_MM = 2700.0
MAX_PITCH_DEG = 90.0  # exclusive

# Offsetting
MITRE_LIMIT = 50.0  # shapely mitre limit for uniform offsets


def mm(value_m: float) -> float:
    """Convert meters to millimeters."""
    return float(value_m * 1000.0)


def m(value_mm: float) -> float:
    """Convert millimeters to meters."""
    return float(value_mm / 1000.0)
