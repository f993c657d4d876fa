"""Custom exception hierarchy for the roof engine."""

from __future__ import annotations


class RoofEngineError(Exception):
    """Base exception for all roof-engine-specific errors."""

    def __init__(self, message: str, details: dict[str, str] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}


class ConfigurationError(RoofEngineError):
    """Raised when configuration is invalid or missing."""
    pass


class GeometryError(RoofEngineError):
    """Base class for geometric failures of a single footprint."""
    pass


class InvalidFootprint(GeometryError):
    """Raised for footprints with fewer than 3 points, self-intersections or zero area."""
    pass


class InvalidDirective(GeometryError):
    """Raised when a pitch is out of [0, 90) or the directive count does not match the edges."""
    pass


class DegenerateOffset(GeometryError):
    """Raised when the overhang offset collapses or folds the footprint."""
    pass


class SkeletonInconsistent(GeometryError):
    """Raised when the wavefront solve does not terminate cleanly or its faces do not partition the eave polygon."""
    pass
