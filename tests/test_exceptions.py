"""Tests for custom exception hierarchy."""

import pytest

from roofengine.assembly.builder import solve_roof
from roofengine.exceptions import (
    ConfigurationError,
    DegenerateOffset,
    GeometryError,
    InvalidDirective,
    InvalidFootprint,
    RoofEngineError,
    SkeletonInconsistent,
)
from roofengine.models import RoofFailure, RoofResult

SQUARE = [(0, 0), (5000, 0), (5000, 5000), (0, 5000)]


def test_roof_engine_error_base():
    """Test base RoofEngineError."""
    error = RoofEngineError("Test error", {"key": "value"})
    assert str(error) == "Test error"
    assert error.message == "Test error"
    assert error.details == {"key": "value"}


def test_details_default_to_empty_dict():
    """Test that details are never None."""
    assert InvalidFootprint("Too few points").details == {}


def test_configuration_error():
    """Test ConfigurationError."""
    error = ConfigurationError("Config missing", {"path": "config/default.yaml"})
    assert isinstance(error, RoofEngineError)
    assert not isinstance(error, GeometryError)


def test_exception_inheritance():
    """Test exception inheritance hierarchy."""
    for cls in (InvalidFootprint, InvalidDirective, DegenerateOffset, SkeletonInconsistent):
        assert issubclass(cls, GeometryError)
        assert issubclass(cls, RoofEngineError)


@pytest.mark.parametrize(
    ("footprint", "directives", "options", "kind"),
    [
        ([(0, 0), (1000, 0)], None, {}, "InvalidFootprint"),
        ([(0, 0), (1000, 1000), (1000, 0), (0, 1000)], None, {}, "InvalidFootprint"),
        ([(0, 0), (1000, 0), (2000, 0)], None, {}, "InvalidFootprint"),
        (SQUARE, [{"behavior": "hip", "pitch": 95}] * 4, {}, "InvalidDirective"),
        (SQUARE, [{"behavior": "hip", "pitch": 90}] * 4, {}, "InvalidDirective"),
        (SQUARE, [{"behavior": "hip"}] * 3, {}, "InvalidDirective"),
        (SQUARE, [{"behavior": "gable"}] * 4, {}, "InvalidDirective"),
        (SQUARE, [{"behavior": "thatch"}] * 4, {}, "InvalidDirective"),
        (SQUARE, None, {"overhang": -3000.0}, "DegenerateOffset"),
        (None, None, {}, "InvalidFootprint"),
        ("not a footprint", None, {}, "InvalidFootprint"),
        (SQUARE, 5, {}, "InvalidDirective"),
        (SQUARE, None, {"overhang": "x"}, "ConfigurationError"),
        (SQUARE, None, {"overhang": float("nan")}, "ConfigurationError"),
        (SQUARE, None, {"default_pitch": 95.0}, "ConfigurationError"),
        (SQUARE, None, {"eave_colour": "red"}, "ConfigurationError"),
    ],
)
def test_failures_are_returned_not_raised(footprint, directives, options, kind):
    """Every failure, geometric or not, comes back as a RoofFailure of the right kind."""
    outcome = solve_roof(footprint, directives, **options)
    assert isinstance(outcome, RoofFailure)
    assert outcome.kind == kind
    assert outcome.message


def test_valid_input_is_not_a_failure():
    """Sanity check for the failure table above."""
    assert isinstance(solve_roof(SQUARE), RoofResult)
