"""Tests for footprint preparation and the eave offset."""

from __future__ import annotations

import pytest

from roofengine.exceptions import DegenerateOffset, InvalidDirective, InvalidFootprint
from roofengine.geometry.footprint import (
    edge_overhangs,
    offset_eave_polygon,
    prepare_footprint,
    resolve_directive,
    simplify_footprint,
)
from roofengine.models import EdgeDirective, Point2, RoofBehavior

RECT = [(0.0, 0.0), (8000.0, 0.0), (8000.0, 5000.0), (0.0, 5000.0)]
HIP = EdgeDirective(behavior=RoofBehavior.HIP)
GABLE = EdgeDirective(behavior=RoofBehavior.GABLE)


def _resolved(directive: EdgeDirective) -> EdgeDirective:
    return resolve_directive(directive, default_pitch=30.0, plate_height=2700.0)


def test_directives_are_resolved_from_defaults():
    """Test missing pitch and baseline are filled in."""
    prepared = prepare_footprint(RECT, default_pitch=35.0, plate_height=3000.0)
    assert prepared.edge_count == 4
    assert all(d.pitch == 35.0 for d in prepared.directives)
    assert all(d.baseline_height == 3000.0 for d in prepared.directives)
    assert prepared.reversed is False


def test_explicit_values_win_over_defaults():
    """Test explicit directive values."""
    directives = [{"pitch": 45.0, "baselineHeight": 2500.0}] + [{"baselineHeight": 2500.0}] * 3
    prepared = prepare_footprint(RECT, directives)
    assert prepared.directives[0].pitch == 45.0
    assert prepared.directives[0].baseline_height == 2500.0
    assert prepared.directives[1].pitch == 30.0


def test_clockwise_footprint_is_reversed_with_its_directives():
    """Test clockwise input."""
    clockwise = [(0.0, 0.0), (0.0, 5000.0), (8000.0, 5000.0), (8000.0, 0.0)]
    directives = [EdgeDirective(pitch=p) for p in (10.0, 20.0, 30.0, 40.0)]
    prepared = prepare_footprint(clockwise, directives)

    assert prepared.reversed is True
    assert prepared.points == [(0.0, 0.0), (8000.0, 0.0), (8000.0, 5000.0), (0.0, 5000.0)]
    # each directive stays with the same physical edge
    assert [d.pitch for d in prepared.directives] == [40.0, 30.0, 20.0, 10.0]


def test_closing_point_and_point_formats():
    """Test point formats and an explicit closing point."""
    closed = [Point2(x=0, y=0), {"x": 10, "y": 0}, (10, 10), [0, 10], (0, 0)]
    prepared = prepare_footprint(closed)
    assert prepared.points == [(0.0, 0.0), (10.0, 0.0), (10.0, 10.0), (0.0, 10.0)]


def test_collinear_vertex_removed_only_between_equal_directives():
    """Test collinear vertex removal."""
    points = [(0.0, 0.0), (5000.0, 0.0), (10000.0, 0.0), (10000.0, 5000.0), (0.0, 5000.0)]

    same = [_resolved(HIP)] * 5
    pts, dirs = simplify_footprint(points, same)
    assert pts == [(0.0, 0.0), (10000.0, 0.0), (10000.0, 5000.0), (0.0, 5000.0)]
    assert len(dirs) == 4

    steeper = [_resolved(HIP), _resolved(EdgeDirective(pitch=45.0)), _resolved(HIP), _resolved(HIP), _resolved(HIP)]
    pts, dirs = simplify_footprint(points, steeper)
    assert len(pts) == 5
    assert dirs[1].pitch == 45.0


def test_short_edge_collapses_to_its_midpoint():
    """Test short edge merging."""
    points = [(0.0, 0.0), (10000.0, 0.0), (10000.0, 5000.0), (5.0, 5000.0), (0.0, 5000.0)]
    pts, dirs = simplify_footprint(points, [_resolved(HIP)] * 5, min_edge_length=10.0)
    assert len(pts) == 4
    assert len(dirs) == 4
    assert pts[3] == pytest.approx((2.5, 5000.0))

    prepared = prepare_footprint(points, min_edge_length=10.0)
    assert prepared.edge_count == 4


@pytest.mark.parametrize(
    "points",
    [
        [(0, 0), (10, 0)],
        [(0, 0), (0, 0), (0, 0), (0, 0)],
        [(0, 0), (10, 10), (10, 0), (0, 10)],
        [(0, 0), (10, 0), (20, 0)],
        [(0, 0), (1, "a"), (2, 2)],
        [(0, 0), (float("nan"), 0), (2, 2)],
    ],
)
def test_invalid_footprints(points):
    """Test InvalidFootprint cases."""
    with pytest.raises(InvalidFootprint):
        prepare_footprint(points)


def test_invalid_directives():
    """Test InvalidDirective cases."""
    with pytest.raises(InvalidDirective):
        prepare_footprint(RECT, [HIP] * 3)
    with pytest.raises(InvalidDirective):
        prepare_footprint(RECT, [EdgeDirective(pitch=90.0)] * 4)
    with pytest.raises(InvalidDirective):
        prepare_footprint(RECT, [EdgeDirective(pitch=-1.0)] * 4)
    with pytest.raises(InvalidDirective):
        prepare_footprint(RECT, [{"behavior": "mansard"}] * 4)
    with pytest.raises(InvalidDirective):
        prepare_footprint(RECT, [GABLE] * 4)


def test_all_gable_allowed_when_hip_not_required():
    """Test require_hip=False."""
    prepared = prepare_footprint(RECT, [GABLE] * 4, require_hip=False)
    assert all(d.behavior == RoofBehavior.GABLE for d in prepared.directives)


def test_edge_overhangs_precedence():
    """Test per-edge overhang selection."""
    directives = [HIP, GABLE, EdgeDirective(behavior=RoofBehavior.GABLE, overhang=50.0), EdgeDirective(overhang=0.0)]
    assert edge_overhangs(directives, 600.0) == [600.0, 600.0, 50.0, 0.0]
    assert edge_overhangs(directives, 600.0, gable_overhang=200.0) == [600.0, 200.0, 50.0, 0.0]


def test_offset_eave_polygon_uniform():
    """Test uniform overhang."""
    eave = offset_eave_polygon(RECT, [HIP] * 4, 500.0).points
    assert eave == [
        pytest.approx((-500.0, -500.0)),
        pytest.approx((8500.0, -500.0)),
        pytest.approx((8500.0, 5500.0)),
        pytest.approx((-500.0, 5500.0)),
    ]


def test_offset_eave_polygon_with_gable_overhang():
    """Test separate gable overhang."""
    eave = offset_eave_polygon(RECT, [HIP, GABLE, HIP, GABLE], 500.0, gable_overhang=200.0).points
    assert eave[0] == pytest.approx((-200.0, -500.0))
    assert eave[1] == pytest.approx((8200.0, -500.0))
    assert eave[2] == pytest.approx((8200.0, 5500.0))
    assert eave[3] == pytest.approx((-200.0, 5500.0))


def test_offset_eave_polygon_with_edge_override():
    """Test per-directive overhang."""
    eave = offset_eave_polygon(RECT, [EdgeDirective(overhang=0.0), HIP, HIP, HIP], 500.0).points
    assert eave[0] == pytest.approx((-500.0, 0.0))
    assert eave[1] == pytest.approx((8500.0, 0.0))


def test_zero_overhang_keeps_footprint():
    """Test zero overhang."""
    eave = offset_eave_polygon(RECT, [HIP] * 4, 0.0)
    assert eave.points == RECT
    assert eave.sources == [0, 1, 2, 3]


def test_inward_offset_that_collapses_the_footprint():
    """Test DegenerateOffset."""
    with pytest.raises(DegenerateOffset):
        offset_eave_polygon(RECT, [HIP] * 4, -3000.0)


NOTCHED = [
    (0.0, 0.0),
    (10000.0, 0.0),
    (10000.0, 6000.0),
    (5400.0, 6000.0),
    (5400.0, 3000.0),
    (4600.0, 3000.0),
    (4600.0, 6000.0),
    (0.0, 6000.0),
]


def test_recess_narrower_than_twice_the_overhang_closes():
    """An 800 mm recess under a 600 mm overhang disappears from the eave."""
    prepared = prepare_footprint(NOTCHED)
    eave = offset_eave_polygon(prepared.points, prepared.directives, 600.0)

    assert eave.points == [
        pytest.approx((-600.0, -600.0)),
        pytest.approx((10600.0, -600.0)),
        pytest.approx((10600.0, 6600.0)),
        pytest.approx((-600.0, 6600.0)),
    ]
    # recess walls and bottom are gone, the two top edges merged
    assert eave.sources == [0, 1, 2, 7]
    assert len(eave.directives) == 4


def test_wide_recess_survives_the_offset():
    """Test a recess wider than twice the overhang."""
    prepared = prepare_footprint(NOTCHED)
    eave = offset_eave_polygon(prepared.points, prepared.directives, 300.0)
    assert eave.sources == list(range(8))
    assert eave.points[4] == pytest.approx((5100.0, 3300.0))
    assert eave.points[5] == pytest.approx((4900.0, 3300.0))


def test_mixed_baselines_are_rejected():
    """Test InvalidDirective for edges at different baseline heights."""
    directives = [{"baselineHeight": h} for h in (2700.0, 2700.0, 3000.0, 2700.0)]
    with pytest.raises(InvalidDirective):
        prepare_footprint(RECT, directives)


def test_non_iterable_input_is_rejected():
    """Test non-sequence footprint and directives."""
    with pytest.raises(InvalidFootprint):
        prepare_footprint(None)
    with pytest.raises(InvalidFootprint):
        prepare_footprint(42)
    with pytest.raises(InvalidDirective):
        prepare_footprint(RECT, 5)
