"""End-to-end tests for single-footprint roof assembly."""

from __future__ import annotations

import math

import pytest

from roofengine.assembly.builder import RoofBuilder, build_roof, slope_area, solve_roof
from roofengine.exceptions import ConfigurationError, InvalidFootprint
from roofengine.models import EdgeDirective, RoofBehavior, RoofFailure, RoofResult

TAN30 = math.tan(math.radians(30.0))
PLATE = 2700.0

RECT = [(0, 0), (8000, 0), (8000, 5000), (0, 5000)]
SQUARE = [(0, 0), (5000, 0), (5000, 5000), (0, 5000)]
L_SHAPE = [(0, 0), (10000, 0), (10000, 5000), (5000, 5000), (5000, 10000), (0, 10000)]
HIP = EdgeDirective(behavior=RoofBehavior.HIP)
GABLE = EdgeDirective(behavior=RoofBehavior.GABLE)


def _roof(footprint, directives=None, **options) -> RoofResult:
    options.setdefault("overhang", 500.0)
    options.setdefault("default_pitch", 30.0)
    options.setdefault("plate_height", PLATE)
    return build_roof(footprint, directives, **options)


def _all_points(result: RoofResult):
    for segments in result.segments().values():
        for seg in segments:
            yield seg.start
            yield seg.end


def test_slope_area():
    """Test slope_area."""
    assert slope_area(100.0, 0.0) == pytest.approx(100.0)
    assert slope_area(100.0, 30.0) == pytest.approx(100.0 / math.cos(math.radians(30.0)))


def test_hipped_rectangle():
    """Rectangle with uniform pitch: one ridge, four hips."""
    result = _roof(RECT)

    assert len(result.eaves) == 4
    assert len(result.ridges) == 1
    assert len(result.hips) == 4
    assert len(result.valleys) == 0
    assert len(result.rakes) == 0

    ridge = result.ridges[0]
    assert sorted([ridge.start.x, ridge.end.x]) == pytest.approx([2500.0, 5500.0])
    assert ridge.start.y == pytest.approx(2500.0)
    assert ridge.end.y == pytest.approx(2500.0)
    assert ridge.plan_length == pytest.approx(3000.0)
    assert ridge.start.z == pytest.approx(PLATE + 3000.0 * TAN30)
    assert ridge.end.z == pytest.approx(PLATE + 3000.0 * TAN30)


def test_eaves_sit_on_the_baseline_and_lines_rise_from_it():
    """Test line heights."""
    result = _roof(RECT)
    for eave in result.eaves:
        assert eave.start.z == pytest.approx(PLATE)
        assert eave.end.z == pytest.approx(PLATE)
    for hip in result.hips:
        # hips run from the eave up to the ridge
        assert hip.start.z == pytest.approx(PLATE)
        assert hip.end.z > PLATE
        assert hip.length == pytest.approx(math.sqrt(3000.0**2 * 2 + (3000.0 * TAN30) ** 2))


def test_square_is_a_pyramid():
    """Test square footprint."""
    # a square has no ridge of positive length; see "Square footprint" in DESIGN.md
    result = _roof(SQUARE)
    assert len(result.ridges) == 0
    assert len(result.hips) == 4
    tops = {(round(h.end.x, 3), round(h.end.y, 3)) for h in result.hips}
    assert tops == {(2500.0, 2500.0)}


def test_steeper_ends_lengthen_the_ridge():
    """Test unequal pitches."""
    directives = [EdgeDirective(pitch=30.0), EdgeDirective(pitch=60.0)] * 2
    result = _roof(RECT, directives)
    assert len(result.ridges) == 1
    ridge = result.ridges[0]
    assert ridge.plan_length == pytest.approx(7000.0)
    assert sorted([ridge.start.x, ridge.end.x]) == pytest.approx([500.0, 7500.0])
    assert ridge.start.z == pytest.approx(PLATE + 3000.0 * TAN30)


def test_gable_rectangle():
    """Rectangle with two gable ends: full-length ridge, no hips."""
    result = _roof(RECT, [HIP, GABLE, HIP, GABLE])

    assert len(result.ridges) == 1
    assert len(result.hips) == 0
    assert len(result.valleys) == 0
    assert len(result.rakes) == 4
    assert result.ridges[0].plan_length == pytest.approx(9000.0)

    # symmetric gable ends: the rakes pair up by height
    tops = sorted(max(r.start.z, r.end.z) for r in result.rakes)
    assert tops == pytest.approx([PLATE + 3000.0 * TAN30] * 4)
    assert {f.edge_index for f in result.faces} == {0, 2}


def test_gable_overhang_changes_the_ridge_length():
    """Test gable overhang."""
    result = _roof(RECT, [HIP, GABLE, HIP, GABLE], gable_overhang=200.0)
    assert result.ridges[0].plan_length == pytest.approx(8400.0)


def test_l_shape_has_a_valley():
    """Test L-shaped footprint."""
    result = _roof(L_SHAPE)
    assert len(result.valleys) == 1
    assert len(result.ridges) == 2
    assert len(result.hips) == 5

    valley = result.valleys[0]
    # the valley starts at the inner corner of the eave
    assert (valley.start.x, valley.start.y) == pytest.approx((5500.0, 5500.0))
    assert valley.start.z == pytest.approx(PLATE)
    assert valley.end.z > PLATE


def test_unequal_wings_add_a_hip():
    """Test L-shape with unequal wings."""
    footprint = [(0, 0), (12000, 0), (12000, 3000), (5000, 3000), (5000, 12000), (0, 12000)]
    result = _roof(footprint)
    assert len(result.valleys) == 1
    assert len(result.ridges) == 2
    assert len(result.hips) == 6


PARTITION_CASES = [
    (RECT, 9000.0 * 6000.0),
    (SQUARE, 6000.0 * 6000.0),
    (L_SHAPE, 11000.0**2 - 5000.0**2),
]


@pytest.mark.parametrize("footprint, eave_area", PARTITION_CASES)
def test_faces_partition_the_eave_polygon(footprint, eave_area):
    """Test faces tile the eave polygon."""
    result = _roof(footprint)
    assert all(f.plan_area > 0 for f in result.faces)
    assert result.summary()["plan_area"] == pytest.approx(eave_area, rel=1e-6)


def test_all_coordinates_are_finite_and_inside_the_eave():
    """Test coordinates are finite and bounded."""
    result = _roof(L_SHAPE)
    for pt in _all_points(result):
        assert all(math.isfinite(v) for v in (pt.x, pt.y, pt.z))
        assert -501.0 <= pt.x <= 10501.0
        assert -501.0 <= pt.y <= 10501.0
        assert pt.z >= PLATE - 1e-6


def test_build_is_repeatable():
    """Test idempotence."""
    builder = RoofBuilder(overhang=500.0)
    assert builder.build(L_SHAPE) == builder.build(L_SHAPE)


def test_clockwise_input_gives_the_same_roof_lines():
    """Test clockwise input."""
    ccw = _roof(RECT)
    cw = _roof(list(reversed(RECT)))
    assert len(cw.ridges) == len(ccw.ridges) == 1
    assert len(cw.hips) == len(ccw.hips) == 4
    assert cw.summary()["plan_area"] == pytest.approx(ccw.summary()["plan_area"])


def test_zero_pitch_gives_a_flat_roof():
    """Test flat roof."""
    result = _roof(RECT, [EdgeDirective(pitch=0.0), HIP, HIP, HIP])
    assert result.ridges == [] and result.hips == [] and result.valleys == []
    assert len(result.faces) == 1
    assert result.faces[0].plan_area == pytest.approx(9000.0 * 6000.0)
    assert result.faces[0].slope_area == pytest.approx(result.faces[0].plan_area)


def test_summary_lengths_and_areas():
    """Test summary quantities."""
    summary = _roof(RECT).summary()
    assert summary["ridges_count"] == 1
    assert summary["ridges_plan_length"] == pytest.approx(3000.0)
    assert summary["eaves_plan_length"] == pytest.approx(30000.0)
    assert summary["hips_count"] == 4
    assert summary["valleys_count"] == 0
    assert summary["slope_area"] == pytest.approx(9000.0 * 6000.0 / math.cos(math.radians(30.0)))


def test_concat_keeps_every_line():
    """Test RoofResult.concat."""
    a = _roof(RECT)
    b = _roof(SQUARE)
    both = RoofResult.concat([a, b])
    assert len(both.ridges) == 1
    assert len(both.hips) == 8
    assert len(both.faces) == len(a.faces) + len(b.faces)
    assert RoofResult.concat([]) == RoofResult()


def test_build_roof_raises_and_solve_roof_returns_failure():
    """Test raising and non-raising entry points."""
    with pytest.raises(InvalidFootprint):
        build_roof([(0, 0), (1, 1)])
    failure = solve_roof([(0, 0), (1, 1)])
    assert isinstance(failure, RoofFailure)
    assert failure.kind == "InvalidFootprint"
    assert failure.wing_indices == []


def test_result_serializes_with_aliases():
    """Test JSON field names."""
    payload = _roof(RECT).model_dump(by_alias=True)
    assert set(payload) == {"eaves", "ridges", "hips", "valleys", "rakes", "faces"}
    assert {"edgeIndex", "planArea", "slopeArea"} <= set(payload["faces"][0])


def test_narrow_recess_is_bridged_by_the_eave():
    """An 800 mm recess under a 600 mm overhang gives a plain hipped roof."""
    notched = [(0, 0), (10000, 0), (10000, 6000), (5400, 6000), (5400, 3000), (4600, 3000), (4600, 6000), (0, 6000)]
    outcome = solve_roof(notched, overhang=600.0, default_pitch=30.0, plate_height=PLATE)

    assert isinstance(outcome, RoofResult)
    assert len(outcome.eaves) == 4
    assert len(outcome.ridges) == 1
    assert len(outcome.hips) == 4
    assert outcome.ridges[0].plan_length == pytest.approx(4000.0)
    assert outcome.summary()["plan_area"] == pytest.approx(11200.0 * 7200.0)
    # faces name the footprint edges they belong to
    assert {f.edge_index for f in outcome.faces} == {0, 1, 2, 7}


def test_shared_directive_baseline_lifts_every_line():
    """Test baseline height from the directives."""
    directives = [EdgeDirective(baseline_height=3000.0)] * 4
    result = _roof(RECT, directives, overhang=0.0)
    ridge = result.ridges[0]
    assert ridge.start.z == pytest.approx(3000.0 + 2500.0 * TAN30)
    assert all(e.start.z == pytest.approx(3000.0) for e in result.eaves)


def test_mixed_baselines_are_a_directive_failure():
    """Edges at different baseline heights cannot share one set of planes."""
    directives = [EdgeDirective(baseline_height=h) for h in (2700.0, 2700.0, 3000.0, 2700.0)]
    failure = solve_roof(RECT, directives, overhang=0.0)
    assert isinstance(failure, RoofFailure)
    assert failure.kind == "InvalidDirective"


def test_invalid_options_raise_configuration_error():
    """Test option validation in build_roof and RoofBuilder."""
    with pytest.raises(ConfigurationError):
        build_roof(RECT, overhang="x")
    with pytest.raises(ConfigurationError):
        RoofBuilder(plate_height=float("inf"))
    assert RoofBuilder(overhang="250").overhang == 250.0
