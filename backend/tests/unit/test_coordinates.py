"""Tests for coordinate reconciliation."""

import math
import random

import pytest

from placemap.core.errors import GeometryShapeError
from placemap.models.coordinates_model import AxisCorrection, GeographicPoint, ReconcileOutcome
from placemap.services.coordinates import (
    MAX_DISTANCE_KM,
    REFERENCE_POINT,
    distance_km,
    format_coordinates,
    is_within_allowed_area,
    reconcile,
    reconcile_geometry,
    reconcile_place,
    reconcile_with_report,
)

GOOD = GeographicPoint(longitude=11.6, latitude=46.7)
FAR_AWAY = GeographicPoint(longitude=18.0, latitude=48.5)  # ~530 km, no decimal-shift relation


def pt(lon, lat):
    return GeographicPoint(longitude=lon, latitude=lat)


class TestDistance:
    def test_reference_to_itself_is_zero(self):
        assert distance_km(REFERENCE_POINT, REFERENCE_POINT) == 0

    def test_symmetric(self):
        a, b = pt(11.566, 46.7165), pt(11.66, 46.72)
        assert distance_km(a, b) == distance_km(b, a)

    def test_one_degree_of_latitude(self):
        assert distance_km(pt(11.0, 46.0), pt(11.0, 47.0)) == pytest.approx(6371 * math.pi / 180, rel=1e-9)

    def test_antipodes_do_not_blow_up(self):
        assert distance_km(pt(0.0, 0.0), pt(180.0, 0.0)) == pytest.approx(math.pi * 6371)


class TestAllowedArea:
    def test_reference_is_inside(self):
        assert is_within_allowed_area(REFERENCE_POINT)

    def test_nearby_point_is_inside(self):
        assert is_within_allowed_area(pt(11.66, 46.72))

    def test_far_point_is_outside(self):
        assert not is_within_allowed_area(FAR_AWAY)

    def test_out_of_range_values_are_outside(self):
        assert not is_within_allowed_area(pt(11.566, 467.165))
        assert not is_within_allowed_area(pt(float("nan"), 46.7))


class TestReconcile:
    def test_valid_point_is_unchanged(self):
        report = reconcile_with_report(GOOD)
        assert report.outcome == ReconcileOutcome.UNCHANGED
        assert report.point == GOOD
        assert not report.changed

    def test_zero_point_is_parked_near_reference(self):
        for seed in range(20):
            report = reconcile_with_report(pt(0.0, 0.0), rng=random.Random(seed))
            assert report.outcome == ReconcileOutcome.CORRECTED_ZERO
            assert report.point != pt(0.0, 0.0)
            assert distance_km(report.point, REFERENCE_POINT) <= MAX_DISTANCE_KM
            assert distance_km(report.point, REFERENCE_POINT) <= 1.0

    def test_zero_points_get_distinct_positions(self):
        rng = random.Random(7)
        assert reconcile(pt(0.0, 0.0), rng) != reconcile(pt(0.0, 0.0), rng)

    def test_longitude_missing_decimal_point(self):
        report = reconcile_with_report(pt(116.60, 46.72))
        assert report.outcome == ReconcileOutcome.CORRECTED_AXIS
        assert report.axis_correction == AxisCorrection.LONGITUDE_DECIMAL_SHIFT
        assert report.point.longitude == pytest.approx(11.66)
        assert report.point.latitude == 46.72

    def test_latitude_missing_decimal_point(self):
        report = reconcile_with_report(pt(11.66, 4.672))
        assert report.axis_correction == AxisCorrection.LATITUDE_DECIMAL_SHIFT
        assert report.point.longitude == 11.66
        assert report.point.latitude == pytest.approx(46.72)

    def test_swapped_axes(self):
        report = reconcile_with_report(pt(46.7, 11.6))
        assert report.axis_correction == AxisCorrection.SWAPPED_AXES
        assert report.point == GOOD

    @pytest.mark.parametrize("corrupt", [
        lambda p: pt(p.longitude / 10, p.latitude),
        lambda p: pt(p.longitude, p.latitude * 10),
        lambda p: pt(p.latitude, p.longitude),
        lambda p: pt(p.longitude * 10, p.latitude),
        lambda p: pt(p.longitude, p.latitude / 10),
        lambda p: pt(p.longitude * 10, p.latitude / 10),
        lambda p: pt(p.longitude / 10, p.latitude * 10),
    ])
    def test_decimal_shift_corruptions_are_recovered(self, corrupt):
        broken = corrupt(GOOD)
        fixed = reconcile(broken)
        assert is_within_allowed_area(fixed)
        assert fixed.longitude == pytest.approx(GOOD.longitude)
        assert fixed.latitude == pytest.approx(GOOD.latitude)
        assert reconcile(fixed) == fixed

    def test_compound_shift_is_tagged(self):
        report = reconcile_with_report(pt(1.16, 467.0))
        assert report.outcome == ReconcileOutcome.CORRECTED_COMPOUND
        assert report.axis_correction is None

    def test_far_point_is_unrecoverable(self):
        report = reconcile_with_report(FAR_AWAY, rng=random.Random(1))
        assert report.outcome == ReconcileOutcome.UNRECOVERABLE
        assert report.needs_manual_correction
        assert report.original == FAR_AWAY
        assert distance_km(report.point, REFERENCE_POINT) <= MAX_DISTANCE_KM

    def test_unrecoverable_result_is_stable(self):
        fallback = reconcile(FAR_AWAY)
        assert reconcile(fallback) == fallback

    def test_nan_never_raises(self):
        report = reconcile_with_report(pt(float("nan"), float("nan")))
        assert report.outcome == ReconcileOutcome.UNRECOVERABLE

    def test_accepts_coordinate_pairs(self):
        assert reconcile([116.6, 46.72]).longitude == pytest.approx(11.66)


class TestReconcileGeometry:
    def test_point_geometry(self):
        geometry, report = reconcile_geometry({"type": "Point", "coordinates": [116.6, 46.72]})
        assert geometry["type"] == "Point"
        assert geometry["coordinates"][0] == pytest.approx(11.66)
        assert report.outcome == ReconcileOutcome.CORRECTED_AXIS

    @pytest.mark.parametrize("geometry", [
        {"type": "LineString", "coordinates": [[11.6, 46.7], [11.7, 46.8]]},
        {"type": "Point", "coordinates": [11.6, 46.7, 500.0]},
        {"type": "Point", "coordinates": ["11.6", "46.7"]},
        {"type": "Point"},
        [11.6, 46.7],
    ])
    def test_malformed_shape_raises(self, geometry):
        with pytest.raises(GeometryShapeError):
            reconcile_geometry(geometry)

    def test_place_attributes_are_untouched(self, place_factory):
        place = place_factory(lon=116.566, lat=46.7157, Telefonnummer="0472 123")
        fixed, report = reconcile_place(place)
        assert report.changed
        assert fixed.properties == place.properties
        assert fixed.point.longitude == pytest.approx(11.6566)

    def test_valid_place_is_returned_as_is(self, place_factory):
        place = place_factory()
        fixed, _ = reconcile_place(place)
        assert fixed is place

    def test_flagged_place_is_unrecoverable(self, place_factory):
        place = place_factory(lon=0, lat=0).model_copy(update={"geometry_unusable": True})
        fixed, report = reconcile_place(place, random.Random(1))
        assert report.outcome == ReconcileOutcome.UNRECOVERABLE
        assert not fixed.geometry_unusable
        assert is_within_allowed_area(fixed.point)


def test_format_coordinates():
    assert format_coordinates(pt(11.566, 46.7165)) == "[11.56600, 46.71650]"
    assert format_coordinates(pt(11.566, 46.7165), precision=2) == "[11.57, 46.72]"
