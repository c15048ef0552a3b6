"""
Coordinate reconciliation.

Every place lies within MAX_DISTANCE_KM of the configured reference point.
Anything outside that circle is treated as corrupted data (shifted decimal
points, swapped axes, never-set zero coordinates) and repaired by trying a
fixed list of candidate corrections, cheapest and most common first.
"""

import logging
import math
import random
from numbers import Real
from typing import Any, Iterator, Mapping, Optional, Tuple

from placemap.core.config import settings
from placemap.core.errors import GeometryShapeError
from placemap.core.logger import logs
from placemap.models.coordinates_model import (
    AxisCorrection,
    GeographicPoint,
    ReconcileOutcome,
    ReconcileReport,
)
from placemap.models.places_model import PlaceRecord, PointGeometry

EARTH_RADIUS_KM = 6371.0
REFERENCE_POINT = GeographicPoint(
    longitude=settings.REFERENCE_LONGITUDE, latitude=settings.REFERENCE_LATITUDE
)
MAX_DISTANCE_KM = settings.MAX_DISTANCE_KM

# Max offset per axis for points parked near the reference (~0.5 km)
JITTER_DEGREES = 0.005

# (longitude factor, latitude factor) pairs for compound decimal shifts
COMPOUND_FACTORS = (
    (0.1, 1.0),
    (1.0, 10.0),
    (1.0, 0.1),
    (10.0, 1.0),
    (0.1, 10.0),
    (10.0, 0.1),
)

_rng = random.Random()


def distance_km(a: GeographicPoint, b: GeographicPoint) -> float:
    """Great-circle distance in kilometres (haversine)."""
    lat1 = math.radians(a.latitude)
    lat2 = math.radians(b.latitude)
    d_lat = lat2 - lat1
    d_lon = math.radians(b.longitude - a.longitude)

    h = math.sin(d_lat / 2) ** 2 + math.cos(lat1) * math.cos(lat2) * math.sin(d_lon / 2) ** 2
    # rounding can push h a hair outside [0, 1]
    h = min(1.0, max(0.0, h))
    return 2 * EARTH_RADIUS_KM * math.atan2(math.sqrt(h), math.sqrt(1 - h))


def is_within_allowed_area(point: GeographicPoint) -> bool:
    lon, lat = point.longitude, point.latitude
    if not (math.isfinite(lon) and math.isfinite(lat)):
        return False
    if not (-180.0 <= lon <= 180.0 and -90.0 <= lat <= 90.0):
        return False
    return distance_km(point, REFERENCE_POINT) <= MAX_DISTANCE_KM


def near_reference(rng: Optional[random.Random] = None) -> GeographicPoint:
    """A point close to the reference, jittered so parked places don't stack."""
    rng = rng or _rng
    return GeographicPoint(
        longitude=REFERENCE_POINT.longitude + rng.uniform(-JITTER_DEGREES, JITTER_DEGREES),
        latitude=REFERENCE_POINT.latitude + rng.uniform(-JITTER_DEGREES, JITTER_DEGREES),
    )


def _axis_candidates(point: GeographicPoint) -> Iterator[Tuple[AxisCorrection, GeographicPoint]]:
    lon, lat = point.longitude, point.latitude
    yield AxisCorrection.LONGITUDE_DECIMAL_SHIFT, GeographicPoint(longitude=lon / 10, latitude=lat)
    yield AxisCorrection.LATITUDE_DECIMAL_SHIFT, GeographicPoint(longitude=lon, latitude=lat * 10)
    yield AxisCorrection.SWAPPED_AXES, GeographicPoint(longitude=lat, latitude=lon)


def _compound_candidates(point: GeographicPoint) -> Iterator[GeographicPoint]:
    for lon_factor, lat_factor in COMPOUND_FACTORS:
        yield GeographicPoint(
            longitude=point.longitude * lon_factor,
            latitude=point.latitude * lat_factor,
        )


def _as_point(value: Any) -> GeographicPoint:
    if isinstance(value, GeographicPoint):
        return value
    try:
        lon, lat = value
    except (TypeError, ValueError):
        raise GeometryShapeError(f"Expected a point or a [longitude, latitude] pair, got {value!r}")
    if not all(isinstance(v, Real) and not isinstance(v, bool) for v in (lon, lat)):
        raise GeometryShapeError(f"Coordinates must be numbers, got {value!r}")
    return GeographicPoint(longitude=float(lon), latitude=float(lat))


def reconcile_with_report(point, rng: Optional[random.Random] = None) -> ReconcileReport:
    """
    Validate a point and repair it if possible.

    Never raises for any numeric input: the caller always gets a drawable
    point back, together with the branch that produced it.
    """
    point = _as_point(point)

    if point.longitude == 0 and point.latitude == 0:
        fixed = near_reference(rng)
        logs.log(logging.DEBUG, f"Zero coordinates replaced with {format_coordinates(fixed)}")
        return ReconcileReport(point=fixed, original=point, outcome=ReconcileOutcome.CORRECTED_ZERO)

    if is_within_allowed_area(point):
        return ReconcileReport(point=point, original=point, outcome=ReconcileOutcome.UNCHANGED)

    for kind, candidate in _axis_candidates(point):
        if is_within_allowed_area(candidate):
            logs.log(
                logging.DEBUG,
                f"Coordinates {format_coordinates(point)} corrected to {format_coordinates(candidate)}",
                extra={"correction": kind.value},
            )
            return ReconcileReport(
                point=candidate,
                original=point,
                outcome=ReconcileOutcome.CORRECTED_AXIS,
                axis_correction=kind,
            )

    for candidate in _compound_candidates(point):
        if is_within_allowed_area(candidate):
            logs.log(
                logging.DEBUG,
                f"Coordinates {format_coordinates(point)} corrected to {format_coordinates(candidate)}",
                extra={"correction": "compound"},
            )
            return ReconcileReport(
                point=candidate, original=point, outcome=ReconcileOutcome.CORRECTED_COMPOUND
            )

    fixed = near_reference(rng)
    logs.log(
        logging.WARNING,
        f"Coordinates {format_coordinates(point)} could not be corrected, parked at {format_coordinates(fixed)}",
    )
    return ReconcileReport(point=fixed, original=point, outcome=ReconcileOutcome.UNRECOVERABLE)


def reconcile(point, rng: Optional[random.Random] = None) -> GeographicPoint:
    return reconcile_with_report(point, rng).point


def reconcile_geometry(
    geometry: Mapping[str, Any], rng: Optional[random.Random] = None
) -> Tuple[dict, ReconcileReport]:
    """Reconcile a raw GeoJSON Point mapping. Raises GeometryShapeError on a bad shape."""
    if not isinstance(geometry, Mapping):
        raise GeometryShapeError(f"Geometry must be a mapping, got {type(geometry).__name__}")
    if geometry.get("type") != "Point":
        raise GeometryShapeError(f"Only Point geometries are supported, got {geometry.get('type')!r}")

    coordinates = geometry.get("coordinates")
    if isinstance(coordinates, (str, bytes)) or not hasattr(coordinates, "__len__") or len(coordinates) != 2:
        raise GeometryShapeError(f"Point coordinates must be [longitude, latitude], got {coordinates!r}")

    report = reconcile_with_report(coordinates, rng)
    return {"type": "Point", "coordinates": report.point.as_coordinates()}, report


def reconcile_place(record: PlaceRecord, rng: Optional[random.Random] = None) -> Tuple[PlaceRecord, ReconcileReport]:
    """
    Reconcile the geometry of a place; attributes are left untouched.
    A record whose stored geometry was unreadable is always unrecoverable.
    """
    if record.geometry_unusable:
        fixed = near_reference(rng)
        report = ReconcileReport(point=fixed, original=record.point, outcome=ReconcileOutcome.UNRECOVERABLE)
        return record.model_copy(
            update={"geometry": PointGeometry.from_point(fixed), "geometry_unusable": False}
        ), report

    report = reconcile_with_report(record.point, rng)
    if not report.changed:
        return record, report
    return record.model_copy(update={"geometry": PointGeometry.from_point(report.point)}), report


def format_coordinates(point: GeographicPoint, precision: int = 5) -> str:
    return f"[{point.longitude:.{precision}f}, {point.latitude:.{precision}f}]"
