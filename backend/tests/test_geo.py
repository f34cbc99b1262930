from __future__ import annotations
import math
import pytest
from app.services.geo import EARTH_RADIUS_M, haversine_m, bounding_box, validate_coordinates


def _north_of(lat: float, meters: float) -> float:
    return lat + math.degrees(meters / EARTH_RADIUS_M)


def test_haversine_zero_and_symmetric():
    assert haversine_m(40.0, -3.7, 40.0, -3.7) == 0
    a = haversine_m(48.8566, 2.3522, 51.5074, -0.1278)
    b = haversine_m(51.5074, -0.1278, 48.8566, 2.3522)
    assert a == pytest.approx(b)


def test_haversine_paris_london():
    d = haversine_m(48.8566, 2.3522, 51.5074, -0.1278)
    assert 342_000 < d < 345_000


@pytest.mark.parametrize("meters", [100, 2000, 4999, 5001])
def test_haversine_along_meridian_is_exact(meters):
    assert haversine_m(10.0, 20.0, _north_of(10.0, meters), 20.0) == pytest.approx(meters, abs=1e-6)


@pytest.mark.parametrize("lat", [0.0, 45.0, 60.0, -70.0])
def test_bounding_box_covers_the_circle(lat):
    radius = 5000
    box = bounding_box(lat, 10.0, radius)
    lng_off = math.degrees(radius / (EARTH_RADIUS_M * math.cos(math.radians(lat))))
    assert box.contains(_north_of(lat, radius), 10.0)
    assert box.contains(_north_of(lat, -radius), 10.0)
    assert box.contains(lat, 10.0 + lng_off)
    assert box.contains(lat, 10.0 - lng_off)
    assert not box.contains(_north_of(lat, radius * 1.2), 10.0)


def test_bounding_box_near_pole_stays_finite():
    box = bounding_box(90.0, 0.0, 1000)
    assert math.isfinite(box.min_lng) and math.isfinite(box.max_lng)


def test_validate_coordinates():
    assert validate_coordinates(0, 0)
    assert validate_coordinates(-90, 180)
    assert not validate_coordinates(90.5, 0)
    assert not validate_coordinates(0, -181)
    assert not validate_coordinates(float("nan"), 0)
