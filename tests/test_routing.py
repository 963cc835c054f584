import pytest

from conftest import make_leg, make_route
from core.config import settings
from schemas.geo import Coordinates, LooseCoordinates
from services.routing import (
    format_distance,
    format_duration,
    normalize_coordinates,
    summarize_route,
)


@pytest.mark.parametrize("meters, expected", [(0, "0 m"), (850, "850 m"), (999, "999 m"), (1000, "1.0 km"), (12345, "12.3 km")])
def test_format_distance(meters, expected):
    assert format_distance(meters) == expected


@pytest.mark.parametrize("seconds, expected", [(0, "0 min"), (1500, "25 min"), (3600, "1h 0min"), (3900, "1h 5min")])
def test_format_duration(seconds, expected):
    assert format_duration(seconds) == expected


def test_summary_adds_up_every_leg():
    route = make_route(make_leg(1200, 300, traffic=360), make_leg(3400, 600))

    summary = summarize_route(route)

    assert summary["distance_meters"] == 4600
    assert summary["duration_seconds"] == 900
    assert summary["duration_in_traffic_seconds"] == 960
    assert summary["distance_text"] == "4.6 km"
    assert summary["duration_text"] == "15 min"


def test_summary_of_route_without_legs():
    summary = summarize_route({"legs": []})
    assert summary["distance_meters"] == 0
    assert summary["duration_seconds"] == 0
    assert summary["distance_text"] == "0 m"


def test_valid_coordinates_are_kept():
    coords = normalize_coordinates({"latitude": 45.764, "longitude": 4.8357})
    assert coords == Coordinates(latitude=45.764, longitude=4.8357)


@pytest.mark.parametrize("value", [
    None,
    {},
    {"latitude": "abc", "longitude": 2.0},
    {"latitude": 95, "longitude": 2.0},
    LooseCoordinates(latitude=float("nan"), longitude=2.0),
])
def test_malformed_coordinates_fall_back_to_default(value, caplog):
    coords = normalize_coordinates(value)

    assert coords.latitude == settings.DEFAULT_LATITUDE
    assert coords.longitude == settings.DEFAULT_LONGITUDE
    assert "using default position" in caplog.text
