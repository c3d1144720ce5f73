import pytest
import requests
from dataclasses import replace
from datetime import timedelta
from drive_forecast.app.coordinates import Location
from drive_forecast.app.directions import (
    GoogleDirectionsProvider,
    GoogleGeocoder,
    RouteProviderError,
    build_route,
    parse_directions_response,
)
from drive_forecast.app.geo import PolylineDecodeError
from fakes import BASE_TIME, BERGEN, OSLO, make_directions_result, make_session

DIRECTIONS_RESPONSE = {
    "status": "OK",
    "routes": [
        {
            "overview_polyline": {"points": "_p~iF~ps|U_ulLnnqC_mqNvxq`@"},
            "bounds": {
                "northeast": {"lat": 43.252, "lng": -120.2},
                "southwest": {"lat": 38.5, "lng": -126.453},
            },
            "legs": [
                {
                    "distance": {"text": "720 km", "value": 720000},
                    "duration": {"text": "8 hours", "value": 28800},
                    "duration_in_traffic": {"text": "9 hours", "value": 32400},
                    "start_address": "Start",
                    "end_address": "End",
                    "start_location": {"lat": 38.5, "lng": -120.2},
                    "end_location": {"lat": 43.252, "lng": -126.453},
                }
            ],
        }
    ],
}


# Parse directions response
def test_parses_route():
    result = parse_directions_response(DIRECTIONS_RESPONSE)

    assert result.status == "OK"
    assert result.encoded_polyline == "_p~iF~ps|U_ulLnnqC_mqNvxq`@"
    assert result.distance_meters == 720000
    assert result.duration_seconds == 32400
    assert result.start_address == "Start"
    assert result.bounds.northeast.lat == 43.252


def test_non_ok_status():
    with pytest.raises(RouteProviderError) as exc_info:
        parse_directions_response({"status": "ZERO_RESULTS", "routes": []})
    assert exc_info.value.status == "ZERO_RESULTS"


def test_missing_fields():
    with pytest.raises(RouteProviderError) as exc_info:
        parse_directions_response({"status": "OK", "routes": [{"legs": []}]})
    assert exc_info.value.status == "INVALID_RESPONSE"


# Google directions provider
def test_requires_api_key():
    with pytest.raises(ValueError):
        GoogleDirectionsProvider("")


def test_compute_route():
    session = make_session(DIRECTIONS_RESPONSE)
    result = GoogleDirectionsProvider("test-key", session=session).compute_route(OSLO, BERGEN, BASE_TIME)

    _, kwargs = session.get.call_args
    assert kwargs["params"]["departure_time"] == int(BASE_TIME.timestamp())
    assert kwargs["params"]["origin"] == "59.9139,10.7522"
    assert kwargs["params"]["mode"] == "driving"
    assert result.duration_seconds == 32400


def test_transport_error():
    session = make_session()
    session.get.side_effect = requests.ConnectionError("unreachable")

    with pytest.raises(RouteProviderError) as exc_info:
        GoogleDirectionsProvider("test-key", session=session).compute_route(OSLO, BERGEN, BASE_TIME)
    assert exc_info.value.status == "TRANSPORT_ERROR"


def test_http_error():
    session = make_session({"error": "denied"}, status_code=500)
    with pytest.raises(RouteProviderError):
        GoogleDirectionsProvider("test-key", session=session).compute_route(OSLO, BERGEN, BASE_TIME)


# Google geocoder
def test_returns_formatted_address():
    session = make_session({"status": "OK", "results": [{"formatted_address": "Karl Johans gate 1, Oslo"}]})
    assert GoogleGeocoder("test-key", session=session).reverse_geocode(OSLO) == "Karl Johans gate 1, Oslo"


def test_falls_back_to_coordinates():
    session = make_session({"status": "ZERO_RESULTS", "results": []})
    assert GoogleGeocoder("test-key", session=session).reverse_geocode(OSLO) == "59.9139, 10.7522"


def test_falls_back_on_transport_error():
    session = make_session()
    session.get.side_effect = requests.Timeout("slow")
    assert GoogleGeocoder("test-key", session=session).reverse_geocode(BERGEN) == "60.3913, 5.3221"


# Build route
def test_builds_sampled_route():
    result = make_directions_result(duration_seconds=7200)
    route = build_route(result, Location(OSLO), Location(BERGEN, "Bergen"), BASE_TIME)

    assert route.origin.name == "Oslo, Norge"
    assert route.destination.name == "Bergen"
    assert route.total_duration == 7200
    assert len(route.polyline) == 6
    assert len(route.segments) == 4
    assert route.segments[-1].estimated_arrival_time == BASE_TIME + timedelta(minutes=90)


def test_malformed_polyline():
    result = parse_directions_response(DIRECTIONS_RESPONSE)
    broken = replace(result, encoded_polyline="_p~iF~ps|U_ulL")

    with pytest.raises(PolylineDecodeError):
        build_route(broken, Location(OSLO), Location(BERGEN), BASE_TIME)
