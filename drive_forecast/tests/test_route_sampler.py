import math
import pytest
from datetime import timedelta
from drive_forecast.app.coordinates import Coordinate
from drive_forecast.app.geo import distance
from drive_forecast.app.route_sampler import SAMPLE_INTERVAL, sample
from fakes import BASE_TIME, ROUTE_PATH

PATH = [Coordinate(*point) for point in ROUTE_PATH]


@pytest.mark.parametrize("duration_seconds", [0, 600, 1800, 1801, 5400, 7200, 19000])
def test_point_count(duration_seconds):
    segments = sample(PATH, duration_seconds, BASE_TIME)
    assert len(segments) == max(2, math.ceil(duration_seconds * 1000 / 1800000))


def test_empty_polyline():
    assert sample([], 3600, BASE_TIME) == []


def test_arrival_times_every_thirty_minutes():
    segments = sample(PATH, 7200, BASE_TIME)
    assert [s.estimated_arrival_time for s in segments] == [BASE_TIME + i * SAMPLE_INTERVAL for i in range(4)]
    assert SAMPLE_INTERVAL == timedelta(minutes=30)


def test_monotonic():
    segments = sample(PATH, 19000, BASE_TIME)
    for previous, current in zip(segments, segments[1:]):
        assert current.estimated_arrival_time >= previous.estimated_arrival_time
        assert current.distance_from_start >= previous.distance_from_start


def test_starts_and_ends_on_the_polyline_ends():
    segments = sample(PATH, 7200, BASE_TIME)
    assert segments[0].location.coordinate == PATH[0]
    assert segments[-1].location.coordinate == PATH[-1]
    assert segments[0].distance_from_start == 0


def test_distance_accumulates_between_sampled_vertices():
    """With 3 points over 6 vertices the middle point is vertex floor(0.5 * 5) = 2"""
    segments = sample(PATH, 5400, BASE_TIME)
    assert segments[1].location.coordinate == PATH[2]
    assert segments[1].distance_from_start == pytest.approx(distance(PATH[0], PATH[2]))
    assert segments[2].distance_from_start == pytest.approx(distance(PATH[0], PATH[2]) + distance(PATH[2], PATH[5]))


def test_important_points():
    segments = sample(PATH, 7200, BASE_TIME)
    assert [s.is_important for s in segments] == [True, False, True, True]

    segments = sample(PATH, 9000, BASE_TIME)
    assert [s.is_important for s in segments] == [True, False, True, False, True]


def test_single_vertex_polyline():
    segments = sample([PATH[0]], 600, BASE_TIME)
    assert len(segments) == 2
    assert all(s.location.coordinate == PATH[0] for s in segments)
    assert segments[1].distance_from_start == 0


def test_weather_left_empty():
    segments = sample(PATH, 3600, BASE_TIME)
    assert all(s.weather is None and not s.is_hazardous for s in segments)
