import math
from datetime import datetime, timedelta
from .coordinates import Coordinate, Location, RouteSegment
from .geo import distance

SAMPLE_INTERVAL = timedelta(minutes=30)


def _polyline_index(i: int, num_points: int, polyline_length: int) -> int:
    fraction = i / (num_points - 1)
    return math.floor(fraction * (polyline_length - 1))


def sample(polyline: list[Coordinate], total_duration_seconds: float, departure_time: datetime) -> list[RouteSegment]:
    """
    Pick weather sampling points along a route, one every 30 minutes of travel.

    Speed is assumed uniform over the whole route, so arrival times grow linearly
    while points are spread evenly over the polyline's vertex indices. The
    distance of each point is accumulated from the previously sampled vertex,
    not from the full geometry between them.
    Always returns at least the start and end point for a non-empty polyline.
    """
    if not polyline:
        return []

    interval_ms = SAMPLE_INTERVAL.total_seconds() * 1000
    num_points = max(2, math.ceil(total_duration_seconds * 1000 / interval_ms))

    segments = []
    accumulated_distance = 0.0
    previous = None

    for i in range(num_points):
        vertex = polyline[_polyline_index(i, num_points, len(polyline))]
        if previous is not None:
            accumulated_distance += distance(previous, vertex)

        segments.append(RouteSegment(
            location=Location(vertex),
            distance_from_start=accumulated_distance,
            estimated_arrival_time=departure_time + i * SAMPLE_INTERVAL,
            is_important=i == 0 or i == num_points - 1 or i % 2 == 0,
        ))
        previous = vertex

    return segments
