import math
import polyline
from .coordinates import Coordinate

EARTH_RADIUS_METERS = 6371000
POLYLINE_PRECISION = 5


class PolylineDecodeError(ValueError):
    """Raised when an encoded polyline string is malformed"""


def distance(a: Coordinate, b: Coordinate) -> float:
    """Haversine great-circle distance between two coordinates, in meters."""
    phi1, phi2 = math.radians(a.lat), math.radians(b.lat)
    d_phi = math.radians(b.lat - a.lat)
    d_lambda = math.radians(b.lng - a.lng)
    h = math.sin(d_phi/2)**2 + math.cos(phi1)*math.cos(phi2)*math.sin(d_lambda/2)**2
    c = 2 * math.atan2(math.sqrt(h), math.sqrt(1-h))
    return EARTH_RADIUS_METERS * c


def bearing(a: Coordinate, b: Coordinate) -> float:
    """Initial bearing from a to b in degrees [0, 360), 0 being north."""
    if a == b:
        return 0.0

    phi1, phi2 = math.radians(a.lat), math.radians(b.lat)
    d_lambda = math.radians(b.lng - a.lng)

    y = math.sin(d_lambda) * math.cos(phi2)
    x = math.cos(phi1)*math.sin(phi2) - math.sin(phi1)*math.cos(phi2)*math.cos(d_lambda)
    return (math.degrees(math.atan2(y, x)) + 360) % 360


def _validate_encoded_polyline(encoded: str) -> None:
    terminated_chunks = 0
    for position, char in enumerate(encoded):
        value = ord(char) - 63
        if value < 0 or value > 63:
            raise PolylineDecodeError(f"Invalid character {char!r} at position {position}")
        if value < 0x20:
            terminated_chunks += 1

    if ord(encoded[-1]) - 63 >= 0x20:
        raise PolylineDecodeError("Encoded polyline ends with an incomplete chunk")
    if terminated_chunks % 2:
        raise PolylineDecodeError("Encoded polyline is missing a longitude value")


def decode_polyline(encoded: str) -> list[Coordinate]:
    """
    Decode an encoded polyline (precision 1e5) into coordinates.

    Raises:
        PolylineDecodeError: If the string is truncated or contains invalid characters.
    """
    if not encoded:
        return []

    _validate_encoded_polyline(encoded)
    try:
        decoded = polyline.decode(encoded, POLYLINE_PRECISION)
        return [Coordinate(latitude, longitude) for latitude, longitude in decoded]
    except (IndexError, ValueError) as e:
        raise PolylineDecodeError(f"Could not decode polyline: {e}") from e


def route_distance(path: list[Coordinate]) -> float:
    total_distance = 0.0
    for idx in range(1, len(path)):
        total_distance += distance(path[idx-1], path[idx])
    return total_distance


def interpolate_along_path(path: list[Coordinate], target_distance: float) -> Coordinate | None:
    """
    Find the position reached after travelling target_distance meters along path.

    Lat/lng are interpolated linearly within the bracketing segment, which is an
    approximation that holds at sub-segment scale.
    """
    if not path:
        return None
    if target_distance <= 0:
        return path[0]

    accumulated_distance = 0.0
    for idx in range(len(path) - 1):
        start, end = path[idx], path[idx + 1]
        segment_distance = distance(start, end)

        if accumulated_distance + segment_distance >= target_distance:
            if segment_distance == 0:
                return start
            fraction = (target_distance - accumulated_distance) / segment_distance
            return Coordinate(
                lat=start.lat + (end.lat - start.lat) * fraction,
                lng=start.lng + (end.lng - start.lng) * fraction,
            )

        accumulated_distance += segment_distance

    return path[-1]


def nearest_point_on_path(point: Coordinate, path: list[Coordinate]) -> tuple[int, float]:
    """Return (index, distance) of the path vertex closest to point."""
    closest_index = 0
    min_distance = math.inf

    for idx, vertex in enumerate(path):
        vertex_distance = distance(point, vertex)
        if vertex_distance < min_distance:
            min_distance = vertex_distance
            closest_index = idx

    return closest_index, min_distance


def snap_to_path(point: Coordinate, path: list[Coordinate], tolerance: float = 50.0) -> Coordinate:
    """Snap point to the nearest path vertex if it lies within tolerance meters."""
    if not path:
        return point

    idx, vertex_distance = nearest_point_on_path(point, path)
    if vertex_distance < tolerance:
        return path[idx]
    return point


def split_by_distance(path: list[Coordinate], interval_meters: float) -> list[Coordinate]:
    """Thin a path down to vertices spaced at least interval_meters apart."""
    if not path:
        return []

    kept = [path[0]]
    accumulated_distance = 0.0
    last_kept_distance = 0.0

    for idx in range(len(path) - 1):
        accumulated_distance += distance(path[idx], path[idx + 1])
        if accumulated_distance - last_kept_distance >= interval_meters:
            kept.append(path[idx + 1])
            last_kept_distance = accumulated_distance

    # Always end on the final vertex
    if kept[-1] is not path[-1]:
        kept.append(path[-1])

    return kept
