import logging
import requests
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from .coordinates import Bounds, Coordinate, Location, RouteModel
from .geo import decode_polyline
from .route_sampler import sample

logger = logging.getLogger(__name__)

REQUEST_TIMEOUT_SECONDS = 10


class RouteProviderError(Exception):
    """Raised when the route provider can't produce a route for a query"""
    def __init__(self, message: str, status: str = "ERROR"):
        self.message = message
        self.status = status
        super().__init__(self.message)


@dataclass(frozen=True)
class DirectionsResult:
    status: str
    encoded_polyline: str
    distance_meters: float
    duration_seconds: float
    start_address: str
    end_address: str
    start_location: Coordinate
    end_location: Coordinate
    bounds: Bounds | None = None


def _to_coordinate(lat_lng: dict) -> Coordinate:
    return Coordinate(lat_lng["lat"], lat_lng["lng"])


def parse_directions_response(data: dict) -> DirectionsResult:
    """Normalize a Google Directions JSON response. Raises RouteProviderError unless status is OK."""
    status = data.get("status", "UNKNOWN")
    if status != "OK" or not data.get("routes"):
        raise RouteProviderError(f"Route calculation failed: {status}", status)

    try:
        route = data["routes"][0]
        leg = route["legs"][0]

        # Use duration_in_traffic if available, otherwise fall back to duration.
        duration = leg.get("duration_in_traffic") or leg["duration"]

        bounds = None
        if route.get("bounds"):
            bounds = Bounds(_to_coordinate(route["bounds"]["northeast"]), _to_coordinate(route["bounds"]["southwest"]))

        return DirectionsResult(
            status=status,
            encoded_polyline=route["overview_polyline"]["points"],
            distance_meters=leg["distance"]["value"],
            duration_seconds=duration["value"],
            start_address=leg.get("start_address", ""),
            end_address=leg.get("end_address", ""),
            start_location=_to_coordinate(leg["start_location"]),
            end_location=_to_coordinate(leg["end_location"]),
            bounds=bounds,
        )
    except (KeyError, IndexError, TypeError, ValueError) as e:
        raise RouteProviderError(f"Malformed directions response: {e}", "INVALID_RESPONSE") from e


class RouteProvider(ABC):
    @abstractmethod
    def compute_route(self, origin: Coordinate, destination: Coordinate, departure_time: datetime) -> DirectionsResult:
        """Calculate a driving route. Raises RouteProviderError on failure."""


class Geocoder(ABC):
    @abstractmethod
    def reverse_geocode(self, coordinate: Coordinate) -> str:
        """Human readable address for a coordinate. Never raises."""


def fallback_name(coordinate: Coordinate) -> str:
    return f"{coordinate.lat:.4f}, {coordinate.lng:.4f}"


class GoogleDirectionsProvider(RouteProvider):
    DIRECTIONS_URL = "https://maps.googleapis.com/maps/api/directions/json"

    def __init__(self, api_key: str, session: requests.Session | None = None, language: str = "no", region: str = "no"):
        if not api_key:
            raise ValueError("A Google Maps API key is required")
        self.api_key = api_key
        self.session = session or requests.Session()
        self.language = language
        self.region = region

    def compute_route(self, origin: Coordinate, destination: Coordinate, departure_time: datetime) -> DirectionsResult:
        params = {
            "origin": origin.to_str(),
            "destination": destination.to_str(),
            "mode": "driving",
            # Google's Directions API requires departure_time as a Unix timestamp.
            "departure_time": int(departure_time.timestamp()),
            "language": self.language,
            "region": self.region,
            "key": self.api_key,
        }
        try:
            response = self.session.get(self.DIRECTIONS_URL, params=params, timeout=REQUEST_TIMEOUT_SECONDS)
            response.raise_for_status()
            data = response.json()
        except requests.RequestException as e:
            logger.error(f"Network error calculating route for {departure_time.isoformat()}: {e}")
            raise RouteProviderError(f"Google Maps API error: {e}", "TRANSPORT_ERROR") from e
        except ValueError as e:
            raise RouteProviderError(f"Invalid JSON from Google Maps API: {e}", "INVALID_RESPONSE") from e

        return parse_directions_response(data)


class GoogleGeocoder(Geocoder):
    GEOCODING_URL = "https://maps.googleapis.com/maps/api/geocode/json"

    def __init__(self, api_key: str, session: requests.Session | None = None, language: str = "no"):
        if not api_key:
            raise ValueError("A Google Maps API key is required")
        self.api_key = api_key
        self.session = session or requests.Session()
        self.language = language

    def reverse_geocode(self, coordinate: Coordinate) -> str:
        params = {
            "latlng": coordinate.to_str(),
            "language": self.language,
            "key": self.api_key,
        }
        try:
            response = self.session.get(self.GEOCODING_URL, params=params, timeout=REQUEST_TIMEOUT_SECONDS)
            response.raise_for_status()
            data = response.json()
            if data.get("status") == "OK" and data.get("results"):
                return data["results"][0]["formatted_address"]
            logger.debug(f"No address for {coordinate.to_str()}, status={data.get('status')}")
        except requests.RequestException as e:
            logger.warning(f"Reverse geocode error for {coordinate.to_str()}: {e}")
        except (KeyError, IndexError, ValueError) as e:
            logger.warning(f"Error parsing reverse geocode response for {coordinate.to_str()}: {e}")

        return fallback_name(coordinate)


def build_route(result: DirectionsResult, origin: Location, destination: Location, departure_time: datetime) -> RouteModel:
    """Decode the route geometry and lay out weather sampling points along it."""
    path = decode_polyline(result.encoded_polyline)

    return RouteModel(
        origin=Location(result.start_location, origin.name or result.start_address, origin.place_id),
        destination=Location(result.end_location, destination.name or result.end_address, destination.place_id),
        departure_time=departure_time,
        polyline=path,
        segments=sample(path, result.duration_seconds, departure_time),
        total_distance=result.distance_meters,
        total_duration=result.duration_seconds,
        bounds=result.bounds,
        encoded_polyline=result.encoded_polyline,
    )
