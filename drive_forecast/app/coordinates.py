from dataclasses import dataclass, field, replace
from datetime import datetime
from .forecast import WeatherReading
from .hazards import HazardKind


@dataclass(frozen=True)
class Coordinate:
    """A point in decimal degrees."""
    lat: float
    lng: float

    def __post_init__(self):
        if not -90 <= self.lat <= 90:
            raise ValueError(f"Latitude must be between -90 and 90, got {self.lat}")
        if not -180 <= self.lng <= 180:
            raise ValueError(f"Longitude must be between -180 and 180, got {self.lng}")

    def to_str(self):
        return f"{self.lat},{self.lng}"


@dataclass(frozen=True)
class Location:
    coordinate: Coordinate
    name: str | None = None
    place_id: str | None = None

    def with_name(self, name: str) -> "Location":
        return replace(self, name=name)


@dataclass(frozen=True)
class Bounds:
    northeast: Coordinate
    southwest: Coordinate


@dataclass
class RouteSegment:
    """A weather point: one sampled location and arrival time along a route."""
    location: Location
    distance_from_start: float
    estimated_arrival_time: datetime
    weather: WeatherReading | None = None
    elevation: float | None = None
    is_important: bool = False
    is_hazardous: bool = False
    hazard_kind: HazardKind | None = None


@dataclass
class RouteModel:
    origin: Location
    destination: Location
    departure_time: datetime
    polyline: list[Coordinate]
    segments: list[RouteSegment] = field(default_factory=list)
    total_distance: float = 0
    total_duration: float = 0
    bounds: Bounds | None = None
    encoded_polyline: str = ""
