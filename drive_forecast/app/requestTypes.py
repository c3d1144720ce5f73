from pydantic import BaseModel, model_validator, field_validator, Field
from datetime import date, datetime, timezone
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError
import os
import re
from .coordinates import Coordinate, Location
from .optimization import generate_time_slots

MAX_SEARCH_SLOTS = 48


class LatLng(BaseModel):
    lat: float = Field(..., ge=-90, le=90)
    lng: float = Field(..., ge=-180, le=180)


class Place(BaseModel):
    coordinates: LatLng
    name: str|None = Field(None, max_length=500)
    placeId: str|None = Field(None, max_length=500)

    @field_validator('placeId')
    @classmethod
    def validate_place_id(cls, v):
        """Validate Google Place ID format if provided"""
        if v is not None:
            if not re.match(r'^[A-Za-z0-9_-]+$', v):
                raise ValueError("Invalid Place ID format")
            if len(v) < 10 or len(v) > 500:
                raise ValueError("Place ID length must be between 10 and 500 characters")
        return v

    @field_validator('name')
    @classmethod
    def validate_name(cls, v):
        """Validate name format if provided"""
        if v is not None:
            # Basic sanitization - no control characters
            if any(ord(char) < 32 for char in v):
                raise ValueError("Name contains invalid control characters")
        return v

    def to_location(self) -> Location:
        return Location(Coordinate(self.coordinates.lat, self.coordinates.lng), self.name, self.placeId)


class RouteWeatherRequest(BaseModel):
    origin: Place
    destination: Place
    departureTime: str|None = Field(None, max_length=50)

    @field_validator('departureTime')
    @classmethod
    def validate_departure_time_format(cls, v):
        """Validate departure time is a valid ISO format datetime string"""
        if v is not None:
            try:
                datetime.fromisoformat(v).astimezone(timezone.utc)
            except (ValueError, TypeError):
                raise ValueError("departureTime must be a valid ISO format datetime string")
        return v

    def departure_datetime(self) -> datetime|None:
        if self.departureTime is None:
            return None
        return datetime.fromisoformat(self.departureTime).astimezone(timezone.utc)


class OptimalTimeRequest(BaseModel):
    origin: Place
    destination: Place
    date: date
    startHour: int = Field(..., ge=0, le=23)
    endHour: int = Field(..., ge=0, le=23)
    interval: int = Field(60, ge=5, le=60)
    timezone: str = Field(default_factory=lambda: os.getenv("DEFAULT_TIMEZONE", "Europe/Oslo"), max_length=64)

    @field_validator('timezone')
    @classmethod
    def validate_timezone(cls, v):
        try:
            ZoneInfo(v)
        except (ZoneInfoNotFoundError, ValueError):
            raise ValueError(f"Unknown time zone: {v}")
        return v

    @model_validator(mode="after")
    def validate_window(self):
        # Limit the number of slots to keep a search from running for hours
        slots = generate_time_slots(self.date, self.startHour, self.endHour, self.interval)
        if len(slots) > MAX_SEARCH_SLOTS:
            raise ValueError(f"Time window contains {len(slots)} departure slots (maximum {MAX_SEARCH_SLOTS})")
        return self

    def tzinfo(self) -> ZoneInfo:
        return ZoneInfo(self.timezone)
