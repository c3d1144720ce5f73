from dataclasses import dataclass
from enum import Enum


class HazardKind(str, Enum):
    FREEZING = "freezing"
    HEAVY_PRECIPITATION = "heavy_precipitation"
    HIGH_WIND = "high_wind"
    MOUNTAIN = "mountain"


@dataclass(frozen=True)
class HazardVerdict:
    is_hazardous: bool
    hazard_kind: HazardKind | None = None


NOT_HAZARDOUS = HazardVerdict(False)


def _is_freezing(temperature, precipitation, wind_speed, elevation):
    return -2 <= temperature <= 2


def _is_heavy_precipitation(temperature, precipitation, wind_speed, elevation):
    return precipitation > 2


def _is_mountain_weather(temperature, precipitation, wind_speed, elevation):
    return elevation is not None and elevation > 500 and (wind_speed > 10 or precipitation > 0.5)


def _is_high_wind(temperature, precipitation, wind_speed, elevation):
    return wind_speed > 15


# Evaluated in order, first match wins
HAZARD_RULES = (
    (_is_freezing, HazardKind.FREEZING),
    (_is_heavy_precipitation, HazardKind.HEAVY_PRECIPITATION),
    (_is_mountain_weather, HazardKind.MOUNTAIN),
    (_is_high_wind, HazardKind.HIGH_WIND),
)


def classify(temperature: float, precipitation: float, wind_speed: float, elevation: float | None = None) -> HazardVerdict:
    """
    Classify driving conditions for a single weather reading.

    Args:
        temperature: Air temperature in Celsius.
        precipitation: Precipitation in mm per hour.
        wind_speed: Wind speed in m/s.
        elevation: Optional elevation in meters.

    Returns:
        HazardVerdict with the first matching hazard kind, or NOT_HAZARDOUS.
    """
    for predicate, hazard_kind in HAZARD_RULES:
        if predicate(temperature, precipitation, wind_speed, elevation):
            return HazardVerdict(True, hazard_kind)
    return NOT_HAZARDOUS


def apply_hazards(segments) -> None:
    """Set is_hazardous/hazard_kind on each segment from its weather reading. Modifies segments in place."""
    for segment in segments:
        verdict = NOT_HAZARDOUS
        if segment.weather is not None:
            weather = segment.weather
            verdict = classify(weather.temperature_c, weather.precipitation_mm_per_hour,
                               weather.wind_speed_mps, segment.elevation)
        segment.is_hazardous = verdict.is_hazardous
        segment.hazard_kind = verdict.hazard_kind
