from dataclasses import dataclass
from datetime import datetime, timezone


@dataclass(frozen=True)
class WeatherReading:
    temperature_c: float
    precipitation_mm_per_hour: float
    wind_speed_mps: float
    symbol_code: str = "unknown"
    description: str = "unknown"
    wind_direction_deg: float | None = None
    humidity_pct: float | None = None
    cloudiness_pct: float | None = None
    pressure_hpa: float | None = None


def _parse_time(value: str) -> datetime:
    return datetime.fromisoformat(value.replace("Z", "+00:00")).astimezone(timezone.utc)


class TimeseriesEntry:
    def __init__(self, entry_json: dict):
        data = entry_json.get("data", {})
        self.time = _parse_time(entry_json["time"])
        self.instant = data.get("instant", {}).get("details", {})
        self.next_1_hours = data.get("next_1_hours")
        self.next_6_hours = data.get("next_6_hours")
        self.entry_json = entry_json

    def __repr__(self):
        return f"TimeseriesEntry({self.time.isoformat()}, {self.instant})"

    def short_range_block(self) -> dict:
        """Nearest short-range horizon: the 1-hour block, else the 6-hour block."""
        return self.next_1_hours or self.next_6_hours or {}

    def to_reading(self) -> WeatherReading:
        block = self.short_range_block()
        symbol_code = block.get("summary", {}).get("symbol_code") or "unknown"

        return WeatherReading(
            temperature_c=self.instant["air_temperature"],
            precipitation_mm_per_hour=block.get("details", {}).get("precipitation_amount") or 0,
            wind_speed_mps=self.instant["wind_speed"],
            symbol_code=symbol_code,
            description=symbol_code,
            wind_direction_deg=self.instant.get("wind_from_direction"),
            humidity_pct=self.instant.get("relative_humidity"),
            cloudiness_pct=self.instant.get("cloud_area_fraction"),
            pressure_hpa=self.instant.get("air_pressure_at_sea_level"),
        )


class Forecast:
    """Time series of forecast entries for one coordinate."""

    def __init__(self, forecast_json: dict):
        timeseries = (forecast_json or {}).get("properties", {}).get("timeseries", [])
        self.entries = [TimeseriesEntry(entry) for entry in timeseries]

    def __len__(self):
        return len(self.entries)

    def __repr__(self):
        return f"Forecast({len(self.entries)} entries)"

    def is_empty(self):
        return not self.entries

    def closest_entry(self, target: datetime) -> TimeseriesEntry | None:
        """Entry with the smallest absolute time difference to target; ties go to the earliest in series order."""
        closest = None
        min_diff = None

        for entry in self.entries:
            diff = abs((entry.time - target).total_seconds())
            if min_diff is None or diff < min_diff:
                min_diff = diff
                closest = entry

        return closest
