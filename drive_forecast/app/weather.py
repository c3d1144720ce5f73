import math
import os
import time
import logging
import threading
import requests
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from tqdm import tqdm
from .coordinates import Coordinate
from .forecast import Forecast, WeatherReading
from .hazards import HazardVerdict, classify

logger = logging.getLogger(__name__)

MET_NO_URL = "https://api.met.no/weatherapi/locationforecast/2.0"
CACHE_TTL = timedelta(minutes=30)
BATCH_PAUSE_SECONDS = 0.1
REQUEST_TIMEOUT_SECONDS = 10
CURRENT_BUCKET = "current"


def build_user_agent(app_name: str, app_version: str, contact_email: str) -> str:
    """MET.no rejects requests that don't identify the client with name, version and contact."""
    return f"{app_name}/{app_version} ({contact_email})"


# Disable tqdm progress bars in production to save memory
def _get_progress_bar(iterable, desc=""):
    """Return tqdm progress bar in development, plain iterable in production"""
    environment = os.getenv("ENVIRONMENT", "development")
    if environment == "production":
        return iterable
    return tqdm(iterable, desc=desc)


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


@dataclass
class WeatherCacheEntry:
    key: str
    payload: dict
    fetched_at: datetime
    expires_at: datetime

    def is_valid(self, now: datetime) -> bool:
        return now < self.expires_at


class WeatherClient:
    """
    Forecast lookups against the MET.no locationforecast API.

    Responses are cached per (lat, lng) rounded to 2 decimals and per hour of the
    target time. Entries expire 30 minutes after they were fetched; expired
    entries are refetched on read and removed by clean_cache().
    """

    def __init__(self, user_agent: str, session: requests.Session | None = None, clock=None, sleep=None,
                 cache_ttl: timedelta = CACHE_TTL, base_url: str = MET_NO_URL):
        if not user_agent:
            raise ValueError("A User-Agent identifying the application is required by MET.no")

        self.headers = {
            "Accept": "application/json",
            "User-Agent": user_agent,
        }
        self.session = session or requests.Session()
        self.clock = clock or (lambda: datetime.now(timezone.utc))
        self.sleep = sleep or time.sleep
        self.cache_ttl = cache_ttl
        self.base_url = base_url
        self._cache: dict[str, WeatherCacheEntry] = {}
        self._lock = threading.Lock()

    @property
    def cache_size(self) -> int:
        with self._lock:
            return len(self._cache)

    def cache_key(self, coordinate: Coordinate, target_time: datetime | None = None) -> str:
        if target_time is None:
            time_key = CURRENT_BUCKET
        else:
            time_key = str(math.floor(_as_utc(target_time).timestamp() / 3600))
        return f"{coordinate.lat:.2f},{coordinate.lng:.2f},{time_key}"

    def _fetch_forecast(self, coordinate: Coordinate) -> dict | None:
        try:
            response = self.session.get(
                f"{self.base_url}/compact",
                params={"lat": f"{coordinate.lat:.4f}", "lon": f"{coordinate.lng:.4f}"},
                headers=self.headers,
                timeout=REQUEST_TIMEOUT_SECONDS,
            )

            if not response.ok:
                logger.warning(f"MET.no API returned status code: {response.status_code}")
                return None

            return response.json()
        except requests.RequestException as e:
            logger.error(f"Failed to fetch forecast from MET.no for {coordinate.to_str()}: {e}")
            return None
        except ValueError as e:
            logger.error(f"Invalid JSON in MET.no response for {coordinate.to_str()}: {e}")
            return None

    def _get_payload(self, key: str, coordinate: Coordinate) -> dict | None:
        now = self.clock()

        with self._lock:
            entry = self._cache.get(key)
        if entry and entry.is_valid(now):
            logger.debug(f"Weather cache hit for {key}")
            return entry.payload

        payload = self._fetch_forecast(coordinate)
        if payload is None:
            return None

        with self._lock:
            self._cache[key] = WeatherCacheEntry(key, payload, now, now + self.cache_ttl)
        return payload

    def get_weather(self, coordinate: Coordinate, target_time: datetime | None = None) -> WeatherReading | None:
        """
        Weather at coordinate for the forecast entry closest to target_time (now if omitted).

        Returns None when the forecast can't be fetched or has no entries.
        """
        key = self.cache_key(coordinate, target_time)
        payload = self._get_payload(key, coordinate)
        if payload is None:
            return None

        try:
            forecast = Forecast(payload)
            target = _as_utc(target_time) if target_time is not None else self.clock()
            entry = forecast.closest_entry(target)
            if entry is None:
                logger.warning(f"Empty forecast series for {coordinate.to_str()}")
                return None
            return entry.to_reading()
        except (KeyError, TypeError, ValueError, AttributeError) as e:
            logger.error(f"Could not parse forecast for {coordinate.to_str()}: {e}")
            return None

    def get_weather_batch(self, points: list[tuple[Coordinate, datetime | None]],
                          on_progress=None) -> list[WeatherReading | None]:
        """
        Sequential lookups with a 100 ms pause between requests. A failed point yields None.

        on_progress, if given, is called with (completed, total) after each point.
        """
        results = []
        for idx, (coordinate, target_time) in enumerate(_get_progress_bar(points, desc="Getting Forecasts")):
            if idx > 0:
                self.sleep(BATCH_PAUSE_SECONDS)
            results.append(self.get_weather(coordinate, target_time))
            if on_progress:
                on_progress(idx + 1, len(points))
        return results

    def get_weather_with_hazards(self, coordinate: Coordinate, target_time: datetime | None = None,
                                 elevation: float | None = None) -> tuple[WeatherReading, HazardVerdict] | None:
        weather = self.get_weather(coordinate, target_time)
        if weather is None:
            return None

        verdict = classify(weather.temperature_c, weather.precipitation_mm_per_hour, weather.wind_speed_mps, elevation)
        return weather, verdict

    def clean_cache(self) -> int:
        """Remove every expired entry. Returns the number of entries removed."""
        now = self.clock()
        with self._lock:
            expired = [key for key, entry in self._cache.items() if not entry.is_valid(now)]
            for key in expired:
                del self._cache[key]

        if expired:
            logger.debug(f"Removed {len(expired)} expired weather cache entries")
        return len(expired)

    def clear_cache(self) -> None:
        with self._lock:
            self._cache.clear()
