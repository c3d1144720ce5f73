import math
import time
import logging
import threading
from dataclasses import dataclass, field
from datetime import date as date_type, datetime, time as time_of_day, timezone, tzinfo
from enum import Enum
from .coordinates import Location, RouteModel, RouteSegment
from .hazards import apply_hazards
from .route_weather import RouteWeatherService

logger = logging.getLogger(__name__)

BATCH_SIZE = 10
BATCH_PAUSE_SECONDS = 1.0


class SearchState(str, Enum):
    IDLE = "idle"
    RUNNING = "running"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    EXHAUSTED = "exhausted"


@dataclass(frozen=True)
class ScoreWeights:
    precipitation: float = 3
    wind: float = 2
    hazard: float = 20


DEFAULT_WEIGHTS = ScoreWeights()


@dataclass(frozen=True)
class WeatherSummary:
    avg_precipitation: float = 0
    max_precipitation: float = 0
    max_wind_speed: float = 0
    min_temperature: float | None = None
    max_temperature: float | None = None
    has_snow: bool = False
    has_freezing_temp: bool = False


@dataclass(frozen=True)
class TimeCandidate:
    departure_time: datetime
    score: int
    weather_summary: WeatherSummary
    hazard_count: int
    route: RouteModel = field(compare=False)


@dataclass(frozen=True)
class SearchReport:
    candidates: list[TimeCandidate]
    total_slots: int
    failed_slots: int
    state: SearchState

    @property
    def window_empty(self) -> bool:
        return self.total_slots == 0


def round_half_up(value: float, digits: int = 0) -> float:
    """Round .5 away from negative infinity, matching JavaScript's Math.round rather than banker's rounding."""
    factor = 10 ** digits
    return math.floor(value * factor + 0.5) / factor


def generate_time_slots(date: date_type, start_hour: int, end_hour: int, interval_minutes: int = 60,
                        tz: tzinfo = timezone.utc) -> list[datetime]:
    """
    Departure instants to test, in increasing order.

    The window includes end_hour:00 but no later minutes within end_hour.
    A window with start_hour after end_hour is empty.
    """
    for hour in (start_hour, end_hour):
        if not 0 <= hour <= 23:
            raise ValueError(f"Hour must be between 0 and 23, got {hour}")
    if interval_minutes <= 0:
        raise ValueError(f"Interval must be a positive number of minutes, got {interval_minutes}")

    slots = []
    for hour in range(start_hour, end_hour + 1):
        for minute in range(0, 60, interval_minutes):
            if hour == end_hour and minute > 0:
                break
            slots.append(datetime.combine(date, time_of_day(hour, minute), tzinfo=tz))
    return slots


def calculate_score(segments: list[RouteSegment], weights: ScoreWeights = DEFAULT_WEIGHTS) -> int:
    """Weather score for a route from 0 to 100, higher is better."""
    score = 100.0

    for segment in segments:
        weather = segment.weather
        if weather is None:
            continue

        if weather.precipitation_mm_per_hour > 2:
            score -= min(10, weather.precipitation_mm_per_hour * weights.precipitation)

        if weather.wind_speed_mps > 15:
            score -= min(15, (weather.wind_speed_mps - 15) * weights.wind)

        if segment.is_hazardous:
            score -= weights.hazard

    return max(0, int(round_half_up(score)))


def summarize_weather(segments: list[RouteSegment]) -> WeatherSummary:
    readings = [segment.weather for segment in segments if segment.weather is not None]
    if not readings:
        return WeatherSummary()

    precipitation = [w.precipitation_mm_per_hour for w in readings]
    temperatures = [w.temperature_c for w in readings]

    return WeatherSummary(
        avg_precipitation=round_half_up(sum(precipitation) / len(readings), 1),
        max_precipitation=round_half_up(max(max(precipitation), 0), 1),
        max_wind_speed=round_half_up(max(max(w.wind_speed_mps for w in readings), 0), 1),
        min_temperature=round_half_up(min(temperatures), 1),
        max_temperature=round_half_up(max(temperatures), 1),
        has_snow=any(w.temperature_c < 2 and w.precipitation_mm_per_hour > 0 for w in readings),
        has_freezing_temp=any(-2 <= w.temperature_c <= 2 for w in readings),
    )


def count_hazards(segments: list[RouteSegment]) -> int:
    return sum(1 for segment in segments if segment.is_hazardous)


class OptimalTimeSearch:
    """
    Finds the least hazardous departure time within a window on a given day.

    Every slot is evaluated one after another: route, segment names, weather in
    batches of 10 with a pause between batches, hazards, then a score. A slot
    that fails is skipped and the search moves on.
    """

    def __init__(self, route_weather: RouteWeatherService, sleep=None, weights: ScoreWeights = DEFAULT_WEIGHTS,
                 batch_size: int = BATCH_SIZE, batch_pause: float = BATCH_PAUSE_SECONDS):
        self.route_weather = route_weather
        self.sleep = sleep or time.sleep
        self.weights = weights
        self.batch_size = batch_size
        self.batch_pause = batch_pause
        self.state = SearchState.IDLE

    def fetch_weather_in_batches(self, segments: list[RouteSegment]) -> list:
        weather_client = self.route_weather.weather_client
        results = []

        for start in range(0, len(segments), self.batch_size):
            if start > 0:
                self.sleep(self.batch_pause)
            batch = segments[start:start + self.batch_size]
            results.extend(
                weather_client.get_weather(segment.location.coordinate, segment.estimated_arrival_time)
                for segment in batch
            )

        return results

    def evaluate_slot(self, origin: Location, destination: Location, departure_time: datetime) -> TimeCandidate:
        route = self.route_weather.calculate_route(origin, destination, departure_time)
        self.route_weather.name_segments(route)

        readings = self.fetch_weather_in_batches(route.segments)
        for segment, weather in zip(route.segments, readings):
            segment.weather = weather
        apply_hazards(route.segments)

        return TimeCandidate(
            departure_time=departure_time,
            score=calculate_score(route.segments, self.weights),
            weather_summary=summarize_weather(route.segments),
            hazard_count=count_hazards(route.segments),
            route=route,
        )

    def run(self, origin: Location, destination: Location, date: date_type, start_hour: int, end_hour: int,
            interval_minutes: int = 60, tz: tzinfo = timezone.utc, on_progress=None,
            cancel_event: threading.Event | None = None) -> SearchReport:
        """
        Evaluate every departure slot in the window and rank the results.

        Args:
            origin: Start of the trip.
            destination: End of the trip.
            date: Day of travel.
            start_hour: First hour of the window.
            end_hour: Last hour of the window, inclusive of its top of the hour only.
            interval_minutes: Minutes between tested departures.
            tz: Time zone the window is expressed in.
            on_progress: Optional callable receiving a percentage after each slot.
            cancel_event: Optional event checked before each slot to stop early.

        Returns:
            SearchReport with candidates sorted by score (best first, ties in slot order).
        """
        if origin is None or destination is None:
            raise ValueError("Both origin and destination are required")

        slots = generate_time_slots(date, start_hour, end_hour, interval_minutes, tz)
        total_slots = len(slots)
        candidates = []
        failed_slots = 0
        self.state = SearchState.RUNNING
        logger.info(f"Searching {total_slots} departure slots on {date.isoformat()} between {start_hour}:00 and {end_hour}:00")

        for idx, departure_time in enumerate(slots):
            if cancel_event is not None and cancel_event.is_set():
                logger.info(f"Search cancelled after {idx}/{total_slots} slots")
                self.state = SearchState.CANCELLED
                break

            try:
                candidates.append(self.evaluate_slot(origin, destination, departure_time))
            except Exception as e:
                failed_slots += 1
                logger.error(f"Error analyzing departure at {departure_time.isoformat()}: {e}")

            if on_progress:
                on_progress(int(round_half_up((idx + 1) * 100 / total_slots)))

        if self.state != SearchState.CANCELLED:
            if total_slots and failed_slots == total_slots:
                self.state = SearchState.EXHAUSTED
            else:
                self.state = SearchState.COMPLETED

        # sorted() is stable, ties keep slot order
        ranked = sorted(candidates, key=lambda candidate: candidate.score, reverse=True)
        return SearchReport(ranked, total_slots, failed_slots, self.state)

    def search(self, origin: Location, destination: Location, date: date_type, start_hour: int, end_hour: int,
               interval_minutes: int = 60, tz: tzinfo = timezone.utc, on_progress=None,
               cancel_event: threading.Event | None = None) -> list[TimeCandidate]:
        return self.run(origin, destination, date, start_hour, end_hour, interval_minutes, tz,
                        on_progress, cancel_event).candidates
