import logging
from datetime import datetime
from .coordinates import Location, RouteModel
from .directions import Geocoder, RouteProvider, build_route
from .hazards import apply_hazards
from .weather import WeatherClient

logger = logging.getLogger(__name__)


class RouteWeatherService:
    """Builds a route and overlays a time-aligned forecast on its sampling points."""

    def __init__(self, route_provider: RouteProvider, geocoder: Geocoder, weather_client: WeatherClient):
        self.route_provider = route_provider
        self.geocoder = geocoder
        self.weather_client = weather_client

    def calculate_route(self, origin: Location, destination: Location, departure_time: datetime) -> RouteModel:
        result = self.route_provider.compute_route(origin.coordinate, destination.coordinate, departure_time)
        route = build_route(result, origin, destination, departure_time)
        logger.debug(f"Computed route of {route.total_distance} m with {len(route.segments)} weather points")
        return route

    def name_segments(self, route: RouteModel) -> None:
        for segment in route.segments:
            name = self.geocoder.reverse_geocode(segment.location.coordinate)
            segment.location = segment.location.with_name(name)

    def get_route_weather(self, origin: Location, destination: Location, departure_time: datetime | None = None,
                          on_progress=None) -> RouteModel:
        """
        Calculate a route and annotate every sampling point with weather and hazards.

        Args:
            origin: Start of the trip.
            destination: End of the trip.
            departure_time: When the trip starts, now if omitted.
            on_progress: Optional callable receiving a percentage (0-100) that rises as forecasts arrive.

        Returns:
            RouteModel with named, weather-annotated segments.

        Raises:
            ValueError: If origin or destination is missing.
            RouteProviderError: If no route could be calculated.
            PolylineDecodeError: If the route geometry is malformed.
        """
        if origin is None or destination is None:
            raise ValueError("Both origin and destination are required")

        def report(progress):
            if on_progress:
                on_progress(progress)

        report(0)
        if departure_time is None:
            departure_time = self.weather_client.clock()

        route = self.calculate_route(origin, destination, departure_time)
        report(30)

        self.name_segments(route)
        report(50)

        def report_forecast(completed, total):
            # 100 is reported once hazards are applied
            if completed < total:
                report(50 + completed * 50 // total)

        readings = self.weather_client.get_weather_batch(
            [(segment.location.coordinate, segment.estimated_arrival_time) for segment in route.segments],
            on_progress=report_forecast,
        )
        for segment, weather in zip(route.segments, readings):
            segment.weather = weather

        apply_hazards(route.segments)
        report(100)

        logger.info(f"Route weather ready: {len(route.segments)} points, "
                    f"{sum(1 for s in route.segments if s.weather is None)} without forecast")
        return route
