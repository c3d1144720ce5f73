from dotenv import load_dotenv
from datetime import datetime, timezone
from functools import lru_cache
from fastapi import FastAPI, HTTPException, Depends, Request
from fastapi.encoders import jsonable_encoder
from fastapi.middleware.cors import CORSMiddleware
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.util import get_remote_address
from slowapi.errors import RateLimitExceeded
from .app.directions import GoogleDirectionsProvider, GoogleGeocoder, RouteProviderError
from .app.geo import PolylineDecodeError
from .app.optimization import OptimalTimeSearch, SearchState
from .app.requestTypes import RouteWeatherRequest, OptimalTimeRequest
from .app.route_weather import RouteWeatherService
from .app.weather import WeatherClient, build_user_agent
import asyncio
import os
import logging
import sys

load_dotenv()

CACHE_SWEEP_INTERVAL_SECONDS = 10 * 60


# Configure logging for production
def setup_logging():
    """Configure logging based on environment"""
    environment = os.getenv("ENVIRONMENT", "development")

    if environment == "production":
        logging.basicConfig(
            level=logging.INFO,
            format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
            handlers=[
                logging.StreamHandler(sys.stdout)
            ]
        )
        # Reduce noise from external libraries
        logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
        logging.getLogger("urllib3").setLevel(logging.WARNING)
    else:
        logging.basicConfig(level=logging.DEBUG)


setup_logging()
logger = logging.getLogger(__name__)


@lru_cache
def get_weather_client() -> WeatherClient:
    """Process-wide weather client so its forecast cache is shared between requests"""
    user_agent = build_user_agent(
        os.getenv("APP_NAME", "Kjorefore"),
        os.getenv("APP_VERSION", "1.0.0"),
        os.getenv("YR_CONTACT_EMAIL", "contact@kjorefore.no"),
    )
    return WeatherClient(user_agent)


def get_route_weather_service() -> RouteWeatherService:
    api_key = os.getenv("GOOGLE_MAPS_API_KEY")
    if not api_key:
        logger.error("GOOGLE_MAPS_API_KEY environment variable not set")
        raise HTTPException(status_code=503, detail="Route provider is not configured")

    return RouteWeatherService(
        GoogleDirectionsProvider(api_key),
        GoogleGeocoder(api_key),
        get_weather_client(),
    )


def get_optimal_time_search(route_weather: RouteWeatherService = Depends(get_route_weather_service)) -> OptimalTimeSearch:
    return OptimalTimeSearch(route_weather)


app = FastAPI(
    title="Drive Forecast API",
    description="Weather forecasts along driving routes and optimal departure times",
    version="1.0.0"
)

# Rate limiting setup
limiter = Limiter(key_func=get_remote_address)
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

app.add_middleware(
    CORSMiddleware,
    allow_origins=os.getenv("CORS_ORIGINS", "").split(",") if os.getenv("CORS_ORIGINS") else [],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


async def sweep_weather_cache():
    while True:
        await asyncio.sleep(CACHE_SWEEP_INTERVAL_SECONDS)
        removed = get_weather_client().clean_cache()
        logger.debug(f"Weather cache sweep removed {removed} entries")


@app.on_event("startup")
async def startupEvent():
    logger.info("Welcome to Drive Forecast API")
    logger.info(f"ENVIRONMENT: {os.getenv('ENVIRONMENT', 'development')}")
    logger.info(f"GOOGLE_MAPS_API_KEY: {'SET' if os.getenv('GOOGLE_MAPS_API_KEY') else 'NOT SET'}")
    app.state.cache_sweeper = asyncio.create_task(sweep_weather_cache())


@app.on_event("shutdown")
async def shutdownEvent():
    logger.info("Shutting down service...")
    sweeper = getattr(app.state, "cache_sweeper", None)
    if sweeper:
        sweeper.cancel()


@app.get("/health")
def health_check():
    """Health check endpoint"""
    return {
        "status": "healthy",
        "service": "Drive Forecast API",
        "environment": os.getenv("ENVIRONMENT", "development"),
        "weatherCacheEntries": get_weather_client().cache_size,
        "timestamp": datetime.now(timezone.utc).isoformat()
    }


@app.post("/RouteWeather/")
@limiter.limit("30/minute")
def route_weather(request: Request, body: RouteWeatherRequest,
                  service: RouteWeatherService = Depends(get_route_weather_service)):
    logger.info(f"Route weather request from {body.origin.coordinates} to {body.destination.coordinates}")

    try:
        route = service.get_route_weather(body.origin.to_location(), body.destination.to_location(), body.departure_datetime())
    except (RouteProviderError, PolylineDecodeError) as e:
        logger.warning(f"Route provider failure: {e}")
        raise HTTPException(status_code=502, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    return {"route": jsonable_encoder(route)}


@app.post("/OptimalTime/")
@limiter.limit("5/minute")
def optimal_time(request: Request, body: OptimalTimeRequest,
                 search: OptimalTimeSearch = Depends(get_optimal_time_search)):
    logger.info(f"Optimal time request for {body.date} between {body.startHour}:00 and {body.endHour}:00 every {body.interval} minutes")

    try:
        report = search.run(
            body.origin.to_location(),
            body.destination.to_location(),
            body.date,
            body.startHour,
            body.endHour,
            interval_minutes=body.interval,
            tz=body.tzinfo(),
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    if report.state == SearchState.EXHAUSTED:
        logger.warning(f"All {report.total_slots} departure slots failed")
    elif report.window_empty:
        logger.info("Time window contained no departure slots")

    return {
        "status": report.state.value,
        "totalSlots": report.total_slots,
        "failedSlots": report.failed_slots,
        "candidates": jsonable_encoder(report.candidates),
    }
