"""
REST API module for the Weather Alert Service.

Provides endpoints for:
- Watchlist management (add, list, remove cities)
- Weather reading history
- Alert history
- Service health and manual weather checks
"""

import logging
import sqlite3
from typing import List, Optional
from contextlib import asynccontextmanager
from dataclasses import asdict
from datetime import datetime

from fastapi import Depends, FastAPI, HTTPException, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel

from .alerts import AlertEmitter
from .config import Settings
from .database import Database
from .fetcher import OpenWeatherFetcher
from .pipeline import CheckPipeline
from .scheduler import WeatherScheduler

logger = logging.getLogger(__name__)

API_VERSION = "1.0.0"


# =============================================================================
# Pydantic Models
# =============================================================================

class City(BaseModel):
    id: int
    name: str


class CityCreate(BaseModel):
    city: Optional[str] = None


class CityCreated(BaseModel):
    message: str
    city: City


class MessageResponse(BaseModel):
    message: str


class WeatherReading(BaseModel):
    id: int
    city: str
    temperature: float
    weather_condition: str
    timestamp: str


class AlertRecord(BaseModel):
    id: int
    city: str
    alert_type: str
    message: str
    timestamp: str


class SweepResultModel(BaseModel):
    started_at: str
    finished_at: str
    cities_checked: int
    readings_stored: int
    alerts_raised: int
    fetch_failures: int
    skipped: bool


class HealthResponse(BaseModel):
    status: str
    timestamp: str
    database: str
    scheduler: str
    risks: List[str]


# =============================================================================
# Dependencies
# =============================================================================

def get_database(request: Request) -> Database:
    db = getattr(request.app.state, "db", None)
    if db is None:
        raise HTTPException(status_code=503, detail="Database not available")
    return db


def get_fetcher(request: Request) -> OpenWeatherFetcher:
    fetcher = getattr(request.app.state, "fetcher", None)
    if fetcher is None:
        raise HTTPException(status_code=503, detail="Weather provider not available")
    return fetcher


def get_scheduler(request: Request) -> WeatherScheduler:
    scheduler = getattr(request.app.state, "scheduler", None)
    if scheduler is None:
        raise HTTPException(status_code=503, detail="Scheduler not available")
    return scheduler


def detect_risks(app: FastAPI) -> List[str]:
    """Detect service risks."""
    state = app.state
    if getattr(state, "db", None) is None or getattr(state, "scheduler", None) is None:
        return ["System not initialized"]

    risks = []
    if not state.settings.weather_api_key:
        risks.append("Weather API key not configured")
    if not state.scheduler.is_running:
        risks.append("Scheduler not running")

    try:
        watched = {c["name"] for c in state.db.list_cities()}
    except sqlite3.Error as e:
        logger.error(f"Error fetching cities: {e}")
        return risks + ["Database unavailable"]

    health = getattr(state.fetcher, "get_source_health", dict)()
    for city, metadata in sorted(health.items()):
        if city in watched and not metadata.success:
            risks.append(f"Last fetch failed for {city}: {metadata.error_message}")

    return risks


def _store_failure(action: str, error: Exception) -> HTTPException:
    logger.error(f"Error {action}: {error}")
    return HTTPException(status_code=500, detail="Internal server error")


# =============================================================================
# FastAPI Application
# =============================================================================

def create_app(
    settings: Optional[Settings] = None,
    database: Optional[Database] = None,
    fetcher: Optional[OpenWeatherFetcher] = None,
    start_scheduler: bool = True
) -> FastAPI:
    """
    Build the application.

    ``database`` and ``fetcher`` are created from settings at startup unless
    given; the weather check schedule only starts when ``start_scheduler``.
    """
    settings = settings or Settings.from_env()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Application lifespan manager."""
        logger.info("Starting Weather Alert Service...")
        app.state.start_time = datetime.utcnow()

        # A database that cannot be opened stops the service from starting
        db = database or Database(settings.database_path)
        if not settings.weather_api_key and fetcher is None:
            logger.warning("WEATHER_API_KEY is not set; weather checks will fail")
        weather_fetcher = fetcher or OpenWeatherFetcher(
            api_key=settings.weather_api_key,
            timeout=settings.request_timeout
        )

        pipeline = CheckPipeline(weather_fetcher, db, AlertEmitter(db))
        scheduler = WeatherScheduler(
            database=db,
            pipeline=pipeline,
            max_workers=settings.sweep_workers
        )

        app.state.db = db
        app.state.fetcher = weather_fetcher
        app.state.scheduler = scheduler

        if start_scheduler:
            scheduler.start()

        yield

        logger.info("Shutting down...")
        scheduler.stop()
        if fetcher is None:
            weather_fetcher.close()
        if database is None:
            db.close()
        app.state.db = None
        app.state.fetcher = None
        app.state.scheduler = None
        logger.info("Shutdown complete")

    app = FastAPI(
        title="Weather Alert Service",
        description="Periodic weather checks and threshold alerts for a watchlist of cities",
        version=API_VERSION,
        lifespan=lifespan
    )
    app.state.settings = settings

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    _register_routes(app)
    return app


def _register_routes(app: FastAPI) -> None:

    # =========================================================================
    # Info & Health
    # =========================================================================

    @app.get("/", tags=["Info"])
    async def root():
        """API information."""
        return {
            "name": "Weather Alert Service",
            "version": API_VERSION,
            "alerts": ["Rain", "High Temperature (> 30°C)", "Low Temperature (< 10°C)"],
        }

    @app.get("/health", response_model=HealthResponse, tags=["Health"])
    async def health_check(request: Request):
        """Health check endpoint."""
        state = request.app.state
        risks = detect_risks(request.app)
        scheduler = getattr(state, "scheduler", None)

        return HealthResponse(
            status="healthy" if not risks else "degraded",
            timestamp=datetime.utcnow().isoformat(),
            database="connected" if getattr(state, "db", None) else "disconnected",
            scheduler="running" if scheduler and scheduler.is_running else "stopped",
            risks=risks
        )

    # =========================================================================
    # Weather & Alert History
    # =========================================================================

    @app.get("/weather", response_model=List[WeatherReading], tags=["Weather"])
    async def get_weather(
        city: Optional[str] = Query(default=None, description="Only readings for this city"),
        limit: Optional[int] = Query(default=None, ge=1, le=1000),
        db: Database = Depends(get_database)
    ):
        """Get stored weather readings, newest first."""
        try:
            readings = db.get_weather_history(city=city, limit=limit)
        except sqlite3.Error as e:
            raise _store_failure("fetching weather data", e)
        return [WeatherReading(**r) for r in readings]

    @app.get("/alerts", response_model=List[AlertRecord], tags=["Alerts"])
    async def get_alerts(
        city: Optional[str] = Query(default=None, description="Only alerts for this city"),
        limit: Optional[int] = Query(default=None, ge=1, le=1000),
        db: Database = Depends(get_database)
    ):
        """Get raised alerts, newest first."""
        try:
            alerts = db.get_alert_history(city=city, limit=limit)
        except sqlite3.Error as e:
            raise _store_failure("fetching alerts", e)
        return [AlertRecord(**a) for a in alerts]

    # =========================================================================
    # Watchlist
    # =========================================================================

    @app.get("/cities", response_model=List[City], tags=["Cities"])
    async def get_cities(db: Database = Depends(get_database)):
        """Get the watched cities in alphabetical order."""
        try:
            cities = db.list_cities()
        except sqlite3.Error as e:
            raise _store_failure("fetching cities", e)
        return [City(**c) for c in cities]

    @app.post("/cities", response_model=CityCreated, status_code=201, tags=["Cities"])
    def add_city(
        body: CityCreate,
        db: Database = Depends(get_database),
        fetcher: OpenWeatherFetcher = Depends(get_fetcher)
    ):
        """Add a city to the watchlist after confirming the provider knows it."""
        name = body.city
        if not name or not name.strip():
            raise HTTPException(status_code=400, detail="City name is required")

        if fetcher.fetch_current(name, record=False) is None:
            raise HTTPException(status_code=404, detail="City not found in weather API")

        try:
            created = db.add_city(name)
        except sqlite3.Error as e:
            raise _store_failure("adding city", e)

        if created is None:
            raise HTTPException(status_code=409, detail="City already exists")

        logger.info(f"City added to watchlist: {name}")
        return CityCreated(message="City added successfully", city=City(**created))

    @app.delete("/cities/{city}", response_model=MessageResponse, tags=["Cities"])
    async def remove_city(city: str, request: Request, db: Database = Depends(get_database)):
        """Remove a city from the watchlist."""
        try:
            removed = db.delete_city(city)
        except sqlite3.Error as e:
            raise _store_failure("removing city", e)

        if not removed:
            raise HTTPException(status_code=404, detail="City not found")

        forget = getattr(request.app.state.fetcher, "forget", None)
        if forget:
            forget(city)

        logger.info(f"City removed from watchlist: {city}")
        return MessageResponse(message="City removed successfully")

    # =========================================================================
    # Admin
    # =========================================================================

    @app.post("/check", response_model=SweepResultModel, tags=["Admin"])
    def trigger_check(scheduler: WeatherScheduler = Depends(get_scheduler)):
        """Manually run a weather check for all watched cities."""
        result = scheduler.trigger_immediate_sweep()
        return SweepResultModel(**asdict(result))

    @app.get("/status", tags=["Admin"])
    async def get_status(
        db: Database = Depends(get_database),
        scheduler: WeatherScheduler = Depends(get_scheduler)
    ):
        """Get scheduler status and stored data counts."""
        try:
            summary = db.get_data_summary()
        except sqlite3.Error as e:
            raise _store_failure("fetching data summary", e)

        return {
            "scheduler": scheduler.get_scheduler_status(),
            "summary": summary,
        }


settings = Settings.from_env()

logging.basicConfig(
    level=settings.log_level,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)

app = create_app(settings)


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "weather_alerts.api:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug
    )
