"""
Weather Alert Service

A weather watch service with:
- OpenWeatherMap current-conditions fetching
- Threshold alerts for rain, heat and cold
- SQLite persistence of readings and alerts
- Scheduled checks every 10 minutes
- REST API for the city watchlist and history
"""

from .alerts import AlertKind, AlertEmitter, evaluate, build_alert_message
from .config import Settings
from .database import Database
from .fetcher import OpenWeatherFetcher, WeatherSnapshot, FetchError, ValidationError
from .pipeline import CheckPipeline, CheckResult
from .scheduler import WeatherScheduler, SweepResult
from .api import app, create_app

__version__ = "1.0.0"

__all__ = [
    "AlertKind",
    "AlertEmitter",
    "evaluate",
    "build_alert_message",
    "Settings",
    "Database",
    "OpenWeatherFetcher",
    "WeatherSnapshot",
    "FetchError",
    "ValidationError",
    "CheckPipeline",
    "CheckResult",
    "WeatherScheduler",
    "SweepResult",
    "app",
    "create_app",
]
