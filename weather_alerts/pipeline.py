"""
Per-city check pipeline: fetch -> store reading -> evaluate -> emit alerts.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

from .alerts import ALERT_ORDER, AlertEmitter, build_alert_message, evaluate
from .database import Database
from .fetcher import OpenWeatherFetcher

logger = logging.getLogger(__name__)


@dataclass
class CheckResult:
    """Outcome of checking one city."""
    city: str
    fetched: bool = False
    reading_stored: bool = False
    alerts: List[str] = field(default_factory=list)
    error_message: Optional[str] = None


class CheckPipeline:
    """
    Runs one weather check for one city.

    ``run`` never raises: a failing city is logged and reported in its
    CheckResult so the rest of the sweep carries on.
    """

    def __init__(self, fetcher: OpenWeatherFetcher, database: Database, emitter: AlertEmitter):
        self.fetcher = fetcher
        self.database = database
        self.emitter = emitter

    def run(self, city: Dict[str, Any]) -> CheckResult:
        result = CheckResult(city=city.get("name", ""))

        try:
            snapshot = self.fetcher.fetch_current(city["name"])
            if snapshot is None:
                return result
            result.fetched = True

            try:
                reading_id = self.database.insert_reading(
                    city_id=city["id"],
                    temperature=snapshot.temperature,
                    weather_condition=snapshot.condition
                )
                result.reading_stored = reading_id is not None
            except Exception as e:
                logger.error(f"Error storing weather data for {city['name']}: {e}")

            # Alerts are still evaluated when the reading could not be stored
            kinds = evaluate(snapshot.temperature, snapshot.condition)
            for kind in ALERT_ORDER:
                if kind not in kinds:
                    continue
                try:
                    message = build_alert_message(kind, city["name"], snapshot.temperature, datetime.utcnow())
                    self.emitter.emit(city["id"], kind, message)
                    result.alerts.append(kind.value)
                except Exception as e:
                    logger.error(f"Failed to emit {kind.value} alert for {city['name']}: {e}")

        except Exception as e:
            logger.exception(f"Weather check failed for {city.get('name')}: {e}")
            result.error_message = str(e)

        return result
