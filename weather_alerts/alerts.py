"""
Alert evaluation and emission for the Weather Alert Service.

Thresholds are fixed. Every reading is evaluated on its own: there is no
hysteresis and no suppression of repeated alerts, so a city that stays
rainy produces a new Rain alert on every sweep.
"""

import logging
from datetime import datetime
from enum import Enum
from typing import Callable, Optional, Set

from .database import Database

logger = logging.getLogger(__name__)
notification_logger = logging.getLogger("weather_alerts.notifications")

HIGH_TEMPERATURE_THRESHOLD = 30  # °C, strictly above
LOW_TEMPERATURE_THRESHOLD = 10   # °C, strictly below


class AlertKind(Enum):
    """Alert types, valued as stored in the alerts table."""
    RAIN = "Rain"
    HIGH_TEMPERATURE = "High Temperature"
    LOW_TEMPERATURE = "Low Temperature"


# Emission order within one reading
ALERT_ORDER = (AlertKind.RAIN, AlertKind.HIGH_TEMPERATURE, AlertKind.LOW_TEMPERATURE)


def evaluate(temperature: float, condition: str) -> Set[AlertKind]:
    """Return the alert kinds triggered by a reading."""
    kinds = set()
    if "rain" in (condition or "").lower():
        kinds.add(AlertKind.RAIN)
    if temperature > HIGH_TEMPERATURE_THRESHOLD:
        kinds.add(AlertKind.HIGH_TEMPERATURE)
    if temperature < LOW_TEMPERATURE_THRESHOLD:
        kinds.add(AlertKind.LOW_TEMPERATURE)
    return kinds


def build_alert_message(
    kind: AlertKind,
    city_name: str,
    temperature: float,
    when: Optional[datetime] = None
) -> str:
    """Render the operator-facing text for an alert."""
    timestamp = (when or datetime.utcnow()).isoformat()

    if kind is AlertKind.RAIN:
        return f"Alert: Rain detected in {city_name} at {timestamp}."
    if kind is AlertKind.HIGH_TEMPERATURE:
        return f"Alert: High temperature ({temperature:g}°C) detected in {city_name} at {timestamp}."
    return f"Alert: Low temperature ({temperature:g}°C) detected in {city_name} at {timestamp}."


def log_notification(message: str) -> None:
    notification_logger.warning(f"NOTIFICATION: {message}")


class AlertEmitter:
    """
    Records alerts and notifies the operator.

    The notification is sent whether or not the alert could be stored.
    Neither a storage nor a notifier failure is raised to the caller.
    """

    def __init__(self, database: Database, notifier: Callable[[str], None] = log_notification):
        self.database = database
        self.notifier = notifier

    def emit(self, city_id: int, kind: AlertKind, message: str) -> bool:
        """Persist and announce an alert. Returns True if it was stored."""
        try:
            stored = self.database.insert_alert(city_id, kind.value, message)
        except Exception as e:
            logger.error(f"Error creating alert for city {city_id}: {e}")
            stored = False

        try:
            self.notifier(message)
        except Exception as e:
            logger.error(f"Notification failed for city {city_id}: {e}")

        return stored
