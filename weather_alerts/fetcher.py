"""
Weather Fetcher module for the Weather Alert Service.

Retrieves current conditions for a named city from OpenWeatherMap.

A fetch is a single attempt: transport errors, error statuses and
malformed payloads are reported to the caller as "no data" (None) and
recorded in per-city fetch metadata, never raised.
"""

import logging
from typing import Dict, Any, Optional
from dataclasses import dataclass, field
from datetime import datetime

import requests

from .config import DEFAULT_REQUEST_TIMEOUT

logger = logging.getLogger(__name__)

# Configuration constants
USER_AGENT = "WeatherAlertService/1.0"

OPENWEATHER_URL = "https://api.openweathermap.org/data/2.5/weather"


@dataclass
class WeatherSnapshot:
    """Current conditions for one city."""
    city: str
    temperature: float      # degrees Celsius
    condition: str          # primary condition label, e.g. "Rain", "Clear"
    fetched_at: str = field(default_factory=lambda: datetime.utcnow().isoformat())


@dataclass
class FetchMetadata:
    """Outcome of the last fetch attempt for a city."""
    city: str
    success: bool
    error_message: Optional[str]
    response_time_ms: int
    fetch_time: str


class FetchError(Exception):
    """Raised when the provider cannot be reached or answers with an error."""
    pass


class ValidationError(Exception):
    """Raised when a request or response payload is not usable."""
    pass


class OpenWeatherFetcher:
    """
    Fetcher for OpenWeatherMap current weather.

    No retry adapter is mounted on the session: each sweep makes exactly
    one attempt per city.
    """

    def __init__(self, api_key: str, timeout: int = DEFAULT_REQUEST_TIMEOUT, url: str = OPENWEATHER_URL):
        self.api_key = api_key
        self.timeout = timeout
        self.url = url
        self._session = self._create_session()
        self._last_fetch_metadata: Dict[str, FetchMetadata] = {}

    def _create_session(self) -> requests.Session:
        session = requests.Session()
        session.headers.update({
            "User-Agent": USER_AGENT,
            "Accept": "application/json"
        })
        return session

    def _fetch_raw(self, city: str) -> Any:
        """Request the provider and decode the JSON body."""
        params = {"q": city, "units": "metric", "appid": self.api_key}

        try:
            response = self._session.get(self.url, params=params, timeout=self.timeout)
            response.raise_for_status()
        except requests.Timeout:
            raise FetchError(f"Request timed out after {self.timeout}s")
        except requests.ConnectionError as e:
            raise FetchError(f"Connection error - provider unavailable: {e}")
        except requests.HTTPError as e:
            raise FetchError(f"HTTP error {e.response.status_code}")
        except requests.RequestException as e:
            raise FetchError(f"Request failed: {e}")

        try:
            return response.json()
        except ValueError as e:
            raise ValidationError(f"Response is not JSON: {e}")

    def _parse_payload(self, city: str, payload: Any) -> WeatherSnapshot:
        """Extract main.temp and weather[0].main."""
        try:
            temperature = payload["main"]["temp"]
            condition = payload["weather"][0]["main"]
        except (KeyError, IndexError, TypeError) as e:
            raise ValidationError(f"Missing field in payload: {e!r}")

        if isinstance(temperature, bool) or not isinstance(temperature, (int, float)):
            raise ValidationError(f"Temperature is not numeric: {temperature!r}")
        if not isinstance(condition, str):
            raise ValidationError(f"Condition is not a string: {condition!r}")

        return WeatherSnapshot(city=city, temperature=float(temperature), condition=condition)

    def fetch_current(self, city: str, record: bool = True) -> Optional[WeatherSnapshot]:
        """
        Fetch current conditions for a city.

        Args:
            city: City name as the provider knows it
            record: Keep the outcome in the per-city fetch metadata. One-off
                lookups, such as checking a name before it is watched, pass False.

        Returns:
            WeatherSnapshot, or None when the provider gave no usable data
        """
        fetch_start = datetime.utcnow()

        try:
            if not city or not city.strip():
                raise ValidationError("City name is empty")

            payload = self._fetch_raw(city)
            snapshot = self._parse_payload(city, payload)

            if record:
                self._record(city, fetch_start, success=True)
            logger.debug(f"Fetched weather for {city}: {snapshot.temperature}°C, {snapshot.condition}")
            return snapshot

        except (FetchError, ValidationError) as e:
            if record:
                self._record(city, fetch_start, success=False, error_message=str(e))
            logger.error(f"Error fetching weather data for {city}: {e}")
            return None

    def _record(
        self,
        city: str,
        fetch_start: datetime,
        success: bool,
        error_message: Optional[str] = None
    ) -> None:
        self._last_fetch_metadata[city] = FetchMetadata(
            city=city,
            success=success,
            error_message=error_message,
            response_time_ms=int((datetime.utcnow() - fetch_start).total_seconds() * 1000),
            fetch_time=fetch_start.isoformat()
        )

    def forget(self, city: str) -> None:
        """Drop the fetch metadata kept for a city."""
        self._last_fetch_metadata.pop(city, None)

    def get_source_health(self) -> Dict[str, FetchMetadata]:
        """Get the last fetch outcome per city."""
        return self._last_fetch_metadata.copy()

    def close(self) -> None:
        """Close HTTP session."""
        self._session.close()
