import threading

import pytest
from fastapi.testclient import TestClient

from weather_alerts.api import create_app
from weather_alerts.config import Settings
from weather_alerts.database import Database
from weather_alerts.fetcher import WeatherSnapshot


class FakeFetcher:
    """Stands in for OpenWeatherFetcher; serves canned conditions per city."""

    def __init__(self, conditions=None):
        # city -> (temperature, condition), None for "no data", or an exception to raise
        self.conditions = dict(conditions or {})
        self.calls = []
        self.recorded = []
        self.forgotten = []
        self.fetched = threading.Event()
        self._lock = threading.Lock()

    def fetch_current(self, city, record=True):
        with self._lock:
            self.calls.append(city)
            self.recorded.append(record)
        self.fetched.set()
        outcome = self.conditions.get(city)
        if isinstance(outcome, Exception):
            raise outcome
        if outcome is None:
            return None
        temperature, condition = outcome
        return WeatherSnapshot(city=city, temperature=temperature, condition=condition)

    def forget(self, city):
        self.forgotten.append(city)

    def get_source_health(self):
        return {}


# Creates a database in a temporary directory for each test.
@pytest.fixture()
def database(tmp_path):
    db = Database(str(tmp_path / "test.db"))
    yield db
    db.close()


@pytest.fixture()
def fetcher():
    return FakeFetcher()


@pytest.fixture()
def client(database, fetcher):
    app = create_app(
        Settings(weather_api_key="test-key"),
        database=database,
        fetcher=fetcher,
        start_scheduler=False
    )
    with TestClient(app) as test_client:
        yield test_client
