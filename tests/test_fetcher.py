import requests

from weather_alerts.config import DEFAULT_REQUEST_TIMEOUT
from weather_alerts.fetcher import OpenWeatherFetcher, WeatherSnapshot


class FakeResponse:
    def __init__(self, json_data=None, status_code=200, invalid_json=False):
        self._json = json_data
        self.status_code = status_code
        self.invalid_json = invalid_json

    def json(self):
        if self.invalid_json:
            raise ValueError("Expecting value")
        return self._json

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"HTTP {self.status_code}", response=self)


def make_session_get_stub(response, calls):
    def _get(url, params=None, timeout=None, **kwargs):
        calls.append({"url": url, "params": dict(params or {}), "timeout": timeout})
        if isinstance(response, Exception):
            raise response
        return response
    return _get


def make_fetcher(monkeypatch, response, calls=None):
    fetcher = OpenWeatherFetcher(api_key="secret", timeout=5)
    monkeypatch.setattr(fetcher._session, "get", make_session_get_stub(response, calls if calls is not None else []))
    return fetcher


PARIS_PAYLOAD = {
    "name": "Paris",
    "main": {"temp": 32.4, "humidity": 40},
    "weather": [{"id": 800, "main": "Clear", "description": "clear sky"}],
}


def test_fetch_current_success(monkeypatch):
    calls = []
    fetcher = make_fetcher(monkeypatch, FakeResponse(PARIS_PAYLOAD), calls)

    snapshot = fetcher.fetch_current("Paris")

    assert isinstance(snapshot, WeatherSnapshot)
    assert snapshot.city == "Paris"
    assert snapshot.temperature == 32.4
    assert snapshot.condition == "Clear"
    assert calls[0]["url"] == "https://api.openweathermap.org/data/2.5/weather"
    assert calls[0]["params"] == {"q": "Paris", "units": "metric", "appid": "secret"}
    assert calls[0]["timeout"] == 5
    assert fetcher.get_source_health()["Paris"].success is True


def test_integer_temperature_is_accepted(monkeypatch):
    payload = {"main": {"temp": 15}, "weather": [{"main": "Rain"}]}
    fetcher = make_fetcher(monkeypatch, FakeResponse(payload))

    snapshot = fetcher.fetch_current("London")

    assert snapshot.temperature == 15.0
    assert snapshot.condition == "Rain"


def test_error_status_returns_none(monkeypatch):
    fetcher = make_fetcher(monkeypatch, FakeResponse({"cod": "404", "message": "city not found"}, status_code=404))

    assert fetcher.fetch_current("Atlantis") is None
    health = fetcher.get_source_health()["Atlantis"]
    assert health.success is False
    assert "404" in health.error_message


def test_connection_error_returns_none(monkeypatch):
    fetcher = make_fetcher(monkeypatch, requests.ConnectionError("no route to host"))
    assert fetcher.fetch_current("Paris") is None


def test_timeout_returns_none(monkeypatch):
    fetcher = make_fetcher(monkeypatch, requests.Timeout())
    assert fetcher.fetch_current("Paris") is None


def test_invalid_json_returns_none(monkeypatch):
    fetcher = make_fetcher(monkeypatch, FakeResponse(invalid_json=True))
    assert fetcher.fetch_current("Paris") is None


def test_malformed_payloads_return_none(monkeypatch):
    payloads = [
        {},
        {"main": {}, "weather": [{"main": "Clear"}]},
        {"main": {"temp": 20}, "weather": []},
        {"main": {"temp": "warm"}, "weather": [{"main": "Clear"}]},
        {"main": {"temp": True}, "weather": [{"main": "Clear"}]},
        {"main": {"temp": 20}, "weather": [{"main": None}]},
        ["not", "an", "object"],
    ]
    for payload in payloads:
        fetcher = make_fetcher(monkeypatch, FakeResponse(payload))
        assert fetcher.fetch_current("Paris") is None, payload


def test_blank_city_is_rejected_without_request(monkeypatch):
    calls = []
    fetcher = make_fetcher(monkeypatch, FakeResponse(PARIS_PAYLOAD), calls)

    assert fetcher.fetch_current("") is None
    assert fetcher.fetch_current("   ") is None
    assert calls == []


def test_single_attempt_per_fetch(monkeypatch):
    calls = []
    fetcher = make_fetcher(monkeypatch, FakeResponse({}, status_code=503), calls)

    fetcher.fetch_current("Paris")

    assert len(calls) == 1


def test_lookup_without_record_keeps_no_metadata(monkeypatch):
    fetcher = make_fetcher(monkeypatch, FakeResponse({}, status_code=404))

    for i in range(50):
        assert fetcher.fetch_current(f"Nowhere-{i}", record=False) is None

    assert fetcher.get_source_health() == {}


def test_forget_drops_city_metadata(monkeypatch):
    fetcher = make_fetcher(monkeypatch, FakeResponse(PARIS_PAYLOAD))
    fetcher.fetch_current("Paris")
    fetcher.fetch_current("London")

    fetcher.forget("Paris")
    fetcher.forget("Atlantis")

    assert list(fetcher.get_source_health()) == ["London"]


def test_default_timeout_comes_from_settings():
    fetcher = OpenWeatherFetcher(api_key="secret")
    assert fetcher.timeout == DEFAULT_REQUEST_TIMEOUT
    fetcher.close()
