"""
Configuration module for the Weather Alert Service.

Settings are read from environment variables; a local ``.env`` file is
loaded first so development setups do not need exported variables.
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import List

from dotenv import load_dotenv

load_dotenv()

DEFAULT_DB_PATH = Path(__file__).parent.parent / "weather_alerts.db"
DEFAULT_PORT = 8000
DEFAULT_REQUEST_TIMEOUT = 10  # seconds
DEFAULT_SWEEP_WORKERS = 4


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


@dataclass
class Settings:
    """Runtime settings for the service."""
    weather_api_key: str = ""
    database_path: str = str(DEFAULT_DB_PATH)
    host: str = "0.0.0.0"
    port: int = DEFAULT_PORT
    log_level: str = "INFO"
    cors_origins: List[str] = field(default_factory=lambda: ["*"])
    request_timeout: int = DEFAULT_REQUEST_TIMEOUT
    sweep_workers: int = DEFAULT_SWEEP_WORKERS
    debug: bool = False

    @classmethod
    def from_env(cls) -> "Settings":
        return cls(
            weather_api_key=os.getenv("WEATHER_API_KEY", ""),
            database_path=os.getenv("DATABASE_PATH", str(DEFAULT_DB_PATH)),
            host=os.getenv("HOST", "0.0.0.0"),
            port=_env_int("PORT", DEFAULT_PORT),
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
            cors_origins=[o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",") if o.strip()],
            request_timeout=_env_int("REQUEST_TIMEOUT", DEFAULT_REQUEST_TIMEOUT),
            sweep_workers=max(1, _env_int("SWEEP_WORKERS", DEFAULT_SWEEP_WORKERS)),
            debug=os.getenv("DEBUG", "false").lower() == "true",
        )
