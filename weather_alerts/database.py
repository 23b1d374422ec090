"""
Database module for the Weather Alert Service.

Handles SQLite persistence with:
- A watchlist table of tracked cities
- Append-only tables for weather readings and raised alerts
- History queries joined with city names
"""

import sqlite3
import threading
import logging
from typing import List, Dict, Any, Optional

from .config import DEFAULT_DB_PATH

logger = logging.getLogger(__name__)


class Database:
    """
    SQLite database wrapper with thread-safe operations.

    One connection is shared by the API and the scheduler's worker threads;
    every statement runs under a lock in autocommit mode, so concurrent
    writes from per-city checks are serialised.
    """

    def __init__(self, db_path: str = None) -> None:
        self._db_path = db_path or str(DEFAULT_DB_PATH)
        self._lock = threading.Lock()
        self._conn = None
        self._connect()
        self._init_schema()
        logger.info(f"Database initialized at {self._db_path}")

    def _connect(self) -> None:
        """Establish database connection with WAL mode."""
        self._conn = sqlite3.connect(
            self._db_path,
            check_same_thread=False,
            isolation_level=None
        )
        self._conn.row_factory = sqlite3.Row
        self._conn.execute("PRAGMA journal_mode=WAL")
        self._conn.execute("PRAGMA synchronous=NORMAL")
        self._conn.execute("PRAGMA foreign_keys=ON")

    def _init_schema(self) -> None:
        """Initialize database schema."""
        with self._lock:
            self._conn.execute("""
                CREATE TABLE IF NOT EXISTS cities (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    name TEXT NOT NULL UNIQUE
                )
            """)

            # Readings and alerts are removed together with their city
            self._conn.execute("""
                CREATE TABLE IF NOT EXISTS weather_data (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    city_id INTEGER NOT NULL REFERENCES cities(id) ON DELETE CASCADE,
                    temperature REAL NOT NULL,
                    weather_condition TEXT NOT NULL,
                    timestamp TEXT NOT NULL DEFAULT (datetime('now'))
                )
            """)

            self._conn.execute("""
                CREATE TABLE IF NOT EXISTS alerts (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    city_id INTEGER NOT NULL REFERENCES cities(id) ON DELETE CASCADE,
                    alert_type TEXT NOT NULL,
                    message TEXT NOT NULL,
                    timestamp TEXT NOT NULL DEFAULT (datetime('now'))
                )
            """)

            self._conn.execute("""
                CREATE INDEX IF NOT EXISTS idx_weather_city
                ON weather_data(city_id)
            """)
            self._conn.execute("""
                CREATE INDEX IF NOT EXISTS idx_alert_city
                ON alerts(city_id)
            """)

    # =========================================================================
    # Watchlist Operations
    # =========================================================================

    def add_city(self, name: str) -> Optional[Dict[str, Any]]:
        """Add a city to the watchlist. Returns None if it already exists."""
        with self._lock:
            cursor = self._conn.execute(
                "INSERT OR IGNORE INTO cities (name) VALUES (?)",
                (name,)
            )
            if cursor.rowcount == 0:
                return None
            return {"id": cursor.lastrowid, "name": name}

    def get_city(self, name: str) -> Optional[Dict[str, Any]]:
        """Look up a watched city by exact name."""
        with self._lock:
            cursor = self._conn.execute(
                "SELECT id, name FROM cities WHERE name = ?",
                (name,)
            )
            row = cursor.fetchone()
            return dict(row) if row else None

    def delete_city(self, name: str) -> bool:
        """Remove a city and its history. Returns False if it was not watched."""
        with self._lock:
            cursor = self._conn.execute(
                "DELETE FROM cities WHERE name = ?",
                (name,)
            )
            return cursor.rowcount > 0

    def list_cities(self) -> List[Dict[str, Any]]:
        """Get the watchlist in alphabetical order."""
        with self._lock:
            cursor = self._conn.execute("""
                SELECT id, name FROM cities
                ORDER BY name ASC
            """)
            return [dict(row) for row in cursor.fetchall()]

    # =========================================================================
    # Reading Operations
    # =========================================================================

    def insert_reading(
        self,
        city_id: int,
        temperature: float,
        weather_condition: str
    ) -> Optional[int]:
        """Store a weather reading. Returns the new row id, or None on failure."""
        with self._lock:
            try:
                cursor = self._conn.execute("""
                    INSERT INTO weather_data (city_id, temperature, weather_condition)
                    VALUES (?, ?, ?)
                """, (city_id, temperature, weather_condition))
                return cursor.lastrowid
            except sqlite3.Error as e:
                logger.error(f"Failed to store weather reading for city {city_id}: {e}")
                return None

    def get_weather_history(
        self,
        city: Optional[str] = None,
        limit: Optional[int] = None
    ) -> List[Dict[str, Any]]:
        """Get readings joined with city names, newest first."""
        query = """
            SELECT w.id, c.name AS city, w.temperature, w.weather_condition, w.timestamp
            FROM weather_data w
            JOIN cities c ON w.city_id = c.id
        """
        return self._history(query, "w", city, limit)

    # =========================================================================
    # Alert Operations
    # =========================================================================

    def insert_alert(self, city_id: int, alert_type: str, message: str) -> bool:
        """Append an alert record."""
        with self._lock:
            try:
                self._conn.execute("""
                    INSERT INTO alerts (city_id, alert_type, message)
                    VALUES (?, ?, ?)
                """, (city_id, alert_type, message))
                return True
            except sqlite3.Error as e:
                logger.error(f"Failed to store alert for city {city_id}: {e}")
                return False

    def get_alert_history(
        self,
        city: Optional[str] = None,
        limit: Optional[int] = None
    ) -> List[Dict[str, Any]]:
        """Get alerts joined with city names, newest first."""
        query = """
            SELECT a.id, c.name AS city, a.alert_type, a.message, a.timestamp
            FROM alerts a
            JOIN cities c ON a.city_id = c.id
        """
        return self._history(query, "a", city, limit)

    def _history(
        self,
        query: str,
        alias: str,
        city: Optional[str],
        limit: Optional[int]
    ) -> List[Dict[str, Any]]:
        params: list = []
        if city:
            query += " WHERE c.name = ?"
            params.append(city)
        # id breaks ties between rows stored within the same second
        query += f" ORDER BY {alias}.timestamp DESC, {alias}.id DESC"
        if limit:
            query += " LIMIT ?"
            params.append(limit)

        with self._lock:
            cursor = self._conn.execute(query, params)
            return [dict(row) for row in cursor.fetchall()]

    # =========================================================================
    # Summary
    # =========================================================================

    def get_data_summary(self) -> Dict[str, Any]:
        """Get summary of all data in database."""
        with self._lock:
            city_count = self._conn.execute(
                "SELECT COUNT(*) FROM cities"
            ).fetchone()[0]

            reading_count = self._conn.execute(
                "SELECT COUNT(*) FROM weather_data"
            ).fetchone()[0]

            alert_count = self._conn.execute(
                "SELECT COUNT(*) FROM alerts"
            ).fetchone()[0]

            return {
                "city_count": city_count,
                "reading_entries": reading_count,
                "alert_entries": alert_count,
            }

    def close(self) -> None:
        """Close database connection."""
        with self._lock:
            if self._conn:
                self._conn.close()
                self._conn = None
                logger.info("Database connection closed")
