"""
cache/store.py -- Session cache: user id -> serialized user snapshot.

A session record is the single revocation point of the auth subsystem. A
refresh token is honoured only while the record for its user exists; logout
deletes the record and every outstanding refresh token for that user stops
working even though it still verifies cryptographically.

One record per user. A new login or refresh overwrites the previous record
(last writer wins). No TTL is applied here -- the refresh-token lifetime bounds
the session unless logout removes the record first.

Two backends share the same three-method contract:
    SQLiteSessionCache -- default, a single local table (INSERT OR REPLACE)
    RedisSessionCache  -- used when REDIS_URL is set

Usage:
    cache = build_session_cache(get_settings())
    cache.set(42, '{"id": 42, ...}')
    cache.get(42)        # returns the JSON string or None
    cache.delete(42)     # no-op when absent
"""

import logging
import sqlite3
import time
from typing import Optional, Protocol

from redis import Redis

from core.config import Settings

logger = logging.getLogger("elearning.cache")

_DDL = """
CREATE TABLE IF NOT EXISTS sessions (
    user_id     TEXT PRIMARY KEY,
    data        TEXT NOT NULL,
    stored_at   REAL NOT NULL
);
"""


class SessionCache(Protocol):
    def set(self, user_id: int, data: str) -> None: ...

    def get(self, user_id: int) -> Optional[str]: ...

    def delete(self, user_id: int) -> None: ...

    def close(self) -> None: ...


class SQLiteSessionCache:
    def __init__(self, db_path: str = ":memory:") -> None:
        # TestClient and uvicorn run sync handlers in a thread pool.
        self._conn = sqlite3.connect(db_path, check_same_thread=False)
        if db_path != ":memory:":
            self._conn.execute("PRAGMA journal_mode=WAL")
        self._conn.execute(_DDL)
        self._conn.commit()

    def get(self, user_id: int) -> Optional[str]:
        """Return the stored snapshot, or None if the session does not exist."""
        row = self._conn.execute(
            "SELECT data FROM sessions WHERE user_id = ?",
            (str(user_id),),
        ).fetchone()
        return row[0] if row is not None else None

    def set(self, user_id: int, data: str) -> None:
        """Store data for user_id, replacing any existing record."""
        self._conn.execute(
            "INSERT OR REPLACE INTO sessions (user_id, data, stored_at) VALUES (?, ?, ?)",
            (str(user_id), data, time.time()),
        )
        self._conn.commit()

    def delete(self, user_id: int) -> None:
        self._conn.execute("DELETE FROM sessions WHERE user_id = ?", (str(user_id),))
        self._conn.commit()

    def close(self) -> None:
        self._conn.close()


class RedisSessionCache:
    """Same contract on top of Redis; keys are session:<user_id>.

    Each call is a single Redis command, so set/get/delete are atomic per key
    without any client-side locking.
    """

    _PREFIX = "session:"

    def __init__(self, client: Redis) -> None:
        self.client = client

    @classmethod
    def from_url(cls, redis_url: str, *, socket_timeout: float = 5.0) -> "RedisSessionCache":
        client = Redis.from_url(
            redis_url,
            decode_responses=True,
            socket_timeout=socket_timeout,
            socket_connect_timeout=socket_timeout,
        )
        return cls(client)

    def _key(self, user_id: int) -> str:
        return f"{self._PREFIX}{user_id}"

    def get(self, user_id: int) -> Optional[str]:
        return self.client.get(self._key(user_id))

    def set(self, user_id: int, data: str) -> None:
        self.client.set(self._key(user_id), data)

    def delete(self, user_id: int) -> None:
        self.client.delete(self._key(user_id))

    def verify_connection(self) -> None:
        """Fail fast at startup if Redis is unreachable."""
        self.client.ping()

    def close(self) -> None:
        self.client.close()


def build_session_cache(settings: Settings) -> SessionCache:
    """Pick the backend from settings: Redis when REDIS_URL is set, else SQLite."""
    if settings.redis_url:
        cache = RedisSessionCache.from_url(settings.redis_url)
        cache.verify_connection()
        logger.info("Session cache: redis")
        return cache
    logger.info("Session cache: sqlite (%s)", settings.session_db_path)
    return SQLiteSessionCache(settings.session_db_path)
