"""
URL-keyed content cache.

Scrape results are cached per normalized URL and result kind. Lookups are
awaited before any fetch; writes are fire-and-forget so a slow or failing
store never delays or breaks a response.

Two stores ship with the package: a SQLite index (persistent across
restarts) and an in-memory dict (tests, one-shot CLI use).
"""

import asyncio
import json
import logging
import sqlite3
import threading
from datetime import datetime, timedelta
from pathlib import Path
from typing import Any, Optional, Protocol
from urllib.parse import urlsplit, urlunsplit

from linkscrape.constants import DEFAULT_CACHE_TTL_DAYS
from linkscrape.models import CacheEntry

logger = logging.getLogger(__name__)

_DEFAULT_PORTS = {"http": 80, "https": 443}


def normalize_url(url: str) -> str:
    """
    Canonical form of a URL for cache keys.

    Lowercases scheme and host, drops default ports and the fragment, strips
    a trailing slash from non-root paths and keeps the query string.
    """
    url = url.strip()
    parts = urlsplit(url)
    if not parts.scheme or not parts.netloc:
        return url

    scheme = parts.scheme.lower()
    host = (parts.hostname or "").lower()
    try:
        port = parts.port
    except ValueError:
        port = None

    netloc = host
    if parts.username:
        userinfo = parts.username
        if parts.password:
            userinfo += f":{parts.password}"
        netloc = f"{userinfo}@{netloc}"
    if port is not None and _DEFAULT_PORTS.get(scheme) != port:
        netloc += f":{port}"

    path = parts.path or "/"
    if len(path) > 1 and path.endswith("/"):
        path = path.rstrip("/") or "/"

    return urlunsplit((scheme, netloc, path, parts.query, ""))


def cache_key(kind: str, url: str) -> str:
    """Namespaced key for a result kind and URL."""
    return f"{kind}:{normalize_url(url)}"


class CacheStore(Protocol):
    """Persistence interface for cache entries."""

    def get(self, key: str) -> Optional[CacheEntry]:
        ...

    def put(self, entry: CacheEntry) -> None:
        ...


class MemoryCacheStore:
    """Dict-backed store."""

    def __init__(self) -> None:
        self._entries: dict[str, CacheEntry] = {}
        self._lock = threading.Lock()

    def get(self, key: str) -> Optional[CacheEntry]:
        with self._lock:
            return self._entries.get(key)

    def put(self, entry: CacheEntry) -> None:
        with self._lock:
            self._entries[entry.key] = entry

    def delete(self, key: str) -> bool:
        with self._lock:
            return self._entries.pop(key, None) is not None

    def clear(self) -> int:
        with self._lock:
            count = len(self._entries)
            self._entries.clear()
            return count

    def __len__(self) -> int:
        return len(self._entries)


class SQLiteCacheStore:
    """
    SQLite-backed store.

    One row per key, overwritten on each write. Expired rows are purged on
    startup and can be purged on demand.
    """

    _SCHEMA = """
    CREATE TABLE IF NOT EXISTS scrape_cache (
        key TEXT PRIMARY KEY,
        payload TEXT NOT NULL,
        last_fetched TEXT NOT NULL,
        expires_at TEXT NOT NULL
    );
    CREATE INDEX IF NOT EXISTS idx_scrape_cache_expires_at ON scrape_cache(expires_at);
    """

    def __init__(self, db_path: Path):
        """
        Initialize the store.

        Args:
            db_path: SQLite database file; parent directories are created
        """
        self.db_path = Path(db_path)
        self._lock = threading.Lock()
        self._conn: sqlite3.Connection | None = None
        self._init_db()

    def _init_db(self) -> None:
        """Initialize SQLite database."""
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._conn = sqlite3.connect(str(self.db_path), check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        self._conn.executescript(self._SCHEMA)
        self._conn.commit()
        # Clean expired on startup
        self.purge_expired()

    def _get_conn(self) -> sqlite3.Connection:
        """Get database connection, initializing if needed."""
        if self._conn is None:
            self._init_db()
        return self._conn  # type: ignore

    def get(self, key: str) -> Optional[CacheEntry]:
        with self._lock:
            row = self._get_conn().execute(
                "SELECT * FROM scrape_cache WHERE key = ?",
                (key,)
            ).fetchone()

        if not row:
            return None

        last_fetched = datetime.fromisoformat(row["last_fetched"])
        expires_at = datetime.fromisoformat(row["expires_at"])
        return CacheEntry(
            key=row["key"],
            payload=json.loads(row["payload"]),
            last_fetched=last_fetched,
            ttl=expires_at - last_fetched,
        )

    def put(self, entry: CacheEntry) -> None:
        with self._lock:
            conn = self._get_conn()
            conn.execute(
                """INSERT OR REPLACE INTO scrape_cache
                   (key, payload, last_fetched, expires_at)
                   VALUES (?, ?, ?, ?)""",
                (
                    entry.key,
                    json.dumps(entry.payload),
                    entry.last_fetched.isoformat(),
                    entry.expires_at.isoformat(),
                )
            )
            conn.commit()

    def delete(self, key: str) -> bool:
        with self._lock:
            conn = self._get_conn()
            cursor = conn.execute("DELETE FROM scrape_cache WHERE key = ?", (key,))
            conn.commit()
            return cursor.rowcount > 0

    def purge_expired(self) -> int:
        """
        Remove all expired rows.

        Returns:
            Number of rows removed
        """
        with self._lock:
            conn = self._get_conn()
            cursor = conn.execute(
                "DELETE FROM scrape_cache WHERE expires_at < ?",
                (datetime.now().isoformat(),)
            )
            conn.commit()
            return cursor.rowcount

    def clear(self) -> int:
        with self._lock:
            conn = self._get_conn()
            cursor = conn.execute("DELETE FROM scrape_cache")
            conn.commit()
            return cursor.rowcount

    def close(self) -> None:
        """Close database connection."""
        with self._lock:
            if self._conn:
                self._conn.close()
                self._conn = None


class ContentCache:
    """
    Async facade over a CacheStore.

    Blocking store calls run in a worker thread. Store failures are logged
    and treated as misses (on read) or dropped (on write).
    """

    def __init__(
        self,
        store: Optional[CacheStore] = None,
        ttl: timedelta = timedelta(days=DEFAULT_CACHE_TTL_DAYS),
    ):
        self._store = store if store is not None else MemoryCacheStore()
        self.ttl = ttl
        self._writes: set[asyncio.Task] = set()

    async def lookup(self, kind: str, url: str) -> Optional[dict[str, Any]]:
        """
        Get a cached payload.

        Returns:
            The payload, or None on miss, expiry or store failure
        """
        key = cache_key(kind, url)
        try:
            entry = await asyncio.to_thread(self._store.get, key)
        except Exception as e:
            logger.warning(f"[Cache] Lookup failed for {key}: {e}")
            return None

        if entry is None:
            return None
        if entry.is_expired():
            logger.debug(f"[Cache] Expired entry for {key}")
            return None

        logger.info(f"[Cache] Hit for {key}")
        return entry.payload

    def store(self, kind: str, url: str, payload: dict[str, Any]) -> None:
        """Schedule a write and return immediately."""
        entry = CacheEntry(
            key=cache_key(kind, url),
            payload=payload,
            last_fetched=datetime.now(),
            ttl=self.ttl,
        )
        task = asyncio.ensure_future(self._write(entry))
        self._writes.add(task)
        task.add_done_callback(self._writes.discard)

    async def _write(self, entry: CacheEntry) -> None:
        try:
            await asyncio.to_thread(self._store.put, entry)
            logger.debug(f"[Cache] Stored {entry.key}")
        except Exception as e:
            logger.warning(f"[Cache] Failed to store {entry.key}: {e}")

    @property
    def pending_writes(self) -> int:
        return len(self._writes)

    async def drain(self) -> None:
        """Wait for all scheduled writes to finish."""
        while self._writes:
            await asyncio.gather(*list(self._writes), return_exceptions=True)
