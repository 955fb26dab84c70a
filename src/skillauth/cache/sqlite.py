"""File-backed certificate cache on SQLite.

Survives process restarts, which makes it the closest match to an
embedded key/value store.  Each thread keeps its own connection; the
table is created lazily, at most once per process.
"""

from __future__ import annotations

import logging
import sqlite3
import threading
import time
from pathlib import Path

from skillauth.cache.base import CacheError, CertificateCache

log = logging.getLogger(__name__)

_SCHEMA = (
    "CREATE TABLE IF NOT EXISTS cert_chains ("
    " url TEXT PRIMARY KEY,"
    " chain BLOB NOT NULL,"
    " stored_at REAL NOT NULL"
    ")"
)


class SqliteCertificateCache(CertificateCache):
    """Certificate cache stored in a SQLite database file.

    Parameters
    ----------
    path:
        Database file.  Parent directories are created on first use.

    """

    backend_name = "sqlite"

    def __init__(self, path: str | Path) -> None:
        self._path = Path(path)
        self._local = threading.local()
        self._init_lock = threading.Lock()
        self._initialized = False

    # -- connection / schema -------------------------------------------------

    def _get_conn(self) -> sqlite3.Connection:
        conn = getattr(self._local, "conn", None)
        if conn is not None:
            return conn
        conn = sqlite3.connect(
            self._path,
            timeout=30.0,
            isolation_level=None,
            check_same_thread=False,
        )
        conn.execute("PRAGMA busy_timeout=30000")
        conn.execute("PRAGMA journal_mode=WAL")
        self._local.conn = conn
        return conn

    def _ensure_schema(self) -> sqlite3.Connection:
        if not self._initialized:
            with self._init_lock:
                if not self._initialized:
                    try:
                        self._path.parent.mkdir(parents=True, exist_ok=True)
                        self._get_conn().execute(_SCHEMA)
                    except (OSError, sqlite3.Error) as exc:
                        msg = f"Cannot initialise certificate cache at {self._path}: {exc}"
                        raise CacheError(msg) from exc
                    self._initialized = True
                    log.info("SQLite certificate cache ready at %s", self._path)
        return self._get_conn()

    # -- CertificateCache ----------------------------------------------------

    def get(self, url: str) -> bytes | None:
        try:
            row = (
                self._ensure_schema()
                .execute("SELECT chain FROM cert_chains WHERE url = ?", (url,))
                .fetchone()
            )
        except sqlite3.Error as exc:
            msg = f"Certificate cache read failed: {exc}"
            raise CacheError(msg) from exc
        if row is None or not row[0]:
            return None
        return bytes(row[0])

    def put(self, url: str, chain_pem: bytes) -> None:
        try:
            self._ensure_schema().execute(
                "INSERT INTO cert_chains (url, chain, stored_at) VALUES (?, ?, ?) "
                "ON CONFLICT (url) DO UPDATE SET chain = excluded.chain, "
                "stored_at = excluded.stored_at",
                (url, sqlite3.Binary(chain_pem), time.time()),
            )
        except sqlite3.Error as exc:
            msg = f"Certificate cache write failed: {exc}"
            raise CacheError(msg) from exc

    def delete(self, url: str) -> bool:
        try:
            cur = self._ensure_schema().execute(
                "DELETE FROM cert_chains WHERE url = ?",
                (url,),
            )
        except sqlite3.Error as exc:
            msg = f"Certificate cache delete failed: {exc}"
            raise CacheError(msg) from exc
        return cur.rowcount > 0

    def keys(self) -> list[str]:
        try:
            rows = (
                self._ensure_schema()
                .execute("SELECT url FROM cert_chains ORDER BY url")
                .fetchall()
            )
        except sqlite3.Error as exc:
            msg = f"Certificate cache read failed: {exc}"
            raise CacheError(msg) from exc
        return [row[0] for row in rows]

    def clear(self) -> int:
        try:
            cur = self._ensure_schema().execute("DELETE FROM cert_chains")
        except sqlite3.Error as exc:
            msg = f"Certificate cache clear failed: {exc}"
            raise CacheError(msg) from exc
        return cur.rowcount

    def close(self) -> None:
        """Close this thread's connection, if any."""
        conn = getattr(self._local, "conn", None)
        if conn is not None:
            conn.close()
            self._local.conn = None
