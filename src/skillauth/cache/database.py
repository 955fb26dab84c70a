"""PostgreSQL-backed certificate cache.

Uses the shared PyPGKit :class:`Database` pool.  The ``cert_chains``
table is created lazily with ``CREATE TABLE IF NOT EXISTS`` the first
time the cache is touched in this process; writes are upserts so
concurrent workers storing the same URL simply overwrite each other.
"""

from __future__ import annotations

import logging
import threading
from typing import TYPE_CHECKING

from skillauth.cache.base import CacheError, CertificateCache

if TYPE_CHECKING:
    from pypgkit import Database

log = logging.getLogger(__name__)

_SCHEMA = (
    "CREATE TABLE IF NOT EXISTS cert_chains ("
    " url TEXT PRIMARY KEY,"
    " chain BYTEA NOT NULL,"
    " stored_at TIMESTAMPTZ NOT NULL DEFAULT now()"
    ")"
)


class DatabaseCertificateCache(CertificateCache):
    """Certificate cache stored in the ``cert_chains`` table."""

    backend_name = "database"

    def __init__(self, db: Database) -> None:
        self._db = db
        self._init_lock = threading.Lock()
        self._initialized = False

    def _ensure_schema(self) -> None:
        if self._initialized:
            return
        with self._init_lock:
            if self._initialized:
                return
            try:
                self._db.execute(_SCHEMA)
            except Exception as exc:
                msg = f"Cannot initialise cert_chains table: {exc}"
                raise CacheError(msg) from exc
            self._initialized = True
            log.info("Database certificate cache ready")

    def get(self, url: str) -> bytes | None:
        self._ensure_schema()
        try:
            value = self._db.fetch_value(
                "SELECT chain FROM cert_chains WHERE url = %s",
                (url,),
            )
        except Exception as exc:
            msg = f"Certificate cache read failed: {exc}"
            raise CacheError(msg) from exc
        if not value:
            return None
        return bytes(value)

    def put(self, url: str, chain_pem: bytes) -> None:
        self._ensure_schema()
        try:
            self._db.execute(
                "INSERT INTO cert_chains (url, chain, stored_at) VALUES (%s, %s, now()) "
                "ON CONFLICT (url) DO UPDATE SET chain = EXCLUDED.chain, "
                "stored_at = EXCLUDED.stored_at",
                (url, chain_pem),
            )
        except Exception as exc:
            msg = f"Certificate cache write failed: {exc}"
            raise CacheError(msg) from exc

    def delete(self, url: str) -> bool:
        self._ensure_schema()
        try:
            deleted = self._db.execute(
                "DELETE FROM cert_chains WHERE url = %s",
                (url,),
            )
        except Exception as exc:
            msg = f"Certificate cache delete failed: {exc}"
            raise CacheError(msg) from exc
        return bool(deleted)

    def keys(self) -> list[str]:
        self._ensure_schema()
        try:
            rows = self._db.fetch_all(
                "SELECT url FROM cert_chains ORDER BY url",
                as_dict=True,
            )
        except Exception as exc:
            msg = f"Certificate cache read failed: {exc}"
            raise CacheError(msg) from exc
        return [row["url"] for row in rows]

    def clear(self) -> int:
        self._ensure_schema()
        try:
            return self._db.execute("DELETE FROM cert_chains")
        except Exception as exc:
            msg = f"Certificate cache clear failed: {exc}"
            raise CacheError(msg) from exc
