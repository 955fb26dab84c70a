"""Certificate-chain caches.

Public API::

    from skillauth.cache import create_certificate_cache

    cache = create_certificate_cache(settings.cert_cache, db)
    chain = cache.get(url)          # bytes or None
    cache.put(url, chain)
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from skillauth.cache.base import CacheError, CertificateCache, NullCertificateCache
from skillauth.cache.memory import InMemoryCertificateCache
from skillauth.cache.sqlite import SqliteCertificateCache

if TYPE_CHECKING:
    from pypgkit import Database

    from skillauth.config.settings import CertCacheSettings

log = logging.getLogger(__name__)

__all__ = [
    "CacheError",
    "CertificateCache",
    "InMemoryCertificateCache",
    "NullCertificateCache",
    "SqliteCertificateCache",
    "create_certificate_cache",
]


def create_certificate_cache(
    settings: CertCacheSettings,
    db: Database | None = None,
) -> CertificateCache:
    """Factory: build the cache selected by ``cert_cache.backend``."""
    backend = settings.backend
    if backend == "memory":
        log.info("Using in-memory certificate cache")
        return InMemoryCertificateCache()
    if backend == "sqlite":
        log.info("Using SQLite certificate cache at %s", settings.sqlite_path)
        return SqliteCertificateCache(settings.sqlite_path)
    if backend == "database":
        if db is None:
            msg = "cert_cache.backend is 'database' but no database was initialised"
            raise CacheError(msg)
        from skillauth.cache.database import DatabaseCertificateCache  # noqa: PLC0415

        log.info("Using database certificate cache")
        return DatabaseCertificateCache(db)

    log.warning(
        "No certificate cache configured; every request will download its "
        "certificate chain. Configuring a cache is strongly recommended.",
    )
    return NullCertificateCache()
