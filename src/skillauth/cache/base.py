"""Abstract base class for certificate-chain caches.

A cache maps a chain URL to the raw PEM bytes fetched from it.  It
stores bytes only, never a verification verdict, so callers must
re-verify whatever :meth:`CertificateCache.get` returns.

Contract shared by every backend:

* ``get`` returns ``None`` on a miss and on a store that has not been
  initialised yet; it raises :class:`CacheError` only on real I/O
  failure.
* ``put`` overwrites (last writer wins) and raises :class:`CacheError`
  on failure.
* Nothing is ever evicted automatically; ``delete`` and ``clear`` exist
  for operators.
"""

from __future__ import annotations

import abc
import logging

log = logging.getLogger(__name__)


class CacheError(Exception):
    """Raised when the backing store cannot be read or written."""


class CertificateCache(abc.ABC):
    """Base class for all certificate cache implementations."""

    #: Short name used in configuration and log output.
    backend_name: str = "abstract"

    @abc.abstractmethod
    def get(self, url: str) -> bytes | None:
        """Return the cached chain for *url*, or ``None``."""

    @abc.abstractmethod
    def put(self, url: str, chain_pem: bytes) -> None:
        """Store *chain_pem* under *url*."""

    @abc.abstractmethod
    def delete(self, url: str) -> bool:
        """Remove the entry for *url*.  Returns True if one existed."""

    @abc.abstractmethod
    def keys(self) -> list[str]:
        """Return every cached URL, sorted."""

    def clear(self) -> int:
        """Remove every entry.  Returns the number removed."""
        removed = 0
        for url in self.keys():
            if self.delete(url):
                removed += 1
        return removed


class NullCertificateCache(CertificateCache):
    """Cache used when no backing store is configured.

    Every lookup misses and every write is discarded, so each request
    fetches its chain afresh.
    """

    backend_name = "none"

    def get(self, url: str) -> bytes | None:  # noqa: ARG002
        return None

    def put(self, url: str, chain_pem: bytes) -> None:
        pass

    def delete(self, url: str) -> bool:  # noqa: ARG002
        return False

    def keys(self) -> list[str]:
        return []
