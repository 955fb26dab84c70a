"""Process-local certificate cache."""

from __future__ import annotations

import threading

from skillauth.cache.base import CertificateCache


class InMemoryCertificateCache(CertificateCache):
    """Dict-backed cache guarded by a lock.

    Entries live for the lifetime of the process only.
    """

    backend_name = "memory"

    def __init__(self) -> None:
        self._entries: dict[str, bytes] = {}
        self._lock = threading.Lock()

    def get(self, url: str) -> bytes | None:
        with self._lock:
            return self._entries.get(url)

    def put(self, url: str, chain_pem: bytes) -> None:
        with self._lock:
            self._entries[url] = bytes(chain_pem)

    def delete(self, url: str) -> bool:
        with self._lock:
            return self._entries.pop(url, None) is not None

    def keys(self) -> list[str]:
        with self._lock:
            return sorted(self._entries)

    def clear(self) -> int:
        with self._lock:
            removed = len(self._entries)
            self._entries.clear()
            return removed
