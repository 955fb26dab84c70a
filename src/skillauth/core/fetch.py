"""Download of signing-certificate chains.

The fetcher never follows redirects: the URL it receives has already
been checked by :func:`~skillauth.core.chain_url.validate_chain_url`,
and a redirect would let the upstream send us to a host that was
never validated.  Every failure is reported as
``CHAIN_FETCH_FAILED`` so the request fails closed.
"""

from __future__ import annotations

import http.client
import logging
import time
import urllib.error
import urllib.request
from typing import NoReturn

from skillauth.core.errors import VerificationError
from skillauth.core.types import ErrorKind

log = logging.getLogger(__name__)

DEFAULT_FETCH_TIMEOUT_SECONDS = 5.0
DEFAULT_MAX_CHAIN_BYTES = 64 * 1024

_HTTP_OK = 200
_READ_CHUNK_BYTES = 4096


class _NoRedirectHandler(urllib.request.HTTPRedirectHandler):
    """Turn every 3xx response into an :class:`urllib.error.HTTPError`."""

    def redirect_request(self, req, fp, code, msg, headers, newurl):  # noqa: ARG002, PLR0913
        log.warning(
            "Refusing redirect from %s to %s (HTTP %d)",
            req.full_url,
            newurl,
            code,
        )


class ChainFetcher:
    """Fetch raw PEM chain bytes over HTTPS.

    Parameters
    ----------
    timeout_seconds:
        Deadline for the whole fetch, from connect to the last body
        byte.  Also used as the socket timeout, so a single stalled
        read overshoots the deadline by at most this much.
    max_bytes:
        Largest response body accepted.  Larger bodies are treated
        as a fetch failure rather than truncated.

    """

    def __init__(
        self,
        *,
        timeout_seconds: float = DEFAULT_FETCH_TIMEOUT_SECONDS,
        max_bytes: int = DEFAULT_MAX_CHAIN_BYTES,
    ) -> None:
        self._timeout = timeout_seconds
        self._max_bytes = max_bytes
        self._opener = urllib.request.build_opener(_NoRedirectHandler())

    def fetch(self, url: str) -> bytes:
        """Return the response body for *url*.

        Raises
        ------
        VerificationError
            ``CHAIN_FETCH_FAILED`` on timeout, connection error,
            malformed response, redirect, non-200 status, or an
            oversized body.

        """
        deadline = time.monotonic() + self._timeout
        req = urllib.request.Request(
            url,
            method="GET",
            headers={"Accept": "application/x-pem-file, */*"},
        )

        try:
            with self._opener.open(req, timeout=self._timeout) as resp:
                status = getattr(resp, "status", _HTTP_OK)
                if status != _HTTP_OK:
                    _fail(url, f"unexpected HTTP status {status}")
                body = self._read_body(resp, url, deadline)
        except urllib.error.HTTPError as exc:
            log.warning("Chain host %s returned HTTP %d", url, exc.code)
            _fail(url, f"HTTP {exc.code}")
        except urllib.error.URLError as exc:
            log.warning("Chain fetch from %s failed: network error: %s", url, exc.reason)
            _fail(url, f"network error: {exc.reason}")
        except http.client.HTTPException as exc:
            log.warning("Chain host %s sent a malformed response: %r", url, exc)
            _fail(url, f"malformed response: {type(exc).__name__}")
        except (OSError, ValueError) as exc:
            log.warning("Chain fetch from %s failed: %s", url, exc)
            _fail(url, str(exc) or type(exc).__name__)

        if not body:
            _fail(url, "empty response body")

        log.info("Fetched certificate chain: url=%s bytes=%d", url, len(body))
        return body

    def _read_body(self, resp, url: str, deadline: float) -> bytes:
        """Read *resp* in chunks, enforcing the size limit and *deadline*.

        ``read1`` returns after at most one socket read, so a host
        trickling bytes cannot hold the loop past the deadline.
        """
        chunks: list[bytes] = []
        received = 0
        while True:
            if time.monotonic() >= deadline:
                log.warning("Chain fetch from %s exceeded %.1fs", url, self._timeout)
                _fail(url, "timed out")
            chunk = resp.read1(_READ_CHUNK_BYTES)
            if not chunk:
                break
            received += len(chunk)
            if received > self._max_bytes:
                _fail(url, f"response exceeds {self._max_bytes} bytes")
            chunks.append(chunk)
        return b"".join(chunks)


def _fail(url: str, reason: str) -> NoReturn:
    raise VerificationError(
        ErrorKind.CHAIN_FETCH_FAILED,
        f"Could not fetch certificate chain from {url}: {reason}",
    )
