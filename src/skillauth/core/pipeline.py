"""The request authentication pipeline.

Stages run in a fixed order and the first failure ends the run::

    1. chain URL     header present, https://s3.amazonaws.com/echo.api/...
    2. chain         cache hit, or fetch; then verify chain of trust
    3. signature     SHA-1 RSA signature over the raw body bytes
    4. parse         decode the same body buffer as JSON
    5. freshness     |now - request.timestamp| <= max skew
    6. identity      session.application.applicationId == configured ID

Each stage raises :class:`~skillauth.core.errors.VerificationError`;
:meth:`RequestVerifier.verify` turns that into a
:class:`VerificationResult` so callers branch on a value, never on an
exception.

Usage::

    verifier = RequestVerifier(settings.verification, cache=cache)
    result = verifier.verify(request.headers, request.get_data())
    if not result.ok:
        return generic_error(result.http_status)
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from skillauth.cache.base import CacheError, CertificateCache, NullCertificateCache
from skillauth.core.chain import ChainVerifier
from skillauth.core.chain_url import validate_chain_url
from skillauth.core.errors import VerificationError
from skillauth.core.fetch import ChainFetcher
from skillauth.core.request import (
    SkillEvent,
    parse_event,
    validate_application_id,
    validate_freshness,
)
from skillauth.core.signature import verify_signature
from skillauth.core.types import (
    CHAIN_URL_HEADER,
    SIGNATURE_HEADER,
    ErrorKind,
    http_status_for,
)
from skillauth.logging import security_events

if TYPE_CHECKING:
    from cryptography import x509

    from skillauth.config.settings import VerificationSettings

log = logging.getLogger(__name__)

_CHAIN_URL_KINDS = frozenset({ErrorKind.MISSING_CHAIN_HEADER, ErrorKind.UNACCEPTABLE_CHAIN_URL})
_SIGNATURE_KINDS = frozenset(
    {
        ErrorKind.MISSING_SIGNATURE,
        ErrorKind.INVALID_SIGNATURE_ENCODING,
        ErrorKind.SIGNATURE_MISMATCH,
    }
)


# ---------------------------------------------------------------------------
# Result value
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class VerificationResult:
    """Outcome of one pipeline run: a verified event or a classified error."""

    event: SkillEvent | None = None
    error: ErrorKind | None = None
    detail: str = ""

    @property
    def ok(self) -> bool:
        return self.error is None and self.event is not None

    @property
    def http_status(self) -> int:
        """Status the HTTP boundary should answer with."""
        if self.error is None:
            return 200
        return http_status_for(self.error)

    @classmethod
    def success(cls, event: SkillEvent) -> VerificationResult:
        return cls(event=event)

    @classmethod
    def failure(cls, exc: VerificationError) -> VerificationResult:
        return cls(error=exc.kind, detail=exc.detail)


# ---------------------------------------------------------------------------
# Per-request state threaded through the stages
# ---------------------------------------------------------------------------


@dataclass
class _RequestState:
    headers: Mapping[str, str]
    body: bytes
    chain_url: str = ""
    cache_hit: bool = False
    certificate: x509.Certificate | None = None
    event: SkillEvent | None = None


def _header(headers: Mapping[str, str], name: str) -> str | None:
    """Case-insensitive header lookup that works for plain dicts too."""
    value = headers.get(name)
    if value is not None:
        return value
    lowered = name.lower()
    for key, candidate in headers.items():
        if key.lower() == lowered:
            return candidate
    return None


# ---------------------------------------------------------------------------
# Verifier
# ---------------------------------------------------------------------------


class RequestVerifier:
    """Authenticate platform webhook requests.

    Holds only read-only configuration and collaborators, so one
    instance can serve concurrent requests.

    Parameters
    ----------
    settings:
        The ``verification`` configuration section.
    cache:
        Certificate cache; ``None`` means :class:`NullCertificateCache`.
    fetcher:
        Chain downloader; defaults to a :class:`ChainFetcher` built
        from *settings*.
    chain_verifier:
        Chain-of-trust verifier; defaults to one sharing *clock*.
    clock:
        Returns the current aware UTC time.
    strict_cache_writes:
        When true a failed cache write rejects the request with
        ``CACHE_WRITE_FAILED``; otherwise it is logged and the
        already-verified request proceeds.

    """

    def __init__(  # noqa: PLR0913
        self,
        settings: VerificationSettings,
        *,
        cache: CertificateCache | None = None,
        fetcher: ChainFetcher | None = None,
        chain_verifier: ChainVerifier | None = None,
        clock: Callable[[], datetime] | None = None,
        strict_cache_writes: bool = False,
    ) -> None:
        self._settings = settings
        self._cache = cache if cache is not None else NullCertificateCache()
        self._clock = clock or (lambda: datetime.now(UTC))
        self._fetcher = fetcher or ChainFetcher(
            timeout_seconds=settings.fetch_timeout_seconds,
            max_bytes=settings.max_chain_bytes,
        )
        self._chain_verifier = chain_verifier or ChainVerifier(clock=self._clock)
        self._strict_cache_writes = strict_cache_writes

        if not settings.application_id:
            log.error(
                "No expected application ID configured; every request will be rejected",
            )

        self._stages: tuple[Callable[[_RequestState], None], ...] = (
            self._check_chain_url,
            self._load_certificate,
            self._check_signature,
            self._parse_event,
            self._check_freshness,
            self._check_application,
        )

    @property
    def cache(self) -> CertificateCache:
        return self._cache

    # -- entry point --------------------------------------------------------

    def verify(self, headers: Mapping[str, str], body: bytes) -> VerificationResult:
        """Run every stage against one request.

        Parameters
        ----------
        headers:
            Request headers (case-insensitive lookup).
        body:
            The raw request body, read once before any JSON parsing.

        Returns
        -------
        VerificationResult
            ``ok`` with the parsed :class:`SkillEvent`, or the first
            failure's :class:`ErrorKind`.

        """
        state = _RequestState(headers=headers, body=bytes(body))

        for stage in self._stages:
            try:
                stage(state)
            except VerificationError as exc:
                self._report(state, exc)
                return VerificationResult.failure(exc)

        event = state.event
        if event is None:  # pragma: no cover - _parse_event always sets it
            exc = VerificationError(ErrorKind.MALFORMED_REQUEST, "No event parsed")
            return VerificationResult.failure(exc)

        security_events.request_verified(
            event.application_id,
            state.chain_url,
            cache_hit=state.cache_hit,
        )
        return VerificationResult.success(event)

    # -- stages -------------------------------------------------------------

    def _check_chain_url(self, state: _RequestState) -> None:
        state.chain_url = validate_chain_url(
            _header(state.headers, CHAIN_URL_HEADER),
            host=self._settings.chain_host,
            path_prefix=self._settings.chain_path_prefix,
        )

    def _load_certificate(self, state: _RequestState) -> None:
        url = state.chain_url

        try:
            chain_pem = self._cache.get(url)
        except CacheError as exc:
            raise VerificationError(
                ErrorKind.CHAIN_FETCH_FAILED,
                f"Certificate cache read failed: {exc}",
            ) from None

        state.cache_hit = bool(chain_pem)
        if not chain_pem:
            chain_pem = self._fetcher.fetch(url)

        # Always re-verified: the cache holds bytes, not a verdict.
        state.certificate = self._chain_verifier.verify(chain_pem)

        if not state.cache_hit:
            self._store(url, chain_pem)

    def _store(self, url: str, chain_pem: bytes) -> None:
        try:
            self._cache.put(url, chain_pem)
        except CacheError as exc:
            security_events.cache_write_failed(url, str(exc))
            if self._strict_cache_writes:
                raise VerificationError(
                    ErrorKind.CACHE_WRITE_FAILED,
                    f"Certificate cache write failed: {exc}",
                ) from None

    def _check_signature(self, state: _RequestState) -> None:
        if state.certificate is None:  # pragma: no cover - guarded by stage order
            raise VerificationError(ErrorKind.CERTIFICATE_INVALID, "No signing certificate")
        verify_signature(
            _header(state.headers, SIGNATURE_HEADER),
            state.body,
            state.certificate,
        )

    def _parse_event(self, state: _RequestState) -> None:
        state.event = parse_event(state.body)

    def _check_freshness(self, state: _RequestState) -> None:
        validate_freshness(
            state.event.timestamp,
            self._clock(),
            self._settings.max_timestamp_skew_seconds,
        )

    def _check_application(self, state: _RequestState) -> None:
        validate_application_id(
            state.event.application_id,
            self._settings.application_id,
        )

    # -- reporting ----------------------------------------------------------

    def _report(self, state: _RequestState, exc: VerificationError) -> None:
        kind = exc.kind
        if kind in _CHAIN_URL_KINDS:
            security_events.chain_url_rejected(_header(state.headers, CHAIN_URL_HEADER), kind)
        elif kind == ErrorKind.CHAIN_FETCH_FAILED:
            security_events.chain_fetch_failed(state.chain_url, exc.detail)
        elif kind == ErrorKind.CERTIFICATE_INVALID:
            security_events.certificate_rejected(
                state.chain_url,
                exc.detail,
                cached=state.cache_hit,
            )
        elif kind in _SIGNATURE_KINDS:
            security_events.signature_rejected(state.chain_url, kind, len(state.body))
        elif kind == ErrorKind.CACHE_WRITE_FAILED:
            # Already reported by _store.
            pass
        else:
            application_id = state.event.application_id if state.event else None
            security_events.request_rejected(kind, exc.detail, application_id)
