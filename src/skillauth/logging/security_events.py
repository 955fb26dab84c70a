"""Structured security event logger.

Emits standardized security events for SIEM integration.
All events are logged to the ``skillauth.security`` logger with
a consistent ``event_id`` field for filtering and alerting.

Sensitive material (PEM bodies, signatures, request bodies) is
redacted via :func:`~skillauth.logging.sanitize.sanitize_for_logs`
before emission.
"""

from __future__ import annotations

import logging
from typing import Any

from skillauth.logging.sanitize import sanitize_for_logs

security_log = logging.getLogger("skillauth.security")


def _emit(
    event_id: str,
    message: str,
    *args: Any,  # noqa: ANN401
    severity: str = "INFO",
    **extra: Any,  # noqa: ANN401
) -> None:
    """Emit a structured security event.

    All *extra* keyword arguments are sanitized to redact
    cryptographic material before logging.
    """
    data: dict[str, object] = {
        "event_id": event_id,
        "severity": severity,
    }
    data.update(sanitize_for_logs(extra))
    level = getattr(logging, severity.upper(), logging.INFO)
    security_log.log(level, message, *args, extra=data)


def chain_url_rejected(chain_url: str | None, reason: str) -> None:
    """Log a request whose certificate chain URL failed validation."""
    _emit(
        "skillauth.security.chain_url_rejected",
        "Chain URL rejected: url=%s, reason=%s",
        chain_url,
        reason,
        chain_url=chain_url,
        error_kind=reason,
        severity="WARNING",
    )


def chain_fetch_failed(chain_url: str, detail: str) -> None:
    """Log a failure to download or read a certificate chain."""
    _emit(
        "skillauth.security.chain_fetch_failed",
        "Certificate chain unavailable: url=%s, detail=%s",
        chain_url,
        detail,
        chain_url=chain_url,
        severity="ERROR",
    )


def certificate_rejected(chain_url: str, detail: str, *, cached: bool) -> None:
    """Log a chain that failed verification (potential spoofing)."""
    _emit(
        "skillauth.security.certificate_rejected",
        "Signing certificate rejected: url=%s, cached=%s, detail=%s",
        chain_url,
        cached,
        detail,
        chain_url=chain_url,
        cached=cached,
        severity="WARNING",
    )


def signature_rejected(chain_url: str, error_kind: str, body_length: int) -> None:
    """Log a body/signature mismatch (potential tampering)."""
    _emit(
        "skillauth.security.signature_rejected",
        "Request signature rejected: url=%s, kind=%s",
        chain_url,
        error_kind,
        chain_url=chain_url,
        error_kind=error_kind,
        body_length=body_length,
        severity="WARNING",
    )


def request_rejected(error_kind: str, detail: str, application_id: str | None = None) -> None:
    """Log a request rejected for freshness, identity, or shape."""
    _emit(
        "skillauth.security.request_rejected",
        "Request rejected: kind=%s, detail=%s",
        error_kind,
        detail,
        error_kind=error_kind,
        application_id=application_id,
        severity="WARNING",
    )


def cache_write_failed(chain_url: str, detail: str) -> None:
    """Log a failed certificate cache write (degrades future latency)."""
    _emit(
        "skillauth.security.cache_write_failed",
        "Certificate cache write failed: url=%s, detail=%s",
        chain_url,
        detail,
        chain_url=chain_url,
        severity="ERROR",
    )


def request_verified(application_id: str, chain_url: str, *, cache_hit: bool) -> None:
    """Log a request that passed every authentication stage."""
    _emit(
        "skillauth.security.request_verified",
        "Request verified: application=%s, cache_hit=%s",
        application_id,
        cache_hit,
        application_id=application_id,
        chain_url=chain_url,
        cache_hit=cache_hit,
        severity="DEBUG",
    )
