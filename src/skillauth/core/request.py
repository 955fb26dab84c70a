"""Event parsing plus freshness and application-identity checks.

These run *after* the signature has been verified over the raw body,
and parse that same buffer; the body is never re-serialised.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

from skillauth.core.errors import VerificationError
from skillauth.core.types import ErrorKind

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class SkillEvent:
    """Verified request envelope handed to downstream business logic.

    Attributes
    ----------
    application_id:
        ``session.application.applicationId``.
    timestamp:
        ``request.timestamp`` as an aware UTC datetime.
    request_type:
        ``request.type`` (e.g. ``IntentRequest``), or ``None``.
    payload:
        The complete decoded JSON document.

    """

    application_id: str
    timestamp: datetime
    request_type: str | None = None
    payload: dict[str, Any] = field(default_factory=dict, compare=False, repr=False)


def parse_timestamp(value: Any) -> datetime:  # noqa: ANN401
    """Parse an RFC 3339 ``request.timestamp`` into an aware UTC datetime."""
    if not isinstance(value, str) or not value:
        raise VerificationError(
            ErrorKind.MALFORMED_REQUEST,
            "request.timestamp is missing",
        )
    try:
        parsed = datetime.fromisoformat(value)
    except ValueError:
        raise VerificationError(
            ErrorKind.MALFORMED_REQUEST,
            f"request.timestamp is not RFC 3339: {value!r}",
        ) from None
    if parsed.tzinfo is None:
        raise VerificationError(
            ErrorKind.MALFORMED_REQUEST,
            f"request.timestamp has no UTC offset: {value!r}",
        )
    return parsed.astimezone(UTC)


def parse_event(body: bytes) -> SkillEvent:
    """Decode *body* and extract the fields the verification stages need.

    Raises
    ------
    VerificationError
        ``MALFORMED_REQUEST`` if the body is not a JSON object or a
        required field is missing or mistyped.

    """
    try:
        payload = json.loads(body)
    except (UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise VerificationError(
            ErrorKind.MALFORMED_REQUEST,
            f"Request body is not valid JSON: {exc}",
        ) from None

    if not isinstance(payload, dict):
        raise VerificationError(
            ErrorKind.MALFORMED_REQUEST,
            "Request body is not a JSON object",
        )

    request_obj = payload.get("request")
    if not isinstance(request_obj, dict):
        raise VerificationError(ErrorKind.MALFORMED_REQUEST, "request object is missing")

    session = payload.get("session")
    application = session.get("application") if isinstance(session, dict) else None
    application_id = application.get("applicationId") if isinstance(application, dict) else None
    if not isinstance(application_id, str):
        raise VerificationError(
            ErrorKind.MALFORMED_REQUEST,
            "session.application.applicationId is missing",
        )

    request_type = request_obj.get("type")
    return SkillEvent(
        application_id=application_id,
        timestamp=parse_timestamp(request_obj.get("timestamp")),
        request_type=request_type if isinstance(request_type, str) else None,
        payload=payload,
    )


def validate_freshness(
    timestamp: datetime,
    now: datetime,
    max_skew_seconds: float,
) -> None:
    """Reject *timestamp* if it is more than *max_skew_seconds* from *now*.

    The comparison is on the absolute difference, so requests from the
    future are held to the same limit.  A difference exactly equal to
    the limit is accepted.
    """
    skew = abs((now - timestamp).total_seconds())
    if skew > max_skew_seconds:
        raise VerificationError(
            ErrorKind.REQUEST_EXPIRED,
            f"Request timestamp is {skew:.3f}s from now (limit {max_skew_seconds}s)",
        )


def validate_application_id(actual: str, expected: str) -> None:
    """Require *actual* to equal the configured *expected* application ID.

    An empty *expected* value is a misconfiguration, never a wildcard.
    """
    if not expected:
        raise VerificationError(
            ErrorKind.MISCONFIGURED,
            "Expected application ID is not configured",
        )
    if actual != expected:
        raise VerificationError(
            ErrorKind.APPLICATION_MISMATCH,
            f"Application ID {actual!r} does not match the configured ID",
        )
