"""Enumerated types and fixed platform constants for request verification.

:class:`ErrorKind` inherits from ``StrEnum`` so its ``.value`` is a
plain string suitable for log fields and JSON round-trips.
"""

from __future__ import annotations

from enum import StrEnum

# ---------------------------------------------------------------------------
# Platform constants
# ---------------------------------------------------------------------------

SIGNING_CERT_HOSTNAME = "echo-api.amazon.com"
"""Hostname the signing certificate must be valid for."""

CHAIN_URL_HEADER = "SignatureCertChainUrl"
SIGNATURE_HEADER = "Signature"

DEFAULT_CHAIN_HOST = "s3.amazonaws.com"
DEFAULT_CHAIN_PATH_PREFIX = "/echo.api/"

DEFAULT_MAX_TIMESTAMP_SKEW_SECONDS = 60
MAX_TIMESTAMP_SKEW_CEILING_SECONDS = 150
"""Upper bound the platform accepts for the freshness window."""


# ---------------------------------------------------------------------------
# Error taxonomy
# ---------------------------------------------------------------------------


class ErrorKind(StrEnum):
    MISSING_CHAIN_HEADER = "missing_chain_header"
    UNACCEPTABLE_CHAIN_URL = "unacceptable_chain_url"
    CHAIN_FETCH_FAILED = "chain_fetch_failed"
    CERTIFICATE_INVALID = "certificate_invalid"
    MISSING_SIGNATURE = "missing_signature"
    INVALID_SIGNATURE_ENCODING = "invalid_signature_encoding"
    SIGNATURE_MISMATCH = "signature_mismatch"
    MALFORMED_REQUEST = "malformed_request"
    REQUEST_EXPIRED = "request_expired"
    APPLICATION_MISMATCH = "application_mismatch"
    CACHE_WRITE_FAILED = "cache_write_failed"
    MISCONFIGURED = "misconfigured"


# Failures caused by our own infrastructure rather than the caller.
SERVER_SIDE_ERRORS = frozenset(
    {
        ErrorKind.CHAIN_FETCH_FAILED,
        ErrorKind.CACHE_WRITE_FAILED,
        ErrorKind.MISCONFIGURED,
    }
)


def http_status_for(kind: ErrorKind) -> int:
    """Return the HTTP status the boundary layer should answer with."""
    return 500 if kind in SERVER_SIDE_ERRORS else 400
