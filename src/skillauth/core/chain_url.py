"""Validation of the claimed signing-certificate chain URL.

Runs before any network I/O so that an attacker-supplied header can
never make the service fetch from an arbitrary host.

Accepted URLs look like::

    https://s3.amazonaws.com/echo.api/echo-api-cert-12.pem
    https://S3.AMAZONAWS.COM:443/echo.api/../echo.api/echo-api-cert.pem
"""

from __future__ import annotations

import logging
import posixpath
from typing import NoReturn
from urllib.parse import unquote, urlsplit

from skillauth.core.errors import VerificationError
from skillauth.core.types import (
    DEFAULT_CHAIN_HOST,
    DEFAULT_CHAIN_PATH_PREFIX,
    ErrorKind,
)

log = logging.getLogger(__name__)

_HTTPS_PORT = 443


def validate_chain_url(
    header_value: str | None,
    *,
    host: str = DEFAULT_CHAIN_HOST,
    path_prefix: str = DEFAULT_CHAIN_PATH_PREFIX,
) -> str:
    """Return *header_value* unchanged if it is an acceptable chain URL.

    Parameters
    ----------
    header_value:
        Raw ``SignatureCertChainUrl`` header, or ``None`` if absent.
    host:
        Required host (compared case-insensitively).
    path_prefix:
        Required prefix of the normalised path (case-sensitive).

    Raises
    ------
    VerificationError
        ``MISSING_CHAIN_HEADER`` when the header is absent or blank,
        ``UNACCEPTABLE_CHAIN_URL`` when scheme, host, port, or path
        do not match.

    """
    if header_value is None or not header_value.strip():
        raise VerificationError(
            ErrorKind.MISSING_CHAIN_HEADER,
            "SignatureCertChainUrl header is missing",
        )

    try:
        parts = urlsplit(header_value.strip())
        port = parts.port
    except ValueError as exc:
        raise VerificationError(
            ErrorKind.UNACCEPTABLE_CHAIN_URL,
            f"Chain URL could not be parsed: {exc}",
        ) from None

    if parts.scheme.lower() != "https":
        _reject(header_value, f"scheme '{parts.scheme}' is not https")
    if parts.username is not None or parts.password is not None:
        _reject(header_value, "userinfo is not allowed")
    if (parts.hostname or "") != host.lower():
        _reject(header_value, f"host '{parts.hostname}' is not '{host}'")
    if port is not None and port != _HTTPS_PORT:
        _reject(header_value, f"port {port} is not {_HTTPS_PORT}")

    # Resolve "." / ".." segments (including percent-encoded ones) so
    # "/echo.api/../other" cannot slip past the prefix check.
    path = posixpath.normpath(unquote(parts.path or "/"))
    if not path.startswith(path_prefix):
        _reject(header_value, f"path '{parts.path}' is outside '{path_prefix}'")

    return header_value


def _reject(url: str, reason: str) -> NoReturn:
    log.debug("Rejecting chain URL %s: %s", url, reason)
    raise VerificationError(
        ErrorKind.UNACCEPTABLE_CHAIN_URL,
        f"Chain URL is not acceptable: {reason}",
    )
