"""Request-body signature verification.

The platform signs the exact request body bytes with RSA PKCS#1 v1.5
over SHA-1 and sends the base64 signature in the ``Signature`` header.
The algorithm is fixed by the platform; it is reproduced here as-is.

All failures raise :class:`~skillauth.core.errors.VerificationError`.
The HTTP layer answers every kind with the same generic 400 so a caller
cannot tell which check rejected the request.
"""

from __future__ import annotations

import base64
import binascii
import logging
from typing import TYPE_CHECKING

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import padding, rsa

from skillauth.core.errors import VerificationError
from skillauth.core.types import ErrorKind

if TYPE_CHECKING:
    from cryptography import x509

log = logging.getLogger(__name__)


def decode_signature(signature_b64: str | None) -> bytes:
    """Strictly base64-decode the ``Signature`` header value."""
    if signature_b64 is None or not signature_b64.strip():
        raise VerificationError(
            ErrorKind.MISSING_SIGNATURE,
            "Signature header is missing",
        )
    try:
        decoded = base64.b64decode(signature_b64.strip(), validate=True)
    except (binascii.Error, ValueError):
        raise VerificationError(
            ErrorKind.INVALID_SIGNATURE_ENCODING,
            "Signature header is not valid base64",
        ) from None
    if not decoded:
        raise VerificationError(
            ErrorKind.INVALID_SIGNATURE_ENCODING,
            "Signature header decodes to zero bytes",
        )
    return decoded


def verify_signature(
    signature_b64: str | None,
    body: bytes,
    certificate: x509.Certificate,
) -> None:
    """Verify *signature_b64* over *body* with *certificate*'s public key.

    Parameters
    ----------
    signature_b64:
        Raw ``Signature`` header value.
    body:
        The request body exactly as received, before any JSON parsing.
    certificate:
        The leaf certificate returned by
        :meth:`~skillauth.core.chain.ChainVerifier.verify`.

    Raises
    ------
    VerificationError
        ``MISSING_SIGNATURE``, ``INVALID_SIGNATURE_ENCODING``, or
        ``SIGNATURE_MISMATCH``.

    """
    signature = decode_signature(signature_b64)

    public_key = certificate.public_key()
    if not isinstance(public_key, rsa.RSAPublicKey):
        raise VerificationError(
            ErrorKind.SIGNATURE_MISMATCH,
            f"Signing certificate key type {type(public_key).__name__} is not RSA",
        )

    try:
        public_key.verify(signature, body, padding.PKCS1v15(), hashes.SHA1())  # noqa: S303
    except InvalidSignature:
        raise VerificationError(
            ErrorKind.SIGNATURE_MISMATCH,
            "Request body does not match signature",
        ) from None

    log.debug("Request signature verified (%d body bytes)", len(body))
