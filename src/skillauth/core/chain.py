"""Chain-of-trust verification for the signing certificate.

The chain document served by the platform is self-contained: the first
PEM block is the signing (leaf) certificate and every following block is
an intermediate or root.  Those following blocks, and only those, are
the trust anchors; the system trust store is never consulted.

Path validation itself is delegated to :mod:`cryptography.x509.verification`,
which enforces validity windows, issuer signatures, CA constraints, and
the required DNS name.

Security note:
    Verification runs on every request, including when the chain bytes
    came from the cache.  The cache stores bytes, never a verdict.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime

from cryptography import x509
from cryptography.x509.verification import (
    PolicyBuilder,
    Store,
)
from cryptography.x509.verification import (
    VerificationError as PathValidationError,
)

from skillauth.core.errors import VerificationError
from skillauth.core.types import SIGNING_CERT_HOSTNAME, ErrorKind

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class ParsedChain:
    """A chain document split into its signing certificate and trust pool."""

    leaf: x509.Certificate
    pool: tuple[x509.Certificate, ...]


def split_chain(chain_pem: bytes) -> ParsedChain:
    """Parse *chain_pem* into the leaf and the remaining certificates.

    Raises
    ------
    VerificationError
        ``CERTIFICATE_INVALID`` if the document is not valid PEM, holds
        no certificate, or holds nothing besides the leaf.

    """
    try:
        certs = x509.load_pem_x509_certificates(chain_pem)
    except ValueError as exc:
        raise VerificationError(
            ErrorKind.CERTIFICATE_INVALID,
            f"Certificate chain is not valid PEM: {exc}",
        ) from None

    if not certs:
        raise VerificationError(
            ErrorKind.CERTIFICATE_INVALID,
            "Certificate chain contains no certificates",
        )
    if len(certs) < 2:  # noqa: PLR2004
        raise VerificationError(
            ErrorKind.CERTIFICATE_INVALID,
            "Certificate chain contains no issuer certificates",
        )

    return ParsedChain(leaf=certs[0], pool=tuple(certs[1:]))


class ChainVerifier:
    """Verify a chain document and return its signing certificate.

    Parameters
    ----------
    hostname:
        DNS name the leaf must be valid for.
    clock:
        Returns the current time; injectable for tests.  Must return
        an aware :class:`~datetime.datetime`.

    """

    def __init__(
        self,
        *,
        hostname: str = SIGNING_CERT_HOSTNAME,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._hostname = hostname
        self._clock = clock or (lambda: datetime.now(UTC))

    @property
    def hostname(self) -> str:
        return self._hostname

    def verify(self, chain_pem: bytes) -> x509.Certificate:
        """Validate *chain_pem* and return the verified leaf certificate.

        Raises
        ------
        VerificationError
            ``CERTIFICATE_INVALID`` when parsing or path validation fails
            (expired, not yet valid, untrusted issuer, wrong hostname).

        """
        chain = split_chain(chain_pem)

        # PolicyBuilder takes naive datetimes as UTC.
        now = self._clock().astimezone(UTC).replace(tzinfo=None)

        try:
            builder = PolicyBuilder().store(Store(list(chain.pool))).time(now)
            verifier = builder.build_server_verifier(x509.DNSName(self._hostname))
            verifier.verify(chain.leaf, [])
        except (PathValidationError, ValueError) as exc:
            log.debug(
                "Chain verification failed for %s: %s",
                chain.leaf.subject.rfc4514_string(),
                exc,
            )
            raise VerificationError(
                ErrorKind.CERTIFICATE_INVALID,
                f"Signing certificate failed verification: {exc}",
            ) from None

        return chain.leaf


def describe_certificate(cert: x509.Certificate) -> dict[str, str]:
    """Return printable metadata for *cert* (used by the CLI and logs)."""
    try:
        san = cert.extensions.get_extension_for_class(x509.SubjectAlternativeName)
        dns_names = ", ".join(san.value.get_values_for_type(x509.DNSName))
    except x509.ExtensionNotFound:
        dns_names = ""
    return {
        "subject": cert.subject.rfc4514_string(),
        "issuer": cert.issuer.rfc4514_string(),
        "serial_number": format(cert.serial_number, "x"),
        "not_before": cert.not_valid_before_utc.isoformat(),
        "not_after": cert.not_valid_after_utc.isoformat(),
        "dns_names": dns_names,
    }
