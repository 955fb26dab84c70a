"""check-chain subcommand: run the chain stages of the pipeline by hand.

Validates the URL, downloads the PEM bundle, verifies it for the
signing hostname and prints the leaf's identity as JSON.  Nothing is
written to the certificate cache.
"""

from __future__ import annotations

import json
import sys

from skillauth.core.chain import ChainVerifier, describe_certificate
from skillauth.core.chain_url import validate_chain_url
from skillauth.core.errors import VerificationError
from skillauth.core.fetch import ChainFetcher


def run_check_chain(config, args) -> None:
    """Fetch and verify the chain at ``args.url``; exit 1 on rejection."""
    settings = config.settings.verification

    try:
        url = validate_chain_url(
            args.url,
            host=settings.chain_host,
            path_prefix=settings.chain_path_prefix,
        )
        fetcher = ChainFetcher(
            timeout_seconds=settings.fetch_timeout_seconds,
            max_bytes=settings.max_chain_bytes,
        )
        leaf = ChainVerifier().verify(fetcher.fetch(url))
    except VerificationError as exc:
        sys.stderr.write(f"rejected: {exc}\n")
        sys.exit(1)

    sys.stdout.write(json.dumps(describe_certificate(leaf), indent=2) + "\n")
