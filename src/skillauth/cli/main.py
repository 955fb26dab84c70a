"""SKILLAUTH command-line entry point.

Usage::

    skillauth -c /etc/skillauth/config.yaml
    skillauth -c config.yaml --dev
    skillauth -c config.yaml --validate-only
    skillauth -c config.yaml serve --handler myskill.handlers:handle
    skillauth -c config.yaml cache list
    skillauth -c config.yaml cache delete https://s3.amazonaws.com/echo.api/echo-api-cert.pem
    skillauth -c config.yaml cache clear
    skillauth -c config.yaml check-chain https://s3.amazonaws.com/echo.api/echo-api-cert.pem
    python -m skillauth -c config.yaml
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

log = logging.getLogger(__name__)


def _get_version() -> str:
    from skillauth import __version__  # noqa: PLC0415

    return __version__


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="skillauth",
        description="SKILLAUTH: request authentication for voice-assistant skill webhooks",
    )
    parser.add_argument(
        "-c",
        "--config",
        required=True,
        metavar="PATH",
        help="Path to the configuration file (YAML).",
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        default=False,
        help="Enable debug output (full tracebacks, verbose logging).",
    )
    parser.add_argument(
        "--validate-only",
        action="store_true",
        default=False,
        help="Validate the configuration file and exit.",
    )
    parser.add_argument(
        "--dev",
        action="store_true",
        default=False,
        help="Use Flask's development server instead of gunicorn.",
    )
    parser.add_argument(
        "--handler",
        metavar="MODULE:FUNC",
        default=None,
        help="Event handler called with each verified request.",
    )
    parser.add_argument(
        "-v",
        "--version",
        action="version",
        version=f"%(prog)s {_get_version()}",
    )

    # Subcommands
    subparsers = parser.add_subparsers(dest="command")

    # serve
    serve_parser = subparsers.add_parser("serve", help="Start the SKILLAUTH server")
    # SUPPRESS keeps "skillauth --dev serve" from being reset by the subparser
    serve_parser.add_argument("--dev", action="store_true", default=argparse.SUPPRESS)
    serve_parser.add_argument("--handler", metavar="MODULE:FUNC", default=argparse.SUPPRESS)

    # cache
    cache_parser = subparsers.add_parser("cache", help="Certificate cache management")
    cache_sub = cache_parser.add_subparsers(dest="cache_command")
    cache_sub.add_parser("list", help="List cached chain URLs")
    delete = cache_sub.add_parser("delete", help="Evict one cached chain")
    delete.add_argument("url", help="Chain URL to evict")
    cache_sub.add_parser("clear", help="Evict every cached chain")

    # check-chain
    check = subparsers.add_parser(
        "check-chain",
        help="Fetch and verify a signing certificate chain",
    )
    check.add_argument("url", help="Chain URL, as sent in SignatureCertChainUrl")

    return parser


def _print_error(message: str) -> None:
    """Print a user-facing error to stderr."""
    sys.stderr.write(f"skillauth: error: {message}\n")


def main(argv: list[str] | None = None) -> None:
    """CLI entry point.  Parses arguments, loads config, dispatches."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    # -- resolve config path ---
    config_path = Path(args.config)
    if not config_path.is_file():
        _print_error(f"configuration file not found: {config_path}")
        sys.exit(1)

    # -- bootstrap logging early (basic stderr until config is loaded) ---
    logging.basicConfig(
        level=logging.DEBUG if args.debug else logging.WARNING,
        format="%(levelname)s: %(message)s",
        stream=sys.stderr,
    )

    # -- load & validate config ---
    from skillauth.config import ConfigValidationError, SkillauthConfig  # noqa: PLC0415

    try:
        config = SkillauthConfig(config_file=str(config_path))
    except ConfigValidationError as exc:
        _print_error(str(exc))
        sys.exit(1)

    # -- replace bootstrap logging with structured logging ---
    from skillauth.logging import configure_logging  # noqa: PLC0415

    configure_logging(config.settings.logging)

    if args.validate_only:
        _print_settings_summary(config)
        sys.exit(0)

    # -- dispatch subcommand ---
    command = args.command

    try:
        if command == "cache":
            from skillauth.cli.commands.cache import run_cache  # noqa: PLC0415

            run_cache(config, args)
        elif command == "check-chain":
            from skillauth.cli.commands.check_chain import run_check_chain  # noqa: PLC0415

            run_check_chain(config, args)
        else:
            # No subcommand = serve
            from skillauth.cli.commands.serve import run_serve  # noqa: PLC0415

            _print_settings_summary(config)
            run_serve(config, args)
    except SystemExit:
        raise
    except Exception as exc:
        if args.debug:
            raise
        _print_error(str(exc))
        sys.exit(1)


def _print_settings_summary(config) -> None:
    """Print a short summary of the loaded configuration."""
    s = config.settings
    lines = [
        f"config:            {config.source}",
        f"listen:            {s.server.bind}:{s.server.port}{s.server.endpoint_path}",
        f"application id:    {s.verification.application_id}",
        f"max skew:          {s.verification.max_timestamp_skew_seconds}s",
        f"chain source:      https://{s.verification.chain_host}{s.verification.chain_path_prefix}",
        f"certificate cache: {s.cert_cache.backend}",
    ]
    sys.stdout.write("\n".join(lines) + "\n")
