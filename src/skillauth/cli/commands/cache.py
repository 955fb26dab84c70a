"""Certificate cache subcommands.

Entries never expire on their own; these commands are the eviction path
after the platform rotates its signing certificate.

Usage::

    skillauth -c config.yaml cache list
    skillauth -c config.yaml cache delete <url>
    skillauth -c config.yaml cache clear
"""

from __future__ import annotations

import logging
import sys

log = logging.getLogger(__name__)


def _open_cache(config):
    from skillauth.cache import create_certificate_cache  # noqa: PLC0415

    settings = config.settings
    db = None
    if settings.cert_cache.backend == "database":
        from skillauth.db import init_database  # noqa: PLC0415

        db = init_database(settings.database)
    return create_certificate_cache(settings.cert_cache, db)


def run_cache(config, args) -> None:
    """Dispatch to the appropriate cache sub-handler."""
    sub = getattr(args, "cache_command", None)
    if sub is None:
        sys.stderr.write("usage: skillauth cache {list,delete,clear}\n")
        sys.exit(1)

    cache = _open_cache(config)
    if cache.backend_name in ("none", "memory"):
        log.warning(
            "cert_cache.backend is %r; it holds nothing outside a running server",
            cache.backend_name,
        )

    if sub == "list":
        for url in cache.keys():
            sys.stdout.write(f"{url}\n")
    elif sub == "delete":
        if not cache.delete(args.url):
            sys.stderr.write(f"not cached: {args.url}\n")
            sys.exit(1)
        log.info("Evicted cached chain %s", args.url)
        sys.stdout.write(f"deleted: {args.url}\n")
    elif sub == "clear":
        count = cache.clear()
        log.info("Cleared %d cached chain(s)", count)
        sys.stdout.write(f"cleared {count} entr{'y' if count == 1 else 'ies'}\n")
    else:
        sys.exit(1)
