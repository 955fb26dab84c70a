"""Serve subcommand: start the SKILLAUTH server."""

from __future__ import annotations

import logging

log = logging.getLogger(__name__)


def run_serve(config, args) -> None:
    """Start the SKILLAUTH server."""
    from skillauth.app import create_app, load_event_handler  # noqa: PLC0415

    settings = config.settings

    db = None
    if settings.cert_cache.backend == "database":
        from skillauth.db import init_database  # noqa: PLC0415

        db = init_database(settings.database)

    app = create_app(
        config,
        event_handler=load_event_handler(getattr(args, "handler", None)),
        database=db,
    )

    if args.dev:
        log.info("Starting development server (not for production)")
        app.run(
            host=settings.server.bind,
            port=settings.server.port,
            debug=True,
            use_reloader=True,
        )
    else:
        from skillauth.server.gunicorn_app import run_gunicorn  # noqa: PLC0415

        run_gunicorn(app, settings.server)
