"""Flask application factory for SKILLAUTH.

Usage::

    from skillauth.app import create_app
    from skillauth.config import SkillauthConfig

    def handle(event):
        return {"version": "1.0", "response": {"shouldEndSession": True}}

    app = create_app(SkillauthConfig(config_file="config.yaml"), event_handler=handle)
"""

from __future__ import annotations

import importlib
import logging
from collections.abc import Callable
from typing import TYPE_CHECKING, Any

from flask import Flask, g, jsonify

if TYPE_CHECKING:
    from flask.typing import ResponseReturnValue
    from pypgkit import Database

    from skillauth.config.skillauth_config import SkillauthConfig
    from skillauth.core import RequestVerifier, SkillEvent

log = logging.getLogger(__name__)

EventHandler = Callable[["SkillEvent"], Any]


def default_event_handler(event: SkillEvent) -> dict[str, Any]:
    """Answer every verified request with an empty, session-ending reply."""
    log.debug("No event handler configured; ending session for %s", event.request_type)
    return {"version": "1.0", "response": {"shouldEndSession": True}}


def load_event_handler(reference: str | None) -> EventHandler:
    """Resolve a ``package.module:function`` reference to an event handler.

    ``None`` or an empty string selects :func:`default_event_handler`.

    Raises
    ------
    ValueError
        If *reference* is not of the form ``module:attribute`` or does not
        name a callable.

    """
    if not reference:
        return default_event_handler
    module_name, sep, attr = reference.partition(":")
    if not sep or not module_name or not attr:
        msg = f"Event handler must be 'package.module:function', got {reference!r}"
        raise ValueError(msg)
    module = importlib.import_module(module_name)
    handler = getattr(module, attr, None)
    if not callable(handler):
        msg = f"Event handler {reference!r} is not callable"
        raise ValueError(msg)
    return handler


def create_app(
    config: SkillauthConfig,
    *,
    event_handler: EventHandler | None = None,
    verifier: RequestVerifier | None = None,
    database: Database | None = None,
) -> Flask:
    """Create and configure the SKILLAUTH Flask application.

    Parameters
    ----------
    config:
        Loaded :class:`SkillauthConfig`.
    event_handler:
        Called with each verified :class:`SkillEvent`; its return value
        is serialised as the JSON response body.
    verifier:
        Pre-built :class:`RequestVerifier`.  When ``None`` one is built
        from the configuration together with its certificate cache.
    database:
        Initialised :class:`Database`, required only by the
        ``database`` cache backend.

    Returns
    -------
    Flask
        Fully configured WSGI application.

    """
    settings = config.settings

    app = Flask("skillauth")
    app.config["SKILLAUTH_SETTINGS"] = settings
    app.config["SKILLAUTH_CONFIG"] = config
    app.config["MAX_CONTENT_LENGTH"] = settings.server.max_request_body_bytes

    # -- Verification pipeline ----------------------------------------------
    if verifier is None:
        from skillauth.cache import create_certificate_cache  # noqa: PLC0415
        from skillauth.core import RequestVerifier  # noqa: PLC0415

        cache = create_certificate_cache(settings.cert_cache, database)
        verifier = RequestVerifier(
            settings.verification,
            cache=cache,
            strict_cache_writes=settings.cert_cache.strict_writes,
        )
    app.extensions["skill_verifier"] = verifier

    # -- Error handlers (RFC 7807) ------------------------------------------
    from skillauth.app.errors import register_error_handlers  # noqa: PLC0415

    register_error_handlers(app)

    # -- Request lifecycle hooks --------------------------------------------
    from skillauth.app.middleware import register_request_hooks  # noqa: PLC0415

    register_request_hooks(app)

    # -- Infrastructure endpoints -------------------------------------------
    _register_health(app)

    # -- Skill endpoint -----------------------------------------------------
    _register_skill_endpoint(
        app,
        settings.server.endpoint_path,
        event_handler or default_event_handler,
    )

    log.info("Flask application created")
    return app


# ---------------------------------------------------------------------------
# Skill endpoint
# ---------------------------------------------------------------------------


def _register_skill_endpoint(app: Flask, path: str, handler: EventHandler) -> None:
    from skillauth.app.decorators import require_verified_request  # noqa: PLC0415

    @app.route(path, methods=["POST"], endpoint="skill")
    @require_verified_request
    def skill() -> ResponseReturnValue:
        """Hand the verified event to the application handler."""
        event = g.skill_event
        # Handler exceptions fall through to the generic 500 handler.
        result = handler(event)
        return jsonify(result), 200

    log.info("Skill endpoint registered at POST %s", path)


# ---------------------------------------------------------------------------
# Infrastructure endpoints
# ---------------------------------------------------------------------------


def _register_health(app: Flask) -> None:
    """Register the ``/healthz`` liveness endpoint."""
    from skillauth import __version__  # noqa: PLC0415

    @app.route("/healthz")
    def healthz() -> ResponseReturnValue:
        """Return basic health status including the cache backend."""
        result: dict = {"status": "ok", "version": __version__}
        verifier = app.extensions.get("skill_verifier")
        cache = getattr(verifier, "cache", None)
        if cache is not None:
            result["cert_cache"] = cache.backend_name
        return jsonify(result), 200
