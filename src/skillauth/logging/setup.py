"""Structured logging configuration for SKILLAUTH.

Provides JSON and text formatters, a request-context filter that tags
every record with the current request and, once it has been verified,
the skill application it targets, and a one-call ``configure_logging``
function driven by config settings.
"""

from __future__ import annotations

import json
import logging
import sys
from datetime import UTC, datetime
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from skillauth.config.settings import LoggingSettings, SecurityLogSettings

# Injected by RequestContextFilter, emitted first in structured output.
CONTEXT_FIELDS = ("request_id", "client_ip", "method", "path", "application_id")

# Everything on a bare LogRecord is bookkeeping; any other attribute was
# passed as ``extra=`` and belongs in the JSON line.
_RECORD_ATTRS = frozenset(
    vars(logging.LogRecord("", logging.INFO, "", 0, "", (), None)),
) | {"message", "asctime", *CONTEXT_FIELDS}

_QUIET_LIBRARIES = ("werkzeug", "gunicorn", "gunicorn.access", "gunicorn.error")


# ---------------------------------------------------------------------------
# Formatters
# ---------------------------------------------------------------------------


class StructuredFormatter(logging.Formatter):
    """One JSON object per line.

    Context fields come first, then caller ``extra=`` fields; values
    that are not JSON-native are rendered with ``str``.
    """

    def format(self, record: logging.LogRecord) -> str:
        data: dict = {
            "timestamp": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        data.update(
            (name, getattr(record, name))
            for name in CONTEXT_FIELDS
            if getattr(record, name, None) is not None
        )
        data.update(
            (key, value)
            for key, value in vars(record).items()
            if key not in _RECORD_ATTRS and not key.startswith("_")
        )
        if record.exc_info and record.exc_info[0] is not None:
            data["exception"] = self.formatException(record.exc_info)
        return json.dumps(data, default=str)


class TextFormatter(logging.Formatter):
    """Console format: ``time level [request-id] client app logger: message``."""

    _FMT = (
        "%(asctime)s %(levelname)-8s [%(request_id)s] %(client_ip)s "
        "%(application_id)s %(name)s: %(message)s"
    )

    def __init__(self) -> None:
        super().__init__(fmt=self._FMT, datefmt="%Y-%m-%d %H:%M:%S")

    def format(self, record: logging.LogRecord) -> str:
        # Records from handlers without RequestContextFilter lack the fields.
        for name in ("request_id", "client_ip", "application_id"):
            if getattr(record, name, None) is None:
                setattr(record, name, "-")
        return super().format(record)


# ---------------------------------------------------------------------------
# Filter
# ---------------------------------------------------------------------------


class RequestContextFilter(logging.Filter):
    """Tag records with the Flask request they were logged under.

    Outside a request ``request_id`` and ``client_ip`` are ``"-"`` and
    the other context fields are ``None``.  ``application_id`` is only
    set once :func:`~skillauth.app.decorators.require_verified_request`
    has stored the verified event on ``g``; an unverified caller's claim
    is never logged as fact.
    """

    def filter(self, record: logging.LogRecord) -> bool:  # type: ignore[override]
        from flask import g, has_request_context, request  # noqa: PLC0415

        context: dict = dict.fromkeys(CONTEXT_FIELDS)
        context["request_id"] = context["client_ip"] = "-"

        if has_request_context():
            event = getattr(g, "skill_event", None)
            context.update(
                request_id=getattr(g, "request_id", "-"),
                client_ip=request.remote_addr or "-",
                method=request.method,
                path=request.path,
                application_id=event.application_id if event is not None else None,
            )

        for name, value in context.items():
            if getattr(record, name, None) is None:
                setattr(record, name, value)
        return True


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def _security_file_handler(
    settings: SecurityLogSettings,
    ctx_filter: logging.Filter,
) -> logging.Handler:
    from logging.handlers import RotatingFileHandler  # noqa: PLC0415

    handler = RotatingFileHandler(
        settings.file,
        maxBytes=settings.max_file_size_bytes,
        backupCount=settings.backup_count,
    )
    # Always JSON, whatever the console format.
    handler.setFormatter(StructuredFormatter())
    handler.addFilter(ctx_filter)
    return handler


def configure_logging(settings: LoggingSettings) -> logging.Logger:
    """Configure the ``skillauth`` logger hierarchy from settings.

    Replaces bootstrap handlers with one console handler on stderr.
    Security events go to ``skillauth.security``; they reach the
    console like everything else and, when ``logging.security.file``
    is set, are also written to a rotating JSON file.  Disabling the
    security log silences that logger entirely.

    Returns the root ``skillauth`` logger.
    """
    level = getattr(logging, settings.level.upper(), logging.INFO)
    ctx_filter = RequestContextFilter()

    root = logging.getLogger("skillauth")
    root.setLevel(level)
    root.handlers.clear()
    root.propagate = False

    console = logging.StreamHandler(sys.stderr)
    console.setFormatter(
        StructuredFormatter() if settings.format == "json" else TextFormatter(),
    )
    console.addFilter(ctx_filter)
    root.addHandler(console)

    security = logging.getLogger("skillauth.security")
    security.handlers.clear()
    if not settings.security.enabled:
        security.setLevel(logging.CRITICAL + 1)
    else:
        # Rejections are INFO events and must not vanish at WARNING.
        security.setLevel(min(level, logging.INFO))
        if settings.security.file:
            try:
                security.addHandler(_security_file_handler(settings.security, ctx_filter))
            except OSError as exc:
                root.warning(
                    "Could not open security log file %s: %s",
                    settings.security.file,
                    exc,
                )

    for lib in _QUIET_LIBRARIES:
        logging.getLogger(lib).setLevel(logging.WARNING)

    return root
