"""RFC 7807 Problem Details for rejected skill requests.

Provides :class:`RequestRejected`, an exception that renders itself as
an ``application/problem+json`` response, plus a Flask error-handler
registration function.

Rejections carry only a generic title: the
classified :class:`~skillauth.core.types.ErrorKind` is logged, never
returned, so a caller cannot learn which check failed.

Usage::

    raise RequestRejected(ErrorKind.SIGNATURE_MISMATCH)
"""

from __future__ import annotations

import logging
from typing import Any

from flask import Flask, jsonify
from werkzeug.exceptions import HTTPException

from skillauth.core.types import ErrorKind, http_status_for

log = logging.getLogger(__name__)

# Content type for RFC 7807 responses
PROBLEM_CONTENT_TYPE = "application/problem+json"

_GENERIC_DETAIL = {
    400: "Bad Request",
    500: "Internal Server Error",
}


# ---------------------------------------------------------------------------
# Problem exception
# ---------------------------------------------------------------------------


class RequestRejected(Exception):
    """A request that must not reach business logic.

    Parameters
    ----------
    kind:
        Classified reason, used for logging only.
    status:
        HTTP status; derived from *kind* when omitted.

    """

    def __init__(self, kind: ErrorKind, status: int | None = None) -> None:
        self.kind = kind
        self.status = status if status is not None else http_status_for(kind)
        super().__init__(str(kind))

    @property
    def title(self) -> str:
        return _GENERIC_DETAIL.get(self.status, "Request rejected")

    def to_dict(self) -> dict[str, Any]:
        """Serialise to the RFC 7807 JSON structure."""
        return _problem_body(self.status, self.title)

    def to_response(self):
        """Build a Flask :class:`~flask.Response`."""
        return _problem(self.status, self.title)


# ---------------------------------------------------------------------------
# Response building
# ---------------------------------------------------------------------------


def _problem_body(status: int, title: str) -> dict[str, Any]:
    return {"type": "about:blank", "title": title, "status": status}


def _problem(status: int, title: str):
    resp = jsonify(_problem_body(status, title))
    resp.status_code = status
    resp.headers["Content-Type"] = PROBLEM_CONTENT_TYPE
    resp.headers["Cache-Control"] = "no-store"
    return resp


# ---------------------------------------------------------------------------
# Flask error handler registration
# ---------------------------------------------------------------------------


def register_error_handlers(app: Flask) -> None:
    """Attach handlers that produce RFC 7807 responses for all errors."""

    @app.errorhandler(RequestRejected)
    def _handle_rejected(exc: RequestRejected):
        log.info("Request rejected: %s (HTTP %d)", exc.kind, exc.status)
        return exc.to_response()

    @app.errorhandler(HTTPException)
    def _handle_http_exception(exc: HTTPException):
        return _problem(exc.code or 500, exc.name)

    @app.errorhandler(Exception)
    def _handle_unhandled(exc: Exception):  # noqa: ARG001
        # HTTPException subclasses are already caught above; this
        # handler covers everything else (genuine 500s).
        log.exception("Unhandled exception during request")
        return _problem(500, _GENERIC_DETAIL[500])
