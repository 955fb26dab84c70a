"""Request pipeline decorator for skill endpoints.

``require_verified_request`` captures the raw body once, runs the
authentication pipeline over it, and only then calls the view with the
verified event available as ``flask.g.skill_event``.
"""

from __future__ import annotations

import functools
import logging

from flask import current_app, g, request

from skillauth.app.errors import RequestRejected

log = logging.getLogger(__name__)


def get_verifier():
    """Return the :class:`~skillauth.core.RequestVerifier` bound to the app."""
    verifier = current_app.extensions.get("skill_verifier")
    if verifier is None:
        msg = "No RequestVerifier registered on this app"
        raise RuntimeError(msg)
    return verifier


def require_verified_request(fn):
    """Decorator that authenticates a platform webhook request.

    Raises :class:`RequestRejected` (rendered as a generic 400/500) when
    any stage fails.  On success sets ``g.skill_event``.
    """

    @functools.wraps(fn)
    def wrapper(*args, **kwargs):
        # Capture the body exactly once; the same buffer is verified and
        # then parsed, so nothing downstream may re-read the stream.
        body = request.get_data(cache=True)

        result = get_verifier().verify(request.headers, body)
        if not result.ok:
            raise RequestRejected(result.error, result.http_status)

        g.skill_event = result.event
        return fn(*args, **kwargs)

    return wrapper
