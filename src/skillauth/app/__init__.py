"""Flask application package for SKILLAUTH.

Public API::

    from skillauth.app import create_app, require_verified_request
"""

from skillauth.app.decorators import require_verified_request
from skillauth.app.factory import create_app, default_event_handler, load_event_handler

__all__ = [
    "create_app",
    "default_event_handler",
    "load_event_handler",
    "require_verified_request",
]
