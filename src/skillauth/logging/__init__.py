"""Logging subsystem for SKILLAUTH.

Public API::

    from skillauth.logging import configure_logging

    configure_logging(settings.logging)
"""

from skillauth.logging.setup import configure_logging

__all__ = ["configure_logging"]
