"""PostgreSQL access for the ``database`` certificate cache backend.

Public API::

    from skillauth.db import init_database
"""

from skillauth.db.init import init_database

__all__ = ["init_database"]
