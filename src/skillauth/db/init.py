"""Database initialisation from SKILLAUTH configuration.

Only the ``database`` certificate cache backend needs this; the cache
creates its own table on first use.

Usage::

    from skillauth.db.init import init_database

    db = init_database(cfg.settings.database)
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from pypgkit import Database, DatabaseConfig

if TYPE_CHECKING:
    from skillauth.config.settings import DatabaseSettings

log = logging.getLogger(__name__)


def _settings_to_config(settings: DatabaseSettings) -> DatabaseConfig:
    """Map SKILLAUTH DatabaseSettings to PyPGKit DatabaseConfig."""
    return DatabaseConfig(
        host=settings.host,
        port=settings.port,
        database=settings.database,
        user=settings.user,
        password=settings.password,
        sslmode=settings.sslmode,
        min_connections=settings.min_connections,
        max_connections=settings.max_connections,
        connection_timeout=settings.connection_timeout,
    )


def init_database(settings: DatabaseSettings | None) -> Database:
    """Initialise the :class:`Database` singleton from config settings.

    Raises
    ------
    ValueError
        If no ``database`` section was configured.

    """
    if settings is None:
        msg = "cert_cache.backend is 'database' but no database section is configured"
        raise ValueError(msg)

    if Database.is_initialized():
        log.debug("Database already initialised, returning existing instance")
        return Database.get_instance()

    log.info(
        "Initialising database connection: %s@%s:%s/%s",
        settings.user,
        settings.host,
        settings.port,
        settings.database,
    )
    db = Database.init(config=_settings_to_config(settings), interactive=False)
    log.info("Database initialised successfully")
    return db
