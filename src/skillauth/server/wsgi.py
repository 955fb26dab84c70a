"""WSGI entry point for external servers (gunicorn, uWSGI, etc.).

The config file path is read from the ``SKILLAUTH_CONFIG`` environment
variable.  An optional ``SKILLAUTH_HANDLER`` of the form
``package.module:function`` names the event handler.

Example::

    export SKILLAUTH_CONFIG=/etc/skillauth/config.yaml
    export SKILLAUTH_HANDLER=myskill.handlers:handle
    gunicorn "skillauth.server.wsgi:app"
"""

from __future__ import annotations

import os
import sys


_config_path = os.environ.get("SKILLAUTH_CONFIG")
if _config_path is None:
    sys.stderr.write("SKILLAUTH_CONFIG is not set\n")
    sys.exit(1)

from skillauth.config import SkillauthConfig  # noqa: E402

_config = SkillauthConfig(config_file=_config_path)

from skillauth.logging import configure_logging  # noqa: E402

configure_logging(_config.settings.logging)

_db = None
if _config.settings.cert_cache.backend == "database":
    from skillauth.db import init_database  # noqa: E402

    _db = init_database(_config.settings.database)

from skillauth.app import create_app, load_event_handler  # noqa: E402

app = create_app(
    _config,
    event_handler=load_event_handler(os.environ.get("SKILLAUTH_HANDLER")),
    database=_db,
)
