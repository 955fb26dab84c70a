"""Tests for the SKILLAUTH server module.

Covers:
- ``skillauth.server.gunicorn_app``: gunicorn_options() and run_gunicorn()
- ``skillauth.server.wsgi``: WSGI entry-point bootstrapping

gunicorn itself is replaced with a fake so these tests run everywhere.
"""

from __future__ import annotations

import importlib
import sys
import types
from unittest.mock import MagicMock, patch

import pytest

from skillauth.config.settings import build_settings
from skillauth.server.gunicorn_app import gunicorn_options, run_gunicorn

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _server_settings(**overrides):
    return build_settings({"server": overrides}).server


def _fake_gunicorn():
    """Return (sys.modules patch dict, list that collects cfg dicts at run())."""
    runs: list[dict] = []

    class FakeCfg:
        def __init__(self):
            self.settings = {}

        def set(self, key, value):
            self.settings[key] = value

    class FakeBaseApplication:
        def __init__(self):
            self.cfg = FakeCfg()
            self.load_config()

        def load_config(self):
            pass

        def run(self):
            runs.append({"cfg": dict(self.cfg.settings), "app": self.load()})

    mod_gunicorn = types.ModuleType("gunicorn")
    mod_app = types.ModuleType("gunicorn.app")
    mod_base = types.ModuleType("gunicorn.app.base")
    mod_base.BaseApplication = FakeBaseApplication
    mod_gunicorn.app = mod_app
    mod_app.base = mod_base
    modules = {"gunicorn": mod_gunicorn, "gunicorn.app": mod_app, "gunicorn.app.base": mod_base}
    return modules, runs


# ===========================================================================
# gunicorn_app
# ===========================================================================


class TestGunicornOptions:
    def test_defaults(self):
        opts = gunicorn_options(_server_settings())
        assert opts["bind"] == "0.0.0.0:8080"
        assert opts["workers"] == 4
        assert opts["worker_class"] == "sync"
        assert opts["accesslog"] is None
        assert "max_requests" not in opts

    def test_max_requests_when_nonzero(self):
        opts = gunicorn_options(_server_settings(max_requests=1000, max_requests_jitter=50))
        assert opts["max_requests"] == 1000
        assert opts["max_requests_jitter"] == 50


class TestRunGunicorn:
    def test_runs_with_options(self):
        modules, runs = _fake_gunicorn()
        app = MagicMock()
        with patch.dict(sys.modules, modules):
            run_gunicorn(app, _server_settings(bind="127.0.0.1", port=9999, workers=2))
        assert len(runs) == 1
        assert runs[0]["cfg"]["bind"] == "127.0.0.1:9999"
        assert runs[0]["cfg"]["workers"] == 2
        assert runs[0]["app"] is app


# ===========================================================================
# wsgi
# ===========================================================================


class TestWsgiModule:
    def _import_wsgi(self):
        sys.modules.pop("skillauth.server.wsgi", None)
        return importlib.import_module("skillauth.server.wsgi")

    def test_exits_without_config_env(self, monkeypatch):
        monkeypatch.delenv("SKILLAUTH_CONFIG", raising=False)
        with pytest.raises(SystemExit) as exc_info:
            self._import_wsgi()
        assert exc_info.value.code == 1

    def test_builds_app(self, monkeypatch, tmp_config_file):
        monkeypatch.setenv("SKILLAUTH_CONFIG", str(tmp_config_file))
        monkeypatch.setenv("SKILLAUTH_HANDLER", "json:dumps")
        with (
            patch("skillauth.logging.configure_logging") as configure,
            patch("skillauth.app.create_app") as create_app,
        ):
            module = self._import_wsgi()
        configure.assert_called_once()
        assert module.app is create_app.return_value
        kwargs = create_app.call_args.kwargs
        assert kwargs["database"] is None
        assert kwargs["event_handler"].__name__ == "dumps"
        sys.modules.pop("skillauth.server.wsgi", None)
