"""Tests for skillauth.db.init — PyPGKit database bootstrap."""

from __future__ import annotations

from unittest.mock import patch

import pytest

pytest.importorskip("pypgkit")

from skillauth.config.settings import build_settings  # noqa: E402
from skillauth.db.init import _settings_to_config, init_database  # noqa: E402


@pytest.fixture
def db_settings():
    return build_settings(
        {"database": {"database": "skills", "user": "svc", "host": "db.internal", "port": 6432}},
    ).database


class TestInitDatabase:
    def test_maps_settings(self, db_settings):
        with patch("skillauth.db.init.DatabaseConfig") as cfg_cls:
            _settings_to_config(db_settings)
        kwargs = cfg_cls.call_args.kwargs
        assert kwargs["host"] == "db.internal"
        assert kwargs["port"] == 6432
        assert kwargs["database"] == "skills"
        assert kwargs["user"] == "svc"

    def test_initialises(self, db_settings):
        with (
            patch("skillauth.db.init.Database") as db_cls,
            patch("skillauth.db.init.DatabaseConfig"),
        ):
            db_cls.is_initialized.return_value = False
            db = init_database(db_settings)
        assert db is db_cls.init.return_value
        assert db_cls.init.call_args.kwargs["interactive"] is False

    def test_reuses_existing(self, db_settings):
        with patch("skillauth.db.init.Database") as db_cls:
            db_cls.is_initialized.return_value = True
            db = init_database(db_settings)
        assert db is db_cls.get_instance.return_value
        db_cls.init.assert_not_called()

    def test_missing_section(self):
        with pytest.raises(ValueError, match="database section"):
            init_database(None)
