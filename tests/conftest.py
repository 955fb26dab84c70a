"""Root conftest for the SKILLAUTH test suite."""

from __future__ import annotations

import sys
from pathlib import Path

import pytest
import yaml

# ---------------------------------------------------------------------------
# Make ``src/`` and the shared test helpers importable without installing
# ---------------------------------------------------------------------------
_ROOT = Path(__file__).resolve().parent
for _path in (str(_ROOT.parent / "src"), str(_ROOT)):
    if _path not in sys.path:
        sys.path.insert(0, _path)


APP_ID = "amzn1.ask.skill.test-skill"


# ---------------------------------------------------------------------------
# Minimal config data shared by multiple test modules
# ---------------------------------------------------------------------------


@pytest.fixture()
def minimal_config_data() -> dict:
    """Return a dict containing the minimum required config fields."""
    return {
        "verification": {"application_id": APP_ID},
    }


@pytest.fixture()
def tmp_config_file(tmp_path: Path, minimal_config_data: dict) -> Path:
    """Write *minimal_config_data* to a temp YAML file and return its path."""
    cfg = tmp_path / "config.yaml"
    cfg.write_text(
        yaml.safe_dump(minimal_config_data, default_flow_style=False, sort_keys=False),
        encoding="utf-8",
    )
    return cfg


# ---------------------------------------------------------------------------
# Certificates: built once per session, RSA key generation is slow
# ---------------------------------------------------------------------------


@pytest.fixture(scope="session")
def pki():
    """A root, an intermediate and an echo-api.amazon.com leaf."""
    from pki_helpers import build_pki

    return build_pki()
