"""SKILLAUTH configuration loader.

Lifecycle::

    # 1. The CLI (or WSGI entry point) loads the file once
    cfg = SkillauthConfig(config_file="/etc/skillauth/config.yaml")

    # 2. The typed settings tree is passed explicitly to whatever needs it
    verifier = RequestVerifier(cfg.settings.verification, cache=cache)

    # 3. Dynamic access for extensions
    cfg.get("server.port", default=8080)

There is no module-level singleton: every consumer receives its
settings by reference, so tests can build isolated configurations.
"""

from __future__ import annotations

import copy
import logging
import os
import re
from pathlib import Path
from typing import Any

import yaml

from skillauth.config.settings import SkillauthSettings, build_settings
from skillauth.core.types import (
    DEFAULT_CHAIN_HOST,
    MAX_TIMESTAMP_SKEW_CEILING_SECONDS,
)

_ENV_RE = re.compile(
    r"^\$\{([^}:]+?)(?::-(.*))?\}$",
    re.DOTALL,
)

_CACHE_BACKENDS = frozenset({"none", "memory", "sqlite", "database"})
_LOG_FORMATS = frozenset({"json", "text"})
_LOG_LEVELS = frozenset({"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"})
_MAX_PORT = 65535

log = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Validation error collector
# ---------------------------------------------------------------------------


class ConfigValidationError(Exception):
    """Raised when validation finds one or more problems."""

    def __init__(self, errors: list[str]) -> None:
        """Store *errors* and build a human-readable message."""
        self.errors = errors
        body = "\n".join(f"  - {e}" for e in errors)
        super().__init__(f"Configuration validation failed:\n{body}")


# ---------------------------------------------------------------------------
# Environment variable resolution
# ---------------------------------------------------------------------------


def _resolve_value(value: str, path: str) -> str:
    """Replace ``${VAR}`` or ``${VAR:-default}`` with env var value."""
    match = _ENV_RE.match(value)
    if match is None:
        return value
    var_name = match.group(1)
    fallback = match.group(2)
    resolved = os.environ.get(var_name)
    if resolved is not None:
        return resolved
    if fallback is not None:
        return fallback
    raise ConfigValidationError(
        [
            f"Environment variable '${{{var_name}}}' referenced "
            f"at '{path}' is not set and has no default",
        ],
    )


def _resolve_env_vars(
    data: Any,  # noqa: ANN401
    path: str = "",
) -> None:
    """Walk *data* in-place and resolve ``${VAR}``/``${VAR:-default}`` strings."""
    if isinstance(data, dict):
        for key in data:
            child_path = f"{path}.{key}" if path else key
            if isinstance(data[key], str):
                data[key] = _resolve_value(data[key], child_path)
            elif isinstance(data[key], (dict, list)):
                _resolve_env_vars(data[key], child_path)
    elif isinstance(data, list):
        for idx, item in enumerate(data):
            child_path = f"{path}[{idx}]"
            if isinstance(item, str):
                data[idx] = _resolve_value(item, child_path)
            elif isinstance(item, (dict, list)):
                _resolve_env_vars(item, child_path)


# Fields whose values may arrive as strings through ${VAR} substitution.
_TYPED_FIELDS: dict[str, type] = {
    "server.port": int,
    "server.workers": int,
    "server.timeout": int,
    "server.graceful_timeout": int,
    "server.keepalive": int,
    "server.max_requests": int,
    "server.max_requests_jitter": int,
    "server.max_request_body_bytes": int,
    "verification.max_timestamp_skew_seconds": float,
    "verification.fetch_timeout_seconds": float,
    "verification.max_chain_bytes": int,
    "cert_cache.strict_writes": bool,
    "database.port": int,
    "database.min_connections": int,
    "database.max_connections": int,
    "database.connection_timeout": float,
    "logging.security.enabled": bool,
    "logging.security.max_file_size_bytes": int,
    "logging.security.backup_count": int,
}

_TRUE_STRINGS = frozenset({"true", "yes", "on", "1"})
_FALSE_STRINGS = frozenset({"false", "no", "off", "0"})


def _coerce(text: str, target: type) -> Any:  # noqa: ANN401
    """Convert *text* to *target*, or return it unchanged if it does not parse."""
    stripped = text.strip()
    if target is bool:
        if stripped.lower() in _TRUE_STRINGS:
            return True
        if stripped.lower() in _FALSE_STRINGS:
            return False
        return text
    try:
        return target(stripped)
    except ValueError:
        return text


def _coerce_typed_fields(data: dict) -> None:
    """Give numeric and boolean fields their type after env-var resolution.

    Unparseable strings are left alone so validation reports them.
    """
    for dotted, target in _TYPED_FIELDS.items():
        *parents, leaf = dotted.split(".")
        node: Any = data
        for part in parents:
            node = node.get(part) if isinstance(node, dict) else None
        if isinstance(node, dict) and isinstance(node.get(leaf), str):
            node[leaf] = _coerce(node[leaf], target)


def _is_number(value: Any) -> bool:  # noqa: ANN401
    return isinstance(value, (int, float)) and not isinstance(value, bool)


# ---------------------------------------------------------------------------
# Config class
# ---------------------------------------------------------------------------


class SkillauthConfig:
    """Loaded and validated SKILLAUTH configuration.

    Parameters
    ----------
    config_file:
        Path to a YAML (or JSON) configuration file.  Mutually
        exclusive with *data*.
    data:
        Already-parsed configuration mapping (used by tests and
        embedding applications).

    Raises
    ------
    ConfigValidationError
        If the file cannot be parsed or any check fails.

    """

    def __init__(
        self,
        *,
        config_file: str | Path | None = None,
        data: dict | None = None,
    ) -> None:
        if (config_file is None) == (data is None):
            msg = "Exactly one of config_file or data must be given"
            raise ValueError(msg)

        if config_file is not None:
            self._source = str(config_file)
            raw = self._load(Path(config_file))
        else:
            self._source = "<data>"
            raw = copy.deepcopy(data)

        _resolve_env_vars(raw)
        _coerce_typed_fields(raw)
        self._data: dict = raw
        self.additional_checks()
        self._settings: SkillauthSettings = build_settings(self._data)

    # -- loading ------------------------------------------------------------

    @staticmethod
    def _load(path: Path) -> dict:
        try:
            text = path.read_text(encoding="utf-8")
        except OSError as exc:
            raise ConfigValidationError([f"Cannot read {path}: {exc}"]) from exc
        try:
            loaded = yaml.safe_load(text)
        except yaml.YAMLError as exc:
            raise ConfigValidationError([f"Cannot parse {path}: {exc}"]) from exc
        if loaded is None:
            return {}
        if not isinstance(loaded, dict):
            raise ConfigValidationError(
                [f"{path} must contain a mapping at the top level"],
            )
        return loaded

    # -- access -------------------------------------------------------------

    @property
    def settings(self) -> SkillauthSettings:
        """Fully-typed, frozen settings tree."""
        return self._settings

    @property
    def data(self) -> dict:
        """Raw configuration mapping after env-var resolution."""
        return self._data

    @property
    def source(self) -> str:
        return self._source

    def get(self, dotted_key: str, default: Any = None) -> Any:  # noqa: ANN401
        """Return a raw value by dot-path, e.g. ``"server.port"``."""
        node: Any = self._data
        for part in dotted_key.split("."):
            if not isinstance(node, dict) or part not in node:
                return default
            node = node[part]
        return node

    # -- cross-field validation ---------------------------------------------

    def additional_checks(self) -> None:  # noqa: C901, PLR0912
        """Semantic & cross-field validation.

        Collects every problem before raising so operators can fix the
        whole file in one pass.
        """
        errors: list[str] = []

        for section in ("server", "verification", "cert_cache", "database", "logging"):
            value = self._data.get(section)
            if value is not None and not isinstance(value, dict):
                errors.append(f"{section} must be a mapping")
        if errors:
            raise ConfigValidationError(errors)

        server = self._data.get("server") or {}
        verification = self._data.get("verification") or {}
        cache = self._data.get("cert_cache") or {}
        database = self._data.get("database") or {}
        logging_cfg = self._data.get("logging") or {}

        # -- verification --
        app_id = verification.get("application_id")
        if not isinstance(app_id, str) or not app_id.strip():
            errors.append(
                "verification.application_id is required; an empty value "
                "would not restrict which application a request targets",
            )

        skew = verification.get("max_timestamp_skew_seconds", 60)
        if not _is_number(skew) or not 0 < skew <= MAX_TIMESTAMP_SKEW_CEILING_SECONDS:
            errors.append(
                "verification.max_timestamp_skew_seconds must be in "
                f"(0, {MAX_TIMESTAMP_SKEW_CEILING_SECONDS}] (got {skew!r})",
            )

        timeout = verification.get("fetch_timeout_seconds", 5.0)
        if not _is_number(timeout) or timeout <= 0:
            errors.append(
                f"verification.fetch_timeout_seconds must be > 0 (got {timeout!r})",
            )

        max_bytes = verification.get("max_chain_bytes", 65536)
        if not isinstance(max_bytes, int) or max_bytes <= 0:
            errors.append(
                f"verification.max_chain_bytes must be a positive integer (got {max_bytes!r})",
            )

        prefix = verification.get("chain_path_prefix", "/echo.api/")
        if not isinstance(prefix, str) or not prefix.startswith("/") or not prefix.endswith("/"):
            errors.append(
                f"verification.chain_path_prefix must start and end with '/' (got {prefix!r})",
            )

        chain_host = verification.get("chain_host", DEFAULT_CHAIN_HOST)
        if not isinstance(chain_host, str) or not chain_host:
            errors.append("verification.chain_host must be a non-empty string")
        elif chain_host != DEFAULT_CHAIN_HOST:
            log.warning(
                "verification.chain_host is '%s' instead of '%s'; "
                "only change this for testing",
                chain_host,
                DEFAULT_CHAIN_HOST,
            )

        # -- cert cache --
        backend = cache.get("backend", "memory")
        if backend not in _CACHE_BACKENDS:
            errors.append(
                f"cert_cache.backend must be one of {sorted(_CACHE_BACKENDS)} (got {backend!r})",
            )
        if backend == "sqlite" and not cache.get("sqlite_path", "var/skillauth-certs.sqlite3"):
            errors.append("cert_cache.sqlite_path is required when cert_cache.backend is 'sqlite'")
        if not isinstance(cache.get("strict_writes", False), bool):
            errors.append("cert_cache.strict_writes must be a boolean")
        if backend == "database" and not database:
            errors.append(
                "database section is required when cert_cache.backend is 'database'",
            )
        if database:
            for key in ("database", "user"):
                if not database.get(key):
                    errors.append(f"database.{key} is required")

        # -- server --
        endpoint = server.get("endpoint_path", "/")
        if not isinstance(endpoint, str) or not endpoint.startswith("/"):
            errors.append(f"server.endpoint_path must start with '/' (got {endpoint!r})")
        port = server.get("port", 8080)
        if not isinstance(port, int) or not 0 < port <= _MAX_PORT:
            errors.append(f"server.port must be in 1..{_MAX_PORT} (got {port!r})")

        # -- logging --
        level = str(logging_cfg.get("level", "INFO")).upper()
        if level not in _LOG_LEVELS:
            errors.append(f"logging.level must be one of {sorted(_LOG_LEVELS)} (got {level!r})")
        security = logging_cfg.get("security") or {}
        if isinstance(security, dict) and not isinstance(security.get("enabled", True), bool):
            errors.append("logging.security.enabled must be a boolean")
        fmt = logging_cfg.get("format", "json")
        if fmt not in _LOG_FORMATS:
            errors.append(f"logging.format must be one of {sorted(_LOG_FORMATS)} (got {fmt!r})")

        if errors:
            raise ConfigValidationError(errors)

    def __repr__(self) -> str:
        return f"<SkillauthConfig source={self._source!r}>"
