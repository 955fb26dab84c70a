"""Typed, frozen dataclasses for every configuration section.

This module is the **single source of truth** for default values.
The loader in :mod:`skillauth.config.skillauth_config` validates the
raw data; these builders are what the application actually reads.

Access pattern::

    from skillauth.config import SkillauthConfig

    cfg = SkillauthConfig(config_file="config.yaml")
    cfg.settings.verification.application_id
"""

from __future__ import annotations

from dataclasses import dataclass

from skillauth.core.types import (
    DEFAULT_CHAIN_HOST,
    DEFAULT_CHAIN_PATH_PREFIX,
    DEFAULT_MAX_TIMESTAMP_SKEW_SECONDS,
)

# ---------------------------------------------------------------------------
# Server
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ServerSettings:
    """HTTP server configuration (bind address, workers, endpoint)."""

    bind: str
    port: int
    workers: int
    worker_class: str
    timeout: int
    graceful_timeout: int
    keepalive: int
    max_requests: int
    max_requests_jitter: int
    endpoint_path: str
    max_request_body_bytes: int


def _build_server(data: dict | None) -> ServerSettings:
    d = data or {}
    return ServerSettings(
        bind=d.get("bind", "0.0.0.0"),  # noqa: S104
        port=d.get("port", 8080),
        workers=d.get("workers", 4),
        worker_class=d.get("worker_class", "sync"),
        timeout=d.get("timeout", 30),
        graceful_timeout=d.get("graceful_timeout", 30),
        keepalive=d.get("keepalive", 2),
        max_requests=d.get("max_requests", 0),
        max_requests_jitter=d.get("max_requests_jitter", 0),
        endpoint_path=d.get("endpoint_path", "/"),
        max_request_body_bytes=d.get("max_request_body_bytes", 131072),
    )


# ---------------------------------------------------------------------------
# Verification
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class VerificationSettings:
    """Request authentication parameters.

    The hostname the signing certificate must be issued for is a
    platform constant and deliberately not configurable.
    """

    application_id: str
    max_timestamp_skew_seconds: float
    chain_host: str
    chain_path_prefix: str
    fetch_timeout_seconds: float
    max_chain_bytes: int


def _build_verification(data: dict | None) -> VerificationSettings:
    d = data or {}
    return VerificationSettings(
        application_id=d.get("application_id", ""),
        max_timestamp_skew_seconds=d.get(
            "max_timestamp_skew_seconds",
            DEFAULT_MAX_TIMESTAMP_SKEW_SECONDS,
        ),
        chain_host=d.get("chain_host", DEFAULT_CHAIN_HOST),
        chain_path_prefix=d.get("chain_path_prefix", DEFAULT_CHAIN_PATH_PREFIX),
        fetch_timeout_seconds=d.get("fetch_timeout_seconds", 5.0),
        max_chain_bytes=d.get("max_chain_bytes", 65536),
    )


# ---------------------------------------------------------------------------
# Certificate cache
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class CertCacheSettings:
    """Where fetched certificate chains are kept between requests."""

    backend: str
    sqlite_path: str
    strict_writes: bool


def _build_cert_cache(data: dict | None) -> CertCacheSettings:
    d = data or {}
    return CertCacheSettings(
        backend=d.get("backend", "memory"),
        sqlite_path=d.get("sqlite_path", "var/skillauth-certs.sqlite3"),
        strict_writes=d.get("strict_writes", False),
    )


# ---------------------------------------------------------------------------
# Database
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class DatabaseSettings:
    """PostgreSQL connection and pool settings."""

    host: str
    port: int
    database: str
    user: str
    password: str
    sslmode: str
    min_connections: int
    max_connections: int
    connection_timeout: float


def _build_database(data: dict | None) -> DatabaseSettings | None:
    if not data:
        return None
    d = data
    return DatabaseSettings(
        host=d.get("host", "localhost"),
        port=d.get("port", 5432),
        database=d["database"],
        user=d["user"],
        password=d.get("password", ""),
        sslmode=d.get("sslmode", "prefer"),
        min_connections=d.get("min_connections", 1),
        max_connections=d.get("max_connections", 5),
        connection_timeout=d.get("connection_timeout", 30.0),
    )


# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class SecurityLogSettings:
    """Security event log output (file and rotation)."""

    enabled: bool
    file: str | None
    max_file_size_bytes: int
    backup_count: int


@dataclass(frozen=True)
class LoggingSettings:
    """Application logging configuration (level, format, security log)."""

    level: str
    format: str
    security: SecurityLogSettings


def _build_logging(data: dict | None) -> LoggingSettings:
    d = data or {}
    s = d.get("security") or {}
    return LoggingSettings(
        level=d.get("level", "INFO"),
        format=d.get("format", "json"),
        security=SecurityLogSettings(
            enabled=s.get("enabled", True),
            file=s.get("file"),
            max_file_size_bytes=s.get("max_file_size_bytes", 104857600),
            backup_count=s.get("backup_count", 10),
        ),
    )


# ---------------------------------------------------------------------------
# Root settings aggregate
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class SkillauthSettings:
    server: ServerSettings
    verification: VerificationSettings
    cert_cache: CertCacheSettings
    database: DatabaseSettings | None
    logging: LoggingSettings


def build_settings(data: dict) -> SkillauthSettings:
    """Build the full typed settings tree from raw config data.

    Called by :class:`~skillauth.config.SkillauthConfig` after
    environment-variable resolution and validation.
    """
    return SkillauthSettings(
        server=_build_server(data.get("server")),
        verification=_build_verification(data.get("verification")),
        cert_cache=_build_cert_cache(data.get("cert_cache")),
        database=_build_database(data.get("database")),
        logging=_build_logging(data.get("logging")),
    )
