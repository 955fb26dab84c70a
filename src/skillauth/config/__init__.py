"""Configuration subsystem for SKILLAUTH.

Public API::

    from skillauth.config import SkillauthConfig

    cfg = SkillauthConfig(config_file="config.yaml")
    app_id = cfg.settings.verification.application_id   # typed access
    custom = cfg.get("server.port")                      # dynamic dot-path
"""

from skillauth.config.settings import (
    CertCacheSettings,
    DatabaseSettings,
    LoggingSettings,
    SecurityLogSettings,
    ServerSettings,
    SkillauthSettings,
    VerificationSettings,
    build_settings,
)
from skillauth.config.skillauth_config import (
    ConfigValidationError,
    SkillauthConfig,
)

__all__ = [
    "CertCacheSettings",
    "ConfigValidationError",
    "DatabaseSettings",
    "LoggingSettings",
    "SecurityLogSettings",
    "ServerSettings",
    "SkillauthConfig",
    "SkillauthSettings",
    "VerificationSettings",
    "build_settings",
]
