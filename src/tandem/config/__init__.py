"""Configuration for the unit.

This package derives the effective runtime configuration from the
environment and persists the derived file consumed by the frontend.
"""

from ._models import EffectiveConfig, LogFormat, LogLevel, UnitSettings
from ._resolver import (
    API_BASE_OVERRIDE_VAR,
    BACKEND_PORT_VAR,
    DEFAULT_BACKEND_PORT,
    DEFAULT_FRONTEND_PORT,
    FRONTEND_PORT_VAR,
    REQUIRED_SECRETS,
    derive_api_base_url,
    resolve,
    write_env_file,
)
from ._settings import SETTINGS_PREFIX, load_settings, parse_env_vars

__all__ = [
    "API_BASE_OVERRIDE_VAR",
    "BACKEND_PORT_VAR",
    "DEFAULT_BACKEND_PORT",
    "DEFAULT_FRONTEND_PORT",
    "FRONTEND_PORT_VAR",
    "REQUIRED_SECRETS",
    "SETTINGS_PREFIX",
    "EffectiveConfig",
    "LogFormat",
    "LogLevel",
    "UnitSettings",
    "derive_api_base_url",
    "load_settings",
    "parse_env_vars",
    "resolve",
    "write_env_file",
]
