"""Configuration models.

This module defines the configuration values computed at startup:
- EffectiveConfig: the unit's resolved ports, API base URL and secrets
- UnitSettings: supervisor-level knobs read from TANDEM_* variables
"""

from enum import StrEnum
from pathlib import Path
from typing import ClassVar

from pydantic import BaseModel, ConfigDict, Field

MIN_PORT = 1
MAX_PORT = 65535


class LogLevel(StrEnum):
    """Log level threshold values."""

    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


class LogFormat(StrEnum):
    """Log output format values."""

    JSON = "json"
    TEXT = "text"


class EffectiveConfig(BaseModel):
    """Effective runtime configuration of the unit.

    Computed once at startup from the environment and read-only afterward.

    Attributes:
        backend_port: Port the API backend listens on.
        frontend_port: Port the web frontend listens on.
        api_base_url: Base URL the frontend uses to reach the backend.
        api_base_overridden: Whether api_base_url came from an explicit
            override rather than being derived from backend_port.
        missing_secrets: Required secret names absent from the environment.
    """

    model_config: ClassVar[ConfigDict] = ConfigDict(frozen=True, extra="forbid")

    backend_port: int = Field(default=8001, ge=MIN_PORT, le=MAX_PORT)
    frontend_port: int = Field(default=3782, ge=MIN_PORT, le=MAX_PORT)
    api_base_url: str
    api_base_overridden: bool = False
    missing_secrets: frozenset[str] = frozenset()

    @property
    def env_file_content(self) -> str:
        """Return the contents of the frontend's derived env file."""
        return f"NEXT_PUBLIC_API_BASE={self.api_base_url}\n"


class UnitSettings(BaseModel):
    """Supervisor settings.

    Populated from TANDEM_* environment variables (prefix stripped and
    lower-cased) and optional CLI overrides.
    """

    model_config: ClassVar[ConfigDict] = ConfigDict(frozen=True, extra="ignore")

    app_dir: Path = Path("/app")
    web_dir: Path | None = None
    env_file: Path | None = None
    log_dir: Path = Path("/var/log/tandem")
    log_level: LogLevel = LogLevel.INFO
    log_format: LogFormat = LogFormat.TEXT

    dev: bool = False
    console_output: bool = False

    control_enabled: bool = True
    control_host: str = "127.0.0.1"
    control_port: int = Field(default=8765, ge=MIN_PORT, le=MAX_PORT)

    restart_backoff: float = Field(default=1.0, ge=0)
    stop_timeout: float = Field(default=10.0, gt=0)
    kill_timeout: float = Field(default=5.0, gt=0)
    backend_app: str = "src.api.main:app"
    node_bin: str = "node"

    backend_start_delay: float = Field(default=1.0, ge=0)
    frontend_start_delay: float = Field(default=5.0, ge=0)

    health_path: str = "/"
    health_interval: float = Field(default=30.0, gt=0)
    health_timeout: float = Field(default=10.0, gt=0)
    health_start_period: float = Field(default=60.0, ge=0)
    health_retries: int = Field(default=3, ge=1)

    @property
    def resolved_web_dir(self) -> Path:
        """Return the frontend's working directory."""
        return self.web_dir if self.web_dir is not None else self.app_dir / "web"

    @property
    def resolved_env_file(self) -> Path:
        """Return the path of the frontend's derived env file."""
        if self.env_file is not None:
            return self.env_file
        return self.resolved_web_dir / ".env.local"
