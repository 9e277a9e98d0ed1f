"""Effective configuration resolution.

``resolve`` is a pure function of the environment mapping it receives.
``write_env_file`` is the only side effect: it persists the derived API
base URL for the frontend, which reads it once at its own process start.
"""

import os
from collections.abc import Mapping  # noqa: TC003 - Used in runtime type annotations
from pathlib import Path  # noqa: TC003 - Used in runtime type annotations

from tandem.exceptions import ConfigPersistError, ConfigResolutionError

from ._models import MAX_PORT, MIN_PORT, EffectiveConfig

BACKEND_PORT_VAR = "BACKEND_PORT"
FRONTEND_PORT_VAR = "FRONTEND_PORT"
API_BASE_OVERRIDE_VAR = "NEXT_PUBLIC_API_BASE_EXTERNAL"

DEFAULT_BACKEND_PORT = 8001
DEFAULT_FRONTEND_PORT = 3782

REQUIRED_SECRETS: tuple[str, ...] = ("LLM_BINDING_API_KEY",)


def _read(environ: Mapping[str, str], key: str) -> str | None:
    """Return a variable's value, treating empty strings as unset."""
    value = environ.get(key)
    if not value:
        return None
    return value


def _resolve_port(environ: Mapping[str, str], key: str, default: int) -> int:
    """Resolve a port variable, falling back to ``default`` when unset.

    Raises:
        ConfigResolutionError: If the value is not an integer port number.
    """
    raw = _read(environ, key)
    if raw is None:
        return default

    try:
        port = int(raw.strip())
    except ValueError as e:
        msg = f"{key} must be an integer port number, got {raw!r}"
        raise ConfigResolutionError(msg, key=key, value=raw) from e

    if not MIN_PORT <= port <= MAX_PORT:
        msg = f"{key} must be between {MIN_PORT} and {MAX_PORT}, got {port}"
        raise ConfigResolutionError(msg, key=key, value=raw)

    return port


def derive_api_base_url(backend_port: int) -> str:
    """Synthesize the API base URL from the backend port."""
    return f"http://localhost:{backend_port}"


def resolve(environ: Mapping[str, str]) -> EffectiveConfig:
    """Compute the effective configuration from an environment mapping.

    Precedence for the API base URL: a non-empty
    NEXT_PUBLIC_API_BASE_EXTERNAL is used verbatim; otherwise the URL is
    derived from the backend port. Missing required secrets are recorded,
    never raised.

    Args:
        environ: Environment variables to read, usually ``os.environ``.

    Returns:
        The immutable effective configuration.

    Raises:
        ConfigResolutionError: If a port variable cannot be interpreted.
    """
    backend_port = _resolve_port(environ, BACKEND_PORT_VAR, DEFAULT_BACKEND_PORT)
    frontend_port = _resolve_port(environ, FRONTEND_PORT_VAR, DEFAULT_FRONTEND_PORT)

    override = _read(environ, API_BASE_OVERRIDE_VAR)
    api_base_url = (
        override if override is not None else derive_api_base_url(backend_port)
    )

    missing = frozenset(key for key in REQUIRED_SECRETS if _read(environ, key) is None)

    return EffectiveConfig(
        backend_port=backend_port,
        frontend_port=frontend_port,
        api_base_url=api_base_url,
        api_base_overridden=override is not None,
        missing_secrets=missing,
    )


def write_env_file(config: EffectiveConfig, path: Path) -> Path:
    """Write the frontend's derived env file.

    The file is overwritten, flushed and synced to disk before returning.

    Args:
        config: The effective configuration to persist.
        path: Destination file.

    Returns:
        The path that was written.

    Raises:
        ConfigPersistError: If the file cannot be written.
    """
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        with path.open("w", encoding="utf-8") as f:
            _ = f.write(config.env_file_content)
            f.flush()
            os.fsync(f.fileno())
    except OSError as e:
        msg = f"Failed to write derived config file {path}: {e}"
        raise ConfigPersistError(msg, path=path, cause=e) from e

    return path
