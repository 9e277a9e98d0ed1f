"""Loading of supervisor settings from the environment."""

from collections.abc import Mapping  # noqa: TC003 - Used in runtime type annotations
from typing import Any

from pydantic import ValidationError

from tandem.exceptions import SettingsError

from ._models import UnitSettings

SETTINGS_PREFIX = "TANDEM_"


def parse_env_vars(
    environ: Mapping[str, str],
    prefix: str = SETTINGS_PREFIX,
) -> dict[str, Any]:  # pyright: ignore[reportExplicitAny]
    """Collect prefixed environment variables into a settings dictionary.

    Empty values are skipped so that ``TANDEM_LOG_DIR=`` keeps the default.

    Environment variable naming:
        - Add prefix (TANDEM_)
        - Convert to uppercase
        - Example: log_dir -> TANDEM_LOG_DIR
    """
    result: dict[str, Any] = {}  # pyright: ignore[reportExplicitAny]

    for key, value in environ.items():
        if not key.startswith(prefix) or value == "":
            continue

        setting = key[len(prefix) :].lower()
        if setting:
            result[setting] = value

    return result


def load_settings(
    environ: Mapping[str, str],
    overrides: Mapping[str, object] | None = None,
) -> UnitSettings:
    """Build UnitSettings from the environment plus explicit overrides.

    Args:
        environ: Environment variables to read.
        overrides: Values that take precedence, typically CLI flags.
            ``None`` values are ignored.

    Returns:
        Validated, immutable settings.

    Raises:
        SettingsError: If a value fails validation.
    """
    data: dict[str, object] = dict(parse_env_vars(environ))
    if overrides:
        data.update({k: v for k, v in overrides.items() if v is not None})

    try:
        return UnitSettings.model_validate(data)
    except ValidationError as e:
        msg = f"Invalid {SETTINGS_PREFIX}* settings: {e}"
        raise SettingsError(msg) from e
