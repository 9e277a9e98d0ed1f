"""tandem exceptions."""

from pathlib import Path  # noqa: TC003 - Used in runtime type annotations


class TandemError(Exception):
    """Base exception for tandem errors."""


# =============================================================================
# Configuration Exceptions
# =============================================================================


class ConfigError(TandemError):
    """Base exception for configuration errors."""


class ConfigResolutionError(ConfigError):
    """Raised when the effective configuration cannot be computed.

    Attributes:
        key: The environment variable that could not be interpreted.
        value: The raw value found in the environment.
    """

    def __init__(
        self,
        message: str,
        *,
        key: str | None = None,
        value: str | None = None,
    ) -> None:
        """Initialize with error message and variable context.

        Args:
            message: Human-readable error message.
            key: The environment variable that could not be interpreted.
            value: The raw value found in the environment.
        """
        super().__init__(message)
        self.key: str | None = key
        self.value: str | None = value


class ConfigPersistError(ConfigError):
    """Raised when the derived env file cannot be written.

    Attributes:
        path: The file that could not be written.
        cause: The underlying exception that caused the failure.
    """

    def __init__(
        self,
        message: str,
        *,
        path: Path | None = None,
        cause: Exception | None = None,
    ) -> None:
        """Initialize with error message and file context."""
        super().__init__(message)
        self.path: Path | None = path
        self.cause: Exception | None = cause


class SettingsError(ConfigError):
    """Raised when TANDEM_* settings fail validation."""


# =============================================================================
# Supervisor Exceptions
# =============================================================================


class SupervisorError(TandemError):
    """Base exception for supervisor errors."""


class ServiceNotFoundError(SupervisorError, KeyError):
    """Raised when a service cannot be found by name.

    Attributes:
        service_name: The name of the service that was not found.
    """

    def __init__(self, message: str, *, service_name: str | None = None) -> None:
        """Initialize with error message and service context.

        Args:
            message: Human-readable error message.
            service_name: The name of the service that was not found.
        """
        super().__init__(message)
        self.service_name: str | None = service_name


class DuplicateServiceError(SupervisorError, ValueError):
    """Raised when two services are declared with the same name."""

    def __init__(self, message: str, *, service_name: str | None = None) -> None:
        super().__init__(message)
        self.service_name: str | None = service_name


class ServiceStartError(SupervisorError):
    """Raised when a service fails to start.

    Attributes:
        service_name: The name of the service that failed to start.
        cause: The underlying exception that caused the failure.
    """

    def __init__(
        self,
        message: str,
        *,
        service_name: str | None = None,
        cause: Exception | None = None,
    ) -> None:
        """Initialize with error message and service context.

        Args:
            message: Human-readable error message.
            service_name: The name of the service that failed to start.
            cause: The underlying exception that caused the failure.
        """
        super().__init__(message)
        self.service_name: str | None = service_name
        self.cause: Exception | None = cause


class ServiceStopError(SupervisorError):
    """Raised when a service fails to stop.

    Attributes:
        service_name: The name of the service that failed to stop.
        cause: The underlying exception that caused the failure.
    """

    def __init__(
        self,
        message: str,
        *,
        service_name: str | None = None,
        cause: Exception | None = None,
    ) -> None:
        """Initialize with error message and service context.

        Args:
            message: Human-readable error message.
            service_name: The name of the service that failed to stop.
            cause: The underlying exception that caused the failure.
        """
        super().__init__(message)
        self.service_name: str | None = service_name
        self.cause: Exception | None = cause


# =============================================================================
# Unit Exceptions
# =============================================================================


class UnitStateError(TandemError):
    """Raised when the unit attempts a transition its state machine forbids.

    Attributes:
        current: The state the unit was in.
        target: The state it attempted to enter.
    """

    def __init__(self, message: str, *, current: str, target: str) -> None:
        super().__init__(message)
        self.current: str = current
        self.target: str = target
