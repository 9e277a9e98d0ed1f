"""Startup orchestration for the unit.

The orchestrator sequences the config resolver, the process supervisor and
the health reporter, and drives the unit's state machine until shutdown.
Only a failure to resolve or persist the configuration fails the unit;
everything downstream is absorbed by per-service restarts or surfaced
through the health signal.
"""

import signal
from collections.abc import Mapping  # noqa: TC003 - Used in runtime type annotations
from typing import TYPE_CHECKING, final

import anyio
import uvicorn

from tandem.config import (
    EffectiveConfig,
    UnitSettings,
    resolve,
    write_env_file,
)
from tandem.exceptions import ConfigError, UnitStateError
from tandem.health import HealthPolicy, HealthReporter
from tandem.supervisor import (
    ConcatenatedOutputSink,
    ConstantBackoff,
    LogFileOutputSink,
    Supervisor,
    TeeOutputSink,
)
from tandem.utils import create_unit_logger

from ._app import ControlServer, create_control_app
from ._services import create_service_specs, health_url
from ._state import ALLOWED_TRANSITIONS, ExitCode, UnitState

if TYPE_CHECKING:
    import httpx
    from structlog.typing import FilteringBoundLogger

    from tandem.supervisor import OutputSink, ProcessLauncher, ServiceSpec

MISSING_SECRET_HINT = "Please provide LLM configuration via environment variables"

# Bound on how long the control server may take to close its connections
CONTROL_SHUTDOWN_TIMEOUT = 5.0


@final
class UnitOrchestrator:
    """Drives the unit from startup to shutdown.

    States: INIT -> CONFIG_RESOLVED -> SERVICES_STARTING -> READY ->
    SHUTTING_DOWN -> STOPPED, or INIT -> FAILED when the configuration
    cannot be resolved or persisted.
    """

    __slots__ = (
        "_config",
        "_control_server",
        "_control_stopped",
        "_environ",
        "_handle_signals",
        "_health_client",
        "_launcher",
        "_logger",
        "_output_sink",
        "_reporter",
        "_settings",
        "_shutdown_event",
        "_shutdown_requested",
        "_state",
        "_supervisor",
    )

    def __init__(  # noqa: PLR0913
        self,
        environ: Mapping[str, str],
        settings: UnitSettings,
        *,
        launcher: "ProcessLauncher | None" = None,  # noqa: UP037
        output_sink: "OutputSink | None" = None,  # noqa: UP037
        health_client: "httpx.AsyncClient | None" = None,  # noqa: UP037
        logger: "FilteringBoundLogger | None" = None,  # noqa: UP037
        handle_signals: bool = True,
    ) -> None:
        """Initialize the orchestrator.

        Args:
            environ: Environment snapshot the configuration is resolved from.
            settings: Supervisor settings.
            launcher: Process launcher. Uses SubprocessLauncher if None.
            output_sink: Output sink. Uses per-service log files if None.
            health_client: HTTP client for health polls.
            logger: Unit logger.
            handle_signals: Whether SIGINT/SIGTERM trigger shutdown.
        """
        self._environ = dict(environ)
        self._settings = settings
        self._launcher = launcher
        self._output_sink = output_sink
        self._health_client = health_client
        self._logger = logger or create_unit_logger(
            level=settings.log_level.value,
            log_format=settings.log_format.value,  # type: ignore[arg-type]
        )
        self._handle_signals = handle_signals
        self._state = UnitState.INIT
        self._config: EffectiveConfig | None = None
        self._supervisor: Supervisor | None = None
        self._reporter: HealthReporter | None = None
        self._control_server: uvicorn.Server | None = None
        self._control_stopped: anyio.Event | None = None
        self._shutdown_event: anyio.Event | None = None
        self._shutdown_requested = False

    @property
    def state(self) -> UnitState:
        """Return the unit's current state."""
        return self._state

    @property
    def config(self) -> EffectiveConfig | None:
        """Return the effective configuration once resolved."""
        return self._config

    @property
    def supervisor(self) -> Supervisor | None:
        """Return the supervisor while services are managed."""
        return self._supervisor

    @property
    def reporter(self) -> HealthReporter | None:
        """Return the health reporter while the unit runs."""
        return self._reporter

    def _transition(self, target: UnitState) -> None:
        if target not in ALLOWED_TRANSITIONS[self._state]:
            msg = f"Invalid unit transition {self._state.value} -> {target.value}"
            raise UnitStateError(msg, current=self._state.value, target=target.value)

        self._logger.debug(
            "unit_state_changed", previous=self._state.value, state=target.value
        )
        self._state = target

    def request_shutdown(self) -> None:
        """Ask the unit to stop its services and exit."""
        self._shutdown_requested = True
        if self._shutdown_event is not None:
            self._shutdown_event.set()

    def resolve_config(self) -> EffectiveConfig:
        """Resolve the effective configuration and persist the derived file.

        Returns:
            The effective configuration.

        Raises:
            ConfigResolutionError: If the environment cannot be interpreted.
            ConfigPersistError: If the derived file cannot be written.
        """
        config = resolve(self._environ)
        env_file = write_env_file(config, self._settings.resolved_env_file)

        self._logger.info(
            "config_resolved",
            backend_port=config.backend_port,
            frontend_port=config.frontend_port,
            api_base_url=config.api_base_url,
            api_base_overridden=config.api_base_overridden,
            env_file=str(env_file),
        )
        for key in sorted(config.missing_secrets):
            self._logger.warning("missing_secret", key=key, hint=MISSING_SECRET_HINT)

        return config

    def _create_output_sink(
        self, specs: "tuple[ServiceSpec, ...]"  # noqa: UP037
    ) -> tuple["OutputSink", LogFileOutputSink | None]:  # noqa: UP037
        """Return the sink to use and the file sink the unit must close."""
        if self._output_sink is not None:
            return self._output_sink, None

        file_sink = LogFileOutputSink(
            {spec.name: spec.log_targets for spec in specs if spec.log_targets},
            logger=self._logger,
        )
        if self._settings.console_output:
            return TeeOutputSink(file_sink, ConcatenatedOutputSink()), file_sink
        return file_sink, file_sink

    def _create_reporter(self, config: EffectiveConfig) -> HealthReporter:
        settings = self._settings
        policy = HealthPolicy(
            url=health_url(config, settings),
            interval=settings.health_interval,
            timeout=settings.health_timeout,
            start_period=settings.health_start_period,
            retries=settings.health_retries,
        )
        return HealthReporter(policy, self._health_client, logger=self._logger)

    async def _watch_signals(self) -> None:
        with anyio.open_signal_receiver(signal.SIGINT, signal.SIGTERM) as signals:
            async for signum in signals:
                self._logger.info(
                    "shutdown_signal_received", signal=signal.Signals(signum).name
                )
                self.request_shutdown()
                return

    async def _serve_control(
        self,
        supervisor: Supervisor,
        reporter: HealthReporter,
    ) -> None:
        """Run the control server until the unit shuts down."""
        config = uvicorn.Config(
            app=create_control_app(supervisor, reporter),
            host=self._settings.control_host,
            port=self._settings.control_port,
            log_level="warning",
            access_log=False,
        )
        self._control_server = ControlServer(config)
        self._control_stopped = anyio.Event()
        try:
            await self._control_server.serve()
        except SystemExit:
            # uvicorn exits the process when it cannot bind; the unit keeps
            # running without its control endpoint.
            self._logger.error(
                "control_server_failed",
                host=self._settings.control_host,
                port=self._settings.control_port,
            )
        finally:
            self._control_stopped.set()

    async def _stop_control_server(self) -> None:
        """Ask the control server to exit and wait for it, within a bound."""
        if self._control_server is None or self._control_stopped is None:
            return

        self._control_server.should_exit = True
        with anyio.move_on_after(CONTROL_SHUTDOWN_TIMEOUT):
            await self._control_stopped.wait()

    async def run(self) -> ExitCode:
        """Run the unit until a shutdown is requested.

        Returns:
            ExitCode.SUCCESS after a clean shutdown, or
            ExitCode.CONFIG_ERROR if the configuration step failed.
        """
        self._shutdown_event = anyio.Event()
        if self._shutdown_requested:
            self._shutdown_event.set()

        try:
            self._config = self.resolve_config()
        except ConfigError as e:
            self._transition(UnitState.FAILED)
            self._logger.error("config_failed", error=str(e))
            return ExitCode.CONFIG_ERROR

        self._transition(UnitState.CONFIG_RESOLVED)

        specs = create_service_specs(self._config, self._settings)
        output_sink, owned_sink = self._create_output_sink(specs)
        reporter = self._create_reporter(self._config)
        self._reporter = reporter

        try:
            async with anyio.create_task_group() as tg:
                if self._handle_signals:
                    tg.start_soon(self._watch_signals)

                async with Supervisor(
                    self._launcher,
                    output_sink,
                    ConstantBackoff(self._settings.restart_backoff),
                ) as supervisor:
                    self._supervisor = supervisor
                    self._transition(UnitState.SERVICES_STARTING)
                    await supervisor.start(specs)
                    self._transition(UnitState.READY)
                    self._logger.info(
                        "unit_ready", services=[spec.name for spec in specs]
                    )

                    tg.start_soon(reporter.run)
                    if self._settings.control_enabled:
                        tg.start_soon(self._serve_control, supervisor, reporter)

                    await self._shutdown_event.wait()
                    self._transition(UnitState.SHUTTING_DOWN)
                    self._logger.info("unit_shutting_down")
                    # Leaving the supervisor stops services in reverse order

                await self._stop_control_server()
                tg.cancel_scope.cancel()
        finally:
            await reporter.aclose()
            if owned_sink is not None:
                await owned_sink.aclose()

        self._transition(UnitState.STOPPED)
        self._logger.info("unit_stopped")
        return ExitCode.SUCCESS
