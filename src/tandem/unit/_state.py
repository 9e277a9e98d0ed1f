"""Unit lifecycle states and exit codes."""

from enum import IntEnum, StrEnum


class UnitState(StrEnum):
    """States of the unit's startup state machine.

    INIT -> CONFIG_RESOLVED -> SERVICES_STARTING -> READY
    -> SHUTTING_DOWN -> STOPPED, with FAILED reachable only from INIT.
    """

    INIT = "init"
    CONFIG_RESOLVED = "config_resolved"
    SERVICES_STARTING = "services_starting"
    READY = "ready"
    SHUTTING_DOWN = "shutting_down"
    STOPPED = "stopped"
    FAILED = "failed"


ALLOWED_TRANSITIONS: dict[UnitState, frozenset[UnitState]] = {
    UnitState.INIT: frozenset({UnitState.CONFIG_RESOLVED, UnitState.FAILED}),
    UnitState.CONFIG_RESOLVED: frozenset({UnitState.SERVICES_STARTING}),
    UnitState.SERVICES_STARTING: frozenset({UnitState.READY}),
    UnitState.READY: frozenset({UnitState.SHUTTING_DOWN}),
    UnitState.SHUTTING_DOWN: frozenset({UnitState.STOPPED}),
    UnitState.STOPPED: frozenset(),
    UnitState.FAILED: frozenset(),
}


class ExitCode(IntEnum):
    """Process exit codes for tandem commands."""

    SUCCESS = 0
    # Container health probes treat 1 as unhealthy and reserve 2
    UNHEALTHY = 1
    CONFIG_ERROR = 2
    INTERNAL_ERROR = 5
