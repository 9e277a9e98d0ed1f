"""Runtime supervisor for a two-service unit.

tandem resolves the unit's effective configuration from the environment,
launches the API backend and the web frontend as supervised child process
groups, restarts them independently when they exit, and reports a single
health signal for the whole unit.
"""

__version__ = "0.1.0"
