"""Custom exceptions for MCP Desktop."""

from __future__ import annotations

from typing import Optional

from mcp_desktop.models import FailureCategory


class MCPDesktopError(Exception):
    """Base exception for all MCP Desktop errors."""


class ConfigError(MCPDesktopError):
    """Configuration error."""


class StartupInProgressError(MCPDesktopError):
    """A startup attempt is already running."""


class StartupError(MCPDesktopError):
    """Backend startup failure; carries the category shown to the user."""

    category = FailureCategory.UNKNOWN


class ExecutableMissingError(StartupError):
    """No backend executable exists at any candidate location."""

    category = FailureCategory.EXECUTABLE_MISSING


class PortUnavailableError(StartupError):
    """No free port, or the backend reported that its port is taken."""

    category = FailureCategory.PORT_UNAVAILABLE


class ProcessSpawnError(StartupError):
    """The backend executable could not be launched."""

    category = FailureCategory.PROCESS_SPAWN_ERROR


class ProcessExitedEarlyError(StartupError):
    category = FailureCategory.PROCESS_EXITED_EARLY

    def __init__(self, exit_code: Optional[int]):
        self.exit_code = exit_code
        super().__init__(f"Backend exited unexpectedly with code {exit_code}")


class HealthCheckExhaustedError(StartupError):
    category = FailureCategory.HEALTH_CHECK_EXHAUSTED

    def __init__(self, attempts: int, last_error: str):
        self.attempts = attempts
        self.last_error = last_error
        super().__init__(
            f"Backend not healthy after {attempts} attempts: {last_error}"
        )
