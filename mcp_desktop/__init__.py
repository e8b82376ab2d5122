"""MCP Desktop - desktop shell that supervises a local backend service."""

__version__ = "1.0.0"

from mcp_desktop.config import Config
from mcp_desktop.models import FailureCategory, ProcessState, StartupOutcome
from mcp_desktop.orchestrator import StartupOrchestrator
from mcp_desktop.supervisor import ProcessSupervisor

__all__ = [
    "Config",
    "FailureCategory",
    "ProcessState",
    "ProcessSupervisor",
    "StartupOrchestrator",
    "StartupOutcome",
]
