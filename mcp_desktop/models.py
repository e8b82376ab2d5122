"""Data models for the backend supervisor."""

from __future__ import annotations

import os
import sys
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Optional


class FailureCategory(str, Enum):
    PORT_UNAVAILABLE = "port_unavailable"
    EXECUTABLE_MISSING = "executable_missing"
    PROCESS_SPAWN_ERROR = "process_spawn_error"
    PROCESS_EXITED_EARLY = "process_exited_early"
    HEALTH_CHECK_EXHAUSTED = "health_check_exhausted"
    UNKNOWN = "unknown"


class ProcessState(str, Enum):
    IDLE = "idle"
    STARTING = "starting"
    RUNNING = "running"
    STOPPING = "stopping"
    FAILED = "failed"


class HealthStatus(str, Enum):
    HEALTHY = "healthy"
    UNREACHABLE = "unreachable"
    TIMEOUT = "timeout"
    BAD_STATUS = "bad_status"


class EventKind(str, Enum):
    PORT_CONFLICT = "port_conflict"
    EXITED = "exited"


# Path components that mark a packed, read-only archive mount
ARCHIVE_SUFFIXES = (".asar", ".zip", ".pyz", ".egg")

MAX_PORT = 65535


@dataclass(frozen=True)
class CandidatePath:
    """One entry of the resolver's ordered search list."""

    path: Path
    executable: bool = True

    @classmethod
    def for_path(cls, path: Path) -> CandidatePath:
        """Build a candidate, flagging paths that traverse an archive as not runnable."""
        inside_archive = any(
            part.lower().endswith(ARCHIVE_SUFFIXES) for part in path.parts[:-1]
        )
        return cls(path=path, executable=not inside_archive)

    def exists(self) -> bool:
        return self.path.is_file()


@dataclass(frozen=True)
class PortRange:
    """Half-open span [start, start + size)."""

    start: int
    size: int = 100

    @property
    def end(self) -> int:
        return self.start + self.size

    def __iter__(self):
        # ports above 65535 do not exist
        return iter(range(self.start, min(self.end, MAX_PORT + 1)))

    def __str__(self) -> str:
        return f"{self.start}-{min(self.end, MAX_PORT + 1) - 1}"


@dataclass(frozen=True)
class HealthCheckResult:
    status: HealthStatus
    status_code: Optional[int] = None
    detail: str = ""

    @property
    def ok(self) -> bool:
        return self.status is HealthStatus.HEALTHY

    def describe(self) -> str:
        if self.status is HealthStatus.BAD_STATUS:
            return f"health check returned HTTP {self.status_code}"
        if self.status is HealthStatus.TIMEOUT:
            return "health check timed out"
        if self.status is HealthStatus.UNREACHABLE:
            return f"backend unreachable: {self.detail}" if self.detail else "backend unreachable"
        return "healthy"


@dataclass(frozen=True)
class SupervisorEvent:
    kind: EventKind
    line: str = ""
    exit_code: Optional[int] = None


@dataclass(frozen=True)
class StartupOutcome:
    """Terminal value of one startup attempt."""

    ready: bool
    port: Optional[int] = None
    category: Optional[FailureCategory] = None
    detail: str = ""

    @classmethod
    def success(cls, port: int) -> StartupOutcome:
        return cls(ready=True, port=port)

    @classmethod
    def failed(cls, category: FailureCategory, detail: str = "") -> StartupOutcome:
        return cls(ready=False, category=category, detail=detail)

    @property
    def url(self) -> Optional[str]:
        return f"http://localhost:{self.port}/" if self.ready else None


@dataclass
class LaunchContext:
    """Where the application is running from; drives candidate construction."""

    frozen: bool = False
    bundle_dir: Optional[Path] = None
    executable_dir: Path = field(default_factory=lambda: Path(sys.executable).parent)
    package_dir: Path = field(default_factory=lambda: Path(__file__).resolve().parent)
    cwd: Path = field(default_factory=Path.cwd)

    @classmethod
    def detect(cls) -> LaunchContext:
        """Inspect the running interpreter (PyInstaller sets sys.frozen and sys._MEIPASS)."""
        frozen = bool(getattr(sys, "frozen", False))
        meipass = getattr(sys, "_MEIPASS", None)
        return cls(
            frozen=frozen,
            bundle_dir=Path(meipass) if meipass else None,
            executable_dir=Path(sys.executable).resolve().parent,
            package_dir=Path(__file__).resolve().parent,
            cwd=Path(os.getcwd()),
        )
