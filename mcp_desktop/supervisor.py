"""Lifecycle of the single backend child process."""

from __future__ import annotations

import asyncio
import logging
import os
import subprocess
import sys
from collections import deque
from pathlib import Path
from typing import Iterable, Optional

from mcp_desktop.config import Config
from mcp_desktop.exceptions import ProcessSpawnError, StartupInProgressError
from mcp_desktop.models import EventKind, ProcessState, SupervisorEvent

logger = logging.getLogger(__name__)

# Output fragments that mean the backend lost its port (matched case-insensitively).
# The backend may print Go, Windows or localized messages.
PORT_CONFLICT_PHRASES = (
    "address already in use",
    "port already in use",
    "only one usage of each socket address",
    "端口被占用",
    "通常每个套接字地址",
)

_STREAM_LIMIT = 1024 * 1024
_DRAIN_TIMEOUT = 1.0


def child_env() -> dict:
    """Return os.environ without loader overrides injected by a frozen bundle.

    PyInstaller points DYLD_* / LD_LIBRARY_PATH at the bundle; a foreign
    executable must not inherit them.
    """
    env = {k: v for k, v in os.environ.items() if not k.startswith("DYLD_")}
    if getattr(sys, "frozen", False):
        original = env.pop("LD_LIBRARY_PATH_ORIG", None)
        if original is not None:
            env["LD_LIBRARY_PATH"] = original
        else:
            env.pop("LD_LIBRARY_PATH", None)
    return env


class ProcessSupervisor:
    """Owns the backend process handle: start, watch output and exit, stop.

    Failure signals (port conflict in output, non-zero exit) are published
    on ``events``, a queue recreated for every start.
    """

    def __init__(
        self,
        headless_flag: str = "-no-browser",
        port_flag: str = "-port",
        conflict_phrases: Optional[Iterable[str]] = None,
        stop_wait: float = 5.0,
        output_history: int = 200,
    ):
        self.headless_flag = headless_flag
        self.port_flag = port_flag
        phrases = PORT_CONFLICT_PHRASES if conflict_phrases is None else conflict_phrases
        self.conflict_phrases = tuple(p.lower() for p in phrases)
        self.stop_wait = stop_wait
        self.recent_output: deque[str] = deque(maxlen=output_history)

        self.state = ProcessState.IDLE
        self.executable: Optional[Path] = None
        self.port: Optional[int] = None
        self.events: asyncio.Queue[SupervisorEvent] = asyncio.Queue()
        self._process: Optional[asyncio.subprocess.Process] = None
        self._readers: list[asyncio.Task] = []
        self._watcher: Optional[asyncio.Task] = None

    @classmethod
    def from_config(cls, config: Config) -> ProcessSupervisor:
        backend = config.backend
        return cls(
            headless_flag=backend.headless_flag,
            port_flag=backend.port_flag,
            conflict_phrases=PORT_CONFLICT_PHRASES + tuple(backend.extra_conflict_phrases),
            stop_wait=backend.stop_wait_seconds,
            output_history=backend.output_history,
        )

    @property
    def pid(self) -> Optional[int]:
        return self._process.pid if self._process is not None else None

    def command(self, executable: Path, port: int) -> list[str]:
        return [str(executable), self.headless_flag, self.port_flag, str(port)]

    def is_port_conflict(self, line: str) -> bool:
        lowered = line.lower()
        return any(phrase in lowered for phrase in self.conflict_phrases)

    async def start(self, executable: Path, port: int) -> None:
        """Spawn the backend bound to ``port`` with its directory as cwd."""
        if self.state not in (ProcessState.IDLE, ProcessState.FAILED):
            raise StartupInProgressError(f"Backend already {self.state.value}")

        self.events = asyncio.Queue()
        self.recent_output.clear()
        self.state = ProcessState.STARTING

        cmd = self.command(executable, port)
        kwargs = {}
        if sys.platform == "win32":
            kwargs["creationflags"] = subprocess.CREATE_NO_WINDOW

        logger.info("Starting backend: %s", " ".join(cmd))
        try:
            proc = await asyncio.create_subprocess_exec(
                *cmd,
                cwd=str(executable.parent),
                env=child_env(),
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                limit=_STREAM_LIMIT,
                **kwargs,
            )
        except OSError as e:
            self.state = ProcessState.IDLE
            raise ProcessSpawnError(f"Cannot launch {executable}: {e}") from e

        self._process = proc
        self.executable = executable
        self.port = port
        logger.info("Backend started (pid %d) on port %d", proc.pid, port)

        self._readers = [
            asyncio.create_task(self._read_stream(proc.stdout, "stdout")),
            asyncio.create_task(self._read_stream(proc.stderr, "stderr")),
        ]
        self._watcher = asyncio.create_task(self._watch_exit(proc))

    def mark_running(self) -> None:
        if self.state is ProcessState.STARTING:
            self.state = ProcessState.RUNNING

    async def stop(self) -> None:
        """Terminate the backend if it is alive. Safe to call repeatedly."""
        proc = self._process
        if proc is None or proc.returncode is not None:
            self._process = None
            self._cancel_tasks()
            self.state = ProcessState.IDLE
            return

        self.state = ProcessState.STOPPING
        logger.info("Stopping backend (pid %d)", proc.pid)
        try:
            proc.terminate()
        except ProcessLookupError:
            pass

        if self._watcher is not None:
            done, _ = await asyncio.wait({self._watcher}, timeout=self.stop_wait)
            if not done:
                logger.warning(
                    "Backend (pid %d) still running %.1fs after terminate",
                    proc.pid, self.stop_wait,
                )

        self._process = None
        self._cancel_tasks()
        self.state = ProcessState.IDLE
        logger.info("Backend stopped")

    def status(self) -> dict:
        return {
            "state": self.state.value,
            "pid": self.pid,
            "port": self.port,
            "executable": str(self.executable) if self.executable else None,
        }

    def _cancel_tasks(self) -> None:
        for task in [*self._readers, self._watcher]:
            if task is not None and not task.done():
                task.cancel()
        self._readers = []
        self._watcher = None

    async def _read_stream(self, stream: asyncio.StreamReader, name: str) -> None:
        events = self.events
        while True:
            try:
                raw = await stream.readline()
            except ValueError:
                # readline() discards the oversized chunk before raising
                logger.warning("Dropped over-long backend %s line (limit %d bytes)",
                               name, _STREAM_LIMIT)
                continue
            if not raw:
                break
            line = raw.decode("utf-8", errors="replace").rstrip()
            if not line:
                continue
            self.recent_output.append(line)
            logger.info("backend %s: %s", name, line)
            if self.is_port_conflict(line):
                logger.error("Backend reported a port conflict: %s", line)
                events.put_nowait(SupervisorEvent(EventKind.PORT_CONFLICT, line=line))

    async def _watch_exit(self, proc: asyncio.subprocess.Process) -> None:
        events = self.events
        code = await proc.wait()
        # Output already written must be scanned before the exit is reported
        if self._readers:
            await asyncio.wait(self._readers, timeout=_DRAIN_TIMEOUT)

        if proc is not self._process:
            return
        self._process = None
        if self.state is ProcessState.STOPPING:
            logger.info("Backend exited with code %s after stop", code)
            return

        if code != 0:
            self.state = ProcessState.FAILED
            logger.error("Backend exited unexpectedly with code %s", code)
        else:
            self.state = ProcessState.IDLE
            logger.info("Backend exited with code 0")
        events.put_nowait(SupervisorEvent(EventKind.EXITED, exit_code=code))
