"""Startup sequence: resolve, allocate port, spawn, poll until healthy.

Every wait in the sequence (grace period, probe, retry delay) is raced
against the supervisor's failure events, so a port conflict printed by
the backend or an early exit ends the attempt immediately instead of
after the remaining health checks.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, Optional, Sequence, TypeVar

from mcp_desktop.config import Config
from mcp_desktop.exceptions import (
    HealthCheckExhaustedError,
    PortUnavailableError,
    ProcessExitedEarlyError,
    StartupError,
    StartupInProgressError,
)
from mcp_desktop.health import HealthProber
from mcp_desktop.models import EventKind, FailureCategory, PortRange, StartupOutcome
from mcp_desktop.ports import find_available_port
from mcp_desktop.resolver import ExecutableResolver
from mcp_desktop.supervisor import ProcessSupervisor

logger = logging.getLogger(__name__)

T = TypeVar("T")

PortFinder = Callable[[int, Sequence[PortRange]], int]


class StartupOrchestrator:
    """Run one backend startup attempt and report a ``StartupOutcome``.

    Not reentrant: a second ``startup()`` while one is running raises
    ``StartupInProgressError``.
    """

    def __init__(
        self,
        config: Config,
        supervisor: ProcessSupervisor,
        resolver: Optional[ExecutableResolver] = None,
        prober: Optional[HealthProber] = None,
        port_finder: Optional[PortFinder] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.config = config
        self.supervisor = supervisor
        self.resolver = resolver or ExecutableResolver.from_config(config)
        self.prober = prober or HealthProber.from_config(config)
        self.port_finder = port_finder or find_available_port
        self._sleep = sleep
        self.port: Optional[int] = None
        self.attempts = 0
        self._in_flight = False

    def port_ranges(self) -> list[PortRange]:
        ports = self.config.ports
        return [
            PortRange(ports.preferred_start, ports.range_size),
            PortRange(ports.fallback_start, ports.range_size),
        ]

    async def startup(self) -> StartupOutcome:
        if self._in_flight:
            raise StartupInProgressError("Backend startup already in progress")
        self._in_flight = True
        try:
            port = await self._run()
        except StartupError as e:
            logger.error("Backend startup failed [%s]: %s", e.category.value, e)
            self._log_recent_output()
            return StartupOutcome.failed(e.category, str(e))
        except Exception as e:
            logger.exception("Unexpected error during backend startup")
            return StartupOutcome.failed(FailureCategory.UNKNOWN, str(e))
        finally:
            self._in_flight = False

        self.port = port
        logger.info("Backend ready on port %d", port)
        return StartupOutcome.success(port)

    async def _run(self) -> int:
        health = self.config.health

        executable = self.resolver.resolve()
        port = self.port_finder(self.config.ports.preferred_start, self.port_ranges())
        await self.supervisor.start(executable, port)

        logger.info("Waiting %.1fs before the first health check", health.grace_period_seconds)
        await self._race(self._sleep(health.grace_period_seconds))

        self.attempts = 0
        while True:
            result = await self._race(self.prober.probe(port))
            self.attempts += 1
            if result.ok:
                self.supervisor.mark_running()
                return port

            logger.warning(
                "Health check failed (%d/%d): %s",
                self.attempts, health.max_attempts, result.describe(),
            )
            if self.attempts >= health.max_attempts:
                raise HealthCheckExhaustedError(self.attempts, result.describe())
            await self._race(self._sleep(health.retry_delay_seconds))

    async def _race(self, awaitable: Awaitable[T]) -> T:
        """Await ``awaitable`` unless the supervisor reports a failure first."""
        work = asyncio.ensure_future(awaitable)
        signal = asyncio.ensure_future(self._next_failure())
        try:
            done, _ = await asyncio.wait({work, signal}, return_when=asyncio.FIRST_COMPLETED)
        except asyncio.CancelledError:
            work.cancel()
            signal.cancel()
            raise

        if signal in done:
            work.cancel()
            raise signal.result()
        signal.cancel()
        return work.result()

    async def _next_failure(self) -> StartupError:
        while True:
            event = await self.supervisor.events.get()
            if event.kind is EventKind.PORT_CONFLICT:
                return PortUnavailableError(f"Backend reported a port conflict: {event.line}")
            if event.exit_code != 0:
                return ProcessExitedEarlyError(event.exit_code)
            # exit code 0 is not an error; polling runs on until exhausted
            logger.warning("Backend exited with code 0 before becoming healthy")

    def _log_recent_output(self) -> None:
        output = list(self.supervisor.recent_output)
        if output:
            logger.error("Last %d backend output lines:\n%s", len(output), "\n".join(output))
