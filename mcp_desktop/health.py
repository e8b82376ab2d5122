"""Liveness probe against the backend's health endpoint."""

from __future__ import annotations

import asyncio
import logging

import aiohttp

from mcp_desktop.config import Config
from mcp_desktop.models import HealthCheckResult, HealthStatus

logger = logging.getLogger(__name__)


class HealthProber:
    """Issue one bounded GET per probe; only HTTP 200 counts as healthy."""

    def __init__(self, host: str = "localhost", path: str = "/health", timeout: float = 5.0):
        self.host = host
        self.path = path if path.startswith("/") else f"/{path}"
        self.timeout = timeout

    @classmethod
    def from_config(cls, config: Config) -> HealthProber:
        return cls(
            host=config.health.host,
            path=config.health.path,
            timeout=config.health.timeout_seconds,
        )

    def url(self, port: int) -> str:
        return f"http://{self.host}:{port}{self.path}"

    async def probe(self, port: int) -> HealthCheckResult:
        url = self.url(port)
        timeout = aiohttp.ClientTimeout(total=self.timeout)
        try:
            async with aiohttp.ClientSession(timeout=timeout) as session:
                async with session.get(url, allow_redirects=False) as resp:
                    if resp.status == 200:
                        return HealthCheckResult(HealthStatus.HEALTHY, status_code=200)
                    return HealthCheckResult(HealthStatus.BAD_STATUS, status_code=resp.status)
        # aiohttp timeouts subclass asyncio.TimeoutError; check them first
        except asyncio.TimeoutError:
            logger.debug("Health check %s timed out after %.1fs", url, self.timeout)
            return HealthCheckResult(HealthStatus.TIMEOUT)
        except aiohttp.ClientError as e:
            logger.debug("Health check %s failed: %s", url, e)
            return HealthCheckResult(HealthStatus.UNREACHABLE, detail=str(e))
