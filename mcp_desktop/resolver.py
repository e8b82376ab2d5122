"""Locate the backend executable among install, dev-tree and cwd locations."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Iterable, Optional, Sequence

from mcp_desktop.config import Config
from mcp_desktop.exceptions import ExecutableMissingError
from mcp_desktop.models import CandidatePath, LaunchContext

logger = logging.getLogger(__name__)


def resolve_executable(candidates: Sequence[CandidatePath]) -> Path:
    """Return the first existing runnable candidate, else the first existing one."""
    existing = [c for c in candidates if c.exists()]
    for candidate in existing:
        if candidate.executable:
            return candidate.path

    if existing:
        logger.warning(
            "No directly executable backend found, falling back to %s", existing[0].path
        )
        return existing[0].path

    raise ExecutableMissingError(
        f"Backend executable not found, tried {len(candidates)} locations"
    )


class ExecutableResolver:
    """Build the candidate list for a launch context and resolve it."""

    def __init__(
        self,
        names: Sequence[str],
        backend_dir: str = "backend",
        search_dirs: Iterable[str] = (),
        context: Optional[LaunchContext] = None,
    ):
        if not names:
            raise ValueError("At least one executable name is required")
        self.names = list(names)
        self.backend_dir = backend_dir
        self.search_dirs = [Path(d) for d in search_dirs]
        self.context = context or LaunchContext.detect()

    @classmethod
    def from_config(
        cls, config: Config, context: Optional[LaunchContext] = None
    ) -> ExecutableResolver:
        return cls(
            names=config.backend.file_names(),
            backend_dir=config.backend.backend_dir,
            search_dirs=config.backend.search_dirs,
            context=context,
        )

    def locations(self) -> list[Path]:
        """Directories to search, highest priority first."""
        ctx = self.context
        sub = self.backend_dir
        dirs: list[Path] = list(self.search_dirs)

        if ctx.frozen:
            dirs.append(ctx.executable_dir / sub)
            if ctx.bundle_dir is not None:
                dirs.append(ctx.bundle_dir / sub)
            dirs.append(ctx.executable_dir.parent / sub)

        # Development checkout: <repo>/backend next to the package
        dirs += [
            ctx.package_dir.parent / sub,
            ctx.package_dir.parent.parent / sub,
            ctx.cwd / sub,
            ctx.cwd.parent / sub,
        ]

        if ctx.frozen:
            dirs.append(ctx.executable_dir.parent.parent / sub)

        seen = set()
        unique = []
        for d in dirs:
            if d not in seen:
                seen.add(d)
                unique.append(d)
        return unique

    def candidates(self) -> list[CandidatePath]:
        """Every (location, name) pair; all locations for a name before the next name."""
        locations = self.locations()
        return [
            CandidatePath.for_path(location / name)
            for name in self.names
            for location in locations
        ]

    def resolve(self, candidates: Optional[Sequence[CandidatePath]] = None) -> Path:
        candidates = self.candidates() if candidates is None else candidates
        ctx = self.context
        logger.debug(
            "Launch context: frozen=%s bundle_dir=%s executable_dir=%s cwd=%s",
            ctx.frozen, ctx.bundle_dir, ctx.executable_dir, ctx.cwd,
        )
        for i, c in enumerate(candidates, 1):
            logger.debug(
                "%d. %s exists=%s executable=%s", i, c.path, c.exists(), c.executable
            )

        path = resolve_executable(candidates)
        logger.info("Using backend executable: %s", path)
        return path
