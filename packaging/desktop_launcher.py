"""Frozen-app entry point (PyInstaller) for MCP Desktop."""

from __future__ import annotations

import logging
import os
import sys
from pathlib import Path

from mcp_desktop.__main__ import setup_logging
from mcp_desktop.config import Config
from mcp_desktop.exceptions import ConfigError
from mcp_desktop.shell import DesktopShell

log = logging.getLogger(__name__)


def resource_path(relative: str) -> Path:
    """Resolve resource path for both dev and frozen modes."""
    base = Path(getattr(sys, "_MEIPASS", Path(__file__).resolve().parents[1]))
    return base / relative


def main() -> int:
    config_file = resource_path("config.yaml")
    if config_file.exists():
        os.environ.setdefault("MCP_DESKTOP_CONFIG", str(config_file))

    load_error = None
    try:
        config = Config.load()
    except ConfigError as e:
        load_error = e
        config = Config()

    # No console in a windowed build; log to the user's home
    log_file = config.app.log_path()
    log_file.parent.mkdir(parents=True, exist_ok=True)
    setup_logging("DEBUG", log_file=str(log_file))
    log.info("Launcher started (sys._MEIPASS=%s)", getattr(sys, "_MEIPASS", None))

    if load_error is not None:
        log.error("Invalid configuration: %s", load_error)
        return 1

    code = DesktopShell(config).run()
    log.info("Launcher exiting with code %d", code)
    return code


if __name__ == "__main__":
    raise SystemExit(main())
