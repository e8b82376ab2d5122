"""Desktop window around the supervised backend (pywebview).

The GUI owns the main thread. The backend supervisor and startup sequence
run on an asyncio loop in a daemon thread; window callbacks reach it with
``asyncio.run_coroutine_threadsafe``.
"""

from __future__ import annotations

import asyncio
import atexit
import concurrent.futures
import logging
import sys
import threading
import webbrowser
from typing import Optional

from mcp_desktop import __version__
from mcp_desktop.config import Config
from mcp_desktop.messages import DIALOG_TITLE, format_failure
from mcp_desktop.models import StartupOutcome
from mcp_desktop.orchestrator import StartupOrchestrator
from mcp_desktop.supervisor import ProcessSupervisor

logger = logging.getLogger(__name__)

LOADING_HTML = (
    "<body style='background:#0d1117;color:#e6edf3;"
    "font-family:-apple-system,'Segoe UI',sans-serif;display:flex;"
    "align-items:center;justify-content:center;height:100vh;"
    "font-size:18px;gap:12px'>Starting backend service…</body>"
)


class Bridge:
    """JavaScript API exposed to the page as ``window.pywebview.api``."""

    def __init__(self, shell: DesktopShell):
        self._shell = shell

    def get_app_info(self) -> dict:
        return {
            "name": self._shell.config.app.name,
            "version": __version__,
            "platform": sys.platform,
        }

    def get_backend_status(self) -> dict:
        return self._shell.backend_status()

    def open_external(self, url: str) -> bool:
        if not url.startswith(("http://", "https://")):
            logger.warning("Refusing to open non-http URL: %s", url)
            return False
        return webbrowser.open(url)

    def select_file(self, file_types: Optional[list[str]] = None):
        import webview

        return self._shell.window.create_file_dialog(
            webview.FileDialog.OPEN, file_types=tuple(file_types or ())
        )

    def select_folder(self):
        import webview

        result = self._shell.window.create_file_dialog(webview.FileDialog.FOLDER)
        return result[0] if result else None


class DesktopShell:
    def __init__(self, config: Config):
        self.config = config
        self.supervisor = ProcessSupervisor.from_config(config)
        self.orchestrator = StartupOrchestrator(config, self.supervisor)
        self.window = None
        self.outcome: Optional[StartupOutcome] = None
        self.exit_code = 0

        self._loop = asyncio.new_event_loop()
        self._thread = threading.Thread(
            target=self._loop.run_forever, name="backend-loop", daemon=True
        )
        self._startup: Optional[concurrent.futures.Future] = None
        self._lock = threading.Lock()
        self._closed = False

    def run(self) -> int:
        import webview  # deferred so the CLI works without a GUI backend

        webview.settings["OPEN_EXTERNAL_LINKS_IN_BROWSER"] = True
        self._start_loop()
        atexit.register(self.shutdown)

        win = self.config.window
        self.window = webview.create_window(
            win.title,
            html=LOADING_HTML,
            width=win.width,
            height=win.height,
            min_size=(win.min_width, win.min_height),
            js_api=Bridge(self),
        )
        self.window.events.closed += self._on_window_closed

        webview.start(self._boot, debug=win.debug)
        logger.info("All windows closed, exiting")
        self.shutdown()
        return self.exit_code

    def _start_loop(self) -> None:
        started = threading.Event()
        self._loop.call_soon(started.set)
        self._thread.start()
        started.wait()

    def backend_status(self) -> dict:
        status = self.supervisor.status()
        status["url"] = self.outcome.url if self.outcome else None
        return status

    def stop_backend(self) -> None:
        """Cancel a pending startup and stop the backend; no-op after shutdown."""
        if self._closed or not self._loop.is_running():
            return
        if self._startup is not None and not self._startup.done():
            self._startup.cancel()
        asyncio.run_coroutine_threadsafe(self.supervisor.stop(), self._loop).result()

    def shutdown(self) -> None:
        with self._lock:
            if self._closed:
                return
            self.stop_backend()
            self._closed = True
        if self._loop.is_running():
            self._loop.call_soon_threadsafe(self._loop.stop)
            self._thread.join(timeout=5)

    def _boot(self) -> None:
        self._startup = asyncio.run_coroutine_threadsafe(
            self.orchestrator.startup(), self._loop
        )
        try:
            self.outcome = self._startup.result()
        except concurrent.futures.CancelledError:
            logger.info("Startup cancelled by shutdown")
            return

        if self.outcome.ready:
            logger.info("Loading %s", self.outcome.url)
            self.window.load_url(self.outcome.url)
            return

        self.exit_code = 1
        self.window.create_confirmation_dialog(DIALOG_TITLE, format_failure(self.outcome))
        self.window.destroy()

    def _on_window_closed(self) -> None:
        logger.info("Main window closed")
        self.stop_backend()
