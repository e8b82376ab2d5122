"""Tests for the desktop shell glue that do not need a GUI."""

import asyncio
import os
import sys
import threading
import time

import pytest

from mcp_desktop import __version__
from mcp_desktop.config import Config
from mcp_desktop.messages import DIALOG_TITLE
from mcp_desktop.models import ProcessState, StartupOutcome
from mcp_desktop.orchestrator import StartupOrchestrator
from mcp_desktop.shell import Bridge, DesktopShell
from tests.fixtures.fakes import (
    HEALTHY,
    FakePortFinder,
    FakeProber,
    FakeResolver,
    FakeSupervisor,
    FakeWindow,
    RecordingSleep,
    free_port,
    write_health_backend,
)

posix_only = pytest.mark.skipif(sys.platform == "win32", reason="uses shell scripts")


def _fake_shell(config=None, resolver=None, sleep=None):
    """A shell whose backend is a FakeSupervisor, with a running loop thread."""
    config = config or Config()
    shell = DesktopShell(config)
    shell.supervisor = FakeSupervisor()
    shell.orchestrator = StartupOrchestrator(
        config,
        shell.supervisor,
        resolver=resolver or FakeResolver(),
        prober=FakeProber([HEALTHY]),
        port_finder=FakePortFinder(),
        sleep=sleep or RecordingSleep(),
    )
    shell.window = FakeWindow()
    shell._start_loop()
    return shell


def test_bridge_app_info():
    shell = DesktopShell(Config(app={"name": "Test Shell"}))
    info = Bridge(shell).get_app_info()
    assert info == {"name": "Test Shell", "version": __version__, "platform": sys.platform}


def test_backend_status_before_and_after_ready():
    shell = DesktopShell(Config())
    status = Bridge(shell).get_backend_status()
    assert status["state"] == "idle"
    assert status["url"] is None

    shell.outcome = StartupOutcome.success(18060)
    assert Bridge(shell).get_backend_status()["url"] == "http://localhost:18060/"


def test_open_external_rejects_non_http(monkeypatch):
    opened = []
    monkeypatch.setattr("webbrowser.open", opened.append)
    bridge = Bridge(DesktopShell(Config()))
    assert bridge.open_external("file:///etc/passwd") is False
    assert opened == []


def test_shutdown_is_idempotent():
    shell = DesktopShell(Config())
    shell.shutdown()
    shell.shutdown()
    shell.stop_backend()
    assert shell.supervisor.state.value == "idle"


def test_window_closed_then_shutdown_stops_loop():
    shell = _fake_shell()
    assert shell._thread.is_alive()

    shell._on_window_closed()
    assert shell.supervisor.stop_calls == 1

    shell.shutdown()
    shell.shutdown()
    assert shell.supervisor.stop_calls == 2
    assert not shell._thread.is_alive()
    assert not shell._loop.is_running()

    shell.stop_backend()
    assert shell.supervisor.stop_calls == 2


def test_boot_loads_url_when_ready():
    shell = _fake_shell()
    try:
        shell._boot()
    finally:
        shell.shutdown()

    assert shell.window.loaded == ["http://localhost:18060/"]
    assert shell.window.dialogs == []
    assert shell.exit_code == 0


def test_boot_failure_shows_dialog_and_destroys_window():
    shell = _fake_shell(resolver=FakeResolver(path=None))
    try:
        shell._boot()
    finally:
        shell.shutdown()

    assert shell.exit_code == 1
    assert shell.window.loaded == []
    assert len(shell.window.dialogs) == 1
    title, message = shell.window.dialogs[0]
    assert title == DIALOG_TITLE
    assert "backend program is missing" in message
    assert shell.window.destroyed


def test_shutdown_cancels_startup_in_flight():
    shell = _fake_shell(config=Config(health={"grace_period_seconds": 30}), sleep=asyncio.sleep)
    boot = threading.Thread(target=shell._boot)
    boot.start()

    deadline = time.monotonic() + 5
    while not (shell._startup is not None and shell.supervisor.started):
        assert time.monotonic() < deadline, "startup never reached the grace period"
        time.sleep(0.01)

    shell.shutdown()
    boot.join(timeout=5)

    assert not boot.is_alive()
    assert shell._startup.cancelled()
    assert shell.outcome is None
    assert shell.window.loaded == []
    assert shell.window.dialogs == []
    assert shell.supervisor.stop_calls == 1
    assert not shell._thread.is_alive()


@posix_only
def test_real_backend_stopped_when_window_closes(tmp_path):
    backend = write_health_backend(tmp_path / "backend" / "xiaohongshu-mcp-desktop")
    config = Config(
        backend={"search_dirs": [str(backend.parent)], "executable_names": [backend.name]},
        ports={"preferred_start": free_port()},
        health={
            "host": "127.0.0.1",
            "grace_period_seconds": 0,
            "retry_delay_seconds": 0.2,
            "max_attempts": 25,
        },
    )
    shell = DesktopShell(config)
    shell.window = FakeWindow()
    shell._start_loop()
    try:
        shell._boot()
        assert shell.outcome.ready, shell.outcome.detail
        assert shell.window.loaded == [shell.outcome.url]
        pid = shell.supervisor.pid
        assert pid is not None

        shell._on_window_closed()

        assert shell.supervisor.state is ProcessState.IDLE
        assert shell.supervisor.pid is None
        with pytest.raises(ProcessLookupError):
            os.kill(pid, 0)
    finally:
        shell.shutdown()
    assert not shell._thread.is_alive()
