"""Tests for backend executable resolution."""

from pathlib import Path

import pytest

from mcp_desktop.config import Config
from mcp_desktop.exceptions import ExecutableMissingError
from mcp_desktop.models import CandidatePath, LaunchContext
from mcp_desktop.resolver import ExecutableResolver, resolve_executable


def _touch(path: Path) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(b"\x7fELF")
    return path


@pytest.fixture
def context(tmp_path):
    return LaunchContext(
        frozen=True,
        bundle_dir=tmp_path / "bundle",
        executable_dir=tmp_path / "install" / "bin" / "app",
        package_dir=tmp_path / "src" / "mcp_desktop",
        cwd=tmp_path / "work",
    )


def test_first_executable_candidate_wins(tmp_path):
    archived = _touch(tmp_path / "a" / "backend")
    first = _touch(tmp_path / "b" / "backend")
    second = _touch(tmp_path / "c" / "backend")
    candidates = [
        CandidatePath(archived, executable=False),
        CandidatePath(first),
        CandidatePath(second),
    ]
    assert resolve_executable(candidates) == first


def test_missing_candidates_are_skipped(tmp_path):
    present = _touch(tmp_path / "present" / "backend")
    candidates = [CandidatePath(tmp_path / "gone" / "backend"), CandidatePath(present)]
    assert resolve_executable(candidates) == present


def test_falls_back_to_first_existing(tmp_path):
    first = _touch(tmp_path / "a" / "backend")
    _touch(tmp_path / "b" / "backend")
    candidates = [
        CandidatePath(tmp_path / "missing"),
        CandidatePath(first, executable=False),
        CandidatePath(tmp_path / "b" / "backend", executable=False),
    ]
    assert resolve_executable(candidates) == first


def test_nothing_exists(tmp_path):
    with pytest.raises(ExecutableMissingError):
        resolve_executable([CandidatePath(tmp_path / "x"), CandidatePath(tmp_path / "y")])


def test_directories_do_not_count(tmp_path):
    (tmp_path / "backend").mkdir()
    with pytest.raises(ExecutableMissingError):
        resolve_executable([CandidatePath(tmp_path / "backend")])


class TestCandidateFlags:
    def test_archive_path_not_executable(self):
        c = CandidatePath.for_path(Path("/opt/app/resources/app.asar/backend/server"))
        assert not c.executable

    def test_unpacked_path_executable(self):
        c = CandidatePath.for_path(Path("/opt/app/resources/app.asar.unpacked/backend/server"))
        assert c.executable

    def test_zipapp_path_not_executable(self):
        c = CandidatePath.for_path(Path("/opt/tools/mcp.pyz/backend/server"))
        assert not c.executable

    def test_archive_suffix_on_file_name_is_ignored(self):
        c = CandidatePath.for_path(Path("/opt/backend/server.zip"))
        assert c.executable


class TestCandidateOrder:
    def test_primary_name_before_legacy(self, context):
        resolver = ExecutableResolver(["primary", "legacy"], context=context)
        names = [c.path.name for c in resolver.candidates()]
        first_legacy = names.index("legacy")
        assert all(n == "primary" for n in names[:first_legacy])
        assert all(n == "legacy" for n in names[first_legacy:])

    def test_install_locations_first_when_frozen(self, context):
        resolver = ExecutableResolver(["primary"], context=context)
        paths = [c.path for c in resolver.candidates()]
        assert paths[0] == context.executable_dir / "backend" / "primary"
        assert paths[1] == context.bundle_dir / "backend" / "primary"
        assert paths[-1] == context.executable_dir.parent.parent / "backend" / "primary"

    def test_dev_layout_skips_install_locations(self, context):
        context.frozen = False
        resolver = ExecutableResolver(["primary"], context=context)
        paths = [c.path for c in resolver.candidates()]
        assert paths[0] == context.package_dir.parent / "backend" / "primary"
        assert context.bundle_dir / "backend" / "primary" not in paths

    def test_search_dirs_come_first(self, context, tmp_path):
        resolver = ExecutableResolver(
            ["primary"], search_dirs=[str(tmp_path / "custom")], context=context
        )
        assert resolver.candidates()[0].path == tmp_path / "custom" / "primary"

    def test_no_duplicate_locations(self, context):
        context.cwd = context.package_dir.parent
        resolver = ExecutableResolver(["primary"], context=context)
        paths = [c.path for c in resolver.candidates()]
        assert len(paths) == len(set(paths))

    def test_requires_a_name(self, context):
        with pytest.raises(ValueError):
            ExecutableResolver([], context=context)


class TestResolve:
    def test_primary_in_low_priority_location_beats_legacy(self, context):
        legacy = _touch(context.executable_dir / "backend" / "legacy")
        primary = _touch(context.cwd / "backend" / "primary")
        resolver = ExecutableResolver(["primary", "legacy"], context=context)
        assert resolver.resolve() == primary
        assert legacy.exists()

    def test_legacy_used_when_primary_absent(self, context):
        legacy = _touch(context.bundle_dir / "backend" / "legacy")
        resolver = ExecutableResolver(["primary", "legacy"], context=context)
        assert resolver.resolve() == legacy

    def test_missing_everywhere(self, context):
        resolver = ExecutableResolver(["primary", "legacy"], context=context)
        with pytest.raises(ExecutableMissingError):
            resolver.resolve()

    def test_from_config(self, context, monkeypatch):
        monkeypatch.setattr("sys.platform", "linux")
        config = Config(backend={"executable_names": ["srv"], "backend_dir": "bin"})
        resolver = ExecutableResolver.from_config(config, context=context)
        assert resolver.candidates()[0].path == context.executable_dir / "bin" / "srv"
