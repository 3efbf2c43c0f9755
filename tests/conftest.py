# This file is part of Deber, a tool for building Debian packages in Docker containers.
#
# Copyright 2025 Canonical Ltd.
#
# SPDX-License-Identifier: GPL-3.0-only
#
# Deber is free software: you can redistribute it and/or modify it under
# the terms of the GNU General Public License version 3, as published by the
# Free Software Foundation.
#
# Deber is distributed in the hope that it will be useful, but WITHOUT
# ANY WARRANTY; without even the implied warranties of MERCHANTABILITY,
# SATISFACTORY QUALITY, or FITNESS FOR A PARTICULAR PURPOSE. See the GNU
# General Public License for more details.
#
# You should have received a copy of the GNU General Public License along with
# Deber. If not, see <http://www.gnu.org/licenses/>.

"""Pytest fixtures and configuration for Deber tests."""

from __future__ import annotations

import io
import tempfile
from collections.abc import Generator
from pathlib import Path

import pytest
import responses
from rich.console import Console

from deber.core.output import StepOutput
from deber.debpkg.changelog import PackageMetadata
from deber.naming import ResourceNames, compute_names
from deber.pipeline.types import StepContext

CHANGELOG_TEMPLATE = """\
{source} ({version}) {dist}; urgency=medium

  * Initial release.

 -- Jane Doe <jane@example.com>  Mon, 01 Jan 2024 00:00:00 +0000
"""


class FakeRuntime:
    """In-memory stand-in for DockerRuntime.

    Records every call in ``calls`` as a tuple of the method name and its
    arguments.
    """

    def __init__(self) -> None:
        self.images: set[str] = set()
        self.stale_images: set[str] = set()
        self.tags: dict[str, list[str]] = {"debian": ["bullseye", "bookworm", "sid"], "ubuntu": ["jammy", "noble"]}
        self.containers: dict[str, bool] = {}
        self.exec_returncodes: dict[str, int] = {}
        self.calls: list[tuple] = []

    def image_exists(self, name: str) -> bool:
        self.calls.append(("image_exists", name))
        return name in self.images

    def image_is_stale(self, name: str) -> bool:
        self.calls.append(("image_is_stale", name))
        return name in self.stale_images

    def build_image(self, name: str, base_ref: str) -> None:
        self.calls.append(("build_image", name, base_ref))
        self.images.add(name)
        self.stale_images.discard(name)

    def list_available_tags(self, repo: str, name: str | None = None) -> list[str]:
        self.calls.append(("list_available_tags", repo))
        return [tag for tag in self.tags.get(repo, []) if not name or name in tag]

    def container_exists(self, name: str) -> bool:
        self.calls.append(("container_exists", name))
        return name in self.containers

    def container_is_running(self, name: str) -> bool:
        self.calls.append(("container_is_running", name))
        return self.containers.get(name, False)

    def container_is_stopped(self, name: str) -> bool:
        self.calls.append(("container_is_stopped", name))
        return not self.containers.get(name, False)

    def create_container(self, names: ResourceNames) -> None:
        self.calls.append(("create_container", names.container))
        for directory in (names.build_dir, names.archive_dir, names.cache_dir):
            directory.mkdir(parents=True, exist_ok=True)
        self.containers[names.container] = False

    def start_container(self, name: str) -> None:
        self.calls.append(("start_container", name))
        self.containers[name] = True

    def stop_container(self, name: str) -> None:
        self.calls.append(("stop_container", name))
        self.containers[name] = False

    def remove_container(self, name: str) -> None:
        self.calls.append(("remove_container", name))
        del self.containers[name]

    def exec_in_container(self, name: str, *command: str) -> int:
        self.calls.append(("exec_in_container", name, *command))
        return self.exec_returncodes.get(command[0], 0)

    def method_calls(self) -> list[str]:
        return [call[0] for call in self.calls]

    def exec_commands(self) -> list[tuple[str, ...]]:
        return [call[2:] for call in self.calls if call[0] == "exec_in_container"]


@pytest.fixture
def temp_home(monkeypatch: pytest.MonkeyPatch) -> Generator[Path, None, None]:
    """Create a temporary home directory and set HOME/XDG paths."""
    with tempfile.TemporaryDirectory() as tmpdir:
        home = Path(tmpdir)
        monkeypatch.setenv("HOME", str(home))
        monkeypatch.setenv("XDG_CONFIG_HOME", str(home / ".config"))
        monkeypatch.setenv("XDG_CACHE_HOME", str(home / ".cache"))
        monkeypatch.delenv("DEBER_DPKG_BUILDPACKAGE_FLAGS", raising=False)
        monkeypatch.delenv("DEBER_LINTIAN_FLAGS", raising=False)
        monkeypatch.setattr(Path, "home", lambda: home)
        yield home


@pytest.fixture
def mock_config(temp_home: Path) -> Path:
    """Create a minimal config file in the temp home."""
    config_dir = temp_home / ".config" / "deber"
    config_dir.mkdir(parents=True, exist_ok=True)
    config_file = config_dir / "config.yaml"
    config_file.write_text("""
paths:
  build_root: "~/.cache/deber/build"
  archive_root: "~/deber"
  cache_root: "~/.cache/deber/apt"
  runs_root: "~/.cache/deber/runs"

defaults:
  base_repos: ["debian", "ubuntu"]
  max_image_age_days: 14
  stop_timeout: 10
  dpkg_buildpackage_flags: "-tc"
  lintian_flags: "-i"

behavior:
  no_color: true
""")
    return config_file


@pytest.fixture
def write_changelog():
    """Return a helper writing debian/changelog into a source tree."""

    def _write(source_dir: Path, source: str = "foo", version: str = "1.0-1", dist: str = "bullseye") -> Path:
        debian_dir = source_dir / "debian"
        debian_dir.mkdir(parents=True, exist_ok=True)
        changelog = debian_dir / "changelog"
        changelog.write_text(CHANGELOG_TEMPLATE.format(source=source, version=version, dist=dist))
        return changelog

    return _write


@pytest.fixture
def source_dir(tmp_path: Path, write_changelog) -> Path:
    """Source tree of foo 1.0-1 for bullseye, without upstream tarball."""
    src = tmp_path / "src" / "foo-1.0"
    write_changelog(src)
    return src


@pytest.fixture
def fake_env() -> FakeRuntime:
    return FakeRuntime()


@pytest.fixture
def metadata() -> PackageMetadata:
    return PackageMetadata(source_name="foo", package_version="1.0-1", target_dist="bullseye")


@pytest.fixture
def names(tmp_path: Path) -> ResourceNames:
    src = tmp_path / "src" / "foo-1.0"
    src.mkdir(parents=True, exist_ok=True)
    return compute_names(
        "deber",
        "bullseye",
        "foo",
        "1.0-1",
        source_dir=src,
        build_root=tmp_path / "build",
        archive_root=tmp_path / "archive",
        cache_root=tmp_path / "cache",
    )


@pytest.fixture
def console_buffer() -> io.StringIO:
    return io.StringIO()


@pytest.fixture
def step_ctx(console_buffer: io.StringIO) -> StepContext:
    """StepContext writing uncolored output into console_buffer."""
    console = Console(file=console_buffer, no_color=True, width=200, highlight=False)
    return StepContext(output=StepOutput(console=console))


@pytest.fixture
def mock_responses() -> Generator[responses.RequestsMock, None, None]:
    """Activate responses mock for HTTP requests."""
    with responses.RequestsMock() as rsps:
        yield rsps

