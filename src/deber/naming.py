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

"""Deterministic resource names for a package build.

Every identifier a build touches (image, container, directories) is derived
from the package's distribution, source name and version. Re-running Deber on
the same package therefore addresses the same container and paths.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

DEFAULT_BUILD_ROOT = Path.home() / ".cache" / "deber" / "build"
DEFAULT_ARCHIVE_ROOT = Path.home() / "deber"
DEFAULT_CACHE_ROOT = Path.home() / ".cache" / "deber" / "apt"

# Docker names allow [a-zA-Z0-9][a-zA-Z0-9_.-]. Debian versions and source
# names never contain "_", so these escapes cannot collide with real text.
_ESCAPES = {
    ":": "_e",
    "~": "_t",
    "+": "_p",
}


def escape_name(value: str) -> str:
    """Return value with characters Docker refuses in names escaped."""
    return "".join(_ESCAPES.get(ch, ch) for ch in value)


@dataclass(frozen=True)
class ResourceNames:
    """Identifiers for one package build.

    Attributes:
        image: Build image, shared by all packages of a distribution.
        container: Build container for this exact package version.
        source_dir: Unpacked source tree (contains debian/).
        source_parent_dir: Where the upstream tarball is expected.
        build_dir: Output directory mounted at /build in the container.
        archive_dir: Per-distribution archive, also the local apt repository.
        archive_package_dir: Final resting place of this build's output.
        cache_dir: Per-distribution apt package cache.
    """

    image: str
    container: str
    source_dir: Path
    source_parent_dir: Path
    build_dir: Path
    archive_dir: Path
    archive_package_dir: Path
    cache_dir: Path


def compute_names(
    command: str,
    dist: str,
    source: str,
    version: str,
    *,
    source_dir: Path | None = None,
    build_root: Path | None = None,
    archive_root: Path | None = None,
    cache_root: Path | None = None,
) -> ResourceNames:
    """Compute the resource names for a package build.

    Args:
        command: Name of the invoked program, used as a namespace prefix.
        dist: Target distribution codename (e.g. "bullseye").
        source: Debian source package name.
        version: Full Debian version, epoch included.
        source_dir: Source tree; defaults to the current directory.
        build_root: Parent of per-build directories.
        archive_root: Parent of per-distribution archives.
        cache_root: Parent of per-distribution apt caches.

    Returns:
        ResourceNames for the build.
    """
    source_dir = Path(source_dir) if source_dir is not None else Path.cwd()
    build_root = Path(build_root) if build_root is not None else DEFAULT_BUILD_ROOT
    archive_root = Path(archive_root) if archive_root is not None else DEFAULT_ARCHIVE_ROOT
    cache_root = Path(cache_root) if cache_root is not None else DEFAULT_CACHE_ROOT

    safe_dist = escape_name(dist)
    safe_source = escape_name(source)
    safe_version = escape_name(version)

    container = f"{command}_{safe_dist}_{safe_source}_{safe_version}"
    archive_dir = archive_root / safe_dist

    return ResourceNames(
        image=f"{command}:{safe_dist}",
        container=container,
        source_dir=source_dir,
        source_parent_dir=source_dir.parent,
        build_dir=build_root / container,
        archive_dir=archive_dir,
        archive_package_dir=archive_dir / safe_source / safe_version,
        cache_dir=cache_root / safe_dist,
    )
