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

"""Package metadata from debian/changelog.

The top changelog entry is the source of truth for the source name, version
and target distribution of the package being built. Parsing uses
python-debian.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path

from debian.changelog import Changelog, ChangelogParseError

from deber.core.exceptions import ChangelogError

logger = logging.getLogger(__name__)

TARBALL_COMPRESSIONS = (".gz", ".xz", ".bz2", ".lzma", ".zst")


@dataclass(frozen=True)
class PackageMetadata:
    """Metadata of the package being built.

    Attributes:
        source_name: Debian source package name.
        package_version: Full version, epoch included.
        target_dist: Distribution the package is built for.
        tarball_file_name: Upstream tarball file name, empty for native
            packages or when no tarball could be found.
    """

    source_name: str
    package_version: str
    target_dist: str
    tarball_file_name: str = ""


def find_tarball(source: str, upstream_version: str, search_dirs: list[Path]) -> str:
    """Return the file name of the upstream tarball, or "" if absent.

    Directories are searched in order; the first match wins.
    """
    prefix = f"{source}_{upstream_version}.orig.tar"
    for directory in search_dirs:
        if not directory.is_dir():
            continue
        for candidate in sorted(directory.glob(f"{prefix}.*")):
            if candidate.suffix in TARBALL_COMPRESSIONS and candidate.name == prefix + candidate.suffix:
                return candidate.name
    return ""


def parse_changelog(
    source_dir: Path | None = None,
    dist_override: str | None = None,
) -> PackageMetadata:
    """Parse debian/changelog of the source tree.

    Args:
        source_dir: Source tree containing debian/; defaults to the cwd.
        dist_override: Distribution to use instead of the changelog's.

    Returns:
        PackageMetadata for the top changelog entry.

    Raises:
        ChangelogError: If the changelog is missing or malformed.
    """
    source_dir = Path(source_dir) if source_dir is not None else Path.cwd()
    changelog_path = source_dir / "debian" / "changelog"

    if not changelog_path.exists():
        raise ChangelogError(message=f"debian/changelog not found in {source_dir}")

    try:
        with changelog_path.open(encoding="utf-8") as f:
            cl = Changelog(f, max_blocks=1, strict=True)
        source = cl.package
        version = cl.version
        distributions = cl.distributions
    except OSError as e:
        raise ChangelogError(message=f"cannot read {changelog_path}: {e}") from e
    except (ChangelogParseError, IndexError, ValueError, UnicodeDecodeError) as e:
        raise ChangelogError(message=f"malformed debian/changelog: {e}") from e

    if not source or version is None or not distributions:
        raise ChangelogError(message="malformed debian/changelog: incomplete top entry")

    dist = dist_override or distributions.split()[0]

    tarball = ""
    if version.debian_revision:
        tarball = find_tarball(source, version.upstream_version, [source_dir.parent])
        if not tarball:
            # Either a previous run already moved it into the build
            # directory or the build will fail without it.
            logger.warning(
                "No upstream tarball %s_%s.orig.tar.* in %s",
                source,
                version.upstream_version,
                source_dir.parent,
            )

    return PackageMetadata(
        source_name=source,
        package_version=version.full_version,
        target_dist=dist,
        tarball_file_name=tarball,
    )
