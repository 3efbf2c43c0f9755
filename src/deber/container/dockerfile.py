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

"""Dockerfile of the build image.

The image carries the Debian packaging tools plus two helpers used by the
pipeline steps:

- ``scan`` regenerates /archive/Packages so previously built packages can
  satisfy build dependencies.
- ``apty`` is the non-interactive apt-get wrapper handed to mk-build-deps
  and debi.
"""

from __future__ import annotations

BASE_LABEL = "deber.base"

CONTAINER_SOURCE_DIR = "/build/source"
CONTAINER_BUILD_DIR = "/build"
CONTAINER_ARCHIVE_DIR = "/archive"
CONTAINER_CACHE_DIR = "/var/cache/apt/archives"

DOCKERFILE_TEMPLATE = """\
FROM {base_ref}

RUN rm -f /etc/apt/apt.conf.d/docker-clean
RUN apt-get update && \\
    DEBIAN_FRONTEND=noninteractive apt-get install -y --no-install-recommends \\
        build-essential devscripts dpkg-dev equivs fakeroot lintian sudo && \\
    rm -rf /var/lib/apt/lists/*

RUN printf '#!/bin/sh\\nset -e\\ncd {archive_dir}\\ndpkg-scanpackages -m . > Packages\\n' \\
        > /usr/local/bin/scan && chmod 0755 /usr/local/bin/scan
RUN printf '#!/bin/sh\\nexec apt-get -o Debug::pkgProblemResolver=yes --no-install-recommends -y "$@"\\n' \\
        > /usr/local/bin/apty && chmod 0755 /usr/local/bin/apty
RUN echo "deb [trusted=yes] file://{archive_dir} ./" > /etc/apt/sources.list.d/deber.list

RUN groupadd -o -g {gid} builder && \\
    useradd -o -m -s /bin/bash -u {uid} -g {gid} builder && \\
    echo "builder ALL=(ALL) NOPASSWD: ALL" > /etc/sudoers.d/builder

USER builder
WORKDIR {source_dir}
CMD ["sleep", "infinity"]
"""


def render_dockerfile(base_ref: str, uid: int, gid: int) -> str:
    """Return the build image Dockerfile for a base image reference."""
    return DOCKERFILE_TEMPLATE.format(
        base_ref=base_ref,
        uid=uid,
        gid=gid,
        archive_dir=CONTAINER_ARCHIVE_DIR,
        source_dir=CONTAINER_SOURCE_DIR,
    )
