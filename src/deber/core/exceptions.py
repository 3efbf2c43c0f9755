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

"""Deber-specific exception types with associated exit codes."""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass
class DeberError(Exception):
    """Base class for Deber errors with an exit code."""

    message: str = "An error occurred"
    exit_code: int = field(default=1)

    def __str__(self) -> str:  # pragma: no cover - trivial
        return self.message


@dataclass
class ConfigError(DeberError):
    """Invalid invocation or configuration, detected before acting."""

    exit_code: int = field(default=2)


@dataclass
class DistImageNotFoundError(ConfigError):
    """No known base repository offers a tag for the target distribution."""

    exit_code: int = field(default=3)
    dist: str = ""
    repos: list[str] = field(default_factory=list)


@dataclass
class ChangelogError(DeberError):
    """debian/changelog is missing, unreadable or cannot be parsed."""

    exit_code: int = field(default=4)


@dataclass
class ContainerRuntimeError(DeberError):
    """A query or mutation against the container runtime failed."""

    exit_code: int = field(default=5)


@dataclass
class ToolExecutionError(DeberError):
    """A command run inside the container exited non-zero."""

    exit_code: int = field(default=6)
    command: list[str] = field(default_factory=list)
    returncode: int = 0
