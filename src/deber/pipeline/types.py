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

"""Type definitions for pipeline steps.

Steps receive everything they touch as arguments: the container runtime,
the package metadata, the resource names and a StepContext carrying the
output sink and tool flags. They hold no state of their own.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Protocol

from deber.core.output import StepOutput

if TYPE_CHECKING:
    from deber.debpkg.changelog import PackageMetadata
    from deber.naming import ResourceNames


class Status(str, Enum):
    """Outcome of a single step."""

    DONE = "done"
    SKIPPED = "skipped"
    FAILED = "failed"


@dataclass
class StepResult:
    """Result of a step execution.

    Attributes:
        status: Exactly one of done, skipped or failed.
        message: Human-readable detail.
        error: The exception that caused a failure.
        halt: Stop the pipeline successfully after this step.
    """

    status: Status
    message: str = ""
    error: BaseException | None = None
    halt: bool = False

    @classmethod
    def done(cls, message: str = "") -> StepResult:
        return cls(status=Status.DONE, message=message)

    @classmethod
    def skipped(cls, message: str = "", halt: bool = False) -> StepResult:
        return cls(status=Status.SKIPPED, message=message, halt=halt)

    @classmethod
    def failed(cls, error: BaseException) -> StepResult:
        return cls(status=Status.FAILED, message=str(error), error=error)


class Environment(Protocol):
    """Container runtime operations the steps rely on."""

    def image_exists(self, name: str) -> bool: ...

    def image_is_stale(self, name: str) -> bool: ...

    def build_image(self, name: str, base_ref: str) -> None: ...

    def list_available_tags(self, repo: str, name: str | None = None) -> list[str]: ...

    def container_exists(self, name: str) -> bool: ...

    def container_is_running(self, name: str) -> bool: ...

    def container_is_stopped(self, name: str) -> bool: ...

    def create_container(self, names: ResourceNames) -> None: ...

    def start_container(self, name: str) -> None: ...

    def stop_container(self, name: str) -> None: ...

    def remove_container(self, name: str) -> None: ...

    def exec_in_container(self, name: str, *command: str) -> int: ...


@dataclass
class StepContext:
    """Per-invocation settings shared by all steps.

    Attributes:
        output: Output sink for progress and tool output.
        base_repos: Official repositories searched for the base image.
        dpkg_buildpackage_flags: Flags passed to dpkg-buildpackage.
        lintian_flags: Flags passed to lintian.
    """

    output: StepOutput = field(default_factory=StepOutput)
    base_repos: tuple[str, ...] = ("debian", "ubuntu")
    dpkg_buildpackage_flags: str = "-tc"
    lintian_flags: str = "-i"


StepFunc = Callable[["Environment", "PackageMetadata", "ResourceNames", StepContext], StepResult]


@dataclass(frozen=True)
class Step:
    """A named pipeline step."""

    name: str
    run: StepFunc
    description: tuple[str, ...] = ()
