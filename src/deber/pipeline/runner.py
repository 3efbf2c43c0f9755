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

"""Step selection and fail-fast execution."""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from deber.core.exceptions import ConfigError, DeberError
from deber.pipeline.steps import STEPS
from deber.pipeline.types import Status, Step, StepContext, StepResult

if TYPE_CHECKING:
    from deber.debpkg.changelog import PackageMetadata
    from deber.naming import ResourceNames
    from deber.pipeline.types import Environment


@dataclass
class PipelineOutcome:
    """Result of running a sequence of steps.

    Attributes:
        results: (step name, result) pairs in execution order.
        error: Cause of the failing step, None on success.
        halted: True if a step ended the run early and successfully.
    """

    results: list[tuple[str, StepResult]] = field(default_factory=list)
    error: BaseException | None = None
    halted: bool = False

    @property
    def success(self) -> bool:
        return self.error is None

    @property
    def exit_code(self) -> int:
        if self.error is None:
            return 0
        return getattr(self.error, "exit_code", 1)

    def statuses(self) -> dict[str, Status]:
        return {name: result.status for name, result in self.results}


def split_names(values: Iterable[str] | None) -> list[str]:
    """Flatten repeated and comma/space separated CLI values."""
    names: list[str] = []
    for value in values or ():
        names.extend(part for part in value.replace(",", " ").split() if part)
    return names


def select_steps(
    include: Iterable[str] | None = None,
    exclude: Iterable[str] | None = None,
    steps: Sequence[Step] = STEPS,
) -> list[Step]:
    """Narrow the step catalogue, keeping its order.

    Entries match as substrings of step names.

    Raises:
        ConfigError: If both include and exclude are given.
    """
    include = [entry for entry in include or () if entry]
    exclude = [entry for entry in exclude or () if entry]

    if include and exclude:
        raise ConfigError(message="can't specify --include and --exclude together")

    if include:
        return [step for step in steps if any(entry in step.name for entry in include)]
    if exclude:
        return [step for step in steps if not any(entry in step.name for entry in exclude)]
    return list(steps)


def run_steps(
    steps: Sequence[Step],
    env: Environment,
    meta: PackageMetadata,
    names: ResourceNames,
    ctx: StepContext,
) -> PipelineOutcome:
    """Run steps in order, stopping at the first failure.

    A failing step leaves the environment as it is; nothing is rolled back
    and nothing is retried. A step returning ``halt`` ends the run
    successfully without running the remaining steps.
    """
    outcome = PipelineOutcome()

    for step in steps:
        try:
            result = step.run(env, meta, names, ctx)
        except (DeberError, OSError) as e:
            result = StepResult.failed(e)

        ctx.output.status(step.name, result)
        outcome.results.append((step.name, result))

        if result.status is Status.FAILED:
            outcome.error = result.error
            ctx.output.error(str(result.error))
            break
        if result.halt:
            outcome.halted = True
            break

    return outcome
