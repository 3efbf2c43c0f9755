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

"""The build step pipeline.

Provides the ordered step catalogue, step selection and fail-fast execution.
"""

from deber.pipeline.runner import PipelineOutcome, run_steps, select_steps, split_names
from deber.pipeline.steps import STEP_NAMES, STEPS, get_step
from deber.pipeline.types import Status, Step, StepContext, StepResult

__all__ = [
    "STEPS",
    "STEP_NAMES",
    "PipelineOutcome",
    "Status",
    "Step",
    "StepContext",
    "StepResult",
    "get_step",
    "run_steps",
    "select_steps",
    "split_names",
]
