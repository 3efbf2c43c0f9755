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

"""CLI application definition for Deber."""

from __future__ import annotations

from typer import Typer

from deber.commands.build import make_step_command, pipeline
from deber.commands.steps import steps
from deber.pipeline.steps import STEP_NAMES, get_step

app: Typer = Typer(
    name="deber",
    help="Build Debian packages in Docker containers.",
    add_completion=False,
)

app.callback(invoke_without_command=True)(pipeline)

# Register commands
app.command(name="steps")(steps)
for _name in STEP_NAMES:
    app.command(name=_name)(make_step_command(get_step(_name)))
