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

"""Implementation of `deber steps` command."""

from __future__ import annotations

import typer

from deber.core.exceptions import ConfigError
from deber.pipeline.runner import select_steps, split_names
from deber.pipeline.steps import STEPS


def format_steps(include: list[str] | None = None, exclude: list[str] | None = None) -> list[str]:
    """Return the lines describing the selected steps, in execution order."""
    lines: list[str] = []
    for index, step in enumerate(select_steps(include, exclude, STEPS), start=1):
        lines.append(f"{index:2d}. {step.name}")
        lines.extend(f"      {text}" for text in step.description)
    return lines


def steps(
    include: list[str] = typer.Option([], "--include", "-i", help="Steps to show, repeatable or comma-separated"),
    exclude: list[str] = typer.Option([], "--exclude", "-e", help="Steps to hide, repeatable or comma-separated"),
) -> None:
    """List the pipeline steps in the order they run."""
    try:
        lines = format_steps(split_names(include), split_names(exclude))
    except ConfigError as e:
        typer.echo(f"deber:error: {e}", err=True)
        raise typer.Exit(e.exit_code) from e
    for line in lines:
        typer.echo(line)
