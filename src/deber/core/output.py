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

"""Terminal output sink handed to every pipeline step.

A step announces itself with ``info()``, which leaves the line open so the
final status lands on the same line:

    deber:info: Creating container ... done

Tool output (``line()``) closes the open line first. All of this goes to the
real terminal; when a RunContext is attached, tool output is also mirrored
into the run's stdout log and step transitions become JSONL events.
"""

from __future__ import annotations

import sys
from typing import TYPE_CHECKING

from rich.console import Console
from rich.markup import escape

if TYPE_CHECKING:
    from deber.core.run import RunContext
    from deber.pipeline.types import StepResult

STATUS_STYLES = {
    "done": "green",
    "skipped": "yellow",
    "failed": "red",
}


class StepOutput:
    """Line-oriented progress reporter for one invocation."""

    def __init__(
        self,
        run: RunContext | None = None,
        no_color: bool = False,
        console: Console | None = None,
        prefix: str = "deber",
    ) -> None:
        self.run = run
        self.prefix = prefix
        self.console = console or Console(file=sys.__stdout__, no_color=no_color, highlight=False)
        self._line_open = False

    def info(self, step: str, message: str) -> None:
        self.drop()
        self.console.print(f"[blue]{self.prefix}:info:[/blue] {escape(message)} ...", end="")
        self._line_open = True
        if self.run is not None:
            self.run.log_event({"event": "step.start", "step": step, "message": message})

    def drop(self) -> None:
        """Terminate the open info line so tool output starts on its own line."""
        if self._line_open:
            self.console.print()
            self._line_open = False

    def line(self, text: str) -> None:
        self.drop()
        self.console.print(text, markup=False, highlight=False)
        if self.run is not None:
            print(text, file=sys.stdout, flush=True)

    def status(self, step: str, result: StepResult) -> None:
        label = result.status.value
        style = STATUS_STYLES.get(label, "")
        if self._line_open:
            self.console.print(f"[{style}]{label}[/{style}]")
        else:
            self.console.print(f"[blue]{self.prefix}:info:[/blue] {step} [{style}]{label}[/{style}]")
        self._line_open = False
        if self.run is not None:
            event = {"event": f"step.{label}", "step": step}
            if result.message:
                event["message"] = result.message
            if result.error is not None:
                event["error"] = str(result.error)
            self.run.log_event(event)

    def error(self, message: str) -> None:
        self.drop()
        self.console.print(f"[red]{self.prefix}:error:[/red] {escape(message)}")
