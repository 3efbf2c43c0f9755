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


"""Tests for deber.core.output module."""

from __future__ import annotations

import io
import json
from pathlib import Path

from rich.console import Console

from deber.core.exceptions import ToolExecutionError
from deber.core.output import StepOutput
from deber.core.run import RunContext
from deber.pipeline.types import StepResult


def _output(buffer: io.StringIO, run: RunContext | None = None) -> StepOutput:
    console = Console(file=buffer, no_color=True, width=200, highlight=False)
    return StepOutput(run=run, console=console)


class TestStepOutput:
    """Tests for StepOutput class."""

    def test_status_lands_on_info_line(self, console_buffer: io.StringIO) -> None:
        out = _output(console_buffer)
        out.info("create", "Creating container")
        out.status("create", StepResult.done())

        assert console_buffer.getvalue() == "deber:info: Creating container ... done\n"

    def test_tool_output_breaks_info_line(self, console_buffer: io.StringIO) -> None:
        out = _output(console_buffer)
        out.info("package", "Packaging software")
        out.line("dpkg-buildpackage: info: source package foo")
        out.status("package", StepResult.done())

        lines = console_buffer.getvalue().splitlines()
        assert lines == [
            "deber:info: Packaging software ...",
            "dpkg-buildpackage: info: source package foo",
            "deber:info: package done",
        ]

    def test_tool_output_is_not_markup(self, console_buffer: io.StringIO) -> None:
        out = _output(console_buffer)
        out.line("[red]not markup[/red]")

        assert "[red]not markup[/red]" in console_buffer.getvalue()

    def test_skipped_and_failed_labels(self, console_buffer: io.StringIO) -> None:
        out = _output(console_buffer)
        out.info("stop", "Stopping container")
        out.status("stop", StepResult.skipped())
        out.info("test", "Testing package")
        out.status("test", StepResult.failed(RuntimeError("boom")))

        assert console_buffer.getvalue().splitlines() == [
            "deber:info: Stopping container ... skipped",
            "deber:info: Testing package ... failed",
        ]

    def test_error_closes_line(self, console_buffer: io.StringIO) -> None:
        out = _output(console_buffer)
        out.info("build", "Building image")
        out.error("dist image not found")

        assert console_buffer.getvalue().splitlines() == [
            "deber:info: Building image ...",
            "deber:error: dist image not found",
        ]

    def test_custom_prefix(self, console_buffer: io.StringIO) -> None:
        console = Console(file=console_buffer, no_color=True, width=200)
        out = StepOutput(console=console, prefix="mybuild")
        out.info("check", "Checking archive")

        assert console_buffer.getvalue().startswith("mybuild:info: Checking archive")


class TestStepOutputEvents:
    """Tests for StepOutput event logging through a RunContext."""

    def test_logs_step_events_and_mirrors_tool_output(
        self, temp_home: Path, mock_config: Path, console_buffer: io.StringIO
    ) -> None:
        with RunContext("test") as run:
            out = _output(console_buffer, run=run)
            out.info("test", "Testing package")
            out.line("E: foo: some-lintian-tag")
            error = ToolExecutionError("lintian exited with 2", command=["lintian"], returncode=2)
            out.status("test", StepResult.failed(error))

        events = [json.loads(line) for line in (run.logs_path / "events.jsonl").read_text().splitlines()]
        names = [e["event"] for e in events]
        assert "step.start" in names
        failed = next(e for e in events if e["event"] == "step.failed")
        assert failed["step"] == "test"
        assert failed["error"] == "lintian exited with 2"
        assert "E: foo: some-lintian-tag" in (run.logs_path / "stdout.log").read_text()
