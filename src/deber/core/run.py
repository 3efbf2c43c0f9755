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


"""Per-invocation run directory.

Every Deber invocation gets a directory under ``runs_root``::

    <runs_root>/<YYYYMMDDTHHMMSSZ>-<label>-<id>/
        logs/stdout.log     tool output and anything printed to sys.stdout
        logs/stderr.log
        logs/events.jsonl   step transitions, one JSON object per line
        summary.json        outcome of the run

While the run is active sys.stdout and sys.stderr point at the log files.
Terminal output goes to sys.__stdout__ (see deber.core.output).
"""

from __future__ import annotations

import contextlib
import datetime
import json
import sys
import uuid
from pathlib import Path
from typing import IO, Any

from deber.core.config import load_config, resolve_paths


def _utcnow() -> datetime.datetime:
    return datetime.datetime.now(datetime.UTC)


class RunContext:
    """Context manager owning the run directory of one invocation.

    Usage:
        with RunContext("deber") as run:
            run.log_event({"event": "step.start", "step": "create"})
            run.write_summary(package="hello")

    The summary status defaults to "success"; an exception escaping the
    block marks it "failed" and is re-raised.
    """

    def __init__(self, label: str, cfg: dict[str, Any] | None = None) -> None:
        cfg = cfg if cfg is not None else load_config()
        runs_root = resolve_paths(cfg).get("runs_root", Path.home() / ".cache" / "deber" / "runs")

        started = _utcnow()
        self.run_id = f"{started:%Y%m%dT%H%M%SZ}-{label}-{uuid.uuid4().hex[:8]}"
        self.run_path = runs_root / self.run_id
        self.logs_path = self.run_path / "logs"
        self.summary: dict[str, Any] = {"command": label, "start_utc": started.isoformat()}

        self._stack = contextlib.ExitStack()
        self._events: IO[str] | None = None

    def __enter__(self) -> RunContext:
        self.logs_path.mkdir(parents=True, exist_ok=True)
        stack = self._stack

        stdout = stack.enter_context((self.logs_path / "stdout.log").open("w", encoding="utf-8"))
        stderr = stack.enter_context((self.logs_path / "stderr.log").open("w", encoding="utf-8"))
        self._events = stack.enter_context((self.logs_path / "events.jsonl").open("a", encoding="utf-8"))
        # Registered last so the streams are restored before the files close.
        stack.enter_context(contextlib.redirect_stdout(stdout))
        stack.enter_context(contextlib.redirect_stderr(stderr))

        self.log_event({"event": "run.start", "run_id": self.run_id})
        return self

    def log_event(self, event: dict[str, Any]) -> None:
        """Append a timestamped event to events.jsonl."""
        if self._events is None or self._events.closed:
            return
        payload = {"timestamp": _utcnow().isoformat(), **event}
        self._events.write(json.dumps(payload, default=str) + "\n")
        self._events.flush()

    def write_summary(self, **fields: Any) -> None:
        """Merge fields into the summary and rewrite summary.json."""
        self.summary.update(fields)
        self.run_path.mkdir(parents=True, exist_ok=True)
        (self.run_path / "summary.json").write_text(json.dumps(self.summary, indent=2, default=str))

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: object,
    ) -> None:
        status = self.summary.get("status", "success")
        if exc is not None:
            status = "failed"
            self.summary["error"] = str(exc)

        self.write_summary(status=status, end_utc=_utcnow().isoformat())
        self.log_event({"event": "run.end", "status": status})
        self._stack.close()
        self._events = None

        if status == "failed":
            print(f"deber: logs in {self.run_path}", file=sys.__stdout__)
