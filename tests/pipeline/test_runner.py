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


"""Tests for deber.pipeline.runner module."""

from __future__ import annotations

import io
import itertools
import random

import pytest

from deber.core.exceptions import ConfigError, DistImageNotFoundError, ToolExecutionError
from deber.debpkg.changelog import PackageMetadata
from deber.pipeline.runner import PipelineOutcome, run_steps, select_steps, split_names
from deber.pipeline.steps import STEP_NAMES, STEPS
from deber.pipeline.types import Status, Step, StepResult


def _names_of(steps: list[Step]) -> list[str]:
    return [step.name for step in steps]


class TestSplitNames:
    """Tests for split_names function."""

    def test_commas_spaces_and_repeats(self) -> None:
        assert split_names(["build,create", "start stop", " archive "]) == [
            "build",
            "create",
            "start",
            "stop",
            "archive",
        ]

    def test_empty(self) -> None:
        assert split_names(None) == []
        assert split_names(["", " , "]) == []


class TestSelectSteps:
    """Tests for select_steps function."""

    def test_no_filter_selects_all(self) -> None:
        assert _names_of(select_steps()) == list(STEP_NAMES)

    def test_include_keeps_canonical_order(self) -> None:
        assert _names_of(select_steps(include=["archive", "check", "build"])) == ["check", "build", "archive"]

    def test_exclude(self) -> None:
        selected = _names_of(select_steps(exclude=["test", "deps"]))
        assert "test" not in selected
        assert "deps" not in selected
        assert len(selected) == len(STEP_NAMES) - 2

    def test_substring_match(self) -> None:
        assert _names_of(select_steps(include=["sta"])) == ["start"]
        assert _names_of(select_steps(include=["st"])) == ["start", "test", "stop"]

    def test_unknown_entry_selects_nothing(self) -> None:
        assert select_steps(include=["deploy"]) == []

    def test_include_and_exclude_together(self) -> None:
        with pytest.raises(ConfigError) as excinfo:
            select_steps(include=["build"], exclude=["test"])
        assert excinfo.value.exit_code == 2

    def test_empty_entries_are_ignored(self) -> None:
        assert _names_of(select_steps(include=[""], exclude=["test"])) == _names_of(select_steps(exclude=["test"]))

    def test_every_subset_runs_in_canonical_order(self) -> None:
        for size in range(1, len(STEP_NAMES) + 1):
            for subset in itertools.combinations(STEP_NAMES, size):
                shuffled = list(subset)
                random.shuffle(shuffled)
                selected = _names_of(select_steps(include=shuffled))
                assert selected == list(subset)


def _fake_step(name: str, result: StepResult | Exception, log: list[str]) -> Step:
    def run(env, meta, names, ctx) -> StepResult:
        log.append(name)
        if isinstance(result, Exception):
            raise result
        return result

    return Step(name, run)


class TestRunSteps:
    """Tests for run_steps function."""

    def test_runs_all_in_order(self, fake_env, metadata, names, step_ctx) -> None:
        log: list[str] = []
        seq = [_fake_step(n, StepResult.done(), log) for n in ("a", "b", "c")]

        outcome = run_steps(seq, fake_env, metadata, names, step_ctx)

        assert log == ["a", "b", "c"]
        assert outcome.success
        assert outcome.exit_code == 0
        assert outcome.statuses() == {"a": Status.DONE, "b": Status.DONE, "c": Status.DONE}

    def test_fail_fast(self, fake_env, metadata, names, step_ctx, console_buffer: io.StringIO) -> None:
        log: list[str] = []
        error = ToolExecutionError("lintian exited with status 2", command=["lintian"], returncode=2)
        seq = [
            _fake_step("a", StepResult.done(), log),
            _fake_step("b", error, log),
            _fake_step("c", StepResult.done(), log),
        ]

        outcome = run_steps(seq, fake_env, metadata, names, step_ctx)

        assert log == ["a", "b"]
        assert outcome.error is error
        assert outcome.exit_code == 6
        assert outcome.statuses() == {"a": Status.DONE, "b": Status.FAILED}
        assert "deber:error: lintian exited with status 2" in console_buffer.getvalue()

    def test_os_error_is_failure(self, fake_env, metadata, names, step_ctx) -> None:
        seq = [_fake_step("a", PermissionError("denied"), [])]

        outcome = run_steps(seq, fake_env, metadata, names, step_ctx)

        assert isinstance(outcome.error, PermissionError)
        assert outcome.exit_code == 1

    def test_unexpected_errors_propagate(self, fake_env, metadata, names, step_ctx) -> None:
        seq = [_fake_step("a", RuntimeError("bug"), [])]
        with pytest.raises(RuntimeError):
            run_steps(seq, fake_env, metadata, names, step_ctx)

    def test_halt(self, fake_env, metadata, names, step_ctx) -> None:
        log: list[str] = []
        seq = [
            _fake_step("a", StepResult.skipped(halt=True), log),
            _fake_step("b", StepResult.done(), log),
        ]

        outcome = run_steps(seq, fake_env, metadata, names, step_ctx)

        assert log == ["a"]
        assert outcome.halted
        assert outcome.success

    def test_empty_sequence(self, fake_env, metadata, names, step_ctx) -> None:
        assert run_steps([], fake_env, metadata, names, step_ctx) == PipelineOutcome()


class TestPipelineScenarios:
    """End-to-end runs of the real steps against an in-memory runtime."""

    def test_fresh_machine(self, fake_env, metadata, names, step_ctx) -> None:
        outcome = run_steps(STEPS, fake_env, metadata, names, step_ctx)

        assert outcome.success
        statuses = outcome.statuses()
        assert list(statuses) == list(STEP_NAMES)
        assert statuses["tarball"] is Status.SKIPPED
        assert all(s is Status.DONE for name, s in statuses.items() if name != "tarball")
        assert names.archive_package_dir.is_dir()
        assert not names.build_dir.exists()
        assert fake_env.containers == {}

    def test_second_run_halts_at_check(self, fake_env, metadata, names, step_ctx) -> None:
        run_steps(STEPS, fake_env, metadata, names, step_ctx)
        fake_env.calls.clear()

        outcome = run_steps(STEPS, fake_env, metadata, names, step_ctx)

        assert outcome.success
        assert outcome.halted
        assert outcome.statuses() == {"check": Status.SKIPPED}
        assert fake_env.calls == []

    def test_lintian_failure_leaves_container_running(self, fake_env, metadata, names, step_ctx) -> None:
        fake_env.exec_returncodes["lintian"] = 2

        outcome = run_steps(STEPS, fake_env, metadata, names, step_ctx)

        assert not outcome.success
        assert outcome.exit_code == 6
        assert list(outcome.statuses())[-1] == "test"
        assert fake_env.containers == {names.container: True}
        assert names.build_dir.exists()
        assert not names.archive_package_dir.exists()

    def test_unknown_distribution(self, fake_env, names, step_ctx) -> None:
        meta = PackageMetadata("foo", "1.0-1", "nonexistent99")

        outcome = run_steps(STEPS, fake_env, meta, names, step_ctx)

        assert isinstance(outcome.error, DistImageNotFoundError)
        assert outcome.exit_code == 3
        assert outcome.statuses() == {"check": Status.DONE, "build": Status.FAILED}
        assert fake_env.containers == {}

    def test_lifecycle_subset_is_idempotent(self, fake_env, metadata, names, step_ctx) -> None:
        subset = select_steps(include=["build", "create", "start"])

        first = run_steps(subset, fake_env, metadata, names, step_ctx)
        second = run_steps(subset, fake_env, metadata, names, step_ctx)

        assert set(first.statuses().values()) == {Status.DONE}
        assert set(second.statuses().values()) == {Status.SKIPPED}
        assert fake_env.method_calls().count("build_image") == 1
        assert fake_env.method_calls().count("create_container") == 1
        assert fake_env.method_calls().count("start_container") == 1

    def test_rerun_after_failure_resumes(self, fake_env, metadata, names, step_ctx) -> None:
        fake_env.exec_returncodes["lintian"] = 2
        run_steps(STEPS, fake_env, metadata, names, step_ctx)
        fake_env.exec_returncodes.clear()

        outcome = run_steps(STEPS, fake_env, metadata, names, step_ctx)

        statuses = outcome.statuses()
        assert outcome.success
        assert statuses["build"] is Status.SKIPPED
        assert statuses["create"] is Status.SKIPPED
        assert statuses["start"] is Status.SKIPPED
        assert statuses["archive"] is Status.DONE
