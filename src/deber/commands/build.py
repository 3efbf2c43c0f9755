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

"""Orchestration of one Deber invocation.

Resolves package metadata, computes resource names, connects to Docker and
runs the selected steps in canonical order, stopping on the first failure.
"""

from __future__ import annotations

import sys
from collections.abc import Callable, Sequence
from pathlib import Path
from typing import TYPE_CHECKING, Any

import typer

from deber.container.hub import HubClient
from deber.container.runtime import DockerRuntime
from deber.core.config import load_config, resolve_flags, resolve_paths
from deber.core.exceptions import DeberError
from deber.core.output import StepOutput
from deber.core.run import RunContext
from deber.debpkg.changelog import parse_changelog
from deber.naming import compute_names
from deber.pipeline.runner import run_steps, select_steps, split_names
from deber.pipeline.steps import STEPS
from deber.pipeline.types import Step, StepContext, StepResult

if TYPE_CHECKING:
    from deber.pipeline.types import Environment

APP_NAME = "deber"


def make_runtime(cfg: dict[str, Any], output: StepOutput) -> DockerRuntime:
    """Create the Docker runtime described by the configuration."""
    defaults = cfg.get("defaults", {})
    hub = HubClient(base_url=cfg.get("mirrors", {}).get("docker_hub", "https://hub.docker.com"))
    return DockerRuntime(
        output=output.line,
        hub=hub,
        stop_timeout=int(defaults.get("stop_timeout", 10)),
        max_image_age_days=int(defaults.get("max_image_age_days", 14)),
    )


def run_build(
    label: str = APP_NAME,
    include: Sequence[str] | None = None,
    exclude: Sequence[str] | None = None,
    dist: str | None = None,
    source_dir: Path | None = None,
    no_color: bool | None = None,
    steps: Sequence[Step] = STEPS,
    env: Environment | None = None,
) -> int:
    """Run the selected steps for the package in source_dir.

    Args:
        label: Name of the run, used for the run directory.
        include: Substrings selecting the steps to run.
        exclude: Substrings selecting the steps to leave out.
        dist: Distribution overriding the changelog's.
        source_dir: Package source tree; defaults to the cwd.
        no_color: Disable colored output; defaults to the config value.
        steps: Step catalogue to select from.
        env: Container runtime; a DockerRuntime is created when omitted.

    Returns:
        Process exit code: 0 on success or when already archived.
    """
    cfg = load_config()
    paths = resolve_paths(cfg)
    source_dir = Path(source_dir) if source_dir is not None else Path.cwd()
    if no_color is None:
        no_color = bool(cfg.get("behavior", {}).get("no_color", False))

    with RunContext(label, cfg=cfg) as run:
        output = StepOutput(run=run, no_color=no_color, prefix=APP_NAME)

        def fail(stage: str, error: DeberError) -> int:
            output.status(stage, StepResult.failed(error))
            output.error(str(error))
            run.write_summary(status="failed", error=str(error), exit_code=error.exit_code)
            return error.exit_code

        try:
            selected = select_steps(include, exclude, steps)
            dpkg_flags, lintian_flags = resolve_flags(cfg)
        except DeberError as e:
            output.error(str(e))
            run.write_summary(status="failed", error=str(e), exit_code=e.exit_code)
            return e.exit_code

        output.info("changelog", "Parsing Debian changelog")
        try:
            meta = parse_changelog(source_dir, dist_override=dist)
        except DeberError as e:
            return fail("changelog", e)
        output.status("changelog", StepResult.done())
        run.log_event(
            {
                "event": "changelog.parsed",
                "source": meta.source_name,
                "version": meta.package_version,
                "dist": meta.target_dist,
                "tarball": meta.tarball_file_name,
            }
        )

        if env is None:
            output.info("docker", "Connecting with Docker")
            runtime = make_runtime(cfg, output)
            try:
                runtime.connect()
            except DeberError as e:
                return fail("docker", e)
            output.status("docker", StepResult.done())
            env = runtime

        names = compute_names(
            APP_NAME,
            meta.target_dist,
            meta.source_name,
            meta.package_version,
            source_dir=source_dir,
            build_root=paths.get("build_root"),
            archive_root=paths.get("archive_root"),
            cache_root=paths.get("cache_root"),
        )

        ctx = StepContext(
            output=output,
            base_repos=tuple(cfg.get("defaults", {}).get("base_repos", ("debian", "ubuntu"))),
            dpkg_buildpackage_flags=dpkg_flags,
            lintian_flags=lintian_flags,
        )

        outcome = run_steps(selected, env, meta, names, ctx)

        run.write_summary(
            status="success" if outcome.success else "failed",
            package=meta.source_name,
            version=meta.package_version,
            dist=meta.target_dist,
            container=names.container,
            steps={name: status.value for name, status in outcome.statuses().items()},
            halted=outcome.halted,
            exit_code=outcome.exit_code,
            error=str(outcome.error) if outcome.error is not None else None,
        )
        return outcome.exit_code


def pipeline(
    ctx: typer.Context,
    include: list[str] = typer.Option(
        [], "--include", "-i", help="Steps to run, repeatable or comma-separated (substring match)"
    ),
    exclude: list[str] = typer.Option(
        [], "--exclude", "-e", help="Steps to skip, repeatable or comma-separated (substring match)"
    ),
    dist: str = typer.Option("", "--dist", help="Target distribution, overriding debian/changelog"),
    no_color: bool = typer.Option(False, "--no-color", help="Disable colored output"),
) -> None:
    """Build the Debian package in the current directory inside a container.

    Without a subcommand every step runs in order: check, build, create,
    start, tarball, scan, update, deps, package, test, stop, remove,
    archive. Use a subcommand to run a single step.
    """
    ctx.obj = {"dist": dist or None, "no_color": no_color or None}
    if ctx.invoked_subcommand is not None:
        return

    exit_code = run_build(
        include=split_names(include),
        exclude=split_names(exclude),
        dist=dist or None,
        no_color=no_color or None,
    )
    sys.exit(exit_code)


def make_step_command(step: Step) -> Callable[[typer.Context], None]:
    """Return a typer command running only the given step."""

    def command(ctx: typer.Context) -> None:
        opts = ctx.obj or {}
        exit_code = run_build(
            label=step.name,
            steps=(step,),
            dist=opts.get("dist"),
            no_color=opts.get("no_color"),
        )
        sys.exit(exit_code)

    command.__name__ = f"step_{step.name}"
    command.__doc__ = "\n\n".join(step.description)
    return command
