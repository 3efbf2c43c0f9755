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

"""Pipeline step implementations.

Step functions follow these conventions:
- Announce themselves through ``ctx.output.info()`` before doing anything
- Query state first and return ``StepResult.skipped()`` when the goal
  already holds
- Raise DeberError (or let OSError through) on failure; the runner turns
  the exception into a failed result and stops the pipeline
- Lifecycle steps (build, create, start, stop, remove, archive) are
  idempotent; the in-container steps always run their tool
"""

from __future__ import annotations

import errno
import shlex
import shutil
import tempfile
from pathlib import Path
from typing import TYPE_CHECKING

from deber.core.exceptions import DistImageNotFoundError, ToolExecutionError
from deber.pipeline.types import Step, StepContext, StepResult

if TYPE_CHECKING:
    from deber.debpkg.changelog import PackageMetadata
    from deber.naming import ResourceNames
    from deber.pipeline.types import Environment

PACKAGES_INDEX = "Packages"


def _exec(env: Environment, names: ResourceNames, ctx: StepContext, *command: str) -> None:
    ctx.output.drop()
    returncode = env.exec_in_container(names.container, *command)
    if returncode != 0:
        raise ToolExecutionError(
            message=f"'{' '.join(command)}' exited with status {returncode}",
            command=list(command),
            returncode=returncode,
        )


def move_dir(src: Path, dst: Path) -> None:
    """Move a directory so that dst appears complete or not at all.

    A plain rename is used when src and dst share a filesystem. Otherwise
    the tree is copied into a hidden sibling of dst which is then renamed
    into place, and src is removed afterwards.
    """
    dst.parent.mkdir(parents=True, exist_ok=True)
    try:
        src.rename(dst)
        return
    except OSError as e:
        if e.errno != errno.EXDEV:
            raise

    staging = Path(tempfile.mkdtemp(prefix=f".{dst.name}.", dir=dst.parent))
    try:
        shutil.copytree(src, staging, symlinks=True, dirs_exist_ok=True)
        staging.rename(dst)
    except BaseException:
        shutil.rmtree(staging, ignore_errors=True)
        raise
    shutil.rmtree(src)


def run_check(env: Environment, meta: PackageMetadata, names: ResourceNames, ctx: StepContext) -> StepResult:
    ctx.output.info("check", "Checking archive")
    if names.archive_package_dir.exists():
        return StepResult.skipped(f"already archived in {names.archive_package_dir}", halt=True)
    return StepResult.done()


def run_build(env: Environment, meta: PackageMetadata, names: ResourceNames, ctx: StepContext) -> StepResult:
    """Build the image unless an up-to-date one exists.

    The base image is the first configured repository offering a tag named
    exactly after the target distribution.
    """
    ctx.output.info("build", "Building image")

    if env.image_exists(names.image) and not env.image_is_stale(names.image):
        return StepResult.skipped()

    dist = meta.target_dist
    for repo in ctx.base_repos:
        if dist in env.list_available_tags(repo, name=dist):
            base_ref = f"{repo}:{dist}"
            ctx.output.drop()
            env.build_image(names.image, base_ref)
            return StepResult.done(f"built from {base_ref}")

    raise DistImageNotFoundError(
        message=f"dist image not found: no {dist!r} tag in {', '.join(ctx.base_repos)}",
        dist=dist,
        repos=list(ctx.base_repos),
    )


def run_create(env: Environment, meta: PackageMetadata, names: ResourceNames, ctx: StepContext) -> StepResult:
    ctx.output.info("create", "Creating container")
    if env.container_exists(names.container):
        return StepResult.skipped()
    env.create_container(names)
    return StepResult.done()


def run_start(env: Environment, meta: PackageMetadata, names: ResourceNames, ctx: StepContext) -> StepResult:
    ctx.output.info("start", "Starting container")
    if env.container_is_running(names.container):
        return StepResult.skipped()
    env.start_container(names.container)
    return StepResult.done()


def run_tarball(env: Environment, meta: PackageMetadata, names: ResourceNames, ctx: StepContext) -> StepResult:
    ctx.output.info("tarball", "Moving tarball")

    tarball = meta.tarball_file_name
    if not tarball:
        return StepResult.skipped("no upstream tarball")

    target = names.build_dir / tarball
    if target.exists():
        return StepResult.skipped(f"{tarball} already in build directory")

    names.build_dir.mkdir(parents=True, exist_ok=True)
    shutil.move(str(names.source_parent_dir / tarball), str(target))
    return StepResult.done()


def run_scan(env: Environment, meta: PackageMetadata, names: ResourceNames, ctx: StepContext) -> StepResult:
    ctx.output.info("scan", "Scanning archive")
    _exec(env, names, ctx, "scan")
    return StepResult.done()


def run_update(env: Environment, meta: PackageMetadata, names: ResourceNames, ctx: StepContext) -> StepResult:
    ctx.output.info("update", "Updating cache")
    _exec(env, names, ctx, "sudo", "apt-get", "update")
    return StepResult.done()


def run_deps(env: Environment, meta: PackageMetadata, names: ResourceNames, ctx: StepContext) -> StepResult:
    ctx.output.info("deps", "Installing dependencies")
    _exec(env, names, ctx, "sudo", "mk-build-deps", "-ri", "-t", "apty")
    return StepResult.done()


def run_package(env: Environment, meta: PackageMetadata, names: ResourceNames, ctx: StepContext) -> StepResult:
    ctx.output.info("package", "Packaging software")

    index = names.archive_dir / PACKAGES_INDEX
    if not index.exists():
        names.archive_dir.mkdir(parents=True, exist_ok=True)
        index.touch()

    _exec(env, names, ctx, "dpkg-buildpackage", *shlex.split(ctx.dpkg_buildpackage_flags))
    return StepResult.done()


def run_test(env: Environment, meta: PackageMetadata, names: ResourceNames, ctx: StepContext) -> StepResult:
    ctx.output.info("test", "Testing package")
    _exec(env, names, ctx, "debc")
    _exec(env, names, ctx, "sudo", "debi", "--with-depends", "--tool", "apty")
    _exec(env, names, ctx, "lintian", *shlex.split(ctx.lintian_flags))
    return StepResult.done()


def run_stop(env: Environment, meta: PackageMetadata, names: ResourceNames, ctx: StepContext) -> StepResult:
    ctx.output.info("stop", "Stopping container")
    if env.container_is_stopped(names.container):
        return StepResult.skipped()
    env.stop_container(names.container)
    return StepResult.done()


def run_remove(env: Environment, meta: PackageMetadata, names: ResourceNames, ctx: StepContext) -> StepResult:
    ctx.output.info("remove", "Removing container")
    if not env.container_exists(names.container):
        return StepResult.skipped()
    env.remove_container(names.container)
    return StepResult.done()


def run_archive(env: Environment, meta: PackageMetadata, names: ResourceNames, ctx: StepContext) -> StepResult:
    ctx.output.info("archive", "Archiving build")
    if names.archive_package_dir.exists():
        return StepResult.skipped()
    move_dir(names.build_dir, names.archive_package_dir)
    return StepResult.done()


STEPS: tuple[Step, ...] = (
    Step(
        "check",
        run_check,
        (
            "Checks if the package is already archived.",
            "If so, ends the whole run successfully.",
        ),
    ),
    Step(
        "build",
        run_build,
        (
            "Builds the image for the target distribution.",
            "Skipped if the image exists and is up to date.",
            "The base image is looked up in the official Debian and Ubuntu repositories.",
        ),
    ),
    Step("create", run_create, ("Creates the build container.", "Skipped if it already exists.")),
    Step("start", run_start, ("Starts the build container.", "Skipped if it is already running.")),
    Step(
        "tarball",
        run_tarball,
        (
            "Moves the upstream tarball from the parent directory into the build directory.",
            "Skipped for native packages or if already moved.",
        ),
    ),
    Step("scan", run_scan, ("Regenerates the package index of the archive.",)),
    Step("update", run_update, ("Updates the apt cache inside the container.",)),
    Step("deps", run_deps, ("Installs build dependencies with mk-build-deps.",)),
    Step(
        "package",
        run_package,
        (
            "Builds the package with dpkg-buildpackage.",
            "Flags come from $DEBER_DPKG_BUILDPACKAGE_FLAGS (default: -tc).",
        ),
    ),
    Step(
        "test",
        run_test,
        (
            "Lists, installs and lints the built package.",
            "Lintian flags come from $DEBER_LINTIAN_FLAGS (default: -i).",
        ),
    ),
    Step("stop", run_stop, ("Stops the build container.", "Skipped if it is not running.")),
    Step("remove", run_remove, ("Removes the build container.", "Skipped if it does not exist.")),
    Step(
        "archive",
        run_archive,
        (
            "Moves the build directory into the archive.",
            "Skipped if the package is already archived.",
        ),
    ),
)

STEP_NAMES: tuple[str, ...] = tuple(step.name for step in STEPS)


def get_step(name: str) -> Step:
    """Return the step called name."""
    for step in STEPS:
        if step.name == name:
            return step
    raise KeyError(name)
