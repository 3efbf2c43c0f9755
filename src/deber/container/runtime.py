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

"""Docker helpers for Deber builds.

All operations shell out to the ``docker`` CLI. Queries distinguish a
missing object (a normal answer) from any other CLI failure, which raises
ContainerRuntimeError with the CLI's own message attached.
"""

from __future__ import annotations

import datetime
import json
import logging
import os
import re
import shutil
import subprocess
from collections.abc import Callable
from typing import TYPE_CHECKING, Any

from deber.container.dockerfile import (
    BASE_LABEL,
    CONTAINER_ARCHIVE_DIR,
    CONTAINER_BUILD_DIR,
    CONTAINER_CACHE_DIR,
    CONTAINER_SOURCE_DIR,
    render_dockerfile,
)
from deber.container.hub import HubClient
from deber.core.exceptions import ContainerRuntimeError

if TYPE_CHECKING:
    from deber.naming import ResourceNames

logger = logging.getLogger(__name__)

DEFAULT_STOP_TIMEOUT = 10
DEFAULT_MAX_IMAGE_AGE_DAYS = 14
# Extra time granted to the CLI on top of the daemon-side stop timeout.
STOP_GRACE_SECONDS = 30

_CREATED_RE = re.compile(r"^(\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2})(?:\.(\d+))?(Z|[+-]\d{2}:\d{2})$")


def parse_created(value: str) -> datetime.datetime:
    """Parse a Docker ``Created`` timestamp (nanosecond precision, RFC 3339)."""
    match = _CREATED_RE.match(value.strip())
    if not match:
        raise ValueError(f"unrecognised timestamp: {value!r}")
    base, fraction, zone = match.groups()
    micros = (fraction or "0")[:6].ljust(6, "0")
    if zone == "Z":
        zone = "+00:00"
    return datetime.datetime.fromisoformat(f"{base}.{micros}{zone}")


def _is_missing(stderr: str) -> bool:
    return "No such" in stderr


class DockerRuntime:
    """Image and container lifecycle operations backed by the docker CLI.

    Args:
        output: Receives tool output line by line (image builds, exec).
        hub: Client used to list base image tags.
        stop_timeout: Seconds the daemon waits before killing on stop.
        max_image_age_days: Age after which the build image is rebuilt.
        docker: Name or path of the docker executable.
    """

    def __init__(
        self,
        output: Callable[[str], None] | None = None,
        hub: HubClient | None = None,
        stop_timeout: int = DEFAULT_STOP_TIMEOUT,
        max_image_age_days: int = DEFAULT_MAX_IMAGE_AGE_DAYS,
        docker: str = "docker",
    ) -> None:
        self.output = output or (lambda line: None)
        self.hub = hub or HubClient()
        self.stop_timeout = stop_timeout
        self.max_image_age_days = max_image_age_days
        self.docker = docker

    def _run(
        self,
        *args: str,
        input: str | None = None,
        timeout: float | None = None,
    ) -> subprocess.CompletedProcess[str]:
        cmd = [self.docker, *args]
        logger.debug("Running %s", " ".join(cmd))
        try:
            return subprocess.run(
                cmd,
                input=input,
                capture_output=True,
                text=True,
                check=False,
                timeout=timeout,
            )
        except FileNotFoundError as e:
            raise ContainerRuntimeError(message=f"{self.docker} executable not found") from e
        except subprocess.TimeoutExpired as e:
            raise ContainerRuntimeError(
                message=f"'{' '.join(cmd)}' timed out after {timeout}s"
            ) from e

    def _check(self, result: subprocess.CompletedProcess[str], action: str) -> None:
        if result.returncode != 0:
            err = result.stderr.strip() or result.stdout.strip() or f"exit status {result.returncode}"
            raise ContainerRuntimeError(message=f"{action}: {err}")

    def _stream(self, cmd: list[str], input: str | None = None) -> int:
        """Run cmd, forwarding its combined output line by line."""
        logger.debug("Streaming %s", " ".join(cmd))
        try:
            proc = subprocess.Popen(
                cmd,
                stdin=subprocess.PIPE if input is not None else subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                text=True,
                errors="replace",
            )
        except FileNotFoundError as e:
            raise ContainerRuntimeError(message=f"{self.docker} executable not found") from e

        with proc:
            try:
                if input is not None and proc.stdin is not None:
                    proc.stdin.write(input)
                    proc.stdin.close()
                for line in proc.stdout or ():
                    self.output(line.rstrip("\n"))
            except BaseException:
                proc.kill()
                raise
            return proc.wait()

    def _inspect(self, kind: str, name: str) -> dict[str, Any] | None:
        """Return the inspect document of an object, or None if it is missing."""
        result = self._run(kind, "inspect", name)
        if result.returncode != 0:
            if _is_missing(result.stderr):
                return None
            self._check(result, f"cannot inspect {kind} {name}")
        try:
            documents = json.loads(result.stdout)
        except json.JSONDecodeError as e:
            raise ContainerRuntimeError(message=f"invalid inspect output for {name}: {e}") from e
        return documents[0] if documents else None

    def connect(self) -> str:
        """Check the daemon is reachable and return its version."""
        result = self._run("version", "--format", "{{.Server.Version}}")
        self._check(result, "cannot connect to Docker")
        return result.stdout.strip()

    # Images

    def image_exists(self, name: str) -> bool:
        return self._inspect("image", name) is not None

    def image_is_stale(self, name: str) -> bool:
        """Return True if the image should be rebuilt.

        An image is stale when it is older than max_image_age_days, or when
        the base image it was built from is present locally and newer.
        """
        info = self._inspect("image", name)
        if info is None:
            return True
        try:
            created = parse_created(info["Created"])
        except (KeyError, ValueError) as e:
            logger.warning("Cannot read creation time of %s: %s", name, e)
            return True

        age = datetime.datetime.now(datetime.UTC) - created
        if age > datetime.timedelta(days=self.max_image_age_days):
            logger.debug("Image %s is %s old", name, age)
            return True

        labels = (info.get("Config") or {}).get("Labels") or {}
        base_ref = labels.get(BASE_LABEL)
        if not base_ref:
            return False
        base = self._inspect("image", base_ref)
        if base is None:
            return False
        try:
            return parse_created(base["Created"]) > created
        except (KeyError, ValueError):
            return False

    def build_image(self, name: str, base_ref: str) -> None:
        dockerfile = render_dockerfile(base_ref, uid=os.getuid(), gid=os.getgid())
        cmd = [
            self.docker,
            "build",
            "--pull",
            "--no-cache",
            "--tag",
            name,
            "--label",
            f"{BASE_LABEL}={base_ref}",
            "-",
        ]
        returncode = self._stream(cmd, input=dockerfile)
        if returncode != 0:
            raise ContainerRuntimeError(message=f"cannot build image {name}: exit status {returncode}")

    def list_available_tags(self, repo: str, name: str | None = None) -> list[str]:
        return self.hub.list_tags(repo, name=name)

    # Containers

    def _container_state(self, name: str) -> dict[str, Any] | None:
        info = self._inspect("container", name)
        if info is None:
            return None
        return info.get("State") or {}

    def container_exists(self, name: str) -> bool:
        return self._container_state(name) is not None

    def container_is_running(self, name: str) -> bool:
        state = self._container_state(name)
        return bool(state and state.get("Running"))

    def container_is_stopped(self, name: str) -> bool:
        """Return True unless the container exists and is running."""
        state = self._container_state(name)
        return not (state and state.get("Running"))

    def create_container(self, names: ResourceNames) -> None:
        for directory in (names.build_dir, names.archive_dir, names.cache_dir):
            directory.mkdir(parents=True, exist_ok=True)

        mounts = (
            (names.build_dir, CONTAINER_BUILD_DIR),
            (names.source_dir, CONTAINER_SOURCE_DIR),
            (names.archive_dir, CONTAINER_ARCHIVE_DIR),
            (names.cache_dir, CONTAINER_CACHE_DIR),
        )
        args = ["create", "--name", names.container, "--workdir", CONTAINER_SOURCE_DIR]
        for source, target in mounts:
            args.extend(["--mount", f"type=bind,source={source},target={target}"])
        args.append(names.image)

        self._check(self._run(*args), f"cannot create container {names.container}")

    def start_container(self, name: str) -> None:
        self._check(self._run("start", name), f"cannot start container {name}")

    def stop_container(self, name: str) -> None:
        result = self._run(
            "stop",
            "--time",
            str(self.stop_timeout),
            name,
            timeout=self.stop_timeout + STOP_GRACE_SECONDS,
        )
        self._check(result, f"cannot stop container {name}")

    def remove_container(self, name: str) -> None:
        self._check(self._run("rm", name), f"cannot remove container {name}")

    def exec_in_container(self, name: str, *command: str) -> int:
        """Run a command in the container and return its exit status."""
        if shutil.which(self.docker) is None:
            raise ContainerRuntimeError(message=f"{self.docker} executable not found")
        return self._stream([self.docker, "exec", name, *command])
