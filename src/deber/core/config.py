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

"""Configuration utilities for Deber."""

from __future__ import annotations

import json
import os
import shlex
from collections.abc import Mapping
from pathlib import Path
from typing import Any

import yaml

from deber.core.exceptions import ConfigError

DPKG_BUILDPACKAGE_FLAGS_ENV = "DEBER_DPKG_BUILDPACKAGE_FLAGS"
LINTIAN_FLAGS_ENV = "DEBER_LINTIAN_FLAGS"

DEFAULT_CONFIG: dict[str, Any] = {
    "paths": {
        "build_root": "~/.cache/deber/build",
        "archive_root": "~/deber",
        "cache_root": "~/.cache/deber/apt",
        "runs_root": "~/.cache/deber/runs",
    },
    "defaults": {
        "base_repos": ["debian", "ubuntu"],
        "max_image_age_days": 14,
        "stop_timeout": 10,
        "dpkg_buildpackage_flags": "-tc",
        "lintian_flags": "-i",
    },
    "mirrors": {
        "docker_hub": "https://hub.docker.com",
    },
    "behavior": {"no_color": False},
}


def get_config_path() -> Path:
    """Return the path to the config file."""
    return Path.home() / ".config" / "deber" / "config.yaml"


def ensure_config_exists() -> None:
    """Create the config file with defaults if it does not exist."""
    cfg_path = get_config_path()
    cfg_path.parent.mkdir(parents=True, exist_ok=True)
    if not cfg_path.exists():
        cfg_path.write_text(yaml.safe_dump(DEFAULT_CONFIG))


def load_config() -> dict[str, Any]:
    """Load configuration from disk and merge with defaults.

    Each top-level section of the on-disk file is merged over the matching
    section of DEFAULT_CONFIG, so a file only needs the keys it changes.
    """
    ensure_config_exists()
    cfg_path = get_config_path()
    try:
        raw = yaml.safe_load(cfg_path.read_text()) or {}
    except yaml.YAMLError:
        raw = {}

    merged: dict[str, Any] = {}
    for key, val in DEFAULT_CONFIG.items():
        if key in raw and isinstance(raw[key], dict):
            merged[key] = {**val, **raw[key]}
        elif isinstance(val, dict):
            merged[key] = dict(val)
        else:
            merged[key] = raw.get(key, val)

    for pkey, pval in merged.get("paths", {}).items():
        merged["paths"][pkey] = str(Path(pval).expanduser())

    return merged


def resolve_paths(cfg: Mapping[str, Any]) -> dict[str, Path]:
    """Return resolved Path objects for configured paths."""
    paths: Mapping[str, Any] = cfg.get("paths", {})
    return {key: Path(str(val)).expanduser().resolve() for key, val in paths.items()}


def resolve_flags(cfg: Mapping[str, Any], env: Mapping[str, str] | None = None) -> tuple[str, str]:
    """Return the dpkg-buildpackage and lintian flag strings.

    An environment variable that is set and non-empty wins over the config
    file, which in turn wins over the built-in default.

    Raises:
        ConfigError: If a flag string is not valid shell syntax.
    """
    env = os.environ if env is None else env
    defaults = cfg.get("defaults", {})
    dpkg_flags = str(
        env.get(DPKG_BUILDPACKAGE_FLAGS_ENV)
        or defaults.get("dpkg_buildpackage_flags", DEFAULT_CONFIG["defaults"]["dpkg_buildpackage_flags"])
    )
    lintian_flags = str(
        env.get(LINTIAN_FLAGS_ENV) or defaults.get("lintian_flags", DEFAULT_CONFIG["defaults"]["lintian_flags"])
    )
    for name, value in ((DPKG_BUILDPACKAGE_FLAGS_ENV, dpkg_flags), (LINTIAN_FLAGS_ENV, lintian_flags)):
        try:
            shlex.split(value)
        except ValueError as e:
            raise ConfigError(message=f"invalid {name} {value!r}: {e}") from e
    return dpkg_flags, lintian_flags


if __name__ == "__main__":
    cfg = load_config()
    print(json.dumps(cfg, indent=2))
