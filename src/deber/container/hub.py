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

"""Docker Hub tag lookup for official base images."""

from __future__ import annotations

import logging

import requests

from deber.core.exceptions import ContainerRuntimeError

logger = logging.getLogger(__name__)

DEFAULT_HUB_URL = "https://hub.docker.com"
PAGE_SIZE = 100
MAX_PAGES = 50


class HubClient:
    """Lists tags of official ("library/") repositories on Docker Hub."""

    def __init__(
        self,
        base_url: str = DEFAULT_HUB_URL,
        session: requests.Session | None = None,
        timeout: int = 30,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.session = session or requests.Session()
        self.timeout = timeout

    def tags_url(self, repo: str) -> str:
        return f"{self.base_url}/v2/repositories/library/{repo}/tags"

    def list_tags(self, repo: str, name: str | None = None) -> list[str]:
        """Return tag names of an official repository.

        Args:
            repo: Repository name, e.g. "debian".
            name: Optional substring filter applied server-side.

        Raises:
            ContainerRuntimeError: On network errors or unexpected responses.
        """
        query: dict[str, str | int] = {"page_size": PAGE_SIZE}
        if name:
            query["name"] = name

        url: str | None = self.tags_url(repo)
        params: dict[str, str | int] | None = query

        tags: list[str] = []
        for _ in range(MAX_PAGES):
            if url is None:
                break
            try:
                resp = self.session.get(url, params=params, timeout=self.timeout)
            except requests.RequestException as e:
                raise ContainerRuntimeError(message=f"cannot list tags of {repo}: {e}") from e

            if resp.status_code == 404:
                logger.debug("Repository %s not found on Docker Hub", repo)
                return []
            if resp.status_code != 200:
                raise ContainerRuntimeError(
                    message=f"cannot list tags of {repo}: HTTP {resp.status_code}"
                )

            try:
                payload = resp.json()
            except ValueError as e:
                raise ContainerRuntimeError(message=f"invalid tag listing for {repo}: {e}") from e

            tags.extend(str(item["name"]) for item in payload.get("results", []) if "name" in item)
            # "next" already carries the query string.
            url = payload.get("next")
            params = None

        if url is not None:
            logger.warning("Tag listing for %s truncated after %d pages", repo, MAX_PAGES)

        return tags
