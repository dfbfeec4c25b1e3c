# SPDX-License-Identifier: Apache-2.0
# SPDX-FileCopyrightText: 2025 The Linux Foundation
"""
Gerrit service layer for changebridge.

This module provides a service class over the Gerrit REST endpoints the
adapter consumes. It turns raw responses into models and provides
methods for:

- Listing projects and reading project/branch metadata
- Searching and fetching changes, messages and mergeability
- Posting reviews, abandoning, submitting, reviewers and assignees
- Cherry-picks and hashtags
- Reading file content and the commit-msg hook

Transport errors propagate unchanged; callers decide how to react.
"""

from __future__ import annotations

import base64
import logging
from collections.abc import Sequence
from typing import Any
from urllib.parse import quote

from changebridge.gerrit.client import GerritRestClient, build_client
from changebridge.gerrit.models import (
    GerritBranchInfo,
    GerritChange,
    GerritChangeMessageInfo,
    GerritMergeableInfo,
    GerritProjectInfo,
)
from changebridge.gerrit.query import (
    CHANGE_DETAIL_OPTIONS,
    SEARCH_OPTIONS,
    build_search_path,
)

log = logging.getLogger("changebridge.gerrit.service")


class GerritServiceError(Exception):
    """Raised for service-level errors such as malformed responses."""


def _enc(value: str) -> str:
    return quote(value, safe="")


class GerritService:
    """
    Typed access to the Gerrit REST surface.

    The service holds a constructed client passed in by the caller, so
    tests and hosts can substitute their own transport.
    """

    def __init__(self, client: GerritRestClient) -> None:
        self._client = client

    @property
    def client(self) -> GerritRestClient:
        return self._client

    @property
    def is_authenticated(self) -> bool:
        """Check if the service has authentication credentials."""
        return self._client.is_authenticated

    # Projects

    def get_repos(self) -> list[str]:
        """Get the names of all active code projects."""
        data = self._client.get("a/projects/?type=CODE&state=ACTIVE")
        if not isinstance(data, dict):
            raise GerritServiceError(
                f"Unexpected project list response: {type(data).__name__}"
            )
        # Gerrit returns a dict with project names as keys
        return list(data.keys())

    def get_project_info(self, repository: str) -> GerritProjectInfo:
        data = self._client.get(f"a/projects/{_enc(repository)}")
        return GerritProjectInfo.from_api_response(data)

    def get_branch_info(self, repository: str) -> GerritBranchInfo:
        """Read the project's HEAD branch."""
        data = self._client.get(f"a/projects/{_enc(repository)}/branches/HEAD")
        return GerritBranchInfo.from_api_response(data)

    # Changes

    def find_changes(
        self,
        query: str,
        options: Sequence[str] = SEARCH_OPTIONS,
        use_cache: bool = True,
    ) -> list[GerritChange]:
        """
        Run a change search.

        Args:
            query: The ``+``-joined search terms.
            options: Detail flags to request.
            use_cache: If False, bypass the transport cache.

        Returns:
            Matching changes in server order.

        Raises:
            GerritServiceError: If the response is not a list.
        """
        path = "a/" + build_search_path(query, options)
        data = self._client.get(path, use_cache=use_cache)
        if not isinstance(data, list):
            raise GerritServiceError(
                f"Unexpected change search response: {type(data).__name__}"
            )
        changes = [GerritChange.from_api_response(item) for item in data]
        log.debug("Change search %s returned %d changes", query, len(changes))
        return changes

    def get_change(
        self,
        change_number: int,
        options: Sequence[str] = CHANGE_DETAIL_OPTIONS,
        use_cache: bool = True,
    ) -> GerritChange:
        path = f"a/changes/{change_number}"
        if options:
            path += "?" + "&".join(f"o={opt}" for opt in options)
        data = self._client.get(path, use_cache=use_cache)
        return GerritChange.from_api_response(data)

    def get_change_detail(
        self, change_number: int, use_cache: bool = True
    ) -> GerritChange:
        """Fetch a change with labels, reviewers and messages."""
        data = self._client.get(
            f"a/changes/{change_number}/detail", use_cache=use_cache
        )
        return GerritChange.from_api_response(data)

    def get_messages(self, change_number: int) -> list[GerritChangeMessageInfo]:
        """Fetch the messages of a change, always bypassing the cache."""
        data = self._client.get(
            f"a/changes/{change_number}/messages", use_cache=False
        )
        return [GerritChangeMessageInfo.from_api_response(m) for m in data or []]

    def get_mergeable_info(self, change_number: int) -> GerritMergeableInfo:
        data = self._client.get(
            f"a/changes/{change_number}/revisions/current/mergeable"
        )
        return GerritMergeableInfo.from_api_response(data)

    # Review actions

    def add_message(
        self, change_number: int, message: str, tag: str | None = None
    ) -> None:
        body: dict[str, Any] = {"message": message}
        if tag:
            body["tag"] = tag
        self._client.post(
            f"a/changes/{change_number}/revisions/current/review", data=body
        )

    def set_label(self, change_number: int, label: str, value: int) -> None:
        self._client.post(
            f"a/changes/{change_number}/revisions/current/review",
            data={"labels": {label: value}},
        )

    def set_commit_message(self, change_number: int, message: str) -> None:
        self._client.put(
            f"a/changes/{change_number}/message", data={"message": message}
        )

    def abandon_change(self, change_number: int) -> None:
        log.info("Abandoning change %d", change_number)
        self._client.post(f"a/changes/{change_number}/abandon")

    def submit_change(self, change_number: int) -> GerritChange:
        data = self._client.post(f"a/changes/{change_number}/submit")
        return GerritChange.from_api_response(data)

    def add_reviewer(self, change_number: int, reviewer: str) -> None:
        self._client.post(
            f"a/changes/{change_number}/reviewers", data={"reviewer": reviewer}
        )

    def set_assignee(self, change_number: int, assignee: str) -> None:
        self._client.put(
            f"a/changes/{change_number}/assignee", data={"assignee": assignee}
        )

    def cherry_pick(
        self, repository: str, commit_sha: str, destination: str
    ) -> GerritChange:
        """Cherry-pick a commit onto a destination branch as a change."""
        data = self._client.post(
            f"a/projects/{_enc(repository)}/commits/{commit_sha}/cherrypick",
            data={"destination": destination},
        )
        return GerritChange.from_api_response(data)

    def add_hashtags(self, change_number: int, hashtags: Sequence[str]) -> None:
        self._client.post(
            f"a/changes/{change_number}/hashtags", data={"add": list(hashtags)}
        )

    # Content

    def get_file(self, repository: str, branch: str, file_name: str) -> str:
        """Read a file from a branch; Gerrit serves it base64-encoded."""
        encoded = self._client.get(
            f"a/projects/{_enc(repository)}/branches/{_enc(branch)}"
            f"/files/{_enc(file_name)}/content"
        )
        if not isinstance(encoded, str):
            raise GerritServiceError(
                f"Unexpected file content response for {file_name}"
            )
        return base64.b64decode(encoded).decode("utf-8")

    def get_commit_msg_hook(self) -> str:
        return self._client.get_public_text("tools/hooks/commit-msg")


def create_gerrit_service(
    endpoint: str,
    username: str | None = None,
    password: str | None = None,
    timeout: float = 10.0,
    max_attempts: int = 5,
) -> GerritService:
    """
    Factory function to create a GerritService instance.

    Args:
        endpoint: Gerrit server URL.
        username: Optional HTTP username.
        password: Optional HTTP password.
        timeout: Request timeout in seconds.
        max_attempts: Maximum retry attempts for transient failures.

    Returns:
        Configured GerritService instance.
    """
    client = build_client(
        endpoint,
        timeout=timeout,
        max_attempts=max_attempts,
        username=username,
        password=password,
    )
    log.debug(
        "GerritService created: endpoint=%s, auth=%s",
        endpoint,
        "yes" if client.is_authenticated else "no",
    )
    return GerritService(client)


__all__ = [
    "GerritService",
    "GerritServiceError",
    "create_gerrit_service",
]
