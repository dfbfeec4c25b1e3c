# SPDX-License-Identifier: Apache-2.0
# SPDX-FileCopyrightText: 2025 The Linux Foundation
"""
Mapping helpers between Gerrit changes and the generic PR vocabulary.

Also holds the logical branch-name encoding (``<branch>%topic=<topic>`` and
``<branch>%t=<hashtag>``) and git URL construction for a repository.
"""

from __future__ import annotations

import logging
from typing import NamedTuple
from urllib.parse import quote, urlparse, urlunparse

from changebridge.gerrit.models import GerritChange, GerritChangeStatus
from changebridge.models import PrState, PullRequest

log = logging.getLogger("changebridge.gerrit.utils")

TOPIC_SEPARATOR = "%topic="
HASHTAG_SEPARATOR = "%t="

_STATUS_TO_PR_STATE: dict[str, PrState] = {
    GerritChangeStatus.NEW.value: PrState.OPEN,
    GerritChangeStatus.MERGED.value: PrState.MERGED,
    GerritChangeStatus.ABANDONED.value: PrState.CLOSED,
}


class PlatformConfigError(ValueError):
    """Raised when the server endpoint or credentials are unusable."""


class BranchTarget(NamedTuple):
    """A logical branch name split into branch and topic/hashtag."""

    branch: str
    topic: str | None = None
    hashtag: str | None = None


def split_topic_and_branch(branch_name: str | None) -> BranchTarget | None:
    """
    Split ``name%topic=X`` or ``name%t=Y`` into its parts.

    Returns None when the name carries neither suffix.
    """
    if not branch_name:
        return None
    if TOPIC_SEPARATOR in branch_name:
        branch, topic = branch_name.split(TOPIC_SEPARATOR, 1)
        return BranchTarget(branch=branch, topic=topic)
    if HASHTAG_SEPARATOR in branch_name:
        branch, hashtag = branch_name.split(HASHTAG_SEPARATOR, 1)
        return BranchTarget(branch=branch, hashtag=hashtag)
    return None


def branch_name_for_change(change: GerritChange) -> str:
    """Encode the logical branch name a change was pushed for."""
    name = change.branch
    if change.topic:
        name += f"{TOPIC_SEPARATOR}{change.topic}"
    if change.hashtags:
        # Only the first hashtag takes part in the encoding
        name += f"{HASHTAG_SEPARATOR}{change.hashtags[0]}"
    return name


def map_change_status_to_pr_state(status: str) -> PrState:
    return _STATUS_TO_PR_STATE.get(status, PrState.ALL)


def map_change_to_pr(change: GerritChange) -> PullRequest:
    """
    Project a change onto the generic PR shape.

    A change lives on a single branch, so it serves as both source and
    target branch.
    """
    return PullRequest(
        number=change.number,
        state=map_change_status_to_pr_state(change.status),
        source_branch=change.branch,
        target_branch=change.branch,
        title=change.subject,
        has_reviewers=change.reviewers is not None,
    )


def get_gerrit_repo_url(
    repository: str,
    endpoint: str,
    username: str | None = None,
    password: str | None = None,
) -> str:
    """
    Build the git URL of a repository on the server.

    Credentials are embedded in the URL and the path points at the
    authenticated ``a/<repository>`` location.

    Raises:
        PlatformConfigError: If the endpoint is not an absolute URL.
    """
    parsed = urlparse(endpoint)
    if not parsed.scheme or not parsed.hostname:
        raise PlatformConfigError(f"Cannot derive git URL from endpoint {endpoint!r}")

    netloc = parsed.hostname
    if parsed.port:
        netloc = f"{netloc}:{parsed.port}"
    if username:
        userinfo = quote(username, safe="")
        if password:
            userinfo += ":" + quote(password, safe="")
        netloc = f"{userinfo}@{netloc}"

    url = urlunparse((parsed.scheme, netloc, f"/a/{repository}", "", "", ""))
    log.debug(
        "Using git URL %s based on configured endpoint",
        url.replace(quote(password, safe=""), "****") if password else url,
    )
    return url


__all__ = [
    "BranchTarget",
    "PlatformConfigError",
    "branch_name_for_change",
    "get_gerrit_repo_url",
    "map_change_status_to_pr_state",
    "map_change_to_pr",
    "split_topic_and_branch",
]
