# SPDX-License-Identifier: Apache-2.0
# SPDX-FileCopyrightText: 2025 The Linux Foundation
"""
Gerrit search query construction.

Builds ``changes/?q=...`` search paths from a structured filter. Terms
without a value are dropped, never emitted as empty segments.

Usage:
    from changebridge.gerrit.query import ChangeFilter, build_search_path

    flt = ChangeFilter(owner="self", project="my-project", state="status:open")
    path = build_search_path(flt.to_query())
"""

from __future__ import annotations

from collections.abc import Iterator, Sequence

from pydantic import BaseModel

from changebridge.gerrit.models import RepoContext
from changebridge.gerrit.utils import split_topic_and_branch
from changebridge.models import FindPrRequest, PrState

# Detail flags requested with every change search
SEARCH_OPTIONS: list[str] = [
    "SUBMITTABLE",  # ready-for-submit flag
    "CHECK",  # consistency problems
    "CURRENT_ACTIONS",
    "CURRENT_REVISION",  # RevisionInfo.ref to fetch
]

# Detail flags requested for single-change fetches
CHANGE_DETAIL_OPTIONS: list[str] = [
    "SUBMITTABLE",
    "CHECK",
    "MESSAGES",
    "DETAILED_ACCOUNTS",
    "LABELS",
    "CURRENT_ACTIONS",
    "CURRENT_REVISION",
]

_STATE_FILTERS: dict[PrState, str] = {
    PrState.OPEN: "status:open",
    PrState.CLOSED: "status:closed",
    PrState.MERGED: "status:merged",
    PrState.NOT_OPEN: "-status:open",
}

_DEFAULT_STATE_FILTER = "-is:wip"


def map_pr_state_to_filter(state: PrState | None) -> str:
    """Map a generic PR state onto a Gerrit search term."""
    if state is None:
        return _DEFAULT_STATE_FILTER
    return _STATE_FILTERS.get(state, _DEFAULT_STATE_FILTER)


class ChangeFilter(BaseModel):
    """
    Ordered set of optional search terms.

    ``state`` holds an already mapped search term (see
    ``map_pr_state_to_filter``); the remaining fields hold bare values.
    """

    owner: str | None = None
    project: str | None = None
    state: str | None = None
    topic: str | None = None
    hashtag: str | None = None
    label: str | None = None
    branch: str | None = None

    @classmethod
    def for_request(cls, ctx: RepoContext, request: FindPrRequest) -> ChangeFilter:
        """
        Build the filter that locates our own changes for a request.

        A ``%topic=`` or ``%t=`` suffix on the branch name selects the
        topic or hashtag; explicit values on the request take precedence.
        """
        target = split_topic_and_branch(request.branch_name)
        branch = target.branch if target else request.branch_name
        topic = request.topic or (target.topic if target else None)
        hashtag = request.hashtag or (target.hashtag if target else None)

        return cls(
            owner="self",
            project=ctx.repository,
            state=map_pr_state_to_filter(request.state),
            topic=topic,
            hashtag=hashtag,
            label=request.label,
            branch=branch,
        )

    def terms(self) -> Iterator[str]:
        """Yield the defined search terms in query order."""
        if self.owner:
            yield f"owner:{self.owner}"
        if self.project:
            yield f"project:{self.project}"
        if self.state:
            yield self.state
        if self.topic:
            yield f"topic:{self.topic}"
        if self.hashtag:
            yield f"hashtag:{self.hashtag}"
        if self.label:
            yield f"label:{self.label}"
        if self.branch:
            yield f"branch:{self.branch}"

    def to_query(self) -> str:
        return "+".join(self.terms())


def build_search_path(query: str, options: Sequence[str] = SEARCH_OPTIONS) -> str:
    """Compose the change search path for a query and detail flags."""
    return "changes/?q=" + query + "".join(f"&o={opt}" for opt in options)


__all__ = [
    "CHANGE_DETAIL_OPTIONS",
    "ChangeFilter",
    "SEARCH_OPTIONS",
    "build_search_path",
    "map_pr_state_to_filter",
]
