# SPDX-License-Identifier: Apache-2.0
# SPDX-FileCopyrightText: 2025 The Linux Foundation
"""
Generic branch/pull-request vocabulary used by the host automation.

These models describe pull requests, branch status and the requests the
host issues, independent of the review server behind them. The Gerrit
adapter maps its changes onto this vocabulary.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Literal, Union

from pydantic import BaseModel, Field


class PrState(str, Enum):
    """Pull request states understood by the host."""

    OPEN = "open"
    CLOSED = "closed"
    MERGED = "merged"
    NOT_OPEN = "!open"
    ALL = "all"


class BranchStatus(str, Enum):
    """Traffic-light status of a branch."""

    GREEN = "green"
    YELLOW = "yellow"
    RED = "red"


class PullRequest(BaseModel):
    """
    A pull request as seen by the host.

    Always derived from a change on every read, never stored.
    """

    number: int = Field(..., description="Change number")
    state: PrState = Field(..., description="Generic PR state")
    source_branch: str = Field(..., description="Branch the change targets")
    target_branch: str = Field(..., description="Branch the change targets")
    title: str = Field("", description="Change subject")
    has_reviewers: bool = Field(
        False, description="Whether the reviewers field was reported"
    )


class FindPrRequest(BaseModel):
    """Search criteria for locating the change behind a logical branch."""

    branch_name: str = ""
    state: PrState | None = None
    topic: str | None = None
    hashtag: str | None = None
    label: str | None = None
    pr_title: str | None = None


class CreateRequest(BaseModel):
    """Request to expose a freshly pushed branch as a pull request."""

    kind: Literal["create"] = "create"
    source_branch: str
    target_branch: str = ""
    pr_title: str
    pr_body: str = ""
    labels: list[str] = Field(default_factory=list)


class UpdateRequest(BaseModel):
    """Request to update an existing pull request."""

    kind: Literal["update"] = "update"
    number: int
    pr_title: str | None = None
    pr_body: str | None = None
    state: PrState | None = None


PrRequest = Union[CreateRequest, UpdateRequest]


class CommitFilesRequest(BaseModel):
    """A set of file changes to commit onto a logical branch."""

    branch_name: str
    message: str | list[str]
    files: list[dict[str, Any]] = Field(default_factory=list)
    platform_commit: bool = False

    @property
    def message_lines(self) -> list[str]:
        """Commit message as a list of paragraphs."""
        if isinstance(self.message, str):
            return [self.message]
        return list(self.message)


__all__ = [
    "BranchStatus",
    "CommitFilesRequest",
    "CreateRequest",
    "FindPrRequest",
    "PrRequest",
    "PrState",
    "PullRequest",
    "UpdateRequest",
]
