# SPDX-License-Identifier: Apache-2.0
# SPDX-FileCopyrightText: 2025 The Linux Foundation
"""
Working-copy collaborator interface.

The adapter never runs git itself. Hosts provide an object satisfying
``GitBackend`` that owns the local clone, creates commits and pushes
them. Pushes target the remote push prefix configured through
``set_remote_push_prefix`` (``refs/for/`` for Gerrit).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Protocol, runtime_checkable

from changebridge.models import CommitFilesRequest


@dataclass(frozen=True)
class CommitResult:
    """A local commit prepared from a CommitFilesRequest."""

    commit_sha: str
    parent_sha: str = ""
    files: list[str] = field(default_factory=list)


@runtime_checkable
class GitBackend(Protocol):
    """Operations the adapter needs from the local working copy."""

    local_dir: Path

    def set_remote_push_prefix(self, prefix: str) -> None:
        """Push branches to ``<prefix><branch>`` instead of the branch."""
        ...

    def init_repo(self, url: str) -> None:
        """Prepare the local clone of ``url``."""
        ...

    def sync_git(self) -> None:
        ...

    def fetch_revspec(self, revspec: str) -> None:
        """Fetch a refspec; without a destination it lands in FETCH_HEAD."""
        ...

    def register_branch(self, branch_name: str) -> None:
        ...

    def prepare_commit(self, request: CommitFilesRequest) -> CommitResult | None:
        """Create the local commit; None when there is nothing to commit."""
        ...

    def has_changes(self, refs: list[str]) -> bool:
        """Whether the trees of the given refs differ."""
        ...

    def push_commit(self, request: CommitFilesRequest) -> bool:
        ...

    def commit_and_push(self, request: CommitFilesRequest) -> str | None:
        """Commit and push in one step; returns the commit sha."""
        ...


__all__ = ["CommitResult", "GitBackend"]
