# SPDX-License-Identifier: Apache-2.0
# SPDX-FileCopyrightText: 2025 The Linux Foundation
"""
Change reconciliation: create or update the change behind a branch.

Content reaches Gerrit by pushing to the ``refs/for/<branch>`` magic ref.
The server creates a change for a new Change-Id, or adds a patch-set to
the change that already carries it. Reconciliation therefore:

1. Looks for an open change matching the branch and its topic/hashtag.
2. Reuses that change's Change-Id in the new commit message.
3. Compares the prepared commit with the change's current patch-set and
   pushes only when the content differs or the change no longer merges.

Creating a pull request happens after the push; the new change is then
discovered with a bounded poll because the search index lags behind.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from enum import Enum

from changebridge.gerrit.locator import ChangeLocator
from changebridge.gerrit.models import GerritChange, RepoContext
from changebridge.gerrit.retry import DEFAULT_POLL_ATTEMPTS, poll_until_found
from changebridge.gerrit.review import ReviewApplier
from changebridge.gerrit.service import GerritService
from changebridge.gerrit.utils import map_change_to_pr, split_topic_and_branch
from changebridge.models import (
    CommitFilesRequest,
    CreateRequest,
    FindPrRequest,
    PrRequest,
    PrState,
    PullRequest,
    UpdateRequest,
)
from changebridge.vcs import GitBackend

log = logging.getLogger("changebridge.gerrit.reconciler")

MAGIC_REF_PREFIX = "refs/for/"


class SyncState(str, Enum):
    """Steps of reconciling content with an existing change."""

    NO_CANDIDATE = "no-candidate"
    CANDIDATE = "candidate"
    NO_DIFF = "no-diff"
    HAS_DIFF = "has-diff"
    SYNCED = "synced"


class ChangeNotVisibleError(RuntimeError):
    """Raised when a pushed change cannot be found after polling."""


class ChangeReconciler:
    """Drives the push-based create/update cycle of changes."""

    def __init__(
        self,
        service: GerritService,
        git: GitBackend,
        locator: ChangeLocator | None = None,
        reviews: ReviewApplier | None = None,
        sleep: Callable[[float], None] = time.sleep,
        poll_attempts: int = DEFAULT_POLL_ATTEMPTS,
    ) -> None:
        self._service = service
        self._git = git
        self._locator = locator or ChangeLocator(service)
        self._reviews = reviews or ReviewApplier(service)
        self._sleep = sleep
        self._poll_attempts = poll_attempts

    def commit_files(
        self, ctx: RepoContext, request: CommitFilesRequest
    ) -> str | None:
        """
        Commit files for a logical branch, reusing an existing change.

        Args:
            ctx: Repository context.
            request: The branch (with ``%topic=``/``%t=`` suffix) and files.

        Returns:
            The sha now representing the branch content: the new commit,
            or the change's current revision when nothing changed.
        """
        log.info(
            "commit_files(%s, platform_commit=%s)",
            request.branch_name,
            request.platform_commit,
        )
        target = split_topic_and_branch(request.branch_name)
        if target is not None and (target.topic or target.hashtag):
            change = self._locator.find_change(
                ctx,
                FindPrRequest(
                    branch_name=target.branch,
                    topic=target.topic,
                    hashtag=target.hashtag,
                    state=PrState.OPEN,
                ),
                refresh_cache=True,
            )
            if change is not None:
                log.debug(
                    "%s: change %d for %s",
                    SyncState.CANDIDATE.value,
                    change.number,
                    request.branch_name,
                )
                request = request.model_copy(
                    update={
                        "message": [
                            *request.message_lines,
                            f"Change-Id: {change.change_id}",
                        ]
                    }
                )
                sha = self._sync_candidate(change, request)
                if sha is not None:
                    return sha
            else:
                log.debug(
                    "%s: %s", SyncState.NO_CANDIDATE.value, request.branch_name
                )

        return self._git.commit_and_push(
            request.model_copy(update={"platform_commit": False})
        )

    def _sync_candidate(
        self, change: GerritChange, request: CommitFilesRequest
    ) -> str | None:
        """Sync prepared content onto a candidate; None to fall back."""
        revision = change.current_revision_info
        if revision is None:
            return None

        result = self._git.prepare_commit(request)
        if result is None:
            log.info(
                "Nothing to commit for change %d, keeping revision %s",
                change.number,
                change.current_revision,
            )
            return change.current_revision

        # Lands in FETCH_HEAD for the comparison below
        self._git.fetch_revspec(revision.ref)
        has_diff = self._git.has_changes(["HEAD", "FETCH_HEAD"])
        if not has_diff and change.mergeable is not False:
            log.info(
                "%s: change %d already has this content",
                SyncState.NO_DIFF.value,
                change.number,
            )
            return change.current_revision

        log.info(
            "%s: pushing new patch-set for change %d (mergeable=%s)",
            SyncState.HAS_DIFF.value,
            change.number,
            change.mergeable,
        )
        if not self._git.push_commit(request):
            log.warning(
                "Push for change %d failed, falling back to commit and push",
                change.number,
            )
            return None
        self._git.register_branch(request.branch_name)
        log.info("%s: change %d", SyncState.SYNCED.value, change.number)
        return result.commit_sha

    def apply_pr_body(self, change_number: int, pr_body: str) -> None:
        """Post the PR body as a message and approve, both idempotently."""
        self._reviews.ensure_message(change_number, pr_body)
        # TODO: only approve when automerge is enabled for the branch
        self._reviews.ensure_approval(change_number)

    def create(self, ctx: RepoContext, request: CreateRequest) -> PullRequest:
        """
        Expose the change created by the previous push as a PR.

        Raises:
            ChangeNotVisibleError: If the change is still not searchable
                after the last poll.
        """
        log.info(
            "create(%s, %s, %s)",
            request.source_branch,
            request.pr_title,
            ",".join(request.labels),
        )
        find = FindPrRequest(
            branch_name=request.source_branch,
            state=PrState.OPEN,
            pr_title=request.pr_title,
        )
        change = poll_until_found(
            lambda: self._locator.find_change(ctx, find, refresh_cache=True),
            attempts=self._poll_attempts,
            sleep=self._sleep,
        )
        if change is None:
            raise ChangeNotVisibleError(
                "the change should be created automatically from previous "
                f"push to {MAGIC_REF_PREFIX}{request.source_branch}"
            )
        self.apply_pr_body(change.number, request.pr_body)
        return map_change_to_pr(change)

    def update(self, ctx: RepoContext, request: UpdateRequest) -> None:
        log.info("update(%d, state=%s)", request.number, request.state)
        if request.pr_body:
            self.apply_pr_body(request.number, request.pr_body)
        if request.state == PrState.CLOSED:
            self._service.abandon_change(request.number)

    def reconcile(
        self, ctx: RepoContext, request: PrRequest
    ) -> PullRequest | None:
        """Dispatch a create or update request."""
        if isinstance(request, CreateRequest):
            return self.create(ctx, request)
        self.update(ctx, request)
        return None


__all__ = [
    "ChangeNotVisibleError",
    "ChangeReconciler",
    "MAGIC_REF_PREFIX",
    "SyncState",
]
