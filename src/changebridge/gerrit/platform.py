# SPDX-License-Identifier: Apache-2.0
# SPDX-FileCopyrightText: 2025 The Linux Foundation
"""
Gerrit platform facade for branch/pull-request automation.

This module exposes the operations a branch-based update automation
expects from a hosting platform and implements them on top of Gerrit
changes:

- Repository discovery and initialization (commit-msg hook, local
  branches for open changes)
- Finding, creating, updating and merging pull requests
- Branch status derived from change submittability
- Idempotent comments, reviewers and assignees
- Raw and JSON file access

Operations that have no Gerrit counterpart (issues, commit statuses,
PR labels) succeed without doing anything.

Usage:
    from changebridge.gerrit.platform import init_platform

    platform = init_platform("https://gerrit.example.org/", "bot", "secret", git=git)
    ctx = platform.init_repo("my-project")
    pr = platform.get_branch_pr(ctx, "main%topic=deps-foo")
"""

from __future__ import annotations

import logging
import os
import stat
import time
from collections.abc import Callable, Sequence
from typing import Any

import json5

from changebridge.gerrit.client import GerritNotFoundError, build_client
from changebridge.gerrit.locator import ChangeLocator
from changebridge.gerrit.models import RepoContext
from changebridge.gerrit.reconciler import MAGIC_REF_PREFIX, ChangeReconciler
from changebridge.gerrit.review import ReviewApplier
from changebridge.gerrit.service import GerritService
from changebridge.gerrit.status import aggregate_branch_status
from changebridge.gerrit.utils import (
    PlatformConfigError,
    branch_name_for_change,
    get_gerrit_repo_url,
    map_change_to_pr,
)
from changebridge.models import (
    BranchStatus,
    CommitFilesRequest,
    CreateRequest,
    FindPrRequest,
    PrState,
    PullRequest,
    UpdateRequest,
)
from changebridge.vcs import GitBackend

log = logging.getLogger("changebridge.gerrit.platform")

DEFAULT_PROJECT = "All-Projects"


class RepositoryArchivedError(RuntimeError):
    """Raised when the requested project is not ACTIVE."""


def resolve_repo_context(service: GerritService, repository: str) -> RepoContext:
    """
    Read project state and HEAD for a repository.

    Raises:
        RepositoryArchivedError: If the project is not ACTIVE.
    """
    project_info = service.get_project_info(repository)
    if not project_info.is_active:
        raise RepositoryArchivedError(
            f"Repository {repository} is {project_info.state}"
        )
    branch_info = service.get_branch_info(repository)
    return RepoContext(
        repository=repository,
        head=branch_info.revision,
        project_info=project_info,
    )


class GerritPlatform:
    """
    Branch/PR operations backed by a Gerrit server.

    Every repository-scoped operation takes the RepoContext returned by
    ``init_repo`` (or ``resolve_context``).
    """

    def __init__(
        self,
        service: GerritService,
        git: GitBackend,
        *,
        endpoint: str,
        username: str | None = None,
        password: str | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._service = service
        self._git = git
        self._endpoint = endpoint
        self._username = username
        self._password = password
        self._locator = ChangeLocator(service)
        self._reviews = ReviewApplier(service)
        self._reconciler = ChangeReconciler(
            service,
            git,
            locator=self._locator,
            reviews=self._reviews,
            sleep=sleep,
        )

    @property
    def endpoint(self) -> str:
        return self._endpoint

    @property
    def service(self) -> GerritService:
        return self._service

    # Repositories

    def get_repos(self) -> list[str]:
        """Get all active code repositories."""
        log.debug("get_repos()")
        return self._service.get_repos()

    def resolve_context(self, repository: str) -> RepoContext:
        return resolve_repo_context(self._service, repository)

    def init_repo(self, repository: str) -> RepoContext:
        """
        Prepare a repository for updates.

        Clones the repository, installs the server's commit-msg hook (it
        adds the Change-Id trailer to new commits), abandons open changes
        that were rejected on Code-Review and creates a local branch for
        every other open change.
        """
        log.info("init_repo(%s, %s)", repository, self._endpoint)
        # Results cached by an earlier run may predate changes pushed since
        self._service.client.clear_cache()
        ctx = self.resolve_context(repository)

        url = get_gerrit_repo_url(
            repository, self._endpoint, self._username, self._password
        )
        self._git.init_repo(url)
        # Syncing before installing the hook keeps the hook in place
        self._git.sync_git()
        self._install_commit_msg_hook()

        open_changes = self._locator.find_changes(
            ctx, FindPrRequest(branch_name="", state=PrState.OPEN)
        )
        for change in open_changes:
            if self._reviews.is_rejected(change.number):
                log.info("Abandoning rejected change %d", change.number)
                self._service.abandon_change(change.number)
                continue
            revision = change.current_revision_info
            if revision is None:
                log.warning(
                    "Change %d has no current revision, skipping", change.number
                )
                continue
            branch_name = branch_name_for_change(change)
            self._git.fetch_revspec(f"{revision.ref}:refs/heads/{branch_name}")
            # Mirror under origin/ so remote-tracking lookups resolve
            self._git.fetch_revspec(
                f"{revision.ref}:refs/heads/origin/{branch_name}"
            )
            self._git.register_branch(branch_name)

        return ctx

    def _install_commit_msg_hook(self) -> None:
        hooks_dir = self._git.local_dir / ".git" / "hooks"
        hooks_dir.mkdir(parents=True, exist_ok=True)
        hook_path = hooks_dir / "commit-msg"
        hook_path.write_text(self._service.get_commit_msg_hook())
        hook_path.chmod(stat.S_IRWXU)
        log.debug("Installed commit-msg hook at %s", hook_path)

    # Pull requests

    def find_pr(
        self,
        ctx: RepoContext,
        request: FindPrRequest,
        refresh_cache: bool = False,
    ) -> PullRequest | None:
        change = self._locator.find_change(ctx, request, refresh_cache)
        return map_change_to_pr(change) if change is not None else None

    def get_pr(self, ctx: RepoContext, number: int) -> PullRequest | None:
        try:
            change = self._service.get_change(number, options=())
        except GerritNotFoundError:
            return None
        return map_change_to_pr(change)

    def get_pr_list(self, ctx: RepoContext) -> list[PullRequest]:
        changes = self._locator.find_changes(ctx, FindPrRequest(branch_name=""))
        return [map_change_to_pr(change) for change in changes]

    def get_branch_pr(self, ctx: RepoContext, branch_name: str) -> PullRequest | None:
        """Find the open PR of a logical branch."""
        return self.find_pr(
            ctx, FindPrRequest(branch_name=branch_name, state=PrState.OPEN)
        )

    def create_pr(self, ctx: RepoContext, request: CreateRequest) -> PullRequest:
        return self._reconciler.create(ctx, request)

    def update_pr(self, ctx: RepoContext, request: UpdateRequest) -> None:
        self._reconciler.update(ctx, request)

    def merge_pr(self, ctx: RepoContext, number: int) -> bool:
        """Submit a change; True when it ends up merged."""
        log.info("merge_pr(%d)", number)
        change = self._service.submit_change(number)
        return change.is_merged

    def commit_files(
        self, ctx: RepoContext, request: CommitFilesRequest
    ) -> str | None:
        return self._reconciler.commit_files(ctx, request)

    # Branch status

    def get_branch_status(self, ctx: RepoContext, branch_name: str) -> BranchStatus:
        """
        Status of a logical branch.

        Green needs every open change of the branch to be submittable.
        """
        log.info("get_branch_status(%s)", branch_name)
        changes = self._locator.find_changes(
            ctx,
            FindPrRequest(branch_name=branch_name, state=PrState.OPEN),
            refresh_cache=True,
        )
        return aggregate_branch_status(changes)

    def get_branch_status_check(
        self, ctx: RepoContext, branch_name: str, context: str | None
    ) -> BranchStatus | None:
        # Gerrit has no per-context statuses; the branch status stands in
        return self.get_branch_status(ctx, branch_name)

    def set_branch_status(
        self,
        ctx: RepoContext,
        branch_name: str,
        context: str,
        state: BranchStatus,
        description: str = "",
    ) -> None:
        log.debug(
            "set_branch_status(%s, %s, %s) not supported", branch_name, context, state
        )

    # Comments, reviewers, labels

    def ensure_comment(
        self,
        ctx: RepoContext,
        number: int,
        content: str,
        topic: str | None = None,
    ) -> bool:
        log.info("ensure_comment(%d, %s)", number, topic)
        self._reviews.ensure_message(number, content)
        return True

    def ensure_comment_removal(
        self, ctx: RepoContext, number: int, **kwargs: Any
    ) -> None:
        log.debug("ensure_comment_removal(%d) not supported", number)

    def add_reviewers(
        self, ctx: RepoContext, number: int, reviewers: Sequence[str]
    ) -> None:
        for reviewer in reviewers:
            self._service.add_reviewer(number, reviewer)

    def add_assignees(
        self, ctx: RepoContext, number: int, assignees: Sequence[str]
    ) -> None:
        """Set the assignee; Gerrit keeps a single one, so only the first counts."""
        if not assignees:
            return
        if len(assignees) > 1:
            log.debug(
                "Change %d accepts one assignee, ignoring %s", number, assignees[1:]
            )
        self._service.set_assignee(number, assignees[0])

    def delete_label(self, ctx: RepoContext, number: int, label: str) -> None:
        log.debug("delete_label(%d, %s) not supported", number, label)

    # Files

    def get_raw_file(
        self,
        ctx: RepoContext | None,
        file_name: str,
        repo_name: str | None = None,
        branch_or_tag: str | None = None,
    ) -> str:
        """
        Read a file from the server.

        Without a repository name the context's repository is used, or
        ``All-Projects`` when there is no context. Only the first path
        segment of ``repo_name`` names the project.
        """
        if repo_name:
            repo = repo_name.split("/")[0]
        elif ctx is not None:
            repo = ctx.repository
        else:
            repo = DEFAULT_PROJECT
        branch = branch_or_tag or (ctx.head if ctx is not None else "HEAD")
        return self._service.get_file(repo, branch, file_name)

    def get_json_file(
        self,
        ctx: RepoContext | None,
        file_name: str,
        repo_name: str | None = None,
        branch_or_tag: str | None = None,
    ) -> Any:
        """Read a file as JSON5, which also accepts plain JSON."""
        raw = self.get_raw_file(ctx, file_name, repo_name, branch_or_tag)
        return json5.loads(raw)

    def get_repo_force_rebase(self) -> bool:
        # Every push to refs/for/ rebases the change anyway
        return True

    # Issues are not supported by Gerrit

    def ensure_issue(self, ctx: RepoContext, **kwargs: Any) -> None:
        return None

    def ensure_issue_closing(self, ctx: RepoContext, title: str) -> None:
        return None

    def find_issue(self, ctx: RepoContext, title: str) -> None:
        log.warning("find_issue() is not implemented")
        return None

    def get_issue_list(self, ctx: RepoContext) -> list[Any]:
        return []

    def get_vulnerability_alerts(self, ctx: RepoContext) -> list[Any]:
        return []


def init_platform(
    endpoint: str | None = None,
    username: str | None = None,
    password: str | None = None,
    *,
    git: GitBackend,
    timeout: float = 10.0,
    max_attempts: int = 5,
    sleep: Callable[[float], None] = time.sleep,
) -> GerritPlatform:
    """
    Validate configuration and build a GerritPlatform.

    Args:
        endpoint: Gerrit server URL. Falls back to GERRIT_ENDPOINT.
        username: HTTP username. Falls back to GERRIT_USERNAME or
                  GERRIT_HTTP_USER.
        password: HTTP password. Falls back to GERRIT_PASSWORD or
                  GERRIT_HTTP_PASSWORD.
        git: Working-copy collaborator.
        timeout: Request timeout in seconds.
        max_attempts: Maximum retry attempts for transient failures.
        sleep: Sleep function used between consistency polls.

    Raises:
        PlatformConfigError: If endpoint or credentials are missing.
    """
    endpoint = (endpoint or os.getenv("GERRIT_ENDPOINT", "")).strip()
    username = (
        (username or "").strip()
        or os.getenv("GERRIT_USERNAME", "").strip()
        or os.getenv("GERRIT_HTTP_USER", "").strip()
    )
    password = (
        (password or "").strip()
        or os.getenv("GERRIT_PASSWORD", "").strip()
        or os.getenv("GERRIT_HTTP_PASSWORD", "").strip()
    )
    log.info("init_platform(%s, %s)", endpoint, username)

    if not endpoint:
        raise PlatformConfigError(
            "Init: You must configure a Gerrit Server endpoint"
        )
    if not (username and password):
        raise PlatformConfigError(
            "Init: You must configure a Gerrit Server username/password"
        )

    endpoint = endpoint.rstrip("/") + "/"
    client = build_client(
        endpoint,
        timeout=timeout,
        max_attempts=max_attempts,
        username=username,
        password=password,
    )
    git.set_remote_push_prefix(MAGIC_REF_PREFIX)

    return GerritPlatform(
        GerritService(client),
        git,
        endpoint=endpoint,
        username=username,
        password=password,
        sleep=sleep,
    )


__all__ = [
    "DEFAULT_PROJECT",
    "GerritPlatform",
    "PlatformConfigError",
    "RepositoryArchivedError",
    "init_platform",
    "resolve_repo_context",
]
