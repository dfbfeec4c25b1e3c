# SPDX-License-Identifier: Apache-2.0
# SPDX-FileCopyrightText: 2025 The Linux Foundation
"""
Tests for change reconciliation.

This module tests committing files onto an existing change, the
fallback to a plain commit and push, creating pull requests after a
push and updating them.
"""

from unittest.mock import MagicMock

import pytest

from changebridge.gerrit.models import GerritChange, RepoContext
from changebridge.gerrit.reconciler import ChangeNotVisibleError, ChangeReconciler
from changebridge.models import (
    CommitFilesRequest,
    CreateRequest,
    FindPrRequest,
    PrState,
    UpdateRequest,
)
from changebridge.vcs import CommitResult

CHANGE_ID = "I0123456789abcdef0123456789abcdef01234567"


def _change(mergeable=True, with_revision=True):
    data = {
        "_number": 42,
        "change_id": CHANGE_ID,
        "branch": "main",
        "topic": "deps-foo",
        "subject": "Update foo",
        "status": "NEW",
        "mergeable": mergeable,
    }
    if with_revision:
        data["current_revision"] = "oldsha"
        data["revisions"] = {"oldsha": {"ref": "refs/changes/42/42/1", "_number": 1}}
    return GerritChange.from_api_response(data)


@pytest.fixture
def ctx():
    return RepoContext(repository="my-project", head="cafe")


@pytest.fixture
def git():
    """Create a mock working-copy collaborator."""
    git = MagicMock()
    git.prepare_commit.return_value = CommitResult(commit_sha="newsha")
    git.has_changes.return_value = False
    git.push_commit.return_value = True
    git.commit_and_push.return_value = "fallbacksha"
    return git


@pytest.fixture
def locator():
    locator = MagicMock()
    locator.find_change.return_value = _change()
    return locator


@pytest.fixture
def reviews():
    return MagicMock()


@pytest.fixture
def reconciler(git, locator, reviews):
    return ChangeReconciler(
        MagicMock(), git, locator=locator, reviews=reviews, sleep=MagicMock()
    )


@pytest.fixture
def request_():
    return CommitFilesRequest(
        branch_name="main%topic=deps-foo",
        message=["Update foo to v2", "Release notes"],
        files=[{"path": "package.json", "contents": "{}"}],
        platform_commit=True,
    )


class TestCommitFiles:
    """Tests for ChangeReconciler.commit_files."""

    def test_looks_up_open_change_for_topic(self, reconciler, locator, ctx, request_):
        """Test the uncached candidate search for a topic branch."""
        reconciler.commit_files(ctx, request_)

        locator.find_change.assert_called_once_with(
            ctx,
            FindPrRequest(branch_name="main", topic="deps-foo", state=PrState.OPEN),
            refresh_cache=True,
        )

    def test_same_content_skips_push(self, reconciler, git, ctx, request_):
        """Test that identical content keeps the current revision."""
        sha = reconciler.commit_files(ctx, request_)

        assert sha == "oldsha"
        git.fetch_revspec.assert_called_once_with("refs/changes/42/42/1")
        git.has_changes.assert_called_once_with(["HEAD", "FETCH_HEAD"])
        git.push_commit.assert_not_called()
        git.commit_and_push.assert_not_called()

    def test_change_id_appended(self, reconciler, git, ctx, request_):
        """Test that the candidate's Change-Id becomes the last paragraph."""
        reconciler.commit_files(ctx, request_)

        prepared = git.prepare_commit.call_args.args[0]
        assert prepared.message_lines == [
            "Update foo to v2",
            "Release notes",
            f"Change-Id: {CHANGE_ID}",
        ]

    def test_nothing_to_commit(self, reconciler, git, ctx, request_):
        """Test that an empty commit keeps the current revision."""
        git.prepare_commit.return_value = None

        assert reconciler.commit_files(ctx, request_) == "oldsha"
        git.fetch_revspec.assert_not_called()
        git.push_commit.assert_not_called()

    def test_diff_pushes_new_patch_set(self, reconciler, git, ctx, request_):
        """Test that changed content is pushed and the branch registered."""
        git.has_changes.return_value = True

        sha = reconciler.commit_files(ctx, request_)

        assert sha == "newsha"
        git.push_commit.assert_called_once()
        git.register_branch.assert_called_once_with("main%topic=deps-foo")
        git.commit_and_push.assert_not_called()

    def test_unmergeable_pushes_without_diff(
        self, reconciler, git, locator, ctx, request_
    ):
        """Test that a change that no longer merges gets a new patch-set."""
        locator.find_change.return_value = _change(mergeable=False)

        assert reconciler.commit_files(ctx, request_) == "newsha"
        git.push_commit.assert_called_once()

    def test_unknown_mergeability_skips_push(
        self, reconciler, git, locator, ctx, request_
    ):
        """Test that unreported mergeability is not treated as a conflict."""
        locator.find_change.return_value = _change(mergeable=None)

        assert reconciler.commit_files(ctx, request_) == "oldsha"
        git.push_commit.assert_not_called()

    def test_failed_push_falls_back(self, reconciler, git, ctx, request_):
        """Test that a failed push falls back to commit and push."""
        git.has_changes.return_value = True
        git.push_commit.return_value = False

        assert reconciler.commit_files(ctx, request_) == "fallbacksha"
        fallback = git.commit_and_push.call_args.args[0]
        assert fallback.platform_commit is False
        git.register_branch.assert_not_called()

    def test_no_candidate_falls_back(self, reconciler, git, locator, ctx, request_):
        """Test the plain commit and push when no change exists yet."""
        locator.find_change.return_value = None

        assert reconciler.commit_files(ctx, request_) == "fallbacksha"
        git.prepare_commit.assert_not_called()
        fallback = git.commit_and_push.call_args.args[0]
        assert fallback.message_lines == ["Update foo to v2", "Release notes"]

    def test_candidate_without_revision_falls_back(
        self, reconciler, git, locator, ctx, request_
    ):
        """Test that a change without revision info is not synced."""
        locator.find_change.return_value = _change(with_revision=False)

        assert reconciler.commit_files(ctx, request_) == "fallbacksha"
        git.prepare_commit.assert_not_called()

    def test_branch_without_suffix(self, reconciler, git, locator, ctx):
        """Test that a branch without topic or hashtag skips the search."""
        request = CommitFilesRequest(branch_name="main", message="Update foo")

        assert reconciler.commit_files(ctx, request) == "fallbacksha"
        locator.find_change.assert_not_called()


class TestCreate:
    """Tests for ChangeReconciler.create."""

    def test_found_after_polling(self, reconciler, locator, reviews, ctx):
        """Test that the pushed change is found once it becomes searchable."""
        locator.find_change.side_effect = [None, None, _change()]
        request = CreateRequest(
            source_branch="main%topic=deps-foo",
            pr_title="Update foo",
            pr_body="Release notes",
        )

        pr = reconciler.create(ctx, request)

        assert pr.number == 42
        assert pr.state == PrState.OPEN
        assert locator.find_change.call_count == 3
        assert locator.find_change.call_args.kwargs["refresh_cache"] is True
        reviews.ensure_message.assert_called_once_with(42, "Release notes")
        reviews.ensure_approval.assert_called_once_with(42)

    def test_not_visible(self, git, locator, reviews, ctx):
        """Test the error after the last poll finds nothing."""
        locator.find_change.return_value = None
        sleep = MagicMock()
        reconciler = ChangeReconciler(
            MagicMock(), git, locator=locator, reviews=reviews, sleep=sleep
        )

        with pytest.raises(ChangeNotVisibleError, match="refs/for/main%topic=x"):
            reconciler.create(
                ctx, CreateRequest(source_branch="main%topic=x", pr_title="t")
            )

        assert locator.find_change.call_count == 5
        assert sleep.call_count == 4
        reviews.ensure_message.assert_not_called()


class TestUpdate:
    """Tests for ChangeReconciler.update and reconcile."""

    def test_body_applied(self, reconciler, reviews, ctx):
        """Test that a PR body is posted and approved."""
        reconciler.update(ctx, UpdateRequest(number=42, pr_body="New notes"))

        reviews.ensure_message.assert_called_once_with(42, "New notes")
        reviews.ensure_approval.assert_called_once_with(42)

    def test_close_abandons(self, git, locator, reviews, ctx):
        """Test that closing a PR abandons the change."""
        service = MagicMock()
        reconciler = ChangeReconciler(service, git, locator=locator, reviews=reviews)

        reconciler.update(ctx, UpdateRequest(number=42, state=PrState.CLOSED))

        service.abandon_change.assert_called_once_with(42)
        reviews.ensure_message.assert_not_called()

    def test_reconcile_dispatch(self, reconciler, reviews, ctx):
        """Test dispatch on the request variant."""
        assert reconciler.reconcile(ctx, UpdateRequest(number=42)) is None

        pr = reconciler.reconcile(
            ctx, CreateRequest(source_branch="main%topic=deps-foo", pr_title="t")
        )
        assert pr.number == 42
