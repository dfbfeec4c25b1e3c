# SPDX-License-Identifier: Apache-2.0
# SPDX-FileCopyrightText: 2025 The Linux Foundation
"""
Tests for Gerrit data models.

This module tests parsing of change, label, message, project and branch
responses and the repository context.
"""

import pytest
from pydantic import ValidationError

from changebridge.gerrit.models import (
    GerritBranchInfo,
    GerritChange,
    GerritChangeMessageInfo,
    GerritChangeStatus,
    GerritLabelInfo,
    GerritProjectInfo,
    GerritRevisionInfo,
    RepoContext,
)
from changebridge.models import CommitFilesRequest, CreateRequest, UpdateRequest


@pytest.fixture
def change_data():
    """Sample change detail response."""
    return {
        "_number": 4711,
        "change_id": "I0123456789abcdef0123456789abcdef01234567",
        "project": "my-project",
        "branch": "main",
        "topic": "deps-foo",
        "hashtags": ["renovate"],
        "subject": "Update dependency foo to v2",
        "status": "NEW",
        "submittable": False,
        "mergeable": True,
        "current_revision": "abc123",
        "revisions": {
            "abc123": {"ref": "refs/changes/11/4711/2", "_number": 2},
        },
        "labels": {
            "Code-Review": {
                "approved": {"_account_id": 1000, "username": "bot"},
                "value": 2,
            },
            "Verified": {"rejected": {"_account_id": 1001}, "blocking": True},
        },
        "reviewers": {"REVIEWER": [{"_account_id": 1000}]},
        "messages": [
            {
                "id": "m1",
                "message": "Patch Set 1:\n\nRelease notes",
                "tag": "pull-request",
                "author": {"_account_id": 1000, "name": "Bot"},
                "date": "2025-01-01 00:00:00.000000000",
            }
        ],
    }


class TestGerritChange:
    """Tests for GerritChange parsing."""

    def test_from_api_response(self, change_data):
        """Test parsing a full change response."""
        change = GerritChange.from_api_response(change_data)

        assert change.number == 4711
        assert change.branch == "main"
        assert change.topic == "deps-foo"
        assert change.hashtags == ["renovate"]
        assert change.is_open is True
        assert change.is_merged is False
        assert change.mergeable is True
        assert change.reviewers is not None
        assert len(change.messages) == 1
        assert change.messages[0].author.name == "Bot"

    def test_current_revision_info(self, change_data):
        """Test resolving the current patch-set."""
        change = GerritChange.from_api_response(change_data)

        revision = change.current_revision_info
        assert revision == GerritRevisionInfo(ref="refs/changes/11/4711/2", number=2)

    def test_current_revision_outside_revisions(self, change_data):
        """Test that an inconsistent current revision is rejected."""
        change_data["current_revision"] = "def456"

        with pytest.raises(ValueError, match="def456"):
            GerritChange.from_api_response(change_data)

    def test_minimal_response(self):
        """Test parsing a search result without detail options."""
        change = GerritChange.from_api_response(
            {"_number": 1, "change_id": "I1", "branch": "main", "status": "MERGED"}
        )

        assert change.is_merged is True
        assert change.current_revision_info is None
        assert change.code_review is None
        assert change.reviewers is None
        assert change.problems == []

    def test_code_review_label(self, change_data):
        """Test access to the Code-Review label."""
        change = GerritChange.from_api_response(change_data)

        assert change.code_review is not None
        assert change.code_review.is_approved is True
        assert change.code_review.approved.username == "bot"
        assert change.labels["Verified"].is_rejected is True
        assert change.labels["Verified"].blocking is True

    def test_status_values(self):
        """Test the change status enum values."""
        assert [s.value for s in GerritChangeStatus] == ["NEW", "MERGED", "ABANDONED"]


class TestGerritLabelInfo:
    """Tests for GerritLabelInfo."""

    def test_no_votes(self):
        """Test a label without deciding votes."""
        label = GerritLabelInfo.from_api_response("Code-Review", {})

        assert label.is_approved is False
        assert label.is_rejected is False

    def test_empty_account_still_counts(self):
        """Test that an approved marker without account details counts."""
        label = GerritLabelInfo.from_api_response("Code-Review", {"approved": {}})

        assert label.is_approved is True


class TestGerritChangeMessageInfo:
    """Tests for change messages."""

    def test_without_author(self):
        """Test a message posted by the server itself."""
        msg = GerritChangeMessageInfo.from_api_response(
            {"id": "m2", "message": "Change has been successfully merged"}
        )

        assert msg.author is None
        assert msg.tag is None


class TestProjectAndBranch:
    """Tests for project and branch metadata."""

    def test_active_project(self):
        """Test that only ACTIVE projects are active."""
        assert GerritProjectInfo.from_api_response({"name": "p"}).is_active is True
        readonly = GerritProjectInfo.from_api_response(
            {"name": "p", "state": "READ_ONLY"}
        )
        assert readonly.is_active is False

    def test_branch_info(self):
        """Test parsing the HEAD branch response."""
        info = GerritBranchInfo.from_api_response(
            {"ref": "refs/heads/main", "revision": "cafe"}
        )

        assert info.ref == "refs/heads/main"
        assert info.revision == "cafe"


class TestRepoContext:
    """Tests for RepoContext."""

    def test_head_revision(self):
        """Test that the context carries the HEAD revision."""
        ctx = RepoContext(repository="my-project", head="cafe")
        assert ctx.head == "cafe"
        assert not hasattr(ctx, "default_branch")

    def test_frozen(self):
        """Test that the context cannot be modified."""
        ctx = RepoContext(repository="my-project")

        with pytest.raises(ValidationError):
            ctx.repository = "other"


class TestRequests:
    """Tests for the generic request models."""

    def test_request_kinds(self):
        """Test the tagged request variants."""
        create = CreateRequest(source_branch="main%topic=x", pr_title="t")
        update = UpdateRequest(number=1)

        assert create.kind == "create"
        assert update.kind == "update"

    def test_message_lines(self):
        """Test message normalization to a list of paragraphs."""
        single = CommitFilesRequest(branch_name="main", message="Update foo")
        multi = CommitFilesRequest(branch_name="main", message=["a", "b"])

        assert single.message_lines == ["Update foo"]
        assert multi.message_lines == ["a", "b"]
