# SPDX-License-Identifier: Apache-2.0
# SPDX-FileCopyrightText: 2025 The Linux Foundation
"""
Gerrit data models for changebridge.

This module defines Pydantic models for the Gerrit REST entities the
adapter consumes: changes, revisions, labels, accounts, messages,
projects and branches.

These models provide:
- Type-safe representations of Gerrit API responses
- Factory methods for parsing raw API data
- The repository context threaded through every engine call
"""

from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

CODE_REVIEW_LABEL = "Code-Review"


class GerritChangeStatus(str, Enum):
    """Gerrit change status values."""

    NEW = "NEW"
    MERGED = "MERGED"
    ABANDONED = "ABANDONED"


class GerritAccountInfo(BaseModel):
    """An account as embedded in change, label and message entities."""

    account_id: int | None = None
    name: str | None = None
    email: str | None = None
    username: str | None = None

    @classmethod
    def from_api_response(cls, data: dict[str, Any]) -> GerritAccountInfo:
        return cls(
            account_id=data.get("_account_id"),
            name=data.get("name"),
            email=data.get("email"),
            username=data.get("username"),
        )


class GerritRevisionInfo(BaseModel):
    """
    One patch-set of a change.

    Revisions never change once created; a new patch-set is a new
    revision.
    """

    model_config = ConfigDict(frozen=True)

    ref: str = Field(..., description="Fetchable refspec of the patch-set")
    number: int | None = Field(None, description="Patch-set number")

    @classmethod
    def from_api_response(cls, data: dict[str, Any]) -> GerritRevisionInfo:
        return cls(ref=data.get("ref", ""), number=data.get("_number"))


class GerritLabelInfo(BaseModel):
    """
    Represents label (vote) information for a Gerrit change.

    Gerrit reports ``approved`` and ``rejected`` as the accounts that cast
    the deciding vote. Their absence means no such vote exists yet.
    """

    name: str
    approved: GerritAccountInfo | None = None
    rejected: GerritAccountInfo | None = None
    value: int | None = None
    blocking: bool = False

    @classmethod
    def from_api_response(
        cls, name: str, label_data: dict[str, Any]
    ) -> GerritLabelInfo:
        """
        Create a GerritLabelInfo from Gerrit API label info.

        Args:
            name: The label name (e.g., "Code-Review").
            label_data: The label info dict from Gerrit API.

        Returns:
            A GerritLabelInfo instance.
        """
        approved = None
        if "approved" in label_data:
            approved = GerritAccountInfo.from_api_response(
                label_data["approved"] or {}
            )
        rejected = None
        if "rejected" in label_data:
            rejected = GerritAccountInfo.from_api_response(
                label_data["rejected"] or {}
            )

        return cls(
            name=name,
            approved=approved,
            rejected=rejected,
            value=label_data.get("value"),
            blocking=label_data.get("blocking", False),
        )

    @property
    def is_approved(self) -> bool:
        return self.approved is not None

    @property
    def is_rejected(self) -> bool:
        return self.rejected is not None


class GerritChangeMessageInfo(BaseModel):
    """A message posted on a change."""

    id: str = ""
    message: str = ""
    tag: str | None = None
    author: GerritAccountInfo | None = None
    date: str = ""

    @classmethod
    def from_api_response(cls, data: dict[str, Any]) -> GerritChangeMessageInfo:
        author = data.get("author")
        return cls(
            id=data.get("id", ""),
            message=data.get("message", ""),
            tag=data.get("tag"),
            author=GerritAccountInfo.from_api_response(author) if author else None,
            date=data.get("date", ""),
        )


class GerritChange(BaseModel):
    """
    Represents a Gerrit change as returned by the change endpoints.

    Identity is the Change-Id (stable across rebases and cherry-picks)
    together with the server-assigned change number.
    """

    # Core identifiers
    number: int = Field(..., description="Gerrit change number")
    change_id: str = Field(..., description="Gerrit Change-Id (I-prefixed)")
    project: str = Field("", description="Gerrit project name")

    # Branch info
    branch: str = Field(..., description="Target branch")
    topic: str | None = Field(None, description="Change topic (if set)")
    hashtags: list[str] = Field(default_factory=list, description="Hashtags")

    # Content
    subject: str = Field("", description="First line of commit message")

    # Status
    status: str = Field(..., description="Change status (NEW, MERGED, ABANDONED)")
    submittable: bool = Field(False, description="Whether change can be submitted")
    mergeable: bool | None = Field(None, description="Whether change is mergeable")
    work_in_progress: bool = Field(False, description="Whether change is WIP")
    problems: list[dict[str, Any]] = Field(
        default_factory=list, description="Consistency problems (CHECK option)"
    )

    # Revisions
    current_revision: str = Field("", description="Current revision SHA")
    revisions: dict[str, GerritRevisionInfo] = Field(default_factory=dict)

    # Review state
    labels: dict[str, GerritLabelInfo] = Field(default_factory=dict)
    reviewers: dict[str, Any] | None = Field(
        None, description="Reviewers by state; None when not reported"
    )
    messages: list[GerritChangeMessageInfo] = Field(default_factory=list)

    @classmethod
    def from_api_response(cls, data: dict[str, Any]) -> GerritChange:
        """
        Create a GerritChange from Gerrit REST API response.

        Args:
            data: The change info dict from Gerrit API.

        Returns:
            A GerritChange instance.

        Raises:
            ValueError: If revisions are reported but the current revision
                is not among them.
        """
        current_revision = data.get("current_revision", "")
        revisions = {
            sha: GerritRevisionInfo.from_api_response(rev)
            for sha, rev in (data.get("revisions") or {}).items()
        }
        if revisions and current_revision not in revisions:
            raise ValueError(
                f"Change {data.get('_number')} reports current revision "
                f"{current_revision!r} outside its revisions"
            )

        labels = {
            name: GerritLabelInfo.from_api_response(name, info or {})
            for name, info in (data.get("labels") or {}).items()
        }
        messages = [
            GerritChangeMessageInfo.from_api_response(msg)
            for msg in data.get("messages") or []
        ]

        return cls(
            number=data.get("_number", 0),
            change_id=data.get("change_id", ""),
            project=data.get("project", ""),
            branch=data.get("branch", ""),
            topic=data.get("topic"),
            hashtags=data.get("hashtags") or [],
            subject=data.get("subject", ""),
            status=data.get("status", GerritChangeStatus.NEW.value),
            submittable=data.get("submittable", False),
            mergeable=data.get("mergeable"),
            work_in_progress=data.get("work_in_progress", False),
            problems=data.get("problems") or [],
            current_revision=current_revision,
            revisions=revisions,
            labels=labels,
            reviewers=data.get("reviewers"),
            messages=messages,
        )

    @property
    def is_open(self) -> bool:
        """Check if the change is open (NEW status)."""
        return self.status == GerritChangeStatus.NEW.value

    @property
    def is_merged(self) -> bool:
        """Check if the change has been merged."""
        return self.status == GerritChangeStatus.MERGED.value

    @property
    def current_revision_info(self) -> GerritRevisionInfo | None:
        """The RevisionInfo of the current patch-set, if it was requested."""
        if not self.current_revision:
            return None
        return self.revisions.get(self.current_revision)

    @property
    def code_review(self) -> GerritLabelInfo | None:
        """The Code-Review label, or None if the project does not use it."""
        return self.labels.get(CODE_REVIEW_LABEL)


class GerritProjectInfo(BaseModel):
    """Project metadata from the projects endpoint."""

    id: str = ""
    name: str = ""
    state: str = "ACTIVE"
    parent: str | None = None
    description: str | None = None

    @classmethod
    def from_api_response(cls, data: dict[str, Any]) -> GerritProjectInfo:
        return cls(
            id=data.get("id", ""),
            name=data.get("name", ""),
            state=data.get("state", "ACTIVE"),
            parent=data.get("parent"),
            description=data.get("description"),
        )

    @property
    def is_active(self) -> bool:
        return self.state == "ACTIVE"


class GerritBranchInfo(BaseModel):
    ref: str = ""
    revision: str = ""

    @classmethod
    def from_api_response(cls, data: dict[str, Any]) -> GerritBranchInfo:
        return cls(ref=data.get("ref", ""), revision=data.get("revision", ""))


class GerritMergeableInfo(BaseModel):
    submit_type: str | None = None
    mergeable: bool | None = None

    @classmethod
    def from_api_response(cls, data: dict[str, Any]) -> GerritMergeableInfo:
        return cls(
            submit_type=data.get("submit_type"),
            mergeable=data.get("mergeable"),
        )


class RepoContext(BaseModel):
    """
    The repository an engine call operates against.

    Produced once by repository initialization and passed explicitly to
    every subsequent engine call, so a single process can work against
    several repositories.
    """

    model_config = ConfigDict(frozen=True)

    repository: str = Field(..., description="Gerrit project name")
    head: str = Field("", description="Revision of the project's HEAD branch")
    project_info: GerritProjectInfo | None = None


__all__ = [
    "CODE_REVIEW_LABEL",
    "GerritAccountInfo",
    "GerritBranchInfo",
    "GerritChange",
    "GerritChangeMessageInfo",
    "GerritChangeStatus",
    "GerritLabelInfo",
    "GerritMergeableInfo",
    "GerritProjectInfo",
    "GerritRevisionInfo",
    "RepoContext",
]
