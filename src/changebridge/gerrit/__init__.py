# SPDX-License-Identifier: Apache-2.0
# SPDX-FileCopyrightText: 2025 The Linux Foundation
"""
Gerrit integration package for changebridge.

This package lets branch/pull-request automation work against Gerrit
changes: it finds the change behind a logical branch, creates and updates
changes through pushes to refs/for/, applies review actions idempotently
and reduces change state to a branch status.

Modules:
    client: REST client with retry, timeout and response caching
    models: Pydantic models for Gerrit data structures
    service: Typed access to the Gerrit REST endpoints
    query: Search query construction
    utils: Change to pull request mapping and branch-name encoding
    locator: Finding the change behind a logical branch
    review: Idempotent messages and approvals
    retry: Polling for changes the search index has not caught up with
    status: Branch status aggregation
    reconciler: Create/update cycle of changes
    platform: Branch/PR facade used by the automation

Usage:
    from changebridge.gerrit import init_platform

    platform = init_platform("https://gerrit.example.org/", "bot", "secret", git=git)
    ctx = platform.init_repo("my-project")
"""

from changebridge.gerrit.client import (
    GerritAuthError,
    GerritNotFoundError,
    GerritRestClient,
    GerritRestError,
    build_client,
)
from changebridge.gerrit.locator import ChangeLocator
from changebridge.gerrit.models import (
    GerritChange,
    GerritChangeStatus,
    GerritLabelInfo,
    GerritProjectInfo,
    GerritRevisionInfo,
    RepoContext,
)
from changebridge.gerrit.platform import (
    GerritPlatform,
    RepositoryArchivedError,
    init_platform,
)
from changebridge.gerrit.query import ChangeFilter, map_pr_state_to_filter
from changebridge.gerrit.reconciler import (
    ChangeNotVisibleError,
    ChangeReconciler,
)
from changebridge.gerrit.retry import poll_until_found
from changebridge.gerrit.review import ReviewApplier
from changebridge.gerrit.service import (
    GerritService,
    GerritServiceError,
    create_gerrit_service,
)
from changebridge.gerrit.status import aggregate_branch_status
from changebridge.gerrit.utils import (
    PlatformConfigError,
    map_change_to_pr,
    split_topic_and_branch,
)

__all__ = [
    # Client
    "GerritAuthError",
    "GerritNotFoundError",
    "GerritRestClient",
    "GerritRestError",
    "build_client",
    # Models
    "GerritChange",
    "GerritChangeStatus",
    "GerritLabelInfo",
    "GerritProjectInfo",
    "GerritRevisionInfo",
    "RepoContext",
    # Service
    "GerritService",
    "GerritServiceError",
    "create_gerrit_service",
    # Engine
    "ChangeFilter",
    "ChangeLocator",
    "ChangeNotVisibleError",
    "ChangeReconciler",
    "ReviewApplier",
    "aggregate_branch_status",
    "map_change_to_pr",
    "map_pr_state_to_filter",
    "poll_until_found",
    "split_topic_and_branch",
    # Platform
    "GerritPlatform",
    "PlatformConfigError",
    "RepositoryArchivedError",
    "init_platform",
]
