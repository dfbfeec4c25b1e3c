# SPDX-License-Identifier: Apache-2.0
# SPDX-FileCopyrightText: 2025 The Linux Foundation
"""Branch status aggregation over the open changes of a logical branch."""

from __future__ import annotations

from collections.abc import Sequence

from changebridge.gerrit.models import GerritChange
from changebridge.models import BranchStatus


def aggregate_branch_status(changes: Sequence[GerritChange]) -> BranchStatus:
    """
    Combine per-change flags into one branch status.

    No changes yields yellow: a change created moments ago may not be
    searchable yet, so absence is not reported as pending or failed.
    """
    if not changes:
        return BranchStatus.YELLOW
    if all(change.submittable for change in changes):
        return BranchStatus.GREEN
    if any(change.problems for change in changes):
        return BranchStatus.RED
    return BranchStatus.YELLOW


__all__ = ["aggregate_branch_status"]
