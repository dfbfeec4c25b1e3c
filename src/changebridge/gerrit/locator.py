# SPDX-License-Identifier: Apache-2.0
# SPDX-FileCopyrightText: 2025 The Linux Foundation
"""
Locate the change that corresponds to a logical branch.

The canonical match among several results is the last one the server
returns. The search endpoint documents no ordering, so this is a fragile
choice, but callers rely on it and it is kept as is.
"""

from __future__ import annotations

import logging

from changebridge.gerrit.models import GerritChange, RepoContext
from changebridge.gerrit.query import SEARCH_OPTIONS, ChangeFilter
from changebridge.gerrit.service import GerritService
from changebridge.models import FindPrRequest

log = logging.getLogger("changebridge.gerrit.locator")


class ChangeLocator:
    """Runs own-change searches for a repository context."""

    def __init__(self, service: GerritService) -> None:
        self._service = service

    def find_changes(
        self,
        ctx: RepoContext,
        request: FindPrRequest,
        refresh_cache: bool = False,
    ) -> list[GerritChange]:
        """
        Find our own changes matching a request.

        Args:
            ctx: Repository the search is restricted to.
            request: Branch, state and topic/hashtag criteria.
            refresh_cache: Bypass cached search results, e.g. right after
                a push.

        Returns:
            Matching changes in server order; empty when none exist yet.
        """
        query = ChangeFilter.for_request(ctx, request).to_query()
        changes = self._service.find_changes(
            query, SEARCH_OPTIONS, use_cache=not refresh_cache
        )
        log.info("find_changes(%s) => %d", query, len(changes))
        return changes

    def find_change(
        self,
        ctx: RepoContext,
        request: FindPrRequest,
        refresh_cache: bool = False,
    ) -> GerritChange | None:
        """Return the canonical (last) matching change, or None."""
        changes = self.find_changes(ctx, request, refresh_cache)
        return changes[-1] if changes else None


__all__ = ["ChangeLocator"]
