# SPDX-License-Identifier: Apache-2.0
# SPDX-FileCopyrightText: 2025 The Linux Foundation
"""
Idempotent review actions on Gerrit changes.

Each action checks the current server state (bypassing the response
cache) before writing. The check and the write are not atomic, so a
concurrent writer can still cause one duplicate message or vote.
"""

from __future__ import annotations

import logging

from changebridge.gerrit.models import CODE_REVIEW_LABEL, GerritChange
from changebridge.gerrit.service import GerritService

log = logging.getLogger("changebridge.gerrit.review")

# Tag marking messages posted by the automation
PR_MESSAGE_TAG = "pull-request"

APPROVAL_VALUE = 2


class ReviewApplier:
    """Posts review messages and the default approval at most once."""

    def __init__(self, service: GerritService) -> None:
        self._service = service

    def message_exists(self, change_number: int, message: str) -> bool:
        """
        Check whether any message on the change already contains the text.

        Gerrit drops trailing newlines from stored messages, so the
        candidate is trimmed before matching.
        """
        candidate = message.strip()
        messages = self._service.get_messages(change_number)
        return any(candidate in existing.message for existing in messages)

    def ensure_message(
        self, change_number: int, message: str, tag: str = PR_MESSAGE_TAG
    ) -> bool:
        """
        Post a message unless an existing one contains it.

        Returns:
            True if a message was posted, False if it already existed.
        """
        if self.message_exists(change_number, message):
            log.debug("Message already present on change %d", change_number)
            return False
        self._service.add_message(change_number, message, tag=tag)
        log.info("Posted message on change %d", change_number)
        return True

    def is_approved(self, change_number: int) -> bool:
        """
        Check the Code-Review label of a change.

        A project without the label has nothing to approve, which counts
        as approved.
        """
        change = self._service.get_change_detail(change_number, use_cache=False)
        label = change.code_review
        return label is None or label.is_approved

    def is_rejected(self, change_number: int) -> bool:
        change = self._service.get_change_detail(change_number, use_cache=False)
        label = change.code_review
        return label is not None and label.is_rejected

    def ensure_approval(self, change_number: int) -> bool:
        """
        Vote Code-Review +2 unless the change is already approved.

        Returns:
            True if a vote was posted.
        """
        if self.is_approved(change_number):
            log.debug("Change %d already approved", change_number)
            return False
        self._service.set_label(change_number, CODE_REVIEW_LABEL, APPROVAL_VALUE)
        log.info(
            "Voted %s +%d on change %d",
            CODE_REVIEW_LABEL,
            APPROVAL_VALUE,
            change_number,
        )
        return True


def was_approved_by(change: GerritChange, username: str) -> bool:
    """Check whether the Code-Review approval was cast by a given user."""
    label = change.code_review
    if label is None or label.approved is None:
        return False
    return label.approved.username == username


__all__ = [
    "APPROVAL_VALUE",
    "PR_MESSAGE_TAG",
    "ReviewApplier",
    "was_approved_by",
]
