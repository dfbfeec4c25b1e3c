# SPDX-License-Identifier: Apache-2.0
# SPDX-FileCopyrightText: 2025 The Linux Foundation
"""
Bounded polling for results that the search index has not caught up with.

A change created by a push is not immediately visible to change searches.
Polling uses a linear backoff (1s, 2s, 3s, ...) between attempts.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from typing import TypeVar

log = logging.getLogger("changebridge.gerrit.retry")

T = TypeVar("T")

DEFAULT_POLL_ATTEMPTS = 5
DEFAULT_POLL_BASE_DELAY = 1.0


def _linear_backoff(attempt: int, base_delay: float = DEFAULT_POLL_BASE_DELAY) -> float:
    """Delay after the given (1-based) attempt."""
    return attempt * base_delay


def poll_until_found(
    fetch: Callable[[], T | None],
    attempts: int = DEFAULT_POLL_ATTEMPTS,
    base_delay: float = DEFAULT_POLL_BASE_DELAY,
    sleep: Callable[[float], None] = time.sleep,
) -> T | None:
    """
    Call ``fetch`` until it returns something other than None.

    Args:
        fetch: Zero-argument callable performing one lookup.
        attempts: Maximum number of calls.
        base_delay: Seconds per attempt number to wait between calls.
        sleep: Sleep function, replaceable in tests.

    Returns:
        The first non-None result, or None after the last attempt.
    """
    for attempt in range(1, attempts + 1):
        result = fetch()
        if result is not None:
            return result
        if attempt < attempts:
            delay = _linear_backoff(attempt, base_delay)
            log.debug(
                "Lookup attempt %d/%d found nothing, retrying in %.1fs",
                attempt,
                attempts,
                delay,
            )
            sleep(delay)
    log.warning("Lookup found nothing after %d attempts", attempts)
    return None


__all__ = [
    "DEFAULT_POLL_ATTEMPTS",
    "DEFAULT_POLL_BASE_DELAY",
    "poll_until_found",
]
