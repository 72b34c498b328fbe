"""
Family Task Assistant — Retry-once policy for model-backed calls.

Every model-backed component runs its call-and-decode step through
with_retry(). Upstream failures (network, auth, rate limits) and malformed
output are treated the same: one more attempt, then the caller degrades.
"""

from __future__ import annotations

import logging
from typing import Awaitable, Callable, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class RetryExhaustedError(Exception):
    """Raised when every attempt failed. Wraps the last underlying error."""

    def __init__(self, label: str, attempts: int, last_error: Exception) -> None:
        super().__init__(f"{label} failed after {attempts} attempt(s): {last_error}")
        self.attempts = attempts
        self.last_error = last_error


async def with_retry(
    fn: Callable[[], Awaitable[T]],
    attempts: int = 2,
    label: str = "model call",
) -> T:
    """Await *fn* up to *attempts* times, returning the first success.

    Raises RetryExhaustedError chained to the last failure.
    """
    if attempts < 1:
        raise ValueError("attempts must be >= 1")

    for attempt in range(1, attempts + 1):
        try:
            return await fn()
        except Exception as exc:
            logger.warning(
                "%s failed (attempt %d/%d): %s", label, attempt, attempts, exc,
            )
            if attempt == attempts:
                raise RetryExhaustedError(label, attempts, exc) from exc
