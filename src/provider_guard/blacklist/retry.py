"""Retry policy for versioned read-modify-write cycles."""

from __future__ import annotations

from tenacity import AsyncRetrying, retry_if_exception_type, stop_after_attempt, wait_none


class VersionConflict(Exception):
    """Raised inside an attempt when a compare-and-save lost the race."""


def conflict_retrying(max_attempts: int) -> AsyncRetrying:
    # No wait between attempts: the loser re-reads the winner's row at once.
    return AsyncRetrying(
        stop=stop_after_attempt(max_attempts),
        wait=wait_none(),
        retry=retry_if_exception_type(VersionConflict),
        reraise=True,
    )
