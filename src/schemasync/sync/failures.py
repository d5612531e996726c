"""Consecutive fetch failure tracking."""

from __future__ import annotations

# Consecutive fetch failures before the fetch-error hook fires
DEFAULT_FAILURE_THRESHOLD = 3


class FailureTracker:
    """Counts consecutive object store fetch failures.

    The count is process-local and resets on the first successful fetch.
    Escalation is level-triggered: once the threshold is reached every
    further failure escalates again until a success resets the count.
    """

    def __init__(self, threshold: int = DEFAULT_FAILURE_THRESHOLD) -> None:
        if threshold < 1:
            raise ValueError("threshold must be at least 1")
        self._threshold = threshold
        self._count = 0

    @property
    def count(self) -> int:
        return self._count

    @property
    def threshold(self) -> int:
        return self._threshold

    @property
    def should_escalate(self) -> bool:
        """True while the count is at or above the threshold."""
        return self._count >= self._threshold

    def record_failure(self) -> int:
        """Count a failure and return the new consecutive count."""
        self._count += 1
        return self._count

    def record_success(self) -> None:
        self._count = 0
