"""
Pairwise overlap test deciding whether a candidate slot is free.

Touching intervals count as a conflict: a candidate ending exactly when a busy
interval starts, or starting exactly when one ends, is not free.
"""

from .models import BusyInterval, BusyTimes, TimeRange


def is_free(candidate: TimeRange, busy: BusyInterval) -> bool:
    """Return True if the candidate lies strictly before or strictly after the busy interval."""
    return not candidate.overlaps(busy)


def is_free_for_all(candidate: TimeRange, busy_times: BusyTimes) -> bool:
    """Return True if the candidate is free against every busy interval of every participant."""
    return all(
        is_free(candidate, busy)
        for intervals in busy_times.values()
        for busy in intervals
    )
