"""
Generation of fixed-granularity candidate slots inside a search window.
"""

from typing import Iterator

from .availability import is_free_for_all
from .models import BusyTimes, CandidateSlot, ScheduleRequest, TimeRange

DEFAULT_STEP_MINUTES = 15


class SlotEnumerator:
    """
    Walks the request window in fixed steps and yields every slot that all
    participants can attend.

    Slots come out in ascending start order, which the selector relies on for
    tie-breaking.
    """

    def __init__(self, step_minutes: int = DEFAULT_STEP_MINUTES):
        if step_minutes <= 0:
            raise ValueError(f"step_minutes must be greater than zero, got {step_minutes}")
        self.step_minutes = step_minutes

    def enumerate(self, request: ScheduleRequest, busy_times: BusyTimes) -> Iterator[CandidateSlot]:
        """
        Yield unscored candidate slots for a validated request.

        Args:
            request: A request that passed RequestValidator
            busy_times: Busy intervals per participant

        Yields:
            CandidateSlot objects of exactly ``request.duration_minutes``
        """
        window = request.time_range
        current = window.start

        while current < window.end:
            slot_end = current.add(minutes=request.duration_minutes)

            # A slot ending exactly on the window end is excluded
            if slot_end < window.end:
                candidate = TimeRange(start=current, end=slot_end)
                if is_free_for_all(candidate, busy_times):
                    yield CandidateSlot(time_range=candidate)

            current = current.add(minutes=self.step_minutes)
