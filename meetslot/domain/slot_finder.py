"""
Core business logic for finding the optimal meeting slot.

This is the heart of the application - pure domain logic without any
external dependencies (no API calls, no database, no I/O).
"""

import logging
import time
from typing import Iterator, List, Optional

from .exceptions import SearchAbortedError
from .models import BusyTimes, CandidateSlot, ScheduleRequest
from .scoring import SlotScorer
from .selector import rank_slots, select_optimal_slot
from .slot_enumerator import SlotEnumerator

logger = logging.getLogger(__name__)


class SlotFinder:
    """
    Finds the best meeting slot that every participant can attend.

    Algorithm:
    1. Enumerate 15-minute-aligned candidates inside the request window
    2. Drop candidates overlapping any participant's busy interval
    3. Score the survivors
    4. Pick the highest score, earliest start on ties

    The request must already have passed RequestValidator.
    """

    def __init__(
        self,
        enumerator: Optional[SlotEnumerator] = None,
        scorer: Optional[SlotScorer] = None,
    ):
        self.enumerator = enumerator or SlotEnumerator()
        self.scorer = scorer or SlotScorer()

    def find_optimal_slot(
        self,
        request: ScheduleRequest,
        busy_times: BusyTimes,
        deadline: Optional[float] = None,
    ) -> Optional[CandidateSlot]:
        """
        Find the single best slot.

        Args:
            request: A validated scheduling request
            busy_times: Dict mapping participant id to their busy intervals
            deadline: Optional ``time.monotonic()`` value after which the search stops

        Returns:
            The winning CandidateSlot, or None if no slot is free for everyone

        Raises:
            SearchAbortedError: If the deadline passes before every candidate is scored
        """
        best = select_optimal_slot(self._scored_candidates(request, busy_times, deadline))

        if best is None:
            logger.debug("No free slot for %d participant(s)", len(request.participant_ids))
        else:
            logger.debug("Selected slot %s with score %.3f", best.time_range, best.score)

        return best

    def rank_slots(
        self,
        request: ScheduleRequest,
        busy_times: BusyTimes,
        limit: Optional[int] = None,
        deadline: Optional[float] = None,
    ) -> List[CandidateSlot]:
        """
        Return all free slots ordered best first.

        Args:
            request: A validated scheduling request
            busy_times: Dict mapping participant id to their busy intervals
            limit: Optional maximum number of slots to return, at least 1
            deadline: Optional ``time.monotonic()`` value after which the search stops
        """
        if limit is not None and limit < 1:
            raise ValueError(f"limit must be at least 1, got {limit}")

        ranked = rank_slots(self._scored_candidates(request, busy_times, deadline))
        logger.debug("Ranked %d candidate slot(s)", len(ranked))

        if limit is not None:
            return ranked[:limit]
        return ranked

    def _scored_candidates(
        self,
        request: ScheduleRequest,
        busy_times: BusyTimes,
        deadline: Optional[float],
    ) -> Iterator[CandidateSlot]:
        for candidate in self.enumerator.enumerate(request, busy_times):
            if deadline is not None and time.monotonic() > deadline:
                raise SearchAbortedError("Slot search deadline expired")
            yield candidate.with_score(self.scorer.score(candidate, busy_times))
