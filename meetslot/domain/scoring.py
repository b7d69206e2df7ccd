"""
Desirability scoring for candidate meeting slots.

The composite score is a weighted sum of four independent heuristics:

- working hours: prefer slots starting inside the 09:00-17:00 day
- early slot: within the working day, earlier is better
- gap minimization: avoid awkwardly short or very long gaps to neighbours
- buffer time: keep at least 15 minutes between meetings

The two gap-based heuristics fold a multiplicative factor over each
participant's busy intervals and average the factors across participants.
Penalties compound when several events sit close to the candidate.
"""

from dataclasses import dataclass
from functools import reduce
from typing import Callable, Iterator, Optional, Sequence

from pendulum import DateTime

from .models import BusyInterval, BusyTimes, CandidateSlot

WORK_DAY_START = 9
WORK_DAY_END = 17
DESIRED_BUFFER_MINUTES = 15
LARGE_GAP_MINUTES = 60


@dataclass(frozen=True)
class ScoringWeights:
    """Relative importance of each sub-score."""
    working_hours: float = 1.0
    early_slot: float = 0.8
    gap_minimization: float = 0.6
    buffer_time: float = 0.4


def working_hours_score(hour: int) -> float:
    """1.0 inside the working day, 0.5 in the hour either side, 0.0 otherwise."""
    if WORK_DAY_START <= hour < WORK_DAY_END:
        return 1.0
    if WORK_DAY_START - 1 <= hour < WORK_DAY_START or WORK_DAY_END <= hour < WORK_DAY_END + 1:
        return 0.5
    return 0.0


def early_slot_score(hour: int) -> float:
    """Linear decay from 1.0 at 09:00 to 0.0 at 17:00; 0.0 outside that range."""
    if WORK_DAY_START <= hour <= WORK_DAY_END:
        return 1.0 - (hour - WORK_DAY_START) / float(WORK_DAY_END - WORK_DAY_START)
    return 0.0


def _gaps_minutes(candidate: CandidateSlot, busy: BusyInterval) -> Iterator[float]:
    """Yield the gap to a busy interval lying strictly before or strictly after the candidate."""
    if busy.end < candidate.start:
        yield (candidate.start - busy.end).total_seconds() / 60
    if busy.start > candidate.end:
        yield (busy.start - candidate.end).total_seconds() / 60


def _gap_factor(gap: float) -> float:
    if gap < DESIRED_BUFFER_MINUTES:
        return 0.5
    if gap > LARGE_GAP_MINUTES:
        return 0.8
    return 1.0


def _buffer_factor(gap: float) -> float:
    if gap < DESIRED_BUFFER_MINUTES:
        return gap / float(DESIRED_BUFFER_MINUTES)
    return 1.0


def participant_factor(
    candidate: CandidateSlot,
    intervals: Sequence[BusyInterval],
    gap_factor: Callable[[float], float],
) -> float:
    """
    Fold a per-gap factor over one participant's busy intervals.

    Starts at 1.0 and multiplies in ``gap_factor(gap)`` for every neighbouring
    interval. The result stays within [0, 1] for factors within [0, 1].
    """
    gaps = (gap for busy in intervals for gap in _gaps_minutes(candidate, busy))
    return reduce(lambda acc, gap: acc * gap_factor(gap), gaps, 1.0)


def _average_over_participants(
    candidate: CandidateSlot,
    busy_times: BusyTimes,
    gap_factor: Callable[[float], float],
) -> float:
    if not busy_times:
        return 1.0
    factors = [
        participant_factor(candidate, intervals, gap_factor)
        for intervals in busy_times.values()
    ]
    return sum(factors) / len(factors)


def gap_minimization_score(candidate: CandidateSlot, busy_times: BusyTimes) -> float:
    """Halve for gaps under 15 minutes, scale by 0.8 for gaps over an hour."""
    return _average_over_participants(candidate, busy_times, _gap_factor)


def buffer_time_score(candidate: CandidateSlot, busy_times: BusyTimes) -> float:
    """Scale proportionally to the gap when it is under 15 minutes."""
    return _average_over_participants(candidate, busy_times, _buffer_factor)


class SlotScorer:
    """
    Computes the composite score of a candidate slot.

    Hour-of-day heuristics use the start hour in ``timezone``, ignoring minutes.
    """

    def __init__(self, weights: Optional[ScoringWeights] = None, timezone: str = "UTC"):
        self.weights = weights or ScoringWeights()
        self.timezone = timezone

    def score(self, candidate: CandidateSlot, busy_times: BusyTimes) -> float:
        """
        Score a candidate slot. Higher is better.

        Args:
            candidate: The slot to evaluate
            busy_times: Busy intervals per participant

        Returns:
            Weighted sum of the four sub-scores
        """
        hour = self._local_hour(candidate.start)

        return (
            self.weights.working_hours * working_hours_score(hour)
            + self.weights.early_slot * early_slot_score(hour)
            + self.weights.gap_minimization * gap_minimization_score(candidate, busy_times)
            + self.weights.buffer_time * buffer_time_score(candidate, busy_times)
        )

    def _local_hour(self, instant: DateTime) -> int:
        return instant.in_timezone(self.timezone).hour
