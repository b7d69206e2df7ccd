"""
Deterministic selection of the best scored candidate.
"""

from typing import Iterable, List, Optional, Tuple

from .models import CandidateSlot


def _ranking_key(candidate: CandidateSlot) -> Tuple[float, float]:
    # Highest score first; equal scores fall back to the earliest start
    return (-candidate.score, candidate.start.timestamp())


def rank_slots(candidates: Iterable[CandidateSlot]) -> List[CandidateSlot]:
    """Order candidates by score descending, then by start ascending."""
    return sorted(candidates, key=_ranking_key)


def select_optimal_slot(candidates: Iterable[CandidateSlot]) -> Optional[CandidateSlot]:
    """Return the best candidate, or None when there are no candidates."""
    return min(candidates, key=_ranking_key, default=None)
