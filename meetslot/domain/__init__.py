"""
Domain layer - Pure business logic without external dependencies.
"""

from .clock import Clock, FixedClock, SystemClock
from .models import (
    BusyInterval,
    BusyTimes,
    CalendarEvent,
    CandidateSlot,
    ScheduleRequest,
    ScheduleResponse,
    TimeRange,
    User,
)
from .scoring import ScoringWeights, SlotScorer
from .slot_enumerator import SlotEnumerator
from .slot_finder import SlotFinder
from .validation import RequestValidator

__all__ = [
    "BusyInterval",
    "BusyTimes",
    "CalendarEvent",
    "CandidateSlot",
    "Clock",
    "FixedClock",
    "RequestValidator",
    "ScheduleRequest",
    "ScheduleResponse",
    "ScoringWeights",
    "SlotEnumerator",
    "SlotFinder",
    "SlotScorer",
    "SystemClock",
    "TimeRange",
    "User",
]
