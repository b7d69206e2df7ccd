"""
Domain models for meeting slot search and scheduling.
"""

import uuid
from dataclasses import dataclass, field, replace
from typing import List, Mapping, Optional, Sequence

from pendulum import DateTime


@dataclass(frozen=True)
class TimeRange:
    """
    Represents an immutable time range with start and end datetime.

    Invariant: start must be before end.
    """
    start: DateTime
    end: DateTime

    def __post_init__(self):
        if self.start >= self.end:
            raise ValueError(f"Start time {self.start} must be before end time {self.end}")

    def duration_minutes(self) -> int:
        """Return the duration in minutes."""
        return int((self.end - self.start).total_seconds() / 60)

    def overlaps(self, other: "TimeRange | BusyInterval") -> bool:
        """Check if this range shares any instant with another, boundaries included."""
        return self.start <= other.end and self.end >= other.start

    def __str__(self) -> str:
        return f"{self.start.format('YYYY-MM-DD HH:mm')} - {self.end.format('HH:mm')}"


@dataclass(frozen=True)
class BusyInterval:
    """A participant's existing commitment. Read-only input to the slot search."""
    start: DateTime
    end: DateTime


# Participant id -> busy intervals intersecting the search window
BusyTimes = Mapping[str, Sequence[BusyInterval]]


@dataclass
class ScheduleRequest:
    """
    Input for scheduling a new meeting.

    ``start`` and ``end`` are optional so that a missing bound is reported by
    the request validator instead of failing at construction time.
    """
    participant_ids: List[str]
    duration_minutes: int
    start: Optional[DateTime] = None
    end: Optional[DateTime] = None
    title: str = ""

    @property
    def time_range(self) -> TimeRange:
        """The search window. Only valid for a request that passed validation."""
        if self.start is None or self.end is None:
            raise ValueError("Request has no complete time range")
        return TimeRange(start=self.start, end=self.end)


@dataclass(frozen=True)
class CandidateSlot:
    """A fixed-duration interval inside the search window, plus its desirability."""
    time_range: TimeRange
    score: float = 0.0

    @property
    def start(self) -> DateTime:
        return self.time_range.start

    @property
    def end(self) -> DateTime:
        return self.time_range.end

    def with_score(self, score: float) -> "CandidateSlot":
        """Return a copy of this candidate carrying the given score."""
        return replace(self, score=score)


@dataclass(frozen=True)
class User:
    """A participant who can be scheduled for meetings."""
    id: str
    name: str
    created_at: Optional[DateTime] = None

    @classmethod
    def create(cls, name: str, now: DateTime) -> "User":
        """Create a user with a freshly generated identifier."""
        return cls(id=str(uuid.uuid4()), name=name, created_at=now)


@dataclass(frozen=True)
class CalendarEvent:
    """A meeting or other commitment stored in a participant's calendar."""
    id: str
    title: str
    start: DateTime
    end: DateTime
    user_id: str
    created_at: Optional[DateTime] = None

    @classmethod
    def create(
        cls,
        title: str,
        start: DateTime,
        end: DateTime,
        user_id: str,
        now: DateTime,
    ) -> "CalendarEvent":
        """Create an event with a freshly generated identifier."""
        return cls(
            id=str(uuid.uuid4()),
            title=title,
            start=start,
            end=end,
            user_id=user_id,
            created_at=now,
        )

    def as_busy_interval(self) -> BusyInterval:
        return BusyInterval(start=self.start, end=self.end)


@dataclass
class ScheduleResponse:
    """
    Result of a successful scheduling request.
    """
    meeting_id: str
    title: str
    participant_ids: List[str]
    start: DateTime
    end: DateTime
    event_ids: List[str] = field(default_factory=list)

    def format_display(self) -> str:
        """
        Format the scheduled meeting for display.
        Format: Weekday, YYYY-MM-DD | HH:mm – HH:mm
        """
        date_str = self.start.format("dddd, YYYY-MM-DD")
        time_str = f"{self.start.format('HH:mm')} – {self.end.format('HH:mm')}"
        minutes = TimeRange(start=self.start, end=self.end).duration_minutes()
        return f"{date_str} | {time_str} ({minutes} min)"
