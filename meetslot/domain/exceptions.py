"""
Domain-specific exception hierarchy for the meeting scheduler.
"""

from enum import Enum


class MeetslotError(Exception):
    """Base class for all application-level errors."""


class ValidationErrorKind(str, Enum):
    """Reasons a scheduling request can be rejected, in the order they are checked."""
    EMPTY_PARTICIPANTS = "empty_participants"
    EMPTY_PARTICIPANT_ID = "empty_participant_id"
    DUPLICATE_PARTICIPANT = "duplicate_participant"
    INVALID_DURATION = "invalid_duration"
    MISSING_START_TIME = "missing_start_time"
    MISSING_END_TIME = "missing_end_time"
    START_AFTER_END = "start_after_end"
    START_IN_PAST = "start_in_past"
    END_BEYOND_ONE_YEAR = "end_beyond_one_year"
    DURATION_EXCEEDS_RANGE = "duration_exceeds_range"


class ValidationError(MeetslotError):
    """Raised when a scheduling request is structurally or semantically invalid."""

    def __init__(self, kind: ValidationErrorKind, message: str):
        super().__init__(message)
        self.kind = kind
        self.message = message


class NoAvailableSlotError(MeetslotError):
    """Raised when a well-formed request cannot be satisfied by any slot."""

    def __init__(self, message: str = "No available time slot found for all participants"):
        super().__init__(message)


class UserNotFoundError(MeetslotError):
    """Raised when a participant does not exist in the calendar store."""

    def __init__(self, user_id: str):
        super().__init__(f"User not found: {user_id}")
        self.user_id = user_id


class CalendarStoreError(MeetslotError):
    """Raised when calendar data cannot be read from or written to the store."""


class AuthenticationError(MeetslotError):
    """Raised when authentication or token handling fails."""


class SearchAbortedError(MeetslotError):
    """Raised when a slot search exceeds its deadline."""
