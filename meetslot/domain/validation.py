"""
Guard that rejects invalid scheduling requests before any slot search runs.
"""

from .clock import Clock, SystemClock
from .exceptions import ValidationError, ValidationErrorKind
from .models import ScheduleRequest

MAX_DURATION_MINUTES = 480


class RequestValidator:
    """
    Validates a ScheduleRequest against its search preconditions.

    Checks run in a fixed order and the first failure wins:
    1. At least one participant
    2. No empty participant id
    3. No duplicate participant id
    4. Duration in (0, 480] minutes
    5. Start and end both present
    6. Start strictly before end
    7. Start not in the past
    8. End at most one year ahead
    9. Duration fits inside the window

    A request that passes is safe to hand to the SlotEnumerator.
    """

    def __init__(self, clock: Clock | None = None, max_duration_minutes: int = MAX_DURATION_MINUTES):
        self.clock = clock or SystemClock()
        self.max_duration_minutes = max_duration_minutes

    def validate(self, request: ScheduleRequest) -> None:
        """
        Validate a request.

        Args:
            request: The scheduling request to check

        Raises:
            ValidationError: Describing the first failing check
        """
        self._validate_participants(request)
        self._validate_duration(request)
        self._validate_time_range(request)

    def _validate_participants(self, request: ScheduleRequest) -> None:
        if not request.participant_ids:
            raise ValidationError(
                ValidationErrorKind.EMPTY_PARTICIPANTS,
                "At least one participant is required",
            )

        seen: set[str] = set()
        for participant_id in request.participant_ids:
            if not participant_id:
                raise ValidationError(
                    ValidationErrorKind.EMPTY_PARTICIPANT_ID,
                    "Participant ID cannot be empty",
                )
            if participant_id in seen:
                raise ValidationError(
                    ValidationErrorKind.DUPLICATE_PARTICIPANT,
                    f"Duplicate participant ID: {participant_id}",
                )
            seen.add(participant_id)

    def _validate_duration(self, request: ScheduleRequest) -> None:
        duration = request.duration_minutes
        if duration <= 0 or duration > self.max_duration_minutes:
            raise ValidationError(
                ValidationErrorKind.INVALID_DURATION,
                f"Duration must be between 1 and {self.max_duration_minutes} minutes, got {duration}",
            )

    def _validate_time_range(self, request: ScheduleRequest) -> None:
        start, end = request.start, request.end

        if start is None:
            raise ValidationError(ValidationErrorKind.MISSING_START_TIME, "Start time is required")
        if end is None:
            raise ValidationError(ValidationErrorKind.MISSING_END_TIME, "End time is required")

        if start >= end:
            raise ValidationError(
                ValidationErrorKind.START_AFTER_END,
                f"Start time {start} must be before end time {end}",
            )

        now = self.clock.now()
        if start < now:
            raise ValidationError(
                ValidationErrorKind.START_IN_PAST,
                "Start time cannot be in the past",
            )

        if end > now.add(years=1):
            raise ValidationError(
                ValidationErrorKind.END_BEYOND_ONE_YEAR,
                "End time cannot be more than 1 year in the future",
            )

        if start.add(minutes=request.duration_minutes) > end:
            raise ValidationError(
                ValidationErrorKind.DURATION_EXCEEDS_RANGE,
                "Duration does not fit within the specified time range",
            )
