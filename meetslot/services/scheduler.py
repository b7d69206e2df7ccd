"""
Application services for scheduling shared meetings.

The service coordinates reading users and busy times through a calendar
repository adapter and delegates the actual slot search to the domain-level
``SlotFinder``. The repository is described by a simple protocol so that the
JSON store, the Microsoft Graph adapter or a test stub can be plugged in.
"""

from __future__ import annotations

import asyncio
import logging
import time
import uuid
from typing import Dict, List, Optional, Protocol, Sequence

from pendulum import DateTime

from ..domain.clock import Clock, SystemClock
from ..domain.exceptions import NoAvailableSlotError
from ..domain.models import (
    BusyInterval,
    CalendarEvent,
    CandidateSlot,
    ScheduleRequest,
    ScheduleResponse,
    User,
)
from ..domain.slot_finder import SlotFinder
from ..domain.validation import RequestValidator

logger = logging.getLogger(__name__)

DEFAULT_MEETING_TITLE = "New Meeting"


class CalendarRepository(Protocol):
    """Protocol describing the calendar store behaviour needed by the service."""

    async def get_user(self, user_id: str) -> User:
        """Return the user, raising UserNotFoundError if it does not exist."""

    async def get_user_events(
        self,
        user_id: str,
        start: DateTime,
        end: DateTime,
    ) -> List[CalendarEvent]:
        """Return the user's events intersecting [start, end]."""

    async def create_event(self, event: CalendarEvent) -> None:
        """Persist a new event."""


class SchedulerService:
    """
    Orchestrates validation, busy-time retrieval, slot search and booking.
    """

    def __init__(
        self,
        repository: CalendarRepository,
        validator: Optional[RequestValidator] = None,
        slot_finder: Optional[SlotFinder] = None,
        *,
        clock: Optional[Clock] = None,
        default_title: str = DEFAULT_MEETING_TITLE,
        max_concurrent_fetches: int = 4,
        search_timeout_seconds: Optional[float] = None,
    ) -> None:
        if max_concurrent_fetches <= 0:
            raise ValueError("max_concurrent_fetches must be greater than zero")

        self._repository = repository
        self._clock = clock or SystemClock()
        self._validator = validator or RequestValidator(clock=self._clock)
        self._slot_finder = slot_finder or SlotFinder()
        self._default_title = default_title
        self._max_concurrent_fetches = max_concurrent_fetches
        self._search_timeout_seconds = search_timeout_seconds

    async def schedule(self, request: ScheduleRequest) -> ScheduleResponse:
        """
        Find the best slot for all participants and book it in every calendar.

        Raises:
            ValidationError: If the request is invalid
            UserNotFoundError: If a participant does not exist
            NoAvailableSlotError: If no slot is free for everyone
            SearchAbortedError: If the configured search deadline expires
            CalendarStoreError: If the store fails
        """
        slot = await self.find_slot(request)

        meeting_id = str(uuid.uuid4())
        title = request.title or self._default_title
        now = self._clock.now()

        event_ids: List[str] = []
        for participant_id in request.participant_ids:
            event = CalendarEvent.create(
                title=title,
                start=slot.start,
                end=slot.end,
                user_id=participant_id,
                now=now,
            )
            await self._repository.create_event(event)
            event_ids.append(event.id)

        logger.info(
            "Scheduled meeting %s (%s) at %s for %d participant(s)",
            meeting_id,
            title,
            slot.time_range,
            len(request.participant_ids),
        )

        return ScheduleResponse(
            meeting_id=meeting_id,
            title=title,
            participant_ids=list(request.participant_ids),
            start=slot.start,
            end=slot.end,
            event_ids=event_ids,
        )

    async def find_slot(self, request: ScheduleRequest) -> CandidateSlot:
        """
        Validate the request and return the best slot without booking it.

        Raises:
            NoAvailableSlotError: If no slot is free for everyone
        """
        busy_times = await self._prepare(request)

        slot = self._slot_finder.find_optimal_slot(
            request, busy_times, deadline=self._search_deadline()
        )
        if slot is None:
            logger.info("No available slot for participants %s", ", ".join(request.participant_ids))
            raise NoAvailableSlotError()

        return slot

    async def suggest_slots(self, request: ScheduleRequest, limit: int = 5) -> List[CandidateSlot]:
        """
        Validate the request and return up to ``limit`` free slots, best first.

        Raises:
            ValueError: If ``limit`` is below 1
        """
        if limit < 1:
            raise ValueError(f"limit must be at least 1, got {limit}")

        busy_times = await self._prepare(request)

        return self._slot_finder.rank_slots(
            request, busy_times, limit=limit, deadline=self._search_deadline()
        )

    async def fetch_busy_times(
        self,
        participant_ids: Sequence[str],
        start: DateTime,
        end: DateTime,
    ) -> Dict[str, List[BusyInterval]]:
        """
        Fetch busy intervals for every participant.

        Fetches run concurrently, bounded by ``max_concurrent_fetches``; the
        resulting mapping follows the order of ``participant_ids``.
        """
        semaphore = asyncio.Semaphore(self._max_concurrent_fetches)

        async def fetch(participant_id: str) -> List[BusyInterval]:
            async with semaphore:
                events = await self._repository.get_user_events(participant_id, start, end)
            return [event.as_busy_interval() for event in events]

        results = await asyncio.gather(*(fetch(pid) for pid in participant_ids))
        return dict(zip(participant_ids, results))

    async def get_user_calendar(
        self,
        user_id: str,
        start: DateTime,
        end: DateTime,
    ) -> List[CalendarEvent]:
        """
        Return a user's events in the window, ordered by start time.

        Raises:
            UserNotFoundError: If the user does not exist
        """
        await self._repository.get_user(user_id)
        events = await self._repository.get_user_events(user_id, start, end)
        return sorted(events, key=lambda event: event.start)

    async def _prepare(self, request: ScheduleRequest) -> Dict[str, List[BusyInterval]]:
        self._validator.validate(request)

        for participant_id in request.participant_ids:
            await self._repository.get_user(participant_id)

        return await self.fetch_busy_times(
            participant_ids=request.participant_ids,
            start=request.start,
            end=request.end,
        )

    def _search_deadline(self) -> Optional[float]:
        """Monotonic instant at which the slot search gives up, if a timeout is set."""
        if self._search_timeout_seconds is None:
            return None
        return time.monotonic() + self._search_timeout_seconds
