"""
Tests for the SchedulerService orchestration layer.
"""

import asyncio
import time
from typing import Dict, List

import pendulum
import pytest

from meetslot.domain.clock import FixedClock
from meetslot.domain.exceptions import (
    NoAvailableSlotError,
    SearchAbortedError,
    UserNotFoundError,
    ValidationError,
    ValidationErrorKind,
)
from meetslot.domain.models import CalendarEvent, ScheduleRequest, User
from meetslot.domain.scoring import SlotScorer
from meetslot.domain.slot_finder import SlotFinder
from meetslot.services.scheduler import SchedulerService

NOW = pendulum.parse("2024-08-01 00:00", tz="UTC")


def _at(value: str):
    return pendulum.parse(f"2024-09-01 {value}", tz="UTC")


def _event(user_id: str, start: str, end: str, title: str = "Busy") -> CalendarEvent:
    return CalendarEvent.create(title, _at(start), _at(end), user_id, NOW)


class StubRepository:
    """Minimal in-memory repository matching CalendarRepository."""

    def __init__(self, user_ids: List[str], events: List[CalendarEvent] | None = None):
        self.users: Dict[str, User] = {uid: User(id=uid, name=uid.title()) for uid in user_ids}
        self.events: List[CalendarEvent] = list(events or [])
        self.created: List[CalendarEvent] = []
        self.calls: List[str] = []
        self.in_flight = 0
        self.max_in_flight = 0

    async def get_user(self, user_id: str) -> User:
        self.calls.append(f"get_user:{user_id}")
        if user_id not in self.users:
            raise UserNotFoundError(user_id)
        return self.users[user_id]

    async def get_user_events(self, user_id, start, end):
        self.calls.append(f"get_user_events:{user_id}")
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        await asyncio.sleep(0.01)
        self.in_flight -= 1
        return [
            event for event in self.events
            if event.user_id == user_id and event.start <= end and event.end >= start
        ]

    async def create_event(self, event: CalendarEvent) -> None:
        self.created.append(event)


def _build_service(repository: StubRepository, **kwargs) -> SchedulerService:
    return SchedulerService(repository=repository, clock=FixedClock(NOW), **kwargs)


def _request(participants, start="09:00", end="17:00", duration=60, title="") -> ScheduleRequest:
    return ScheduleRequest(
        participant_ids=list(participants),
        duration_minutes=duration,
        start=_at(start),
        end=_at(end),
        title=title,
    )


class TestSchedule:
    """Tests for booking a meeting."""

    def test_books_best_slot_for_every_participant(self):
        repository = StubRepository(
            ["user1", "user2"],
            events=[_event("user1", "13:00", "14:00"), _event("user2", "15:00", "16:00")],
        )
        service = _build_service(repository)

        response = asyncio.run(service.schedule(_request(["user1", "user2"])))

        assert response.start == _at("09:00")
        assert response.end == _at("10:00")
        assert response.title == "New Meeting"
        assert response.participant_ids == ["user1", "user2"]
        assert [event.user_id for event in repository.created] == ["user1", "user2"]
        assert all(event.start == _at("09:00") for event in repository.created)
        assert response.event_ids == [event.id for event in repository.created]
        assert all(event.created_at == NOW for event in repository.created)

    def test_uses_request_title(self):
        repository = StubRepository(["user1"])
        service = _build_service(repository, default_title="Sync")

        response = asyncio.run(service.schedule(_request(["user1"], title="Planning")))

        assert response.title == "Planning"
        assert repository.created[0].title == "Planning"

    def test_default_title_is_configurable(self):
        repository = StubRepository(["user1"])
        service = _build_service(repository, default_title="Sync")

        response = asyncio.run(service.schedule(_request(["user1"])))

        assert response.title == "Sync"

    def test_meeting_ids_are_unique(self):
        repository = StubRepository(["user1"])
        service = _build_service(repository)

        first = asyncio.run(service.schedule(_request(["user1"], start="09:00", end="11:00")))
        second = asyncio.run(service.schedule(_request(["user1"], start="13:00", end="15:00")))

        assert first.meeting_id != second.meeting_id

    def test_invalid_request_never_reaches_repository(self):
        repository = StubRepository(["user1"])
        service = _build_service(repository)

        with pytest.raises(ValidationError) as exc_info:
            asyncio.run(service.schedule(_request(["user1"], duration=500)))

        assert exc_info.value.kind == ValidationErrorKind.INVALID_DURATION
        assert repository.calls == []

    def test_unknown_participant(self):
        repository = StubRepository(["user1"])
        service = _build_service(repository)

        with pytest.raises(UserNotFoundError, match="ghost"):
            asyncio.run(service.schedule(_request(["user1", "ghost"])))

        assert repository.created == []

    def test_no_available_slot(self):
        repository = StubRepository(
            ["user1", "user2"],
            events=[_event("user1", "09:00", "10:00"), _event("user2", "10:00", "11:00")],
        )
        service = _build_service(repository)

        with pytest.raises(NoAvailableSlotError):
            asyncio.run(service.schedule(_request(["user1", "user2"], end="11:00")))

        assert repository.created == []


class TestBusyTimes:
    """Tests for busy-time retrieval."""

    def test_mapping_follows_participant_order(self):
        repository = StubRepository(
            ["c", "a", "b"],
            events=[_event("a", "09:00", "10:00"), _event("c", "11:00", "12:00")],
        )
        service = _build_service(repository)

        busy_times = asyncio.run(service.fetch_busy_times(["c", "a", "b"], _at("08:00"), _at("18:00")))

        assert list(busy_times.keys()) == ["c", "a", "b"]
        assert busy_times["a"][0].start == _at("09:00")
        assert busy_times["b"] == []

    def test_fetches_are_bounded(self):
        participants = [f"user{i}" for i in range(6)]
        repository = StubRepository(participants)
        service = _build_service(repository, max_concurrent_fetches=2)

        asyncio.run(service.fetch_busy_times(participants, _at("08:00"), _at("18:00")))

        assert repository.max_in_flight == 2

    def test_invalid_concurrency_rejected(self):
        with pytest.raises(ValueError):
            _build_service(StubRepository([]), max_concurrent_fetches=0)


class TestSuggestAndCalendar:
    """Tests for read-only operations."""

    def test_suggest_slots_books_nothing(self):
        repository = StubRepository(["user1"])
        service = _build_service(repository)

        slots = asyncio.run(service.suggest_slots(_request(["user1"]), limit=2))

        assert [slot.start for slot in slots] == [_at("09:00"), _at("09:15")]
        assert repository.created == []

    def test_find_slot_returns_scored_candidate(self):
        service = _build_service(StubRepository(["user1"]))

        slot = asyncio.run(service.find_slot(_request(["user1"])))

        assert slot.start == _at("09:00")
        assert slot.score == pytest.approx(2.8)

    def test_user_calendar_sorted_by_start(self):
        repository = StubRepository(
            ["user1"],
            events=[_event("user1", "14:00", "15:00", "Late"), _event("user1", "09:00", "10:00", "Early")],
        )
        service = _build_service(repository)

        events = asyncio.run(service.get_user_calendar("user1", _at("00:00"), _at("23:59")))

        assert [event.title for event in events] == ["Early", "Late"]

    def test_user_calendar_may_be_empty(self):
        service = _build_service(StubRepository(["user1"]))

        assert asyncio.run(service.get_user_calendar("user1", _at("00:00"), _at("23:59"))) == []

    def test_user_calendar_unknown_user(self):
        service = _build_service(StubRepository([]))

        with pytest.raises(UserNotFoundError):
            asyncio.run(service.get_user_calendar("ghost", _at("00:00"), _at("23:59")))


class SlowScorer(SlotScorer):
    """Scorer that spends a fixed time on every candidate."""

    def score(self, candidate, busy_times):
        time.sleep(0.05)
        return super().score(candidate, busy_times)


class TestSearchDeadline:
    """Tests for the optional slot search deadline."""

    def test_deadline_bounds_how_long_the_caller_waits(self):
        # 28 candidates at 0.05 s each would take 1.4 s
        service = _build_service(
            StubRepository(["user1"]),
            slot_finder=SlotFinder(scorer=SlowScorer()),
            search_timeout_seconds=0.1,
        )

        started = time.monotonic()
        with pytest.raises(SearchAbortedError):
            asyncio.run(service.find_slot(_request(["user1"])))
        elapsed = time.monotonic() - started

        assert elapsed < 0.6

    def test_deadline_applies_to_suggestions(self):
        service = _build_service(
            StubRepository(["user1"]),
            slot_finder=SlotFinder(scorer=SlowScorer()),
            search_timeout_seconds=0.1,
        )

        with pytest.raises(SearchAbortedError):
            asyncio.run(service.suggest_slots(_request(["user1"])))

    def test_generous_deadline_finds_slot(self):
        service = _build_service(StubRepository(["user1"]), search_timeout_seconds=30)

        slot = asyncio.run(service.find_slot(_request(["user1"])))

        assert slot.start == _at("09:00")


@pytest.mark.parametrize("limit", [0, -1])
def test_suggest_slots_rejects_limit_below_one(limit):
    repository = StubRepository(["user1"])
    service = _build_service(repository)

    with pytest.raises(ValueError, match="limit"):
        asyncio.run(service.suggest_slots(_request(["user1"]), limit=limit))

    assert repository.calls == []
