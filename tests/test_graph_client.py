"""
Tests for the Microsoft Graph calendar repository.
"""

import asyncio
import json
from typing import Any, Dict, List, Optional

import pendulum
import pytest
import requests

from meetslot.adapters.graph_client import GraphCalendarRepository
from meetslot.domain.exceptions import CalendarStoreError, UserNotFoundError
from meetslot.domain.models import CalendarEvent


def _at(value: str):
    return pendulum.parse(f"2024-09-01 {value}", tz="UTC")


class FakeResponse:
    def __init__(self, status_code: int = 200, payload: Optional[Dict[str, Any]] = None):
        self.status_code = status_code
        self._payload = payload
        self.content = json.dumps(payload).encode() if payload is not None else b""

    def json(self):
        return self._payload

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.exceptions.HTTPError(f"{self.status_code} Error")


class FakeSession:
    """Records requests and replays canned responses in order."""

    def __init__(self, responses: List[Any]):
        self.responses = list(responses)
        self.requests: List[Dict[str, Any]] = []

    def request(self, method, url, headers=None, params=None, json=None, timeout=None):
        self.requests.append({"method": method, "url": url, "params": params, "json": json, "headers": headers})
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response


def _item(event_id: str, start: str, end: str, show_as: str = "busy") -> Dict[str, Any]:
    return {
        "id": event_id,
        "subject": f"Event {event_id}",
        "showAs": show_as,
        "start": {"dateTime": f"2024-09-01T{start}:00", "timeZone": "UTC"},
        "end": {"dateTime": f"2024-09-01T{end}:00", "timeZone": "UTC"},
    }


class TestGetUserEvents:
    """Tests for reading calendar events."""

    def test_parses_events_and_skips_free_ones(self):
        session = FakeSession([
            FakeResponse(payload={"value": [
                _item("1", "09:00", "10:00"),
                _item("2", "11:00", "12:00", show_as="free"),
                _item("3", "13:00", "14:00", show_as="tentative"),
            ]}),
        ])
        repository = GraphCalendarRepository("token", session=session)

        events = asyncio.run(repository.get_user_events("alice@example.com", _at("08:00"), _at("18:00")))

        assert [event.id for event in events] == ["1", "3"]
        assert events[0].start == _at("09:00")
        assert events[0].end == _at("10:00")
        assert events[0].user_id == "alice@example.com"

        sent = session.requests[0]
        assert sent["method"] == "GET"
        assert sent["url"].endswith("/users/alice@example.com/calendarView")
        assert pendulum.parse(sent["params"]["startDateTime"]) == _at("08:00")
        assert sent["headers"]["Authorization"] == "Bearer token"

    def test_follows_next_link(self):
        next_link = "https://graph.microsoft.com/v1.0/users/alice/calendarView?$skip=100"
        session = FakeSession([
            FakeResponse(payload={"value": [_item("1", "09:00", "10:00")], "@odata.nextLink": next_link}),
            FakeResponse(payload={"value": [_item("2", "11:00", "12:00")]}),
        ])
        repository = GraphCalendarRepository("token", session=session)

        events = asyncio.run(repository.get_user_events("alice", _at("08:00"), _at("18:00")))

        assert [event.id for event in events] == ["1", "2"]
        assert session.requests[1]["url"] == next_link
        assert session.requests[1]["params"] is None

    def test_skips_unparsable_items(self):
        session = FakeSession([
            FakeResponse(payload={"value": [{"id": "broken"}, _item("1", "09:00", "10:00")]}),
        ])
        repository = GraphCalendarRepository("token", session=session)

        events = asyncio.run(repository.get_user_events("alice", _at("08:00"), _at("18:00")))

        assert [event.id for event in events] == ["1"]


class TestErrors:
    """Tests for error mapping."""

    def test_unknown_user(self):
        session = FakeSession([FakeResponse(status_code=404, payload={"error": {"code": "NotFound"}})])
        repository = GraphCalendarRepository("token", session=session)

        with pytest.raises(UserNotFoundError):
            asyncio.run(repository.get_user("ghost@example.com"))

    def test_server_error(self):
        session = FakeSession([FakeResponse(status_code=500, payload={})])
        repository = GraphCalendarRepository("token", session=session)

        with pytest.raises(CalendarStoreError):
            asyncio.run(repository.get_user_events("alice", _at("08:00"), _at("18:00")))

    def test_connection_error(self):
        session = FakeSession([requests.exceptions.ConnectionError("offline")])
        repository = GraphCalendarRepository("token", session=session)

        with pytest.raises(CalendarStoreError, match="offline"):
            asyncio.run(repository.get_user("alice"))


class TestWrites:
    """Tests for user lookup and event creation."""

    def test_get_user_uses_display_name(self):
        session = FakeSession([FakeResponse(payload={"id": "abc", "displayName": "Alice Example"})])
        repository = GraphCalendarRepository("token", session=session)

        user = asyncio.run(repository.get_user("alice@example.com"))

        assert user.id == "alice@example.com"
        assert user.name == "Alice Example"

    def test_create_event_posts_utc_times(self):
        session = FakeSession([FakeResponse(status_code=201, payload={"id": "graph-id"})])
        repository = GraphCalendarRepository("token", session=session)
        event = CalendarEvent.create("Planning", _at("09:00"), _at("10:00"), "alice@example.com", _at("08:00"))

        asyncio.run(repository.create_event(event))

        sent = session.requests[0]
        assert sent["method"] == "POST"
        assert sent["url"].endswith("/users/alice@example.com/events")
        assert sent["json"] == {
            "subject": "Planning",
            "start": {"dateTime": "2024-09-01T09:00:00", "timeZone": "UTC"},
            "end": {"dateTime": "2024-09-01T10:00:00", "timeZone": "UTC"},
        }
