"""
Microsoft Graph API client used as a calendar repository.
"""

import asyncio
import logging
from typing import Any, Dict, List, Optional

import pendulum
import requests
from pendulum import DateTime

from ..domain.exceptions import CalendarStoreError, UserNotFoundError
from ..domain.models import CalendarEvent, User

logger = logging.getLogger(__name__)


class GraphCalendarRepository:
    """
    Calendar repository backed by Microsoft Graph.

    Participants are identified by their user principal name (email) or object id.
    Reads use the ``calendarView`` endpoint, bookings create an event in each
    participant's default calendar. All times are exchanged in UTC.
    """

    GRAPH_API_ENDPOINT = "https://graph.microsoft.com/v1.0"
    PAGE_SIZE = 100

    def __init__(self, access_token: str, session: Optional[requests.Session] = None, timeout: int = 30):
        """
        Initialize the Graph API client.

        Args:
            access_token: Valid Microsoft Graph access token
            session: Optional requests session (shared connection pool, tests)
            timeout: Per-request timeout in seconds
        """
        self.session = session or requests.Session()
        self.timeout = timeout
        self.headers = {
            "Authorization": f"Bearer {access_token}",
            "Content-Type": "application/json",
            "Prefer": 'outlook.timezone="UTC"',
        }

    async def get_user(self, user_id: str) -> User:
        data = await asyncio.to_thread(
            self._request,
            "GET",
            f"{self.GRAPH_API_ENDPOINT}/users/{user_id}",
            params={"$select": "id,displayName"},
            user_id=user_id,
        )
        return User(id=user_id, name=data.get("displayName") or user_id)

    async def get_user_events(
        self,
        user_id: str,
        start: DateTime,
        end: DateTime,
    ) -> List[CalendarEvent]:
        return await asyncio.to_thread(self._fetch_calendar_view, user_id, start, end)

    async def create_event(self, event: CalendarEvent) -> None:
        payload = {
            "subject": event.title,
            "start": {"dateTime": _to_graph_datetime(event.start), "timeZone": "UTC"},
            "end": {"dateTime": _to_graph_datetime(event.end), "timeZone": "UTC"},
        }
        data = await asyncio.to_thread(
            self._request,
            "POST",
            f"{self.GRAPH_API_ENDPOINT}/users/{event.user_id}/events",
            json=payload,
            user_id=event.user_id,
        )
        logger.debug("Created Graph event %s for %s", data.get("id"), event.user_id)

    def test_connection(self) -> Dict[str, Any]:
        """
        Test the connection and authentication by fetching the signed-in profile.

        Raises:
            CalendarStoreError: If the connection test fails
        """
        return self._request("GET", f"{self.GRAPH_API_ENDPOINT}/me")

    def _fetch_calendar_view(self, user_id: str, start: DateTime, end: DateTime) -> List[CalendarEvent]:
        url: Optional[str] = f"{self.GRAPH_API_ENDPOINT}/users/{user_id}/calendarView"
        params: Optional[Dict[str, Any]] = {
            "startDateTime": start.in_timezone("UTC").to_iso8601_string(),
            "endDateTime": end.in_timezone("UTC").to_iso8601_string(),
            "$select": "id,subject,start,end,showAs",
            "$top": self.PAGE_SIZE,
        }

        events: List[CalendarEvent] = []
        while url:
            data = self._request("GET", url, params=params, user_id=user_id)
            events.extend(self._parse_events(data.get("value", []), user_id))
            # nextLink already carries the query string
            url = data.get("@odata.nextLink")
            params = None

        return events

    def _parse_events(self, items: List[Dict[str, Any]], user_id: str) -> List[CalendarEvent]:
        """
        Parse calendarView items into domain events.

        Item format:
        {
            "id": "...",
            "subject": "...",
            "showAs": "busy",
            "start": {"dateTime": "2024-09-01T09:00:00.0000000", "timeZone": "UTC"},
            "end": {"dateTime": "2024-09-01T10:00:00.0000000", "timeZone": "UTC"}
        }

        Free events do not block time and are skipped.
        """
        events: List[CalendarEvent] = []

        for item in items:
            if (item.get("showAs") or "busy").lower() == "free":
                continue

            try:
                events.append(
                    CalendarEvent(
                        id=item["id"],
                        title=item.get("subject") or "",
                        start=_parse_graph_datetime(item["start"]),
                        end=_parse_graph_datetime(item["end"]),
                        user_id=user_id,
                    )
                )
            except (KeyError, ValueError) as exc:
                logger.warning("Skipping unparsable Graph event for %s: %s", user_id, exc)

        return events

    def _request(
        self,
        method: str,
        url: str,
        *,
        params: Optional[Dict[str, Any]] = None,
        json: Optional[Dict[str, Any]] = None,
        user_id: Optional[str] = None,
    ) -> Dict[str, Any]:
        try:
            response = self.session.request(
                method,
                url,
                headers=self.headers,
                params=params,
                json=json,
                timeout=self.timeout,
            )
        except requests.exceptions.RequestException as exc:
            raise CalendarStoreError(f"Microsoft Graph request failed: {exc}") from exc

        if response.status_code == 404 and user_id is not None:
            raise UserNotFoundError(user_id)

        try:
            response.raise_for_status()
        except requests.exceptions.HTTPError as exc:
            raise CalendarStoreError(f"Microsoft Graph request failed: {exc}") from exc

        if not response.content:
            return {}
        return response.json()


def _parse_graph_datetime(value: Dict[str, str]) -> DateTime:
    """Parse a Graph dateTimeTimeZone object into an aware pendulum DateTime."""
    parsed = pendulum.parse(value["dateTime"], tz=value.get("timeZone") or "UTC")
    if not isinstance(parsed, DateTime):
        raise ValueError(f"Could not parse datetime: {value['dateTime']}")
    return parsed.in_timezone("UTC")


def _to_graph_datetime(instant: DateTime) -> str:
    return instant.in_timezone("UTC").strftime("%Y-%m-%dT%H:%M:%S")
