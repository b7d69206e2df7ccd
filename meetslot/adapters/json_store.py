"""
File-backed calendar store keeping users and events in a JSON document.
"""

import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional

import pendulum
from pendulum import DateTime

from ..domain.clock import Clock, SystemClock
from ..domain.exceptions import CalendarStoreError, UserNotFoundError
from ..domain.models import CalendarEvent, User

logger = logging.getLogger(__name__)


class JsonCalendarStore:
    """
    Calendar repository persisted to a single JSON file.

    File format:
    {
        "users": [{"id": "...", "name": "...", "createdAt": "..."}],
        "events": [
            {
                "id": "...",
                "title": "...",
                "startTime": "2024-09-01T09:00:00+00:00",
                "endTime": "2024-09-01T10:00:00+00:00",
                "userId": "...",
                "createdAt": "..."
            }
        ]
    }

    A missing file is treated as an empty store and is created on first write.
    """

    def __init__(self, path: Path, clock: Optional[Clock] = None):
        self.path = Path(path)
        self.clock = clock or SystemClock()
        self._users: Dict[str, User] = {}
        self._events: List[CalendarEvent] = []
        self._load()

    async def get_user(self, user_id: str) -> User:
        user = self._users.get(user_id)
        if user is None:
            raise UserNotFoundError(user_id)
        return user

    async def get_user_events(
        self,
        user_id: str,
        start: DateTime,
        end: DateTime,
    ) -> List[CalendarEvent]:
        """Return the user's events intersecting the closed window [start, end]."""
        return [
            event for event in self._events
            if event.user_id == user_id and event.start <= end and event.end >= start
        ]

    async def create_event(self, event: CalendarEvent) -> None:
        self._events.append(event)
        self._save()

    def create_user(self, name: str) -> User:
        """
        Add a user with a generated id and persist the store.

        Raises:
            ValueError: If the name is blank or already taken (case-insensitively)
        """
        name = name.strip()
        if not name:
            raise ValueError("User name cannot be empty")
        if self.find_user_by_name(name) is not None:
            raise ValueError(f"A user named '{name}' already exists")

        user = User.create(name=name, now=self.clock.now())
        self._users[user.id] = user
        self._save()
        return user

    def list_users(self) -> List[User]:
        return sorted(self._users.values(), key=lambda user: user.name.lower())

    def find_user_by_name(self, name: str) -> User | None:
        """
        Find a user by name, case-insensitively.

        Raises:
            CalendarStoreError: If the name matches more than one user
        """
        matches = [user for user in self._users.values() if user.name.lower() == name.lower()]
        if len(matches) > 1:
            raise CalendarStoreError(
                f"Name '{name}' matches {len(matches)} users in {self.path}; use the user id"
            )
        return matches[0] if matches else None

    def resolve_participant(self, identifier: str) -> str:
        """
        Resolve a participant given as user id or user name to a user id.

        Raises:
            UserNotFoundError: If identifier matches neither an id nor a name
        """
        if identifier in self._users:
            return identifier

        user = self.find_user_by_name(identifier)
        if user:
            return user.id

        raise UserNotFoundError(identifier)

    def clear(self) -> None:
        """Remove all events and users."""
        self._events = []
        self._users = {}
        self._save()

    def seed(self) -> List[User]:
        """
        Populate the store with three users and one event each.

        Events start 24, 26 and 28 hours from now and last one hour. Users that
        already exist under the same name are reused.
        """
        now = self.clock.now()
        users = [
            self.find_user_by_name(name) or User.create(name=name, now=now)
            for name in ("Alice", "Bob", "Charlie")
        ]
        titles = ["Team Meeting", "Project Review", "Client Call"]

        for offset, (user, title) in enumerate(zip(users, titles)):
            start = now.add(hours=24 + 2 * offset)
            self._users[user.id] = user
            self._events.append(
                CalendarEvent.create(
                    title=title,
                    start=start,
                    end=start.add(hours=1),
                    user_id=user.id,
                    now=now,
                )
            )

        self._save()
        logger.info("Seeded %d users into %s", len(users), self.path)
        return users

    def _load(self) -> None:
        if not self.path.exists():
            logger.debug("Calendar store %s does not exist yet", self.path)
            return

        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as exc:
            raise CalendarStoreError(f"Could not read calendar store {self.path}: {exc}") from exc

        if not isinstance(data, dict):
            raise CalendarStoreError(f"Calendar store {self.path} must contain a JSON object")

        try:
            users = [self._user_from_dict(item) for item in data.get("users", [])]
            self._events = [self._event_from_dict(item) for item in data.get("events", [])]
        except (KeyError, TypeError, ValueError) as exc:
            raise CalendarStoreError(f"Malformed record in {self.path}: {exc}") from exc

        self._users = {user.id: user for user in users}

    def _save(self) -> None:
        data = {
            "users": [self._user_to_dict(user) for user in self._users.values()],
            "events": [self._event_to_dict(event) for event in self._events],
        }

        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with open(self.path, "w", encoding="utf-8") as f:
                json.dump(data, f, indent=2)
        except OSError as exc:
            raise CalendarStoreError(f"Could not write calendar store {self.path}: {exc}") from exc

    @staticmethod
    def _user_from_dict(item: Dict[str, Any]) -> User:
        created_at = item.get("createdAt")
        return User(
            id=item["id"],
            name=item["name"],
            created_at=_parse_instant(created_at) if created_at else None,
        )

    @staticmethod
    def _event_from_dict(item: Dict[str, Any]) -> CalendarEvent:
        created_at = item.get("createdAt")
        return CalendarEvent(
            id=item["id"],
            title=item.get("title", ""),
            start=_parse_instant(item["startTime"]),
            end=_parse_instant(item["endTime"]),
            user_id=item["userId"],
            created_at=_parse_instant(created_at) if created_at else None,
        )

    @staticmethod
    def _user_to_dict(user: User) -> Dict[str, Any]:
        return {
            "id": user.id,
            "name": user.name,
            "createdAt": user.created_at.to_iso8601_string() if user.created_at else None,
        }

    @staticmethod
    def _event_to_dict(event: CalendarEvent) -> Dict[str, Any]:
        return {
            "id": event.id,
            "title": event.title,
            "startTime": event.start.to_iso8601_string(),
            "endTime": event.end.to_iso8601_string(),
            "userId": event.user_id,
            "createdAt": event.created_at.to_iso8601_string() if event.created_at else None,
        }


def _parse_instant(value: str) -> DateTime:
    parsed = pendulum.parse(value, tz="UTC")
    if not isinstance(parsed, DateTime):
        raise ValueError(f"Not a datetime: {value}")
    return parsed
