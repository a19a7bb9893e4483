"""External collaborators: user lookup, entry ownership, notifications.

The service only depends on the protocols below. The in-memory
implementations back the development server and the test suite; a
deployment swaps them for adapters over the real user and observation
stores and the push-notification gateway.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Protocol

from .ids import new_id

logger = logging.getLogger(__name__)

# Notification kinds
CATALOG_INVITE_RECEIVED = "CATALOG_INVITE_RECEIVED"
CATALOG_INVITE_ACCEPTED = "CATALOG_INVITE_ACCEPTED"
CATALOG_INVITE_DECLINED = "CATALOG_INVITE_DECLINED"

EntryDeletedListener = Callable[[str, str], Awaitable[Any]]


class UserDirectory(Protocol):
    async def user_exists(self, user_id: str) -> bool: ...

    async def get_profile(self, user_id: str) -> dict[str, Any] | None: ...


class EntryDirectory(Protocol):
    async def entry_owner(self, entry_id: str) -> str | None:
        """Return the owning user id, or None if the entry does not exist."""
        ...

    async def get_entry(self, entry_id: str) -> dict[str, Any] | None: ...


class Notifier(Protocol):
    async def notify(self, user_id: str, kind: str, payload: dict[str, Any]) -> None: ...


@dataclass
class InMemoryUserDirectory:
    """User profiles keyed by id."""
    profiles: dict[str, dict[str, Any]] = field(default_factory=dict)

    def add_user(
        self,
        username: str,
        name: str | None = None,
        user_id: str | None = None,
        profile_picture: str | None = None,
    ) -> str:
        user_id = user_id or new_id()
        self.profiles[user_id] = {
            "id": user_id,
            "username": username,
            "name": name or username,
            "profilePicture": profile_picture,
        }
        return user_id

    def remove_user(self, user_id: str) -> None:
        self.profiles.pop(user_id, None)

    async def user_exists(self, user_id: str) -> bool:
        return user_id in self.profiles

    async def get_profile(self, user_id: str) -> dict[str, Any] | None:
        profile = self.profiles.get(user_id)
        return dict(profile) if profile else None


@dataclass
class InMemoryEntryDirectory:
    """
    Observation entries keyed by id.

    Deleting an entry notifies registered listeners so that catalog links
    to it can be cascaded away.
    """
    entries: dict[str, dict[str, Any]] = field(default_factory=dict)
    _listeners: list[EntryDeletedListener] = field(default_factory=list)

    def add_entry(self, owner: str, entry_id: str | None = None, **fields: Any) -> str:
        entry_id = entry_id or new_id()
        self.entries[entry_id] = {"id": entry_id, "userId": owner, **fields}
        return entry_id

    def add_delete_listener(self, listener: EntryDeletedListener) -> None:
        self._listeners.append(listener)

    async def delete_entry(self, entry_id: str, actor: str) -> bool:
        """Delete an entry owned by *actor* and fire the cascade listeners."""
        entry = self.entries.get(entry_id)
        if entry is None or entry["userId"] != actor:
            return False
        del self.entries[entry_id]
        for listener in self._listeners:
            await listener(entry_id, actor)
        return True

    async def entry_owner(self, entry_id: str) -> str | None:
        entry = self.entries.get(entry_id)
        return entry["userId"] if entry else None

    async def get_entry(self, entry_id: str) -> dict[str, Any] | None:
        entry = self.entries.get(entry_id)
        return dict(entry) if entry else None


class LoggingNotifier:
    """Notifier that only logs; used when no push gateway is configured."""

    async def notify(self, user_id: str, kind: str, payload: dict[str, Any]) -> None:
        logger.info("Notification %s -> %s: %s", kind, user_id, payload)
