"""Broadcast hub - authenticated connections, catalog rooms, and fan-out.

Lifecycle: a process constructs exactly one hub through
``Broadcaster.initialize()`` at startup. Request handlers publish through
the ``Broadcaster``; until a hub exists, publishing logs a warning and
returns without raising, so a completed mutation is never reported as
failed because its notification could not be delivered.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable

from pydantic import ValidationError

from ..catalog.permissions import PermissionResolver
from ..catalog.types import isoformat, utcnow
from ..errors import HubUnavailableError
from ..ids import is_valid_id, new_id
from . import protocol
from .protocol import (
    Ack,
    ClientCommand,
    DeletedPayload,
    EntriesUpdatedPayload,
    ErrorFrame,
    MetadataUpdatedPayload,
    event_frame,
    room_name,
)

logger = logging.getLogger(__name__)

# raw credential -> user id, or None when the credential is rejected
AuthenticateCallback = Callable[[str | None], Awaitable[str | None]]

DEFAULT_SEND_QUEUE_SIZE = 1000


@dataclass(eq=False)
class Connection:
    """
    One live client connection.

    Outbound frames go through ``queue``; a single sender drains it, so
    frames reach the client in the order they were enqueued.
    """
    user_id: str
    queue: asyncio.Queue
    id: str = field(default_factory=new_id)
    rooms: set[str] = field(default_factory=set)

    def enqueue(self, frame: dict[str, Any] | None) -> bool:
        try:
            self.queue.put_nowait(frame)
            return True
        except asyncio.QueueFull:
            logger.warning("Outgoing queue full for connection %s (user %s)", self.id, self.user_id)
            return False


class BroadcastHub:
    """Per-catalog rooms of authenticated connections."""

    def __init__(
        self,
        resolver: PermissionResolver,
        authenticate: AuthenticateCallback,
        send_queue_size: int = DEFAULT_SEND_QUEUE_SIZE,
    ) -> None:
        self._resolver = resolver
        self._authenticate = authenticate
        self._send_queue_size = send_queue_size
        self._rooms: dict[str, set[Connection]] = {}
        self._connections: set[Connection] = set()
        self._lock = asyncio.Lock()

    # ------------------------------------------------------------------
    # Connection lifecycle
    # ------------------------------------------------------------------

    async def connect(self, credential: str | None) -> Connection | None:
        """Authenticate a new connection. None means the connection is refused."""
        try:
            user_id = await self._authenticate(credential)
        except Exception as e:
            logger.warning("Socket authentication failed: %s", e)
            return None

        if not user_id:
            logger.debug("Socket authentication rejected")
            return None

        conn = Connection(user_id=user_id, queue=asyncio.Queue(maxsize=self._send_queue_size))
        async with self._lock:
            self._connections.add(conn)
        logger.info("Socket connected id=%s user=%s", conn.id, user_id)
        return conn

    async def disconnect(self, conn: Connection) -> None:
        async with self._lock:
            for room in conn.rooms:
                members = self._rooms.get(room)
                if members is not None:
                    members.discard(conn)
                    if not members:
                        del self._rooms[room]
            conn.rooms.clear()
            self._connections.discard(conn)
        conn.enqueue(None)  # stops the sender
        logger.info("Socket disconnected id=%s user=%s", conn.id, conn.user_id)

    # ------------------------------------------------------------------
    # Connection-initiated operations
    # ------------------------------------------------------------------

    async def handle_message(self, conn: Connection, message: Any) -> dict[str, Any] | None:
        """Dispatch one inbound frame; returns the reply frame, if any."""
        try:
            command = ClientCommand.model_validate(message)
        except ValidationError:
            return ErrorFrame(error="Invalid message").to_wire()

        if command.event == protocol.JOIN:
            ack = await self.join(conn, command.catalog_id)
            return ack.model_copy(update={"id": command.id}).to_wire()

        if command.event == protocol.LEAVE:
            await self.leave(conn, command.catalog_id)
            return None

        return ErrorFrame(error=f"Unknown event: {command.event}").to_wire()

    async def join(self, conn: Connection, catalog_id: Any) -> Ack:
        """Re-check access and add the connection to the catalog room."""
        if not catalog_id:
            return Ack(ok=False, error=protocol.ERR_CATALOG_ID_REQUIRED)
        if not is_valid_id(catalog_id):
            return Ack(ok=False, error=protocol.ERR_INVALID_CATALOG_ID)

        try:
            catalog = await self._resolver.catalogs.get(catalog_id)
            if catalog is None:
                return Ack(ok=False, error=protocol.ERR_CATALOG_NOT_FOUND)
            access = await self._resolver.resolve(catalog, conn.user_id)
        except Exception:
            logger.exception("Failed to join catalog room (user=%s catalog=%s)", conn.user_id, catalog_id)
            return Ack(ok=False, error=protocol.ERR_JOIN_FAILED)

        if not access.can_read:
            return Ack(ok=False, error=protocol.ERR_ACCESS_DENIED)

        room = room_name(catalog_id)
        async with self._lock:
            # A delete may have closed the room while this join waited
            try:
                exists = await self._resolver.catalogs.get(catalog_id) is not None
            except Exception:
                logger.exception("Failed to join catalog room (user=%s catalog=%s)", conn.user_id, catalog_id)
                return Ack(ok=False, error=protocol.ERR_JOIN_FAILED)
            if not exists:
                return Ack(ok=False, error=protocol.ERR_CATALOG_NOT_FOUND)
            self._rooms.setdefault(room, set()).add(conn)
            conn.rooms.add(room)
        logger.debug("User %s joined %s as %s", conn.user_id, room, access.value)
        return Ack(ok=True)

    async def leave(self, conn: Connection, catalog_id: Any) -> None:
        """Best-effort removal; malformed ids and non-members are ignored."""
        if not is_valid_id(catalog_id):
            return
        room = room_name(catalog_id)
        async with self._lock:
            members = self._rooms.get(room)
            if members is not None:
                members.discard(conn)
                if not members:
                    del self._rooms[room]
            conn.rooms.discard(room)

    # ------------------------------------------------------------------
    # Server-initiated broadcasts
    # ------------------------------------------------------------------

    async def emit_entries_updated(
        self, catalog_id: str, entries: list[dict[str, Any]], triggered_by: str
    ) -> int:
        payload = EntriesUpdatedPayload(
            catalog_id=catalog_id,
            entries=entries,
            triggered_by=triggered_by,
            updated_at=isoformat(utcnow()),
        )
        return await self._emit(catalog_id, protocol.ENTRIES_UPDATED, payload)

    async def emit_metadata_updated(self, catalog: dict[str, Any], triggered_by: str) -> int:
        payload = MetadataUpdatedPayload(
            catalog_id=catalog["id"],
            catalog=catalog,
            triggered_by=triggered_by,
            updated_at=isoformat(utcnow()),
        )
        return await self._emit(catalog["id"], protocol.METADATA_UPDATED, payload)

    async def emit_deleted(self, catalog_id: str, triggered_by: str) -> int:
        payload = DeletedPayload(
            catalog_id=catalog_id,
            triggered_by=triggered_by,
            timestamp=isoformat(utcnow()),
        )
        delivered = await self._emit(catalog_id, protocol.DELETED, payload)
        await self.close_room(catalog_id)
        return delivered

    async def _emit(self, catalog_id: str, event: str, payload: protocol.Frame) -> int:
        frame = event_frame(event, payload)
        room = room_name(catalog_id)
        # Enqueue while holding the lock: membership cannot change mid-broadcast
        async with self._lock:
            members = list(self._rooms.get(room, ()))
            delivered = sum(1 for conn in members if conn.enqueue(frame))
        logger.debug("Broadcast %s to %s (%d/%d)", event, room, delivered, len(members))
        return delivered

    async def close_room(self, catalog_id: str) -> None:
        room = room_name(catalog_id)
        async with self._lock:
            for conn in self._rooms.pop(room, ()):
                conn.rooms.discard(room)

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    def room_members(self, catalog_id: str) -> frozenset[Connection]:
        return frozenset(self._rooms.get(room_name(catalog_id), ()))

    @property
    def connection_count(self) -> int:
        return len(self._connections)

    async def close(self) -> None:
        async with self._lock:
            connections = list(self._connections)
            self._connections.clear()
            self._rooms.clear()
        for conn in connections:
            conn.rooms.clear()
            conn.enqueue(None)


class Broadcaster:
    """
    Process-wide owner of the broadcast hub.

    ``initialize()`` constructs the hub once; later calls return the
    existing instance unchanged. The ``*_updated``/``deleted`` methods are
    what request handlers call after a successful mutation.
    """

    def __init__(self) -> None:
        self._hub: BroadcastHub | None = None

    def initialize(
        self,
        resolver: PermissionResolver,
        authenticate: AuthenticateCallback,
        send_queue_size: int = DEFAULT_SEND_QUEUE_SIZE,
    ) -> BroadcastHub:
        if self._hub is not None:
            logger.warning("Broadcast hub already initialized; returning existing instance")
            return self._hub
        self._hub = BroadcastHub(resolver, authenticate, send_queue_size=send_queue_size)
        logger.info("Broadcast hub initialized")
        return self._hub

    @property
    def hub(self) -> BroadcastHub | None:
        return self._hub

    def require(self) -> BroadcastHub:
        if self._hub is None:
            raise HubUnavailableError()
        return self._hub

    async def entries_updated(
        self, catalog_id: str, entries: list[dict[str, Any]], triggered_by: str
    ) -> None:
        await self._publish(
            protocol.ENTRIES_UPDATED, catalog_id,
            lambda hub: hub.emit_entries_updated(catalog_id, entries, triggered_by),
        )

    async def metadata_updated(self, catalog: dict[str, Any], triggered_by: str) -> None:
        await self._publish(
            protocol.METADATA_UPDATED, catalog["id"],
            lambda hub: hub.emit_metadata_updated(catalog, triggered_by),
        )

    async def deleted(self, catalog_id: str, triggered_by: str) -> None:
        await self._publish(
            protocol.DELETED, catalog_id,
            lambda hub: hub.emit_deleted(catalog_id, triggered_by),
        )

    async def _publish(
        self,
        event: str,
        catalog_id: str,
        emit: Callable[[BroadcastHub], Awaitable[int]],
    ) -> None:
        try:
            hub = self.require()
        except HubUnavailableError:
            logger.warning("Broadcast hub not initialized. Skipping %s for catalog %s", event, catalog_id)
            return
        try:
            await emit(hub)
        except Exception:
            logger.exception("Failed to broadcast %s for catalog %s", event, catalog_id)

    async def shutdown(self) -> None:
        if self._hub is not None:
            await self._hub.close()
