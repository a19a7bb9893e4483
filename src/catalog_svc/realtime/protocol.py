"""Real-time wire protocol.

Client -> server frames (JSON, UTF-8)::

    {"event": "catalog:join",  "id": "c1", "catalogId": "<id>"}
    {"event": "catalog:leave", "catalogId": "<id>"}

Server -> client frames::

    {"type": "ack",   "event": "catalog:join", "id": "c1", "ok": true}
    {"type": "ack",   "event": "catalog:join", "id": "c1", "ok": false, "error": "Access denied"}
    {"type": "event", "event": "catalog:entries-updated", "data": {...}}
    {"type": "error", "error": "Invalid message"}
"""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

JOIN = "catalog:join"
LEAVE = "catalog:leave"

ENTRIES_UPDATED = "catalog:entries-updated"
METADATA_UPDATED = "catalog:metadata-updated"
DELETED = "catalog:deleted"

# Ack error strings
ERR_CATALOG_ID_REQUIRED = "Catalog ID is required"
ERR_INVALID_CATALOG_ID = "Invalid catalog ID"
ERR_CATALOG_NOT_FOUND = "Catalog not found"
ERR_ACCESS_DENIED = "Access denied"
ERR_JOIN_FAILED = "Failed to join catalog room"


def room_name(catalog_id: str) -> str:
    return f"catalog:{catalog_id}"


class Frame(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_wire(self, exclude_none: bool = True) -> dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=exclude_none, mode="json")


class ClientCommand(Frame):
    """A connection-initiated command."""
    event: str = Field(min_length=1)
    id: str | int | None = None
    # Validated by the hub, not here: a malformed id must produce an ack
    catalog_id: Any = None


class Ack(Frame):
    type: Literal["ack"] = "ack"
    event: str = JOIN
    id: str | int | None = None
    ok: bool
    error: str | None = None


class ErrorFrame(Frame):
    type: Literal["error"] = "error"
    error: str


class EntriesUpdatedPayload(Frame):
    catalog_id: str
    entries: list[dict[str, Any]]
    triggered_by: str
    updated_at: str


class MetadataUpdatedPayload(Frame):
    catalog_id: str
    catalog: dict[str, Any]
    triggered_by: str
    updated_at: str


class DeletedPayload(Frame):
    catalog_id: str
    triggered_by: str
    timestamp: str


def event_frame(event: str, payload: Frame) -> dict[str, Any]:
    """Wrap a broadcast payload; null fields inside payloads are kept."""
    return {"type": "event", "event": event, "data": payload.to_wire(exclude_none=False)}
