"""Catalog types - catalogs, entry links, shares, and access levels."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from ..errors import InvalidInputError

NAME_MAX_LENGTH = 100
DESCRIPTION_MAX_LENGTH = 500


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def isoformat(value: datetime | None) -> str | None:
    """Render a timestamp as ISO-8601 UTC with millisecond precision."""
    if value is None:
        return None
    return value.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


class ShareRole(str, Enum):
    """Role granted to a collaborator."""
    VIEWER = "viewer"
    EDITOR = "editor"


class ShareStatus(str, Enum):
    """Lifecycle status of a share record."""
    PENDING = "pending"
    ACCEPTED = "accepted"
    DECLINED = "declined"
    REVOKED = "revoked"


class AccessLevel(str, Enum):
    """Effective access of a user on a catalog (derived, never stored)."""
    OWNER = "owner"
    EDITOR = "editor"
    VIEWER = "viewer"
    NONE = "none"

    @property
    def can_read(self) -> bool:
        return self is not AccessLevel.NONE

    @property
    def can_edit(self) -> bool:
        return self in (AccessLevel.OWNER, AccessLevel.EDITOR)


def normalize_name(value: Any) -> str:
    """Trim and bound-check a catalog name."""
    if not isinstance(value, str):
        raise InvalidInputError("Catalog name must be a string")
    name = value.strip()
    if not name:
        raise InvalidInputError("Catalog name cannot be empty")
    if len(name) > NAME_MAX_LENGTH:
        raise InvalidInputError(f"Catalog name must be at most {NAME_MAX_LENGTH} characters")
    return name


def normalize_description(value: Any) -> str | None:
    if value is None:
        return None
    if not isinstance(value, str):
        raise InvalidInputError("Description must be a string")
    description = value.strip()
    if len(description) > DESCRIPTION_MAX_LENGTH:
        raise InvalidInputError(f"Description must be at most {DESCRIPTION_MAX_LENGTH} characters")
    return description


@dataclass(slots=True)
class Catalog:
    """
    An owned, named collection of observation entries.

    Entries are not held here; they are associated through
    CatalogEntryLink records.
    """
    id: str
    owner: str  # User id; the only identity allowed to mutate the catalog
    name: str
    description: str | None = None
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "owner": self.owner,
            "name": self.name,
            "description": self.description,
            "createdAt": isoformat(self.created_at),
            "updatedAt": isoformat(self.updated_at),
        }


@dataclass(frozen=True, slots=True)
class CatalogEntryLink:
    """Association of an externally owned entry with a catalog."""
    id: str
    catalog_id: str
    entry_id: str
    added_by: str
    added_at: datetime = field(default_factory=utcnow)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "catalogId": self.catalog_id,
            "entryId": self.entry_id,
            "addedBy": self.added_by,
            "addedAt": isoformat(self.added_at),
        }


@dataclass(slots=True)
class CatalogShare:
    """
    The single mutable record granting a non-owner a role on a catalog.

    Exactly one record exists per (catalog, invitee) pair; its status
    encodes the history of the pairing.
    """
    id: str
    catalog_id: str
    owner: str  # Copy of the catalog owner at invite time
    invitee: str
    invited_by: str
    role: ShareRole = ShareRole.VIEWER
    status: ShareStatus = ShareStatus.PENDING
    responded_at: datetime | None = None
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "catalogId": self.catalog_id,
            "owner": self.owner,
            "invitee": self.invitee,
            "invitedBy": self.invited_by,
            "role": self.role.value,
            "status": self.status.value,
            "respondedAt": isoformat(self.responded_at),
            "createdAt": isoformat(self.created_at),
            "updatedAt": isoformat(self.updated_at),
        }


@dataclass(frozen=True, slots=True)
class LinkedEntry:
    """A link joined with the projections needed to build responses."""
    link: CatalogEntryLink
    entry: dict[str, Any] | None  # None when the entry no longer resolves
    added_by_profile: dict[str, Any] | None = None
