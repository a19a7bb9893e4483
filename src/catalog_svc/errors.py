"""Service error hierarchy.

Every error carries the HTTP status the request layer maps it to, and a
short machine-readable ``kind`` used in JSON error bodies.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .catalog.types import CatalogShare


class CatalogServiceError(Exception):
    """Base class for all expected service failures."""
    status_code: int = 500
    kind: str = "internal_error"
    default_message: str = "Internal error"

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


# ---------------------------------------------------------------------------
# 404
# ---------------------------------------------------------------------------

class NotFoundError(CatalogServiceError):
    status_code = 404
    kind = "not_found"
    default_message = "Not found"


class CatalogNotFoundError(NotFoundError):
    default_message = "Catalog not found"


class ShareNotFoundError(NotFoundError):
    default_message = "Invitation not found"


class EntryNotFoundError(NotFoundError):
    default_message = "Observation entry not found"


class UserNotFoundError(NotFoundError):
    default_message = "Invitee not found"


# ---------------------------------------------------------------------------
# 403
# ---------------------------------------------------------------------------

class AccessDeniedError(CatalogServiceError):
    status_code = 403
    kind = "forbidden"
    default_message = "You do not have access to this catalog"


# ---------------------------------------------------------------------------
# 409
# ---------------------------------------------------------------------------

class ConflictError(CatalogServiceError):
    status_code = 409
    kind = "conflict"
    default_message = "Conflict"


class NameConflictError(ConflictError):
    default_message = "Catalog with the same name already exists"


class AlreadyLinkedError(ConflictError):
    default_message = "Entry already linked to this catalog"


class DuplicateInvitationError(ConflictError):
    """A live (non-revoked) invitation already exists for the pair."""
    default_message = "An invitation already exists for this user"

    def __init__(self, existing: CatalogShare, message: str | None = None) -> None:
        super().__init__(message)
        self.existing = existing


# ---------------------------------------------------------------------------
# 400
# ---------------------------------------------------------------------------

class InvalidStateError(CatalogServiceError):
    status_code = 400
    kind = "invalid_state"
    default_message = "Invalid state transition"


class NotPendingError(InvalidStateError):
    default_message = "Invitation is no longer pending"


class InvalidInputError(CatalogServiceError):
    status_code = 400
    kind = "validation_error"
    default_message = "Invalid input"


# ---------------------------------------------------------------------------
# Real-time
# ---------------------------------------------------------------------------

class HubUnavailableError(CatalogServiceError):
    """Raised when the broadcast hub is used before it was initialized.

    Broadcast helpers catch this and log it; it never fails a request.
    """
    status_code = 503
    kind = "unavailable"
    default_message = "Real-time hub not initialized"
