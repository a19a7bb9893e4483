"""Share store - invitation/collaboration records and their status machine.

Transitions::

    (none)   --invite-->   pending
    revoked  --invite-->   pending    (same record, role reset)
    pending  --accept-->   accepted
    pending  --decline-->  declined
    any      --revoke-->   revoked

Role changes are allowed at any status and never alter the status.
Every transition except the initial invite and role changes stamps
``responded_at``.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import replace

from ..errors import DuplicateInvitationError, InvalidStateError, NotPendingError
from ..ids import is_valid_id, new_id
from .types import CatalogShare, ShareRole, ShareStatus, utcnow

logger = logging.getLogger(__name__)

# Statuses reachable through update_status() from each status
_TRANSITIONS: dict[ShareStatus, frozenset[ShareStatus]] = {
    ShareStatus.PENDING: frozenset({ShareStatus.ACCEPTED, ShareStatus.DECLINED, ShareStatus.REVOKED}),
    ShareStatus.ACCEPTED: frozenset({ShareStatus.REVOKED}),
    ShareStatus.DECLINED: frozenset({ShareStatus.REVOKED}),
    ShareStatus.REVOKED: frozenset({ShareStatus.REVOKED}),
}

_RESPONSES = frozenset({ShareStatus.ACCEPTED, ShareStatus.DECLINED})


class CatalogShareStore:
    """
    One mutable record per (catalog, invitee) pair.

    Transition checks and writes happen under one lock, so a status check
    can never be invalidated between reading and writing the record.
    """

    def __init__(self) -> None:
        self._shares: dict[str, CatalogShare] = {}
        self._by_pair: dict[tuple[str, str], str] = {}  # (catalog, invitee) -> share id
        self._lock = threading.RLock()

    async def create_invitation(
        self,
        catalog_id: str,
        owner: str,
        invitee: str,
        invited_by: str,
        role: ShareRole = ShareRole.VIEWER,
    ) -> tuple[CatalogShare, bool]:
        """
        Create a pending invitation, or restore a revoked one.

        Returns:
            (share, created) where *created* is False when an existing
            revoked record was restored to pending.

        Raises:
            DuplicateInvitationError: a pending, accepted, or declined
                record already exists; it is attached as ``existing``.
        """
        role = ShareRole(role)
        with self._lock:
            share_id = self._by_pair.get((catalog_id, invitee))
            if share_id is not None:
                existing = self._shares[share_id]
                if existing.status is not ShareStatus.REVOKED:
                    raise DuplicateInvitationError(replace(existing))

                restored = replace(
                    existing,
                    role=role,
                    status=ShareStatus.PENDING,
                    invited_by=invited_by,
                    responded_at=None,
                    updated_at=utcnow(),
                )
                self._shares[share_id] = restored
                logger.info("Restored revoked invitation %s as pending", share_id)
                return replace(restored), False

            share = CatalogShare(
                id=new_id(),
                catalog_id=catalog_id,
                owner=owner,
                invitee=invitee,
                invited_by=invited_by,
                role=role,
            )
            self._shares[share.id] = share
            self._by_pair[(catalog_id, invitee)] = share.id

        logger.info("Created invitation %s for catalog %s", share.id, catalog_id)
        return replace(share), True

    async def find_by_catalog_and_invitee(self, catalog_id: str, invitee: str) -> CatalogShare | None:
        with self._lock:
            share_id = self._by_pair.get((catalog_id, invitee))
            return replace(self._shares[share_id]) if share_id else None

    async def find_by_id(self, share_id: str) -> CatalogShare | None:
        if not is_valid_id(share_id):
            return None
        with self._lock:
            share = self._shares.get(share_id)
            return replace(share) if share else None

    async def find_accepted(self, catalog_id: str, user_id: str) -> CatalogShare | None:
        """The share granting *user_id* access to the catalog, if accepted."""
        share = await self.find_by_catalog_and_invitee(catalog_id, user_id)
        if share is None or share.status is not ShareStatus.ACCEPTED:
            return None
        return share

    async def list_collaborators(self, catalog_id: str) -> list[CatalogShare]:
        """All non-revoked shares of a catalog."""
        with self._lock:
            return [
                replace(s) for s in self._shares.values()
                if s.catalog_id == catalog_id and s.status is not ShareStatus.REVOKED
            ]

    async def list_pending_for_invitee(self, invitee: str) -> list[CatalogShare]:
        return self._list_for_invitee(invitee, ShareStatus.PENDING)

    async def list_accepted_for_invitee(self, invitee: str) -> list[CatalogShare]:
        return self._list_for_invitee(invitee, ShareStatus.ACCEPTED)

    def _list_for_invitee(self, invitee: str, status: ShareStatus) -> list[CatalogShare]:
        with self._lock:
            return [
                replace(s) for s in self._shares.values()
                if s.invitee == invitee and s.status is status
            ]

    async def update_status(self, share_id: str, status: ShareStatus) -> CatalogShare | None:
        """
        Move a share to *status*, stamping ``responded_at``.

        Returns None if the share does not exist.

        Raises:
            NotPendingError: accept/decline of a share that is not pending
            InvalidStateError: any other transition not in the table
        """
        status = ShareStatus(status)
        if not is_valid_id(share_id):
            return None
        with self._lock:
            current = self._shares.get(share_id)
            if current is None:
                return None
            if status not in _TRANSITIONS[current.status]:
                if status in _RESPONSES:
                    raise NotPendingError()
                raise InvalidStateError(
                    f"Cannot move invitation from {current.status.value} to {status.value}"
                )
            now = utcnow()
            updated = replace(current, status=status, responded_at=now, updated_at=now)
            self._shares[share_id] = updated
            return replace(updated)

    async def update_role(self, share_id: str, role: ShareRole) -> CatalogShare | None:
        role = ShareRole(role)
        if not is_valid_id(share_id):
            return None
        with self._lock:
            current = self._shares.get(share_id)
            if current is None:
                return None
            updated = replace(current, role=role, updated_at=utcnow())
            self._shares[share_id] = updated
            return replace(updated)

    async def revoke(self, share_id: str) -> CatalogShare | None:
        return await self.update_status(share_id, ShareStatus.REVOKED)

    async def remove_all_for_catalog(self, catalog_id: str) -> int:
        with self._lock:
            ids = [s.id for s in self._shares.values() if s.catalog_id == catalog_id]
            for share_id in ids:
                share = self._shares.pop(share_id)
                del self._by_pair[(share.catalog_id, share.invitee)]
        return len(ids)
