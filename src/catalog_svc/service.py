"""Catalog service - the operations behind the HTTP routes.

Each operation authorizes the actor through the permission resolver,
performs its mutation against the stores, then publishes the matching
real-time event. Broadcasts and notifications are best-effort: once the
mutation has succeeded, neither can fail the operation.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any

from .catalog import (
    Catalog,
    CatalogEntryLinkStore,
    CatalogShare,
    CatalogShareStore,
    CatalogStore,
    ImageContext,
    ImageUrlResolver,
    PermissionResolver,
    ShareRole,
    ShareStatus,
    build_entries_response,
)
from .directory import (
    CATALOG_INVITE_ACCEPTED,
    CATALOG_INVITE_DECLINED,
    CATALOG_INVITE_RECEIVED,
    EntryDirectory,
    LoggingNotifier,
    Notifier,
    UserDirectory,
)
from .errors import (
    AccessDeniedError,
    CatalogNotFoundError,
    EntryNotFoundError,
    InvalidInputError,
    ShareNotFoundError,
    UserNotFoundError,
)
from .ids import require_id
from .realtime.hub import Broadcaster

logger = logging.getLogger(__name__)

REVOKE = "revoke"
RESPONSES = {"accept": ShareStatus.ACCEPTED, "decline": ShareStatus.DECLINED}


class CatalogService:
    """Catalog, entry-link, and sharing operations for one authenticated actor."""

    def __init__(
        self,
        catalogs: CatalogStore,
        links: CatalogEntryLinkStore,
        shares: CatalogShareStore,
        users: UserDirectory,
        entries: EntryDirectory,
        notifier: Notifier | None = None,
        broadcaster: Broadcaster | None = None,
        resolve_image: ImageUrlResolver | None = None,
    ) -> None:
        self.catalogs = catalogs
        self.links = links
        self.shares = shares
        self.users = users
        self.entries = entries
        self.notifier = notifier or LoggingNotifier()
        self.broadcaster = broadcaster or Broadcaster()
        self.resolve_image = resolve_image or ImageUrlResolver()
        self.resolver = PermissionResolver(catalogs, shares)
        # Held across mutate, recompute and broadcast of one catalog
        self._catalog_locks: dict[str, asyncio.Lock] = {}

    def _catalog_lock(self, catalog_id: str) -> asyncio.Lock:
        lock = self._catalog_locks.get(catalog_id)
        if lock is None:
            lock = self._catalog_locks[catalog_id] = asyncio.Lock()
        return lock

    # ------------------------------------------------------------------
    # Catalogs
    # ------------------------------------------------------------------

    async def create_catalog(
        self, actor: str, name: Any, description: Any = None
    ) -> Catalog:
        catalog = await self.catalogs.create(actor, name, description)
        logger.info("User %s created catalog %s", actor, catalog.id)
        return catalog

    async def list_catalogs(self, actor: str) -> list[Catalog]:
        return await self.catalogs.list_by_owner(actor)

    async def get_catalog(
        self, actor: str, catalog_id: Any, context: ImageContext | None = None
    ) -> dict[str, Any]:
        """Catalog, its entry list, and the actor's access level."""
        require_id(catalog_id, "catalog ID")
        catalog, access = await self.resolver.require_read(catalog_id, actor)
        return {
            "catalog": catalog.to_dict(),
            "entries": await self._entry_list(catalog.id, context),
            "access": access.value,
        }

    async def update_catalog(
        self, actor: str, catalog_id: Any, fields: dict[str, Any]
    ) -> Catalog:
        require_id(catalog_id, "catalog ID")
        await self.resolver.require_owner(catalog_id, actor, action="update")
        updated = await self.catalogs.update(catalog_id, actor, fields)
        await self.broadcaster.metadata_updated(updated.to_dict(), actor)
        return updated

    async def delete_catalog(self, actor: str, catalog_id: Any) -> None:
        """Delete a catalog with its links and shares, then notify its room."""
        require_id(catalog_id, "catalog ID")
        await self.resolver.require_owner(catalog_id, actor, action="delete")
        async with self._catalog_lock(catalog_id):
            if not await self.catalogs.delete(catalog_id, actor):
                raise CatalogNotFoundError()
            await self._cascade_catalog(catalog_id)
            logger.info("User %s deleted catalog %s", actor, catalog_id)
            await self.broadcaster.deleted(catalog_id, actor)
        self._catalog_locks.pop(catalog_id, None)

    async def delete_all_for_owner(self, owner: str) -> list[str]:
        """Account deletion: remove every catalog of *owner* with its links and shares."""
        catalog_ids = await self.catalogs.delete_all_owned_by(owner)
        for catalog_id in catalog_ids:
            async with self._catalog_lock(catalog_id):
                await self._cascade_catalog(catalog_id)
                await self.broadcaster.deleted(catalog_id, owner)
            self._catalog_locks.pop(catalog_id, None)
        if catalog_ids:
            logger.info("Deleted %d catalogs of user %s", len(catalog_ids), owner)
        return catalog_ids

    async def _cascade_catalog(self, catalog_id: str) -> None:
        links = await self.links.remove_all_for_catalog(catalog_id)
        shares = await self.shares.remove_all_for_catalog(catalog_id)
        logger.debug("Catalog %s cascade removed %d links and %d shares", catalog_id, links, shares)

    # ------------------------------------------------------------------
    # Entry links
    # ------------------------------------------------------------------

    async def link_entry(
        self,
        actor: str,
        catalog_id: Any,
        entry_id: Any,
        context: ImageContext | None = None,
    ) -> tuple[Catalog, list[dict[str, Any]]]:
        """
        Link an entry the actor created into a catalog they can edit.

        Catalog edit rights alone are not enough: editors may only attach
        their own entries.
        """
        require_id(catalog_id, "catalog ID")
        require_id(entry_id, "entry ID")
        catalog, _ = await self.resolver.require_edit(catalog_id, actor)

        owner = await self.entries.entry_owner(entry_id)
        if owner is None:
            raise EntryNotFoundError()
        if owner != actor:
            raise AccessDeniedError("You can only link entries that you created")

        async with self._catalog_lock(catalog.id):
            # Deleted while waiting for the lock
            if await self.catalogs.get(catalog.id) is None:
                raise CatalogNotFoundError()
            await self.links.link(catalog.id, entry_id, actor)
            entries = await self._entry_list(catalog.id, context)
            await self.broadcaster.entries_updated(catalog.id, entries, actor)
        return catalog, entries

    async def unlink_entry(
        self,
        actor: str,
        catalog_id: Any,
        entry_id: Any,
        context: ImageContext | None = None,
    ) -> tuple[Catalog, list[dict[str, Any]]]:
        """Unlink an entry; a pair that was never linked is a no-op."""
        require_id(catalog_id, "catalog ID")
        require_id(entry_id, "entry ID")
        catalog, _ = await self.resolver.require_edit(catalog_id, actor)

        async with self._catalog_lock(catalog.id):
            removed = await self.links.unlink(catalog.id, entry_id)
            entries = await self._entry_list(catalog.id, context)
            if removed:
                await self.broadcaster.entries_updated(catalog.id, entries, actor)
        return catalog, entries

    async def on_entry_deleted(self, entry_id: str, triggered_by: str) -> list[str]:
        """
        Cascade hook for entries deleted in the external entry store.

        Removes every link to the entry and pushes the new entry list to
        each affected catalog's room. Returns the affected catalog ids.
        """
        catalog_ids = await self.links.list_catalog_ids_for_entry(entry_id)
        for catalog_id in catalog_ids:
            async with self._catalog_lock(catalog_id):
                await self.links.unlink(catalog_id, entry_id)
                entries = await self._entry_list(catalog_id)
                await self.broadcaster.entries_updated(catalog_id, entries, triggered_by)
        await self.links.remove_all_for_entry(entry_id)
        if catalog_ids:
            logger.info("Entry %s removed from %d catalogs", entry_id, len(catalog_ids))
        return catalog_ids

    async def _entry_list(
        self, catalog_id: str, context: ImageContext | None = None
    ) -> list[dict[str, Any]]:
        linked = await self.links.list_with_details(catalog_id)
        return build_entries_response(linked, self.resolve_image, context)

    # ------------------------------------------------------------------
    # Sharing
    # ------------------------------------------------------------------

    async def list_collaborators(self, actor: str, catalog_id: Any) -> list[CatalogShare]:
        require_id(catalog_id, "catalog ID")
        catalog = await self.resolver.require_owner(catalog_id, actor, action="view collaborators of")
        return await self.shares.list_collaborators(catalog.id)

    async def invite_collaborator(
        self,
        actor: str,
        catalog_id: Any,
        invitee_id: Any,
        role: ShareRole | str = ShareRole.VIEWER,
    ) -> tuple[CatalogShare, bool]:
        """
        Invite a user to a catalog.

        Returns:
            (invitation, created); *created* is False when a revoked
            invitation was restored to pending.

        Raises:
            DuplicateInvitationError: a live invitation already exists
        """
        require_id(catalog_id, "catalog ID")
        require_id(invitee_id, "invitee ID")
        catalog = await self.resolver.require_owner(catalog_id, actor, action="share")

        if invitee_id == actor:
            raise InvalidInputError("Cannot invite yourself to your own catalog")
        if not await self.users.user_exists(invitee_id):
            raise UserNotFoundError()

        share, created = await self.shares.create_invitation(
            catalog.id, catalog.owner, invitee_id, actor, ShareRole(role)
        )
        await self._notify(invitee_id, CATALOG_INVITE_RECEIVED, {
            "catalogId": catalog.id,
            "catalogName": catalog.name,
            "shareId": share.id,
            "invitedBy": actor,
            "role": share.role.value,
        })
        return share, created

    async def update_collaborator(
        self,
        actor: str,
        catalog_id: Any,
        share_id: Any,
        role: ShareRole | str | None = None,
        action: str | None = None,
    ) -> CatalogShare:
        """Change a collaborator's role or revoke them; revoke wins if both are given."""
        require_id(catalog_id, "catalog ID")
        require_id(share_id, "share ID")
        catalog = await self.resolver.require_owner(catalog_id, actor, action="update collaborators of")

        share = await self.shares.find_by_id(share_id)
        if share is None or share.catalog_id != catalog.id:
            raise ShareNotFoundError()

        if action == REVOKE:
            updated = await self.shares.revoke(share.id)
        elif action is not None:
            raise InvalidInputError(f"Unknown action: {action}")
        elif role is not None:
            updated = await self.shares.update_role(share.id, ShareRole(role))
        else:
            raise InvalidInputError("Either role or action must be provided")

        if updated is None:
            raise ShareNotFoundError()
        logger.info("User %s updated collaborator %s on catalog %s", actor, share.id, catalog.id)
        return updated

    async def respond_to_invitation(self, actor: str, share_id: Any, action: str) -> CatalogShare:
        """Accept or decline an invitation addressed to the actor."""
        require_id(share_id, "share ID")
        status = RESPONSES.get(action)
        if status is None:
            raise InvalidInputError("Action must be 'accept' or 'decline'")

        share = await self.shares.find_by_id(share_id)
        if share is None:
            raise ShareNotFoundError()
        if share.invitee != actor:
            raise AccessDeniedError("You are not authorized to respond to this invitation")

        updated = await self.shares.update_status(share.id, status)
        if updated is None:
            raise ShareNotFoundError()

        kind = CATALOG_INVITE_ACCEPTED if status is ShareStatus.ACCEPTED else CATALOG_INVITE_DECLINED
        await self._notify(updated.owner, kind, {
            "catalogId": updated.catalog_id,
            "shareId": updated.id,
            "inviteeId": actor,
        })
        return updated

    async def list_pending_invitations(self, actor: str) -> list[dict[str, Any]]:
        return await self._with_catalogs(await self.shares.list_pending_for_invitee(actor))

    async def list_shared_with_me(self, actor: str) -> list[dict[str, Any]]:
        return await self._with_catalogs(await self.shares.list_accepted_for_invitee(actor))

    async def _with_catalogs(self, shares: list[CatalogShare]) -> list[dict[str, Any]]:
        """Share dicts with their catalog embedded; shares of vanished catalogs are skipped."""
        result = []
        for share in shares:
            catalog = await self.catalogs.get(share.catalog_id)
            if catalog is None:
                continue
            item = share.to_dict()
            item["catalog"] = catalog.to_dict()
            item["invitedByProfile"] = await self.users.get_profile(share.invited_by)
            result.append(item)
        return result

    async def _notify(self, user_id: str, kind: str, payload: dict[str, Any]) -> None:
        try:
            await self.notifier.notify(user_id, kind, payload)
        except Exception:
            logger.exception("Failed to send %s notification to %s", kind, user_id)
