"""Permission resolver - effective access of a user on a catalog."""

from __future__ import annotations

from ..errors import AccessDeniedError, CatalogNotFoundError
from .shares import CatalogShareStore
from .store import CatalogStore
from .types import AccessLevel, Catalog, CatalogShare, ShareRole, ShareStatus


def effective_access(catalog: Catalog, user_id: str, share: CatalogShare | None) -> AccessLevel:
    """
    Compute access from the catalog and the user's share record.

    Only an accepted share grants anything; pending, declined, and revoked
    records all yield NONE.
    """
    if catalog.owner == user_id:
        return AccessLevel.OWNER
    if share is None or share.status is not ShareStatus.ACCEPTED:
        return AccessLevel.NONE
    if share.invitee != user_id or share.catalog_id != catalog.id:
        return AccessLevel.NONE
    return AccessLevel.EDITOR if share.role is ShareRole.EDITOR else AccessLevel.VIEWER


class PermissionResolver:
    """Resolves and enforces access using the catalog and share stores.

    Decisions are never cached: every call reads the stores.
    """

    def __init__(self, catalogs: CatalogStore, shares: CatalogShareStore) -> None:
        self.catalogs = catalogs
        self.shares = shares

    async def resolve(self, catalog: Catalog, user_id: str) -> AccessLevel:
        if catalog.owner == user_id:
            return AccessLevel.OWNER
        share = await self.shares.find_accepted(catalog.id, user_id)
        return effective_access(catalog, user_id, share)

    async def can_read(self, catalog: Catalog, user_id: str) -> bool:
        return (await self.resolve(catalog, user_id)).can_read

    async def can_edit(self, catalog: Catalog, user_id: str) -> bool:
        return (await self.resolve(catalog, user_id)).can_edit

    async def resolve_id(self, catalog_id: str, user_id: str) -> tuple[Catalog, AccessLevel]:
        catalog = await self.catalogs.get(catalog_id)
        if catalog is None:
            raise CatalogNotFoundError()
        return catalog, await self.resolve(catalog, user_id)

    async def require_read(self, catalog_id: str, user_id: str) -> tuple[Catalog, AccessLevel]:
        catalog, access = await self.resolve_id(catalog_id, user_id)
        if not access.can_read:
            raise AccessDeniedError("You do not have access to this catalog")
        return catalog, access

    async def require_edit(self, catalog_id: str, user_id: str) -> tuple[Catalog, AccessLevel]:
        catalog, access = await self.resolve_id(catalog_id, user_id)
        if not access.can_edit:
            raise AccessDeniedError("You do not have permission to update entries in this catalog")
        return catalog, access

    async def require_owner(self, catalog_id: str, user_id: str, action: str = "modify") -> Catalog:
        catalog, access = await self.resolve_id(catalog_id, user_id)
        if access is not AccessLevel.OWNER:
            raise AccessDeniedError(f"Only the owner can {action} this catalog")
        return catalog
