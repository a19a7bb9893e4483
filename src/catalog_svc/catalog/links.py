"""Catalog-entry link store - many-to-many catalog/entry association."""

from __future__ import annotations

import logging
import threading

from ..directory import EntryDirectory, UserDirectory
from ..errors import AlreadyLinkedError
from ..ids import new_id
from .types import CatalogEntryLink, LinkedEntry

logger = logging.getLogger(__name__)


class CatalogEntryLinkStore:
    """
    Links between catalogs and externally owned entries.

    (catalog, entry) is unique: linking an already linked pair raises
    AlreadyLinkedError instead of silently adding a second row.
    """

    def __init__(
        self,
        entries: EntryDirectory | None = None,
        users: UserDirectory | None = None,
    ) -> None:
        self._entries = entries
        self._users = users
        self._links: dict[tuple[str, str], CatalogEntryLink] = {}  # (catalog, entry) -> link
        self._lock = threading.RLock()

    async def link(self, catalog_id: str, entry_id: str, added_by: str) -> CatalogEntryLink:
        key = (catalog_id, entry_id)
        with self._lock:
            if key in self._links:
                raise AlreadyLinkedError()
            link = CatalogEntryLink(
                id=new_id(),
                catalog_id=catalog_id,
                entry_id=entry_id,
                added_by=added_by,
            )
            self._links[key] = link
        logger.debug("Linked entry %s into catalog %s", entry_id, catalog_id)
        return link

    async def unlink(self, catalog_id: str, entry_id: str) -> bool:
        """Remove the link if present. Returns whether a link was removed."""
        with self._lock:
            return self._links.pop((catalog_id, entry_id), None) is not None

    async def is_linked(self, catalog_id: str, entry_id: str) -> bool:
        with self._lock:
            return (catalog_id, entry_id) in self._links

    async def list_for_catalog(self, catalog_id: str) -> list[CatalogEntryLink]:
        """Links of a catalog in the order they were added."""
        with self._lock:
            # dict preserves insertion order, which is also added_at order
            return [link for (cid, _), link in self._links.items() if cid == catalog_id]

    async def list_with_details(self, catalog_id: str) -> list[LinkedEntry]:
        """Links of a catalog joined with entry and added-by projections."""
        details: list[LinkedEntry] = []
        for link in await self.list_for_catalog(catalog_id):
            entry = await self._entries.get_entry(link.entry_id) if self._entries else None
            profile = await self._users.get_profile(link.added_by) if self._users else None
            details.append(LinkedEntry(link=link, entry=entry, added_by_profile=profile))
        return details

    async def list_catalog_ids_for_entry(self, entry_id: str) -> list[str]:
        with self._lock:
            return [cid for (cid, eid) in self._links if eid == entry_id]

    async def remove_all_for_entry(self, entry_id: str) -> int:
        """Cascade hook for entries deleted by the external entry store."""
        with self._lock:
            keys = [key for key in self._links if key[1] == entry_id]
            for key in keys:
                del self._links[key]
        if keys:
            logger.info("Removed entry %s from %d catalogs", entry_id, len(keys))
        return len(keys)

    async def remove_all_for_catalog(self, catalog_id: str) -> int:
        with self._lock:
            keys = [key for key in self._links if key[0] == catalog_id]
            for key in keys:
                del self._links[key]
        return len(keys)
