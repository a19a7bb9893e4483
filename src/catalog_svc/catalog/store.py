"""Catalog store - catalog metadata with per-owner name uniqueness."""

from __future__ import annotations

import itertools
import logging
import threading
from dataclasses import replace
from typing import Any

from ..errors import CatalogNotFoundError, InvalidInputError, NameConflictError
from ..ids import is_valid_id, new_id
from .types import Catalog, normalize_description, normalize_name, utcnow

logger = logging.getLogger(__name__)

UPDATABLE_FIELDS = frozenset({"name", "description"})


class CatalogStore:
    """
    In-process document store for catalogs.

    Every mutating call takes the owner as part of its lookup key, so a
    non-owner can never reach a row to mutate it. Records handed out are
    copies; callers cannot change stored state by mutating them.
    """

    def __init__(self) -> None:
        self._catalogs: dict[str, Catalog] = {}
        self._names: dict[tuple[str, str], str] = {}  # (owner, name) -> catalog id
        self._touched: dict[str, int] = {}  # catalog id -> last write sequence
        self._sequence = itertools.count()
        self._lock = threading.RLock()

    async def create(self, owner: str, name: str, description: str | None = None) -> Catalog:
        name = normalize_name(name)
        description = normalize_description(description)

        with self._lock:
            if (owner, name) in self._names:
                raise NameConflictError()

            now = utcnow()
            catalog = Catalog(
                id=new_id(),
                owner=owner,
                name=name,
                description=description,
                created_at=now,
                updated_at=now,
            )
            self._catalogs[catalog.id] = catalog
            self._names[(owner, name)] = catalog.id
            self._touched[catalog.id] = next(self._sequence)

        logger.debug("Created catalog %s for owner %s", catalog.id, owner)
        return replace(catalog)

    async def get(self, catalog_id: str) -> Catalog | None:
        if not is_valid_id(catalog_id):
            return None
        with self._lock:
            catalog = self._catalogs.get(catalog_id)
            return replace(catalog) if catalog else None

    async def list_by_owner(self, owner: str) -> list[Catalog]:
        """Most recently updated first, then most recently created."""
        with self._lock:
            owned = [c for c in self._catalogs.values() if c.owner == owner]
            owned.sort(
                key=lambda c: (c.updated_at, c.created_at, self._touched[c.id]),
                reverse=True,
            )
            return [replace(c) for c in owned]

    async def update(self, catalog_id: str, owner: str, fields: dict[str, Any]) -> Catalog:
        """
        Apply a partial update to the catalog matching (id, owner).

        Raises:
            CatalogNotFoundError: no catalog matches (id, owner)
            NameConflictError: the new name collides with another catalog
                of the same owner; the stored record is left unchanged
            InvalidInputError: empty update or unknown fields
        """
        if not fields:
            raise InvalidInputError("At least one field must be provided to update the catalog")
        unknown = set(fields) - UPDATABLE_FIELDS
        if unknown:
            raise InvalidInputError(f"Unknown catalog fields: {', '.join(sorted(unknown))}")

        changes: dict[str, Any] = {}
        if "name" in fields:
            changes["name"] = normalize_name(fields["name"])
        if "description" in fields:
            changes["description"] = normalize_description(fields["description"])

        if not is_valid_id(catalog_id):
            raise CatalogNotFoundError()

        with self._lock:
            current = self._catalogs.get(catalog_id)
            if current is None or current.owner != owner:
                raise CatalogNotFoundError()

            new_name = changes.get("name", current.name)
            if new_name != current.name:
                holder = self._names.get((owner, new_name))
                if holder is not None and holder != catalog_id:
                    raise NameConflictError()
                del self._names[(owner, current.name)]
                self._names[(owner, new_name)] = catalog_id

            updated = replace(current, **changes, updated_at=utcnow())
            self._catalogs[catalog_id] = updated
            self._touched[catalog_id] = next(self._sequence)
            return replace(updated)

    async def delete(self, catalog_id: str, owner: str) -> bool:
        """Delete the catalog matching (id, owner). False if no such row."""
        if not is_valid_id(catalog_id):
            return False
        with self._lock:
            current = self._catalogs.get(catalog_id)
            if current is None or current.owner != owner:
                return False
            del self._catalogs[catalog_id]
            del self._names[(owner, current.name)]
            del self._touched[catalog_id]
        logger.debug("Deleted catalog %s", catalog_id)
        return True

    async def delete_all_owned_by(self, owner: str) -> list[str]:
        """Delete every catalog of *owner*; returns the removed ids."""
        with self._lock:
            ids = [c.id for c in self._catalogs.values() if c.owner == owner]
            for catalog_id in ids:
                catalog = self._catalogs.pop(catalog_id)
                del self._names[(owner, catalog.name)]
                del self._touched[catalog_id]
        return ids
