"""Catalog system - catalogs, entry links, shares, and access resolution."""

from .types import (
    AccessLevel,
    Catalog,
    CatalogEntryLink,
    CatalogShare,
    LinkedEntry,
    ShareRole,
    ShareStatus,
)
from .store import CatalogStore
from .links import CatalogEntryLinkStore
from .shares import CatalogShareStore
from .permissions import PermissionResolver, effective_access
from .entries import ImageContext, ImageUrlResolver, build_entries_response

__all__ = [
    "AccessLevel",
    "Catalog",
    "CatalogEntryLink",
    "CatalogShare",
    "LinkedEntry",
    "ShareRole",
    "ShareStatus",
    "CatalogStore",
    "CatalogEntryLinkStore",
    "CatalogShareStore",
    "PermissionResolver",
    "effective_access",
    "ImageContext",
    "ImageUrlResolver",
    "build_entries_response",
]
