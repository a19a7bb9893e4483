"""Entry-list shaping for responses and broadcast payloads."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any
from urllib.parse import urljoin

from .types import LinkedEntry, isoformat

_ABSOLUTE_URL = re.compile(r"^https?://", re.IGNORECASE)


@dataclass(frozen=True, slots=True)
class ImageContext:
    """Scheme and host of the request an entry list is built for."""
    scheme: str | None = None
    host: str | None = None


@dataclass(frozen=True, slots=True)
class ImageUrlResolver:
    """
    Turns stored relative media paths into externally reachable URLs.

    A configured base URL wins over the request context; absolute URLs
    pass through untouched.
    """
    base_url: str | None = None

    def _base(self, context: ImageContext | None) -> str | None:
        if self.base_url and self.base_url.strip():
            return self.base_url.strip()
        if context and context.scheme and context.host:
            return f"{context.scheme}://{context.host}"
        return None

    def __call__(self, url: Any, context: ImageContext | None = None) -> str | None:
        if not url:
            return None
        value = str(url).strip()
        if not value:
            return None
        if _ABSOLUTE_URL.match(value):
            return value

        base = self._base(context)
        if not base:
            return value
        if not base.endswith("/"):
            base += "/"
        return urljoin(base, value)


def build_entries_response(
    linked: list[LinkedEntry],
    resolve_image: ImageUrlResolver,
    context: ImageContext | None = None,
) -> list[dict[str, Any]]:
    """
    Build the full entry list of a catalog.

    Links whose entry no longer resolves are skipped, and duplicate
    (entry, linkedAt) pairs are collapsed.
    """
    seen: set[tuple[str, str | None]] = set()
    result: list[dict[str, Any]] = []

    for item in linked:
        if item.entry is None:
            continue

        linked_at = isoformat(item.link.added_at)
        key = (item.link.entry_id, linked_at)
        if key in seen:
            continue
        seen.add(key)

        entry = dict(item.entry)
        entry["imageUrl"] = resolve_image(entry.get("imageUrl"), context)

        result.append({
            "entry": entry,
            "linkedAt": linked_at,
            "addedBy": item.link.added_by,
            "addedByProfile": item.added_by_profile,
        })

    return result
