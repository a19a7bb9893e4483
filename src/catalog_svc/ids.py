"""Identifier helpers.

All identities owned by this service (catalogs, links, shares) are
32-character lowercase hex strings. User and entry identities come from
external collaborators but follow the same format.
"""

from __future__ import annotations

import re
import uuid
from typing import Any

from .errors import InvalidInputError

_ID_PATTERN = re.compile(r"^[0-9a-f]{32}$")


def new_id() -> str:
    """Generate a fresh identifier."""
    return uuid.uuid4().hex


def is_valid_id(value: Any) -> bool:
    return isinstance(value, str) and bool(_ID_PATTERN.match(value))


def require_id(value: Any, label: str = "ID") -> str:
    """Return *value* if it is a well-formed id, else raise InvalidInputError."""
    if not value:
        raise InvalidInputError(f"{label} is required")
    if not is_valid_id(value):
        raise InvalidInputError(f"Invalid {label}")
    return value
