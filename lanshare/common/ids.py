"""Opaque share identifiers used as storage keys and URL path segments."""
from __future__ import annotations

import re
import uuid

_SHARE_ID_PATTERN = re.compile(r"^[A-Za-z0-9_-]{1,128}$")


def new_share_id() -> str:
    """Return a fresh 128-bit random identifier (32 hex chars)."""
    return uuid.uuid4().hex


def is_valid_share_id(value: object) -> bool:
    # Client-supplied ids (collections, notes) become file names.
    return isinstance(value, str) and bool(_SHARE_ID_PATTERN.match(value))
