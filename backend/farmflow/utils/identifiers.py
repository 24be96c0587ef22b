from __future__ import annotations

import os
import re
import time
import uuid
from typing import Optional

_UUID_PATTERN = re.compile(
    r"^[0-9a-f]{8}-[0-9a-f]{4}-[1-7][0-9a-f]{3}-[89ab][0-9a-f]{3}-[0-9a-f]{12}$",
    re.IGNORECASE,
)


def generate_uuid7() -> str:
    """
    Generate a UUIDv7 string (time-ordered).

    Used as the primary key for tenants, users and audit rows so that
    index inserts stay append-mostly.
    """
    ts_ms = int(time.time() * 1000)
    raw = bytearray(ts_ms.to_bytes(6, "big", signed=False) + os.urandom(10))
    raw[6] = (raw[6] & 0x0F) | 0x70
    raw[8] = (raw[8] & 0x3F) | 0x80
    return str(uuid.UUID(bytes=bytes(raw)))


def is_uuid(value: Optional[str]) -> bool:
    """Return True for a canonical hyphenated UUID (versions 1-7)."""
    if not value or not isinstance(value, str):
        return False
    return bool(_UUID_PATTERN.match(value.strip()))
