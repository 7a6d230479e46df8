"""Identifier and timestamp helpers for domain entities."""

from __future__ import annotations

import secrets
from datetime import datetime, timezone


def generate_id(prefix: str) -> str:
    # 16 hex chars per entity kind; collisions are checked by the owning store.
    return f"{prefix}_{secrets.token_hex(8)}"


def utc_timestamp() -> str:
    return datetime.now(timezone.utc).replace(microsecond=0).isoformat().replace("+00:00", "Z")


__all__ = ["generate_id", "utc_timestamp"]
