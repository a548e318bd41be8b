"""Shared helpers for ARC-FX models."""

from __future__ import annotations

from datetime import UTC, datetime
from uuid import uuid4


def generate_id(prefix: str) -> str:
    """Generate a unique ID with the given prefix.

    Examples:
        generate_id("whk") -> "whk_9f1c2e4a7b3d4c0e8a6f5b2d1e0c9a7b"
        generate_id("evt") -> "evt_0a1b2c3d4e5f60718293a4b5c6d7e8f9"
    """
    return f"{prefix}_{uuid4().hex}"


def utc_now() -> datetime:
    """Current time as a timezone-aware UTC datetime."""
    return datetime.now(UTC)
