"""Shared column helpers for SQLModel tables."""

from datetime import datetime, timezone


def _utcnow() -> datetime:
    # Stored naive, in UTC, so every backend round-trips the same value.
    return datetime.now(timezone.utc).replace(tzinfo=None)
