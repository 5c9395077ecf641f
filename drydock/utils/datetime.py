"""Datetime helpers."""

from __future__ import annotations

from datetime import datetime, timezone


def utcnow() -> datetime:
    """Current UTC time as a naive datetime.

    Stored timestamps are naive UTC so SQLite and Postgres compare them alike.
    """
    return datetime.now(timezone.utc).replace(tzinfo=None)
