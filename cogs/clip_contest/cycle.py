"""Weekly cycle keys (ISO-8601 week numbering, UTC)."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional, Tuple


def _as_utc(now: Optional[datetime]) -> datetime:
    if now is None:
        return datetime.now(timezone.utc)
    if now.tzinfo is None:
        return now.replace(tzinfo=timezone.utc)
    return now.astimezone(timezone.utc)


def iso_week(now: Optional[datetime] = None) -> Tuple[int, int]:
    """(ISO year, ISO week) for ``now``; week 1 holds the year's first Thursday."""
    year, week, _ = _as_utc(now).isocalendar()
    return year, week


def current_cycle_key(now: Optional[datetime] = None) -> str:
    """
    Cycle key like ``2026-W42``.

    The week is not zero padded so keys stay compatible with rows written by
    the previous deployment. Early-January days that belong to the last ISO
    week of the previous year report that year.
    """
    year, week = iso_week(now)
    return f"{year}-W{week}"


__all__ = ["current_cycle_key", "iso_week"]
