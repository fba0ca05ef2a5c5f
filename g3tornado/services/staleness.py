"""
Staleness / cadence evaluator.

A task is stale when it is open and more whole days have passed since its last
movement than its follow-up cadence allows. Missing or invalid timestamps and
cadences never flag a task: this feeds a dashboard, so it fails toward quiet.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

DEFAULT_FU_CADENCE_DAYS = 3


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def to_utc(dt: datetime) -> datetime:
    """Normalise a datetime to UTC-aware (SQLite hands back naive values)."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def _coerce_datetime(value: Any) -> datetime | None:
    if isinstance(value, datetime):
        return to_utc(value)
    if isinstance(value, str) and value:
        try:
            return to_utc(datetime.fromisoformat(value.replace("Z", "+00:00")))
        except ValueError:
            return None
    return None


def days_between(then: Any, now: datetime | None = None) -> int | None:
    """Whole days elapsed from ``then`` to ``now`` (floored), or None."""
    start = _coerce_datetime(then)
    if start is None:
        return None
    end = to_utc(now) if now is not None else utcnow()
    return (end - start).days


def days_since_movement(task: Any, now: datetime | None = None) -> int | None:
    return days_between(getattr(task, "last_movement_at", None), now)


def cadence_of(task: Any) -> int | None:
    """The task's cadence if it is a strictly positive integer, else None."""
    cadence = getattr(task, "fu_cadence_days", None)
    if isinstance(cadence, bool) or not isinstance(cadence, int) or cadence <= 0:
        return None
    return cadence


def days_past_cadence(task: Any, now: datetime | None = None) -> int | None:
    days = days_since_movement(task, now)
    cadence = cadence_of(task)
    if days is None or cadence is None:
        return None
    return days - cadence


def is_stale(task: Any, now: datetime | None = None) -> bool:
    if getattr(task, "status", None) != "open":
        return False
    past = days_past_cadence(task, now)
    return past is not None and past > 0


def record_movement(task: Any, now: datetime | None = None) -> datetime:
    """Reset the staleness clock on ``task`` and return the new timestamp."""
    moved_at = to_utc(now) if now is not None else utcnow()
    task.last_movement_at = moved_at
    return moved_at
