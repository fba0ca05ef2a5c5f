"""
Issue aggregator — composes gate and staleness signals into an attention list.

For every task still in play (``open`` or ``pending_close``) emit zero or more:

  overdue          stale; critical when more than 7 days past cadence, else warning
  gated            open with an incomplete gate; warning
  close_requested  a close request is pending; warning after 2 days, else info
  inactive         open, not gated, within cadence, yet idle for over 30 days; info

The result is ordered critical → warning → info and keeps source order within
a severity (``sorted`` is stable).
"""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Iterable

from g3tornado.services.gates import active_gate
from g3tornado.services.staleness import (
    cadence_of,
    days_between,
    days_since_movement,
    is_stale,
    utcnow,
)

SEVERITY_CRITICAL = "critical"
SEVERITY_WARNING = "warning"
SEVERITY_INFO = "info"
SEVERITY_ORDER = {SEVERITY_CRITICAL: 0, SEVERITY_WARNING: 1, SEVERITY_INFO: 2}

ISSUE_OVERDUE = "overdue"
ISSUE_GATED = "gated"
ISSUE_CLOSE_REQUESTED = "close_requested"
ISSUE_INACTIVE = "inactive"
ISSUE_TYPES = (ISSUE_OVERDUE, ISSUE_GATED, ISSUE_CLOSE_REQUESTED, ISSUE_INACTIVE)

CRITICAL_DAYS_PAST_CADENCE = 7
CLOSE_REQUEST_WARNING_DAYS = 2
INACTIVE_DAYS = 30

ACTIVE_STATUSES = ("open", "pending_close")

_TITLE_PREFIX = {
    ISSUE_OVERDUE: "Overdue",
    ISSUE_GATED: "Blocked",
    ISSUE_CLOSE_REQUESTED: "Close Requested",
    ISSUE_INACTIVE: "Inactive",
}


@dataclass(frozen=True)
class Issue:
    id: str
    type: str
    severity: str
    title: str
    description: str
    task_id: Any
    days_since: int | None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "type": self.type,
            "severity": self.severity,
            "title": self.title,
            "description": self.description,
            "task_id": self.task_id,
            "days_since": self.days_since,
        }


def _make_issue(task: Any, kind: str, severity: str, description: str, days: int | None) -> Issue:
    text = getattr(task, "description", None) or ""
    short = text if len(text) <= 50 else f"{text[:50]}..."
    task_id = getattr(task, "id", None)
    return Issue(
        id=f"{kind}-{task_id}",
        type=kind,
        severity=severity,
        title=f"{_TITLE_PREFIX[kind]}: {short}",
        description=description,
        task_id=task_id,
        days_since=days,
    )


def task_issues(task: Any, now: datetime | None = None) -> list[Issue]:
    """All issues a single task contributes, in type order."""
    if getattr(task, "status", None) not in ACTIVE_STATUSES:
        return []

    now = now or utcnow()
    found: list[Issue] = []
    days = days_since_movement(task, now)
    cadence = cadence_of(task)
    gate = active_gate(getattr(task, "gates", None))

    if is_stale(task, now):
        past = days - cadence
        found.append(_make_issue(
            task, ISSUE_OVERDUE,
            SEVERITY_CRITICAL if past > CRITICAL_DAYS_PAST_CADENCE else SEVERITY_WARNING,
            f"{past} days past {cadence}-day follow-up cadence",
            days,
        ))

    if task.status == "open" and gate is not None:
        gate_name = getattr(gate, "name", None) or "Unnamed gate"
        owner = getattr(gate, "owner_name", None)
        found.append(_make_issue(
            task, ISSUE_GATED, SEVERITY_WARNING,
            f"Waiting on {gate_name}" + (f" ({owner})" if owner else ""),
            days,
        ))

    requested_at = getattr(task, "close_requested_at", None)
    if requested_at is not None:
        waiting = days_between(requested_at, now)
        found.append(_make_issue(
            task, ISSUE_CLOSE_REQUESTED,
            SEVERITY_WARNING if waiting is not None and waiting > CLOSE_REQUEST_WARNING_DAYS else SEVERITY_INFO,
            f"Waiting for admin approval ({waiting if waiting is not None else '?'} days)",
            waiting,
        ))

    if (
        task.status == "open"
        and gate is None
        and days is not None
        and cadence is not None
        and days <= cadence
        and days > INACTIVE_DAYS
    ):
        found.append(_make_issue(
            task, ISSUE_INACTIVE, SEVERITY_INFO,
            f"No activity in {days} days",
            days,
        ))

    return found


def aggregate_issues(tasks: Iterable[Any], now: datetime | None = None) -> list[Issue]:
    """Severity-sorted issues across ``tasks``; stable within a severity."""
    now = now or utcnow()
    issues: list[Issue] = []
    for task in tasks:
        issues.extend(task_issues(task, now))
    return sorted(issues, key=lambda i: SEVERITY_ORDER[i.severity])


def summarize_issues(issues: Iterable[Issue], open_tasks: int = 0) -> dict:
    """Dashboard counters: per severity, per type, and tasks scanned."""
    issues = list(issues)
    by_severity = Counter(i.severity for i in issues)
    by_type = Counter(i.type for i in issues)
    return {
        "total": len(issues),
        "open_tasks": open_tasks,
        "by_severity": {s: by_severity.get(s, 0) for s in SEVERITY_ORDER},
        "by_type": {t: by_type.get(t, 0) for t in ISSUE_TYPES},
    }
