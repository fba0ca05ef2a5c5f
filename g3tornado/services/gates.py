"""
Gate sequence evaluator.

Gates are evaluated strictly in list order: the active gate is the first entry
that is not completed. There is no priority or weighting.

Works on any sequence of records exposing ``completed`` (ORM ``TaskGate`` rows,
dicts from an import, or test stand-ins). A value that is not a list or tuple
has no active gate.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Sequence


def _is_completed(gate: Any) -> bool:
    if isinstance(gate, dict):
        return bool(gate.get("completed", False))
    return bool(getattr(gate, "completed", False))


def _gate_list(gates: Any) -> Sequence:
    if isinstance(gates, (list, tuple)):
        return gates
    # ORM collections (InstrumentedList / ordering_list) are list subclasses;
    # anything else is malformed input.
    return ()


def active_gate(gates: Any):
    """Return the first incomplete gate, or None when there is none."""
    for gate in _gate_list(gates):
        if not _is_completed(gate):
            return gate
    return None


def is_gated(gates: Any) -> bool:
    return active_gate(gates) is not None


@dataclass(frozen=True)
class GateProgress:
    """Position of the current and following incomplete gates (1-based)."""

    current_index: int | None
    current: Any
    next_index: int | None
    next: Any
    total: int

    def to_dict(self) -> dict:
        return {
            "current_index": self.current_index,
            "current": _gate_summary(self.current),
            "next_index": self.next_index,
            "next": _gate_summary(self.next),
            "total": self.total,
        }


def _gate_summary(gate: Any) -> dict | None:
    if gate is None:
        return None
    if isinstance(gate, dict):
        return {"name": gate.get("name"), "owner_name": gate.get("owner_name")}
    return {"name": getattr(gate, "name", None), "owner_name": getattr(gate, "owner_name", None)}


def gate_progress(gates: Any) -> GateProgress:
    """Locate the current gate and the next incomplete one after it."""
    items = _gate_list(gates)
    current_index = next_index = None
    current = nxt = None
    for i, gate in enumerate(items, start=1):
        if _is_completed(gate):
            continue
        if current is None:
            current_index, current = i, gate
        else:
            next_index, nxt = i, gate
            break
    return GateProgress(current_index, current, next_index, nxt, len(items))


def format_gate(index: int, total: int, owner_name: str | None) -> str:
    """Render a gate badge such as ``"3/5 Alwin"``."""
    return f"{index}/{total} {owner_name or ''}".rstrip()
