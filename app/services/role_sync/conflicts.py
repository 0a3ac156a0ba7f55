"""
Conflict resolution for pending sync events on the same (user, project).

Events are coalesced before anything is applied, so only one write per pair
reaches the target. The winner is chosen by content, never arrival order:

- A ROLE_REMOVED event supersedes every event created before it.
- Assignment events created after the newest removal compete by payload
  effective hierarchy, then project hierarchy, then event id (string order).
  Any surviving assignment supersedes the removal.
- With no assignment after the newest removal, the removal wins.

All functions here are pure.
"""

from dataclasses import dataclass
from typing import Any

from app.models.sync_event import SyncEvent


@dataclass
class ConflictResolution:
    """The event to apply and the events it supersedes."""

    winner: SyncEvent
    superseded: list[SyncEvent]


def _hierarchy(payload: dict[str, Any], key: str) -> int:
    value = payload.get(key)
    if isinstance(value, bool) or not isinstance(value, int):
        return -1
    return value


def _assignment_rank(event: SyncEvent) -> tuple[int, int, str]:
    payload = event.payload or {}
    return (
        _hierarchy(payload, "effective_hierarchy"),
        _hierarchy(payload, "project_hierarchy"),
        str(event.id),
    )


def _created_order(event: SyncEvent) -> tuple[Any, str]:
    return (event.created_at, str(event.id))


def resolve_conflicts(events: list[SyncEvent]) -> ConflictResolution:
    """
    Pick the single event to apply for one (user, project) pair.

    Raises:
        ValueError: events is empty or spans more than one pair.
    """
    if not events:
        raise ValueError("resolve_conflicts needs at least one event")
    pairs = {(e.user_id, e.project_id) for e in events}
    if len(pairs) > 1:
        raise ValueError(f"Events span {len(pairs)} (user, project) pairs")

    ordered = sorted(events, key=_created_order)
    removals = [e for e in ordered if e.is_removal]
    latest_removal = removals[-1] if removals else None

    if latest_removal is not None:
        cutoff = _created_order(latest_removal)
        candidates = [e for e in ordered if not e.is_removal and _created_order(e) > cutoff]
    else:
        candidates = [e for e in ordered if not e.is_removal]

    if candidates:
        winner = max(candidates, key=_assignment_rank)
    elif latest_removal is not None:
        winner = latest_removal
    else:
        raise ValueError("resolve_conflicts found neither an assignment nor a removal")

    superseded = [e for e in ordered if e.id != winner.id]
    return ConflictResolution(winner=winner, superseded=superseded)
