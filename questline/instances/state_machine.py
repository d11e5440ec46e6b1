"""State machine for quest instance lifecycle.

Defines the legal status transitions for a scheduled instance:
draft → recruiting → locked → live → completed → archived, with
pause/resume from any active state and cancellation before going live.
The tables below are built once at import and are read-only.
"""

from __future__ import annotations

from enum import Enum
from types import MappingProxyType
from typing import Mapping

from questline.instances.exceptions import InvalidTransitionError, MissingReasonError


class InstanceStatus(str, Enum):
    """Operational status of a quest instance."""

    DRAFT = "draft"
    RECRUITING = "recruiting"
    LOCKED = "locked"
    LIVE = "live"
    PAUSED = "paused"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    ARCHIVED = "archived"


S = InstanceStatus

VALID_TRANSITIONS: Mapping[InstanceStatus, frozenset[InstanceStatus]] = MappingProxyType({
    S.DRAFT: frozenset({S.RECRUITING, S.CANCELLED}),
    S.RECRUITING: frozenset({S.LOCKED, S.PAUSED, S.CANCELLED}),
    # locked can fall back to recruiting when squads are reopened
    S.LOCKED: frozenset({S.RECRUITING, S.LIVE, S.PAUSED, S.CANCELLED}),
    S.LIVE: frozenset({S.COMPLETED, S.PAUSED}),
    S.PAUSED: frozenset({S.RECRUITING, S.LOCKED, S.LIVE, S.CANCELLED}),
    S.COMPLETED: frozenset({S.ARCHIVED}),
    S.CANCELLED: frozenset({S.ARCHIVED}),
    S.ARCHIVED: frozenset(),  # terminal
})

# Targets that need a human-readable justification
REQUIRE_REASON: frozenset[InstanceStatus] = frozenset({S.PAUSED, S.CANCELLED})

# Targets recorded in the compliance audit log
AUDITED_STATUSES: frozenset[InstanceStatus] = frozenset({S.PAUSED, S.CANCELLED, S.ARCHIVED})

# Targets for which participants may be notified
NOTIFY_STATUSES: frozenset[InstanceStatus] = frozenset({S.PAUSED, S.CANCELLED})

del S


def coerce_status(value: InstanceStatus | str | None) -> InstanceStatus | None:
    """Return the InstanceStatus for a member or raw value, or None if unknown."""
    if value is None:
        return None
    try:
        return InstanceStatus(value)
    except ValueError:
        return None


def _label(value: InstanceStatus | str | None) -> str:
    if isinstance(value, InstanceStatus):
        return value.value
    return str(value)


def can_transition(current: InstanceStatus | str, target: InstanceStatus | str) -> bool:
    """Check whether a transition from current to target is valid."""
    source = coerce_status(current)
    destination = coerce_status(target)
    if source is None or destination is None:
        return False
    return destination in VALID_TRANSITIONS[source]


def allowed_transitions(current: InstanceStatus | str) -> frozenset[InstanceStatus]:
    """Return the statuses reachable from current (empty for unknown or terminal)."""
    source = coerce_status(current)
    if source is None:
        return frozenset()
    return VALID_TRANSITIONS[source]


def requires_reason(target: InstanceStatus | str) -> bool:
    """Check whether entering target needs a reason."""
    return coerce_status(target) in REQUIRE_REASON


def has_reason(reason: str | None) -> bool:
    return bool(reason and reason.strip())


def validate_transition(
    current: InstanceStatus | str,
    target: InstanceStatus | str,
    reason: str | None = None,
) -> None:
    """Validate a transition, raising InvalidTransitionError or MissingReasonError."""
    if not can_transition(current, target):
        raise InvalidTransitionError(_label(current), _label(target))
    if requires_reason(target) and not has_reason(reason):
        raise MissingReasonError(_label(target))
