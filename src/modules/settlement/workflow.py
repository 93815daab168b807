"""Settlement period workflow.

A pure state machine: ``apply_action`` checks an action against the current
status and its guard, and returns the new status together with the field
updates the caller must persist. Nothing here touches the database, so an
illegal action can never leave a half-mutated period behind.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from src.exceptions import BusinessRuleException
from src.models.enums import SettlementAction, SettlementPeriodStatus
from src.modules.settlement.constants import (
    DELETABLE_STATUSES,
    STATUS_UPDATE_ACTIONS,
    VALID_TRANSITIONS,
)


@dataclass(frozen=True)
class TransitionResult:
    from_status: SettlementPeriodStatus
    to_status: SettlementPeriodStatus
    action: SettlementAction
    updates: dict[str, Any] = field(default_factory=dict)


def allowed_actions(status: SettlementPeriodStatus) -> list[SettlementAction]:
    return list(VALID_TRANSITIONS.get(status, {}).keys())


def apply_action(
    status: SettlementPeriodStatus,
    action: SettlementAction,
    *,
    actor_id: uuid.UUID,
    now: datetime,
    notes: str | None = None,
    calculated: bool = False,
) -> TransitionResult:
    """Validate ``action`` from ``status`` and describe its effect.

    Args:
        status: Current status of the period.
        action: Requested action.
        actor_id: User performing the action; recorded as reviewer on approve/reject.
        now: Timestamp to stamp into reviewed_at / closed_at / calculated_at.
        notes: Review notes. Required (non-blank) for REJECT, optional for APPROVE.
        calculated: Whether the period has been calculated at least once.

    Raises:
        BusinessRuleException: the action is not allowed from ``status`` or its
            guard fails.
    """
    allowed = VALID_TRANSITIONS.get(status, {})
    if action not in allowed:
        raise BusinessRuleException(
            f"Cannot perform '{action.value}' from status '{status.value}'. "
            f"Allowed actions: {[a.value for a in allowed]}"
        )

    updates: dict[str, Any] = {}
    cleaned_notes = notes.strip() if notes else ""

    if action == SettlementAction.CALCULATE:
        updates["calculated_at"] = now
    elif action == SettlementAction.SUBMIT_FOR_REVIEW:
        if not calculated:
            raise BusinessRuleException(
                "Settlement period must be calculated before it can be submitted for review"
            )
        updates.update(reviewed_by_id=None, reviewed_at=None, review_notes=None)
    elif action == SettlementAction.APPROVE:
        updates.update(reviewed_by_id=actor_id, reviewed_at=now)
        if cleaned_notes:
            updates["review_notes"] = cleaned_notes
    elif action == SettlementAction.REJECT:
        if not cleaned_notes:
            raise BusinessRuleException("A reason is required to reject a settlement period")
        updates.update(reviewed_by_id=actor_id, reviewed_at=now, review_notes=cleaned_notes)
    elif action == SettlementAction.CLOSE:
        updates["closed_at"] = now

    return TransitionResult(
        from_status=status,
        to_status=allowed[action],
        action=action,
        updates=updates,
    )


def action_for_status_update(target: SettlementPeriodStatus) -> SettlementAction:
    """Map a ``PATCH {status}`` request to the action that leads to ``target``."""
    action = STATUS_UPDATE_ACTIONS.get(target)
    if action is None:
        raise BusinessRuleException(
            f"Status '{target.value}' cannot be set directly. "
            f"Settable: {[s.value for s in STATUS_UPDATE_ACTIONS]}"
        )
    return action


def ensure_deletable(status: SettlementPeriodStatus) -> None:
    if status not in DELETABLE_STATUSES:
        raise BusinessRuleException(
            f"Only OPEN settlement periods can be deleted (current: {status.value})"
        )
