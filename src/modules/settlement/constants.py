"""Settlement period state machine, editable states and calculation defaults."""

from __future__ import annotations

from decimal import Decimal

from src.models.enums import AdvanceInterval, SettlementAction, SettlementPeriodStatus

# Valid transitions: from_status -> {action -> to_status}
VALID_TRANSITIONS: dict[SettlementPeriodStatus, dict[SettlementAction, SettlementPeriodStatus]] = {
    SettlementPeriodStatus.OPEN: {
        SettlementAction.CALCULATE: SettlementPeriodStatus.IN_PROGRESS,
    },
    SettlementPeriodStatus.IN_PROGRESS: {
        SettlementAction.CALCULATE: SettlementPeriodStatus.IN_PROGRESS,
        SettlementAction.SUBMIT_FOR_REVIEW: SettlementPeriodStatus.PENDING_REVIEW,
    },
    SettlementPeriodStatus.PENDING_REVIEW: {
        SettlementAction.APPROVE: SettlementPeriodStatus.APPROVED,
        SettlementAction.REJECT: SettlementPeriodStatus.IN_PROGRESS,
    },
    SettlementPeriodStatus.APPROVED: {
        SettlementAction.CREATE_INVOICES: SettlementPeriodStatus.APPROVED,
        SettlementAction.CLOSE: SettlementPeriodStatus.CLOSED,
    },
}

# PATCH {status} target -> the action whose edge leads there. CALCULATE is
# deliberately absent: totals only change through the calculate endpoint.
STATUS_UPDATE_ACTIONS: dict[SettlementPeriodStatus, SettlementAction] = {
    SettlementPeriodStatus.PENDING_REVIEW: SettlementAction.SUBMIT_FOR_REVIEW,
    SettlementPeriodStatus.APPROVED: SettlementAction.APPROVE,
    SettlementPeriodStatus.IN_PROGRESS: SettlementAction.REJECT,
    SettlementPeriodStatus.CLOSED: SettlementAction.CLOSE,
}

# Actions that need the reviewer permission on top of settlements:update
REVIEW_ACTIONS: set[SettlementAction] = {
    SettlementAction.APPROVE,
    SettlementAction.REJECT,
}

DELETABLE_STATUSES: set[SettlementPeriodStatus] = {
    SettlementPeriodStatus.OPEN,
}

# Statuses where notes and the revenue override can still be edited
EDITABLE_STATUSES: set[SettlementPeriodStatus] = {
    SettlementPeriodStatus.OPEN,
    SettlementPeriodStatus.IN_PROGRESS,
}

TERMINAL_STATUSES: set[SettlementPeriodStatus] = {
    SettlementPeriodStatus.CLOSED,
}

# Months that get an ADVANCE period per interval when bulk-creating a year
ADVANCE_MONTHS: dict[AdvanceInterval, list[int]] = {
    AdvanceInterval.MONTHLY: list(range(1, 13)),
    AdvanceInterval.QUARTERLY: [3, 6, 9, 12],
    AdvanceInterval.YEARLY: [12],
}

# Multiplier from a monthly advance to the amount billed per interval
ADVANCE_INTERVAL_FACTOR: dict[AdvanceInterval, int] = {
    AdvanceInterval.MONTHLY: 1,
    AdvanceInterval.QUARTERLY: 3,
    AdvanceInterval.YEARLY: 12,
}

# Park distribution defaults when the park does not configure them
DEFAULT_TURBINE_SITE_SHARE_PERCENTAGE = Decimal("10")
DEFAULT_POOL_SHARE_PERCENTAGE = Decimal("90")
