"""Management billing roles, statuses and feature flag."""

from __future__ import annotations

from src.models.enums import ManagementBillingStatus, StakeholderRole

# Business management ("Betriebsführung") roles bill a percentage of park revenue
BF_ROLES: set[StakeholderRole] = {
    StakeholderRole.TECHNICAL_BF,
    StakeholderRole.COMMERCIAL_BF,
}

INVOICEABLE_STATUSES: set[ManagementBillingStatus] = {
    ManagementBillingStatus.CALCULATED,
}

CANCELLABLE_STATUSES: set[ManagementBillingStatus] = {
    ManagementBillingStatus.DRAFT,
    ManagementBillingStatus.CALCULATED,
}

# Key in organizations.settings; falls back to settings.management_billing_enabled
FEATURE_FLAG_KEY = "management_billing_enabled"

INITIAL_FEE_REASON = "Initial fee"

ROLE_LABELS: dict[StakeholderRole, str] = {
    StakeholderRole.DEVELOPER: "Project development",
    StakeholderRole.GRID_OPERATOR: "Grid operation",
    StakeholderRole.TECHNICAL_BF: "Technical management",
    StakeholderRole.COMMERCIAL_BF: "Commercial management",
    StakeholderRole.OPERATOR: "Operation",
}
