# Import all models so SQLAlchemy metadata is populated for Alembic autogenerate
from src.models.energy_settlement import EnergySettlement
from src.models.enums import (
    AdvanceInterval,
    CompensationType,
    InvoiceStatus,
    InvoiceType,
    LeaseStatus,
    ManagementBillingStatus,
    MembershipStatus,
    OrganizationStatus,
    PlotAreaType,
    PlotStatus,
    RecipientType,
    RecurringFrequency,
    RecurringInvoiceStatus,
    SettlementAction,
    SettlementPeriodStatus,
    SettlementPeriodType,
    StakeholderRole,
    StakeholderStatus,
    TaxType,
    TurbineStatus,
    UserStatus,
)
from src.models.fund import Fund
from src.models.invoice import Invoice
from src.models.invoice_item import InvoiceItem
from src.models.lease import Lease, Lessor, lease_plots
from src.models.management_billing import ManagementBilling
from src.models.organization import Organization
from src.models.organization_membership import OrganizationMembership
from src.models.park import Park, ParkRevenuePhase, Turbine
from src.models.park_stakeholder import ParkStakeholder, StakeholderFeeHistory
from src.models.plot import Plot, PlotArea
from src.models.recurring_invoice import RecurringInvoice
from src.models.role import Role
from src.models.settlement_period import SettlementPeriod
from src.models.settlement_period_transition import SettlementPeriodTransition
from src.models.user import User

__all__ = [
    "AdvanceInterval",
    "CompensationType",
    "EnergySettlement",
    "Fund",
    "Invoice",
    "InvoiceItem",
    "InvoiceStatus",
    "InvoiceType",
    "Lease",
    "LeaseStatus",
    "Lessor",
    "ManagementBilling",
    "ManagementBillingStatus",
    "MembershipStatus",
    "Organization",
    "OrganizationMembership",
    "OrganizationStatus",
    "Park",
    "ParkRevenuePhase",
    "ParkStakeholder",
    "Plot",
    "PlotArea",
    "PlotAreaType",
    "PlotStatus",
    "RecipientType",
    "RecurringFrequency",
    "RecurringInvoice",
    "RecurringInvoiceStatus",
    "Role",
    "SettlementAction",
    "SettlementPeriod",
    "SettlementPeriodStatus",
    "SettlementPeriodTransition",
    "SettlementPeriodType",
    "StakeholderFeeHistory",
    "StakeholderRole",
    "StakeholderStatus",
    "TaxType",
    "Turbine",
    "TurbineStatus",
    "User",
    "UserStatus",
    "lease_plots",
]
