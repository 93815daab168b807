import enum


class MembershipStatus(str, enum.Enum):
    INVITED = "INVITED"
    ACTIVE = "ACTIVE"


class UserStatus(str, enum.Enum):
    ACTIVE = "ACTIVE"
    SUSPENDED = "SUSPENDED"
    PENDING = "PENDING"


class OrganizationStatus(str, enum.Enum):
    ACTIVE = "ACTIVE"
    SUSPENDED = "SUSPENDED"


# ── Park master data ──────────────────────────────────────────────────────


class TurbineStatus(str, enum.Enum):
    ACTIVE = "ACTIVE"
    DECOMMISSIONED = "DECOMMISSIONED"


class PlotStatus(str, enum.Enum):
    ACTIVE = "ACTIVE"
    INACTIVE = "INACTIVE"


class PlotAreaType(str, enum.Enum):
    TURBINE_SITE = "TURBINE_SITE"
    POOL = "POOL"
    ACCESS_ROAD = "ACCESS_ROAD"
    COMPENSATION_AREA = "COMPENSATION_AREA"
    CABLE_ROUTE = "CABLE_ROUTE"


class CompensationType(str, enum.Enum):
    ANNUAL = "ANNUAL"
    ONE_TIME = "ONE_TIME"


class LeaseStatus(str, enum.Enum):
    DRAFT = "DRAFT"
    ACTIVE = "ACTIVE"
    EXPIRED = "EXPIRED"
    TERMINATED = "TERMINATED"


# ── Lease settlement ──────────────────────────────────────────────────────


class SettlementPeriodType(str, enum.Enum):
    ADVANCE = "ADVANCE"
    FINAL = "FINAL"


class AdvanceInterval(str, enum.Enum):
    MONTHLY = "MONTHLY"
    QUARTERLY = "QUARTERLY"
    YEARLY = "YEARLY"


class SettlementPeriodStatus(str, enum.Enum):
    OPEN = "OPEN"
    IN_PROGRESS = "IN_PROGRESS"
    PENDING_REVIEW = "PENDING_REVIEW"
    APPROVED = "APPROVED"
    CLOSED = "CLOSED"


class SettlementAction(str, enum.Enum):
    CALCULATE = "CALCULATE"
    SUBMIT_FOR_REVIEW = "SUBMIT_FOR_REVIEW"
    APPROVE = "APPROVE"
    REJECT = "REJECT"
    CREATE_INVOICES = "CREATE_INVOICES"
    CLOSE = "CLOSE"


# ── Invoicing ─────────────────────────────────────────────────────────────


class InvoiceType(str, enum.Enum):
    INVOICE = "INVOICE"
    CREDIT_NOTE = "CREDIT_NOTE"


class InvoiceStatus(str, enum.Enum):
    DRAFT = "DRAFT"
    SENT = "SENT"
    PAID = "PAID"
    CANCELLED = "CANCELLED"


class TaxType(str, enum.Enum):
    STANDARD = "STANDARD"
    REDUCED = "REDUCED"
    EXEMPT = "EXEMPT"


class RecipientType(str, enum.Enum):
    SHAREHOLDER = "shareholder"
    LESSOR = "lessor"
    FUND = "fund"
    CUSTOM = "custom"


class RecurringFrequency(str, enum.Enum):
    MONTHLY = "MONTHLY"
    QUARTERLY = "QUARTERLY"
    SEMI_ANNUAL = "SEMI_ANNUAL"
    ANNUAL = "ANNUAL"


class RecurringInvoiceStatus(str, enum.Enum):
    ACTIVE = "ACTIVE"
    DISABLED = "DISABLED"
    EXPIRED = "EXPIRED"


# ── Management billing ────────────────────────────────────────────────────


class StakeholderRole(str, enum.Enum):
    DEVELOPER = "DEVELOPER"
    GRID_OPERATOR = "GRID_OPERATOR"
    TECHNICAL_BF = "TECHNICAL_BF"
    COMMERCIAL_BF = "COMMERCIAL_BF"
    OPERATOR = "OPERATOR"


class StakeholderStatus(str, enum.Enum):
    ACTIVE = "ACTIVE"
    INACTIVE = "INACTIVE"


class ManagementBillingStatus(str, enum.Enum):
    DRAFT = "DRAFT"
    CALCULATED = "CALCULATED"
    INVOICED = "INVOICED"
    CANCELLED = "CANCELLED"
