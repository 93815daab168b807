"""Tenancy module constants."""

# Cache configuration
CACHE_PREFIX = "tenant"
CACHE_TTL_DEFAULT = 300  # seconds

# Routes excluded from tenant context extraction
EXCLUDED_ROUTES = [
    "/health",
    "/api/docs",
    "/api/openapi.json",
    "/api/redoc",
]

# Permission strings checked by require_permission()
PERMISSION_SETTLEMENTS_READ = "settlements:read"
PERMISSION_SETTLEMENTS_CREATE = "settlements:create"
PERMISSION_SETTLEMENTS_UPDATE = "settlements:update"
PERMISSION_SETTLEMENTS_DELETE = "settlements:delete"
PERMISSION_SETTLEMENTS_REVIEW = "settlements:review"
PERMISSION_INVOICES_READ = "invoices:read"
PERMISSION_INVOICES_CREATE = "invoices:create"
PERMISSION_INVOICES_UPDATE = "invoices:update"
PERMISSION_RECURRING_READ = "recurring-invoices:read"
PERMISSION_RECURRING_MANAGE = "recurring-invoices:manage"
PERMISSION_MGMT_BILLING_READ = "management-billing:read"
PERMISSION_MGMT_BILLING_CREATE = "management-billing:create"
PERMISSION_MGMT_BILLING_UPDATE = "management-billing:update"
PERMISSION_MGMT_BILLING_DELETE = "management-billing:delete"

# Seeded system roles (name -> permissions)
SYSTEM_ROLE_PERMISSIONS: dict[str, list[str]] = {
    "admin": ["*"],
    "accountant": [
        PERMISSION_SETTLEMENTS_READ,
        PERMISSION_SETTLEMENTS_CREATE,
        PERMISSION_SETTLEMENTS_UPDATE,
        PERMISSION_SETTLEMENTS_DELETE,
        PERMISSION_INVOICES_READ,
        PERMISSION_INVOICES_CREATE,
        PERMISSION_INVOICES_UPDATE,
        PERMISSION_RECURRING_READ,
        PERMISSION_RECURRING_MANAGE,
        PERMISSION_MGMT_BILLING_READ,
        PERMISSION_MGMT_BILLING_CREATE,
        PERMISSION_MGMT_BILLING_UPDATE,
    ],
    "reviewer": [
        PERMISSION_SETTLEMENTS_READ,
        PERMISSION_SETTLEMENTS_REVIEW,
        PERMISSION_INVOICES_READ,
        PERMISSION_RECURRING_READ,
        PERMISSION_MGMT_BILLING_READ,
    ],
    "viewer": [
        PERMISSION_SETTLEMENTS_READ,
        PERMISSION_INVOICES_READ,
        PERMISSION_RECURRING_READ,
        PERMISSION_MGMT_BILLING_READ,
    ],
}
