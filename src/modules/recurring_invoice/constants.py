"""Recurring invoice schedule intervals and cache keys."""

from __future__ import annotations

from src.models.enums import RecurringFrequency, RecurringInvoiceStatus

# Months between two runs per frequency
FREQUENCY_MONTHS: dict[RecurringFrequency, int] = {
    RecurringFrequency.MONTHLY: 1,
    RecurringFrequency.QUARTERLY: 3,
    RecurringFrequency.SEMI_ANNUAL: 6,
    RecurringFrequency.ANNUAL: 12,
}

# Every month has a 28th
MIN_DAY_OF_MONTH = 1
MAX_DAY_OF_MONTH = 28

# Statuses from which a record can be switched back on
REENABLE_STATUSES: set[RecurringInvoiceStatus] = {
    RecurringInvoiceStatus.DISABLED,
    RecurringInvoiceStatus.EXPIRED,
}

# Fields whose change moves the schedule
SCHEDULE_FIELDS = frozenset({"frequency", "start_date", "day_of_month"})

UPCOMING_CACHE_KEY = "recurring-invoices:upcoming:{limit}"
UPCOMING_DEFAULT_LIMIT = 10

# Columns a partial update may not clear
REQUIRED_FIELDS = frozenset(
    {
        "name",
        "recipient_type",
        "recipient_name",
        "invoice_type",
        "positions",
        "frequency",
        "start_date",
    }
)
