"""Invoice status transitions, numbering and tax rates."""

from __future__ import annotations

from decimal import Decimal

from src.config import settings
from src.models.enums import InvoiceStatus, InvoiceType, TaxType

# ---------------------------------------------------------------------------
# Valid status transitions: current_status -> set of allowed next statuses
# ---------------------------------------------------------------------------

INVOICE_TRANSITIONS: dict[InvoiceStatus, set[InvoiceStatus]] = {
    InvoiceStatus.DRAFT: {
        InvoiceStatus.SENT,
        InvoiceStatus.CANCELLED,
    },
    InvoiceStatus.SENT: {
        InvoiceStatus.PAID,
        InvoiceStatus.CANCELLED,
    },
}

INVOICE_TERMINAL_STATUSES: set[InvoiceStatus] = {
    InvoiceStatus.PAID,
    InvoiceStatus.CANCELLED,
}

# Statuses that count as money actually charged or paid out
INVOICE_SETTLED_STATUSES: set[InvoiceStatus] = {
    InvoiceStatus.SENT,
    InvoiceStatus.PAID,
}

# ---------------------------------------------------------------------------
# Numbering: {PREFIX}-{YEAR}-{NNNNNN}, one DB sequence per document type
# ---------------------------------------------------------------------------

INVOICE_NUMBER_PREFIX: dict[InvoiceType, str] = {
    InvoiceType.INVOICE: "RE",
    InvoiceType.CREDIT_NOTE: "GS",
}

INVOICE_NUMBER_SEQUENCE: dict[InvoiceType, str] = {
    InvoiceType.INVOICE: "invoice_number_seq",
    InvoiceType.CREDIT_NOTE: "credit_note_number_seq",
}


def tax_rate_percent(tax_type: TaxType) -> Decimal:
    """Configured VAT rate in percent for a tax type."""
    return {
        TaxType.STANDARD: settings.tax_rate_standard,
        TaxType.REDUCED: settings.tax_rate_reduced,
        TaxType.EXEMPT: settings.tax_rate_exempt,
    }[tax_type]
