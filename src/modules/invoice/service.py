"""Invoice service: numbering, creation from line inputs, status transitions."""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from datetime import UTC, date, datetime, timedelta
from decimal import Decimal

from sqlalchemy import func, select, text
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from src.config import settings
from src.exceptions import BusinessRuleException, NotFoundException, ValidationException
from src.models.enums import InvoiceStatus, InvoiceType, TaxType
from src.models.invoice import Invoice
from src.models.invoice_item import InvoiceItem
from src.modules.invoice.constants import (
    INVOICE_NUMBER_PREFIX,
    INVOICE_NUMBER_SEQUENCE,
    INVOICE_TERMINAL_STATUSES,
    INVOICE_TRANSITIONS,
    tax_rate_percent,
)
from src.modules.invoice.schemas import InvoiceLineInput, InvoiceRecipient
from src.money import ZERO, round_money

logger = logging.getLogger(__name__)


@dataclass
class LineAmounts:
    tax_rate: Decimal
    net_amount: Decimal
    tax_amount: Decimal
    gross_amount: Decimal


def calculate_line_amounts(quantity: Decimal, unit_price: Decimal, tax_type: TaxType) -> LineAmounts:
    """Net, VAT and gross for one position, each rounded to cents."""
    rate = tax_rate_percent(tax_type)
    net = round_money(quantity * unit_price)
    tax = round_money(net * rate / Decimal(100))
    return LineAmounts(tax_rate=rate, net_amount=net, tax_amount=tax, gross_amount=net + tax)


class InvoiceService:
    def __init__(self, db: AsyncSession):
        self.db = db

    # ------------------------------------------------------------------
    # Reference number generation
    # ------------------------------------------------------------------

    async def _generate_invoice_number(self, invoice_type: InvoiceType, invoice_date: date) -> str:
        """Generate RE-YYYY-NNNNNN / GS-YYYY-NNNNNN using a DB sequence per type."""
        sequence = INVOICE_NUMBER_SEQUENCE[invoice_type]
        result = await self.db.execute(text(f"SELECT nextval('{sequence}')"))
        seq_val = result.scalar()
        return f"{INVOICE_NUMBER_PREFIX[invoice_type]}-{invoice_date.year}-{seq_val:06d}"

    # ------------------------------------------------------------------
    # Create
    # ------------------------------------------------------------------

    async def create_invoice(
        self,
        organization_id: uuid.UUID,
        lines: list[InvoiceLineInput],
        *,
        invoice_type: InvoiceType = InvoiceType.INVOICE,
        recipient: InvoiceRecipient | None = None,
        invoice_date: date | None = None,
        service_period_start: date | None = None,
        service_period_end: date | None = None,
        park_id: uuid.UUID | None = None,
        fund_id: uuid.UUID | None = None,
        lease_id: uuid.UUID | None = None,
        settlement_period_id: uuid.UUID | None = None,
        recurring_invoice_id: uuid.UUID | None = None,
        created_by_id: uuid.UUID | None = None,
        notes: str | None = None,
    ) -> Invoice:
        """Create a DRAFT invoice (or credit note) with its items and computed totals."""
        if not lines:
            raise ValidationException("An invoice needs at least one position")

        invoice_date = invoice_date or datetime.now(UTC).date()
        recipient = recipient or InvoiceRecipient()
        invoice_number = await self._generate_invoice_number(invoice_type, invoice_date)

        items: list[InvoiceItem] = []
        net_total = ZERO
        tax_total = ZERO
        for position, line in enumerate(lines, start=1):
            amounts = calculate_line_amounts(line.quantity, line.unit_price, line.tax_type)
            net_total += amounts.net_amount
            tax_total += amounts.tax_amount
            items.append(
                InvoiceItem(
                    position=position,
                    description=line.description,
                    quantity=line.quantity,
                    unit=line.unit,
                    unit_price=line.unit_price,
                    tax_type=line.tax_type,
                    tax_rate=amounts.tax_rate,
                    net_amount=amounts.net_amount,
                    tax_amount=amounts.tax_amount,
                    gross_amount=amounts.gross_amount,
                )
            )

        invoice = Invoice(
            invoice_number=invoice_number,
            organization_id=organization_id,
            invoice_type=invoice_type,
            status=InvoiceStatus.DRAFT,
            recipient_type=recipient.recipient_type,
            recipient_id=recipient.recipient_id,
            recipient_name=recipient.recipient_name,
            recipient_address=recipient.recipient_address,
            net_amount=net_total,
            tax_amount=tax_total,
            gross_amount=net_total + tax_total,
            currency=settings.currency,
            invoice_date=invoice_date,
            due_date=invoice_date + timedelta(days=settings.invoice_due_days),
            service_period_start=service_period_start,
            service_period_end=service_period_end,
            park_id=park_id,
            fund_id=fund_id,
            lease_id=lease_id,
            settlement_period_id=settlement_period_id,
            recurring_invoice_id=recurring_invoice_id,
            created_by_id=created_by_id,
            notes=notes,
            items=items,
        )
        self.db.add(invoice)
        await self.db.flush()

        logger.info(
            "Created %s %s for org %s (gross: %s)",
            invoice_type.value,
            invoice_number,
            organization_id,
            invoice.gross_amount,
        )
        return invoice

    # ------------------------------------------------------------------
    # Get / List invoices
    # ------------------------------------------------------------------

    async def get_invoice(self, invoice_id: uuid.UUID, organization_id: uuid.UUID) -> Invoice:
        """Get an invoice with items. Other tenants' invoices are reported as not found."""
        result = await self.db.execute(
            select(Invoice)
            .options(selectinload(Invoice.items))
            .where(
                Invoice.id == invoice_id,
                Invoice.organization_id == organization_id,
            )
        )
        invoice = result.scalar_one_or_none()
        if invoice is None:
            raise NotFoundException(f"Invoice {invoice_id} not found")
        return invoice

    async def list_invoices(
        self,
        organization_id: uuid.UUID,
        status: InvoiceStatus | None = None,
        invoice_type: InvoiceType | None = None,
        settlement_period_id: uuid.UUID | None = None,
        recurring_invoice_id: uuid.UUID | None = None,
        limit: int = 20,
        offset: int = 0,
    ) -> tuple[list[Invoice], int]:
        """List invoices for an organization, newest first."""
        filters = [Invoice.organization_id == organization_id]
        if status is not None:
            filters.append(Invoice.status == status)
        if invoice_type is not None:
            filters.append(Invoice.invoice_type == invoice_type)
        if settlement_period_id is not None:
            filters.append(Invoice.settlement_period_id == settlement_period_id)
        if recurring_invoice_id is not None:
            filters.append(Invoice.recurring_invoice_id == recurring_invoice_id)

        total_result = await self.db.execute(
            select(func.count()).select_from(Invoice).where(*filters)
        )
        total = total_result.scalar() or 0

        result = await self.db.execute(
            select(Invoice)
            .options(selectinload(Invoice.items))
            .where(*filters)
            .order_by(Invoice.invoice_date.desc(), Invoice.created_at.desc())
            .offset(offset)
            .limit(limit)
        )
        return list(result.scalars().all()), total

    async def count_open_for_settlement_period(self, settlement_period_id: uuid.UUID) -> int:
        """Number of non-cancelled invoices already created for a settlement period."""
        result = await self.db.execute(
            select(func.count())
            .select_from(Invoice)
            .where(
                Invoice.settlement_period_id == settlement_period_id,
                Invoice.status != InvoiceStatus.CANCELLED,
            )
        )
        return result.scalar() or 0

    # ------------------------------------------------------------------
    # Status transitions
    # ------------------------------------------------------------------

    async def send(self, invoice_id: uuid.UUID, organization_id: uuid.UUID) -> Invoice:
        """DRAFT -> SENT."""
        invoice = await self.get_invoice(invoice_id, organization_id)
        self._validate_transition(invoice, InvoiceStatus.SENT)
        invoice.status = InvoiceStatus.SENT
        invoice.sent_at = datetime.now(UTC)
        await self.db.flush()
        logger.info("Invoice %s sent", invoice.invoice_number)
        return invoice

    async def mark_paid(
        self,
        invoice_id: uuid.UUID,
        organization_id: uuid.UUID,
        paid_at: datetime | None = None,
        notes: str | None = None,
    ) -> Invoice:
        """SENT -> PAID."""
        invoice = await self.get_invoice(invoice_id, organization_id)
        self._validate_transition(invoice, InvoiceStatus.PAID)
        invoice.status = InvoiceStatus.PAID
        invoice.paid_at = paid_at or datetime.now(UTC)
        if notes:
            invoice.notes = notes
        await self.db.flush()
        logger.info("Invoice %s marked as paid", invoice.invoice_number)
        return invoice

    async def cancel(
        self,
        invoice_id: uuid.UUID,
        organization_id: uuid.UUID,
        reason: str | None = None,
    ) -> Invoice:
        """DRAFT/SENT -> CANCELLED."""
        invoice = await self.get_invoice(invoice_id, organization_id)
        self._validate_transition(invoice, InvoiceStatus.CANCELLED)
        invoice.status = InvoiceStatus.CANCELLED
        invoice.cancelled_at = datetime.now(UTC)
        if reason:
            invoice.notes = f"{invoice.notes}\n{reason}" if invoice.notes else reason
        await self.db.flush()
        logger.info("Invoice %s cancelled", invoice.invoice_number)
        return invoice

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _validate_transition(
        self, invoice: Invoice, new_status: InvoiceStatus
    ) -> None:
        if invoice.status in INVOICE_TERMINAL_STATUSES:
            raise BusinessRuleException(
                f"Cannot transition invoice in terminal status '{invoice.status.value}'"
            )

        allowed = INVOICE_TRANSITIONS.get(invoice.status, set())
        if new_status not in allowed:
            raise BusinessRuleException(
                f"Cannot transition invoice from '{invoice.status.value}' "
                f"to '{new_status.value}'. "
                f"Allowed: {sorted(s.value for s in allowed)}"
            )
