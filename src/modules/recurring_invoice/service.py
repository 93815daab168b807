"""Recurring invoice service: template CRUD, schedule upkeep and due processing."""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from datetime import UTC, date, datetime

from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from src.exceptions import NotFoundException, ValidationException
from src.models.enums import RecurringFrequency, RecurringInvoiceStatus
from src.models.recurring_invoice import RecurringInvoice
from src.modules.invoice.schemas import InvoiceLineInput, InvoiceRecipient
from src.modules.invoice.service import InvoiceService
from src.modules.recurring_invoice.constants import (
    REENABLE_STATUSES,
    REQUIRED_FIELDS,
    SCHEDULE_FIELDS,
)
from src.modules.recurring_invoice.schedule import (
    calculate_initial_next_run,
    calculate_next_run_date,
    run_month_bounds,
)
from src.modules.recurring_invoice.schemas import (
    RecurringInvoiceCreate,
    RecurringInvoiceUpdate,
)

logger = logging.getLogger(__name__)


@dataclass
class ProcessResult:
    processed: int = 0
    succeeded: int = 0
    failed: int = 0
    invoice_ids: list[uuid.UUID] = field(default_factory=list)
    errors: list[dict] = field(default_factory=list)
    organization_ids: set[uuid.UUID] = field(default_factory=set)


def _today() -> date:
    return datetime.now(UTC).date()


class RecurringInvoiceService:
    def __init__(self, db: AsyncSession):
        self.db = db

    # ------------------------------------------------------------------
    # Read
    # ------------------------------------------------------------------

    async def get(
        self,
        recurring_invoice_id: uuid.UUID,
        organization_id: uuid.UUID,
        *,
        for_update: bool = False,
    ) -> RecurringInvoice:
        query = select(RecurringInvoice).where(
            RecurringInvoice.id == recurring_invoice_id,
            RecurringInvoice.organization_id == organization_id,
        )
        if for_update:
            query = query.with_for_update()
        result = await self.db.execute(query)
        record = result.scalar_one_or_none()
        if record is None:
            raise NotFoundException(f"Recurring invoice {recurring_invoice_id} not found")
        return record

    async def list_recurring(
        self,
        organization_id: uuid.UUID,
        status: RecurringInvoiceStatus | None = None,
        frequency: RecurringFrequency | None = None,
        limit: int = 20,
        offset: int = 0,
    ) -> tuple[list[RecurringInvoice], int]:
        filters = [RecurringInvoice.organization_id == organization_id]
        if status is not None:
            filters.append(RecurringInvoice.status == status)
        if frequency is not None:
            filters.append(RecurringInvoice.frequency == frequency)

        total_result = await self.db.execute(
            select(func.count()).select_from(RecurringInvoice).where(*filters)
        )
        total = total_result.scalar() or 0

        result = await self.db.execute(
            select(RecurringInvoice)
            .where(*filters)
            .order_by(RecurringInvoice.next_run_at.asc(), RecurringInvoice.name.asc())
            .offset(offset)
            .limit(limit)
        )
        return list(result.scalars().all()), total

    async def upcoming(self, organization_id: uuid.UUID, limit: int = 10) -> list[RecurringInvoice]:
        """Active templates ordered by their next run."""
        result = await self.db.execute(
            select(RecurringInvoice)
            .where(
                RecurringInvoice.organization_id == organization_id,
                RecurringInvoice.status == RecurringInvoiceStatus.ACTIVE,
            )
            .order_by(RecurringInvoice.next_run_at.asc())
            .limit(limit)
        )
        return list(result.scalars().all())

    # ------------------------------------------------------------------
    # Write
    # ------------------------------------------------------------------

    async def create(
        self,
        organization_id: uuid.UUID,
        data: RecurringInvoiceCreate,
        created_by_id: uuid.UUID | None = None,
        today: date | None = None,
    ) -> RecurringInvoice:
        next_run_at = calculate_initial_next_run(
            data.frequency, data.start_date, data.day_of_month, not_before=today or _today()
        )
        record = RecurringInvoice(
            organization_id=organization_id,
            name=data.name,
            recipient_type=data.recipient_type,
            recipient_id=data.recipient_id,
            recipient_name=data.recipient_name,
            recipient_address=data.recipient_address,
            invoice_type=data.invoice_type,
            positions=[p.model_dump(mode="json") for p in data.positions],
            frequency=data.frequency,
            day_of_month=data.day_of_month,
            start_date=data.start_date,
            end_date=data.end_date,
            next_run_at=next_run_at,
            status=(
                RecurringInvoiceStatus.ACTIVE if data.enabled else RecurringInvoiceStatus.DISABLED
            ),
            total_generated=0,
            notes=data.notes,
            fund_id=data.fund_id,
            park_id=data.park_id,
            created_by_id=created_by_id,
        )
        self.db.add(record)
        await self.db.flush()
        logger.info(
            "Created recurring invoice %s (%s, next run %s) for org %s",
            record.id,
            data.frequency.value,
            next_run_at,
            organization_id,
        )
        return record

    async def update(
        self,
        recurring_invoice_id: uuid.UUID,
        organization_id: uuid.UUID,
        data: RecurringInvoiceUpdate,
        today: date | None = None,
    ) -> RecurringInvoice:
        """Apply a partial update.

        The next run is recomputed from the (possibly unchanged) start date
        whenever a schedule field changes or a disabled/expired template is
        switched back on.
        """
        record = await self.get(recurring_invoice_id, organization_id, for_update=True)
        changes = data.model_dump(exclude_unset=True)
        enabled = changes.pop("enabled", None)
        for name in REQUIRED_FIELDS:
            if name in changes and changes[name] is None:
                del changes[name]

        start_date = changes.get("start_date", record.start_date)
        end_date = changes.get("end_date", record.end_date)
        if end_date is not None and end_date <= start_date:
            raise ValidationException(
                "end_date must be after start_date",
                details=[{"field": "end_date", "message": "must be after start_date"}],
            )

        if "positions" in changes:
            changes["positions"] = [p.model_dump(mode="json") for p in data.positions]

        schedule_changed = any(
            name in changes and changes[name] != getattr(record, name) for name in SCHEDULE_FIELDS
        )
        for name, value in changes.items():
            setattr(record, name, value)

        reenabled = False
        if enabled is True and record.status in REENABLE_STATUSES:
            record.status = RecurringInvoiceStatus.ACTIVE
            reenabled = True
        elif enabled is False and record.status == RecurringInvoiceStatus.ACTIVE:
            record.status = RecurringInvoiceStatus.DISABLED

        if schedule_changed or reenabled:
            record.next_run_at = calculate_initial_next_run(
                record.frequency,
                record.start_date,
                record.day_of_month,
                not_before=today or _today(),
            )
            logger.info(
                "Recurring invoice %s rescheduled, next run %s", record.id, record.next_run_at
            )

        await self.db.flush()
        return record

    async def disable(
        self, recurring_invoice_id: uuid.UUID, organization_id: uuid.UUID
    ) -> RecurringInvoice:
        """Soft delete: the record stays for its invoice history."""
        record = await self.get(recurring_invoice_id, organization_id, for_update=True)
        record.status = RecurringInvoiceStatus.DISABLED
        await self.db.flush()
        logger.info("Disabled recurring invoice %s", record.id)
        return record

    # ------------------------------------------------------------------
    # Due processing
    # ------------------------------------------------------------------

    async def process_due(
        self,
        today: date | None = None,
        organization_id: uuid.UUID | None = None,
    ) -> ProcessResult:
        """Generate one draft invoice for every template whose run date has come.

        Each template runs inside its own savepoint; a failing template is
        rolled back and reported while the others carry on.
        """
        today = today or _today()
        filters = [
            RecurringInvoice.status == RecurringInvoiceStatus.ACTIVE,
            RecurringInvoice.next_run_at <= today,
            or_(RecurringInvoice.end_date.is_(None), RecurringInvoice.end_date >= today),
        ]
        if organization_id is not None:
            filters.append(RecurringInvoice.organization_id == organization_id)

        result = await self.db.execute(
            select(RecurringInvoice)
            .where(*filters)
            .order_by(RecurringInvoice.next_run_at.asc())
            .with_for_update(skip_locked=True)
        )
        records = list(result.scalars().all())

        outcome = ProcessResult(processed=len(records))
        invoice_svc = InvoiceService(self.db)
        for record in records:
            try:
                async with self.db.begin_nested():
                    invoice_id = await self._generate(invoice_svc, record, today)
            except Exception as exc:
                logger.exception("Recurring invoice %s failed to generate", record.id)
                outcome.failed += 1
                outcome.errors.append({"recurring_invoice_id": record.id, "error": str(exc)})
                continue
            outcome.succeeded += 1
            outcome.invoice_ids.append(invoice_id)
            outcome.organization_ids.add(record.organization_id)

        logger.info(
            "Recurring invoice run for %s: %d processed, %d succeeded, %d failed",
            today,
            outcome.processed,
            outcome.succeeded,
            outcome.failed,
        )
        return outcome

    async def _generate(
        self, invoice_svc: InvoiceService, record: RecurringInvoice, today: date
    ) -> uuid.UUID:
        run_date = record.next_run_at
        period_start, period_end = run_month_bounds(run_date)
        lines = [InvoiceLineInput.model_validate(p) for p in record.positions]

        invoice = await invoice_svc.create_invoice(
            record.organization_id,
            lines,
            invoice_type=record.invoice_type,
            recipient=InvoiceRecipient(
                recipient_type=record.recipient_type,
                recipient_id=record.recipient_id,
                recipient_name=record.recipient_name,
                recipient_address=record.recipient_address,
            ),
            invoice_date=today,
            service_period_start=period_start,
            service_period_end=period_end,
            park_id=record.park_id,
            fund_id=record.fund_id,
            recurring_invoice_id=record.id,
            created_by_id=record.created_by_id,
            notes=f"Generated from recurring invoice: {record.name}",
        )

        record.last_run_at = run_date
        record.next_run_at = calculate_next_run_date(run_date, record.frequency, record.day_of_month)
        record.total_generated = (record.total_generated or 0) + 1
        record.last_invoice_id = invoice.id
        if record.end_date is not None and record.next_run_at > record.end_date:
            record.status = RecurringInvoiceStatus.EXPIRED
            logger.info("Recurring invoice %s expired after its last run", record.id)
        await self.db.flush()
        return invoice.id
