"""Celery task that turns due recurring invoice templates into draft invoices."""

from __future__ import annotations

import asyncio
import logging

from celery_app import celery
from src.database.engine import async_session
from src.modules.tenancy.cache import TenantCache

logger = logging.getLogger(__name__)


async def _process_recurring_invoices_async() -> dict:
    from src.modules.recurring_invoice.service import RecurringInvoiceService

    async with async_session() as session:
        svc = RecurringInvoiceService(session)
        result = await svc.process_due()
        await session.commit()

    # Upcoming summaries of the touched tenants are stale now
    cache = TenantCache()
    try:
        for organization_id in result.organization_ids:
            await cache.invalidate_tenant(organization_id)
    finally:
        await cache.close()

    return {
        "processed": result.processed,
        "succeeded": result.succeeded,
        "failed": result.failed,
        "invoice_ids": [str(i) for i in result.invoice_ids],
    }


@celery.task(name="src.modules.recurring_invoice.tasks.process_recurring_invoices")
def process_recurring_invoices():
    """Generate the draft invoices of every template that is due today."""
    stats = asyncio.run(_process_recurring_invoices_async())
    logger.info("process_recurring_invoices complete: %s", stats)
    return stats
