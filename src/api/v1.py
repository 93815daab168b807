"""Centralized v1 API router. All module routers are included here."""

from fastapi import APIRouter

from src.modules.invoice.router import router as invoice_router
from src.modules.management_billing.router import router as management_billing_router
from src.modules.recurring_invoice.router import router as recurring_invoice_router
from src.modules.settlement.router import router as settlement_router

v1_router = APIRouter(prefix="/api/v1")
v1_router.include_router(settlement_router)
v1_router.include_router(recurring_invoice_router)
v1_router.include_router(management_billing_router)
v1_router.include_router(invoice_router)
