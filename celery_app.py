"""Celery application configuration for wind-park billing background tasks."""

from celery import Celery
from celery.schedules import crontab

from src.config import settings

celery = Celery("windpark")

celery.conf.update(
    broker_url=settings.celery_broker_url,
    result_backend=settings.celery_result_backend,
    task_serializer="json",
    result_serializer="json",
    accept_content=["json"],
    timezone="UTC",
    enable_utc=True,
    # --- Queue routing per job type ---
    task_routes={
        "src.modules.recurring_invoice.tasks.*": {"queue": "billing"},
    },
    # --- Reliability settings ---
    task_default_retry_delay=60,
    task_max_retries=3,
    task_acks_late=True,
    worker_prefetch_multiplier=1,
    result_expires=86400,  # 24 hours
    # --- Broker transport options (Redis reliability) ---
    broker_transport_options={
        "max_retries": 10,
        "interval_start": 0.2,
        "interval_step": 0.5,
        "interval_max": 5.0,
        "retry_on_timeout": True,
        "visibility_timeout": 3600,
    },
    # --- Beat schedule ---
    beat_schedule={
        "process-recurring-invoices-daily": {
            "task": "src.modules.recurring_invoice.tasks.process_recurring_invoices",
            "schedule": crontab(hour=settings.recurring_invoice_run_hour, minute=0),
        },
    },
)

celery.autodiscover_tasks([
    "src.modules.recurring_invoice",
])
