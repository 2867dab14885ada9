"""
Market Orders — Celery application

Uses Redis as both broker and result backend.
Notification workers run outside the API process.
"""
from celery import Celery
from market_orders.core.config import get_settings

settings = get_settings()

celery_app = Celery(
    "market_orders",
    broker=settings.celery_broker_url,
    backend=settings.celery_result_backend,
    include=["market_orders.tasks.notification_tasks"],
)

celery_app.conf.update(
    task_serializer="json",
    result_serializer="json",
    accept_content=["json"],
    timezone="UTC",
    enable_utc=True,
    task_acks_late=True,
    task_reject_on_worker_lost=True,
    worker_prefetch_multiplier=1,
    task_ignore_result=True,
)
