"""
Celery Application Configuration

Redis-backed worker for scheduled report generation. Broker, result
backend and Sentry settings come from the application settings.
"""

import os

from celery import Celery
from celery.schedules import crontab

from backend.config import get_settings

settings = get_settings()

REPORT_QUEUE = "reports"

app = Celery(
    "brink_bridge",
    broker=settings.redis_url,
    backend=os.getenv("CELERY_RESULT_BACKEND", settings.redis_url),
    include=["workers.tasks.report_tasks"],
)

app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    task_track_started=True,
    task_acks_late=True,
    worker_prefetch_multiplier=1,
    result_expires=6 * 3600,
    task_routes={"workers.tasks.report_tasks.*": {"queue": REPORT_QUEUE}},
    task_default_queue="default",
    # A run already fans out to every location under the request throttle
    worker_concurrency=1,
)

app.conf.beat_schedule = {
    # Current business day for every location, at the top of each hour
    "location-reports-hourly": {
        "task": "workers.tasks.report_tasks.generate_location_reports",
        "schedule": crontab(minute=0),
        "options": {"queue": REPORT_QUEUE},
    },
}

# Initialize Sentry for error monitoring in workers
if settings.sentry_dsn:
    import sentry_sdk
    from sentry_sdk.integrations.celery import CeleryIntegration

    sentry_sdk.init(
        dsn=settings.sentry_dsn,
        environment=settings.environment,
        release=f"brink-bridge-worker@{settings.app_version}",
        traces_sample_rate=0.1,
        integrations=[CeleryIntegration()],
    )
