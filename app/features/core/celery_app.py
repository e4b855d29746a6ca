"""
Celery application configuration for background tasks.
"""
from celery import Celery
from kombu import Queue

from app.features.core.config import get_settings

settings = get_settings()

# Broker and result backend default to the shared Redis URL
celery_app = Celery(
    "signal_radar",
    broker=settings.CELERY_BROKER_URL or settings.REDIS_URL,
    backend=settings.CELERY_RESULT_BACKEND or settings.REDIS_URL,
    include=[
        "app.features.business_automations.sales_intelligence.tasks",
    ]
)

celery_app.conf.update(
    # Task routing
    task_routes={
        "sales_intelligence.run_full_scan": {"queue": "scans"},
        "sales_intelligence.run_pappers_scan": {"queue": "scans"},
        "sales_intelligence.run_pappers_queries": {"queue": "scans"},
        "sales_intelligence.linkedin_full_scan": {"queue": "scans"},
        "sales_intelligence.check_pending_enrichments": {"queue": "enrichment"},
        "sales_intelligence.update_tonal_charter": {"queue": "default"},
    },

    # Queue definitions
    task_default_queue="default",
    task_queues=(
        Queue("default"),
        Queue("scans"),
        Queue("enrichment"),
    ),

    # Task execution settings
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,

    # Task result settings
    result_expires=3600,  # 1 hour

    # Worker settings
    worker_prefetch_multiplier=1,
    task_acks_late=True,

    task_reject_on_worker_lost=True,
    task_default_retry_delay=60,

    # Monitoring
    worker_send_task_events=True,
    task_send_sent_event=True,

    # Beat schedule (for periodic tasks)
    beat_schedule={
        "check-pending-enrichments": {
            "task": "sales_intelligence.check_pending_enrichments",
            "schedule": settings.MANUS_STATUS_CHECK_INTERVAL,
        },
    },
)

if __name__ == "__main__":
    celery_app.start()
