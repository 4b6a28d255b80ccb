from celery import Celery

from app.config import settings

celery_app = Celery(
    "dotmac_custody",
    broker=settings.celery_broker_url,
    backend=settings.celery_result_backend,
    include=["app.tasks.events", "app.tasks.audit"],
)
celery_app.conf.update(
    task_always_eager=settings.celery_task_always_eager,
    task_serializer="json",
    accept_content=["json"],
    timezone="UTC",
    enable_utc=True,
    # Bound publish time when the broker is unreachable
    broker_connection_timeout=2,
    task_publish_retry_policy={"max_retries": 1, "interval_start": 0},
)
