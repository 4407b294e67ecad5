from celery import Celery
from app.core.config import settings

celery_app = Celery(
    "snapform",
    broker=settings.REDIS_URL,
    backend=settings.REDIS_URL,
    include=["app.workers.tasks.responses"],
)

celery_app.conf.beat_schedule = {
    "reconcile_response_counts": {
        "task": "app.workers.tasks.responses.reconcile_response_counts",
        "schedule": 86400.0,
    },
}
celery_app.conf.timezone = settings.CELERY_TIMEZONE
