from celery import Celery
from kombu import Queue

from core.config import settings

NOTIFICATIONS_QUEUE = "notifications"

celery_app = Celery(
    "nile_store",
    broker=settings.REDIS_URL,
    backend=settings.REDIS_URL,
    include=["tasks.notification_tasks"],
)

celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    result_expires=24 * 60 * 60,
    timezone="UTC",
    enable_utc=True,
    task_track_started=True,
    # a broadcast to a few thousand users finishes well inside this
    task_time_limit=10 * 60,
    task_soft_time_limit=8 * 60,
    task_queues=(Queue("celery"), Queue(NOTIFICATIONS_QUEUE)),
    task_routes={"tasks.notification_tasks.*": {"queue": NOTIFICATIONS_QUEUE}},
    worker_prefetch_multiplier=1,
    worker_max_tasks_per_child=1000,
)
