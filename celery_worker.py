#!/usr/bin/env python3
"""
Celery worker for the Nile Store API.
Consumes the default queue and the notifications queue used by admin broadcasts.
"""

from dotenv import load_dotenv

load_dotenv()

if __name__ == "__main__":
    from core.celery import NOTIFICATIONS_QUEUE, celery_app
    from core.logging_config import configure_logging

    configure_logging()
    celery_app.start([
        "worker",
        "--loglevel=info",
        "--concurrency=4",
        f"--queues=celery,{NOTIFICATIONS_QUEUE}",
        "--without-gossip",
        "--without-mingle",
        "--without-heartbeat",
    ])
