import logging
from typing import Any, Dict, List

from celery import current_app

from core.db import db_session
from services.notifications import notify_many

logger = logging.getLogger(__name__)


@current_app.task(bind=True, max_retries=3)
def broadcast_notification_task(self, user_ids: List[str], fields: Dict[str, Any]):
    """
    Fan a notification out to many users in the background.
    Per-user failures are logged and skipped; only a broken database connection retries.
    """
    try:
        with db_session() as db:
            created = notify_many(db, user_ids, **fields)
            return {"status": "sent", "requested": len(user_ids), "created": len(created)}
    except Exception as exc:
        countdown = min(2 ** self.request.retries, 60)  # Max 60 seconds
        logger.warning("Broadcast of %s failed, retrying in %ss: %s", fields.get("type"), countdown, exc)
        raise self.retry(exc=exc, countdown=countdown)
