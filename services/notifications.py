"""Notification dispatcher: bilingual records per user plus read-state handling."""
import logging
import math
import os
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional

from jinja2 import Environment, FileSystemLoader, select_autoescape
from sqlalchemy import update
from sqlalchemy.orm import Session

from core.config import settings
from core.errors import NotFoundError
from models.notification import Notification

logger = logging.getLogger(__name__)

ORDER_EVENTS = ("created", "confirmed", "processing", "shipped", "delivered", "cancelled")
PREVIEW_LENGTH = 100

# Jinja2 environment for notification copy
_templates_env = Environment(
    loader=FileSystemLoader(searchpath=os.path.join(os.path.dirname(os.path.dirname(__file__)), "templates")),
    autoescape=select_autoescape(["html", "xml"]),
)


def render_copy(kind: str, context: Dict[str, Any]) -> Dict[str, str]:
    """Render ``notifications/<kind>.<lang>.txt``: first line is the title, the rest the message."""
    copy = {}
    for lang in ("ar", "en"):
        text = _templates_env.get_template(f"notifications/{kind}.{lang}.txt").render(**context)
        title, _, message = text.strip().partition("\n")
        copy[f"title_{lang}"] = title.strip()
        copy[f"message_{lang}"] = message.strip()
    return copy


def notify(
    db: Session,
    user_id: str,
    type: str,
    title_ar: str,
    title_en: str,
    message_ar: str,
    message_en: str,
    data: Optional[Dict[str, Any]] = None,
) -> Notification:
    notification = Notification(
        user_id=user_id,
        type=type,
        title_ar=title_ar,
        title_en=title_en,
        message_ar=message_ar,
        message_en=message_en,
        data=data or {},
    )
    db.add(notification)
    db.commit()
    db.refresh(notification)
    return notification


def notify_many(db: Session, user_ids: Iterable[str], **fields) -> List[Notification]:
    """One insert and commit per user; a failure for one user never undoes another."""
    created = []
    for user_id in user_ids:
        try:
            created.append(notify(db, user_id, **fields))
        except Exception:
            db.rollback()
            logger.exception("Failed to notify user %s (%s)", user_id, fields.get("type"))
    return created


def broadcast(db: Session, user_ids: List[str], **fields) -> Dict[str, Any]:
    """
    Queue a fan-out on Celery, falling back to inline delivery when the broker is unavailable.
    Returns immediately when queued.
    """
    from tasks.notification_tasks import broadcast_notification_task

    try:
        broadcast_notification_task.delay(list(user_ids), fields)
        logger.info("Queued %s notification for %d users", fields.get("type"), len(user_ids))
        return {"queued": True, "created": 0}
    except Exception as e:
        logger.warning("Celery not available, notifying inline: %s", e)
    created = notify_many(db, user_ids, **fields)
    return {"queued": False, "created": len(created)}


def notify_order_event(db: Session, order, event: str) -> Notification:
    if event not in ORDER_EVENTS:
        raise ValueError(f"Unknown order event: {event}")
    copy = render_copy(f"order_{event}", {"order_number": order.order_number})
    return notify(
        db,
        order.user_id,
        type=f"order_{event}",
        data={"order_id": order.id, "order_number": order.order_number, "status": event},
        **copy,
    )


def notify_welcome(db: Session, user_id: str, name: Optional[str] = None) -> Optional[Notification]:
    """Create the welcome notification unless the user already has one."""
    exists = db.query(Notification.id).filter(Notification.user_id == user_id, Notification.type == "welcome").first()
    if exists:
        return None
    copy = render_copy("welcome", {"name": name, "store_name": settings.STORE_NAME})
    return notify(db, user_id, type="welcome", data={"is_welcome": True, "user_name": name}, **copy)


def message_preview(message: str) -> str:
    if len(message) > PREVIEW_LENGTH:
        return message[:PREVIEW_LENGTH] + "..."
    return message


def notify_support_reply(db: Session, ticket, message: str) -> Notification:
    preview = message_preview(message)
    copy = render_copy("support_reply", {"ticket_number": ticket.ticket_number, "preview": preview})
    return notify(
        db,
        ticket.user_id,
        type="support_reply",
        data={"ticket_id": ticket.id, "ticket_number": ticket.ticket_number, "message_preview": preview},
        **copy,
    )


# Read state

def list_for_user(db: Session, user_id: str, page: int = 1, limit: int = 20, unread_only: bool = False) -> dict:
    qs = db.query(Notification).filter(Notification.user_id == user_id)
    if unread_only:
        qs = qs.filter(Notification.is_read.is_(False))
    total = qs.count()
    rows = (
        qs.order_by(Notification.created_at.desc(), Notification.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return {
        "notifications": rows,
        "pagination": {"total": total, "page": page, "limit": limit, "total_pages": math.ceil(total / limit)},
    }


def unread_count(db: Session, user_id: str) -> int:
    return db.query(Notification).filter(Notification.user_id == user_id, Notification.is_read.is_(False)).count()


def _get_owned(db: Session, user_id: str, notification_id: int) -> Notification:
    notification = (
        db.query(Notification)
        .filter(Notification.id == notification_id, Notification.user_id == user_id)
        .one_or_none()
    )
    if not notification:
        raise NotFoundError("Notification not found")
    return notification


def mark_read(db: Session, user_id: str, notification_id: int) -> Notification:
    """Idempotent; the first read time is kept."""
    notification = _get_owned(db, user_id, notification_id)
    if not notification.is_read:
        notification.is_read = True
        notification.read_at = datetime.utcnow()
        db.commit()
        db.refresh(notification)
    return notification


def mark_all_read(db: Session, user_id: str) -> int:
    result = db.execute(
        update(Notification)
        .where(Notification.user_id == user_id, Notification.is_read.is_(False))
        .values(is_read=True, read_at=datetime.utcnow())
        .execution_options(synchronize_session=False)
    )
    db.commit()
    return result.rowcount


def delete_for_user(db: Session, user_id: str, notification_id: int) -> None:
    db.delete(_get_owned(db, user_id, notification_id))
    db.commit()


def list_all(
    db: Session,
    page: int = 1,
    limit: int = 50,
    type: Optional[str] = None,
    user_id: Optional[str] = None,
) -> dict:
    qs = db.query(Notification)
    if type:
        qs = qs.filter(Notification.type == type)
    if user_id:
        qs = qs.filter(Notification.user_id == user_id)
    total = qs.count()
    rows = (
        qs.order_by(Notification.created_at.desc(), Notification.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return {
        "notifications": rows,
        "pagination": {"total": total, "page": page, "limit": limit, "total_pages": math.ceil(total / limit)},
    }


def delete_any(db: Session, notification_id: int) -> None:
    notification = db.get(Notification, notification_id)
    if not notification:
        raise NotFoundError("Notification not found")
    db.delete(notification)
    db.commit()
