from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from core.db import get_db
from schemas.notification import (
    NotificationCreate,
    NotificationOut,
    NotificationPage,
    NotificationBatchOut,
    NotificationBroadcast,
    BroadcastOut,
    UnreadCount,
    WelcomeRequest,
)
from security.auth import AuthUser, get_current_user, require_admin
from services import notifications

router = APIRouter(prefix="/notifications", tags=["notifications"])


@router.get("/", response_model=NotificationPage)
def list_notifications(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    unread_only: bool = False,
    user: AuthUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return notifications.list_for_user(db, user.id, page=page, limit=limit, unread_only=unread_only)


@router.get("/unread-count", response_model=UnreadCount)
def unread_count(user: AuthUser = Depends(get_current_user), db: Session = Depends(get_db)):
    return {"count": notifications.unread_count(db, user.id)}


@router.post("/read-all")
def mark_all_read(user: AuthUser = Depends(get_current_user), db: Session = Depends(get_db)):
    updated = notifications.mark_all_read(db, user.id)
    return {"message": "All notifications marked as read", "updated": updated}


@router.post("/welcome", status_code=201)
def welcome(data: WelcomeRequest, user: AuthUser = Depends(get_current_user), db: Session = Depends(get_db)):
    created = notifications.notify_welcome(db, user.id, name=data.name)
    if created is None:
        return {"message": "Welcome notification already exists"}
    return {"message": "Welcome notification created successfully"}


@router.patch("/{notification_id}/read", response_model=NotificationOut)
def mark_read(notification_id: int, user: AuthUser = Depends(get_current_user), db: Session = Depends(get_db)):
    return notifications.mark_read(db, user.id, notification_id)


@router.delete("/{notification_id}", status_code=204)
def delete_notification(notification_id: int, user: AuthUser = Depends(get_current_user), db: Session = Depends(get_db)):
    notifications.delete_for_user(db, user.id, notification_id)


# Admin

@router.post("/admin", response_model=NotificationBatchOut, status_code=201)
def create_notifications(data: NotificationCreate, _: AuthUser = Depends(require_admin), db: Session = Depends(get_db)):
    fields = data.model_dump(exclude={"user_id", "user_ids"})
    created = notifications.notify_many(db, data.recipients(), **fields)
    return {"message": f"Created {len(created)} notification(s)", "notifications": created}


@router.post("/admin/broadcast", response_model=BroadcastOut, status_code=202)
def broadcast(data: NotificationBroadcast, _: AuthUser = Depends(require_admin), db: Session = Depends(get_db)):
    return notifications.broadcast(db, data.user_ids, **data.model_dump(exclude={"user_ids"}))


@router.get("/admin/all", response_model=NotificationPage)
def list_all_notifications(
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=200),
    type: Optional[str] = None,
    user_id: Optional[str] = None,
    _: AuthUser = Depends(require_admin),
    db: Session = Depends(get_db),
):
    return notifications.list_all(db, page=page, limit=limit, type=type, user_id=user_id)


@router.delete("/admin/{notification_id}", status_code=204)
def admin_delete_notification(notification_id: int, _: AuthUser = Depends(require_admin), db: Session = Depends(get_db)):
    notifications.delete_any(db, notification_id)
