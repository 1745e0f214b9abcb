"""Support tickets: a thin conversation store that feeds the notification dispatcher."""
import logging
import secrets
import string
from datetime import datetime
from typing import List, Optional

from sqlalchemy.orm import Session, selectinload

from core.errors import BusinessRuleError, NotFoundError
from models.support import SupportTicket, TicketMessage
from schemas.support import TicketCreate, TicketUpdate
from security.auth import AuthUser
from services import notifications
from services.realtime import ticket_channel

logger = logging.getLogger(__name__)

STATUS_FLOW = ("open", "in_progress", "resolved", "closed")


def _ticket_number(now: datetime) -> str:
    suffix = "".join(secrets.choice(string.ascii_uppercase + string.digits) for _ in range(6))
    return f"TKT-{now:%Y%m%d}-{suffix}"


def _publish(publisher, message: TicketMessage) -> None:
    event = {
        "id": message.id,
        "ticket_id": message.ticket_id,
        "sender_id": message.sender_id,
        "sender_type": message.sender_type,
        "message": message.message,
        "created_at": message.created_at.isoformat(),
    }
    try:
        publisher.publish(ticket_channel(message.ticket_id), event)
    except Exception:
        logger.warning("Realtime delivery failed for ticket %s", message.ticket_id, exc_info=True)


def visible_messages(ticket: SupportTicket, user: AuthUser) -> List[TicketMessage]:
    if user.is_admin:
        return list(ticket.messages)
    return [m for m in ticket.messages if not m.is_internal]


def create_ticket(db: Session, user: AuthUser, data: TicketCreate) -> SupportTicket:
    now = datetime.utcnow()
    ticket = SupportTicket(
        ticket_number=_ticket_number(now),
        user_id=user.id,
        subject=data.subject,
        status="open",
        priority=data.priority,
        category=data.category,
    )
    ticket.messages.append(TicketMessage(sender_id=user.id, sender_type="user", message=data.message))
    db.add(ticket)
    db.commit()
    db.refresh(ticket)
    return ticket


def list_tickets(db: Session, user: AuthUser, status: Optional[str] = None) -> List[SupportTicket]:
    qs = db.query(SupportTicket)
    if not user.is_admin:
        qs = qs.filter(SupportTicket.user_id == user.id)
    if status:
        qs = qs.filter(SupportTicket.status == status)
    return qs.order_by(SupportTicket.created_at.desc(), SupportTicket.id.desc()).all()


def get_ticket(db: Session, user: AuthUser, ticket_id: int) -> SupportTicket:
    ticket = (
        db.query(SupportTicket)
        .options(selectinload(SupportTicket.messages))
        .filter(SupportTicket.id == ticket_id)
        .one_or_none()
    )
    if not ticket or (not user.is_admin and ticket.user_id != user.id):
        raise NotFoundError("Ticket not found")
    return ticket


def add_user_message(db: Session, publisher, user: AuthUser, ticket_id: int, text: str) -> TicketMessage:
    ticket = get_ticket(db, user, ticket_id)
    if ticket.status == "closed":
        raise BusinessRuleError("Ticket is closed")
    message = TicketMessage(sender_id=user.id, sender_type="user", message=text)
    ticket.messages.append(message)
    db.commit()
    db.refresh(message)
    _publish(publisher, message)
    return message


def admin_reply(db: Session, publisher, admin: AuthUser, ticket_id: int, text: str, is_internal: bool = False) -> TicketMessage:
    """Post an admin message. Public replies wake an open ticket and notify its owner."""
    ticket = get_ticket(db, admin, ticket_id)
    message = TicketMessage(sender_id=admin.id, sender_type="admin", message=text, is_internal=is_internal)
    ticket.messages.append(message)
    if not is_internal and ticket.status == "open":
        ticket.status = "in_progress"
    db.commit()
    db.refresh(message)

    if not is_internal:
        try:
            notifications.notify_support_reply(db, ticket, text)
        except Exception:
            db.rollback()
            logger.exception("Failed to notify user %s about ticket %s", ticket.user_id, ticket.ticket_number)
        _publish(publisher, message)
    return message


def update_ticket(db: Session, ticket_id: int, data: TicketUpdate) -> SupportTicket:
    ticket = db.get(SupportTicket, ticket_id)
    if not ticket:
        raise NotFoundError("Ticket not found")
    changes = data.model_dump(exclude_unset=True, exclude_none=True)
    status = changes.pop("status", None)
    if status and status != ticket.status:
        reopening = status == "open" and ticket.status in ("resolved", "closed")
        if not reopening and STATUS_FLOW.index(status) < STATUS_FLOW.index(ticket.status):
            raise BusinessRuleError(f"Cannot move ticket from {ticket.status} back to {status}")
        ticket.status = status
        now = datetime.utcnow()
        if status == "resolved":
            ticket.resolved_at = now
        elif status == "closed":
            ticket.closed_at = now
        elif reopening:
            ticket.resolved_at = None
            ticket.closed_at = None
    for field, value in changes.items():
        setattr(ticket, field, value)
    db.commit()
    db.refresh(ticket)
    return ticket
