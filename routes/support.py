from typing import List, Optional

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from core.db import get_db
from schemas.support import TicketCreate, TicketMessageIn, TicketUpdate, TicketMessageOut, TicketOut, TicketDetailOut
from security.auth import AuthUser, get_current_user, require_admin
from services import support
from services.realtime import get_publisher

router = APIRouter(prefix="/support/tickets", tags=["support"])


def _detail(ticket, user: AuthUser) -> dict:
    data = TicketOut.model_validate(ticket).model_dump()
    data["messages"] = support.visible_messages(ticket, user)
    return data


@router.post("/", response_model=TicketDetailOut, status_code=201)
def create_ticket(data: TicketCreate, user: AuthUser = Depends(get_current_user), db: Session = Depends(get_db)):
    return _detail(support.create_ticket(db, user, data), user)


@router.get("/", response_model=List[TicketOut])
def list_tickets(status: Optional[str] = None, user: AuthUser = Depends(get_current_user), db: Session = Depends(get_db)):
    return support.list_tickets(db, user, status=status)


@router.get("/{ticket_id}", response_model=TicketDetailOut)
def get_ticket(ticket_id: int, user: AuthUser = Depends(get_current_user), db: Session = Depends(get_db)):
    return _detail(support.get_ticket(db, user, ticket_id), user)


@router.post("/{ticket_id}/messages", response_model=TicketMessageOut, status_code=201)
def post_message(
    ticket_id: int,
    data: TicketMessageIn,
    user: AuthUser = Depends(get_current_user),
    db: Session = Depends(get_db),
    publisher=Depends(get_publisher),
):
    if user.is_admin:
        return support.admin_reply(db, publisher, user, ticket_id, data.message, is_internal=data.is_internal)
    return support.add_user_message(db, publisher, user, ticket_id, data.message)


@router.patch("/{ticket_id}", response_model=TicketOut)
def update_ticket(ticket_id: int, data: TicketUpdate, _: AuthUser = Depends(require_admin), db: Session = Depends(get_db)):
    return support.update_ticket(db, ticket_id, data)
