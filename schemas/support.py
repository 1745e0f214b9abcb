from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, Field

TicketStatus = Literal["open", "in_progress", "resolved", "closed"]


class TicketCreate(BaseModel):
    subject: str = Field(min_length=1, max_length=255)
    message: str = Field(min_length=1)
    category: str = "general"
    priority: str = "normal"


class TicketMessageIn(BaseModel):
    message: str = Field(min_length=1)
    is_internal: bool = False


class TicketUpdate(BaseModel):
    status: Optional[TicketStatus] = None
    priority: Optional[str] = None
    category: Optional[str] = None


class TicketMessageOut(BaseModel):
    id: int
    ticket_id: int
    sender_id: str
    sender_type: str
    message: str
    is_internal: bool
    created_at: datetime

    class Config:
        from_attributes = True


class TicketOut(BaseModel):
    id: int
    ticket_number: str
    user_id: str
    subject: str
    status: str
    priority: str
    category: str
    created_at: datetime

    class Config:
        from_attributes = True


class TicketDetailOut(TicketOut):
    messages: List[TicketMessageOut] = []
