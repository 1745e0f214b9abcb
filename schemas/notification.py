from datetime import datetime
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field, model_validator

NotificationType = Literal[
    "welcome",
    "order_created",
    "order_confirmed",
    "order_processing",
    "order_shipped",
    "order_delivered",
    "order_cancelled",
    "support_reply",
    "promotion",
    "admin_message",
    "system",
]


class NotificationCreate(BaseModel):
    user_id: Optional[str] = None
    user_ids: Optional[List[str]] = None
    type: NotificationType
    title_ar: str = Field(min_length=1)
    title_en: str = Field(min_length=1)
    message_ar: str = Field(min_length=1)
    message_en: str = Field(min_length=1)
    data: Dict[str, Any] = {}

    @model_validator(mode="after")
    def check_recipients(self):
        if not self.user_id and not self.user_ids:
            raise ValueError("Either user_id or user_ids must be provided")
        return self

    def recipients(self) -> List[str]:
        return self.user_ids or [self.user_id]


class NotificationOut(BaseModel):
    id: int
    user_id: str
    type: str
    title_ar: str
    title_en: str
    message_ar: str
    message_en: str
    data: Dict[str, Any] = {}
    is_read: bool
    read_at: Optional[datetime] = None
    created_at: datetime

    class Config:
        from_attributes = True


class Pagination(BaseModel):
    total: int
    page: int
    limit: int
    total_pages: int


class NotificationPage(BaseModel):
    notifications: List[NotificationOut]
    pagination: Pagination


class NotificationBatchOut(BaseModel):
    message: str
    notifications: List[NotificationOut]


class UnreadCount(BaseModel):
    count: int


class NotificationBroadcast(BaseModel):
    user_ids: List[str] = Field(min_length=1)
    type: NotificationType = "admin_message"
    title_ar: str = Field(min_length=1)
    title_en: str = Field(min_length=1)
    message_ar: str = Field(min_length=1)
    message_en: str = Field(min_length=1)
    data: Dict[str, Any] = {}


class BroadcastOut(BaseModel):
    queued: bool
    created: int


class WelcomeRequest(BaseModel):
    name: Optional[str] = None
