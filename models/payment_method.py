from datetime import datetime
from sqlalchemy import String, DateTime, Boolean, Text
from sqlalchemy.orm import Mapped, mapped_column

from core.db import Base


class PaymentMethod(Base):
    __tablename__ = "payment_methods"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    method_type: Mapped[str] = mapped_column(String(50), unique=True, index=True)  # vodafone_cash, instapay
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    vodafone_number: Mapped[str | None] = mapped_column(String(30), nullable=True)
    instapay_email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    instructions_ar: Mapped[str | None] = mapped_column(Text, nullable=True)
    instructions_en: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
