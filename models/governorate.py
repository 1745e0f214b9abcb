from datetime import datetime
from decimal import Decimal
from sqlalchemy import String, DateTime, Numeric, Boolean
from sqlalchemy.orm import Mapped, mapped_column

from core.db import Base


class Governorate(Base):
    __tablename__ = "governorates"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    name_ar: Mapped[str] = mapped_column(String(100), index=True)
    name_en: Mapped[str] = mapped_column(String(100))
    shipping_cost: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=0)
    is_free_shipping: Mapped[bool] = mapped_column(Boolean, default=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


class ShippingSettings(Base):
    """Store-wide shipping rules. A single row with id=1."""

    __tablename__ = "shipping_settings"

    id: Mapped[int] = mapped_column(primary_key=True)
    free_shipping_enabled: Mapped[bool] = mapped_column(Boolean, default=False)
    free_shipping_min_order: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=0)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
