"""Coupon validation and the single point where a coupon gets spent."""
import logging
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from sqlalchemy import func, or_, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from core.errors import ConflictError, CouponRejected, NotFoundError
from models.coupon import Coupon, CouponUsage
from schemas.coupon import CouponCreate, CouponUpdate
from services.pricing import ZERO, quantize, to_decimal

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CouponQuote:
    coupon: Coupon
    discount_amount: Decimal


def normalize_code(code: str) -> str:
    return code.strip().upper()


def find_coupon(db: Session, code: str) -> Optional[Coupon]:
    return db.query(Coupon).filter(Coupon.code == normalize_code(code)).one_or_none()


def compute_discount(coupon: Coupon, order_total: Decimal) -> Decimal:
    """Discount for an order total, never more than the total itself."""
    order_total = to_decimal(order_total)
    if order_total <= 0:
        return ZERO
    if coupon.discount_type == "percentage":
        discount = order_total * to_decimal(coupon.discount_value) / 100
        if coupon.max_discount_amount is not None:
            discount = min(discount, to_decimal(coupon.max_discount_amount))
    else:
        discount = to_decimal(coupon.discount_value)
    return quantize(min(discount, order_total))


def has_used(db: Session, coupon_id: int, user_id: str) -> bool:
    return db.query(CouponUsage.id).filter(CouponUsage.coupon_id == coupon_id, CouponUsage.user_id == user_id).first() is not None


def validate_coupon(db: Session, code: str, order_total: Decimal, user_id: str, now: Optional[datetime] = None) -> CouponQuote:
    """Read-only check. The first failing rule decides the reason."""
    now = now or datetime.utcnow()
    coupon = find_coupon(db, code)
    if coupon is None:
        raise CouponRejected("invalid_code")
    if has_used(db, coupon.id, user_id):
        raise CouponRejected("already_used")
    if coupon.status != "active":
        raise CouponRejected("inactive")
    if coupon.valid_from and coupon.valid_from > now:
        raise CouponRejected("not_started")
    if coupon.valid_until and coupon.valid_until < now:
        raise CouponRejected("expired")
    if coupon.usage_limit is not None and coupon.used_count >= coupon.usage_limit:
        raise CouponRejected("exhausted")
    if coupon.min_purchase_amount is not None and to_decimal(order_total) < to_decimal(coupon.min_purchase_amount):
        raise CouponRejected("below_minimum", minimum=quantize(coupon.min_purchase_amount))
    return CouponQuote(coupon=coupon, discount_amount=compute_discount(coupon, order_total))


def record_usage(
    db: Session,
    coupon: Coupon,
    user_id: str,
    order_id: int,
    discount_amount: Decimal,
    order_total: Decimal,
) -> CouponUsage:
    """Spend the coupon inside the caller's transaction; the caller commits.

    The ledger's unique (coupon_id, user_id) pair is the source of truth for
    single use, and the counter bump is a conditional UPDATE so two racing
    checkouts can never push used_count past usage_limit.
    """
    coupon_id, code = coupon.id, coupon.code
    usage = CouponUsage(
        coupon_id=coupon_id,
        user_id=user_id,
        order_id=order_id,
        discount_amount=discount_amount,
        order_total=order_total,
    )
    db.add(usage)
    try:
        db.flush()
    except IntegrityError:
        # The failed flush has rolled the transaction back; only locals are safe here
        logger.warning("Coupon %s already spent by user %s", code, user_id)
        raise CouponRejected("already_used")

    bumped = db.execute(
        update(Coupon)
        .where(
            Coupon.id == coupon_id,
            or_(Coupon.usage_limit.is_(None), Coupon.used_count < Coupon.usage_limit),
        )
        .values(used_count=Coupon.used_count + 1)
        .execution_options(synchronize_session=False)
    )
    if bumped.rowcount == 0:
        raise CouponRejected("exhausted")
    db.expire(coupon, ["used_count"])
    return usage


# Administration

def _get(db: Session, coupon_id: int) -> Coupon:
    coupon = db.get(Coupon, coupon_id)
    if not coupon:
        raise NotFoundError("Coupon not found")
    return coupon


def list_coupons(db: Session, status: Optional[str] = None, search: Optional[str] = None) -> dict:
    qs = db.query(Coupon)
    if status:
        qs = qs.filter(Coupon.status == status)
    if search:
        qs = qs.filter(func.upper(Coupon.code).contains(search.upper()))
    coupons = qs.order_by(Coupon.created_at.desc(), Coupon.id.desc()).all()
    return {"coupons": coupons, "total": len(coupons)}


def get_coupon(db: Session, coupon_id: int) -> Coupon:
    return _get(db, coupon_id)


def create_coupon(db: Session, data: CouponCreate, created_by: str) -> Coupon:
    payload = data.model_dump()
    payload["code"] = normalize_code(payload["code"])
    coupon = Coupon(**payload, created_by=created_by, used_count=0)
    db.add(coupon)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise ConflictError("Coupon code already exists")
    db.refresh(coupon)
    return coupon


def update_coupon(db: Session, coupon_id: int, data: CouponUpdate) -> Coupon:
    coupon = _get(db, coupon_id)
    changes = data.model_dump(exclude_unset=True)
    if changes.get("code"):
        changes["code"] = normalize_code(changes["code"])
    for field, value in changes.items():
        setattr(coupon, field, value)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise ConflictError("Coupon code already exists or usage limit is below current usage")
    db.refresh(coupon)
    return coupon


def delete_coupon(db: Session, coupon_id: int) -> None:
    db.delete(_get(db, coupon_id))
    db.commit()


def list_usage(db: Session, coupon_id: int) -> List[CouponUsage]:
    _get(db, coupon_id)
    return (
        db.query(CouponUsage)
        .filter(CouponUsage.coupon_id == coupon_id)
        .order_by(CouponUsage.used_at.desc(), CouponUsage.id.desc())
        .all()
    )


def coupon_stats(db: Session, coupon_id: int) -> dict:
    coupon = _get(db, coupon_id)
    total_discount, total_orders = (
        db.query(
            func.coalesce(func.sum(CouponUsage.discount_amount), 0),
            func.coalesce(func.sum(CouponUsage.order_total), 0),
        )
        .filter(CouponUsage.coupon_id == coupon_id)
        .one()
    )
    return {
        "coupon": coupon,
        "stats": {
            "used_count": coupon.used_count,
            "remaining": coupon.usage_limit - coupon.used_count if coupon.usage_limit is not None else None,
            "total_discount": float(total_discount),
            "total_orders": float(total_orders),
        },
    }
