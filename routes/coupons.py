from typing import List, Optional

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from core.db import get_db
from schemas.coupon import (
    CouponCreate,
    CouponUpdate,
    CouponOut,
    CouponList,
    CouponValidateRequest,
    CouponValidateOut,
    CouponUsageOut,
    CouponStatsOut,
)
from security.auth import AuthUser, get_current_user, require_admin
from services import coupons

router = APIRouter(prefix="/coupons", tags=["coupons"])


@router.post("/validate", response_model=CouponValidateOut)
def validate_coupon(data: CouponValidateRequest, user: AuthUser = Depends(get_current_user), db: Session = Depends(get_db)):
    quote = coupons.validate_coupon(db, data.code, data.order_total, user.id)
    return {"valid": True, "coupon": quote.coupon, "discount_amount": quote.discount_amount}


@router.get("/", response_model=CouponList)
def list_coupons(
    status: Optional[str] = None,
    search: Optional[str] = None,
    _: AuthUser = Depends(require_admin),
    db: Session = Depends(get_db),
):
    return coupons.list_coupons(db, status=status, search=search)


@router.post("/", response_model=CouponOut, status_code=201)
def create_coupon(data: CouponCreate, admin: AuthUser = Depends(require_admin), db: Session = Depends(get_db)):
    return coupons.create_coupon(db, data, created_by=admin.id)


@router.get("/{coupon_id}", response_model=CouponOut)
def get_coupon(coupon_id: int, _: AuthUser = Depends(require_admin), db: Session = Depends(get_db)):
    return coupons.get_coupon(db, coupon_id)


@router.patch("/{coupon_id}", response_model=CouponOut)
def update_coupon(coupon_id: int, data: CouponUpdate, _: AuthUser = Depends(require_admin), db: Session = Depends(get_db)):
    return coupons.update_coupon(db, coupon_id, data)


@router.delete("/{coupon_id}", status_code=204)
def delete_coupon(coupon_id: int, _: AuthUser = Depends(require_admin), db: Session = Depends(get_db)):
    coupons.delete_coupon(db, coupon_id)


@router.get("/{coupon_id}/usage", response_model=List[CouponUsageOut])
def coupon_usage(coupon_id: int, _: AuthUser = Depends(require_admin), db: Session = Depends(get_db)):
    return coupons.list_usage(db, coupon_id)


@router.get("/{coupon_id}/stats", response_model=CouponStatsOut)
def coupon_stats(coupon_id: int, _: AuthUser = Depends(require_admin), db: Session = Depends(get_db)):
    return coupons.coupon_stats(db, coupon_id)
