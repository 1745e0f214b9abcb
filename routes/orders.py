from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from core.cache import CacheStore, get_cache
from core.db import get_db
from schemas.order import OrderCreate, OrderOut, OrderList, OrderStatusUpdate
from security.auth import AuthUser, get_current_user, require_admin
from services import orders

router = APIRouter(prefix="/orders", tags=["orders"])


@router.get("/", response_model=OrderList)
def list_orders(
    status: Optional[str] = None,
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    user: AuthUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return orders.list_orders(db, user, status=status, limit=limit, offset=offset)


@router.get("/{order_id}", response_model=OrderOut)
def get_order(order_id: int, user: AuthUser = Depends(get_current_user), db: Session = Depends(get_db)):
    return orders.get_order(db, user, order_id)


@router.post("/", response_model=OrderOut, status_code=201)
def create_order(data: OrderCreate, user: AuthUser = Depends(get_current_user), db: Session = Depends(get_db)):
    return orders.create_order(db, user, data)


@router.patch("/{order_id}/status", response_model=OrderOut)
def update_order_status(
    order_id: int,
    data: OrderStatusUpdate,
    _: AuthUser = Depends(require_admin),
    db: Session = Depends(get_db),
    cache: CacheStore = Depends(get_cache),
):
    return orders.update_order_status(db, cache, order_id, status=data.status, payment_status=data.payment_status)
