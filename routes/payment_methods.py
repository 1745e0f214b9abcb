from typing import List

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from core.cache import CacheStore, get_cache
from core.db import get_db
from schemas.catalog import PaymentMethodUpdate, PaymentMethodOut
from security.auth import AuthUser, require_admin
from services import catalog

router = APIRouter(prefix="/payment-methods", tags=["payment-methods"])


@router.get("/", response_model=List[PaymentMethodOut])
def list_payment_methods(db: Session = Depends(get_db), cache: CacheStore = Depends(get_cache)):
    return catalog.list_payment_methods(db, cache)


@router.get("/{method_type}", response_model=PaymentMethodOut)
def get_payment_method(method_type: str, db: Session = Depends(get_db)):
    return catalog.get_payment_method(db, method_type)


@router.patch("/{method_type}", response_model=PaymentMethodOut)
def update_payment_method(
    method_type: str,
    data: PaymentMethodUpdate,
    _: AuthUser = Depends(require_admin),
    db: Session = Depends(get_db),
    cache: CacheStore = Depends(get_cache),
):
    return catalog.update_payment_method(db, cache, method_type, data)
