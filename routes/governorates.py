from decimal import Decimal
from typing import List

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from core.cache import CacheStore, get_cache
from core.db import get_db
from schemas.catalog import (
    GovernorateCreate,
    GovernorateUpdate,
    GovernorateOut,
    BulkShippingUpdate,
    FreeShippingSettingsIn,
    FreeShippingSettingsOut,
    ShippingQuoteOut,
)
from security.auth import AuthUser, require_admin
from services import catalog

router = APIRouter(prefix="/governorates", tags=["governorates"])


@router.get("/", response_model=List[GovernorateOut])
def list_governorates(db: Session = Depends(get_db), cache: CacheStore = Depends(get_cache)):
    return catalog.list_governorates(db, cache)


# Static paths are declared before /{governorate_id} so they are not shadowed
@router.get("/free-shipping", response_model=FreeShippingSettingsOut)
def get_free_shipping(db: Session = Depends(get_db)):
    return catalog.get_free_shipping_settings(db)


@router.put("/free-shipping", response_model=FreeShippingSettingsOut)
def update_free_shipping(
    data: FreeShippingSettingsIn,
    _: AuthUser = Depends(require_admin),
    db: Session = Depends(get_db),
):
    return catalog.update_free_shipping_settings(db, data)


@router.put("/bulk-shipping", response_model=List[GovernorateOut])
def bulk_update_shipping(
    data: BulkShippingUpdate,
    _: AuthUser = Depends(require_admin),
    db: Session = Depends(get_db),
    cache: CacheStore = Depends(get_cache),
):
    return catalog.bulk_update_shipping(db, cache, data)


@router.get("/{governorate_id}", response_model=GovernorateOut)
def get_governorate(governorate_id: int, db: Session = Depends(get_db)):
    return catalog.get_governorate(db, governorate_id)


@router.get("/{governorate_id}/shipping-quote", response_model=ShippingQuoteOut)
def shipping_quote(governorate_id: int, subtotal: Decimal = Query(..., ge=0), db: Session = Depends(get_db)):
    return catalog.shipping_quote(db, governorate_id, subtotal)


@router.post("/", response_model=GovernorateOut, status_code=201)
def create_governorate(
    data: GovernorateCreate,
    _: AuthUser = Depends(require_admin),
    db: Session = Depends(get_db),
    cache: CacheStore = Depends(get_cache),
):
    return catalog.create_governorate(db, cache, data)


@router.patch("/{governorate_id}", response_model=GovernorateOut)
def update_governorate(
    governorate_id: int,
    data: GovernorateUpdate,
    _: AuthUser = Depends(require_admin),
    db: Session = Depends(get_db),
    cache: CacheStore = Depends(get_cache),
):
    return catalog.update_governorate(db, cache, governorate_id, data)


@router.delete("/{governorate_id}", status_code=204)
def delete_governorate(
    governorate_id: int,
    _: AuthUser = Depends(require_admin),
    db: Session = Depends(get_db),
    cache: CacheStore = Depends(get_cache),
):
    catalog.delete_governorate(db, cache, governorate_id)
