from typing import List, Optional

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from core.cache import CacheStore, get_cache
from core.db import get_db
from schemas.promotion import (
    PromotionCreate,
    PromotionUpdate,
    PromotionOut,
    PromotionProductIn,
    PromotionProductPrice,
    PromotionProductOut,
    ActivePromotionOut,
)
from security.auth import AuthUser, require_admin
from services import promotions

router = APIRouter(prefix="/promotions", tags=["promotions"])


@router.get("/active", response_model=List[ActivePromotionOut])
def list_active_promotions(db: Session = Depends(get_db), cache: CacheStore = Depends(get_cache)):
    return promotions.list_active(db, cache)


@router.get("/", response_model=List[PromotionOut])
def list_promotions(
    status: Optional[str] = None,
    promotion_type: Optional[str] = None,
    _: AuthUser = Depends(require_admin),
    db: Session = Depends(get_db),
):
    return promotions.list_promotions(db, status=status, promotion_type=promotion_type)


@router.post("/", response_model=PromotionOut, status_code=201)
def create_promotion(
    data: PromotionCreate,
    admin: AuthUser = Depends(require_admin),
    db: Session = Depends(get_db),
    cache: CacheStore = Depends(get_cache),
):
    return promotions.create_promotion(db, cache, data, created_by=admin.id)


@router.get("/{promotion_id}", response_model=PromotionOut)
def get_promotion(promotion_id: int, _: AuthUser = Depends(require_admin), db: Session = Depends(get_db)):
    return promotions.get_promotion(db, promotion_id)


@router.patch("/{promotion_id}", response_model=PromotionOut)
def update_promotion(
    promotion_id: int,
    data: PromotionUpdate,
    _: AuthUser = Depends(require_admin),
    db: Session = Depends(get_db),
    cache: CacheStore = Depends(get_cache),
):
    return promotions.update_promotion(db, cache, promotion_id, data)


@router.delete("/{promotion_id}", status_code=204)
def delete_promotion(
    promotion_id: int,
    _: AuthUser = Depends(require_admin),
    db: Session = Depends(get_db),
    cache: CacheStore = Depends(get_cache),
):
    promotions.delete_promotion(db, cache, promotion_id)


@router.get("/{promotion_id}/products", response_model=List[PromotionProductOut])
def list_promotion_products(promotion_id: int, _: AuthUser = Depends(require_admin), db: Session = Depends(get_db)):
    return promotions.list_promotion_products(db, promotion_id)


@router.post("/{promotion_id}/products", response_model=PromotionProductOut, status_code=201)
def add_promotion_product(
    promotion_id: int,
    data: PromotionProductIn,
    _: AuthUser = Depends(require_admin),
    db: Session = Depends(get_db),
    cache: CacheStore = Depends(get_cache),
):
    return promotions.add_product(db, cache, promotion_id, data.product_id, data.custom_price)


@router.patch("/{promotion_id}/products/{product_id}", response_model=PromotionProductOut)
def update_promotion_product(
    promotion_id: int,
    product_id: int,
    data: PromotionProductPrice,
    _: AuthUser = Depends(require_admin),
    db: Session = Depends(get_db),
    cache: CacheStore = Depends(get_cache),
):
    return promotions.update_product_price(db, cache, promotion_id, product_id, data.custom_price)


@router.delete("/{promotion_id}/products/{product_id}", status_code=204)
def remove_promotion_product(
    promotion_id: int,
    product_id: int,
    _: AuthUser = Depends(require_admin),
    db: Session = Depends(get_db),
    cache: CacheStore = Depends(get_cache),
):
    promotions.remove_product(db, cache, promotion_id, product_id)
