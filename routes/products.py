from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from core.cache import CacheStore, get_cache
from core.db import get_db
from schemas.catalog import ProductCreate, ProductUpdate, ProductOut, ProductList
from security.auth import AuthUser, require_admin
from services import catalog

router = APIRouter(prefix="/products", tags=["products"])


@router.get("/", response_model=ProductList)
def list_products(
    category_id: Optional[int] = None,
    status: Optional[str] = None,
    search: Optional[str] = None,
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    db: Session = Depends(get_db),
    cache: CacheStore = Depends(get_cache),
):
    return catalog.list_products(db, cache, category_id=category_id, status=status, search=search, limit=limit, offset=offset)


@router.get("/{product_id}", response_model=ProductOut)
def get_product(product_id: int, db: Session = Depends(get_db), cache: CacheStore = Depends(get_cache)):
    return catalog.get_product(db, cache, product_id)


@router.post("/", response_model=ProductOut, status_code=201)
def create_product(
    data: ProductCreate,
    _: AuthUser = Depends(require_admin),
    db: Session = Depends(get_db),
    cache: CacheStore = Depends(get_cache),
):
    return catalog.create_product(db, cache, data)


@router.patch("/{product_id}", response_model=ProductOut)
def update_product(
    product_id: int,
    data: ProductUpdate,
    _: AuthUser = Depends(require_admin),
    db: Session = Depends(get_db),
    cache: CacheStore = Depends(get_cache),
):
    return catalog.update_product(db, cache, product_id, data)


@router.delete("/{product_id}", status_code=204)
def delete_product(
    product_id: int,
    _: AuthUser = Depends(require_admin),
    db: Session = Depends(get_db),
    cache: CacheStore = Depends(get_cache),
):
    catalog.delete_product(db, cache, product_id)
