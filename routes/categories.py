from typing import List

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from core.cache import CacheStore, get_cache
from core.db import get_db
from schemas.catalog import CategoryCreate, CategoryUpdate, CategoryOut
from security.auth import AuthUser, require_admin
from services import catalog

router = APIRouter(prefix="/categories", tags=["categories"])


@router.get("/", response_model=List[CategoryOut])
def list_categories(db: Session = Depends(get_db), cache: CacheStore = Depends(get_cache)):
    return catalog.list_categories(db, cache)


@router.get("/{category_id}", response_model=CategoryOut)
def get_category(category_id: int, db: Session = Depends(get_db)):
    return catalog.get_category(db, category_id)


@router.post("/", response_model=CategoryOut, status_code=201)
def create_category(
    data: CategoryCreate,
    _: AuthUser = Depends(require_admin),
    db: Session = Depends(get_db),
    cache: CacheStore = Depends(get_cache),
):
    return catalog.create_category(db, cache, data)


@router.patch("/{category_id}", response_model=CategoryOut)
def update_category(
    category_id: int,
    data: CategoryUpdate,
    _: AuthUser = Depends(require_admin),
    db: Session = Depends(get_db),
    cache: CacheStore = Depends(get_cache),
):
    return catalog.update_category(db, cache, category_id, data)


@router.delete("/{category_id}", status_code=204)
def delete_category(
    category_id: int,
    _: AuthUser = Depends(require_admin),
    db: Session = Depends(get_db),
    cache: CacheStore = Depends(get_cache),
):
    catalog.delete_category(db, cache, category_id)
