"""Products, categories, governorates and payment methods.

Reads go through the injected cache; every write invalidates its key family
before returning so shoppers never see a stale price or stock level.
"""
import json
import logging
from decimal import Decimal
from typing import List, Optional

from sqlalchemy import func, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from core.cache import CacheStore
from core.errors import ConflictError, NotFoundError
from models.category import Category
from models.governorate import Governorate, ShippingSettings
from models.payment_method import PaymentMethod
from models.product import Product
from schemas.catalog import (
    CategoryCreate,
    CategoryUpdate,
    CategoryOut,
    ProductCreate,
    ProductUpdate,
    ProductOut,
    GovernorateCreate,
    GovernorateUpdate,
    GovernorateOut,
    BulkShippingUpdate,
    FreeShippingSettingsIn,
    PaymentMethodUpdate,
    PaymentMethodOut,
)
from services import promotions
from services.pricing import load_free_shipping_policy, quote_shipping, to_decimal

logger = logging.getLogger(__name__)

PRODUCTS_PREFIX = "products:"
CATEGORIES_PREFIX = "categories:"
GOVERNORATES_PREFIX = "governorates:"
PAYMENT_METHODS_PREFIX = "payment_methods:"


def _key(prefix: str, **params) -> str:
    return prefix + json.dumps(params, sort_keys=True, default=str)


def _commit(db: Session, conflict_message: str) -> None:
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise ConflictError(conflict_message)


# Products

def _serialize_products(db: Session, products: List[Product]) -> List[dict]:
    prices = promotions.effective_prices(db, products)
    out = []
    for p in products:
        data = ProductOut.model_validate(p).model_dump(mode="json")
        data["effective_price"] = float(prices[p.id])
        out.append(data)
    return out


def list_products(
    db: Session,
    cache: CacheStore,
    category_id: Optional[int] = None,
    status: Optional[str] = None,
    search: Optional[str] = None,
    limit: int = 50,
    offset: int = 0,
) -> dict:
    cache_key = _key(f"{PRODUCTS_PREFIX}list:", category_id=category_id, status=status, search=search, limit=limit, offset=offset)
    cached = cache.get(cache_key)
    if cached is not None:
        return cached

    qs = db.query(Product)
    if category_id:
        qs = qs.filter(Product.category_id == category_id)
    if status:
        qs = qs.filter(Product.status == status)
    if search:
        qs = qs.filter(func.lower(Product.name).contains(search.lower()))
    total = qs.count()
    products = qs.order_by(Product.created_at.desc(), Product.id.desc()).offset(offset).limit(limit).all()

    result = {"products": _serialize_products(db, products), "total": total}
    cache.set(cache_key, result)
    return result


def get_product(db: Session, cache: CacheStore, product_id: int) -> dict:
    cache_key = f"{PRODUCTS_PREFIX}item:{product_id}"
    cached = cache.get(cache_key)
    if cached is not None:
        return cached
    product = db.get(Product, product_id)
    if not product:
        raise NotFoundError("Product not found")
    result = _serialize_products(db, [product])[0]
    cache.set(cache_key, result)
    return result


def invalidate_products(cache: CacheStore) -> None:
    cache.invalidate(PRODUCTS_PREFIX)
    # Active promotion listings embed product prices
    cache.invalidate(promotions.PROMOTIONS_PREFIX)


def _check_category(db: Session, category_id: Optional[int]) -> None:
    if category_id and not db.get(Category, category_id):
        raise NotFoundError("Category not found")


def create_product(db: Session, cache: CacheStore, data: ProductCreate) -> Product:
    _check_category(db, data.category_id)
    product = Product(**data.model_dump())
    db.add(product)
    _commit(db, "Slug already exists")
    db.refresh(product)
    invalidate_products(cache)
    return product


def update_product(db: Session, cache: CacheStore, product_id: int, data: ProductUpdate) -> Product:
    product = db.get(Product, product_id)
    if not product:
        raise NotFoundError("Product not found")
    changes = data.model_dump(exclude_unset=True)
    if "category_id" in changes:
        _check_category(db, changes["category_id"])
    for field, value in changes.items():
        setattr(product, field, value)
    _commit(db, "Slug already exists")
    db.refresh(product)
    invalidate_products(cache)
    return product


def delete_product(db: Session, cache: CacheStore, product_id: int) -> None:
    product = db.get(Product, product_id)
    if not product:
        raise NotFoundError("Product not found")
    db.delete(product)
    db.commit()
    invalidate_products(cache)


# Categories

def list_categories(db: Session, cache: CacheStore) -> List[dict]:
    cache_key = f"{CATEGORIES_PREFIX}list"
    cached = cache.get(cache_key)
    if cached is not None:
        return cached
    categories = db.query(Category).order_by(Category.name.asc()).all()
    result = [CategoryOut.model_validate(c).model_dump(mode="json") for c in categories]
    cache.set(cache_key, result)
    return result


def get_category(db: Session, category_id: int) -> Category:
    category = db.get(Category, category_id)
    if not category:
        raise NotFoundError("Category not found")
    return category


def create_category(db: Session, cache: CacheStore, data: CategoryCreate) -> Category:
    _check_category(db, data.parent_id)
    category = Category(**data.model_dump())
    db.add(category)
    _commit(db, "Slug already exists")
    db.refresh(category)
    cache.invalidate(CATEGORIES_PREFIX)
    return category


def update_category(db: Session, cache: CacheStore, category_id: int, data: CategoryUpdate) -> Category:
    category = get_category(db, category_id)
    for field, value in data.model_dump(exclude_unset=True).items():
        setattr(category, field, value)
    _commit(db, "Slug already exists")
    db.refresh(category)
    cache.invalidate(CATEGORIES_PREFIX)
    return category


def delete_category(db: Session, cache: CacheStore, category_id: int) -> None:
    db.delete(get_category(db, category_id))
    db.commit()
    cache.invalidate(CATEGORIES_PREFIX)
    # Products listing embeds category ids
    cache.invalidate(PRODUCTS_PREFIX)


# Governorates

def list_governorates(db: Session, cache: CacheStore) -> List[dict]:
    cache_key = f"{GOVERNORATES_PREFIX}active"
    cached = cache.get(cache_key)
    if cached is not None:
        return cached
    rows = db.query(Governorate).filter(Governorate.is_active.is_(True)).order_by(Governorate.name_ar.asc()).all()
    result = [GovernorateOut.model_validate(g).model_dump(mode="json") for g in rows]
    cache.set(cache_key, result)
    return result


def get_governorate(db: Session, governorate_id: int) -> Governorate:
    governorate = db.get(Governorate, governorate_id)
    if not governorate:
        raise NotFoundError("Governorate not found")
    return governorate


def create_governorate(db: Session, cache: CacheStore, data: GovernorateCreate) -> Governorate:
    governorate = Governorate(**data.model_dump())
    db.add(governorate)
    db.commit()
    db.refresh(governorate)
    cache.invalidate(GOVERNORATES_PREFIX)
    return governorate


def update_governorate(db: Session, cache: CacheStore, governorate_id: int, data: GovernorateUpdate) -> Governorate:
    governorate = get_governorate(db, governorate_id)
    for field, value in data.model_dump(exclude_unset=True).items():
        setattr(governorate, field, value)
    db.commit()
    db.refresh(governorate)
    cache.invalidate(GOVERNORATES_PREFIX)
    return governorate


def delete_governorate(db: Session, cache: CacheStore, governorate_id: int) -> None:
    db.delete(get_governorate(db, governorate_id))
    db.commit()
    cache.invalidate(GOVERNORATES_PREFIX)


def bulk_update_shipping(db: Session, cache: CacheStore, data: BulkShippingUpdate) -> List[Governorate]:
    """Apply one shipping rate to many governorates, all or nothing."""
    ids = set(data.governorate_ids)
    found = {g.id for g in db.query(Governorate.id).filter(Governorate.id.in_(ids)).all()}
    missing = sorted(ids - found)
    if missing:
        raise NotFoundError(f"Governorates not found: {', '.join(str(i) for i in missing)}")
    try:
        db.execute(
            update(Governorate)
            .where(Governorate.id.in_(ids))
            .values(shipping_cost=data.shipping_cost, is_free_shipping=data.is_free_shipping)
            .execution_options(synchronize_session=False)
        )
        db.commit()
    except Exception:
        db.rollback()
        raise
    cache.invalidate(GOVERNORATES_PREFIX)
    rows = db.query(Governorate).filter(Governorate.id.in_(ids)).order_by(Governorate.id).all()
    for row in rows:
        db.refresh(row)
    return rows


def get_free_shipping_settings(db: Session) -> dict:
    policy = load_free_shipping_policy(db)
    return {"enabled": policy.enabled, "min_order_amount": float(policy.min_order_amount)}


def update_free_shipping_settings(db: Session, data: FreeShippingSettingsIn) -> dict:
    row = db.get(ShippingSettings, 1)
    if row is None:
        row = ShippingSettings(id=1)
        db.add(row)
    row.free_shipping_enabled = data.enabled
    row.free_shipping_min_order = data.min_order_amount
    db.commit()
    logger.info("Free shipping policy set: enabled=%s min_order=%s", data.enabled, data.min_order_amount)
    return get_free_shipping_settings(db)


def shipping_quote(db: Session, governorate_id: int, subtotal: Decimal) -> dict:
    governorate = get_governorate(db, governorate_id)
    policy = load_free_shipping_policy(db)
    subtotal = to_decimal(subtotal)
    cost = quote_shipping(governorate, subtotal, policy)
    return {
        "governorate_id": governorate.id,
        "subtotal": float(subtotal),
        "shipping_cost": float(cost),
        "free_shipping_applied": policy.applies(subtotal),
    }


# Payment methods

def list_payment_methods(db: Session, cache: CacheStore) -> List[dict]:
    cache_key = f"{PAYMENT_METHODS_PREFIX}active"
    cached = cache.get(cache_key)
    if cached is not None:
        return cached
    rows = db.query(PaymentMethod).filter(PaymentMethod.is_active.is_(True)).order_by(PaymentMethod.id).all()
    result = [PaymentMethodOut.model_validate(m).model_dump(mode="json") for m in rows]
    cache.set(cache_key, result)
    return result


def get_payment_method(db: Session, method_type: str) -> PaymentMethod:
    method = db.query(PaymentMethod).filter(PaymentMethod.method_type == method_type).one_or_none()
    if not method:
        raise NotFoundError("Payment method not found")
    return method


def update_payment_method(db: Session, cache: CacheStore, method_type: str, data: PaymentMethodUpdate) -> PaymentMethod:
    method = get_payment_method(db, method_type)
    for field, value in data.model_dump(exclude_unset=True).items():
        setattr(method, field, value)
    db.commit()
    db.refresh(method)
    cache.invalidate(PAYMENT_METHODS_PREFIX)
    return method
