"""Merchandiser price overrides, independent of coupons."""
import logging
from datetime import datetime
from decimal import Decimal
from typing import Dict, Iterable, List, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, selectinload

from core.cache import CacheStore
from core.errors import ConflictError, NotFoundError
from models.product import Product
from models.promotion import Promotion, PromotionProduct
from schemas.promotion import PromotionCreate, PromotionUpdate, PromotionOut, PromotedProduct
from services.pricing import quantize, to_decimal

logger = logging.getLogger(__name__)

PROMOTIONS_PREFIX = "promotions:"


def is_running(promotion: Promotion, now: datetime) -> bool:
    if promotion.status != "active":
        return False
    if promotion.start_date and promotion.start_date > now:
        return False
    if promotion.end_date and promotion.end_date < now:
        return False
    return True


def promoted_price(product: Product, link: PromotionProduct) -> Decimal:
    if link.custom_price is not None:
        return quantize(link.custom_price)
    pct = link.promotion.discount_percentage
    if pct:
        return quantize(to_decimal(product.price) * (1 - to_decimal(pct) / 100))
    return quantize(product.price)


def effective_prices(db: Session, products: Iterable[Product], now: Optional[datetime] = None) -> Dict[int, Decimal]:
    """Price a shopper pays per product id after the winning running promotion."""
    now = now or datetime.utcnow()
    products = list(products)
    prices = {p.id: quantize(p.price) for p in products}
    if not products:
        return prices
    links = (
        db.query(PromotionProduct)
        .join(Promotion)
        .options(selectinload(PromotionProduct.promotion))
        .filter(PromotionProduct.product_id.in_(prices.keys()), Promotion.status == "active")
        .all()
    )
    by_id = {p.id: p for p in products}
    winners: Dict[int, PromotionProduct] = {}
    for link in links:
        if not is_running(link.promotion, now):
            continue
        current = winners.get(link.product_id)
        if current is None or link.promotion.priority > current.promotion.priority:
            winners[link.product_id] = link
    for product_id, link in winners.items():
        prices[product_id] = promoted_price(by_id[product_id], link)
    return prices


def _get(db: Session, promotion_id: int) -> Promotion:
    promotion = db.get(Promotion, promotion_id)
    if not promotion:
        raise NotFoundError("Promotion not found")
    return promotion


def list_promotions(db: Session, status: Optional[str] = None, promotion_type: Optional[str] = None) -> List[Promotion]:
    qs = db.query(Promotion)
    if status:
        qs = qs.filter(Promotion.status == status)
    if promotion_type:
        qs = qs.filter(Promotion.promotion_type == promotion_type)
    return qs.order_by(Promotion.priority.desc(), Promotion.created_at.desc(), Promotion.id.desc()).all()


def get_promotion(db: Session, promotion_id: int) -> Promotion:
    return _get(db, promotion_id)


def create_promotion(db: Session, cache: CacheStore, data: PromotionCreate, created_by: str) -> Promotion:
    promotion = Promotion(**data.model_dump(), created_by=created_by)
    db.add(promotion)
    db.commit()
    db.refresh(promotion)
    cache.invalidate(PROMOTIONS_PREFIX)
    return promotion


def update_promotion(db: Session, cache: CacheStore, promotion_id: int, data: PromotionUpdate) -> Promotion:
    promotion = _get(db, promotion_id)
    for field, value in data.model_dump(exclude_unset=True).items():
        setattr(promotion, field, value)
    db.commit()
    db.refresh(promotion)
    cache.invalidate(PROMOTIONS_PREFIX)
    cache.invalidate("products:")
    return promotion


def delete_promotion(db: Session, cache: CacheStore, promotion_id: int) -> None:
    db.delete(_get(db, promotion_id))
    db.commit()
    cache.invalidate(PROMOTIONS_PREFIX)
    cache.invalidate("products:")


def list_promotion_products(db: Session, promotion_id: int) -> List[PromotionProduct]:
    _get(db, promotion_id)
    return db.query(PromotionProduct).filter(PromotionProduct.promotion_id == promotion_id).all()


def add_product(db: Session, cache: CacheStore, promotion_id: int, product_id: int, custom_price: Optional[Decimal]) -> PromotionProduct:
    _get(db, promotion_id)
    if not db.get(Product, product_id):
        raise NotFoundError("Product not found")
    link = PromotionProduct(promotion_id=promotion_id, product_id=product_id, custom_price=custom_price)
    db.add(link)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise ConflictError("Product is already part of this promotion")
    db.refresh(link)
    cache.invalidate(PROMOTIONS_PREFIX)
    cache.invalidate("products:")
    return link


def _get_link(db: Session, promotion_id: int, product_id: int) -> PromotionProduct:
    link = (
        db.query(PromotionProduct)
        .filter(PromotionProduct.promotion_id == promotion_id, PromotionProduct.product_id == product_id)
        .one_or_none()
    )
    if not link:
        raise NotFoundError("Product is not part of this promotion")
    return link


def update_product_price(db: Session, cache: CacheStore, promotion_id: int, product_id: int, custom_price: Optional[Decimal]) -> PromotionProduct:
    link = _get_link(db, promotion_id, product_id)
    link.custom_price = custom_price
    db.commit()
    db.refresh(link)
    cache.invalidate(PROMOTIONS_PREFIX)
    cache.invalidate("products:")
    return link


def remove_product(db: Session, cache: CacheStore, promotion_id: int, product_id: int) -> None:
    db.delete(_get_link(db, promotion_id, product_id))
    db.commit()
    cache.invalidate(PROMOTIONS_PREFIX)
    cache.invalidate("products:")


def list_active(db: Session, cache: CacheStore, now: Optional[datetime] = None) -> List[dict]:
    cache_key = f"{PROMOTIONS_PREFIX}active"
    cached = cache.get(cache_key)
    if cached is not None:
        return cached

    now = now or datetime.utcnow()
    promotions = [
        p for p in db.query(Promotion)
        .options(selectinload(Promotion.products).selectinload(PromotionProduct.product))
        .filter(Promotion.status == "active")
        .order_by(Promotion.priority.desc(), Promotion.id.desc())
        .all()
        if is_running(p, now)
    ]
    result = []
    for promotion in promotions:
        entry = PromotionOut.model_validate(promotion).model_dump(mode="json")
        entry["products"] = [
            PromotedProduct(
                product_id=link.product.id,
                name=link.product.name,
                slug=link.product.slug,
                price=link.product.price,
                compare_at_price=link.product.compare_at_price,
                custom_price=link.custom_price,
                effective_price=promoted_price(link.product, link),
                featured_image=link.product.featured_image,
            ).model_dump(mode="json")
            for link in promotion.products
            if link.product.status == "active"
        ]
        result.append(entry)
    cache.set(cache_key, result)
    return result
