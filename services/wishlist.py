"""Saved products per shopper."""
from typing import Iterable, List

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, joinedload

from core.errors import BusinessRuleError, NotFoundError
from models.product import Product
from models.wishlist import WishlistItem
from schemas.catalog import ProductOut
from services import promotions


def get_wishlist(db: Session, user_id: str) -> List[dict]:
    """Newest first, each entry carrying the product with its current effective price."""
    items = (
        db.query(WishlistItem)
        .options(joinedload(WishlistItem.product))
        .filter(WishlistItem.user_id == user_id)
        .order_by(WishlistItem.created_at.desc(), WishlistItem.id.desc())
        .all()
    )
    prices = promotions.effective_prices(db, [i.product for i in items])
    out = []
    for item in items:
        product = ProductOut.model_validate(item.product).model_dump()
        product["effective_price"] = float(prices[item.product_id])
        out.append({"id": item.id, "product_id": item.product_id, "created_at": item.created_at, "product": product})
    return out


def add(db: Session, user_id: str, product_id: int) -> WishlistItem:
    if not db.get(Product, product_id):
        raise NotFoundError("Product not found")
    item = WishlistItem(user_id=user_id, product_id=product_id)
    db.add(item)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise BusinessRuleError("Product already in wishlist")
    db.refresh(item)
    return item


def remove(db: Session, user_id: str, product_id: int) -> None:
    """Removing a product that is not saved is a no-op."""
    db.query(WishlistItem).filter(
        WishlistItem.user_id == user_id, WishlistItem.product_id == product_id
    ).delete(synchronize_session=False)
    db.commit()


def saved_product_ids(db: Session, user_id: str, product_ids: Iterable[int]) -> List[int]:
    product_ids = list(product_ids)
    if not product_ids:
        return []
    rows = (
        db.query(WishlistItem.product_id)
        .filter(WishlistItem.user_id == user_id, WishlistItem.product_id.in_(product_ids))
        .all()
    )
    return [product_id for (product_id,) in rows]
