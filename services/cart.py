"""Server-side cart plus the guest-cart merge performed once per login."""
import logging
from typing import Iterable, List

from sqlalchemy import update
from sqlalchemy.orm import Session, joinedload

from core.errors import BusinessRuleError, NotFoundError
from models.cart import CartItem
from models.product import Product
from schemas.cart import CartItemIn
from services import promotions
from services.pricing import ZERO, quantize

logger = logging.getLogger(__name__)


def get_cart_items(db: Session, user_id: str) -> List[CartItem]:
    return (
        db.query(CartItem)
        .options(joinedload(CartItem.product))
        .filter(CartItem.user_id == user_id)
        .order_by(CartItem.id)
        .all()
    )


def get_cart(db: Session, user_id: str) -> dict:
    """Cart lines joined with live catalog data. Prices are never cached here."""
    items = get_cart_items(db, user_id)
    prices = promotions.effective_prices(db, [i.product for i in items])
    lines = []
    subtotal = ZERO
    for item in items:
        product = item.product
        unit_price = prices[product.id]
        line_total = quantize(unit_price * item.quantity)
        subtotal += line_total
        lines.append(
            {
                "id": item.id,
                "product_id": product.id,
                "quantity": item.quantity,
                "line_total": float(line_total),
                "product": {
                    "id": product.id,
                    "name": product.name,
                    "slug": product.slug,
                    "price": float(product.price),
                    "effective_price": float(unit_price),
                    "featured_image": product.featured_image,
                    "quantity": product.quantity,
                    "track_quantity": product.track_quantity,
                    "status": product.status,
                },
            }
        )
    return {"items": lines, "subtotal": float(quantize(subtotal)), "item_count": sum(i.quantity for i in items)}


def add_item(db: Session, user_id: str, product_id: int, quantity: int) -> CartItem:
    """Add to the cart. Repeated adds accumulate, they never replace."""
    if quantity <= 0:
        raise BusinessRuleError("Quantity must be positive")
    if not db.get(Product, product_id):
        raise NotFoundError(f"Product {product_id} not found")

    result = db.execute(
        update(CartItem)
        .where(CartItem.user_id == user_id, CartItem.product_id == product_id)
        .values(quantity=CartItem.quantity + quantity)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        db.add(CartItem(user_id=user_id, product_id=product_id, quantity=quantity))
    db.commit()
    item = db.query(CartItem).filter(CartItem.user_id == user_id, CartItem.product_id == product_id).one()
    db.refresh(item)
    return item


def _get_owned(db: Session, user_id: str, item_id: int) -> CartItem:
    item = db.query(CartItem).filter(CartItem.id == item_id, CartItem.user_id == user_id).one_or_none()
    if not item:
        raise NotFoundError("Cart item not found")
    return item


def update_item(db: Session, user_id: str, item_id: int, quantity: int) -> CartItem | None:
    """Set an exact quantity; zero or less removes the line and returns None."""
    item = _get_owned(db, user_id, item_id)
    if quantity <= 0:
        db.delete(item)
        db.commit()
        return None
    item.quantity = quantity
    db.commit()
    db.refresh(item)
    return item


def remove_item(db: Session, user_id: str, item_id: int) -> None:
    db.delete(_get_owned(db, user_id, item_id))
    db.commit()


def clear_cart(db: Session, user_id: str, commit: bool = True) -> int:
    removed = db.query(CartItem).filter(CartItem.user_id == user_id).delete(synchronize_session=False)
    if commit:
        db.commit()
    return removed


def merge_guest_cart(db: Session, user_id: str, items: Iterable[CartItemIn]) -> dict:
    """Apply every device-local line through ``add_item``.

    Not idempotent: callers trigger it exactly once per login event.
    """
    merged, skipped = [], []
    for line in items:
        try:
            add_item(db, user_id, line.product_id, line.quantity)
            merged.append(line.product_id)
        except (NotFoundError, BusinessRuleError) as e:
            logger.warning("Skipping guest cart line %s for user %s: %s", line.product_id, user_id, e.message)
            skipped.append(line.product_id)
    return {"cart": get_cart(db, user_id), "merged": merged, "skipped": skipped}
