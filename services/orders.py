"""Order assembly: pricing, persistence, inventory and status changes."""
import logging
import secrets
import string
from datetime import datetime
from decimal import Decimal
from typing import Dict, List, Optional, Tuple

from sqlalchemy import case, func, update
from sqlalchemy.orm import Session, selectinload

from core.cache import CacheStore
from core.config import settings
from core.db import atomic
from core.errors import BusinessRuleError, ConflictError, NotFoundError, ValidationFailed
from models.cart import CartItem
from models.governorate import Governorate
from models.order import Order
from models.order_item import OrderItem
from models.product import Product
from schemas.order import OrderCreate
from security.auth import AuthUser
from services import cart as cart_service
from services import catalog, coupons, notifications, promotions
from services.order_status import NOTIFY_ON, check_transition, deducts_inventory
from services.pricing import (
    ZERO,
    compute_tax,
    compute_total,
    load_free_shipping_policy,
    quantize,
    quote_shipping,
    within_tolerance,
)

logger = logging.getLogger(__name__)

# Checked in this order so the first missing field is the one reported
REQUIRED_CONTACT_FIELDS = (
    ("governorate_id", "Governorate is required"),
    ("phone", "Phone number is required"),
    ("full_name", "Full name is required"),
    ("address", "Address is required"),
    ("city", "City is required"),
)
MONEY_FIELDS = ("subtotal", "shipping_cost", "tax", "discount", "total_amount")
_ORDER_SUFFIX_ALPHABET = string.ascii_uppercase + string.digits


def generate_order_number(now: Optional[datetime] = None) -> str:
    now = now or datetime.utcnow()
    suffix = "".join(secrets.choice(_ORDER_SUFFIX_ALPHABET) for _ in range(6))
    return f"ORD-{now:%Y%m%d}-{suffix}"


def _unique_order_number(db: Session, now: datetime) -> str:
    for _ in range(5):
        number = generate_order_number(now)
        if not db.query(Order.id).filter(Order.order_number == number).first():
            return number
    raise ConflictError("Could not allocate an order number, please retry")


def _validate_contact(data: OrderCreate) -> None:
    for field, message in REQUIRED_CONTACT_FIELDS:
        value = getattr(data, field)
        if value is None or (isinstance(value, str) and not value.strip()):
            raise ValidationFailed(field, message)


def _requested_lines(db: Session, user_id: str, data: OrderCreate) -> List[Tuple[int, int]]:
    if data.items:
        return [(line.product_id, line.quantity) for line in data.items]
    rows = db.query(CartItem).filter(CartItem.user_id == user_id).order_by(CartItem.id).all()
    if not rows:
        raise BusinessRuleError("No items in cart")
    return [(row.product_id, row.quantity) for row in rows]


def _build_items(db: Session, lines: List[Tuple[int, int]], now: datetime) -> Tuple[List[OrderItem], Decimal]:
    """Snapshot each line from the current catalog; client prices are never read."""
    product_ids = {product_id for product_id, _ in lines}
    products = {p.id: p for p in db.query(Product).filter(Product.id.in_(product_ids)).all()}
    for product_id, _ in lines:
        if product_id not in products:
            raise NotFoundError(f"Product {product_id} not found")
        if products[product_id].status != "active":
            raise BusinessRuleError(f"Product {products[product_id].name} is not available")

    prices = promotions.effective_prices(db, products.values(), now)
    items, subtotal = [], ZERO
    for product_id, quantity in lines:
        product = products[product_id]
        unit_price = prices[product_id]
        line_total = quantize(unit_price * quantity)
        subtotal += line_total
        items.append(
            OrderItem(
                product_id=product.id,
                product_name=product.name,
                product_image=product.featured_image,
                quantity=quantity,
                price=unit_price,
                total=line_total,
            )
        )
    return items, quantize(subtotal)


def reconcile_totals(computed: Dict[str, Decimal], data: OrderCreate) -> Dict[str, Decimal]:
    """Compare client-declared amounts with the server's and pick the ones to persist.

    Declared amounts are advisory: mismatches are logged and the server numbers
    win, unless TRUST_CLIENT_TOTALS is on for the legacy multi-page checkout.
    """
    declared = {f: getattr(data, f) for f in MONEY_FIELDS if getattr(data, f) is not None}
    mismatched = {f: (v, computed[f]) for f, v in declared.items() if not within_tolerance(v, computed[f])}
    if mismatched:
        logger.warning(
            "Client totals differ from server totals: %s",
            ", ".join(f"{f} declared={d} computed={c}" for f, (d, c) in mismatched.items()),
        )
    if not settings.TRUST_CLIENT_TOTALS:
        return computed

    chosen = {f: quantize(declared.get(f, computed[f])) for f in MONEY_FIELDS if f != "total_amount"}
    if "total_amount" in declared:
        chosen["total_amount"] = quantize(declared["total_amount"])
    else:
        chosen["total_amount"] = compute_total(chosen["subtotal"], chosen["shipping_cost"], chosen["tax"], chosen["discount"])
    return chosen


def _notify_safely(db: Session, order: Order, event: str) -> None:
    try:
        notifications.notify_order_event(db, order, event)
    except Exception:
        db.rollback()
        logger.exception("Failed to send %s notification for order %s", event, order.order_number)


def create_order(db: Session, user: AuthUser, data: OrderCreate, now: Optional[datetime] = None) -> Order:
    now = now or datetime.utcnow()

    # Validation and pricing only; nothing is written until every check passes
    _validate_contact(data)
    governorate = db.get(Governorate, data.governorate_id)
    if not governorate or not governorate.is_active:
        raise ValidationFailed("governorate_id", "Invalid governorate")
    lines = _requested_lines(db, user.id, data)
    items, subtotal = _build_items(db, lines, now)

    shipping_cost = quote_shipping(governorate, subtotal, load_free_shipping_policy(db))
    tax = compute_tax(subtotal)
    quote = None
    discount = ZERO
    if data.coupon_code:
        quote = coupons.validate_coupon(db, data.coupon_code, subtotal, user.id, now)
        discount = quote.discount_amount
    amounts = reconcile_totals(
        {
            "subtotal": subtotal,
            "shipping_cost": shipping_cost,
            "tax": tax,
            "discount": discount,
            "total_amount": compute_total(subtotal, shipping_cost, tax, discount),
        },
        data,
    )

    snapshot = {
        "address": data.address,
        "city": data.city,
        "governorate_id": data.governorate_id,
        "full_name": data.full_name,
        "phone": data.phone,
    }
    order = Order(
        order_number=_unique_order_number(db, now),
        user_id=user.id,
        status="pending",
        # A proof upload is not a verified payment
        payment_status="pending",
        currency=settings.CURRENCY,
        coupon_code=quote.coupon.code if quote else None,
        shipping_address=data.shipping_address or snapshot,
        billing_address=data.billing_address or snapshot,
        governorate_id=governorate.id,
        full_name=data.full_name.strip(),
        phone=data.phone.strip(),
        notes=data.notes or "",
        payment_method=data.payment_method or settings.DEFAULT_PAYMENT_METHOD,
        payment_proof_url=data.payment_proof_url,
        **amounts,
    )

    with atomic(db):
        db.add(order)
        db.flush()
        if quote:
            coupons.record_usage(db, quote.coupon, user.id, order.id, amounts["discount"], amounts["total_amount"])
        for item in items:
            item.order_id = order.id
        db.add_all(items)
        cart_service.clear_cart(db, user.id, commit=False)

    db.refresh(order)
    logger.info("Order %s created for user %s, total %s", order.order_number, user.id, order.total_amount)
    _notify_safely(db, order, "created")
    return order


def _order_query(db: Session):
    return db.query(Order).options(selectinload(Order.items))


def list_orders(
    db: Session, user: AuthUser, status: Optional[str] = None, limit: int = 50, offset: int = 0
) -> dict:
    qs = db.query(Order)
    if not user.is_admin:
        qs = qs.filter(Order.user_id == user.id)
    if status:
        qs = qs.filter(Order.status == status)
    total = qs.count()
    orders = (
        qs.options(selectinload(Order.items))
        .order_by(Order.created_at.desc(), Order.id.desc())
        .offset(offset)
        .limit(limit)
        .all()
    )
    return {"orders": orders, "total": total}


def get_order(db: Session, user: AuthUser, order_id: int) -> Order:
    order = _order_query(db).filter(Order.id == order_id).one_or_none()
    # Someone else's order looks exactly like a missing one
    if not order or (not user.is_admin and order.user_id != user.id):
        raise NotFoundError("Order not found")
    return order


def deduct_inventory(db: Session, order_id: int) -> List[int]:
    """Subtract each line's quantity from tracked stock, floored at zero, in one statement per product."""
    demand = (
        db.query(OrderItem.product_id, func.sum(OrderItem.quantity))
        .filter(OrderItem.order_id == order_id, OrderItem.product_id.is_not(None))
        .group_by(OrderItem.product_id)
        .all()
    )
    for product_id, quantity in demand:
        db.execute(
            update(Product)
            .where(Product.id == product_id, Product.track_quantity.is_(True))
            .values(quantity=case((Product.quantity > quantity, Product.quantity - quantity), else_=0))
            .execution_options(synchronize_session="fetch")
        )
        logger.info("Deducted %s units of product %s for order %s", quantity, product_id, order_id)
    return [product_id for product_id, _ in demand]


def update_order_status(
    db: Session,
    cache: CacheStore,
    order_id: int,
    status: Optional[str] = None,
    payment_status: Optional[str] = None,
) -> Order:
    order = _order_query(db).populate_existing().filter(Order.id == order_id).one_or_none()
    if not order:
        raise NotFoundError("Order not found")
    previous = order.status
    changed = status is not None and check_transition(previous, status)
    if not changed and payment_status is None:
        return order

    values = {"updated_at": datetime.utcnow()}
    if changed:
        values["status"] = status
    if payment_status is not None:
        values["payment_status"] = payment_status

    with atomic(db):
        # Compare-and-set on the status read above keeps a racing update from deducting twice
        result = db.execute(
            update(Order)
            .where(Order.id == order_id, Order.status == previous)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            raise ConflictError("Order was updated concurrently, reload and retry")
        restocked = changed and deducts_inventory(previous, status)
        if restocked:
            deduct_inventory(db, order_id)

    if restocked:
        # Listings and product pages carry stock levels
        catalog.invalidate_products(cache)
    db.refresh(order)
    if changed:
        logger.info("Order %s moved %s -> %s", order.order_number, previous, status)
        if status in NOTIFY_ON:
            _notify_safely(db, order, status)
    return order
