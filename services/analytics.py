"""Back-office figures computed from orders and stock."""
from datetime import date, datetime, timedelta
from typing import Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from models.order import Order
from models.order_item import OrderItem
from models.product import Product
from services.order_status import CANCELLED, FULFILLING
from services.pricing import ZERO, quantize, to_decimal

LOW_STOCK_THRESHOLD = 10
LOW_STOCK_LIMIT = 5
RECENT_ORDERS_LIMIT = 5
CHART_DAYS = 7
TOP_PRODUCTS_LIMIT = 10


def dashboard(db: Session, now: Optional[datetime] = None) -> dict:
    """Headline counters, stock alerts and a revenue chart for the last week.

    Revenue counts orders that were confirmed or moved further; pending and
    cancelled orders never contribute. Customers are the distinct users who
    placed at least one order, since accounts live with the identity provider.
    """
    now = now or datetime.utcnow()
    revenue = (
        db.query(func.coalesce(func.sum(Order.total_amount), 0))
        .filter(Order.status.in_(FULFILLING))
        .scalar()
    )
    low_stock = (
        db.query(Product.id, Product.name, Product.quantity)
        .filter(Product.track_quantity.is_(True), Product.quantity <= LOW_STOCK_THRESHOLD)
        .order_by(Product.quantity.asc(), Product.id.asc())
        .limit(LOW_STOCK_LIMIT)
        .all()
    )
    recent = db.query(Order).order_by(Order.created_at.desc(), Order.id.desc()).limit(RECENT_ORDERS_LIMIT).all()
    return {
        "total_products": db.query(func.count(Product.id)).scalar(),
        "total_orders": db.query(func.count(Order.id)).scalar(),
        "total_revenue": float(quantize(revenue)),
        "total_customers": db.query(func.count(func.distinct(Order.user_id))).scalar(),
        "pending_orders": db.query(func.count(Order.id)).filter(Order.status == "pending").scalar(),
        "confirmed_orders": db.query(func.count(Order.id)).filter(Order.status.in_(FULFILLING)).scalar(),
        "low_stock_products": [{"id": pid, "name": name, "quantity": qty} for pid, name, qty in low_stock],
        "recent_orders": recent,
        "chart_data": _daily_revenue(db, now),
    }


def _daily_revenue(db: Session, now: datetime) -> list:
    start = datetime.combine((now - timedelta(days=CHART_DAYS - 1)).date(), datetime.min.time())
    rows = (
        db.query(Order.created_at, Order.total_amount)
        .filter(Order.created_at >= start, Order.status.in_(FULFILLING))
        .all()
    )
    totals = {start.date() + timedelta(days=i): ZERO for i in range(CHART_DAYS)}
    for created_at, amount in rows:
        day = created_at.date()
        if day in totals:
            totals[day] += to_decimal(amount)
    return [{"date": day.isoformat(), "amount": float(quantize(amount))} for day, amount in sorted(totals.items())]


def sales_report(db: Session, start_date: Optional[date] = None, end_date: Optional[date] = None) -> dict:
    """Paid orders in an inclusive date range, newest first, with totals."""
    qs = db.query(Order).filter(Order.payment_status == "paid")
    if start_date:
        qs = qs.filter(Order.created_at >= datetime.combine(start_date, datetime.min.time()))
    if end_date:
        qs = qs.filter(Order.created_at < datetime.combine(end_date + timedelta(days=1), datetime.min.time()))
    orders = qs.order_by(Order.created_at.desc(), Order.id.desc()).all()

    total = sum((to_decimal(o.total_amount) for o in orders), ZERO)
    count = len(orders)
    return {
        "sales": [
            {
                "order_number": o.order_number,
                "created_at": o.created_at,
                "total_amount": float(o.total_amount),
                "status": o.status,
                "payment_status": o.payment_status,
            }
            for o in orders
        ],
        "summary": {
            "total_sales": float(quantize(total)),
            "order_count": count,
            "average_order_value": float(quantize(total / count)) if count else 0.0,
        },
    }


def top_products(db: Session, limit: int = TOP_PRODUCTS_LIMIT) -> list:
    """Best sellers by units across every non-cancelled order."""
    units = func.sum(OrderItem.quantity).label("units")
    rows = (
        db.query(OrderItem.product_id, func.max(OrderItem.product_name), units, func.sum(OrderItem.total))
        .join(Order, Order.id == OrderItem.order_id)
        .filter(Order.status != CANCELLED, OrderItem.product_id.is_not(None))
        .group_by(OrderItem.product_id)
        .order_by(units.desc(), OrderItem.product_id.asc())
        .limit(limit)
        .all()
    )
    return [
        {
            "product_id": product_id,
            "product_name": name,
            "total_quantity": int(quantity),
            "total_revenue": float(quantize(revenue)),
        }
        for product_id, name, quantity, revenue in rows
    ]
