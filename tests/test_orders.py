from decimal import Decimal
from unittest.mock import patch

import pytest

from core.errors import BusinessRuleError, CouponRejected, ValidationFailed
from models.cart import CartItem
from models.coupon import CouponUsage
from models.governorate import ShippingSettings
from models.notification import Notification
from models.order import Order
from models.order_item import OrderItem
from models.promotion import Promotion, PromotionProduct
from schemas.order import OrderCreate
from security.auth import AuthUser
from services import cart as cart_service
from services import orders
from services.order_status import check_transition, deducts_inventory

USER_ID = "user-1"

USER = AuthUser(id=USER_ID)


def _order(db, payload, **extra) -> Order:
    return orders.create_order(db, USER, OrderCreate(**{**payload, **extra}))


class TestStatusMachine:
    @pytest.mark.parametrize("current,target", [
        ("pending", "confirmed"),
        ("confirmed", "processing"),
        ("processing", "shipped"),
        ("shipped", "delivered"),
        ("pending", "shipped"),
        ("pending", "cancelled"),
        ("shipped", "cancelled"),
    ])
    def test_forward_moves(self, current, target):
        assert check_transition(current, target) is True

    def test_same_status_is_noop(self):
        assert check_transition("confirmed", "confirmed") is False

    @pytest.mark.parametrize("current,target", [
        ("shipped", "confirmed"),
        ("delivered", "pending"),
        ("delivered", "cancelled"),
        ("cancelled", "pending"),
        ("cancelled", "confirmed"),
    ])
    def test_illegal_moves(self, current, target):
        with pytest.raises(BusinessRuleError):
            check_transition(current, target)

    def test_only_leaving_pending_deducts(self):
        assert deducts_inventory("pending", "confirmed")
        assert deducts_inventory("pending", "shipped")
        assert not deducts_inventory("confirmed", "processing")
        assert not deducts_inventory("pending", "cancelled")


class TestCreateOrder:
    def test_save10_scenario(self, db, product, coupon, checkout_payload):
        # 2 x 500 = 1000, 10% capped at 50, 30 shipping
        order = _order(db, checkout_payload, items=[{"product_id": product.id, "quantity": 2}], coupon_code="save10")
        assert order.subtotal == Decimal("1000.00")
        assert order.discount == Decimal("50.00")
        assert order.shipping_cost == Decimal("30.00")
        assert order.total_amount == Decimal("980.00")
        assert order.coupon_code == "SAVE10"
        assert order.status == "pending"
        assert order.payment_status == "pending"
        assert order.payment_method == "vodafone_cash"
        assert order.order_number.startswith("ORD-")
        assert len(order.order_number) == len("ORD-20250101-ABC123")

        db.refresh(coupon)
        assert coupon.used_count == 1
        usage = db.query(CouponUsage).one()
        assert usage.order_id == order.id
        assert usage.order_total == Decimal("980.00")

        # Same user, same code, different cart
        with pytest.raises(CouponRejected) as exc:
            _order(db, checkout_payload, items=[{"product_id": product.id, "quantity": 5}], coupon_code="SAVE10")
        assert exc.value.reason == "already_used"
        assert db.query(Order).count() == 1

    def test_coupon_race_lost_at_insert(self, db, product, coupon, checkout_payload):
        _order(db, checkout_payload, items=[{"product_id": product.id, "quantity": 2}], coupon_code="SAVE10")
        # A concurrent checkout whose read ran before the first one committed
        with patch("services.coupons.has_used", return_value=False):
            with pytest.raises(CouponRejected) as exc:
                _order(db, checkout_payload, items=[{"product_id": product.id, "quantity": 2}], coupon_code="SAVE10")
        assert exc.value.reason == "already_used"
        assert db.query(Order).count() == 1
        assert db.query(OrderItem).count() == 1
        db.refresh(coupon)
        assert coupon.used_count == 1

    def test_total_reconciles(self, db, make_product, checkout_payload, test_settings):
        test_settings.TAX_RATE = Decimal("14")
        a, b = make_product(price="19.99"), make_product(price="5.25")
        order = _order(db, checkout_payload, items=[{"product_id": a.id, "quantity": 3}, {"product_id": b.id, "quantity": 1}])
        assert order.subtotal == Decimal("65.22")
        assert order.tax == Decimal("9.13")
        assert order.total_amount == order.subtotal + order.shipping_cost + order.tax - order.discount

    def test_consumes_server_cart_and_clears_it(self, db, product, checkout_payload):
        cart_service.add_item(db, USER_ID, product.id, 3)
        order = _order(db, checkout_payload)
        assert [(i.product_id, i.quantity) for i in order.items] == [(product.id, 3)]
        assert db.query(CartItem).filter_by(user_id=USER_ID).count() == 0

    def test_empty_cart_rejected(self, db, checkout_payload):
        with pytest.raises(BusinessRuleError):
            _order(db, checkout_payload)

    @pytest.mark.parametrize("field", ["governorate_id", "phone", "full_name", "address", "city"])
    def test_missing_contact_field(self, db, product, checkout_payload, field):
        payload = {**checkout_payload, field: None}
        with pytest.raises(ValidationFailed) as exc:
            _order(db, payload, items=[{"product_id": product.id, "quantity": 1}])
        assert exc.value.field == field
        assert db.query(Order).count() == 0

    def test_items_snapshot_server_prices(self, db, product, checkout_payload):
        order = _order(db, checkout_payload, items=[{"product_id": product.id, "quantity": 1}])
        product.price = Decimal("999.00")
        product.name = "Renamed"
        db.commit()
        item = db.query(OrderItem).filter_by(order_id=order.id).one()
        assert item.price == Decimal("500.00")
        assert item.product_name == "Product 1"

    def test_promotion_price_feeds_subtotal_and_coupon(self, db, product, coupon, checkout_payload):
        promo = Promotion(title="Sale", promotion_type="deal", discount_percentage=Decimal("20"), status="active", priority=1)
        promo.products.append(PromotionProduct(product_id=product.id))
        db.add(promo)
        db.commit()
        order = _order(db, checkout_payload, items=[{"product_id": product.id, "quantity": 2}], coupon_code="SAVE10")
        assert order.subtotal == Decimal("800.00")
        assert order.discount == Decimal("50.00")
        assert order.total_amount == Decimal("780.00")

    def test_free_shipping_policy(self, db, product, checkout_payload):
        db.add(ShippingSettings(id=1, free_shipping_enabled=True, free_shipping_min_order=Decimal("1000")))
        db.commit()
        cheap = _order(db, checkout_payload, items=[{"product_id": product.id, "quantity": 1}])
        assert cheap.shipping_cost == Decimal("30.00")
        big = _order(db, checkout_payload, items=[{"product_id": product.id, "quantity": 2}])
        assert big.shipping_cost == Decimal("0.00")

    def test_client_totals_are_advisory(self, db, product, checkout_payload, caplog):
        order = _order(
            db,
            checkout_payload,
            items=[{"product_id": product.id, "quantity": 1}],
            subtotal="1.00",
            shipping_cost="0",
            total_amount="1.00",
        )
        assert order.subtotal == Decimal("500.00")
        assert order.total_amount == Decimal("530.00")
        assert "Client totals differ" in caplog.text

    def test_trusted_client_totals(self, db, product, checkout_payload, test_settings):
        test_settings.TRUST_CLIENT_TOTALS = True
        order = _order(
            db,
            checkout_payload,
            items=[{"product_id": product.id, "quantity": 1}],
            shipping_cost="0",
        )
        assert order.shipping_cost == Decimal("0.00")
        assert order.total_amount == Decimal("500.00")

    def test_coupon_failure_writes_nothing(self, db, product, make_coupon, checkout_payload):
        make_coupon(status="inactive")
        cart_service.add_item(db, USER_ID, product.id, 2)
        with pytest.raises(CouponRejected):
            _order(db, checkout_payload, coupon_code="SAVE10")
        assert db.query(Order).count() == 0
        assert db.query(CartItem).count() == 1

    def test_created_notification(self, db, product, checkout_payload):
        order = _order(db, checkout_payload, items=[{"product_id": product.id, "quantity": 1}])
        note = db.query(Notification).filter_by(user_id=USER_ID).one()
        assert note.type == "order_created"
        assert note.data == {"order_id": order.id, "order_number": order.order_number, "status": "created"}
        assert order.order_number in note.message_en

    def test_notification_failure_is_swallowed(self, db, product, checkout_payload):
        with patch("services.orders.notifications.notify_order_event", side_effect=RuntimeError("boom")):
            order = _order(db, checkout_payload, items=[{"product_id": product.id, "quantity": 1}])
        assert db.get(Order, order.id) is not None
        assert db.query(OrderItem).filter_by(order_id=order.id).count() == 1


class TestStatusUpdates:
    def test_confirm_deducts_once(self, db, cache, make_product, checkout_payload):
        product = make_product(quantity=10)
        order = _order(db, checkout_payload, items=[{"product_id": product.id, "quantity": 3}])
        orders.update_order_status(db, cache, order.id, status="confirmed")
        orders.update_order_status(db, cache, order.id, status="confirmed")
        db.refresh(product)
        assert product.quantity == 7

    def test_later_transitions_do_not_deduct(self, db, cache, make_product, checkout_payload):
        product = make_product(quantity=10)
        order = _order(db, checkout_payload, items=[{"product_id": product.id, "quantity": 3}])
        for status in ("confirmed", "processing", "shipped", "delivered"):
            orders.update_order_status(db, cache, order.id, status=status)
        db.refresh(product)
        assert product.quantity == 7

    def test_inventory_floors_at_zero(self, db, cache, make_product, checkout_payload):
        product = make_product(quantity=5)
        first = _order(db, checkout_payload, items=[{"product_id": product.id, "quantity": 4}])
        second = _order(db, checkout_payload, items=[{"product_id": product.id, "quantity": 4}])
        orders.update_order_status(db, cache, first.id, status="confirmed")
        orders.update_order_status(db, cache, second.id, status="confirmed")
        db.refresh(product)
        assert product.quantity == 0

    def test_untracked_products_untouched(self, db, cache, make_product, checkout_payload):
        product = make_product(quantity=2, track_quantity=False)
        order = _order(db, checkout_payload, items=[{"product_id": product.id, "quantity": 5}])
        orders.update_order_status(db, cache, order.id, status="confirmed")
        db.refresh(product)
        assert product.quantity == 2

    def test_cancel_does_not_deduct(self, db, cache, make_product, checkout_payload):
        product = make_product(quantity=10)
        order = _order(db, checkout_payload, items=[{"product_id": product.id, "quantity": 3}])
        orders.update_order_status(db, cache, order.id, status="cancelled")
        db.refresh(product)
        assert product.quantity == 10
        with pytest.raises(BusinessRuleError):
            orders.update_order_status(db, cache, order.id, status="confirmed")

    def test_backward_move_rejected(self, db, cache, product, checkout_payload):
        order = _order(db, checkout_payload, items=[{"product_id": product.id, "quantity": 1}])
        orders.update_order_status(db, cache, order.id, status="shipped")
        with pytest.raises(BusinessRuleError):
            orders.update_order_status(db, cache, order.id, status="confirmed")
        assert db.get(Order, order.id).status == "shipped"

    def test_payment_status_is_independent(self, db, cache, product, checkout_payload):
        order = _order(db, checkout_payload, items=[{"product_id": product.id, "quantity": 1}])
        updated = orders.update_order_status(db, cache, order.id, payment_status="paid")
        assert updated.payment_status == "paid"
        assert updated.status == "pending"

    def test_each_transition_notifies(self, db, cache, product, checkout_payload):
        order = _order(db, checkout_payload, items=[{"product_id": product.id, "quantity": 1}])
        orders.update_order_status(db, cache, order.id, status="confirmed")
        orders.update_order_status(db, cache, order.id, status="confirmed")
        orders.update_order_status(db, cache, order.id, status="shipped")
        types = [n.type for n in db.query(Notification).order_by(Notification.id)]
        assert types == ["order_created", "order_confirmed", "order_shipped"]

    def test_deduction_drops_cached_product_pages(self, db, cache, make_product, checkout_payload):
        product = make_product(quantity=10)
        cache.set(f"products:item:{product.id}", {"quantity": 10})
        order = _order(db, checkout_payload, items=[{"product_id": product.id, "quantity": 3}])
        orders.update_order_status(db, cache, order.id, status="confirmed")
        assert cache.get(f"products:item:{product.id}") is None

    def test_payment_update_keeps_product_cache(self, db, cache, product, checkout_payload):
        order = _order(db, checkout_payload, items=[{"product_id": product.id, "quantity": 1}])
        cache.set("products:list:all", ["cached"])
        orders.update_order_status(db, cache, order.id, payment_status="paid")
        assert cache.get("products:list:all") == ["cached"]


class TestOrderRoutes:
    def test_create_and_fetch(self, client, product, checkout_payload, user_headers, other_headers, admin_headers):
        r = client.post(
            "/orders/",
            json={**checkout_payload, "items": [{"product_id": product.id, "quantity": 2}]},
            headers=user_headers,
        )
        assert r.status_code == 201
        order = r.json()
        assert order["total_amount"] == 1030.0
        assert order["shipping_address"]["city"] == "Cairo"
        assert len(order["items"]) == 1

        assert client.get(f"/orders/{order['id']}", headers=user_headers).status_code == 200
        assert client.get(f"/orders/{order['id']}", headers=other_headers).status_code == 404
        assert client.get(f"/orders/{order['id']}", headers=admin_headers).status_code == 200

        assert client.get("/orders/", headers=other_headers).json()["total"] == 0
        assert client.get("/orders/", headers=admin_headers).json()["total"] == 1

    def test_missing_field_reports_it(self, client, product, checkout_payload, user_headers):
        payload = {**checkout_payload, "items": [{"product_id": product.id, "quantity": 1}]}
        del payload["phone"]
        r = client.post("/orders/", json=payload, headers=user_headers)
        assert r.status_code == 400
        assert r.json() == {"detail": "Phone number is required", "field": "phone"}

    def test_unknown_product_is_404(self, client, checkout_payload, user_headers):
        r = client.post("/orders/", json={**checkout_payload, "items": [{"product_id": 999, "quantity": 1}]}, headers=user_headers)
        assert r.status_code == 404

    def test_status_update_is_admin_only(self, client, product, checkout_payload, user_headers, admin_headers):
        r = client.post("/orders/", json={**checkout_payload, "items": [{"product_id": product.id, "quantity": 1}]}, headers=user_headers)
        order_id = r.json()["id"]
        assert client.patch(f"/orders/{order_id}/status", json={"status": "confirmed"}, headers=user_headers).status_code == 403
        r = client.patch(f"/orders/{order_id}/status", json={"status": "confirmed", "payment_status": "paid"}, headers=admin_headers)
        assert r.status_code == 200
        assert r.json()["status"] == "confirmed"
        assert r.json()["payment_status"] == "paid"
        r = client.patch(f"/orders/{order_id}/status", json={"status": "pending"}, headers=admin_headers)
        assert r.status_code == 400

    def test_confirming_shows_new_stock(self, client, make_product, checkout_payload, user_headers, admin_headers):
        product = make_product(quantity=10)
        assert client.get(f"/products/{product.id}").json()["quantity"] == 10
        r = client.post(
            "/orders/",
            json={**checkout_payload, "items": [{"product_id": product.id, "quantity": 3}]},
            headers=user_headers,
        )
        order_id = r.json()["id"]
        r = client.patch(f"/orders/{order_id}/status", json={"status": "confirmed"}, headers=admin_headers)
        assert r.status_code == 200
        assert client.get(f"/products/{product.id}").json()["quantity"] == 7

    def test_coupon_spent_concurrently_reports_already_used(self, client, product, coupon, checkout_payload, user_headers):
        payload = {**checkout_payload, "items": [{"product_id": product.id, "quantity": 2}], "coupon_code": "SAVE10"}
        assert client.post("/orders/", json=payload, headers=user_headers).status_code == 201
        with patch("services.coupons.has_used", return_value=False):
            r = client.post("/orders/", json=payload, headers=user_headers)
        assert r.status_code == 400
        assert r.json()["reason"] == "already_used"
        assert client.get("/orders/", headers=user_headers).json()["total"] == 1
