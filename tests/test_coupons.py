from decimal import Decimal

import pytest

from core.errors import CouponRejected
from models.coupon import Coupon, CouponUsage
from services import coupons

USER_ID = "user-1"
OTHER_USER_ID = "user-2"


def _reason(db, code, total, user_id=USER_ID):
    with pytest.raises(CouponRejected) as exc:
        coupons.validate_coupon(db, code, Decimal(total), user_id)
    return exc.value.reason


class TestComputeDiscount:
    def test_percentage_is_clamped_to_max_discount(self, coupon):
        assert coupons.compute_discount(coupon, Decimal("1000")) == Decimal("50.00")

    def test_percentage_below_cap(self, coupon):
        assert coupons.compute_discount(coupon, Decimal("200")) == Decimal("20.00")

    def test_fixed_discount_never_exceeds_total(self, make_coupon):
        fixed = make_coupon(code="FLAT500", discount_type="fixed", discount_value=Decimal("500"), max_discount_amount=None)
        assert coupons.compute_discount(fixed, Decimal("120")) == Decimal("120.00")
        assert coupons.compute_discount(fixed, Decimal("800")) == Decimal("500.00")

    @pytest.mark.parametrize("total", ["0.01", "1", "99.99", "499", "10000"])
    def test_discount_bounds(self, coupon, total):
        discount = coupons.compute_discount(coupon, Decimal(total))
        assert Decimal("0") <= discount <= Decimal(total)
        assert discount <= coupon.max_discount_amount

    def test_zero_total_gives_zero(self, coupon):
        assert coupons.compute_discount(coupon, Decimal("0")) == Decimal("0")


class TestValidateCoupon:
    def test_valid_coupon_is_case_insensitive(self, db, coupon):
        quote = coupons.validate_coupon(db, "save10", Decimal("1000"), USER_ID)
        assert quote.coupon.id == coupon.id
        assert quote.discount_amount == Decimal("50.00")

    def test_validation_records_nothing(self, db, coupon):
        coupons.validate_coupon(db, "SAVE10", Decimal("1000"), USER_ID)
        db.refresh(coupon)
        assert coupon.used_count == 0
        assert db.query(CouponUsage).count() == 0

    def test_unknown_code(self, db):
        assert _reason(db, "NOPE", "1000") == "invalid_code"

    def test_inactive(self, db, make_coupon):
        make_coupon(status="inactive")
        assert _reason(db, "SAVE10", "1000") == "inactive"

    def test_not_started(self, db, make_coupon, future):
        make_coupon(valid_from=future)
        assert _reason(db, "SAVE10", "1000") == "not_started"

    def test_expired(self, db, make_coupon, past):
        make_coupon(valid_until=past)
        assert _reason(db, "SAVE10", "1000") == "expired"

    def test_exhausted(self, db, make_coupon):
        make_coupon(usage_limit=2, used_count=2)
        assert _reason(db, "SAVE10", "1000") == "exhausted"

    def test_below_minimum_states_minimum(self, db, coupon):
        with pytest.raises(CouponRejected) as exc:
            coupons.validate_coupon(db, "SAVE10", Decimal("50"), USER_ID)
        assert exc.value.reason == "below_minimum"
        assert "100.00" in exc.value.message

    def test_already_used_wins_over_later_rules(self, db, make_coupon, past):
        coupon = make_coupon(status="inactive", valid_until=past)
        db.add(CouponUsage(coupon_id=coupon.id, user_id=USER_ID, discount_amount=10, order_total=100))
        db.commit()
        assert _reason(db, "SAVE10", "1000") == "already_used"
        # Another user hits the next rule in line
        assert _reason(db, "SAVE10", "1000", OTHER_USER_ID) == "inactive"

    def test_expired_checked_before_exhausted(self, db, make_coupon, past):
        make_coupon(valid_until=past, usage_limit=1, used_count=1)
        assert _reason(db, "SAVE10", "1000") == "expired"


class TestRecordUsage:
    def test_records_and_bumps_counter(self, db, coupon):
        coupons.record_usage(db, coupon, USER_ID, None, Decimal("50"), Decimal("980"))
        db.commit()
        db.refresh(coupon)
        assert coupon.used_count == 1
        assert db.query(CouponUsage).filter_by(coupon_id=coupon.id, user_id=USER_ID).count() == 1

    def test_second_usage_by_same_user_is_rejected(self, db, coupon):
        coupons.record_usage(db, coupon, USER_ID, None, Decimal("50"), Decimal("980"))
        db.commit()
        with pytest.raises(CouponRejected) as exc:
            coupons.record_usage(db, coupon, USER_ID, None, Decimal("50"), Decimal("980"))
        assert exc.value.reason == "already_used"
        db.rollback()
        db.refresh(coupon)
        assert coupon.used_count == 1

    def test_counter_never_passes_limit(self, db, make_coupon):
        coupon = make_coupon(usage_limit=1)
        coupons.record_usage(db, coupon, USER_ID, None, Decimal("10"), Decimal("100"))
        db.commit()
        with pytest.raises(CouponRejected) as exc:
            coupons.record_usage(db, coupon, OTHER_USER_ID, None, Decimal("10"), Decimal("100"))
        assert exc.value.reason == "exhausted"
        db.rollback()
        db.refresh(coupon)
        assert coupon.used_count == 1
        assert db.query(CouponUsage).count() == 1

    def test_counter_visible_without_refresh(self, db, coupon):
        assert coupon.used_count == 0
        coupons.record_usage(db, coupon, USER_ID, None, Decimal("50"), Decimal("980"))
        db.commit()
        assert coupon.used_count == 1
        assert db.get(Coupon, coupon.id).used_count == 1

    def test_conflict_leaves_session_usable_after_rollback(self, db, coupon):
        coupons.record_usage(db, coupon, USER_ID, None, Decimal("50"), Decimal("980"))
        db.commit()
        with pytest.raises(CouponRejected):
            coupons.record_usage(db, coupon, USER_ID, None, Decimal("50"), Decimal("980"))
        db.rollback()
        assert coupon.code == "SAVE10"
        assert coupon.used_count == 1


class TestCouponRoutes:
    def test_validate_endpoint(self, client, coupon, user_headers):
        r = client.post("/coupons/validate", json={"code": "save10", "orderTotal": 1000}, headers=user_headers)
        assert r.status_code == 200
        body = r.json()
        assert body["valid"] is True
        assert body["discount_amount"] == 50.0
        assert body["coupon"]["code"] == "SAVE10"

    def test_validate_unknown_code_is_404(self, client, user_headers):
        r = client.post("/coupons/validate", json={"code": "NOPE", "orderTotal": 1000}, headers=user_headers)
        assert r.status_code == 404
        assert r.json()["reason"] == "invalid_code"

    def test_validate_below_minimum_is_400(self, client, coupon, user_headers):
        r = client.post("/coupons/validate", json={"code": "SAVE10", "orderTotal": 20}, headers=user_headers)
        assert r.status_code == 400
        assert r.json()["reason"] == "below_minimum"
        assert r.json()["minimum"] == "100.00"

    def test_admin_creates_upper_cased_code(self, client, admin_headers):
        payload = {"code": "summer", "discount_type": "fixed", "discount_value": "25"}
        r = client.post("/coupons/", json=payload, headers=admin_headers)
        assert r.status_code == 201
        assert r.json()["code"] == "SUMMER"
        r = client.post("/coupons/", json={**payload, "code": "SUMMER"}, headers=admin_headers)
        assert r.status_code == 409

    def test_shopper_cannot_manage_coupons(self, client, user_headers):
        r = client.get("/coupons/", headers=user_headers)
        assert r.status_code == 403

    def test_list_filter_and_stats(self, client, db, make_coupon, admin_headers):
        coupon = make_coupon(usage_limit=10)
        make_coupon(code="OTHER", status="inactive")
        coupons.record_usage(db, coupon, USER_ID, None, Decimal("50"), Decimal("980"))
        db.commit()

        r = client.get("/coupons/?status=active", headers=admin_headers)
        assert [c["code"] for c in r.json()["coupons"]] == ["SAVE10"]

        r = client.get(f"/coupons/{coupon.id}/stats", headers=admin_headers)
        stats = r.json()["stats"]
        assert stats == {"used_count": 1, "remaining": 9, "total_discount": 50.0, "total_orders": 980.0}

        r = client.get(f"/coupons/{coupon.id}/usage", headers=admin_headers)
        assert [u["user_id"] for u in r.json()] == [USER_ID]

    def test_update_and_delete(self, client, db, coupon, admin_headers):
        r = client.patch(f"/coupons/{coupon.id}", json={"status": "inactive"}, headers=admin_headers)
        assert r.json()["status"] == "inactive"
        r = client.delete(f"/coupons/{coupon.id}", headers=admin_headers)
        assert r.status_code == 204
        assert db.query(Coupon).count() == 0
