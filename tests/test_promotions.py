from decimal import Decimal

from models.promotion import Promotion, PromotionProduct
from services.promotions import effective_prices


def _promotion(db, product, priority=0, pct=None, custom_price=None, **fields):
    promotion = Promotion(
        title=f"Promo {priority}",
        promotion_type="deal",
        discount_percentage=pct,
        priority=priority,
        **fields,
    )
    db.add(promotion)
    db.flush()
    db.add(PromotionProduct(promotion_id=promotion.id, product_id=product.id, custom_price=custom_price))
    db.commit()
    return promotion


def test_highest_priority_promotion_wins(db, product):
    _promotion(db, product, priority=1, pct=Decimal("10"))
    _promotion(db, product, priority=5, custom_price=Decimal("420.00"))
    assert effective_prices(db, [product])[product.id] == Decimal("420.00")


def test_promotion_outside_window_is_ignored(db, product, past, future):
    _promotion(db, product, priority=9, pct=Decimal("50"), start_date=future)
    _promotion(db, product, priority=8, pct=Decimal("50"), end_date=past)
    _promotion(db, product, priority=7, pct=Decimal("50"), status="inactive")
    assert effective_prices(db, [product])[product.id] == Decimal("500.00")


def test_percentage_is_quantized(db, make_product):
    product = make_product(price="99.99")
    _promotion(db, product, pct=Decimal("15"))
    assert effective_prices(db, [product])[product.id] == Decimal("84.99")


def test_link_without_price_or_percentage_keeps_list_price(db, product):
    _promotion(db, product, priority=3)
    assert effective_prices(db, [product])[product.id] == Decimal("500.00")


def test_duplicate_product_link_conflicts(client, product, admin_headers):
    r = client.post("/promotions/", json={"title": "Flash", "promotion_type": "flash_sale"}, headers=admin_headers)
    promo_id = r.json()["id"]
    url = f"/promotions/{promo_id}/products"
    assert client.post(url, json={"product_id": product.id}, headers=admin_headers).status_code == 201
    r = client.post(url, json={"product_id": product.id}, headers=admin_headers)
    assert r.status_code == 409


def test_reprice_and_detach_invalidate_cache(client, cache, product, admin_headers):
    r = client.post(
        "/promotions/",
        json={"title": "Deal", "promotion_type": "deal", "discount_percentage": "20"},
        headers=admin_headers,
    )
    promo_id = r.json()["id"]
    client.post(f"/promotions/{promo_id}/products", json={"product_id": product.id}, headers=admin_headers)
    assert client.get("/promotions/active").json()[0]["products"][0]["effective_price"] == 400.0
    assert "promotions:active" in cache._store

    r = client.patch(
        f"/promotions/{promo_id}/products/{product.id}", json={"custom_price": "350.00"}, headers=admin_headers
    )
    assert r.json()["custom_price"] == 350.0
    assert "promotions:active" not in cache._store
    assert client.get(f"/products/{product.id}").json()["effective_price"] == 350.0

    r = client.delete(f"/promotions/{promo_id}/products/{product.id}", headers=admin_headers)
    assert r.status_code == 204
    assert client.get(f"/products/{product.id}").json()["effective_price"] == 500.0
    assert client.get("/promotions/active").json()[0]["products"] == []


def test_list_sorted_by_priority(client, admin_headers):
    for title, priority in [("Low", 1), ("High", 9), ("Mid", 5)]:
        client.post(
            "/promotions/",
            json={"title": title, "promotion_type": "featured", "priority": priority},
            headers=admin_headers,
        )
    r = client.get("/promotions/", headers=admin_headers)
    assert [p["title"] for p in r.json()] == ["High", "Mid", "Low"]


def test_promotion_admin_routes_require_admin(client, user_headers):
    r = client.post("/promotions/", json={"title": "X", "promotion_type": "deal"}, headers=user_headers)
    assert r.status_code == 403
    assert client.get("/promotions/", headers=user_headers).status_code == 403


def test_unknown_promotion_is_404(client, admin_headers):
    assert client.get("/promotions/999", headers=admin_headers).status_code == 404
    r = client.post("/promotions/999/products", json={"product_id": 1}, headers=admin_headers)
    assert r.status_code == 404
