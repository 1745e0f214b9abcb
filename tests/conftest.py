from datetime import datetime, timedelta
from decimal import Decimal

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from main import app
from core.cache import InMemoryCacheStore, get_cache
from core.db import Base, enable_sqlite_foreign_keys, get_db
from core import config as core_config
from models.coupon import Coupon
from models.governorate import Governorate
from models.payment_method import PaymentMethod
from models.product import Product
from security import jwt as jwt_utils
from services.realtime import _FakePubSub, get_publisher

USER_ID = "user-1"
OTHER_USER_ID = "user-2"
ADMIN_ID = "admin-1"


@pytest.fixture(autouse=True)
def test_settings():
    settings = core_config.settings
    saved = (settings.TAX_RATE, settings.TRUST_CLIENT_TOTALS, settings.MONEY_TOLERANCE)
    settings.JWT_SECRET = "test-secret"
    settings.JWT_AUDIENCE = ""
    settings.TAX_RATE = Decimal("0")
    settings.TRUST_CLIENT_TOTALS = False
    settings.MONEY_TOLERANCE = Decimal("0.01")
    yield settings
    settings.TAX_RATE, settings.TRUST_CLIENT_TOTALS, settings.MONEY_TOLERANCE = saved


@pytest.fixture()
def db():
    engine = create_engine(
        "sqlite+pysqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    enable_sqlite_foreign_keys(engine)

    TestingSessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False, expire_on_commit=False)
    Base.metadata.create_all(bind=engine)
    session = TestingSessionLocal()
    yield session
    session.close()
    Base.metadata.drop_all(bind=engine)


@pytest.fixture()
def cache():
    return InMemoryCacheStore(default_ttl=300)


@pytest.fixture()
def publisher():
    return _FakePubSub()


@pytest.fixture()
def client(db, cache, publisher):
    def _get_db():
        yield db

    app.dependency_overrides[get_db] = _get_db
    app.dependency_overrides[get_cache] = lambda: cache
    app.dependency_overrides[get_publisher] = lambda: publisher
    try:
        with TestClient(app) as c:
            yield c
    finally:
        app.dependency_overrides.clear()


def bearer(user_id: str, role: str = "user") -> dict:
    return {"Authorization": f"Bearer {jwt_utils.create_access_token(user_id, role=role)}"}


@pytest.fixture
def user_headers():
    return bearer(USER_ID)


@pytest.fixture
def other_headers():
    return bearer(OTHER_USER_ID)


@pytest.fixture
def admin_headers():
    return bearer(ADMIN_ID, role="admin")


@pytest.fixture
def make_product(db):
    counter = {"n": 0}

    def _make(price="500.00", quantity=10, track_quantity=True, status="active", name=None):
        counter["n"] += 1
        product = Product(
            name=name or f"Product {counter['n']}",
            slug=f"product-{counter['n']}",
            price=Decimal(price),
            quantity=quantity,
            track_quantity=track_quantity,
            status=status,
            featured_image=f"https://img.example.com/{counter['n']}.webp",
        )
        db.add(product)
        db.commit()
        db.refresh(product)
        return product

    return _make


@pytest.fixture
def product(make_product):
    return make_product()


@pytest.fixture
def governorate(db):
    gov = Governorate(name_ar="القاهرة", name_en="Cairo", shipping_cost=Decimal("30.00"), is_free_shipping=False)
    db.add(gov)
    db.commit()
    db.refresh(gov)
    return gov


@pytest.fixture
def make_coupon(db):
    def _make(code="SAVE10", **overrides):
        fields = dict(
            code=code,
            discount_type="percentage",
            discount_value=Decimal("10"),
            max_discount_amount=Decimal("50"),
            min_purchase_amount=Decimal("100"),
            used_count=0,
            status="active",
        )
        fields.update(overrides)
        coupon = Coupon(**fields)
        db.add(coupon)
        db.commit()
        db.refresh(coupon)
        return coupon

    return _make


@pytest.fixture
def coupon(make_coupon):
    return make_coupon()


@pytest.fixture
def payment_method(db):
    method = PaymentMethod(method_type="vodafone_cash", is_active=True, vodafone_number="01000000000")
    db.add(method)
    db.commit()
    db.refresh(method)
    return method


@pytest.fixture
def checkout_payload(governorate):
    return {
        "full_name": "Mona Adel",
        "phone": "01012345678",
        "address": "12 Tahrir St",
        "city": "Cairo",
        "governorate_id": governorate.id,
    }


@pytest.fixture
def past():
    return datetime.utcnow() - timedelta(days=1)


@pytest.fixture
def future():
    return datetime.utcnow() + timedelta(days=1)
