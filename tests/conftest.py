"""Pytest fixtures for storefront tests."""

import os

# settings are read at import time
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("CELERY_BROKER_URL", "memory://")
os.environ.setdefault("CELERY_RESULT_BACKEND", "cache+memory://")

from datetime import datetime, timedelta, timezone  # noqa: E402
from decimal import Decimal  # noqa: E402
from itertools import count  # noqa: E402

import pytest  # noqa: E402

from storefront.data.database import build_engine, build_session_factory, init_db  # noqa: E402
from storefront.data.models import ProductModel, PromocodeModel  # noqa: E402
from storefront.domain.enums import DiscountType, PaymentMethod  # noqa: E402
from storefront.domain.schemas import CheckoutIn  # noqa: E402
from storefront.services.cart_service import CartService  # noqa: E402


@pytest.fixture
def engine(tmp_path):
    """File-backed SQLite database, fresh for every test."""
    engine = build_engine(f"sqlite:///{tmp_path / 'storefront.db'}")
    init_db(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return build_session_factory(engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def make_product(db):
    """Create and commit a catalog product."""
    seq = count(1)

    def _make(price="1000.00", quantity=5, **kwargs):
        n = next(seq)
        product = ProductModel(
            name=kwargs.pop("name", f"Product {n}"),
            slug=kwargs.pop("slug", f"product-{n}"),
            article=kwargs.pop("article", f"ART-{n:03d}"),
            images=kwargs.pop("images", [f"/media/product-{n}.jpg"]),
            price=Decimal(price),
            quantity=quantity,
            **kwargs,
        )
        db.add(product)
        db.commit()
        return product

    return _make


@pytest.fixture
def make_promocode(db):
    """Create and commit a promocode valid from yesterday until tomorrow."""

    def _make(code="SAVE10", discount_type=DiscountType.PERCENT, discount_value="10", **kwargs):
        now = datetime.now(timezone.utc)
        promocode = PromocodeModel(
            code=code,
            discount_type=discount_type.value,
            discount_value=Decimal(discount_value),
            min_order_amount=kwargs.pop("min_order_amount", None),
            max_uses=kwargs.pop("max_uses", None),
            used_count=kwargs.pop("used_count", 0),
            is_active=kwargs.pop("is_active", True),
            valid_from=kwargs.pop("valid_from", now - timedelta(days=1)),
            valid_to=kwargs.pop("valid_to", now + timedelta(days=1)),
        )
        db.add(promocode)
        db.commit()
        return promocode

    return _make


@pytest.fixture
def fill_cart(session_factory):
    """Put lines into a user's cart through the cart service, in its own session."""

    def _fill(user_id, *lines):
        session = session_factory()
        try:
            svc = CartService(session)
            for product_id, quantity in lines:
                svc.add_line(product_id, quantity, user_id=user_id)
        finally:
            session.close()

    return _fill


def checkout_data(**overrides) -> CheckoutIn:
    data = {
        "customer_name": "Anna Ivanova",
        "customer_phone": "+79991234567",
        "customer_email": "anna@example.com",
        "customer_address": "12 Garden Street, Springfield",
        "payment_method": PaymentMethod.CASH_ON_DELIVERY,
    }
    data.update(overrides)
    return CheckoutIn(**data)


@pytest.fixture
def checkout():
    return checkout_data


class FakeNotifier:
    def __init__(self, fail=False):
        self.fail = fail
        self.orders = []
        self.statuses = []

    def notify_new_order(self, order):
        if self.fail:
            raise RuntimeError("broker unavailable")
        self.orders.append(order)

    def notify_order_status(self, order):
        if self.fail:
            raise RuntimeError("broker unavailable")
        self.statuses.append(order)


class FakePayment:
    def __init__(self, fail=False):
        self.fail = fail
        self.orders = []

    def generate_payment_link(self, order):
        if self.fail:
            raise RuntimeError("gateway unavailable")
        self.orders.append(order)
        return f"https://pay.example.com/form?order_id={order['order_number']}"


@pytest.fixture
def notifier():
    return FakeNotifier()


@pytest.fixture
def payment():
    return FakePayment()
