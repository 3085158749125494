"""Tests for the cart-to-order commit and order use cases."""

import re
from decimal import Decimal

import pytest
from sqlalchemy.exc import OperationalError

from storefront.data.models import CartItemModel, OrderItemModel, OrderModel, ProductModel, PromocodeModel
from storefront.domain.enums import CheckoutState, OrderStatus, PaymentMethod, PaymentStatus
from storefront.domain.errors import (
    EmptyCartError,
    InsufficientStockError,
    InvalidOrExpiredPromocodeError,
    InvalidStatusTransitionError,
    NotFoundError,
    OrderCannotBeCancelledError,
    PersistenceFailureError,
    UsageLimitReachedError,
)
from storefront.services.order_service import OrderService, generate_order_number
from storefront.services.promocode_service import PromocodeService


def stock_of(db, product_id):
    db.expire_all()
    return db.get(ProductModel, product_id).quantity


class TestOrderNumber:
    def test_format(self):
        assert re.fullmatch(r"ORD-\d{8}-\d{4}", generate_order_number())


class TestCreateOrder:
    def test_single_line_without_promocode(self, db, make_product, fill_cart, checkout, notifier):
        product = make_product(price="1000.00", quantity=5)
        fill_cart(1, (product.id, 2))
        svc = OrderService(db, notifier=notifier)

        order = svc.create_order(1, checkout())

        assert svc.last_state == CheckoutState.COMMITTED
        assert order["subtotal"] == Decimal("2000.00")
        assert order["total"] == Decimal("2000.00")
        assert order["promocode_discount"] is None
        assert order["status"] == OrderStatus.PAID.value
        assert stock_of(db, product.id) == 3
        assert db.get(ProductModel, product.id).order_count == 1

    def test_cart_is_emptied(self, db, make_product, fill_cart, checkout):
        product = make_product()
        fill_cart(1, (product.id, 1))

        OrderService(db).create_order(1, checkout())

        assert db.query(CartItemModel).count() == 0

    def test_lines_are_frozen_copies(self, db, make_product, fill_cart, checkout):
        product = make_product(price="50.00", promotion_price=Decimal("40.00"), has_promotion=True, quantity=5)
        fill_cart(1, (product.id, 2))

        order = OrderService(db).create_order(1, checkout())

        product = db.get(ProductModel, product.id)
        product.name = "Renamed"
        product.price = Decimal("70.00")
        db.commit()

        item = db.query(OrderItemModel).one()
        assert item.product_name != "Renamed"
        assert item.base_price == Decimal("50.00")
        assert item.applied_price == Decimal("40.00")
        assert item.had_promotion is True
        assert order["items"][0]["subtotal"] == Decimal("80.00")
        assert order["discount"] == Decimal("20.00")

    def test_insufficient_stock_aborts(self, db, make_product, fill_cart, checkout, notifier):
        product = make_product(price="1000.00", quantity=5)
        fill_cart(1, (product.id, 2))
        product.quantity = 1
        db.commit()
        svc = OrderService(db, notifier=notifier)

        with pytest.raises(InsufficientStockError) as exc:
            svc.create_order(1, checkout())

        assert exc.value.product_id == product.id
        assert svc.last_state == CheckoutState.ABORTED
        assert stock_of(db, product.id) == 1
        assert db.query(OrderModel).count() == 0
        assert db.query(CartItemModel).count() == 1
        assert notifier.orders == []

    def test_inactive_product_aborts(self, db, make_product, fill_cart, checkout):
        product = make_product(quantity=5)
        fill_cart(1, (product.id, 1))
        product.is_active = False
        db.commit()

        with pytest.raises(InsufficientStockError):
            OrderService(db).create_order(1, checkout())

        assert db.query(OrderModel).count() == 0

    def test_empty_cart(self, db, checkout):
        svc = OrderService(db)
        with pytest.raises(EmptyCartError):
            svc.create_order(1, checkout())
        assert svc.last_state == CheckoutState.ABORTED

    def test_empty_cart_after_clear(self, db, make_product, fill_cart, checkout):
        from storefront.services.cart_service import CartService

        fill_cart(1, (make_product().id, 1))
        CartService(db).clear(user_id=1)

        with pytest.raises(EmptyCartError):
            OrderService(db).create_order(1, checkout())

    def test_percent_promocode(self, db, make_product, make_promocode, fill_cart, checkout):
        product = make_product(price="900.00", quantity=5)
        make_promocode("SAVE10", max_uses=100, used_count=99)
        fill_cart(1, (product.id, 2))

        order = OrderService(db).create_order(1, checkout(promocode_code="SAVE10"))

        assert order["subtotal"] == Decimal("1800.00")
        assert order["promocode_discount"] == Decimal("180.00")
        assert order["total"] == Decimal("1620.00")
        db.expire_all()
        assert db.query(PromocodeModel).one().used_count == 100
        assert db.query(OrderModel).one().promocode_id is not None

    def test_promocode_at_cap_rejected(self, db, make_product, make_promocode, fill_cart, checkout):
        product = make_product(price="900.00", quantity=5)
        make_promocode("SAVE10", max_uses=100, used_count=100)
        fill_cart(1, (product.id, 2))

        with pytest.raises(UsageLimitReachedError):
            OrderService(db).create_order(1, checkout(promocode_code="SAVE10"))

        assert stock_of(db, product.id) == 5
        assert db.query(OrderModel).count() == 0

    def test_invalid_promocode_rejected(self, db, make_product, fill_cart, checkout):
        product = make_product(quantity=5)
        fill_cart(1, (product.id, 1))

        with pytest.raises(InvalidOrExpiredPromocodeError):
            OrderService(db).create_order(1, checkout(promocode_code="NOPE"))

        assert stock_of(db, product.id) == 5

    def test_losing_the_last_promocode_use(
        self, db, session_factory, make_product, make_promocode, fill_cart, checkout, monkeypatch
    ):
        product = make_product(price="900.00", quantity=10)
        make_promocode("SAVE10", max_uses=100, used_count=99)
        fill_cart(1, (product.id, 2))
        fill_cart(2, (product.id, 1))

        original_persist = OrderService._persist
        raced = []

        def persist_after_rival(self, *args, **kwargs):
            # the rival checkout commits between our pricing and our write
            if not raced:
                raced.append(True)
                rival_db = session_factory()
                try:
                    OrderService(rival_db).create_order(2, checkout(promocode_code="SAVE10"))
                finally:
                    rival_db.close()
            return original_persist(self, *args, **kwargs)

        monkeypatch.setattr(OrderService, "_persist", persist_after_rival)
        svc = OrderService(db)

        with pytest.raises(UsageLimitReachedError):
            svc.create_order(1, checkout(promocode_code="SAVE10"))

        assert svc.last_state == CheckoutState.ABORTED
        db.expire_all()
        orders = db.query(OrderModel).all()
        assert [o.user_id for o in orders] == [2]
        assert db.query(PromocodeModel).one().used_count == 100
        # the winner's decrement stands, the loser's never happened
        assert stock_of(db, product.id) == 9
        assert db.query(CartItemModel).filter(CartItemModel.product_id == product.id).one().quantity == 2

    def test_stock_taken_after_check(self, db, session_factory, make_product, fill_cart, checkout, monkeypatch):
        product = make_product(quantity=2)
        fill_cart(1, (product.id, 2))

        def sold_out_meanwhile(self, lines):
            other = session_factory()
            try:
                other.get(ProductModel, product.id).quantity = 1
                other.commit()
            finally:
                other.close()

        monkeypatch.setattr(OrderService, "_check_stock", sold_out_meanwhile)

        with pytest.raises(InsufficientStockError):
            OrderService(db).create_order(1, checkout())

        assert stock_of(db, product.id) == 1
        assert db.query(OrderModel).count() == 0
        assert db.query(OrderItemModel).count() == 0

    def test_storage_fault_rolls_back(self, db, make_product, make_promocode, fill_cart, checkout, monkeypatch):
        product = make_product(quantity=5)
        make_promocode("SAVE10")
        fill_cart(1, (product.id, 1))

        def broken_redeem(self, quote):
            raise OperationalError("UPDATE promocodes", {}, Exception("disk I/O error"))

        monkeypatch.setattr(PromocodeService, "redeem", broken_redeem)
        svc = OrderService(db)

        with pytest.raises(PersistenceFailureError):
            svc.create_order(1, checkout(promocode_code="SAVE10"))

        assert svc.last_state == CheckoutState.ABORTED
        assert stock_of(db, product.id) == 5
        assert db.query(OrderModel).count() == 0

    def test_total_never_negative(self, db, make_product, make_promocode, fill_cart, checkout):
        from storefront.domain.enums import DiscountType

        product = make_product(price="100.00")
        make_promocode("BIGFIXED", DiscountType.FIXED, "500")
        fill_cart(1, (product.id, 1))

        order = OrderService(db).create_order(1, checkout(promocode_code="BIGFIXED"))

        assert order["promocode_discount"] == Decimal("100.00")
        assert order["total"] == Decimal("0.00")


class TestCollaborators:
    def test_notifier_receives_committed_order(self, db, make_product, fill_cart, checkout, notifier):
        fill_cart(1, (make_product().id, 1))

        order = OrderService(db, notifier=notifier).create_order(1, checkout())

        assert [o["order_number"] for o in notifier.orders] == [order["order_number"]]

    def test_notification_failure_keeps_order(self, db, make_product, fill_cart, checkout, notifier):
        product = make_product(quantity=5)
        fill_cart(1, (product.id, 1))
        notifier.fail = True
        svc = OrderService(db, notifier=notifier)

        order = svc.create_order(1, checkout())

        assert svc.last_state == CheckoutState.COMMITTED
        assert db.query(OrderModel).one().order_number == order["order_number"]
        assert stock_of(db, product.id) == 4

    def test_online_payment_gets_link(self, db, make_product, fill_cart, checkout, payment):
        fill_cart(1, (make_product().id, 1))

        order = OrderService(db, payment=payment).create_order(1, checkout(payment_method=PaymentMethod.ONLINE))

        assert order["payment_status"] == PaymentStatus.PENDING.value
        assert order["payment_url"].endswith(order["order_number"])

    def test_cash_on_delivery_has_no_link(self, db, make_product, fill_cart, checkout, payment):
        fill_cart(1, (make_product().id, 1))

        order = OrderService(db, payment=payment).create_order(1, checkout())

        assert order["payment_status"] == PaymentStatus.PAID.value
        assert order["payment_url"] is None
        assert payment.orders == []

    def test_payment_failure_keeps_order(self, db, make_product, fill_cart, checkout, payment):
        fill_cart(1, (make_product().id, 1))
        payment.fail = True
        svc = OrderService(db, payment=payment)

        order = svc.create_order(1, checkout(payment_method=PaymentMethod.ONLINE))

        assert order["payment_url"] is None
        assert db.query(OrderModel).count() == 1


class TestOrderQueries:
    @pytest.fixture
    def order(self, db, make_product, fill_cart, checkout):
        fill_cart(1, (make_product().id, 1))
        return OrderService(db).create_order(1, checkout())

    def test_get_own_order(self, db, order):
        assert OrderService(db).get_order(order["id"], 1)["order_number"] == order["order_number"]

    def test_other_users_order_not_found(self, db, order):
        with pytest.raises(NotFoundError):
            OrderService(db).get_order(order["id"], 2)

    def test_get_by_number(self, db, order):
        found = OrderService(db).get_order_by_number(order["order_number"], 1)
        assert found["id"] == order["id"]

    def test_get_by_number_other_user(self, db, order):
        with pytest.raises(NotFoundError):
            OrderService(db).get_order_by_number(order["order_number"], 2)

    def test_list_user_orders(self, db, order, make_product, fill_cart, checkout):
        fill_cart(2, (make_product().id, 1))
        OrderService(db).create_order(2, checkout())

        result = OrderService(db).list_user_orders(1)

        assert result["total"] == 1
        assert result["orders"][0]["id"] == order["id"]

    def test_list_all_orders_by_status(self, db, order, make_product, fill_cart, checkout):
        fill_cart(2, (make_product().id, 1))
        second = OrderService(db).create_order(2, checkout())
        OrderService(db).cancel_order(second["id"], 2)

        svc = OrderService(db)
        assert svc.list_orders()["total"] == 2
        cancelled = svc.list_orders(status=OrderStatus.CANCELLED)
        assert [o["id"] for o in cancelled["orders"]] == [second["id"]]


class TestOrderStatus:
    @pytest.fixture
    def order(self, db, make_product, fill_cart, checkout):
        fill_cart(1, (make_product().id, 1))
        return OrderService(db).create_order(1, checkout(payment_method=PaymentMethod.SBP))

    def test_cancel(self, db, order):
        cancelled = OrderService(db).cancel_order(order["id"], 1)
        assert cancelled["status"] == OrderStatus.CANCELLED.value

    def test_cancel_other_users_order(self, db, order):
        with pytest.raises(NotFoundError):
            OrderService(db).cancel_order(order["id"], 2)

    def test_cannot_cancel_shipped(self, db, order):
        svc = OrderService(db)
        svc.update_order_status(order["id"], OrderStatus.SHIPPED, "TRACK123")
        with pytest.raises(OrderCannotBeCancelledError):
            svc.cancel_order(order["id"], 1)

    def test_shipped_requires_tracking(self, db, order):
        with pytest.raises(InvalidStatusTransitionError):
            OrderService(db).update_order_status(order["id"], OrderStatus.SHIPPED)

    def test_shipped_sets_timestamp(self, db, order):
        updated = OrderService(db).update_order_status(order["id"], OrderStatus.SHIPPED, "TRACK123")
        assert updated["tracking_number"] == "TRACK123"
        assert updated["shipped_at"] is not None

    def test_cancelled_is_final(self, db, order):
        svc = OrderService(db)
        svc.cancel_order(order["id"], 1)
        with pytest.raises(InvalidStatusTransitionError):
            svc.update_order_status(order["id"], OrderStatus.PROCESSING)

    def test_missing_order(self, db):
        with pytest.raises(NotFoundError):
            OrderService(db).update_order_status(999, OrderStatus.PROCESSING)

    def test_confirm_payment(self, db, order):
        svc = OrderService(db)
        paid = svc.confirm_payment(order["order_number"])
        assert paid["payment_status"] == PaymentStatus.PAID.value
        assert paid["paid_at"] is not None

        again = svc.confirm_payment(order["order_number"])
        assert again["paid_at"] == paid["paid_at"]

    def test_timestamps_stay_utc_after_reload(self, db, session_factory, order):
        paid = OrderService(db).confirm_payment(order["order_number"])

        with session_factory() as other:
            reloaded = OrderService(other).get_order(order["id"])

        assert reloaded["paid_at"].tzinfo is not None
        assert reloaded["created_at"].tzinfo is not None
        assert reloaded["paid_at"] == paid["paid_at"]

    def test_status_update_notifies_customer(self, db, order, notifier):
        OrderService(db, notifier=notifier).update_order_status(order["id"], OrderStatus.PROCESSING)

        assert [o["status"] for o in notifier.statuses] == [OrderStatus.PROCESSING.value]

    def test_status_notification_failure_keeps_status(self, db, session_factory, order, notifier):
        notifier.fail = True
        svc = OrderService(db, notifier=notifier)

        updated = svc.update_order_status(order["id"], OrderStatus.SHIPPED, "TRACK123")
        assert updated["status"] == OrderStatus.SHIPPED.value

        with session_factory() as other:
            assert OrderService(other).get_order(order["id"])["status"] == OrderStatus.SHIPPED.value

    def test_confirm_payment_notification_failure_keeps_payment(self, db, session_factory, order, notifier):
        notifier.fail = True
        paid = OrderService(db, notifier=notifier).confirm_payment(order["order_number"])
        assert paid["payment_status"] == PaymentStatus.PAID.value

        with session_factory() as other:
            reloaded = OrderService(other).get_order(order["id"])
        assert reloaded["payment_status"] == PaymentStatus.PAID.value

    def test_repeated_payment_confirmation_notifies_once(self, db, order, notifier):
        svc = OrderService(db, notifier=notifier)
        svc.confirm_payment(order["order_number"])
        svc.confirm_payment(order["order_number"])

        assert len(notifier.statuses) == 1

    def test_confirm_payment_unknown_order(self, db):
        with pytest.raises(NotFoundError):
            OrderService(db).confirm_payment("ORD-00000000-0000")
