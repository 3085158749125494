# storefront/services/order_service.py
import secrets
import time
from datetime import datetime, timezone
from typing import Any, Dict, List, Protocol

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from storefront.data.models.cart import CartModel
from storefront.data.models.cart_item import CartItemModel
from storefront.data.models.order import OrderModel
from storefront.data.models.order_item import OrderItemModel
from storefront.domain.enums import CheckoutState, OrderStatus, PaymentMethod, PaymentStatus
from storefront.domain.errors import (
    EmptyCartError,
    InsufficientStockError,
    InvalidStatusTransitionError,
    NotFoundError,
    OrderCannotBeCancelledError,
    PersistenceFailureError,
    StorefrontError,
)
from storefront.domain.money import to_money
from storefront.domain.pricing import CartTotals, calculate_cart_totals
from storefront.domain.schemas import CheckoutIn
from storefront.repos.cart_repo import CartRepo
from storefront.repos.order_repo import OrderRepo
from storefront.repos.product_repo import ProductRepo
from storefront.services.promocode_service import PromocodeQuote, PromocodeService
from storefront.utils.settings import ORDER_NUMBER_PREFIX
from storefront.utils.logging import get_logger

logger = get_logger(__name__)


class OrderNotifier(Protocol):
    def notify_new_order(self, order: Dict[str, Any]) -> None: ...

    def notify_order_status(self, order: Dict[str, Any]) -> None: ...


class PaymentLinkProvider(Protocol):
    def generate_payment_link(self, order: Dict[str, Any]) -> str: ...


def generate_order_number() -> str:
    # uniqueness is enforced by the unique index on orders.order_number
    timestamp = str(int(time.time() * 1000))[-8:]
    random_part = f"{secrets.randbelow(10000):04d}"
    return f"{ORDER_NUMBER_PREFIX}-{timestamp}-{random_part}"


class OrderService:
    """
    Order use cases. create_order is the cart-to-order commit:

        STARTED -> STOCK_CHECKED -> PRICED -> PERSISTED -> COMMITTED
                         any failure -> ABORTED, nothing written

    Stock and promocode caps are read early to fail fast, and enforced again
    by conditional updates inside the same transaction as the order insert,
    so concurrent checkouts can neither oversell nor over-redeem.
    """

    def __init__(
        self,
        db: Session,
        notifier: OrderNotifier | None = None,
        payment: PaymentLinkProvider | None = None,
    ):
        self.db = db
        self.repo = OrderRepo(db)
        self.carts = CartRepo(db)
        self.products = ProductRepo(db)
        self.promocodes = PromocodeService(db)
        self.notifier = notifier
        self.payment = payment
        self.last_state: CheckoutState | None = None

    #commands
    def create_order(self, user_id: int, data: CheckoutIn) -> Dict[str, Any]:
        self._advance(CheckoutState.STARTED, user_id)

        try:
            cart = self.carts.get_cart_by_user(user_id)
            if not cart or not cart.items:
                raise EmptyCartError()

            lines = list(cart.items)
            self._check_stock(lines)
            self._advance(CheckoutState.STOCK_CHECKED, user_id)

            totals, quote = self._price(lines, data.promocode_code)
            self._advance(CheckoutState.PRICED, user_id)

            order = self._persist(user_id, cart, lines, totals, quote, data)
            self._advance(CheckoutState.PERSISTED, user_id)

            self.repo.commit()
        except StorefrontError as e:
            self.repo.rollback()
            self._advance(CheckoutState.ABORTED, user_id)
            logger.warning(f"Checkout for user {user_id} rejected: {e}")
            raise
        except SQLAlchemyError as e:
            self.repo.rollback()
            self._advance(CheckoutState.ABORTED, user_id)
            logger.error(f"Checkout for user {user_id} failed in storage: {e}")
            raise PersistenceFailureError("Order could not be committed") from e

        self._advance(CheckoutState.COMMITTED, user_id)
        logger.info(f"Order {order.order_number} created for user {user_id}, total {order.total}")

        # conditional updates bypassed the identity map
        self.db.expire_all()
        result = self._to_dict(self.repo.get_order(order.id))

        if data.payment_method == PaymentMethod.ONLINE:
            result["payment_url"] = self._payment_link(result)

        self._notify(result)
        return result

    def cancel_order(self, order_id: int, user_id: int) -> Dict[str, Any]:
        order = self._owned_order(order_id, user_id)

        if order.status != OrderStatus.PAID.value:
            raise OrderCannotBeCancelledError(order.order_number, order.status)

        # stock is not restored, it is only ever written by the checkout
        order.status = OrderStatus.CANCELLED.value
        self._commit()

        logger.info(f"Order {order.order_number} cancelled by user {user_id}")
        return self._to_dict(order)

    def update_order_status(
        self,
        order_id: int,
        status: OrderStatus,
        tracking_number: str | None = None,
    ) -> Dict[str, Any]:
        order = self.repo.get_order(order_id)
        if not order:
            raise NotFoundError("Order", order_id)

        if order.status == OrderStatus.CANCELLED.value and status != OrderStatus.CANCELLED:
            raise InvalidStatusTransitionError(f"Order {order.order_number} is cancelled")

        if status == OrderStatus.SHIPPED and not (tracking_number or order.tracking_number):
            raise InvalidStatusTransitionError("Tracking number required for SHIPPED status")

        order.status = status.value
        if tracking_number:
            order.tracking_number = tracking_number
        if status == OrderStatus.SHIPPED and not order.shipped_at:
            order.shipped_at = datetime.now(timezone.utc)

        self._commit()

        logger.info(f"Order {order.order_number} status -> {status.value}")
        result = self._to_dict(order)
        self._notify_status(result)
        return result

    def confirm_payment(self, order_number: str) -> Dict[str, Any]:
        order = self.repo.get_order_by_number(order_number)
        if not order:
            raise NotFoundError("Order", order_number)

        if order.payment_status != PaymentStatus.PENDING.value:
            logger.info(f"Order {order_number} already marked as {order.payment_status}")
            return self._to_dict(order)

        order.payment_status = PaymentStatus.PAID.value
        order.paid_at = datetime.now(timezone.utc)
        self._commit()

        logger.info(f"Payment confirmed for order {order_number}")
        result = self._to_dict(order)
        self._notify_status(result)
        return result

    #queries
    def get_order(self, order_id: int, user_id: int | None = None) -> Dict[str, Any]:
        if user_id is None:
            order = self.repo.get_order(order_id)
            if not order:
                raise NotFoundError("Order", order_id)
            return self._to_dict(order)
        return self._to_dict(self._owned_order(order_id, user_id))

    def get_order_by_number(self, order_number: str, user_id: int | None = None) -> Dict[str, Any]:
        """Lookup a client uses to find out whether a timed-out checkout went through."""
        order = self.repo.get_order_by_number(order_number)
        if not order or (user_id is not None and order.user_id != user_id):
            raise NotFoundError("Order", order_number)
        return self._to_dict(order)

    def list_user_orders(self, user_id: int, page: int = 1, limit: int = 20) -> Dict[str, Any]:
        orders, total = self.repo.list_orders(page, limit, user_id=user_id)
        return {"orders": [self._to_dict(o) for o in orders], "total": total, "page": page, "limit": limit}

    def list_orders(self, page: int = 1, limit: int = 20, status: OrderStatus | None = None) -> Dict[str, Any]:
        orders, total = self.repo.list_orders(page, limit, status=status.value if status else None)
        return {"orders": [self._to_dict(o) for o in orders], "total": total, "page": page, "limit": limit}

    # checkout steps
    def _check_stock(self, lines: List[CartItemModel]) -> None:
        for line in lines:
            product = line.product
            available = product.quantity if product.is_active else 0
            if available < line.quantity:
                raise InsufficientStockError(product.id, product.name, available, line.quantity)

    def _price(self, lines: List[CartItemModel], promocode_code: str | None) -> tuple[CartTotals, PromocodeQuote | None]:
        totals = calculate_cart_totals(lines)
        if not promocode_code:
            return totals, None

        quote = self.promocodes.validate(promocode_code, totals.subtotal)
        return calculate_cart_totals(lines, quote.discount), quote

    def _persist(
        self,
        user_id: int,
        cart: CartModel,
        lines: List[CartItemModel],
        totals: CartTotals,
        quote: PromocodeQuote | None,
        data: CheckoutIn,
    ) -> OrderModel:
        order = OrderModel(
            order_number=generate_order_number(),
            user_id=user_id,
            status=OrderStatus.PAID.value,
            payment_status=self._initial_payment_status(data.payment_method).value,
            payment_method=data.payment_method.value,
            customer_name=data.customer_name,
            customer_phone=data.customer_phone,
            customer_email=str(data.customer_email),
            customer_address=data.customer_address,
            comment=data.comment or None,
            subtotal=totals.subtotal,
            discount=totals.discount,
            promocode_discount=quote.discount if quote else None,
            total=totals.total,
            promocode_id=quote.promocode_id if quote else None,
        )
        self.repo.add_order(order)

        for line in lines:
            product = line.product
            order.items.append(
                OrderItemModel(
                    product_id=product.id,
                    product_name=product.name,
                    product_article=product.article,
                    product_image=product.main_image,
                    base_price=to_money(line.price),
                    applied_price=to_money(line.applied_price),
                    had_promotion=line.has_promotion,
                    quantity=line.quantity,
                )
            )

            if not self.products.decrement_stock(product.id, line.quantity):
                # stock moved between the early check and this write
                raise InsufficientStockError(product.id, product.name, requested=line.quantity)

        if quote:
            self.promocodes.redeem(quote)

        self.carts.clear_cart_items(cart.id)
        self.db.flush()
        return order

    @staticmethod
    def _initial_payment_status(method: PaymentMethod) -> PaymentStatus:
        if method in (PaymentMethod.ONLINE, PaymentMethod.SBP):
            return PaymentStatus.PENDING
        return PaymentStatus.PAID

    # after commit, never allowed to undo it
    def _payment_link(self, order: Dict[str, Any]) -> str | None:
        if not self.payment:
            return None
        try:
            url = self.payment.generate_payment_link(order)
        except Exception as e:
            logger.error(f"Failed to generate payment link for order {order['order_number']}: {e}")
            return None
        logger.info(f"Payment link generated for order {order['order_number']}")
        return url

    def _notify(self, order: Dict[str, Any]) -> None:
        if not self.notifier:
            return
        try:
            self.notifier.notify_new_order(order)
        except Exception as e:
            logger.error(f"Failed to send order notification for {order['order_number']}: {e}")

    def _notify_status(self, order: Dict[str, Any]) -> None:
        if not self.notifier:
            return
        try:
            self.notifier.notify_order_status(order)
        except Exception as e:
            logger.error(f"Failed to send status notification for {order['order_number']}: {e}")

    # helpers
    def _advance(self, state: CheckoutState, user_id: int) -> None:
        self.last_state = state
        logger.info(f"Checkout user={user_id}: {state.value}")

    def _owned_order(self, order_id: int, user_id: int) -> OrderModel:
        order = self.repo.get_order(order_id)
        if not order or order.user_id != user_id:
            raise NotFoundError("Order", order_id)
        return order

    def _commit(self) -> None:
        try:
            self.repo.commit()
        except SQLAlchemyError as e:
            self.repo.rollback()
            logger.error(f"Order update failed: {e}")
            raise PersistenceFailureError("Order could not be saved") from e

    @staticmethod
    def _to_dict(order: OrderModel) -> Dict[str, Any]:
        return {
            "id": order.id,
            "order_number": order.order_number,
            "user_id": order.user_id,
            "status": order.status,
            "payment_status": order.payment_status,
            "payment_method": order.payment_method,
            "customer_name": order.customer_name,
            "customer_phone": order.customer_phone,
            "customer_email": order.customer_email,
            "customer_address": order.customer_address,
            "comment": order.comment,
            "subtotal": to_money(order.subtotal),
            "discount": to_money(order.discount),
            "promocode_discount": to_money(order.promocode_discount) if order.promocode_discount is not None else None,
            "total": to_money(order.total),
            "tracking_number": order.tracking_number,
            "created_at": order.created_at,
            "updated_at": order.updated_at,
            "paid_at": order.paid_at,
            "shipped_at": order.shipped_at,
            "items": [
                {
                    "id": item.id,
                    "product_id": item.product_id,
                    "product_name": item.product_name,
                    "product_article": item.product_article,
                    "product_image": item.product_image,
                    "base_price": to_money(item.base_price),
                    "applied_price": to_money(item.applied_price),
                    "had_promotion": item.had_promotion,
                    "quantity": item.quantity,
                    "subtotal": to_money(item.applied_price) * item.quantity,
                }
                for item in order.items
            ],
            "payment_url": None,
        }
