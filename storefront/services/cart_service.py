import secrets
from dataclasses import asdict
from datetime import datetime, timezone, timedelta
from typing import Dict, Any

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from storefront.data.models.cart import CartModel
from storefront.data.models.cart_item import CartItemModel
from storefront.domain.errors import (
    InsufficientStockError,
    InvalidQuantityError,
    NotFoundError,
    PersistenceFailureError,
)
from storefront.domain.money import to_money
from storefront.domain.pricing import calculate_applied_price, calculate_cart_totals
from storefront.repos.cart_repo import CartRepo
from storefront.repos.product_repo import ProductRepo
from storefront.services.promocode_service import PromocodeService
from storefront.utils.settings import CART_TTL_DAYS
from storefront.utils.logging import get_logger

logger = get_logger(__name__)


def generate_session_token() -> str:
    return secrets.token_hex(32)


class CartService:
    """
    Cart use cases. A cart is owned either by an authenticated user or by an
    anonymous session token and is always resolved by user id first.

    query: resolve, get_summary
    commands: add_line, update_line, remove_line, clear, merge_session_cart
    """

    def __init__(self, db: Session):
        self.db = db
        self.repo = CartRepo(db)
        self.products = ProductRepo(db)
        self.promocodes = PromocodeService(db)

    #query
    def resolve(self, user_id: int | None = None, session_token: str | None = None) -> CartModel:
        cart = self._find(user_id, session_token)
        if cart:
            return cart

        now = datetime.now(timezone.utc)
        cart = CartModel(
            user_id=user_id,
            # a user cart never reuses the anonymous token it is about to absorb
            session_token=generate_session_token() if user_id is not None or not session_token else session_token,
            created_at=now,
            updated_at=now,
            expires_at=now + timedelta(days=CART_TTL_DAYS),
        )

        try:
            self.repo.create_cart(cart)
            self.repo.commit()
        except IntegrityError as e:
            # another request created the cart for this owner first
            self.repo.rollback()
            existing = self._find(user_id, session_token)
            if existing:
                return existing
            raise PersistenceFailureError("Cart could not be created") from e

        logger.info(f"Cart {cart.id} created for user={user_id}")
        return self._find(user_id, cart.session_token) or cart

    def get_summary(
        self,
        user_id: int | None = None,
        session_token: str | None = None,
        promocode: str | None = None,
    ) -> Dict[str, Any]:
        cart = self.resolve(user_id, session_token)
        return self._summary(cart, promocode)

    #commands
    def add_line(
        self,
        product_id: int,
        quantity: int,
        user_id: int | None = None,
        session_token: str | None = None,
    ) -> Dict[str, Any]:
        if quantity <= 0:
            raise InvalidQuantityError(quantity)

        logger.info(f"Adding product {product_id} x{quantity} to cart (user={user_id})")

        product = self.products.get_active_product(product_id)
        if not product:
            raise NotFoundError("Product", product_id)

        if product.quantity < quantity:
            raise InsufficientStockError(product.id, product.name, product.quantity, quantity)

        cart = self.resolve(user_id, session_token)
        existing_item = self.repo.get_cart_item(cart.id, product.id)

        if existing_item:
            new_quantity = existing_item.quantity + quantity
            if new_quantity > product.quantity:
                raise InsufficientStockError(product.id, product.name, product.quantity, new_quantity)

            logger.info(
                f"Product {product.id} already in cart {cart.id}, quantity "
                f"{existing_item.quantity} -> {new_quantity}"
            )
            existing_item.quantity = new_quantity
        else:
            applied_price = calculate_applied_price(product)
            self.repo.add_cart_item(
                CartItemModel(
                    cart_id=cart.id,
                    product_id=product.id,
                    quantity=quantity,
                    price=to_money(product.price),
                    applied_price=applied_price,
                    has_promotion=bool(product.has_promotion),
                    # promotions and promocodes never stack on one line
                    allow_promocode=not product.has_promotion,
                )
            )
            logger.info(f"Product {product.id} added to cart {cart.id} at {applied_price}")

        self._touch(cart)
        self._commit()

        return self._summary(self._reload(cart))

    def update_line(
        self,
        item_id: int,
        quantity: int,
        user_id: int | None = None,
        session_token: str | None = None,
    ) -> Dict[str, Any]:
        if quantity <= 0:
            raise InvalidQuantityError(quantity)

        logger.info(f"Updating cart item {item_id} to quantity {quantity}")

        item = self._owned_item(item_id, user_id, session_token)
        product = item.product

        if not product.is_active or product.quantity < quantity:
            available = product.quantity if product.is_active else 0
            raise InsufficientStockError(product.id, product.name, available, quantity)

        item.quantity = quantity
        cart = item.cart
        self._touch(cart)
        self._commit()

        return self._summary(self._reload(cart))

    def remove_line(
        self,
        item_id: int,
        user_id: int | None = None,
        session_token: str | None = None,
    ) -> Dict[str, Any]:
        logger.info(f"Removing cart item {item_id}")

        item = self._owned_item(item_id, user_id, session_token)
        cart = item.cart

        self.repo.delete_cart_item(item)
        self._touch(cart)
        self._commit()

        return self._summary(self._reload(cart))

    def clear(self, user_id: int | None = None, session_token: str | None = None) -> None:
        cart = self.resolve(user_id, session_token)
        removed = self.repo.clear_cart_items(cart.id)
        self._touch(cart)
        self._commit()
        self.db.expire(cart, ["items"])

        logger.info(f"Cart {cart.id} cleared, {removed} lines removed")

    def merge_session_cart(self, user_id: int, session_token: str) -> None:
        """
        Fold an anonymous cart into the user's cart at login.

        Shared products sum their quantities on the user's line; the other
        lines are moved over as they are. The session cart is then deleted,
        so running the merge again is a no-op.
        """
        logger.info(f"Merging session cart into cart of user {user_id}")

        session_cart = self.repo.get_anonymous_cart_by_token(session_token)
        if not session_cart or not session_cart.items:
            return

        user_cart = self.resolve(user_id=user_id)
        user_lines = {item.product_id: item for item in user_cart.items}

        for line in list(session_cart.items):
            existing = user_lines.get(line.product_id)
            if existing:
                existing.quantity += line.quantity
            else:
                # reassign ownership, the line keeps its locked-in prices
                line.cart = user_cart

        self.repo.delete_cart(session_cart)
        self._touch(user_cart)
        self._commit()

        logger.info(f"Session cart {session_cart.id} merged into cart {user_cart.id}")

    # helpers
    def _find(self, user_id: int | None, session_token: str | None) -> CartModel | None:
        if user_id is not None:
            return self.repo.get_cart_by_user(user_id)
        if session_token:
            return self.repo.get_cart_by_token(session_token)
        return None

    def _reload(self, cart: CartModel) -> CartModel:
        self.db.expire(cart, ["items"])
        return cart

    def _owned_item(self, item_id: int, user_id: int | None, session_token: str | None) -> CartItemModel:
        item = self.repo.get_item(item_id)
        if not item:
            raise NotFoundError("Cart item", item_id)

        belongs_to_user = user_id is not None and item.cart.user_id == user_id
        belongs_to_session = bool(session_token) and item.cart.session_token == session_token

        # someone else's line is reported exactly like a missing one
        if not belongs_to_user and not belongs_to_session:
            logger.warning(f"Cart item {item_id} requested by non-owner (user={user_id})")
            raise NotFoundError("Cart item", item_id)

        return item

    def _touch(self, cart: CartModel) -> None:
        now = datetime.now(timezone.utc)
        cart.updated_at = now
        # every action pushes the expiry forward, active carts are not collected
        cart.expires_at = now + timedelta(days=CART_TTL_DAYS)

    def _commit(self) -> None:
        try:
            self.repo.commit()
        except SQLAlchemyError as e:
            self.repo.rollback()
            logger.error(f"Cart commit failed: {e}")
            raise PersistenceFailureError("Cart could not be saved") from e

    def _summary(self, cart: CartModel, promocode: str | None = None) -> Dict[str, Any]:
        items = list(cart.items)
        totals = calculate_cart_totals(items)
        applied = None

        if promocode:
            quote = self.promocodes.validate(promocode, totals.subtotal)
            totals = calculate_cart_totals(items, quote.discount)
            applied = {"code": quote.code, "discount": quote.discount}

        return {
            "id": cart.id,
            "session_token": cart.session_token,
            "items": [self._line(i) for i in items],
            "totals": asdict(totals),
            "promocode": applied,
            "created_at": cart.created_at,
            "updated_at": cart.updated_at,
        }

    @staticmethod
    def _line(item: CartItemModel) -> Dict[str, Any]:
        product = item.product
        applied_price = to_money(item.applied_price)
        return {
            "id": item.id,
            "product_id": product.id,
            "product_name": product.name,
            "product_slug": product.slug,
            "product_image": product.main_image,
            "product_article": product.article,
            "base_price": to_money(item.price),
            "applied_price": applied_price,
            "has_promotion": item.has_promotion,
            "allow_promocode": item.allow_promocode,
            "quantity": item.quantity,
            "subtotal": applied_price * item.quantity,
            "in_stock": bool(product.is_active) and product.quantity > 0,
            "available_quantity": product.quantity if product.is_active else 0,
        }
