# storefront/repos/cart_repo.py
from sqlalchemy import delete, select
from sqlalchemy.orm import Session, selectinload

from storefront.data.models.cart import CartModel
from storefront.data.models.cart_item import CartItemModel


def _with_lines():
    return selectinload(CartModel.items).selectinload(CartItemModel.product)


class CartRepo:
    def __init__(self, db: Session):
        self.db = db

    def get_cart_by_user(self, user_id: int) -> CartModel | None:
        stmt = select(CartModel).options(_with_lines()).where(CartModel.user_id == user_id)
        return self.db.execute(stmt).scalar_one_or_none()

    def get_cart_by_token(self, session_token: str) -> CartModel | None:
        stmt = select(CartModel).options(_with_lines()).where(CartModel.session_token == session_token)
        return self.db.execute(stmt).scalar_one_or_none()

    def get_anonymous_cart_by_token(self, session_token: str) -> CartModel | None:
        stmt = (
            select(CartModel)
            .options(_with_lines())
            .where(CartModel.session_token == session_token, CartModel.user_id.is_(None))
        )
        return self.db.execute(stmt).scalar_one_or_none()

    def create_cart(self, cart: CartModel) -> CartModel:
        self.db.add(cart)
        self.db.flush()
        return cart

    def delete_cart(self, cart: CartModel) -> None:
        self.db.delete(cart)

    def get_cart_item(self, cart_id: int, product_id: int) -> CartItemModel | None:
        stmt = select(CartItemModel).where(
            CartItemModel.cart_id == cart_id,
            CartItemModel.product_id == product_id,
        )
        return self.db.execute(stmt).scalar_one_or_none()

    def get_item(self, item_id: int) -> CartItemModel | None:
        stmt = (
            select(CartItemModel)
            .options(selectinload(CartItemModel.cart), selectinload(CartItemModel.product))
            .where(CartItemModel.id == item_id)
        )
        return self.db.execute(stmt).scalar_one_or_none()

    def add_cart_item(self, item: CartItemModel) -> CartItemModel:
        self.db.add(item)
        return item

    def delete_cart_item(self, item: CartItemModel) -> None:
        self.db.delete(item)

    def clear_cart_items(self, cart_id: int) -> int:
        result = self.db.execute(
            delete(CartItemModel)
            .where(CartItemModel.cart_id == cart_id)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount

    def commit(self) -> None:
        self.db.commit()

    def rollback(self) -> None:
        self.db.rollback()
