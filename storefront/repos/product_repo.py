# storefront/repos/product_repo.py
from sqlalchemy import select, update
from sqlalchemy.orm import Session

from storefront.data.models.product import ProductModel


class ProductRepo:
    """Catalog access needed by the cart and checkout. Inactive products are filtered at read time."""

    def __init__(self, db: Session):
        self.db = db

    def get_active_product(self, product_id: int) -> ProductModel | None:
        stmt = select(ProductModel).where(
            ProductModel.id == product_id,
            ProductModel.is_active.is_(True),
        )
        return self.db.execute(stmt).scalar_one_or_none()

    def decrement_stock(self, product_id: int, amount: int) -> bool:
        # conditional update, the WHERE clause is the authoritative stock check
        # UPDATE products SET quantity = quantity - 2 WHERE id = 1 AND quantity >= 2
        result = self.db.execute(
            update(ProductModel)
            .where(
                ProductModel.id == product_id,
                ProductModel.is_active.is_(True),
                ProductModel.quantity >= amount,
            )
            .values(
                quantity=ProductModel.quantity - amount,
                order_count=ProductModel.order_count + 1,
            )
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1
