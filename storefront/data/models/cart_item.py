from datetime import datetime, timezone

from sqlalchemy import Boolean, CheckConstraint, Column, ForeignKey, Integer, Numeric, UniqueConstraint
from sqlalchemy.orm import relationship

from storefront.data.database import Base
from storefront.data.types import UTCDateTime


class CartItemModel(Base):
    __tablename__ = "cart_items"

    id = Column(Integer, primary_key=True)
    cart_id = Column(Integer, ForeignKey("carts.id", ondelete="CASCADE"), nullable=False, index=True)
    product_id = Column(Integer, ForeignKey("products.id"), nullable=False)

    quantity = Column(Integer, nullable=False)
    # base price when the line was created, and the price actually charged
    price = Column(Numeric(10, 2), nullable=False)
    applied_price = Column(Numeric(10, 2), nullable=False)
    has_promotion = Column(Boolean, nullable=False, default=False)
    allow_promocode = Column(Boolean, nullable=False, default=True)

    created_at = Column(UTCDateTime, nullable=False, default=lambda: datetime.now(timezone.utc))

    cart = relationship("CartModel", back_populates="items")
    product = relationship("ProductModel")

    __table_args__ = (
        UniqueConstraint("cart_id", "product_id", name="u_cart_product"),
        CheckConstraint("quantity >= 1", name="ck_cart_item_quantity_positive"),
        CheckConstraint("applied_price <= price", name="ck_cart_item_applied_price"),
    )
