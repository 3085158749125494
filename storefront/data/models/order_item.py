from datetime import datetime, timezone

from sqlalchemy import Boolean, Column, ForeignKey, Integer, Numeric, String
from sqlalchemy.orm import relationship

from storefront.data.database import Base
from storefront.data.types import UTCDateTime


class OrderItemModel(Base):
    """Frozen copy of a cart line; unaffected by later catalog edits."""

    __tablename__ = "order_items"

    id = Column(Integer, primary_key=True)
    order_id = Column(Integer, ForeignKey("orders.id"), nullable=False, index=True)
    # plain reference, the product may later be edited or removed
    product_id = Column(Integer, nullable=False)

    product_name = Column(String(255), nullable=False)
    product_article = Column(String(64), nullable=False)
    product_image = Column(String(512), nullable=False, default="")

    base_price = Column(Numeric(10, 2), nullable=False)
    applied_price = Column(Numeric(10, 2), nullable=False)
    had_promotion = Column(Boolean, nullable=False, default=False)
    quantity = Column(Integer, nullable=False)

    created_at = Column(UTCDateTime, nullable=False, default=lambda: datetime.now(timezone.utc))

    order = relationship("OrderModel", back_populates="items")
