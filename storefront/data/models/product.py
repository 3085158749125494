from datetime import datetime, timezone

from sqlalchemy import Boolean, CheckConstraint, Column, Integer, JSON, Numeric, String

from storefront.data.database import Base
from storefront.data.types import UTCDateTime


class ProductModel(Base):
    """Catalog row. The checkout core only ever writes quantity and order_count."""

    __tablename__ = "products"

    id = Column(Integer, primary_key=True)
    name = Column(String(255), nullable=False)
    slug = Column(String(255), nullable=False, unique=True)
    article = Column(String(64), nullable=False, default="")
    images = Column(JSON, nullable=False, default=list)

    price = Column(Numeric(10, 2), nullable=False)
    promotion_price = Column(Numeric(10, 2), nullable=True)
    has_promotion = Column(Boolean, nullable=False, default=False)
    discount_price = Column(Numeric(10, 2), nullable=True)
    is_discount = Column(Boolean, nullable=False, default=False)

    quantity = Column(Integer, nullable=False, default=0)
    order_count = Column(Integer, nullable=False, default=0)
    is_active = Column(Boolean, nullable=False, default=True)

    created_at = Column(UTCDateTime, nullable=False, default=lambda: datetime.now(timezone.utc))
    updated_at = Column(
        UTCDateTime,
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    __table_args__ = (CheckConstraint("quantity >= 0", name="ck_product_quantity_non_negative"),)

    @property
    def main_image(self) -> str:
        return self.images[0] if self.images else ""
