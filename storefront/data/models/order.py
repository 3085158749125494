from datetime import datetime, timezone

from sqlalchemy import Column, ForeignKey, Integer, Numeric, String, Text
from sqlalchemy.orm import relationship

from storefront.data.database import Base
from storefront.data.types import UTCDateTime


class OrderModel(Base):
    __tablename__ = "orders"

    id = Column(Integer, primary_key=True)
    order_number = Column(String(32), nullable=False, unique=True, index=True)
    user_id = Column(Integer, nullable=False, index=True)

    status = Column(String(20), nullable=False)  # PAID, PROCESSING, SHIPPED, CANCELLED
    payment_status = Column(String(20), nullable=False)  # PENDING, PAID, FAILED
    payment_method = Column(String(32), nullable=False)

    customer_name = Column(String(100), nullable=False)
    customer_phone = Column(String(32), nullable=False)
    customer_email = Column(String(255), nullable=False)
    customer_address = Column(String(500), nullable=False)
    comment = Column(Text, nullable=True)

    subtotal = Column(Numeric(10, 2), nullable=False)
    discount = Column(Numeric(10, 2), nullable=False)
    promocode_discount = Column(Numeric(10, 2), nullable=True)
    total = Column(Numeric(10, 2), nullable=False)
    promocode_id = Column(Integer, ForeignKey("promocodes.id"), nullable=True)

    tracking_number = Column(String(64), nullable=True)

    created_at = Column(UTCDateTime, nullable=False, default=lambda: datetime.now(timezone.utc))
    updated_at = Column(
        UTCDateTime,
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )
    paid_at = Column(UTCDateTime, nullable=True)
    shipped_at = Column(UTCDateTime, nullable=True)

    items = relationship("OrderItemModel", back_populates="order", order_by="OrderItemModel.id")
