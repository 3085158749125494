#storefront/data/models/cart.py
from datetime import datetime, timezone

from sqlalchemy import Column, Integer, String
from sqlalchemy.orm import relationship

from storefront.data.database import Base
from storefront.data.types import UTCDateTime


class CartModel(Base):
    __tablename__ = "carts"

    id = Column(Integer, primary_key=True)

    # resolved by user_id first; session_token identifies anonymous carts
    user_id = Column(Integer, nullable=True, unique=True, index=True)
    session_token = Column(String(64), nullable=True, unique=True, index=True)

    created_at = Column(UTCDateTime, nullable=False, default=lambda: datetime.now(timezone.utc))
    updated_at = Column(UTCDateTime, nullable=False, default=lambda: datetime.now(timezone.utc))
    expires_at = Column(UTCDateTime, nullable=True)

    items = relationship(
        "CartItemModel",
        back_populates="cart",
        cascade="all, delete-orphan",
        order_by="CartItemModel.id",
    )
