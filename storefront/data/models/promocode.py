from datetime import datetime, timezone

from sqlalchemy import Boolean, CheckConstraint, Column, Integer, Numeric, String

from storefront.data.database import Base
from storefront.data.types import UTCDateTime


class PromocodeModel(Base):
    __tablename__ = "promocodes"

    id = Column(Integer, primary_key=True)
    code = Column(String(20), nullable=False, unique=True, index=True)

    discount_type = Column(String(16), nullable=False)  # PERCENT, FIXED
    discount_value = Column(Numeric(10, 2), nullable=False)
    min_order_amount = Column(Numeric(10, 2), nullable=True)

    max_uses = Column(Integer, nullable=True)
    used_count = Column(Integer, nullable=False, default=0)

    is_active = Column(Boolean, nullable=False, default=True)
    valid_from = Column(UTCDateTime, nullable=False)
    valid_to = Column(UTCDateTime, nullable=False)

    created_at = Column(UTCDateTime, nullable=False, default=lambda: datetime.now(timezone.utc))

    __table_args__ = (
        CheckConstraint("max_uses IS NULL OR used_count <= max_uses", name="ck_promocode_usage_cap"),
    )
