# storefront/data/seed.py
from datetime import datetime, timezone, timedelta
from decimal import Decimal

from storefront.data.database import SessionLocal, init_db
from storefront.data.models import ProductModel, PromocodeModel
from storefront.domain.enums import DiscountType
from storefront.utils.logging import get_logger

logger = get_logger(__name__)


def seed():
    init_db()
    db = SessionLocal()
    try:
        # not forcing: only seed if empty
        if db.query(ProductModel).first():
            logger.info("Catalog already seeded, skipping")
            return

        now = datetime.now(timezone.utc)
        db.add_all(
            [
                ProductModel(
                    name="Linen shirt",
                    slug="linen-shirt",
                    article="LS-001",
                    images=["/media/linen-shirt.jpg"],
                    price=Decimal("100.00"),
                    quantity=10,
                ),
                ProductModel(
                    name="Canvas tote",
                    slug="canvas-tote",
                    article="CT-002",
                    images=["/media/canvas-tote.jpg"],
                    price=Decimal("50.00"),
                    promotion_price=Decimal("40.00"),
                    has_promotion=True,
                    quantity=5,
                ),
                ProductModel(
                    name="Wool scarf",
                    slug="wool-scarf",
                    article="WS-003",
                    images=[],
                    price=Decimal("80.00"),
                    discount_price=Decimal("70.00"),
                    is_discount=True,
                    quantity=3,
                ),
                PromocodeModel(
                    code="WELCOME10",
                    discount_type=DiscountType.PERCENT.value,
                    discount_value=Decimal("10"),
                    min_order_amount=Decimal("50.00"),
                    max_uses=100,
                    valid_from=now,
                    valid_to=now + timedelta(days=90),
                ),
            ]
        )
        db.commit()
        logger.info("Seeded catalog with 3 products and 1 promocode")
    finally:
        db.close()


if __name__ == "__main__":
    seed()
