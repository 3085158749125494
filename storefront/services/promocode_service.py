# storefront/services/promocode_service.py
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal

from sqlalchemy.orm import Session

from storefront.domain.enums import DiscountType
from storefront.domain.errors import (
    BelowMinimumOrderAmountError,
    InvalidOrExpiredPromocodeError,
    UsageLimitReachedError,
)
from storefront.domain.money import to_money
from storefront.domain.pricing import calculate_promocode_discount
from storefront.repos.promocode_repo import PromocodeRepo
from storefront.utils.logging import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class PromocodeQuote:
    """Outcome of a successful validation, carried into the order commit."""

    promocode_id: int
    code: str
    discount_type: DiscountType
    discount: Decimal


class PromocodeService:
    """
    Validates promocodes against a candidate subtotal and redeems them.

    validate() only reads. redeem() is the conditional usage increment and is
    called exclusively from inside the order commit transaction; it never
    commits on its own.
    """

    def __init__(self, db: Session):
        self.repo = PromocodeRepo(db)

    def validate(self, code: str, candidate_subtotal, now: datetime | None = None) -> PromocodeQuote:
        now = now or datetime.now(timezone.utc)
        subtotal = to_money(candidate_subtotal)

        promocode = self.repo.find_valid(code, now)
        if not promocode:
            logger.warning(f"Promocode {code} rejected: invalid or expired")
            raise InvalidOrExpiredPromocodeError(code)

        if promocode.max_uses is not None and promocode.used_count >= promocode.max_uses:
            logger.warning(f"Promocode {code} rejected: {promocode.used_count}/{promocode.max_uses} uses")
            raise UsageLimitReachedError(code)

        if promocode.min_order_amount is not None and subtotal < to_money(promocode.min_order_amount):
            logger.warning(f"Promocode {code} rejected: subtotal {subtotal} below {promocode.min_order_amount}")
            raise BelowMinimumOrderAmountError(code, to_money(promocode.min_order_amount))

        discount = calculate_promocode_discount(promocode.discount_type, promocode.discount_value, subtotal)

        return PromocodeQuote(
            promocode_id=promocode.id,
            code=promocode.code,
            discount_type=DiscountType(promocode.discount_type),
            discount=discount,
        )

    def redeem(self, quote: PromocodeQuote) -> None:
        if not self.repo.increment_usage(quote.promocode_id):
            # lost the race for the last use between validation and commit
            logger.warning(f"Promocode {quote.code} redemption lost: usage cap reached")
            raise UsageLimitReachedError(quote.code)

        logger.info(f"Promocode {quote.code} redeemed")
