# storefront/domain/enums.py
from enum import Enum


class DiscountType(str, Enum):
    PERCENT = "PERCENT"
    FIXED = "FIXED"


class OrderStatus(str, Enum):
    PAID = "PAID"
    PROCESSING = "PROCESSING"
    SHIPPED = "SHIPPED"
    CANCELLED = "CANCELLED"


class PaymentMethod(str, Enum):
    ONLINE = "ONLINE"
    SBP = "SBP"
    CASH_ON_DELIVERY = "CASH_ON_DELIVERY"


class PaymentStatus(str, Enum):
    PENDING = "PENDING"
    PAID = "PAID"
    FAILED = "FAILED"


class CheckoutState(str, Enum):
    """Stages of the cart-to-order commit; any failure ends in ABORTED."""

    STARTED = "STARTED"
    STOCK_CHECKED = "STOCK_CHECKED"
    PRICED = "PRICED"
    PERSISTED = "PERSISTED"
    COMMITTED = "COMMITTED"
    ABORTED = "ABORTED"
