"""Business errors raised by the cart and checkout services."""

from decimal import Decimal


class StorefrontError(Exception):
    """Base exception for all storefront errors."""

    code = "INTERNAL_ERROR"
    status_code = 500
    retryable = False

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)

    def to_detail(self) -> dict:
        return {"code": self.code, "message": self.message}


class EmptyCartError(StorefrontError):
    """Raised when checkout is attempted on a cart with no lines."""

    code = "EMPTY_CART"
    status_code = 400

    def __init__(self):
        super().__init__("Cart is empty")


class InvalidQuantityError(StorefrontError):
    code = "INVALID_QUANTITY"
    status_code = 400

    def __init__(self, quantity: int):
        self.quantity = quantity
        super().__init__("Quantity must be greater than 0")


class InsufficientStockError(StorefrontError):
    """Raised when a requested quantity exceeds the product's stock."""

    code = "INSUFFICIENT_STOCK"
    status_code = 400

    def __init__(self, product_id: int, product_name: str, available: int | None = None, requested: int | None = None):
        self.product_id = product_id
        self.product_name = product_name
        self.available = available
        self.requested = requested
        msg = f"Insufficient stock for {product_name}"
        if available is not None and requested is not None:
            msg = f"{msg}. Available: {available}, requested: {requested}"
        super().__init__(msg)


class InvalidOrExpiredPromocodeError(StorefrontError):
    code = "INVALID_PROMOCODE"
    status_code = 400

    def __init__(self, code: str):
        self.promocode = code
        super().__init__(f"Invalid or expired promocode: {code}")


class UsageLimitReachedError(StorefrontError):
    """Raised when a promocode has no uses left. Retrying without the code succeeds."""

    code = "PROMOCODE_LIMIT_REACHED"
    status_code = 409
    retryable = True

    def __init__(self, code: str):
        self.promocode = code
        super().__init__(f"Promocode usage limit reached: {code}")


class BelowMinimumOrderAmountError(StorefrontError):
    code = "BELOW_MINIMUM_ORDER_AMOUNT"
    status_code = 400

    def __init__(self, code: str, minimum: Decimal):
        self.promocode = code
        self.minimum = minimum
        super().__init__(f"Minimum order amount for promocode {code}: {minimum}")


class NotFoundError(StorefrontError):
    """Raised when a resource is missing or belongs to someone else."""

    code = "NOT_FOUND"
    status_code = 404

    def __init__(self, resource: str, identifier=None):
        self.resource = resource
        self.identifier = identifier
        msg = f"{resource} not found"
        if identifier is not None:
            msg = f"{resource} with identifier '{identifier}' not found"
        super().__init__(msg)


class OrderCannotBeCancelledError(StorefrontError):
    code = "ORDER_CANNOT_BE_CANCELLED"
    status_code = 400

    def __init__(self, order_number: str, status: str):
        self.order_number = order_number
        self.status = status
        super().__init__(f"Order {order_number} cannot be cancelled in status {status}")


class InvalidStatusTransitionError(StorefrontError):
    code = "INVALID_STATUS_TRANSITION"
    status_code = 400


class PersistenceFailureError(StorefrontError):
    """Raised when the store could not commit; the whole unit was rolled back."""

    code = "DATABASE_ERROR"
    status_code = 503
    retryable = True


class PaymentNotConfiguredError(StorefrontError):
    code = "PAYMENT_NOT_CONFIGURED"
    status_code = 503

    def __init__(self):
        super().__init__("Payment gateway is not configured")
