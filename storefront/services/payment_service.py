# storefront/services/payment_service.py
import hashlib
import hmac
from decimal import Decimal
from typing import Any, Dict, Mapping
from urllib.parse import urlencode

from storefront.domain.errors import PaymentNotConfiguredError
from storefront.domain.money import quantize_money
from storefront.utils.settings import API_URL, FRONTEND_URL, PAYMENT_FORM_URL, PAYMENT_SECRET_KEY
from storefront.utils.logging import get_logger

logger = get_logger(__name__)


class PaymentService:
    """
    Payment gateway collaborator: builds signed payment-form links for
    committed orders and verifies the gateway's callback signatures.

    The signature is HMAC-SHA256 over "key:value" pairs sorted by key and
    joined with ";".
    """

    def __init__(
        self,
        form_url: str | None = None,
        secret_key: str | None = None,
        frontend_url: str | None = None,
        api_url: str | None = None,
    ):
        self.form_url = PAYMENT_FORM_URL if form_url is None else form_url
        self.secret_key = PAYMENT_SECRET_KEY if secret_key is None else secret_key
        self.frontend_url = (frontend_url or FRONTEND_URL).rstrip("/")
        self.api_url = (api_url or API_URL).rstrip("/")

    @property
    def configured(self) -> bool:
        return bool(self.form_url and self.secret_key)

    def generate_payment_link(self, order: Dict[str, Any]) -> str:
        if not self.configured:
            raise PaymentNotConfiguredError()

        data = {
            "order_id": order["order_number"],
            "customer_name": order["customer_name"],
            "success_url": f"{self.frontend_url}/orders/{order['id']}?payment=success",
            "fail_url": f"{self.frontend_url}/orders/{order['id']}?payment=failed",
            "notification_url": f"{self.api_url}/webhooks/payment",
        }
        if order.get("customer_email"):
            data["customer_email"] = order["customer_email"]
        if order.get("customer_phone"):
            data["customer_phone"] = order["customer_phone"]

        for index, item in enumerate(order["items"]):
            data[f"products[{index}][name]"] = item["product_name"]
            data[f"products[{index}][price]"] = str(quantize_money(item["applied_price"]))
            data[f"products[{index}][quantity]"] = str(item["quantity"])

        data["sign"] = self.sign(data)

        logger.info(f"Generated payment link for order {order['order_number']}")
        return f"{self.form_url}?{urlencode(data)}"

    def sign(self, data: Mapping[str, Any]) -> str:
        payload = ";".join(f"{key}:{self._text(data[key])}" for key in sorted(data))
        return hmac.new(self.secret_key.encode(), payload.encode(), hashlib.sha256).hexdigest()

    def verify_signature(self, data: Mapping[str, Any]) -> bool:
        if not self.secret_key:
            logger.error("Cannot verify payment signature: secret key not configured")
            return False

        received = data.get("sign")
        if not received:
            logger.error("Payment callback signature is missing")
            return False

        expected = self.sign({k: v for k, v in data.items() if k != "sign"})
        valid = hmac.compare_digest(expected, str(received))
        if not valid:
            logger.error(f"Invalid payment callback signature for order {data.get('order_num')}")
        return valid

    @staticmethod
    def _text(value: Any) -> str:
        if isinstance(value, Decimal):
            return str(quantize_money(value))
        return str(value)
