# storefront/services/notification_service.py
from html import escape
from typing import Any, Dict

import requests
from requests import RequestException
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from storefront.celery_worker import celery_app
from storefront.domain.money import quantize_money
from storefront.utils.settings import (
    FRONTEND_URL,
    TELEGRAM_ADMIN_CHAT_ID,
    TELEGRAM_API_URL,
    TELEGRAM_BOT_TOKEN,
)
from storefront.utils.logging import get_logger

logger = get_logger(__name__)


def telegram_retry():
    return retry(
        reraise=True,
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=0.3, min=0.3, max=3),
        retry=retry_if_exception_type(RequestException),
    )


class TelegramClient:
    def __init__(self, token: str | None = None, base_url: str | None = None, timeout: int = 5):
        self.token = TELEGRAM_BOT_TOKEN if token is None else token
        self.base_url = (base_url or TELEGRAM_API_URL).rstrip("/")
        self.timeout = timeout

    @property
    def configured(self) -> bool:
        return bool(self.token)

    @telegram_retry()
    def send_message(self, chat_id: str, text: str) -> dict:
        url = f"{self.base_url}/bot{self.token}/sendMessage"
        logger.info(f"TelegramClient sendMessage to chat {chat_id}")

        resp = requests.post(
            url,
            json={"chat_id": chat_id, "text": text, "parse_mode": "HTML"},
            timeout=self.timeout,
        )
        resp.raise_for_status()
        return resp.json()


class NotificationService:
    """
    Best-effort notifications about committed orders.
    Delivery runs in a Celery worker; enqueue failures are the caller's to log.
    """

    @staticmethod
    def notify_new_order(order: Dict[str, Any]) -> None:
        send_order_notification_task.delay(order_payload(order))

    @staticmethod
    def notify_order_status(order: Dict[str, Any]) -> None:
        send_order_status_task.delay(status_payload(order))


def order_payload(order: Dict[str, Any]) -> Dict[str, Any]:
    """JSON-safe subset of an order for the task queue."""
    return {
        "order_number": order["order_number"],
        "customer_name": order["customer_name"],
        "total": str(quantize_money(order["total"])),
        "items": [
            {
                "product_name": item["product_name"],
                "quantity": item["quantity"],
                "price": str(quantize_money(item["applied_price"])),
            }
            for item in order["items"]
        ],
    }


def format_new_order_message(payload: Dict[str, Any]) -> str:
    lines = [
        f"  • {escape(item['product_name'])} x{item['quantity']} - "
        f"{quantize_money(item['price']) * item['quantity']}"
        for item in payload["items"]
    ]
    return "\n".join(
        [
            f"<b>New order #{escape(payload['order_number'])}</b>",
            "",
            f"Customer: {escape(payload['customer_name'])}",
            f"Total: <b>{payload['total']}</b>",
            "",
            "Items:",
            *lines,
            "",
            f"{FRONTEND_URL.rstrip('/')}/admin/orders/{payload['order_number']}",
        ]
    )


@celery_app.task(name="storefront.services.notification_service.send_order_notification_task")
def send_order_notification_task(payload: Dict[str, Any], chat_id: str | None = None) -> Dict[str, Any]:
    chat_id = chat_id or TELEGRAM_ADMIN_CHAT_ID
    return _deliver(payload["order_number"], chat_id, format_new_order_message(payload), "Operator")


STATUS_TEXT = {
    "PAID": "Paid",
    "PROCESSING": "Processing",
    "SHIPPED": "Shipped",
    "CANCELLED": "Cancelled",
}


def status_payload(order: Dict[str, Any]) -> Dict[str, Any]:
    # customers are addressed by the id the auth gateway issued, their Telegram chat
    return {
        "order_number": order["order_number"],
        "chat_id": str(order["user_id"]),
        "status": order["status"],
        "payment_status": order["payment_status"],
        "tracking_number": order.get("tracking_number"),
    }


def format_order_status_message(payload: Dict[str, Any]) -> str:
    status = STATUS_TEXT.get(payload["status"], payload["status"])
    lines = [
        f"Order #{escape(payload['order_number'])}",
        "",
        f"Status: <b>{escape(status)}</b>",
    ]
    if payload["payment_status"] == "PAID":
        lines.append("Payment received")
    if payload.get("tracking_number"):
        lines += ["", f"Tracking number: <code>{escape(payload['tracking_number'])}</code>"]
    lines += ["", f"{FRONTEND_URL.rstrip('/')}/orders"]
    return "\n".join(lines)


@celery_app.task(name="storefront.services.notification_service.send_order_status_task")
def send_order_status_task(payload: Dict[str, Any], chat_id: str | None = None) -> Dict[str, Any]:
    chat_id = chat_id or payload.get("chat_id")
    return _deliver(payload["order_number"], chat_id, format_order_status_message(payload), "Customer")


def _deliver(order_number: str, chat_id: str | None, text: str, recipient: str) -> Dict[str, Any]:
    client = TelegramClient()

    if not client.configured or not chat_id:
        logger.warning(f"[NOTIFICATION] Telegram not configured, skipping order {order_number}")
        return {"order_number": order_number, "status": "skipped"}

    try:
        client.send_message(chat_id, text)
    except RequestException as e:
        logger.error(f"[NOTIFICATION] Failed to notify about order {order_number}: {e}")
        return {"order_number": order_number, "status": "failed"}

    logger.info(f"[NOTIFICATION] {recipient} notified about order {order_number}")
    return {"order_number": order_number, "status": "sent"}
