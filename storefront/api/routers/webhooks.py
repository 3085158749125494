# storefront/api/routers/webhooks.py
from fastapi import APIRouter, Depends, HTTPException

from storefront.api.routers.orders import get_order_service, get_payment_service
from storefront.domain.errors import StorefrontError
from storefront.domain.schemas import PaymentWebhookIn
from storefront.services.order_service import OrderService
from storefront.services.payment_service import PaymentService
from storefront.utils.logging import get_logger

logger = get_logger(__name__)

router = APIRouter(prefix="/webhooks", tags=["webhooks"])

PAID_STATUSES = {"success", "paid"}


@router.post("/payment")
def payment_callback(
    payload: PaymentWebhookIn,
    payment: PaymentService = Depends(get_payment_service),
    svc: OrderService = Depends(get_order_service),
):
    data = payload.model_dump()
    if not payment.verify_signature(data):
        raise HTTPException(status_code=400, detail="Invalid signature")

    if payload.payment_status.lower() not in PAID_STATUSES:
        logger.info(f"Payment callback for order {payload.order_num}: {payload.payment_status}, ignored")
        return {"status": "ignored"}

    try:
        svc.confirm_payment(payload.order_num)
    except StorefrontError as e:
        raise HTTPException(status_code=e.status_code, detail=e.to_detail())

    return {"status": "ok"}
