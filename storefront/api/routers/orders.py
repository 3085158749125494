# storefront/api/routers/orders.py
from fastapi import APIRouter, Depends, Header, HTTPException, Query
from sqlalchemy.orm import Session

from storefront.data.database import get_db
from storefront.domain.enums import OrderStatus
from storefront.domain.errors import StorefrontError
from storefront.domain.schemas import CheckoutIn, OrderListOut, OrderOut, UpdateOrderStatusIn
from storefront.services.notification_service import NotificationService
from storefront.services.order_service import OrderService
from storefront.services.payment_service import PaymentService

router = APIRouter(prefix="/orders", tags=["orders"])
admin_router = APIRouter(prefix="/admin/orders", tags=["admin"])


def get_notifier():
    return NotificationService()


def get_payment_service():
    return PaymentService()


def get_order_service(
    db: Session = Depends(get_db),
    notifier=Depends(get_notifier),
    payment=Depends(get_payment_service),
) -> OrderService:
    return OrderService(db, notifier=notifier, payment=payment)


@router.post("", response_model=OrderOut, status_code=201)
def create_order(
    payload: CheckoutIn,
    x_user_id: int = Header(...),
    svc: OrderService = Depends(get_order_service),
):
    """
    Creates an order from the caller's cart in one transaction.
    The operator notification is sent asynchronously.
    """
    try:
        return svc.create_order(x_user_id, payload)
    except StorefrontError as e:
        raise HTTPException(status_code=e.status_code, detail=e.to_detail())


@router.get("", response_model=OrderListOut)
def list_orders(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    x_user_id: int = Header(...),
    svc: OrderService = Depends(get_order_service),
):
    return svc.list_user_orders(x_user_id, page, limit)


@router.get("/number/{order_number}", response_model=OrderOut)
def get_order_by_number(
    order_number: str,
    x_user_id: int = Header(...),
    svc: OrderService = Depends(get_order_service),
):
    try:
        return svc.get_order_by_number(order_number, x_user_id)
    except StorefrontError as e:
        raise HTTPException(status_code=e.status_code, detail=e.to_detail())


@router.get("/{order_id}", response_model=OrderOut)
def get_order(
    order_id: int,
    x_user_id: int = Header(...),
    svc: OrderService = Depends(get_order_service),
):
    try:
        return svc.get_order(order_id, x_user_id)
    except StorefrontError as e:
        raise HTTPException(status_code=e.status_code, detail=e.to_detail())


@router.post("/{order_id}/cancel", response_model=OrderOut)
def cancel_order(
    order_id: int,
    x_user_id: int = Header(...),
    svc: OrderService = Depends(get_order_service),
):
    try:
        return svc.cancel_order(order_id, x_user_id)
    except StorefrontError as e:
        raise HTTPException(status_code=e.status_code, detail=e.to_detail())


@admin_router.get("", response_model=OrderListOut)
def admin_list_orders(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    status: OrderStatus | None = Query(default=None),
    svc: OrderService = Depends(get_order_service),
):
    return svc.list_orders(page, limit, status)


@admin_router.patch("/{order_id}/status", response_model=OrderOut)
def admin_update_status(
    order_id: int,
    payload: UpdateOrderStatusIn,
    svc: OrderService = Depends(get_order_service),
):
    try:
        return svc.update_order_status(order_id, payload.status, payload.tracking_number)
    except StorefrontError as e:
        raise HTTPException(status_code=e.status_code, detail=e.to_detail())
