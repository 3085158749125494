# storefront/api/routers/carts.py
from fastapi import APIRouter, Depends, Header, HTTPException, Query
from sqlalchemy.orm import Session

from storefront.data.database import get_db
from storefront.domain.errors import StorefrontError
from storefront.domain.schemas import (
    AddCartItemIn,
    ApplyPromocodeIn,
    CartOut,
    UpdateCartItemIn,
)
from storefront.services.cart_service import CartService

router = APIRouter(prefix="/cart", tags=["cart"])


def get_cart_service(db: Session = Depends(get_db)) -> CartService:
    return CartService(db)


class CartOwner:
    """Caller identity: X-User-Id from the auth gateway, else the anonymous X-Session-Token."""

    def __init__(
        self,
        x_user_id: int | None = Header(default=None),
        x_session_token: str | None = Header(default=None),
    ):
        self.user_id = x_user_id
        self.session_token = x_session_token


@router.get("", response_model=CartOut)
def get_cart(
    promocode: str | None = Query(default=None),
    owner: CartOwner = Depends(),
    svc: CartService = Depends(get_cart_service),
):
    try:
        return svc.get_summary(owner.user_id, owner.session_token, promocode)
    except StorefrontError as e:
        raise HTTPException(status_code=e.status_code, detail=e.to_detail())


@router.delete("", response_model=CartOut)
def clear_cart(
    owner: CartOwner = Depends(),
    svc: CartService = Depends(get_cart_service),
):
    try:
        svc.clear(owner.user_id, owner.session_token)
        return svc.get_summary(owner.user_id, owner.session_token)
    except StorefrontError as e:
        raise HTTPException(status_code=e.status_code, detail=e.to_detail())


@router.post("/items", response_model=CartOut)
def add_item(
    payload: AddCartItemIn,
    owner: CartOwner = Depends(),
    svc: CartService = Depends(get_cart_service),
):
    try:
        return svc.add_line(payload.product_id, payload.quantity, owner.user_id, owner.session_token)
    except StorefrontError as e:
        raise HTTPException(status_code=e.status_code, detail=e.to_detail())


@router.patch("/items/{item_id}", response_model=CartOut)
def update_item(
    item_id: int,
    payload: UpdateCartItemIn,
    owner: CartOwner = Depends(),
    svc: CartService = Depends(get_cart_service),
):
    try:
        return svc.update_line(item_id, payload.quantity, owner.user_id, owner.session_token)
    except StorefrontError as e:
        raise HTTPException(status_code=e.status_code, detail=e.to_detail())


@router.delete("/items/{item_id}", response_model=CartOut)
def remove_item(
    item_id: int,
    owner: CartOwner = Depends(),
    svc: CartService = Depends(get_cart_service),
):
    try:
        return svc.remove_line(item_id, owner.user_id, owner.session_token)
    except StorefrontError as e:
        raise HTTPException(status_code=e.status_code, detail=e.to_detail())


@router.post("/promocode", response_model=CartOut)
def preview_promocode(
    payload: ApplyPromocodeIn,
    owner: CartOwner = Depends(),
    svc: CartService = Depends(get_cart_service),
):
    """
    Shows the cart with the code's discount. Nothing is redeemed here,
    the code has to be sent again with the checkout.
    """
    try:
        return svc.get_summary(owner.user_id, owner.session_token, payload.code)
    except StorefrontError as e:
        raise HTTPException(status_code=e.status_code, detail=e.to_detail())


@router.post("/merge", response_model=CartOut)
def merge_cart(
    owner: CartOwner = Depends(),
    svc: CartService = Depends(get_cart_service),
):
    if owner.user_id is None or not owner.session_token:
        raise HTTPException(status_code=400, detail="X-User-Id and X-Session-Token are required")

    try:
        svc.merge_session_cart(owner.user_id, owner.session_token)
        return svc.get_summary(owner.user_id)
    except StorefrontError as e:
        raise HTTPException(status_code=e.status_code, detail=e.to_detail())
