# storefront/domain/schemas.py
from pydantic import BaseModel, ConfigDict, EmailStr, Field
from typing import List
from decimal import Decimal
from datetime import datetime

from storefront.domain.enums import OrderStatus, PaymentMethod, PaymentStatus


class AddCartItemIn(BaseModel):
    """Schema for adding a product to the cart."""

    product_id: int = Field(..., gt=0, description="Product ID")
    quantity: int = Field(..., ge=1, le=100, description="Quantity, 1..100")


class UpdateCartItemIn(BaseModel):
    """Schema for changing a cart line's quantity."""

    quantity: int = Field(..., ge=1, le=100, description="Quantity, 1..100")


class ApplyPromocodeIn(BaseModel):
    code: str = Field(..., min_length=4, max_length=20, pattern=r"^[A-Z0-9]+$")


class CartItemOut(BaseModel):
    id: int
    product_id: int
    product_name: str
    product_slug: str
    product_image: str
    product_article: str
    base_price: Decimal
    applied_price: Decimal
    has_promotion: bool
    allow_promocode: bool
    quantity: int
    subtotal: Decimal
    in_stock: bool
    available_quantity: int


class CartTotalsOut(BaseModel):
    subtotal: Decimal
    discount: Decimal
    promocode_discount: Decimal
    total: Decimal
    items_count: int

    model_config = ConfigDict(from_attributes=True)


class CartPromocodeOut(BaseModel):
    code: str
    discount: Decimal


class CartOut(BaseModel):
    """Schema for the cart summary (response)."""

    id: int
    session_token: str | None = None
    items: List[CartItemOut]
    totals: CartTotalsOut
    promocode: CartPromocodeOut | None = None
    created_at: datetime
    updated_at: datetime


class CheckoutIn(BaseModel):
    """Schema for creating an order from the caller's cart."""

    customer_name: str = Field(..., min_length=2, max_length=100)
    customer_phone: str = Field(..., pattern=r"^\+?[0-9]{10,15}$")
    customer_email: EmailStr
    customer_address: str = Field(..., min_length=10, max_length=500)
    comment: str | None = Field(default=None, max_length=1000)
    payment_method: PaymentMethod
    promocode_code: str | None = None


class OrderItemOut(BaseModel):
    id: int
    product_id: int
    product_name: str
    product_article: str
    product_image: str
    base_price: Decimal
    applied_price: Decimal
    had_promotion: bool
    quantity: int
    subtotal: Decimal


class OrderOut(BaseModel):
    """Schema for an order (response)."""

    id: int
    order_number: str
    user_id: int
    status: OrderStatus
    payment_status: PaymentStatus
    payment_method: PaymentMethod
    customer_name: str
    customer_phone: str
    customer_email: str
    customer_address: str
    comment: str | None = None
    subtotal: Decimal
    discount: Decimal
    promocode_discount: Decimal | None = None
    total: Decimal
    tracking_number: str | None = None
    created_at: datetime
    updated_at: datetime
    paid_at: datetime | None = None
    shipped_at: datetime | None = None
    items: List[OrderItemOut]
    payment_url: str | None = None


class OrderListOut(BaseModel):
    orders: List[OrderOut]
    total: int
    page: int
    limit: int


class UpdateOrderStatusIn(BaseModel):
    status: OrderStatus
    tracking_number: str | None = Field(default=None, max_length=64)


class PaymentWebhookIn(BaseModel):
    """Payment gateway callback. Extra gateway fields take part in the signature."""

    order_num: str
    payment_status: str
    sign: str

    model_config = ConfigDict(extra="allow")
