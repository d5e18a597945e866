from pydantic import BaseModel, Field, ConfigDict
from typing import List, Optional, Literal
from datetime import datetime

from storefront.schemas.cart import CartItem, CodeError
from storefront.schemas.discount import DiscountSummary

OrderStatus = Literal["pending", "confirmed", "completed", "cancelled"]
PaymentStatus = Literal["unpaid", "confirming", "paid", "refunded", "voided"]
FulfillmentStatus = Literal["unfulfilled", "partially_fulfilled", "fulfilled"]


class OrderCreate(BaseModel):
    items: List[CartItem] = Field(..., min_length=1)
    customer_name: str = Field(..., min_length=1, max_length=200)
    customer_phone: str = Field(..., min_length=1, max_length=30)
    customer_address: Optional[str] = None
    customer_comment: Optional[str] = None
    payment_method: Optional[str] = Field(default=None, max_length=30)
    discount_code: Optional[str] = Field(default=None, max_length=64)


class OrderUpdate(BaseModel):
    status: Optional[OrderStatus] = None
    payment_status: Optional[PaymentStatus] = None
    fulfillment_status: Optional[FulfillmentStatus] = None
    internal_note: Optional[str] = None


class OrderItem(BaseModel):
    product_id: int
    name: str
    quantity: int
    unit_price: int
    image_url: Optional[str] = None


class OrderResponse(BaseModel):
    id: int
    store_id: int
    order_number: int
    customer_name: str
    customer_phone: str
    customer_address: Optional[str] = None
    customer_comment: Optional[str] = None
    payment_method: Optional[str] = None
    items: List[OrderItem]
    subtotal: int
    discount_amount: int
    total: int
    applied_discounts: List[DiscountSummary]
    free_delivery: bool
    status: str
    payment_status: str
    fulfillment_status: str
    internal_note: Optional[str] = None
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class PlaceOrderResponse(BaseModel):
    order: OrderResponse
    code_error: Optional[CodeError] = None
