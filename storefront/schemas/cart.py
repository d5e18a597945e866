from pydantic import BaseModel, Field
from typing import List, Optional, Literal

from storefront.schemas.discount import DiscountSummary


# Cart related schemas
class CartItem(BaseModel):
    product_id: int = Field(..., gt=0)
    quantity: int = Field(..., gt=0)


class CartLine(BaseModel):
    """A cart item resolved against the catalog, priced in whole currency units."""
    product_id: int
    name: str
    quantity: int = Field(..., ge=1)
    unit_price: int = Field(..., ge=0)
    category_id: Optional[int] = None
    image_url: Optional[str] = None

    @property
    def line_total(self) -> int:
        return self.unit_price * self.quantity


class CheckoutRequest(BaseModel):
    items: List[CartItem]
    discount_code: Optional[str] = Field(default=None, max_length=64)
    customer_phone: Optional[str] = Field(default=None, max_length=30)


# Response schemas for cart pricing
class PricedCart(BaseModel):
    lines: List[CartLine]
    subtotal: int
    discount_amount: int = 0
    total: int
    applied_discounts: List[DiscountSummary] = Field(default_factory=list)
    free_delivery: bool = False


class CodeError(BaseModel):
    """Why an entered discount code was left out; the cart is still priced."""
    error: Literal["invalid_code"] = "invalid_code"
    reason: Literal["not_found", "not_eligible", "exhausted"]
    code: str
    message: str


class CheckoutPreviewResponse(BaseModel):
    cart: PricedCart
    code_error: Optional[CodeError] = None
