from pydantic import BaseModel, Field, ConfigDict, field_validator
from typing import Annotated, List, Optional, Set, Union, Literal
from datetime import datetime

from storefront.core.clock import as_utc

DiscountType = Literal["code", "automatic", "order_amount", "buy_x_get_y", "bundle", "free_delivery"]
ValueType = Literal["percentage", "fixed", "free"]
AppliesTo = Literal["orders", "products", "categories"]
MinRequirement = Literal["none", "amount", "quantity"]


# Evaluation rules, one model per discount type
class _RuleBase(BaseModel):
    id: int
    store_id: int
    title: str = ""
    is_active: bool = True
    start_date: datetime
    end_date: Optional[datetime] = None
    min_requirement: MinRequirement = "none"
    min_value: int = 0
    max_total_uses: Optional[int] = None
    max_per_customer: Optional[int] = None
    max_total_amount: Optional[int] = None

    @field_validator("start_date", "end_date")
    @classmethod
    def _naive_means_utc(cls, v):
        return as_utc(v)

    def is_live(self, now: datetime) -> bool:
        if not self.is_active or now < self.start_date:
            return False
        return self.end_date is None or now <= self.end_date


class _ScopedRule(_RuleBase):
    value_type: Literal["percentage", "fixed"]
    value: int = Field(..., ge=0)
    applies_to: AppliesTo = "orders"
    target_product_ids: Set[int] = Field(default_factory=set)
    target_category_ids: Set[int] = Field(default_factory=set)


class CodeRule(_ScopedRule):
    type: Literal["code"]
    code: str


class AutomaticRule(_ScopedRule):
    type: Literal["automatic"]


class OrderAmountRule(_ScopedRule):
    type: Literal["order_amount"]


class BuyXGetYRule(_RuleBase):
    type: Literal["buy_x_get_y"]
    buy_product_ids: Set[int] = Field(default_factory=set)
    get_product_ids: Set[int] = Field(default_factory=set)


class BundleRule(_RuleBase):
    type: Literal["bundle"]
    value_type: Literal["percentage", "fixed"]
    value: int = Field(..., ge=0)
    target_product_ids: Set[int] = Field(default_factory=set)


class FreeDeliveryRule(_RuleBase):
    type: Literal["free_delivery"]
    value_type: Literal["free"] = "free"


DiscountRule = Annotated[
    Union[CodeRule, AutomaticRule, OrderAmountRule, BuyXGetYRule, BundleRule, FreeDeliveryRule],
    Field(discriminator="type"),
]


# Request schemas
class DiscountCreate(BaseModel):
    type: DiscountType = Field(..., description="code | automatic | order_amount | buy_x_get_y | bundle | free_delivery")
    title: str = Field(default="", max_length=200)
    code: Optional[str] = Field(default=None, max_length=64)
    is_active: bool = True
    value_type: ValueType = "percentage"
    value: int = Field(default=0, ge=0)
    applies_to: AppliesTo = "orders"
    target_product_ids: List[int] = Field(default_factory=list)
    target_category_ids: List[int] = Field(default_factory=list)
    buy_product_ids: List[int] = Field(default_factory=list)
    get_product_ids: List[int] = Field(default_factory=list)
    min_requirement: MinRequirement = "none"
    min_value: int = Field(default=0, ge=0)
    max_total_uses: Optional[int] = Field(default=None, ge=1)
    max_per_customer: Optional[int] = Field(default=None, ge=1)
    max_total_amount: Optional[int] = Field(default=None, ge=0)
    start_date: Optional[datetime] = Field(default=None, description="Defaults to the creation time")
    end_date: Optional[datetime] = None


class DiscountUpdate(BaseModel):
    title: Optional[str] = Field(default=None, max_length=200)
    code: Optional[str] = Field(default=None, max_length=64)
    is_active: Optional[bool] = None
    value_type: Optional[ValueType] = None
    value: Optional[int] = Field(default=None, ge=0)
    applies_to: Optional[AppliesTo] = None
    target_product_ids: Optional[List[int]] = None
    target_category_ids: Optional[List[int]] = None
    buy_product_ids: Optional[List[int]] = None
    get_product_ids: Optional[List[int]] = None
    min_requirement: Optional[MinRequirement] = None
    min_value: Optional[int] = Field(default=None, ge=0)
    max_total_uses: Optional[int] = Field(default=None, ge=1)
    max_per_customer: Optional[int] = Field(default=None, ge=1)
    max_total_amount: Optional[int] = Field(default=None, ge=0)
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None


# Response schemas
class DiscountResponse(BaseModel):
    id: int
    store_id: int
    type: str
    title: str
    code: Optional[str] = None
    is_active: bool
    value_type: str
    value: int
    applies_to: str
    target_product_ids: List[int]
    target_category_ids: List[int]
    buy_product_ids: List[int]
    get_product_ids: List[int]
    min_requirement: str
    min_value: int
    max_total_uses: Optional[int] = None
    max_per_customer: Optional[int] = None
    max_total_amount: Optional[int] = None
    start_date: datetime
    end_date: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class DiscountSummary(BaseModel):
    """What the shopper sees about one applied discount."""
    id: int
    type: str
    title: str = ""
    code: Optional[str] = None
    value_type: str
    amount: int
