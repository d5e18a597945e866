from pydantic import BaseModel, Field, ConfigDict
from typing import List, Optional


class CategoryCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    sort_order: int = 0


class CategoryResponse(BaseModel):
    id: int
    store_id: int
    name: str
    sort_order: int

    model_config = ConfigDict(from_attributes=True)


class ProductCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    category_id: Optional[int] = None
    price: int = Field(..., ge=0)
    discount_price: Optional[int] = Field(default=None, ge=0)
    is_active: bool = True
    image_urls: List[str] = Field(default_factory=list)


class ProductUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    description: Optional[str] = None
    category_id: Optional[int] = None
    price: Optional[int] = Field(default=None, ge=0)
    discount_price: Optional[int] = Field(default=None, ge=0)
    is_active: Optional[bool] = None
    image_urls: Optional[List[str]] = None


class ProductResponse(BaseModel):
    id: int
    store_id: int
    category_id: Optional[int] = None
    name: str
    description: Optional[str] = None
    price: int
    discount_price: Optional[int] = None
    is_active: bool
    image_urls: List[str]

    model_config = ConfigDict(from_attributes=True)
