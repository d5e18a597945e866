
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from typing import List
from storefront.core.exceptions import AppException, ErrorCode
from storefront.database import get_db
from storefront.schemas.catalog import (
    CategoryCreate, CategoryResponse, ProductCreate, ProductUpdate, ProductResponse
)
from storefront.services.catalog_service import CatalogService

router = APIRouter(prefix="/stores/{store_id}", tags=["catalog"])


@router.post("/categories", response_model=CategoryResponse, status_code=201)
def create_category(store_id: int, category: CategoryCreate, db: Session = Depends(get_db)):
    return CatalogService.create_category(db, store_id, category)


@router.get("/categories", response_model=List[CategoryResponse])
def list_categories(store_id: int, db: Session = Depends(get_db)):
    return CatalogService.get_categories(db, store_id)


@router.post("/products", response_model=ProductResponse, status_code=201)
def create_product(store_id: int, product: ProductCreate, db: Session = Depends(get_db)):
    return CatalogService.create_product(db, store_id, product)


@router.get("/products", response_model=List[ProductResponse])
def list_products(store_id: int, db: Session = Depends(get_db)):
    return CatalogService.get_products(db, store_id)


@router.put("/products/{product_id}", response_model=ProductResponse)
def update_product(store_id: int, product_id: int, payload: ProductUpdate, db: Session = Depends(get_db)):
    updated = CatalogService.update_product(db, store_id, product_id, payload)
    if not updated:
        raise AppException(404, "Product not found", ErrorCode.PRODUCT_NOT_FOUND)
    return updated
