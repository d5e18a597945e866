
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from typing import List
from storefront.core.exceptions import AppException, ErrorCode
from storefront.database import get_db
from storefront.schemas.discount import DiscountCreate, DiscountUpdate, DiscountResponse
from storefront.services.discount_service import DiscountService

router = APIRouter(prefix="/stores/{store_id}", tags=["discounts"])


def _not_found():
    return AppException(404, "Discount not found", ErrorCode.DISCOUNT_NOT_FOUND)


@router.post("/discounts", response_model=DiscountResponse, status_code=201)
def create_discount(store_id: int, discount: DiscountCreate, db: Session = Depends(get_db)):
    return DiscountService.create_discount(db, store_id, discount)


@router.get("/discounts", response_model=List[DiscountResponse])
def list_discounts(store_id: int, skip: int = 0, limit: int = 100, db: Session = Depends(get_db)):
    return DiscountService.get_discounts(db, store_id, skip, limit)


@router.get("/discounts/{discount_id}", response_model=DiscountResponse)
def get_discount(store_id: int, discount_id: int, db: Session = Depends(get_db)):
    d = DiscountService.get_discount(db, store_id, discount_id)
    if not d:
        raise _not_found()
    return d


@router.put("/discounts/{discount_id}", response_model=DiscountResponse)
def update_discount(store_id: int, discount_id: int, payload: DiscountUpdate, db: Session = Depends(get_db)):
    updated = DiscountService.update_discount(db, store_id, discount_id, payload)
    if not updated:
        raise _not_found()
    return updated


@router.delete("/discounts/{discount_id}", status_code=204)
def delete_discount(store_id: int, discount_id: int, db: Session = Depends(get_db)):
    if not DiscountService.delete_discount(db, store_id, discount_id):
        raise _not_found()
    return
