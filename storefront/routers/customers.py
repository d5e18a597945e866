
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from typing import List
from storefront.core.exceptions import AppException, ErrorCode
from storefront.database import get_db
from storefront.schemas.customer import CustomerCreate, CustomerUpdate, CustomerResponse
from storefront.services.customer_service import CustomerService

router = APIRouter(prefix="/stores/{store_id}", tags=["customers"])


def _not_found():
    return AppException(404, "Customer not found", ErrorCode.CUSTOMER_NOT_FOUND)


@router.post("/customers", response_model=CustomerResponse, status_code=201)
def create_customer(store_id: int, customer: CustomerCreate, db: Session = Depends(get_db)):
    return CustomerService.create_customer(db, store_id, customer)


@router.get("/customers", response_model=List[CustomerResponse])
def list_customers(store_id: int, skip: int = 0, limit: int = 100, db: Session = Depends(get_db)):
    return CustomerService.get_customers(db, store_id, skip, limit)


@router.get("/customers/{customer_id}", response_model=CustomerResponse)
def get_customer(store_id: int, customer_id: int, db: Session = Depends(get_db)):
    c = CustomerService.get_customer(db, store_id, customer_id)
    if not c:
        raise _not_found()
    return c


@router.put("/customers/{customer_id}", response_model=CustomerResponse)
def update_customer(store_id: int, customer_id: int, payload: CustomerUpdate, db: Session = Depends(get_db)):
    updated = CustomerService.update_customer(db, store_id, customer_id, payload)
    if not updated:
        raise _not_found()
    return updated


@router.delete("/customers/{customer_id}", status_code=204)
def delete_customer(store_id: int, customer_id: int, db: Session = Depends(get_db)):
    if not CustomerService.delete_customer(db, store_id, customer_id):
        raise _not_found()
    return
