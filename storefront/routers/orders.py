
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from typing import List
from storefront.core.exceptions import AppException, ErrorCode
from storefront.database import get_db
from storefront.schemas.cart import CheckoutRequest, CheckoutPreviewResponse
from storefront.schemas.order import OrderCreate, OrderUpdate, OrderResponse, PlaceOrderResponse
from storefront.services.order_service import OrderService

router = APIRouter(prefix="/stores/{store_id}", tags=["orders"])


@router.post("/checkout/preview", response_model=CheckoutPreviewResponse)
def preview_checkout(store_id: int, request: CheckoutRequest, db: Session = Depends(get_db)):
    cart, code_error = OrderService.preview_cart(db, store_id, request)
    return CheckoutPreviewResponse(cart=cart, code_error=code_error)


@router.post("/orders", response_model=PlaceOrderResponse, status_code=201)
def place_order(store_id: int, payload: OrderCreate, db: Session = Depends(get_db)):
    order, code_error = OrderService.place_order(db, store_id, payload)
    return PlaceOrderResponse(order=OrderResponse.model_validate(order), code_error=code_error)


@router.get("/orders", response_model=List[OrderResponse])
def list_orders(store_id: int, skip: int = 0, limit: int = 100, db: Session = Depends(get_db)):
    return OrderService.get_orders(db, store_id, skip, limit)


@router.get("/orders/{order_id}", response_model=OrderResponse)
def get_order(store_id: int, order_id: int, db: Session = Depends(get_db)):
    order = OrderService.get_order(db, store_id, order_id)
    if not order:
        raise AppException(404, "Order not found", ErrorCode.ORDER_NOT_FOUND)
    return order


@router.patch("/orders/{order_id}", response_model=OrderResponse)
def update_order(store_id: int, order_id: int, payload: OrderUpdate, db: Session = Depends(get_db)):
    order = OrderService.update_order(db, store_id, order_id, payload)
    if not order:
        raise AppException(404, "Order not found", ErrorCode.ORDER_NOT_FOUND)
    return order
