
import logging
from datetime import datetime
from sqlalchemy import func
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session
from typing import List, Optional, Tuple

from storefront.core.clock import utcnow
from storefront.core.exceptions import AppException, ErrorCode
from storefront.models.order import Order, StoreOrderCounter
from storefront.schemas.cart import CheckoutRequest, CodeError, PricedCart
from storefront.schemas.order import OrderCreate, OrderUpdate
from storefront.services.catalog_service import CatalogService
from storefront.services.customer_service import CustomerService, normalize_phone
from storefront.services.discount_calculator import DiscountCalculator
from storefront.services.discount_service import DiscountService
from storefront.services.usage_ledger import SqlUsageLedger

logger = logging.getLogger(__name__)

# Allowed moves per status field; payment_status accepts any move.
STATUS_TRANSITIONS = {
    "pending": {"confirmed", "cancelled"},
    "confirmed": {"completed", "cancelled"},
    "completed": set(),
    "cancelled": set(),
}
FULFILLMENT_TRANSITIONS = {
    "unfulfilled": {"partially_fulfilled", "fulfilled"},
    "partially_fulfilled": {"fulfilled"},
    "fulfilled": set(),
}


def next_order_number(db: Session, store_id: int) -> int:
    """Allocate the store's next order number inside the caller's transaction.

    Must be the first statement of the placement: the in-place increment takes
    the counter's row lock (the database write lock on SQLite) and holds it
    until the caller commits or rolls back, so concurrent placements for one
    store are serialized. A missing counter is seeded from the store's
    existing orders.
    """
    if not _bump_counter(db, store_id):
        current_max = db.query(func.coalesce(func.max(Order.order_number), 0)).filter(
            Order.store_id == store_id
        ).scalar()
        try:
            with db.begin_nested():
                db.add(StoreOrderCounter(store_id=store_id, last_number=current_max + 1))
        except IntegrityError:
            # another placement seeded it first
            _bump_counter(db, store_id)
    return (
        db.query(StoreOrderCounter.last_number)
        .filter(StoreOrderCounter.store_id == store_id)
        .scalar()
    )


def _bump_counter(db: Session, store_id: int) -> int:
    return (
        db.query(StoreOrderCounter)
        .filter(StoreOrderCounter.store_id == store_id)
        .update(
            {StoreOrderCounter.last_number: StoreOrderCounter.last_number + 1},
            synchronize_session=False,
        )
    )


class OrderService:
    """Checkout pricing, order placement and order administration"""

    @staticmethod
    def preview_cart(
        db: Session, store_id: int, request: CheckoutRequest, now: Optional[datetime] = None
    ) -> Tuple[PricedCart, Optional[CodeError]]:
        lines = CatalogService.resolve_cart(db, store_id, request.items)
        return DiscountCalculator.evaluate(
            lines,
            DiscountService.list_active_discounts(db, store_id),
            now or utcnow(),
            SqlUsageLedger(db),
            customer_phone=normalize_phone(request.customer_phone),
            entered_code=request.discount_code,
        )

    @staticmethod
    def place_order(
        db: Session, store_id: int, data: OrderCreate, now: Optional[datetime] = None
    ) -> Tuple[Order, Optional[CodeError]]:
        now = now or utcnow()
        phone = normalize_phone(data.customer_phone)
        if not phone:
            raise AppException(400, "customer_phone is required", ErrorCode.VALIDATION_ERROR)

        try:
            order_number = next_order_number(db, store_id)
            lines = CatalogService.resolve_cart(db, store_id, data.items)
            ledger = SqlUsageLedger(db)
            priced, code_error = DiscountCalculator.evaluate(
                lines,
                DiscountService.list_active_discounts(db, store_id, for_update=True),
                now,
                ledger,
                customer_phone=phone,
                entered_code=data.discount_code,
            )

            order = Order(
                store_id=store_id,
                order_number=order_number,
                customer_name=data.customer_name.strip(),
                customer_phone=phone,
                customer_address=data.customer_address,
                customer_comment=data.customer_comment,
                payment_method=data.payment_method,
                items=[
                    {
                        "product_id": line.product_id,
                        "name": line.name,
                        "quantity": line.quantity,
                        "unit_price": line.unit_price,
                        "image_url": line.image_url,
                    }
                    for line in priced.lines
                ],
                subtotal=priced.subtotal,
                discount_amount=priced.discount_amount,
                total=priced.total,
                applied_discounts=[d.model_dump() for d in priced.applied_discounts],
                free_delivery=priced.free_delivery,
                status="pending",
                payment_status="unpaid",
                fulfillment_status="unfulfilled",
                created_at=now,
            )
            db.add(order)
            db.flush()

            for applied in priced.applied_discounts:
                ledger.record_use(applied.id, phone, order_id=order.id)

            db.commit()
        except Exception:
            db.rollback()
            raise
        db.refresh(order)
        logger.info(
            "Placed order #%s for store %s: subtotal=%s discount=%s total=%s",
            order.order_number, store_id, order.subtotal, order.discount_amount, order.total,
        )

        try:
            CustomerService.upsert_from_order(db, store_id, order.customer_name, phone, order.total, now)
        except SQLAlchemyError:
            db.rollback()
            logger.exception("Customer upsert failed for order %s of store %s", order.id, store_id)

        return order, code_error

    @staticmethod
    def get_order(db: Session, store_id: int, order_id: int) -> Optional[Order]:
        return db.query(Order).filter(Order.id == order_id, Order.store_id == store_id).first()

    @staticmethod
    def get_orders(db: Session, store_id: int, skip: int = 0, limit: int = 100) -> List[Order]:
        limit = min(max(limit, 1), 500)
        return (
            db.query(Order)
            .filter(Order.store_id == store_id)
            .order_by(Order.order_number.desc())
            .offset(skip)
            .limit(limit)
            .all()
        )

    @staticmethod
    def update_order(db: Session, store_id: int, order_id: int, data: OrderUpdate) -> Optional[Order]:
        order = OrderService.get_order(db, store_id, order_id)
        if not order:
            return None
        changes = data.model_dump(exclude_unset=True)

        OrderService._check_transition("status", order.status, changes.get("status"), STATUS_TRANSITIONS)
        OrderService._check_transition(
            "fulfillment_status", order.fulfillment_status, changes.get("fulfillment_status"), FULFILLMENT_TRANSITIONS
        )

        for field in ("status", "payment_status", "fulfillment_status"):
            new = changes.get(field)
            if new is not None and new != getattr(order, field):
                logger.info("Order %s of store %s: %s %s -> %s", order.id, store_id, field, getattr(order, field), new)
                setattr(order, field, new)
        if "internal_note" in changes:
            order.internal_note = changes["internal_note"]

        db.commit()
        db.refresh(order)
        return order

    @staticmethod
    def _check_transition(field: str, current: str, new: Optional[str], transitions: dict) -> None:
        if new is None or new == current:
            return
        if new not in transitions.get(current, set()):
            raise AppException(
                409,
                f"Cannot change {field} from '{current}' to '{new}'",
                ErrorCode.ORDER_INVALID_TRANSITION,
            )
