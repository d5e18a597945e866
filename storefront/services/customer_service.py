
import logging
from datetime import datetime
from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from typing import List, Optional

from storefront.core.exceptions import AppException, ErrorCode
from storefront.models.customer import Customer
from storefront.schemas.customer import CustomerCreate, CustomerUpdate

logger = logging.getLogger(__name__)


def normalize_phone(phone: Optional[str]) -> Optional[str]:
    phone = (phone or "").strip()
    return phone or None


class CustomerService:
    """Service class for the customers of a store"""

    @staticmethod
    def create_customer(db: Session, store_id: int, data: CustomerCreate) -> Customer:
        phone = normalize_phone(data.phone)
        CustomerService._ensure_phone_available(db, store_id, phone)
        customer = Customer(store_id=store_id, **data.model_dump(exclude={"phone"}), phone=phone)
        db.add(customer)
        db.commit()
        db.refresh(customer)
        return customer

    @staticmethod
    def get_customer(db: Session, store_id: int, customer_id: int) -> Optional[Customer]:
        return db.query(Customer).filter(Customer.id == customer_id, Customer.store_id == store_id).first()

    @staticmethod
    def get_customers(db: Session, store_id: int, skip: int = 0, limit: int = 100) -> List[Customer]:
        limit = min(max(limit, 1), 500)
        return (
            db.query(Customer)
            .filter(Customer.store_id == store_id)
            .order_by(Customer.created_at.desc(), Customer.id.desc())
            .offset(skip)
            .limit(limit)
            .all()
        )

    @staticmethod
    def update_customer(db: Session, store_id: int, customer_id: int, data: CustomerUpdate) -> Optional[Customer]:
        customer = CustomerService.get_customer(db, store_id, customer_id)
        if not customer:
            return None
        changes = data.model_dump(exclude_unset=True)
        if "phone" in changes:
            changes["phone"] = normalize_phone(changes["phone"])
            if changes["phone"] != customer.phone:
                CustomerService._ensure_phone_available(db, store_id, changes["phone"])
        for field, value in changes.items():
            setattr(customer, field, value)
        db.commit()
        db.refresh(customer)
        return customer

    @staticmethod
    def delete_customer(db: Session, store_id: int, customer_id: int) -> bool:
        customer = CustomerService.get_customer(db, store_id, customer_id)
        if not customer:
            return False
        db.delete(customer)
        db.commit()
        return True

    @staticmethod
    def upsert_from_order(db: Session, store_id: int, name: str, phone: str, total: int, now: datetime) -> Customer:
        """Fold one placed order into the customer keyed by (store, phone).
        The latest name wins; totals accumulate."""
        if not CustomerService._record_order(db, store_id, name, phone, total, now):
            try:
                with db.begin_nested():
                    db.add(Customer(
                        store_id=store_id,
                        name=name,
                        phone=phone,
                        total_orders=1,
                        total_spent=total,
                        first_order_at=now,
                        last_order_at=now,
                    ))
            except IntegrityError:
                # created by a concurrent order of the same phone
                CustomerService._record_order(db, store_id, name, phone, total, now)
        db.commit()
        return (
            db.query(Customer)
            .filter(Customer.store_id == store_id, Customer.phone == phone)
            .populate_existing()
            .one()
        )

    @staticmethod
    def _record_order(db: Session, store_id: int, name: str, phone: str, total: int, now: datetime) -> int:
        # in-place increments; concurrent orders of one phone all count
        return (
            db.query(Customer)
            .filter(Customer.store_id == store_id, Customer.phone == phone)
            .update(
                {
                    Customer.name: name,
                    Customer.total_orders: Customer.total_orders + 1,
                    Customer.total_spent: Customer.total_spent + total,
                    Customer.last_order_at: now,
                    Customer.first_order_at: func.coalesce(Customer.first_order_at, now),
                },
                synchronize_session=False,
            )
        )

    @staticmethod
    def _ensure_phone_available(db: Session, store_id: int, phone: Optional[str]) -> None:
        if not phone:
            return
        exists = db.query(Customer.id).filter(Customer.store_id == store_id, Customer.phone == phone).first()
        if exists:
            raise AppException(409, "A customer with this phone already exists", ErrorCode.CUSTOMER_PHONE_EXISTS)
