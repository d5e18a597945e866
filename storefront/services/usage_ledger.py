
from abc import ABC, abstractmethod
from typing import Optional
from sqlalchemy import func
from sqlalchemy.orm import Session
from storefront.models.discount import DiscountUsage


class UsageLedger(ABC):
    """How many times each discount has been consumed, overall and per customer phone."""

    @abstractmethod
    def total_uses(self, discount_id: int) -> int:
        ...

    @abstractmethod
    def customer_uses(self, discount_id: int, phone: str) -> int:
        ...

    @abstractmethod
    def record_use(self, discount_id: int, phone: Optional[str] = None, order_id: Optional[int] = None) -> None:
        ...


class SqlUsageLedger(UsageLedger):
    """Counts ``discount_usages`` rows. ``record_use`` only adds to the session;
    the caller commits it together with the order."""

    def __init__(self, db: Session):
        self.db = db

    def total_uses(self, discount_id: int) -> int:
        return self.db.query(func.count(DiscountUsage.id)).filter(
            DiscountUsage.discount_id == discount_id
        ).scalar() or 0

    def customer_uses(self, discount_id: int, phone: str) -> int:
        return self.db.query(func.count(DiscountUsage.id)).filter(
            DiscountUsage.discount_id == discount_id,
            DiscountUsage.customer_phone == phone,
        ).scalar() or 0

    def record_use(self, discount_id: int, phone: Optional[str] = None, order_id: Optional[int] = None) -> None:
        self.db.add(DiscountUsage(discount_id=discount_id, customer_phone=phone, order_id=order_id))
        self.db.flush()
