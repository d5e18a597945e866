
from sqlalchemy import Column, Integer, String, Boolean, JSON, DateTime, Index, UniqueConstraint
from sqlalchemy.sql import func
from storefront.database import Base

ORDER_STATUSES = ("pending", "confirmed", "completed", "cancelled")
PAYMENT_STATUSES = ("unpaid", "confirming", "paid", "refunded", "voided")
FULFILLMENT_STATUSES = ("unfulfilled", "partially_fulfilled", "fulfilled")


class Order(Base):
    __tablename__ = "orders"

    id = Column(Integer, primary_key=True, index=True)
    store_id = Column(Integer, nullable=False)
    order_number = Column(Integer, nullable=False)

    customer_name = Column(String(200), nullable=False)
    customer_phone = Column(String(30), nullable=False)
    customer_address = Column(String, nullable=True)
    customer_comment = Column(String, nullable=True)
    payment_method = Column(String(30), nullable=True)

    # Frozen at creation, never recomputed from the catalog
    items = Column(JSON, nullable=False)
    subtotal = Column(Integer, nullable=False)
    discount_amount = Column(Integer, nullable=False, default=0)
    total = Column(Integer, nullable=False)
    applied_discounts = Column(JSON, nullable=False, default=list)
    free_delivery = Column(Boolean, nullable=False, default=False)

    status = Column(String(20), nullable=False, default="pending")
    payment_status = Column(String(30), nullable=False, default="unpaid")
    fulfillment_status = Column(String(30), nullable=False, default="unfulfilled")
    internal_note = Column(String, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (
        UniqueConstraint("store_id", "order_number", name="uq_orders_store_number"),
        Index("ix_orders_store_created", "store_id", "created_at"),
    )


class StoreOrderCounter(Base):
    """Per-store order number sequence; the row is locked while allocating."""

    __tablename__ = "store_order_counters"

    store_id = Column(Integer, primary_key=True, autoincrement=False)
    last_number = Column(Integer, nullable=False, default=0)
