
from sqlalchemy import Column, Integer, String, Enum, Boolean, JSON, DateTime, ForeignKey, Index, UniqueConstraint
from sqlalchemy.sql import func
from storefront.database import Base

DiscountTypes = ("code", "automatic", "order_amount", "buy_x_get_y", "bundle", "free_delivery")
ValueTypes = ("percentage", "fixed", "free")
AppliesTo = ("orders", "products", "categories")
MinRequirements = ("none", "amount", "quantity")


class Discount(Base):
    """One promotional rule of a store; the variant-specific columns are only
    meaningful for the matching ``type``."""

    __tablename__ = "discounts"

    id = Column(Integer, primary_key=True, index=True)
    store_id = Column(Integer, nullable=False)
    title = Column(String(200), nullable=False, default="")
    type = Column(Enum(*DiscountTypes, name="discount_type"), nullable=False)
    code = Column(String(64), nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)

    value_type = Column(Enum(*ValueTypes, name="discount_value_type"), nullable=False, default="percentage")
    value = Column(Integer, nullable=False, default=0)
    applies_to = Column(Enum(*AppliesTo, name="discount_applies_to"), nullable=False, default="orders")
    target_product_ids = Column(JSON, nullable=False, default=list)
    target_category_ids = Column(JSON, nullable=False, default=list)
    buy_product_ids = Column(JSON, nullable=False, default=list)
    get_product_ids = Column(JSON, nullable=False, default=list)

    min_requirement = Column(Enum(*MinRequirements, name="discount_min_requirement"), nullable=False, default="none")
    min_value = Column(Integer, nullable=False, default=0)

    max_total_uses = Column(Integer, nullable=True)
    max_per_customer = Column(Integer, nullable=True)
    max_total_amount = Column(Integer, nullable=True)

    start_date = Column(DateTime(timezone=True), nullable=False)
    end_date = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (
        UniqueConstraint("store_id", "code", name="uq_discounts_store_code"),
        Index("ix_discounts_store_active", "store_id", "is_active"),
    )


class DiscountUsage(Base):
    """Append-only record of one discount being consumed by one order."""

    __tablename__ = "discount_usages"

    id = Column(Integer, primary_key=True, index=True)
    discount_id = Column(Integer, ForeignKey("discounts.id", ondelete="CASCADE"), nullable=False)
    order_id = Column(Integer, ForeignKey("orders.id", ondelete="SET NULL"), nullable=True)
    customer_phone = Column(String(30), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (
        Index("ix_discount_usages_discount_phone", "discount_id", "customer_phone"),
    )
