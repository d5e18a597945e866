
import logging
from sqlalchemy import func
from sqlalchemy.orm import Session
from typing import List, Optional
from datetime import datetime
from pydantic import TypeAdapter

from storefront.core.clock import as_utc, utcnow
from storefront.core.exceptions import AppException, ErrorCode
from storefront.models.discount import Discount
from storefront.schemas.discount import DiscountCreate, DiscountUpdate, DiscountRule

logger = logging.getLogger(__name__)

_rule_adapter = TypeAdapter(DiscountRule)

RULE_FIELDS = (
    "id", "store_id", "title", "type", "code", "is_active", "value_type", "value", "applies_to",
    "target_product_ids", "target_category_ids", "buy_product_ids", "get_product_ids",
    "min_requirement", "min_value", "max_total_uses", "max_per_customer", "max_total_amount",
    "start_date", "end_date",
)


class DiscountService:
    """Service class for the discount definitions of a store"""

    @staticmethod
    def create_discount(db: Session, store_id: int, discount_data: DiscountCreate) -> Discount:
        data = discount_data.model_dump()
        if data["start_date"] is None:
            data["start_date"] = utcnow()
        DiscountService._normalize(data)
        DiscountService._validate_discount(data)
        DiscountService._ensure_code_available(db, store_id, data["code"])

        db_discount = Discount(store_id=store_id, **data)
        db.add(db_discount)
        db.commit()
        db.refresh(db_discount)
        logger.info("Created %s discount %s for store %s", db_discount.type, db_discount.id, store_id)
        return db_discount

    @staticmethod
    def get_discount(db: Session, store_id: int, discount_id: int) -> Optional[Discount]:
        return db.query(Discount).filter(Discount.id == discount_id, Discount.store_id == store_id).first()

    @staticmethod
    def get_discounts(db: Session, store_id: int, skip: int = 0, limit: int = 100) -> List[Discount]:
        limit = min(max(limit, 1), 500)
        return (
            db.query(Discount)
            .filter(Discount.store_id == store_id)
            .order_by(Discount.id)
            .offset(skip)
            .limit(limit)
            .all()
        )

    @staticmethod
    def list_active_discounts(db: Session, store_id: int, for_update: bool = False) -> List[DiscountRule]:
        """Active discounts of the store as evaluation rules. The date window is
        left to the calculator. ``for_update`` row-locks them for the rest of
        the transaction."""
        q = db.query(Discount).filter(Discount.store_id == store_id, Discount.is_active == True)
        if for_update:
            q = q.with_for_update()
        return [DiscountService.to_rule(d) for d in q.order_by(Discount.id).all()]

    @staticmethod
    def to_rule(discount: Discount) -> DiscountRule:
        return _rule_adapter.validate_python({f: getattr(discount, f) for f in RULE_FIELDS})

    @staticmethod
    def update_discount(db: Session, store_id: int, discount_id: int, discount_data: DiscountUpdate) -> Optional[Discount]:
        db_discount = DiscountService.get_discount(db, store_id, discount_id)
        if not db_discount:
            return None

        # Compute final fields then validate
        changes = discount_data.model_dump(exclude_unset=True)
        final = {f: getattr(db_discount, f) for f in RULE_FIELDS if f not in ("id", "store_id")}
        final.update(changes)
        if final["start_date"] is None:
            final["start_date"] = db_discount.start_date
        DiscountService._normalize(final)
        DiscountService._validate_discount(final)
        if final["code"] != db_discount.code:
            DiscountService._ensure_code_available(db, store_id, final["code"], exclude_id=discount_id)

        for field, value in final.items():
            setattr(db_discount, field, value)

        db.commit()
        db.refresh(db_discount)
        logger.info("Updated discount %s for store %s: %s", discount_id, store_id, ", ".join(sorted(changes)))
        return db_discount

    @staticmethod
    def delete_discount(db: Session, store_id: int, discount_id: int) -> bool:
        db_discount = DiscountService.get_discount(db, store_id, discount_id)
        if not db_discount:
            return False
        db.delete(db_discount)
        db.commit()
        logger.info("Deleted discount %s for store %s", discount_id, store_id)
        return True

    @staticmethod
    def _normalize(data: dict) -> None:
        if data["type"] == "code":
            data["code"] = (data.get("code") or "").strip().upper()
        else:
            data["code"] = None
        if data["type"] == "free_delivery":
            data["value_type"] = "free"
            data["value"] = 0
            data["applies_to"] = "orders"
        for key in ("target_product_ids", "target_category_ids", "buy_product_ids", "get_product_ids"):
            data[key] = sorted(set(data.get(key) or []))

    @staticmethod
    def _validate_discount(data: dict) -> None:
        dtype = data["type"]
        if dtype == "code" and not data["code"]:
            raise AppException(400, "A code discount requires a non-empty code", ErrorCode.DISCOUNT_INVALID)

        if dtype in ("code", "automatic", "order_amount", "bundle"):
            if data["value_type"] not in ("percentage", "fixed"):
                raise AppException(400, "value_type must be 'percentage' or 'fixed'", ErrorCode.DISCOUNT_INVALID)
            if data["value_type"] == "percentage" and not 0 <= data["value"] <= 100:
                raise AppException(400, "Percentage value must be between 0 and 100", ErrorCode.DISCOUNT_INVALID)

        if dtype == "bundle" and not data["target_product_ids"]:
            raise AppException(400, "A bundle needs at least one product", ErrorCode.DISCOUNT_INVALID)
        if dtype == "buy_x_get_y" and (not data["buy_product_ids"] or not data["get_product_ids"]):
            raise AppException(400, "buy_product_ids and get_product_ids must be non-empty", ErrorCode.DISCOUNT_INVALID)

        start: datetime = as_utc(data["start_date"])
        end: Optional[datetime] = as_utc(data.get("end_date"))
        if end is not None and end < start:
            raise AppException(400, "end_date must not precede start_date", ErrorCode.DISCOUNT_INVALID)

    @staticmethod
    def _ensure_code_available(db: Session, store_id: int, code: Optional[str], exclude_id: Optional[int] = None) -> None:
        if not code:
            return
        q = db.query(Discount.id).filter(Discount.store_id == store_id, func.upper(Discount.code) == code)
        if exclude_id is not None:
            q = q.filter(Discount.id != exclude_id)
        if q.first():
            raise AppException(409, f"Discount code '{code}' already exists", ErrorCode.DISCOUNT_CODE_EXISTS)
