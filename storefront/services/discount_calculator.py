
import logging
from datetime import datetime
from typing import List, NamedTuple, Optional, Sequence, Tuple

from storefront.core.clock import as_utc
from storefront.schemas.cart import CartLine, CodeError, PricedCart
from storefront.schemas.discount import DiscountRule, DiscountSummary
from storefront.services.usage_ledger import UsageLedger

logger = logging.getLogger(__name__)

CODE_ERROR_MESSAGES = {
    "not_found": "Discount code not found or expired",
    "not_eligible": "Discount code does not apply to this cart",
    "exhausted": "Discount code usage limit reached",
}


class Outcome(NamedTuple):
    amount: Optional[int]           # None means the discount does not apply
    reason: Optional[str] = None


class DiscountCalculator:
    """Prices carts against discount rules; never writes."""

    @staticmethod
    def calculate_subtotal(lines: Sequence[CartLine]) -> int:
        return sum(line.line_total for line in lines)

    @staticmethod
    def passes_min_requirement(rule, lines: Sequence[CartLine], subtotal: int) -> bool:
        if rule.min_requirement == "amount":
            return subtotal >= rule.min_value
        if rule.min_requirement == "quantity":
            return sum(line.quantity for line in lines) >= rule.min_value
        return True

    @staticmethod
    def eligible_base(rule, lines: Sequence[CartLine], subtotal: int) -> int:
        applies_to = getattr(rule, "applies_to", "orders")
        if applies_to == "products":
            return sum(l.line_total for l in lines if l.product_id in rule.target_product_ids)
        if applies_to == "categories":
            return sum(
                l.line_total for l in lines
                if l.category_id is not None and l.category_id in rule.target_category_ids
            )
        return subtotal

    @staticmethod
    def percentage_or_fixed(value_type: str, value: int, base: int) -> int:
        if value_type == "percentage":
            # floor
            return base * value // 100
        return min(value, base)

    @staticmethod
    def calculate_bxgy_discount(rule, lines: Sequence[CartLine]) -> int:
        """One free "get" unit per "buy" unit in the cart, cheapest get-units first.

        A unit of a product listed on both sides can be bought or given away,
        not both.
        """
        buy_units = sum(l.quantity for l in lines if l.product_id in rule.buy_product_ids)
        get_lines = sorted(
            (l for l in lines if l.product_id in rule.get_product_ids),
            key=lambda l: (l.unit_price, l.product_id),
        )

        granted = 0
        discount = 0
        for line in get_lines:
            if line.product_id in rule.buy_product_ids:
                free = min(line.quantity, max(buy_units - granted, 0) // 2)
                buy_units -= free
            else:
                free = min(line.quantity, max(buy_units - granted, 0))
            granted += free
            discount += free * line.unit_price
        return discount

    @staticmethod
    def calculate_bundle_discount(rule, lines: Sequence[CartLine]) -> int:
        if not rule.target_product_ids:
            return 0
        present = {l.product_id for l in lines}
        if not rule.target_product_ids <= present:
            return 0
        base = sum(l.line_total for l in lines if l.product_id in rule.target_product_ids)
        return DiscountCalculator.percentage_or_fixed(rule.value_type, rule.value, base)

    @staticmethod
    def calculate_raw_amount(rule, lines: Sequence[CartLine], subtotal: int) -> Optional[int]:
        if rule.type == "buy_x_get_y":
            return DiscountCalculator.calculate_bxgy_discount(rule, lines) or None
        if rule.type == "bundle":
            return DiscountCalculator.calculate_bundle_discount(rule, lines) or None

        base = DiscountCalculator.eligible_base(rule, lines, subtotal)
        if base <= 0:
            return None
        if rule.type == "free_delivery":
            return 0
        return DiscountCalculator.percentage_or_fixed(rule.value_type, rule.value, base) or None

    @staticmethod
    def within_usage_caps(rule, usage: UsageLedger, customer_phone: Optional[str]) -> bool:
        if rule.max_total_uses is not None and usage.total_uses(rule.id) >= rule.max_total_uses:
            return False
        if (
            customer_phone
            and rule.max_per_customer is not None
            and usage.customer_uses(rule.id, customer_phone) >= rule.max_per_customer
        ):
            return False
        return True

    @staticmethod
    def calculate_discount(
        rule,
        lines: Sequence[CartLine],
        subtotal: int,
        usage: UsageLedger,
        customer_phone: Optional[str] = None,
    ) -> Outcome:
        if not DiscountCalculator.passes_min_requirement(rule, lines, subtotal):
            return Outcome(None, "not_eligible")

        raw = DiscountCalculator.calculate_raw_amount(rule, lines, subtotal)
        if raw is None:
            return Outcome(None, "not_eligible")

        if not DiscountCalculator.within_usage_caps(rule, usage, customer_phone):
            return Outcome(None, "exhausted")

        amount = raw
        if rule.max_total_amount is not None:
            amount = min(amount, rule.max_total_amount)
        amount = min(amount, subtotal)
        if amount <= 0 and rule.type != "free_delivery":
            return Outcome(None, "not_eligible")
        return Outcome(amount)

    @staticmethod
    def summarize(rule, amount: int) -> DiscountSummary:
        return DiscountSummary(
            id=rule.id,
            type=rule.type,
            title=rule.title,
            code=getattr(rule, "code", None),
            value_type=getattr(rule, "value_type", "free"),
            amount=amount,
        )

    @staticmethod
    def evaluate(
        lines: Sequence[CartLine],
        discounts: Sequence[DiscountRule],
        now: datetime,
        usage: UsageLedger,
        customer_phone: Optional[str] = None,
        entered_code: Optional[str] = None,
    ) -> Tuple[PricedCart, Optional[CodeError]]:
        """Price ``lines`` with the best automatic discount plus the entered code.

        At most one automatic discount applies (highest amount, lowest id on a
        tie); a valid code stacks on top of it. The total never drops below
        zero. An entered code that cannot be used yields a ``CodeError`` and the
        cart is priced without it.
        """
        lines = list(lines)
        if not lines:
            return PricedCart(lines=[], subtotal=0, discount_amount=0, total=0), None

        now = as_utc(now)
        subtotal = DiscountCalculator.calculate_subtotal(lines)
        live = [d for d in discounts if d.is_live(now)]

        code_error = None
        code_hit = None
        code = (entered_code or "").strip().upper()
        if code:
            matched = next((d for d in live if d.type == "code" and d.code.upper() == code), None)
            if matched is None:
                outcome = Outcome(None, "not_found")
            else:
                outcome = DiscountCalculator.calculate_discount(matched, lines, subtotal, usage, customer_phone)
            if outcome.amount is None:
                code_error = CodeError(reason=outcome.reason, code=code, message=CODE_ERROR_MESSAGES[outcome.reason])
            else:
                code_hit = (matched, outcome.amount)

        candidates: List[Tuple[DiscountRule, int]] = []
        for rule in live:
            if rule.type == "code":
                continue
            outcome = DiscountCalculator.calculate_discount(rule, lines, subtotal, usage, customer_phone)
            if outcome.amount is not None:
                candidates.append((rule, outcome.amount))
        best = min(candidates, key=lambda hit: (-hit[1], hit[0].id)) if candidates else None

        applied: List[DiscountSummary] = []
        remaining = subtotal
        if code_hit is not None:
            amount = min(code_hit[1], remaining)
            applied.append(DiscountCalculator.summarize(code_hit[0], amount))
            remaining -= amount
        if best is not None:
            rule, amount = best
            amount = min(amount, remaining)
            if amount > 0 or rule.type == "free_delivery":
                applied.append(DiscountCalculator.summarize(rule, amount))
                remaining -= amount

        discount_amount = subtotal - remaining
        priced = PricedCart(
            lines=lines,
            subtotal=subtotal,
            discount_amount=discount_amount,
            total=subtotal - discount_amount,
            applied_discounts=applied,
            free_delivery=any(d.type == "free_delivery" for d in applied),
        )
        logger.debug(
            "Evaluated cart subtotal=%s discount=%s applied=%s code_error=%s",
            subtotal, discount_amount, [d.id for d in applied], code_error.reason if code_error else None,
        )
        return priced, code_error
