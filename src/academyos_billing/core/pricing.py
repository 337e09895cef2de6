'''
Sequential discount/surcharge application.

Rules compound: a percent rule is computed against the price left by the
rules before it, so the order of application matters.
'''
from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable
from uuid import UUID

from pydantic import BaseModel, ConfigDict

from ..database.db_enums import DiscountTypeEnum, DiscountValueTypeEnum
from ..models.pricing import PriceCalculation, PriceStep

CENT = Decimal("0.01")
ZERO = Decimal("0.00")


class PricingRule(BaseModel):
    """The fields of a catalogue rule the fold needs."""
    id: UUID
    name: str
    type: DiscountTypeEnum
    value_type: DiscountValueTypeEnum
    value: Decimal
    apply_priority: int = 0

    model_config = ConfigDict(from_attributes=True)


def to_cents(value: Decimal) -> Decimal:
    return Decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def order_rules(rules: Iterable[PricingRule]) -> list[PricingRule]:
    """Lowest apply_priority first; ties broken by name for a stable result."""
    return sorted(rules, key=lambda rule: (rule.apply_priority, rule.name))


def apply_rules(base_price: Decimal, rules: Iterable[PricingRule]) -> PriceCalculation:
    """
    Folds the rules over the base price in the order given.
    Steps follow the plain fold, so the running price may go negative
    between steps; only the final price is clamped at zero. The clamp is
    reported as `floor_adjustment`, keeping
    base - total_discount + total_surcharge + floor_adjustment == final.
    """
    base = to_cents(base_price)
    if base < 0:
        raise ValueError("base price cannot be negative")

    price = base
    total_discount = ZERO
    total_surcharge = ZERO
    steps: list[PriceStep] = []

    for rule in rules:
        if rule.value_type == DiscountValueTypeEnum.PERCENT:
            delta = to_cents(price * Decimal(rule.value) / Decimal(100))
        else:
            delta = to_cents(rule.value)

        if rule.type == DiscountTypeEnum.DISCOUNT:
            price -= delta
            total_discount += delta
        else:
            price += delta
            total_surcharge += delta

        steps.append(PriceStep(
            discount_id=rule.id,
            name=rule.name,
            type=rule.type,
            value_type=rule.value_type,
            value=rule.value,
            applied=delta,
            price_after=price
        ))

    final_price = max(price, ZERO)
    return PriceCalculation(
        base_price=base,
        final_price=final_price,
        total_discount=total_discount,
        total_surcharge=total_surcharge,
        floor_adjustment=final_price - price,
        calculations=steps
    )
