"""
Pricing calculator - pure functions, no database access.

Order of application:
    1. organization discount on the base price only
    2. add-ons added at their own unit price (not org-discounted)
    3. package discount on the whole subtotal, add-ons included
"""

from dataclasses import dataclass
from typing import Iterable, Optional


@dataclass(frozen=True)
class AddOnLine:
    unit_price: float
    quantity: int = 1

    @property
    def total(self) -> float:
        return self.unit_price * self.quantity


@dataclass(frozen=True)
class PriceBreakdown:
    base_price: float
    after_org_discount: float
    add_ons_total: float
    with_add_ons: float
    final_price: float


def _apply_percent_off(amount: float, percent: Optional[float]) -> float:
    if not percent:
        return amount
    return amount * (1 - percent / 100)


def calculate_price(
    base_price: float,
    org_discount_percent: float = 0,
    add_ons: Iterable[AddOnLine] = (),
    package_discount_percent: Optional[float] = None,
) -> PriceBreakdown:
    """
    Compute the final price of a booking.

    Amounts in the breakdown are rounded to cents; intermediate arithmetic is not,
    so the result only depends on the inputs.
    """
    if base_price < 0:
        raise ValueError("Base price cannot be negative")

    after_org = _apply_percent_off(base_price, org_discount_percent)
    add_ons_total = sum(line.total for line in add_ons)
    with_add_ons = after_org + add_ons_total

    final = with_add_ons
    if package_discount_percent and package_discount_percent > 0:
        final = _apply_percent_off(with_add_ons, package_discount_percent)

    return PriceBreakdown(
        base_price=round(base_price, 2),
        after_org_discount=round(after_org, 2),
        add_ons_total=round(add_ons_total, 2),
        with_add_ons=round(with_add_ons, 2),
        final_price=round(final, 2),
    )


def calculate_vat(amount: float, vat_rate: Optional[float]) -> Optional[float]:
    """Flat VAT on top of the final price; None when no rate applies"""
    if vat_rate is None:
        return None
    return round(amount * vat_rate / 100, 2)


def deposit_amount(final_price: float, deposit_percent: float) -> float:
    return round(final_price * deposit_percent / 100, 2)
