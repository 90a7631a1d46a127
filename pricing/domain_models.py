"""Domain models for pricing inputs and results."""
from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum

# Money is always an integer number of cents.
Cents = int


class ShippingMethod(str, Enum):
    STANDARD = "STANDARD"
    EXPEDITED = "EXPEDITED"
    EXPRESS = "EXPRESS"


@dataclass(frozen=True)
class LineItem:
    sku: str
    name: str
    unit_price: Cents
    quantity: int
    weight_kg: float = 0.0  # per unit


@dataclass(frozen=True)
class Customer:
    tenure_years: int = 0


@dataclass(frozen=True)
class PricingRules:
    """Business constants used by the pricing engine."""

    bulk_threshold_qty: int = 3
    bulk_discount_rate: Decimal = Decimal("0.15")
    loyalty_tenure_years: int = 2  # strictly greater qualifies
    loyalty_discount_rate: Decimal = Decimal("0.05")
    max_discount_rate: Decimal = Decimal("0.30")
    free_shipping_threshold: Cents = 10_000  # strictly greater qualifies
    standard_base_fee: Cents = 700
    weight_rate_per_kg: Cents = 200
    expedited_surcharge_rate: Decimal = Decimal("0.15")
    express_fee: Cents = 2_500


DEFAULT_RULES = PricingRules()


@dataclass(frozen=True)
class LineItemResult:
    sku: str
    name: str
    original_price: Cents
    quantity: int
    total_before_discount: Cents
    bulk_discount: Cents
    total_after_bulk: Cents


@dataclass(frozen=True)
class DiscountBreakdown:
    line_items: tuple[LineItemResult, ...]
    original_total: Cents
    loyalty_discount: Cents
    is_discount_capped: bool = False

    @property
    def bulk_discount_total(self) -> Cents:
        return sum(line.bulk_discount for line in self.line_items)

    @property
    def subtotal_after_bulk(self) -> Cents:
        return self.original_total - self.bulk_discount_total

    @property
    def total_discount(self) -> Cents:
        return self.bulk_discount_total + self.loyalty_discount

    @property
    def final_total(self) -> Cents:
        return self.original_total - self.total_discount


@dataclass(frozen=True)
class ShipmentInfo:
    method: ShippingMethod
    base_fee: Cents
    weight_surcharge: Cents
    expedited_surcharge: Cents
    total_shipping: Cents
    is_free_shipping: bool


@dataclass(frozen=True)
class PricingResult:
    original_total: Cents
    bulk_discount_total: Cents
    subtotal_after_bulk: Cents
    loyalty_discount: Cents
    total_discount: Cents
    is_discount_capped: bool
    final_total: Cents
    shipment: ShipmentInfo
    grand_total: Cents
    line_items: tuple[LineItemResult, ...] = field(default_factory=tuple)
