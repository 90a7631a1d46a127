"""Core pricing calculations."""
from __future__ import annotations

from dataclasses import replace
from decimal import MAX_EMAX, MAX_PREC, MIN_EMIN, ROUND_HALF_UP, Context, Decimal, localcontext
from typing import Iterable, Sequence

from .domain_models import (
    DEFAULT_RULES,
    Cents,
    Customer,
    DiscountBreakdown,
    LineItem,
    LineItemResult,
    PricingResult,
    PricingRules,
    ShipmentInfo,
    ShippingMethod,
)

# Money arithmetic only multiplies and adds, so an unbounded context is exact.
EXACT_CONTEXT = Context(prec=MAX_PREC, Emax=MAX_EMAX, Emin=MIN_EMIN, rounding=ROUND_HALF_UP)


def round_half_up(value: Decimal | int) -> Cents:
    """Round an exact decimal amount to the nearest whole cent, halves up."""
    with localcontext(EXACT_CONTEXT):
        return int(Decimal(value).quantize(Decimal(1), rounding=ROUND_HALF_UP))


def apply_rate(amount: Cents | Decimal, rate: Decimal | int) -> Cents:
    """``amount * rate`` rounded half up to whole cents."""
    with localcontext(EXACT_CONTEXT):
        return round_half_up(Decimal(amount) * Decimal(rate))


def total_weight_kg(line_items: Iterable[LineItem]) -> Decimal:
    # str() keeps 0.1 as 0.1 instead of its binary expansion
    with localcontext(EXACT_CONTEXT):
        return sum(
            (Decimal(str(item.weight_kg)) * item.quantity for item in line_items),
            Decimal(0),
        )


def compute_line_discounts(
    line_items: Iterable[LineItem],
    rules: PricingRules = DEFAULT_RULES,
) -> list[LineItemResult]:
    """Apply the per-line bulk discount."""

    results: list[LineItemResult] = []

    for item in line_items:
        line_total = item.unit_price * item.quantity

        bulk_discount = 0
        if item.quantity >= rules.bulk_threshold_qty:
            bulk_discount = apply_rate(line_total, rules.bulk_discount_rate)

        results.append(
            LineItemResult(
                sku=item.sku,
                name=item.name,
                original_price=item.unit_price,
                quantity=item.quantity,
                total_before_discount=line_total,
                bulk_discount=bulk_discount,
                total_after_bulk=line_total - bulk_discount,
            )
        )

    return results


def _reduce_bulk_discounts(
    line_results: Sequence[LineItemResult], excess: Cents
) -> list[LineItemResult]:
    """Take ``excess`` cents off the line bulk discounts, first line first."""

    reduced: list[LineItemResult] = []
    for line in line_results:
        cut = min(excess, line.bulk_discount)
        excess -= cut
        if cut:
            line = replace(
                line,
                bulk_discount=line.bulk_discount - cut,
                total_after_bulk=line.total_after_bulk + cut,
            )
        reduced.append(line)
    return reduced


def compute_discounts(
    line_results: Sequence[LineItemResult],
    customer: Customer,
    rules: PricingRules = DEFAULT_RULES,
) -> DiscountBreakdown:
    """
    Add the loyalty discount on top of the bulk discounts and enforce the
    safety valve.

    When bulk + loyalty exceeds ``max_discount_rate`` of the original total
    the excess is removed from the loyalty discount first, then from the line
    bulk discounts in line order. The reported figures always add up.
    """

    original_total = sum(line.total_before_discount for line in line_results)
    bulk_discount_total = sum(line.bulk_discount for line in line_results)
    subtotal_after_bulk = original_total - bulk_discount_total

    loyalty_discount = 0
    if customer.tenure_years > rules.loyalty_tenure_years:
        loyalty_discount = apply_rate(subtotal_after_bulk, rules.loyalty_discount_rate)

    max_discount = apply_rate(original_total, rules.max_discount_rate)
    excess = bulk_discount_total + loyalty_discount - max_discount

    if excess <= 0:
        return DiscountBreakdown(
            line_items=tuple(line_results),
            original_total=original_total,
            loyalty_discount=loyalty_discount,
        )

    loyalty_cut = min(excess, loyalty_discount)
    loyalty_discount -= loyalty_cut
    excess -= loyalty_cut

    if excess > 0:
        line_results = _reduce_bulk_discounts(line_results, excess)

    return DiscountBreakdown(
        line_items=tuple(line_results),
        original_total=original_total,
        loyalty_discount=loyalty_discount,
        is_discount_capped=True,
    )


def calculate_weight_surcharge(
    line_items: Iterable[LineItem], rules: PricingRules = DEFAULT_RULES
) -> Cents:
    return apply_rate(total_weight_kg(line_items), rules.weight_rate_per_kg)


def compute_shipment(
    line_items: Sequence[LineItem],
    method: ShippingMethod,
    original_total: Cents,
    final_total: Cents,
    rules: PricingRules = DEFAULT_RULES,
) -> ShipmentInfo:
    """
    Shipping cost for the chosen method.

    Express is a flat fee and never free. Expedited adds a surcharge on the
    pre-discount total and is never free. Standard is free once the
    discounted total is strictly above the threshold.
    """

    method = ShippingMethod(method)

    if method is ShippingMethod.EXPRESS:
        return ShipmentInfo(
            method=method,
            base_fee=0,
            weight_surcharge=0,
            expedited_surcharge=0,
            total_shipping=rules.express_fee,
            is_free_shipping=False,
        )

    base_fee = rules.standard_base_fee
    weight_surcharge = calculate_weight_surcharge(line_items, rules)

    if method is ShippingMethod.EXPEDITED:
        expedited_surcharge = apply_rate(original_total, rules.expedited_surcharge_rate)
        return ShipmentInfo(
            method=method,
            base_fee=base_fee,
            weight_surcharge=weight_surcharge,
            expedited_surcharge=expedited_surcharge,
            total_shipping=base_fee + weight_surcharge + expedited_surcharge,
            is_free_shipping=False,
        )

    is_free_shipping = final_total > rules.free_shipping_threshold
    return ShipmentInfo(
        method=method,
        base_fee=base_fee,
        weight_surcharge=weight_surcharge,
        expedited_surcharge=0,
        total_shipping=0 if is_free_shipping else base_fee + weight_surcharge,
        is_free_shipping=is_free_shipping,
    )


def assemble_result(discounts: DiscountBreakdown, shipment: ShipmentInfo) -> PricingResult:
    return PricingResult(
        original_total=discounts.original_total,
        bulk_discount_total=discounts.bulk_discount_total,
        subtotal_after_bulk=discounts.subtotal_after_bulk,
        loyalty_discount=discounts.loyalty_discount,
        total_discount=discounts.total_discount,
        is_discount_capped=discounts.is_discount_capped,
        final_total=discounts.final_total,
        line_items=discounts.line_items,
        shipment=shipment,
        grand_total=discounts.final_total + shipment.total_shipping,
    )


def calculate_pricing(
    line_items: Sequence[LineItem],
    customer: Customer,
    shipping_method: ShippingMethod = ShippingMethod.STANDARD,
    rules: PricingRules = DEFAULT_RULES,
) -> PricingResult:
    """Price an order: bulk discounts, loyalty discount and cap, shipping."""

    line_results = compute_line_discounts(line_items, rules)
    discounts = compute_discounts(line_results, customer, rules)
    shipment = compute_shipment(
        line_items,
        shipping_method,
        original_total=discounts.original_total,
        final_total=discounts.final_total,
        rules=rules,
    )
    return assemble_result(discounts, shipment)


def quote_shipping_methods(
    line_items: Sequence[LineItem],
    customer: Customer,
    rules: PricingRules = DEFAULT_RULES,
) -> dict[ShippingMethod, PricingResult]:
    """Price the same order once per shipping method."""

    line_results = compute_line_discounts(line_items, rules)
    discounts = compute_discounts(line_results, customer, rules)

    quotes: dict[ShippingMethod, PricingResult] = {}
    for method in ShippingMethod:
        shipment = compute_shipment(
            line_items,
            method,
            original_total=discounts.original_total,
            final_total=discounts.final_total,
            rules=rules,
        )
        quotes[method] = assemble_result(discounts, shipment)

    return quotes


__all__ = [
    "round_half_up",
    "apply_rate",
    "total_weight_kg",
    "compute_line_discounts",
    "compute_discounts",
    "calculate_weight_surcharge",
    "compute_shipment",
    "assemble_result",
    "calculate_pricing",
    "quote_shipping_methods",
]
