"""JSON representation of pricing results."""
from __future__ import annotations

from typing import Any

from .domain_models import LineItemResult, PricingResult, ShipmentInfo, ShippingMethod


def serialize_line_item(line: LineItemResult) -> dict[str, Any]:
    return {
        "sku": line.sku,
        "name": line.name,
        "originalPrice": line.original_price,
        "quantity": line.quantity,
        "totalBeforeDiscount": line.total_before_discount,
        "bulkDiscount": line.bulk_discount,
        "totalAfterBulk": line.total_after_bulk,
    }


def serialize_shipment(shipment: ShipmentInfo) -> dict[str, Any]:
    return {
        "method": shipment.method.value,
        "baseFee": shipment.base_fee,
        "weightSurcharge": shipment.weight_surcharge,
        "expeditedSurcharge": shipment.expedited_surcharge,
        "totalShipping": shipment.total_shipping,
        "isFreeShipping": shipment.is_free_shipping,
    }


def serialize_pricing_result(result: PricingResult) -> dict[str, Any]:
    """Money stays in integer cents on the wire."""
    return {
        "originalTotal": result.original_total,
        "bulkDiscountTotal": result.bulk_discount_total,
        "subtotalAfterBulk": result.subtotal_after_bulk,
        "loyaltyDiscount": result.loyalty_discount,
        "totalDiscount": result.total_discount,
        "isDiscountCapped": result.is_discount_capped,
        "finalTotal": result.final_total,
        "lineItems": [serialize_line_item(line) for line in result.line_items],
        "shipment": serialize_shipment(result.shipment),
        "grandTotal": result.grand_total,
    }


def serialize_quotes(quotes: dict[ShippingMethod, PricingResult]) -> dict[str, Any]:
    return {method.value: serialize_pricing_result(result) for method, result in quotes.items()}
