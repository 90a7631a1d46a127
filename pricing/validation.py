"""Validation of pricing requests arriving over HTTP."""
from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any

from .domain_models import Customer, LineItem, ShippingMethod


class PricingInputError(Exception):
    """Base class for rejected pricing input."""

    def __init__(self, message: str, fields: dict[str, list[str]] | None = None):
        super().__init__(message)
        self.message = message
        self.fields = fields or {}


class PricingRequestError(PricingInputError):
    """Raised when a pricing request body fails validation."""


@dataclass(frozen=True)
class PricingRequest:
    items: tuple[LineItem, ...]
    customer: Customer
    method: ShippingMethod = ShippingMethod.STANDARD


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _is_number(value: Any) -> bool:
    return (
        isinstance(value, (int, float))
        and not isinstance(value, bool)
        and math.isfinite(value)
    )


def parse_shipping_method(value: Any) -> ShippingMethod:
    """Return the ShippingMethod for a wire value, raising ValueError if unknown."""
    if not isinstance(value, str):
        raise ValueError(f"Unknown shipping method: {value!r}")
    try:
        return ShippingMethod(value.strip().upper())
    except ValueError as exc:
        raise ValueError(f"Unknown shipping method: {value!r}") from exc


def _parse_item(raw: Any, prefix: str, errors: dict[str, list[str]]) -> LineItem | None:
    if not isinstance(raw, dict):
        errors.setdefault(prefix, []).append("Must be an object.")
        return None

    def fail(field_name: str, message: str) -> None:
        errors.setdefault(f"{prefix}.{field_name}", []).append(message)

    sku = raw.get("sku")
    name = raw.get("name")
    price = raw.get("price")
    quantity = raw.get("quantity")
    weight = raw.get("weightInKg", 0)

    before = len(errors)
    if not isinstance(sku, str) or not sku.strip():
        fail("sku", "Must be a non-empty string.")
    if not isinstance(name, str):
        fail("name", "Must be a string.")
    if not _is_int(price) or price < 0:
        fail("price", "Must be a non-negative integer number of cents.")
    if not _is_int(quantity) or quantity <= 0:
        fail("quantity", "Must be a positive integer.")
    if not _is_number(weight) or weight < 0:
        fail("weightInKg", "Must be a non-negative number.")

    if len(errors) != before:
        return None

    return LineItem(
        sku=sku,
        name=name,
        unit_price=price,
        quantity=quantity,
        weight_kg=float(weight),
    )


def parse_pricing_request(payload: Any) -> PricingRequest:
    """
    Turn a decoded JSON body ``{items, user, method}`` into engine inputs.

    Every offending field is collected before raising PricingRequestError.
    A missing ``user`` means a new customer and a missing ``method`` means
    standard shipping.
    """

    if not isinstance(payload, dict):
        raise PricingRequestError(
            "Request body must be a JSON object.",
            {"non_field_errors": ["Expected a JSON object."]},
        )

    errors: dict[str, list[str]] = {}

    items: list[LineItem] = []
    raw_items = payload.get("items")
    if not isinstance(raw_items, list):
        errors["items"] = ["Must be a list of line items."]
    else:
        for index, raw in enumerate(raw_items):
            item = _parse_item(raw, f"items[{index}]", errors)
            if item is not None:
                items.append(item)

    customer = Customer()
    raw_user = payload.get("user")
    if raw_user is not None:
        if not isinstance(raw_user, dict):
            errors["user"] = ["Must be an object."]
        else:
            tenure = raw_user.get("tenureYears", 0)
            if not _is_int(tenure) or tenure < 0:
                errors["user.tenureYears"] = ["Must be a non-negative integer."]
            else:
                customer = Customer(tenure_years=tenure)

    method = ShippingMethod.STANDARD
    raw_method = payload.get("method")
    if raw_method is not None:
        try:
            method = parse_shipping_method(raw_method)
        except ValueError:
            choices = ", ".join(m.value for m in ShippingMethod)
            errors["method"] = [f"Must be one of: {choices}."]

    if errors:
        raise PricingRequestError("Request validation failed.", errors)

    return PricingRequest(items=tuple(items), customer=customer, method=method)


__all__ = [
    "PricingInputError",
    "PricingRequestError",
    "PricingRequest",
    "parse_shipping_method",
    "parse_pricing_request",
]
