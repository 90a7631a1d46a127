"""Pricing rules resolved from Django settings."""
from __future__ import annotations

from dataclasses import fields, replace
from decimal import Decimal, InvalidOperation
from typing import Any, Mapping

from django.conf import settings
from django.core.exceptions import ImproperlyConfigured

from .domain_models import DEFAULT_RULES, PricingRules

_RULE_TYPES = {f.name: f.type for f in fields(PricingRules)}


def _coerce(name: str, value: Any) -> Any:
    # field types are strings because of postponed annotations
    kind = _RULE_TYPES[name]
    try:
        number = Decimal(str(value).strip())
    except InvalidOperation as exc:
        raise ImproperlyConfigured(f"PRICING_RULES[{name!r}] must be a number, got {value!r}") from exc

    if not number.is_finite():
        raise ImproperlyConfigured(f"PRICING_RULES[{name!r}] must be finite, got {value!r}")
    if number < 0:
        raise ImproperlyConfigured(f"PRICING_RULES[{name!r}] must not be negative.")

    if kind == "Decimal":
        # every Decimal rule is a rate applied to a money amount
        if number > 1:
            raise ImproperlyConfigured(f"PRICING_RULES[{name!r}] must be a rate between 0 and 1.")
        return number

    if number != number.to_integral_value():
        raise ImproperlyConfigured(f"PRICING_RULES[{name!r}] must be a whole number, got {value!r}")
    return int(number)


def build_pricing_rules(overrides: Mapping[str, Any] | None) -> PricingRules:
    """Return DEFAULT_RULES with the given overrides applied."""
    if not overrides:
        return DEFAULT_RULES

    unknown = set(overrides) - set(_RULE_TYPES)
    if unknown:
        raise ImproperlyConfigured(
            f"Unknown PRICING_RULES keys: {', '.join(sorted(unknown))}"
        )

    return replace(
        DEFAULT_RULES,
        **{name: _coerce(name, value) for name, value in overrides.items()},
    )


def get_pricing_rules() -> PricingRules:
    return build_pricing_rules(getattr(settings, "PRICING_RULES", None))
