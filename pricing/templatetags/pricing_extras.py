from __future__ import annotations

from django import template

register = template.Library()


def format_cents(cents: int, symbol: str = "$") -> str:
    """Render integer cents as a currency string, e.g. 123456 -> $1,234.56."""
    sign = "-" if cents < 0 else ""
    dollars, remainder = divmod(abs(int(cents)), 100)
    return f"{sign}{symbol}{dollars:,}.{remainder:02d}"


@register.filter
def cents(value, symbol="$"):
    try:
        return format_cents(int(value), symbol)
    except (TypeError, ValueError):
        return ""


@register.filter
def shipping_label(shipment):
    """Free shipping shows as FREE instead of $0.00."""
    if shipment is None:
        return ""
    if shipment.is_free_shipping:
        return "FREE"
    return format_cents(shipment.total_shipping)
