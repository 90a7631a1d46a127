from __future__ import annotations

import io
import logging
from dataclasses import dataclass
from typing import IO, Dict, Iterable, List

import numpy as np
import pandas as pd

from pricing.domain_models import DEFAULT_RULES, Customer, LineItem, PricingResult, PricingRules
from pricing.pricing_engine import calculate_pricing
from pricing.validation import PricingInputError, PricingRequest, parse_shipping_method

logger = logging.getLogger(__name__)

REQUIRED_COLUMNS = {
    "order_id",
    "sku",
    "name",
    "unit_price_cents",
    "quantity",
    "weight_kg",
    "tenure_years",
    "shipping_method",
}

SUMMARY_COLUMNS = [
    "order_id",
    "method",
    "original_total",
    "total_discount",
    "total_shipping",
    "grand_total",
    "is_discount_capped",
    "is_free_shipping",
]

MAX_EXACT_INTEGER = 2**53

MONEY_COLUMNS = ["original_total", "total_discount", "total_shipping", "grand_total"]


class OrderCsvError(PricingInputError):
    """Raised when an orders CSV file is invalid."""


@dataclass
class BatchQuote:
    order_id: str
    result: PricingResult


def _read_text(file_obj: IO) -> io.StringIO:
    raw = file_obj.read()
    if isinstance(raw, bytes):
        try:
            text = raw.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise OrderCsvError(
                "Orders CSV must be UTF-8 encoded.",
                {"orders_file": [f"Undecodable byte at position {exc.start}."]},
            ) from exc
    else:
        text = str(raw)
    return io.StringIO(text)


def _numeric_column(
    frame: pd.DataFrame,
    column: str,
    *,
    integer: bool,
    minimum: float = 0,
    strict: bool = False,
) -> pd.Series:
    values = pd.to_numeric(frame[column], errors="coerce")

    bad = values.isna() | ~np.isfinite(values)
    if integer:
        # integers beyond 2**53 do not survive the float64 round trip
        bad |= (values % 1 != 0) | (values.abs() >= MAX_EXACT_INTEGER)
    bad |= values <= minimum if strict else values < minimum

    if bad.any():
        row = int(bad.idxmax()) + 2
        bound = f"greater than {minimum}" if strict else f"at least {minimum}"
        kind = "an integer" if integer else "a number"
        raise OrderCsvError(
            f"Row {row}: {column} must be {kind} {bound}",
            {column: [f"Invalid value on row {row}: {frame.at[bad.idxmax(), column]!r}"]},
        )

    return values.astype(int) if integer else values.astype(float)


def _single_value(group: pd.DataFrame, column: str, order_id: str):
    values = group[column].unique()
    if len(values) > 1:
        raise OrderCsvError(
            f"Order {order_id} has conflicting {column} values",
            {column: [f"Conflicting values for order {order_id}."]},
        )
    return values[0]


def load_orders_from_csv(file_obj: IO) -> Dict[str, PricingRequest]:
    """
    Parse an orders CSV file into pricing requests keyed by order_id.

    Expected columns:
      order_id, sku, name, unit_price_cents, quantity, weight_kg,
      tenure_years, shipping_method

    One row per line item; rows sharing an order_id form one order, which
    must agree on tenure_years and shipping_method. Orders keep the order in
    which they first appear.
    """

    try:
        frame = pd.read_csv(_read_text(file_obj), dtype=str, keep_default_na=False)
    except pd.errors.EmptyDataError as exc:
        raise OrderCsvError("Orders CSV is empty.") from exc
    except pd.errors.ParserError as exc:
        raise OrderCsvError(f"Orders CSV could not be parsed: {exc}") from exc

    frame.columns = [str(column).strip() for column in frame.columns]
    missing = REQUIRED_COLUMNS - set(frame.columns)
    if missing:
        raise OrderCsvError(
            f"Missing required columns in orders CSV: {', '.join(sorted(missing))}",
            {column: ["Column is required."] for column in sorted(missing)},
        )

    if frame.empty:
        raise OrderCsvError("Orders CSV contains no order rows.")

    for column in ("order_id", "sku", "name", "shipping_method"):
        frame[column] = frame[column].str.strip()

    for column in ("order_id", "sku"):
        blank = frame[column] == ""
        if blank.any():
            row = int(blank.idxmax()) + 2
            raise OrderCsvError(
                f"Row {row}: {column} is required",
                {column: [f"Missing on row {row}."]},
            )

    frame["unit_price_cents"] = _numeric_column(frame, "unit_price_cents", integer=True)
    frame["quantity"] = _numeric_column(frame, "quantity", integer=True, strict=True)
    frame["weight_kg"] = _numeric_column(frame, "weight_kg", integer=False)
    frame["tenure_years"] = _numeric_column(frame, "tenure_years", integer=True)

    orders: Dict[str, PricingRequest] = {}
    for order_id, group in frame.groupby("order_id", sort=False):
        order_id = str(order_id)
        raw_method = _single_value(group, "shipping_method", order_id)
        try:
            method = parse_shipping_method(raw_method)
        except ValueError as exc:
            raise OrderCsvError(
                f"Order {order_id}: {exc}",
                {"shipping_method": [str(exc)]},
            ) from exc

        tenure = int(_single_value(group, "tenure_years", order_id))

        items = tuple(
            LineItem(
                sku=row.sku,
                name=row.name,
                unit_price=int(row.unit_price_cents),
                quantity=int(row.quantity),
                weight_kg=float(row.weight_kg),
            )
            for row in group.itertuples(index=False)
        )
        orders[order_id] = PricingRequest(
            items=items,
            customer=Customer(tenure_years=tenure),
            method=method,
        )

    return orders


def price_orders(
    orders: Dict[str, PricingRequest],
    rules: PricingRules = DEFAULT_RULES,
) -> List[BatchQuote]:
    """Run the pricing engine for every order."""
    quotes: List[BatchQuote] = []
    for order_id, request in orders.items():
        result = calculate_pricing(request.items, request.customer, request.method, rules)
        quotes.append(BatchQuote(order_id=order_id, result=result))

    logger.info("Priced %d orders from batch upload", len(quotes))
    return quotes


def summarize_quotes(quotes: Iterable[BatchQuote]) -> pd.DataFrame:
    """One row per order with the headline figures."""
    rows = [
        {
            "order_id": quote.order_id,
            "method": quote.result.shipment.method.value,
            "original_total": quote.result.original_total,
            "total_discount": quote.result.total_discount,
            "total_shipping": quote.result.shipment.total_shipping,
            "grand_total": quote.result.grand_total,
            "is_discount_capped": quote.result.is_discount_capped,
            "is_free_shipping": quote.result.shipment.is_free_shipping,
        }
        for quote in quotes
    ]
    return pd.DataFrame(rows, columns=SUMMARY_COLUMNS)


def batch_totals(summary: pd.DataFrame) -> Dict[str, int]:
    """Aggregate a summary frame into plain integers."""
    totals = {"order_count": int(len(summary))}
    for column in MONEY_COLUMNS:
        totals[column] = int(summary[column].sum())
    totals["free_shipping_orders"] = int(summary["is_free_shipping"].astype(bool).sum())
    totals["capped_orders"] = int(summary["is_discount_capped"].astype(bool).sum())
    return totals
