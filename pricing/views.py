import json
import logging

from django.http import JsonResponse
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_GET, require_POST

from . import __version__
from .conf import get_pricing_rules
from .pricing_engine import calculate_pricing, quote_shipping_methods
from .serializers import serialize_pricing_result, serialize_quotes
from .services.batch_pricing import (
    OrderCsvError,
    batch_totals,
    load_orders_from_csv,
    price_orders,
    summarize_quotes,
)
from .validation import PricingInputError, PricingRequestError, parse_pricing_request

logger = logging.getLogger(__name__)


def _validation_error(exc: PricingInputError) -> JsonResponse:
    return JsonResponse(
        {
            "error": "VALIDATION_ERROR",
            "statusCode": 400,
            "message": exc.message,
            "fields": exc.fields,
        },
        status=400,
    )


def _internal_error(message: str) -> JsonResponse:
    return JsonResponse(
        {"error": "INTERNAL_ERROR", "statusCode": 500, "message": message},
        status=500,
    )


def _parse_json_body(request):
    try:
        return json.loads(request.body or b"null")
    except (UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise PricingRequestError(
            "Request body is not valid JSON.",
            {"non_field_errors": ["Malformed JSON."]},
        ) from exc


@csrf_exempt
@require_POST
def calculate_pricing_view(request):
    try:
        pricing_request = parse_pricing_request(_parse_json_body(request))
    except PricingRequestError as exc:
        logger.warning("Rejected pricing request: %s", exc.fields)
        return _validation_error(exc)

    try:
        result = calculate_pricing(
            pricing_request.items,
            pricing_request.customer,
            pricing_request.method,
            get_pricing_rules(),
        )
    except Exception:
        logger.exception("Pricing calculation failed")
        return _internal_error("Calculation failed")

    logger.info(
        "Priced %d line items via %s: grand total %d",
        len(result.line_items),
        result.shipment.method.value,
        result.grand_total,
    )
    return JsonResponse(serialize_pricing_result(result))


@csrf_exempt
@require_POST
def shipping_quotes_view(request):
    try:
        pricing_request = parse_pricing_request(_parse_json_body(request))
    except PricingRequestError as exc:
        logger.warning("Rejected quote request: %s", exc.fields)
        return _validation_error(exc)

    try:
        quotes = quote_shipping_methods(
            pricing_request.items,
            pricing_request.customer,
            get_pricing_rules(),
        )
    except Exception:
        logger.exception("Shipping quote failed")
        return _internal_error("Calculation failed")

    return JsonResponse({"quotes": serialize_quotes(quotes)})


@csrf_exempt
@require_POST
def batch_pricing_view(request):
    orders_file = request.FILES.get("orders_file")
    if not orders_file:
        return _validation_error(
            OrderCsvError(
                "Please select an orders CSV file to upload.",
                {"orders_file": ["This field is required."]},
            )
        )
    if not orders_file.name.lower().endswith(".csv"):
        return _validation_error(
            OrderCsvError(
                "The uploaded file must be a .csv file.",
                {"orders_file": ["Expected a .csv file."]},
            )
        )

    try:
        orders = load_orders_from_csv(orders_file)
    except OrderCsvError as exc:
        logger.warning("Rejected orders CSV %s: %s", orders_file.name, exc)
        return _validation_error(exc)

    try:
        quotes = price_orders(orders, get_pricing_rules())
        summary = batch_totals(summarize_quotes(quotes))
    except Exception:
        logger.exception("Batch pricing failed for %s", orders_file.name)
        return _internal_error("Batch pricing failed")

    return JsonResponse(
        {
            "orders": [
                {"orderId": quote.order_id, "pricing": serialize_pricing_result(quote.result)}
                for quote in quotes
            ],
            "summary": summary,
        }
    )


@require_GET
def health_view(request):
    return JsonResponse({"status": "ok", "version": __version__})
