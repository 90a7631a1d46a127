import json
from unittest import mock

from django.core.files.uploadedfile import SimpleUploadedFile
from django.test import TestCase, override_settings

from pricing import __version__


def laptop(**overrides):
    line = {"sku": "LAPTOP", "name": "Laptop", "price": 8900, "quantity": 1, "weightInKg": 0.1}
    line.update(overrides)
    return line


class CalculatePricingViewTests(TestCase):
    url = "/api/pricing/calculate"

    def post(self, body):
        return self.client.post(self.url, data=json.dumps(body), content_type="application/json")

    def test_returns_serialized_result_in_cents(self):
        response = self.post(
            {"items": [laptop()], "user": {"tenureYears": 0}, "method": "EXPEDITED"}
        )

        self.assertEqual(response.status_code, 200)
        body = response.json()
        self.assertEqual(body["originalTotal"], 8900)
        self.assertEqual(body["grandTotal"], 10955)
        self.assertEqual(
            body["shipment"],
            {
                "method": "EXPEDITED",
                "baseFee": 700,
                "weightSurcharge": 20,
                "expeditedSurcharge": 1335,
                "totalShipping": 2055,
                "isFreeShipping": False,
            },
        )
        self.assertEqual(
            body["lineItems"],
            [
                {
                    "sku": "LAPTOP",
                    "name": "Laptop",
                    "originalPrice": 8900,
                    "quantity": 1,
                    "totalBeforeDiscount": 8900,
                    "bulkDiscount": 0,
                    "totalAfterBulk": 8900,
                }
            ],
        )
        self.assertIsInstance(body["finalTotal"], int)

    def test_missing_user_is_a_new_customer(self):
        response = self.post({"items": [laptop(price=10_000, quantity=1)], "method": "STANDARD"})

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["loyaltyDiscount"], 0)
        self.assertEqual(response.json()["grandTotal"], 10_720)

    def test_items_not_a_list_is_a_validation_error(self):
        with self.assertLogs("pricing.views", level="WARNING"):
            response = self.post({"items": "not-an-array"})

        self.assertEqual(response.status_code, 400)
        body = response.json()
        self.assertEqual(body["error"], "VALIDATION_ERROR")
        self.assertEqual(body["statusCode"], 400)
        self.assertIn("items", body["fields"])

    def test_unknown_method_is_a_validation_error(self):
        response = self.post({"items": [laptop()], "method": "TELEPORT"})

        self.assertEqual(response.status_code, 400)
        self.assertIn("method", response.json()["fields"])

    def test_malformed_json(self):
        response = self.client.post(self.url, data="{not json", content_type="application/json")

        self.assertEqual(response.status_code, 400)
        self.assertIn("non_field_errors", response.json()["fields"])

    def test_get_not_allowed(self):
        response = self.client.get(self.url)

        self.assertEqual(response.status_code, 405)

    @override_settings(PRICING_RULES={"free_shipping_threshold": 20_000})
    def test_uses_configured_rules(self):
        response = self.post({"items": [laptop(price=15_000, weightInKg=0)], "method": "STANDARD"})

        self.assertEqual(response.status_code, 200)
        self.assertFalse(response.json()["shipment"]["isFreeShipping"])
        self.assertEqual(response.json()["grandTotal"], 15_700)

    def test_unexpected_error_is_generic(self):
        with mock.patch("pricing.views.calculate_pricing", side_effect=RuntimeError("db password")):
            with self.assertLogs("pricing.views", level="ERROR"):
                response = self.post({"items": [laptop()]})

        self.assertEqual(response.status_code, 500)
        body = response.json()
        self.assertEqual(body["error"], "INTERNAL_ERROR")
        self.assertEqual(body["message"], "Calculation failed")
        self.assertNotIn("db password", response.content.decode())


class ShippingQuotesViewTests(TestCase):
    def test_quotes_every_method(self):
        response = self.client.post(
            "/api/pricing/quotes",
            data=json.dumps({"items": [laptop()], "user": {"tenureYears": 0}}),
            content_type="application/json",
        )

        self.assertEqual(response.status_code, 200)
        quotes = response.json()["quotes"]
        self.assertEqual(set(quotes), {"STANDARD", "EXPEDITED", "EXPRESS"})
        self.assertEqual(quotes["EXPRESS"]["shipment"]["totalShipping"], 2500)
        self.assertEqual(quotes["EXPEDITED"]["grandTotal"], 10955)


class BatchPricingViewTests(TestCase):
    url = "/api/pricing/batch"

    def test_prices_uploaded_orders(self):
        content = (
            b"order_id,sku,name,unit_price_cents,quantity,weight_kg,tenure_years,shipping_method\n"
            b"A-1,LAPTOP,Laptop,8900,1,0.1,0,EXPRESS\n"
            b"B-2,WIDGET,Widget,10000,3,0,3,STANDARD\n"
        )
        upload = SimpleUploadedFile("orders.csv", content, content_type="text/csv")

        response = self.client.post(self.url, {"orders_file": upload})

        self.assertEqual(response.status_code, 200)
        body = response.json()
        self.assertEqual([order["orderId"] for order in body["orders"]], ["A-1", "B-2"])
        self.assertEqual(body["orders"][0]["pricing"]["grandTotal"], 11_400)
        self.assertEqual(body["orders"][1]["pricing"]["loyaltyDiscount"], 1_275)
        self.assertEqual(body["summary"]["order_count"], 2)
        self.assertEqual(body["summary"]["grand_total"], 11_400 + 24_225)

    def test_missing_file(self):
        response = self.client.post(self.url, {})

        self.assertEqual(response.status_code, 400)
        self.assertIn("orders_file", response.json()["fields"])

    def test_rejects_non_csv_upload(self):
        upload = SimpleUploadedFile("orders.xlsx", b"whatever")

        response = self.client.post(self.url, {"orders_file": upload})

        self.assertEqual(response.status_code, 400)

    def test_malformed_csv(self):
        upload = SimpleUploadedFile("orders.csv", b"order_id,sku\nA-1,X\n")

        with self.assertLogs("pricing.views", level="WARNING"):
            response = self.client.post(self.url, {"orders_file": upload})

        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["error"], "VALIDATION_ERROR")

    def test_non_utf8_upload(self):
        content = (
            b"order_id,sku,name,unit_price_cents,quantity,weight_kg,tenure_years,shipping_method\n"
            b"A-1,X,\xff\xfe,100,1,0,0,STANDARD\n"
        )
        upload = SimpleUploadedFile("orders.csv", content, content_type="text/csv")

        with self.assertLogs("pricing.views", level="WARNING"):
            response = self.client.post(self.url, {"orders_file": upload})

        self.assertEqual(response.status_code, 400)
        self.assertIn("orders_file", response.json()["fields"])

    def test_infinite_weight(self):
        content = (
            b"order_id,sku,name,unit_price_cents,quantity,weight_kg,tenure_years,shipping_method\n"
            b"A-1,X,X,100,1,inf,0,STANDARD\n"
        )
        upload = SimpleUploadedFile("orders.csv", content, content_type="text/csv")

        with self.assertLogs("pricing.views", level="WARNING"):
            response = self.client.post(self.url, {"orders_file": upload})

        self.assertEqual(response.status_code, 400)
        self.assertIn("weight_kg", response.json()["fields"])


class HealthViewTests(TestCase):
    def test_health(self):
        response = self.client.get("/api/health")

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json(), {"status": "ok", "version": __version__})
