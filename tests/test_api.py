#!/usr/bin/env python3
"""
Test Suite for the HTTP API

Exercises the FastAPI routes end to end against a temporary database with
the archive and revenue sinks pointed at a temporary directory.
"""

import os
import unittest
from datetime import datetime, timedelta
from unittest import mock

from fastapi.testclient import TestClient

from backend.app.config import Config
from backend.app.main import app, get_archive_sink, get_revenue_sink
from backend.data.database import get_db, get_session_factory
from backend.services.archive_service import ArchiveSink, LocalArchiveSink
from backend.services.revenue_service import CsvRevenueSink

from support import TempDatabaseMixin, add_bill, seed_catalog

CUSTOMER = {"name": "Asha", "phone": "9876543210"}


class FailingSink(ArchiveSink):
    def store(self, bill_number, document):
        raise IOError("archive bucket unavailable")


class APITestCase(TempDatabaseMixin, unittest.TestCase):

    def setUp(self):
        super().setUp()
        self.products = seed_catalog(self.db)
        self.archive_dir = os.path.join(self.tmpdir, "archive")
        self.export_path = os.path.join(self.tmpdir, "exports", "revenue.csv")

        def override_get_db():
            db = self.Session()
            try:
                yield db
            finally:
                db.close()

        app.dependency_overrides[get_db] = override_get_db
        app.dependency_overrides[get_session_factory] = lambda: self.Session
        app.dependency_overrides[get_archive_sink] = lambda: LocalArchiveSink(self.archive_dir)
        app.dependency_overrides[get_revenue_sink] = lambda: CsvRevenueSink(self.export_path)
        self.addCleanup(app.dependency_overrides.clear)

        for name, value in (("ARCHIVE_ENABLED", True), ("LOYALTY_FREQUENCY", 5), ("LOYALTY_DISCOUNT_PERCENTAGE", 10.0)):
            patcher = mock.patch.object(Config, name, value)
            patcher.start()
            self.addCleanup(patcher.stop)

        self.client = TestClient(app)

    def checkout(self, *items, customer=CUSTOMER):
        return self.client.post("/api/checkout", json={"items": list(items), "customerInfo": customer})

    def item(self, key, quantity=1, **extra):
        entry = {"productId": self.products[key].id, "quantity": quantity}
        entry.update(extra)
        return entry


class TestCheckoutAPI(APITestCase):

    def test_health(self):
        response = self.client.get("/health")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["status"], "healthy")

    def test_checkout_creates_and_archives_bill(self):
        for _ in range(4):
            add_bill(self.db, phone=CUSTOMER["phone"], created_at=datetime.now() - timedelta(days=2))

        response = self.checkout(self.item("chocolate_cake"), self.item("cookie_jar"))

        self.assertEqual(response.status_code, 201)
        body = response.json()
        self.assertTrue(body["success"])
        bill = body["data"]
        self.assertRegex(bill["billNumber"], r"^BILL-\d{8}-0001$")
        self.assertEqual(bill["subtotal"], 700.0)
        self.assertEqual(bill["total"], 650.0)
        self.assertTrue(bill["hasCakeItems"])
        self.assertTrue(bill["loyaltyInfo"]["applied"])
        self.assertEqual(bill["loyaltyInfo"]["purchaseNumber"], 5)
        self.assertEqual(bill["customerInfo"], CUSTOMER)
        self.assertEqual(bill["items"][0]["lineTotal"], 500.0)
        self.assertEqual(body["loyalty"]["discountAmount"], 50.0)
        self.assertEqual(body["loyalty"]["nextMilestoneAt"], 10)

        # Background archival has run by the time the test client returns
        fetched = self.client.get(f"/api/checkout/bills/{bill['id']}").json()["data"]
        self.assertTrue(fetched["archiveUrl"].startswith("file://"))
        self.assertTrue(os.path.exists(os.path.join(self.archive_dir, f"{bill['billNumber']}.txt")))

    def test_archival_failure_does_not_fail_checkout(self):
        app.dependency_overrides[get_archive_sink] = lambda: FailingSink()

        response = self.checkout(self.item("sourdough"))

        self.assertEqual(response.status_code, 201)
        bill_id = response.json()["data"]["id"]
        fetched = self.client.get(f"/api/checkout/bills/{bill_id}").json()["data"]
        self.assertIsNone(fetched["archiveUrl"])

    def test_validation_errors(self):
        cases = [
            {"items": [], "customerInfo": CUSTOMER},
            {"items": [self.item("sourdough")], "customerInfo": {"name": "", "phone": "9876543210"}},
            {"items": [self.item("sourdough", quantity=0)], "customerInfo": CUSTOMER},
            {"items": [self.item("sourdough")]},
        ]
        for payload in cases:
            response = self.client.post("/api/checkout", json=payload)
            self.assertEqual(response.status_code, 400, payload)
            self.assertFalse(response.json()["success"])

        response = self.checkout(self.item("truffle_cake"))
        self.assertEqual(response.status_code, 400)
        self.assertIn("Weight is required", response.json()["message"])

    def test_unknown_product(self):
        response = self.checkout({"productId": 9999, "quantity": 1})
        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.json(), {"success": False, "message": "Product not found: 9999"})

    def test_loyalty_check(self):
        for _ in range(4):
            add_bill(self.db, phone=CUSTOMER["phone"])

        response = self.client.post("/api/checkout/loyalty/check", json={"customerPhone": CUSTOMER["phone"], "subtotal": 800})

        self.assertEqual(response.status_code, 200)
        data = response.json()["data"]
        self.assertEqual(data["status"]["purchaseCount"], 4)
        self.assertTrue(data["status"]["qualifiesForDiscount"])
        self.assertEqual(data["potentialDiscount"]["discountAmount"], 80.0)
        self.assertEqual(data["history"]["totalPurchases"], 4)
        self.assertEqual(len(data["history"]["recentBills"]), 4)

        response = self.client.post("/api/checkout/loyalty/check", json={"customerPhone": "  "})
        self.assertEqual(response.status_code, 400)

    def test_bills_list_and_summary(self):
        self.checkout(self.item("chocolate_cake"), customer={"name": "Asha", "phone": "9000000001"})
        self.checkout(self.item("sourdough", quantity=2), customer={"name": "Ravi", "phone": "9000000002"})

        body = self.client.get("/api/checkout/bills", params={"search": "ravi"}).json()
        self.assertEqual(body["pagination"], {"current": 1, "pages": 1, "total": 1})
        self.assertEqual(body["data"][0]["customerInfo"]["name"], "Ravi")

        body = self.client.get("/api/checkout/bills", params={"limit": 1, "page": 2}).json()
        self.assertEqual(body["pagination"], {"current": 2, "pages": 2, "total": 2})
        self.assertEqual(body["data"][0]["customerInfo"]["name"], "Asha")

        summary = self.client.get("/api/checkout/summary").json()["data"]
        self.assertEqual(summary["totalSales"], 1100.0)
        self.assertEqual(summary["totalOrders"], 2)
        self.assertEqual(summary["totalItems"], 3)

        self.assertEqual(self.client.get("/api/checkout/bills/999").status_code, 404)


class TestRevenueAPI(APITestCase):

    def test_revenue_reports(self):
        add_bill(self.db, total=250)

        today = self.client.get("/api/revenue/today").json()["data"]
        self.assertEqual(today["totalRevenue"], 250.0)
        self.assertEqual(today["comparison"]["trend"], "up")

        weekly = self.client.get("/api/revenue/weekly").json()["data"]
        self.assertEqual(weekly["totalRevenue"], 250.0)

        monthly = self.client.get("/api/revenue/30days").json()["data"]
        self.assertEqual(len(monthly["dailyData"]), 31)
        self.assertEqual(monthly["dailyData"][-1]["totalRevenue"], 250.0)

    def test_export(self):
        add_bill(self.db, created_at=datetime.now() - timedelta(days=60), total=300)
        add_bill(self.db, total=100)

        body = self.client.post("/api/revenue/export").json()
        self.assertEqual(body["exportedDays"], 1)
        self.assertEqual(body["deletedBills"], 1)
        self.assertTrue(os.path.exists(self.export_path))

        body = self.client.post("/api/revenue/export").json()
        self.assertEqual(body["exportedDays"], 0)
        self.assertEqual(body["message"], "No old revenue data found to export")


class TestCatalogAPI(APITestCase):

    def test_category_and_product_lifecycle(self):
        response = self.client.post("/api/products/categories", json={"name": " Pastries ", "description": "Flaky"})
        self.assertEqual(response.status_code, 201)
        category = response.json()["data"]
        self.assertEqual(category["name"], "Pastries")

        duplicate = self.client.post("/api/products/categories", json={"name": "Pastries"})
        self.assertEqual(duplicate.status_code, 400)

        response = self.client.post(
            "/api/products", json={"name": "eclair", "price": 120.456, "categoryId": category["id"]}
        )
        self.assertEqual(response.status_code, 201)
        product = response.json()["data"]
        self.assertEqual(product["name"], "Eclair")
        self.assertEqual(product["price"], 120.46)
        self.assertEqual(product["categoryName"], "Pastries")
        self.assertEqual(product["priceType"], "fixed")

        listed = self.client.get("/api/products", params={"category": category["id"]}).json()["data"]
        self.assertEqual([p["id"] for p in listed], [product["id"]])

        updated = self.client.put(f"/api/products/{product['id']}", json={"price": 150}).json()["data"]
        self.assertEqual(updated["price"], 150.0)

        blocked = self.client.delete(f"/api/products/categories/{category['id']}")
        self.assertEqual(blocked.status_code, 400)

        self.assertEqual(self.client.delete(f"/api/products/{product['id']}").status_code, 200)
        self.assertEqual(self.client.get(f"/api/products/{product['id']}").status_code, 404)

        self.assertEqual(self.client.delete(f"/api/products/categories/{category['id']}").status_code, 200)
        names = [c["name"] for c in self.client.get("/api/products/categories").json()["data"]]
        self.assertNotIn("Pastries", names)

    def test_search_products(self):
        listed = self.client.get("/api/products", params={"search": "cake"}).json()["data"]
        self.assertEqual({p["name"] for p in listed}, {"Chocolate Cake", "Truffle Cake", "Vanilla Cupcakes"})

    def test_unknown_category_for_product(self):
        response = self.client.post("/api/products", json={"name": "Tart", "price": 90, "categoryId": 999})
        self.assertEqual(response.status_code, 404)


if __name__ == "__main__":
    unittest.main()
