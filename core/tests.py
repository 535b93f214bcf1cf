import json
import logging
from decimal import Decimal

from django.contrib.auth import get_user_model
from django.db import IntegrityError
from django.test import SimpleTestCase, TestCase
from rest_framework.test import APIClient

from auctions.models import Auction, AuctionRegistration, Lot
from common.exceptions import custom_exception_handler
from common.logging import JsonFormatter
from core.models import AuditLog


class AuditLogTests(TestCase):
    def setUp(self):
        self.client = APIClient()
        self.user_model = get_user_model()
        self.admin = self.user_model.objects.create_user(username="audit-admin", password="pass1234", is_staff=True)
        self.buyer = self.user_model.objects.create_user(username="audit-buyer", password="pass1234")

        self.auction = Auction.objects.create(auction_code="A-AUD", title="Audit Sale", status=Auction.Status.ENDED)
        AuctionRegistration.objects.create(
            auction=self.auction,
            user=self.buyer,
            status=AuctionRegistration.Status.APPROVED,
            full_name="Audit Buyer",
            billing_address_line1="1 Fort Street",
            billing_city="Mumbai",
            billing_state="Maharashtra",
            billing_pin_code="400001",
        )
        Lot.objects.create(
            auction=self.auction, lot_number=1, title="Lot 1", hammer_price=Decimal("1000"), status=Lot.Status.SOLD
        )

    def test_invoice_create_writes_audit_log_with_request_id(self):
        self.client.force_authenticate(user=self.admin)

        res = self.client.post(
            "/api/v1/admin/invoices/",
            {"auction": str(self.auction.id), "buyer": str(self.buyer.id), "lots": [1]},
            format="json",
            HTTP_X_REQUEST_ID="req-123",
        )

        self.assertEqual(res.status_code, 201)
        self.assertEqual(res["X-Request-ID"], "req-123")
        log = AuditLog.objects.get(action="invoice.create", request_id="req-123")
        self.assertEqual(log.entity, "invoice")
        self.assertEqual(log.entity_id, res.json()["id"])
        self.assertEqual(log.summary, "B/SALE1")
        self.assertEqual(log.actor_id, self.admin.id)
        self.assertEqual(log.after_snapshot["amounts"]["totalPayable"], 1000)

    def test_failed_request_writes_no_audit_log(self):
        self.client.force_authenticate(user=self.admin)

        res = self.client.post(
            "/api/v1/admin/invoices/",
            {"auction": str(self.auction.id), "buyer": str(self.buyer.id), "lots": [99]},
            format="json",
        )

        self.assertEqual(res.status_code, 404)
        self.assertFalse(AuditLog.objects.exists())

    def test_audit_logs_are_read_only(self):
        self.client.force_authenticate(user=self.admin)
        log = AuditLog.objects.create(action="test.action", entity="test", actor=self.admin)

        patch_res = self.client.patch(f"/api/v1/admin/audit-logs/{log.id}/", {"action": "changed"}, format="json")
        delete_res = self.client.delete(f"/api/v1/admin/audit-logs/{log.id}/")

        self.assertEqual(patch_res.status_code, 405)
        self.assertEqual(patch_res.json()["code"], "method_not_allowed")
        self.assertEqual(delete_res.status_code, 405)

    def test_audit_logs_filter_and_export(self):
        self.client.force_authenticate(user=self.admin)
        AuditLog.objects.create(action="invoice.delete", entity="invoice", entity_id="inv-1", actor=self.admin)
        AuditLog.objects.create(action="lots.transfer", entity="invoice", entity_id="inv-2", actor=self.admin)

        listing = self.client.get("/api/v1/admin/audit-logs/", {"action": "lots.transfer"})
        export = self.client.get("/api/v1/admin/audit-logs/export/", {"entity_id": "inv-1"})

        self.assertEqual(listing.status_code, 200)
        self.assertEqual([item["entity_id"] for item in listing.json()["results"]], ["inv-2"])
        self.assertEqual(export["Content-Type"], "text/csv")
        body = export.content.decode()
        self.assertIn("invoice.delete", body)
        self.assertNotIn("lots.transfer", body)

    def test_buyers_cannot_read_audit_logs(self):
        self.client.force_authenticate(user=self.buyer)

        res = self.client.get("/api/v1/admin/audit-logs/")

        self.assertEqual(res.status_code, 403)
        self.assertEqual(res.json()["code"], "permission_denied")


class AuthTests(TestCase):
    def setUp(self):
        self.client = APIClient()
        self.user_model = get_user_model()
        self.user = self.user_model.objects.create_user(
            username="token-user",
            email="Token.User@example.com",
            password="pass1234",
            first_name="Token",
            last_name="User",
        )

    def test_token_login_accepts_username_or_email(self):
        by_username = self.client.post(
            "/api/v1/token/", {"username": "token-user", "password": "pass1234"}, format="json"
        )
        by_email = self.client.post(
            "/api/v1/token/", {"username": "token.user@example.com", "password": "pass1234"}, format="json"
        )

        self.assertEqual(by_username.status_code, 200)
        self.assertEqual(by_email.status_code, 200)
        self.assertIn("access", by_email.json())
        self.assertIn("refresh", by_email.json())

    def test_token_login_rejects_wrong_password(self):
        res = self.client.post("/api/v1/token/", {"username": "token-user", "password": "nope"}, format="json")

        self.assertEqual(res.status_code, 401)
        self.assertEqual(res.json()["code"], "authentication_failed")

    def test_anonymous_requests_are_rejected(self):
        res = self.client.get("/api/v1/invoices/")

        self.assertEqual(res.status_code, 401)
        self.assertEqual(res.json()["code"], "not_authenticated")

    def test_email_is_unique_case_insensitively(self):
        with self.assertRaises(IntegrityError):
            self.user_model.objects.create_user(username="other", email="token.user@EXAMPLE.com", password="x")


class HealthTests(TestCase):
    def test_healthz_echoes_request_id(self):
        res = APIClient().get("/api/v1/healthz/", HTTP_X_REQUEST_ID="probe-1")

        self.assertEqual(res.status_code, 200)
        self.assertEqual(res.json(), {"status": "ok", "request_id": "probe-1"})

    def test_readyz_checks_database(self):
        res = APIClient().get("/api/v1/readyz/")

        self.assertEqual(res.status_code, 200)
        self.assertEqual(res.json()["status"], "ready")


class ErrorEnvelopeTests(SimpleTestCase):
    def test_integrity_error_becomes_conflict(self):
        response = custom_exception_handler(IntegrityError("duplicate key"), {"view": None})

        self.assertEqual(response.status_code, 409)
        self.assertEqual(response.data["code"], "conflict")
        self.assertEqual(response.data["status"], 409)
        self.assertIsNone(response.data["errors"])

    def test_unhandled_error_hides_details(self):
        with self.assertLogs("common.exceptions", level="ERROR"):
            response = custom_exception_handler(RuntimeError("secret"), {"view": None})

        self.assertEqual(response.status_code, 500)
        self.assertEqual(response.data["code"], "internal_server_error")
        self.assertNotIn("secret", response.data["message"])


class JsonFormatterTests(SimpleTestCase):
    def test_invoice_context_is_included(self):
        record = logging.LogRecord("invoicing.services", logging.INFO, __file__, 1, "invoice_renumbered", None, None)
        record.invoice_type = "Customer"
        record.renumbered = {"B/SALE3": "B/SALE2"}

        payload = json.loads(JsonFormatter().format(record))

        self.assertEqual(payload["message"], "invoice_renumbered")
        self.assertEqual(payload["invoice_type"], "Customer")
        self.assertEqual(payload["renumbered"], {"B/SALE3": "B/SALE2"})
        self.assertNotIn("invoice_id", payload)
