import uuid
from decimal import Decimal
from io import StringIO

from django.contrib.auth import get_user_model
from django.core.management import call_command
from django.test import TestCase
from rest_framework.test import APIClient

from auctions.models import Auction, AuctionRegistration, Lot
from auctions.services import buyer_snapshot, get_lots, list_registered_buyers
from common.exceptions import NotFoundError
from invoicing.models import Invoice
from invoicing.services import create_invoice


class AuctionFixtureMixin:
    def setUp(self):
        self.client = APIClient()
        self.user_model = get_user_model()
        self.admin = self.user_model.objects.create_user(username="lots-admin", password="pass1234", is_staff=True)
        self.buyer = self.user_model.objects.create_user(
            username="meera", password="pass1234", email="meera@example.com", first_name="Meera", last_name="Nair"
        )
        self.auction = Auction.objects.create(auction_code="A-202", title="Stamps Sale", status=Auction.Status.ENDED)
        self.registration = AuctionRegistration.objects.create(
            auction=self.auction,
            user=self.buyer,
            status=AuctionRegistration.Status.APPROVED,
            full_name="Meera Nair",
            email="meera@example.com",
            mobile="9811111111",
            gst_number="32AABCU9603R1ZM",
            billing_address_line1="4 Beach Road",
            billing_address_line2="Fort Kochi",
            billing_city="Kochi",
            billing_state="Kerala",
            billing_pin_code="682001",
        )
        for number, status, price in [
            (1, Lot.Status.SOLD, "1200"),
            (2, Lot.Status.UNSOLD, None),
            (3, Lot.Status.UNSOLD, None),
            (4, Lot.Status.PENDING, None),
        ]:
            Lot.objects.create(
                auction=self.auction,
                lot_number=number,
                title=f"Stamp {number}",
                status=status,
                hammer_price=Decimal(price) if price else None,
            )


class BuyerSnapshotTests(AuctionFixtureMixin, TestCase):
    def test_snapshot_copies_registration_details(self):
        snapshot = buyer_snapshot(self.auction, self.buyer)

        details = snapshot["buyer_details"]
        self.assertEqual(details["name"], "Meera Nair")
        self.assertEqual(details["gstin"], "32AABCU9603R1ZM")
        self.assertEqual(details["pan"], "AABCU9603R")
        self.assertNotIn("commissionRate", details)
        self.assertEqual(snapshot["billing_address"]["street"], "4 Beach Road, Fort Kochi")
        self.assertEqual(snapshot["billing_address"]["stateCode"], "32")
        self.assertEqual(snapshot["shipping_address"], snapshot["billing_address"])

    def test_snapshot_uses_separate_shipping_address_and_commission(self):
        self.registration.same_as_billing = False
        self.registration.shipping_address_line1 = "9 Hill Road"
        self.registration.shipping_city = "Bengaluru"
        self.registration.shipping_state = "Karnataka"
        self.registration.shipping_pin_code = "560001"
        self.registration.commission_rate = Decimal("10.00")
        self.registration.save()

        snapshot = buyer_snapshot(self.auction, self.buyer)

        self.assertEqual(snapshot["shipping_address"]["stateCode"], "29")
        self.assertEqual(snapshot["billing_address"]["stateCode"], "32")
        self.assertEqual(snapshot["buyer_details"]["commissionRate"], "10.00")

    def test_unregistered_user_falls_back_to_company_state(self):
        walk_in = self.user_model.objects.create_user(username="walk-in", password="pass1234")

        snapshot = buyer_snapshot(self.auction, walk_in)

        self.assertEqual(snapshot["buyer_details"]["name"], "walk-in")
        self.assertEqual(snapshot["billing_address"]["state"], "Maharashtra")
        self.assertEqual(snapshot["billing_address"]["stateCode"], "27")

    def test_get_lots_keeps_requested_order_and_reports_missing(self):
        lots = get_lots(self.auction, [3, 1])
        self.assertEqual([lot.lot_number for lot in lots], [3, 1])

        with self.assertRaises(NotFoundError):
            get_lots(self.auction, [1, 7])


class AuctionApiTests(AuctionFixtureMixin, TestCase):
    def test_unsold_lots_lists_only_unsold(self):
        self.client.force_authenticate(user=self.admin)

        res = self.client.get(f"/api/v1/auctions/{self.auction.id}/unsold-lots/")

        self.assertEqual(res.status_code, 200)
        self.assertEqual([lot["lotNumber"] for lot in res.json()], [2, 3])
        self.assertIsNone(res.json()[0]["hammerPrice"])

    def test_unsold_lots_for_unknown_auction_is_not_found(self):
        self.client.force_authenticate(user=self.admin)

        res = self.client.get(f"/api/v1/auctions/{uuid.uuid4()}/unsold-lots/")

        self.assertEqual(res.status_code, 404)
        self.assertEqual(res.json()["code"], "not_found")

    def test_non_uuid_auction_id_is_not_found(self):
        self.client.force_authenticate(user=self.admin)

        res = self.client.get("/api/v1/auctions/not-a-uuid/unsold-lots/")

        self.assertEqual(res.status_code, 404)

    def test_buyers_cannot_list_unsold_lots(self):
        self.client.force_authenticate(user=self.buyer)

        res = self.client.get(f"/api/v1/auctions/{self.auction.id}/unsold-lots/")

        self.assertEqual(res.status_code, 403)

    def test_lots_are_paginated_and_filterable(self):
        self.client.force_authenticate(user=self.buyer)

        res = self.client.get(f"/api/v1/auctions/{self.auction.id}/lots/", {"status": "Sold"})

        self.assertEqual(res.status_code, 200)
        payload = res.json()
        self.assertEqual(sorted(payload.keys()), ["count", "next", "previous", "results"])
        self.assertEqual([lot["lotNumber"] for lot in payload["results"]], [1])

    def test_auction_list_status_filter(self):
        Auction.objects.create(auction_code="A-303", title="Notes Sale", status=Auction.Status.UPCOMING)
        self.client.force_authenticate(user=self.buyer)

        res = self.client.get("/api/v1/auctions/", {"status": "Ended"})

        self.assertEqual(res.status_code, 200)
        self.assertEqual([item["auctionCode"] for item in res.json()["results"]], ["A-202"])

    def test_buyers_list_includes_invoice_totals(self):
        invoice = create_invoice(
            invoice_type=Invoice.Type.CUSTOMER, auction_id=self.auction.id, buyer_id=self.buyer.id, lot_numbers=[1]
        )
        self.client.force_authenticate(user=self.admin)

        res = self.client.get(f"/api/v1/auctions/{self.auction.id}/buyers/")

        self.assertEqual(res.status_code, 200)
        [buyer] = res.json()
        self.assertEqual(buyer["buyerId"], str(self.buyer.id))
        self.assertEqual(buyer["gstNumber"], "32AABCU9603R1ZM")
        self.assertEqual(buyer["lotNumbers"], [1])
        self.assertEqual(buyer["totalPayable"], 1200)
        self.assertEqual(buyer["invoices"][0]["invoiceNumber"], invoice.invoice_number)

    def test_buyer_list_skips_pending_registrations(self):
        pending = self.user_model.objects.create_user(username="pending", password="pass1234")
        AuctionRegistration.objects.create(
            auction=self.auction,
            user=pending,
            full_name="Pending Person",
            billing_address_line1="x",
            billing_city="Pune",
            billing_state="Maharashtra",
            billing_pin_code="411001",
        )

        summaries = list_registered_buyers(self.auction.id)

        self.assertEqual([summary["name"] for summary in summaries], ["Meera Nair"])

    def test_registrations_endpoint_filters_by_status(self):
        self.client.force_authenticate(user=self.admin)

        res = self.client.get(f"/api/v1/auctions/{self.auction.id}/registrations/", {"status": "approved"})

        self.assertEqual(res.status_code, 200)
        self.assertEqual([item["fullName"] for item in res.json()], ["Meera Nair"])


class SeedDemoAuctionTests(TestCase):
    def test_seed_is_idempotent(self):
        call_command("seed_demo_auction", stdout=StringIO())
        call_command("seed_demo_auction", stdout=StringIO())

        auction = Auction.objects.get(auction_code="A-DEMO-01")
        self.assertEqual(auction.lots.filter(status=Lot.Status.UNSOLD).count(), 2)
        numbers = list(Invoice.objects.order_by("sequence_number").values_list("invoice_number", "total_payable"))
        self.assertEqual(numbers, [("B/SALE1", 2580), ("B/SALE2", 5580)])
