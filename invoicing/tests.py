import uuid
from datetime import date
from decimal import Decimal
from unittest.mock import patch

from django.contrib.auth import get_user_model
from django.test import SimpleTestCase, TestCase
from django.utils import timezone
from rest_framework.exceptions import ValidationError
from rest_framework.test import APIClient

from auctions.models import Auction, AuctionRegistration, Lot
from common.exceptions import ConflictError, NotFoundError
from core.models import AuditLog
from invoicing import services
from invoicing.aggregator import aggregate_invoice
from invoicing.documents import build_invoice_document
from invoicing.lot_transfer import assign_unsold_lots, transfer_lots
from invoicing.models import CommissionSettings, Invoice, InvoiceLot, InvoiceSequence
from invoicing.money import (
    aggregate_by_rate,
    commission_breakdown,
    commission_for,
    number_to_words,
    reverse_gst,
    round_total,
)
from invoicing.numbering import format_invoice_number, renumber_plan
from invoicing.tax import GST_TYPE_INTER_STATE, GST_TYPE_INTRA_STATE, gst_type_for, split_hammer_gst

User = get_user_model()


class MoneyTests(SimpleTestCase):
    def test_reverse_gst_parts_sum_to_inclusive_price(self):
        for price in ["0", "0.01", "1", "99.99", "1000", "1234.56", "2000", "80", "999999.99"]:
            for rate in ["0", "3", "5", "12", "18", "28"]:
                parts = reverse_gst(Decimal(price), Decimal(rate))
                self.assertEqual(parts["base"] + parts["gst"], Decimal(price).quantize(Decimal("0.01")))

    def test_reverse_gst_at_zero_rate_keeps_whole_price_as_base(self):
        self.assertEqual(reverse_gst(Decimal("1500"), 0), {"base": Decimal("1500.00"), "gst": Decimal("0.00")})

    def test_reverse_gst_backs_tax_out_of_price(self):
        self.assertEqual(reverse_gst(Decimal("1000"), 5), {"base": Decimal("952.38"), "gst": Decimal("47.62")})
        self.assertEqual(reverse_gst(Decimal("80"), 18), {"base": Decimal("67.80"), "gst": Decimal("12.20")})

    def test_reverse_gst_rejects_negative_rate(self):
        with self.assertRaises(ValueError):
            reverse_gst(Decimal("100"), -5)

    def test_round_total_returns_integer_and_small_round_off(self):
        for value in ["0", "0.49", "0.5", "1234.56", "3079.50", "3080.00", "99.01"]:
            result = round_total(Decimal(value))
            self.assertIsInstance(result["total_payable"], int)
            self.assertLess(abs(result["round_off"]), 1)
            self.assertEqual(result["total_payable"] - Decimal(value), result["round_off"])

    def test_round_total_rounds_half_away_from_zero(self):
        self.assertEqual(round_total(Decimal("2.50"))["total_payable"], 3)
        self.assertEqual(round_total(Decimal("3.50"))["total_payable"], 4)
        self.assertEqual(round_total(Decimal("1234.56")), {"round_off": Decimal("0.44"), "total_payable": 1235})

    def test_aggregate_by_rate_keeps_first_seen_order(self):
        items = [
            {"gst_rate": Decimal("18"), "base": Decimal("67.80"), "gst": Decimal("12.20")},
            {"gst_rate": Decimal("5"), "base": Decimal("952.38"), "gst": Decimal("47.62")},
            {"gst_rate": Decimal("5"), "base": Decimal("1904.76"), "gst": Decimal("95.24")},
        ]

        first = aggregate_by_rate(items)
        second = aggregate_by_rate(items)

        self.assertEqual(first, second)
        self.assertEqual(list(first), [Decimal("18.00"), Decimal("5.00")])
        self.assertEqual(first[Decimal("5.00")], {"value": Decimal("2857.14"), "amount": Decimal("142.86")})

    def test_commission_rate_switches_at_cutoff(self):
        cutoff = date(2024, 4, 1)
        self.assertEqual(commission_for(date(2024, 4, 1), cutoff, Decimal("10"), Decimal("15")), Decimal("10"))
        self.assertEqual(commission_for(date(2024, 3, 31), cutoff, Decimal("10"), Decimal("15")), Decimal("15"))
        self.assertEqual(commission_for(date(2024, 3, 31), cutoff, Decimal("10"), None), Decimal("12"))
        self.assertEqual(commission_for(date(2024, 3, 31), None, Decimal("10"), None), Decimal("12"))

    def test_commission_breakdown_adds_nine_percent_cgst_and_sgst(self):
        result = commission_breakdown(Decimal("3000"), Decimal("12"))
        self.assertEqual(result["commission"], Decimal("360.00"))
        self.assertEqual(result["cgst"], Decimal("32.40"))
        self.assertEqual(result["sgst"], Decimal("32.40"))
        self.assertEqual(result["total"], Decimal("424.80"))

    def test_number_to_words_uses_indian_grouping(self):
        cases = {
            0: "Zero",
            7: "Seven",
            19: "Nineteen",
            100: "One Hundred",
            1500: "One Thousand Five Hundred",
            3080: "Three Thousand Eighty",
            100000: "One Lakh",
            1234567: "Twelve Lakh Thirty Four Thousand Five Hundred Sixty Seven",
            10000000: "One Crore",
            250000000: "Twenty Five Crore",
        }
        for number, words in cases.items():
            self.assertEqual(number_to_words(number), words)

    def test_gst_type_follows_place_of_supply(self):
        self.assertEqual(gst_type_for("27", "27"), GST_TYPE_INTRA_STATE)
        self.assertEqual(gst_type_for("29", "27"), GST_TYPE_INTER_STATE)
        self.assertEqual(gst_type_for(None, "27"), GST_TYPE_INTRA_STATE)

    def test_split_hammer_gst_halves_intra_state_tax(self):
        intra = split_hammer_gst(Decimal("142.87"), GST_TYPE_INTRA_STATE)
        self.assertEqual(intra["cgst"] + intra["sgst"], Decimal("142.87"))
        self.assertEqual(intra["igst"], Decimal("0.00"))

        inter = split_hammer_gst(Decimal("142.87"), GST_TYPE_INTER_STATE)
        self.assertEqual(inter["igst"], Decimal("142.87"))
        self.assertEqual(inter["cgst"], Decimal("0.00"))


class AggregatorTests(SimpleTestCase):
    lines = [
        {"lot_number": 10, "hammer_price": Decimal("1000"), "gst_rate": Decimal("5")},
        {"lot_number": 11, "hammer_price": Decimal("2000"), "gst_rate": Decimal("5")},
    ]

    def test_two_lots_with_packing_charge(self):
        totals = aggregate_invoice(self.lines, packing_charges={"amount": Decimal("80"), "gst_rate": Decimal("18")})

        self.assertEqual(totals["gross_amount"], Decimal("2924.94"))
        self.assertEqual(totals["total_gst"], Decimal("155.06"))
        self.assertEqual(totals["amounts"], {"round_off": Decimal("0.00"), "total_payable": 3080})
        self.assertEqual(totals["hammer_total"], Decimal("3000.00"))
        self.assertEqual(totals["hammer_gst"], Decimal("142.86"))
        self.assertEqual([line["base"] for line in totals["lines"]], [Decimal("952.38"), Decimal("1904.76")])
        self.assertEqual(list(totals["gst_summary"]), [Decimal("5.00"), Decimal("18.00")])

    def test_declined_insurance_and_zero_charges_are_left_out(self):
        totals = aggregate_invoice(
            self.lines,
            packing_charges={"amount": Decimal("0"), "gst_rate": Decimal("18")},
            insurance_charges={"amount": Decimal("500"), "gst_rate": Decimal("18"), "declined": True},
        )

        self.assertEqual(totals["charges"], [])
        self.assertEqual(totals["amounts"]["total_payable"], 3000)

    def test_same_inputs_give_same_totals(self):
        charges = {"amount": Decimal("120"), "gst_rate": Decimal("18"), "declined": False}
        self.assertEqual(
            aggregate_invoice(self.lines, insurance_charges=charges),
            aggregate_invoice(self.lines, insurance_charges=charges),
        )


class NumberingTests(SimpleTestCase):
    def test_format_uses_type_prefix(self):
        self.assertEqual(format_invoice_number("Customer", 7), "B/SALE7")
        self.assertEqual(format_invoice_number("Vendor", 2), "V/SALE2")
        self.assertEqual(format_invoice_number("ASI", 3), "ASI/3")

    def test_renumber_plan_shifts_everything_above_the_gap(self):
        survivors = [("d", 4), ("a", 1), ("c", 3), ("e", 5)]

        plan = renumber_plan("Customer", survivors, deleted_sequence=2)

        self.assertEqual([entry["id"] for entry in plan], ["c", "d", "e"])
        self.assertEqual([entry["new_sequence"] for entry in plan], [2, 3, 4])
        self.assertEqual(plan[0]["old_number"], "B/SALE3")
        self.assertEqual(plan[0]["new_number"], "B/SALE2")

    def test_deleting_last_invoice_needs_no_renumbering(self):
        self.assertEqual(renumber_plan("Customer", [("a", 1), ("b", 2)], deleted_sequence=3), [])


class InvoicingFixtureMixin:
    def setUp(self):
        self.client = APIClient()
        self.admin = User.objects.create_user(username="settle-admin", password="pass1234", is_staff=True)
        self.buyer_a = User.objects.create_user(username="buyer-a", password="pass1234", email="a@example.com")
        self.buyer_b = User.objects.create_user(username="buyer-b", password="pass1234", email="b@example.com")
        self.buyer_c = User.objects.create_user(username="buyer-c", password="pass1234", email="c@example.com")

        self.auction = Auction.objects.create(auction_code="A-101", title="Coins Sale", status=Auction.Status.ENDED)
        self._register(self.buyer_a, "Asha Kulkarni", "Maharashtra")
        self._register(self.buyer_b, "Bala Iyer", "Karnataka")
        self._register(self.buyer_c, "Chetan Shah", "Maharashtra")

        self.lots = {}
        for number, price in [(1, "1000"), (2, "2000"), (3, "1500"), (4, "500"), (10, "1000"), (11, "2000")]:
            self.lots[number] = Lot.objects.create(
                auction=self.auction,
                lot_number=number,
                title=f"Lot {number}",
                hammer_price=Decimal(price),
                gst_rate=Decimal("5"),
                status=Lot.Status.SOLD,
            )
        for number in (5, 6):
            self.lots[number] = Lot.objects.create(
                auction=self.auction,
                lot_number=number,
                title=f"Unsold lot {number}",
                status=Lot.Status.UNSOLD,
            )

    def _register(self, user, name, state):
        return AuctionRegistration.objects.create(
            auction=self.auction,
            user=user,
            status=AuctionRegistration.Status.APPROVED,
            full_name=name,
            email=user.email,
            gst_number="27AAPFU0939F1ZV",
            billing_address_line1="1 Main Road",
            billing_city="City",
            billing_state=state,
            billing_pin_code="400001",
            approved_at=timezone.now(),
        )

    def _invoice(self, buyer, lot_numbers, **kwargs):
        return services.create_invoice(
            invoice_type=kwargs.pop("invoice_type", Invoice.Type.CUSTOMER),
            auction_id=self.auction.id,
            buyer_id=buyer.id,
            lot_numbers=lot_numbers,
            **kwargs,
        )

    def _lot_numbers(self, invoice):
        return sorted(InvoiceLot.objects.filter(invoice=invoice).values_list("lot_number", flat=True))


class InvoiceLifecycleTests(InvoicingFixtureMixin, TestCase):
    def test_create_computes_totals_and_numbers(self):
        invoice = self._invoice(
            self.buyer_a, [10, 11], packing_charges={"amount": Decimal("80"), "gst_rate": Decimal("18")}
        )

        invoice.refresh_from_db()
        self.assertEqual(invoice.invoice_number, "B/SALE1")
        self.assertEqual(invoice.total_payable, 3080)
        self.assertEqual(invoice.round_off, Decimal("0.00"))
        self.assertEqual(invoice.cgst, Decimal("71.43"))
        self.assertEqual(invoice.sgst, Decimal("71.43"))
        self.assertEqual(invoice.gst_type, GST_TYPE_INTRA_STATE)
        self.assertEqual(invoice.buyer_details["name"], "Asha Kulkarni")
        self.assertEqual(invoice.buyer_details["pan"], "AAPFU0939F")
        self.assertEqual(self._lot_numbers(invoice), [10, 11])

    def test_out_of_state_buyer_is_charged_igst(self):
        invoice = self._invoice(self.buyer_b, [1])

        invoice.refresh_from_db()
        self.assertEqual(invoice.gst_type, GST_TYPE_INTER_STATE)
        self.assertEqual(invoice.igst, Decimal("47.62"))
        self.assertEqual(invoice.cgst, Decimal("0.00"))

    def test_create_rejects_empty_lots(self):
        with self.assertRaises(ValidationError):
            self._invoice(self.buyer_a, [])
        self.assertFalse(Invoice.objects.exists())

    def test_create_rejects_unknown_lot_and_unsold_lot(self):
        with self.assertRaises(NotFoundError):
            self._invoice(self.buyer_a, [1, 999])
        with self.assertRaises(ValidationError):
            self._invoice(self.buyer_a, [5])
        self.assertFalse(Invoice.objects.exists())

    def test_create_rejects_unknown_buyer(self):
        with self.assertRaises(NotFoundError):
            services.create_invoice(
                invoice_type=Invoice.Type.CUSTOMER,
                auction_id=self.auction.id,
                buyer_id=uuid.uuid4(),
                lot_numbers=[1],
            )

    def test_lot_cannot_be_invoiced_twice(self):
        self._invoice(self.buyer_a, [1, 2])

        with self.assertRaises(ConflictError):
            self._invoice(self.buyer_b, [2])
        self.assertEqual(Invoice.objects.count(), 1)
        self.assertEqual(InvoiceSequence.objects.get(invoice_type=Invoice.Type.CUSTOMER).last_number, 1)

    def test_vendor_invoice_may_list_a_lot_already_on_a_customer_invoice(self):
        self._invoice(self.buyer_a, [1])

        vendor_invoice = self._invoice(self.buyer_c, [1], invoice_type=Invoice.Type.VENDOR)

        self.assertEqual(vendor_invoice.invoice_number, "V/SALE1")

    def test_update_recomputes_after_charge_and_lot_changes(self):
        invoice = self._invoice(self.buyer_a, [10])

        updated = services.update_invoice(
            invoice.id,
            {"lot_numbers": [10, 11], "packing_charges": {"amount": Decimal("80"), "gst_rate": Decimal("18")}},
        )

        updated.refresh_from_db()
        self.assertEqual(self._lot_numbers(updated), [10, 11])
        self.assertEqual(updated.total_payable, 3080)

    def test_update_rejects_emptying_the_invoice(self):
        invoice = self._invoice(self.buyer_a, [1, 2])

        with self.assertRaises(ValidationError):
            services.update_invoice(invoice.id, {"lot_numbers": []})
        self.assertEqual(self._lot_numbers(invoice), [1, 2])

    def test_update_billing_state_switches_gst_type(self):
        invoice = self._invoice(self.buyer_a, [1])

        services.update_invoice(invoice.id, {"billing_address": {"state": "Karnataka", "stateCode": "29"}})

        invoice.refresh_from_db()
        self.assertEqual(invoice.gst_type, GST_TYPE_INTER_STATE)
        self.assertEqual(invoice.igst, Decimal("47.62"))

    def test_delete_renumbers_later_invoices_without_gaps(self):
        first = self._invoice(self.buyer_a, [1])
        second = self._invoice(self.buyer_b, [2])
        third = self._invoice(self.buyer_c, [3])
        fourth = self._invoice(self.buyer_a, [4])

        result = services.delete_invoice(second.id)

        self.assertEqual(result, {"renumbered": {"B/SALE3": "B/SALE2", "B/SALE4": "B/SALE3"}})
        numbers = list(Invoice.objects.order_by("sequence_number").values_list("invoice_number", flat=True))
        self.assertEqual(numbers, ["B/SALE1", "B/SALE2", "B/SALE3"])
        third.refresh_from_db()
        fourth.refresh_from_db()
        self.assertEqual(third.invoice_number, "B/SALE2")
        self.assertEqual(self._lot_numbers(third), [3])
        self.assertEqual(self._lot_numbers(fourth), [4])
        self.assertEqual(self._lot_numbers(first), [1])

        next_invoice = self._invoice(self.buyer_b, [2])
        self.assertEqual(next_invoice.invoice_number, "B/SALE4")

    def test_failed_renumber_rolls_back_the_whole_delete(self):
        invoices = [self._invoice(buyer, [number]) for buyer, number in [(self.buyer_a, 1), (self.buyer_b, 2), (self.buyer_c, 3), (self.buyer_a, 4)]]
        real_renumber = services._renumber_invoice
        calls = []

        def flaky(entry):
            calls.append(entry)
            if len(calls) == 2:
                raise ConflictError("simulated collision")
            real_renumber(entry)

        with patch("invoicing.services._renumber_invoice", side_effect=flaky):
            with self.assertRaises(ConflictError):
                services.delete_invoice(invoices[0].id)

        self.assertEqual(len(calls), 2)
        numbers = list(Invoice.objects.order_by("sequence_number").values_list("invoice_number", flat=True))
        self.assertEqual(numbers, ["B/SALE1", "B/SALE2", "B/SALE3", "B/SALE4"])
        self.assertEqual(self._lot_numbers(invoices[0]), [1])
        self.assertEqual(InvoiceSequence.objects.get(invoice_type=Invoice.Type.CUSTOMER).last_number, 4)

    def test_delete_only_renumbers_the_same_type(self):
        self._invoice(self.buyer_a, [1])
        customer = self._invoice(self.buyer_b, [2])
        vendor = self._invoice(self.buyer_c, [3], invoice_type=Invoice.Type.VENDOR)

        services.delete_invoice(Invoice.objects.get(invoice_number="B/SALE1").id)

        customer.refresh_from_db()
        vendor.refresh_from_db()
        self.assertEqual(customer.invoice_number, "B/SALE1")
        self.assertEqual(vendor.invoice_number, "V/SALE1")

    def test_mark_paid_sets_payment_fields(self):
        invoice = self._invoice(self.buyer_a, [1])

        paid = services.mark_invoice_paid(invoice.id)

        self.assertEqual(paid.status, Invoice.Status.PAID)
        self.assertEqual(paid.payment_mode, "Bank Transfer")
        self.assertIsNotNone(paid.paid_at)

    def test_cancelled_invoice_cannot_be_paid(self):
        invoice = self._invoice(self.buyer_a, [1])
        services.update_invoice(invoice.id, {"status": Invoice.Status.CANCELLED})

        with self.assertRaises(ValidationError):
            services.mark_invoice_paid(invoice.id)

    def test_update_cannot_move_cancelled_invoice_to_paid(self):
        invoice = self._invoice(self.buyer_a, [1])
        services.update_invoice(invoice.id, {"status": Invoice.Status.CANCELLED})

        with self.assertRaises(ValidationError):
            services.update_invoice(invoice.id, {"status": Invoice.Status.PAID})

        invoice.refresh_from_db()
        self.assertEqual(invoice.status, Invoice.Status.CANCELLED)
        self.assertIsNone(invoice.paid_at)

    def test_update_takes_the_sequence_lock_first(self):
        invoice = self._invoice(self.buyer_a, [1])

        with patch("invoicing.services.lock_sequence", wraps=services.lock_sequence) as lock:
            services.update_invoice(invoice.id, {"lot_numbers": [1, 2]})

        lock.assert_called_once_with(Invoice.Type.CUSTOMER)
        self.assertEqual(self._lot_numbers(invoice), [1, 2])


class SplitInvoiceTests(InvoicingFixtureMixin, TestCase):
    def test_split_moves_selected_lots_to_a_new_invoice(self):
        invoice = self._invoice(
            self.buyer_a, [1, 2, 3], packing_charges={"amount": Decimal("80"), "gst_rate": Decimal("18")}
        )

        result = services.split_invoice(invoice.id, [2])

        original = result["original"]
        created = result["created"]
        original.refresh_from_db()
        created.refresh_from_db()
        self.assertEqual(self._lot_numbers(original), [1, 3])
        self.assertEqual(self._lot_numbers(created), [2])
        self.assertEqual(created.invoice_number, "B/SALE2")
        self.assertEqual(created.buyer_id, self.buyer_a.id)
        self.assertEqual(created.packing_amount, Decimal("0.00"))
        self.assertEqual(original.packing_amount, Decimal("80.00"))
        self.assertEqual(created.total_payable, 2000)
        self.assertEqual(original.total_payable, 2580)
        self.assertEqual(InvoiceLot.objects.filter(lot__auction=self.auction).count(), 3)

    def test_split_rejects_empty_full_and_foreign_selections(self):
        invoice = self._invoice(self.buyer_a, [1, 2])

        for selection in ([], [1, 2], [1, 3], [1, 1]):
            with self.assertRaises(ValidationError):
                services.split_invoice(invoice.id, selection)

        self.assertEqual(Invoice.objects.count(), 1)
        self.assertEqual(self._lot_numbers(invoice), [1, 2])


class LotTransferTests(InvoicingFixtureMixin, TestCase):
    def test_transfer_moves_lot_into_a_new_invoice_for_target(self):
        source = self._invoice(self.buyer_a, [1, 2])

        result = transfer_lots(
            auction_id=self.auction.id, from_buyer_id=self.buyer_a.id, to_buyer_id=self.buyer_b.id, lot_numbers=[1]
        )

        target = result["to"]
        source.refresh_from_db()
        self.assertTrue(result["created"])
        self.assertEqual(self._lot_numbers(source), [2])
        self.assertEqual(self._lot_numbers(target), [1])
        self.assertEqual(target.buyer_id, self.buyer_b.id)
        self.assertEqual(target.packing_amount, Decimal("80.00"))
        self.assertEqual(source.total_payable, 2000)
        self.lots[1].refresh_from_db()
        self.assertEqual(self.lots[1].winner_id, self.buyer_b.id)

    def test_transfer_appends_to_existing_target_invoice(self):
        self._invoice(self.buyer_a, [1, 2])
        existing = self._invoice(self.buyer_b, [3])

        result = transfer_lots(
            auction_id=self.auction.id, from_buyer_id=self.buyer_a.id, to_buyer_id=self.buyer_b.id, lot_numbers=[2]
        )

        self.assertEqual(result["to"].id, existing.id)
        self.assertEqual(self._lot_numbers(existing), [2, 3])
        existing.refresh_from_db()
        self.assertEqual(existing.total_payable, 3500)

    def test_transfer_that_empties_source_deletes_and_renumbers(self):
        source = self._invoice(self.buyer_a, [1])
        other = self._invoice(self.buyer_c, [3])

        result = transfer_lots(
            auction_id=self.auction.id, from_buyer_id=self.buyer_a.id, to_buyer_id=self.buyer_b.id, lot_numbers=[1]
        )

        self.assertIsNone(result["from"])
        self.assertFalse(Invoice.objects.filter(id=source.id).exists())
        other.refresh_from_db()
        self.assertEqual(other.invoice_number, "B/SALE1")
        self.assertEqual(result["to"].invoice_number, "B/SALE2")
        self.assertEqual(result["renumbered"], {"B/SALE2": "B/SALE1", "B/SALE3": "B/SALE2"})
        self.assertEqual(self._lot_numbers(result["to"]), [1])

    def test_transfer_validation(self):
        self._invoice(self.buyer_a, [1, 2])
        self._invoice(self.buyer_c, [3])
        outsider = User.objects.create_user(username="outsider", password="pass1234")

        with self.assertRaises(ValidationError):
            transfer_lots(auction_id=self.auction.id, from_buyer_id=self.buyer_a.id, to_buyer_id=self.buyer_a.id, lot_numbers=[1])
        with self.assertRaises(ValidationError):
            transfer_lots(auction_id=self.auction.id, from_buyer_id=self.buyer_a.id, to_buyer_id=self.buyer_b.id, lot_numbers=[])
        with self.assertRaises(ValidationError):
            transfer_lots(auction_id=self.auction.id, from_buyer_id=self.buyer_a.id, to_buyer_id=self.buyer_b.id, lot_numbers=[4])
        with self.assertRaises(NotFoundError):
            transfer_lots(auction_id=self.auction.id, from_buyer_id=self.buyer_a.id, to_buyer_id=outsider.id, lot_numbers=[1])
        with self.assertRaises(NotFoundError):
            transfer_lots(auction_id=self.auction.id, from_buyer_id=uuid.uuid4(), to_buyer_id=self.buyer_b.id, lot_numbers=[1])
        with self.assertRaises(ConflictError):
            transfer_lots(auction_id=self.auction.id, from_buyer_id=self.buyer_a.id, to_buyer_id=self.buyer_b.id, lot_numbers=[3])

        self.assertEqual(Invoice.objects.count(), 2)


class UnsoldAssignmentTests(InvoicingFixtureMixin, TestCase):
    def test_assign_sells_lots_and_opens_invoice(self):
        invoice = assign_unsold_lots(
            auction_id=self.auction.id,
            buyer_id=self.buyer_b.id,
            prices={5: Decimal("500"), 6: Decimal("750")},
        )

        invoice.refresh_from_db()
        self.assertEqual(self._lot_numbers(invoice), [5, 6])
        self.assertEqual(invoice.total_payable, 1330)
        self.lots[5].refresh_from_db()
        self.assertEqual(self.lots[5].status, Lot.Status.SOLD)
        self.assertEqual(self.lots[5].hammer_price, Decimal("500.00"))
        self.assertEqual(self.lots[5].winner_id, self.buyer_b.id)

    def test_assign_appends_to_buyers_open_invoice(self):
        existing = self._invoice(self.buyer_a, [1])

        invoice = assign_unsold_lots(auction_id=self.auction.id, buyer_id=self.buyer_a.id, prices={5: Decimal("500")})

        self.assertEqual(invoice.id, existing.id)
        self.assertEqual(self._lot_numbers(existing), [1, 5])

    def test_missing_or_zero_price_changes_nothing(self):
        for prices in ({5: Decimal("500"), 6: None}, {5: Decimal("0")}, {}):
            with self.assertRaises(ValidationError):
                assign_unsold_lots(auction_id=self.auction.id, buyer_id=self.buyer_b.id, prices=prices)

        self.lots[5].refresh_from_db()
        self.assertEqual(self.lots[5].status, Lot.Status.UNSOLD)
        self.assertIsNone(self.lots[5].hammer_price)
        self.assertFalse(Invoice.objects.exists())

    def test_sold_lot_cannot_be_assigned(self):
        with self.assertRaises(ValidationError):
            assign_unsold_lots(auction_id=self.auction.id, buyer_id=self.buyer_b.id, prices={1: Decimal("900"), 5: Decimal("500")})

        self.lots[5].refresh_from_db()
        self.assertEqual(self.lots[5].status, Lot.Status.UNSOLD)

    def test_unsold_lot_already_billed_is_a_conflict(self):
        vendor_invoice = self._invoice(self.buyer_c, [4], invoice_type=Invoice.Type.VENDOR)
        InvoiceLot.objects.create(
            invoice=vendor_invoice,
            invoice_type=vendor_invoice.invoice_type,
            lot=self.lots[6],
            lot_number=6,
            description="Unsold lot 6",
            hammer_price=Decimal("100"),
        )

        with self.assertRaises(ConflictError):
            assign_unsold_lots(auction_id=self.auction.id, buyer_id=self.buyer_b.id, prices={6: Decimal("300")})


class InvoiceDocumentTests(InvoicingFixtureMixin, TestCase):
    def test_commission_is_shown_but_never_added_to_total(self):
        invoice = self._invoice(
            self.buyer_a, [10, 11], packing_charges={"amount": Decimal("80"), "gst_rate": Decimal("18")}
        )

        document = build_invoice_document(Invoice.objects.get(id=invoice.id), CommissionSettings.load())

        self.assertEqual(document["amounts"]["totalPayable"], 3080)
        self.assertEqual(document["commission"]["rate"], Decimal("12"))
        self.assertEqual(document["commission"]["amount"], Decimal("360.00"))
        self.assertEqual(document["commission"]["total"], Decimal("424.80"))
        self.assertEqual(document["amountInWords"], "Rs. Three Thousand Eighty Only")
        self.assertEqual(document["grossAmount"] + document["totalGst"], Decimal("3080.00"))
        invoice.refresh_from_db()
        self.assertEqual(invoice.total_payable, 3080)

    def test_global_rate_applies_from_cutoff_date(self):
        invoice = self._invoice(self.buyer_a, [10, 11], invoice_date=date(2024, 6, 1))
        commission_settings = CommissionSettings.load()
        commission_settings.global_commission_rate = Decimal("10")
        commission_settings.commission_cutoff_date = date(2024, 4, 1)
        commission_settings.save()

        document = build_invoice_document(Invoice.objects.get(id=invoice.id), commission_settings)

        self.assertEqual(document["commission"]["amount"], Decimal("300.00"))
        self.assertEqual(document["amounts"]["totalPayable"], 3000)

    def test_invoice_override_rate_is_used_before_cutoff(self):
        invoice = self._invoice(self.buyer_a, [10, 11])
        services.set_invoice_commission(invoice.id, Decimal("15"))

        document = build_invoice_document(Invoice.objects.get(id=invoice.id), CommissionSettings.load())

        self.assertEqual(document["commission"]["amount"], Decimal("450.00"))

    def test_vendor_document_settles_net_of_commission(self):
        invoice = self._invoice(self.buyer_c, [10, 11], invoice_type=Invoice.Type.VENDOR)

        document = build_invoice_document(Invoice.objects.get(id=invoice.id), CommissionSettings.load())

        self.assertEqual(document["settlement"]["commission"], Decimal("450.00"))
        self.assertEqual(document["settlement"]["netPayable"], Decimal("2469.00"))


class InvoiceApiTests(InvoicingFixtureMixin, TestCase):
    def test_admin_creates_invoice_with_wire_field_names(self):
        self.client.force_authenticate(user=self.admin)

        response = self.client.post(
            "/api/v1/admin/invoices/",
            {
                "invoiceType": "Customer",
                "auction": str(self.auction.id),
                "buyer": str(self.buyer_a.id),
                "lots": [10, 11],
                "packingCharges": {"amount": "80", "gstRate": "18"},
            },
            format="json",
        )

        self.assertEqual(response.status_code, 201)
        body = response.json()
        self.assertEqual(body["invoiceNumber"], "B/SALE1")
        self.assertEqual(body["amounts"], {"roundOff": "0.00", "totalPayable": 3080})
        self.assertEqual(body["packingCharges"], {"amount": "80.00", "gstRate": "18.00"})
        self.assertEqual(body["gst"]["type"], "CGST+SGST")
        self.assertEqual([line["lotNumber"] for line in body["lots"]], [10, 11])
        self.assertEqual(body["status"], "Generated")
        self.assertFalse(body["sentToCustomer"])
        self.assertTrue(AuditLog.objects.filter(action="invoice.create", entity_id=body["id"]).exists())

    def test_empty_lots_returns_validation_envelope(self):
        self.client.force_authenticate(user=self.admin)

        response = self.client.post(
            "/api/v1/admin/invoices/",
            {"auction": str(self.auction.id), "buyer": str(self.buyer_a.id), "lots": []},
            format="json",
        )

        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["code"], "validation_error")
        self.assertIn("lots", response.json()["errors"])

    def test_owned_lot_returns_conflict_envelope(self):
        self._invoice(self.buyer_a, [1])
        self.client.force_authenticate(user=self.admin)

        response = self.client.post(
            "/api/v1/admin/invoices/",
            {"auction": str(self.auction.id), "buyer": str(self.buyer_b.id), "lots": [1]},
            format="json",
        )

        self.assertEqual(response.status_code, 409)
        self.assertEqual(response.json()["code"], "conflict")
        self.assertIn("B/SALE1", response.json()["message"])

    def test_patch_cannot_edit_totals(self):
        invoice = self._invoice(self.buyer_a, [1])
        self.client.force_authenticate(user=self.admin)

        response = self.client.patch(
            f"/api/v1/admin/invoices/{invoice.id}/", {"amounts": {"totalPayable": 1}}, format="json"
        )

        self.assertEqual(response.status_code, 400)
        invoice.refresh_from_db()
        self.assertEqual(invoice.total_payable, 1000)

    def test_patch_updates_charges_and_status(self):
        invoice = self._invoice(self.buyer_a, [10, 11])
        self.client.force_authenticate(user=self.admin)

        response = self.client.patch(
            f"/api/v1/admin/invoices/{invoice.id}/",
            {"packingCharges": {"amount": "80"}, "status": "Sent"},
            format="json",
        )

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["amounts"]["totalPayable"], 3080)
        self.assertTrue(response.json()["sentToCustomer"])

    def test_delete_returns_renumbering(self):
        first = self._invoice(self.buyer_a, [1])
        self._invoice(self.buyer_b, [2])
        self.client.force_authenticate(user=self.admin)

        response = self.client.delete(f"/api/v1/admin/invoices/{first.id}/")

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json(), {"renumbered": {"B/SALE2": "B/SALE1"}})

    def test_split_endpoint(self):
        invoice = self._invoice(self.buyer_a, [1, 2])
        self.client.force_authenticate(user=self.admin)

        response = self.client.post(f"/api/v1/admin/invoices/{invoice.id}/split/", {"lots": [2]}, format="json")

        self.assertEqual(response.status_code, 201)
        self.assertEqual([line["lotNumber"] for line in response.json()["original"]["lots"]], [1])
        self.assertEqual([line["lotNumber"] for line in response.json()["created"]["lots"]], [2])

    def test_transfer_and_assign_endpoints(self):
        self._invoice(self.buyer_a, [1, 2])
        self.client.force_authenticate(user=self.admin)

        transfer = self.client.post(
            "/api/v1/admin/lot-transfer/transfer/",
            {
                "auction": str(self.auction.id),
                "fromBuyer": str(self.buyer_a.id),
                "toBuyer": str(self.buyer_b.id),
                "lots": [2],
            },
            format="json",
        )
        assign = self.client.post(
            "/api/v1/admin/lot-transfer/assign-unsold/",
            {"auction": str(self.auction.id), "buyer": str(self.buyer_b.id), "prices": {"5": "500"}},
            format="json",
        )

        self.assertEqual(transfer.status_code, 200)
        self.assertEqual([line["lotNumber"] for line in transfer.json()["from"]["lots"]], [1])
        self.assertEqual([line["lotNumber"] for line in transfer.json()["to"]["lots"]], [2])
        self.assertEqual(assign.status_code, 201)
        self.assertEqual([line["lotNumber"] for line in assign.json()["lots"]], [2, 5])

    def test_assign_with_missing_price_is_rejected(self):
        self.client.force_authenticate(user=self.admin)

        response = self.client.post(
            "/api/v1/admin/lot-transfer/assign-unsold/",
            {"auction": str(self.auction.id), "buyer": str(self.buyer_b.id), "prices": {"5": "500", "6": None}},
            format="json",
        )

        self.assertEqual(response.status_code, 400)
        self.assertIn("6", response.json()["errors"]["prices"])
        self.assertFalse(Invoice.objects.exists())

    def test_assign_rejects_the_same_lot_written_twice(self):
        self.client.force_authenticate(user=self.admin)

        response = self.client.post(
            "/api/v1/admin/lot-transfer/assign-unsold/",
            {"auction": str(self.auction.id), "buyer": str(self.buyer_b.id), "prices": {"5": "500", "05": "600"}},
            format="json",
        )

        self.assertEqual(response.status_code, 400)
        self.assertIn("prices", response.json()["errors"])
        self.assertFalse(Invoice.objects.exists())
        self.assertEqual(Lot.objects.get(auction=self.auction, lot_number=5).status, Lot.Status.UNSOLD)

    def test_failed_audit_rolls_back_the_create(self):
        self.client.force_authenticate(user=self.admin)

        with patch("invoicing.views.create_audit_log_from_request", side_effect=RuntimeError("audit down")):
            with self.assertLogs("common.exceptions", level="ERROR"):
                response = self.client.post(
                    "/api/v1/admin/invoices/",
                    {"auction": str(self.auction.id), "buyer": str(self.buyer_a.id), "lots": [1]},
                    format="json",
                )

        self.assertEqual(response.status_code, 500)
        self.assertFalse(Invoice.objects.exists())
        self.assertEqual(InvoiceSequence.objects.filter(last_number__gt=0).count(), 0)

    def test_failed_audit_keeps_the_deleted_invoice(self):
        invoice = self._invoice(self.buyer_a, [1])
        self.client.force_authenticate(user=self.admin)

        with patch("invoicing.views.create_audit_log_from_request", side_effect=RuntimeError("audit down")):
            with self.assertLogs("common.exceptions", level="ERROR"):
                response = self.client.delete(f"/api/v1/admin/invoices/{invoice.id}/")

        self.assertEqual(response.status_code, 500)
        self.assertTrue(Invoice.objects.filter(id=invoice.id).exists())
        self.assertFalse(AuditLog.objects.exists())

    def test_unknown_invoice_returns_not_found_envelope(self):
        self.client.force_authenticate(user=self.admin)

        response = self.client.post(f"/api/v1/admin/invoices/{uuid.uuid4()}/pay/", {}, format="json")

        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.json()["code"], "not_found")

    def test_commission_settings_round_trip(self):
        self.client.force_authenticate(user=self.admin)

        put = self.client.put(
            "/api/v1/admin/settings/commission/",
            {"globalCommissionRate": "10.00", "commissionCutoffDate": "2024-04-01"},
            format="json",
        )
        get = self.client.get("/api/v1/admin/settings/commission/")

        self.assertEqual(put.status_code, 200)
        self.assertEqual(get.json()["globalCommissionRate"], "10.00")
        self.assertEqual(get.json()["commissionCutoffDate"], "2024-04-01")
        self.assertEqual(get.json()["updatedBy"], str(self.admin.id))

    def test_document_endpoint_separates_commission(self):
        invoice = self._invoice(self.buyer_a, [10, 11])
        self.client.force_authenticate(user=self.admin)

        response = self.client.get(f"/api/v1/admin/invoices/{invoice.id}/document/")

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data["amounts"]["totalPayable"], 3000)
        self.assertEqual(response.data["commission"]["amount"], Decimal("360.00"))

    def test_admin_list_filters_by_auction_and_type(self):
        self._invoice(self.buyer_a, [1])
        self._invoice(self.buyer_c, [2], invoice_type=Invoice.Type.VENDOR)
        self.client.force_authenticate(user=self.admin)

        response = self.client.get("/api/v1/admin/invoices/", {"auction": str(self.auction.id), "invoiceType": "Vendor"})

        self.assertEqual(response.status_code, 200)
        self.assertEqual([item["invoiceNumber"] for item in response.json()["results"]], ["V/SALE1"])

    def test_buyer_sees_only_own_invoices(self):
        own = self._invoice(self.buyer_a, [1])
        self._invoice(self.buyer_b, [2])
        self.client.force_authenticate(user=self.buyer_a)

        response = self.client.get("/api/v1/invoices/")
        admin_response = self.client.get("/api/v1/admin/invoices/")

        self.assertEqual([item["id"] for item in response.json()["results"]], [str(own.id)])
        self.assertEqual(admin_response.status_code, 403)
        self.assertEqual(admin_response.json()["code"], "permission_denied")

    def test_settlement_report(self):
        self._invoice(self.buyer_a, [1, 2])
        self.client.force_authenticate(user=self.admin)

        response = self.client.get("/api/v1/admin/reports/auction-settlement/", {"auction": str(self.auction.id)})

        self.assertEqual(response.status_code, 200)
        body = response.json()
        self.assertEqual(body["lots"]["unsold"], 2)
        self.assertEqual(body["lots"]["sold_not_invoiced"], [3, 4, 10, 11])
        self.assertEqual(body["customer_total_payable"], 3000)

    def test_invoice_register_csv_export(self):
        self._invoice(self.buyer_a, [1])
        self.client.force_authenticate(user=self.admin)

        response = self.client.get("/api/v1/admin/reports/invoice-register/", {"export": "csv"})

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response["Content-Type"], "text/csv")
        self.assertIn("B/SALE1", response.content.decode())
