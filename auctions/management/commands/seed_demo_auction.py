from datetime import timedelta
from decimal import Decimal

from django.contrib.auth import get_user_model
from django.core.management.base import BaseCommand
from django.utils import timezone

from auctions.models import Auction, AuctionRegistration, Lot
from invoicing.models import Invoice, InvoiceLot
from invoicing.services import create_invoice

LOTS = [
    (1, "Mughal silver rupee, Shah Jahan", "Coins", "1500.00", Lot.Status.SOLD),
    (2, "British India 1 anna 1862", "Coins", "1000.00", Lot.Status.SOLD),
    (3, "George V 10 rupees note", "Notes", "2000.00", Lot.Status.SOLD),
    (4, "1948 Gandhi 10 rupee service stamp", "Stamps", "3500.00", Lot.Status.SOLD),
    (5, "Travancore 1 chuckram", "Coins", None, Lot.Status.UNSOLD),
    (6, "Hyderabad 1 rupee note", "Notes", None, Lot.Status.UNSOLD),
]


class Command(BaseCommand):
    help = "Seed a closed demo auction with buyers, registrations and sold/unsold lots."

    def _user(self, username, email, first_name, last_name, **extra):
        User = get_user_model()
        user, created = User.objects.get_or_create(
            username=username,
            defaults={"email": email, "first_name": first_name, "last_name": last_name, "is_active": True, **extra},
        )
        if created:
            user.set_password(f"{username}1234")
            user.save(update_fields=["password"])
        return user

    def handle(self, *args, **options):
        self._user("admin", "admin@example.com", "Auction", "Admin", is_staff=True, is_superuser=True)
        asha = self._user("asha", "asha@example.com", "Asha", "Kulkarni")
        vikram = self._user("vikram", "vikram@example.com", "Vikram", "Rao")

        now = timezone.now()
        auction, _ = Auction.objects.get_or_create(
            auction_code="A-DEMO-01",
            defaults={
                "title": "Coins, Notes & Stamps Sale 1",
                "status": Auction.Status.ENDED,
                "start_time": now - timedelta(days=2),
                "end_time": now - timedelta(days=1),
            },
        )

        registrations = [
            (asha, "Asha Kulkarni", "27AAPFU0939F1ZV", "Pune", "Maharashtra", "411001"),
            (vikram, "Vikram Rao", "29AAGCR4375J1ZU", "Bengaluru", "Karnataka", "560001"),
        ]
        for user, full_name, gstin, city, state, pin_code in registrations:
            AuctionRegistration.objects.get_or_create(
                auction=auction,
                user=user,
                defaults={
                    "status": AuctionRegistration.Status.APPROVED,
                    "full_name": full_name,
                    "email": user.email,
                    "mobile": "9800000000",
                    "gst_number": gstin,
                    "billing_address_line1": "12 MG Road",
                    "billing_city": city,
                    "billing_state": state,
                    "billing_pin_code": pin_code,
                    "approved_at": now,
                },
            )

        for lot_number, title, category, hammer_price, status in LOTS:
            Lot.objects.get_or_create(
                auction=auction,
                lot_number=lot_number,
                defaults={
                    "title": title,
                    "category": category,
                    "starting_price": Decimal("500.00"),
                    "hammer_price": Decimal(hammer_price) if hammer_price else None,
                    "status": status,
                    "winner": (asha if lot_number <= 2 else vikram) if hammer_price else None,
                },
            )

        invoiced = set(
            InvoiceLot.objects.filter(lot__auction=auction, invoice_type=Invoice.Type.CUSTOMER).values_list(
                "lot_number", flat=True
            )
        )
        for buyer, lot_numbers in ((asha, [1, 2]), (vikram, [3, 4])):
            if invoiced.intersection(lot_numbers):
                continue
            invoice = create_invoice(
                invoice_type=Invoice.Type.CUSTOMER,
                auction_id=auction.id,
                buyer_id=buyer.id,
                lot_numbers=lot_numbers,
                packing_charges={"amount": Decimal("80"), "gst_rate": Decimal("18")},
            )
            self.stdout.write(f"Invoice {invoice.invoice_number}: lots {lot_numbers}, total {invoice.total_payable}")

        self.stdout.write(self.style.SUCCESS("Demo auction seeded successfully."))
        self.stdout.write("Credentials: admin/admin1234, asha/asha1234, vikram/vikram1234")
        self.stdout.write(f"Auction: {auction.auction_code} | Unsold lots: 5, 6")
