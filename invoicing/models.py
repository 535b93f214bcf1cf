import uuid
from decimal import Decimal

from django.conf import settings
from django.db import models
from django.utils import timezone

from auctions.models import Auction, Lot
from core.models import User
from invoicing.tax import GST_TYPE_CHOICES, GST_TYPE_INTRA_STATE


class Invoice(models.Model):
    class Type(models.TextChoices):
        CUSTOMER = "Customer", "Customer"
        VENDOR = "Vendor", "Vendor"
        ASI = "ASI", "ASI Report"

    class Status(models.TextChoices):
        GENERATED = "Generated", "Generated"
        SENT = "Sent", "Sent"
        PAID = "Paid", "Paid"
        CANCELLED = "Cancelled", "Cancelled"

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    auction = models.ForeignKey(Auction, on_delete=models.PROTECT, related_name="invoices")
    invoice_type = models.CharField(max_length=16, choices=Type.choices, default=Type.CUSTOMER)
    sequence_number = models.PositiveIntegerField()
    invoice_number = models.CharField(max_length=64)
    invoice_date = models.DateField(default=timezone.localdate)
    buyer = models.ForeignKey(User, on_delete=models.PROTECT, related_name="auction_invoices")
    buyer_details = models.JSONField(default=dict, blank=True)
    billing_address = models.JSONField(default=dict, blank=True)
    shipping_address = models.JSONField(default=dict, blank=True)
    packing_amount = models.DecimalField(max_digits=12, decimal_places=2, default=0)
    packing_gst_rate = models.DecimalField(max_digits=5, decimal_places=2, default=18)
    insurance_amount = models.DecimalField(max_digits=12, decimal_places=2, default=0)
    insurance_gst_rate = models.DecimalField(max_digits=5, decimal_places=2, default=18)
    insurance_declined = models.BooleanField(default=False)
    gst_type = models.CharField(max_length=16, choices=GST_TYPE_CHOICES, default=GST_TYPE_INTRA_STATE)
    cgst = models.DecimalField(max_digits=12, decimal_places=2, default=0)
    sgst = models.DecimalField(max_digits=12, decimal_places=2, default=0)
    igst = models.DecimalField(max_digits=12, decimal_places=2, default=0)
    round_off = models.DecimalField(max_digits=6, decimal_places=2, default=0)
    total_payable = models.BigIntegerField(default=0)
    status = models.CharField(max_length=16, choices=Status.choices, default=Status.GENERATED)
    sent_to_customer = models.BooleanField(default=False)
    paid_at = models.DateTimeField(null=True, blank=True)
    payment_mode = models.CharField(max_length=64, blank=True)
    notes = models.TextField(blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        indexes = [
            models.Index(fields=["auction", "buyer"], name="invoice_auction_buyer_idx"),
            models.Index(fields=["status", "invoice_date"], name="invoice_status_date_idx"),
            models.Index(fields=["invoice_number"], name="invoice_number_idx"),
        ]
        constraints = [
            models.UniqueConstraint(fields=["invoice_type", "sequence_number"], name="uniq_invoice_type_sequence"),
        ]

    def __str__(self):
        return self.invoice_number

    @property
    def packing_charges(self):
        return {"amount": self.packing_amount, "gst_rate": self.packing_gst_rate}

    @property
    def insurance_charges(self):
        return {
            "amount": self.insurance_amount,
            "gst_rate": self.insurance_gst_rate,
            "declined": self.insurance_declined,
        }

    def line_items(self):
        return [line.as_line_item() for line in self.lots.all()]

    def lot_numbers(self):
        return [line.lot_number for line in self.lots.all()]


class InvoiceLot(models.Model):
    """A lot as billed on an invoice.

    The (lot, invoice_type) unique constraint is the lot-ownership index:
    moving a lot between invoices means re-pointing this row, never copying it.
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    invoice = models.ForeignKey(Invoice, on_delete=models.CASCADE, related_name="lots")
    invoice_type = models.CharField(max_length=16, choices=Invoice.Type.choices)
    lot = models.ForeignKey(Lot, on_delete=models.PROTECT, related_name="invoice_lines")
    position = models.PositiveIntegerField(default=0)
    lot_number = models.PositiveIntegerField()
    description = models.CharField(max_length=255)
    hsn_code = models.CharField(max_length=16, default="97050090")
    quantity = models.PositiveIntegerField(default=1)
    hammer_price = models.DecimalField(max_digits=12, decimal_places=2)
    gst_rate = models.DecimalField(max_digits=5, decimal_places=2, default=5)

    class Meta:
        ordering = ["position", "lot_number"]
        indexes = [
            models.Index(fields=["invoice", "position"], name="invoicelot_invoice_pos_idx"),
        ]
        constraints = [
            models.UniqueConstraint(fields=["lot", "invoice_type"], name="uniq_lot_owner_per_invoice_type"),
        ]

    def as_line_item(self):
        return {
            "lot_number": self.lot_number,
            "description": self.description,
            "hsn_code": self.hsn_code,
            "quantity": self.quantity,
            "hammer_price": self.hammer_price,
            "gst_rate": self.gst_rate,
        }


class InvoiceSequence(models.Model):
    invoice_type = models.CharField(max_length=16, choices=Invoice.Type.choices, primary_key=True)
    last_number = models.PositiveIntegerField(default=0)
    updated_at = models.DateTimeField(auto_now=True)


class CommissionSettings(models.Model):
    """Process-wide commission display settings (singleton row)."""

    SINGLETON_ID = 1

    id = models.PositiveSmallIntegerField(primary_key=True, default=SINGLETON_ID, editable=False)
    global_commission_rate = models.DecimalField(max_digits=5, decimal_places=2)
    commission_cutoff_date = models.DateField(null=True, blank=True)
    updated_by = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True)
    updated_at = models.DateTimeField(auto_now=True)

    @classmethod
    def load(cls):
        default_rate = getattr(settings, "INVOICE_DEFAULT_GLOBAL_COMMISSION_RATE", Decimal("12.00"))
        instance, _ = cls.objects.get_or_create(
            id=cls.SINGLETON_ID,
            defaults={"global_commission_rate": default_rate},
        )
        return instance

    def save(self, *args, **kwargs):
        self.id = self.SINGLETON_ID
        super().save(*args, **kwargs)
