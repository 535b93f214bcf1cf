import uuid

import django.db.models.deletion
import django.utils.timezone
from django.conf import settings
from django.db import migrations, models


INVOICE_TYPES = [("Customer", "Customer"), ("Vendor", "Vendor"), ("ASI", "ASI Report")]


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ("auctions", "0001_initial"),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="Invoice",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("invoice_type", models.CharField(choices=INVOICE_TYPES, default="Customer", max_length=16)),
                ("sequence_number", models.PositiveIntegerField()),
                ("invoice_number", models.CharField(max_length=64)),
                ("invoice_date", models.DateField(default=django.utils.timezone.localdate)),
                ("buyer_details", models.JSONField(blank=True, default=dict)),
                ("billing_address", models.JSONField(blank=True, default=dict)),
                ("shipping_address", models.JSONField(blank=True, default=dict)),
                ("packing_amount", models.DecimalField(decimal_places=2, default=0, max_digits=12)),
                ("packing_gst_rate", models.DecimalField(decimal_places=2, default=18, max_digits=5)),
                ("insurance_amount", models.DecimalField(decimal_places=2, default=0, max_digits=12)),
                ("insurance_gst_rate", models.DecimalField(decimal_places=2, default=18, max_digits=5)),
                ("insurance_declined", models.BooleanField(default=False)),
                (
                    "gst_type",
                    models.CharField(
                        choices=[("CGST+SGST", "CGST + SGST"), ("IGST", "IGST")], default="CGST+SGST", max_length=16
                    ),
                ),
                ("cgst", models.DecimalField(decimal_places=2, default=0, max_digits=12)),
                ("sgst", models.DecimalField(decimal_places=2, default=0, max_digits=12)),
                ("igst", models.DecimalField(decimal_places=2, default=0, max_digits=12)),
                ("round_off", models.DecimalField(decimal_places=2, default=0, max_digits=6)),
                ("total_payable", models.BigIntegerField(default=0)),
                (
                    "status",
                    models.CharField(
                        choices=[
                            ("Generated", "Generated"),
                            ("Sent", "Sent"),
                            ("Paid", "Paid"),
                            ("Cancelled", "Cancelled"),
                        ],
                        default="Generated",
                        max_length=16,
                    ),
                ),
                ("sent_to_customer", models.BooleanField(default=False)),
                ("paid_at", models.DateTimeField(blank=True, null=True)),
                ("payment_mode", models.CharField(blank=True, max_length=64)),
                ("notes", models.TextField(blank=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "auction",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT, related_name="invoices", to="auctions.auction"
                    ),
                ),
                (
                    "buyer",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="auction_invoices",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "indexes": [
                    models.Index(fields=["auction", "buyer"], name="invoice_auction_buyer_idx"),
                    models.Index(fields=["status", "invoice_date"], name="invoice_status_date_idx"),
                    models.Index(fields=["invoice_number"], name="invoice_number_idx"),
                ],
                "constraints": [
                    models.UniqueConstraint(fields=("invoice_type", "sequence_number"), name="uniq_invoice_type_sequence")
                ],
            },
        ),
        migrations.CreateModel(
            name="InvoiceSequence",
            fields=[
                (
                    "invoice_type",
                    models.CharField(choices=INVOICE_TYPES, max_length=16, primary_key=True, serialize=False),
                ),
                ("last_number", models.PositiveIntegerField(default=0)),
                ("updated_at", models.DateTimeField(auto_now=True)),
            ],
        ),
        migrations.CreateModel(
            name="CommissionSettings",
            fields=[
                (
                    "id",
                    models.PositiveSmallIntegerField(default=1, editable=False, primary_key=True, serialize=False),
                ),
                ("global_commission_rate", models.DecimalField(decimal_places=2, max_digits=5)),
                ("commission_cutoff_date", models.DateField(blank=True, null=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "updated_by",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
        ),
        migrations.CreateModel(
            name="InvoiceLot",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("invoice_type", models.CharField(choices=INVOICE_TYPES, max_length=16)),
                ("position", models.PositiveIntegerField(default=0)),
                ("lot_number", models.PositiveIntegerField()),
                ("description", models.CharField(max_length=255)),
                ("hsn_code", models.CharField(default="97050090", max_length=16)),
                ("quantity", models.PositiveIntegerField(default=1)),
                ("hammer_price", models.DecimalField(decimal_places=2, max_digits=12)),
                ("gst_rate", models.DecimalField(decimal_places=2, default=5, max_digits=5)),
                (
                    "invoice",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE, related_name="lots", to="invoicing.invoice"
                    ),
                ),
                (
                    "lot",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT, related_name="invoice_lines", to="auctions.lot"
                    ),
                ),
            ],
            options={
                "ordering": ["position", "lot_number"],
                "indexes": [models.Index(fields=["invoice", "position"], name="invoicelot_invoice_pos_idx")],
                "constraints": [
                    models.UniqueConstraint(fields=("lot", "invoice_type"), name="uniq_lot_owner_per_invoice_type")
                ],
            },
        ),
    ]
