import uuid

import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="Auction",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("auction_code", models.CharField(max_length=32, unique=True)),
                ("title", models.CharField(max_length=255)),
                (
                    "status",
                    models.CharField(
                        choices=[
                            ("Upcoming", "Upcoming"),
                            ("Active", "Active"),
                            ("Ended", "Ended"),
                            ("Cancelled", "Cancelled"),
                        ],
                        default="Upcoming",
                        max_length=16,
                    ),
                ),
                ("start_time", models.DateTimeField(blank=True, null=True)),
                ("end_time", models.DateTimeField(blank=True, null=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
            ],
            options={
                "indexes": [models.Index(fields=["status", "start_time"], name="auction_status_start_idx")],
            },
        ),
        migrations.CreateModel(
            name="Lot",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("lot_number", models.PositiveIntegerField()),
                ("title", models.CharField(max_length=255)),
                ("description", models.TextField(blank=True)),
                ("category", models.CharField(blank=True, max_length=64)),
                ("hsn_code", models.CharField(default="97050090", max_length=16)),
                ("starting_price", models.DecimalField(decimal_places=2, default=0, max_digits=12)),
                ("reserve_price", models.DecimalField(decimal_places=2, default=0, max_digits=12)),
                ("current_bid", models.DecimalField(decimal_places=2, default=0, max_digits=12)),
                ("hammer_price", models.DecimalField(blank=True, decimal_places=2, max_digits=12, null=True)),
                ("gst_rate", models.DecimalField(decimal_places=2, default=5, max_digits=5)),
                (
                    "status",
                    models.CharField(
                        choices=[("Pending", "Pending"), ("Sold", "Sold"), ("Unsold", "Unsold")],
                        default="Pending",
                        max_length=16,
                    ),
                ),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "auction",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE, related_name="lots", to="auctions.auction"
                    ),
                ),
                (
                    "vendor",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="consigned_lots",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
                (
                    "winner",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="won_lots",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "ordering": ["lot_number"],
                "indexes": [models.Index(fields=["auction", "status"], name="lot_auction_status_idx")],
                "constraints": [
                    models.UniqueConstraint(fields=("auction", "lot_number"), name="uniq_lot_number_per_auction")
                ],
            },
        ),
        migrations.CreateModel(
            name="AuctionRegistration",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                (
                    "status",
                    models.CharField(
                        choices=[("pending", "Pending"), ("approved", "Approved"), ("rejected", "Rejected")],
                        default="pending",
                        max_length=16,
                    ),
                ),
                ("full_name", models.CharField(max_length=255)),
                ("company_name", models.CharField(blank=True, max_length=255)),
                ("email", models.EmailField(blank=True, max_length=254)),
                ("mobile", models.CharField(blank=True, max_length=32)),
                ("gst_number", models.CharField(blank=True, max_length=15)),
                ("pan_number", models.CharField(blank=True, max_length=10)),
                ("billing_address_line1", models.CharField(max_length=255)),
                ("billing_address_line2", models.CharField(blank=True, max_length=255)),
                ("billing_address_line3", models.CharField(blank=True, max_length=255)),
                ("billing_city", models.CharField(max_length=128)),
                ("billing_state", models.CharField(max_length=128)),
                ("billing_pin_code", models.CharField(max_length=6)),
                ("same_as_billing", models.BooleanField(default=True)),
                ("shipping_address_line1", models.CharField(blank=True, max_length=255)),
                ("shipping_address_line2", models.CharField(blank=True, max_length=255)),
                ("shipping_city", models.CharField(blank=True, max_length=128)),
                ("shipping_state", models.CharField(blank=True, max_length=128)),
                ("shipping_pin_code", models.CharField(blank=True, max_length=6)),
                ("commission_rate", models.DecimalField(blank=True, decimal_places=2, max_digits=5, null=True)),
                ("approved_at", models.DateTimeField(blank=True, null=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "auction",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="registrations",
                        to="auctions.auction",
                    ),
                ),
                (
                    "user",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="auction_registrations",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "indexes": [
                    models.Index(fields=["auction", "status"], name="registration_auction_idx"),
                    models.Index(fields=["user", "status"], name="registration_user_idx"),
                ],
                "constraints": [
                    models.UniqueConstraint(fields=("auction", "user"), name="uniq_registration_per_auction")
                ],
            },
        ),
    ]
