import uuid

from django.db import models

from core.models import User


class Auction(models.Model):
    class Status(models.TextChoices):
        UPCOMING = "Upcoming", "Upcoming"
        ACTIVE = "Active", "Active"
        ENDED = "Ended", "Ended"
        CANCELLED = "Cancelled", "Cancelled"

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    auction_code = models.CharField(max_length=32, unique=True)
    title = models.CharField(max_length=255)
    status = models.CharField(max_length=16, choices=Status.choices, default=Status.UPCOMING)
    start_time = models.DateTimeField(null=True, blank=True)
    end_time = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        indexes = [
            models.Index(fields=["status", "start_time"], name="auction_status_start_idx"),
        ]

    def __str__(self):
        return f"{self.auction_code} {self.title}"


class Lot(models.Model):
    class Status(models.TextChoices):
        PENDING = "Pending", "Pending"
        SOLD = "Sold", "Sold"
        UNSOLD = "Unsold", "Unsold"

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    auction = models.ForeignKey(Auction, on_delete=models.CASCADE, related_name="lots")
    lot_number = models.PositiveIntegerField()
    title = models.CharField(max_length=255)
    description = models.TextField(blank=True)
    category = models.CharField(max_length=64, blank=True)
    hsn_code = models.CharField(max_length=16, default="97050090")
    starting_price = models.DecimalField(max_digits=12, decimal_places=2, default=0)
    reserve_price = models.DecimalField(max_digits=12, decimal_places=2, default=0)
    current_bid = models.DecimalField(max_digits=12, decimal_places=2, default=0)
    hammer_price = models.DecimalField(max_digits=12, decimal_places=2, null=True, blank=True)
    gst_rate = models.DecimalField(max_digits=5, decimal_places=2, default=5)
    status = models.CharField(max_length=16, choices=Status.choices, default=Status.PENDING)
    winner = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True, related_name="won_lots")
    vendor = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True, related_name="consigned_lots")
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["lot_number"]
        indexes = [
            models.Index(fields=["auction", "status"], name="lot_auction_status_idx"),
        ]
        constraints = [
            models.UniqueConstraint(fields=["auction", "lot_number"], name="uniq_lot_number_per_auction"),
        ]

    def __str__(self):
        return f"Lot {self.lot_number} ({self.auction_id})"


class AuctionRegistration(models.Model):
    class Status(models.TextChoices):
        PENDING = "pending", "Pending"
        APPROVED = "approved", "Approved"
        REJECTED = "rejected", "Rejected"

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    auction = models.ForeignKey(Auction, on_delete=models.CASCADE, related_name="registrations")
    user = models.ForeignKey(User, on_delete=models.CASCADE, related_name="auction_registrations")
    status = models.CharField(max_length=16, choices=Status.choices, default=Status.PENDING)
    full_name = models.CharField(max_length=255)
    company_name = models.CharField(max_length=255, blank=True)
    email = models.EmailField(blank=True)
    mobile = models.CharField(max_length=32, blank=True)
    gst_number = models.CharField(max_length=15, blank=True)
    pan_number = models.CharField(max_length=10, blank=True)
    billing_address_line1 = models.CharField(max_length=255)
    billing_address_line2 = models.CharField(max_length=255, blank=True)
    billing_address_line3 = models.CharField(max_length=255, blank=True)
    billing_city = models.CharField(max_length=128)
    billing_state = models.CharField(max_length=128)
    billing_pin_code = models.CharField(max_length=6)
    same_as_billing = models.BooleanField(default=True)
    shipping_address_line1 = models.CharField(max_length=255, blank=True)
    shipping_address_line2 = models.CharField(max_length=255, blank=True)
    shipping_city = models.CharField(max_length=128, blank=True)
    shipping_state = models.CharField(max_length=128, blank=True)
    shipping_pin_code = models.CharField(max_length=6, blank=True)
    commission_rate = models.DecimalField(max_digits=5, decimal_places=2, null=True, blank=True)
    approved_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        indexes = [
            models.Index(fields=["auction", "status"], name="registration_auction_idx"),
            models.Index(fields=["user", "status"], name="registration_user_idx"),
        ]
        constraints = [
            models.UniqueConstraint(fields=["auction", "user"], name="uniq_registration_per_auction"),
        ]
