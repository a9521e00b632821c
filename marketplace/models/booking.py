import builtins
from decimal import Decimal

from django.conf import settings
from django.db import models
from django.utils import timezone

from .listing import Property, Tour, Vehicle


class Booking(models.Model):
    SERVICE_TYPE_CHOICES = (
        ("property", "Property"),
        ("vehicle", "Vehicle"),
        ("tour", "Tour"),
    )
    STATUS_CHOICES = (
        ("PENDING", "Pending"),
        ("CONFIRMED", "Confirmed"),
        ("CANCELLED", "Cancelled"),
        ("COMPLETED", "Completed"),
        ("REFUNDED", "Refunded"),
    )
    REVENUE_STATUSES = ("CONFIRMED", "COMPLETED")

    customer = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="bookings",
    )
    service_type = models.CharField(max_length=10, choices=SERVICE_TYPE_CHOICES)
    property = models.ForeignKey(Property, on_delete=models.CASCADE, null=True, blank=True, related_name="bookings")
    vehicle = models.ForeignKey(Vehicle, on_delete=models.CASCADE, null=True, blank=True, related_name="bookings")
    tour = models.ForeignKey(Tour, on_delete=models.CASCADE, null=True, blank=True, related_name="bookings")
    status = models.CharField(max_length=10, choices=STATUS_CHOICES, default="PENDING")
    start_date = models.DateField()
    end_date = models.DateField(null=True, blank=True)
    guests = models.PositiveIntegerField(default=1)
    total_amount = models.DecimalField(max_digits=12, decimal_places=2)
    cancellation_reason = models.TextField(blank=True)
    cancelled_at = models.DateTimeField(null=True, blank=True)
    refund_amount = models.DecimalField(max_digits=12, decimal_places=2, null=True, blank=True)
    refunded_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(default=timezone.now)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-created_at"]

    def __str__(self) -> str:  # pragma: no cover - simple display helper
        customer = self.customer.email if self.customer else "Guest"
        return f"Booking #{self.pk} for {self.listing} by {customer}"

    @builtins.property
    def listing(self):
        return getattr(self, self.service_type, None) if self.service_type else None

    @builtins.property
    def provider(self):
        listing = self.listing
        return listing.owner if listing is not None else None

    @builtins.property
    def city(self) -> str:
        listing = self.listing
        return listing.city if listing is not None else ""

    def mark_confirmed(self) -> None:
        self.status = "CONFIRMED"
        self.save(update_fields=["status", "updated_at"])

    def mark_completed(self) -> None:
        self.status = "COMPLETED"
        self.save(update_fields=["status", "updated_at"])

    def mark_cancelled(self, reason: str = "") -> None:
        self.status = "CANCELLED"
        self.cancellation_reason = reason or ""
        self.cancelled_at = timezone.now()
        self.save(update_fields=["status", "cancellation_reason", "cancelled_at", "updated_at"])

    def mark_refunded(self, amount: Decimal) -> None:
        self.status = "REFUNDED"
        self.refund_amount = amount
        self.refunded_at = timezone.now()
        self.save(update_fields=["status", "refund_amount", "refunded_at", "updated_at"])


class Payment(models.Model):
    METHOD_CHOICES = (
        ("CREDIT_CARD", "Credit Card"),
        ("DEBIT_CARD", "Debit Card"),
        ("BANK_TRANSFER", "Bank Transfer"),
        ("MOBILE_WALLET", "Mobile Wallet"),
        ("CASH", "Cash"),
    )
    STATUS_CHOICES = (
        ("PENDING", "Pending"),
        ("COMPLETED", "Completed"),
        ("FAILED", "Failed"),
        ("REFUNDED", "Refunded"),
    )

    booking = models.ForeignKey(Booking, on_delete=models.CASCADE, related_name="payments")
    amount = models.DecimalField(max_digits=12, decimal_places=2)
    method = models.CharField(max_length=20, choices=METHOD_CHOICES)
    status = models.CharField(max_length=10, choices=STATUS_CHOICES, default="PENDING")
    reference = models.CharField(max_length=100, blank=True)
    created_at = models.DateTimeField(default=timezone.now)

    class Meta:
        ordering = ["-created_at"]

    def __str__(self) -> str:  # pragma: no cover - simple display helper
        return f"{self.get_method_display()} payment of {self.amount} for booking #{self.booking_id}"
