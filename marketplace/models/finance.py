from django.conf import settings
from django.db import models
from django.utils import timezone

from .booking import Booking


class Payout(models.Model):
    METHOD_CHOICES = (
        ("BANK_TRANSFER", "Bank Transfer"),
        ("MOBILE_WALLET", "Mobile Wallet"),
    )
    STATUS_CHOICES = (
        ("PENDING", "Pending"),
        ("PROCESSED", "Processed"),
    )

    provider = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name="payouts")
    amount = models.DecimalField(max_digits=12, decimal_places=2)
    currency = models.CharField(max_length=3, default="PKR")
    method = models.CharField(max_length=20, choices=METHOD_CHOICES)
    status = models.CharField(max_length=10, choices=STATUS_CHOICES, default="PENDING")
    requested_at = models.DateTimeField(default=timezone.now)
    processed_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        ordering = ["-requested_at"]

    def __str__(self) -> str:  # pragma: no cover - simple display helper
        return f"Payout of {self.amount} {self.currency} to {self.provider}"


class Commission(models.Model):
    STATUS_CHOICES = (
        ("PENDING", "Pending"),
        ("PAID", "Paid"),
    )

    booking = models.OneToOneField(Booking, on_delete=models.CASCADE, related_name="commission")
    provider = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name="commissions")
    booking_amount = models.DecimalField(max_digits=12, decimal_places=2)
    rate = models.DecimalField(max_digits=5, decimal_places=4)
    amount = models.DecimalField(max_digits=12, decimal_places=2)
    currency = models.CharField(max_length=3, default="PKR")
    status = models.CharField(max_length=10, choices=STATUS_CHOICES, default="PENDING")
    payout = models.ForeignKey(Payout, on_delete=models.SET_NULL, null=True, blank=True, related_name="commissions")
    calculated_at = models.DateTimeField(default=timezone.now)

    class Meta:
        ordering = ["-calculated_at"]

    def __str__(self) -> str:  # pragma: no cover - simple display helper
        return f"Commission {self.amount} on booking #{self.booking_id}"
