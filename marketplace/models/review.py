import builtins

from django.conf import settings
from django.core.validators import MaxValueValidator, MinValueValidator
from django.db import models
from django.utils import timezone

from .booking import Booking
from .listing import Property, Tour, Vehicle


class Review(models.Model):
    SERVICE_TYPE_CHOICES = (
        ("property", "Property"),
        ("vehicle", "Vehicle"),
        ("tour", "Tour"),
    )

    user = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name="reviews")
    service_type = models.CharField(max_length=10, choices=SERVICE_TYPE_CHOICES)
    property = models.ForeignKey(Property, on_delete=models.CASCADE, null=True, blank=True, related_name="reviews")
    vehicle = models.ForeignKey(Vehicle, on_delete=models.CASCADE, null=True, blank=True, related_name="reviews")
    tour = models.ForeignKey(Tour, on_delete=models.CASCADE, null=True, blank=True, related_name="reviews")
    booking = models.OneToOneField(
        Booking, on_delete=models.SET_NULL, null=True, blank=True, related_name="review"
    )
    rating = models.IntegerField(validators=[MinValueValidator(1), MaxValueValidator(5)])
    content = models.TextField()
    response = models.TextField(blank=True)

    is_hidden = models.BooleanField(default=False)
    hidden_reason = models.TextField(blank=True)
    hidden_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True, related_name="+"
    )
    hidden_at = models.DateTimeField(null=True, blank=True)
    is_flagged = models.BooleanField(default=False)
    flag_reason = models.TextField(blank=True)
    is_featured = models.BooleanField(default=False)
    featured_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True, related_name="+"
    )
    featured_at = models.DateTimeField(null=True, blank=True)
    edited_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True, related_name="+"
    )
    edited_at = models.DateTimeField(null=True, blank=True)

    created_at = models.DateTimeField(default=timezone.now)

    class Meta:
        ordering = ["-created_at"]

    def __str__(self) -> str:  # pragma: no cover - simple display helper
        return f"Review for {self.listing} by {self.user.username}"

    @builtins.property
    def listing(self):
        return getattr(self, self.service_type, None) if self.service_type else None
