from django.conf import settings
from django.db import models
from django.utils import timezone


class Notification(models.Model):
    TYPE_CHOICES = (
        ("PROFILE_VERIFIED", "Profile Verified"),
        ("PROFILE_REJECTED", "Profile Rejected"),
        ("LISTING_APPROVED", "Listing Approved"),
        ("LISTING_REJECTED", "Listing Rejected"),
        ("LISTING_CHANGES_REQUESTED", "Listing Changes Requested"),
        ("BOOKING_UPDATE", "Booking Update"),
        ("SUPPORT_UPDATE", "Support Update"),
        ("SYSTEM_ANNOUNCEMENT", "System Announcement"),
    )

    user = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name="notifications")
    type = models.CharField(max_length=32, choices=TYPE_CHOICES)
    title = models.CharField(max_length=255)
    message = models.TextField()
    is_read = models.BooleanField(default=False)
    created_at = models.DateTimeField(default=timezone.now)

    class Meta:
        ordering = ["-created_at"]

    def __str__(self) -> str:  # pragma: no cover - simple display helper
        return f"{self.title} for {self.user}"


class AnalyticsEvent(models.Model):
    EVENT_TYPE_CHOICES = (
        ("page_view", "Page View"),
        ("search", "Search"),
        ("session_duration", "Session Duration"),
        ("pages_per_session", "Pages per Session"),
        ("bounce_rate", "Bounce Rate"),
    )

    event_type = models.CharField(max_length=32, choices=EVENT_TYPE_CHOICES, db_index=True)
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="analytics_events",
    )
    source = models.CharField(max_length=100, blank=True)
    page = models.CharField(max_length=255, blank=True)
    search_term = models.CharField(max_length=255, blank=True)
    value = models.FloatField(null=True, blank=True)
    created_at = models.DateTimeField(default=timezone.now, db_index=True)

    class Meta:
        ordering = ["-created_at"]

    def __str__(self) -> str:  # pragma: no cover - simple display helper
        return f"{self.event_type} at {self.created_at:%Y-%m-%d %H:%M}"
