from django.conf import settings
from django.db import models
from django.utils import timezone


class ServiceListing(models.Model):
    """Fields shared by every bookable service: properties, vehicles and tours."""

    APPROVAL_STATUS_CHOICES = (
        ("PENDING", "Pending Review"),
        ("UNDER_REVIEW", "Under Review"),
        ("REQUIRES_CHANGES", "Requires Changes"),
        ("APPROVED", "Approved"),
        ("REJECTED", "Rejected"),
    )
    SERVICE_TYPE = ""

    owner = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="%(class)s_listings",
    )
    name = models.CharField(max_length=255)
    description = models.TextField(blank=True)
    city = models.CharField(max_length=100)
    price = models.DecimalField(max_digits=12, decimal_places=2)
    image = models.ImageField(upload_to="listings/", null=True, blank=True)
    approval_status = models.CharField(max_length=20, choices=APPROVAL_STATUS_CHOICES, default="PENDING")
    rejection_reason = models.TextField(blank=True)
    reviewed_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="+",
    )
    reviewed_at = models.DateTimeField(null=True, blank=True)
    is_featured = models.BooleanField(default=False)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        abstract = True
        ordering = ["-created_at"]

    def __str__(self) -> str:  # pragma: no cover - simple display helper
        return self.name

    @property
    def service_type(self) -> str:
        return self.SERVICE_TYPE

    @property
    def is_bookable(self) -> bool:
        return self.approval_status == "APPROVED"

    def set_approval(self, status: str, reviewer, reason: str = "") -> None:
        self.approval_status = status
        self.rejection_reason = reason or ""
        self.reviewed_by = reviewer
        self.reviewed_at = timezone.now()
        self.save(update_fields=["approval_status", "rejection_reason", "reviewed_by", "reviewed_at", "updated_at"])


class Property(ServiceListing):
    SERVICE_TYPE = "property"
    PROPERTY_TYPE_CHOICES = (
        ("HOTEL", "Hotel"),
        ("GUEST_HOUSE", "Guest House"),
        ("APARTMENT", "Apartment"),
        ("RESORT", "Resort"),
        ("HOSTEL", "Hostel"),
    )

    property_type = models.CharField(max_length=20, choices=PROPERTY_TYPE_CHOICES, default="HOTEL")
    address = models.TextField(blank=True)
    max_guests = models.PositiveIntegerField(default=2)

    class Meta(ServiceListing.Meta):
        verbose_name_plural = "properties"


class Vehicle(ServiceListing):
    SERVICE_TYPE = "vehicle"
    VEHICLE_TYPE_CHOICES = (
        ("CAR", "Car"),
        ("SUV", "SUV"),
        ("VAN", "Van"),
        ("BUS", "Bus"),
        ("MOTORCYCLE", "Motorcycle"),
    )

    vehicle_type = models.CharField(max_length=20, choices=VEHICLE_TYPE_CHOICES, default="CAR")
    make = models.CharField(max_length=100)
    model_name = models.CharField(max_length=100)
    year = models.PositiveIntegerField(null=True, blank=True)
    seats = models.PositiveIntegerField(default=4)

    class Meta(ServiceListing.Meta):
        pass


class Tour(ServiceListing):
    SERVICE_TYPE = "tour"

    duration_days = models.PositiveIntegerField(default=1)
    max_group_size = models.PositiveIntegerField(default=10)
    meeting_point = models.CharField(max_length=255, blank=True)

    class Meta(ServiceListing.Meta):
        pass


LISTING_MODELS = {
    "property": Property,
    "vehicle": Vehicle,
    "tour": Tour,
}
