from django.contrib.auth.models import AbstractUser
from django.db import models


class User(AbstractUser):
    ROLE_CHOICES = (
        ("CUSTOMER", "Customer"),
        ("PROPERTY_OWNER", "Property Owner"),
        ("VEHICLE_OWNER", "Vehicle Owner"),
        ("TOUR_GUIDE", "Tour Guide"),
        ("ADMIN", "Admin"),
        ("SUPER_ADMIN", "Super Admin"),
    )
    PROVIDER_ROLES = ("PROPERTY_OWNER", "VEHICLE_OWNER", "TOUR_GUIDE")
    ADMIN_ROLES = ("ADMIN", "SUPER_ADMIN")

    role = models.CharField(max_length=20, choices=ROLE_CHOICES, default="CUSTOMER")
    phone = models.CharField(max_length=20, blank=True)
    business_name = models.CharField(max_length=255, blank=True)
    verified = models.BooleanField(default=False)
    banned = models.BooleanField(default=False)
    ban_reason = models.TextField(blank=True)
    deactivation_reason = models.TextField(blank=True)
    avatar = models.ImageField(upload_to="avatars/", null=True, blank=True)
    last_active_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        ordering = ["-date_joined"]

    @property
    def is_provider(self) -> bool:
        return self.role in self.PROVIDER_ROLES

    @property
    def is_admin_user(self) -> bool:
        return self.role in self.ADMIN_ROLES

    @property
    def display_name(self) -> str:
        return self.get_full_name() or self.business_name or self.username
