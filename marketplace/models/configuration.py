from decimal import Decimal

from django.core.cache import cache
from django.core.validators import MaxValueValidator, MinValueValidator
from django.db import models


class PlatformSettings(models.Model):
    """Single-row table holding platform-wide settings edited from the admin panel."""

    CACHE_KEY = "platform:maintenance"

    site_name = models.CharField(max_length=100, default="FindoTrip")
    support_email = models.EmailField(default="support@findotrip.com")
    currency = models.CharField(max_length=3, default="PKR")
    commission_rate = models.DecimalField(
        max_digits=5,
        decimal_places=4,
        default=Decimal("0.1000"),
        validators=[MinValueValidator(Decimal("0")), MaxValueValidator(Decimal("1"))],
        help_text="Fraction of each confirmed booking retained by the platform",
    )
    max_listings_per_provider = models.PositiveIntegerField(default=50)
    maintenance_mode = models.BooleanField(default=False)
    maintenance_message = models.TextField(
        blank=True,
        default="FindoTrip is down for scheduled maintenance. Please check back soon.",
    )
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name = "platform settings"
        verbose_name_plural = "platform settings"

    def __str__(self) -> str:  # pragma: no cover - simple display helper
        return f"{self.site_name} settings"

    def save(self, *args, **kwargs):
        self.pk = 1
        super().save(*args, **kwargs)
        cache.delete(self.CACHE_KEY)

    @classmethod
    def load(cls) -> "PlatformSettings":
        instance, _ = cls.objects.get_or_create(pk=1)
        return instance
