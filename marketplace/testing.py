"""Object builders shared by the marketplace test modules."""

from datetime import timedelta
from decimal import Decimal

from django.utils import timezone

from .models import Booking, Property, SupportTicket, Tour, User, Vehicle

PASSWORD = "pass12345"


def make_user(username, role="CUSTOMER", **extra):
    extra.setdefault("email", f"{username}@example.com")
    return User.objects.create_user(username=username, password=PASSWORD, role=role, **extra)


def make_admin(username="admin", role="SUPER_ADMIN", **extra):
    return make_user(username, role=role, **extra)


def make_provider(username="owner", role="PROPERTY_OWNER", **extra):
    extra.setdefault("business_name", f"{username.title()} Travels")
    return make_user(username, role=role, **extra)


def make_property(owner, name="Hunza View Hotel", **extra):
    extra.setdefault("city", "Hunza")
    extra.setdefault("price", Decimal("5000.00"))
    return Property.objects.create(owner=owner, name=name, **extra)


def make_vehicle(owner, name="Corolla 2020", **extra):
    extra.setdefault("city", "Lahore")
    extra.setdefault("price", Decimal("7000.00"))
    extra.setdefault("make", "Toyota")
    extra.setdefault("model_name", "Corolla")
    return Vehicle.objects.create(owner=owner, name=name, **extra)


def make_tour(owner, name="Skardu Explorer", **extra):
    extra.setdefault("city", "Skardu")
    extra.setdefault("price", Decimal("25000.00"))
    return Tour.objects.create(owner=owner, name=name, **extra)


def make_booking(listing, customer=None, *, status="PENDING", amount="10000.00", created_at=None, **extra):
    service_type = listing.service_type
    extra[service_type] = listing
    extra.setdefault("start_date", timezone.localdate() + timedelta(days=7))
    if created_at is not None:
        extra["created_at"] = created_at
    return Booking.objects.create(
        customer=customer,
        service_type=service_type,
        status=status,
        total_amount=Decimal(amount),
        **extra,
    )


def make_ticket(user, subject="Cannot see my booking", *, priority="MEDIUM", status="NEW", created_at=None, **extra):
    extra.setdefault("description", "My booking disappeared from the dashboard.")
    if created_at is not None:
        extra["created_at"] = created_at
    return SupportTicket.objects.create(user=user, subject=subject, priority=priority, status=status, **extra)
