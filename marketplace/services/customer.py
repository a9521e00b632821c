from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, timedelta
from decimal import Decimal
from uuid import uuid4

from django.db import transaction
from django.utils import timezone

from ..exceptions import ActionError
from ..models import Booking, Notification, Payment, Review

logger = logging.getLogger(__name__)

CANCELLABLE_STATUSES = ("PENDING", "CONFIRMED")


def listing_capacity(listing) -> int:
    if listing.service_type == "property":
        return listing.max_guests
    if listing.service_type == "vehicle":
        return listing.seats
    return listing.max_group_size


@dataclass(frozen=True)
class BookingQuote:
    start_date: date
    end_date: date
    units: int
    unit_price: Decimal
    total_amount: Decimal


class CustomerBookingService:
    """Quotes, creates and cancels bookings for the signed-in customer."""

    def __init__(self, user):
        self.user = user

    def quote(self, listing, start_date: date, end_date: date | None = None, guests: int = 1) -> BookingQuote:
        if listing.service_type == "tour":
            end_date = start_date + timedelta(days=max(listing.duration_days, 1))
            units = max(guests, 1)
        else:
            end_date = end_date or start_date + timedelta(days=1)
            units = max((end_date - start_date).days, 1)
        return BookingQuote(
            start_date=start_date,
            end_date=end_date,
            units=units,
            unit_price=listing.price,
            total_amount=listing.price * units,
        )

    def bookings(self):
        return (
            Booking.objects.filter(customer=self.user)
            .select_related("property", "vehicle", "tour")
            .prefetch_related("payments")
        )

    @transaction.atomic
    def create_booking(self, listing, form) -> Booking:
        if not listing.is_bookable:
            raise ActionError("This service is not available for booking.")
        data = form.cleaned_data
        guests = data["guests"]
        capacity = listing_capacity(listing)
        if guests > capacity:
            raise ActionError(f"This service allows at most {capacity} guest(s).")

        quote = self.quote(listing, data["start_date"], data.get("end_date"), guests)
        booking = Booking.objects.create(
            customer=self.user,
            service_type=listing.service_type,
            status="PENDING",
            start_date=quote.start_date,
            end_date=quote.end_date,
            guests=guests,
            total_amount=quote.total_amount,
            **{listing.service_type: listing},
        )
        Payment.objects.create(
            booking=booking,
            amount=quote.total_amount,
            method=data["payment_method"],
            status="COMPLETED",
            reference=f"FT-{uuid4().hex[:12].upper()}",
        )
        Notification.objects.create(
            user=listing.owner,
            type="BOOKING_UPDATE",
            title="New booking request",
            message=f"{self.user.display_name} requested {listing.name} from {quote.start_date:%d %b %Y}.",
        )
        logger.info("Booking %s created by user %s for %s %s", booking.pk, self.user.pk, listing.service_type, listing.pk)
        return booking

    def cancel(self, booking: Booking, reason: str = "") -> Booking:
        if booking.customer_id != self.user.pk:
            raise PermissionError("Cannot cancel another user's booking.")
        if booking.status not in CANCELLABLE_STATUSES:
            raise ActionError(f"A {booking.get_status_display().lower()} booking cannot be cancelled.")
        booking.mark_cancelled((reason or "").strip() or "Cancelled by customer")
        provider = booking.provider
        if provider is not None:
            Notification.objects.create(
                user=provider,
                type="BOOKING_UPDATE",
                title="Booking cancelled",
                message=f"Booking #{booking.pk} for {booking.listing.name} was cancelled by the customer.",
            )
        logger.info("Booking %s cancelled by user %s", booking.pk, self.user.pk)
        return booking


class ReviewSubmissionService:
    """Lets customers review services they have used."""

    def __init__(self, user):
        self.user = user

    def eligibility(self, booking: Booking, today: date | None = None) -> str:
        """Return why the booking cannot be reviewed, or an empty string when it can."""
        if booking.customer_id != self.user.pk:
            return "You can only review your own bookings."
        today = today or timezone.localdate()
        if booking.status == "CONFIRMED":
            if (booking.end_date or booking.start_date) >= today:
                return "You can review this service once your booking is over."
        elif booking.status != "COMPLETED":
            return "Only completed bookings can be reviewed."
        if Review.objects.filter(booking=booking).exists():
            return "You have already reviewed this booking."
        return ""

    def pending(self):
        return [booking for booking in CustomerBookingService(self.user).bookings() if not self.eligibility(booking)]

    @transaction.atomic
    def submit(self, booking: Booking, form) -> Review:
        reason = self.eligibility(booking)
        if reason:
            raise ActionError(reason)
        review = form.save(commit=False)
        review.user = self.user
        review.service_type = booking.service_type
        review.booking = booking
        setattr(review, booking.service_type, booking.listing)
        review.save()
        provider = booking.provider
        if provider is not None:
            Notification.objects.create(
                user=provider,
                type="BOOKING_UPDATE",
                title="New review",
                message=f"{self.user.display_name} rated {booking.listing.name} {review.rating}/5.",
            )
        logger.info("Review %s submitted for booking %s", review.pk, booking.pk)
        return review
