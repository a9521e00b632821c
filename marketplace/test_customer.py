from datetime import timedelta
from decimal import Decimal

from django.core.cache import cache
from django.test import TestCase
from django.urls import reverse
from django.utils import timezone

from .exceptions import ActionError
from .forms import BookingRequestForm, ReviewForm
from .models import Booking, Notification, Payment, Review
from .services.customer import CustomerBookingService, ReviewSubmissionService
from .testing import make_booking, make_property, make_provider, make_tour, make_user


def booking_data(**overrides):
    data = {
        "start_date": (timezone.localdate() + timedelta(days=10)).isoformat(),
        "end_date": (timezone.localdate() + timedelta(days=13)).isoformat(),
        "guests": 2,
        "payment_method": "CREDIT_CARD",
    }
    data.update(overrides)
    return data


def valid_form(**overrides):
    form = BookingRequestForm(data=booking_data(**overrides))
    assert form.is_valid(), form.errors
    return form


class BookingRequestFormTest(TestCase):
    def test_rejects_past_start_and_inverted_range(self):
        yesterday = timezone.localdate() - timedelta(days=1)
        form = BookingRequestForm(data=booking_data(start_date=yesterday.isoformat()))
        self.assertFalse(form.is_valid())
        self.assertIn("start_date", form.errors)

        form = BookingRequestForm(
            data=booking_data(end_date=(timezone.localdate() + timedelta(days=5)).isoformat())
        )
        self.assertFalse(form.is_valid())
        self.assertEqual(form.errors["end_date"], ["End date must be on or after the start date."])

    def test_review_rating_is_bounded(self):
        self.assertFalse(ReviewForm(data={"rating": 6, "content": "Great views and friendly staff."}).is_valid())
        self.assertTrue(ReviewForm(data={"rating": 4, "content": "Great views and friendly staff."}).is_valid())


class CustomerBookingServiceTest(TestCase):
    def setUp(self):
        self.owner = make_provider()
        self.customer = make_user("customer")
        self.hotel = make_property(self.owner, approval_status="APPROVED", max_guests=4)
        self.service = CustomerBookingService(self.customer)

    def test_quote_charges_per_night_and_per_tour_guest(self):
        start = timezone.localdate() + timedelta(days=3)
        quote = self.service.quote(self.hotel, start, start + timedelta(days=3))
        self.assertEqual(quote.units, 3)
        self.assertEqual(quote.total_amount, Decimal("15000.00"))

        tour = make_tour(make_provider("guide", role="TOUR_GUIDE"), duration_days=4)
        quote = self.service.quote(tour, start, guests=3)
        self.assertEqual(quote.end_date, start + timedelta(days=4))
        self.assertEqual(quote.total_amount, Decimal("75000.00"))

    def test_create_booking_records_payment_and_notifies_owner(self):
        booking = self.service.create_booking(self.hotel, valid_form())

        self.assertEqual(booking.status, "PENDING")
        self.assertEqual(booking.property, self.hotel)
        self.assertEqual(booking.total_amount, Decimal("15000.00"))
        payment = Payment.objects.get(booking=booking)
        self.assertEqual(payment.amount, booking.total_amount)
        self.assertEqual(payment.method, "CREDIT_CARD")
        self.assertEqual(payment.status, "COMPLETED")
        self.assertTrue(payment.reference.startswith("FT-"))
        self.assertTrue(Notification.objects.filter(user=self.owner, type="BOOKING_UPDATE").exists())

    def test_unapproved_listing_and_capacity_are_enforced(self):
        pending = make_property(self.owner, name="Unreviewed Inn")
        with self.assertRaises(ActionError):
            self.service.create_booking(pending, valid_form())
        with self.assertRaises(ActionError):
            self.service.create_booking(self.hotel, valid_form(guests=5))
        self.assertFalse(Booking.objects.exists())

    def test_cancel_own_active_booking_only(self):
        booking = make_booking(self.hotel, self.customer, status="CONFIRMED")
        with self.assertRaises(PermissionError):
            CustomerBookingService(make_user("intruder")).cancel(booking)

        self.service.cancel(booking, "Plans changed")
        booking.refresh_from_db()
        self.assertEqual(booking.status, "CANCELLED")
        self.assertEqual(booking.cancellation_reason, "Plans changed")
        self.assertIsNotNone(booking.cancelled_at)
        with self.assertRaises(ActionError):
            self.service.cancel(booking)


class ReviewSubmissionServiceTest(TestCase):
    def setUp(self):
        self.owner = make_provider()
        self.customer = make_user("customer")
        self.hotel = make_property(self.owner, approval_status="APPROVED")
        self.service = ReviewSubmissionService(self.customer)

    def test_eligibility_rules(self):
        upcoming = make_booking(self.hotel, self.customer, status="CONFIRMED")
        past = make_booking(
            self.hotel, self.customer, status="CONFIRMED", start_date=timezone.localdate() - timedelta(days=5)
        )
        cancelled = make_booking(self.hotel, self.customer, status="CANCELLED")
        completed = make_booking(self.hotel, self.customer, status="COMPLETED")

        self.assertEqual(self.service.eligibility(upcoming), "You can review this service once your booking is over.")
        self.assertEqual(self.service.eligibility(past), "")
        self.assertEqual(self.service.eligibility(cancelled), "Only completed bookings can be reviewed.")
        self.assertEqual(self.service.eligibility(completed), "")
        self.assertEqual(
            ReviewSubmissionService(make_user("other")).eligibility(completed),
            "You can only review your own bookings.",
        )
        self.assertEqual(set(self.service.pending()), {past, completed})

    def test_submit_links_review_and_refuses_duplicates(self):
        booking = make_booking(self.hotel, self.customer, status="COMPLETED")
        form = ReviewForm(data={"rating": 5, "content": "Spotless rooms and a great view."})
        self.assertTrue(form.is_valid())

        review = self.service.submit(booking, form)

        self.assertEqual(review.booking, booking)
        self.assertEqual(review.listing, self.hotel)
        self.assertEqual(review.user, self.customer)
        self.assertTrue(Notification.objects.filter(user=self.owner, title="New review").exists())
        again = ReviewForm(data={"rating": 1, "content": "Changed my mind about it."})
        self.assertTrue(again.is_valid())
        with self.assertRaisesMessage(ActionError, "You have already reviewed this booking."):
            self.service.submit(booking, again)
        self.assertEqual(Review.objects.count(), 1)


class CustomerBookingViewsTest(TestCase):
    def setUp(self):
        cache.clear()
        self.owner = make_provider()
        self.customer = make_user("customer")
        self.hotel = make_property(self.owner, approval_status="APPROVED")
        self.client.force_login(self.customer)

    def test_book_listing(self):
        response = self.client.post(reverse("customer_booking_create", args=["property", self.hotel.pk]), booking_data())
        booking = Booking.objects.get(customer=self.customer)
        self.assertRedirects(response, reverse("customer_booking_detail", args=[booking.pk]))
        self.assertEqual(booking.payments.count(), 1)

        response = self.client.get(reverse("customer_bookings"))
        self.assertEqual(list(response.context["bookings"]), [booking])

    def test_unknown_or_unapproved_listing_is_404(self):
        draft = make_property(self.owner, name="Draft Lodge")
        self.assertEqual(self.client.get(reverse("customer_booking_create", args=["boat", self.hotel.pk])).status_code, 404)
        self.assertEqual(self.client.get(reverse("customer_booking_create", args=["property", draft.pk])).status_code, 404)

    def test_providers_cannot_book(self):
        self.client.force_login(self.owner)
        response = self.client.get(reverse("customer_booking_create", args=["property", self.hotel.pk]))
        self.assertRedirects(response, reverse("home"))

    def test_cancel_and_foreign_bookings(self):
        booking = make_booking(self.hotel, self.customer)
        response = self.client.post(reverse("customer_booking_cancel", args=[booking.pk]), {"reason": "Sick"})
        self.assertRedirects(response, reverse("customer_booking_detail", args=[booking.pk]))
        booking.refresh_from_db()
        self.assertEqual(booking.status, "CANCELLED")

        foreign = make_booking(self.hotel, make_user("someone-else"))
        self.assertEqual(self.client.get(reverse("customer_booking_detail", args=[foreign.pk])).status_code, 404)
        self.assertEqual(self.client.post(reverse("customer_booking_cancel", args=[foreign.pk])).status_code, 404)

    def test_review_completed_booking(self):
        booking = make_booking(self.hotel, self.customer, status="COMPLETED")
        url = reverse("customer_booking_review", args=[booking.pk])
        response = self.client.post(url, {"rating": 4, "content": "Friendly hosts, would return."})
        self.assertRedirects(response, reverse("customer_booking_detail", args=[booking.pk]))
        self.assertEqual(Review.objects.get().rating, 4)

        response = self.client.get(url)
        self.assertRedirects(response, reverse("customer_booking_detail", args=[booking.pk]))

    def test_pending_booking_cannot_be_reviewed(self):
        booking = make_booking(self.hotel, self.customer)
        response = self.client.post(
            reverse("customer_booking_review", args=[booking.pk]), {"rating": 5, "content": "Not there yet though."}
        )
        self.assertRedirects(response, reverse("customer_booking_detail", args=[booking.pk]))
        self.assertFalse(Review.objects.exists())
