from django.contrib import messages
from django.http import Http404
from django.shortcuts import get_object_or_404, redirect
from django.utils.decorators import method_decorator
from django.views import View
from django.views.generic import FormView, TemplateView

from ..decorators import customer_required
from ..exceptions import ActionError
from ..forms import BookingRequestForm, ReviewForm
from ..models import LISTING_MODELS, Booking
from ..services.customer import CustomerBookingService, ReviewSubmissionService


@method_decorator(customer_required, name="dispatch")
class BookingCreateView(FormView):
    template_name = "customer/book.html"
    form_class = BookingRequestForm

    def dispatch(self, request, *args, **kwargs):
        model = LISTING_MODELS.get(kwargs["service_type"])
        if model is None:
            raise Http404("Unknown service type.")
        self.listing = get_object_or_404(model, pk=kwargs["listing_id"], approval_status="APPROVED")
        return super().dispatch(request, *args, **kwargs)

    def get_context_data(self, **kwargs):
        context = super().get_context_data(**kwargs)
        context["listing"] = self.listing
        return context

    def form_valid(self, form):
        service = CustomerBookingService(self.request.user)
        try:
            booking = service.create_booking(self.listing, form)
        except ActionError as exc:
            form.add_error(None, str(exc))
            return self.form_invalid(form)
        messages.success(self.request, f"Booking #{booking.pk} requested. The provider will confirm it shortly.")
        return redirect("customer_booking_detail", booking_id=booking.pk)

    def form_invalid(self, form):
        messages.error(self.request, "Please review the errors below.")
        return super().form_invalid(form)


@method_decorator(customer_required, name="dispatch")
class CustomerBookingListView(TemplateView):
    template_name = "customer/bookings.html"

    def get_context_data(self, **kwargs):
        context = super().get_context_data(**kwargs)
        context["bookings"] = CustomerBookingService(self.request.user).bookings()
        context["pending_reviews"] = ReviewSubmissionService(self.request.user).pending()
        return context


@method_decorator(customer_required, name="dispatch")
class CustomerBookingDetailView(TemplateView):
    template_name = "customer/booking_detail.html"

    def get_context_data(self, **kwargs):
        context = super().get_context_data(**kwargs)
        booking = get_object_or_404(Booking, pk=kwargs["booking_id"], customer=self.request.user)
        context.update(
            {
                "booking": booking,
                "payments": booking.payments.all(),
                "can_cancel": booking.status in ("PENDING", "CONFIRMED"),
                "review_blocker": ReviewSubmissionService(self.request.user).eligibility(booking),
            }
        )
        return context


@method_decorator(customer_required, name="dispatch")
class CustomerBookingCancelView(View):
    def post(self, request, booking_id):
        booking = get_object_or_404(Booking, pk=booking_id, customer=request.user)
        try:
            CustomerBookingService(request.user).cancel(booking, request.POST.get("reason", ""))
        except ActionError as exc:
            messages.error(request, str(exc))
        else:
            messages.success(request, "Your booking has been cancelled.")
        return redirect("customer_booking_detail", booking_id=booking.pk)


@method_decorator(customer_required, name="dispatch")
class BookingReviewView(FormView):
    template_name = "customer/review.html"
    form_class = ReviewForm

    def dispatch(self, request, *args, **kwargs):
        if request.user.is_authenticated:
            self.booking = get_object_or_404(Booking, pk=kwargs["booking_id"], customer=request.user)
            self.service = ReviewSubmissionService(request.user)
            reason = self.service.eligibility(self.booking)
            if reason:
                messages.error(request, reason)
                return redirect("customer_booking_detail", booking_id=self.booking.pk)
        return super().dispatch(request, *args, **kwargs)

    def get_context_data(self, **kwargs):
        context = super().get_context_data(**kwargs)
        context["booking"] = self.booking
        return context

    def form_valid(self, form):
        try:
            self.service.submit(self.booking, form)
        except ActionError as exc:
            messages.error(self.request, str(exc))
        else:
            messages.success(self.request, "Thanks for sharing your experience!")
        return redirect("customer_booking_detail", booking_id=self.booking.pk)
