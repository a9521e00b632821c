from django.shortcuts import get_object_or_404
from django.utils.decorators import method_decorator
from django.views.generic import TemplateView

from ..decorators import permission_required
from ..exceptions import ActionError
from ..models import Booking, Payment
from ..services.access import has_permission
from ..services.bookings import SORT_ORDERS, BookingAdminService
from ..services.financial import CommissionService, RevenueReportService
from .mixins import PaginatedListMixin, PanelActionMixin, posted_object

BOOKING_ACTIONS = frozenset({"confirm", "cancel", "complete", "refund"})


def _apply_booking_action(service: BookingAdminService, action: str, booking: Booking, data):
    if not has_permission(service.admin, "bookings.manage"):
        raise ActionError("You do not have permission to manage bookings.")
    if action == "confirm":
        return service.confirm(booking)
    if action == "cancel":
        return service.cancel(booking, data.get("reason", ""))
    if action == "complete":
        return service.complete(booking)
    return service.issue_refund(booking, data.get("amount"))


@method_decorator(permission_required("bookings.view"), name="dispatch")
class BookingListView(PanelActionMixin, PaginatedListMixin, TemplateView):
    template_name = "panel/bookings/list.html"
    service_class = BookingAdminService
    allowed_actions = BOOKING_ACTIONS

    def get_service(self) -> BookingAdminService:
        return self.service_class(self.request.user, self.request)

    def get_context_data(self, **kwargs):
        context = super().get_context_data(**kwargs)
        service = self.get_service()
        filters = service.build_filters(self.request.GET)
        queryset = service.filtered(filters)
        page_obj, pagination = self.paginate(queryset)
        context.update(
            {
                "bookings": service.decorate(page_obj),
                "page_obj": page_obj,
                "pagination": pagination,
                "filters": filters,
                "summary": service.summary(queryset),
                "status_choices": Booking.STATUS_CHOICES,
                "service_type_choices": Booking.SERVICE_TYPE_CHOICES,
                "sort_options": list(SORT_ORDERS),
            }
        )
        return context

    def perform_action(self, action, data, *args, **kwargs):
        booking = posted_object(Booking, data.get("booking_id"), "booking")
        return _apply_booking_action(self.get_service(), action, booking, data)


@method_decorator(permission_required("bookings.view"), name="dispatch")
class BookingDetailView(PanelActionMixin, TemplateView):
    template_name = "panel/bookings/detail.html"
    service_class = BookingAdminService
    allowed_actions = BOOKING_ACTIONS

    def dispatch(self, request, *args, **kwargs):
        self.booking = get_object_or_404(
            Booking.objects.select_related("customer", "property__owner", "vehicle__owner", "tour__owner"),
            pk=kwargs["booking_id"],
        )
        return super().dispatch(request, *args, **kwargs)

    def get_service(self) -> BookingAdminService:
        return self.service_class(self.request.user, self.request)

    def get_context_data(self, **kwargs):
        context = super().get_context_data(**kwargs)
        booking = self.get_service().decorate([self.booking])[0]
        commission = getattr(booking, "commission", None)
        context.update(
            {
                "booking": booking,
                "payments": booking.payments.all(),
                "commission": commission,
                "commission_preview": None if commission else CommissionService().calculate(booking),
            }
        )
        return context

    def perform_action(self, action, data, *args, **kwargs):
        return _apply_booking_action(self.get_service(), action, self.booking, data)


@method_decorator(permission_required("financial.manage"), name="dispatch")
class RevenueReportView(TemplateView):
    template_name = "panel/financial/revenue.html"

    def get_context_data(self, **kwargs):
        context = super().get_context_data(**kwargs)
        context["report"] = RevenueReportService.from_query(self.request.GET).build()
        context["service_types"] = RevenueReportService.SERVICE_TYPES
        context["payment_methods"] = Payment.METHOD_CHOICES
        return context
