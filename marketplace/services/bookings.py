from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal, InvalidOperation
from typing import Any

from django.db import transaction
from django.db.models import Avg, Count, Q, Sum

from ..exceptions import ActionError
from ..models import Booking
from .base import ActionOutcome, AdminActionService
from .financial import CommissionService
from .metrics import as_float, parse_date

SORT_ORDERS = {
    "newest": ("-created_at", "-id"),
    "oldest": ("created_at", "id"),
    "amount_high": ("-total_amount", "-id"),
    "amount_low": ("total_amount", "id"),
    "start_date": ("start_date", "id"),
}


@dataclass(frozen=True)
class BookingFilters:
    search: str = ""
    status: str = ""
    service_type: str = ""
    date_from: date | None = None
    date_to: date | None = None
    sort: str = "newest"


class BookingAdminService(AdminActionService):
    """Booking oversight for admins: listing, totals and status changes."""

    STATUS_BADGE_MAP = {
        "PENDING": "bg-warning-subtle text-warning",
        "CONFIRMED": "bg-success-subtle text-success",
        "COMPLETED": "bg-primary-subtle text-primary",
        "CANCELLED": "bg-secondary-subtle text-secondary",
        "REFUNDED": "bg-danger-subtle text-danger",
    }
    STATUSES = tuple(code for code, _ in Booking.STATUS_CHOICES)
    SERVICE_TYPES = tuple(code for code, _ in Booking.SERVICE_TYPE_CHOICES)

    def __init__(self, admin, request=None, commission_service: CommissionService | None = None):
        super().__init__(admin, request)
        self._commission_service = commission_service

    @property
    def commission_service(self) -> CommissionService:
        if self._commission_service is None:
            self._commission_service = CommissionService()
        return self._commission_service

    def build_filters(self, data) -> BookingFilters:
        status = (data.get("status") or "").strip().upper()
        service_type = (data.get("type") or "").strip().lower()
        sort = (data.get("sort") or "newest").strip()
        return BookingFilters(
            search=(data.get("search") or "").strip(),
            status=status if status in self.STATUSES else "",
            service_type=service_type if service_type in self.SERVICE_TYPES else "",
            date_from=parse_date(data.get("date_from")),
            date_to=parse_date(data.get("date_to")),
            sort=sort if sort in SORT_ORDERS else "newest",
        )

    def filtered(self, filters: BookingFilters):
        queryset = Booking.objects.select_related("customer", "property__owner", "vehicle__owner", "tour__owner")
        if filters.search:
            term = filters.search
            search = (
                Q(customer__username__icontains=term)
                | Q(customer__email__icontains=term)
                | Q(property__name__icontains=term)
                | Q(vehicle__name__icontains=term)
                | Q(tour__name__icontains=term)
            )
            if term.isdigit():
                search |= Q(pk=int(term))
            queryset = queryset.filter(search)
        if filters.status:
            queryset = queryset.filter(status=filters.status)
        if filters.service_type:
            queryset = queryset.filter(service_type=filters.service_type)
        if filters.date_from:
            queryset = queryset.filter(created_at__date__gte=filters.date_from)
        if filters.date_to:
            queryset = queryset.filter(created_at__date__lte=filters.date_to)
        return queryset.order_by(*SORT_ORDERS[filters.sort])

    def decorate(self, bookings) -> list[Booking]:
        decorated = []
        for booking in bookings:
            booking.status_badge_class = self.STATUS_BADGE_MAP.get(booking.status, "bg-light text-muted")
            booking.can_confirm = booking.status == "PENDING"
            booking.can_cancel = booking.status not in {"CANCELLED", "REFUNDED", "COMPLETED"}
            booking.can_complete = booking.status == "CONFIRMED"
            booking.can_refund = booking.status in {"CONFIRMED", "CANCELLED"}
            decorated.append(booking)
        return decorated

    def summary(self, queryset=None) -> dict[str, Any]:
        queryset = queryset if queryset is not None else Booking.objects.all()
        by_type = {code: 0 for code in self.SERVICE_TYPES}
        by_type.update({row["service_type"]: row["count"] for row in queryset.values("service_type").annotate(count=Count("id"))})
        by_status = {code: 0 for code in self.STATUSES}
        by_status.update({row["status"]: row["count"] for row in queryset.values("status").annotate(count=Count("id"))})
        revenue = queryset.filter(status__in=Booking.REVENUE_STATUSES).aggregate(
            total=Sum("total_amount"), average=Avg("total_amount")
        )
        return {
            "total": queryset.count(),
            "by_type": by_type,
            "by_status": by_status,
            "revenue": as_float(revenue["total"]),
            "average_value": round(as_float(revenue["average"]), 2),
        }

    def _record(self, booking: Booking, action: str, **details) -> None:
        self.audit(
            action,
            {"service_type": booking.service_type, "amount": str(booking.total_amount), **details},
            resource_type="BOOKING",
            resource_id=booking.pk,
        )

    @transaction.atomic
    def confirm(self, booking: Booking) -> ActionOutcome:
        if booking.status != "PENDING":
            return ActionOutcome("info", "Only pending bookings can be confirmed.")
        booking.mark_confirmed()
        self.commission_service.create_for_booking(booking)
        self._record(booking, "BOOKING_CONFIRMED")
        if booking.customer:
            self.notify(
                booking.customer,
                "BOOKING_UPDATE",
                "Booking Confirmed",
                f"Your booking #{booking.pk} has been confirmed.",
            )
        return ActionOutcome("success", f"Booking #{booking.pk} confirmed.")

    def cancel(self, booking: Booking, reason: str = "") -> ActionOutcome:
        if booking.status in {"CANCELLED", "REFUNDED"}:
            return ActionOutcome("info", "This booking is already cancelled.")
        reason = (reason or "").strip() or "Cancelled by admin"
        booking.mark_cancelled(reason)
        self._record(booking, "BOOKING_CANCELLED", reason=reason)
        if booking.customer:
            self.notify(
                booking.customer,
                "BOOKING_UPDATE",
                "Booking Cancelled",
                f"Your booking #{booking.pk} has been cancelled. Reason: {reason}",
            )
        return ActionOutcome("success", f"Booking #{booking.pk} cancelled.")

    def complete(self, booking: Booking) -> ActionOutcome:
        if booking.status != "CONFIRMED":
            return ActionOutcome("info", "Only confirmed bookings can be completed.")
        booking.mark_completed()
        self._record(booking, "BOOKING_COMPLETED")
        return ActionOutcome("success", f"Booking #{booking.pk} marked as completed.")

    @transaction.atomic
    def issue_refund(self, booking: Booking, amount) -> ActionOutcome:
        try:
            amount = Decimal(str(amount)).quantize(Decimal("0.01"))
        except (InvalidOperation, TypeError, ValueError):
            raise ActionError("Enter a valid refund amount.") from None
        if amount <= 0:
            raise ActionError("Refund amount must be greater than zero.")
        if amount > booking.total_amount:
            raise ActionError("Refund amount cannot exceed the booking total.")
        if booking.status not in {"CONFIRMED", "CANCELLED"}:
            raise ActionError("Only confirmed or cancelled bookings can be refunded.")
        booking.mark_refunded(amount)
        booking.payments.filter(status="COMPLETED").update(status="REFUNDED")
        self._record(booking, "ISSUE_REFUND", refund_amount=str(amount))
        return ActionOutcome("success", f"Refund of {amount} issued for booking #{booking.pk}.")
