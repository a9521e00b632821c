from __future__ import annotations

from dataclasses import dataclass, field
from datetime import timedelta
from decimal import Decimal

from django.db.models import Sum
from django.utils import timezone

from ..models import AuditLog, Booking, Property, SupportTicket, Tour, User, Vehicle
from .metrics import growth_rate


@dataclass(frozen=True)
class AdminDashboardStats:
    total_users: int
    total_providers: int
    total_bookings: int
    total_revenue: Decimal
    pending_approvals: int
    active_support_tickets: int
    user_growth: float
    booking_growth: float
    revenue_growth: float
    recent_activity: list = field(default_factory=list)


def _revenue(queryset) -> Decimal:
    return queryset.filter(status__in=Booking.REVENUE_STATUSES).aggregate(total=Sum("total_amount"))["total"] or Decimal("0")


class AdminDashboardService:
    """Headline platform counts for the admin dashboard."""

    def __init__(self, now=None):
        self.now = now or timezone.now()

    def _platform_users(self):
        return User.objects.exclude(role__in=User.ADMIN_ROLES)

    def pending_approvals(self) -> int:
        unverified_providers = User.objects.filter(role__in=User.PROVIDER_ROLES, verified=False).count()
        pending_listings = sum(
            model.objects.filter(approval_status="PENDING").count() for model in (Property, Vehicle, Tour)
        )
        return unverified_providers + pending_listings

    def stats(self) -> AdminDashboardStats:
        month_start = self.now - timedelta(days=30)
        previous_start = self.now - timedelta(days=60)

        users = self._platform_users()
        current_users = users.filter(date_joined__gte=month_start).count()
        previous_users = users.filter(date_joined__gte=previous_start, date_joined__lt=month_start).count()

        bookings = Booking.objects.all()
        current_bookings = bookings.filter(created_at__gte=month_start)
        previous_bookings = bookings.filter(created_at__gte=previous_start, created_at__lt=month_start)

        recent_activity = list(AuditLog.objects.select_related("user").order_by("-created_at", "-id")[:10])

        return AdminDashboardStats(
            total_users=users.count(),
            total_providers=User.objects.filter(role__in=User.PROVIDER_ROLES).count(),
            total_bookings=bookings.count(),
            total_revenue=_revenue(bookings),
            pending_approvals=self.pending_approvals(),
            active_support_tickets=SupportTicket.objects.exclude(status__in=SupportTicket.DONE_STATUSES).count(),
            user_growth=growth_rate(current_users, previous_users),
            booking_growth=growth_rate(current_bookings.count(), previous_bookings.count()),
            revenue_growth=growth_rate(_revenue(current_bookings), _revenue(previous_bookings)),
            recent_activity=recent_activity,
        )
