from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Any

from django.db.models import Count, Q, Sum

from ..exceptions import ActionError
from ..models import AuditLog, Booking, User
from .base import ActionOutcome, AdminActionService
from .metrics import parse_date

STATUS_FILTERS = {
    "verified": Q(verified=True),
    "unverified": Q(verified=False),
    "active": Q(is_active=True, banned=False),
    "inactive": Q(is_active=False),
    "banned": Q(banned=True),
}

SORT_ORDERS = {
    "newest": ("-date_joined", "-id"),
    "oldest": ("date_joined", "id"),
    "name": ("first_name", "last_name", "username"),
    "email": ("email",),
    "last_active": ("-last_active_at", "-id"),
}


@dataclass(frozen=True)
class UserFilters:
    search: str = ""
    role: str = ""
    status: str = ""
    date_from: date | None = None
    date_to: date | None = None
    sort: str = "newest"


class UserManagementService(AdminActionService):
    """List, inspect and moderate platform accounts."""

    MANAGEABLE_ROLES = tuple(code for code, _ in User.ROLE_CHOICES if code != "SUPER_ADMIN")

    def build_filters(self, data) -> UserFilters:
        role = (data.get("role") or "").strip()
        status = (data.get("status") or "").strip()
        sort = (data.get("sort") or "newest").strip()
        return UserFilters(
            search=(data.get("search") or "").strip(),
            role=role if role in self.MANAGEABLE_ROLES else "",
            status=status if status in STATUS_FILTERS else "",
            date_from=parse_date(data.get("date_from")),
            date_to=parse_date(data.get("date_to")),
            sort=sort if sort in SORT_ORDERS else "newest",
        )

    def base_queryset(self):
        return User.objects.exclude(role="SUPER_ADMIN")

    def filtered(self, filters: UserFilters):
        queryset = self.base_queryset().annotate(
            booking_count=Count("bookings", distinct=True),
            review_count=Count("reviews", distinct=True),
        )
        if filters.search:
            queryset = queryset.filter(
                Q(username__icontains=filters.search)
                | Q(email__icontains=filters.search)
                | Q(first_name__icontains=filters.search)
                | Q(last_name__icontains=filters.search)
                | Q(phone__icontains=filters.search)
                | Q(business_name__icontains=filters.search)
            )
        if filters.role:
            queryset = queryset.filter(role=filters.role)
        if filters.status:
            queryset = queryset.filter(STATUS_FILTERS[filters.status])
        if filters.date_from:
            queryset = queryset.filter(date_joined__date__gte=filters.date_from)
        if filters.date_to:
            queryset = queryset.filter(date_joined__date__lte=filters.date_to)
        return queryset.order_by(*SORT_ORDERS[filters.sort])

    def role_counts(self) -> dict[str, int]:
        counts = {role: 0 for role in self.MANAGEABLE_ROLES}
        for row in self.base_queryset().values("role").annotate(count=Count("id")):
            counts[row["role"]] = row["count"]
        return counts

    def status_counts(self) -> dict[str, int]:
        queryset = self.base_queryset()
        return {name: queryset.filter(condition).count() for name, condition in STATUS_FILTERS.items()}

    def detail(self, user: User) -> dict[str, Any]:
        bookings = Booking.objects.filter(customer=user).select_related("property", "vehicle", "tour")
        spent = bookings.filter(status__in=Booking.REVENUE_STATUSES).aggregate(total=Sum("total_amount"))["total"]
        return {
            "profile": user,
            "bookings": list(bookings[:10]),
            "booking_count": bookings.count(),
            "total_spent": spent or 0,
            "reviews": list(user.reviews.all()[:10]),
            "tickets": list(user.support_tickets.all()[:10]),
            "audit_trail": list(
                AuditLog.objects.filter(resource_type="USER", resource_id=str(user.pk))
                .select_related("user")
                .order_by("-created_at", "-id")[:20]
            ),
        }

    def _guard(self, target: User) -> None:
        if target.pk == getattr(self.admin, "pk", None):
            raise ActionError("You cannot perform this action on your own account.")
        if target.role == "SUPER_ADMIN":
            raise ActionError("Super admin accounts cannot be modified here.")

    def _record(self, target: User, action: str, reason: str = "") -> None:
        details = {"user": target.username, "email": target.email}
        if reason:
            details["reason"] = reason
        self.audit(action, details, resource_type="USER", resource_id=target.pk)

    def verify(self, target: User) -> ActionOutcome:
        self._guard(target)
        target.verified = True
        target.save(update_fields=["verified"])
        self._record(target, "USER_VERIFIED")
        return ActionOutcome("success", f"{target.display_name} has been verified.")

    def unverify(self, target: User) -> ActionOutcome:
        self._guard(target)
        target.verified = False
        target.save(update_fields=["verified"])
        self._record(target, "USER_UNVERIFIED")
        return ActionOutcome("success", f"{target.display_name} is no longer verified.")

    def activate(self, target: User) -> ActionOutcome:
        self._guard(target)
        target.is_active = True
        target.deactivation_reason = ""
        target.save(update_fields=["is_active", "deactivation_reason"])
        self._record(target, "USER_ACTIVATED")
        return ActionOutcome("success", f"{target.display_name} has been activated.")

    def deactivate(self, target: User, reason: str) -> ActionOutcome:
        self._guard(target)
        reason = (reason or "").strip()
        if not reason:
            raise ActionError("A reason is required to deactivate an account.")
        target.is_active = False
        target.deactivation_reason = reason
        target.save(update_fields=["is_active", "deactivation_reason"])
        self._record(target, "USER_DEACTIVATED", reason)
        return ActionOutcome("success", f"{target.display_name} has been deactivated.")

    def ban(self, target: User, reason: str) -> ActionOutcome:
        self._guard(target)
        reason = (reason or "").strip()
        if not reason:
            raise ActionError("A reason is required to ban an account.")
        target.banned = True
        target.ban_reason = reason
        target.is_active = False
        target.save(update_fields=["banned", "ban_reason", "is_active"])
        self._record(target, "USER_BANNED", reason)
        return ActionOutcome("success", f"{target.display_name} has been banned.")

    def unban(self, target: User) -> ActionOutcome:
        self._guard(target)
        if not target.banned:
            return ActionOutcome("info", f"{target.display_name} is not banned.")
        target.banned = False
        target.ban_reason = ""
        target.is_active = True
        target.save(update_fields=["banned", "ban_reason", "is_active"])
        self._record(target, "USER_UNBANNED")
        return ActionOutcome("success", f"{target.display_name} has been unbanned.")
