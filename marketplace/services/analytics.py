from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta
from typing import Any

from django.db.models import Avg, Count, Sum
from django.db.models.functions import Coalesce
from django.utils import timezone

from ..models import AnalyticsEvent, AuditLog, Booking, User
from .audit import AuditLogService
from .metrics import as_float, growth_rate, percentage

ACTIVE_USER_DAYS = 7
CHURN_THRESHOLD_DAYS = 30
BUCKET_DAYS = 30
FORECAST_MONTHS = 3


@dataclass(frozen=True)
class Kpi:
    label: str
    value: float
    growth: float


def _confirmed(queryset):
    return queryset.filter(status__in=Booking.REVENUE_STATUSES)


def _listing_city():
    return Coalesce("property__city", "vehicle__city", "tour__city")


class PlatformAnalyticsService:
    """Platform KPIs for a rolling window compared with the window before it."""

    def __init__(self, days: int = 30, now=None):
        self.days = days
        self.now = now or timezone.now()
        self.start = self.now - timedelta(days=days)
        self.compare_start = self.now - timedelta(days=days * 2)

    def _bookings(self):
        return Booking.objects.filter(created_at__gte=self.start)

    def _previous_bookings(self):
        return Booking.objects.filter(created_at__gte=self.compare_start, created_at__lt=self.start)

    def _events(self, event_type: str):
        return AnalyticsEvent.objects.filter(event_type=event_type, created_at__gte=self.start)

    def kpis(self) -> dict[str, Kpi]:
        active_since = self.now - timedelta(days=ACTIVE_USER_DAYS)
        total_users = User.objects.count()
        previous_total_users = User.objects.filter(date_joined__lt=self.start).count()
        active_users = User.objects.filter(last_active_at__gte=active_since).count()
        previous_active_users = User.objects.filter(
            last_active_at__gte=self.compare_start, last_active_at__lt=self.start
        ).count()
        new_users = User.objects.filter(date_joined__gte=self.start).count()
        previous_new_users = User.objects.filter(
            date_joined__gte=self.compare_start, date_joined__lt=self.start
        ).count()

        total_bookings = self._bookings().count()
        previous_bookings = self._previous_bookings().count()
        avg_value = as_float(_confirmed(self._bookings()).aggregate(avg=Avg("total_amount"))["avg"])
        previous_avg_value = as_float(_confirmed(self._previous_bookings()).aggregate(avg=Avg("total_amount"))["avg"])

        page_views = self._events("page_view").count()
        previous_page_views = AnalyticsEvent.objects.filter(
            event_type="page_view", created_at__gte=self.compare_start, created_at__lt=self.start
        ).count()
        conversion = percentage(total_bookings, page_views)
        previous_conversion = percentage(previous_bookings, previous_page_views)

        return {
            "total_users": Kpi("Total Users", total_users, growth_rate(total_users, previous_total_users)),
            "active_users": Kpi("Active Users", active_users, growth_rate(active_users, previous_active_users)),
            "new_users": Kpi("New Users", new_users, growth_rate(new_users, previous_new_users)),
            "total_bookings": Kpi("Total Bookings", total_bookings, growth_rate(total_bookings, previous_bookings)),
            "conversion_rate": Kpi("Conversion Rate", conversion, growth_rate(conversion, previous_conversion)),
            "avg_booking_value": Kpi(
                "Avg Booking Value", round(avg_value, 2), growth_rate(avg_value, previous_avg_value)
            ),
        }

    def revenue(self) -> dict[str, float]:
        current = as_float(_confirmed(self._bookings()).aggregate(total=Sum("total_amount"))["total"])
        previous = as_float(_confirmed(self._previous_bookings()).aggregate(total=Sum("total_amount"))["total"])
        return {"total": current, "growth": growth_rate(current, previous)}

    def booking_trends(self) -> list[dict[str, Any]]:
        rows = list(
            self._bookings()
            .values("service_type")
            .annotate(count=Count("id"), revenue=Sum("total_amount"))
            .order_by("-count", "service_type")
        )
        total = sum(row["count"] for row in rows)
        return [
            {
                "service_type": row["service_type"],
                "count": row["count"],
                "revenue": as_float(row["revenue"]),
                "percentage": percentage(row["count"], total),
            }
            for row in rows
        ]

    def traffic_sources(self) -> list[dict[str, Any]]:
        rows = self._events("page_view").values("source").annotate(count=Count("id")).order_by("-count")
        merged: dict[str, int] = {}
        for row in rows:
            source = row["source"] or "Direct"
            merged[source] = merged.get(source, 0) + row["count"]
        total = sum(merged.values())
        return [
            {"source": source, "count": count, "percentage": percentage(count, total)}
            for source, count in sorted(merged.items(), key=lambda item: (-item[1], item[0]))
        ]

    def geographic_data(self, limit: int | None = None) -> list[dict[str, Any]]:
        rows = (
            self._bookings()
            .annotate(location=_listing_city())
            .values("location")
            .annotate(count=Count("id"), revenue=Sum("total_amount"))
            .order_by("-count", "location")
        )
        if limit:
            rows = rows[:limit]
        return [
            {"location": row["location"] or "Unknown", "count": row["count"], "revenue": as_float(row["revenue"])}
            for row in rows
        ]

    def user_behavior(self) -> dict[str, float]:
        def average(event_type: str) -> float:
            return round(as_float(self._events(event_type).aggregate(avg=Avg("value"))["avg"]), 2)

        return {
            "avg_session_duration": average("session_duration"),
            "pages_per_session": average("pages_per_session"),
            "bounce_rate": average("bounce_rate"),
        }

    def top_pages(self, limit: int = 5) -> list[dict[str, Any]]:
        return list(
            self._events("page_view")
            .exclude(page="")
            .values("page")
            .annotate(views=Count("id"))
            .order_by("-views", "page")[:limit]
        )

    def top_search_terms(self, limit: int = 5) -> list[dict[str, Any]]:
        return list(
            self._events("search")
            .exclude(search_term="")
            .values("search_term")
            .annotate(searches=Count("id"))
            .order_by("-searches", "search_term")[:limit]
        )

    def build(self) -> dict[str, Any]:
        return {
            "period": {"days": self.days, "label": f"{self.days} days"},
            "kpis": self.kpis(),
            "revenue": self.revenue(),
            "booking_trends": self.booking_trends(),
            "traffic_sources": self.traffic_sources(),
            "geographic_data": self.geographic_data(),
            "user_behavior": self.user_behavior(),
            "top_pages": self.top_pages(),
            "top_search_terms": self.top_search_terms(),
        }


def _month_growth(current: float, previous: float) -> float:
    if not previous:
        return 0.0
    return round((current - previous) / previous * 100, 2)


class GrowthAnalyticsService:
    """Month-by-month growth buckets plus churn, retention and a short forecast."""

    def __init__(self, months: int = 12, now=None):
        self.months = months
        self.now = now or timezone.now()
        self.start = self.now - timedelta(days=months * BUCKET_DAYS)

    def monthly_data(self) -> list[dict[str, Any]]:
        buckets = []
        for index in range(self.months):
            bucket_start = self.start + timedelta(days=index * BUCKET_DAYS)
            bucket_end = bucket_start + timedelta(days=BUCKET_DAYS)
            bookings = Booking.objects.filter(created_at__gte=bucket_start, created_at__lt=bucket_end)
            buckets.append(
                {
                    "month": index + 1,
                    "start": bucket_start,
                    "users": User.objects.filter(date_joined__gte=bucket_start, date_joined__lt=bucket_end).count(),
                    "bookings": bookings.count(),
                    "revenue": as_float(_confirmed(bookings).aggregate(total=Sum("total_amount"))["total"]),
                }
            )
        return buckets

    def growth_metrics(self, monthly: list[dict[str, Any]]) -> dict[str, float]:
        threshold = self.now - timedelta(days=CHURN_THRESHOLD_DAYS)
        total_users = User.objects.count()
        churned = User.objects.filter(last_active_at__lt=threshold).count()
        retained = User.objects.filter(last_active_at__gte=threshold).count()
        lifetime_value = _confirmed(Booking.objects.filter(created_at__gte=self.start)).aggregate(
            avg=Avg("total_amount")
        )["avg"]

        metrics = {
            "customer_lifetime_value": round(as_float(lifetime_value), 2),
            "churn_rate": percentage(churned, total_users),
            "retention_rate": percentage(retained, total_users),
            "user_growth_rate": 0.0,
            "booking_growth_rate": 0.0,
            "revenue_growth_rate": 0.0,
        }
        if len(monthly) >= 2:
            current, previous = monthly[-1], monthly[-2]
            metrics["user_growth_rate"] = _month_growth(current["users"], previous["users"])
            metrics["booking_growth_rate"] = _month_growth(current["bookings"], previous["bookings"])
            metrics["revenue_growth_rate"] = _month_growth(current["revenue"], previous["revenue"])
        return metrics

    def forecast(self, monthly: list[dict[str, Any]], metrics: dict[str, float]) -> list[dict[str, Any]]:
        if not monthly:
            return []
        current = monthly[-1]
        rows = []
        for step in range(1, FORECAST_MONTHS + 1):
            rows.append(
                {
                    "month": self.months + step,
                    "users": round(current["users"] * (1 + metrics["user_growth_rate"] / 100) ** step),
                    "bookings": round(current["bookings"] * (1 + metrics["booking_growth_rate"] / 100) ** step),
                    "revenue": round(current["revenue"] * (1 + metrics["revenue_growth_rate"] / 100) ** step, 2),
                }
            )
        return rows

    def top_services(self, limit: int = 5) -> list[dict[str, Any]]:
        rows = (
            Booking.objects.filter(created_at__gte=self.start)
            .values("service_type")
            .annotate(bookings=Count("id"), revenue=Sum("total_amount"))
            .order_by("-bookings", "service_type")[:limit]
        )
        return [{**row, "revenue": as_float(row["revenue"])} for row in rows]

    def build(self) -> dict[str, Any]:
        monthly = self.monthly_data()
        metrics = self.growth_metrics(monthly)
        return {
            "period": {"months": self.months, "label": f"{self.months} months"},
            "monthly_data": monthly,
            "growth_metrics": metrics,
            "forecast": self.forecast(monthly, metrics),
            "top_services": self.top_services(),
            "geographic_growth": PlatformAnalyticsService(days=self.months * BUCKET_DAYS, now=self.now).geographic_data(
                limit=10
            ),
        }


class ActivityAnalyticsService:
    """Admin activity drawn from the audit trail."""

    def __init__(self, days: int = 30, now=None):
        self.days = days
        self.now = now or timezone.now()
        self.audit = AuditLogService(AuditLog.objects.filter(created_at__gte=self.now - timedelta(days=days)))

    def build(self) -> dict[str, Any]:
        return {
            "period": {"days": self.days, "label": f"{self.days} days"},
            "by_action": self.audit.action_counts(),
            "by_day": self.audit.daily_counts(self.days),
            "by_user": self.audit.user_counts(),
            "recent": self.audit.recent(20),
        }
