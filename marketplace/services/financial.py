from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from decimal import ROUND_HALF_UP, Decimal
from typing import Any

from django.db import transaction
from django.db.models import Count, Sum
from django.db.models.functions import Coalesce, TruncDate
from django.utils import timezone

from ..exceptions import ActionError
from ..models import LISTING_MODELS, Booking, Commission, Payment, Payout, PlatformSettings
from .metrics import as_float, growth_rate, parse_date

logger = logging.getLogger(__name__)

CENT = Decimal("0.01")
DEFAULT_COMMISSION_RATE = Decimal("0.10")


@dataclass(frozen=True)
class CommissionCalculation:
    booking_id: int
    service_type: str
    provider_id: int | None
    total_amount: Decimal
    rate: Decimal
    amount: Decimal
    currency: str


class CommissionService:
    """Platform commission on confirmed bookings and provider payouts."""

    def __init__(self, platform_settings: PlatformSettings | None = None):
        self.platform_settings = platform_settings or PlatformSettings.load()

    @property
    def default_rate(self) -> Decimal:
        return self.platform_settings.commission_rate or DEFAULT_COMMISSION_RATE

    def calculate(self, booking: Booking, rate: Decimal | None = None) -> CommissionCalculation:
        rate = Decimal(str(rate)) if rate else self.default_rate
        provider = booking.provider
        return CommissionCalculation(
            booking_id=booking.pk,
            service_type=booking.service_type,
            provider_id=provider.pk if provider else None,
            total_amount=booking.total_amount,
            rate=rate,
            amount=(booking.total_amount * rate).quantize(CENT, rounding=ROUND_HALF_UP),
            currency=self.platform_settings.currency,
        )

    def create_for_booking(self, booking: Booking, rate: Decimal | None = None) -> Commission:
        existing = Commission.objects.filter(booking=booking).first()
        if existing is not None:
            return existing
        calculation = self.calculate(booking, rate)
        if calculation.provider_id is None:
            raise ActionError("Booking has no provider to attribute the commission to.")
        commission = Commission.objects.create(
            booking=booking,
            provider_id=calculation.provider_id,
            booking_amount=calculation.total_amount,
            rate=calculation.rate,
            amount=calculation.amount,
            currency=calculation.currency,
        )
        logger.info("Recorded commission %s on booking %s", commission.amount, booking.pk)
        return commission

    def provider_stats(self, provider) -> dict[str, Any]:
        commissions = Commission.objects.filter(provider=provider)
        totals = commissions.aggregate(total=Sum("amount"), count=Count("id"))
        by_status = [
            {"status": row["status"], "amount": as_float(row["amount"]), "count": row["count"]}
            for row in commissions.values("status").annotate(amount=Sum("amount"), count=Count("id")).order_by("status")
        ]
        return {
            "total_earnings": as_float(totals["total"]),
            "total_commissions": totals["count"] or 0,
            "by_status": by_status,
        }

    @transaction.atomic
    def request_payout(self, provider, method: str = "BANK_TRANSFER") -> Payout:
        if method not in dict(Payout.METHOD_CHOICES):
            raise ActionError("Unsupported payout method.")
        pending = list(
            Commission.objects.select_for_update().filter(provider=provider, status="PENDING", payout__isnull=True)
        )
        total = sum((commission.amount for commission in pending), Decimal("0"))
        if not pending or not total:
            raise ActionError("No pending commissions to payout.")
        payout = Payout.objects.create(
            provider=provider,
            amount=total,
            currency=self.platform_settings.currency,
            method=method,
        )
        Commission.objects.filter(pk__in=[commission.pk for commission in pending]).update(payout=payout)
        logger.info("Payout %s requested by provider %s for %s", payout.pk, provider.pk, total)
        return payout

    @transaction.atomic
    def process_payout(self, payout: Payout) -> Payout:
        if payout.status == "PROCESSED":
            raise ActionError("Payout has already been processed.")
        payout.status = "PROCESSED"
        payout.processed_at = timezone.now()
        payout.save(update_fields=["status", "processed_at"])
        payout.commissions.update(status="PAID")
        return payout


def _day_bounds(date_from: date, date_to: date) -> tuple[datetime, datetime]:
    tz = timezone.get_current_timezone()
    start = timezone.make_aware(datetime.combine(date_from, time.min), tz)
    end = timezone.make_aware(datetime.combine(date_to, time.max), tz)
    return start, end


class RevenueReportService:
    """Revenue, payments and commission totals for a date range."""

    SERVICE_TYPES = tuple(LISTING_MODELS)
    PAYMENT_METHODS = tuple(code for code, _ in Payment.METHOD_CHOICES)

    def __init__(self, date_from=None, date_to=None, service_type: str = "all", payment_method: str = "all"):
        today = timezone.localdate()
        self.date_to = parse_date(date_to) or today
        self.date_from = parse_date(date_from) or self.date_to - timedelta(days=30)
        if self.date_from > self.date_to:
            self.date_from, self.date_to = self.date_to, self.date_from
        self.service_type = service_type if service_type in self.SERVICE_TYPES else "all"
        method = (payment_method or "all").upper()
        self.payment_method = method if method in self.PAYMENT_METHODS else "all"
        self.start, self.end = _day_bounds(self.date_from, self.date_to)

    @classmethod
    def from_query(cls, data) -> "RevenueReportService":
        return cls(
            date_from=data.get("date_from"),
            date_to=data.get("date_to"),
            service_type=(data.get("service_type") or "all").lower(),
            payment_method=data.get("payment_method") or "all",
        )

    def _bookings(self, start: datetime, end: datetime):
        queryset = Booking.objects.filter(
            status__in=Booking.REVENUE_STATUSES, created_at__gte=start, created_at__lte=end
        )
        if self.service_type != "all":
            queryset = queryset.filter(service_type=self.service_type)
        return queryset

    def _payments(self):
        queryset = Payment.objects.filter(status="COMPLETED", created_at__gte=self.start, created_at__lte=self.end)
        if self.service_type != "all":
            queryset = queryset.filter(booking__service_type=self.service_type)
        if self.payment_method != "all":
            queryset = queryset.filter(method=self.payment_method)
        return queryset

    def by_service_type(self) -> dict[str, dict[str, float]]:
        rows = {
            row["service_type"]: row
            for row in self._bookings(self.start, self.end)
            .values("service_type")
            .annotate(total=Sum("total_amount"), count=Count("id"))
        }
        return {
            service_type: {
                "total_revenue": as_float(rows.get(service_type, {}).get("total")),
                "bookings": rows.get(service_type, {}).get("count", 0),
            }
            for service_type in self.SERVICE_TYPES
        }

    def payments_by_method(self) -> dict[str, float]:
        rows = {row["method"]: row["total"] for row in self._payments().values("method").annotate(total=Sum("amount"))}
        return {method: as_float(rows.get(method)) for method in self.PAYMENT_METHODS}

    def top_listings(self, limit: int = 10) -> list[dict[str, Any]]:
        results = []
        for service_type in self.SERVICE_TYPES:
            if self.service_type not in ("all", service_type):
                continue
            rows = (
                self._bookings(self.start, self.end)
                .filter(service_type=service_type)
                .values(f"{service_type}_id", f"{service_type}__name", f"{service_type}__city")
                .annotate(total=Sum("total_amount"), count=Count("id"))
            )
            for row in rows:
                results.append(
                    {
                        "service_type": service_type,
                        "id": row[f"{service_type}_id"],
                        "name": row[f"{service_type}__name"],
                        "city": row[f"{service_type}__city"],
                        "total_revenue": as_float(row["total"]),
                        "bookings": row["count"],
                    }
                )
        results.sort(key=lambda item: (-item["total_revenue"], item["name"] or ""))
        return results[:limit]

    def daily_revenue(self) -> list[dict[str, Any]]:
        return [
            {"day": row["day"], "total": as_float(row["total"])}
            for row in self._payments()
            .annotate(day=TruncDate("created_at"))
            .values("day")
            .annotate(total=Sum("amount"))
            .order_by("day")
        ]

    def revenue_by_city(self) -> list[dict[str, Any]]:
        rows = (
            self._bookings(self.start, self.end)
            .annotate(location=Coalesce("property__city", "vehicle__city", "tour__city"))
            .values("location")
            .annotate(total=Sum("total_amount"), count=Count("id"))
            .order_by("-total", "location")
        )
        return [
            {"city": row["location"] or "Unknown", "total_revenue": as_float(row["total"]), "bookings": row["count"]}
            for row in rows
        ]

    def commission_totals(self) -> dict[str, float]:
        commissions = Commission.objects.filter(calculated_at__gte=self.start, calculated_at__lte=self.end)
        if self.service_type != "all":
            commissions = commissions.filter(booking__service_type=self.service_type)
        totals = {row["status"]: row["total"] for row in commissions.values("status").annotate(total=Sum("amount"))}
        return {
            "total": as_float(sum((value or 0 for value in totals.values()), Decimal("0"))),
            "pending": as_float(totals.get("PENDING")),
            "paid": as_float(totals.get("PAID")),
        }

    def build(self) -> dict[str, Any]:
        span = self.end - self.start
        previous = self._bookings(self.start - span, self.start).aggregate(total=Sum("total_amount"))["total"]
        by_type = self.by_service_type()
        total_revenue = sum(item["total_revenue"] for item in by_type.values())
        payments = self._payments()
        return {
            "date_from": self.date_from,
            "date_to": self.date_to,
            "service_type": self.service_type,
            "payment_method": self.payment_method,
            "summary": {
                "total_revenue": round(total_revenue, 2),
                "total_bookings": sum(item["bookings"] for item in by_type.values()),
                "total_payments": as_float(payments.aggregate(total=Sum("amount"))["total"]),
                "payment_count": payments.count(),
                "previous_revenue": as_float(previous),
                "growth_percentage": growth_rate(total_revenue, as_float(previous)),
            },
            "revenue_by_service": by_type,
            "payments_by_method": self.payments_by_method(),
            "top_listings": self.top_listings(),
            "daily_revenue": self.daily_revenue(),
            "revenue_by_city": self.revenue_by_city(),
            "commissions": self.commission_totals(),
        }
