from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Any

from django.db.models import Avg, Count, Q
from django.utils import timezone

from ..exceptions import ActionError
from ..models import Review
from .base import ActionOutcome, AdminActionService
from .metrics import parse_date

STATUS_FILTERS = {
    "published": Q(is_hidden=False),
    "hidden": Q(is_hidden=True),
    "flagged": Q(is_flagged=True),
    "featured": Q(is_featured=True),
}

SORT_ORDERS = {
    "newest": ("-created_at", "-id"),
    "oldest": ("created_at", "id"),
    "rating_high": ("-rating", "-created_at"),
    "rating_low": ("rating", "-created_at"),
}


@dataclass(frozen=True)
class ReviewFilters:
    search: str = ""
    status: str = ""
    service_type: str = ""
    rating: int | None = None
    has_response: str = ""
    date_from: date | None = None
    date_to: date | None = None
    sort: str = "newest"


class ReviewModerationService(AdminActionService):
    """Hide, feature, edit and remove customer reviews."""

    SERVICE_TYPES = tuple(code for code, _ in Review.SERVICE_TYPE_CHOICES)

    def build_filters(self, data) -> ReviewFilters:
        status = (data.get("status") or "").strip()
        service_type = (data.get("type") or "").strip().lower()
        rating_raw = (data.get("rating") or "").strip()
        has_response = (data.get("has_response") or "").strip()
        sort = (data.get("sort") or "newest").strip()
        return ReviewFilters(
            search=(data.get("search") or "").strip(),
            status=status if status in STATUS_FILTERS else "",
            service_type=service_type if service_type in self.SERVICE_TYPES else "",
            rating=int(rating_raw) if rating_raw in {"1", "2", "3", "4", "5"} else None,
            has_response=has_response if has_response in {"yes", "no"} else "",
            date_from=parse_date(data.get("date_from")),
            date_to=parse_date(data.get("date_to")),
            sort=sort if sort in SORT_ORDERS else "newest",
        )

    def filtered(self, filters: ReviewFilters):
        queryset = Review.objects.select_related("user", "property", "vehicle", "tour")
        if filters.search:
            queryset = queryset.filter(
                Q(content__icontains=filters.search)
                | Q(user__username__icontains=filters.search)
                | Q(user__email__icontains=filters.search)
                | Q(property__name__icontains=filters.search)
                | Q(vehicle__name__icontains=filters.search)
                | Q(tour__name__icontains=filters.search)
            )
        if filters.status:
            queryset = queryset.filter(STATUS_FILTERS[filters.status])
        if filters.service_type:
            queryset = queryset.filter(service_type=filters.service_type)
        if filters.rating:
            queryset = queryset.filter(rating=filters.rating)
        if filters.has_response == "yes":
            queryset = queryset.exclude(response="")
        elif filters.has_response == "no":
            queryset = queryset.filter(response="")
        if filters.date_from:
            queryset = queryset.filter(created_at__date__gte=filters.date_from)
        if filters.date_to:
            queryset = queryset.filter(created_at__date__lte=filters.date_to)
        return queryset.order_by(*SORT_ORDERS[filters.sort])

    def stats(self) -> dict[str, Any]:
        totals = Review.objects.aggregate(
            total=Count("id"),
            published=Count("id", filter=Q(is_hidden=False)),
            flagged=Count("id", filter=Q(is_flagged=True)),
            hidden=Count("id", filter=Q(is_hidden=True)),
            featured=Count("id", filter=Q(is_featured=True)),
            average_rating=Avg("rating"),
        )
        totals["average_rating"] = round(totals["average_rating"] or 0, 2)
        return totals

    def rating_distribution(self) -> dict[int, int]:
        distribution = {rating: 0 for rating in range(1, 6)}
        for row in Review.objects.values("rating").annotate(count=Count("id")):
            distribution[row["rating"]] = row["count"]
        return distribution

    def service_type_counts(self) -> dict[str, int]:
        counts = {code: 0 for code in self.SERVICE_TYPES}
        for row in Review.objects.values("service_type").annotate(count=Count("id")):
            counts[row["service_type"]] = row["count"]
        return counts

    def _record(self, review: Review, action: str, **details) -> None:
        self.audit(
            action,
            {"service_type": review.service_type, "rating": review.rating, **details},
            resource_type="REVIEW",
            resource_id=review.pk,
        )

    def hide(self, review: Review, reason: str) -> ActionOutcome:
        reason = (reason or "").strip()
        if not reason:
            raise ActionError("A reason is required to hide a review.")
        review.is_hidden = True
        review.hidden_reason = reason
        review.hidden_by = self.admin
        review.hidden_at = timezone.now()
        review.save(update_fields=["is_hidden", "hidden_reason", "hidden_by", "hidden_at"])
        self._record(review, "HIDE_REVIEW", reason=reason)
        return ActionOutcome("success", "Review hidden from the public site.")

    def unhide(self, review: Review) -> ActionOutcome:
        review.is_hidden = False
        review.hidden_reason = ""
        review.hidden_by = None
        review.hidden_at = None
        review.save(update_fields=["is_hidden", "hidden_reason", "hidden_by", "hidden_at"])
        self._record(review, "UNHIDE_REVIEW")
        return ActionOutcome("success", "Review is visible again.")

    def remove(self, review: Review, reason: str) -> ActionOutcome:
        reason = (reason or "").strip()
        if not reason:
            raise ActionError("A reason is required to remove a review.")
        review_id = review.pk
        self.audit(
            "REMOVE_REVIEW",
            {"service_type": review.service_type, "rating": review.rating, "reason": reason, "content": review.content},
            resource_type="REVIEW",
            resource_id=review_id,
        )
        review.delete()
        return ActionOutcome("success", "Review removed.")

    def edit(self, review: Review, content: str) -> ActionOutcome:
        content = (content or "").strip()
        if not content:
            raise ActionError("Review content cannot be empty.")
        previous = review.content
        review.content = content
        review.edited_by = self.admin
        review.edited_at = timezone.now()
        review.save(update_fields=["content", "edited_by", "edited_at"])
        self._record(review, "EDIT_REVIEW", previous_content=previous)
        return ActionOutcome("success", "Review updated.")

    def feature(self, review: Review) -> ActionOutcome:
        if review.is_hidden:
            raise ActionError("Hidden reviews cannot be featured.")
        review.is_featured = True
        review.featured_by = self.admin
        review.featured_at = timezone.now()
        review.save(update_fields=["is_featured", "featured_by", "featured_at"])
        self._record(review, "FEATURE_REVIEW")
        return ActionOutcome("success", "Review featured.")

    def unfeature(self, review: Review) -> ActionOutcome:
        review.is_featured = False
        review.featured_by = None
        review.featured_at = None
        review.save(update_fields=["is_featured", "featured_by", "featured_at"])
        self._record(review, "UNFEATURE_REVIEW")
        return ActionOutcome("success", "Review is no longer featured.")

    def dismiss_flag(self, review: Review) -> ActionOutcome:
        if not review.is_flagged:
            return ActionOutcome("info", "This review is not flagged.")
        review.is_flagged = False
        review.flag_reason = ""
        review.save(update_fields=["is_flagged", "flag_reason"])
        self._record(review, "DISMISS_REVIEW_FLAG")
        return ActionOutcome("success", "Flag dismissed.")
