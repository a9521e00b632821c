from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from django.db.models import Count, Q
from django.shortcuts import get_object_or_404

from ..exceptions import ActionError
from ..models import LISTING_MODELS, User
from .base import ActionOutcome, AdminActionService

SORT_ORDERS = {
    "newest": "-created_at",
    "oldest": "created_at",
}


@dataclass(frozen=True)
class ProviderFilters:
    search: str = ""
    role: str = ""
    sort: str = "newest"


@dataclass(frozen=True)
class ListingFilters:
    status: str = "PENDING"
    service_type: str = ""
    search: str = ""
    sort: str = "newest"


class ProviderApprovalService(AdminActionService):
    """Review provider accounts waiting for verification."""

    def build_filters(self, data) -> ProviderFilters:
        role = (data.get("role") or "").strip()
        sort = (data.get("sort") or "newest").strip()
        return ProviderFilters(
            search=(data.get("search") or "").strip(),
            role=role if role in User.PROVIDER_ROLES else "",
            sort=sort if sort in SORT_ORDERS else "newest",
        )

    def pending(self, filters: ProviderFilters):
        queryset = User.objects.filter(role__in=User.PROVIDER_ROLES, verified=False, banned=False)
        if filters.role:
            queryset = queryset.filter(role=filters.role)
        if filters.search:
            queryset = queryset.filter(
                Q(username__icontains=filters.search)
                | Q(email__icontains=filters.search)
                | Q(first_name__icontains=filters.search)
                | Q(last_name__icontains=filters.search)
                | Q(business_name__icontains=filters.search)
            )
        order = "-date_joined" if filters.sort == "newest" else "date_joined"
        return queryset.order_by(order, "id")

    def role_counts(self) -> dict[str, int]:
        rows = (
            User.objects.filter(role__in=User.PROVIDER_ROLES, verified=False, banned=False)
            .values("role")
            .annotate(count=Count("id"))
        )
        counts = {role: 0 for role in User.PROVIDER_ROLES}
        counts.update({row["role"]: row["count"] for row in rows})
        return counts

    def get_provider(self, provider_id) -> User:
        if not str(provider_id or "").isdigit():
            raise ActionError("Unknown provider.")
        return get_object_or_404(User, pk=provider_id, role__in=User.PROVIDER_ROLES)

    def approve(self, provider: User) -> ActionOutcome:
        provider.verified = True
        provider.save(update_fields=["verified"])
        self.notify(
            provider,
            "PROFILE_VERIFIED",
            "Account Approved!",
            "Congratulations! Your account has been approved. You can now start adding services to the platform.",
        )
        self.audit(
            "PROVIDER_APPROVED",
            {"provider": provider.username, "role": provider.role},
            resource_type="USER",
            resource_id=provider.pk,
        )
        return ActionOutcome("success", f"{provider.display_name} has been approved.")

    def reject(self, provider: User, reason: str) -> ActionOutcome:
        reason = (reason or "").strip()
        if not reason:
            raise ActionError("A rejection reason is required.")
        provider.verified = False
        provider.save(update_fields=["verified"])
        self.notify(
            provider,
            "PROFILE_REJECTED",
            "Application Not Approved",
            f"Your application was not approved. Reason: {reason}",
        )
        self.audit(
            "PROVIDER_REJECTED",
            {"provider": provider.username, "reason": reason},
            resource_type="USER",
            resource_id=provider.pk,
        )
        return ActionOutcome("success", f"{provider.display_name} has been rejected.")

    def request_info(self, provider: User, notes: str) -> ActionOutcome:
        notes = (notes or "").strip()
        self.notify(
            provider,
            "SYSTEM_ANNOUNCEMENT",
            "Additional Information Required",
            f"We need additional information to process your application. {notes}".strip(),
        )
        self.audit(
            "PROVIDER_INFO_REQUESTED",
            {"provider": provider.username, "notes": notes},
            resource_type="USER",
            resource_id=provider.pk,
        )
        return ActionOutcome("info", f"Requested more information from {provider.display_name}.")

    def toggle_verify(self, provider: User) -> ActionOutcome:
        provider.verified = not provider.verified
        provider.save(update_fields=["verified"])
        action = "PROVIDER_VERIFIED" if provider.verified else "PROVIDER_UNVERIFIED"
        self.audit(action, {"provider": provider.username}, resource_type="USER", resource_id=provider.pk)
        state = "verified" if provider.verified else "unverified"
        return ActionOutcome("success", f"{provider.display_name} is now {state}.")


class ServiceApprovalService(AdminActionService):
    """Moderate property, vehicle and tour listings before they go live."""

    APPROVAL_STATUSES = tuple(code for code, _ in LISTING_MODELS["property"].APPROVAL_STATUS_CHOICES)

    def build_filters(self, data) -> ListingFilters:
        status = (data.get("status") or "PENDING").strip().upper()
        service_type = (data.get("type") or "").strip().lower()
        sort = (data.get("sort") or "newest").strip()
        return ListingFilters(
            status=status if status in self.APPROVAL_STATUSES or status == "ALL" else "PENDING",
            service_type=service_type if service_type in LISTING_MODELS else "",
            search=(data.get("search") or "").strip(),
            sort=sort if sort in SORT_ORDERS else "newest",
        )

    def _queryset(self, model, filters: ListingFilters):
        queryset = model.objects.select_related("owner")
        if filters.status != "ALL":
            queryset = queryset.filter(approval_status=filters.status)
        if filters.search:
            queryset = queryset.filter(
                Q(name__icontains=filters.search)
                | Q(city__icontains=filters.search)
                | Q(owner__username__icontains=filters.search)
                | Q(owner__email__icontains=filters.search)
            )
        return queryset

    def listings(self, filters: ListingFilters) -> list[Any]:
        """Listings of every requested type merged into one list sorted by creation time."""
        types = [filters.service_type] if filters.service_type else list(LISTING_MODELS)
        listings = []
        for service_type in types:
            listings.extend(self._queryset(LISTING_MODELS[service_type], filters))
        listings.sort(key=lambda listing: (listing.created_at, listing.pk), reverse=filters.sort == "newest")
        return listings

    def type_counts(self, status: str = "PENDING") -> dict[str, int]:
        return {
            service_type: model.objects.filter(approval_status=status).count()
            for service_type, model in LISTING_MODELS.items()
        }

    def status_counts(self) -> dict[str, int]:
        counts = {status: 0 for status in self.APPROVAL_STATUSES}
        for model in LISTING_MODELS.values():
            for row in model.objects.values("approval_status").annotate(count=Count("id")):
                counts[row["approval_status"]] += row["count"]
        return counts

    def get_listing(self, service_type: str, listing_id):
        model = LISTING_MODELS.get((service_type or "").lower())
        if model is None:
            raise ActionError("Unknown service type.")
        if not str(listing_id or "").isdigit():
            raise ActionError("Enter a valid listing ID.")
        return get_object_or_404(model.objects.select_related("owner"), pk=listing_id)

    def _decide(self, listing, status: str, action: str, reason: str = "") -> None:
        listing.set_approval(status, self.admin, reason)
        self.audit(
            action,
            {"service_type": listing.service_type, "name": listing.name, "reason": reason},
            resource_type=listing.service_type.upper(),
            resource_id=listing.pk,
        )

    def approve(self, listing) -> ActionOutcome:
        self._decide(listing, "APPROVED", "SERVICE_APPROVED")
        self.notify(
            listing.owner,
            "LISTING_APPROVED",
            "Listing Approved",
            f"Your {listing.service_type} \"{listing.name}\" is now live on FindoTrip.",
        )
        return ActionOutcome("success", f"{listing.name} has been approved.")

    def reject(self, listing, reason: str) -> ActionOutcome:
        reason = (reason or "").strip()
        if not reason:
            raise ActionError("A rejection reason is required.")
        self._decide(listing, "REJECTED", "SERVICE_REJECTED", reason)
        self.notify(
            listing.owner,
            "LISTING_REJECTED",
            "Listing Not Approved",
            f"Your {listing.service_type} \"{listing.name}\" was not approved. Reason: {reason}",
        )
        return ActionOutcome("success", f"{listing.name} has been rejected.")

    def request_changes(self, listing, reason: str) -> ActionOutcome:
        reason = (reason or "").strip()
        if not reason:
            raise ActionError("Please describe the changes required.")
        self._decide(listing, "REQUIRES_CHANGES", "SERVICE_CHANGES_REQUESTED", reason)
        self.notify(
            listing.owner,
            "LISTING_CHANGES_REQUESTED",
            "Changes Requested",
            f"Please update your {listing.service_type} \"{listing.name}\": {reason}",
        )
        return ActionOutcome("info", f"Requested changes to {listing.name}.")

    def mark_under_review(self, listing) -> ActionOutcome:
        if listing.approval_status != "PENDING":
            return ActionOutcome("info", "Only pending listings can be moved under review.")
        self._decide(listing, "UNDER_REVIEW", "SERVICE_UNDER_REVIEW")
        return ActionOutcome("success", f"{listing.name} is now under review.")

    def featured(self, service_type: str = "") -> list[Any]:
        types = [service_type] if service_type in LISTING_MODELS else list(LISTING_MODELS)
        listings = []
        for name in types:
            listings.extend(
                LISTING_MODELS[name].objects.filter(is_featured=True).select_related("owner").annotate(
                    booking_count=Count("bookings", distinct=True)
                )
            )
        listings.sort(key=lambda listing: (listing.updated_at, listing.pk), reverse=True)
        return listings

    def featured_counts(self) -> dict[str, int]:
        return {name: model.objects.filter(is_featured=True).count() for name, model in LISTING_MODELS.items()}

    def feature(self, listing) -> ActionOutcome:
        if listing.approval_status != "APPROVED":
            raise ActionError("Only approved listings can be featured.")
        if listing.is_featured:
            return ActionOutcome("info", f"{listing.name} is already featured.")
        listing.is_featured = True
        listing.save(update_fields=["is_featured", "updated_at"])
        self.audit(
            "ADD_FEATURED",
            {"service_type": listing.service_type, "name": listing.name},
            resource_type=listing.service_type.upper(),
            resource_id=listing.pk,
        )
        return ActionOutcome("success", f"{listing.name} is now featured.")

    def unfeature(self, listing) -> ActionOutcome:
        if not listing.is_featured:
            return ActionOutcome("info", f"{listing.name} is not featured.")
        listing.is_featured = False
        listing.save(update_fields=["is_featured", "updated_at"])
        self.audit(
            "REMOVE_FEATURED",
            {"service_type": listing.service_type, "name": listing.name},
            resource_type=listing.service_type.upper(),
            resource_id=listing.pk,
        )
        return ActionOutcome("success", f"{listing.name} was removed from featured services.")
