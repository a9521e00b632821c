from django.shortcuts import redirect
from django.utils.decorators import method_decorator
from django.views.generic import TemplateView

from ..decorators import permission_required
from ..models import LISTING_MODELS, User
from ..services.approvals import ProviderApprovalService, ServiceApprovalService
from .mixins import PaginatedListMixin, PanelActionMixin


@method_decorator(permission_required("providers.approve"), name="dispatch")
class ProviderApprovalView(PanelActionMixin, PaginatedListMixin, TemplateView):
    template_name = "panel/approvals/providers.html"
    service_class = ProviderApprovalService
    allowed_actions = frozenset({"approve", "reject", "request_info", "toggle_verify"})

    def get_service(self) -> ProviderApprovalService:
        return self.service_class(self.request.user, self.request)

    def get_context_data(self, **kwargs):
        context = super().get_context_data(**kwargs)
        service = self.get_service()
        filters = service.build_filters(self.request.GET)
        page_obj, pagination = self.paginate(service.pending(filters))
        context.update(
            {
                "providers": page_obj,
                "pagination": pagination,
                "filters": filters,
                "role_counts": service.role_counts(),
                "provider_roles": [(code, label) for code, label in User.ROLE_CHOICES if code in User.PROVIDER_ROLES],
            }
        )
        return context

    def perform_action(self, action, data, *args, **kwargs):
        service = self.get_service()
        provider = service.get_provider(data.get("provider_id"))
        if action == "approve":
            return service.approve(provider)
        if action == "reject":
            return service.reject(provider, data.get("reason", ""))
        if action == "request_info":
            return service.request_info(provider, data.get("notes", ""))
        return service.toggle_verify(provider)


@method_decorator(permission_required("services.approve"), name="dispatch")
class ServiceApprovalView(PanelActionMixin, PaginatedListMixin, TemplateView):
    template_name = "panel/approvals/services.html"
    service_class = ServiceApprovalService
    allowed_actions = frozenset({"approve", "reject", "request_changes", "under_review"})

    def get_service(self) -> ServiceApprovalService:
        return self.service_class(self.request.user, self.request)

    def get_context_data(self, **kwargs):
        context = super().get_context_data(**kwargs)
        service = self.get_service()
        filters = service.build_filters(self.request.GET)
        page_obj, pagination = self.paginate(service.listings(filters))
        context.update(
            {
                "listings": page_obj,
                "pagination": pagination,
                "filters": filters,
                "type_counts": service.type_counts(),
                "status_counts": service.status_counts(),
                "service_types": list(LISTING_MODELS),
                "approval_statuses": LISTING_MODELS["property"].APPROVAL_STATUS_CHOICES,
            }
        )
        return context

    def perform_action(self, action, data, *args, **kwargs):
        service = self.get_service()
        listing = service.get_listing(data.get("service_type"), data.get("listing_id"))
        if action == "approve":
            return service.approve(listing)
        if action == "reject":
            return service.reject(listing, data.get("reason", ""))
        if action == "request_changes":
            return service.request_changes(listing, data.get("reason", ""))
        return service.mark_under_review(listing)


@method_decorator(permission_required("services.approve"), name="dispatch")
class FeaturedServicesView(PanelActionMixin, TemplateView):
    template_name = "panel/approvals/featured.html"
    service_class = ServiceApprovalService
    allowed_actions = frozenset({"feature", "unfeature"})

    def get_service(self) -> ServiceApprovalService:
        return self.service_class(self.request.user, self.request)

    def get_action_redirect(self):
        return redirect("panel_featured_services")

    def get_context_data(self, **kwargs):
        context = super().get_context_data(**kwargs)
        service = self.get_service()
        service_type = (self.request.GET.get("type") or "").lower()
        context.update(
            {
                "featured": service.featured(service_type),
                "featured_counts": service.featured_counts(),
                "selected_type": service_type if service_type in LISTING_MODELS else "",
                "service_types": list(LISTING_MODELS),
            }
        )
        return context

    def perform_action(self, action, data, *args, **kwargs):
        service = self.get_service()
        listing = service.get_listing(data.get("service_type"), data.get("listing_id"))
        if action == "feature":
            return service.feature(listing)
        return service.unfeature(listing)
