from django.utils.decorators import method_decorator
from django.views.generic import TemplateView

from ..decorators import permission_required
from ..models import Review
from ..services.review import SORT_ORDERS, STATUS_FILTERS, ReviewModerationService
from .mixins import PaginatedListMixin, PanelActionMixin, posted_object


@method_decorator(permission_required("content.moderate"), name="dispatch")
class ReviewModerationView(PanelActionMixin, PaginatedListMixin, TemplateView):
    template_name = "panel/reviews.html"
    service_class = ReviewModerationService
    allowed_actions = frozenset({"hide", "unhide", "remove", "edit", "feature", "unfeature", "dismiss_flag"})

    def get_service(self) -> ReviewModerationService:
        return self.service_class(self.request.user, self.request)

    def get_context_data(self, **kwargs):
        context = super().get_context_data(**kwargs)
        service = self.get_service()
        filters = service.build_filters(self.request.GET)
        page_obj, pagination = self.paginate(service.filtered(filters))
        context.update(
            {
                "reviews": page_obj,
                "pagination": pagination,
                "filters": filters,
                "stats": service.stats(),
                "rating_distribution": service.rating_distribution(),
                "service_type_counts": service.service_type_counts(),
                "status_options": list(STATUS_FILTERS),
                "sort_options": list(SORT_ORDERS),
            }
        )
        return context

    def perform_action(self, action, data, *args, **kwargs):
        service = self.get_service()
        review = posted_object(Review, data.get("review_id"), "review")
        if action in {"hide", "remove"}:
            return getattr(service, action)(review, data.get("reason", ""))
        if action == "edit":
            return service.edit(review, data.get("content", ""))
        return getattr(service, action)(review)
