from django.shortcuts import get_object_or_404
from django.utils.decorators import method_decorator
from django.views.generic import TemplateView

from ..decorators import permission_required
from ..exceptions import ActionError
from ..models import User
from ..services.access import has_permission
from ..services.users import STATUS_FILTERS, UserManagementService
from .mixins import PaginatedListMixin, PanelActionMixin, posted_object

USER_ACTIONS = frozenset({"verify", "unverify", "activate", "deactivate", "ban", "unban"})


def _apply_user_action(service: UserManagementService, action: str, target: User, data):
    if not has_permission(service.admin, "users.manage"):
        raise ActionError("You do not have permission to manage users.")
    if action in {"deactivate", "ban"}:
        return getattr(service, action)(target, data.get("reason", ""))
    return getattr(service, action)(target)


@method_decorator(permission_required("users.view"), name="dispatch")
class UserListView(PanelActionMixin, PaginatedListMixin, TemplateView):
    template_name = "panel/users/list.html"
    service_class = UserManagementService
    allowed_actions = USER_ACTIONS

    def get_service(self) -> UserManagementService:
        return self.service_class(self.request.user, self.request)

    def get_context_data(self, **kwargs):
        context = super().get_context_data(**kwargs)
        service = self.get_service()
        filters = service.build_filters(self.request.GET)
        page_obj, pagination = self.paginate(service.filtered(filters))
        context.update(
            {
                "users": page_obj,
                "pagination": pagination,
                "filters": filters,
                "role_counts": service.role_counts(),
                "status_counts": service.status_counts(),
                "roles": [(code, label) for code, label in User.ROLE_CHOICES if code in service.MANAGEABLE_ROLES],
                "status_options": list(STATUS_FILTERS),
            }
        )
        return context

    def perform_action(self, action, data, *args, **kwargs):
        service = self.get_service()
        target = posted_object(User, data.get("user_id"), "user")
        return _apply_user_action(service, action, target, data)


@method_decorator(permission_required("users.view"), name="dispatch")
class UserDetailView(PanelActionMixin, TemplateView):
    template_name = "panel/users/detail.html"
    service_class = UserManagementService
    allowed_actions = USER_ACTIONS

    def dispatch(self, request, *args, **kwargs):
        self.target = get_object_or_404(User.objects.exclude(role="SUPER_ADMIN"), pk=kwargs["user_id"])
        return super().dispatch(request, *args, **kwargs)

    def get_service(self) -> UserManagementService:
        return self.service_class(self.request.user, self.request)

    def get_context_data(self, **kwargs):
        context = super().get_context_data(**kwargs)
        context.update(self.get_service().detail(self.target))
        return context

    def perform_action(self, action, data, *args, **kwargs):
        return _apply_user_action(self.get_service(), action, self.target, data)
