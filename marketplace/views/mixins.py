from django.conf import settings
from django.contrib import messages
from django.shortcuts import get_object_or_404, redirect

from ..exceptions import ActionError
from ..services.metrics import paginate


def admin_page_size() -> int:
    return getattr(settings, "FINDOTRIP", {}).get("ADMIN_PAGE_SIZE", 20)


def posted_object(model, raw_id, label: str, **lookup):
    """Fetch the object a POSTed id refers to; malformed ids become an ActionError."""
    raw_id = str(raw_id or "").strip()
    if not raw_id.isdigit():
        raise ActionError(f"Unknown {label}.")
    return get_object_or_404(model, pk=int(raw_id), **lookup)


def flash(request, outcome) -> None:
    if outcome is not None:
        getattr(messages, outcome.level)(request, outcome.message)


class PanelActionMixin:
    """POST handler that dispatches the ``action`` field to ``perform_action``."""

    allowed_actions: frozenset = frozenset()

    def get_action_redirect(self):
        return redirect(self.request.get_full_path())

    def perform_action(self, action, data, *args, **kwargs):
        raise NotImplementedError

    def post(self, request, *args, **kwargs):
        action = request.POST.get("action")
        if action not in self.allowed_actions:
            messages.error(request, "Invalid action requested.")
            return self.get_action_redirect()
        try:
            outcome = self.perform_action(action, request.POST, *args, **kwargs)
        except ActionError as exc:
            messages.error(request, str(exc))
        else:
            flash(request, outcome)
        return self.get_action_redirect()


class PaginatedListMixin:
    def paginate(self, queryset):
        return paginate(queryset, self.request.GET.get("page"), per_page=admin_page_size())
