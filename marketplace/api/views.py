from dataclasses import asdict, fields
from typing import Any

from rest_framework import status
from rest_framework.generics import RetrieveAPIView
from rest_framework.permissions import AllowAny, IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from ..services.access import has_permission
from ..services.analytics import PlatformAnalyticsService
from ..services.audit import log_admin_action
from ..services.dashboard import AdminDashboardService
from ..services.metrics import paginate, parse_int
from ..services.support import SupportTicketService
from .serializers import DashboardStatsSerializer, SupportTicketSerializer, UserSerializer

PERIOD_CHOICES = (7, 30, 90, 365)


def api_error(code: str, *, status_code: int = 400, message: str | None = None) -> Response:
    error: dict[str, Any] = {"code": code}
    if message:
        error["message"] = message
    return Response({"ok": False, "error": error, "errorCode": code}, status=status_code)


def require_admin(request, permission: str | None = None) -> Response | None:
    user = getattr(request, "user", None)
    if not user or not user.is_authenticated:
        return api_error("unauthorized", status_code=status.HTTP_401_UNAUTHORIZED, message="Authentication required.")
    if not getattr(user, "is_admin_user", False) or getattr(user, "banned", False):
        return api_error("forbidden", status_code=status.HTTP_403_FORBIDDEN, message="Admin access required.")
    if permission and not has_permission(user, permission):
        return api_error("forbidden", status_code=status.HTTP_403_FORBIDDEN, message="Insufficient permissions.")
    return None


class CurrentUserView(RetrieveAPIView):
    """Return the authenticated user's profile information."""

    serializer_class = UserSerializer
    permission_classes = [IsAuthenticated]

    def get_object(self):
        return self.request.user


class AdminAPIView(APIView):
    """Base for admin JSON endpoints; answers with the ``ok``/``error`` envelope."""

    permission_classes = [AllowAny]
    required_permission: str | None = None

    def initial(self, request, *args, **kwargs):
        super().initial(request, *args, **kwargs)
        self.denied = require_admin(request, self.required_permission)

    def get(self, request, *args, **kwargs):
        if self.denied is not None:
            return self.denied
        return Response({"ok": True, "data": self.get_data(request)})

    def get_data(self, request):
        raise NotImplementedError


class AdminDashboardAPIView(AdminAPIView):
    def get_data(self, request):
        stats = AdminDashboardService().stats()
        return DashboardStatsSerializer({field.name: getattr(stats, field.name) for field in fields(stats)}).data


class PlatformAnalyticsAPIView(AdminAPIView):
    required_permission = "reports.view"

    def get(self, request, *args, **kwargs):
        if self.denied is not None:
            return self.denied
        raw_period = request.query_params.get("period", "30")
        if not raw_period.isdigit() or int(raw_period) not in PERIOD_CHOICES:
            return api_error(
                "invalid_period",
                message=f"period must be one of {', '.join(str(p) for p in PERIOD_CHOICES)}.",
            )
        analytics = PlatformAnalyticsService(days=int(raw_period)).build()
        analytics["kpis"] = {name: asdict(kpi) for name, kpi in analytics["kpis"].items()}
        log_admin_action(
            request,
            request.user,
            "VIEW_PLATFORM_ANALYTICS",
            {"period": int(raw_period)},
            resource_type="ANALYTICS",
        )
        return Response({"ok": True, "data": analytics})


class SupportTicketListAPIView(AdminAPIView):
    required_permission = "support.manage"

    def get_data(self, request):
        service = SupportTicketService(request.user, request)
        filters = service.build_filters(request.query_params)
        limit = parse_int(request.query_params.get("limit"), default=20, maximum=100)
        page_obj, pagination = paginate(service.filtered(filters), request.query_params.get("page"), per_page=limit)
        return {
            "tickets": SupportTicketSerializer(page_obj.object_list, many=True).data,
            "pagination": asdict(pagination),
            "stats": service.stats(),
        }
