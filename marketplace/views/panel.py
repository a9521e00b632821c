import csv

from django.contrib import messages
from django.contrib.auth import login, logout
from django.http import HttpResponse
from django.shortcuts import redirect
from django.urls import reverse_lazy
from django.utils import timezone
from django.utils.decorators import method_decorator
from django.utils.http import url_has_allowed_host_and_scheme
from django.views import View
from django.views.generic import FormView, RedirectView, TemplateView

from ..decorators import admin_required, permission_required
from ..forms import AdminLoginForm, GeneralSettingsForm
from ..services.access import RateLimiter
from ..services.analytics import ActivityAnalyticsService, GrowthAnalyticsService, PlatformAnalyticsService
from ..services.audit import AuditLogService, client_ip, log_admin_action
from ..services.dashboard import AdminDashboardService
from ..services.metrics import parse_int
from ..services.platform import PlatformSettingsService
from .mixins import PaginatedListMixin, flash


class AdminLoginView(FormView):
    template_name = "panel/login.html"
    form_class = AdminLoginForm
    success_url = reverse_lazy("panel_dashboard")
    rate_limiter_class = RateLimiter

    def dispatch(self, request, *args, **kwargs):
        if request.user.is_authenticated and getattr(request.user, "is_admin_user", False):
            return redirect("panel_dashboard")
        return super().dispatch(request, *args, **kwargs)

    def get_form_kwargs(self):
        kwargs = super().get_form_kwargs()
        kwargs["request"] = self.request
        return kwargs

    def get_success_url(self):
        redirect_to = self.request.POST.get("next") or self.request.GET.get("next")
        if redirect_to and url_has_allowed_host_and_scheme(redirect_to, allowed_hosts={self.request.get_host()}):
            return redirect_to
        return super().get_success_url()

    def post(self, request, *args, **kwargs):
        if not self.rate_limiter_class().check(client_ip(request)):
            log_admin_action(
                request,
                None,
                "ADMIN_LOGIN_RATE_LIMITED",
                {"username": request.POST.get("username", "")},
                resource_type="AUTH",
            )
            messages.error(request, "Too many login attempts. Please try again later.")
            return self.render_to_response(self.get_context_data(form=self.get_form()), status=429)
        return super().post(request, *args, **kwargs)

    def form_valid(self, form):
        user = form.get_user()
        login(self.request, user)
        log_admin_action(self.request, user, "ADMIN_LOGIN", {"username": user.username}, resource_type="AUTH")
        return super().form_valid(form)

    def form_invalid(self, form):
        log_admin_action(
            self.request,
            None,
            "ADMIN_LOGIN_FAILED",
            {"username": self.request.POST.get("username", "")},
            resource_type="AUTH",
        )
        messages.error(self.request, "Invalid credentials or insufficient permissions.")
        return self.render_to_response(self.get_context_data(form=form))


class AdminLogoutView(RedirectView):
    pattern_name = "panel_login"

    def get(self, request, *args, **kwargs):
        if request.user.is_authenticated:
            log_admin_action(request, request.user, "ADMIN_LOGOUT", resource_type="AUTH")
        logout(request)
        return super().get(request, *args, **kwargs)

    def post(self, request, *args, **kwargs):
        return self.get(request, *args, **kwargs)


@method_decorator(admin_required, name="dispatch")
class DashboardView(TemplateView):
    template_name = "panel/dashboard.html"
    service_class = AdminDashboardService

    def get_context_data(self, **kwargs):
        context = super().get_context_data(**kwargs)
        context["stats"] = self.service_class().stats()
        log_admin_action(
            self.request,
            self.request.user,
            "DASHBOARD_ACCESS",
            {"path": self.request.path},
            resource_type="DASHBOARD",
        )
        return context


@method_decorator(permission_required("reports.view"), name="dispatch")
class PlatformAnalyticsView(TemplateView):
    template_name = "panel/analytics/platform.html"

    def get_context_data(self, **kwargs):
        context = super().get_context_data(**kwargs)
        days = parse_int(self.request.GET.get("period"), default=30, maximum=365)
        context["analytics"] = PlatformAnalyticsService(days=days).build()
        context["period_options"] = (7, 30, 90, 365)
        context["selected_period"] = days
        return context


@method_decorator(permission_required("reports.view"), name="dispatch")
class GrowthAnalyticsView(TemplateView):
    template_name = "panel/analytics/growth.html"

    def get_context_data(self, **kwargs):
        context = super().get_context_data(**kwargs)
        months = parse_int(self.request.GET.get("months"), default=12, maximum=24)
        context["growth"] = GrowthAnalyticsService(months=months).build()
        context["selected_months"] = months
        return context


@method_decorator(permission_required("reports.view"), name="dispatch")
class ActivityAnalyticsView(TemplateView):
    template_name = "panel/analytics/activity.html"

    def get_context_data(self, **kwargs):
        context = super().get_context_data(**kwargs)
        days = parse_int(self.request.GET.get("period"), default=30, maximum=365)
        context["activity"] = ActivityAnalyticsService(days=days).build()
        context["selected_period"] = days
        return context


@method_decorator(permission_required("audit.view"), name="dispatch")
class AuditLogListView(PaginatedListMixin, TemplateView):
    template_name = "panel/audit/list.html"
    service_class = AuditLogService

    def get_context_data(self, **kwargs):
        context = super().get_context_data(**kwargs)
        service = self.service_class()
        filters = service.build_filters(self.request.GET)
        page_obj, pagination = self.paginate(service.filtered(filters))
        context.update(
            {
                "logs": page_obj,
                "pagination": pagination,
                "filters": filters,
                "action_counts": service.action_counts(),
                "user_counts": service.user_counts(),
            }
        )
        return context


@method_decorator(permission_required("audit.view"), name="dispatch")
class AuditLogExportView(View):
    http_method_names = ["get"]
    columns = ("timestamp", "user", "action", "resource_type", "resource_id", "severity", "ip_address", "details")

    def get(self, request, *args, **kwargs):
        service = AuditLogService()
        filters = service.build_filters(request.GET)
        logs = service.filtered(filters)
        stamp = timezone.now().strftime("%Y%m%d-%H%M%S")
        response = HttpResponse(content_type="text/csv")
        response["Content-Disposition"] = f'attachment; filename="audit-logs-{stamp}.csv"'
        writer = csv.writer(response)
        writer.writerow(self.columns)
        count = 0
        for log in logs.iterator():
            writer.writerow(
                [
                    log.created_at.isoformat(),
                    log.user.username if log.user else "system",
                    log.action,
                    log.resource_type,
                    log.resource_id,
                    log.severity,
                    log.ip_address,
                    log.details,
                ]
            )
            count += 1
        log_admin_action(request, request.user, "EXPORT_AUDIT_LOGS", {"rows": count}, resource_type="AUDIT_LOG")
        return response


@method_decorator(permission_required("settings.manage"), name="dispatch")
class PlatformSettingsView(TemplateView):
    template_name = "panel/settings.html"
    service_class = PlatformSettingsService

    def get_service(self) -> PlatformSettingsService:
        return self.service_class(self.request.user, self.request)

    def get_context_data(self, **kwargs):
        context = super().get_context_data(**kwargs)
        platform_settings = self.service_class.load()
        context.update(
            {
                "platform_settings": platform_settings,
                "form": kwargs.get("form") or GeneralSettingsForm(instance=platform_settings),
            }
        )
        return context

    def post(self, request, *args, **kwargs):
        action = request.POST.get("action")
        if action not in {"save_general", "toggle_maintenance"}:
            messages.error(request, "Invalid action requested.")
            return redirect("panel_settings")

        service = self.get_service()
        if action == "toggle_maintenance":
            flash(request, service.toggle_maintenance(request.POST.get("maintenance_message", "")))
            return redirect("panel_settings")

        form = GeneralSettingsForm(request.POST, instance=service.load())
        if not form.is_valid():
            messages.error(request, "Please review the errors below.")
            return self.render_to_response(self.get_context_data(form=form))
        flash(request, service.save_general(form))
        return redirect("panel_settings")
