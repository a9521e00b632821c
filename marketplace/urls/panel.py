"""Admin panel URL patterns, mounted under /admin/."""

from django.urls import path
from django.views.generic import RedirectView

from ..views import approvals, bookings, panel, reviews, support, users

urlpatterns = [
    path("admin/", RedirectView.as_view(pattern_name="panel_dashboard"), name="panel_index"),
    path("admin/login/", panel.AdminLoginView.as_view(), name="panel_login"),
    path("admin/logout/", panel.AdminLogoutView.as_view(), name="panel_logout"),
    path("admin/dashboard/", panel.DashboardView.as_view(), name="panel_dashboard"),
    path("admin/analytics/platform/", panel.PlatformAnalyticsView.as_view(), name="panel_platform_analytics"),
    path("admin/analytics/growth/", panel.GrowthAnalyticsView.as_view(), name="panel_growth_analytics"),
    path("admin/analytics/activity/", panel.ActivityAnalyticsView.as_view(), name="panel_activity_analytics"),
    path("admin/audit/", panel.AuditLogListView.as_view(), name="panel_audit_logs"),
    path("admin/audit/export/", panel.AuditLogExportView.as_view(), name="panel_audit_export"),
    path("admin/approvals/providers/", approvals.ProviderApprovalView.as_view(), name="panel_provider_approvals"),
    path("admin/approvals/services/", approvals.ServiceApprovalView.as_view(), name="panel_service_approvals"),
    path("admin/services/featured/", approvals.FeaturedServicesView.as_view(), name="panel_featured_services"),
    path("admin/users/", users.UserListView.as_view(), name="panel_users"),
    path("admin/users/<int:user_id>/", users.UserDetailView.as_view(), name="panel_user_detail"),
    path("admin/bookings/", bookings.BookingListView.as_view(), name="panel_bookings"),
    path("admin/bookings/<int:booking_id>/", bookings.BookingDetailView.as_view(), name="panel_booking_detail"),
    path("admin/reviews/", reviews.ReviewModerationView.as_view(), name="panel_reviews"),
    path("admin/support/", support.SupportQueueView.as_view(), name="panel_support"),
    path("admin/support/tickets/<int:ticket_id>/", support.TicketDetailView.as_view(), name="panel_ticket_detail"),
    path("admin/support/escalated/", support.EscalatedTicketsView.as_view(), name="panel_support_escalated"),
    path("admin/support/sla/", support.SlaReportView.as_view(), name="panel_support_sla"),
    path(
        "admin/support/canned-responses/",
        support.CannedResponseView.as_view(),
        name="panel_canned_responses",
    ),
    path("admin/financial/revenue/", bookings.RevenueReportView.as_view(), name="panel_revenue"),
    path("admin/settings/", panel.PlatformSettingsView.as_view(), name="panel_settings"),
]
