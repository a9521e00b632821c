"""JSON API endpoints."""

from django.urls import path

from ..api import views

urlpatterns = [
    path("api/auth/me/", views.CurrentUserView.as_view(), name="auth_me"),
    path("api/admin/dashboard/", views.AdminDashboardAPIView.as_view(), name="api_admin_dashboard"),
    path(
        "api/admin/analytics/platform/",
        views.PlatformAnalyticsAPIView.as_view(),
        name="api_platform_analytics",
    ),
    path("api/admin/support/tickets/", views.SupportTicketListAPIView.as_view(), name="api_support_tickets"),
]
