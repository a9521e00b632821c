from __future__ import annotations

import logging

from django.conf import settings
from django.core.cache import cache
from django.urls import reverse

logger = logging.getLogger(__name__)

ALL_PERMISSIONS = (
    "users.manage",
    "users.view",
    "users.delete",
    "providers.approve",
    "providers.reject",
    "providers.suspend",
    "services.approve",
    "services.reject",
    "services.moderate",
    "bookings.manage",
    "bookings.view",
    "bookings.cancel",
    "support.manage",
    "support.assign",
    "reports.view",
    "reports.export",
    "settings.manage",
    "audit.view",
    "content.moderate",
    "financial.manage",
)

ROLE_PERMISSIONS = {
    "SUPER_ADMIN": frozenset(ALL_PERMISSIONS),
    "ADMIN": frozenset(
        {
            "users.view",
            "providers.approve",
            "services.approve",
            "bookings.view",
            "support.manage",
            "reports.view",
            "content.moderate",
        }
    ),
}

# (label, url name, permission, children)
NAVIGATION = (
    ("Dashboard", "panel_dashboard", None, ()),
    ("Users", "panel_users", "users.view", ()),
    (
        "Approvals",
        "panel_provider_approvals",
        "providers.approve",
        (
            ("Provider Applications", "panel_provider_approvals"),
            ("Service Listings", "panel_service_approvals"),
            ("Featured Services", "panel_featured_services"),
        ),
    ),
    ("Bookings", "panel_bookings", "bookings.view", ()),
    ("Reviews", "panel_reviews", "content.moderate", ()),
    (
        "Support",
        "panel_support",
        "support.manage",
        (
            ("All Tickets", "panel_support"),
            ("Escalated", "panel_support_escalated"),
            ("SLA Tracking", "panel_support_sla"),
            ("Canned Responses", "panel_canned_responses"),
        ),
    ),
    (
        "Analytics",
        "panel_platform_analytics",
        "reports.view",
        (
            ("Platform Analytics", "panel_platform_analytics"),
            ("Growth Metrics", "panel_growth_analytics"),
            ("Activity", "panel_activity_analytics"),
        ),
    ),
    ("Revenue", "panel_revenue", "financial.manage", ()),
    ("Settings", "panel_settings", "settings.manage", ()),
    ("Audit Logs", "panel_audit_logs", "audit.view", ()),
)


def permissions_for(user) -> frozenset[str]:
    if not getattr(user, "is_authenticated", False):
        return frozenset()
    if getattr(user, "banned", False) or not getattr(user, "is_active", False):
        return frozenset()
    return ROLE_PERMISSIONS.get(getattr(user, "role", ""), frozenset())


def has_permission(user, permission: str) -> bool:
    return permission in permissions_for(user)


def admin_navigation(user) -> list[dict]:
    """Navigation entries the given admin may see, with resolved URLs."""
    menu = []
    for label, url_name, permission, children in NAVIGATION:
        if permission and not has_permission(user, permission):
            continue
        menu.append(
            {
                "name": label,
                "href": reverse(url_name),
                "children": [{"name": name, "href": reverse(child_url)} for name, child_url in children],
            }
        )
    return menu


class RateLimiter:
    """Fixed-window attempt counter stored in the Django cache."""

    def __init__(self, scope: str = "admin-login", *, max_attempts: int | None = None, window_seconds: int | None = None):
        config = getattr(settings, "FINDOTRIP", {})
        self.scope = scope
        self.max_attempts = max_attempts or config.get("ADMIN_LOGIN_MAX_ATTEMPTS", 10)
        self.window_seconds = window_seconds or config.get("ADMIN_LOGIN_WINDOW_SECONDS", 60)

    def _key(self, identifier: str) -> str:
        return f"ratelimit:{self.scope}:{identifier}"

    def check(self, identifier: str, max_attempts: int | None = None, window_seconds: int | None = None) -> bool:
        """Record one attempt and return ``False`` once the window's budget is spent."""
        max_attempts = max_attempts or self.max_attempts
        window_seconds = window_seconds or self.window_seconds
        key = self._key(identifier)
        if cache.add(key, 1, timeout=window_seconds):
            return True
        try:
            attempts = cache.incr(key)
        except ValueError:
            # Expired between add() and incr().
            cache.set(key, 1, timeout=window_seconds)
            return True
        if attempts > max_attempts:
            logger.warning("Rate limit exceeded for %s (%s attempts)", identifier, attempts)
            return False
        return True

    def reset(self, identifier: str) -> None:
        cache.delete(self._key(identifier))
