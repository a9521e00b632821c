import logging
from datetime import timedelta

from django.conf import settings
from django.http import HttpResponse
from django.template.loader import render_to_string
from django.utils import timezone

from .models import User
from .services.platform import maintenance_state

logger = logging.getLogger(__name__)

MAINTENANCE_EXEMPT_PREFIXES = ("/admin/", "/django-admin/", "/login/", "/logout/", "/static/", "/media/")


class UserActivityMiddleware:
    """Refresh ``last_active_at`` for signed-in users at most once per touch interval."""

    def __init__(self, get_response):
        self.get_response = get_response
        seconds = getattr(settings, "FINDOTRIP", {}).get("ACTIVITY_TOUCH_SECONDS", 300)
        self.interval = timedelta(seconds=seconds)

    def __call__(self, request):
        user = getattr(request, "user", None)
        if user is not None and user.is_authenticated:
            now = timezone.now()
            if user.last_active_at is None or now - user.last_active_at >= self.interval:
                User.objects.filter(pk=user.pk).update(last_active_at=now)
                user.last_active_at = now
        return self.get_response(request)


class MaintenanceModeMiddleware:
    """Serve a 503 page to everyone but admins while maintenance mode is on."""

    def __init__(self, get_response):
        self.get_response = get_response

    def __call__(self, request):
        if request.path.startswith(MAINTENANCE_EXEMPT_PREFIXES):
            return self.get_response(request)
        enabled, message = maintenance_state()
        if not enabled:
            return self.get_response(request)
        user = getattr(request, "user", None)
        if user is not None and getattr(user, "is_admin_user", False):
            return self.get_response(request)
        logger.debug("Maintenance mode blocked %s", request.path)
        body = render_to_string("maintenance.html", {"message": message}, request=request)
        response = HttpResponse(body, status=503)
        response["Retry-After"] = "3600"
        return response
