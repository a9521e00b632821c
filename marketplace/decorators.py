from functools import wraps

from django.conf import settings
from django.contrib import messages
from django.contrib.auth.decorators import login_required
from django.shortcuts import redirect

from .services.access import has_permission

ADMIN_LOGIN_URL = getattr(settings, "ADMIN_LOGIN_URL", "panel_login")


def admin_required(view_func):
    @wraps(view_func)
    @login_required(login_url=ADMIN_LOGIN_URL)
    def _wrapped_view(request, *args, **kwargs):
        user = request.user
        if not getattr(user, 'is_admin_user', False) or getattr(user, 'banned', False):
            messages.error(request, "Admin access is required to view that page.")
            return redirect(ADMIN_LOGIN_URL)
        return view_func(request, *args, **kwargs)

    return _wrapped_view


def permission_required(permission):
    def decorator(view_func):
        @wraps(view_func)
        @admin_required
        def _wrapped_view(request, *args, **kwargs):
            if not has_permission(request.user, permission):
                messages.error(request, "You do not have permission to access that page.")
                return redirect('panel_dashboard')
            return view_func(request, *args, **kwargs)

        return _wrapped_view

    return decorator


def provider_required(view_func):
    @wraps(view_func)
    @login_required(login_url='login')
    def _wrapped_view(request, *args, **kwargs):
        if not getattr(request.user, 'is_provider', False):
            messages.error(request, "Only service provider accounts can access that page.")
            return redirect('home')
        return view_func(request, *args, **kwargs)

    return _wrapped_view


def customer_required(view_func):
    @wraps(view_func)
    @login_required(login_url='login')
    def _wrapped_view(request, *args, **kwargs):
        if getattr(request.user, 'role', None) != "CUSTOMER":
            messages.error(request, "Only customer accounts can book services.")
            return redirect('home')
        return view_func(request, *args, **kwargs)

    return _wrapped_view
