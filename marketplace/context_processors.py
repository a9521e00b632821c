from .services.access import admin_navigation as build_admin_navigation


def admin_navigation(request):
    user = getattr(request, "user", None)
    if user is None or not getattr(user, "is_admin_user", False):
        return {}
    if not request.path.startswith("/admin/"):
        return {}
    return {"admin_navigation": build_admin_navigation(user)}
