"""Aggregate URL patterns for the marketplace application."""

from . import api, panel, public

urlpatterns = [
    *public.urlpatterns,
    *panel.urlpatterns,
    *api.urlpatterns,
]
