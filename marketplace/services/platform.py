from __future__ import annotations

from django.core.cache import cache

from ..models import PlatformSettings
from .base import ActionOutcome, AdminActionService

MAINTENANCE_CACHE_KEY = PlatformSettings.CACHE_KEY


def maintenance_state() -> tuple[bool, str]:
    state = cache.get(MAINTENANCE_CACHE_KEY)
    if state is None:
        settings_row = PlatformSettings.load()
        state = (settings_row.maintenance_mode, settings_row.maintenance_message)
        cache.set(MAINTENANCE_CACHE_KEY, state, timeout=60)
    return state


class PlatformSettingsService(AdminActionService):
    """Edit the single platform settings row."""

    GENERAL_FIELDS = ("site_name", "support_email", "currency", "commission_rate", "max_listings_per_provider")

    @staticmethod
    def load() -> PlatformSettings:
        return PlatformSettings.load()

    def save_general(self, form) -> ActionOutcome:
        changed = {name: str(form.cleaned_data.get(name)) for name in form.changed_data}
        instance = form.save()
        self.audit("UPDATE_GENERAL_SETTINGS", {"changed": changed}, resource_type="PLATFORM_SETTINGS", resource_id=instance.pk)
        return ActionOutcome("success", "Settings saved.")

    def toggle_maintenance(self, message: str = "") -> ActionOutcome:
        instance = self.load()
        instance.maintenance_mode = not instance.maintenance_mode
        fields = ["maintenance_mode", "updated_at"]
        if message.strip():
            instance.maintenance_message = message.strip()
            fields.append("maintenance_message")
        instance.save(update_fields=fields)
        self.audit(
            "TOGGLE_MAINTENANCE_MODE",
            {"maintenance_mode": instance.maintenance_mode},
            resource_type="PLATFORM_SETTINGS",
            resource_id=instance.pk,
        )
        state = "enabled" if instance.maintenance_mode else "disabled"
        return ActionOutcome("warning" if instance.maintenance_mode else "success", f"Maintenance mode {state}.")
