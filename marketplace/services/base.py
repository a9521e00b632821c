from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from ..models import Notification
from .audit import log_admin_action


@dataclass(frozen=True)
class ActionOutcome:
    level: str
    message: str


class AdminActionService:
    """Shared plumbing for services that act on behalf of a signed-in admin."""

    def __init__(self, admin, request=None):
        self.admin = admin
        self.request = request

    def audit(self, action: str, details: dict[str, Any] | None = None, *, resource_type: str, resource_id="", **kwargs):
        return log_admin_action(
            self.request,
            self.admin,
            action,
            details,
            resource_type=resource_type,
            resource_id=resource_id,
            **kwargs,
        )

    @staticmethod
    def notify(user, type_: str, title: str, message: str) -> Notification:
        return Notification.objects.create(user=user, type=type_, title=title, message=message)
