from __future__ import annotations

import hashlib
import json
import logging
import re
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Any

from django.core.serializers.json import DjangoJSONEncoder
from django.db.models import Count, Q
from django.db.models.functions import TruncDate
from django.utils import timezone

from ..models import AuditLog
from .metrics import parse_date

logger = logging.getLogger(__name__)

_SENSITIVE_PATTERNS = (
    (re.compile(r"\b\d{4}[-\s]?\d{4}[-\s]?\d{4}[-\s]?\d{4}\b"), "[CARD]"),
    (re.compile(r"\b\d{3}-\d{2}-\d{4}\b"), "[SSN]"),
    (re.compile(r"\b[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}\b"), "[EMAIL]"),
    (re.compile(r"\b\d{3}-\d{3}-\d{4}\b"), "[PHONE]"),
)

SEVERITY_BY_ACTION = {
    "USER_BANNED": "high",
    "USER_DEACTIVATED": "medium",
    "PROVIDER_REJECTED": "medium",
    "SERVICE_REJECTED": "medium",
    "ISSUE_REFUND": "high",
    "REMOVE_REVIEW": "medium",
    "ESCALATE_TICKET": "medium",
    "TOGGLE_MAINTENANCE_MODE": "critical",
    "UPDATE_GENERAL_SETTINGS": "high",
    "ADMIN_LOGIN_FAILED": "medium",
    "ADMIN_LOGIN_RATE_LIMITED": "high",
}


def sanitize_for_logging(data: Any) -> Any:
    """Mask card numbers, SSNs, e-mail addresses and phone numbers anywhere in ``data``."""
    if isinstance(data, str):
        for pattern, replacement in _SENSITIVE_PATTERNS:
            data = pattern.sub(replacement, data)
        return data
    if isinstance(data, dict):
        return {key: sanitize_for_logging(value) for key, value in data.items()}
    if isinstance(data, (list, tuple)):
        return [sanitize_for_logging(value) for value in data]
    return data


def _jsonable(data: Any) -> Any:
    return json.loads(json.dumps(data, cls=DjangoJSONEncoder))


def compute_audit_hash(
    *,
    user_id,
    action: str,
    resource_type: str,
    resource_id: str,
    details: Any,
    timestamp: datetime,
) -> str:
    body = json.dumps(
        {
            "userId": user_id,
            "action": action,
            "resourceType": resource_type,
            "resourceId": resource_id,
            "details": details,
            "timestamp": timestamp.isoformat(),
        },
        sort_keys=True,
        cls=DjangoJSONEncoder,
    )
    return hashlib.sha256(body.encode("utf-8")).hexdigest()


def client_ip(request) -> str:
    forwarded = (request.META.get("HTTP_X_FORWARDED_FOR") or "").strip()
    if forwarded:
        return forwarded.split(",")[0].strip()
    real_ip = (request.META.get("HTTP_X_REAL_IP") or "").strip()
    if real_ip:
        return real_ip
    return (request.META.get("REMOTE_ADDR") or "").strip() or "unknown"


def log_admin_action(
    request,
    actor,
    action: str,
    details: dict[str, Any] | None = None,
    *,
    resource_type: str = "ADMIN_ACTION",
    resource_id: str | int = "",
    severity: str | None = None,
    metadata: dict[str, Any] | None = None,
) -> AuditLog | None:
    """Persist one audit row for an admin action. Failures are logged and swallowed."""
    payload: dict[str, Any] = dict(details or {})
    if metadata:
        payload["metadata"] = metadata
    try:
        sanitized = _jsonable(sanitize_for_logging(payload))
        user_id = getattr(actor, "pk", None)
        resource_id = str(resource_id or "")
        created_at = timezone.now()
        entry = AuditLog.objects.create(
            user=actor if user_id else None,
            actor_id=user_id,
            action=action,
            resource_type=resource_type,
            resource_id=resource_id,
            details=sanitized,
            ip_address=client_ip(request) if request is not None else "system",
            user_agent=str(request.META.get("HTTP_USER_AGENT") or "")[:255] if request is not None else "",
            severity=severity or SEVERITY_BY_ACTION.get(action, "low"),
            hash=compute_audit_hash(
                user_id=user_id,
                action=action,
                resource_type=resource_type,
                resource_id=resource_id,
                details=sanitized,
                timestamp=created_at,
            ),
            created_at=created_at,
        )
    except Exception:
        logger.exception("Failed to write audit log entry for action %s", action)
        return None
    logger.info("Admin action %s by user %s on %s %s", action, getattr(actor, "pk", None), resource_type, resource_id)
    return entry


@dataclass(frozen=True)
class AuditFilters:
    search: str = ""
    action: str = ""
    user_id: int | None = None
    date_from: date | None = None
    date_to: date | None = None


class AuditLogService:
    """Query, summarise, export and verify the audit trail."""

    def __init__(self, base_queryset=None):
        self.base_queryset = base_queryset if base_queryset is not None else AuditLog.objects.all()

    def build_filters(self, data) -> AuditFilters:
        user_raw = (data.get("user") or "").strip()
        return AuditFilters(
            search=(data.get("search") or "").strip(),
            action=(data.get("action") or "").strip(),
            user_id=int(user_raw) if user_raw.isdigit() else None,
            date_from=parse_date(data.get("date_from")),
            date_to=parse_date(data.get("date_to")),
        )

    def filtered(self, filters: AuditFilters):
        queryset = self.base_queryset.select_related("user")
        if filters.search:
            queryset = queryset.filter(
                Q(action__icontains=filters.search)
                | Q(ip_address__icontains=filters.search)
                | Q(user_agent__icontains=filters.search)
                | Q(user__username__icontains=filters.search)
                | Q(user__email__icontains=filters.search)
            )
        if filters.action:
            queryset = queryset.filter(action=filters.action)
        if filters.user_id:
            queryset = queryset.filter(user_id=filters.user_id)
        if filters.date_from:
            queryset = queryset.filter(created_at__date__gte=filters.date_from)
        if filters.date_to:
            queryset = queryset.filter(created_at__date__lte=filters.date_to)
        return queryset.order_by("-created_at", "-id")

    def action_counts(self) -> list[dict[str, Any]]:
        return list(self.base_queryset.values("action").annotate(count=Count("id")).order_by("-count", "action"))

    def user_counts(self, limit: int = 10) -> list[dict[str, Any]]:
        return list(
            self.base_queryset.filter(user__isnull=False)
            .values("user_id", "user__username")
            .annotate(count=Count("id"))
            .order_by("-count", "user__username")[:limit]
        )

    def recent(self, limit: int = 10):
        return list(self.base_queryset.select_related("user").order_by("-created_at", "-id")[:limit])

    def daily_counts(self, days: int = 30) -> list[dict[str, Any]]:
        since = timezone.now() - timedelta(days=days)
        return list(
            self.base_queryset.filter(created_at__gte=since)
            .annotate(day=TruncDate("created_at"))
            .values("day")
            .annotate(count=Count("id"))
            .order_by("day")
        )

    def statistics(self, start: datetime | None = None, end: datetime | None = None) -> dict[str, Any]:
        queryset = self.base_queryset
        if start:
            queryset = queryset.filter(created_at__gte=start)
        if end:
            queryset = queryset.filter(created_at__lte=end)
        by_action = {row["action"]: row["count"] for row in queryset.values("action").annotate(count=Count("id"))}
        by_severity = {
            row["severity"]: row["count"] for row in queryset.values("severity").annotate(count=Count("id"))
        }
        by_user = {
            row["user_id"]: row["count"]
            for row in queryset.filter(user__isnull=False).values("user_id").annotate(count=Count("id"))
        }
        return {
            "total": queryset.count(),
            "by_action": by_action,
            "by_severity": by_severity,
            "by_user": by_user,
        }

    def export_for_user(self, user, start: datetime | None = None, end: datetime | None = None) -> list[dict[str, Any]]:
        queryset = self.base_queryset.filter(user=user)
        if start:
            queryset = queryset.filter(created_at__gte=start)
        if end:
            queryset = queryset.filter(created_at__lte=end)
        return [
            {
                "id": log.pk,
                "timestamp": log.created_at.isoformat(),
                "action": log.action,
                "resource_type": log.resource_type,
                "resource_id": log.resource_id,
                "details": log.details,
                "severity": log.severity,
            }
            for log in queryset.order_by("-created_at", "-id")
        ]

    def cleanup(self, retention_days: int = 365) -> int:
        cutoff = timezone.now() - timedelta(days=retention_days)
        deleted, _ = self.base_queryset.filter(created_at__lt=cutoff).delete()
        logger.info("Purged %s audit log rows older than %s days", deleted, retention_days)
        return deleted

    def verify_integrity(self, limit: int = 1000) -> dict[str, Any]:
        invalid = []
        logs = list(self.base_queryset.order_by("-created_at", "-id")[:limit])
        for log in logs:
            expected = compute_audit_hash(
                user_id=log.actor_id,
                action=log.action,
                resource_type=log.resource_type,
                resource_id=log.resource_id,
                details=log.details,
                timestamp=log.created_at,
            )
            if expected != log.hash:
                invalid.append({"id": log.pk, "expected_hash": expected, "actual_hash": log.hash})
        if invalid:
            logger.warning("Audit integrity check found %s tampered rows", len(invalid))
        return {"total_checked": len(logs), "invalid_logs": len(invalid), "invalid_log_details": invalid}
