from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, timedelta
from typing import Any

from django.db import transaction
from django.db.models import Avg, Case, Count, F, IntegerField, Q, Value, When
from django.utils import timezone

from ..exceptions import ActionError
from ..models import CannedResponse, SupportMessage, SupportTicket, User
from .base import ActionOutcome, AdminActionService
from .metrics import parse_date, percentage

logger = logging.getLogger(__name__)

STATUSES = tuple(code for code, _ in SupportTicket.STATUS_CHOICES)
PRIORITIES = tuple(code for code, _ in SupportTicket.PRIORITY_CHOICES)
CATEGORIES = tuple(code for code, _ in SupportTicket.CATEGORY_CHOICES)

RESPONSE_TARGETS = {
    "HIGH": timedelta(hours=2),
    "MEDIUM": timedelta(hours=24),
    "LOW": timedelta(hours=48),
}
RESOLUTION_TARGETS = {
    "HIGH": timedelta(hours=4),
    "MEDIUM": timedelta(hours=48),
    "LOW": timedelta(days=7),
}
APPROACHING_SHARE = 0.75
URGENT_AFTER = timedelta(hours=2)

SORT_ORDERS = {
    "newest": ("-created_at", "-id"),
    "oldest": ("created_at", "id"),
    "priority": ("-priority_rank", "-created_at"),
    "updated": ("-updated_at", "-id"),
}


def priority_rank():
    return Case(
        When(priority="HIGH", then=Value(3)),
        When(priority="MEDIUM", then=Value(2)),
        When(priority="LOW", then=Value(1)),
        default=Value(0),
        output_field=IntegerField(),
    )


@dataclass(frozen=True)
class TicketFilters:
    search: str = ""
    status: str = ""
    priority: str = ""
    category: str = ""
    assignee: str = ""
    user_role: str = ""
    date_from: date | None = None
    date_to: date | None = None
    sort: str = "newest"


class SupportTicketService(AdminActionService):
    """Ticket queue, statistics and the agent actions applied to tickets."""

    STATUS_BADGE_MAP = {
        "NEW": "bg-info-subtle text-info",
        "ASSIGNED": "bg-primary-subtle text-primary",
        "IN_PROGRESS": "bg-warning-subtle text-warning",
        "WAITING": "bg-secondary-subtle text-secondary",
        "RESOLVED": "bg-success-subtle text-success",
        "CLOSED": "bg-dark-subtle text-dark",
    }

    def build_filters(self, data) -> TicketFilters:
        status = (data.get("status") or "").strip().upper()
        priority = (data.get("priority") or "").strip().upper()
        category = (data.get("category") or "").strip().upper()
        assignee = (data.get("assignee") or "").strip()
        user_role = (data.get("user_role") or "").strip().upper()
        sort = (data.get("sort") or "newest").strip()
        return TicketFilters(
            search=(data.get("search") or "").strip(),
            status=status if status in STATUSES else "",
            priority=priority if priority in PRIORITIES else "",
            category=category if category in CATEGORIES else "",
            assignee=assignee if assignee == "unassigned" or assignee.isdigit() else "",
            user_role=user_role if user_role in dict(User.ROLE_CHOICES) else "",
            date_from=parse_date(data.get("date_from")),
            date_to=parse_date(data.get("date_to")),
            sort=sort if sort in SORT_ORDERS else "newest",
        )

    def filtered(self, filters: TicketFilters):
        queryset = (
            SupportTicket.objects.select_related("user", "assigned_to")
            .annotate(message_count=Count("messages", filter=Q(messages__is_internal=False)), priority_rank=priority_rank())
        )
        if filters.search:
            term = filters.search
            search = (
                Q(subject__icontains=term)
                | Q(description__icontains=term)
                | Q(user__username__icontains=term)
                | Q(user__email__icontains=term)
            )
            if term.isdigit():
                search |= Q(pk=int(term))
            queryset = queryset.filter(search)
        if filters.status:
            queryset = queryset.filter(status=filters.status)
        if filters.priority:
            queryset = queryset.filter(priority=filters.priority)
        if filters.category:
            queryset = queryset.filter(category=filters.category)
        if filters.assignee == "unassigned":
            queryset = queryset.filter(assigned_to__isnull=True)
        elif filters.assignee:
            queryset = queryset.filter(assigned_to_id=int(filters.assignee))
        if filters.user_role:
            queryset = queryset.filter(user__role=filters.user_role)
        if filters.date_from:
            queryset = queryset.filter(created_at__date__gte=filters.date_from)
        if filters.date_to:
            queryset = queryset.filter(created_at__date__lte=filters.date_to)
        return queryset.order_by(*SORT_ORDERS[filters.sort])

    def decorate(self, tickets) -> list[SupportTicket]:
        decorated = []
        for ticket in tickets:
            ticket.status_badge_class = self.STATUS_BADGE_MAP.get(ticket.status, "bg-light text-muted")
            decorated.append(ticket)
        return decorated

    @staticmethod
    def _grouped(field: str, codes) -> dict[str, int]:
        counts = {code: 0 for code in codes}
        for row in SupportTicket.objects.values(field).annotate(count=Count("id")):
            counts[row[field]] = row["count"]
        return counts

    def stats(self) -> dict[str, Any]:
        satisfaction = SupportTicket.objects.filter(satisfaction_rating__isnull=False).aggregate(
            avg=Avg("satisfaction_rating")
        )["avg"]
        return {
            "total": SupportTicket.objects.count(),
            "open": SupportTicket.objects.filter(status__in=SupportTicket.OPEN_STATUSES).count(),
            "unassigned": SupportTicket.objects.filter(
                assigned_to__isnull=True, status__in=SupportTicket.OPEN_STATUSES
            ).count(),
            "by_status": self._grouped("status", STATUSES),
            "by_priority": self._grouped("priority", PRIORITIES),
            "by_category": self._grouped("category", CATEGORIES),
            "average_satisfaction": round(satisfaction or 0, 2),
        }

    @staticmethod
    def agents():
        return User.objects.filter(role__in=User.ADMIN_ROLES, is_active=True, banned=False).order_by("username")

    def conversation(self, ticket: SupportTicket):
        return ticket.messages.select_related("sender").order_by("created_at", "id")

    def _record(self, ticket: SupportTicket, action: str, **details) -> None:
        self.audit(action, {"subject": ticket.subject, **details}, resource_type="SUPPORT_TICKET", resource_id=ticket.pk)

    def _ensure_open(self, ticket: SupportTicket) -> None:
        if ticket.status == "CLOSED":
            raise ActionError("This ticket is closed.")

    def assign(self, ticket: SupportTicket, agent: User | None) -> ActionOutcome:
        self._ensure_open(ticket)
        if agent is None or not agent.is_admin_user:
            raise ActionError("Tickets can only be assigned to admin users.")
        ticket.assigned_to = agent
        ticket.assigned_at = timezone.now()
        ticket.status = "ASSIGNED"
        ticket.save(update_fields=["assigned_to", "assigned_at", "status", "updated_at"])
        self._record(ticket, "ASSIGN_TICKET", assigned_to=agent.username)
        return ActionOutcome("success", f"Ticket assigned to {agent.display_name}.")

    def update_status(self, ticket: SupportTicket, status: str) -> ActionOutcome:
        status = (status or "").strip().upper()
        if status not in STATUSES:
            raise ActionError("Invalid ticket status.")
        previous = ticket.status
        now = timezone.now()
        ticket.status = status
        fields = ["status", "updated_at"]
        if status == "RESOLVED" and not ticket.resolved_at:
            ticket.resolved_at = now
            fields.append("resolved_at")
        elif status == "CLOSED" and not ticket.closed_at:
            ticket.closed_at = now
            fields.append("closed_at")
        elif status == "WAITING":
            ticket.waiting_for_user_at = now
            fields.append("waiting_for_user_at")
        # Reopened tickets are no longer finished.
        if status != "CLOSED" and ticket.closed_at:
            ticket.closed_at = None
            fields.append("closed_at")
        if status not in SupportTicket.DONE_STATUSES and ticket.resolved_at:
            ticket.resolved_at = None
            fields.append("resolved_at")
        ticket.save(update_fields=fields)
        self._record(ticket, "UPDATE_TICKET_STATUS", previous_status=previous, status=status)
        return ActionOutcome("success", f"Ticket status updated to {ticket.get_status_display()}.")

    def update_priority(self, ticket: SupportTicket, priority: str) -> ActionOutcome:
        priority = (priority or "").strip().upper()
        if priority not in PRIORITIES:
            raise ActionError("Invalid ticket priority.")
        previous = ticket.priority
        ticket.priority = priority
        ticket.save(update_fields=["priority", "updated_at"])
        self._record(ticket, "UPDATE_TICKET_PRIORITY", previous_priority=previous, priority=priority)
        return ActionOutcome("success", f"Ticket priority set to {ticket.get_priority_display()}.")

    def add_message(self, ticket: SupportTicket, content: str, attachment=None) -> SupportMessage:
        self._ensure_open(ticket)
        content = (content or "").strip()
        if not content and not attachment:
            raise ActionError("Message cannot be empty.")
        message = SupportMessage.objects.create(
            ticket=ticket,
            sender=self.admin,
            sender_type="ADMIN",
            content=content,
            attachment=attachment,
        )
        fields = ["updated_at"]
        if ticket.first_response_at is None:
            ticket.first_response_at = message.created_at
            fields.append("first_response_at")
        if ticket.status in {"NEW", "ASSIGNED"}:
            ticket.status = "IN_PROGRESS"
            fields.append("status")
        ticket.save(update_fields=fields)
        self.notify(ticket.user, "SUPPORT_UPDATE", "New reply on your ticket", f"Support replied to \"{ticket.subject}\".")
        self._record(ticket, "ADD_TICKET_MESSAGE", message_id=message.pk, has_attachment=bool(attachment))
        return message

    def mark_resolved(self, ticket: SupportTicket, summary: str) -> ActionOutcome:
        self._ensure_open(ticket)
        summary = (summary or "").strip()
        if not summary:
            raise ActionError("A resolution summary is required.")
        ticket.status = "RESOLVED"
        ticket.resolved_at = timezone.now()
        ticket.resolution_summary = summary
        ticket.save(update_fields=["status", "resolved_at", "resolution_summary", "updated_at"])
        self.notify(ticket.user, "SUPPORT_UPDATE", "Ticket resolved", f"Your ticket \"{ticket.subject}\" was resolved.")
        self._record(ticket, "MARK_TICKET_RESOLVED", summary=summary)
        return ActionOutcome("success", "Ticket marked as resolved.")

    def close(self, ticket: SupportTicket, notes: str = "") -> ActionOutcome:
        if ticket.status == "CLOSED":
            return ActionOutcome("info", "This ticket is already closed.")
        ticket.status = "CLOSED"
        ticket.closed_at = timezone.now()
        ticket.closing_notes = (notes or "").strip()
        ticket.save(update_fields=["status", "closed_at", "closing_notes", "updated_at"])
        self._record(ticket, "CLOSE_TICKET", notes=ticket.closing_notes)
        return ActionOutcome("success", "Ticket closed.")

    @transaction.atomic
    def request_more_info(self, ticket: SupportTicket, message: str) -> ActionOutcome:
        message = (message or "").strip()
        if not message:
            raise ActionError("Tell the customer what information is needed.")
        self.add_message(ticket, message)
        ticket.status = "WAITING"
        ticket.waiting_for_user_at = timezone.now()
        ticket.save(update_fields=["status", "waiting_for_user_at", "updated_at"])
        self._record(ticket, "REQUEST_MORE_INFO")
        return ActionOutcome("info", "Asked the customer for more information.")

    @transaction.atomic
    def escalate(self, ticket: SupportTicket, reason: str) -> ActionOutcome:
        self._ensure_open(ticket)
        reason = (reason or "").strip()
        if not reason:
            raise ActionError("An escalation reason is required.")
        now = timezone.now()
        ticket.priority = "HIGH"
        ticket.escalated_at = now
        ticket.escalated_by = self.admin if getattr(self.admin, "pk", None) else None
        ticket.escalation_reason = reason
        ticket.save(update_fields=["priority", "escalated_at", "escalated_by", "escalation_reason", "updated_at"])
        SupportMessage.objects.create(
            ticket=ticket,
            sender=ticket.escalated_by,
            sender_type="ADMIN",
            content=f"Ticket escalated: {reason}",
            is_internal=True,
            created_at=now,
        )
        self._record(ticket, "ESCALATE_TICKET", reason=reason)
        return ActionOutcome("warning", "Ticket escalated to high priority.")

    def create_internal_note(self, ticket: SupportTicket, content: str) -> SupportMessage:
        content = (content or "").strip()
        if not content:
            raise ActionError("Note cannot be empty.")
        note = SupportMessage.objects.create(
            ticket=ticket, sender=self.admin, sender_type="ADMIN", content=content, is_internal=True
        )
        self._record(ticket, "CREATE_INTERNAL_NOTE", note_id=note.pk)
        return note

    def update_internal_note(self, note: SupportMessage, content: str) -> SupportMessage:
        if not note.is_internal:
            raise ActionError("Only internal notes can be edited.")
        content = (content or "").strip()
        if not content:
            raise ActionError("Note cannot be empty.")
        note.content = content
        note.save(update_fields=["content", "updated_at"])
        self._record(note.ticket, "UPDATE_INTERNAL_NOTE", note_id=note.pk)
        return note

    def delete_internal_note(self, note: SupportMessage) -> None:
        if not note.is_internal:
            raise ActionError("Only internal notes can be deleted.")
        ticket, note_id = note.ticket, note.pk
        note.delete()
        self._record(ticket, "DELETE_INTERNAL_NOTE", note_id=note_id)


class CannedResponseService(AdminActionService):
    """Reusable reply templates for support agents."""

    def listing(self, search: str = "", category: str = ""):
        queryset = CannedResponse.objects.select_related("created_by")
        if search:
            queryset = queryset.filter(Q(title__icontains=search) | Q(content__icontains=search))
        if category in CATEGORIES:
            queryset = queryset.filter(category=category)
        return queryset.order_by("title", "id")

    def category_counts(self) -> dict[str, int]:
        return {row["category"]: row["count"] for row in CannedResponse.objects.values("category").annotate(count=Count("id"))}

    def _record(self, response: CannedResponse, action: str, response_id=None) -> None:
        self.audit(
            action,
            {"title": response.title, "category": response.category},
            resource_type="CANNED_RESPONSE",
            resource_id=response_id or response.pk,
        )

    def create(self, form) -> CannedResponse:
        response = form.save(commit=False)
        response.created_by = self.admin
        response.save()
        self._record(response, "CREATE_CANNED_RESPONSE")
        return response

    def update(self, form) -> CannedResponse:
        response = form.save()
        self._record(response, "UPDATE_CANNED_RESPONSE")
        return response

    def delete(self, response: CannedResponse) -> None:
        response_id = response.pk
        response.delete()
        self._record(response, "DELETE_CANNED_RESPONSE", response_id=response_id)

    def duplicate(self, response: CannedResponse) -> CannedResponse:
        copy = CannedResponse.objects.create(
            title=f"{response.title} (Copy)",
            content=response.content,
            category=response.category,
            created_by=self.admin,
        )
        self._record(copy, "DUPLICATE_CANNED_RESPONSE")
        return copy

    def use(self, response: CannedResponse) -> str:
        CannedResponse.objects.filter(pk=response.pk).update(usage_count=F("usage_count") + 1)
        response.refresh_from_db(fields=["usage_count"])
        return response.content


class EscalationService:
    """Escalated and urgent tickets."""

    def __init__(self, now=None):
        self.now = now or timezone.now()

    @staticmethod
    def escalated_condition() -> Q:
        return Q(priority="HIGH") | Q(escalated_at__isnull=False)

    def escalated(self, search: str = "", escalation_type: str = "", priority: str = ""):
        queryset = (
            SupportTicket.objects.filter(self.escalated_condition())
            .select_related("user", "assigned_to", "escalated_by")
            .annotate(priority_rank=priority_rank(), message_count=Count("messages"))
        )
        if search:
            queryset = queryset.filter(
                Q(subject__icontains=search)
                | Q(description__icontains=search)
                | Q(user__username__icontains=search)
                | Q(user__email__icontains=search)
            )
        if escalation_type == "auto":
            queryset = queryset.filter(escalated_at__isnull=False, escalated_by__isnull=True)
        elif escalation_type == "manual":
            queryset = queryset.filter(escalated_by__isnull=False)
        if priority.upper() in PRIORITIES:
            queryset = queryset.filter(priority=priority.upper())
        return queryset.order_by("-priority_rank", F("escalated_at").desc(nulls_last=True), "-created_at")

    def stats(self) -> dict[str, int]:
        tickets = SupportTicket.objects
        return {
            "high_priority": tickets.filter(priority="HIGH").count(),
            "escalated": tickets.filter(escalated_at__isnull=False).count(),
            "manually_escalated": tickets.filter(escalated_by__isnull=False).count(),
            "open_high_priority": tickets.filter(priority="HIGH", status__in=SupportTicket.OPEN_STATUSES).count(),
            "urgent": self.urgent().count(),
        }

    def top_reasons(self, limit: int = 5) -> list[dict[str, Any]]:
        return list(
            SupportTicket.objects.exclude(escalation_reason="")
            .values("escalation_reason")
            .annotate(count=Count("id"))
            .order_by("-count", "escalation_reason")[:limit]
        )

    def urgent(self):
        return SupportTicket.objects.filter(
            priority="HIGH",
            status__in=SupportTicket.OPEN_STATUSES,
            created_at__lte=self.now - URGENT_AFTER,
        ).order_by("created_at")

    def overdue_for_response(self) -> list[SupportTicket]:
        """Open tickets without a reply whose response target has passed and that are not yet escalated."""
        candidates = SupportTicket.objects.filter(
            status__in=SupportTicket.OPEN_STATUSES,
            first_response_at__isnull=True,
            escalated_at__isnull=True,
        ).select_related("user")
        return [ticket for ticket in candidates if self.now - ticket.created_at > RESPONSE_TARGETS[ticket.priority]]


def _hours(delta: timedelta) -> float:
    return round(delta.total_seconds() / 3600, 2)


class SlaReportService:
    """Compliance against response and resolution targets per priority."""

    def __init__(self, date_from=None, date_to=None, priority: str = "", now=None):
        self.now = now or timezone.now()
        self.date_to = parse_date(date_to) or timezone.localdate(self.now)
        self.date_from = parse_date(date_from) or self.date_to - timedelta(days=30)
        self.priority = priority.upper() if (priority or "").upper() in PRIORITIES else ""

    def tickets(self):
        queryset = SupportTicket.objects.filter(
            created_at__date__gte=self.date_from, created_at__date__lte=self.date_to
        ).select_related("user", "assigned_to")
        if self.priority:
            queryset = queryset.filter(priority=self.priority)
        return queryset

    def _priority_report(self, priority: str, tickets: list[SupportTicket]) -> dict[str, Any]:
        response_target = RESPONSE_TARGETS[priority]
        resolution_target = RESOLUTION_TARGETS[priority]
        responded = [ticket.response_time for ticket in tickets if ticket.response_time is not None]
        finished = [
            ticket.resolution_time
            for ticket in tickets
            if ticket.status in SupportTicket.DONE_STATUSES and ticket.resolution_time is not None
        ]
        response_met = sum(1 for delta in responded if delta <= response_target)
        resolution_met = sum(1 for delta in finished if delta <= resolution_target)
        response_violations = sum(1 for delta in responded if delta > response_target) + sum(
            1
            for ticket in tickets
            if ticket.first_response_at is None
            and ticket.status in SupportTicket.OPEN_STATUSES
            and self.now - ticket.created_at > response_target
        )
        resolution_violations = sum(1 for delta in finished if delta > resolution_target)
        return {
            "priority": priority,
            "total": len(tickets),
            "resolved": len(finished),
            "response_target_hours": _hours(response_target),
            "resolution_target_hours": _hours(resolution_target),
            "response_compliance": percentage(response_met, len(tickets)),
            "resolution_compliance": percentage(resolution_met, len(finished)),
            "avg_response_hours": _hours(sum(responded, timedelta()) / len(responded)) if responded else 0.0,
            "avg_resolution_hours": _hours(sum(finished, timedelta()) / len(finished)) if finished else 0.0,
            "response_violations": response_violations,
            "resolution_violations": resolution_violations,
        }

    def approaching_deadline(self, limit: int = 10) -> list[SupportTicket]:
        tickets = []
        for ticket in self.tickets().filter(status__in=SupportTicket.OPEN_STATUSES, first_response_at__isnull=True):
            elapsed = self.now - ticket.created_at
            target = RESPONSE_TARGETS[ticket.priority]
            if target * APPROACHING_SHARE <= elapsed <= target:
                ticket.sla_remaining_hours = _hours(target - elapsed)
                tickets.append(ticket)
        tickets.sort(key=lambda ticket: ticket.sla_remaining_hours)
        return tickets[:limit]

    def build(self) -> dict[str, Any]:
        tickets = list(self.tickets())
        priorities = [self.priority] if self.priority else list(PRIORITIES)
        reports = [
            self._priority_report(priority, [ticket for ticket in tickets if ticket.priority == priority])
            for priority in priorities
        ]
        return {
            "date_from": self.date_from,
            "date_to": self.date_to,
            "priority": self.priority,
            "reports": reports,
            "total_violations": sum(r["response_violations"] + r["resolution_violations"] for r in reports),
            "approaching_deadline": self.approaching_deadline(),
        }


class CustomerSupportService:
    """Ticket actions available to the signed-in customer or provider."""

    def __init__(self, user):
        self.user = user

    def tickets(self):
        return SupportTicket.objects.filter(user=self.user).annotate(message_count=Count("messages", filter=Q(messages__is_internal=False)))

    def visible_messages(self, ticket: SupportTicket):
        return ticket.messages.filter(is_internal=False).select_related("sender").order_by("created_at", "id")

    @transaction.atomic
    def open_ticket(self, form) -> SupportTicket:
        ticket = form.save(commit=False)
        ticket.user = self.user
        ticket.save()
        attachment = form.cleaned_data.get("attachment")
        if attachment:
            SupportMessage.objects.create(
                ticket=ticket,
                sender=self.user,
                sender_type="USER",
                content=ticket.description,
                attachment=attachment,
            )
        logger.info("Support ticket %s opened by user %s", ticket.pk, self.user.pk)
        return ticket

    def reply(self, ticket: SupportTicket, content: str, attachment=None) -> SupportMessage:
        if ticket.user_id != self.user.pk:
            raise PermissionError("Cannot reply to another user's ticket.")
        if ticket.status == "CLOSED":
            raise ActionError("This ticket is closed.")
        content = (content or "").strip()
        if not content and not attachment:
            raise ActionError("Message cannot be empty.")
        message = SupportMessage.objects.create(
            ticket=ticket, sender=self.user, sender_type="USER", content=content, attachment=attachment
        )
        if ticket.status in {"WAITING", "RESOLVED"}:
            ticket.status = "IN_PROGRESS"
            ticket.save(update_fields=["status", "updated_at"])
        else:
            ticket.save(update_fields=["updated_at"])
        return message
