from django.contrib import messages
from django.shortcuts import get_object_or_404, redirect
from django.utils.decorators import method_decorator
from django.views.generic import TemplateView

from ..decorators import permission_required
from ..exceptions import ActionError
from ..forms import CannedResponseForm, TicketReplyForm
from ..models import CannedResponse, SupportMessage, SupportTicket, User
from ..services.base import ActionOutcome
from ..services.support import (
    CannedResponseService,
    EscalationService,
    SlaReportService,
    SupportTicketService,
)
from .mixins import PaginatedListMixin, PanelActionMixin, posted_object


def _agent(data):
    agent_id = (data.get("agent_id") or "").strip()
    if not agent_id.isdigit():
        return None
    return User.objects.filter(pk=int(agent_id)).first()


@method_decorator(permission_required("support.manage"), name="dispatch")
class SupportQueueView(PanelActionMixin, PaginatedListMixin, TemplateView):
    template_name = "panel/support/list.html"
    service_class = SupportTicketService
    allowed_actions = frozenset({"assign", "update_status", "update_priority"})

    def get_service(self) -> SupportTicketService:
        return self.service_class(self.request.user, self.request)

    def get_context_data(self, **kwargs):
        context = super().get_context_data(**kwargs)
        service = self.get_service()
        filters = service.build_filters(self.request.GET)
        page_obj, pagination = self.paginate(service.filtered(filters))
        context.update(
            {
                "tickets": service.decorate(page_obj),
                "page_obj": page_obj,
                "pagination": pagination,
                "filters": filters,
                "stats": service.stats(),
                "agents": service.agents(),
                "status_choices": SupportTicket.STATUS_CHOICES,
                "priority_choices": SupportTicket.PRIORITY_CHOICES,
                "category_choices": SupportTicket.CATEGORY_CHOICES,
            }
        )
        return context

    def perform_action(self, action, data, *args, **kwargs):
        service = self.get_service()
        ticket = posted_object(SupportTicket, data.get("ticket_id"), "ticket")
        if action == "assign":
            return service.assign(ticket, _agent(data))
        if action == "update_status":
            return service.update_status(ticket, data.get("status"))
        return service.update_priority(ticket, data.get("priority"))


@method_decorator(permission_required("support.manage"), name="dispatch")
class TicketDetailView(PanelActionMixin, TemplateView):
    template_name = "panel/support/detail.html"
    service_class = SupportTicketService
    allowed_actions = frozenset(
        {
            "assign",
            "update_status",
            "update_priority",
            "reply",
            "use_canned",
            "resolve",
            "close",
            "request_info",
            "escalate",
            "add_note",
            "update_note",
            "delete_note",
        }
    )

    def dispatch(self, request, *args, **kwargs):
        self.ticket = get_object_or_404(
            SupportTicket.objects.select_related("user", "assigned_to", "escalated_by"), pk=kwargs["ticket_id"]
        )
        return super().dispatch(request, *args, **kwargs)

    def get_service(self) -> SupportTicketService:
        return self.service_class(self.request.user, self.request)

    def get_action_redirect(self):
        return redirect("panel_ticket_detail", ticket_id=self.ticket.pk)

    def get_context_data(self, **kwargs):
        context = super().get_context_data(**kwargs)
        service = self.get_service()
        context.update(
            {
                "ticket": service.decorate([self.ticket])[0],
                "conversation": service.conversation(self.ticket),
                "agents": service.agents(),
                "canned_responses": CannedResponse.objects.filter(is_active=True).order_by("title"),
                "status_choices": SupportTicket.STATUS_CHOICES,
                "priority_choices": SupportTicket.PRIORITY_CHOICES,
            }
        )
        return context

    def _note(self, data) -> SupportMessage:
        return posted_object(SupportMessage, data.get("note_id"), "note", ticket=self.ticket)

    def perform_action(self, action, data, *args, **kwargs):
        service = self.get_service()
        ticket = self.ticket
        if action == "assign":
            return service.assign(ticket, _agent(data))
        if action == "update_status":
            return service.update_status(ticket, data.get("status"))
        if action == "update_priority":
            return service.update_priority(ticket, data.get("priority"))
        if action == "reply":
            form = TicketReplyForm(data, self.request.FILES)
            if not form.is_valid():
                raise ActionError(" ".join(error for errors in form.errors.values() for error in errors))
            service.add_message(ticket, form.cleaned_data["content"], form.cleaned_data.get("attachment"))
            return ActionOutcome("success", "Reply sent.")
        if action == "use_canned":
            response = posted_object(CannedResponse, data.get("canned_response_id"), "canned response", is_active=True)
            service.add_message(ticket, CannedResponseService(self.request.user, self.request).use(response))
            return ActionOutcome("success", f"Sent canned response \"{response.title}\".")
        if action == "resolve":
            return service.mark_resolved(ticket, data.get("summary", ""))
        if action == "close":
            return service.close(ticket, data.get("notes", ""))
        if action == "request_info":
            return service.request_more_info(ticket, data.get("message", ""))
        if action == "escalate":
            return service.escalate(ticket, data.get("reason", ""))
        if action == "add_note":
            service.create_internal_note(ticket, data.get("content", ""))
            return ActionOutcome("success", "Internal note added.")
        if action == "update_note":
            service.update_internal_note(self._note(data), data.get("content", ""))
            return ActionOutcome("success", "Internal note updated.")
        service.delete_internal_note(self._note(data))
        return ActionOutcome("success", "Internal note deleted.")


@method_decorator(permission_required("support.manage"), name="dispatch")
class EscalatedTicketsView(PaginatedListMixin, TemplateView):
    template_name = "panel/support/escalated.html"

    def get_context_data(self, **kwargs):
        context = super().get_context_data(**kwargs)
        service = EscalationService()
        search = (self.request.GET.get("search") or "").strip()
        escalation_type = (self.request.GET.get("escalation_type") or "").strip()
        priority = (self.request.GET.get("priority") or "").strip()
        page_obj, pagination = self.paginate(service.escalated(search, escalation_type, priority))
        context.update(
            {
                "tickets": page_obj,
                "pagination": pagination,
                "stats": service.stats(),
                "top_reasons": service.top_reasons(),
                "urgent_tickets": service.urgent()[:10],
                "search": search,
                "escalation_type": escalation_type,
                "priority": priority,
            }
        )
        return context


@method_decorator(permission_required("support.manage"), name="dispatch")
class SlaReportView(TemplateView):
    template_name = "panel/support/sla.html"

    def get_context_data(self, **kwargs):
        context = super().get_context_data(**kwargs)
        data = self.request.GET
        context["sla"] = SlaReportService(data.get("date_from"), data.get("date_to"), data.get("priority") or "").build()
        context["priority_choices"] = SupportTicket.PRIORITY_CHOICES
        return context


@method_decorator(permission_required("support.manage"), name="dispatch")
class CannedResponseView(TemplateView):
    template_name = "panel/support/canned_responses.html"
    service_class = CannedResponseService
    actions = {"create", "update", "delete", "duplicate"}

    def get_service(self) -> CannedResponseService:
        return self.service_class(self.request.user, self.request)

    def get_context_data(self, **kwargs):
        context = super().get_context_data(**kwargs)
        service = self.get_service()
        search = (self.request.GET.get("search") or "").strip()
        category = (self.request.GET.get("category") or "").strip().upper()
        context.update(
            {
                "responses": service.listing(search, category),
                "category_counts": service.category_counts(),
                "category_choices": SupportTicket.CATEGORY_CHOICES,
                "search": search,
                "selected_category": category,
                "form": kwargs.get("form") or CannedResponseForm(),
            }
        )
        return context

    def post(self, request, *args, **kwargs):
        action = request.POST.get("action")
        if action not in self.actions:
            messages.error(request, "Invalid action requested.")
            return redirect("panel_canned_responses")

        service = self.get_service()
        if action == "create":
            form = CannedResponseForm(request.POST)
            if not form.is_valid():
                messages.error(request, "Please review the errors below.")
                return self.render_to_response(self.get_context_data(form=form))
            response = service.create(form)
            messages.success(request, f"Canned response \"{response.title}\" created.")
            return redirect("panel_canned_responses")

        try:
            response = posted_object(CannedResponse, request.POST.get("response_id"), "canned response")
        except ActionError as exc:
            messages.error(request, str(exc))
            return redirect("panel_canned_responses")
        if action == "update":
            form = CannedResponseForm(request.POST, instance=response)
            if not form.is_valid():
                for errors in form.errors.values():
                    for error in errors:
                        messages.error(request, error)
                return redirect("panel_canned_responses")
            service.update(form)
            messages.success(request, "Canned response updated.")
        elif action == "delete":
            service.delete(response)
            messages.success(request, "Canned response deleted.")
        else:
            copy = service.duplicate(response)
            messages.success(request, f"Created \"{copy.title}\".")
        return redirect("panel_canned_responses")
