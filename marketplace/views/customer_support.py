from django.contrib import messages
from django.contrib.auth.decorators import login_required
from django.shortcuts import get_object_or_404, redirect
from django.utils.decorators import method_decorator
from django.views.generic import FormView, TemplateView

from ..exceptions import ActionError
from ..forms import SupportTicketForm, TicketReplyForm
from ..models import SupportTicket
from ..services.support import CustomerSupportService


@method_decorator(login_required, name="dispatch")
class SupportTicketListView(TemplateView):
    template_name = "support/list.html"

    def get_context_data(self, **kwargs):
        context = super().get_context_data(**kwargs)
        context["tickets"] = CustomerSupportService(self.request.user).tickets()
        return context


@method_decorator(login_required, name="dispatch")
class SupportTicketCreateView(FormView):
    template_name = "support/new.html"
    form_class = SupportTicketForm

    def form_valid(self, form):
        ticket = CustomerSupportService(self.request.user).open_ticket(form)
        messages.success(self.request, f"Ticket #{ticket.pk} opened. Our team will get back to you soon.")
        return redirect("support_ticket_detail", ticket_id=ticket.pk)

    def form_invalid(self, form):
        messages.error(self.request, "Please review the errors below.")
        return super().form_invalid(form)


@method_decorator(login_required, name="dispatch")
class SupportTicketDetailView(TemplateView):
    template_name = "support/detail.html"

    def dispatch(self, request, *args, **kwargs):
        if request.user.is_authenticated:
            self.ticket = get_object_or_404(SupportTicket, pk=kwargs["ticket_id"], user=request.user)
            self.service = CustomerSupportService(request.user)
        return super().dispatch(request, *args, **kwargs)

    def get_context_data(self, **kwargs):
        context = super().get_context_data(**kwargs)
        context.update(
            {
                "ticket": self.ticket,
                "ticket_messages": self.service.visible_messages(self.ticket),
                "form": kwargs.get("form") or TicketReplyForm(),
            }
        )
        return context

    def post(self, request, *args, **kwargs):
        form = TicketReplyForm(request.POST, request.FILES)
        if not form.is_valid():
            for errors in form.errors.values():
                for error in errors:
                    messages.error(request, error)
            return redirect("support_ticket_detail", ticket_id=self.ticket.pk)
        try:
            self.service.reply(self.ticket, form.cleaned_data["content"], form.cleaned_data.get("attachment"))
        except ActionError as exc:
            messages.error(request, str(exc))
        else:
            messages.success(request, "Reply sent.")
        return redirect("support_ticket_detail", ticket_id=self.ticket.pk)
