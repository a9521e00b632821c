from django.contrib import messages
from django.urls import reverse_lazy
from django.utils.decorators import method_decorator
from django.views.generic import FormView

from ..decorators import provider_required
from ..forms import LISTING_FORMS_BY_ROLE


@method_decorator(provider_required, name="dispatch")
class ProviderListingCreateView(FormView):
    template_name = "provider/listing_form.html"
    success_url = reverse_lazy("home")

    def get_form_class(self):
        return LISTING_FORMS_BY_ROLE[self.request.user.role]

    def get_form_kwargs(self):
        kwargs = super().get_form_kwargs()
        kwargs["owner"] = self.request.user
        return kwargs

    def form_valid(self, form):
        listing = form.save()
        messages.success(self.request, f"{listing.name} submitted for review.")
        return super().form_valid(form)

    def form_invalid(self, form):
        messages.error(self.request, "Please review the errors below.")
        return super().form_invalid(form)

    def get_context_data(self, **kwargs):
        context = super().get_context_data(**kwargs)
        context["service_label"] = self.request.user.get_role_display()
        return context
