from django import forms

from ..models import PlatformSettings


class GeneralSettingsForm(forms.ModelForm):
    class Meta:
        model = PlatformSettings
        fields = ["site_name", "support_email", "currency", "commission_rate", "max_listings_per_provider"]

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        for field in self.fields.values():
            existing_class = field.widget.attrs.get("class", "")
            field.widget.attrs["class"] = f"{existing_class} form-control".strip()
        self.fields["commission_rate"].widget.attrs.update({"step": "0.0001", "min": 0, "max": 1})

    def clean_currency(self):
        currency = (self.cleaned_data.get("currency") or "").strip().upper()
        if len(currency) != 3 or not currency.isalpha():
            raise forms.ValidationError("Currency must be a three-letter ISO code.")
        return currency
