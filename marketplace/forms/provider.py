from django import forms

from ..models import PlatformSettings, Property, Tour, Vehicle

LISTING_FIELDS = ["name", "description", "city", "price"]


class ListingFormMixin:
    """Shared widget styling, validation and owner assignment for listing forms."""

    def __init__(self, *args, owner=None, **kwargs):
        self.owner = owner
        super().__init__(*args, **kwargs)
        for name, field in self.fields.items():
            if isinstance(field.widget, forms.Select):
                css_class = "form-select"
            else:
                css_class = "form-control"
            existing_class = field.widget.attrs.get("class", "")
            field.widget.attrs["class"] = f"{existing_class} {css_class}".strip()
        if "description" in self.fields:
            self.fields["description"].widget.attrs.setdefault("rows", 4)
        if "image" in self.fields:
            self.fields["image"].widget.attrs["accept"] = "image/*"

    def clean_price(self):
        price = self.cleaned_data.get("price")
        if price is not None and price <= 0:
            raise forms.ValidationError("Price must be greater than zero.")
        return price

    def clean(self):
        cleaned_data = super().clean()
        if self.owner is not None and not self.instance.pk:
            limit = PlatformSettings.load().max_listings_per_provider
            existing = sum(
                model.objects.filter(owner=self.owner).count() for model in (Property, Vehicle, Tour)
            )
            if existing >= limit:
                raise forms.ValidationError(f"You have reached the limit of {limit} listings.")
        return cleaned_data

    def save(self, commit=True):
        listing = super().save(commit=False)
        if not self.owner:
            raise ValueError(f"{type(self).__name__}.save() requires an owner instance")
        listing.owner = self.owner
        if not listing.pk:
            listing.approval_status = "PENDING"
        if commit:
            listing.save()
        return listing


class PropertyForm(ListingFormMixin, forms.ModelForm):
    class Meta:
        model = Property
        fields = LISTING_FIELDS + ["property_type", "address", "max_guests", "image"]
        widgets = {
            "address": forms.Textarea(attrs={"rows": 2, "placeholder": "Street, area and landmarks"}),
        }


class VehicleForm(ListingFormMixin, forms.ModelForm):
    class Meta:
        model = Vehicle
        fields = LISTING_FIELDS + ["vehicle_type", "make", "model_name", "year", "seats", "image"]

    def clean_year(self):
        year = self.cleaned_data.get("year")
        if year is not None and not 1980 <= year <= 2100:
            raise forms.ValidationError("Enter a valid model year.")
        return year


class TourForm(ListingFormMixin, forms.ModelForm):
    class Meta:
        model = Tour
        fields = LISTING_FIELDS + ["duration_days", "max_group_size", "meeting_point", "image"]

    def clean_duration_days(self):
        duration = self.cleaned_data.get("duration_days")
        if duration is not None and duration < 1:
            raise forms.ValidationError("Tours must last at least one day.")
        return duration


LISTING_FORMS_BY_ROLE = {
    "PROPERTY_OWNER": PropertyForm,
    "VEHICLE_OWNER": VehicleForm,
    "TOUR_GUIDE": TourForm,
}
