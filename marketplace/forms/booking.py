from django import forms
from django.utils import timezone

from ..models import Payment, Review
from .support import _style


class BookingRequestForm(forms.Form):
    start_date = forms.DateField(widget=forms.DateInput(attrs={"type": "date"}))
    end_date = forms.DateField(required=False, widget=forms.DateInput(attrs={"type": "date"}))
    guests = forms.IntegerField(min_value=1, initial=1)
    payment_method = forms.ChoiceField(choices=Payment.METHOD_CHOICES)

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        _style(self)

    def clean_start_date(self):
        start_date = self.cleaned_data["start_date"]
        if start_date < timezone.localdate():
            raise forms.ValidationError("Start date cannot be in the past.")
        return start_date

    def clean(self):
        cleaned_data = super().clean()
        start_date = cleaned_data.get("start_date")
        end_date = cleaned_data.get("end_date")
        if start_date and end_date and end_date < start_date:
            self.add_error("end_date", "End date must be on or after the start date.")
        return cleaned_data


class ReviewForm(forms.ModelForm):
    rating = forms.TypedChoiceField(choices=[(value, value) for value in range(5, 0, -1)], coerce=int)

    class Meta:
        model = Review
        fields = ["rating", "content"]
        widgets = {
            "content": forms.Textarea(attrs={"rows": 4}),
        }

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        _style(self)

    def clean_content(self):
        content = (self.cleaned_data.get("content") or "").strip()
        if len(content) < 10:
            raise forms.ValidationError("Please write at least a couple of sentences.")
        return content
