from django import forms

from ..models import CannedResponse, SupportTicket

MAX_ATTACHMENT_BYTES = 10 * 1024 * 1024
ALLOWED_ATTACHMENT_EXTENSIONS = ("pdf", "png", "jpg", "jpeg", "gif", "txt", "doc", "docx")


def validate_attachment(upload):
    if upload is None:
        return upload
    if upload.size > MAX_ATTACHMENT_BYTES:
        raise forms.ValidationError("Attachments must be 10 MB or smaller.")
    extension = upload.name.rsplit(".", 1)[-1].lower() if "." in upload.name else ""
    if extension not in ALLOWED_ATTACHMENT_EXTENSIONS:
        raise forms.ValidationError("Unsupported attachment type.")
    return upload


def _style(form):
    for field in form.fields.values():
        css_class = "form-select" if isinstance(field.widget, forms.Select) else "form-control"
        existing_class = field.widget.attrs.get("class", "")
        field.widget.attrs["class"] = f"{existing_class} {css_class}".strip()


class SupportTicketForm(forms.ModelForm):
    attachment = forms.FileField(required=False)

    class Meta:
        model = SupportTicket
        fields = ["subject", "category", "priority", "description"]
        widgets = {
            "description": forms.Textarea(attrs={"rows": 5}),
        }

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        _style(self)

    def clean_subject(self):
        subject = (self.cleaned_data.get("subject") or "").strip()
        if len(subject) < 5:
            raise forms.ValidationError("Please give your ticket a descriptive subject.")
        return subject

    def clean_attachment(self):
        return validate_attachment(self.cleaned_data.get("attachment"))


class TicketReplyForm(forms.Form):
    content = forms.CharField(widget=forms.Textarea(attrs={"rows": 3}), required=False)
    attachment = forms.FileField(required=False)

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        _style(self)

    def clean_attachment(self):
        return validate_attachment(self.cleaned_data.get("attachment"))

    def clean(self):
        cleaned_data = super().clean()
        if not (cleaned_data.get("content") or "").strip() and not cleaned_data.get("attachment"):
            raise forms.ValidationError("Write a message or attach a file.")
        return cleaned_data


class CannedResponseForm(forms.ModelForm):
    class Meta:
        model = CannedResponse
        fields = ["title", "category", "content", "is_active"]
        widgets = {
            "content": forms.Textarea(attrs={"rows": 4}),
        }

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        _style(self)
        self.fields["is_active"].widget.attrs["class"] = "form-check-input"
