from django import forms
from django.contrib.auth.forms import AuthenticationForm

from ..models import User

SELF_SERVICE_ROLES = [
    (code, label) for code, label in User.ROLE_CHOICES if code not in User.ADMIN_ROLES
]


class RegisterForm(forms.ModelForm):
    password1 = forms.CharField(label="Password", widget=forms.PasswordInput)
    password2 = forms.CharField(label="Confirm Password", widget=forms.PasswordInput)
    role = forms.ChoiceField(label="I want to", choices=SELF_SERVICE_ROLES, initial="CUSTOMER")

    class Meta:
        model = User
        fields = [
            "username",
            "email",
            "first_name",
            "last_name",
            "phone",
            "business_name",
            "role",
        ]

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.fields["email"].required = True
        for name, field in self.fields.items():
            css_class = "form-select" if isinstance(field.widget, forms.Select) else "form-control"
            existing_class = field.widget.attrs.get("class", "")
            field.widget.attrs["class"] = f"{existing_class} {css_class}".strip()

    def clean(self):
        cleaned_data = super().clean()
        password1 = cleaned_data.get("password1")
        password2 = cleaned_data.get("password2")
        if password1 and password2 and password1 != password2:
            self.add_error("password2", "Passwords do not match.")
        role = cleaned_data.get("role")
        if role in User.PROVIDER_ROLES and not (cleaned_data.get("business_name") or "").strip():
            self.add_error("business_name", "Service providers must enter a business name.")
        return cleaned_data

    def clean_email(self):
        email = (self.cleaned_data.get("email") or "").strip().lower()
        if email and User.objects.filter(email__iexact=email).exists():
            raise forms.ValidationError("An account with this email already exists.")
        return email

    def clean_phone(self):
        phone = (self.cleaned_data.get("phone") or "").strip()
        if phone:
            digits_only = "".join(ch for ch in phone if ch.isdigit())
            if not 10 <= len(digits_only) <= 13:
                raise forms.ValidationError("Phone number must contain between 10 and 13 digits.")
            phone = digits_only
        return phone

    def save(self, commit=True):
        user = super().save(commit=False)
        user.set_password(self.cleaned_data["password1"])
        user.role = self.cleaned_data["role"]
        if commit:
            user.save()
        return user


class AdminLoginForm(AuthenticationForm):
    """Authentication form that only admits admin and super admin accounts."""

    error_messages = {
        **AuthenticationForm.error_messages,
        "not_admin": "This account does not have admin access.",
    }

    def confirm_login_allowed(self, user):
        super().confirm_login_allowed(user)
        if not user.is_admin_user or user.banned:
            raise forms.ValidationError(self.error_messages["not_admin"], code="not_admin")
