"""Forms for the marketplace app, re-exported for convenient imports."""

from .auth import AdminLoginForm, RegisterForm
from .booking import BookingRequestForm, ReviewForm
from .provider import LISTING_FORMS_BY_ROLE, PropertyForm, TourForm, VehicleForm
from .settings import GeneralSettingsForm
from .support import CannedResponseForm, SupportTicketForm, TicketReplyForm

__all__ = [
    "AdminLoginForm",
    "RegisterForm",
    "BookingRequestForm",
    "ReviewForm",
    "PropertyForm",
    "VehicleForm",
    "TourForm",
    "LISTING_FORMS_BY_ROLE",
    "GeneralSettingsForm",
    "SupportTicketForm",
    "TicketReplyForm",
    "CannedResponseForm",
]
