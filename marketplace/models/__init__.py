"""Marketplace data models exposed as a flat module-level API."""

from .audit import AuditLog
from .booking import Booking, Payment
from .configuration import PlatformSettings
from .finance import Commission, Payout
from .listing import LISTING_MODELS, Property, ServiceListing, Tour, Vehicle
from .notification import AnalyticsEvent, Notification
from .review import Review
from .support import CannedResponse, SupportMessage, SupportTicket
from .user import User

__all__ = [
    "User",
    "ServiceListing",
    "Property",
    "Vehicle",
    "Tour",
    "LISTING_MODELS",
    "Booking",
    "Payment",
    "Commission",
    "Payout",
    "Review",
    "SupportTicket",
    "SupportMessage",
    "CannedResponse",
    "AuditLog",
    "Notification",
    "AnalyticsEvent",
    "PlatformSettings",
]
