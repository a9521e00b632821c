"""Public-facing URL patterns: accounts, provider listings, customer bookings and support."""

from django.urls import path

from ..views import customer, customer_support, provider, public

urlpatterns = [
    path("", public.HomeView.as_view(), name="home"),
    path("login/", public.LoginView.as_view(), name="login"),
    path("logout/", public.LogoutView.as_view(), name="logout"),
    path("register/", public.RegisterView.as_view(), name="register"),
    path("provider/listings/new/", provider.ProviderListingCreateView.as_view(), name="provider_listing_create"),
    path("book/<str:service_type>/<int:listing_id>/", customer.BookingCreateView.as_view(), name="customer_booking_create"),
    path("bookings/", customer.CustomerBookingListView.as_view(), name="customer_bookings"),
    path("bookings/<int:booking_id>/", customer.CustomerBookingDetailView.as_view(), name="customer_booking_detail"),
    path("bookings/<int:booking_id>/cancel/", customer.CustomerBookingCancelView.as_view(), name="customer_booking_cancel"),
    path("bookings/<int:booking_id>/review/", customer.BookingReviewView.as_view(), name="customer_booking_review"),
    path("support/", customer_support.SupportTicketListView.as_view(), name="support_tickets"),
    path("support/new/", customer_support.SupportTicketCreateView.as_view(), name="support_ticket_create"),
    path("support/<int:ticket_id>/", customer_support.SupportTicketDetailView.as_view(), name="support_ticket_detail"),
]
