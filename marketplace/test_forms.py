from decimal import Decimal

from django.core.files.uploadedfile import SimpleUploadedFile
from django.test import RequestFactory, TestCase

from .forms import (
    AdminLoginForm,
    GeneralSettingsForm,
    PropertyForm,
    RegisterForm,
    SupportTicketForm,
    TicketReplyForm,
    TourForm,
    VehicleForm,
)
from .models import PlatformSettings, Property
from .testing import PASSWORD, make_admin, make_property, make_provider, make_user


def register_data(**overrides):
    data = {
        'username': 'testuser',
        'email': 'test@example.com',
        'first_name': 'Test',
        'last_name': 'User',
        'phone': '',
        'business_name': '',
        'role': 'CUSTOMER',
        'password1': 'abc12345',
        'password2': 'abc12345',
    }
    data.update(overrides)
    return data


class RegisterFormTest(TestCase):
    def test_password_mismatch(self):
        form = RegisterForm(data=register_data(password1='abc123', password2='xyz789'))
        self.assertFalse(form.is_valid())
        self.assertIn('password2', form.errors)

    def test_admin_roles_cannot_be_self_assigned(self):
        form = RegisterForm(data=register_data(role='SUPER_ADMIN'))
        self.assertFalse(form.is_valid())
        self.assertIn('role', form.errors)

    def test_provider_requires_business_name(self):
        form = RegisterForm(data=register_data(role='TOUR_GUIDE'))
        self.assertFalse(form.is_valid())
        self.assertIn('business_name', form.errors)

    def test_duplicate_email_is_rejected(self):
        make_user('existing', email='Test@Example.com')
        form = RegisterForm(data=register_data())
        self.assertFalse(form.is_valid())
        self.assertIn('email', form.errors)

    def test_phone_is_normalised_to_digits(self):
        form = RegisterForm(data=register_data(phone='+92 300-123-4567'))
        self.assertTrue(form.is_valid(), form.errors)
        self.assertEqual(form.cleaned_data['phone'], '923001234567')

    def test_short_phone_is_rejected(self):
        form = RegisterForm(data=register_data(phone='12345'))
        self.assertFalse(form.is_valid())
        self.assertIn('phone', form.errors)

    def test_save_hashes_password_and_sets_role(self):
        form = RegisterForm(data=register_data(role='VEHICLE_OWNER', business_name='Fast Wheels'))
        self.assertTrue(form.is_valid(), form.errors)
        user = form.save()
        self.assertEqual(user.role, 'VEHICLE_OWNER')
        self.assertTrue(user.check_password('abc12345'))
        self.assertFalse(user.verified)


class AdminLoginFormTest(TestCase):
    def setUp(self):
        self.request = RequestFactory().post('/admin/login/')

    def test_customer_cannot_log_in(self):
        make_user('customer')
        form = AdminLoginForm(self.request, data={'username': 'customer', 'password': PASSWORD})
        self.assertFalse(form.is_valid())
        self.assertEqual(form.non_field_errors().as_data()[0].code, 'not_admin')

    def test_admin_can_log_in(self):
        make_admin('boss', role='ADMIN')
        form = AdminLoginForm(self.request, data={'username': 'boss', 'password': PASSWORD})
        self.assertTrue(form.is_valid(), form.errors)

    def test_banned_admin_is_refused(self):
        make_admin('banned-boss', banned=True)
        form = AdminLoginForm(self.request, data={'username': 'banned-boss', 'password': PASSWORD})
        self.assertFalse(form.is_valid())


class ListingFormTest(TestCase):
    def setUp(self):
        self.owner = make_provider()

    def test_property_form_creates_pending_listing(self):
        form = PropertyForm(
            data={
                'name': 'Lakeside Lodge',
                'city': 'Naran',
                'price': '8000',
                'property_type': 'RESORT',
                'max_guests': 4,
            },
            owner=self.owner,
        )
        self.assertTrue(form.is_valid(), form.errors)
        listing = form.save()
        self.assertEqual(listing.owner, self.owner)
        self.assertEqual(listing.approval_status, 'PENDING')

    def test_price_must_be_positive(self):
        form = TourForm(
            data={'name': 'Free walk', 'city': 'Lahore', 'price': '0', 'duration_days': 1, 'max_group_size': 5},
            owner=self.owner,
        )
        self.assertFalse(form.is_valid())
        self.assertIn('price', form.errors)

    def test_vehicle_year_range(self):
        form = VehicleForm(
            data={
                'name': 'Old Jeep',
                'city': 'Gilgit',
                'price': '4000',
                'vehicle_type': 'SUV',
                'make': 'Willys',
                'model_name': 'MB',
                'year': 1945,
                'seats': 4,
            },
            owner=self.owner,
        )
        self.assertFalse(form.is_valid())
        self.assertIn('year', form.errors)

    def test_tour_needs_at_least_one_day(self):
        form = TourForm(
            data={'name': 'Blink tour', 'city': 'Lahore', 'price': '100', 'duration_days': 0, 'max_group_size': 5},
            owner=self.owner,
        )
        self.assertFalse(form.is_valid())
        self.assertIn('duration_days', form.errors)

    def test_listing_limit_is_enforced(self):
        settings_row = PlatformSettings.load()
        settings_row.max_listings_per_provider = 1
        settings_row.save()
        make_property(self.owner)
        form = PropertyForm(
            data={'name': 'Second', 'city': 'Murree', 'price': '1000', 'property_type': 'HOTEL', 'max_guests': 2},
            owner=self.owner,
        )
        self.assertFalse(form.is_valid())
        self.assertEqual(Property.objects.filter(owner=self.owner).count(), 1)


class SupportFormTest(TestCase):
    def test_subject_needs_five_characters(self):
        form = SupportTicketForm(
            data={'subject': 'Hi', 'category': 'OTHER', 'priority': 'LOW', 'description': 'Something broke.'}
        )
        self.assertFalse(form.is_valid())
        self.assertIn('subject', form.errors)

    def test_attachment_extension_is_checked(self):
        upload = SimpleUploadedFile('payload.exe', b'MZ', content_type='application/octet-stream')
        form = SupportTicketForm(
            data={'subject': 'Refund status', 'category': 'PAYMENT_ISSUES', 'priority': 'LOW', 'description': 'Where?'},
            files={'attachment': upload},
        )
        self.assertFalse(form.is_valid())
        self.assertIn('attachment', form.errors)

    def test_reply_requires_content_or_attachment(self):
        form = TicketReplyForm(data={'content': '   '})
        self.assertFalse(form.is_valid())

    def test_reply_accepts_pdf_attachment(self):
        upload = SimpleUploadedFile('receipt.pdf', b'%PDF-1.4', content_type='application/pdf')
        form = TicketReplyForm(data={'content': ''}, files={'attachment': upload})
        self.assertTrue(form.is_valid(), form.errors)


class GeneralSettingsFormTest(TestCase):
    def data(self, **overrides):
        data = {
            'site_name': 'FindoTrip',
            'support_email': 'help@findotrip.com',
            'currency': 'usd',
            'commission_rate': '0.1500',
            'max_listings_per_provider': 20,
        }
        data.update(overrides)
        return data

    def test_currency_is_upper_cased(self):
        form = GeneralSettingsForm(data=self.data(), instance=PlatformSettings.load())
        self.assertTrue(form.is_valid(), form.errors)
        self.assertEqual(form.cleaned_data['currency'], 'USD')
        self.assertEqual(form.cleaned_data['commission_rate'], Decimal('0.1500'))

    def test_currency_must_be_three_letters(self):
        form = GeneralSettingsForm(data=self.data(currency='R$'), instance=PlatformSettings.load())
        self.assertFalse(form.is_valid())
        self.assertIn('currency', form.errors)

    def test_commission_rate_above_one_is_rejected(self):
        form = GeneralSettingsForm(data=self.data(commission_rate='1.5'), instance=PlatformSettings.load())
        self.assertFalse(form.is_valid())
        self.assertIn('commission_rate', form.errors)
