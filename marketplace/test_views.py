from django.contrib.messages import get_messages
from django.core.cache import cache
from django.core.files.uploadedfile import SimpleUploadedFile
from django.test import TestCase, override_settings
from django.urls import reverse

from .models import AuditLog, CannedResponse, PlatformSettings, SupportTicket, Tour, User
from .testing import (
    PASSWORD,
    make_admin,
    make_booking,
    make_property,
    make_provider,
    make_ticket,
    make_user,
)


def flashed(response):
    return [str(message) for message in get_messages(response.wsgi_request)]


class PanelAccessTest(TestCase):
    def setUp(self):
        cache.clear()

    def test_anonymous_users_are_sent_to_admin_login(self):
        response = self.client.get(reverse('panel_dashboard'))
        self.assertRedirects(response, f"{reverse('panel_login')}?next={reverse('panel_dashboard')}")

    def test_customers_are_turned_away(self):
        self.client.force_login(make_user('customer'))
        response = self.client.get(reverse('panel_dashboard'))
        self.assertRedirects(response, reverse('panel_login'), fetch_redirect_response=False)

    def test_dashboard_access_is_audited(self):
        admin = make_admin()
        self.client.force_login(admin)
        response = self.client.get(reverse('panel_dashboard'))
        self.assertEqual(response.status_code, 200)
        self.assertIn('stats', response.context)
        self.assertTrue(AuditLog.objects.filter(action='DASHBOARD_ACCESS', user=admin).exists())

    def test_missing_permission_redirects_to_dashboard(self):
        self.client.force_login(make_admin('staff', role='ADMIN'))
        response = self.client.get(reverse('panel_settings'))
        self.assertRedirects(response, reverse('panel_dashboard'))

    def test_navigation_only_on_panel_pages(self):
        self.client.force_login(make_admin())
        response = self.client.get(reverse('panel_dashboard'))
        self.assertTrue(response.context['admin_navigation'])

    def test_every_panel_page_renders_for_super_admin(self):
        admin = make_admin()
        customer = make_user('customer')
        hotel = make_property(make_provider(verified=True), approval_status='APPROVED')
        booking = make_booking(hotel, customer)
        ticket = make_ticket(customer)
        self.client.force_login(admin)
        pages = [
            reverse('panel_dashboard'),
            reverse('panel_platform_analytics'),
            reverse('panel_growth_analytics'),
            reverse('panel_activity_analytics'),
            reverse('panel_audit_logs'),
            reverse('panel_provider_approvals'),
            reverse('panel_service_approvals'),
            reverse('panel_featured_services'),
            reverse('panel_users'),
            reverse('panel_user_detail', args=[customer.pk]),
            reverse('panel_bookings'),
            reverse('panel_booking_detail', args=[booking.pk]),
            reverse('panel_reviews'),
            reverse('panel_support'),
            reverse('panel_ticket_detail', args=[ticket.pk]),
            reverse('panel_support_escalated'),
            reverse('panel_support_sla'),
            reverse('panel_canned_responses'),
            reverse('panel_revenue'),
            reverse('panel_settings'),
        ]
        for url in pages:
            with self.subTest(url=url):
                self.assertEqual(self.client.get(url).status_code, 200)


class AdminLoginViewTest(TestCase):
    def setUp(self):
        cache.clear()
        self.admin = make_admin()

    def test_successful_login(self):
        response = self.client.post(reverse('panel_login'), {'username': 'admin', 'password': PASSWORD})
        self.assertRedirects(response, reverse('panel_dashboard'), fetch_redirect_response=False)
        self.assertTrue(AuditLog.objects.filter(action='ADMIN_LOGIN', user=self.admin).exists())

    def test_customer_login_is_refused_and_audited(self):
        make_user('customer')
        response = self.client.post(reverse('panel_login'), {'username': 'customer', 'password': PASSWORD})
        self.assertEqual(response.status_code, 200)
        self.assertTrue(AuditLog.objects.filter(action='ADMIN_LOGIN_FAILED').exists())

    @override_settings(FINDOTRIP={'ADMIN_LOGIN_MAX_ATTEMPTS': 2, 'ADMIN_LOGIN_WINDOW_SECONDS': 60})
    def test_rate_limited_after_repeated_attempts(self):
        for _ in range(2):
            self.client.post(reverse('panel_login'), {'username': 'admin', 'password': 'wrong'})
        response = self.client.post(reverse('panel_login'), {'username': 'admin', 'password': PASSWORD})
        self.assertEqual(response.status_code, 429)
        self.assertTrue(AuditLog.objects.filter(action='ADMIN_LOGIN_RATE_LIMITED').exists())

    def test_logout_is_audited(self):
        self.client.force_login(self.admin)
        response = self.client.post(reverse('panel_logout'))
        self.assertRedirects(response, reverse('panel_login'))
        self.assertTrue(AuditLog.objects.filter(action='ADMIN_LOGOUT', user=self.admin).exists())


class PanelActionTest(TestCase):
    def setUp(self):
        cache.clear()
        self.admin = make_admin()
        self.client.force_login(self.admin)

    def test_unknown_action_is_reported(self):
        response = self.client.post(reverse('panel_provider_approvals'), {'action': 'delete_everything'})
        self.assertRedirects(response, reverse('panel_provider_approvals'))
        self.assertIn('Invalid action requested.', flashed(response))

    def test_approve_provider(self):
        provider = make_provider('guide', role='TOUR_GUIDE')
        response = self.client.post(
            reverse('panel_provider_approvals'), {'action': 'approve', 'provider_id': provider.pk}
        )
        self.assertEqual(response.status_code, 302)
        provider.refresh_from_db()
        self.assertTrue(provider.verified)

    def test_reject_listing_without_reason_shows_error(self):
        hotel = make_property(make_provider(verified=True))
        response = self.client.post(
            reverse('panel_service_approvals'),
            {'action': 'reject', 'service_type': 'property', 'listing_id': hotel.pk, 'reason': ''},
        )
        self.assertIn('A rejection reason is required.', flashed(response))
        hotel.refresh_from_db()
        self.assertEqual(hotel.approval_status, 'PENDING')

    def test_super_admin_can_ban_user(self):
        customer = make_user('customer')
        self.client.post(reverse('panel_users'), {'action': 'ban', 'user_id': customer.pk, 'reason': 'Fraud'})
        customer.refresh_from_db()
        self.assertTrue(customer.banned)

    def test_admin_role_cannot_manage_users(self):
        self.client.force_login(make_admin('staff', role='ADMIN'))
        customer = make_user('customer')
        response = self.client.post(
            reverse('panel_user_detail', args=[customer.pk]), {'action': 'ban', 'reason': 'Fraud'}
        )
        self.assertIn('You do not have permission to manage users.', flashed(response))
        customer.refresh_from_db()
        self.assertFalse(customer.banned)

    def test_confirm_booking_from_detail_page(self):
        booking = make_booking(make_property(make_provider(verified=True), approval_status='APPROVED'))
        url = reverse('panel_booking_detail', args=[booking.pk])
        response = self.client.post(url, {'action': 'confirm'})
        self.assertRedirects(response, url)
        booking.refresh_from_db()
        self.assertEqual(booking.status, 'CONFIRMED')
        self.assertEqual(self.client.get(url).context['commission'].amount, booking.commission.amount)

    def test_ticket_reply_and_escalation(self):
        ticket = make_ticket(make_user('customer'))
        url = reverse('panel_ticket_detail', args=[ticket.pk])
        self.client.post(url, {'action': 'reply', 'content': 'On it.'})
        response = self.client.post(url, {'action': 'escalate', 'reason': 'VIP'})
        self.assertRedirects(response, url)
        ticket.refresh_from_db()
        self.assertEqual(ticket.status, 'IN_PROGRESS')
        self.assertEqual(ticket.priority, 'HIGH')
        self.assertEqual(ticket.messages.count(), 2)

    def test_malformed_ids_are_flashed_not_raised(self):
        cases = [
            (reverse('panel_support'), {'action': 'update_status', 'ticket_id': 'abc', 'status': 'CLOSED'}, 'Unknown ticket.'),
            (reverse('panel_support'), {'action': 'update_status', 'ticket_id': '', 'status': 'CLOSED'}, 'Unknown ticket.'),
            (reverse('panel_bookings'), {'action': 'confirm', 'booking_id': 'x'}, 'Unknown booking.'),
            (reverse('panel_users'), {'action': 'verify', 'user_id': '1; DROP'}, 'Unknown user.'),
            (reverse('panel_reviews'), {'action': 'hide', 'review_id': ''}, 'Unknown review.'),
            (reverse('panel_canned_responses'), {'action': 'delete', 'response_id': 'nope'}, 'Unknown canned response.'),
        ]
        for url, data, message in cases:
            with self.subTest(url=url, data=data):
                response = self.client.post(url, data)
                self.assertRedirects(response, url)
                self.assertIn(message, flashed(response))

    def test_admin_reply_rejects_unsupported_attachment(self):
        ticket = make_ticket(make_user('customer'))
        url = reverse('panel_ticket_detail', args=[ticket.pk])
        upload = SimpleUploadedFile('payload.exe', b'MZ', content_type='application/octet-stream')

        response = self.client.post(url, {'action': 'reply', 'content': 'See attached', 'attachment': upload})

        self.assertRedirects(response, url)
        self.assertIn('Unsupported attachment type.', flashed(response))
        self.assertFalse(ticket.messages.exists())

    def test_canned_response_create_and_use(self):
        self.client.post(
            reverse('panel_canned_responses'),
            {'action': 'create', 'title': 'Greeting', 'category': 'OTHER', 'content': 'Hello there!', 'is_active': 'on'},
        )
        response = CannedResponse.objects.get(title='Greeting')
        self.assertEqual(response.created_by, self.admin)

        ticket = make_ticket(make_user('customer'))
        self.client.post(
            reverse('panel_ticket_detail', args=[ticket.pk]),
            {'action': 'use_canned', 'canned_response_id': response.pk},
        )
        response.refresh_from_db()
        self.assertEqual(response.usage_count, 1)
        self.assertEqual(ticket.messages.get().content, 'Hello there!')

    def test_audit_export_is_csv(self):
        response = self.client.get(reverse('panel_audit_export'))
        self.assertEqual(response['Content-Type'], 'text/csv')
        self.assertTrue(response.content.decode().startswith('timestamp,user,action'))
        self.assertTrue(AuditLog.objects.filter(action='EXPORT_AUDIT_LOGS').exists())

    def test_settings_save_and_maintenance_toggle(self):
        response = self.client.post(
            reverse('panel_settings'),
            {
                'action': 'save_general',
                'site_name': 'FindoTrip PK',
                'support_email': 'help@findotrip.pk',
                'currency': 'pkr',
                'commission_rate': '0.0800',
                'max_listings_per_provider': 10,
            },
        )
        self.assertRedirects(response, reverse('panel_settings'))
        settings_row = PlatformSettings.load()
        self.assertEqual(settings_row.site_name, 'FindoTrip PK')
        self.assertEqual(settings_row.currency, 'PKR')

        self.client.post(reverse('panel_settings'), {'action': 'toggle_maintenance', 'maintenance_message': 'Upgrading'})
        self.assertTrue(PlatformSettings.load().maintenance_mode)


class MaintenanceModeMiddlewareTest(TestCase):
    def setUp(self):
        cache.clear()
        settings_row = PlatformSettings.load()
        settings_row.maintenance_mode = True
        settings_row.maintenance_message = 'Back soon'
        settings_row.save()

    def test_public_pages_return_503(self):
        response = self.client.get(reverse('home'))
        self.assertEqual(response.status_code, 503)
        self.assertContains(response, 'Back soon', status_code=503)

    def test_login_and_panel_stay_reachable(self):
        self.assertEqual(self.client.get(reverse('login')).status_code, 200)
        self.assertEqual(self.client.get(reverse('panel_login')).status_code, 200)

    def test_admins_bypass_maintenance(self):
        self.client.force_login(make_admin())
        self.assertEqual(self.client.get(reverse('home')).status_code, 200)


class UserActivityMiddlewareTest(TestCase):
    def test_last_active_is_recorded(self):
        cache.clear()
        user = make_user('customer')
        self.client.force_login(user)
        self.client.get(reverse('home'))
        user.refresh_from_db()
        self.assertIsNotNone(user.last_active_at)


class AdminApiTest(TestCase):
    def setUp(self):
        cache.clear()

    def test_anonymous_request_gets_401_envelope(self):
        response = self.client.get(reverse('api_admin_dashboard'))
        self.assertEqual(response.status_code, 401)
        self.assertEqual(response.json()['errorCode'], 'unauthorized')
        self.assertFalse(response.json()['ok'])

    def test_customer_gets_403(self):
        self.client.force_login(make_user('customer'))
        response = self.client.get(reverse('api_admin_dashboard'))
        self.assertEqual(response.status_code, 403)
        self.assertEqual(response.json()['error']['code'], 'forbidden')

    def test_dashboard_payload(self):
        self.client.force_login(make_admin())
        make_user('customer')
        response = self.client.get(reverse('api_admin_dashboard'))
        self.assertEqual(response.status_code, 200)
        body = response.json()
        self.assertTrue(body['ok'])
        self.assertEqual(body['data']['total_users'], 1)
        self.assertEqual(body['data']['recent_activity'], [])

    def test_analytics_period_is_validated(self):
        self.client.force_login(make_admin('staff', role='ADMIN'))
        response = self.client.get(reverse('api_platform_analytics'), {'period': '15'})
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()['errorCode'], 'invalid_period')

        response = self.client.get(reverse('api_platform_analytics'), {'period': '7'})
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()['data']['period']['days'], 7)
        self.assertIn('total_users', response.json()['data']['kpis'])
        self.assertTrue(AuditLog.objects.filter(action='VIEW_PLATFORM_ANALYTICS').exists())

    def test_support_ticket_list(self):
        self.client.force_login(make_admin())
        customer = make_user('customer')
        make_ticket(customer)
        make_ticket(customer, subject='Second ticket')
        response = self.client.get(reverse('api_support_tickets'), {'limit': '1'})
        data = response.json()['data']
        self.assertEqual(len(data['tickets']), 1)
        self.assertEqual(data['pagination']['total_pages'], 2)
        self.assertEqual(data['stats']['total'], 2)
        self.assertEqual(data['tickets'][0]['user'], 'customer')

    def test_current_user(self):
        self.assertEqual(self.client.get(reverse('auth_me')).status_code, 403)
        self.client.force_login(make_provider())
        response = self.client.get(reverse('auth_me'))
        self.assertEqual(response.json()['role'], 'PROPERTY_OWNER')
        self.assertFalse(response.json()['is_admin'])


class PublicViewsTest(TestCase):
    def setUp(self):
        cache.clear()

    def test_register_creates_account(self):
        response = self.client.post(
            reverse('register'),
            {
                'username': 'newbie',
                'email': 'newbie@example.com',
                'first_name': 'New',
                'last_name': 'Bie',
                'phone': '',
                'business_name': '',
                'role': 'CUSTOMER',
                'password1': 'secret123',
                'password2': 'secret123',
            },
        )
        self.assertRedirects(response, reverse('login'))
        self.assertTrue(User.objects.filter(username='newbie', role='CUSTOMER').exists())

    def test_home_lists_featured_listings(self):
        make_property(make_provider(verified=True), approval_status='APPROVED', is_featured=True)
        response = self.client.get(reverse('home'))
        self.assertEqual(len(response.context['featured_listings']), 1)

    def test_provider_submits_listing(self):
        guide = make_provider('guide', role='TOUR_GUIDE')
        self.client.force_login(guide)
        response = self.client.post(
            reverse('provider_listing_create'),
            {'name': 'Fairy Meadows Trek', 'city': 'Gilgit', 'price': '18000', 'duration_days': 3, 'max_group_size': 8},
        )
        self.assertRedirects(response, reverse('home'))
        tour = Tour.objects.get(owner=guide)
        self.assertEqual(tour.approval_status, 'PENDING')

    def test_customers_cannot_create_listings(self):
        self.client.force_login(make_user('customer'))
        response = self.client.get(reverse('provider_listing_create'))
        self.assertRedirects(response, reverse('home'))


class CustomerSupportViewsTest(TestCase):
    def setUp(self):
        cache.clear()
        self.customer = make_user('customer')
        self.client.force_login(self.customer)

    def test_open_ticket(self):
        response = self.client.post(
            reverse('support_ticket_create'),
            {'subject': 'Refund not received', 'category': 'PAYMENT_ISSUES', 'priority': 'HIGH', 'description': 'Two weeks.'},
        )
        ticket = SupportTicket.objects.get(user=self.customer)
        self.assertRedirects(response, reverse('support_ticket_detail', args=[ticket.pk]))
        self.assertEqual(ticket.status, 'NEW')

    def test_other_users_tickets_are_hidden(self):
        ticket = make_ticket(make_user('someone-else'))
        response = self.client.get(reverse('support_ticket_detail', args=[ticket.pk]))
        self.assertEqual(response.status_code, 404)

    def test_reply_to_own_ticket(self):
        ticket = make_ticket(self.customer)
        url = reverse('support_ticket_detail', args=[ticket.pk])
        response = self.client.post(url, {'content': 'Any news?'})
        self.assertRedirects(response, url)
        self.assertEqual(ticket.messages.get().content, 'Any news?')
