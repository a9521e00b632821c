from datetime import timedelta
from io import StringIO
from unittest import mock

from django.core.cache import cache
from django.core.management import call_command
from django.core.management.base import CommandError
from django.db import DatabaseError
from django.test import RequestFactory, TestCase, override_settings
from django.utils import timezone

from .models import AuditLog, User
from .services.access import RateLimiter, admin_navigation, has_permission, permissions_for
from .services.audit import AuditLogService, client_ip, log_admin_action, sanitize_for_logging
from .services.metrics import growth_rate, paginate, parse_int, percentage
from .testing import make_admin, make_user


class MetricsHelpersTest(TestCase):
    def test_growth_rate_from_zero(self):
        self.assertEqual(growth_rate(5, 0), 100.0)
        self.assertEqual(growth_rate(0, 0), 0.0)

    def test_growth_rate_rounds_to_two_places(self):
        self.assertEqual(growth_rate(2, 3), -33.33)
        self.assertEqual(growth_rate(150, 100), 50.0)

    def test_percentage_of_zero_is_zero(self):
        self.assertEqual(percentage(3, 0), 0.0)
        self.assertEqual(percentage(1, 3), 33.33)

    def test_parse_int_bounds(self):
        self.assertEqual(parse_int("abc", 20), 20)
        self.assertEqual(parse_int("0", 20), 20)
        self.assertEqual(parse_int("500", 20, maximum=100), 100)
        self.assertEqual(parse_int("7", 20), 7)

    def test_paginate_reports_state(self):
        make_user("a")
        make_user("b")
        make_user("c")
        page_obj, info = paginate(User.objects.order_by("id"), "2", per_page=2)
        self.assertEqual(len(page_obj.object_list), 1)
        self.assertEqual(info.page, 2)
        self.assertEqual(info.total_pages, 2)
        self.assertEqual(info.total_count, 3)
        self.assertFalse(info.has_next)
        self.assertTrue(info.has_prev)


class SanitizeTest(TestCase):
    def test_masks_sensitive_values_recursively(self):
        data = {
            "note": "card 4111 1111 1111 1111 from jane@example.com",
            "nested": [{"phone": "call 555-123-4567"}, "ssn 123-45-6789"],
            "count": 3,
        }
        cleaned = sanitize_for_logging(data)
        self.assertEqual(cleaned["note"], "card [CARD] from [EMAIL]")
        self.assertEqual(cleaned["nested"][0]["phone"], "call [PHONE]")
        self.assertEqual(cleaned["nested"][1], "ssn [SSN]")
        self.assertEqual(cleaned["count"], 3)


class AuditLogTest(TestCase):
    def setUp(self):
        self.admin = make_admin()
        self.factory = RequestFactory()

    def test_client_ip_prefers_forwarded_header(self):
        request = self.factory.get("/", HTTP_X_FORWARDED_FOR="10.0.0.1, 10.0.0.2", REMOTE_ADDR="127.0.0.1")
        self.assertEqual(client_ip(request), "10.0.0.1")
        request = self.factory.get("/", HTTP_X_REAL_IP="10.0.0.9")
        self.assertEqual(client_ip(request), "10.0.0.9")

    def test_log_admin_action_records_sanitised_entry(self):
        request = self.factory.get("/admin/", HTTP_USER_AGENT="pytest", REMOTE_ADDR="192.168.1.5")
        entry = log_admin_action(
            request,
            self.admin,
            "USER_BANNED",
            {"email": "victim@example.com"},
            resource_type="USER",
            resource_id=42,
        )
        self.assertIsNotNone(entry)
        entry.refresh_from_db()
        self.assertEqual(entry.details, {"email": "[EMAIL]"})
        self.assertEqual(entry.ip_address, "192.168.1.5")
        self.assertEqual(entry.resource_id, "42")
        self.assertEqual(entry.severity, "high")
        self.assertEqual(len(entry.hash), 64)

    def test_system_entries_have_no_user(self):
        entry = log_admin_action(None, None, "ESCALATE_TICKET", resource_type="SUPPORT_TICKET", resource_id=1)
        self.assertIsNone(entry.user)
        self.assertEqual(entry.ip_address, "system")

    def test_failed_write_is_logged_not_raised(self):
        with mock.patch.object(AuditLog.objects, "create", side_effect=DatabaseError("disk full")):
            with self.assertLogs("marketplace.services.audit", level="ERROR") as logs:
                entry = log_admin_action(None, self.admin, "USER_BANNED", resource_type="USER", resource_id=9)

        self.assertIsNone(entry)
        self.assertIn("USER_BANNED", logs.output[0])
        self.assertFalse(AuditLog.objects.exists())

    def test_verify_integrity_detects_tampering(self):
        log_admin_action(None, self.admin, "USER_VERIFIED", {"user": "a"}, resource_type="USER", resource_id=1)
        tampered = log_admin_action(None, self.admin, "USER_VERIFIED", {"user": "b"}, resource_type="USER", resource_id=2)
        AuditLog.objects.filter(pk=tampered.pk).update(details={"user": "mallory"})

        result = AuditLogService().verify_integrity()

        self.assertEqual(result["total_checked"], 2)
        self.assertEqual(result["invalid_logs"], 1)
        self.assertEqual(result["invalid_log_details"][0]["id"], tampered.pk)

    def test_deleting_an_admin_keeps_their_rows_valid(self):
        staff = make_admin("staff", role="ADMIN")
        entry = log_admin_action(None, staff, "USER_VERIFIED", resource_type="USER", resource_id=3)
        staff_id = staff.pk
        staff.delete()

        entry.refresh_from_db()
        self.assertIsNone(entry.user)
        self.assertEqual(entry.actor_id, staff_id)
        self.assertEqual(AuditLogService().verify_integrity()["invalid_logs"], 0)

    def test_statistics_and_filters(self):
        log_admin_action(None, self.admin, "USER_VERIFIED", resource_type="USER")
        log_admin_action(None, self.admin, "USER_BANNED", resource_type="USER")
        log_admin_action(None, None, "USER_BANNED", resource_type="USER")
        service = AuditLogService()

        stats = service.statistics()
        self.assertEqual(stats["total"], 3)
        self.assertEqual(stats["by_action"], {"USER_VERIFIED": 1, "USER_BANNED": 2})
        self.assertEqual(stats["by_user"], {self.admin.pk: 2})

        filters = service.build_filters({"action": "USER_BANNED", "user": str(self.admin.pk)})
        self.assertEqual(service.filtered(filters).count(), 1)

    def test_export_for_user(self):
        log_admin_action(None, self.admin, "USER_VERIFIED", {"user": "a"}, resource_type="USER", resource_id=5)
        rows = AuditLogService().export_for_user(self.admin)
        self.assertEqual(len(rows), 1)
        self.assertEqual(rows[0]["action"], "USER_VERIFIED")
        self.assertEqual(rows[0]["resource_id"], "5")

    def test_cleanup_deletes_old_rows_only(self):
        old = log_admin_action(None, self.admin, "OLD", resource_type="USER")
        AuditLog.objects.filter(pk=old.pk).update(created_at=timezone.now() - timedelta(days=400))
        log_admin_action(None, self.admin, "NEW", resource_type="USER")

        deleted = AuditLogService().cleanup(retention_days=365)

        self.assertEqual(deleted, 1)
        self.assertEqual(list(AuditLog.objects.values_list("action", flat=True)), ["NEW"])


class PurgeAuditLogsCommandTest(TestCase):
    def test_purges_with_custom_retention(self):
        admin = make_admin()
        entry = log_admin_action(None, admin, "OLD", resource_type="USER")
        AuditLog.objects.filter(pk=entry.pk).update(created_at=timezone.now() - timedelta(days=40))
        out = StringIO()

        call_command("purge_audit_logs", "--days", "30", stdout=out)

        self.assertIn("Deleted 1 audit log entries older than 30 days.", out.getvalue())
        self.assertFalse(AuditLog.objects.exists())

    def test_rejects_non_positive_days(self):
        with self.assertRaises(CommandError):
            call_command("purge_audit_logs", "--days", "0", stdout=StringIO())


class PermissionsTest(TestCase):
    def test_super_admin_has_every_permission(self):
        admin = make_admin()
        self.assertTrue(has_permission(admin, "settings.manage"))
        self.assertTrue(has_permission(admin, "financial.manage"))

    def test_admin_role_is_limited(self):
        admin = make_admin("staff", role="ADMIN")
        self.assertTrue(has_permission(admin, "users.view"))
        self.assertFalse(has_permission(admin, "users.manage"))
        self.assertFalse(has_permission(admin, "settings.manage"))

    def test_banned_or_non_admin_users_have_none(self):
        self.assertEqual(permissions_for(make_admin("banned", banned=True)), frozenset())
        self.assertEqual(permissions_for(make_user("customer")), frozenset())

    def test_navigation_hides_unpermitted_sections(self):
        names = [item["name"] for item in admin_navigation(make_admin("staff", role="ADMIN"))]
        self.assertIn("Support", names)
        self.assertNotIn("Settings", names)
        self.assertNotIn("Audit Logs", names)
        full = [item["name"] for item in admin_navigation(make_admin())]
        self.assertIn("Settings", full)


@override_settings(FINDOTRIP={"ADMIN_LOGIN_MAX_ATTEMPTS": 3, "ADMIN_LOGIN_WINDOW_SECONDS": 60})
class RateLimiterTest(TestCase):
    def setUp(self):
        cache.clear()

    def test_blocks_after_max_attempts(self):
        limiter = RateLimiter()
        results = [limiter.check("1.2.3.4") for _ in range(4)]
        self.assertEqual(results, [True, True, True, False])
        self.assertTrue(limiter.check("5.6.7.8"))

    def test_reset_clears_counter(self):
        limiter = RateLimiter()
        for _ in range(4):
            limiter.check("1.2.3.4")
        limiter.reset("1.2.3.4")
        self.assertTrue(limiter.check("1.2.3.4"))
