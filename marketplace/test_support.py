from datetime import timedelta
from io import StringIO

from django.core.management import call_command
from django.test import TestCase
from django.utils import timezone

from .exceptions import ActionError
from .models import AuditLog, CannedResponse, Notification, SupportMessage
from .services.support import (
    CannedResponseService,
    CustomerSupportService,
    EscalationService,
    SlaReportService,
    SupportTicketService,
)
from .testing import make_admin, make_ticket, make_user


class SupportTicketServiceTest(TestCase):
    def setUp(self):
        self.admin = make_admin()
        self.customer = make_user("customer")
        self.ticket = make_ticket(self.customer)
        self.service = SupportTicketService(self.admin)

    def test_assign_only_to_admins(self):
        with self.assertRaises(ActionError):
            self.service.assign(self.ticket, self.customer)
        agent = make_admin("agent", role="ADMIN")
        self.service.assign(self.ticket, agent)
        self.ticket.refresh_from_db()
        self.assertEqual(self.ticket.assigned_to, agent)
        self.assertEqual(self.ticket.status, "ASSIGNED")

    def test_first_reply_records_response_time(self):
        message = self.service.add_message(self.ticket, "We are looking into it.")

        self.ticket.refresh_from_db()
        self.assertEqual(self.ticket.first_response_at, message.created_at)
        self.assertEqual(self.ticket.status, "IN_PROGRESS")
        self.assertTrue(Notification.objects.filter(user=self.customer, type="SUPPORT_UPDATE").exists())

    def test_empty_reply_is_rejected(self):
        with self.assertRaises(ActionError):
            self.service.add_message(self.ticket, "   ")

    def test_request_more_info_waits_for_customer(self):
        self.service.request_more_info(self.ticket, "Please send your booking number.")
        self.ticket.refresh_from_db()
        self.assertEqual(self.ticket.status, "WAITING")
        self.assertIsNotNone(self.ticket.waiting_for_user_at)

    def test_escalate_raises_priority_and_adds_internal_note(self):
        self.service.escalate(self.ticket, "Customer threatened chargeback")

        self.ticket.refresh_from_db()
        self.assertEqual(self.ticket.priority, "HIGH")
        self.assertEqual(self.ticket.escalated_by, self.admin)
        note = SupportMessage.objects.get(ticket=self.ticket)
        self.assertTrue(note.is_internal)
        self.assertIn("chargeback", note.content)

    def test_resolve_then_close(self):
        with self.assertRaises(ActionError):
            self.service.mark_resolved(self.ticket, "")
        self.service.mark_resolved(self.ticket, "Refund issued")
        self.service.close(self.ticket, "Done")
        self.ticket.refresh_from_db()
        self.assertEqual(self.ticket.status, "CLOSED")
        self.assertEqual(self.ticket.resolution_summary, "Refund issued")
        self.assertEqual(self.service.close(self.ticket).level, "info")
        with self.assertRaises(ActionError):
            self.service.add_message(self.ticket, "Anything else?")

    def test_update_status_validates_choice(self):
        with self.assertRaises(ActionError):
            self.service.update_status(self.ticket, "ARCHIVED")
        self.service.update_status(self.ticket, "resolved")
        self.ticket.refresh_from_db()
        self.assertEqual(self.ticket.status, "RESOLVED")
        self.assertIsNotNone(self.ticket.resolved_at)

    def test_reopening_clears_finish_timestamps(self):
        self.service.update_status(self.ticket, "RESOLVED")
        self.service.update_status(self.ticket, "CLOSED")
        self.service.update_status(self.ticket, "IN_PROGRESS")

        self.ticket.refresh_from_db()
        self.assertEqual(self.ticket.status, "IN_PROGRESS")
        self.assertIsNone(self.ticket.resolved_at)
        self.assertIsNone(self.ticket.closed_at)

    def test_internal_notes_lifecycle(self):
        note = self.service.create_internal_note(self.ticket, "Check the payment gateway")
        self.service.update_internal_note(note, "Gateway fine, check bank")
        note.refresh_from_db()
        self.assertEqual(note.content, "Gateway fine, check bank")

        reply = self.service.add_message(self.ticket, "Hello")
        with self.assertRaises(ActionError):
            self.service.update_internal_note(reply, "edited")

        self.service.delete_internal_note(note)
        self.assertFalse(SupportMessage.objects.filter(pk=note.pk).exists())
        self.assertTrue(AuditLog.objects.filter(action="DELETE_INTERNAL_NOTE").exists())

    def test_filters_and_stats(self):
        make_ticket(self.customer, subject="Payment failed twice", priority="HIGH")
        filters = self.service.build_filters({"priority": "high", "assignee": "unassigned"})
        self.assertEqual([ticket.subject for ticket in self.service.filtered(filters)], ["Payment failed twice"])

        stats = self.service.stats()
        self.assertEqual(stats["total"], 2)
        self.assertEqual(stats["unassigned"], 2)
        self.assertEqual(stats["by_priority"]["HIGH"], 1)


class CannedResponseServiceTest(TestCase):
    def setUp(self):
        self.admin = make_admin()
        self.service = CannedResponseService(self.admin)
        self.response = CannedResponse.objects.create(
            title="Refund timeline", content="Refunds take 5-7 business days.", category="PAYMENT_ISSUES"
        )

    def test_use_increments_usage(self):
        content = self.service.use(self.response)
        self.service.use(self.response)
        self.assertEqual(content, "Refunds take 5-7 business days.")
        self.assertEqual(self.response.usage_count, 2)

    def test_duplicate_and_listing(self):
        copy = self.service.duplicate(self.response)
        self.assertEqual(copy.title, "Refund timeline (Copy)")
        self.assertEqual(copy.created_by, self.admin)
        self.assertEqual(self.service.listing("refund", "PAYMENT_ISSUES").count(), 2)
        self.assertEqual(self.service.category_counts(), {"PAYMENT_ISSUES": 2})


class EscalationServiceTest(TestCase):
    def setUp(self):
        self.customer = make_user("customer")
        self.now = timezone.now()

    def test_overdue_uses_priority_targets(self):
        overdue = make_ticket(self.customer, "Site down", priority="HIGH", created_at=self.now - timedelta(hours=3))
        make_ticket(self.customer, "Slow page", priority="MEDIUM", created_at=self.now - timedelta(hours=3))
        make_ticket(
            self.customer,
            "Already handled",
            priority="HIGH",
            created_at=self.now - timedelta(hours=3),
            first_response_at=self.now - timedelta(hours=2),
        )

        self.assertEqual(EscalationService(now=self.now).overdue_for_response(), [overdue])

    def test_stats_and_filters(self):
        admin = make_admin()
        manual = make_ticket(self.customer, "Chargeback", priority="MEDIUM")
        SupportTicketService(admin).escalate(manual, "Legal threat")
        make_ticket(self.customer, "Urgent", priority="HIGH", created_at=self.now - timedelta(hours=5))

        service = EscalationService()
        stats = service.stats()

        self.assertEqual(stats["high_priority"], 2)
        self.assertEqual(stats["escalated"], 1)
        self.assertEqual(stats["manually_escalated"], 1)
        self.assertEqual(stats["urgent"], 1)
        self.assertEqual([ticket.subject for ticket in service.escalated(escalation_type="manual")], ["Chargeback"])
        self.assertEqual(service.top_reasons(), [{"escalation_reason": "Legal threat", "count": 1}])


class EscalateOverdueTicketsCommandTest(TestCase):
    def setUp(self):
        customer = make_user("customer")
        self.ticket = make_ticket(
            customer, "Payment stuck", priority="HIGH", created_at=timezone.now() - timedelta(hours=3)
        )

    def test_dry_run_changes_nothing(self):
        out = StringIO()
        call_command("escalate_overdue_tickets", "--dry-run", stdout=out)
        self.assertIn("1 ticket(s) would be escalated.", out.getvalue())
        self.ticket.refresh_from_db()
        self.assertIsNone(self.ticket.escalated_at)

    def test_escalates_as_system(self):
        out = StringIO()
        call_command("escalate_overdue_tickets", stdout=out)

        self.assertIn("Escalated 1 overdue ticket(s).", out.getvalue())
        self.ticket.refresh_from_db()
        self.assertIsNotNone(self.ticket.escalated_at)
        self.assertIsNone(self.ticket.escalated_by)
        self.assertEqual(self.ticket.escalation_reason, "SLA response target exceeded")
        entry = AuditLog.objects.get(action="ESCALATE_TICKET")
        self.assertIsNone(entry.user)


class SlaReportServiceTest(TestCase):
    def setUp(self):
        self.customer = make_user("customer")
        self.now = timezone.now()

    def test_high_priority_compliance(self):
        created = self.now - timedelta(hours=5)
        make_ticket(
            self.customer,
            "Handled quickly",
            priority="HIGH",
            status="RESOLVED",
            created_at=created,
            first_response_at=created + timedelta(hours=1),
            resolved_at=created + timedelta(hours=3),
        )
        make_ticket(self.customer, "Ignored", priority="HIGH", created_at=created)

        sla = SlaReportService(priority="HIGH", now=self.now).build()

        self.assertEqual(len(sla["reports"]), 1)
        report = sla["reports"][0]
        self.assertEqual(report["total"], 2)
        self.assertEqual(report["response_compliance"], 50.0)
        self.assertEqual(report["resolution_compliance"], 100.0)
        self.assertEqual(report["avg_response_hours"], 1.0)
        self.assertEqual(report["response_violations"], 1)
        self.assertEqual(sla["total_violations"], 1)

    def test_approaching_deadline(self):
        make_ticket(self.customer, "Almost late", priority="MEDIUM", created_at=self.now - timedelta(hours=20))
        make_ticket(self.customer, "Fresh", priority="MEDIUM", created_at=self.now - timedelta(hours=1))

        approaching = SlaReportService(now=self.now).approaching_deadline()

        self.assertEqual([ticket.subject for ticket in approaching], ["Almost late"])
        self.assertEqual(approaching[0].sla_remaining_hours, 4.0)


class CustomerSupportServiceTest(TestCase):
    def setUp(self):
        self.customer = make_user("customer")
        self.ticket = make_ticket(self.customer, status="WAITING")

    def test_reply_reopens_waiting_ticket(self):
        CustomerSupportService(self.customer).reply(self.ticket, "Here is my booking number")
        self.ticket.refresh_from_db()
        self.assertEqual(self.ticket.status, "IN_PROGRESS")

    def test_cannot_reply_to_someone_elses_ticket(self):
        with self.assertRaises(PermissionError):
            CustomerSupportService(make_user("intruder")).reply(self.ticket, "hi")

    def test_internal_notes_are_hidden(self):
        SupportTicketService(make_admin()).create_internal_note(self.ticket, "VIP customer")
        SupportMessage.objects.create(ticket=self.ticket, sender=self.customer, content="Any update?")
        messages = CustomerSupportService(self.customer).visible_messages(self.ticket)
        self.assertEqual([message.content for message in messages], ["Any update?"])
