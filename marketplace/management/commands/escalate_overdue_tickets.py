from django.core.management.base import BaseCommand

from ...services.support import EscalationService, SupportTicketService

ESCALATION_REASON = "SLA response target exceeded"


class Command(BaseCommand):
    help = "Escalate open support tickets that have passed their response target without a reply."

    def add_arguments(self, parser):
        parser.add_argument("--dry-run", action="store_true", help="List the tickets without escalating them.")

    def handle(self, *args, **options):
        overdue = EscalationService().overdue_for_response()
        if options["dry_run"]:
            for ticket in overdue:
                self.stdout.write(f"#{ticket.pk} {ticket.subject} ({ticket.priority})")
            self.stdout.write(f"{len(overdue)} ticket(s) would be escalated.")
            return
        service = SupportTicketService(admin=None)
        for ticket in overdue:
            service.escalate(ticket, ESCALATION_REASON)
        self.stdout.write(self.style.SUCCESS(f"Escalated {len(overdue)} overdue ticket(s)."))
