from django.conf import settings
from django.core.management.base import BaseCommand, CommandError

from ...services.audit import AuditLogService


class Command(BaseCommand):
    help = "Delete audit log entries older than the retention period."

    def add_arguments(self, parser):
        parser.add_argument(
            "--days",
            type=int,
            default=getattr(settings, "FINDOTRIP", {}).get("AUDIT_RETENTION_DAYS", 365),
            help="Retention period in days (default: %(default)s).",
        )

    def handle(self, *args, **options):
        days = options["days"]
        if days < 1:
            raise CommandError("--days must be at least 1.")
        deleted = AuditLogService().cleanup(retention_days=days)
        self.stdout.write(self.style.SUCCESS(f"Deleted {deleted} audit log entries older than {days} days."))
