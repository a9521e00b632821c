from datetime import timedelta

from django.conf import settings
from django.core.validators import MaxValueValidator, MinValueValidator
from django.db import models
from django.utils import timezone


class SupportTicket(models.Model):
    CATEGORY_CHOICES = (
        ("ACCOUNT_ISSUES", "Account Issues"),
        ("PAYMENT_ISSUES", "Payment Issues"),
        ("BOOKING_ISSUES", "Booking Issues"),
        ("TECHNICAL_SUPPORT", "Technical Support"),
        ("POLICY_QUESTIONS", "Policy Questions"),
        ("FEATURE_REQUEST", "Feature Request"),
        ("BUG_REPORT", "Bug Report"),
        ("APPROVAL_QUESTIONS", "Approval Questions"),
        ("OTHER", "Other"),
    )
    PRIORITY_CHOICES = (
        ("LOW", "Low"),
        ("MEDIUM", "Medium"),
        ("HIGH", "High"),
    )
    STATUS_CHOICES = (
        ("NEW", "New"),
        ("ASSIGNED", "Assigned"),
        ("IN_PROGRESS", "In Progress"),
        ("WAITING", "Waiting for User"),
        ("RESOLVED", "Resolved"),
        ("CLOSED", "Closed"),
    )
    OPEN_STATUSES = ("NEW", "ASSIGNED", "IN_PROGRESS")
    DONE_STATUSES = ("RESOLVED", "CLOSED")

    user = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name="support_tickets")
    subject = models.CharField(max_length=255)
    description = models.TextField()
    category = models.CharField(max_length=20, choices=CATEGORY_CHOICES, default="OTHER")
    priority = models.CharField(max_length=10, choices=PRIORITY_CHOICES, default="MEDIUM")
    status = models.CharField(max_length=15, choices=STATUS_CHOICES, default="NEW")

    assigned_to = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="assigned_tickets",
    )
    assigned_at = models.DateTimeField(null=True, blank=True)
    escalated_at = models.DateTimeField(null=True, blank=True)
    escalated_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="escalated_tickets",
    )
    escalation_reason = models.TextField(blank=True)
    first_response_at = models.DateTimeField(null=True, blank=True)
    waiting_for_user_at = models.DateTimeField(null=True, blank=True)
    resolved_at = models.DateTimeField(null=True, blank=True)
    resolution_summary = models.TextField(blank=True)
    closed_at = models.DateTimeField(null=True, blank=True)
    closing_notes = models.TextField(blank=True)
    satisfaction_rating = models.PositiveSmallIntegerField(
        null=True,
        blank=True,
        validators=[MinValueValidator(1), MaxValueValidator(5)],
    )

    created_at = models.DateTimeField(default=timezone.now)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-created_at"]

    def __str__(self) -> str:  # pragma: no cover - simple display helper
        return f"#{self.pk} {self.subject}"

    @property
    def is_open(self) -> bool:
        return self.status in self.OPEN_STATUSES

    @property
    def is_escalated(self) -> bool:
        return self.escalated_at is not None

    @property
    def response_time(self) -> timedelta | None:
        if not self.first_response_at:
            return None
        return self.first_response_at - self.created_at

    @property
    def resolution_time(self) -> timedelta | None:
        finished_at = self.resolved_at or self.closed_at
        if not finished_at:
            return None
        return finished_at - self.created_at


class SupportMessage(models.Model):
    SENDER_TYPE_CHOICES = (
        ("USER", "User"),
        ("ADMIN", "Admin"),
    )

    ticket = models.ForeignKey(SupportTicket, on_delete=models.CASCADE, related_name="messages")
    sender = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        related_name="support_messages",
    )
    sender_type = models.CharField(max_length=5, choices=SENDER_TYPE_CHOICES, default="USER")
    content = models.TextField()
    is_internal = models.BooleanField(default=False)
    attachment = models.FileField(upload_to="support_attachments/", null=True, blank=True)
    created_at = models.DateTimeField(default=timezone.now)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["created_at", "id"]

    def __str__(self) -> str:  # pragma: no cover - simple display helper
        kind = "Note" if self.is_internal else "Message"
        return f"{kind} on ticket #{self.ticket_id}"


class CannedResponse(models.Model):
    title = models.CharField(max_length=255)
    content = models.TextField()
    category = models.CharField(max_length=20, choices=SupportTicket.CATEGORY_CHOICES, default="OTHER")
    usage_count = models.PositiveIntegerField(default=0)
    is_active = models.BooleanField(default=True)
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="canned_responses",
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["title", "id"]

    def __str__(self) -> str:  # pragma: no cover - simple display helper
        return self.title
