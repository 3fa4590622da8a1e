from django.conf import settings
from django.db import models


class EmailTemplate(models.Model):
    key = models.SlugField(max_length=100, unique=True)
    name = models.CharField(max_length=200, blank=True)

    subject = models.CharField(max_length=255)
    body_text = models.TextField(help_text="Django template syntax")
    body_html = models.TextField(blank=True, help_text="Optional HTML body")

    is_active = models.BooleanField(default=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["key"]

    def __str__(self) -> str:
        return self.key


class OutboundEmail(models.Model):
    class Status(models.TextChoices):
        PENDING = "pending", "Pending"
        SENT = "sent", "Sent"
        FAILED = "failed", "Failed"

    to_email = models.EmailField()
    template_key = models.SlugField(max_length=100, blank=True)
    subject = models.CharField(max_length=255)
    body_text = models.TextField(blank=True)
    body_html = models.TextField(blank=True)

    status = models.CharField(
        max_length=16, choices=Status.choices, default=Status.PENDING)
    error_message = models.TextField(blank=True)

    created_at = models.DateTimeField(auto_now_add=True)
    sent_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        ordering = ["-created_at"]

    def __str__(self) -> str:
        return f"{self.to_email} [{self.status}]"


class Notification(models.Model):
    class Kind(models.TextChoices):
        NEW_ORDER = "new_order", "New order"
        ORDER_STATUS = "order_status", "Order status"
        ORDER_CANCELLED = "order_cancelled", "Order cancelled"
        REFERRAL_REWARD = "referral_reward", "Referral reward"

    recipient = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="notifications",
    )
    kind = models.CharField(max_length=32, choices=Kind.choices)
    title = models.CharField(max_length=200)
    message = models.TextField()
    data = models.JSONField(default=dict, blank=True)
    is_read = models.BooleanField(default=False)

    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["-created_at", "-id"]
        indexes = [
            models.Index(fields=["recipient", "is_read", "-created_at"], name="idx_notification_unread"),
        ]

    def __str__(self) -> str:
        return f"{self.recipient_id}:{self.kind}"
