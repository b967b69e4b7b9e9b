from django.db import models
from django.utils import timezone
from django.contrib.auth import get_user_model

User = get_user_model()


class BroadcastLog(models.Model):
    """Record of a broadcast email sent from the operations desk."""

    class AudienceType(models.TextChoices):
        GENERAL = 'general', 'All staff'
        MANUAL = 'manual', 'Manual list'
        CSV = 'csv', 'CSV upload'
        PROGRAM = 'program', 'Program participants'

    STATUS_SENT = 'Sent'

    sender = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, related_name='broadcasts')
    audience_type = models.CharField(max_length=20, choices=AudienceType.choices)
    target_programs = models.JSONField(
        default=list,
        blank=True,
        help_text="Names of the programs whose participants were targeted"
    )
    subject = models.CharField(max_length=255)
    message = models.TextField()
    recipient_count = models.PositiveIntegerField(default=0)
    status = models.CharField(max_length=20, default=STATUS_SENT)
    created_at = models.DateTimeField(default=timezone.now)

    class Meta:
        ordering = ['-created_at']

    def __str__(self):
        return f"{self.subject} ({self.recipient_count} recipients, {self.created_at.strftime('%Y-%m-%d')})"
