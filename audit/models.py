from django.db import models
from django.conf import settings
from django.utils import timezone


class ActivityLog(models.Model):
    """
    Audit trail of actions taken in the operations desk.
    Shown as the activity feed on the dashboard.
    """

    class Action(models.TextChoices):
        CREATE_PROGRAM = 'CREATE_PROGRAM', 'Create program'
        CREATE_VERSION = 'CREATE_VERSION', 'Create version'
        UPDATE_PROGRAM = 'UPDATE_PROGRAM', 'Update program'
        UPDATE_STATUS = 'UPDATE_STATUS', 'Update status'
        COMPLETE_PROGRAM = 'COMPLETE_PROGRAM', 'Complete program'
        UPDATE_REGISTRATION = 'UPDATE_REGISTRATION', 'Update registration settings'
        ADD_PARTICIPANT = 'ADD_PARTICIPANT', 'Add participant'
        IMPORT_PARTICIPANTS = 'IMPORT_PARTICIPANTS', 'Import participants'
        REMOVE_PARTICIPANT = 'REMOVE_PARTICIPANT', 'Remove participant'
        CREATE_DEPARTMENT = 'CREATE_DEPARTMENT', 'Create department'
        DELETE_DEPARTMENT = 'DELETE_DEPARTMENT', 'Delete department'
        ASSIGN_ADMIN = 'ASSIGN_ADMIN', 'Assign department admin'
        REVOKE_ADMIN = 'REVOKE_ADMIN', 'Revoke department admin'
        MIGRATE_STAFF = 'MIGRATE_STAFF', 'Migrate staff'
        DELETE_USER = 'DELETE_USER', 'Delete user'
        SEND_BROADCAST = 'SEND_BROADCAST', 'Send broadcast'

    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='activity_logs',
        help_text='The user who performed the action'
    )
    action = models.CharField(max_length=50, choices=Action.choices)
    description = models.TextField()
    department = models.ForeignKey(
        'accounts.Department',
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='activity_logs',
        help_text='Department the action belongs to, used to scope the feed'
    )
    meta = models.JSONField(default=dict, blank=True)
    created_at = models.DateTimeField(default=timezone.now)

    class Meta:
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['-created_at'], name='audit_activ_created_7c1f0e_idx'),
            models.Index(fields=['department', '-created_at'], name='audit_activ_departm_3b9a2d_idx'),
        ]

    def __str__(self):
        who = self.user.email if self.user else 'system'
        return f"{who}: {self.action}"
