from django.db import models
from django.utils import timezone
import uuid


class AuditAction(models.TextChoices):
    CREATE = 'CREATE', 'Create'
    UPDATE = 'UPDATE', 'Update'
    DELETE = 'DELETE', 'Delete'
    RECALCULATE = 'RECALCULATE', 'Recalculate'
    BACKUP_CREATED = 'BACKUP_CREATED', 'Backup created'
    BACKUP_RESTORE_STARTED = 'BACKUP_RESTORE_STARTED', 'Backup restore started'
    BACKUP_RESTORE_COMPLETED = 'BACKUP_RESTORE_COMPLETED', 'Backup restore completed'


class AuditLog(models.Model):
    """Append-only record of a change to the ledger."""

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    user = models.ForeignKey(
        'accounts.User',
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='audit_logs'
    )
    action = models.CharField(max_length=40, choices=AuditAction.choices)
    entity_type = models.CharField(max_length=50)
    entity_id = models.CharField(max_length=64)

    old_values = models.JSONField(null=True, blank=True)
    new_values = models.JSONField(null=True, blank=True)
    metadata = models.JSONField(default=dict, blank=True)

    timestamp = models.DateTimeField(default=timezone.now, db_index=True)

    class Meta:
        db_table = 'audit_logs'
        indexes = [
            models.Index(fields=['entity_type', 'entity_id'], name='audit_entity_idx'),
            models.Index(fields=['user', 'timestamp'], name='audit_user_ts_idx'),
        ]
        ordering = ['-timestamp']

    def __str__(self):
        return f"{self.action} {self.entity_type}:{self.entity_id}"
