from django.contrib import admin
from .models import AuditLog


@admin.register(AuditLog)
class AuditLogAdmin(admin.ModelAdmin):
    """Read-only view of the audit trail."""

    list_display = ['timestamp', 'action', 'entity_type', 'entity_id', 'user']
    list_filter = ['action', 'entity_type', 'timestamp']
    search_fields = ['entity_id', 'user__email']
    date_hierarchy = 'timestamp'
    readonly_fields = [
        'id', 'user', 'action', 'entity_type', 'entity_id',
        'old_values', 'new_values', 'metadata', 'timestamp',
    ]

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False
