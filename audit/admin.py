from django.contrib import admin
from .models import ActivityLog


@admin.register(ActivityLog)
class ActivityLogAdmin(admin.ModelAdmin):
    """Admin interface for viewing the activity log."""
    list_display = ['created_at', 'user', 'action', 'department', 'description']
    list_filter = ['action', 'department', 'created_at']
    search_fields = ['user__email', 'description']
    readonly_fields = ['user', 'action', 'description', 'department', 'meta', 'created_at']
    date_hierarchy = 'created_at'

    def has_add_permission(self, request):
        """Prevent manual creation of activity logs."""
        return False

    def has_delete_permission(self, request, obj=None):
        """Prevent deletion of audit logs."""
        return False
