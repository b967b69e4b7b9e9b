from django.contrib import admin
from .models import BroadcastLog


@admin.register(BroadcastLog)
class BroadcastLogAdmin(admin.ModelAdmin):
    list_display = ['subject', 'sender', 'audience_type', 'recipient_count', 'status', 'created_at']
    list_filter = ['audience_type', 'status', 'created_at']
    search_fields = ['subject', 'message', 'sender__email']
    readonly_fields = ['sender', 'audience_type', 'target_programs', 'recipient_count', 'status', 'created_at']
    date_hierarchy = 'created_at'

    fieldsets = (
        ('Message', {
            'fields': ('subject', 'message')
        }),
        ('Audience', {
            'fields': ('sender', 'audience_type', 'target_programs', 'recipient_count')
        }),
        ('Delivery', {
            'fields': ('status', 'created_at'),
            'classes': ('collapse',)
        }),
    )

    def has_add_permission(self, request):
        return False
