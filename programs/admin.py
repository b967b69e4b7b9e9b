from django.contrib import admin

from .models import Program, FormField, Participant, RosterEntry, ProgramUpdate


class FormFieldInline(admin.TabularInline):
    model = FormField
    extra = 1
    ordering = ['order']


class RosterEntryInline(admin.TabularInline):
    model = RosterEntry
    extra = 0
    fields = ['position', 'participant', 'legacy_email', 'entry_kind', 'created_at']
    readonly_fields = ['entry_kind', 'created_at']
    raw_id_fields = ['participant']
    ordering = ['position']

    def entry_kind(self, obj):
        return obj.kind if obj.pk else '-'
    entry_kind.short_description = 'Kind'


class ProgramUpdateInline(admin.TabularInline):
    model = ProgramUpdate
    extra = 0
    fields = ['user', 'text', 'date']
    readonly_fields = ['date']


@admin.register(Program)
class ProgramAdmin(admin.ModelAdmin):
    list_display = [
        'display_name', 'program_type', 'structure', 'series_kind', 'status',
        'department', 'date', 'registration_status', 'roster_size'
    ]
    list_filter = ['status', 'structure', 'program_type', 'department', 'registration_open']
    search_fields = ['name', 'custom_suffix', 'venue', 'link_slug']
    readonly_fields = ['series_kind', 'link_slug', 'approved_at', 'created_at', 'updated_at']
    raw_id_fields = ['parent_program']
    inlines = [FormFieldInline, RosterEntryInline, ProgramUpdateInline]
    date_hierarchy = 'created_at'

    def registration_status(self, obj):
        return "Open" if obj.is_registration_open else "Closed"
    registration_status.short_description = 'Registration'

    def roster_size(self, obj):
        return obj.participants.count()
    roster_size.short_description = 'Participants'

    def get_readonly_fields(self, request, obj=None):
        # Status goes through the transition guard, structure is fixed once saved
        readonly = list(super().get_readonly_fields(request, obj))
        if obj is not None:
            readonly += ['status', 'structure']
        return readonly

    fieldsets = (
        ('Program Details', {
            'fields': ('name', 'program_type', 'structure', 'series_kind', 'status', 'department', 'created_by')
        }),
        ('Series', {
            'fields': ('parent_program', 'batch_number', 'custom_suffix', 'version_label'),
            'classes': ('collapse',)
        }),
        ('Schedule & Budget', {
            'fields': ('description', 'course_title', 'frequency', 'date', 'venue',
                       'cost', 'amount_disbursed', 'participants_count', 'startups_count')
        }),
        ('Documents', {
            'fields': ('flyer', 'proposal', 'final_document', 'drive_link'),
            'classes': ('collapse',)
        }),
        ('Registration', {
            'fields': ('registration_open', 'registration_deadline', 'link_slug')
        }),
        ('Completion', {
            'fields': ('actual_attendance', 'actual_start', 'actual_end'),
            'classes': ('collapse',)
        }),
        ('Timestamps', {
            'fields': ('approved_at', 'created_at', 'updated_at'),
            'classes': ('collapse',)
        })
    )


@admin.register(Participant)
class ParticipantAdmin(admin.ModelAdmin):
    list_display = ['full_name', 'email', 'phone', 'gender', 'age_group', 'state', 'created_at']
    list_filter = ['gender', 'age_group', 'state']
    search_fields = ['full_name', 'email', 'phone', 'organization']
    readonly_fields = ['created_at']
