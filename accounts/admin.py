from django.contrib import admin
from django.contrib.auth.admin import UserAdmin as BaseUserAdmin

from .models import User, Department


@admin.register(User)
class UserAdmin(BaseUserAdmin):
    ordering = ['email']
    list_display = ['email', 'first_name', 'last_name', 'position', 'status', 'role_list', 'is_superuser']
    list_filter = ['status', 'groups', 'departments', 'is_superuser']
    search_fields = ['email', 'first_name', 'last_name']
    filter_horizontal = ['groups', 'user_permissions', 'departments']

    fieldsets = (
        (None, {'fields': ('email', 'password')}),
        ('Profile', {'fields': ('first_name', 'last_name', 'position', 'phone', 'gender', 'status')}),
        ('Roles & Departments', {'fields': ('groups', 'departments')}),
        ('Permissions', {
            'fields': ('is_active', 'is_staff', 'is_superuser', 'user_permissions'),
            'classes': ('collapse',)
        }),
        ('Important dates', {'fields': ('last_login', 'date_joined')}),
    )
    add_fieldsets = (
        (None, {
            'classes': ('wide',),
            'fields': ('email', 'password1', 'password2'),
        }),
    )

    def role_list(self, obj):
        return ", ".join(obj.get_role_names())
    role_list.short_description = 'Roles'


@admin.register(Department)
class DepartmentAdmin(admin.ModelAdmin):
    list_display = ['name', 'admin', 'staff_count', 'program_count', 'created_at']
    search_fields = ['name', 'description']
    raw_id_fields = ['admin']

    def staff_count(self, obj):
        return obj.staff.count()
    staff_count.short_description = 'Staff'

    def program_count(self, obj):
        return obj.programs.count()
    program_count.short_description = 'Programs'
