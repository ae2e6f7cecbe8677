from django.contrib import admin
from django.utils.translation import gettext_lazy as _

from .models import AuditLog


class ReadOnlyAdmin(admin.ModelAdmin):
    """Prevent accidental edits"""
    actions = None

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False


@admin.register(AuditLog)
class AuditLogAdmin(ReadOnlyAdmin):
    list_display = (
        'timestamp',
        'action',
        'status',
        'user_email',
        'user_role',
        'resource_type',
        'resource_id',
    )
    list_filter = ('action', 'status', 'resource_type', 'timestamp')
    search_fields = ('user_email', 'resource_type', 'resource_id', 'tenant_id')
    ordering = ('-timestamp',)
    readonly_fields = [field.name for field in AuditLog._meta.fields]

    fieldsets = (
        (_("Basic Info"), {
            "fields": ('timestamp', 'action', 'severity', 'status')
        }),
        (_("User"), {
            "fields": ('user_id', 'user_email', 'user_role')
        }),
        (_("Resource"), {
            "fields": ('resource_type', 'resource_id', 'resource_name', 'tenant_id')
        }),
        (_("State"), {
            "classes": ('collapse',),
            "fields": ('previous_state', 'new_state', 'extra_data')
        }),
    )
