from django.contrib import admin
from django_tenants.admin import TenantAdminMixin
from .models import Tenant, Domain


@admin.register(Tenant)
class TenantAdmin(TenantAdminMixin, admin.ModelAdmin):
    list_display = ('name', 'schema_name', 'status', 'is_active', 'created_at')
    list_filter = ('status', 'is_active')
    search_fields = ('name', 'schema_name', 'contact_email')
    readonly_fields = ('created_at', 'updated_at')

    fieldsets = (
        ('School Info', {
            'fields': ('name', 'display_name', 'slug', 'contact_email')
        }),
        ('Technical Info', {
            'fields': ('schema_name',)
        }),
        ('Status', {
            'fields': ('status', 'is_active')
        }),
    )

    def get_readonly_fields(self, request, obj=None):
        if obj:
            return self.readonly_fields + ('schema_name',)
        return self.readonly_fields


@admin.register(Domain)
class DomainAdmin(admin.ModelAdmin):
    list_display = ('domain', 'tenant', 'is_primary')
    list_filter = ('is_primary',)
    search_fields = ('domain', 'tenant__name')
