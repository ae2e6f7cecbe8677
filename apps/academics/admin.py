from django.contrib import admin

from apps.core.cache import query_cache
from apps.core.utils.tenant import TenantContext

from .models import AcademicYear, SchoolClass, Section, Holiday, StudentAttendance


@admin.register(AcademicYear)
class AcademicYearAdmin(admin.ModelAdmin):
    list_display = ('name', 'tenant', 'start_date', 'end_date', 'is_current', 'is_active')
    list_filter = ('is_current', 'is_active')
    search_fields = ('name',)


@admin.register(SchoolClass)
class SchoolClassAdmin(admin.ModelAdmin):
    list_display = ('name', 'tenant', 'order', 'is_active')
    list_filter = ('is_active',)
    search_fields = ('name',)


@admin.register(Section)
class SectionAdmin(admin.ModelAdmin):
    list_display = ('name', 'class_name', 'is_active')
    list_filter = ('class_name', 'is_active')
    search_fields = ('name',)


class CacheInvalidatingAdmin(admin.ModelAdmin):
    """
    Admin edits go through the same query cache invalidation as the API.
    Deletes stay soft, including bulk deletes from the changelist.
    """
    invalidates = None

    def _invalidate(self, request, tenants):
        for tenant in tenants:
            query_cache.invalidate(TenantContext(tenant=tenant, user=request.user), self.invalidates)

    def save_model(self, request, obj, form, change):
        super().save_model(request, obj, form, change)
        self._invalidate(request, [obj.tenant])

    def delete_model(self, request, obj):
        obj.delete(user=request.user)
        self._invalidate(request, [obj.tenant])

    def delete_queryset(self, request, queryset):
        tenants = {}
        for obj in queryset.select_related('tenant'):
            obj.delete(user=request.user)
            tenants[obj.tenant_id] = obj.tenant
        self._invalidate(request, tenants.values())


@admin.register(Holiday)
class HolidayAdmin(CacheInvalidatingAdmin):
    list_display = ('name', 'tenant', 'start_date', 'end_date', 'duration_days')
    list_filter = ('start_date',)
    search_fields = ('name', 'reason')
    date_hierarchy = 'start_date'
    invalidates = 'holiday.change'


@admin.register(StudentAttendance)
class StudentAttendanceAdmin(CacheInvalidatingAdmin):
    list_display = ('student', 'date', 'status', 'marked_by', 'academic_year')
    list_filter = ('status', 'date')
    search_fields = ('student__first_name', 'student__last_name', 'student__admission_number')
    date_hierarchy = 'date'
    raw_id_fields = ('student', 'marked_by')
    invalidates = 'attendance.update'
