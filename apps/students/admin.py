from django.contrib import admin
from django.utils.translation import gettext_lazy as _

from .models import Student, StudentEnrollment


class StudentEnrollmentInline(admin.TabularInline):
    model = StudentEnrollment
    fk_name = 'student'
    extra = 0
    fields = ('academic_year', 'school_class', 'section', 'roll_number')


@admin.register(Student)
class StudentAdmin(admin.ModelAdmin):
    list_display = ('admission_number', 'full_name', 'tenant', 'admission_date', 'hostel', 'is_active')
    list_filter = ('is_active', 'hostel', 'dayboarding')
    search_fields = ('admission_number', 'first_name', 'last_name')
    inlines = [StudentEnrollmentInline]

    fieldsets = (
        (_('Basic Information'), {
            'fields': ('admission_number', 'first_name', 'last_name', 'admission_date')
        }),
        (_('Services'), {
            'fields': ('hostel', 'dayboarding', 'transportation_area')
        }),
    )


@admin.register(StudentEnrollment)
class StudentEnrollmentAdmin(admin.ModelAdmin):
    list_display = ('student', 'academic_year', 'school_class', 'section', 'roll_number')
    list_filter = ('academic_year', 'school_class')
    search_fields = ('student__first_name', 'student__admission_number')
