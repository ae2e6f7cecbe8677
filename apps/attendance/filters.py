import django_filters

from apps.academics.models import StudentAttendance


class AttendanceFilter(django_filters.FilterSet):
    """
    Attendance records by date, student, class and section. Class and
    section are matched through the student's enrollment; when `date` is
    given, only the enrollment whose academic year covers it counts.
    """
    date = django_filters.DateFilter(field_name='date')
    student = django_filters.UUIDFilter(field_name='student_id', label='Student')
    school_class = django_filters.UUIDFilter(method='filter_noop', label='Class')
    section = django_filters.UUIDFilter(method='filter_noop', label='Section')
    status = django_filters.ChoiceFilter(choices=StudentAttendance.ATTENDANCE_STATUS)

    class Meta:
        model = StudentAttendance
        fields = ['date', 'student', 'school_class', 'section', 'status']

    def filter_noop(self, queryset, name, value):
        # applied together in filter_queryset so both hit the same enrollment
        return queryset

    def filter_queryset(self, queryset):
        queryset = super().filter_queryset(queryset)
        data = self.form.cleaned_data
        lookup = {}
        if data.get('school_class'):
            lookup['student__enrollments__school_class_id'] = data['school_class']
        if data.get('section'):
            lookup['student__enrollments__section_id'] = data['section']
        if not lookup:
            return queryset

        if data.get('date'):
            lookup['student__enrollments__academic_year__start_date__lte'] = data['date']
            lookup['student__enrollments__academic_year__end_date__gte'] = data['date']
        return queryset.filter(**lookup).distinct()
