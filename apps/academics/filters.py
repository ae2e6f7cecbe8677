import django_filters

from .models import Holiday


class HolidayFilter(django_filters.FilterSet):
    """Holidays touching the `from_date`..`to_date` range, either end optional"""
    from_date = django_filters.DateFilter(field_name='end_date', lookup_expr='gte')
    to_date = django_filters.DateFilter(field_name='start_date', lookup_expr='lte')

    class Meta:
        model = Holiday
        fields = ['from_date', 'to_date']
