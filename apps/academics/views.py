from django.utils.dateparse import parse_date
from rest_framework.decorators import action

from apps.core.cache import query_cache
from apps.core.exceptions import InvalidDateError
from apps.core.responses import success_response
from apps.core.views import TenantModelViewSet
from .filters import HolidayFilter
from .models import Holiday, is_weekly_off
from .serializers import HolidaySerializer


class HolidayViewSet(TenantModelViewSet):
    """
    School holiday calendar. Any school member may read; administrators
    maintain it. Every change drops the cached attendance stats.
    """
    model = Holiday
    serializer_class = HolidaySerializer
    filterset_class = HolidayFilter

    def get_queryset(self):
        return super().get_queryset().select_related('created_by')

    def perform_create(self, serializer):
        super().perform_create(serializer)
        query_cache.invalidate(self.get_tenant_context(), 'holiday.change')

    def perform_update(self, serializer):
        super().perform_update(serializer)
        query_cache.invalidate(self.get_tenant_context(), 'holiday.change')

    def perform_destroy(self, instance):
        super().perform_destroy(instance)
        query_cache.invalidate(self.get_tenant_context(), 'holiday.change')

    @action(detail=False, methods=['get'], url_path=r'check/(?P<on_date>[^/]+)')
    def check(self, request, on_date=None):
        try:
            parsed = parse_date(on_date)
        except ValueError:
            parsed = None
        if parsed is None:
            raise InvalidDateError('Invalid date format. Use YYYY-MM-DD')

        holiday = Holiday.objects.on_date(self.get_tenant_context().tenant, parsed).first()
        data = {
            'date': parsed,
            'isHoliday': holiday is not None,
            'isWeeklyOff': is_weekly_off(parsed),
            'holiday': HolidaySerializer(holiday).data if holiday else None,
        }
        return success_response(data, 'Date is a holiday' if holiday else 'Date is not a holiday')
