from rest_framework import serializers

from apps.core.exceptions import ValidationError
from .models import Holiday


class HolidaySerializer(serializers.ModelSerializer):
    duration_days = serializers.IntegerField(read_only=True)
    created_by_name = serializers.CharField(source='created_by.display_name', read_only=True, default=None)

    class Meta:
        model = Holiday
        fields = [
            'id', 'name', 'start_date', 'end_date', 'duration_days', 'reason',
            'created_by_name', 'is_active', 'created_at', 'updated_at'
        ]
        read_only_fields = ['is_active', 'created_at', 'updated_at']

    def validate_name(self, value):
        return value.strip()

    def validate(self, attrs):
        start = attrs.get('start_date', getattr(self.instance, 'start_date', None))
        end = attrs.get('end_date', getattr(self.instance, 'end_date', None))
        if start and end and end < start:
            raise ValidationError('End date must be equal to or after start date')

        ctx = self.context.get('ctx')
        if ctx is not None and start and end:
            clashes = Holiday.objects.overlapping(ctx.tenant, start, end)
            if self.instance is not None:
                clashes = clashes.exclude(pk=self.instance.pk)
            if clashes.exists():
                raise ValidationError(
                    'Holiday overlaps with an existing holiday',
                    details={'conflictingIds': [str(pk) for pk in clashes.values_list('pk', flat=True)]},
                )
        return attrs
