from rest_framework import serializers

from apps.finance.models import FeeCategory
from apps.finance.serializers import PricingWindowSerializerMixin
from .models import TransportationAreaPricing


class TransportationAreaPricingSerializer(PricingWindowSerializerMixin, serializers.ModelSerializer):
    scoped_fields = ('fee_category',)

    fee_category_name = serializers.CharField(source='fee_category.name', read_only=True, default=None)

    class Meta:
        model = TransportationAreaPricing
        fields = [
            'id', 'area_name', 'fee_category', 'fee_category_name', 'price',
            'academic_year', 'effective_from', 'effective_to', 'description',
            'display_order', 'is_active', 'created_at', 'updated_at'
        ]
        read_only_fields = ['is_active', 'created_at', 'updated_at']

    def validate_fee_category(self, value):
        if value is not None and value.pricing_type != FeeCategory.PRICING_AREA_BASED:
            raise serializers.ValidationError('Area pricing requires an area-based fee category')
        return value

    def validate_area_name(self, value):
        return value.strip()


class CopyPricingSerializer(serializers.Serializer):
    fromYear = serializers.RegexField(r'^\d{4}-\d{2}$', source='from_year')
    toYear = serializers.RegexField(r'^\d{4}-\d{2}$', source='to_year')
    areaNames = serializers.ListField(
        child=serializers.CharField(), required=False, default=list, source='area_names'
    )
