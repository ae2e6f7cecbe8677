from rest_framework.decorators import action

from apps.core.permissions import IsSchoolAdmin
from apps.core.responses import success_response, created_response
from apps.core.views import TenantModelViewSet
from .models import TransportationAreaPricing
from .serializers import TransportationAreaPricingSerializer, CopyPricingSerializer
from .services import TransportationPricingService


class TransportationAreaPricingViewSet(TenantModelViewSet):
    """
    Transport area price list. Any school member may read; administrators
    maintain it.
    """
    model = TransportationAreaPricing
    serializer_class = TransportationAreaPricingSerializer
    filterset_fields = ['academic_year', 'area_name', 'fee_category']

    def get_queryset(self):
        return super().get_queryset().select_related('fee_category')

    @action(detail=False, methods=['post'], url_path='copy-to-year', permission_classes=[IsSchoolAdmin])
    def copy_to_year(self, request):
        serializer = CopyPricingSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        result = TransportationPricingService.copy_pricing_to_year(
            self.get_tenant_context(), **serializer.validated_data
        )
        return created_response(result, f"Successfully copied {result['copiedCount']} pricing records")

    @action(detail=False, methods=['get'])
    def stats(self, request):
        result = TransportationPricingService.pricing_stats(
            self.get_tenant_context(), request.query_params.get('academicYear')
        )
        return success_response(result)
