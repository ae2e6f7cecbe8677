from django.db import transaction
from django.db.models import Avg

from apps.core.exceptions import NotFoundError, ValidationError
from apps.core.logging import TenantAwareLogger
from apps.finance.pricing import academic_year_bounds

from .models import TransportationAreaPricing

logger = TenantAwareLogger.get_logger(__name__)


class TransportationPricingService:
    """
    Bulk maintenance of the transport area price list
    """

    @staticmethod
    def copy_pricing_to_year(ctx, from_year, to_year, area_names=None):
        """
        Copy the active area prices of one academic year into another.
        Areas already priced in the target year are left untouched. Copied
        rows cover the whole target year.
        """
        if not from_year or not to_year:
            raise ValidationError('fromYear and toYear are required')
        if from_year == to_year:
            raise ValidationError('Source and destination academic years cannot be the same')
        start, end = academic_year_bounds(to_year)

        source = ctx.scope(TransportationAreaPricing.objects.filter(academic_year=from_year))
        if area_names:
            source = source.filter(area_name__in=area_names)
        source = list(source.order_by('display_order', 'area_name', '-effective_from'))
        if not source:
            raise NotFoundError('No pricing records found for the specified criteria')

        already_priced = set(
            ctx.scope(TransportationAreaPricing.objects.filter(academic_year=to_year)).values_list(
                'area_name', 'fee_category_id'
            )
        )

        copied = []
        with transaction.atomic():
            for pricing in source:
                key = (pricing.area_name, pricing.fee_category_id)
                if key in already_priced:
                    continue
                copied.append(TransportationAreaPricing.objects.create(
                    tenant=ctx.tenant,
                    area_name=pricing.area_name,
                    fee_category_id=pricing.fee_category_id,
                    price=pricing.price,
                    academic_year=to_year,
                    effective_from=start,
                    effective_to=end,
                    description=pricing.description,
                    display_order=pricing.display_order,
                    created_by=ctx.acting_user,
                ))
                already_priced.add(key)

        logger.info(
            "Copied %s transport prices from %s to %s", len(copied), from_year, to_year, extra=ctx.log_extra
        )
        return {'copiedCount': len(copied), 'fromYear': from_year, 'toYear': to_year}

    @staticmethod
    def pricing_stats(ctx, academic_year=None):
        everything = ctx.scope(TransportationAreaPricing.all_objects.all())
        queryset = everything.filter(academic_year=academic_year) if academic_year else everything
        average = queryset.aggregate(avg=Avg('price'))['avg']
        return {
            'totalRecords': queryset.count(),
            'activeRecords': queryset.filter(is_active=True).count(),
            'uniqueAreas': queryset.values('area_name').distinct().count(),
            'averagePrice': round(float(average or 0), 2),
            'academicYears': list(
                everything.order_by('-academic_year').values_list('academic_year', flat=True).distinct()
            ),
        }
