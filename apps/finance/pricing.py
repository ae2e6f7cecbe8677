"""
Fee pricing: turns the pricing catalog and the school's flat fees into the
itemized amount a student owes for one calendar month.

Nothing here writes to the database.
"""
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import date, timedelta
from decimal import Decimal, InvalidOperation
from typing import List, Optional

from django.conf import settings

from apps.configuration.models import FinancialConfiguration
from apps.core.exceptions import (
    AmbiguousPricingError,
    ConflictingServiceError,
    FeeConfigurationError,
    ValidationError,
)
from apps.core.logging import TenantAwareLogger
from apps.finance.models import ClassFeePricing, StudentMonthlyFeeItem, ZERO
from apps.transportation.models import TransportationAreaPricing

logger = TenantAwareLogger.get_logger(__name__)


def to_decimal(value, field_name='amount'):
    if value is None or value == '':
        return ZERO
    try:
        return Decimal(str(value)).quantize(Decimal('0.01'))
    except (InvalidOperation, ValueError):
        raise ValidationError(f'{field_name} must be a number.')


def academic_year_for(month, calendar_year, start_month=None):
    """
    Academic year label ("YYYY-YY") that a calendar month belongs to.
    Months from the start month (April) onwards belong to the year that
    starts that April; earlier months belong to the previous one.

    >>> academic_year_for(3, 2025)
    '2024-25'
    >>> academic_year_for(4, 2025)
    '2025-26'
    """
    start_month = start_month or getattr(settings, 'ACADEMIC_YEAR_START_MONTH', 4)
    first_year = calendar_year if month >= start_month else calendar_year - 1
    return f"{first_year}-{(first_year + 1) % 100:02d}"


def validate_period(month, calendar_year):
    try:
        month = int(month)
        calendar_year = int(calendar_year)
    except (TypeError, ValueError):
        raise ValidationError('Missing required fields: month, calendarYear')
    if month < 1 or month > 12:
        raise ValidationError('Invalid month. Must be between 1 and 12')
    if calendar_year < 1900 or calendar_year > 9999:
        raise ValidationError('Invalid calendarYear')
    return month, calendar_year


@dataclass
class FeeFlags:
    """Services requested for the fee period"""
    hostel: bool = False
    new_admission: bool = False
    transportation_area_id: Optional[str] = None
    dayboarding: bool = False
    discount: Decimal = ZERO
    discount_reason: str = ''

    @classmethod
    def from_data(cls, data):
        return cls(
            hostel=bool(data.get('hostel', False)),
            new_admission=bool(data.get('new_admission', False)),
            transportation_area_id=data.get('transportation_area_id') or None,
            dayboarding=bool(data.get('dayboarding', False)),
            discount=to_decimal(data.get('discount'), 'discount'),
            discount_reason=data.get('discount_reason') or '',
        )


@dataclass
class FeeComponent:
    fee_type: str
    label: str
    amount: Decimal
    source_id: Optional[str] = None

    def as_dict(self):
        return {
            'feeType': self.fee_type,
            'label': self.label,
            'amount': self.amount,
            'sourceId': self.source_id,
        }


@dataclass
class FeeBreakdown:
    month: int
    calendar_year: int
    academic_year: str
    components: List[FeeComponent] = field(default_factory=list)
    discount: Decimal = ZERO
    discount_reason: str = ''

    @property
    def subtotal(self):
        return sum((c.amount for c in self.components), ZERO)

    @property
    def applied_discount(self):
        return min(self.discount, self.subtotal)

    @property
    def net_amount(self):
        return max(self.subtotal - self.discount, ZERO)

    def as_dict(self):
        return {
            'month': self.month,
            'calendarYear': self.calendar_year,
            'academicYear': self.academic_year,
            'components': [c.as_dict() for c in self.components],
            'subtotal': self.subtotal,
            'discount': self.discount,
            'appliedDiscount': self.applied_discount,
            'netAmount': self.net_amount,
            'discountReason': self.discount_reason or None,
        }


class FeePricingResolver:
    """
    Resolves fee components for a (student, month, calendar year) period
    """

    @staticmethod
    def _single_per_category(rows, description):
        """
        Group effective rows by fee category. More than one active row for
        the same category on the same date is a catalog error.
        """
        grouped = defaultdict(list)
        for row in rows:
            grouped[row.fee_category_id].append(row)

        for category_id, matches in grouped.items():
            if len(matches) > 1:
                raise AmbiguousPricingError(
                    f'More than one active {description} price applies on this date.',
                    details={'pricingIds': [str(row.id) for row in matches]},
                )
        return [matches[0] for matches in grouped.values()]

    @staticmethod
    def enrollment_for(student, academic_year):
        enrollment = student.enrollments.filter(academic_year__name=academic_year).select_related(
            'school_class', 'section', 'academic_year'
        ).first()
        return enrollment or student.latest_enrollment()

    @classmethod
    def tuition_components(cls, ctx, school_class, academic_year, reference_date):
        rows = ClassFeePricing.effective_on(
            ctx.scope(ClassFeePricing.objects.filter(
                school_class=school_class,
                academic_year=academic_year,
            )),
            reference_date,
        ).select_related('fee_category')

        return [
            FeeComponent(
                fee_type=StudentMonthlyFeeItem.TUITION_FEE,
                label=row.fee_category.name,
                amount=row.amount,
                source_id=str(row.id),
            )
            for row in cls._single_per_category(rows, f'{school_class} fee')
        ]

    @classmethod
    def transport_components(cls, ctx, area_id, academic_year, reference_date):
        area = ctx.get_object(
            TransportationAreaPricing.all_objects.all(), area_id, 'Transportation area not found'
        )

        rows = TransportationAreaPricing.effective_on(
            ctx.scope(TransportationAreaPricing.objects.filter(
                area_name=area.area_name,
                academic_year=academic_year,
            )),
            reference_date,
        ).select_related('fee_category')

        return [
            FeeComponent(
                fee_type=StudentMonthlyFeeItem.TRANSPORT_FEE,
                label=f'Transport - {row.area_name}',
                amount=row.price,
                source_id=str(row.id),
            )
            for row in cls._single_per_category(rows, f'{area.area_name} transport')
        ]

    @staticmethod
    def flat_component(config, fee_type, enabled, label):
        if not enabled:
            return None
        amount = {
            StudentMonthlyFeeItem.HOSTEL_FEE: config.hostel_fee,
            StudentMonthlyFeeItem.ADMISSION_FEE: config.admission_fee,
            StudentMonthlyFeeItem.DAYBOARDING_FEE: config.dayboarding_fee,
        }[fee_type]
        if not amount or amount <= ZERO:
            raise FeeConfigurationError(
                f'Please configure {label.lower()} in School Settings first'
            )
        return FeeComponent(fee_type=fee_type, label=label, amount=amount)

    @classmethod
    def resolve_fee_components(cls, ctx, student, month, calendar_year, flags):
        """
        Compute the itemized fee for `student` for one calendar month.

        Raises ConflictingServiceError when both hostel and a transport area
        are requested, AmbiguousPricingError when the catalog has overlapping
        active rows, FeeConfigurationError when a requested flat fee is not
        configured. A component with no matching price is simply absent.
        """
        if flags.hostel and flags.transportation_area_id:
            raise ConflictingServiceError()

        month, calendar_year = validate_period(month, calendar_year)
        if flags.discount < ZERO:
            raise ValidationError('Discount cannot be negative')

        academic_year = academic_year_for(month, calendar_year)
        reference_date = date(calendar_year, month, 1)

        enrollment = cls.enrollment_for(student, academic_year)
        if enrollment is None:
            raise ValidationError('Student has no class enrollment')

        breakdown = FeeBreakdown(
            month=month,
            calendar_year=calendar_year,
            academic_year=academic_year,
            discount=flags.discount,
            discount_reason=flags.discount_reason if flags.discount > ZERO else '',
        )
        breakdown.components.extend(
            cls.tuition_components(ctx, enrollment.school_class, academic_year, reference_date)
        )

        config = FinancialConfiguration.get_for_tenant(ctx.tenant)
        hostel = cls.flat_component(config, StudentMonthlyFeeItem.HOSTEL_FEE, flags.hostel, 'Hostel fee')
        if hostel:
            breakdown.components.append(hostel)

        if flags.transportation_area_id:
            breakdown.components.extend(
                cls.transport_components(ctx, flags.transportation_area_id, academic_year, reference_date)
            )

        for fee_type, enabled, label in (
            (StudentMonthlyFeeItem.ADMISSION_FEE, flags.new_admission, 'Admission fee'),
            (StudentMonthlyFeeItem.DAYBOARDING_FEE, flags.dayboarding, 'Dayboarding fee'),
        ):
            component = cls.flat_component(config, fee_type, enabled, label)
            if component:
                breakdown.components.append(component)

        logger.debug(
            "Resolved %s fee components for student %s %02d/%s: subtotal=%s net=%s",
            len(breakdown.components), student.pk, month, calendar_year,
            breakdown.subtotal, breakdown.net_amount, extra=ctx.log_extra,
        )
        return breakdown


def academic_year_bounds(academic_year, start_month=None):
    """First and last day of an academic year label such as '2025-26'"""
    start_month = start_month or getattr(settings, 'ACADEMIC_YEAR_START_MONTH', 4)
    try:
        first_year = int(str(academic_year).split('-')[0])
    except (TypeError, ValueError):
        raise ValidationError('Academic year must look like 2025-26')
    start = date(first_year, start_month, 1)
    end = date(first_year + 1, start_month, 1) - timedelta(days=1)
    return start, end
