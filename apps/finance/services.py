import calendar
from decimal import Decimal
from typing import Dict, List, Optional

from django.db import transaction, IntegrityError
from django.db.models import Count, DecimalField, Sum, Value
from django.db.models.functions import Coalesce, ExtractMonth
from django.utils import timezone

from apps.configuration.models import FinancialConfiguration
from apps.core.cache import query_cache, TenantQueryCache
from apps.core.exceptions import (
    DuplicateFeeError,
    InvalidPaymentModeError,
    ValidationError,
)
from apps.core.logging import TenantAwareLogger
from apps.core.models import AuditLog
from apps.core.pagination import paginate_queryset
from apps.core.services.audit_service import AuditService
from apps.core.utils import retry_on_storage_error
from apps.students.models import Student

from .filters import PaymentFilter
from .models import (
    StudentMonthlyFee, StudentMonthlyFeeItem, IncomingPayment, Expense, ZERO
)
from .pricing import FeePricingResolver, to_decimal, validate_period

logger = TenantAwareLogger.get_logger(__name__)

MONEY = DecimalField(max_digits=14, decimal_places=2)


def month_label(month, calendar_year):
    return f"{calendar.month_name[month].upper()} {calendar_year}"


def next_month(month, calendar_year):
    if month == 12:
        return 1, calendar_year + 1
    return month + 1, calendar_year


def previous_month(month, calendar_year):
    if month == 1:
        return 12, calendar_year - 1
    return month - 1, calendar_year


class FeeGenerationService:
    """
    Persists resolved fee breakdowns as StudentMonthlyFee rows and builds
    the read models over them.
    """

    @staticmethod
    def _active_student(ctx, student_id):
        student = ctx.get_object(Student.all_objects.all(), student_id, 'Student not found')
        if not student.is_active:
            raise ValidationError('Cannot generate fee for student who has left school')
        return student

    @staticmethod
    def _apply_breakdown(fee, breakdown, flags):
        fee.academic_year = breakdown.academic_year
        fee.total_configured_amount = breakdown.subtotal
        fee.total_adjustment = breakdown.applied_discount
        fee.total_payable_amount = breakdown.net_amount
        fee.discount_reason = breakdown.discount_reason
        fee.hostel = flags.hostel
        fee.new_admission = flags.new_admission
        fee.dayboarding = flags.dayboarding
        fee.transportation_area_id = flags.transportation_area_id
        fee.status = (
            StudentMonthlyFee.STATUS_PAID if breakdown.net_amount == ZERO
            else StudentMonthlyFee.STATUS_UNPAID
        )

    @staticmethod
    def _create_items(ctx, fee, breakdown):
        for component in breakdown.components:
            StudentMonthlyFeeItem.objects.create(
                tenant=ctx.tenant,
                monthly_fee=fee,
                fee_type=component.fee_type,
                label=component.label,
                amount=component.amount,
                source_id=component.source_id or '',
                created_by=ctx.acting_user,
            )

    @classmethod
    def generate_monthly_fee(cls, ctx, student_id, month, calendar_year, flags):
        """
        Resolve and store the fee for one student and calendar month.

        Raises:
            DuplicateFeeError: a fee already exists for the period
            ValidationError: inactive student, bad input or nothing to charge
        """
        month, calendar_year = validate_period(month, calendar_year)
        student = cls._active_student(ctx, student_id)

        if StudentMonthlyFee.all_objects.filter(
            student=student, month=month, calendar_year=calendar_year
        ).exists():
            raise DuplicateFeeError(f'Monthly fee already generated for {month}/{calendar_year}')

        breakdown = FeePricingResolver.resolve_fee_components(ctx, student, month, calendar_year, flags)
        if not breakdown.components:
            raise ValidationError('No fee items could be calculated')

        fee = StudentMonthlyFee(
            tenant=ctx.tenant,
            student=student,
            month=month,
            calendar_year=calendar_year,
            generated_by=ctx.acting_user,
            created_by=ctx.acting_user,
        )
        cls._apply_breakdown(fee, breakdown, flags)

        try:
            with transaction.atomic():
                fee.save()
                cls._create_items(ctx, fee, breakdown)
        except IntegrityError:
            raise DuplicateFeeError(f'Monthly fee already generated for {month}/{calendar_year}')

        AuditService.create_audit_entry(
            action=AuditLog.AuditAction.GENERATE,
            resource_type='StudentMonthlyFee',
            ctx=ctx,
            instance=fee,
            new_state=fee.to_audit_dict(),
        )
        query_cache.invalidate(ctx, 'fees.generate')
        logger.info(
            "Generated fee %s for student %s %02d/%s: payable=%s",
            fee.short_id, student.admission_number, month, calendar_year,
            fee.total_payable_amount, extra=ctx.log_extra,
        )
        return fee

    @classmethod
    def regenerate_monthly_fee(cls, ctx, fee_id, month, calendar_year, flags):
        """
        Recompute an existing fee that has not received any payment
        """
        month, calendar_year = validate_period(month, calendar_year)
        fee = ctx.get_object(StudentMonthlyFee.objects.all(), fee_id, 'Monthly fee not found')

        if fee.month != month or fee.calendar_year != calendar_year:
            raise ValidationError('Month/year in request does not match existing fee')
        if IncomingPayment.all_objects.filter(monthly_fee=fee).exists():
            raise ValidationError('Cannot regenerate fee that has received payments')

        student = cls._active_student(ctx, fee.student_id)
        breakdown = FeePricingResolver.resolve_fee_components(ctx, student, month, calendar_year, flags)
        if not breakdown.components:
            raise ValidationError('No fee items could be calculated')

        previous_state = fee.to_audit_dict()
        with transaction.atomic():
            StudentMonthlyFeeItem.all_objects.filter(monthly_fee=fee).delete()
            cls._apply_breakdown(fee, breakdown, flags)
            fee.last_edited_by = ctx.acting_user
            fee.last_edited_at = timezone.now()
            fee.updated_by = ctx.acting_user
            fee.save()
            cls._create_items(ctx, fee, breakdown)

        AuditService.create_audit_entry(
            action=AuditLog.AuditAction.UPDATE,
            resource_type='StudentMonthlyFee',
            ctx=ctx,
            instance=fee,
            previous_state=previous_state,
            new_state=fee.to_audit_dict(),
            extra_data={'operation': 'regenerate'},
        )
        query_cache.invalidate(ctx, 'fees.generate')
        logger.info("Regenerated fee %s: payable=%s", fee.short_id, fee.total_payable_amount, extra=ctx.log_extra)
        return fee

    @staticmethod
    def _fee_entry(fee):
        payments = list(fee.payments.all())
        paid = sum((p.amount_paid for p in payments), ZERO)
        return {
            'feeId': str(fee.id),
            'status': fee.status.lower(),
            'academicYear': fee.academic_year,
            'totalConfiguredAmount': fee.total_configured_amount,
            'totalAdjustment': fee.total_adjustment,
            'totalPayableAmount': fee.total_payable_amount,
            'discountReason': fee.discount_reason or None,
            'paidAmount': paid,
            'dueAmount': max(fee.total_payable_amount - paid, ZERO),
            'feeItems': [
                {'feeType': item.fee_type, 'label': item.label, 'amount': item.amount}
                for item in fee.items.all()
            ],
            'payments': [
                {
                    'id': str(p.id),
                    'paymentNumber': p.payment_number,
                    'amountPaid': p.amount_paid,
                    'paymentDate': p.payment_date,
                    'paymentMode': p.payment_mode,
                    'verified': p.verified,
                    'receivedBy': p.received_by.display_name if p.received_by else None,
                }
                for p in payments
            ],
        }

    @classmethod
    def fee_timeline(cls, ctx, student_id):
        """
        Month by month view of a student's fees, from the admission month to
        the month after the last generated fee. Months without a fee are
        reported as 'not_generated'.
        """
        student = ctx.get_object(Student.all_objects.all(), student_id, 'Student not found')
        fees = {
            (fee.calendar_year, fee.month): fee
            for fee in ctx.scope(StudentMonthlyFee.objects.filter(student=student)).prefetch_related(
                'items', 'payments__received_by'
            )
        }

        start = (student.admission_date.year, student.admission_date.month)
        if fees:
            start = min(start, min(fees))
            last_year, last_month = max(fees)
            end_month, end_year = next_month(last_month, last_year)
            end = (end_year, end_month)
        else:
            end = start

        timeline = []
        year, month = start
        while (year, month) <= end:
            entry = {
                'month': month,
                'calendarYear': year,
                'monthLabel': month_label(month, year),
            }
            fee = fees.get((year, month))
            if fee is None:
                entry.update({'status': 'not_generated', 'feeId': None})
            else:
                entry.update(cls._fee_entry(fee))
            timeline.append(entry)
            month, year = next_month(month, year)

        return {
            'student': {
                'id': str(student.id),
                'admissionNumber': student.admission_number,
                'name': student.full_name,
                'admissionDate': student.admission_date,
                'isActive': student.is_active,
            },
            'timeline': timeline,
        }

    @staticmethod
    def fee_dashboard(ctx, today=None):
        """
        Generated, collected and due totals for the last 12 months, newest first
        """
        today = today or timezone.localdate()

        def build():
            rows = []
            month, year = today.month, today.year
            for _ in range(12):
                fees = ctx.scope(StudentMonthlyFee.objects.filter(month=month, calendar_year=year))
                generated = fees.aggregate(
                    total=Coalesce(Sum('total_payable_amount'), Value(ZERO), output_field=MONEY)
                )['total']
                collected = ctx.scope(IncomingPayment.objects.filter(monthly_fee__in=fees)).aggregate(
                    total=Coalesce(Sum('amount_paid'), Value(ZERO), output_field=MONEY)
                )['total']
                rows.append({
                    'month': month,
                    'calendarYear': year,
                    'monthLabel': month_label(month, year),
                    'feeCount': fees.count(),
                    'totalGenerated': generated,
                    'totalCollected': collected,
                    'totalDue': max(generated - collected, ZERO),
                })
                month, year = previous_month(month, year)
            return rows

        return query_cache.get_or_set(
            ctx, TenantQueryCache.FEE_DASHBOARD, {'month': today.month, 'year': today.year}, build
        )

    @staticmethod
    def students_with_dues(ctx, month, calendar_year, today=None):
        """
        Generated fees for a past or current month that still have money due
        """
        if month in (None, '') or calendar_year in (None, ''):
            raise ValidationError('Missing required fields: month, calendarYear')
        month, calendar_year = validate_period(month, calendar_year)

        today = today or timezone.localdate()
        if (calendar_year, month) > (today.year, today.month):
            raise ValidationError('Cannot query future months. Only past or present months are allowed')

        fees = ctx.scope(StudentMonthlyFee.objects.filter(
            month=month, calendar_year=calendar_year, student__is_active=True,
        )).select_related('student').annotate(
            paid=Coalesce(Sum('payments__amount_paid'), Value(ZERO), output_field=MONEY)
        ).order_by('student__first_name', 'student__last_name')

        results = []
        for fee in fees:
            due = fee.total_payable_amount - fee.paid
            if due <= ZERO:
                continue
            enrollment = FeePricingResolver.enrollment_for(fee.student, fee.academic_year)
            results.append({
                'feeId': str(fee.id),
                'student': {
                    'id': str(fee.student.id),
                    'admissionNumber': fee.student.admission_number,
                    'name': fee.student.full_name,
                },
                'class': str(enrollment.school_class) if enrollment else None,
                'section': enrollment.section.name if enrollment else None,
                'totalPayableAmount': fee.total_payable_amount,
                'paidAmount': fee.paid,
                'dueAmount': due,
                'status': fee.status.lower(),
            })
        return results


class PaymentWorkflow:
    """
    Records payments against generated fees and verifies them.

    A payment moves once from unverified to verified and never back.
    Only verified payments count as income in reports.
    """

    @staticmethod
    def record_payment(ctx, monthly_fee_id, amount_paid, payment_mode, student_id=None,
                       reference_number='', remarks='', payment_date=None):
        if not payment_mode:
            raise ValidationError('Payment mode is required')
        amount = to_decimal(amount_paid, 'amountPaid')
        if amount <= ZERO:
            raise ValidationError('Amount paid must be greater than zero')

        config = FinancialConfiguration.get_for_tenant(ctx.tenant)
        if not config.accepts_payment_mode(payment_mode):
            raise InvalidPaymentModeError(
                f"Payment mode '{payment_mode}' is not enabled for this school",
                details={'allowedModes': config.payment_modes},
            )

        with transaction.atomic():
            fee = ctx.get_object(
                StudentMonthlyFee.objects.select_for_update(), monthly_fee_id, 'Monthly fee not found'
            )
            if student_id and str(fee.student_id) != str(student_id):
                raise ValidationError('Monthly fee does not belong to this student')

            due = fee.due_amount
            if amount > due:
                raise ValidationError(
                    f'Amount paid cannot exceed due amount of {config.currency_symbol}{due}',
                    details={'dueAmount': str(due)},
                )

            payment = IncomingPayment(
                tenant=ctx.tenant,
                student_id=fee.student_id,
                monthly_fee=fee,
                amount_paid=amount,
                payment_mode=payment_mode,
                reference_number=reference_number or '',
                remarks=remarks or '',
                received_by=ctx.acting_user,
                created_by=ctx.acting_user,
            )
            if payment_date:
                payment.payment_date = payment_date
            payment.save()
            fee.refresh_status()

        AuditService.create_audit_entry(
            action=AuditLog.AuditAction.CREATE,
            resource_type='IncomingPayment',
            ctx=ctx,
            instance=payment,
            new_state=payment.to_audit_dict(),
        )
        query_cache.invalidate(ctx, 'payments.record')
        logger.info(
            "Recorded payment %s of %s (%s) against fee %s, fee status %s",
            payment.payment_number, amount, payment_mode, fee.short_id, fee.status,
            extra=ctx.log_extra,
        )
        return payment

    @staticmethod
    @retry_on_storage_error
    def verify_payment(ctx, payment_id):
        """
        Mark a payment verified. Verifying an already verified payment
        returns it unchanged.

        The transition is a conditional update guarded by verified=False,
        so concurrent verifies settle on one winner and no one errors.
        """
        ctx.require_elevated()

        with transaction.atomic():
            payment = ctx.get_object(
                IncomingPayment.objects.select_for_update(), payment_id, 'Payment not found'
            )
            if payment.verified:
                logger.info("Payment %s already verified", payment.payment_number, extra=ctx.log_extra)
                return payment

            now = timezone.now()
            updated = IncomingPayment.objects.filter(pk=payment.pk, verified=False).update(
                verified=True,
                verified_by=ctx.acting_user,
                verified_at=now,
                updated_by=ctx.acting_user,
                updated_at=now,
            )
            payment.refresh_from_db()

        if updated:
            AuditService.create_audit_entry(
                action=AuditLog.AuditAction.VERIFY,
                resource_type='IncomingPayment',
                ctx=ctx,
                instance=payment,
                previous_state={'verified': False},
                new_state={'verified': True, 'verified_at': now.isoformat()},
            )
            query_cache.invalidate(ctx, 'payments.verify')
            logger.info("Verified payment %s", payment.payment_number, extra=ctx.log_extra)
        return payment

    @staticmethod
    def list_payments(ctx, filters: Optional[Dict] = None, page=1, limit=20):
        """
        Filtered, paginated payments. Totals describe the filtered set.
        """
        queryset = ctx.scope(IncomingPayment.objects.all()).select_related(
            'student', 'monthly_fee', 'received_by', 'verified_by'
        )
        filters = {key: value for key, value in (filters or {}).items() if value not in (None, '')}
        filterset = PaymentFilter(data=filters, queryset=queryset)
        if not filterset.is_valid():
            raise ValidationError('Invalid payment filters', details=filterset.errors)

        payments, pagination = paginate_queryset(filterset.qs, page, limit)
        return {'payments': payments, 'pagination': pagination}

    @staticmethod
    def payment_summary(ctx, from_date=None, to_date=None):
        """
        Verified and unverified totals, overall and per payment mode
        """
        def build():
            queryset = ctx.scope(IncomingPayment.objects.all())
            if from_date:
                queryset = queryset.filter(payment_date__gte=from_date)
            if to_date:
                queryset = queryset.filter(payment_date__lte=to_date)

            by_mode = {}
            summary = {
                'verifiedTotal': ZERO,
                'unverifiedTotal': ZERO,
                'verifiedCount': 0,
                'unverifiedCount': 0,
            }
            rows = queryset.values('payment_mode', 'verified').annotate(
                total=Sum('amount_paid'), count=Count('id')
            ).order_by('payment_mode')
            for row in rows:
                state = 'verified' if row['verified'] else 'unverified'
                mode = by_mode.setdefault(row['payment_mode'], {
                    'paymentMode': row['payment_mode'],
                    'verifiedTotal': ZERO,
                    'unverifiedTotal': ZERO,
                    'count': 0,
                })
                mode[f'{state}Total'] += row['total']
                mode['count'] += row['count']
                summary[f'{state}Total'] += row['total']
                summary[f'{state}Count'] += row['count']

            summary['byMode'] = list(by_mode.values())
            return summary

        params = {'from': str(from_date or ''), 'to': str(to_date or '')}
        return query_cache.get_or_set(ctx, TenantQueryCache.PAYMENT_SUMMARY, params, build)


class FinanceReportService:
    """
    Reports over verified income and recorded expenses
    """

    @staticmethod
    def _monthly_totals(queryset, date_field, amount_field) -> Dict[int, Decimal]:
        rows = queryset.annotate(m=ExtractMonth(date_field)).values('m').annotate(
            total=Sum(amount_field)
        ).order_by('m')
        return {row['m']: row['total'] or ZERO for row in rows}

    @classmethod
    def income_expense_report(cls, ctx, year):
        try:
            year = int(year)
        except (TypeError, ValueError):
            raise ValidationError('year must be a number')

        def build():
            income = cls._monthly_totals(
                ctx.scope(IncomingPayment.objects.filter(verified=True, payment_date__year=year)),
                'payment_date', 'amount_paid',
            )
            expenses = cls._monthly_totals(
                ctx.scope(Expense.objects.filter(expense_date__year=year)),
                'expense_date', 'amount',
            )
            months: List[Dict] = []
            for month in range(1, 13):
                month_income = income.get(month, ZERO)
                month_expenses = expenses.get(month, ZERO)
                months.append({
                    'month': month,
                    'monthLabel': month_label(month, year),
                    'income': month_income,
                    'expenses': month_expenses,
                    'net': month_income - month_expenses,
                })
            total_income = sum((m['income'] for m in months), ZERO)
            total_expenses = sum((m['expenses'] for m in months), ZERO)
            return {
                'year': year,
                'months': months,
                'totalIncome': total_income,
                'totalExpenses': total_expenses,
                'net': total_income - total_expenses,
            }

        return query_cache.get_or_set(ctx, TenantQueryCache.INCOME_EXPENSE_REPORT, {'year': year}, build)
