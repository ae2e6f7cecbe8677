from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import SAFE_METHODS
from django.utils import timezone

from apps.core.cache import query_cache
from apps.core.exceptions import ValidationError
from apps.core.pagination import clean_page_params, paginate_queryset
from apps.core.permissions import IsFinanceStaff
from apps.core.responses import success_response, created_response
from apps.core.utils.tenant import TenantContext
from apps.core.views import TenantModelViewSet
from apps.students.models import Student
from .filters import (
    FeeCategoryFilter, ClassFeePricingFilter, StudentMonthlyFeeFilter,
    ExpenseCategoryFilter, ExpenseFilter
)
from .models import FeeCategory, ClassFeePricing, StudentMonthlyFee, ExpenseCategory, Expense
from .pricing import FeeFlags, FeePricingResolver
from .serializers import (
    FeeCategorySerializer, ClassFeePricingSerializer,
    FeeRequestSerializer, StudentMonthlyFeeSerializer, PaymentCreateSerializer,
    IncomingPaymentSerializer, ExpenseCategorySerializer, ExpenseSerializer
)
from .services import FeeGenerationService, PaymentWorkflow, FinanceReportService


# ==================== CATALOG ====================

class FeeCategoryViewSet(TenantModelViewSet):
    model = FeeCategory
    serializer_class = FeeCategorySerializer
    filterset_class = FeeCategoryFilter


class ClassFeePricingViewSet(TenantModelViewSet):
    model = ClassFeePricing
    serializer_class = ClassFeePricingSerializer
    filterset_class = ClassFeePricingFilter

    def get_queryset(self):
        return super().get_queryset().select_related('school_class', 'fee_category')


# ==================== MONTHLY FEES ====================

def _fee_request(request, require_student=True):
    serializer = FeeRequestSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    data = serializer.validated_data
    if require_student and not data.get('student_id'):
        raise ValidationError('studentId is required')
    return data, FeeFlags.from_data(data)


@api_view(['GET'])
@permission_classes([IsFinanceStaff])
def monthly_fee_list_view(request):
    ctx = TenantContext.from_request(request)
    page, limit = clean_page_params(request.query_params.get('page'), request.query_params.get('limit'))
    params = request.query_params
    filterset = StudentMonthlyFeeFilter(
        data={
            key: value for key, value in {
                'student': params.get('studentId'),
                'month': params.get('month'),
                'calendar_year': params.get('calendarYear'),
                'academic_year': params.get('academicYear'),
                'status': params.get('status'),
            }.items() if value
        },
        queryset=ctx.scope(StudentMonthlyFee.objects.all()).select_related('student').prefetch_related('items'),
    )
    if not filterset.is_valid():
        raise ValidationError('Invalid fee filters', details=filterset.errors)
    fees, pagination = paginate_queryset(filterset.qs, page, limit)
    return success_response({
        'fees': StudentMonthlyFeeSerializer(fees, many=True).data,
        'pagination': pagination,
    })


@api_view(['POST'])
@permission_classes([IsFinanceStaff])
def resolve_fee_view(request):
    """
    Preview the fee breakdown for a student and month without saving it
    """
    ctx = TenantContext.from_request(request)
    data, flags = _fee_request(request)
    student = ctx.get_object(Student.objects.all(), data['student_id'], 'Student not found')
    breakdown = FeePricingResolver.resolve_fee_components(
        ctx, student, data['month'], data['calendar_year'], flags
    )
    return success_response(breakdown.as_dict(), 'Fee calculated successfully')


@api_view(['POST'])
@permission_classes([IsFinanceStaff])
def generate_fee_view(request):
    ctx = TenantContext.from_request(request)
    data, flags = _fee_request(request)
    fee = FeeGenerationService.generate_monthly_fee(
        ctx, data['student_id'], data['month'], data['calendar_year'], flags
    )
    return created_response(StudentMonthlyFeeSerializer(fee).data, 'Monthly fee generated successfully')


@api_view(['PUT'])
@permission_classes([IsFinanceStaff])
def regenerate_fee_view(request, fee_id):
    ctx = TenantContext.from_request(request)
    data, flags = _fee_request(request, require_student=False)
    fee = FeeGenerationService.regenerate_monthly_fee(ctx, fee_id, data['month'], data['calendar_year'], flags)
    return success_response(StudentMonthlyFeeSerializer(fee).data, 'Monthly fee regenerated successfully')


@api_view(['GET'])
@permission_classes([IsFinanceStaff])
def monthly_fee_detail_view(request, fee_id):
    ctx = TenantContext.from_request(request)
    fee = ctx.get_object(StudentMonthlyFee.objects.prefetch_related('items'), fee_id, 'Monthly fee not found')
    return success_response(StudentMonthlyFeeSerializer(fee).data)


@api_view(['GET'])
@permission_classes([IsFinanceStaff])
def fee_timeline_view(request, student_id):
    data = FeeGenerationService.fee_timeline(TenantContext.from_request(request), student_id)
    return success_response(data, 'Fee timeline retrieved successfully')


@api_view(['GET'])
@permission_classes([IsFinanceStaff])
def fee_dashboard_view(request):
    data = FeeGenerationService.fee_dashboard(TenantContext.from_request(request))
    return success_response(data, 'Fee dashboard retrieved successfully')


@api_view(['GET'])
@permission_classes([IsFinanceStaff])
def fee_dues_view(request):
    data = FeeGenerationService.students_with_dues(
        TenantContext.from_request(request),
        request.query_params.get('month'),
        request.query_params.get('calendarYear'),
    )
    return success_response(data, 'Students with dues retrieved successfully')


# ==================== PAYMENTS ====================

@api_view(['GET', 'POST'])
@permission_classes([IsFinanceStaff])
def payments_view(request):
    """
    GET lists payments with filters, POST records a new (unverified) payment
    """
    ctx = TenantContext.from_request(request)

    if request.method in SAFE_METHODS:
        params = request.query_params
        page, limit = clean_page_params(params.get('page'), params.get('limit'))
        result = PaymentWorkflow.list_payments(ctx, {
            'from_date': params.get('fromDate'),
            'to_date': params.get('toDate'),
            'payment_mode': params.get('paymentMode'),
            'verified': params.get('verified'),
            'student': params.get('studentId'),
            'monthly_fee': params.get('monthlyFeeId'),
        }, page, limit)
        return success_response({
            'payments': IncomingPaymentSerializer(result['payments'], many=True).data,
            'pagination': result['pagination'],
        }, 'Payments retrieved successfully')

    serializer = PaymentCreateSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    payment = PaymentWorkflow.record_payment(ctx, **serializer.validated_data)
    return created_response(IncomingPaymentSerializer(payment).data, 'Payment recorded successfully')


@api_view(['PUT', 'POST'])
@permission_classes([IsFinanceStaff])
def verify_payment_view(request, payment_id):
    payment = PaymentWorkflow.verify_payment(TenantContext.from_request(request), payment_id)
    return success_response(IncomingPaymentSerializer(payment).data, 'Payment verified successfully')


@api_view(['GET'])
@permission_classes([IsFinanceStaff])
def payment_summary_view(request):
    data = PaymentWorkflow.payment_summary(
        TenantContext.from_request(request),
        from_date=request.query_params.get('fromDate'),
        to_date=request.query_params.get('toDate'),
    )
    return success_response(data, 'Payment summary retrieved successfully')


# ==================== EXPENSES ====================

class ExpenseCategoryViewSet(TenantModelViewSet):
    model = ExpenseCategory
    serializer_class = ExpenseCategorySerializer
    filterset_class = ExpenseCategoryFilter


class ExpenseViewSet(TenantModelViewSet):
    """
    Expenses. Rows created by vendor or payslip payments cannot be edited
    or deleted here.
    """
    model = Expense
    serializer_class = ExpenseSerializer
    filterset_class = ExpenseFilter

    def get_queryset(self):
        return super().get_queryset().select_related('category', 'recorded_by')

    def _ensure_editable(self, instance):
        if instance.is_system_generated:
            raise ValidationError('System generated expenses cannot be modified')

    def perform_create(self, serializer):
        ctx = self.get_tenant_context()
        serializer.save(tenant=ctx.tenant, created_by=ctx.acting_user, recorded_by=ctx.acting_user)
        query_cache.invalidate(ctx, 'expenses.change')

    def perform_update(self, serializer):
        self._ensure_editable(serializer.instance)
        super().perform_update(serializer)
        query_cache.invalidate(self.get_tenant_context(), 'expenses.change')

    def perform_destroy(self, instance):
        self._ensure_editable(instance)
        super().perform_destroy(instance)
        query_cache.invalidate(self.get_tenant_context(), 'expenses.change')


@api_view(['GET'])
@permission_classes([IsFinanceStaff])
def income_expense_report_view(request):
    ctx = TenantContext.from_request(request)
    year = request.query_params.get('year') or timezone.localdate().year
    data = FinanceReportService.income_expense_report(ctx, year)
    return success_response(data, 'Income and expense report retrieved successfully')