import copy

from rest_framework import serializers
from django.utils.translation import gettext_lazy as _

from apps.core.exceptions import ConflictError, ValidationError
from .models import (
    FeeCategory, ClassFeePricing, StudentMonthlyFee, StudentMonthlyFeeItem,
    IncomingPayment, ExpenseCategory, Expense
)


class TenantScopedSerializerMixin:
    """Limits related-object choices to the caller's school"""

    scoped_fields = ()

    def get_fields(self):
        fields = super().get_fields()
        ctx = self.context.get('ctx')
        if ctx is not None:
            for name in self.scoped_fields:
                field = fields.get(name)
                if field is not None and getattr(field, 'queryset', None) is not None:
                    field.queryset = ctx.scope(field.queryset)
        return fields


class PricingWindowSerializerMixin(TenantScopedSerializerMixin):
    """
    Rejects a catalog row whose effective window overlaps another active
    row for the same key and academic year.
    """

    def validate(self, attrs):
        attrs = super().validate(attrs)
        ctx = self.context.get('ctx')
        if ctx is None:
            return attrs

        candidate = copy.copy(self.instance) if self.instance else self.Meta.model()
        for name, value in attrs.items():
            setattr(candidate, name, value)
        candidate.tenant = ctx.tenant

        if candidate.effective_from and candidate.effective_to and candidate.effective_to < candidate.effective_from:
            raise ValidationError('Effective end date cannot be before the start date')

        clashes = candidate.overlapping_rows()
        if clashes.exists():
            raise ConflictError(
                'Another active price already covers part of this period.',
                details={'conflictingIds': [str(pk) for pk in clashes.values_list('pk', flat=True)]},
            )
        return attrs


class FeeCategorySerializer(serializers.ModelSerializer):
    pricing_type_display = serializers.CharField(source='get_pricing_type_display', read_only=True)
    fee_type_display = serializers.CharField(source='get_fee_type_display', read_only=True)

    class Meta:
        model = FeeCategory
        fields = [
            'id', 'name', 'description', 'pricing_type', 'pricing_type_display',
            'fixed_amount', 'fee_type', 'fee_type_display', 'is_mandatory',
            'is_refundable', 'display_order', 'is_active', 'created_at', 'updated_at'
        ]
        read_only_fields = ['is_active', 'created_at', 'updated_at']

    def validate_name(self, value):
        ctx = self.context.get('ctx')
        if ctx is not None:
            clash = ctx.scope(FeeCategory.all_objects.filter(name__iexact=value))
            if self.instance:
                clash = clash.exclude(pk=self.instance.pk)
            if clash.exists():
                raise serializers.ValidationError(_('A fee category with this name already exists'))
        return value


class ClassFeePricingSerializer(PricingWindowSerializerMixin, serializers.ModelSerializer):
    scoped_fields = ('school_class', 'fee_category')

    class_name = serializers.CharField(source='school_class.name', read_only=True)
    fee_category_name = serializers.CharField(source='fee_category.name', read_only=True)

    class Meta:
        model = ClassFeePricing
        fields = [
            'id', 'school_class', 'class_name', 'fee_category', 'fee_category_name',
            'amount', 'academic_year', 'effective_from', 'effective_to',
            'is_active', 'created_at', 'updated_at'
        ]
        read_only_fields = ['is_active', 'created_at', 'updated_at']

    def validate_fee_category(self, value):
        if value.pricing_type != FeeCategory.PRICING_CLASS_BASED:
            raise serializers.ValidationError(_('Class pricing requires a class-based fee category'))
        return value


class FeeFlagsSerializer(serializers.Serializer):
    """Service flags of a fee request, accepted in camelCase"""
    hostel = serializers.BooleanField(required=False, default=False)
    newAdmission = serializers.BooleanField(required=False, default=False, source='new_admission')
    transportationAreaId = serializers.UUIDField(
        required=False, allow_null=True, default=None, source='transportation_area_id'
    )
    dayboarding = serializers.BooleanField(required=False, default=False)
    discount = serializers.DecimalField(max_digits=10, decimal_places=2, required=False, default=0)
    discountReason = serializers.CharField(
        required=False, allow_blank=True, allow_null=True, default='', source='discount_reason'
    )

    def validate(self, attrs):
        if attrs.get('transportation_area_id') is not None:
            attrs['transportation_area_id'] = str(attrs['transportation_area_id'])
        return attrs


class FeeRequestSerializer(FeeFlagsSerializer):
    studentId = serializers.UUIDField(source='student_id', required=False)
    month = serializers.IntegerField()
    calendarYear = serializers.IntegerField(source='calendar_year')


class StudentMonthlyFeeItemSerializer(serializers.ModelSerializer):
    feeType = serializers.CharField(source='fee_type')

    class Meta:
        model = StudentMonthlyFeeItem
        fields = ['id', 'feeType', 'label', 'amount']


class StudentMonthlyFeeSerializer(serializers.ModelSerializer):
    studentId = serializers.UUIDField(source='student_id', read_only=True)
    studentName = serializers.CharField(source='student.full_name', read_only=True)
    academicYear = serializers.CharField(source='academic_year', read_only=True)
    calendarYear = serializers.IntegerField(source='calendar_year', read_only=True)
    totalConfiguredAmount = serializers.DecimalField(
        source='total_configured_amount', max_digits=10, decimal_places=2, read_only=True
    )
    totalAdjustment = serializers.DecimalField(
        source='total_adjustment', max_digits=10, decimal_places=2, read_only=True
    )
    totalPayableAmount = serializers.DecimalField(
        source='total_payable_amount', max_digits=10, decimal_places=2, read_only=True
    )
    paidAmount = serializers.DecimalField(source='total_paid', max_digits=10, decimal_places=2, read_only=True)
    dueAmount = serializers.DecimalField(source='due_amount', max_digits=10, decimal_places=2, read_only=True)
    discountReason = serializers.CharField(source='discount_reason', read_only=True)
    newAdmission = serializers.BooleanField(source='new_admission', read_only=True)
    transportationAreaId = serializers.UUIDField(source='transportation_area_id', read_only=True)
    generatedAt = serializers.DateTimeField(source='generated_at', read_only=True)
    lastEditedAt = serializers.DateTimeField(source='last_edited_at', read_only=True)
    items = StudentMonthlyFeeItemSerializer(many=True, read_only=True)

    class Meta:
        model = StudentMonthlyFee
        fields = [
            'id', 'studentId', 'studentName', 'academicYear', 'month', 'calendarYear',
            'totalConfiguredAmount', 'totalAdjustment', 'totalPayableAmount',
            'paidAmount', 'dueAmount', 'status', 'discountReason', 'hostel',
            'newAdmission', 'dayboarding', 'transportationAreaId', 'generatedAt',
            'lastEditedAt', 'items'
        ]


class PaymentCreateSerializer(serializers.Serializer):
    studentId = serializers.UUIDField(source='student_id', required=False)
    monthlyFeeId = serializers.UUIDField(source='monthly_fee_id')
    amountPaid = serializers.DecimalField(source='amount_paid', max_digits=10, decimal_places=2)
    paymentMode = serializers.CharField(source='payment_mode')
    paymentDate = serializers.DateField(source='payment_date', required=False)
    referenceNumber = serializers.CharField(
        source='reference_number', required=False, allow_blank=True, default=''
    )
    remarks = serializers.CharField(required=False, allow_blank=True, default='')


class IncomingPaymentSerializer(serializers.ModelSerializer):
    paymentNumber = serializers.CharField(source='payment_number', read_only=True)
    studentId = serializers.UUIDField(source='student_id', read_only=True)
    studentName = serializers.CharField(source='student.full_name', read_only=True)
    monthlyFeeId = serializers.UUIDField(source='monthly_fee_id', read_only=True)
    amountPaid = serializers.DecimalField(source='amount_paid', max_digits=10, decimal_places=2, read_only=True)
    paymentDate = serializers.DateField(source='payment_date', read_only=True)
    paymentMode = serializers.CharField(source='payment_mode', read_only=True)
    referenceNumber = serializers.CharField(source='reference_number', read_only=True)
    receivedBy = serializers.SerializerMethodField()
    verifiedBy = serializers.SerializerMethodField()
    verifiedAt = serializers.DateTimeField(source='verified_at', read_only=True)

    class Meta:
        model = IncomingPayment
        fields = [
            'id', 'paymentNumber', 'studentId', 'studentName', 'monthlyFeeId',
            'amountPaid', 'paymentDate', 'paymentMode', 'referenceNumber', 'remarks',
            'receivedBy', 'verified', 'verifiedBy', 'verifiedAt'
        ]

    def get_receivedBy(self, obj):
        return obj.received_by.display_name if obj.received_by else None

    def get_verifiedBy(self, obj):
        return obj.verified_by.display_name if obj.verified_by else None


class ExpenseCategorySerializer(serializers.ModelSerializer):
    class Meta:
        model = ExpenseCategory
        fields = ['id', 'name', 'description', 'is_active', 'created_at', 'updated_at']
        read_only_fields = ['is_active', 'created_at', 'updated_at']


class ExpenseSerializer(TenantScopedSerializerMixin, serializers.ModelSerializer):
    scoped_fields = ('category',)

    category_name = serializers.CharField(source='category.name', read_only=True)
    recorded_by_name = serializers.CharField(source='recorded_by.display_name', read_only=True, default=None)
    is_system_generated = serializers.BooleanField(read_only=True)

    class Meta:
        model = Expense
        fields = [
            'id', 'name', 'amount', 'category', 'category_name', 'expense_date',
            'notes', 'recorded_by_name', 'is_vendor_payment', 'is_payslip_payment',
            'is_system_generated', 'created_at', 'updated_at'
        ]
        read_only_fields = ['is_vendor_payment', 'is_payslip_payment', 'created_at', 'updated_at']
