import django_filters

from .models import (
    FeeCategory, ClassFeePricing, StudentMonthlyFee, IncomingPayment,
    ExpenseCategory, Expense
)


class FeeCategoryFilter(django_filters.FilterSet):
    name = django_filters.CharFilter(lookup_expr='icontains', label='Category Name')
    pricing_type = django_filters.ChoiceFilter(choices=FeeCategory.PRICING_TYPE_CHOICES)
    fee_type = django_filters.ChoiceFilter(choices=FeeCategory.FEE_TYPE_CHOICES)

    class Meta:
        model = FeeCategory
        fields = ['name', 'pricing_type', 'fee_type', 'is_mandatory']


class ClassFeePricingFilter(django_filters.FilterSet):
    academic_year = django_filters.CharFilter(label='Academic Year')
    school_class = django_filters.UUIDFilter(field_name='school_class_id', label='Class')
    fee_category = django_filters.UUIDFilter(field_name='fee_category_id', label='Fee Category')
    effective_on = django_filters.DateFilter(method='filter_effective_on', label='Effective On')

    class Meta:
        model = ClassFeePricing
        fields = ['academic_year', 'school_class', 'fee_category']

    def filter_effective_on(self, queryset, name, value):
        return ClassFeePricing.effective_on(queryset, value)


class StudentMonthlyFeeFilter(django_filters.FilterSet):
    student = django_filters.UUIDFilter(field_name='student_id', label='Student')
    month = django_filters.NumberFilter()
    calendar_year = django_filters.NumberFilter()
    academic_year = django_filters.CharFilter()
    status = django_filters.ChoiceFilter(choices=StudentMonthlyFee.STATUS_CHOICES)

    class Meta:
        model = StudentMonthlyFee
        fields = ['student', 'month', 'calendar_year', 'academic_year', 'status']


class PaymentFilter(django_filters.FilterSet):
    from_date = django_filters.DateFilter(
        field_name='payment_date',
        lookup_expr='gte',
        label='From Date'
    )
    to_date = django_filters.DateFilter(
        field_name='payment_date',
        lookup_expr='lte',
        label='To Date'
    )
    payment_mode = django_filters.CharFilter(lookup_expr='iexact', label='Payment Mode')
    verified = django_filters.BooleanFilter(label='Verified')
    student = django_filters.UUIDFilter(field_name='student_id', label='Student')
    monthly_fee = django_filters.UUIDFilter(field_name='monthly_fee_id', label='Monthly Fee')

    class Meta:
        model = IncomingPayment
        fields = ['from_date', 'to_date', 'payment_mode', 'verified', 'student', 'monthly_fee']


class ExpenseCategoryFilter(django_filters.FilterSet):
    name = django_filters.CharFilter(lookup_expr='icontains')

    class Meta:
        model = ExpenseCategory
        fields = ['name']


class ExpenseFilter(django_filters.FilterSet):
    from_date = django_filters.DateFilter(field_name='expense_date', lookup_expr='gte', label='From Date')
    to_date = django_filters.DateFilter(field_name='expense_date', lookup_expr='lte', label='To Date')
    category = django_filters.UUIDFilter(field_name='category_id', label='Category')
    name = django_filters.CharFilter(lookup_expr='icontains')

    class Meta:
        model = Expense
        fields = ['from_date', 'to_date', 'category', 'name', 'is_vendor_payment', 'is_payslip_payment']
