from decimal import Decimal

from django.db import models
from django.db.models import Q, Sum
from django.conf import settings
from django.core.validators import MinValueValidator, MaxValueValidator
from django.core.exceptions import ValidationError
from django.utils import timezone
from django.utils.translation import gettext_lazy as _

from apps.core.models import BaseModel
from apps.academics.models import academic_year_validator

ZERO = Decimal('0.00')


class PricingWindowModel(BaseModel):
    """
    Catalog price that applies for one academic year between
    effective_from and effective_to (inclusive; open ended when empty).

    Subclasses name the fields that identify what is priced in
    `pricing_key_fields`. Two active rows with the same key and academic
    year must not have overlapping windows.
    """
    academic_year = models.CharField(
        max_length=7,
        validators=[academic_year_validator],
        db_index=True,
        verbose_name=_("Academic Year")
    )
    effective_from = models.DateField(verbose_name=_("Effective From"))
    effective_to = models.DateField(
        null=True,
        blank=True,
        verbose_name=_("Effective To"),
        help_text=_("Leave empty for no end date")
    )

    pricing_key_fields = ()

    class Meta:
        abstract = True

    def clean(self):
        super().clean()
        if self.effective_from and self.effective_to and self.effective_to < self.effective_from:
            raise ValidationError({'effective_to': _('Effective end date cannot be before the start date')})

    def covers(self, on_date):
        return self.effective_from <= on_date and (self.effective_to is None or on_date <= self.effective_to)

    @classmethod
    def effective_on(cls, queryset, on_date):
        return queryset.filter(effective_from__lte=on_date).filter(
            Q(effective_to__isnull=True) | Q(effective_to__gte=on_date)
        )

    def overlapping_rows(self):
        """Other active rows for the same key and year whose window intersects this one"""
        lookup = {field: getattr(self, field) for field in self.pricing_key_fields}
        queryset = type(self).objects.for_tenant(self.tenant).filter(
            academic_year=self.academic_year, **lookup
        ).filter(
            Q(effective_to__isnull=True) | Q(effective_to__gte=self.effective_from)
        )
        if self.effective_to is not None:
            queryset = queryset.filter(effective_from__lte=self.effective_to)
        if self.pk:
            queryset = queryset.exclude(pk=self.pk)
        return queryset


class FeeCategory(BaseModel):
    """
    Kind of fee a school charges (tuition, transport, exam...)
    """
    PRICING_FIXED = "FIXED"
    PRICING_CLASS_BASED = "CLASS_BASED"
    PRICING_AREA_BASED = "AREA_BASED"

    PRICING_TYPE_CHOICES = (
        (PRICING_FIXED, _("Fixed")),
        (PRICING_CLASS_BASED, _("Class-based")),
        (PRICING_AREA_BASED, _("Area-based")),
    )

    FEE_TYPE_CHOICES = (
        ("ONE_TIME", _("One-time")),
        ("ANNUAL", _("Annual")),
        ("MONTHLY", _("Monthly")),
        ("QUARTERLY", _("Quarterly")),
    )

    name = models.CharField(max_length=100, verbose_name=_("Category Name"))
    description = models.TextField(blank=True, verbose_name=_("Description"))
    pricing_type = models.CharField(
        max_length=20,
        choices=PRICING_TYPE_CHOICES,
        default=PRICING_FIXED,
        verbose_name=_("Pricing Type")
    )
    fixed_amount = models.DecimalField(
        max_digits=10,
        decimal_places=2,
        default=ZERO,
        validators=[MinValueValidator(Decimal('0'))],
        verbose_name=_("Fixed Amount")
    )
    fee_type = models.CharField(
        max_length=20,
        choices=FEE_TYPE_CHOICES,
        default="MONTHLY",
        verbose_name=_("Fee Type")
    )
    is_mandatory = models.BooleanField(default=True, verbose_name=_("Is Mandatory"))
    is_refundable = models.BooleanField(default=False, verbose_name=_("Is Refundable"))
    display_order = models.PositiveIntegerField(default=0, verbose_name=_("Display Order"))

    class Meta:
        db_table = "finance_fee_categories"
        verbose_name = _("Fee Category")
        verbose_name_plural = _("Fee Categories")
        ordering = ["display_order", "name"]
        unique_together = [['tenant', 'name']]

    def __str__(self):
        return self.name

    def save(self, *args, **kwargs):
        # Only fixed categories carry an amount of their own
        if self.pricing_type != self.PRICING_FIXED:
            self.fixed_amount = ZERO
        super().save(*args, **kwargs)


class ClassFeePricing(PricingWindowModel):
    """
    Price of a fee category for one class in one academic year
    """
    school_class = models.ForeignKey(
        "academics.SchoolClass",
        on_delete=models.CASCADE,
        related_name="fee_pricings",
        verbose_name=_("Class")
    )
    fee_category = models.ForeignKey(
        FeeCategory,
        on_delete=models.PROTECT,
        related_name="class_pricings",
        verbose_name=_("Fee Category")
    )
    amount = models.DecimalField(
        max_digits=10,
        decimal_places=2,
        validators=[MinValueValidator(Decimal('0'))],
        verbose_name=_("Amount")
    )

    pricing_key_fields = ('school_class', 'fee_category')

    class Meta:
        db_table = "finance_class_fee_pricing"
        verbose_name = _("Class Fee Pricing")
        verbose_name_plural = _("Class Fee Pricing")
        ordering = ["school_class__order", "fee_category__display_order", "-effective_from"]
        indexes = [
            models.Index(fields=['tenant', 'school_class', 'academic_year']),
        ]

    def __str__(self):
        return f"{self.school_class} - {self.fee_category} ({self.academic_year}): {self.amount}"


class StudentMonthlyFee(BaseModel):
    """
    Fee generated for one student for one calendar month
    """
    STATUS_UNPAID = "UNPAID"
    STATUS_PARTIAL = "PARTIAL"
    STATUS_PAID = "PAID"

    STATUS_CHOICES = (
        (STATUS_UNPAID, _("Unpaid")),
        (STATUS_PARTIAL, _("Partially Paid")),
        (STATUS_PAID, _("Paid")),
    )

    student = models.ForeignKey(
        "students.Student",
        on_delete=models.CASCADE,
        related_name="monthly_fees",
        verbose_name=_("Student")
    )
    academic_year = models.CharField(
        max_length=7,
        validators=[academic_year_validator],
        verbose_name=_("Academic Year")
    )
    month = models.PositiveSmallIntegerField(
        validators=[MinValueValidator(1), MaxValueValidator(12)],
        verbose_name=_("Month")
    )
    calendar_year = models.PositiveIntegerField(verbose_name=_("Calendar Year"))

    total_configured_amount = models.DecimalField(
        max_digits=10, decimal_places=2, default=ZERO,
        verbose_name=_("Configured Amount")
    )
    total_adjustment = models.DecimalField(
        max_digits=10, decimal_places=2, default=ZERO,
        verbose_name=_("Discount")
    )
    total_payable_amount = models.DecimalField(
        max_digits=10, decimal_places=2, default=ZERO,
        verbose_name=_("Payable Amount")
    )
    status = models.CharField(
        max_length=10,
        choices=STATUS_CHOICES,
        default=STATUS_UNPAID,
        db_index=True,
        verbose_name=_("Status")
    )
    discount_reason = models.CharField(max_length=255, blank=True, verbose_name=_("Discount Reason"))

    # Services the fee was generated with
    hostel = models.BooleanField(default=False, verbose_name=_("Hostel"))
    new_admission = models.BooleanField(default=False, verbose_name=_("New Admission"))
    dayboarding = models.BooleanField(default=False, verbose_name=_("Dayboarding"))
    transportation_area = models.ForeignKey(
        "transportation.TransportationAreaPricing",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="monthly_fees",
        verbose_name=_("Transportation Area")
    )

    generated_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="generated_fees",
        verbose_name=_("Generated By")
    )
    generated_at = models.DateTimeField(default=timezone.now, verbose_name=_("Generated At"))
    last_edited_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="edited_fees",
        verbose_name=_("Last Edited By")
    )
    last_edited_at = models.DateTimeField(null=True, blank=True, verbose_name=_("Last Edited At"))

    class Meta:
        db_table = "finance_student_monthly_fees"
        verbose_name = _("Student Monthly Fee")
        verbose_name_plural = _("Student Monthly Fees")
        ordering = ["-calendar_year", "-month"]
        constraints = [
            models.UniqueConstraint(
                fields=['student', 'month', 'calendar_year'],
                name='unique_fee_per_student_month',
            ),
        ]
        indexes = [
            models.Index(fields=['tenant', 'calendar_year', 'month']),
            models.Index(fields=['tenant', 'status']),
        ]

    def __str__(self):
        return f"{self.student} - {self.month:02d}/{self.calendar_year}"

    @property
    def total_paid(self):
        return self.payments.aggregate(total=Sum('amount_paid'))['total'] or ZERO

    @property
    def due_amount(self):
        return max(self.total_payable_amount - self.total_paid, ZERO)

    def status_for(self, paid):
        if paid >= self.total_payable_amount:
            return self.STATUS_PAID
        if paid > ZERO:
            return self.STATUS_PARTIAL
        return self.STATUS_UNPAID

    def refresh_status(self, save=True):
        self.status = self.status_for(self.total_paid)
        if save:
            self.save(update_fields=['status', 'updated_at'])
        return self.status


class StudentMonthlyFeeItem(BaseModel):
    """
    One priced component of a generated monthly fee
    """
    TUITION_FEE = "TUITION_FEE"
    HOSTEL_FEE = "HOSTEL_FEE"
    TRANSPORT_FEE = "TRANSPORT_FEE"
    ADMISSION_FEE = "ADMISSION_FEE"
    DAYBOARDING_FEE = "DAYBOARDING_FEE"

    FEE_TYPE_CHOICES = (
        (TUITION_FEE, _("Tuition Fee")),
        (HOSTEL_FEE, _("Hostel Fee")),
        (TRANSPORT_FEE, _("Transport Fee")),
        (ADMISSION_FEE, _("Admission Fee")),
        (DAYBOARDING_FEE, _("Dayboarding Fee")),
    )

    monthly_fee = models.ForeignKey(
        StudentMonthlyFee,
        on_delete=models.CASCADE,
        related_name="items",
        verbose_name=_("Monthly Fee")
    )
    fee_type = models.CharField(max_length=20, choices=FEE_TYPE_CHOICES, verbose_name=_("Fee Type"))
    label = models.CharField(max_length=200, verbose_name=_("Label"))
    amount = models.DecimalField(max_digits=10, decimal_places=2, verbose_name=_("Amount"))
    source_id = models.CharField(max_length=64, blank=True, verbose_name=_("Pricing Source"))

    class Meta:
        db_table = "finance_student_monthly_fee_items"
        verbose_name = _("Monthly Fee Item")
        verbose_name_plural = _("Monthly Fee Items")
        ordering = ["created_at"]

    def __str__(self):
        return f"{self.label}: {self.amount}"


class IncomingPayment(BaseModel):
    """
    Money received against a generated monthly fee. Payments start
    unverified and can be verified once; verification is never undone.
    """
    payment_number = models.CharField(
        max_length=50,
        blank=True,
        db_index=True,
        verbose_name=_("Payment Number")
    )
    student = models.ForeignKey(
        "students.Student",
        on_delete=models.CASCADE,
        related_name="payments",
        verbose_name=_("Student")
    )
    monthly_fee = models.ForeignKey(
        StudentMonthlyFee,
        on_delete=models.PROTECT,
        related_name="payments",
        verbose_name=_("Monthly Fee")
    )
    amount_paid = models.DecimalField(
        max_digits=10,
        decimal_places=2,
        validators=[MinValueValidator(Decimal('0.01'))],
        verbose_name=_("Amount Paid")
    )
    payment_date = models.DateField(default=timezone.localdate, verbose_name=_("Payment Date"))
    payment_mode = models.CharField(max_length=50, verbose_name=_("Payment Mode"))
    reference_number = models.CharField(max_length=100, blank=True, verbose_name=_("Reference Number"))
    remarks = models.TextField(blank=True, verbose_name=_("Remarks"))
    received_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="received_payments",
        verbose_name=_("Received By")
    )

    # Verification
    verified = models.BooleanField(default=False, db_index=True, verbose_name=_("Verified"))
    verified_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="verified_payments",
        verbose_name=_("Verified By")
    )
    verified_at = models.DateTimeField(null=True, blank=True, verbose_name=_("Verified At"))

    class Meta:
        db_table = "finance_incoming_payments"
        verbose_name = _("Incoming Payment")
        verbose_name_plural = _("Incoming Payments")
        ordering = ["-payment_date", "-created_at"]
        indexes = [
            models.Index(fields=['tenant', 'payment_date']),
            models.Index(fields=['tenant', 'payment_mode']),
            models.Index(fields=['tenant', 'verified']),
        ]

    def __str__(self):
        return f"{self.payment_number or self.short_id} - {self.amount_paid}"

    def clean(self):
        super().clean()
        if not self._state.adding and not self.verified:
            if IncomingPayment.all_objects.filter(pk=self.pk, verified=True).exists():
                raise ValidationError({'verified': _('A verified payment cannot be unverified')})

    def save(self, *args, **kwargs):
        if not self.payment_number:
            self.payment_number = self.generate_payment_number()
        super().save(*args, **kwargs)

    def generate_payment_number(self):
        """Generate payment number unique within the school"""
        prefix = f"PAY-{timezone.localdate().year}-"
        last_payment = IncomingPayment.all_objects.filter(
            payment_number__startswith=prefix,
            tenant_id=self.tenant_id
        ).order_by('payment_number').last()

        if last_payment:
            new_num = int(last_payment.payment_number.split('-')[-1]) + 1
        else:
            new_num = 1

        return f"{prefix}{new_num:05d}"


class ExpenseCategory(BaseModel):
    """
    Expense categories for school expenditures
    """
    name = models.CharField(max_length=200, verbose_name=_("Category Name"))
    description = models.TextField(blank=True, verbose_name=_("Description"))

    class Meta:
        db_table = "finance_expense_categories"
        verbose_name = _("Expense Category")
        verbose_name_plural = _("Expense Categories")
        ordering = ["name"]
        unique_together = [['tenant', 'name']]

    def __str__(self):
        return self.name


class Expense(BaseModel):
    """
    School expense. Rows created by vendor or payslip payments are
    read-only through the API.
    """
    name = models.CharField(max_length=200, verbose_name=_("Expense"))
    amount = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        validators=[MinValueValidator(Decimal('0.01'))],
        verbose_name=_("Amount")
    )
    category = models.ForeignKey(
        ExpenseCategory,
        on_delete=models.PROTECT,
        related_name="expenses",
        verbose_name=_("Category")
    )
    expense_date = models.DateField(default=timezone.localdate, verbose_name=_("Expense Date"))
    recorded_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="recorded_expenses",
        verbose_name=_("Recorded By")
    )
    notes = models.TextField(blank=True, verbose_name=_("Notes"))
    is_vendor_payment = models.BooleanField(default=False, verbose_name=_("Vendor Payment"))
    is_payslip_payment = models.BooleanField(default=False, verbose_name=_("Payslip Payment"))

    class Meta:
        db_table = "finance_expenses"
        verbose_name = _("Expense")
        verbose_name_plural = _("Expenses")
        ordering = ["-expense_date", "-created_at"]
        indexes = [
            models.Index(fields=['tenant', 'expense_date']),
        ]

    def __str__(self):
        return f"{self.name} - {self.amount}"

    @property
    def is_system_generated(self):
        return self.is_vendor_payment or self.is_payslip_payment
