from django.contrib import admin
from .models import (
    FeeCategory,
    ClassFeePricing,
    StudentMonthlyFee,
    StudentMonthlyFeeItem,
    IncomingPayment,
    ExpenseCategory,
    Expense,
)

# =========================
# INLINE ADMINS
# =========================

class StudentMonthlyFeeItemInline(admin.TabularInline):
    model = StudentMonthlyFeeItem
    fk_name = "monthly_fee"
    extra = 0
    fields = ("fee_type", "label", "amount", "source_id")
    readonly_fields = ("fee_type", "label", "amount", "source_id")


class IncomingPaymentInline(admin.TabularInline):
    model = IncomingPayment
    fk_name = "monthly_fee"
    extra = 0
    fields = ("payment_number", "amount_paid", "payment_date", "payment_mode", "verified")
    readonly_fields = ("payment_number", "amount_paid", "payment_date", "payment_mode", "verified")


# =========================
# CATALOG
# =========================

@admin.register(FeeCategory)
class FeeCategoryAdmin(admin.ModelAdmin):
    list_display = (
        "name",
        "pricing_type",
        "fee_type",
        "fixed_amount",
        "is_mandatory",
        "is_active",
    )
    list_filter = (
        "pricing_type",
        "fee_type",
        "is_active",
    )
    search_fields = ("name",)
    ordering = ("display_order", "name")


@admin.register(ClassFeePricing)
class ClassFeePricingAdmin(admin.ModelAdmin):
    list_display = (
        "school_class",
        "fee_category",
        "academic_year",
        "amount",
        "effective_from",
        "effective_to",
        "is_active",
    )
    list_filter = ("academic_year", "fee_category", "is_active")


# =========================
# MONTHLY FEES & PAYMENTS
# =========================

@admin.register(StudentMonthlyFee)
class StudentMonthlyFeeAdmin(admin.ModelAdmin):
    list_display = (
        "student",
        "month",
        "calendar_year",
        "academic_year",
        "total_payable_amount",
        "status",
    )
    list_filter = ("status", "calendar_year", "academic_year")
    search_fields = ("student__first_name", "student__admission_number")
    inlines = [StudentMonthlyFeeItemInline, IncomingPaymentInline]
    readonly_fields = ("generated_by", "generated_at", "last_edited_by", "last_edited_at")


@admin.register(IncomingPayment)
class IncomingPaymentAdmin(admin.ModelAdmin):
    list_display = (
        "payment_number",
        "student",
        "amount_paid",
        "payment_date",
        "payment_mode",
        "verified",
    )
    list_filter = ("verified", "payment_mode", "payment_date")
    search_fields = ("payment_number", "reference_number", "student__first_name")
    readonly_fields = ("payment_number", "verified", "verified_by", "verified_at")


# =========================
# EXPENSES
# =========================

@admin.register(ExpenseCategory)
class ExpenseCategoryAdmin(admin.ModelAdmin):
    list_display = ("name", "is_active")
    search_fields = ("name",)


@admin.register(Expense)
class ExpenseAdmin(admin.ModelAdmin):
    list_display = ("name", "category", "amount", "expense_date", "is_vendor_payment", "is_payslip_payment")
    list_filter = ("category", "expense_date")
    search_fields = ("name", "notes")
