from django.contrib import admin
from .models import FinancialConfiguration


@admin.register(FinancialConfiguration)
class FinancialConfigurationAdmin(admin.ModelAdmin):
    list_display = ('tenant', 'base_currency', 'hostel_fee', 'admission_fee', 'dayboarding_fee')
    list_filter = ('base_currency',)
    fieldsets = (
        ('Currency', {
            'fields': ('base_currency', 'currency_symbol')
        }),
        ('Payments', {
            'fields': ('payment_modes',)
        }),
        ('Flat Fees', {
            'fields': ('hostel_fee', 'admission_fee', 'dayboarding_fee')
        }),
    )
