from django.contrib import admin
from .models import TransportationAreaPricing


@admin.register(TransportationAreaPricing)
class TransportationAreaPricingAdmin(admin.ModelAdmin):
    list_display = ('area_name', 'academic_year', 'price', 'effective_from', 'effective_to', 'is_active')
    list_filter = ('academic_year', 'is_active')
    search_fields = ('area_name', 'description')
    ordering = ('display_order', 'area_name')
