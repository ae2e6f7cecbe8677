from decimal import Decimal

from django.db import models
from django.core.validators import MinValueValidator
from django.utils.translation import gettext_lazy as _

from apps.finance.models import PricingWindowModel


class TransportationAreaPricing(PricingWindowModel):
    """
    Monthly transport price for a pickup area in one academic year
    """
    area_name = models.CharField(max_length=150, verbose_name=_("Area Name"))
    fee_category = models.ForeignKey(
        "finance.FeeCategory",
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="area_pricings",
        verbose_name=_("Fee Category")
    )
    price = models.DecimalField(
        max_digits=10,
        decimal_places=2,
        validators=[MinValueValidator(Decimal('0'))],
        verbose_name=_("Price")
    )
    description = models.TextField(blank=True, verbose_name=_("Description"))
    display_order = models.PositiveIntegerField(default=0, verbose_name=_("Display Order"))

    pricing_key_fields = ('area_name', 'fee_category')

    class Meta:
        db_table = "transportation_area_pricing"
        verbose_name = _("Transportation Area Pricing")
        verbose_name_plural = _("Transportation Area Pricing")
        ordering = ["display_order", "area_name"]
        indexes = [
            models.Index(fields=['tenant', 'academic_year', 'area_name']),
        ]

    def __str__(self):
        return f"{self.area_name} ({self.academic_year}): {self.price}"
