from decimal import Decimal

from django.db import models
from django.conf import settings
from django.core.validators import MinValueValidator
from django.core.exceptions import ValidationError
from django.utils.translation import gettext_lazy as _

from apps.core.models import BaseModel


def default_payment_modes():
    return list(getattr(settings, 'DEFAULT_PAYMENT_MODES', ['Cash']))


class FinancialConfiguration(BaseModel):
    """
    Per-school payment modes and flat service fees
    """
    # Currency and Locale
    base_currency = models.CharField(
        max_length=3,
        default="INR",
        verbose_name=_("Base Currency")
    )
    currency_symbol = models.CharField(
        max_length=5,
        default="₹",
        verbose_name=_("Currency Symbol")
    )

    # Payment Configuration
    payment_modes = models.JSONField(
        default=default_payment_modes,
        verbose_name=_("Available Payment Modes"),
        help_text=_("List of payment modes accepted at the fee counter")
    )

    # Flat fees charged when the matching flag is set on a generated fee
    hostel_fee = models.DecimalField(
        max_digits=10,
        decimal_places=2,
        default=Decimal('0.00'),
        validators=[MinValueValidator(Decimal('0'))],
        verbose_name=_("Monthly Hostel Fee")
    )
    admission_fee = models.DecimalField(
        max_digits=10,
        decimal_places=2,
        default=Decimal('0.00'),
        validators=[MinValueValidator(Decimal('0'))],
        verbose_name=_("Admission Fee")
    )
    dayboarding_fee = models.DecimalField(
        max_digits=10,
        decimal_places=2,
        default=Decimal('0.00'),
        validators=[MinValueValidator(Decimal('0'))],
        verbose_name=_("Monthly Dayboarding Fee")
    )

    class Meta:
        db_table = "configuration_financial"
        verbose_name = _("Financial Configuration")
        verbose_name_plural = _("Financial Configurations")
        unique_together = [['tenant']]

    def __str__(self):
        return f"Financial Configuration - {self.tenant}"

    @classmethod
    def get_for_tenant(cls, tenant):
        """Get or create financial config with defaults"""
        obj, created = cls.objects.get_or_create(tenant=tenant)
        return obj

    def accepts_payment_mode(self, mode):
        return mode in (self.payment_modes or [])

    def clean(self):
        super().clean()
        if not isinstance(self.payment_modes, list) or not all(
            isinstance(mode, str) and mode.strip() for mode in self.payment_modes
        ):
            raise ValidationError({
                'payment_modes': _('Payment modes must be a list of non-empty names.')
            })
