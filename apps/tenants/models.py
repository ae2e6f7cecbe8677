from django.conf import settings
from django.db import models
from django.utils.text import slugify

from django_tenants.models import TenantMixin, DomainMixin
from apps.core.models import UUIDModel, TimeStampedModel, BaseSharedModel


class Tenant(TenantMixin, BaseSharedModel):
    """
    A school. Every school-owned row points at one of these.
    """
    name = models.CharField(
        max_length=255,
        verbose_name='School Name',
        help_text='Legal name of the school'
    )
    display_name = models.CharField(
        max_length=255,
        blank=True,
        verbose_name='Display Name',
        help_text='Public-facing name for the school'
    )
    slug = models.SlugField(max_length=150, unique=True, blank=True)

    # Tenant Status
    STATUS_ACTIVE = 'active'
    STATUS_SUSPENDED = 'suspended'
    STATUS_TRIAL = 'trial'

    STATUS_CHOICES = [
        (STATUS_ACTIVE, 'Active'),
        (STATUS_SUSPENDED, 'Suspended'),
        (STATUS_TRIAL, 'Trial'),
    ]

    status = models.CharField(
        max_length=20,
        choices=STATUS_CHOICES,
        default=STATUS_ACTIVE,
        db_index=True,
        verbose_name='Tenant Status'
    )

    contact_email = models.EmailField(
        blank=True,
        verbose_name='Contact Email',
    )

    # Schema creation is switched off where the database has no schemas
    auto_create_schema = getattr(settings, 'TENANT_AUTO_CREATE_SCHEMA', True)

    class Meta:
        db_table = 'tenants'
        verbose_name = 'Tenant'
        verbose_name_plural = 'Tenants'
        ordering = ['name']

    def __str__(self):
        return f"{self.name} ({self.schema_name})"

    def clean(self):
        from django.core.exceptions import ValidationError

        super().clean()

        if self.schema_name and not self.schema_name.replace('_', '').isalnum():
            raise ValidationError({
                'schema_name': 'Schema name can only contain alphanumeric characters and underscores.'
            })

    def save(self, *args, **kwargs):
        if not self.slug:
            self.slug = slugify(self.name)
        if not self.display_name:
            self.display_name = self.name

        self.clean()
        super().save(*args, **kwargs)

    def suspend(self):
        self.status = self.STATUS_SUSPENDED
        self.is_active = False
        self.save(update_fields=['status', 'is_active'])

    def activate(self):
        self.status = self.STATUS_ACTIVE
        self.is_active = True
        self.save(update_fields=['status', 'is_active'])


class Domain(DomainMixin, UUIDModel, TimeStampedModel):
    """
    Host name that routes requests to a school
    """

    class Meta:
        db_table = 'tenant_domains'
        verbose_name = 'Domain'
        verbose_name_plural = 'Domains'

    def __str__(self):
        return self.domain

    def save(self, *args, **kwargs):
        """Ensure only one primary domain per tenant"""
        if self.is_primary:
            Domain.objects.filter(
                tenant=self.tenant,
                is_primary=True
            ).exclude(id=self.id).update(is_primary=False)

        super().save(*args, **kwargs)
