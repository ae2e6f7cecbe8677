# apps/core/managers.py
from django.db import models


class SoftDeleteQuerySet(models.QuerySet):
    def for_tenant(self, tenant):
        """
        Explicitly filter for a specific tenant
        """
        return self.filter(tenant=tenant)


class SoftDeleteManager(models.Manager.from_queryset(SoftDeleteQuerySet)):
    """
    Custom manager for soft delete functionality
    """
    def get_queryset(self):
        return super().get_queryset().filter(is_active=True)


class TenantManager(models.Manager.from_queryset(SoftDeleteQuerySet)):
    """
    Manager for tenant-aware models. There is no ambient tenant: callers
    scope every query with for_tenant().
    """
    def for_tenant(self, tenant):
        return self.get_queryset().filter(tenant=tenant)


class TenantSoftDeleteManager(TenantManager):
    """
    Tenant filtering plus the soft delete filter
    """
    def get_queryset(self):
        return super().get_queryset().filter(is_active=True)


__all__ = [
    'SoftDeleteQuerySet',
    'SoftDeleteManager',
    'TenantManager',
    'TenantSoftDeleteManager',
]
