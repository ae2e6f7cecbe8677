# apps/core/utils/tenant.py
from dataclasses import dataclass
from typing import Any, Optional

from django.core.exceptions import ValidationError as DjangoValidationError

from apps.core.exceptions import NotFoundError, PermissionDeniedError


@dataclass(frozen=True)
class TenantContext:
    """
    The school and user a request acts for.

    Built once per request and passed into every service call. Nothing is
    read from thread-locals, so a service can never pick up another
    request's school.
    """
    tenant: Any
    user: Optional[Any] = None

    @classmethod
    def from_request(cls, request):
        user = getattr(request, 'user', None)
        tenant = getattr(user, 'tenant', None) or getattr(request, 'tenant', None)
        if tenant is None:
            raise PermissionDeniedError('No school is associated with this account.')
        return cls(tenant=tenant, user=user)

    @property
    def tenant_id(self):
        return self.tenant.pk

    @property
    def role(self):
        return getattr(self.user, 'role', None)

    @property
    def is_elevated(self):
        if self.user is None:
            return False
        return bool(getattr(self.user, 'is_superuser', False) or getattr(self.user, 'is_elevated', False))

    @property
    def schema_name(self):
        return getattr(self.tenant, 'schema_name', None) or 'public'

    @property
    def log_extra(self):
        """`extra` mapping for logger calls"""
        return {'tenant': self.schema_name}

    @property
    def acting_user(self):
        """User instance suitable for FK assignment, or None"""
        if self.user is not None and getattr(self.user, 'is_authenticated', False):
            return self.user
        return None

    def scope(self, queryset):
        """Restrict a queryset to this school's rows"""
        return queryset.filter(tenant=self.tenant)

    def get_object(self, queryset, pk, message='Not found.'):
        """
        Fetch one of this school's rows by primary key. Malformed ids and
        rows owned by another school both read as NotFoundError.
        """
        try:
            obj = self.scope(queryset).filter(pk=pk).first()
        except (DjangoValidationError, ValueError, TypeError):
            obj = None
        if obj is None:
            raise NotFoundError(message)
        return obj

    def require_role(self, *roles, message='Your role is not allowed to perform this action.'):
        if getattr(self.user, 'is_superuser', False):
            return
        if self.role not in roles:
            raise PermissionDeniedError(message)

    def require_elevated(self):
        if not self.is_elevated:
            raise PermissionDeniedError(
                'Only administrators can perform this action.'
            )
