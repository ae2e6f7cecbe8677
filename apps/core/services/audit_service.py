# apps/core/services/audit_service.py
import logging
from typing import Optional, Dict, Any

from django.db import transaction
from django.contrib.auth.models import AnonymousUser

from apps.core.models import AuditLog

logger = logging.getLogger('audit_service')


class AuditService:
    """
    Writes AuditLog entries for ledger and payment changes
    """

    @classmethod
    def get_user_info(cls, user) -> Dict[str, Any]:
        """Extract user information matching AuditLog model fields"""
        if not user or isinstance(user, AnonymousUser):
            return {'user_id': None, 'user_email': None, 'user_role': None}

        user_id = getattr(user, 'id', None)
        return {
            'user_id': str(user_id) if user_id else None,
            'user_email': getattr(user, 'email', None),
            'user_role': getattr(user, 'role', None),
        }

    @classmethod
    def create_audit_entry(
        cls,
        action: str,
        resource_type: str,
        ctx=None,
        instance=None,
        resource_id: Optional[str] = None,
        previous_state: Optional[Dict] = None,
        new_state: Optional[Dict] = None,
        severity: str = AuditLog.AuditSeverity.INFO,
        status: str = AuditLog.AuditStatus.SUCCESS,
        extra_data: Optional[Dict] = None,
    ) -> Optional[AuditLog]:
        """
        Create an audit log entry. A failure here is logged and never
        propagates into the business operation.
        """
        try:
            user_info = cls.get_user_info(ctx.user if ctx else None)

            if instance is not None and not resource_id:
                resource_id = str(getattr(instance, 'id', ''))[:100]

            with transaction.atomic():
                return AuditLog.objects.create(
                    action=action,
                    resource_type=resource_type,
                    resource_id=resource_id,
                    resource_name=str(instance)[:500] if instance is not None else None,
                    previous_state=previous_state,
                    new_state=new_state,
                    severity=severity,
                    status=status,
                    tenant_id=str(ctx.tenant_id) if ctx else None,
                    extra_data=extra_data or {},
                    **user_info,
                )
        except Exception:
            logger.error(
                "Failed to create audit entry for %s %s", action, resource_type,
                exc_info=True,
            )
            return None
