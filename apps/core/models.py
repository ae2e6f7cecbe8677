import uuid

from django.db import models
from django.conf import settings
from django.utils import timezone
from django.utils.translation import gettext_lazy as _
from django.core.exceptions import ValidationError

from apps.core.managers import SoftDeleteManager, TenantSoftDeleteManager


class UUIDModel(models.Model):
    """
    UUID primary key to prevent ID enumeration
    """
    id = models.UUIDField(
        primary_key=True,
        default=uuid.uuid4,
        editable=False,
        unique=True,
        verbose_name='Universal ID'
    )

    class Meta:
        abstract = True

    @property
    def short_id(self):
        """Short identifier for logging and display"""
        return str(self.id)[:8]


class TimeStampedModel(models.Model):
    """
    Creation and modification timestamps with the acting users
    """
    created_at = models.DateTimeField(
        auto_now_add=True,
        db_index=True,
        verbose_name='Creation Timestamp'
    )
    updated_at = models.DateTimeField(
        auto_now=True,
        verbose_name='Last Modification Timestamp'
    )
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='%(app_label)s_%(class)s_created',
        verbose_name='Created By'
    )
    updated_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='%(app_label)s_%(class)s_updated',
        verbose_name='Last Modified By'
    )

    class Meta:
        abstract = True
        ordering = ['-created_at']


class SoftDeleteModel(models.Model):
    """
    Soft deletion: rows are deactivated, never removed
    """
    is_active = models.BooleanField(
        default=True,
        db_index=True,
        verbose_name='Active Status',
        help_text='False indicates the record has been soft deleted'
    )
    deleted_at = models.DateTimeField(
        null=True,
        blank=True,
        verbose_name='Deletion Timestamp'
    )
    deleted_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='%(app_label)s_%(class)s_deleted',
        verbose_name='Deleted By'
    )

    objects = SoftDeleteManager()
    all_objects = models.Manager()  # Bypass soft delete filter

    class Meta:
        abstract = True

    def delete(self, using=None, keep_parents=False, user=None):
        """
        Deactivate the record instead of removing it
        """
        if not self.is_active:
            return  # Already deleted

        self.is_active = False
        self.deleted_at = timezone.now()
        update_fields = ['is_active', 'deleted_at']
        if user:
            self.deleted_by = user
            update_fields.append('deleted_by')

        self.save(update_fields=update_fields)


class TenantAwareModel(models.Model):
    """
    Row owned by exactly one school
    """
    tenant = models.ForeignKey(
        'tenants.Tenant',
        on_delete=models.CASCADE,
        related_name='%(app_label)s_%(class)s_records',
        verbose_name='Owning Tenant',
        db_index=True,
        editable=False
    )

    class Meta:
        abstract = True

    def clean(self):
        if not self.tenant_id:
            raise ValidationError(
                'Tenant context is required for all tenant-aware models.'
            )
        super().clean()

    def save(self, *args, **kwargs):
        """
        Tenant is always set explicitly by the caller
        """
        if not self.tenant_id:
            raise ValidationError(
                'Tenant context missing. Pass the owning tenant explicitly.'
            )
        self.full_clean()
        super().save(*args, **kwargs)


class BaseSharedModel(UUIDModel, TimeStampedModel, SoftDeleteModel):
    """
    Base model for shared resources that do not belong to a specific tenant
    """
    class Meta:
        abstract = True
        ordering = ['-created_at']

    def __str__(self):
        return f"{self.__class__.__name__}[{self.short_id}]"


class BaseModel(UUIDModel, TimeStampedModel, SoftDeleteModel, TenantAwareModel):
    """
    Base model for every school-owned record
    """
    objects = TenantSoftDeleteManager()
    all_objects = models.Manager()

    class Meta:
        abstract = True
        ordering = ['-created_at']

    def __str__(self):
        return f"{self.__class__.__name__}[{self.short_id}]"

    def to_audit_dict(self, fields=None):
        """
        Plain-JSON snapshot of the given fields for audit entries
        """
        from django.forms.models import model_to_dict
        from django.core.serializers.json import DjangoJSONEncoder
        import json

        data = model_to_dict(self, fields=fields or [f.name for f in self._meta.fields])
        data['id'] = str(self.id)
        return json.loads(json.dumps(data, cls=DjangoJSONEncoder))


class AuditLog(models.Model):
    """Audit trail written by AuditService"""

    class AuditSeverity(models.TextChoices):
        INFO = 'INFO', 'Info'
        WARNING = 'WARNING', 'Warning'
        ERROR = 'ERROR', 'Error'

    class AuditAction(models.TextChoices):
        CREATE = 'CREATE', 'Create'
        UPDATE = 'UPDATE', 'Update'
        DELETE = 'DELETE', 'Delete'
        VERIFY = 'VERIFY', 'Verify'
        BULK_OPERATION = 'BULK_OPERATION', 'Bulk Operation'
        GENERATE = 'GENERATE', 'Generate'

    class AuditStatus(models.TextChoices):
        SUCCESS = 'SUCCESS', 'Success'
        FAILED = 'FAILED', 'Failed'

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    timestamp = models.DateTimeField(auto_now_add=True, db_index=True)

    # User information (as strings, not foreign keys)
    user_id = models.CharField(max_length=100, null=True, blank=True, db_index=True)
    user_email = models.EmailField(null=True, blank=True)
    user_role = models.CharField(max_length=30, null=True, blank=True)

    action = models.CharField(max_length=50, choices=AuditAction.choices, db_index=True)
    severity = models.CharField(max_length=20, choices=AuditSeverity.choices, default=AuditSeverity.INFO)
    status = models.CharField(max_length=20, choices=AuditStatus.choices, default=AuditStatus.SUCCESS)

    resource_type = models.CharField(max_length=100, db_index=True)
    resource_id = models.CharField(max_length=100, null=True, blank=True, db_index=True)
    resource_name = models.CharField(max_length=500, null=True, blank=True)

    previous_state = models.JSONField(null=True, blank=True)
    new_state = models.JSONField(null=True, blank=True)

    tenant_id = models.CharField(max_length=100, null=True, blank=True, db_index=True)

    extra_data = models.JSONField(null=True, blank=True)

    class Meta:
        db_table = 'audit_logs'
        verbose_name = _('Audit Log')
        indexes = [
            models.Index(fields=['timestamp', 'action']),
            models.Index(fields=['resource_type', 'resource_id']),
            models.Index(fields=['tenant_id', 'timestamp']),
        ]
        ordering = ['-timestamp']

    def __str__(self):
        return f"{self.timestamp} - {self.user_email or 'System'} - {self.action} - {self.resource_type}"
