from django.contrib.auth.models import AbstractUser, BaseUserManager
from django.db import models

from apps.core.models import UUIDModel, TimeStampedModel
from apps.core.permissions import (
    ROLE_SUPER_ADMIN, ROLE_ADMIN, ROLE_CASHIER, ROLE_TEACHER, ELEVATED_ROLES,
)


class UserManager(BaseUserManager):
    """
    Custom user manager with tenant support
    """
    def for_tenant(self, tenant):
        return self.get_queryset().filter(tenant=tenant)

    def create_user(self, email, password=None, tenant=None, **extra_fields):
        if not email:
            raise ValueError('The Email field must be set')

        # Allow tenant to be None if it's a superuser
        if not tenant and not extra_fields.get('is_superuser'):
            raise ValueError('The Tenant field must be set')

        email = self.normalize_email(email)
        user = self.model(email=email, tenant=tenant, **extra_fields)

        if password:
            user.set_password(password)
        else:
            user.set_unusable_password()

        user.full_clean(exclude=['password'])
        user.save(using=self._db)
        return user

    def create_superuser(self, email, password=None, tenant=None, **extra_fields):
        extra_fields.setdefault('is_staff', True)
        extra_fields.setdefault('is_superuser', True)
        extra_fields.setdefault('is_active', True)
        extra_fields.setdefault('role', ROLE_SUPER_ADMIN)

        if extra_fields.get('is_staff') is not True:
            raise ValueError('Superuser must have is_staff=True.')
        if extra_fields.get('is_superuser') is not True:
            raise ValueError('Superuser must have is_superuser=True.')

        return self.create_user(email, password, tenant, **extra_fields)


class User(AbstractUser, UUIDModel, TimeStampedModel):
    """
    School staff account. Login is by email.
    """
    # Remove username, use email as primary identifier
    username = None
    email = models.EmailField(unique=True, db_index=True)

    ROLE_SUPER_ADMIN = ROLE_SUPER_ADMIN
    ROLE_ADMIN = ROLE_ADMIN
    ROLE_CASHIER = ROLE_CASHIER
    ROLE_TEACHER = ROLE_TEACHER

    ROLE_CHOICES = [
        (ROLE_SUPER_ADMIN, 'Super Administrator'),
        (ROLE_ADMIN, 'Administrator'),
        (ROLE_CASHIER, 'Cashier'),
        (ROLE_TEACHER, 'Teacher'),
    ]

    tenant = models.ForeignKey(
        'tenants.Tenant',
        on_delete=models.CASCADE,
        related_name='users',
        verbose_name='School',
        null=True,
        blank=True
    )

    role = models.CharField(
        max_length=20,
        choices=ROLE_CHOICES,
        null=True,
        blank=True,
        db_index=True,
        verbose_name='Role'
    )

    objects = UserManager()

    USERNAME_FIELD = 'email'
    REQUIRED_FIELDS = []

    class Meta:
        db_table = 'users'
        verbose_name = 'User'
        verbose_name_plural = 'Users'
        ordering = ['email']
        indexes = [
            models.Index(fields=['tenant', 'role']),
        ]

    def __str__(self):
        return self.email

    @property
    def is_elevated(self):
        return self.is_superuser or self.role in ELEVATED_ROLES

    @property
    def display_name(self):
        return self.get_full_name() or self.email
