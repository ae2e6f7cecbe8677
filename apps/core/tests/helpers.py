from datetime import date
from decimal import Decimal

from django.contrib.auth import get_user_model
from django.core.cache import cache

from apps.academics.models import AcademicYear, SchoolClass, Section
from apps.core.utils.tenant import TenantContext
from apps.finance.models import FeeCategory, ClassFeePricing
from apps.students.models import Student, StudentEnrollment
from apps.tenants.models import Tenant

User = get_user_model()


class SchoolFixturesMixin:
    """
    Builds a school with one academic year (2025-26), one class section
    and staff users. Query caches are cleared for every test.
    """

    def setUp(self):
        super().setUp()
        cache.clear()
        self.tenant = self.make_school('test_school', 'Test School')
        self.admin = self.make_user(self.tenant, 'ADMIN', 'admin@test-school.com')
        self.ctx = TenantContext(tenant=self.tenant, user=self.admin)

        self.academic_year = AcademicYear.objects.create(
            name='2025-26',
            start_date=date(2025, 4, 1),
            end_date=date(2026, 3, 31),
            is_current=True,
            tenant=self.tenant,
        )
        self.school_class = SchoolClass.objects.create(name='Class 5', order=5, tenant=self.tenant)
        self.section = Section.objects.create(class_name=self.school_class, name='A', tenant=self.tenant)

    def make_school(self, schema_name, name):
        return Tenant.objects.create(schema_name=schema_name, name=name)

    def make_user(self, tenant, role, email):
        return User.objects.create_user(
            email=email,
            password='testpass123',
            tenant=tenant,
            role=role,
            first_name=role.title(),
        )

    def make_student(self, admission_number, first_name, roll_number=None, tenant=None,
                     admission_date=date(2025, 4, 1), enroll=True, **extra):
        tenant = tenant or self.tenant
        student = Student.objects.create(
            tenant=tenant,
            admission_number=admission_number,
            first_name=first_name,
            last_name='Test',
            admission_date=admission_date,
            **extra
        )
        if enroll and tenant == self.tenant:
            StudentEnrollment.objects.create(
                tenant=tenant,
                student=student,
                academic_year=self.academic_year,
                school_class=self.school_class,
                section=self.section,
                roll_number=roll_number,
            )
        return student

    def make_tuition(self, amount='500.00', name='Tuition Fee', effective_from=date(2025, 4, 1),
                     effective_to=date(2026, 3, 31)):
        category, _ = FeeCategory.objects.get_or_create(
            tenant=self.tenant,
            name=name,
            defaults={'pricing_type': FeeCategory.PRICING_CLASS_BASED},
        )
        return ClassFeePricing.objects.create(
            tenant=self.tenant,
            school_class=self.school_class,
            fee_category=category,
            amount=Decimal(amount),
            academic_year='2025-26',
            effective_from=effective_from,
            effective_to=effective_to,
        )
