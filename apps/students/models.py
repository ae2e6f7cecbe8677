from django.db import models
from django.core.exceptions import ValidationError
from django.utils.translation import gettext_lazy as _

from apps.core.models import BaseModel
from apps.core.managers import TenantSoftDeleteManager


class Student(BaseModel):
    """
    Student record. Students are deactivated (is_active=False), never deleted.
    """
    admission_number = models.CharField(
        max_length=50,
        db_index=True,
        verbose_name=_("Admission Number")
    )
    first_name = models.CharField(max_length=50, verbose_name=_("First Name"))
    last_name = models.CharField(max_length=50, blank=True, verbose_name=_("Last Name"))
    admission_date = models.DateField(verbose_name=_("Admission Date"))

    # Services the student uses by default when fees are generated
    hostel = models.BooleanField(default=False, verbose_name=_("Hostel"))
    dayboarding = models.BooleanField(default=False, verbose_name=_("Dayboarding"))
    transportation_area = models.ForeignKey(
        "transportation.TransportationAreaPricing",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="students",
        verbose_name=_("Transportation Area")
    )

    class Meta:
        db_table = "students_student"
        ordering = ["first_name", "last_name"]
        verbose_name = _("Student")
        verbose_name_plural = _("Students")
        unique_together = [['tenant', 'admission_number']]
        indexes = [
            models.Index(fields=['tenant', 'is_active']),
        ]

    def __str__(self):
        return f"{self.admission_number} - {self.full_name}"

    @property
    def full_name(self):
        return f"{self.first_name} {self.last_name}".strip()

    def clean(self):
        super().clean()
        if self.hostel and self.transportation_area_id:
            raise ValidationError({
                'transportation_area': _('Student cannot have both hostel and transportation services')
            })

    def enrollment_for(self, academic_year):
        return self.enrollments.filter(academic_year=academic_year).select_related(
            'school_class', 'section', 'academic_year'
        ).first()

    def latest_enrollment(self):
        return self.enrollments.select_related(
            'school_class', 'section', 'academic_year'
        ).order_by('-academic_year__start_date').first()


class StudentEnrollmentManager(TenantSoftDeleteManager):
    def in_section(self, tenant, school_class, section, academic_year=None):
        queryset = self.for_tenant(tenant).filter(
            school_class=school_class,
            section=section,
            student__is_active=True,
        )
        if academic_year is not None:
            queryset = queryset.filter(academic_year=academic_year)
        return queryset


class StudentEnrollment(BaseModel):
    """
    Places a student in a class and section for one academic year
    """
    student = models.ForeignKey(
        Student,
        on_delete=models.CASCADE,
        related_name="enrollments",
        verbose_name=_("Student")
    )
    academic_year = models.ForeignKey(
        "academics.AcademicYear",
        on_delete=models.CASCADE,
        related_name="enrollments",
        verbose_name=_("Academic Year")
    )
    school_class = models.ForeignKey(
        "academics.SchoolClass",
        on_delete=models.CASCADE,
        related_name="enrollments",
        verbose_name=_("Class")
    )
    section = models.ForeignKey(
        "academics.Section",
        on_delete=models.CASCADE,
        related_name="enrollments",
        verbose_name=_("Section")
    )
    roll_number = models.PositiveIntegerField(
        null=True,
        blank=True,
        verbose_name=_("Roll Number")
    )

    objects = StudentEnrollmentManager()

    class Meta:
        db_table = "students_enrollment"
        verbose_name = _("Enrollment")
        verbose_name_plural = _("Enrollments")
        unique_together = [['student', 'academic_year']]
        ordering = ["academic_year", "school_class__order", "roll_number"]

    def __str__(self):
        return f"{self.student} - {self.academic_year.name} - {self.school_class}"

    def clean(self):
        super().clean()
        if self.section_id and self.school_class_id and self.section.class_name_id != self.school_class_id:
            raise ValidationError({'section': _('Section does not belong to the selected class')})
