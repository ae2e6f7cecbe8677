from django.db import models
from django.conf import settings
from django.core.validators import RegexValidator
from django.core.exceptions import ValidationError
from django.utils import timezone
from django.utils.translation import gettext_lazy as _

from apps.core.models import BaseModel
from apps.core.managers import TenantSoftDeleteManager

academic_year_validator = RegexValidator(
    regex=r'^\d{4}-\d{2}$',
    message=_("Academic year must look like 2025-26"),
)


class AcademicYearManager(TenantSoftDeleteManager):
    def covering(self, tenant, on_date):
        """The academic year whose date range contains `on_date`, if any"""
        return self.for_tenant(tenant).filter(
            start_date__lte=on_date,
            end_date__gte=on_date,
        ).order_by('-start_date').first()


class AcademicYear(BaseModel):
    """
    School Academic Year (session), April to March by default
    """
    name = models.CharField(
        max_length=7,
        validators=[academic_year_validator],
        verbose_name=_("Academic Year"),
        help_text=_("Format YYYY-YY, e.g. 2025-26")
    )
    start_date = models.DateField(verbose_name=_("Start Date"))
    end_date = models.DateField(verbose_name=_("End Date"))
    is_current = models.BooleanField(default=False, verbose_name=_("Is Current Year"))

    objects = AcademicYearManager()

    class Meta:
        db_table = "academics_academic_year"
        verbose_name = _("Academic Year")
        verbose_name_plural = _("Academic Years")
        ordering = ["-start_date"]
        unique_together = [['tenant', 'name']]

    def __str__(self):
        return f"{self.name} ({self.start_date} - {self.end_date})"

    def clean(self):
        super().clean()
        if self.start_date and self.end_date and self.start_date >= self.end_date:
            raise ValidationError({'end_date': _('End date must be after start date')})

    def contains(self, on_date):
        return self.start_date <= on_date <= self.end_date


class SchoolClass(BaseModel):
    """
    School Classes/Grades
    """
    name = models.CharField(max_length=100, verbose_name=_("Class Name"))
    order = models.PositiveIntegerField(default=0, verbose_name=_("Display Order"))

    class Meta:
        db_table = "academics_classes"
        verbose_name = _("Class")
        verbose_name_plural = _("Classes")
        ordering = ["order", "name"]
        unique_together = [['tenant', 'name']]

    def __str__(self):
        return self.name


class Section(BaseModel):
    """
    Class Sections (A, B, C, etc.)
    """
    class_name = models.ForeignKey(
        SchoolClass,
        on_delete=models.CASCADE,
        related_name="sections",
        verbose_name=_("Class")
    )
    name = models.CharField(max_length=10, verbose_name=_("Section Name"))

    class Meta:
        db_table = "academics_sections"
        verbose_name = _("Section")
        verbose_name_plural = _("Sections")
        unique_together = [['class_name', 'name']]
        ordering = ["class_name__order", "name"]

    def __str__(self):
        return f"{self.class_name.name} - {self.name}"


class HolidayManager(TenantSoftDeleteManager):
    def on_date(self, tenant, on_date):
        return self.for_tenant(tenant).filter(start_date__lte=on_date, end_date__gte=on_date)

    def overlapping(self, tenant, start, end):
        return self.for_tenant(tenant).filter(start_date__lte=end, end_date__gte=start)


def is_weekly_off(on_date):
    """True when `on_date` falls on a configured weekly off-day (Sunday by default)"""
    return on_date.weekday() in getattr(settings, 'ATTENDANCE_WEEKLY_OFF_DAYS', [6])


class Holiday(BaseModel):
    """
    School holidays. A holiday covers every day from start to end inclusive.
    """
    name = models.CharField(max_length=200, verbose_name=_("Holiday Name"))
    start_date = models.DateField(verbose_name=_("Start Date"))
    end_date = models.DateField(verbose_name=_("End Date"))
    reason = models.TextField(blank=True, verbose_name=_("Reason"))

    objects = HolidayManager()

    class Meta:
        db_table = "academics_holidays"
        verbose_name = _("Holiday")
        verbose_name_plural = _("Holidays")
        ordering = ["-start_date"]

    def __str__(self):
        return f"{self.name} ({self.start_date} to {self.end_date})"

    def clean(self):
        super().clean()
        if self.start_date and self.end_date and self.end_date < self.start_date:
            raise ValidationError({'end_date': _('End date cannot be before start date')})

    @property
    def duration_days(self):
        return (self.end_date - self.start_date).days + 1


class StudentAttendance(BaseModel):
    """
    One attendance decision per student per calendar day
    """
    STATUS_PRESENT = "PRESENT"
    STATUS_ABSENT = "ABSENT"

    ATTENDANCE_STATUS = (
        (STATUS_PRESENT, _("Present")),
        (STATUS_ABSENT, _("Absent")),
    )

    student = models.ForeignKey(
        "students.Student",
        on_delete=models.CASCADE,
        related_name="attendances",
        verbose_name=_("Student")
    )
    date = models.DateField(verbose_name=_("Date"))
    status = models.CharField(
        max_length=10,
        choices=ATTENDANCE_STATUS,
        verbose_name=_("Status")
    )
    academic_year = models.ForeignKey(
        AcademicYear,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="attendances",
        verbose_name=_("Academic Year")
    )
    remarks = models.TextField(blank=True, verbose_name=_("Remarks"))
    marked_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="attendance_marked",
        verbose_name=_("Marked By")
    )

    class Meta:
        db_table = "academics_attendance"
        verbose_name = _("Attendance")
        verbose_name_plural = _("Attendances")
        ordering = ["-date", "student"]
        constraints = [
            models.UniqueConstraint(fields=['student', 'date'], name='unique_attendance_per_student_day'),
        ]
        indexes = [
            models.Index(fields=['tenant', 'date']),
            models.Index(fields=['student', 'date']),
        ]

    def __str__(self):
        return f"{self.student} - {self.date} - {self.status}"

    @property
    def is_present(self):
        return self.status == self.STATUS_PRESENT

    def clean(self):
        super().clean()
        if self.date and self.date > timezone.localdate():
            raise ValidationError({'date': _('Attendance cannot be recorded for a future date')})
