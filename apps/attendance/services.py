import calendar
import uuid
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Any, Dict, List, Optional

from django.core.exceptions import ValidationError as DjangoValidationError
from django.db import IntegrityError, transaction
from django.utils import timezone
from django.utils.dateparse import parse_date

from apps.academics.models import (
    AcademicYear, Holiday, SchoolClass, Section, StudentAttendance, is_weekly_off
)
from apps.core.cache import query_cache, TenantQueryCache
from apps.core.exceptions import HolidayError, InvalidDateError, ValidationError
from apps.core.logging import TenantAwareLogger
from apps.core.models import AuditLog
from apps.core.pagination import paginate_queryset
from apps.core.services.audit_service import AuditService
from apps.core.utils import retry_on_storage_error
from apps.students.models import Student, StudentEnrollment

from .filters import AttendanceFilter

logger = TenantAwareLogger.get_logger(__name__)

VALID_STATUSES = (StudentAttendance.STATUS_PRESENT, StudentAttendance.STATUS_ABSENT)


def parse_attendance_date(value, default_today=True):
    """Accept a date, an ISO string or nothing (today)"""
    if value in (None, ''):
        if default_today:
            return timezone.localdate()
        raise ValidationError('Date is required')
    if isinstance(value, date):
        return value
    try:
        parsed = parse_date(str(value))
    except ValueError:
        parsed = None
    if parsed is None:
        raise InvalidDateError('Invalid date format. Use YYYY-MM-DD')
    return parsed


def days_absent_since_last_present(statuses):
    """
    Count ABSENT records from the newest backwards until the first PRESENT.

    `statuses` are the student's record statuses before the reference date,
    newest first. Returns None when there are none.
    """
    if not statuses:
        return None
    count = 0
    for status in statuses:
        if status == StudentAttendance.STATUS_PRESENT:
            break
        count += 1
    return count


@dataclass
class BulkAttendanceResult:
    date: date
    records: List[StudentAttendance] = field(default_factory=list)
    errors: List[Dict[str, Any]] = field(default_factory=list)

    @property
    def success(self):
        return len(self.records)

    @property
    def failed(self):
        return len(self.errors)


class AttendanceLedger:
    """
    One PRESENT/ABSENT decision per student per day
    """

    @staticmethod
    def ensure_markable(ctx, on_date):
        """Reject future dates, holidays and weekly off-days"""
        if on_date > timezone.localdate():
            raise InvalidDateError('Cannot mark attendance for future dates')

        holiday = Holiday.objects.on_date(ctx.tenant, on_date).first()
        if holiday is not None:
            raise HolidayError(
                f'Cannot mark attendance on a holiday: {holiday.name}',
                details={'holiday': holiday.name, 'reason': holiday.reason},
            )
        if is_weekly_off(on_date):
            raise HolidayError(f'Cannot mark attendance on {calendar.day_name[on_date.weekday()]}')

    @staticmethod
    def _upsert(ctx, student, on_date, status, remarks, academic_year):
        values = {
            'tenant': ctx.tenant,
            'status': status,
            'remarks': remarks,
            'marked_by': ctx.acting_user,
            'academic_year': academic_year,
            'is_active': True,
            'updated_by': ctx.acting_user,
        }
        try:
            with transaction.atomic():
                record, created = StudentAttendance.all_objects.update_or_create(
                    student=student, date=on_date, defaults=values,
                )
            return record
        except (IntegrityError, DjangoValidationError):
            if not StudentAttendance.all_objects.filter(student=student, date=on_date).exists():
                raise
            # Another request inserted the same (student, date) first
            logger.warning(
                "Concurrent attendance insert for %s on %s, retrying as update",
                student.pk, on_date, extra=ctx.log_extra,
            )
            with transaction.atomic():
                record = StudentAttendance.all_objects.select_for_update().get(student=student, date=on_date)
                for name, value in values.items():
                    setattr(record, name, value)
                record.save()
            return record

    @classmethod
    @retry_on_storage_error
    def bulk_mark_attendance(cls, ctx, attendance_date, entries):
        """
        Upsert attendance for many students on one date.

        Per-entry problems (unknown student, bad status...) are reported in
        the result's `errors` and the rest of the batch still applies.
        Re-sending the same batch leaves the ledger unchanged.
        """
        on_date = parse_attendance_date(attendance_date)
        cls.ensure_markable(ctx, on_date)
        if not entries:
            raise ValidationError('Attendances array is required')

        # A student listed more than once keeps only the last entry
        last_entry = {}
        for index, entry in enumerate(entries):
            try:
                last_entry[uuid.UUID(str(entry.get('student_id')))] = index
            except (ValueError, AttributeError):
                continue
        students = {
            student.pk: student
            for student in ctx.scope(Student.objects.filter(pk__in=list(last_entry)))
        }

        academic_year = AcademicYear.objects.covering(ctx.tenant, on_date)
        result = BulkAttendanceResult(date=on_date)

        for index, entry in enumerate(entries):
            student_id = entry.get('student_id')
            try:
                student_pk = uuid.UUID(str(student_id))
            except (ValueError, AttributeError):
                student_pk = None
            if student_pk is not None and last_entry[student_pk] != index:
                continue

            status = str(entry.get('status') or '').upper()
            if not student_id or not status:
                result.errors.append({'studentId': student_id, 'error': 'Missing studentId or status'})
                continue
            if status not in VALID_STATUSES:
                result.errors.append({'studentId': student_id, 'error': f'Invalid status: {entry.get("status")}'})
                continue
            student = students.get(student_pk)
            if student is None:
                result.errors.append({'studentId': student_id, 'error': 'Student not found'})
                continue

            try:
                record = cls._upsert(ctx, student, on_date, status, entry.get('remarks') or '', academic_year)
            except DjangoValidationError as exc:
                result.errors.append({'studentId': student_id, 'error': '; '.join(exc.messages)})
                continue
            result.records.append(record)

        if result.errors:
            logger.warning(
                "Attendance batch for %s had %s failed entries", on_date, result.failed, extra=ctx.log_extra
            )
        if result.records:
            query_cache.invalidate(ctx, 'attendance.mark')

        AuditService.create_audit_entry(
            action=AuditLog.AuditAction.BULK_OPERATION,
            resource_type='StudentAttendance',
            ctx=ctx,
            resource_id=str(on_date),
            extra_data={'date': str(on_date), 'success': result.success, 'failed': result.failed},
        )
        logger.info(
            "Marked attendance for %s: %s saved, %s failed", on_date, result.success, result.failed,
            extra=ctx.log_extra,
        )
        return result

    @staticmethod
    def update_attendance(ctx, record_id, status=None, remarks=None):
        record = ctx.get_object(
            StudentAttendance.objects.select_related('student'), record_id, 'Attendance record not found'
        )
        AttendanceLedger.ensure_markable(ctx, record.date)

        previous_state = {'status': record.status, 'remarks': record.remarks}
        if status is not None:
            status = str(status).upper()
            if status not in VALID_STATUSES:
                raise ValidationError(f'Invalid status: {status}')
            record.status = status
        if remarks is not None:
            record.remarks = remarks
        record.marked_by = ctx.acting_user
        record.updated_by = ctx.acting_user
        record.save()

        AuditService.create_audit_entry(
            action=AuditLog.AuditAction.UPDATE,
            resource_type='StudentAttendance',
            ctx=ctx,
            instance=record,
            previous_state=previous_state,
            new_state={'status': record.status, 'remarks': record.remarks},
        )
        query_cache.invalidate(ctx, 'attendance.update')
        return record

    @staticmethod
    def get_attendance(ctx, filters=None, page=1, limit=20):
        queryset = ctx.scope(StudentAttendance.objects.all()).select_related(
            'student', 'marked_by'
        ).order_by('-date', 'student__first_name')
        filters = {key: value for key, value in (filters or {}).items() if value not in (None, '')}
        filterset = AttendanceFilter(data=filters, queryset=queryset)
        if not filterset.is_valid():
            raise ValidationError('Invalid attendance filters', details=filterset.errors)
        records, pagination = paginate_queryset(filterset.qs, page, limit)
        return {'records': records, 'pagination': pagination}

    @staticmethod
    def _section_enrollments(ctx, school_class, section, academic_year):
        enrollments = StudentEnrollment.objects.in_section(
            ctx.tenant, school_class, section, academic_year
        ).select_related('student', 'academic_year', 'school_class', 'section')
        if academic_year is not None:
            return list(enrollments)

        # No academic year covers the date: one row per student, latest enrollment
        latest = {}
        for enrollment in enrollments.order_by('-academic_year__start_date'):
            latest.setdefault(enrollment.student_id, enrollment)
        return list(latest.values())

    @classmethod
    def get_students_with_attendance(cls, ctx, class_id, section_id, attendance_date):
        """
        Roster of a class section with each student's record for the date and
        the number of consecutive absences recorded before it.
        """
        on_date = parse_attendance_date(attendance_date, default_today=False)
        try:
            school_class = ctx.scope(SchoolClass.objects.filter(pk=class_id)).first()
            section = ctx.scope(Section.objects.filter(pk=section_id, class_name=school_class)).first()
        except (DjangoValidationError, ValueError):
            return []
        if school_class is None or section is None:
            return []

        academic_year = AcademicYear.objects.covering(ctx.tenant, on_date)
        enrollments = cls._section_enrollments(ctx, school_class, section, academic_year)
        student_ids = [enrollment.student_id for enrollment in enrollments]

        todays = {
            record.student_id: record
            for record in ctx.scope(StudentAttendance.objects.filter(
                student_id__in=student_ids, date=on_date,
            ))
        }
        history = defaultdict(list)
        for student_id, record_date, status in ctx.scope(StudentAttendance.objects.filter(
            student_id__in=student_ids, date__lt=on_date,
        )).order_by('student_id', '-date').values_list('student_id', 'date', 'status'):
            history[student_id].append((record_date, status))

        rows = []
        for enrollment in enrollments:
            student = enrollment.student
            since = max(student.admission_date, enrollment.academic_year.start_date)
            statuses = [status for record_date, status in history[student.pk] if record_date >= since]
            record = todays.get(student.pk)
            rows.append({
                'studentId': str(student.pk),
                'admissionNumber': student.admission_number,
                'firstName': student.first_name,
                'lastName': student.last_name,
                'name': student.full_name,
                'rollNumber': enrollment.roll_number,
                'class': {'id': str(enrollment.school_class_id), 'name': enrollment.school_class.name},
                'section': {'id': str(enrollment.section_id), 'name': enrollment.section.name},
                'attendance': {
                    'id': str(record.pk),
                    'status': record.status,
                    'remarks': record.remarks,
                } if record else None,
                'daysAbsentSinceLastPresent': days_absent_since_last_present(statuses),
            })

        rows.sort(key=lambda row: (
            row['rollNumber'] is None, row['rollNumber'] or 0, row['name'].lower()
        ))
        return rows

    @staticmethod
    def _holiday_info(ctx, on_date):
        holiday = Holiday.objects.on_date(ctx.tenant, on_date).first()
        return {
            'isHoliday': holiday is not None,
            'holidayName': holiday.name if holiday else None,
        }

    @staticmethod
    def _counts(student_ids, records_by_student):
        present = absent = 0
        for student_id in student_ids:
            status = records_by_student.get(student_id)
            if status == StudentAttendance.STATUS_PRESENT:
                present += 1
            elif status == StudentAttendance.STATUS_ABSENT:
                absent += 1
        total = len(student_ids)
        return {
            'presentCount': present,
            'absentCount': absent,
            'totalMarked': present + absent,
            'totalStudents': total,
            'attendancePercentage': round(present / total * 100, 2) if total else 0,
            'notMarked': total - present - absent,
        }

    @classmethod
    def attendance_stats(cls, ctx, attendance_date, class_id=None, section_id=None):
        on_date = parse_attendance_date(attendance_date, default_today=False)

        def build():
            academic_year = AcademicYear.objects.covering(ctx.tenant, on_date)
            if academic_year is not None:
                enrollments = StudentEnrollment.objects.for_tenant(ctx.tenant).filter(
                    academic_year=academic_year, student__is_active=True,
                )
                if class_id:
                    enrollments = enrollments.filter(school_class_id=class_id)
                if section_id:
                    enrollments = enrollments.filter(section_id=section_id)
                student_ids = list(enrollments.values_list('student_id', flat=True).distinct())
            else:
                student_ids = list(ctx.scope(Student.objects.all()).values_list('pk', flat=True))

            records = dict(ctx.scope(StudentAttendance.objects.filter(
                date=on_date, student_id__in=student_ids,
            )).values_list('student_id', 'status'))

            stats = {'date': on_date}
            stats.update(cls._counts(student_ids, records))
            holiday = cls._holiday_info(ctx, on_date)
            stats.update(holiday)
            stats['holidayCount'] = 1 if holiday['isHoliday'] else 0
            return stats

        params = {'date': str(on_date), 'classId': str(class_id or ''), 'sectionId': str(section_id or '')}
        try:
            return query_cache.get_or_set(ctx, TenantQueryCache.ATTENDANCE_STATS, params, build)
        except DjangoValidationError:
            raise ValidationError('Invalid classId or sectionId')

    @classmethod
    def all_class_stats(cls, ctx, attendance_date):
        """Attendance stats for every class section with enrolled students"""
        on_date = parse_attendance_date(attendance_date, default_today=False)

        def build():
            holiday = cls._holiday_info(ctx, on_date)
            academic_year = AcademicYear.objects.covering(ctx.tenant, on_date)
            if academic_year is None:
                return {'date': on_date, 'classStats': [], **holiday}

            groups = defaultdict(list)
            names = {}
            for enrollment in StudentEnrollment.objects.for_tenant(ctx.tenant).filter(
                academic_year=academic_year, student__is_active=True,
            ).select_related('school_class', 'section'):
                key = (enrollment.school_class_id, enrollment.section_id)
                groups[key].append(enrollment.student_id)
                names[key] = (enrollment.school_class.name, enrollment.section.name)

            records = dict(ctx.scope(StudentAttendance.objects.filter(date=on_date)).values_list(
                'student_id', 'status'
            ))
            class_stats = []
            for key, student_ids in groups.items():
                class_name, section_name = names[key]
                row = {
                    'classId': str(key[0]),
                    'className': class_name,
                    'sectionId': str(key[1]),
                    'sectionName': section_name,
                    'date': on_date,
                }
                row.update(cls._counts(student_ids, records))
                row.update(holiday)
                class_stats.append(row)

            class_stats.sort(key=lambda row: (row['className'], row['sectionName']))
            return {'date': on_date, 'classStats': class_stats, **holiday}

        return query_cache.get_or_set(
            ctx, TenantQueryCache.ATTENDANCE_ALL_CLASS_STATS, {'date': str(on_date)}, build
        )

    @staticmethod
    def student_calendar(ctx, student_id, today: Optional[date] = None):
        """
        Every attendance record of a student merged with holidays and weekly
        off-days since admission, plus a summary.
        """
        student = ctx.get_object(Student.all_objects.all(), student_id, 'Student not found')
        today = today or timezone.localdate()
        enrollment = student.latest_enrollment()

        attendances = list(ctx.scope(StudentAttendance.objects.filter(student=student)).order_by('date'))
        days = {
            record.date: {'date': record.date, 'status': record.status, 'remarks': record.remarks}
            for record in attendances
        }

        holidays = list(ctx.scope(Holiday.objects.all()).order_by('start_date'))
        total_holidays = sum(holiday.duration_days for holiday in holidays)
        for holiday in holidays:
            current = holiday.start_date
            while current <= holiday.end_date:
                days.setdefault(current, {
                    'date': current, 'status': 'HOLIDAY', 'name': holiday.name, 'reason': holiday.reason,
                })
                current += timedelta(days=1)

        current = student.admission_date
        while current <= today:
            if is_weekly_off(current) and current not in days:
                days[current] = {
                    'date': current,
                    'status': 'HOLIDAY',
                    'name': calendar.day_name[current.weekday()],
                    'reason': 'Weekly holiday',
                }
                total_holidays += 1
            current += timedelta(days=1)

        present = sum(1 for record in attendances if record.is_present)
        absent = len(attendances) - present
        working_days = present + absent
        return {
            'studentId': str(student.pk),
            'studentName': student.full_name,
            'class': enrollment.school_class.name if enrollment else None,
            'section': enrollment.section.name if enrollment else None,
            'attendanceRecords': [days[day] for day in sorted(days)],
            'summary': {
                'totalPresent': present,
                'totalAbsent': absent,
                'totalHolidays': total_holidays,
                'totalWorkingDays': working_days,
                'attendancePercentage': round(present / working_days * 100, 2) if working_days else 0,
            },
        }
