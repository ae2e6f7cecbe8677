from datetime import date

from django.contrib import admin
from django.test import RequestFactory, TestCase

from apps.academics.admin import HolidayAdmin, StudentAttendanceAdmin
from apps.academics.models import Holiday, StudentAttendance
from apps.attendance.services import AttendanceLedger
from apps.core.tests.helpers import SchoolFixturesMixin

MONDAY = date(2025, 6, 2)


class AdminCacheInvalidationTest(SchoolFixturesMixin, TestCase):
    def setUp(self):
        super().setUp()
        self.request = RequestFactory().post('/admin/')
        self.request.user = self.admin

    def make_holiday(self, name, start, end):
        return Holiday.objects.create(tenant=self.tenant, name=name, start_date=start, end_date=end)

    def test_bulk_holiday_delete_is_soft_and_refreshes_stats(self):
        first = self.make_holiday('Summer Break', date(2025, 5, 15), date(2025, 5, 31))
        second = self.make_holiday('Founders Day', date(2025, 8, 15), date(2025, 8, 15))
        self.assertTrue(AttendanceLedger.attendance_stats(self.ctx, '2025-05-20')['isHoliday'])

        HolidayAdmin(Holiday, admin.site).delete_queryset(
            self.request, Holiday.objects.filter(pk__in=[first.pk, second.pk])
        )

        rows = Holiday.all_objects.filter(pk__in=[first.pk, second.pk])
        self.assertEqual(rows.count(), 2)
        self.assertFalse(rows.filter(is_active=True).exists())
        self.assertEqual({row.deleted_by_id for row in rows}, {self.admin.pk})
        self.assertFalse(AttendanceLedger.attendance_stats(self.ctx, '2025-05-20')['isHoliday'])

    def test_holiday_save_refreshes_stats(self):
        self.assertFalse(AttendanceLedger.attendance_stats(self.ctx, MONDAY)['isHoliday'])

        holiday = Holiday(tenant=self.tenant, name='Rain Day', start_date=MONDAY, end_date=MONDAY)
        HolidayAdmin(Holiday, admin.site).save_model(self.request, holiday, None, False)

        self.assertTrue(AttendanceLedger.attendance_stats(self.ctx, MONDAY)['isHoliday'])

    def test_attendance_edit_refreshes_stats(self):
        student = self.make_student('ADM-001', 'Asha', roll_number=1)
        AttendanceLedger.bulk_mark_attendance(self.ctx, MONDAY, [{'student_id': student.pk, 'status': 'PRESENT'}])
        self.assertEqual(AttendanceLedger.attendance_stats(self.ctx, MONDAY)['presentCount'], 1)

        record = StudentAttendance.objects.get(student=student, date=MONDAY)
        record.status = StudentAttendance.STATUS_ABSENT
        StudentAttendanceAdmin(StudentAttendance, admin.site).save_model(self.request, record, None, True)

        stats = AttendanceLedger.attendance_stats(self.ctx, MONDAY)
        self.assertEqual((stats['presentCount'], stats['absentCount']), (0, 1))

    def test_attendance_delete_is_soft_and_refreshes_stats(self):
        student = self.make_student('ADM-001', 'Asha', roll_number=1)
        AttendanceLedger.bulk_mark_attendance(self.ctx, MONDAY, [{'student_id': student.pk, 'status': 'ABSENT'}])
        self.assertEqual(AttendanceLedger.attendance_stats(self.ctx, MONDAY)['absentCount'], 1)

        record = StudentAttendance.objects.get(student=student, date=MONDAY)
        StudentAttendanceAdmin(StudentAttendance, admin.site).delete_model(self.request, record)

        self.assertTrue(StudentAttendance.all_objects.filter(pk=record.pk, is_active=False).exists())
        self.assertEqual(AttendanceLedger.attendance_stats(self.ctx, MONDAY)['absentCount'], 0)
