from datetime import date

from django.test import TestCase
from rest_framework.test import APIClient

from apps.academics.models import Holiday
from apps.attendance.services import AttendanceLedger
from apps.core.tests.helpers import SchoolFixturesMixin


class HolidayApiTest(SchoolFixturesMixin, TestCase):
    def setUp(self):
        super().setUp()
        self.teacher = self.make_user(self.tenant, 'TEACHER', 'teacher@test-school.com')
        self.summer = Holiday.objects.create(
            tenant=self.tenant, name='Summer Break',
            start_date=date(2025, 5, 15), end_date=date(2025, 5, 31),
        )
        self.api = APIClient()
        self.api.force_authenticate(user=self.admin)

    def create(self, start, end, name='Founders Day'):
        return self.api.post('/api/holidays/', {
            'name': name, 'start_date': start, 'end_date': end, 'reason': 'School event',
        }, format='json')

    def test_admin_creates_holiday(self):
        response = self.create('2025-08-15', '2025-08-16')

        self.assertEqual(response.status_code, 201)
        self.assertEqual(response.data['data']['duration_days'], 2)
        holiday = Holiday.objects.get(name='Founders Day')
        self.assertEqual(holiday.tenant, self.tenant)
        self.assertEqual(holiday.created_by, self.admin)

    def test_overlapping_holiday_is_rejected(self):
        response = self.create('2025-05-31', '2025-06-02')

        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.data['message'], 'Holiday overlaps with an existing holiday')
        self.assertEqual(response.data['error']['details'], {'conflictingIds': [str(self.summer.pk)]})

    def test_end_before_start_is_rejected(self):
        response = self.create('2025-08-16', '2025-08-15')
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.data['message'], 'End date must be equal to or after start date')

    def test_editing_a_holiday_does_not_clash_with_itself(self):
        response = self.api.patch(f'/api/holidays/{self.summer.pk}/', {'end_date': '2025-06-01'}, format='json')
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data['data']['duration_days'], 18)

    def test_teacher_reads_but_cannot_write(self):
        self.api.force_authenticate(user=self.teacher)

        listing = self.api.get('/api/holidays/')
        self.assertEqual(listing.status_code, 200)
        self.assertEqual(listing.data['data']['pagination']['totalItems'], 1)
        self.assertEqual(self.create('2025-08-15', '2025-08-15').status_code, 403)

    def test_list_filters_by_overlapping_range(self):
        self.create('2025-08-15', '2025-08-15')

        response = self.api.get('/api/holidays/', {'from_date': '2025-05-30', 'to_date': '2025-06-30'})
        names = [row['name'] for row in response.data['data']['results']]
        self.assertEqual(names, ['Summer Break'])

    def test_other_schools_holidays_are_hidden(self):
        other = self.make_school('other_school', 'Other School')
        Holiday.objects.create(
            tenant=other, name='Other Break', start_date=date(2025, 8, 1), end_date=date(2025, 8, 2),
        )
        response = self.api.get('/api/holidays/')
        self.assertEqual([row['name'] for row in response.data['data']['results']], ['Summer Break'])

        # another school's dates do not count as a clash
        self.assertEqual(self.create('2025-08-01', '2025-08-01').status_code, 201)

    def test_creating_holiday_refreshes_cached_stats(self):
        self.assertFalse(AttendanceLedger.attendance_stats(self.ctx, '2025-08-15')['isHoliday'])

        self.create('2025-08-15', '2025-08-15')

        stats = AttendanceLedger.attendance_stats(self.ctx, '2025-08-15')
        self.assertTrue(stats['isHoliday'])
        self.assertEqual(stats['holidayName'], 'Founders Day')

    def test_delete_is_soft_and_refreshes_cached_stats(self):
        self.assertTrue(AttendanceLedger.attendance_stats(self.ctx, '2025-05-20')['isHoliday'])

        response = self.api.delete(f'/api/holidays/{self.summer.pk}/')

        self.assertEqual(response.status_code, 200)
        self.summer.refresh_from_db()
        self.assertFalse(self.summer.is_active)
        self.assertEqual(self.summer.deleted_by, self.admin)
        self.assertFalse(AttendanceLedger.attendance_stats(self.ctx, '2025-05-20')['isHoliday'])

    def test_check_date(self):
        response = self.api.get('/api/holidays/check/2025-05-20/')
        self.assertEqual(response.status_code, 200)
        self.assertTrue(response.data['data']['isHoliday'])
        self.assertEqual(response.data['data']['holiday']['name'], 'Summer Break')
        self.assertEqual(response.data['message'], 'Date is a holiday')

        sunday = self.api.get('/api/holidays/check/2025-06-08/')
        self.assertFalse(sunday.data['data']['isHoliday'])
        self.assertTrue(sunday.data['data']['isWeeklyOff'])

    def test_check_rejects_bad_date(self):
        response = self.api.get('/api/holidays/check/2025-13-40/')
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.data['error']['code'], 'invalid_date')
