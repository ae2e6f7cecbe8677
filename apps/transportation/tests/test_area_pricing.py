from datetime import date
from decimal import Decimal

from django.test import TestCase
from rest_framework.test import APIClient

from apps.core.exceptions import NotFoundError, ValidationError
from apps.core.logging import TenantContextFilter
from apps.core.tests.helpers import SchoolFixturesMixin
from apps.transportation import services
from apps.transportation.models import TransportationAreaPricing
from apps.transportation.services import TransportationPricingService


class AreaPricingTestMixin(SchoolFixturesMixin):
    def setUp(self):
        super().setUp()
        self.north = self.make_area('North Zone', '300.00')
        self.south = self.make_area('South Zone', '450.00')

    def make_area(self, name, price, academic_year='2025-26', effective_from=date(2025, 4, 1), **extra):
        return TransportationAreaPricing.objects.create(
            tenant=self.tenant,
            area_name=name,
            price=Decimal(price),
            academic_year=academic_year,
            effective_from=effective_from,
            **extra
        )


class CopyPricingTest(AreaPricingTestMixin, TestCase):
    def test_copy_whole_year(self):
        result = TransportationPricingService.copy_pricing_to_year(self.ctx, '2025-26', '2026-27')

        self.assertEqual(result, {'copiedCount': 2, 'fromYear': '2025-26', 'toYear': '2026-27'})
        copied = TransportationAreaPricing.objects.get(area_name='North Zone', academic_year='2026-27')
        self.assertEqual(copied.price, Decimal('300.00'))
        self.assertEqual(copied.effective_from, date(2026, 4, 1))
        self.assertEqual(copied.effective_to, date(2027, 3, 31))

    def test_copy_selected_areas(self):
        result = TransportationPricingService.copy_pricing_to_year(
            self.ctx, '2025-26', '2026-27', area_names=['South Zone']
        )
        self.assertEqual(result['copiedCount'], 1)
        self.assertFalse(TransportationAreaPricing.objects.filter(
            area_name='North Zone', academic_year='2026-27'
        ).exists())

    def test_areas_already_priced_are_skipped(self):
        self.make_area('North Zone', '350.00', academic_year='2026-27', effective_from=date(2026, 4, 1))
        result = TransportationPricingService.copy_pricing_to_year(self.ctx, '2025-26', '2026-27')

        self.assertEqual(result['copiedCount'], 1)
        north = TransportationAreaPricing.objects.get(area_name='North Zone', academic_year='2026-27')
        self.assertEqual(north.price, Decimal('350.00'))

    def test_copy_is_logged_with_school(self):
        self.assertTrue(any(isinstance(f, TenantContextFilter) for f in services.logger.filters))
        with self.assertLogs('apps.transportation.services', level='INFO') as logs:
            TransportationPricingService.copy_pricing_to_year(self.ctx, '2025-26', '2026-27')
        self.assertEqual(logs.records[0].tenant, 'test_school')

    def test_same_year_rejected(self):
        with self.assertRaisesMessage(ValidationError, 'Source and destination academic years cannot be the same'):
            TransportationPricingService.copy_pricing_to_year(self.ctx, '2025-26', '2025-26')

    def test_nothing_to_copy(self):
        with self.assertRaisesMessage(NotFoundError, 'No pricing records found for the specified criteria'):
            TransportationPricingService.copy_pricing_to_year(self.ctx, '2024-25', '2025-26')

    def test_other_schools_prices_are_not_copied(self):
        other = self.make_school('other_school', 'Other School')
        TransportationAreaPricing.objects.create(
            tenant=other, area_name='East Zone', price=Decimal('200.00'),
            academic_year='2025-26', effective_from=date(2025, 4, 1),
        )
        result = TransportationPricingService.copy_pricing_to_year(self.ctx, '2025-26', '2026-27')
        self.assertEqual(result['copiedCount'], 2)

    def test_stats(self):
        self.south.delete()
        stats = TransportationPricingService.pricing_stats(self.ctx, '2025-26')
        self.assertEqual(stats['totalRecords'], 2)
        self.assertEqual(stats['activeRecords'], 1)
        self.assertEqual(stats['uniqueAreas'], 2)
        self.assertEqual(stats['averagePrice'], 375.0)
        self.assertEqual(stats['academicYears'], ['2025-26'])


class AreaPricingApiTest(AreaPricingTestMixin, TestCase):
    def setUp(self):
        super().setUp()
        self.teacher = self.make_user(self.tenant, 'TEACHER', 'teacher@test-school.com')
        self.api = APIClient()

    def test_overlapping_window_is_a_conflict(self):
        self.api.force_authenticate(user=self.admin)
        response = self.api.post('/api/transportation/area-pricing/', {
            'area_name': 'North Zone',
            'price': '320.00',
            'academic_year': '2025-26',
            'effective_from': '2025-09-01',
        }, format='json')
        self.assertEqual(response.status_code, 409)
        self.assertEqual(response.data['error']['details'], {'conflictingIds': [str(self.north.pk)]})

    def test_copy_endpoint_requires_admin(self):
        self.api.force_authenticate(user=self.teacher)
        response = self.api.post('/api/transportation/area-pricing/copy-to-year/', {
            'fromYear': '2025-26', 'toYear': '2026-27',
        }, format='json')
        self.assertEqual(response.status_code, 403)

    def test_copy_endpoint(self):
        self.api.force_authenticate(user=self.admin)
        response = self.api.post('/api/transportation/area-pricing/copy-to-year/', {
            'fromYear': '2025-26', 'toYear': '2026-27', 'areaNames': ['North Zone'],
        }, format='json')
        self.assertEqual(response.status_code, 201)
        self.assertEqual(response.data['data']['copiedCount'], 1)
        self.assertEqual(response.data['message'], 'Successfully copied 1 pricing records')

    def test_members_can_read(self):
        self.api.force_authenticate(user=self.teacher)
        response = self.api.get('/api/transportation/area-pricing/', {'academic_year': '2025-26'})
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data['data']['pagination']['totalItems'], 2)

    def test_delete_is_soft(self):
        self.api.force_authenticate(user=self.admin)
        response = self.api.delete(f'/api/transportation/area-pricing/{self.north.pk}/')
        self.assertEqual(response.status_code, 200)
        self.north.refresh_from_db()
        self.assertFalse(self.north.is_active)
        self.assertEqual(self.north.deleted_by, self.admin)
