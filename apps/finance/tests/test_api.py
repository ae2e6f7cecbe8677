from datetime import date
from decimal import Decimal

from django.test import TestCase
from rest_framework.test import APIClient

from apps.core.tests.helpers import SchoolFixturesMixin
from apps.finance.models import Expense, ExpenseCategory, FeeCategory, IncomingPayment


class FinanceApiTestMixin(SchoolFixturesMixin):
    def setUp(self):
        super().setUp()
        self.cashier = self.make_user(self.tenant, 'CASHIER', 'cashier@test-school.com')
        self.teacher = self.make_user(self.tenant, 'TEACHER', 'teacher@test-school.com')
        self.student = self.make_student('ADM-001', 'Asha', roll_number=1)
        self.tuition = self.make_tuition('500.00')
        self.api = APIClient()

    def as_user(self, user):
        self.api.force_authenticate(user=user)
        return self.api

    def generate(self, month=6, **extra):
        payload = {'studentId': str(self.student.pk), 'month': month, 'calendarYear': 2025}
        payload.update(extra)
        return self.as_user(self.cashier).post('/api/fees/generate/', payload, format='json')


class MonthlyFeeApiTest(FinanceApiTestMixin, TestCase):
    def test_generate(self):
        response = self.generate()
        self.assertEqual(response.status_code, 201)
        data = response.data['data']
        self.assertEqual(data['totalPayableAmount'], '500.00')
        self.assertEqual(data['status'], 'UNPAID')
        self.assertEqual(data['items'][0]['feeType'], 'TUITION_FEE')

    def test_duplicate_generation_is_a_conflict(self):
        self.generate()
        response = self.generate()
        self.assertEqual(response.status_code, 409)
        self.assertEqual(response.data['error']['code'], 'duplicate_fee')

    def test_teacher_cannot_generate(self):
        payload = {'studentId': str(self.student.pk), 'month': 6, 'calendarYear': 2025}
        response = self.as_user(self.teacher).post('/api/fees/generate/', payload, format='json')
        self.assertEqual(response.status_code, 403)

    def test_missing_student(self):
        response = self.as_user(self.cashier).post(
            '/api/fees/generate/', {'month': 6, 'calendarYear': 2025}, format='json'
        )
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.data['message'], 'studentId is required')

    def test_hostel_with_transport_is_rejected(self):
        response = self.generate(hostel=True, transportationAreaId='0f8e7c2a-4b1d-4e2f-9a3b-5c6d7e8f9a0b')
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.data['error']['code'], 'conflicting_service')

    def test_resolve_preview_does_not_save(self):
        response = self.as_user(self.cashier).post('/api/fees/resolve/', {
            'studentId': str(self.student.pk), 'month': 6, 'calendarYear': 2025, 'discount': '50.00',
        }, format='json')
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data['data']['netAmount'], Decimal('450.00'))
        self.assertFalse(self.student.monthly_fees.exists())

    def test_list_and_detail(self):
        fee_id = self.generate().data['data']['id']
        listing = self.api.get('/api/fees/', {'status': 'UNPAID'})
        self.assertEqual(listing.data['data']['pagination']['totalItems'], 1)

        detail = self.api.get(f'/api/fees/{fee_id}/')
        self.assertEqual(detail.status_code, 200)
        self.assertEqual(detail.data['data']['academicYear'], '2025-26')

    def test_timeline(self):
        self.generate()
        response = self.api.get(f'/api/fees/timeline/{self.student.pk}/')
        self.assertEqual(response.status_code, 200)
        statuses = [entry['status'] for entry in response.data['data']['timeline']]
        self.assertEqual(statuses, ['not_generated', 'not_generated', 'unpaid', 'not_generated'])

    def test_dues_require_period(self):
        response = self.as_user(self.cashier).get('/api/fees/dues/')
        self.assertEqual(response.status_code, 400)


class PaymentApiTest(FinanceApiTestMixin, TestCase):
    def setUp(self):
        super().setUp()
        self.fee_id = self.generate().data['data']['id']

    def record(self, amount='200.00', mode='Cash'):
        return self.as_user(self.cashier).post('/api/payments/', {
            'monthlyFeeId': self.fee_id,
            'amountPaid': amount,
            'paymentMode': mode,
        }, format='json')

    def test_record_payment(self):
        response = self.record()
        self.assertEqual(response.status_code, 201)
        self.assertFalse(response.data['data']['verified'])
        self.assertEqual(response.data['data']['receivedBy'], self.cashier.display_name)

    def test_overpayment_rejected(self):
        response = self.record('900.00')
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.data['error']['details'], {'dueAmount': '500.00'})

    def test_unknown_mode(self):
        response = self.record(mode='Barter')
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.data['error']['code'], 'invalid_payment_mode')

    def test_cashier_cannot_verify(self):
        payment_id = self.record().data['data']['id']
        response = self.as_user(self.cashier).put(f'/api/payments/{payment_id}/verify/')
        self.assertEqual(response.status_code, 403)
        self.assertFalse(IncomingPayment.objects.get(pk=payment_id).verified)

    def test_admin_verifies_twice(self):
        payment_id = self.record().data['data']['id']
        api = self.as_user(self.admin)
        first = api.put(f'/api/payments/{payment_id}/verify/')
        second = api.put(f'/api/payments/{payment_id}/verify/')
        self.assertEqual(first.status_code, 200)
        self.assertEqual(second.status_code, 200)
        self.assertTrue(second.data['data']['verified'])
        self.assertEqual(second.data['data']['verifiedAt'], first.data['data']['verifiedAt'])

    def test_verify_payment_of_another_school(self):
        payment_id = self.record().data['data']['id']
        other = self.make_school('other_school', 'Other School')
        other_admin = self.make_user(other, 'ADMIN', 'admin@other-school.com')
        response = self.as_user(other_admin).put(f'/api/payments/{payment_id}/verify/')
        self.assertEqual(response.status_code, 404)

    def test_list_and_summary(self):
        self.record('100.00')
        self.record('50.00', mode='UPI')
        response = self.api.get('/api/payments/', {'paymentMode': 'upi'})
        self.assertEqual(response.data['data']['pagination']['totalItems'], 1)

        summary = self.api.get('/api/payments/summary/')
        self.assertEqual(summary.data['data']['unverifiedCount'], 2)


class CatalogApiTest(FinanceApiTestMixin, TestCase):
    def pricing_payload(self, **overrides):
        payload = {
            'school_class': str(self.school_class.pk),
            'fee_category': str(self.tuition.fee_category_id),
            'amount': '650.00',
            'academic_year': '2025-26',
            'effective_from': '2025-10-01',
        }
        payload.update(overrides)
        return payload

    def test_overlapping_price_is_a_conflict(self):
        response = self.as_user(self.admin).post('/api/fees/class-pricing/', self.pricing_payload(), format='json')
        self.assertEqual(response.status_code, 409)
        self.assertEqual(response.data['error']['details'], {'conflictingIds': [str(self.tuition.pk)]})

    def test_non_overlapping_price_is_created(self):
        response = self.as_user(self.admin).post(
            '/api/fees/class-pricing/', self.pricing_payload(academic_year='2026-27', effective_from='2026-04-01'),
            format='json',
        )
        self.assertEqual(response.status_code, 201)
        self.assertEqual(response.data['data']['class_name'], 'Class 5')

    def test_fixed_category_cannot_be_class_priced(self):
        fixed = FeeCategory.objects.create(tenant=self.tenant, name='Exam Fee', fixed_amount=Decimal('100'))
        response = self.as_user(self.admin).post(
            '/api/fees/class-pricing/',
            self.pricing_payload(fee_category=str(fixed.pk), academic_year='2026-27', effective_from='2026-04-01'),
            format='json',
        )
        self.assertEqual(response.status_code, 400)
        self.assertIn('fee_category', response.data['error']['details'])

    def test_cashier_reads_but_cannot_write(self):
        api = self.as_user(self.cashier)
        self.assertEqual(api.get('/api/fees/class-pricing/').status_code, 200)
        response = api.post('/api/fees/class-pricing/', self.pricing_payload(), format='json')
        self.assertEqual(response.status_code, 403)

    def test_categories_are_scoped_to_school(self):
        other = self.make_school('other_school', 'Other School')
        FeeCategory.objects.create(tenant=other, name='Their Fee')
        response = self.as_user(self.admin).get('/api/fees/categories/')
        names = [row['name'] for row in response.data['data']['results']]
        self.assertEqual(names, ['Tuition Fee'])


class ExpenseApiTest(FinanceApiTestMixin, TestCase):
    def setUp(self):
        super().setUp()
        self.category = ExpenseCategory.objects.create(tenant=self.tenant, name='Maintenance')

    def test_system_generated_expense_is_read_only(self):
        expense = Expense.objects.create(
            tenant=self.tenant,
            name='Vendor payout',
            amount=Decimal('900.00'),
            category=self.category,
            is_vendor_payment=True,
        )
        response = self.as_user(self.admin).patch(f'/api/expenses/{expense.pk}/', {'name': 'Edited'}, format='json')
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.data['message'], 'System generated expenses cannot be modified')

    def test_report_reflects_new_expense(self):
        api = self.as_user(self.admin)
        before = api.get('/api/expenses/report/', {'year': 2025})
        self.assertEqual(before.data['data']['totalExpenses'], Decimal('0.00'))

        created = api.post('/api/expenses/', {
            'name': 'Paint',
            'amount': '300.00',
            'category': str(self.category.pk),
            'expense_date': str(date(2025, 8, 14)),
        }, format='json')
        self.assertEqual(created.status_code, 201)

        after = api.get('/api/expenses/report/', {'year': 2025})
        self.assertEqual(after.data['data']['totalExpenses'], Decimal('300.00'))
        self.assertEqual(after.data['data']['months'][7]['expenses'], Decimal('300.00'))
