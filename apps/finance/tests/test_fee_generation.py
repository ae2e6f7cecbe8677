from datetime import date
from decimal import Decimal

from django.test import TestCase

from apps.core.exceptions import DuplicateFeeError, NotFoundError, ValidationError
from apps.core.models import AuditLog
from apps.core.tests.helpers import SchoolFixturesMixin
from apps.core.utils.tenant import TenantContext
from apps.finance.models import StudentMonthlyFee, StudentMonthlyFeeItem
from apps.finance.pricing import FeeFlags
from apps.finance.services import FeeGenerationService, PaymentWorkflow, month_label


class FeeGenerationTest(SchoolFixturesMixin, TestCase):
    def setUp(self):
        super().setUp()
        self.student = self.make_student('ADM-001', 'Asha', roll_number=1)
        self.make_tuition('500.00')

    def generate(self, month=6, calendar_year=2025, **flags):
        return FeeGenerationService.generate_monthly_fee(
            self.ctx, self.student.pk, month, calendar_year, FeeFlags(**flags)
        )

    def test_generate_stores_fee_and_items(self):
        fee = self.generate()

        self.assertEqual(fee.academic_year, '2025-26')
        self.assertEqual(fee.total_configured_amount, Decimal('500.00'))
        self.assertEqual(fee.total_payable_amount, Decimal('500.00'))
        self.assertEqual(fee.status, StudentMonthlyFee.STATUS_UNPAID)
        self.assertEqual(fee.generated_by, self.admin)
        self.assertEqual(fee.items.count(), 1)
        self.assertTrue(AuditLog.objects.filter(
            action=AuditLog.AuditAction.GENERATE, resource_id=str(fee.id)
        ).exists())

    def test_second_generation_for_same_month_is_rejected(self):
        self.generate()
        with self.assertRaisesMessage(DuplicateFeeError, 'Monthly fee already generated for 6/2025'):
            self.generate()
        self.assertEqual(StudentMonthlyFee.objects.filter(student=self.student).count(), 1)

    def test_full_discount_creates_paid_fee(self):
        fee = self.generate(discount=Decimal('750.00'), discount_reason='Staff child')
        self.assertEqual(fee.total_payable_amount, Decimal('0.00'))
        self.assertEqual(fee.total_adjustment, Decimal('500.00'))
        self.assertEqual(fee.status, StudentMonthlyFee.STATUS_PAID)

    def test_student_who_left_cannot_be_billed(self):
        self.student.delete()
        with self.assertRaisesMessage(ValidationError, 'Cannot generate fee for student who has left school'):
            self.generate()

    def test_nothing_to_charge(self):
        with self.assertRaisesMessage(ValidationError, 'No fee items could be calculated'):
            self.generate(month=5, calendar_year=2026)

    def test_student_of_another_school(self):
        other = self.make_school('other_school', 'Other School')
        outsider = self.make_student('ADM-900', 'Zara', tenant=other)
        with self.assertRaises(NotFoundError):
            FeeGenerationService.generate_monthly_fee(self.ctx, outsider.pk, 6, 2025, FeeFlags())

    def test_regenerate_replaces_items(self):
        fee = self.generate()
        updated = FeeGenerationService.regenerate_monthly_fee(
            self.ctx, fee.pk, 6, 2025, FeeFlags(discount=Decimal('100.00'))
        )
        self.assertEqual(updated.total_payable_amount, Decimal('400.00'))
        self.assertEqual(updated.last_edited_by, self.admin)
        self.assertIsNotNone(updated.last_edited_at)
        self.assertEqual(StudentMonthlyFeeItem.all_objects.filter(monthly_fee=fee).count(), 1)

    def test_regenerate_requires_matching_period(self):
        fee = self.generate()
        with self.assertRaisesMessage(ValidationError, 'Month/year in request does not match existing fee'):
            FeeGenerationService.regenerate_monthly_fee(self.ctx, fee.pk, 7, 2025, FeeFlags())

    def test_regenerate_blocked_after_payment(self):
        fee = self.generate()
        PaymentWorkflow.record_payment(self.ctx, fee.pk, '100', 'Cash')
        with self.assertRaisesMessage(ValidationError, 'Cannot regenerate fee that has received payments'):
            FeeGenerationService.regenerate_monthly_fee(self.ctx, fee.pk, 6, 2025, FeeFlags())


class FeeReadModelTest(SchoolFixturesMixin, TestCase):
    def setUp(self):
        super().setUp()
        self.student = self.make_student('ADM-001', 'Asha', roll_number=1)
        self.make_tuition('500.00')
        self.fee = FeeGenerationService.generate_monthly_fee(self.ctx, self.student.pk, 6, 2025, FeeFlags())

    def test_month_label(self):
        self.assertEqual(month_label(1, 2025), 'JANUARY 2025')

    def test_timeline_runs_from_admission_to_month_after_last_fee(self):
        PaymentWorkflow.record_payment(self.ctx, self.fee.pk, '200', 'UPI')

        data = FeeGenerationService.fee_timeline(self.ctx, self.student.pk)
        timeline = data['timeline']

        self.assertEqual(data['student']['admissionNumber'], 'ADM-001')
        self.assertEqual(
            [(entry['month'], entry['calendarYear']) for entry in timeline],
            [(4, 2025), (5, 2025), (6, 2025), (7, 2025)],
        )
        self.assertEqual(timeline[0]['status'], 'not_generated')
        june = timeline[2]
        self.assertEqual(june['status'], 'partial')
        self.assertEqual(june['monthLabel'], 'JUNE 2025')
        self.assertEqual(june['dueAmount'], Decimal('300.00'))
        self.assertEqual(june['payments'][0]['receivedBy'], self.admin.display_name)
        self.assertEqual(timeline[3]['status'], 'not_generated')

    def test_dues_lists_unpaid_fees(self):
        dues = FeeGenerationService.students_with_dues(self.ctx, 6, 2025, today=date(2025, 7, 10))
        self.assertEqual(len(dues), 1)
        self.assertEqual(dues[0]['dueAmount'], Decimal('500.00'))
        self.assertEqual(dues[0]['class'], 'Class 5')
        self.assertEqual(dues[0]['section'], 'A')

    def test_paid_fees_are_not_dues(self):
        PaymentWorkflow.record_payment(self.ctx, self.fee.pk, '500', 'Cash')
        self.assertEqual(FeeGenerationService.students_with_dues(self.ctx, 6, 2025, today=date(2025, 7, 10)), [])

    def test_dues_for_future_month_rejected(self):
        with self.assertRaisesMessage(ValidationError, 'Cannot query future months'):
            FeeGenerationService.students_with_dues(self.ctx, 8, 2025, today=date(2025, 7, 10))

    def test_dues_require_period(self):
        with self.assertRaisesMessage(ValidationError, 'Missing required fields: month, calendarYear'):
            FeeGenerationService.students_with_dues(self.ctx, None, 2025)

    def test_dashboard_covers_twelve_months(self):
        PaymentWorkflow.record_payment(self.ctx, self.fee.pk, '200', 'Cash')
        rows = FeeGenerationService.fee_dashboard(self.ctx, today=date(2025, 6, 15))

        self.assertEqual(len(rows), 12)
        self.assertEqual((rows[0]['month'], rows[0]['calendarYear']), (6, 2025))
        self.assertEqual((rows[-1]['month'], rows[-1]['calendarYear']), (7, 2024))
        self.assertEqual(rows[0]['feeCount'], 1)
        self.assertEqual(rows[0]['totalGenerated'], Decimal('500.00'))
        self.assertEqual(rows[0]['totalCollected'], Decimal('200.00'))
        self.assertEqual(rows[0]['totalDue'], Decimal('300.00'))

    def test_dashboard_is_scoped_to_school(self):
        other = self.make_school('other_school', 'Other School')
        other_ctx = TenantContext(tenant=other, user=None)
        rows = FeeGenerationService.fee_dashboard(other_ctx, today=date(2025, 6, 15))
        self.assertEqual(rows[0]['feeCount'], 0)
