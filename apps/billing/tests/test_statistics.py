# apps/billing/tests/test_statistics.py
from datetime import date, datetime, timedelta
from decimal import Decimal

from django.test import TestCase, override_settings
from django.utils import timezone

from apps.billing.customers import WalkInCustomer
from apps.billing.exceptions import BillingValidationError
from apps.billing.models import Invoice
from apps.billing.services import InvoiceService
from apps.billing.statistics import BillingStatisticsService, resolve_period, week_start

from .factories import (
    OTHER_TENANT_ID,
    TENANT_ID,
    create_appointment,
    create_doctor,
    create_hospital,
    create_patient,
)


def local(*args):
    return timezone.make_aware(datetime(*args))


class ResolvePeriodTestCase(TestCase):
    """Named and custom reporting periods"""

    def setUp(self):
        # Wednesday
        self.now = local(2025, 10, 15, 14, 30)

    def test_today(self):
        date_range = resolve_period('today', now=self.now)
        self.assertEqual(date_range.start, local(2025, 10, 15))
        self.assertEqual(date_range.end, self.now)

    def test_yesterday(self):
        date_range = resolve_period('yesterday', now=self.now)
        self.assertEqual(date_range.start, local(2025, 10, 14))
        self.assertEqual(date_range.end, local(2025, 10, 14, 23, 59, 59, 999999))

    def test_week_starts_on_sunday_by_default(self):
        self.assertEqual(week_start(date(2025, 10, 15)), date(2025, 10, 12))
        self.assertEqual(week_start(date(2025, 10, 12)), date(2025, 10, 12))
        self.assertEqual(week_start(date(2025, 10, 15), first_day_of_week=1), date(2025, 10, 13))

    @override_settings(FIRST_DAY_OF_WEEK=1)
    def test_week_start_follows_settings(self):
        date_range = resolve_period('this-week', now=self.now)
        self.assertEqual(date_range.start, local(2025, 10, 13))

    def test_this_month(self):
        date_range = resolve_period('this-month', now=self.now)
        self.assertEqual(date_range.start, local(2025, 10, 1))

    def test_last_month(self):
        date_range = resolve_period('last-month', now=local(2025, 3, 15, 10, 0))
        self.assertEqual(date_range.start, local(2025, 2, 1))
        self.assertEqual(date_range.end, local(2025, 2, 28, 23, 59, 59, 999999))

    def test_last_month_in_january(self):
        date_range = resolve_period('last-month', now=local(2026, 1, 5, 10, 0))
        self.assertEqual(date_range.start, local(2025, 12, 1))

    def test_this_year(self):
        date_range = resolve_period('this-year', now=self.now)
        self.assertEqual(date_range.start, local(2025, 1, 1))

    def test_camel_case_aliases(self):
        self.assertEqual(resolve_period('thisMonth', now=self.now).name, 'this-month')
        self.assertEqual(resolve_period('lastMonth', now=self.now).name, 'last-month')

    def test_custom_range_includes_end_day(self):
        date_range = resolve_period('custom', '2025-09-01', '2025-09-30', now=self.now)
        self.assertEqual(date_range.start, local(2025, 9, 1))
        self.assertEqual(date_range.end, local(2025, 9, 30, 23, 59, 59, 999999))

    def test_custom_range_errors(self):
        for start, end in (('2025-09-30', '2025-09-01'), ('not-a-date', '2025-09-01'), (None, '2025-09-01')):
            with self.subTest(start=start, end=end):
                with self.assertRaises(BillingValidationError):
                    resolve_period('custom', start, end, now=self.now)

    def test_unknown_period(self):
        with self.assertRaises(BillingValidationError):
            resolve_period('fortnight', now=self.now)


class BillingStatisticsTestCase(TestCase):
    """Aggregates over a tenant's invoices"""

    def setUp(self):
        create_hospital()
        create_hospital(tenant_id=OTHER_TENANT_ID)
        patient = create_patient()
        doctor = create_doctor()

        appointment = create_appointment(patient, doctor, type_name='Follow-up')
        self.consultation, _ = InvoiceService.create_from_appointment(
            tenant_id=TENANT_ID, appointment_id=appointment.pk
        )
        InvoiceService.record_payment(tenant_id=TENANT_ID, invoice_id=self.consultation.pk, paid_amount=Decimal('354'))

        InvoiceService.create_manual(
            tenant_id=TENANT_ID,
            patient_id=patient.pk,
            invoice_type='consultation',
            items=[{'description': 'Procedure', 'quantity': 1, 'unit_price': Decimal('1000')}],
            paid_amount=Decimal('500'),
        )
        InvoiceService.create_walk_in_laboratory(
            tenant_id=TENANT_ID,
            customer=WalkInCustomer(name='Joseph D'),
            tests=[{'name': 'Blood Sugar', 'price': Decimal('100')}],
        )

        # Another tenant's invoice is never counted
        other_patient = create_patient(tenant_id=OTHER_TENANT_ID)
        InvoiceService.create_manual(
            tenant_id=OTHER_TENANT_ID,
            patient_id=other_patient.pk,
            invoice_type='pharmacy',
            items=[{'description': 'Syrup', 'quantity': 1, 'unit_price': Decimal('90')}],
        )

    def test_this_month_summary(self):
        stats = BillingStatisticsService.collect(TENANT_ID, 'this-month')

        summary = stats['summary']
        self.assertEqual(summary['total_invoices'], 3)
        # 354 + 1180 + 118
        self.assertEqual(summary['total_amount'], Decimal('1652.00'))
        self.assertEqual(summary['paid_amount'], Decimal('854.00'))
        self.assertEqual(summary['pending_amount'], Decimal('798.00'))

        self.assertEqual(stats['by_type']['consultation']['count'], 2)
        self.assertEqual(stats['by_type']['laboratory']['count'], 1)
        self.assertNotIn('pharmacy', stats['by_type'])

        self.assertEqual(stats['by_status']['paid']['count'], 1)
        self.assertEqual(stats['by_status']['partial']['count'], 1)
        self.assertEqual(stats['by_status']['unpaid']['count'], 1)

        self.assertEqual(stats['by_payment_method']['Cash']['count'], 3)
        self.assertEqual(stats['period']['name'], 'this-month')

    def test_invoices_outside_period_are_excluded(self):
        Invoice.objects.filter(pk=self.consultation.pk).update(
            invoice_date=timezone.now() - timedelta(days=400)
        )

        stats = BillingStatisticsService.collect(TENANT_ID, 'today')

        self.assertEqual(stats['summary']['total_invoices'], 2)

    def test_empty_period(self):
        stats = BillingStatisticsService.collect(TENANT_ID, 'custom', '2020-01-01', '2020-01-31')

        self.assertEqual(stats['summary']['total_invoices'], 0)
        self.assertEqual(stats['summary']['total_amount'], Decimal('0.00'))
        self.assertEqual(stats['by_type'], {})
