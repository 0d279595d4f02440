# apps/billing/tests/test_calculations.py
from datetime import datetime, timezone as dt_timezone
from decimal import Decimal

from django.test import SimpleTestCase

from apps.billing.calculations import (
    InvoiceLine,
    calculate_totals,
    derive_payment_state,
    to_money,
)
from apps.billing.exceptions import BillingValidationError


class CalculateTotalsTestCase(SimpleTestCase):
    """Line amounts, subtotal and tax"""

    def test_manual_invoice_totals(self):
        """Two lines at 18% tax come to 2360"""
        totals = calculate_totals([
            InvoiceLine('Dressing', 2, Decimal('500')),
            InvoiceLine('Injection', 1, Decimal('1000')),
        ], Decimal('18'))

        self.assertEqual(totals.subtotal, Decimal('2000.00'))
        self.assertEqual(totals.tax_amount, Decimal('360.00'))
        self.assertEqual(totals.total_amount, Decimal('2360.00'))
        self.assertEqual([line.amount for line in totals.lines], [Decimal('1000.00'), Decimal('1000.00')])

    def test_explicit_amount_overrides_quantity_times_price(self):
        """A supplied line amount is kept as is"""
        totals = calculate_totals([
            InvoiceLine('Discounted scan', 1, Decimal('1200'), amount=Decimal('1000')),
        ], Decimal('0'))

        self.assertEqual(totals.subtotal, Decimal('1000.00'))
        self.assertEqual(totals.total_amount, Decimal('1000.00'))

    def test_many_fractional_lines_do_not_drift(self):
        """Totals stay exact across a long list of fractional prices"""
        lines = [InvoiceLine(f'Item {i}', (i % 3) + 1, Decimal('0.33') + Decimal(i) / 100) for i in range(150)]
        totals = calculate_totals(lines, Decimal('12.5'))

        self.assertEqual(totals.subtotal, sum((line.amount for line in totals.lines), Decimal('0.00')))
        self.assertEqual(totals.total_amount, totals.subtotal + totals.tax_amount)
        self.assertEqual(totals.tax_amount, totals.tax_amount.quantize(Decimal('0.01')))

    def test_tax_rounds_half_up(self):
        """0.5 paise of tax rounds up"""
        totals = calculate_totals([InvoiceLine('Syrup', 1, Decimal('0.25'))], Decimal('18'))
        # 0.25 * 18% = 0.045
        self.assertEqual(totals.tax_amount, Decimal('0.05'))

    def test_empty_item_list_is_rejected(self):
        with self.assertRaises(BillingValidationError):
            calculate_totals([], Decimal('18'))

    def test_invalid_line_reports_its_position(self):
        """Negative price and zero quantity are reported against the line"""
        with self.assertRaises(BillingValidationError) as ctx:
            calculate_totals([
                InvoiceLine('Fine', 1, Decimal('10')),
                InvoiceLine('Broken', 0, Decimal('-5')),
            ], Decimal('18'))

        errors = ctx.exception.details['items'][1]
        self.assertIn('quantity', errors)
        self.assertIn('unit_price', errors)

    def test_zero_total_is_rejected(self):
        with self.assertRaises(BillingValidationError):
            calculate_totals([InvoiceLine('Free sample', 1, Decimal('0'))], Decimal('18'))

    def test_tax_percentage_out_of_range(self):
        with self.assertRaises(BillingValidationError):
            calculate_totals([InvoiceLine('Consultation', 1, Decimal('500'))], Decimal('101'))

    def test_to_money_rejects_non_numbers(self):
        for value in ('abc', None, True, 'NaN'):
            with self.subTest(value=value):
                with self.assertRaises(BillingValidationError):
                    to_money(value)


class PaymentStateTestCase(SimpleTestCase):
    """Payment status derived from total and paid amount"""

    NOW = datetime(2025, 10, 14, 9, 0, tzinfo=dt_timezone.utc)

    def test_nothing_paid_is_unpaid(self):
        state = derive_payment_state(Decimal('2360'), Decimal('0'), now=self.NOW)
        self.assertEqual(state.status, 'unpaid')
        self.assertEqual(state.balance_due, Decimal('2360.00'))
        self.assertIsNone(state.payment_date)

    def test_part_payment_is_partial(self):
        state = derive_payment_state(Decimal('2360'), Decimal('1000'), now=self.NOW)
        self.assertEqual(state.status, 'partial')
        self.assertEqual(state.balance_due, Decimal('1360.00'))

    def test_full_payment_sets_payment_date(self):
        state = derive_payment_state(Decimal('354'), Decimal('354'), now=self.NOW)
        self.assertEqual(state.status, 'paid')
        self.assertEqual(state.balance_due, Decimal('0.00'))
        self.assertEqual(state.payment_date, self.NOW)

    def test_existing_payment_date_is_kept(self):
        earlier = datetime(2025, 10, 1, tzinfo=dt_timezone.utc)
        state = derive_payment_state(Decimal('354'), Decimal('400'), payment_date=earlier, now=self.NOW)
        self.assertEqual(state.payment_date, earlier)

    def test_overpayment_leaves_negative_balance(self):
        state = derive_payment_state(Decimal('354'), Decimal('400'), now=self.NOW)
        self.assertEqual(state.status, 'paid')
        self.assertEqual(state.balance_due, Decimal('-46.00'))

    def test_status_matches_amounts(self):
        total = Decimal('100.00')
        for paid in ('0', '0.01', '99.99', '100', '150'):
            with self.subTest(paid=paid):
                state = derive_payment_state(total, Decimal(paid), now=self.NOW)
                paid_amount = Decimal(paid)
                if paid_amount <= 0:
                    expected = 'unpaid'
                elif paid_amount >= total:
                    expected = 'paid'
                else:
                    expected = 'partial'
                self.assertEqual(state.status, expected)
                self.assertEqual(state.balance_due, total - paid_amount)
