"""
Billing statistics over a named or custom date range.
"""
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from decimal import Decimal

from django.conf import settings
from django.db.models import Count, Sum
from django.utils import timezone
from django.utils.dateparse import parse_date

from .exceptions import BillingValidationError
from .models import Invoice

PERIODS = ('today', 'yesterday', 'this-week', 'this-month', 'last-month', 'this-year', 'custom')

# Names sent by older clients
PERIOD_ALIASES = {
    'thisWeek': 'this-week',
    'thisMonth': 'this-month',
    'lastMonth': 'last-month',
    'thisYear': 'this-year',
}

ONE_MICROSECOND = timedelta(microseconds=1)
ZERO = Decimal('0.00')


@dataclass(frozen=True)
class DateRange:
    name: str
    start: datetime
    end: datetime

    def as_dict(self):
        return {
            'name': self.name,
            'start_date': self.start.isoformat(),
            'end_date': self.end.isoformat(),
        }


def _start_of_day(day):
    return timezone.make_aware(datetime.combine(day, time.min))


def _parse_day(value, field_name):
    if isinstance(value, datetime):
        return timezone.localtime(value).date() if timezone.is_aware(value) else value.date()
    if isinstance(value, date):
        return value
    try:
        parsed = parse_date(str(value)) if value else None
    except ValueError:
        parsed = None
    if parsed is None:
        raise BillingValidationError(
            f'{field_name} must be a date in YYYY-MM-DD format.',
            details={field_name: str(value) if value else 'This field is required.'},
        )
    return parsed


def week_start(day, first_day_of_week=None):
    """First day of ``day``'s week; ``first_day_of_week`` uses 0 = Sunday."""
    if first_day_of_week is None:
        first_day_of_week = getattr(settings, 'FIRST_DAY_OF_WEEK', 0)
    # date.weekday() counts from Monday
    offset = (day.weekday() - (first_day_of_week - 1)) % 7
    return day - timedelta(days=offset)


def resolve_period(period='this-month', start_date=None, end_date=None, now=None):
    """
    Turn a period name into an inclusive ``DateRange`` in the current time zone.

    Open periods (today, this week/month/year) end at ``now``; yesterday and
    last month end one microsecond before the next period starts. ``custom``
    needs ``start_date`` and ``end_date`` and includes the whole end day.
    """
    name = PERIOD_ALIASES.get(period, period or 'this-month')
    if name not in PERIODS:
        raise BillingValidationError(
            f'Unknown period: {period}.',
            details={'period': f'Choose one of {", ".join(PERIODS)}.'},
        )

    now = timezone.localtime(now or timezone.now())
    today = now.date()

    if name == 'today':
        return DateRange(name, _start_of_day(today), now)

    if name == 'yesterday':
        return DateRange(name, _start_of_day(today - timedelta(days=1)), _start_of_day(today) - ONE_MICROSECOND)

    if name == 'this-week':
        return DateRange(name, _start_of_day(week_start(today)), now)

    if name == 'this-month':
        return DateRange(name, _start_of_day(today.replace(day=1)), now)

    if name == 'last-month':
        first_of_this_month = today.replace(day=1)
        first_of_last_month = (first_of_this_month - timedelta(days=1)).replace(day=1)
        return DateRange(
            name,
            _start_of_day(first_of_last_month),
            _start_of_day(first_of_this_month) - ONE_MICROSECOND,
        )

    if name == 'this-year':
        return DateRange(name, _start_of_day(date(today.year, 1, 1)), now)

    start_day = _parse_day(start_date, 'start_date')
    end_day = _parse_day(end_date, 'end_date')
    if start_day > end_day:
        raise BillingValidationError(
            'start_date must not be after end_date.',
            details={'start_date': str(start_day), 'end_date': str(end_day)},
        )
    return DateRange(name, _start_of_day(start_day), _start_of_day(end_day + timedelta(days=1)) - ONE_MICROSECOND)


class BillingStatisticsService:

    @staticmethod
    def collect(tenant_id, period='this-month', start_date=None, end_date=None, now=None):
        """
        Invoice totals for the tenant within the period, overall and broken
        down by invoice type, payment status and payment method. Groups with
        no invoices are omitted.
        """
        date_range = resolve_period(period, start_date, end_date, now=now)

        invoices = Invoice.objects.filter(
            tenant_id=tenant_id,
            invoice_date__gte=date_range.start,
            invoice_date__lte=date_range.end,
        ).order_by()

        summary = invoices.aggregate(
            total_invoices=Count('id'),
            total_amount=Sum('total_amount'),
            paid_amount=Sum('paid_amount'),
            pending_amount=Sum('balance_due'),
        )
        for key in ('total_amount', 'paid_amount', 'pending_amount'):
            summary[key] = summary[key] or ZERO

        by_type = {
            row['invoice_type']: {
                'count': row['count'],
                'total_amount': row['total_amount'] or ZERO,
                'paid_amount': row['paid_amount'] or ZERO,
                'pending_amount': row['pending_amount'] or ZERO,
            }
            for row in invoices.values('invoice_type').annotate(
                count=Count('id'),
                total_amount=Sum('total_amount'),
                paid_amount=Sum('paid_amount'),
                pending_amount=Sum('balance_due'),
            )
        }

        by_status = {
            row['payment_status']: {
                'count': row['count'],
                'total_amount': row['total_amount'] or ZERO,
            }
            for row in invoices.values('payment_status').annotate(
                count=Count('id'),
                total_amount=Sum('total_amount'),
            )
        }

        by_payment_method = {
            row['payment_method']: {
                'count': row['count'],
                'paid_amount': row['paid_amount'] or ZERO,
            }
            for row in invoices.values('payment_method').annotate(
                count=Count('id'),
                paid_amount=Sum('paid_amount'),
            )
        }

        return {
            'period': date_range.as_dict(),
            'summary': summary,
            'by_type': by_type,
            'by_status': by_status,
            'by_payment_method': by_payment_method,
        }
