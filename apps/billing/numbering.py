"""
Invoice numbers: ``{prefix}-{YY}{MM}-{seq:04d}``.

``seq`` restarts at 1 for every (tenant, prefix, month) and comes from a
locked counter row, so concurrent requests never share a number. The counter
is incremented inside the caller's transaction: if the invoice is rolled
back, so is the increment.
"""
import logging

from django.db import transaction
from django.db.models import F
from django.utils import timezone

from .models import InvoiceSequence

logger = logging.getLogger(__name__)


def period_key(on_date):
    return on_date.strftime('%y%m')


def format_invoice_number(prefix, period, value):
    return f"{prefix}-{period}-{value:04d}"


def next_invoice_number(tenant_id, prefix, on_date=None):
    """Reserve and return the next invoice number for ``tenant_id``."""
    on_date = on_date or timezone.localdate()
    period = period_key(on_date)

    with transaction.atomic():
        sequence, created = (
            InvoiceSequence.objects
            .select_for_update()
            .get_or_create(tenant_id=tenant_id, prefix=prefix, period=period)
        )
        InvoiceSequence.objects.filter(pk=sequence.pk).update(last_value=F('last_value') + 1)
        sequence.refresh_from_db(fields=['last_value'])

    if created:
        logger.info(f"Started invoice sequence {prefix}-{period} for tenant {tenant_id}")

    return format_invoice_number(prefix, period, sequence.last_value)
