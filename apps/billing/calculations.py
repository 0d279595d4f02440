"""
Invoice arithmetic: line totals, tax and payment status.

Everything here is pure and works on ``Decimal`` values rounded to paise
(two decimal places, half-up).
"""
from dataclasses import dataclass, field, replace
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import List, Optional

from django.utils import timezone

from .exceptions import BillingValidationError

TWO_PLACES = Decimal('0.01')
ZERO = Decimal('0.00')
HUNDRED = Decimal('100')


def to_money(value, field_name='amount'):
    """Convert ``value`` to a Decimal rounded to two places."""
    if isinstance(value, bool):
        raise BillingValidationError(f'{field_name} must be a number.', details={field_name: value})
    try:
        amount = value if isinstance(value, Decimal) else Decimal(str(value))
    except (InvalidOperation, TypeError, ValueError):
        raise BillingValidationError(f'{field_name} must be a number.', details={field_name: str(value)})
    if not amount.is_finite():
        raise BillingValidationError(f'{field_name} must be a finite number.', details={field_name: str(value)})
    return amount.quantize(TWO_PLACES, rounding=ROUND_HALF_UP)


@dataclass
class InvoiceLine:
    """A line before it is written; ``amount`` overrides quantity x unit price."""

    description: str
    quantity: int
    unit_price: Decimal
    amount: Optional[Decimal] = None
    tax_code: str = ''
    product_id: Optional[int] = None


@dataclass
class Totals:
    lines: List[InvoiceLine] = field(default_factory=list)
    subtotal: Decimal = ZERO
    tax_rate: Decimal = ZERO
    tax_amount: Decimal = ZERO
    total_amount: Decimal = ZERO


@dataclass(frozen=True)
class PaymentState:
    status: str
    balance_due: Decimal
    payment_date: object = None


def _validate_line(index, line):
    errors = {}

    quantity = line.quantity
    if isinstance(quantity, bool) or not isinstance(quantity, int):
        try:
            quantity_value = Decimal(str(quantity))
        except (InvalidOperation, TypeError, ValueError):
            quantity_value = None
        if quantity_value is None or quantity_value != quantity_value.to_integral_value():
            errors['quantity'] = 'Quantity must be a whole number.'
        else:
            quantity = int(quantity_value)
    if 'quantity' not in errors and quantity < 1:
        errors['quantity'] = 'Quantity must be at least 1.'

    try:
        unit_price = to_money(line.unit_price, 'unit_price')
        if unit_price < ZERO:
            errors['unit_price'] = 'Unit price cannot be negative.'
    except BillingValidationError:
        errors['unit_price'] = 'Unit price must be a number.'
        unit_price = None

    amount = None
    if line.amount is not None:
        try:
            amount = to_money(line.amount, 'amount')
            if amount < ZERO:
                errors['amount'] = 'Amount cannot be negative.'
        except BillingValidationError:
            errors['amount'] = 'Amount must be a number.'

    if not (line.description or '').strip():
        errors['description'] = 'Description is required.'

    if errors:
        raise BillingValidationError(
            f'Invalid item at position {index + 1}.',
            details={'items': {index: errors}},
        )

    if amount is None:
        amount = (unit_price * quantity).quantize(TWO_PLACES, rounding=ROUND_HALF_UP)

    return replace(line, description=line.description.strip(), quantity=quantity,
                   unit_price=unit_price, amount=amount)


def calculate_totals(lines, tax_percentage):
    """
    Compute line amounts, subtotal, tax and total.

    A line's ``amount`` is kept when supplied (e.g. a discounted line) and
    otherwise is ``quantity * unit_price``. Tax is rounded once on the
    subtotal, so ``total_amount == subtotal + tax_amount`` always holds.

    Raises ``BillingValidationError`` for an empty list, invalid lines, a tax
    percentage outside 0-100, or when no line has a positive amount.
    """
    lines = list(lines or [])
    if not lines:
        raise BillingValidationError('At least one item is required.', details={'items': 'This list may not be empty.'})

    tax_rate = to_money(tax_percentage, 'tax_percentage')
    if tax_rate < ZERO or tax_rate > HUNDRED:
        raise BillingValidationError('Tax percentage must be between 0 and 100.',
                                     details={'tax_percentage': str(tax_rate)})

    priced = [_validate_line(index, line) for index, line in enumerate(lines)]

    if all(line.amount <= ZERO for line in priced):
        raise BillingValidationError('Invoice total must be greater than zero.',
                                     details={'items': 'All item amounts are zero.'})

    subtotal = sum((line.amount for line in priced), ZERO)
    tax_amount = (subtotal * tax_rate / HUNDRED).quantize(TWO_PLACES, rounding=ROUND_HALF_UP)

    return Totals(
        lines=priced,
        subtotal=subtotal,
        tax_rate=tax_rate,
        tax_amount=tax_amount,
        total_amount=subtotal + tax_amount,
    )


def derive_payment_state(total_amount, paid_amount, payment_date=None, now=None):
    """
    Payment status for an invoice.

    ``unpaid`` when nothing is paid (payment date cleared), ``partial`` while
    something remains, ``paid`` once the total is covered (payment date set to
    ``now`` if missing). The balance is not clamped: a negative balance is an
    overpayment.
    """
    total_amount = to_money(total_amount, 'total_amount')
    paid_amount = to_money(paid_amount or ZERO, 'paid_amount')
    balance_due = total_amount - paid_amount

    if paid_amount <= ZERO:
        return PaymentState('unpaid', balance_due, None)
    if paid_amount < total_amount:
        return PaymentState('partial', balance_due, payment_date)
    return PaymentState('paid', balance_due, payment_date or now or timezone.now())
