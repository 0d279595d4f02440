"""
Who an invoice is billed to: a registered patient or a walk-in customer.
"""
from dataclasses import dataclass

from .exceptions import BillingValidationError


@dataclass(frozen=True)
class RegisteredCustomer:
    patient: object

    customer_type = 'registered'

    def __post_init__(self):
        if self.patient is None or getattr(self.patient, 'pk', None) is None:
            raise BillingValidationError('A registered customer needs a saved patient.')

    def invoice_fields(self):
        return {
            'customer_type': self.customer_type,
            'patient': self.patient,
            'walk_in_name': '',
            'walk_in_contact_number': '',
            'walk_in_email': '',
            'walk_in_address': '',
        }


@dataclass(frozen=True)
class WalkInCustomer:
    name: str
    contact_number: str = ''
    email: str = ''
    address: str = ''

    customer_type = 'walk_in'

    def __post_init__(self):
        name = (self.name or '').strip()
        if not name:
            raise BillingValidationError(
                'Customer name is required for walk-in invoices.',
                details={'customer_name': 'This field is required.'},
            )
        object.__setattr__(self, 'name', name)

    def invoice_fields(self):
        return {
            'customer_type': self.customer_type,
            'patient': None,
            'walk_in_name': self.name,
            'walk_in_contact_number': self.contact_number or '',
            'walk_in_email': self.email or '',
            'walk_in_address': self.address or '',
        }
