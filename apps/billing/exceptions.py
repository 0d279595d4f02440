"""
Billing errors. All render through ``common.exceptions.hms_exception_handler``.
"""
from common.exceptions import (  # noqa: F401
    ConflictError,
    NotFoundError,
    StorageUnavailableError,
    ValidationFailedError,
)


class BillingValidationError(ValidationFailedError):
    default_detail = 'Invalid billing data.'


class DuplicateInvoiceError(ConflictError):
    """The source document already has an invoice."""

    default_detail = 'An invoice already exists for this source document.'

    def __init__(self, invoice, detail=None):
        super().__init__(
            detail or self.default_detail,
            details={'invoice_id': invoice.pk, 'invoice_number': invoice.invoice_number},
        )
        self.invoice = invoice


class StaleInvoiceError(ConflictError):
    default_detail = 'The invoice was updated by someone else. Reload it and try again.'
