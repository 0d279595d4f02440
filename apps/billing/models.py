from decimal import Decimal

from django.conf import settings
from django.core.validators import MinValueValidator, MaxValueValidator, RegexValidator
from django.db import models
from django.db.models import Q
from django.utils import timezone

from common.mixins import TenantModelMixin


def _default(key):
    return settings.BILLING_DEFAULTS[key]


def default_fee_standard():
    return Decimal(_default('consultation_fee_standard'))


def default_fee_follow_up():
    return Decimal(_default('consultation_fee_follow_up'))


def default_fee_specialist():
    return Decimal(_default('consultation_fee_specialist'))


def default_fee_emergency():
    return Decimal(_default('consultation_fee_emergency'))


def default_tax_percentage():
    return Decimal(_default('tax_percentage'))


def default_payment_methods():
    return list(_default('accepted_payment_methods'))


def default_currency_symbol():
    return _default('currency_symbol')


def default_invoice_prefix():
    return _default('invoice_prefix')


def default_terms_text():
    return _default('terms_text')


def default_tax_registration_number():
    return _default('tax_registration_number')


PAYMENT_METHOD_CHOICES = [
    ('Cash', 'Cash'),
    ('UPI', 'UPI'),
    ('Card', 'Card'),
    ('Insurance', 'Insurance'),
    ('Other', 'Other'),
]

PAYMENT_METHODS = [value for value, _label in PAYMENT_METHOD_CHOICES]

invoice_prefix_validator = RegexValidator(
    regex=r'^[A-Za-z0-9]{1,10}$',
    message='Invoice prefix must be 1-10 letters or digits.'
)


class BillingSettings(TenantModelMixin):
    """
    Per-tenant billing configuration.

    Exactly one row per tenant; created with the configured defaults the
    first time it is read (see ``BillingSettingsService.resolve``).
    """

    # One row per tenant
    tenant_id = models.UUIDField(unique=True, db_index=True, help_text="Tenant this record belongs to")

    # Consultation fee tiers
    consultation_fee_standard = models.DecimalField(
        max_digits=10, decimal_places=2, default=default_fee_standard,
        validators=[MinValueValidator(Decimal('0.00'))]
    )
    consultation_fee_follow_up = models.DecimalField(
        max_digits=10, decimal_places=2, default=default_fee_follow_up,
        validators=[MinValueValidator(Decimal('0.00'))]
    )
    consultation_fee_specialist = models.DecimalField(
        max_digits=10, decimal_places=2, default=default_fee_specialist,
        validators=[MinValueValidator(Decimal('0.00'))]
    )
    consultation_fee_emergency = models.DecimalField(
        max_digits=10, decimal_places=2, default=default_fee_emergency,
        validators=[MinValueValidator(Decimal('0.00'))]
    )

    # Tax
    tax_registration_number = models.CharField(
        max_length=20,
        blank=True,
        default=default_tax_registration_number,
        help_text="GSTIN printed on invoices"
    )
    tax_percentage = models.DecimalField(
        max_digits=5,
        decimal_places=2,
        default=default_tax_percentage,
        validators=[
            MinValueValidator(Decimal('0.00')),
            MaxValueValidator(Decimal('100.00'))
        ]
    )

    currency_symbol = models.CharField(max_length=5, default=default_currency_symbol)
    accepted_payment_methods = models.JSONField(default=default_payment_methods)
    invoice_prefix = models.CharField(
        max_length=10,
        default=default_invoice_prefix,
        validators=[invoice_prefix_validator]
    )
    terms_text = models.TextField(blank=True, default=default_terms_text)

    # Audit Fields
    updated_by_id = models.UUIDField(null=True, blank=True, help_text="User who last changed these settings")

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'billing_settings'
        verbose_name = 'Billing Settings'
        verbose_name_plural = 'Billing Settings'

    def __str__(self):
        return f"Billing settings ({self.tenant_id})"

    @property
    def consultation_fees(self):
        return {
            'standard': self.consultation_fee_standard,
            'follow_up': self.consultation_fee_follow_up,
            'specialist': self.consultation_fee_specialist,
            'emergency': self.consultation_fee_emergency,
        }

    def fee_for_tier(self, tier):
        return self.consultation_fees[tier]


class InvoiceSequence(TenantModelMixin):
    """
    Counter behind invoice numbers, one row per (tenant, prefix, month).
    Only touched through ``apps.billing.numbering``.
    """
    prefix = models.CharField(max_length=10)
    period = models.CharField(max_length=4, help_text="YYMM")
    last_value = models.PositiveIntegerField(default=0)

    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'billing_invoice_sequences'
        constraints = [
            models.UniqueConstraint(
                fields=['tenant_id', 'prefix', 'period'],
                name='billing_sequence_unique_period'
            ),
        ]

    def __str__(self):
        return f"{self.prefix}-{self.period}: {self.last_value}"


class Invoice(TenantModelMixin):
    """
    Issued invoice.

    Created once by ``InvoiceService``; afterwards only the payment fields
    (``paid_amount``, ``payment_method``, ``payment_date``) and the values
    derived from them change.
    """

    INVOICE_TYPE_CHOICES = [
        ('consultation', 'Consultation'),
        ('laboratory', 'Laboratory'),
        ('pharmacy', 'Pharmacy'),
    ]

    CUSTOMER_TYPE_CHOICES = [
        ('registered', 'Registered Patient'),
        ('walk_in', 'Walk-in Customer'),
    ]

    PAYMENT_STATUS_CHOICES = [
        ('unpaid', 'Unpaid'),
        ('partial', 'Partially Paid'),
        ('paid', 'Paid'),
    ]

    PAYMENT_METHOD_CHOICES = PAYMENT_METHOD_CHOICES

    invoice_number = models.CharField(
        max_length=30,
        help_text="Invoice identifier (e.g., INV-2510-0001)"
    )
    invoice_date = models.DateTimeField(default=timezone.now)
    due_date = models.DateField(null=True, blank=True)

    # Customer
    customer_type = models.CharField(max_length=20, choices=CUSTOMER_TYPE_CHOICES)
    patient = models.ForeignKey(
        'patients.PatientProfile',
        on_delete=models.PROTECT,
        related_name='invoices',
        null=True,
        blank=True
    )
    walk_in_name = models.CharField(max_length=200, blank=True)
    walk_in_contact_number = models.CharField(max_length=20, blank=True)
    walk_in_email = models.EmailField(blank=True)
    walk_in_address = models.TextField(blank=True)

    doctor = models.ForeignKey(
        'doctors.DoctorProfile',
        on_delete=models.PROTECT,
        related_name='invoices',
        null=True,
        blank=True
    )

    # Source document (at most one)
    appointment = models.OneToOneField(
        'appointments.Appointment',
        on_delete=models.PROTECT,
        related_name='invoice',
        null=True,
        blank=True
    )
    prescription = models.OneToOneField(
        'pharmacy.Prescription',
        on_delete=models.PROTECT,
        related_name='invoice',
        null=True,
        blank=True
    )
    lab_order = models.OneToOneField(
        'diagnostics.Requisition',
        on_delete=models.PROTECT,
        related_name='invoice',
        null=True,
        blank=True
    )

    invoice_type = models.CharField(max_length=20, choices=INVOICE_TYPE_CHOICES)

    # Financial Details
    subtotal = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        validators=[MinValueValidator(Decimal('0.00'))]
    )
    tax_registration_number = models.CharField(max_length=20, blank=True)
    tax_rate = models.DecimalField(
        max_digits=5,
        decimal_places=2,
        validators=[
            MinValueValidator(Decimal('0.00')),
            MaxValueValidator(Decimal('100.00'))
        ]
    )
    tax_amount = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        validators=[MinValueValidator(Decimal('0.00'))]
    )
    total_amount = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        validators=[MinValueValidator(Decimal('0.00'))]
    )

    # Payment Details
    paid_amount = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        default=Decimal('0.00'),
        validators=[MinValueValidator(Decimal('0.00'))]
    )
    # Negative when overpaid
    balance_due = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal('0.00'))
    payment_method = models.CharField(max_length=20, choices=PAYMENT_METHOD_CHOICES, default='Cash')
    payment_status = models.CharField(max_length=20, choices=PAYMENT_STATUS_CHOICES, default='unpaid')
    payment_date = models.DateTimeField(null=True, blank=True)

    notes = models.TextField(blank=True)

    # Audit Fields
    created_by_id = models.UUIDField(null=True, blank=True, help_text="User who created this invoice")
    version = models.PositiveIntegerField(default=1, help_text="Incremented on every payment update")

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'billing_invoices'
        ordering = ['-invoice_date', '-id']
        verbose_name = 'Invoice'
        verbose_name_plural = 'Invoices'
        constraints = [
            models.UniqueConstraint(
                fields=['tenant_id', 'invoice_number'],
                name='billing_invoice_number_unique'
            ),
            models.CheckConstraint(
                condition=(
                    Q(customer_type='registered', patient__isnull=False)
                    | (Q(customer_type='walk_in', patient__isnull=True) & ~Q(walk_in_name=''))
                ),
                name='billing_invoice_customer_variant'
            ),
            models.CheckConstraint(
                condition=(
                    Q(appointment__isnull=True, prescription__isnull=True)
                    | Q(appointment__isnull=True, lab_order__isnull=True)
                    | Q(prescription__isnull=True, lab_order__isnull=True)
                ),
                name='billing_invoice_single_source'
            ),
        ]
        indexes = [
            models.Index(fields=['tenant_id', 'invoice_date']),
            models.Index(fields=['tenant_id', 'payment_status']),
            models.Index(fields=['tenant_id', 'invoice_type']),
            models.Index(fields=['tenant_id', 'customer_type']),
        ]

    def __str__(self):
        return self.invoice_number

    def save(self, *args, **kwargs):
        """Derive payment status, balance and payment date before writing."""
        self.apply_payment_state()
        super().save(*args, **kwargs)

    def apply_payment_state(self, now=None):
        from .calculations import derive_payment_state

        state = derive_payment_state(self.total_amount, self.paid_amount, self.payment_date, now=now)
        self.payment_status = state.status
        self.balance_due = state.balance_due
        self.payment_date = state.payment_date

    @property
    def customer_name(self):
        if self.customer_type == 'registered' and self.patient_id:
            return self.patient.full_name
        return self.walk_in_name

    @property
    def display_balance_due(self):
        """Balance floored at zero, for printing."""
        return max(self.balance_due, Decimal('0.00'))

    @property
    def overpaid_amount(self):
        return max(-self.balance_due, Decimal('0.00'))

    @property
    def source(self):
        return self.appointment or self.prescription or self.lab_order


class InvoiceItem(models.Model):
    """One line of an invoice, in print order."""

    invoice = models.ForeignKey(
        Invoice,
        on_delete=models.CASCADE,
        related_name='items'
    )
    position = models.PositiveIntegerField(default=0)
    description = models.CharField(max_length=500)
    quantity = models.PositiveIntegerField(default=1, validators=[MinValueValidator(1)])
    unit_price = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        validators=[MinValueValidator(Decimal('0.00'))]
    )
    amount = models.DecimalField(max_digits=12, decimal_places=2)
    tax_code = models.CharField(max_length=20, blank=True, help_text="HSN/SAC code")
    tax_rate = models.DecimalField(max_digits=5, decimal_places=2, default=Decimal('0.00'))
    product = models.ForeignKey(
        'pharmacy.PharmacyProduct',
        on_delete=models.SET_NULL,
        related_name='invoice_items',
        null=True,
        blank=True
    )

    class Meta:
        db_table = 'billing_invoice_items'
        ordering = ['position', 'id']

    def __str__(self):
        return f"{self.description} x {self.quantity}"
