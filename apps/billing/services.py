"""
Billing services: settings resolution and invoice creation/payment.

Every public method validates and looks up everything it needs before the
first write, and runs in a single transaction, so a failure never leaves a
partial invoice (or a consumed invoice number, or deducted stock) behind.
"""
import logging
from collections import OrderedDict
from decimal import Decimal

from django.core.exceptions import ValidationError as DjangoValidationError
from django.db import IntegrityError, transaction
from django.db.models import F
from django.utils import timezone

from apps.appointments.models import Appointment
from apps.diagnostics.models import Investigation, Requisition
from apps.doctors.models import DoctorProfile
from apps.hospital.models import Hospital
from apps.patients.models import PatientProfile
from apps.pharmacy.models import PharmacyProduct, Prescription
from apps.pharmacy.services import InsufficientStockError, InventoryService

from .calculations import InvoiceLine, ZERO, calculate_totals, to_money
from .customers import RegisteredCustomer, WalkInCustomer
from .exceptions import (
    BillingValidationError,
    NotFoundError,
    StaleInvoiceError,
)
from .models import BillingSettings, Invoice, InvoiceItem, PAYMENT_METHODS
from .numbering import next_invoice_number

logger = logging.getLogger(__name__)

# HSN/SAC codes
TAX_CODE_CONSULTATION = '998331'
TAX_CODE_PHARMACY = '30049099'
TAX_CODE_HEALTH_SERVICES = '998931'

INVOICE_TYPES = [value for value, _label in Invoice.INVOICE_TYPE_CHOICES]

# Checked in order; the first keyword found in the appointment type wins
FEE_TIER_KEYWORDS = (
    ('follow', 'follow_up'),
    ('specialist', 'specialist'),
    ('emergency', 'emergency'),
)


def consultation_fee_tier(type_label):
    """Map an appointment type label to a consultation fee tier."""
    label = (type_label or '').lower()
    for keyword, tier in FEE_TIER_KEYWORDS:
        if keyword in label:
            return tier
    return 'standard'


def describe_medication(name, dosage='', frequency='', duration='', instructions=''):
    """``"Name - dosage, frequency, for duration (instructions)"``, skipping blanks."""
    details = [part for part in (dosage, frequency) if part]
    if duration:
        details.append(f"for {duration}")
    description = name
    if details:
        description = f"{name} - {', '.join(details)}"
    if instructions:
        description = f"{description} ({instructions})"
    return description


def _get_or_404(queryset, label, **lookup):
    try:
        return queryset.get(**lookup)
    except (queryset.model.DoesNotExist, ValueError, TypeError, DjangoValidationError):
        identifier = lookup.get('pk', next(iter(lookup.values()), ''))
        raise NotFoundError(f'{label} {identifier} not found.')


class BillingSettingsService:
    """Per-tenant billing settings."""

    # Fields a settings update may change; anything else is ignored
    UPDATABLE_FIELDS = (
        'consultation_fee_standard',
        'consultation_fee_follow_up',
        'consultation_fee_specialist',
        'consultation_fee_emergency',
        'tax_registration_number',
        'tax_percentage',
        'currency_symbol',
        'accepted_payment_methods',
        'invoice_prefix',
        'terms_text',
    )

    @staticmethod
    def resolve(tenant_id, user_id=None):
        """
        Return the tenant's settings, creating them with the configured
        defaults on first use. The unique tenant column makes concurrent
        first reads converge on one row.
        """
        billing_settings, created = BillingSettings.objects.get_or_create(
            tenant_id=tenant_id,
            defaults={'updated_by_id': user_id},
        )
        if created:
            logger.info(f"Created default billing settings for tenant {tenant_id}")
        return billing_settings

    @staticmethod
    @transaction.atomic
    def update(*, tenant_id, user_id, changes):
        BillingSettingsService.resolve(tenant_id, user_id)
        billing_settings = BillingSettings.objects.select_for_update().get(tenant_id=tenant_id)

        changed = []
        for field_name in BillingSettingsService.UPDATABLE_FIELDS:
            if field_name in changes:
                setattr(billing_settings, field_name, changes[field_name])
                changed.append(field_name)

        billing_settings.updated_by_id = user_id
        try:
            billing_settings.full_clean(validate_unique=False)
        except DjangoValidationError as e:
            raise BillingValidationError('Invalid billing settings.', details=e.message_dict)

        billing_settings.save()
        logger.info(f"Billing settings updated for tenant {tenant_id} by {user_id}: {', '.join(changed) or 'no changes'}")
        return billing_settings


class InvoiceService:
    """
    Creates invoices from clinical events or walk-in sales and records
    payments against them.
    """

    @staticmethod
    def _get_hospital(tenant_id):
        hospital = Hospital.objects.filter(tenant_id=tenant_id).first()
        if hospital is None:
            raise NotFoundError('Hospital profile is not configured for this tenant.')
        return hospital

    @staticmethod
    def _clean_payment(billing_settings, payment_method, paid_amount):
        if payment_method not in PAYMENT_METHODS:
            raise BillingValidationError(
                f'Unsupported payment method: {payment_method}.',
                details={'payment_method': f'Choose one of {", ".join(PAYMENT_METHODS)}.'},
            )
        paid = to_money(paid_amount if paid_amount is not None else ZERO, 'paid_amount')
        if paid < ZERO:
            raise BillingValidationError('Paid amount cannot be negative.', details={'paid_amount': str(paid)})
        if paid > ZERO and payment_method not in (billing_settings.accepted_payment_methods or []):
            raise BillingValidationError(
                f'{payment_method} payments are not accepted.',
                details={'payment_method': billing_settings.accepted_payment_methods},
            )
        return paid

    @staticmethod
    @transaction.atomic
    def create_invoice(
        *,
        tenant_id,
        customer,
        invoice_type,
        lines,
        doctor=None,
        appointment=None,
        prescription=None,
        lab_order=None,
        payment_method='Cash',
        paid_amount=ZERO,
        due_date=None,
        notes='',
        created_by_id=None,
    ):
        """
        Core creation path shared by every entry point.

        Resolves settings, prices the lines, reserves the next invoice number
        and writes the invoice with its items.
        """
        if not isinstance(customer, (RegisteredCustomer, WalkInCustomer)):
            raise BillingValidationError('Invoice customer must be a registered patient or a walk-in customer.')
        if invoice_type not in INVOICE_TYPES:
            raise BillingValidationError(
                f'Unknown invoice type: {invoice_type}.',
                details={'invoice_type': f'Choose one of {", ".join(INVOICE_TYPES)}.'},
            )
        if sum(source is not None for source in (appointment, prescription, lab_order)) > 1:
            raise BillingValidationError('An invoice can reference at most one source document.')

        InvoiceService._get_hospital(tenant_id)
        billing_settings = BillingSettingsService.resolve(tenant_id, created_by_id)
        paid = InvoiceService._clean_payment(billing_settings, payment_method, paid_amount)
        totals = calculate_totals(lines, billing_settings.tax_percentage)

        invoice_date = timezone.now()
        invoice_number = next_invoice_number(
            tenant_id, billing_settings.invoice_prefix, timezone.localdate(invoice_date)
        )

        invoice = Invoice(
            tenant_id=tenant_id,
            invoice_number=invoice_number,
            invoice_date=invoice_date,
            due_date=due_date,
            doctor=doctor,
            appointment=appointment,
            prescription=prescription,
            lab_order=lab_order,
            invoice_type=invoice_type,
            subtotal=totals.subtotal,
            tax_registration_number=billing_settings.tax_registration_number,
            tax_rate=totals.tax_rate,
            tax_amount=totals.tax_amount,
            total_amount=totals.total_amount,
            paid_amount=paid,
            payment_method=payment_method,
            notes=notes or '',
            created_by_id=created_by_id,
            **customer.invoice_fields(),
        )
        invoice.save()

        InvoiceItem.objects.bulk_create([
            InvoiceItem(
                invoice=invoice,
                position=position,
                description=line.description,
                quantity=line.quantity,
                unit_price=line.unit_price,
                amount=line.amount,
                tax_code=line.tax_code,
                tax_rate=totals.tax_rate,
                product_id=line.product_id,
            )
            for position, line in enumerate(totals.lines, start=1)
        ])

        logger.info(
            f"Invoice {invoice.invoice_number} created - tenant={tenant_id} type={invoice_type} "
            f"customer={invoice.customer_type} total={invoice.total_amount} status={invoice.payment_status}"
        )
        return invoice

    # ------------------------------------------------------------------
    # Entry points
    # ------------------------------------------------------------------

    @staticmethod
    def create_manual(
        *,
        tenant_id,
        patient_id,
        invoice_type,
        items,
        doctor_id=None,
        payment_method='Cash',
        paid_amount=ZERO,
        due_date=None,
        notes='',
        created_by_id=None,
    ):
        """
        Invoice with caller-supplied items for a registered patient.

        ``items`` are mappings with ``description``, ``quantity``,
        ``unit_price`` and optional ``amount`` / ``tax_code``.
        """
        patient = _get_or_404(PatientProfile.objects.all(), 'Patient', tenant_id=tenant_id, pk=patient_id)
        doctor = None
        if doctor_id is not None:
            doctor = _get_or_404(DoctorProfile.objects.all(), 'Doctor', tenant_id=tenant_id, pk=doctor_id)

        lines = [
            InvoiceLine(
                description=item.get('description', ''),
                quantity=item.get('quantity', 1),
                unit_price=item.get('unit_price', ZERO),
                amount=item.get('amount'),
                tax_code=item.get('tax_code') or '',
            )
            for item in items or []
        ]

        return InvoiceService.create_invoice(
            tenant_id=tenant_id,
            customer=RegisteredCustomer(patient),
            invoice_type=invoice_type,
            lines=lines,
            doctor=doctor,
            payment_method=payment_method,
            paid_amount=paid_amount,
            due_date=due_date,
            notes=notes,
            created_by_id=created_by_id,
        )

    @staticmethod
    def _create_once(*, tenant_id, source_field, source_id, lock, build):
        """
        Create an invoice for a source document unless it already has one.

        ``lock(source_id)`` fetches the source row with a row lock held for
        the rest of the transaction; ``build(source)`` creates the invoice.
        Returns ``(invoice, created)``.
        """
        try:
            with transaction.atomic():
                source = lock(source_id)
                existing = Invoice.objects.filter(tenant_id=tenant_id, **{source_field: source}).first()
                if existing is not None:
                    logger.info(f"Invoice {existing.invoice_number} already exists for {source_field} {source_id}")
                    return existing, False
                return build(source), True
        except IntegrityError:
            # Lost a race on the one-invoice-per-source constraint
            existing = Invoice.objects.filter(tenant_id=tenant_id, **{f'{source_field}_id': source_id}).first()
            if existing is None:
                raise
            logger.info(f"Invoice {existing.invoice_number} created concurrently for {source_field} {source_id}")
            return existing, False

    @staticmethod
    def create_from_appointment(
        *,
        tenant_id,
        appointment_id,
        payment_method='Cash',
        paid_amount=ZERO,
        created_by_id=None,
    ):
        """
        Consultation invoice for an appointment, priced from the tenant's fee
        tiers. Returns ``(invoice, created)``; ``created`` is False when the
        appointment was already invoiced.
        """
        def build(appointment):
            billing_settings = BillingSettingsService.resolve(tenant_id, created_by_id)
            type_label = appointment.type_label
            fee = billing_settings.fee_for_tier(consultation_fee_tier(type_label))
            doctor = appointment.doctor
            category = type_label[:1].upper() + type_label[1:]

            line = InvoiceLine(
                description=f"{category} Consultation with Dr. {doctor.full_name}",
                quantity=1,
                unit_price=fee,
                tax_code=TAX_CODE_CONSULTATION,
            )
            notes = (
                f"Consultation on {appointment.appointment_date:%d %b %Y}, "
                f"{appointment.appointment_time:%I:%M %p}"
            )
            return InvoiceService.create_invoice(
                tenant_id=tenant_id,
                customer=RegisteredCustomer(appointment.patient),
                invoice_type='consultation',
                lines=[line],
                doctor=doctor,
                appointment=appointment,
                payment_method=payment_method,
                paid_amount=paid_amount,
                notes=notes,
                created_by_id=created_by_id,
            )

        def lock(pk):
            return _get_or_404(Appointment.objects.select_for_update(), 'Appointment', tenant_id=tenant_id, pk=pk)

        return InvoiceService._create_once(
            tenant_id=tenant_id, source_field='appointment', source_id=appointment_id, lock=lock, build=build,
        )

    @staticmethod
    def create_from_prescription(
        *,
        tenant_id,
        prescription_id,
        payment_method='Cash',
        paid_amount=ZERO,
        created_by_id=None,
    ):
        """
        Pharmacy invoice with one line per prescribed medication at catalog
        price. Returns ``(invoice, created)``.
        """
        def build(prescription):
            prescribed = list(prescription.items.select_related('product').order_by('id'))
            if not prescribed:
                raise BillingValidationError('Prescription has no medications to bill.')

            lines = [
                InvoiceLine(
                    description=describe_medication(
                        item.product.product_name, item.dosage, item.frequency,
                        item.duration, item.instructions,
                    ),
                    quantity=item.quantity,
                    unit_price=item.product.unit_price,
                    tax_code=TAX_CODE_PHARMACY,
                    product_id=item.product_id,
                )
                for item in prescribed
            ]
            return InvoiceService.create_invoice(
                tenant_id=tenant_id,
                customer=RegisteredCustomer(prescription.patient),
                invoice_type='pharmacy',
                lines=lines,
                doctor=prescription.doctor,
                prescription=prescription,
                payment_method=payment_method,
                paid_amount=paid_amount,
                notes=f"Prescription {prescription.prescription_number or prescription.pk}",
                created_by_id=created_by_id,
            )

        def lock(pk):
            return _get_or_404(Prescription.objects.select_for_update(), 'Prescription', tenant_id=tenant_id, pk=pk)

        return InvoiceService._create_once(
            tenant_id=tenant_id, source_field='prescription', source_id=prescription_id, lock=lock, build=build,
        )

    @staticmethod
    def create_from_lab_order(
        *,
        tenant_id,
        lab_order_id,
        payment_method='Cash',
        paid_amount=ZERO,
        created_by_id=None,
    ):
        """
        Laboratory invoice with one line per ordered test. Cancelled tests
        are not billed. Returns ``(invoice, created)``.
        """
        def build(requisition):
            orders = list(
                requisition.orders.exclude(status='cancelled')
                .select_related('investigation').order_by('id')
            )
            if not orders:
                raise BillingValidationError('Lab order has no tests to bill.')

            lines = [
                InvoiceLine(
                    description=order.investigation.name,
                    quantity=1,
                    unit_price=order.price if order.price is not None else order.investigation.base_charge,
                    tax_code=TAX_CODE_HEALTH_SERVICES,
                )
                for order in orders
            ]
            return InvoiceService.create_invoice(
                tenant_id=tenant_id,
                customer=RegisteredCustomer(requisition.patient),
                invoice_type='laboratory',
                lines=lines,
                doctor=requisition.doctor,
                lab_order=requisition,
                payment_method=payment_method,
                paid_amount=paid_amount,
                notes=f"Lab order {requisition.requisition_number}",
                created_by_id=created_by_id,
            )

        def lock(pk):
            return _get_or_404(Requisition.objects.select_for_update(), 'Lab order', tenant_id=tenant_id, pk=pk)

        return InvoiceService._create_once(
            tenant_id=tenant_id, source_field='lab_order', source_id=lab_order_id, lock=lock, build=build,
        )

    @staticmethod
    @transaction.atomic
    def create_walk_in_pharmacy(
        *,
        tenant_id,
        customer,
        items,
        payment_method='Cash',
        paid_amount=ZERO,
        notes='',
        created_by_id=None,
    ):
        """
        Over-the-counter sale to a walk-in customer.

        ``items`` are mappings with ``product_id``, ``quantity`` and an
        optional ``unit_price`` (defaults to the catalog price). Stock is
        deducted in the same transaction as the invoice is written.
        """
        if not items:
            raise BillingValidationError('At least one item is required.', details={'items': 'This list may not be empty.'})

        product_ids = [item.get('product_id') for item in items]
        products = {
            product.pk: product
            for product in PharmacyProduct.objects.filter(tenant_id=tenant_id, pk__in=product_ids, is_active=True)
        }

        lines = []
        for item in items:
            product = products.get(item.get('product_id'))
            if product is None:
                raise NotFoundError(f"Medication {item.get('product_id')} not found.")
            unit_price = item.get('unit_price')
            lines.append(InvoiceLine(
                description=product.product_name,
                quantity=item.get('quantity', 1),
                unit_price=product.unit_price if unit_price is None else unit_price,
                tax_code=item.get('tax_code') or TAX_CODE_PHARMACY,
                product_id=product.pk,
            ))

        # Stock is reserved from the normalised quantities that get billed
        requested = OrderedDict()
        for line in calculate_totals(lines, ZERO).lines:
            requested[line.product_id] = requested.get(line.product_id, 0) + line.quantity

        for product_id, quantity in requested.items():
            product = products[product_id]
            if product.quantity < quantity:
                raise InsufficientStockError(
                    f'Insufficient stock for {product.product_name}. Available: {product.quantity}',
                    details={'product_id': product_id, 'available': product.quantity, 'requested': quantity},
                )

        invoice = InvoiceService.create_invoice(
            tenant_id=tenant_id,
            customer=customer,
            invoice_type='pharmacy',
            lines=lines,
            payment_method=payment_method,
            paid_amount=paid_amount,
            due_date=timezone.localdate(),
            notes=notes,
            created_by_id=created_by_id,
        )

        for product_id, quantity in requested.items():
            InventoryService.deduct(tenant_id=tenant_id, product_id=product_id, quantity=quantity)

        return invoice

    @staticmethod
    @transaction.atomic
    def create_walk_in_laboratory(
        *,
        tenant_id,
        customer,
        tests,
        payment_method='Cash',
        paid_amount=ZERO,
        notes='',
        created_by_id=None,
    ):
        """
        Lab tests sold to a walk-in customer.

        Each test is either ``{"investigation_id": ...}`` (catalog name and
        price) or ``{"name": ..., "price": ..., "tax_code": ...}``.
        """
        if not tests:
            raise BillingValidationError('At least one test is required.', details={'tests': 'This list may not be empty.'})

        lines = []
        for test in tests:
            investigation_id = test.get('investigation_id')
            if investigation_id is not None:
                investigation = _get_or_404(
                    Investigation.objects.filter(is_active=True), 'Investigation',
                    tenant_id=tenant_id, pk=investigation_id,
                )
                name = investigation.name
                price = test.get('price', investigation.base_charge)
            else:
                name = test.get('name', '')
                price = test.get('price', ZERO)
            lines.append(InvoiceLine(
                description=name,
                quantity=1,
                unit_price=price,
                tax_code=test.get('tax_code') or TAX_CODE_HEALTH_SERVICES,
            ))

        return InvoiceService.create_invoice(
            tenant_id=tenant_id,
            customer=customer,
            invoice_type='laboratory',
            lines=lines,
            payment_method=payment_method,
            paid_amount=paid_amount,
            due_date=timezone.localdate(),
            notes=notes,
            created_by_id=created_by_id,
        )

    # ------------------------------------------------------------------
    # Payments
    # ------------------------------------------------------------------

    @staticmethod
    @transaction.atomic
    def record_payment(
        *,
        tenant_id,
        invoice_id,
        paid_amount,
        payment_method=None,
        payment_date=None,
        expected_version=None,
        user_id=None,
    ):
        """
        Set the cumulative amount paid on an invoice and re-derive its status.

        The write is a compare-and-swap on ``version``: if another payment
        was recorded since the invoice was read (or since ``expected_version``
        when given), ``StaleInvoiceError`` is raised instead of overwriting it.
        """
        invoice = _get_or_404(Invoice.objects.all(), 'Invoice', tenant_id=tenant_id, pk=invoice_id)

        paid = to_money(paid_amount, 'paid_amount')
        if paid <= ZERO:
            raise BillingValidationError('Paid amount must be a positive number.', details={'paid_amount': str(paid)})

        billing_settings = BillingSettingsService.resolve(tenant_id, user_id)
        method = payment_method or invoice.payment_method
        InvoiceService._clean_payment(billing_settings, method, paid)

        version = invoice.version
        if expected_version is not None and int(expected_version) != version:
            raise StaleInvoiceError(details={'current_version': version, 'expected_version': expected_version})

        invoice.paid_amount = paid
        invoice.payment_method = method
        if payment_date is not None:
            invoice.payment_date = payment_date
        invoice.apply_payment_state()

        updated = Invoice.objects.filter(pk=invoice.pk, tenant_id=tenant_id, version=version).update(
            paid_amount=invoice.paid_amount,
            payment_method=invoice.payment_method,
            payment_status=invoice.payment_status,
            payment_date=invoice.payment_date,
            balance_due=invoice.balance_due,
            version=F('version') + 1,
            updated_at=timezone.now(),
        )
        if not updated:
            logger.warning(f"Stale payment update on invoice {invoice.invoice_number} (version {version})")
            raise StaleInvoiceError(details={'expected_version': version})

        invoice.refresh_from_db()
        logger.info(
            f"Payment recorded on {invoice.invoice_number} - paid={invoice.paid_amount} "
            f"method={invoice.payment_method} status={invoice.payment_status} by={user_id}"
        )
        if invoice.balance_due < Decimal('0.00'):
            logger.warning(f"Invoice {invoice.invoice_number} overpaid by {invoice.overpaid_amount}")
        return invoice
