from decimal import Decimal

from rest_framework import serializers

from .customers import WalkInCustomer
from .models import BillingSettings, Invoice, InvoiceItem, PAYMENT_METHODS

MONEY = {'max_digits': 12, 'decimal_places': 2}


# ============================================================================
# SETTINGS
# ============================================================================

class ConsultationFeesSerializer(serializers.Serializer):
    """Consultation fee tiers"""
    standard = serializers.DecimalField(max_digits=10, decimal_places=2, min_value=Decimal('0.00'), required=False)
    follow_up = serializers.DecimalField(max_digits=10, decimal_places=2, min_value=Decimal('0.00'), required=False)
    specialist = serializers.DecimalField(max_digits=10, decimal_places=2, min_value=Decimal('0.00'), required=False)
    emergency = serializers.DecimalField(max_digits=10, decimal_places=2, min_value=Decimal('0.00'), required=False)


class BillingSettingsSerializer(serializers.ModelSerializer):
    """Billing settings as returned to clients"""
    consultation_fees = ConsultationFeesSerializer(read_only=True)

    class Meta:
        model = BillingSettings
        fields = [
            'id', 'tenant_id', 'consultation_fees', 'tax_registration_number',
            'tax_percentage', 'currency_symbol', 'accepted_payment_methods',
            'invoice_prefix', 'terms_text', 'updated_by_id', 'created_at', 'updated_at'
        ]
        read_only_fields = fields


class BillingSettingsUpdateSerializer(serializers.Serializer):
    """
    Settings update. Only the fields declared here can change; omitted
    fields keep their current value.
    """
    FEE_FIELDS = {
        'standard': 'consultation_fee_standard',
        'follow_up': 'consultation_fee_follow_up',
        'specialist': 'consultation_fee_specialist',
        'emergency': 'consultation_fee_emergency',
    }

    consultation_fees = ConsultationFeesSerializer(required=False)
    tax_registration_number = serializers.CharField(max_length=20, required=False, allow_blank=True)
    tax_percentage = serializers.DecimalField(
        max_digits=5, decimal_places=2, min_value=Decimal('0.00'), max_value=Decimal('100.00'), required=False
    )
    currency_symbol = serializers.CharField(max_length=5, required=False)
    accepted_payment_methods = serializers.ListField(
        child=serializers.ChoiceField(choices=PAYMENT_METHODS),
        allow_empty=False,
        required=False
    )
    invoice_prefix = serializers.RegexField(
        r'^[A-Za-z0-9]{1,10}$',
        required=False,
        error_messages={'invalid': 'Invoice prefix must be 1-10 letters or digits.'}
    )
    terms_text = serializers.CharField(required=False, allow_blank=True)

    def validate_accepted_payment_methods(self, value):
        if len(set(value)) != len(value):
            raise serializers.ValidationError("Payment methods must not repeat.")
        return value

    def get_changes(self):
        """Validated data flattened to model field names."""
        changes = dict(self.validated_data)
        fees = changes.pop('consultation_fees', {}) or {}
        for tier, field_name in self.FEE_FIELDS.items():
            if tier in fees:
                changes[field_name] = fees[tier]
        return changes


# ============================================================================
# INVOICES (read)
# ============================================================================

class InvoiceItemSerializer(serializers.ModelSerializer):

    class Meta:
        model = InvoiceItem
        fields = [
            'id', 'position', 'description', 'quantity', 'unit_price',
            'amount', 'tax_code', 'tax_rate', 'product'
        ]
        read_only_fields = fields


class InvoiceListSerializer(serializers.ModelSerializer):
    """Serializer for listing invoices"""
    customer_name = serializers.CharField(read_only=True)
    doctor_name = serializers.CharField(source='doctor.full_name', read_only=True, default=None)

    class Meta:
        model = Invoice
        fields = [
            'id', 'invoice_number', 'invoice_date', 'invoice_type',
            'customer_type', 'customer_name', 'patient', 'doctor', 'doctor_name',
            'total_amount', 'paid_amount', 'balance_due',
            'payment_status', 'payment_method', 'version'
        ]
        read_only_fields = fields


class InvoiceDetailSerializer(serializers.ModelSerializer):
    """Detailed invoice serializer"""
    items = InvoiceItemSerializer(many=True, read_only=True)
    customer = serializers.SerializerMethodField()
    source = serializers.SerializerMethodField()
    doctor_name = serializers.CharField(source='doctor.full_name', read_only=True, default=None)
    display_balance_due = serializers.DecimalField(read_only=True, **MONEY)
    overpaid_amount = serializers.DecimalField(read_only=True, **MONEY)

    class Meta:
        model = Invoice
        fields = [
            'id', 'invoice_number', 'invoice_date', 'due_date',
            'invoice_type', 'customer', 'doctor', 'doctor_name', 'source',
            'items', 'subtotal', 'tax_registration_number', 'tax_rate',
            'tax_amount', 'total_amount', 'paid_amount', 'balance_due',
            'display_balance_due', 'overpaid_amount',
            'payment_method', 'payment_status', 'payment_date',
            'notes', 'created_by_id', 'version', 'created_at', 'updated_at'
        ]
        read_only_fields = fields

    def get_customer(self, obj):
        if obj.customer_type == 'registered':
            patient = obj.patient
            return {
                'type': 'registered',
                'patient_id': patient.pk,
                'patient_number': patient.patient_id,
                'name': patient.full_name,
                'contact_number': patient.mobile_primary,
                'email': patient.email,
                'address': patient.full_address,
            }
        return {
            'type': 'walk_in',
            'name': obj.walk_in_name,
            'contact_number': obj.walk_in_contact_number,
            'email': obj.walk_in_email,
            'address': obj.walk_in_address,
        }

    def get_source(self, obj):
        for source_type in ('appointment', 'prescription', 'lab_order'):
            source_id = getattr(obj, f'{source_type}_id')
            if source_id:
                return {'type': source_type, 'id': source_id}
        return None


# ============================================================================
# INVOICES (write)
# ============================================================================

class PaymentFieldsMixin(serializers.Serializer):
    payment_method = serializers.ChoiceField(choices=PAYMENT_METHODS, default='Cash')
    paid_amount = serializers.DecimalField(min_value=Decimal('0.00'), default=Decimal('0.00'), **MONEY)


class InvoiceItemInputSerializer(serializers.Serializer):
    description = serializers.CharField(max_length=500)
    quantity = serializers.IntegerField(min_value=1, default=1)
    unit_price = serializers.DecimalField(min_value=Decimal('0.00'), **MONEY)
    amount = serializers.DecimalField(min_value=Decimal('0.00'), required=False, allow_null=True, **MONEY)
    tax_code = serializers.CharField(max_length=20, required=False, allow_blank=True)


class ManualInvoiceCreateSerializer(PaymentFieldsMixin):
    """Manual invoice for a registered patient"""
    patient = serializers.IntegerField()
    doctor = serializers.IntegerField(required=False, allow_null=True)
    invoice_type = serializers.ChoiceField(choices=Invoice.INVOICE_TYPE_CHOICES)
    items = InvoiceItemInputSerializer(many=True, allow_empty=False)
    due_date = serializers.DateField(required=False, allow_null=True)
    notes = serializers.CharField(required=False, allow_blank=True, default='')


class ConsultationInvoiceSerializer(PaymentFieldsMixin):
    appointment_id = serializers.IntegerField()


class PharmacyInvoiceSerializer(PaymentFieldsMixin):
    prescription_id = serializers.IntegerField()


class LaboratoryInvoiceSerializer(PaymentFieldsMixin):
    lab_order_id = serializers.IntegerField()


class PaymentSerializer(serializers.Serializer):
    """Record a payment: ``paid_amount`` is the total paid so far"""
    paid_amount = serializers.DecimalField(min_value=Decimal('0.01'), **MONEY)
    payment_method = serializers.ChoiceField(choices=PAYMENT_METHODS, required=False)
    payment_date = serializers.DateTimeField(required=False)
    version = serializers.IntegerField(min_value=1, required=False)


# ============================================================================
# WALK-IN
# ============================================================================

class WalkInCustomerFieldsMixin(serializers.Serializer):
    customer_name = serializers.CharField(max_length=200)
    contact_number = serializers.CharField(max_length=20, required=False, allow_blank=True, default='')
    email = serializers.EmailField(required=False, allow_blank=True, default='')
    address = serializers.CharField(required=False, allow_blank=True, default='')
    notes = serializers.CharField(required=False, allow_blank=True, default='')

    def get_customer(self):
        data = self.validated_data
        return WalkInCustomer(
            name=data['customer_name'],
            contact_number=data.get('contact_number', ''),
            email=data.get('email', ''),
            address=data.get('address', ''),
        )


class WalkInPharmacyItemSerializer(serializers.Serializer):
    product_id = serializers.IntegerField()
    quantity = serializers.IntegerField(min_value=1)
    unit_price = serializers.DecimalField(min_value=Decimal('0.00'), required=False, allow_null=True, **MONEY)
    tax_code = serializers.CharField(max_length=20, required=False, allow_blank=True)


class WalkInPharmacyInvoiceSerializer(WalkInCustomerFieldsMixin, PaymentFieldsMixin):
    items = WalkInPharmacyItemSerializer(many=True, allow_empty=False)


class WalkInLabTestSerializer(serializers.Serializer):
    investigation_id = serializers.IntegerField(required=False)
    name = serializers.CharField(max_length=200, required=False)
    price = serializers.DecimalField(min_value=Decimal('0.00'), required=False, **MONEY)
    tax_code = serializers.CharField(max_length=20, required=False, allow_blank=True)

    def validate(self, data):
        if 'investigation_id' not in data and not ('name' in data and 'price' in data):
            raise serializers.ValidationError(
                "Each test needs an investigation_id, or a name and a price."
            )
        return data


class WalkInLabInvoiceSerializer(WalkInCustomerFieldsMixin, PaymentFieldsMixin):
    tests = WalkInLabTestSerializer(many=True, allow_empty=False)
