"""
Spreadsheet export of invoices (CSV, XLSX, JSON) through django-import-export.
"""
from import_export import fields, resources

from .models import Invoice


class InvoiceResource(resources.ModelResource):
    customer_name = fields.Field(column_name='customer_name')
    patient_number = fields.Field(column_name='patient_number')
    doctor_name = fields.Field(column_name='doctor_name')
    item_count = fields.Field(column_name='item_count')

    class Meta:
        model = Invoice
        fields = (
            'invoice_number', 'invoice_date', 'due_date', 'invoice_type',
            'customer_type', 'customer_name', 'patient_number', 'doctor_name',
            'subtotal', 'tax_rate', 'tax_amount', 'total_amount',
            'paid_amount', 'balance_due', 'payment_method', 'payment_status',
            'payment_date', 'item_count',
        )

    def get_queryset(self):
        return super().get_queryset().select_related('patient', 'doctor').prefetch_related('items')

    def dehydrate_customer_name(self, invoice):
        return invoice.customer_name

    def dehydrate_patient_number(self, invoice):
        return invoice.patient.patient_id if invoice.patient_id else ''

    def dehydrate_doctor_name(self, invoice):
        return invoice.doctor.full_name if invoice.doctor_id else ''

    def dehydrate_item_count(self, invoice):
        return len(invoice.items.all())
