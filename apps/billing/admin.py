from django.contrib import admin
from import_export.admin import ExportMixin

from common.admin_site import TenantModelAdmin, hms_admin_site
from .models import BillingSettings, Invoice, InvoiceItem, InvoiceSequence
from .resources import InvoiceResource


@admin.register(BillingSettings, site=hms_admin_site)
class BillingSettingsAdmin(TenantModelAdmin):
    list_display = ['tenant_id', 'invoice_prefix', 'tax_percentage', 'currency_symbol', 'updated_at']
    search_fields = ['tenant_id', 'tax_registration_number']
    readonly_fields = ['updated_by_id', 'created_at', 'updated_at']

    fieldsets = (
        ('Tenant', {
            'fields': ('tenant_id',)
        }),
        ('Consultation Fees', {
            'fields': (
                'consultation_fee_standard', 'consultation_fee_follow_up',
                'consultation_fee_specialist', 'consultation_fee_emergency'
            )
        }),
        ('Tax', {
            'fields': ('tax_registration_number', 'tax_percentage')
        }),
        ('Invoice Display', {
            'fields': ('currency_symbol', 'accepted_payment_methods', 'invoice_prefix', 'terms_text')
        }),
        ('Audit', {
            'fields': ('updated_by_id', 'created_at', 'updated_at'),
            'classes': ('collapse',)
        }),
    )


class InvoiceItemInline(admin.TabularInline):
    model = InvoiceItem
    extra = 0
    fields = ['position', 'description', 'quantity', 'unit_price', 'amount', 'tax_code', 'tax_rate']
    readonly_fields = fields
    can_delete = False

    def has_add_permission(self, request, obj=None):
        return False


@admin.register(Invoice, site=hms_admin_site)
class InvoiceAdmin(ExportMixin, TenantModelAdmin):
    """Read-only view of issued invoices with spreadsheet export."""
    resource_classes = [InvoiceResource]

    list_display = [
        'invoice_number', 'invoice_date', 'invoice_type', 'customer_type',
        'customer_name', 'total_amount', 'paid_amount', 'balance_due', 'payment_status'
    ]
    list_filter = ['invoice_type', 'customer_type', 'payment_status', 'payment_method', 'invoice_date']
    search_fields = ['invoice_number', 'walk_in_name', 'patient__first_name', 'patient__last_name']
    date_hierarchy = 'invoice_date'
    list_select_related = ['patient']
    inlines = [InvoiceItemInline]

    fieldsets = (
        ('Invoice', {
            'fields': ('tenant_id', 'invoice_number', 'invoice_type', 'invoice_date', 'due_date', 'version')
        }),
        ('Customer', {
            'fields': (
                'customer_type', 'patient', 'walk_in_name', 'walk_in_contact_number',
                'walk_in_email', 'walk_in_address', 'doctor'
            )
        }),
        ('Source', {
            'fields': ('appointment', 'prescription', 'lab_order')
        }),
        ('Amounts', {
            'fields': (
                'subtotal', 'tax_registration_number', 'tax_rate', 'tax_amount', 'total_amount'
            )
        }),
        ('Payment', {
            'fields': ('paid_amount', 'balance_due', 'payment_method', 'payment_status', 'payment_date')
        }),
        ('Notes', {
            'fields': ('notes', 'created_by_id', 'created_at', 'updated_at')
        }),
    )

    def get_readonly_fields(self, request, obj=None):
        return [field.name for field in self.model._meta.fields]

    def has_add_permission(self, request):
        return False

    def has_delete_permission(self, request, obj=None):
        return False

    @admin.display(description='Customer')
    def customer_name(self, obj):
        return obj.customer_name


@admin.register(InvoiceSequence, site=hms_admin_site)
class InvoiceSequenceAdmin(TenantModelAdmin):
    list_display = ['tenant_id', 'prefix', 'period', 'last_value', 'updated_at']
    list_filter = ['prefix', 'period']
    readonly_fields = ['tenant_id', 'prefix', 'period', 'last_value', 'updated_at']

    def has_add_permission(self, request):
        return False
