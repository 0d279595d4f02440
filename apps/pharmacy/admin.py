from django.contrib import admin
from common.admin_site import TenantModelAdmin, hms_admin_site
from .models import PharmacyProduct, Prescription, PrescriptionItem


@admin.register(PharmacyProduct, site=hms_admin_site)
class PharmacyProductAdmin(TenantModelAdmin):
    list_display = [
        'product_name', 'company', 'batch_no', 'mrp', 'selling_price',
        'quantity', 'expiry_date', 'is_active'
    ]
    list_filter = ['is_active', 'company', 'expiry_date']
    search_fields = ['product_name', 'company', 'batch_no']
    readonly_fields = ['created_at', 'updated_at']


class PrescriptionItemInline(admin.TabularInline):
    model = PrescriptionItem
    extra = 1
    fields = ['product', 'dosage', 'frequency', 'duration', 'instructions', 'quantity']
    raw_id_fields = ['product']


@admin.register(Prescription, site=hms_admin_site)
class PrescriptionAdmin(TenantModelAdmin):
    list_display = ['prescription_number', 'patient', 'doctor', 'prescribed_on', 'status']
    list_filter = ['status', 'prescribed_on']
    search_fields = ['prescription_number', 'patient__first_name', 'patient__last_name']
    raw_id_fields = ['patient', 'doctor']
    inlines = [PrescriptionItemInline]
