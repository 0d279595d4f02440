from django.contrib import admin
from common.admin_site import TenantModelAdmin, hms_admin_site
from .models import PatientProfile


@admin.register(PatientProfile, site=hms_admin_site)
class PatientProfileAdmin(TenantModelAdmin):
    list_display = [
        'patient_id', 'full_name', 'gender', 'mobile_primary',
        'city', 'status', 'registration_date'
    ]
    list_filter = ['status', 'gender', 'city']
    search_fields = ['patient_id', 'first_name', 'last_name', 'mobile_primary', 'email']
    readonly_fields = ['registration_date', 'created_at', 'updated_at']
    ordering = ['-registration_date']

    fieldsets = (
        ('Tenant', {
            'fields': ('tenant_id', 'patient_id')
        }),
        ('Personal Information', {
            'fields': ('first_name', 'middle_name', 'last_name', 'gender', 'date_of_birth')
        }),
        ('Contact', {
            'fields': ('mobile_primary', 'email', 'address_line1', 'city', 'state', 'pincode')
        }),
        ('System Fields', {
            'fields': ('status', 'registration_date', 'created_at', 'updated_at'),
            'classes': ('collapse',)
        }),
    )
