from django.contrib import admin
from common.admin_site import TenantModelAdmin, hms_admin_site
from .models import Specialty, DoctorProfile


@admin.register(Specialty, site=hms_admin_site)
class SpecialtyAdmin(TenantModelAdmin):
    """Admin for Medical Specialties"""
    list_display = ['name', 'code', 'department', 'is_active']
    list_filter = ['is_active', 'department']
    search_fields = ['name', 'code']
    ordering = ['name']


@admin.register(DoctorProfile, site=hms_admin_site)
class DoctorProfileAdmin(TenantModelAdmin):
    """Admin for Doctor Profiles"""
    list_display = ['full_name', 'user_id', 'medical_license_number', 'status', 'created_at']
    list_filter = ['status', 'specialties']
    search_fields = ['first_name', 'last_name', 'user_id', 'medical_license_number']
    readonly_fields = ['created_at', 'updated_at']
    filter_horizontal = ['specialties']

    fieldsets = (
        ('Tenant & User Information', {
            'fields': ('tenant_id', 'user_id'),
            'description': 'User ID from SuperAdmin'
        }),
        ('Doctor', {
            'fields': ('first_name', 'last_name', 'medical_license_number', 'specialties', 'status')
        }),
        ('Timestamps', {
            'fields': ('created_at', 'updated_at'),
            'classes': ('collapse',)
        }),
    )
