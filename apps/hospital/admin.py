from django.contrib import admin
from common.admin_site import TenantModelAdmin, hms_admin_site
from .models import Hospital


@admin.register(Hospital, site=hms_admin_site)
class HospitalAdmin(TenantModelAdmin):
    list_display = ['name', 'tenant_id', 'contact_number', 'email']
    search_fields = ['name', 'registration_number']
    readonly_fields = ['created_at', 'updated_at']
