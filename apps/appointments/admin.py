from django.contrib import admin
from common.admin_site import TenantModelAdmin, hms_admin_site
from .models import AppointmentType, Appointment


@admin.register(AppointmentType, site=hms_admin_site)
class AppointmentTypeAdmin(TenantModelAdmin):
    list_display = ['name', 'duration_default', 'created_at']
    search_fields = ['name']


@admin.register(Appointment, site=hms_admin_site)
class AppointmentAdmin(TenantModelAdmin):
    list_display = [
        'appointment_id', 'patient', 'doctor', 'appointment_type',
        'appointment_date', 'appointment_time', 'status'
    ]
    list_filter = ['status', 'appointment_type', 'appointment_date']
    search_fields = ['appointment_id', 'patient__first_name', 'patient__last_name']
    raw_id_fields = ['patient', 'doctor']
    date_hierarchy = 'appointment_date'
