from django.contrib import admin
from common.admin_site import TenantModelAdmin, hms_admin_site
from .models import Investigation, Requisition, DiagnosticOrder


@admin.register(Investigation, site=hms_admin_site)
class InvestigationAdmin(TenantModelAdmin):
    list_display = ('name', 'code', 'category', 'base_charge', 'is_active')
    search_fields = ('name', 'code')
    list_filter = ('category', 'is_active')


class DiagnosticOrderInline(admin.TabularInline):
    model = DiagnosticOrder
    extra = 1
    fields = ('investigation', 'price', 'status', 'sample_id')
    raw_id_fields = ('investigation',)


@admin.register(Requisition, site=hms_admin_site)
class RequisitionAdmin(TenantModelAdmin):
    list_display = ('requisition_number', 'patient', 'doctor', 'status', 'priority', 'order_date')
    search_fields = ('requisition_number', 'patient__first_name', 'patient__last_name')
    list_filter = ('status', 'priority', 'order_date')
    raw_id_fields = ('patient', 'doctor')
    inlines = [DiagnosticOrderInline]

    def save_formset(self, request, form, formset, change):
        # Inline orders inherit the requisition's tenant
        instances = formset.save(commit=False)
        for instance in instances:
            if not instance.tenant_id:
                instance.tenant_id = form.instance.tenant_id
            instance.save()
        for obj in formset.deleted_objects:
            obj.delete()
        formset.save_m2m()
