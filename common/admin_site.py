import logging
import uuid

from django.contrib import admin
from django.contrib.admin.sites import AdminSite
from django.utils.translation import gettext_lazy as _

logger = logging.getLogger(__name__)


def _session_tenant_id(request):
    """Tenant selected for the admin session, as a UUID (or None)."""
    tenant_id = None
    if hasattr(request, 'session'):
        tenant_id = request.session.get('user_data', {}).get('tenant_id')
    if not tenant_id:
        tenant_id = getattr(getattr(request, 'user', None), 'tenant_id', None)
    if not tenant_id:
        return None
    try:
        return tenant_id if isinstance(tenant_id, uuid.UUID) else uuid.UUID(str(tenant_id))
    except ValueError:
        logger.error(f"[TenantModelAdmin] Invalid tenant_id in session: {tenant_id}")
        return None


class HMSAdminSite(AdminSite):
    """
    Admin site for billing staff; shows the session's tenant on every page.
    """
    site_title = _('Hospital Billing Administration')
    site_header = _('Hospital Billing Admin')
    index_title = _('Billing & Invoices')

    def each_context(self, request):
        context = super().each_context(request)
        tenant_id = _session_tenant_id(request)
        context['admin_tenant_id'] = str(tenant_id) if tenant_id else 'All tenants'
        return context


class TenantModelAdmin(admin.ModelAdmin):
    """
    Base ModelAdmin that scopes rows to the admin session's tenant and stamps
    it on new objects.
    """

    def get_queryset(self, request):
        qs = super().get_queryset(request)
        tenant_id = _session_tenant_id(request)
        if tenant_id and hasattr(qs.model, 'tenant_id'):
            qs = qs.filter(tenant_id=tenant_id)
        return qs

    def save_model(self, request, obj, form, change):
        if not change and hasattr(obj, 'tenant_id') and not obj.tenant_id:
            tenant_id = _session_tenant_id(request)
            if tenant_id:
                obj.tenant_id = tenant_id
            else:
                logger.warning(f"[TenantModelAdmin] No tenant_id available for new {obj.__class__.__name__}")
        super().save_model(request, obj, form, change)


hms_admin_site = HMSAdminSite(name='hms_admin')
