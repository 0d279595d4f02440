"""
Tenant scoping helpers shared by models and viewsets.
"""
from django.db import models


class TenantModelMixin(models.Model):
    """Abstract base adding the tenant column every HMS record carries."""

    tenant_id = models.UUIDField(db_index=True, help_text="Tenant this record belongs to")

    class Meta:
        abstract = True


class TenantViewSetMixin:
    """
    Restricts a view's queryset to the tenant of the authenticated request
    and exposes the tenant/user ids to serializers through the context.
    """

    def get_tenant_id(self):
        return getattr(self.request, 'tenant_id', None)

    def get_user_id(self):
        return getattr(self.request, 'user_id', None)

    def get_queryset(self):
        queryset = super().get_queryset()
        tenant_id = self.get_tenant_id()
        if not tenant_id:
            return queryset.none()
        return queryset.filter(tenant_id=tenant_id)

    def get_serializer_context(self):
        context = super().get_serializer_context()
        context['tenant_id'] = self.get_tenant_id()
        context['user_id'] = self.get_user_id()
        return context
