# billing/urls.py
from django.urls import path, include
from rest_framework.routers import DefaultRouter

from .views import (
    BillingSettingsView,
    BillingStatisticsView,
    InvoiceViewSet
)

app_name = 'billing'

router = DefaultRouter()
router.register(r'invoices', InvoiceViewSet, basename='invoice')

urlpatterns = [
    path('settings/', BillingSettingsView.as_view(), name='settings'),
    path('statistics/', BillingStatisticsView.as_view(), name='statistics'),
    path('', include(router.urls)),
]
