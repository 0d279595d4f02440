# billing/walkin_urls.py
from django.urls import path

from .views import WalkInInvoiceViewSet

app_name = 'walkin'

urlpatterns = [
    path('pharmacy/invoice/', WalkInInvoiceViewSet.as_view({'post': 'pharmacy'}), name='pharmacy-invoice'),
    path('laboratory/invoice/', WalkInInvoiceViewSet.as_view({'post': 'laboratory'}), name='laboratory-invoice'),
    path('invoices/', WalkInInvoiceViewSet.as_view({'get': 'list'}), name='invoice-list'),
    path('invoices/<int:pk>/', WalkInInvoiceViewSet.as_view({'get': 'retrieve'}), name='invoice-detail'),
]
