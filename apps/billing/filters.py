import django_filters

from .models import Invoice


class InvoiceFilter(django_filters.FilterSet):
    """Invoice list filters; dates compare against the local invoice date."""
    start_date = django_filters.DateFilter(field_name='invoice_date', lookup_expr='date__gte')
    end_date = django_filters.DateFilter(field_name='invoice_date', lookup_expr='date__lte')

    class Meta:
        model = Invoice
        fields = ['patient', 'doctor', 'payment_status', 'invoice_type', 'customer_type']


class WalkInInvoiceFilter(django_filters.FilterSet):
    type = django_filters.ChoiceFilter(field_name='invoice_type', choices=Invoice.INVOICE_TYPE_CHOICES)
    start_date = django_filters.DateFilter(field_name='invoice_date', lookup_expr='date__gte')
    end_date = django_filters.DateFilter(field_name='invoice_date', lookup_expr='date__lte')

    class Meta:
        model = Invoice
        fields = ['payment_status']
