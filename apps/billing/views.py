# billing/views.py
from rest_framework import filters, mixins, status, viewsets
from rest_framework.decorators import action
from rest_framework.response import Response
from rest_framework.views import APIView
from django_filters.rest_framework import DjangoFilterBackend

from common.drf_auth import HMSPermission
from common.mixins import TenantViewSetMixin

from drf_spectacular.utils import (
    extend_schema,
    extend_schema_view,
    OpenApiParameter,
    OpenApiResponse,
)

from .exceptions import DuplicateInvoiceError
from .filters import InvoiceFilter, WalkInInvoiceFilter
from .models import Invoice
from .serializers import (
    BillingSettingsSerializer, BillingSettingsUpdateSerializer,
    InvoiceListSerializer, InvoiceDetailSerializer,
    ManualInvoiceCreateSerializer, ConsultationInvoiceSerializer,
    PharmacyInvoiceSerializer, LaboratoryInvoiceSerializer,
    PaymentSerializer,
    WalkInPharmacyInvoiceSerializer, WalkInLabInvoiceSerializer,
)
from .services import BillingSettingsService, InvoiceService
from .statistics import BillingStatisticsService, PERIODS


def _created_response(invoice, message):
    return Response({
        'success': True,
        'message': message,
        'data': InvoiceDetailSerializer(invoice).data
    }, status=status.HTTP_201_CREATED)


def _duplicate_response(invoice):
    """409 carrying the invoice that already exists for the source document."""
    error = DuplicateInvoiceError(invoice)
    return Response({
        'success': False,
        'error': {
            'kind': error.kind,
            'message': error.message,
            'details': error.details,
        },
        'data': InvoiceDetailSerializer(invoice).data
    }, status=status.HTTP_409_CONFLICT)


# ============================================================================
# BILLING SETTINGS
# ============================================================================

class BillingSettingsView(APIView):
    """
    Billing Settings

    One settings record per tenant, created with defaults on first read.
    """
    permission_classes = [HMSPermission]
    hms_module = 'billing'

    action_permission_map = {
        'list': 'view_settings',
        'update': 'manage_settings',
    }

    @extend_schema(
        summary="Get Billing Settings",
        description="Return the tenant's billing settings, creating defaults on first use",
        responses={200: BillingSettingsSerializer},
        tags=['Billing - Settings']
    )
    def get(self, request):
        billing_settings = BillingSettingsService.resolve(request.tenant_id, request.user_id)
        return Response({
            'success': True,
            'data': BillingSettingsSerializer(billing_settings).data
        })

    @extend_schema(
        summary="Update Billing Settings",
        description="Change fees, tax, payment methods, invoice prefix or terms. Omitted fields are unchanged.",
        request=BillingSettingsUpdateSerializer,
        responses={200: BillingSettingsSerializer},
        tags=['Billing - Settings']
    )
    def put(self, request):
        serializer = BillingSettingsUpdateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        billing_settings = BillingSettingsService.update(
            tenant_id=request.tenant_id,
            user_id=request.user_id,
            changes=serializer.get_changes()
        )
        return Response({
            'success': True,
            'message': 'Billing settings updated',
            'data': BillingSettingsSerializer(billing_settings).data
        })


# ============================================================================
# INVOICE VIEWSET
# ============================================================================

@extend_schema_view(
    list=extend_schema(
        summary="List Invoices",
        description="Get paginated list of invoices with filtering and search",
        parameters=[
            OpenApiParameter(name='patient', type=int, description='Filter by patient ID'),
            OpenApiParameter(name='doctor', type=int, description='Filter by doctor ID'),
            OpenApiParameter(name='start_date', type=str, description='Invoices on or after (YYYY-MM-DD)'),
            OpenApiParameter(name='end_date', type=str, description='Invoices on or before (YYYY-MM-DD)'),
            OpenApiParameter(name='payment_status', type=str, description='unpaid, partial, paid'),
            OpenApiParameter(name='invoice_type', type=str, description='consultation, laboratory, pharmacy'),
            OpenApiParameter(name='customer_type', type=str, description='registered, walk_in'),
            OpenApiParameter(name='search', type=str, description='Search by invoice number or customer name'),
        ],
        tags=['Billing - Invoices']
    ),
    retrieve=extend_schema(
        summary="Get Invoice Details",
        description="Retrieve an invoice with its items",
        responses={200: InvoiceDetailSerializer},
        tags=['Billing - Invoices']
    ),
    create=extend_schema(
        summary="Create Manual Invoice",
        description="Create an invoice with explicit items for a registered patient",
        request=ManualInvoiceCreateSerializer,
        responses={201: InvoiceDetailSerializer},
        tags=['Billing - Invoices']
    )
)
class InvoiceViewSet(TenantViewSetMixin,
                     mixins.ListModelMixin,
                     mixins.RetrieveModelMixin,
                     viewsets.GenericViewSet):
    """
    Invoice Management

    Invoices are created from appointments, prescriptions and lab orders (at
    most one invoice per source document) or manually. Only payment details
    can change afterwards.
    """
    queryset = Invoice.objects.select_related(
        'patient', 'doctor'
    ).prefetch_related('items')
    permission_classes = [HMSPermission]
    hms_module = 'billing'

    action_permission_map = {
        'list': 'view_invoices',
        'retrieve': 'view_invoices',
        'create': 'create_invoice',
        'consultation': 'create_invoice',
        'laboratory': 'create_invoice',
        'pharmacy': 'create_invoice',
        'payment': 'record_payment',
    }

    filter_backends = [DjangoFilterBackend, filters.SearchFilter, filters.OrderingFilter]
    filterset_class = InvoiceFilter
    search_fields = ['invoice_number', 'patient__first_name', 'patient__last_name', 'walk_in_name']
    ordering_fields = ['invoice_date', 'total_amount', 'balance_due']
    ordering = ['-invoice_date', '-id']

    def get_serializer_class(self):
        """Return appropriate serializer based on action"""
        if self.action == 'list':
            return InvoiceListSerializer
        elif self.action == 'create':
            return ManualInvoiceCreateSerializer
        elif self.action == 'consultation':
            return ConsultationInvoiceSerializer
        elif self.action == 'laboratory':
            return LaboratoryInvoiceSerializer
        elif self.action == 'pharmacy':
            return PharmacyInvoiceSerializer
        elif self.action == 'payment':
            return PaymentSerializer
        return InvoiceDetailSerializer

    def retrieve(self, request, *args, **kwargs):
        invoice = self.get_object()
        return Response({'success': True, 'data': InvoiceDetailSerializer(invoice).data})

    def create(self, request, *args, **kwargs):
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        invoice = InvoiceService.create_manual(
            tenant_id=self.get_tenant_id(),
            patient_id=data['patient'],
            invoice_type=data['invoice_type'],
            items=data['items'],
            doctor_id=data.get('doctor'),
            payment_method=data['payment_method'],
            paid_amount=data['paid_amount'],
            due_date=data.get('due_date'),
            notes=data.get('notes', ''),
            created_by_id=self.get_user_id()
        )
        return _created_response(invoice, 'Invoice created')

    @extend_schema(
        summary="Create Consultation Invoice",
        description="Bill an appointment at the consultation fee for its type. Returns 409 with the "
                    "existing invoice if the appointment was already billed.",
        request=ConsultationInvoiceSerializer,
        responses={
            201: InvoiceDetailSerializer,
            409: OpenApiResponse(description='Appointment already invoiced'),
        },
        tags=['Billing - Invoices']
    )
    @action(detail=False, methods=['post'])
    def consultation(self, request):
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        invoice, created = InvoiceService.create_from_appointment(
            tenant_id=self.get_tenant_id(),
            appointment_id=data['appointment_id'],
            payment_method=data['payment_method'],
            paid_amount=data['paid_amount'],
            created_by_id=self.get_user_id()
        )
        if not created:
            return _duplicate_response(invoice)
        return _created_response(invoice, 'Consultation invoice created')

    @extend_schema(
        summary="Create Laboratory Invoice",
        description="Bill the tests of a lab order. Cancelled tests are skipped.",
        request=LaboratoryInvoiceSerializer,
        responses={
            201: InvoiceDetailSerializer,
            409: OpenApiResponse(description='Lab order already invoiced'),
        },
        tags=['Billing - Invoices']
    )
    @action(detail=False, methods=['post'])
    def laboratory(self, request):
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        invoice, created = InvoiceService.create_from_lab_order(
            tenant_id=self.get_tenant_id(),
            lab_order_id=data['lab_order_id'],
            payment_method=data['payment_method'],
            paid_amount=data['paid_amount'],
            created_by_id=self.get_user_id()
        )
        if not created:
            return _duplicate_response(invoice)
        return _created_response(invoice, 'Laboratory invoice created')

    @extend_schema(
        summary="Create Pharmacy Invoice",
        description="Bill the medications of a prescription at catalog price",
        request=PharmacyInvoiceSerializer,
        responses={
            201: InvoiceDetailSerializer,
            409: OpenApiResponse(description='Prescription already invoiced'),
        },
        tags=['Billing - Invoices']
    )
    @action(detail=False, methods=['post'])
    def pharmacy(self, request):
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        invoice, created = InvoiceService.create_from_prescription(
            tenant_id=self.get_tenant_id(),
            prescription_id=data['prescription_id'],
            payment_method=data['payment_method'],
            paid_amount=data['paid_amount'],
            created_by_id=self.get_user_id()
        )
        if not created:
            return _duplicate_response(invoice)
        return _created_response(invoice, 'Pharmacy invoice created')

    @extend_schema(
        summary="Record Payment",
        description="Set the total amount paid so far. Send the invoice `version` to reject the "
                    "update if someone else recorded a payment in the meantime.",
        request=PaymentSerializer,
        responses={
            200: InvoiceDetailSerializer,
            409: OpenApiResponse(description='Invoice changed since it was read'),
        },
        tags=['Billing - Invoices']
    )
    @action(detail=True, methods=['put'])
    def payment(self, request, pk=None):
        """Record payment for an invoice"""
        invoice = self.get_object()
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        invoice = InvoiceService.record_payment(
            tenant_id=self.get_tenant_id(),
            invoice_id=invoice.pk,
            paid_amount=data['paid_amount'],
            payment_method=data.get('payment_method'),
            payment_date=data.get('payment_date'),
            expected_version=data.get('version'),
            user_id=self.get_user_id()
        )
        return Response({
            'success': True,
            'message': 'Payment recorded',
            'data': InvoiceDetailSerializer(invoice).data
        })


# ============================================================================
# STATISTICS
# ============================================================================

class BillingStatisticsView(APIView):
    permission_classes = [HMSPermission]
    hms_module = 'billing'

    action_permission_map = {
        'list': 'view_reports',
    }

    @extend_schema(
        summary="Get Billing Statistics",
        description="Invoice totals for a period, broken down by type, payment status and payment method",
        parameters=[
            OpenApiParameter(name='period', type=str, description=f"{', '.join(PERIODS)} (default: this-month)"),
            OpenApiParameter(name='start_date', type=str, description='Required for custom (YYYY-MM-DD)'),
            OpenApiParameter(name='end_date', type=str, description='Required for custom (YYYY-MM-DD)'),
        ],
        responses={200: OpenApiResponse(description='Billing statistics')},
        tags=['Billing - Reports']
    )
    def get(self, request):
        params = request.query_params
        data = BillingStatisticsService.collect(
            request.tenant_id,
            period=params.get('period', 'this-month'),
            start_date=params.get('start_date'),
            end_date=params.get('end_date'),
        )
        return Response({'success': True, 'data': data})


# ============================================================================
# WALK-IN INVOICES
# ============================================================================

@extend_schema_view(
    list=extend_schema(
        summary="List Walk-in Invoices",
        description="Invoices issued to customers without a patient record",
        parameters=[
            OpenApiParameter(name='type', type=str, description='laboratory or pharmacy'),
            OpenApiParameter(name='search', type=str, description='Search by customer name, contact number or invoice number'),
            OpenApiParameter(name='start_date', type=str, description='Invoices on or after (YYYY-MM-DD)'),
            OpenApiParameter(name='end_date', type=str, description='Invoices on or before (YYYY-MM-DD)'),
        ],
        tags=['Billing - Walk-in']
    ),
    retrieve=extend_schema(
        summary="Get Walk-in Invoice",
        responses={200: InvoiceDetailSerializer},
        tags=['Billing - Walk-in']
    )
)
class WalkInInvoiceViewSet(TenantViewSetMixin,
                           mixins.ListModelMixin,
                           mixins.RetrieveModelMixin,
                           viewsets.GenericViewSet):
    """
    Walk-in Sales

    Pharmacy and laboratory sales to customers who are not registered
    patients.
    """
    queryset = Invoice.objects.filter(customer_type='walk_in').prefetch_related('items')
    permission_classes = [HMSPermission]
    hms_module = 'billing'

    action_permission_map = {
        'list': 'view_invoices',
        'retrieve': 'view_invoices',
        'pharmacy': 'create_invoice',
        'laboratory': 'create_invoice',
    }

    filter_backends = [DjangoFilterBackend, filters.SearchFilter, filters.OrderingFilter]
    filterset_class = WalkInInvoiceFilter
    search_fields = ['walk_in_name', 'walk_in_contact_number', 'invoice_number']
    ordering_fields = ['invoice_date', 'total_amount']
    ordering = ['-invoice_date', '-id']

    def get_serializer_class(self):
        if self.action == 'list':
            return InvoiceListSerializer
        elif self.action == 'pharmacy':
            return WalkInPharmacyInvoiceSerializer
        elif self.action == 'laboratory':
            return WalkInLabInvoiceSerializer
        return InvoiceDetailSerializer

    def retrieve(self, request, *args, **kwargs):
        invoice = self.get_object()
        return Response({'success': True, 'data': InvoiceDetailSerializer(invoice).data})

    @extend_schema(
        summary="Create Walk-in Pharmacy Invoice",
        description="Sell medications over the counter; stock is deducted with the invoice",
        request=WalkInPharmacyInvoiceSerializer,
        responses={201: InvoiceDetailSerializer},
        tags=['Billing - Walk-in']
    )
    def pharmacy(self, request):
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        invoice = InvoiceService.create_walk_in_pharmacy(
            tenant_id=self.get_tenant_id(),
            customer=serializer.get_customer(),
            items=data['items'],
            payment_method=data['payment_method'],
            paid_amount=data['paid_amount'],
            notes=data.get('notes', ''),
            created_by_id=self.get_user_id()
        )
        return _created_response(invoice, 'Walk-in pharmacy invoice created')

    @extend_schema(
        summary="Create Walk-in Laboratory Invoice",
        description="Bill lab tests for a walk-in customer, from the catalog or priced ad hoc",
        request=WalkInLabInvoiceSerializer,
        responses={201: InvoiceDetailSerializer},
        tags=['Billing - Walk-in']
    )
    def laboratory(self, request):
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        invoice = InvoiceService.create_walk_in_laboratory(
            tenant_id=self.get_tenant_id(),
            customer=serializer.get_customer(),
            tests=data['tests'],
            payment_method=data['payment_method'],
            paid_amount=data['paid_amount'],
            notes=data.get('notes', ''),
            created_by_id=self.get_user_id()
        )
        return _created_response(invoice, 'Walk-in laboratory invoice created')
