# apps/billing/tests/test_api.py
from decimal import Decimal

from django.contrib.auth import get_user_model
from django.test import TestCase
from rest_framework.test import APIClient

from apps.billing.models import Invoice
from apps.billing.resources import InvoiceResource
from apps.billing.services import InvoiceService

from .factories import (
    BILLING_PERMISSIONS,
    OTHER_TENANT_ID,
    TENANT_ID,
    create_appointment,
    create_doctor,
    create_hospital,
    create_investigation,
    create_lab_order,
    create_patient,
    create_product,
    make_token,
)


def money(value):
    return Decimal(str(value))


class BillingAPITestCase(TestCase):
    """Shared client and records"""

    def setUp(self):
        self.client = APIClient()
        self.client.credentials(HTTP_AUTHORIZATION=f'Bearer {make_token()}')
        create_hospital()
        self.patient = create_patient()
        self.doctor = create_doctor()


class InvoiceWorkflowTestCase(BillingAPITestCase):
    """Manual and consultation invoices through the API"""

    def create_manual(self, **overrides):
        payload = {
            'patient': self.patient.pk,
            'doctor': self.doctor.pk,
            'invoice_type': 'consultation',
            'items': [
                {'description': 'Wound dressing', 'quantity': 2, 'unit_price': '500.00'},
                {'description': 'Tetanus injection', 'quantity': 1, 'unit_price': '1000.00'},
            ],
        }
        payload.update(overrides)
        return self.client.post('/api/billing/invoices/', payload, format='json')

    def test_create_manual_invoice(self):
        response = self.create_manual()

        self.assertEqual(response.status_code, 201)
        body = response.json()
        self.assertTrue(body['success'])
        data = body['data']
        self.assertEqual(money(data['subtotal']), Decimal('2000'))
        self.assertEqual(money(data['tax_amount']), Decimal('360'))
        self.assertEqual(money(data['total_amount']), Decimal('2360'))
        self.assertEqual(data['payment_status'], 'unpaid')
        self.assertEqual(data['customer']['type'], 'registered')
        self.assertEqual(data['customer']['name'], 'Ravi Kumar')
        self.assertEqual(len(data['items']), 2)

    def test_create_manual_invoice_with_payment(self):
        response = self.create_manual(paid_amount='1000.00')

        data = response.json()['data']
        self.assertEqual(money(data['balance_due']), Decimal('1360'))
        self.assertEqual(data['payment_status'], 'partial')

    def test_created_invoice_reads_back_unchanged(self):
        created = self.create_manual().json()['data']

        response = self.client.get(f"/api/billing/invoices/{created['id']}/")

        self.assertEqual(response.status_code, 200)
        fetched = response.json()['data']
        self.assertEqual(fetched['invoice_number'], created['invoice_number'])
        self.assertEqual(fetched['items'], created['items'])
        self.assertEqual(fetched['total_amount'], created['total_amount'])

    def test_validation_error_envelope(self):
        response = self.create_manual(items=[])

        self.assertEqual(response.status_code, 400)
        body = response.json()
        self.assertFalse(body['success'])
        self.assertEqual(body['error']['kind'], 'validation')
        self.assertIn('items', body['error']['details'])

    def test_unknown_patient_is_not_found(self):
        response = self.create_manual(patient=999999)

        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.json()['error']['kind'], 'not_found')

    def test_consultation_payment_and_statistics(self):
        """Bill a follow-up, retry it, pay it in full, then report on it"""
        self.create_manual(paid_amount='1000.00')
        appointment = create_appointment(self.patient, self.doctor, type_name='follow-up')

        response = self.client.post(
            '/api/billing/invoices/consultation/', {'appointment_id': appointment.pk}, format='json'
        )
        self.assertEqual(response.status_code, 201)
        invoice = response.json()['data']
        self.assertEqual(len(invoice['items']), 1)
        self.assertEqual(money(invoice['items'][0]['unit_price']), Decimal('300'))
        self.assertEqual(money(invoice['total_amount']), Decimal('354'))
        self.assertEqual(invoice['source'], {'type': 'appointment', 'id': appointment.pk})

        response = self.client.post(
            '/api/billing/invoices/consultation/', {'appointment_id': appointment.pk}, format='json'
        )
        self.assertEqual(response.status_code, 409)
        body = response.json()
        self.assertEqual(body['error']['kind'], 'conflict')
        self.assertEqual(body['error']['details']['invoice_id'], invoice['id'])
        self.assertEqual(body['data']['invoice_number'], invoice['invoice_number'])
        self.assertEqual(Invoice.objects.filter(appointment=appointment).count(), 1)

        response = self.client.put(
            f"/api/billing/invoices/{invoice['id']}/payment/",
            {'paid_amount': '354.00', 'version': invoice['version']},
            format='json'
        )
        self.assertEqual(response.status_code, 200)
        paid = response.json()['data']
        self.assertEqual(paid['payment_status'], 'paid')
        self.assertIsNotNone(paid['payment_date'])
        self.assertEqual(money(paid['balance_due']), Decimal('0'))

        response = self.client.get('/api/billing/statistics/', {'period': 'this-month'})
        self.assertEqual(response.status_code, 200)
        stats = response.json()['data']
        self.assertGreaterEqual(stats['summary']['total_invoices'], 2)
        self.assertGreaterEqual(stats['by_type']['consultation']['count'], 1)

    def test_stale_payment_is_a_conflict(self):
        invoice = self.create_manual().json()['data']
        url = f"/api/billing/invoices/{invoice['id']}/payment/"

        self.client.put(url, {'paid_amount': '100.00', 'version': 1}, format='json')
        response = self.client.put(url, {'paid_amount': '200.00', 'version': 1}, format='json')

        self.assertEqual(response.status_code, 409)
        self.assertEqual(response.json()['error']['kind'], 'conflict')

    def test_payment_must_be_positive(self):
        invoice = self.create_manual().json()['data']

        response = self.client.put(
            f"/api/billing/invoices/{invoice['id']}/payment/", {'paid_amount': '0'}, format='json'
        )

        self.assertEqual(response.status_code, 400)

    def test_payment_on_missing_invoice(self):
        response = self.client.put('/api/billing/invoices/999999/payment/', {'paid_amount': '10.00'}, format='json')

        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.json()['error']['kind'], 'not_found')

    def test_laboratory_and_pharmacy_duplicates(self):
        lab_order = create_lab_order(self.patient, [create_investigation()])

        first = self.client.post('/api/billing/invoices/laboratory/', {'lab_order_id': lab_order.pk}, format='json')
        second = self.client.post('/api/billing/invoices/laboratory/', {'lab_order_id': lab_order.pk}, format='json')

        self.assertEqual(first.status_code, 201)
        self.assertEqual(second.status_code, 409)
        self.assertEqual(second.json()['data']['id'], first.json()['data']['id'])

    def test_list_filters(self):
        self.create_manual()
        self.create_manual(invoice_type='pharmacy', paid_amount='5000.00')

        response = self.client.get('/api/billing/invoices/', {'payment_status': 'paid'})

        self.assertEqual(response.status_code, 200)
        results = response.json()['results']
        self.assertEqual(len(results), 1)
        self.assertEqual(results[0]['invoice_type'], 'pharmacy')

    def test_invoices_are_tenant_scoped(self):
        invoice = self.create_manual().json()['data']

        other = APIClient()
        other.credentials(HTTP_AUTHORIZATION=f'Bearer {make_token(tenant_id=OTHER_TENANT_ID)}')

        self.assertEqual(other.get(f"/api/billing/invoices/{invoice['id']}/").status_code, 404)
        self.assertEqual(other.get('/api/billing/invoices/').json()['count'], 0)

    def test_tenant_headers_cannot_switch_tenant(self):
        create_hospital(tenant_id=OTHER_TENANT_ID)
        other_patient = create_patient(tenant_id=OTHER_TENANT_ID)
        other_invoice = InvoiceService.create_manual(
            tenant_id=OTHER_TENANT_ID,
            patient_id=other_patient.pk,
            invoice_type='pharmacy',
            items=[{'description': 'Syrup', 'quantity': 1, 'unit_price': Decimal('90')}],
        )

        for header in ('HTTP_X_TENANT_ID', 'HTTP_TENANTTOKEN'):
            with self.subTest(header=header):
                response = self.client.get('/api/billing/invoices/', **{header: str(OTHER_TENANT_ID)})
                self.assertEqual(response.status_code, 403)
                self.assertEqual(response.json()['error']['kind'], 'permission_denied')

        response = self.client.put(
            f'/api/billing/invoices/{other_invoice.pk}/payment/',
            {'paid_amount': '90', 'payment_method': 'Cash'},
            format='json',
            HTTP_X_TENANT_ID=str(OTHER_TENANT_ID),
        )
        self.assertEqual(response.status_code, 403)
        other_invoice.refresh_from_db()
        self.assertEqual(other_invoice.payment_status, 'unpaid')

        # Repeating the token's own tenant is allowed
        response = self.client.get('/api/billing/invoices/', HTTP_X_TENANT_ID=str(TENANT_ID))
        self.assertEqual(response.status_code, 200)

    def test_super_admin_can_switch_tenant(self):
        create_hospital(tenant_id=OTHER_TENANT_ID)
        other_patient = create_patient(tenant_id=OTHER_TENANT_ID)
        InvoiceService.create_manual(
            tenant_id=OTHER_TENANT_ID,
            patient_id=other_patient.pk,
            invoice_type='pharmacy',
            items=[{'description': 'Syrup', 'quantity': 1, 'unit_price': Decimal('90')}],
        )
        admin = APIClient()
        admin.credentials(HTTP_AUTHORIZATION=f'Bearer {make_token(is_super_admin=True)}')

        response = admin.get('/api/billing/invoices/', HTTP_X_TENANT_ID=str(OTHER_TENANT_ID))

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()['count'], 1)


class PermissionTestCase(BillingAPITestCase):
    """Authentication and HMS permissions"""

    def test_missing_token(self):
        response = APIClient().get('/api/billing/invoices/')

        self.assertEqual(response.status_code, 401)
        self.assertEqual(response.json()['error']['kind'], 'not_authenticated')

    def test_create_without_permission(self):
        read_only = {key: value for key, value in BILLING_PERMISSIONS.items() if key != 'create_invoice'}
        client = APIClient()
        client.credentials(HTTP_AUTHORIZATION=f'Bearer {make_token(billing_permissions=read_only)}')
        appointment = create_appointment(self.patient, self.doctor)

        response = client.post('/api/billing/invoices/consultation/', {'appointment_id': appointment.pk}, format='json')

        self.assertEqual(response.status_code, 403)
        self.assertEqual(response.json()['error']['kind'], 'permission_denied')
        self.assertFalse(Invoice.objects.exists())

    def test_settings_update_needs_manage_permission(self):
        client = APIClient()
        client.credentials(HTTP_AUTHORIZATION=f"Bearer {make_token(billing_permissions={'view_settings': 'all'})}")

        self.assertEqual(client.get('/api/billing/settings/').status_code, 200)
        self.assertEqual(client.put('/api/billing/settings/', {'tax_percentage': '5'}, format='json').status_code, 403)

    def test_super_admin_bypasses_permissions(self):
        client = APIClient()
        client.credentials(HTTP_AUTHORIZATION=f'Bearer {make_token(billing_permissions={}, is_super_admin=True)}')

        self.assertEqual(client.get('/api/billing/statistics/').status_code, 200)


class BillingSettingsAPITestCase(BillingAPITestCase):

    def test_get_creates_defaults(self):
        response = self.client.get('/api/billing/settings/')

        self.assertEqual(response.status_code, 200)
        data = response.json()['data']
        self.assertEqual(money(data['consultation_fees']['follow_up']), Decimal('300'))
        self.assertEqual(data['invoice_prefix'], 'INV')
        self.assertEqual(data['accepted_payment_methods'], ['Cash'])

    def test_update(self):
        response = self.client.put('/api/billing/settings/', {
            'consultation_fees': {'follow_up': '350.00'},
            'accepted_payment_methods': ['Cash', 'UPI'],
            'invoice_prefix': 'CCH',
        }, format='json')

        self.assertEqual(response.status_code, 200)
        data = response.json()['data']
        self.assertEqual(money(data['consultation_fees']['follow_up']), Decimal('350'))
        self.assertEqual(money(data['consultation_fees']['standard']), Decimal('500'))
        self.assertEqual(data['accepted_payment_methods'], ['Cash', 'UPI'])
        self.assertEqual(data['invoice_prefix'], 'CCH')

    def test_invalid_update(self):
        for payload in ({'invoice_prefix': 'IN-V'}, {'tax_percentage': '120'},
                        {'accepted_payment_methods': ['Cheque']}, {'accepted_payment_methods': []}):
            with self.subTest(payload=payload):
                response = self.client.put('/api/billing/settings/', payload, format='json')
                self.assertEqual(response.status_code, 400)
                self.assertEqual(response.json()['error']['kind'], 'validation')

    def test_statistics_rejects_bad_range(self):
        response = self.client.get('/api/billing/statistics/', {
            'period': 'custom', 'start_date': '2025-10-31', 'end_date': '2025-10-01'
        })
        self.assertEqual(response.status_code, 400)


class WalkInAPITestCase(BillingAPITestCase):
    """Walk-in pharmacy and laboratory sales"""

    def test_pharmacy_sale(self):
        product = create_product(quantity=10)

        response = self.client.post('/api/walkin/pharmacy/invoice/', {
            'customer_name': 'Meena S',
            'contact_number': '9000000001',
            'items': [{'product_id': product.pk, 'quantity': 3}],
        }, format='json')

        self.assertEqual(response.status_code, 201)
        data = response.json()['data']
        self.assertEqual(data['customer'], {
            'type': 'walk_in',
            'name': 'Meena S',
            'contact_number': '9000000001',
            'email': '',
            'address': '',
        })
        self.assertEqual(money(data['subtotal']), Decimal('60'))
        product.refresh_from_db()
        self.assertEqual(product.quantity, 7)

    def test_pharmacy_sale_without_stock(self):
        product = create_product(quantity=1)

        response = self.client.post('/api/walkin/pharmacy/invoice/', {
            'customer_name': 'Meena S',
            'items': [{'product_id': product.pk, 'quantity': 3}],
        }, format='json')

        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()['error']['details']['available'], 1)
        self.assertFalse(Invoice.objects.exists())

    def test_customer_name_required(self):
        response = self.client.post('/api/walkin/laboratory/invoice/', {
            'tests': [{'name': 'Blood Sugar', 'price': '150.00'}],
        }, format='json')

        self.assertEqual(response.status_code, 400)
        self.assertIn('customer_name', response.json()['error']['details'])

    def test_laboratory_sale_list_and_detail(self):
        investigation = create_investigation()
        created = self.client.post('/api/walkin/laboratory/invoice/', {
            'customer_name': 'Joseph D',
            'tests': [{'investigation_id': investigation.pk}, {'name': 'Blood Sugar', 'price': '150.00'}],
        }, format='json')
        self.assertEqual(created.status_code, 201)
        invoice_id = created.json()['data']['id']

        # Registered-patient invoices are not listed
        InvoiceService.create_manual(
            tenant_id=TENANT_ID,
            patient_id=self.patient.pk,
            invoice_type='laboratory',
            items=[{'description': 'Lipid Profile', 'quantity': 1, 'unit_price': Decimal('800')}],
        )

        listing = self.client.get('/api/walkin/invoices/', {'type': 'laboratory', 'search': 'joseph'})
        self.assertEqual(listing.status_code, 200)
        self.assertEqual([row['id'] for row in listing.json()['results']], [invoice_id])

        detail = self.client.get(f'/api/walkin/invoices/{invoice_id}/')
        self.assertEqual(detail.status_code, 200)
        self.assertEqual(money(detail.json()['data']['subtotal']), Decimal('500'))


class InvoiceExportTestCase(TestCase):
    """Spreadsheet export and the admin list"""

    def setUp(self):
        create_hospital()
        self.patient = create_patient()
        InvoiceService.create_manual(
            tenant_id=TENANT_ID,
            patient_id=self.patient.pk,
            invoice_type='consultation',
            items=[
                {'description': 'Dressing', 'quantity': 1, 'unit_price': Decimal('200')},
                {'description': 'Injection', 'quantity': 1, 'unit_price': Decimal('150')},
            ],
        )

    def test_export_columns(self):
        dataset = InvoiceResource().export()

        self.assertIn('invoice_number', dataset.headers)
        self.assertIn('customer_name', dataset.headers)
        row = dataset.dict[0]
        self.assertEqual(row['customer_name'], 'Ravi Kumar')
        self.assertEqual(row['patient_number'], 'PAT2025000001')
        self.assertEqual(str(row['item_count']), '2')

    def test_admin_changelist(self):
        admin_user = get_user_model().objects.create_superuser('admin', 'admin@example.com', 'secret-pass-123')
        self.client.force_login(admin_user)

        response = self.client.get('/admin/billing/invoice/')

        self.assertEqual(response.status_code, 200)
        self.assertContains(response, self.patient.full_name)
