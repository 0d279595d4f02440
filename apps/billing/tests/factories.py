# apps/billing/tests/factories.py
"""Records and JWTs shared by the billing tests."""
import uuid
from datetime import date, time
from decimal import Decimal

import jwt
from django.conf import settings

from apps.appointments.models import Appointment, AppointmentType
from apps.diagnostics.models import DiagnosticOrder, Investigation, Requisition
from apps.doctors.models import DoctorProfile
from apps.hospital.models import Hospital
from apps.patients.models import PatientProfile
from apps.pharmacy.models import PharmacyProduct, Prescription, PrescriptionItem

TENANT_ID = uuid.UUID('5f0c3f7e-8d5b-4c8e-9a51-2f7a1c0d9b11')
OTHER_TENANT_ID = uuid.UUID('a3e1d2c4-6b7f-4e21-8c9d-0f1e2d3c4b5a')
USER_ID = uuid.UUID('0b7e6c1d-2f3a-4b5c-9d8e-7f6a5b4c3d2e')

BILLING_PERMISSIONS = {
    'view_settings': 'all',
    'manage_settings': True,
    'view_invoices': 'all',
    'create_invoice': True,
    'record_payment': 'all',
    'view_reports': True,
}


def make_token(tenant_id=TENANT_ID, user_id=USER_ID, billing_permissions=None, is_super_admin=False):
    payload = {
        'user_id': str(user_id),
        'email': 'billing.desk@example.com',
        'tenant_id': str(tenant_id),
        'tenant_slug': 'city-care',
        'is_super_admin': is_super_admin,
        'permissions': {
            'hms': {
                'billing': BILLING_PERMISSIONS if billing_permissions is None else billing_permissions,
            }
        },
        'enabled_modules': ['hms'],
    }
    return jwt.encode(payload, settings.JWT_SECRET_KEY, algorithm=settings.JWT_ALGORITHM)


def create_hospital(tenant_id=TENANT_ID):
    return Hospital.objects.create(
        tenant_id=tenant_id,
        name='City Care Hospital',
        address='12 MG Road, Bengaluru',
        contact_number='080-4000-1234',
    )


def create_patient(tenant_id=TENANT_ID, **kwargs):
    defaults = {
        'patient_id': 'PAT2025000001',
        'first_name': 'Ravi',
        'last_name': 'Kumar',
        'mobile_primary': '9876543210',
        'city': 'Bengaluru',
    }
    defaults.update(kwargs)
    return PatientProfile.objects.create(tenant_id=tenant_id, **defaults)


def create_doctor(tenant_id=TENANT_ID, **kwargs):
    defaults = {
        'user_id': uuid.uuid4(),
        'first_name': 'Asha',
        'last_name': 'Rao',
    }
    defaults.update(kwargs)
    return DoctorProfile.objects.create(tenant_id=tenant_id, **defaults)


def create_appointment(patient, doctor, type_name=None, is_follow_up=False, tenant_id=TENANT_ID):
    appointment_type = None
    if type_name:
        appointment_type, _ = AppointmentType.objects.get_or_create(tenant_id=tenant_id, name=type_name)
    return Appointment.objects.create(
        tenant_id=tenant_id,
        appointment_id='APT-0001',
        patient=patient,
        doctor=doctor,
        appointment_type=appointment_type,
        appointment_date=date(2025, 10, 14),
        appointment_time=time(10, 30),
        is_follow_up=is_follow_up,
    )


def create_product(name='Paracetamol 500mg', mrp='25.00', selling_price='20.00', quantity=100, tenant_id=TENANT_ID):
    return PharmacyProduct.objects.create(
        tenant_id=tenant_id,
        product_name=name,
        mrp=Decimal(mrp),
        selling_price=Decimal(selling_price) if selling_price else None,
        quantity=quantity,
    )


def create_prescription(patient, doctor, items, tenant_id=TENANT_ID):
    """``items`` is a list of ``(product, quantity, extra_fields)`` tuples."""
    prescription = Prescription.objects.create(
        tenant_id=tenant_id,
        prescription_number='RX-0001',
        patient=patient,
        doctor=doctor,
    )
    for product, quantity, extra in items:
        PrescriptionItem.objects.create(prescription=prescription, product=product, quantity=quantity, **extra)
    return prescription


def create_investigation(name='Complete Blood Count', code='CBC', base_charge='350.00', tenant_id=TENANT_ID):
    return Investigation.objects.create(
        tenant_id=tenant_id,
        name=name,
        code=code,
        base_charge=Decimal(base_charge),
    )


def create_lab_order(patient, investigations, doctor=None, cancelled=(), tenant_id=TENANT_ID):
    requisition = Requisition.objects.create(tenant_id=tenant_id, patient=patient, doctor=doctor)
    for investigation in investigations:
        DiagnosticOrder.objects.create(
            tenant_id=tenant_id,
            requisition=requisition,
            investigation=investigation,
            status='cancelled' if investigation in cancelled else 'pending',
        )
    return requisition
