# diagnostics/models.py
import uuid
from decimal import Decimal

from django.db import models
from django.core.validators import MinValueValidator
from django.utils import timezone

from common.mixins import TenantModelMixin


class Investigation(TenantModelMixin):
    """
    Investigation Model - Master test list (Name, Code, Category, Base Charge).
    """
    CATEGORY_CHOICES = [
        ('laboratory', 'Laboratory'),
        ('radiology', 'Radiology'),
        ('pathology', 'Pathology'),
        ('cardiology', 'Cardiology'),
        ('other', 'Other'),
    ]

    name = models.CharField(
        max_length=200,
        help_text="Test name (e.g., 'Complete Blood Count', 'Chest X-Ray')"
    )
    code = models.CharField(
        max_length=50,
        help_text="Unique test code (e.g., 'CBC', 'CXR')"
    )
    category = models.CharField(
        max_length=50,
        choices=CATEGORY_CHOICES,
        default='laboratory'
    )
    base_charge = models.DecimalField(
        max_digits=10,
        decimal_places=2,
        default=Decimal('0.00'),
        validators=[MinValueValidator(Decimal('0.00'))],
        help_text="Base charge for this test"
    )
    description = models.TextField(blank=True)
    is_active = models.BooleanField(default=True)

    class Meta:
        db_table = 'diag_investigations'
        verbose_name = 'Investigation'
        verbose_name_plural = 'Investigations'
        unique_together = [['tenant_id', 'code']]
        ordering = ['category', 'name']

    def __str__(self):
        return f"{self.code} - {self.name}"


class Requisition(TenantModelMixin):
    """
    Lab order for a patient: one or more investigations ordered together.
    """
    STATUS_CHOICES = [
        ('ordered', 'Ordered'),
        ('sample_collected', 'Sample Collected'),
        ('completed', 'Completed'),
        ('cancelled', 'Cancelled'),
    ]

    PRIORITY_CHOICES = [
        ('routine', 'Routine'),
        ('urgent', 'Urgent'),
        ('stat', 'STAT (Immediate)'),
    ]

    requisition_number = models.CharField(
        max_length=50,
        unique=True,
        blank=True,
        help_text="Unique requisition identifier"
    )
    patient = models.ForeignKey(
        'patients.PatientProfile',
        on_delete=models.PROTECT,
        related_name='requisitions'
    )
    doctor = models.ForeignKey(
        'doctors.DoctorProfile',
        on_delete=models.PROTECT,
        related_name='requisitions',
        null=True,
        blank=True,
        help_text="Ordering doctor"
    )
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default='ordered')
    priority = models.CharField(max_length=20, choices=PRIORITY_CHOICES, default='routine')

    order_date = models.DateTimeField(auto_now_add=True)
    clinical_notes = models.TextField(blank=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'diag_requisitions'
        verbose_name = 'Requisition'
        verbose_name_plural = 'Requisitions'
        ordering = ['-order_date']

    def __str__(self):
        return f"REQ {self.requisition_number or self.id} - {self.patient}"

    def save(self, *args, **kwargs):
        if not self.requisition_number:
            self.requisition_number = self.generate_requisition_number()
        super().save(*args, **kwargs)

    @staticmethod
    def generate_requisition_number():
        date_str = timezone.localdate().strftime('%Y%m%d')
        return f"REQ-{date_str}-{uuid.uuid4().hex[:6].upper()}"


class DiagnosticOrder(TenantModelMixin):
    """
    DiagnosticOrder: Links Requisition to Investigation.
    The price is fixed when the test is ordered.
    """
    STATUS_CHOICES = [
        ('pending', 'Pending'),
        ('sample_collected', 'Sample Collected'),
        ('processing', 'Processing'),
        ('completed', 'Completed'),
        ('cancelled', 'Cancelled'),
    ]

    requisition = models.ForeignKey(
        Requisition,
        on_delete=models.CASCADE,
        related_name='orders'
    )
    investigation = models.ForeignKey(
        Investigation,
        on_delete=models.PROTECT,
        related_name='orders'
    )
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default='pending')
    sample_id = models.CharField(max_length=100, blank=True, help_text="Barcode or ID of the sample")

    price = models.DecimalField(
        max_digits=10,
        decimal_places=2,
        null=True,
        blank=True,
        validators=[MinValueValidator(Decimal('0.00'))],
        help_text="Catalog base charge when left empty"
    )

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'diag_orders'
        verbose_name = 'Diagnostic Order'
        verbose_name_plural = 'Diagnostic Orders'
        ordering = ['id']

    def __str__(self):
        return f"{self.investigation.name} ({self.status})"

    def save(self, *args, **kwargs):
        if self.price is None and self.investigation_id:
            self.price = self.investigation.base_charge
        super().save(*args, **kwargs)
