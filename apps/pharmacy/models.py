from django.db import models
from django.core.validators import MinValueValidator
from decimal import Decimal


class PharmacyProduct(models.Model):
    """Pharmacy product: catalog price and on-hand stock"""
    tenant_id = models.UUIDField(db_index=True, help_text="Tenant this record belongs to")
    product_name = models.CharField(max_length=255)
    company = models.CharField(max_length=255, blank=True, null=True)
    batch_no = models.CharField(max_length=100, blank=True, null=True)

    # Pricing
    mrp = models.DecimalField(
        max_digits=10,
        decimal_places=2,
        validators=[MinValueValidator(Decimal('0.00'))]
    )
    selling_price = models.DecimalField(
        max_digits=10,
        decimal_places=2,
        validators=[MinValueValidator(Decimal('0.00'))],
        blank=True,
        null=True
    )

    # Inventory
    quantity = models.PositiveIntegerField(default=0)
    minimum_stock_level = models.PositiveIntegerField(default=10)

    expiry_date = models.DateField(blank=True, null=True)
    is_active = models.BooleanField(default=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'pharmacy_products'
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['tenant_id']),
            models.Index(fields=['tenant_id', 'product_name']),
        ]

    def __str__(self):
        return self.product_name

    @property
    def is_in_stock(self):
        return self.quantity > 0

    @property
    def low_stock_warning(self):
        return self.quantity <= self.minimum_stock_level

    @property
    def unit_price(self):
        """Price charged per unit: selling price, or MRP when unset."""
        return self.selling_price or self.mrp

    def save(self, *args, **kwargs):
        """Auto-set selling price if not provided"""
        if not self.selling_price:
            self.selling_price = self.mrp
        super().save(*args, **kwargs)


class Prescription(models.Model):
    """Prescription written for a patient; billed once by the pharmacy."""
    STATUS_CHOICES = [
        ('active', 'Active'),
        ('dispensed', 'Dispensed'),
        ('cancelled', 'Cancelled'),
    ]

    tenant_id = models.UUIDField(db_index=True, help_text="Tenant this record belongs to")
    prescription_number = models.CharField(max_length=30, blank=True)
    patient = models.ForeignKey(
        'patients.PatientProfile',
        on_delete=models.PROTECT,
        related_name='prescriptions'
    )
    doctor = models.ForeignKey(
        'doctors.DoctorProfile',
        on_delete=models.PROTECT,
        related_name='prescriptions'
    )
    prescribed_on = models.DateField(auto_now_add=True)
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default='active')
    notes = models.TextField(blank=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'pharmacy_prescriptions'
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['tenant_id', 'patient']),
        ]

    def __str__(self):
        return self.prescription_number or f"Prescription {self.pk}"


class PrescriptionItem(models.Model):
    """One medication line of a prescription."""
    prescription = models.ForeignKey(
        Prescription,
        on_delete=models.CASCADE,
        related_name='items'
    )
    product = models.ForeignKey(
        PharmacyProduct,
        on_delete=models.PROTECT,
        related_name='prescription_items'
    )
    dosage = models.CharField(max_length=100, blank=True)
    frequency = models.CharField(max_length=100, blank=True)
    duration = models.CharField(max_length=100, blank=True)
    instructions = models.CharField(max_length=255, blank=True)
    quantity = models.PositiveIntegerField(default=1, validators=[MinValueValidator(1)])

    class Meta:
        db_table = 'pharmacy_prescription_items'
        ordering = ['id']

    def __str__(self):
        return f"{self.product} x {self.quantity}"
