from django.db import models


class PatientProfile(models.Model):
    """
    Registered patient. Billing reads the name and contact details from here
    and links invoices to the profile.
    """
    STATUS_CHOICES = [
        ('active', 'Active'),
        ('inactive', 'Inactive'),
        ('deceased', 'Deceased'),
    ]

    GENDER_CHOICES = [
        ('male', 'Male'),
        ('female', 'Female'),
        ('other', 'Other'),
    ]

    # Tenant isolation
    tenant_id = models.UUIDField(db_index=True, help_text="Tenant this patient belongs to")

    patient_id = models.CharField(
        max_length=30,
        blank=True,
        help_text="Hospital patient number (e.g., PAT2025000123)"
    )

    first_name = models.CharField(max_length=100)
    middle_name = models.CharField(max_length=100, blank=True)
    last_name = models.CharField(max_length=100, blank=True)
    gender = models.CharField(max_length=10, choices=GENDER_CHOICES, blank=True)
    date_of_birth = models.DateField(null=True, blank=True)

    # Contact
    mobile_primary = models.CharField(max_length=20, blank=True)
    email = models.EmailField(blank=True)
    address_line1 = models.CharField(max_length=200, blank=True)
    city = models.CharField(max_length=100, blank=True)
    state = models.CharField(max_length=100, blank=True)
    pincode = models.CharField(max_length=10, blank=True)

    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default='active')
    registration_date = models.DateTimeField(auto_now_add=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'patient_profiles'
        ordering = ['-registration_date']
        verbose_name = 'Patient Profile'
        verbose_name_plural = 'Patient Profiles'
        indexes = [
            models.Index(fields=['tenant_id', 'patient_id']),
            models.Index(fields=['tenant_id', 'mobile_primary']),
        ]

    def __str__(self):
        return f"{self.patient_id or self.pk} - {self.full_name}"

    @property
    def full_name(self):
        parts = [self.first_name, self.middle_name, self.last_name]
        return ' '.join(part for part in parts if part)

    @property
    def full_address(self):
        parts = [self.address_line1, self.city, self.state, self.pincode]
        return ', '.join(part for part in parts if part)
