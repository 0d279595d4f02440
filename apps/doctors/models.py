from django.db import models
from django.core.exceptions import ValidationError


class Specialty(models.Model):
    """Medical specialties"""
    # Tenant isolation
    tenant_id = models.UUIDField(
        db_index=True,
        help_text="Tenant this specialty belongs to"
    )

    name = models.CharField(max_length=100)
    code = models.CharField(max_length=20)
    department = models.CharField(max_length=100, blank=True, null=True)
    is_active = models.BooleanField(default=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'specialties'
        verbose_name = 'Specialty'
        verbose_name_plural = 'Specialties'
        ordering = ['name']
        unique_together = [['tenant_id', 'code']]
        indexes = [
            models.Index(fields=['tenant_id', 'is_active']),
        ]

    def __str__(self):
        return self.name


class DoctorProfile(models.Model):
    """
    Doctor looked up when a consultation is billed.

    Linked to the SuperAdmin user through ``user_id``; the name is cached
    locally for invoice descriptions.
    """
    STATUS_CHOICES = [
        ('active', 'Active'),
        ('on_leave', 'On Leave'),
        ('inactive', 'Inactive'),
    ]

    # Tenant isolation
    tenant_id = models.UUIDField(
        db_index=True,
        help_text="Tenant this doctor belongs to"
    )

    user_id = models.UUIDField(
        db_index=True,
        help_text="SuperAdmin User ID"
    )

    first_name = models.CharField(max_length=100, blank=True, null=True)
    last_name = models.CharField(max_length=100, blank=True, null=True)

    medical_license_number = models.CharField(max_length=64, blank=True, null=True)
    specialties = models.ManyToManyField(
        Specialty,
        related_name='doctors',
        blank=True,
    )

    status = models.CharField(
        max_length=16,
        choices=STATUS_CHOICES,
        default='active'
    )

    # Timestamps
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'doctor_profiles'
        verbose_name = 'Doctor Profile'
        verbose_name_plural = 'Doctor Profiles'
        ordering = ['-created_at']
        unique_together = [['tenant_id', 'user_id']]
        indexes = [
            models.Index(fields=['tenant_id', 'status']),
        ]

    def __str__(self):
        if self.first_name or self.last_name:
            return f"Dr. {self.full_name}"
        return f"DoctorProfile ({self.user_id})"

    @property
    def full_name(self):
        """Return doctor's full name"""
        if self.first_name and self.last_name:
            return f"{self.first_name} {self.last_name}"
        elif self.first_name:
            return self.first_name
        elif self.last_name:
            return self.last_name
        return f"Doctor {self.user_id}"

    def clean(self):
        if not (self.first_name or self.last_name):
            raise ValidationError({'first_name': 'A doctor needs at least a first or last name.'})
