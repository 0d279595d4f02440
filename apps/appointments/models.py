from django.db import models


class AppointmentType(models.Model):
    """
    Tenant-defined appointment category (e.g., "Follow-up", "Specialist Review").

    The name decides which consultation fee tier an appointment is billed at.
    """
    tenant_id = models.UUIDField(db_index=True, help_text="Tenant this record belongs to")
    name = models.CharField(max_length=100)
    description = models.TextField(blank=True)
    duration_default = models.PositiveIntegerField(default=15, help_text="Minutes")
    color = models.CharField(max_length=7, blank=True, help_text="Hex colour for calendars")

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'appointment_types'
        ordering = ['name']
        unique_together = [['tenant_id', 'name']]

    def __str__(self):
        return self.name


class Appointment(models.Model):
    STATUS_CHOICES = [
        ('scheduled', 'Scheduled'),
        ('confirmed', 'Confirmed'),
        ('checked_in', 'Checked In'),
        ('in_progress', 'In Progress'),
        ('completed', 'Completed'),
        ('cancelled', 'Cancelled'),
        ('no_show', 'No Show'),
    ]

    tenant_id = models.UUIDField(db_index=True, help_text="Tenant this record belongs to")
    appointment_id = models.CharField(max_length=30, blank=True)

    patient = models.ForeignKey(
        'patients.PatientProfile',
        on_delete=models.PROTECT,
        related_name='appointments'
    )
    doctor = models.ForeignKey(
        'doctors.DoctorProfile',
        on_delete=models.PROTECT,
        related_name='appointments'
    )
    appointment_type = models.ForeignKey(
        AppointmentType,
        on_delete=models.PROTECT,
        related_name='appointments',
        null=True,
        blank=True,
        help_text='Type of appointment (optional)'
    )

    appointment_date = models.DateField()
    appointment_time = models.TimeField()
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default='scheduled')
    is_follow_up = models.BooleanField(default=False)
    chief_complaint = models.TextField(blank=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'appointments'
        ordering = ['-appointment_date', '-appointment_time']
        indexes = [
            models.Index(fields=['tenant_id', 'appointment_date']),
            models.Index(fields=['tenant_id', 'status']),
        ]

    def __str__(self):
        return f"{self.appointment_id or self.pk} - {self.appointment_date} {self.appointment_time}"

    @property
    def type_label(self):
        """Label used for fee tier selection and invoice descriptions."""
        if self.appointment_type_id:
            return self.appointment_type.name
        return 'Follow-up' if self.is_follow_up else 'Standard'
