from django.db import models


class Hospital(models.Model):
    """
    Hospital profile, one per tenant. Printed on invoice headers.
    """
    tenant_id = models.UUIDField(
        unique=True,
        db_index=True,
        help_text="Tenant this hospital belongs to"
    )
    name = models.CharField(max_length=200)
    address = models.TextField(blank=True)
    contact_number = models.CharField(max_length=20, blank=True)
    email = models.EmailField(blank=True)
    website = models.URLField(blank=True)
    registration_number = models.CharField(max_length=100, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'hospitals'
        verbose_name = 'Hospital'
        verbose_name_plural = 'Hospitals'

    def __str__(self):
        return self.name
