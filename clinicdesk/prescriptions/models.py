from django.conf import settings
from django.db import models


class Prescription(models.Model):
    """Medication order written by a doctor for a patient.

    ``refills`` counts the refills still authorised; recording a refill
    decrements it. Status changes go through
    ``prescriptions.services.change_status``.
    """

    STATUS_ACTIVE = 'active'
    STATUS_ON_HOLD = 'on_hold'
    STATUS_COMPLETED = 'completed'
    STATUS_DISCONTINUED = 'discontinued'

    STATUS_CHOICES = (
        (STATUS_ACTIVE, 'Active'),
        (STATUS_ON_HOLD, 'On hold'),
        (STATUS_COMPLETED, 'Completed'),
        (STATUS_DISCONTINUED, 'Discontinued'),
    )

    ROUTE_CHOICES = (
        ('oral', 'Oral'),
        ('topical', 'Topical'),
        ('injection', 'Injection'),
        ('inhalation', 'Inhalation'),
        ('sublingual', 'Sublingual'),
        ('rectal', 'Rectal'),
    )

    DOSAGE_UNIT_CHOICES = (
        ('mg', 'mg'),
        ('g', 'g'),
        ('ml', 'ml'),
        ('mcg', 'mcg'),
        ('units', 'units'),
        ('tablets', 'tablets'),
        ('capsules', 'capsules'),
    )

    MAX_REFILLS = 11

    patient = models.ForeignKey(
        'patients.Patient',
        on_delete=models.PROTECT,
        related_name='prescriptions',
    )
    doctor = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name='prescriptions',
    )

    medication_name = models.CharField(max_length=200, db_index=True)
    dosage = models.CharField(max_length=50)
    dosage_unit = models.CharField(max_length=20, choices=DOSAGE_UNIT_CHOICES, default='mg')
    frequency = models.CharField(max_length=100)
    route = models.CharField(max_length=20, choices=ROUTE_CHOICES, default='oral')
    quantity = models.PositiveIntegerField(null=True, blank=True)
    refills = models.PositiveSmallIntegerField(default=0)
    duration_days = models.PositiveIntegerField(default=30)

    start_date = models.DateField(db_index=True)
    end_date = models.DateField(null=True, blank=True)

    indication = models.CharField(max_length=255, blank=True, default='')
    instructions = models.TextField(blank=True, default='')
    pharmacy_name = models.CharField(max_length=200, blank=True, default='')
    pharmacy_phone = models.CharField(max_length=50, blank=True, default='')
    monitoring_required = models.BooleanField(default=False)
    notes = models.TextField(blank=True, default='')

    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default=STATUS_ACTIVE, db_index=True)
    status_reason = models.TextField(blank=True, default='')

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'prescriptions_prescription'
        ordering = ['-start_date', '-id']
        verbose_name = 'Prescription'
        verbose_name_plural = 'Prescriptions'

    def __str__(self) -> str:
        return f"{self.medication_name} {self.dosage}{self.dosage_unit} ({self.patient_id})"


class RefillRecord(models.Model):
    STATUS_COMPLETED = 'completed'
    STATUS_CANCELLED = 'cancelled'

    STATUS_CHOICES = (
        (STATUS_COMPLETED, 'Completed'),
        (STATUS_CANCELLED, 'Cancelled'),
    )

    METHOD_CHOICES = (
        ('pharmacy', 'Pharmacy'),
        ('mail_order', 'Mail order'),
        ('in_clinic', 'In clinic'),
    )

    prescription = models.ForeignKey(Prescription, on_delete=models.CASCADE, related_name='refill_records')
    refill_date = models.DateField(db_index=True)
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default=STATUS_COMPLETED)
    method = models.CharField(max_length=20, choices=METHOD_CHOICES, default='pharmacy')
    notes = models.TextField(blank=True, default='')

    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='recorded_refills',
    )
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'prescriptions_refillrecord'
        ordering = ['-refill_date', '-id']
        verbose_name = 'Refill record'
        verbose_name_plural = 'Refill records'

    def __str__(self) -> str:
        return f"Refill {self.refill_date} ({self.prescription_id})"
