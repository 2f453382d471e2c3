from datetime import date

from django.db import models
from django.utils import timezone


class Patient(models.Model):
    """Patient master record.

    Clinical lists (allergies, current medications) are stored as JSON lists
    of strings; prescription safety checks read them directly.
    """

    GENDER_MALE = 'male'
    GENDER_FEMALE = 'female'
    GENDER_OTHER = 'other'

    GENDER_CHOICES = (
        (GENDER_MALE, GENDER_MALE),
        (GENDER_FEMALE, GENDER_FEMALE),
        (GENDER_OTHER, GENDER_OTHER),
    )

    STATUS_ACTIVE = 'active'
    STATUS_INACTIVE = 'inactive'

    STATUS_CHOICES = (
        (STATUS_ACTIVE, STATUS_ACTIVE),
        (STATUS_INACTIVE, STATUS_INACTIVE),
    )

    first_name = models.CharField(max_length=100)
    last_name = models.CharField(max_length=100)
    birth_date = models.DateField()
    gender = models.CharField(max_length=20, choices=GENDER_CHOICES, blank=True, default='')

    phone = models.CharField(max_length=50, blank=True, default='')
    email = models.EmailField(max_length=255, blank=True, default='')
    address = models.TextField(blank=True, default='')

    insurance_provider = models.CharField(max_length=128, blank=True, default='')
    insurance_number = models.CharField(max_length=64, blank=True, default='', db_index=True)

    allergies = models.JSONField(default=list, blank=True)
    current_medications = models.JSONField(default=list, blank=True)
    medical_history = models.TextField(blank=True, default='')

    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default=STATUS_ACTIVE, db_index=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'patients_patient'
        ordering = ['last_name', 'first_name', 'id']
        verbose_name = 'Patient'
        verbose_name_plural = 'Patients'

    def __str__(self) -> str:
        return f"{self.last_name}, {self.first_name}"

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()

    def age(self, today: date | None = None) -> int:
        today = today or timezone.localdate()
        return today.year - self.birth_date.year - (
            (today.month, today.day) < (self.birth_date.month, self.birth_date.day)
        )
