import random
from datetime import timedelta

from django.db import transaction
from django.utils import timezone

from .models import Patient

RANDOM_SEED = 42

FIRST_NAMES = ["Emma", "Liam", "Olivia", "Noah", "Ava", "Elijah", "Mia", "Lucas", "Amelia", "Mason"]
LAST_NAMES = ["Johnson", "Williams", "Brown", "Jones", "Garcia", "Davis", "Martinez", "Lopez", "Wilson", "Clark"]
INSURERS = ["Blue Shield", "Aetna", "Cigna", "UnitedHealthcare", ""]
ALLERGIES = ["Penicillin", "Sulfa", "Latex", "Aspirin"]
MEDICATIONS = ["Aspirin", "Ibuprofen", "Lisinopril", "Furosemide", "Atorvastatin"]


def seed_patients(count: int = 20) -> dict:
    """Create patients only when the table is empty."""
    random.seed(RANDOM_SEED)

    if Patient.objects.exists():
        return {"patients": 0}

    today = timezone.localdate()
    created = []
    with transaction.atomic():
        for i in range(count):
            first_name = random.choice(FIRST_NAMES)
            last_name = random.choice(LAST_NAMES)
            created.append(Patient(
                first_name=first_name,
                last_name=last_name,
                birth_date=today - timedelta(days=random.randint(18 * 365, 90 * 365)),
                gender=random.choice(["female", "male", "other"]),
                phone=f"555-01{i:02d}",
                email=f"{first_name}.{last_name}{i}@example.com".lower(),
                insurance_provider=random.choice(INSURERS),
                insurance_number=f"INS{100000 + i}",
                allergies=random.sample(ALLERGIES, k=random.randint(0, 2)),
                current_medications=random.sample(MEDICATIONS, k=random.randint(0, 2)),
                status=Patient.STATUS_ACTIVE if i % 7 else Patient.STATUS_INACTIVE,
            ))
        Patient.objects.bulk_create(created)

    return {"patients": len(created)}
