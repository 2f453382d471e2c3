import random
from datetime import timedelta

from django.contrib.auth import get_user_model
from django.db import transaction
from django.utils import timezone

from clinicdesk.patients.models import Patient

from .models import Prescription, RefillRecord

User = get_user_model()

RANDOM_SEED = 42

MEDICATIONS = [
    ("Metformin", "500", "mg", "twice daily", "Type 2 diabetes"),
    ("Lisinopril", "10", "mg", "once daily", "Hypertension"),
    ("Atorvastatin", "20", "mg", "once daily", "Hyperlipidemia"),
    ("Amoxicillin", "500", "mg", "three times daily", "Sinusitis"),
    ("Ibuprofen", "400", "mg", "as needed", "Back pain"),
    ("Warfarin", "5", "mg", "once daily", "Atrial fibrillation"),
    ("Insulin glargine", "20", "units", "at bedtime", "Type 1 diabetes"),
    ("Sertraline", "50", "mg", "once daily", "Depression"),
]


def flush_prescriptions() -> None:
    Prescription.objects.all().delete()


def seed_prescriptions(flush: bool = False) -> dict:
    """Seeds prescriptions (some with refill history) for existing patients."""
    random.seed(RANDOM_SEED)
    today = timezone.localdate()

    doctors = list(User.objects.filter(role__name="doctor").order_by("id"))
    if not doctors:
        return {"prescriptions": 0, "prescription_refills": 0}

    prescriptions = 0
    refills = 0

    with transaction.atomic():
        if flush:
            flush_prescriptions()

        for patient in Patient.objects.filter(status=Patient.STATUS_ACTIVE).order_by("id"):
            for name, dosage, unit, frequency, indication in random.sample(MEDICATIONS, k=random.randint(0, 3)):
                start = today - timedelta(days=random.randint(0, 120))
                duration = random.choice([30, 30, 60, 90])
                status = random.choices(
                    [Prescription.STATUS_ACTIVE, Prescription.STATUS_ON_HOLD, Prescription.STATUS_COMPLETED],
                    weights=[7, 1, 2],
                )[0]
                rx = Prescription.objects.create(
                    patient=patient,
                    doctor=random.choice(doctors),
                    medication_name=name,
                    dosage=dosage,
                    dosage_unit=unit,
                    frequency=frequency,
                    indication=indication,
                    refills=random.randint(0, 5),
                    duration_days=duration,
                    start_date=start,
                    end_date=today if status == Prescription.STATUS_COMPLETED else None,
                    monitoring_required=name in ("Warfarin", "Lisinopril"),
                    status=status,
                )
                prescriptions += 1

                # refill history, sometimes a few days late
                fill = start + timedelta(days=duration + random.randint(-3, 6))
                while fill <= today and rx.refills > 0:
                    RefillRecord.objects.create(prescription=rx, refill_date=fill, notes="seed")
                    rx.refills -= 1
                    refills += 1
                    fill += timedelta(days=duration + random.randint(-3, 6))
                rx.save(update_fields=["refills"])

    return {"prescriptions": prescriptions, "prescription_refills": refills}
