"""Prescription workflow services.

Refill arithmetic, status lifecycle, medication safety checks and
adherence. Functions taking a ``today`` argument default to the current
date so callers (dashboard, tests) can pin it.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, timedelta
from typing import Any, Iterable

from django.conf import settings
from django.db import transaction
from django.utils import timezone

from clinicdesk.prescriptions.exceptions import (
    InvalidStatusTransition,
    PrescriptionValidationError,
    RefillNotAllowed,
)
from clinicdesk.prescriptions.models import Prescription, RefillRecord

logger = logging.getLogger(__name__)

DEFAULT_DURATION_DAYS = 30

ALLOWED_TRANSITIONS = {
    Prescription.STATUS_ACTIVE: [
        Prescription.STATUS_ON_HOLD,
        Prescription.STATUS_COMPLETED,
        Prescription.STATUS_DISCONTINUED,
    ],
    Prescription.STATUS_ON_HOLD: [
        Prescription.STATUS_ACTIVE,
        Prescription.STATUS_COMPLETED,
        Prescription.STATUS_DISCONTINUED,
    ],
    Prescription.STATUS_COMPLETED: [],
    Prescription.STATUS_DISCONTINUED: [],
}

# medication keyword -> keywords of interacting drugs in the patient's list
DRUG_INTERACTIONS = {
    'warfarin': ['aspirin', 'ibuprofen', 'acetaminophen'],
    'digoxin': ['furosemide', 'hydrochlorothiazide'],
    'metformin': ['alcohol', 'contrast dye'],
    'lithium': ['diuretics', 'nsaids'],
    'phenytoin': ['warfarin', 'oral contraceptives'],
    'carbamazepine': ['warfarin', 'oral contraceptives'],
    'cyclosporine': ['grapefruit', 'st johns wort'],
    'theophylline': ['cimetidine', 'ciprofloxacin'],
    'methotrexate': ['nsaids', 'aspirin'],
    'allopurinol': ['warfarin', 'azathioprine'],
}

GERIATRIC_CAUTION = ('digoxin', 'warfarin', 'metformin')
GERIATRIC_AGE = 65


# ============================================================================
# Refills
# ============================================================================
def last_refill_date(rx: Prescription) -> date | None:
    # .all() so a prefetch_related('refill_records') is honoured
    dates = [r.refill_date for r in rx.refill_records.all() if r.status == RefillRecord.STATUS_COMPLETED]
    return max(dates, default=None)


def next_refill_date(rx: Prescription) -> date:
    """Last completed refill (or the start date) plus the supply duration."""
    base = last_refill_date(rx) or rx.start_date
    return base + timedelta(days=rx.duration_days or DEFAULT_DURATION_DAYS)


def refill_urgency(days_until: int) -> str:
    if days_until <= 1:
        return 'critical'
    if days_until <= 3:
        return 'urgent'
    if days_until <= 7:
        return 'soon'
    return 'upcoming'


@dataclass
class RefillDue:
    prescription: Prescription
    refill_date: date
    days_until: int
    urgency: str

    def to_dict(self) -> dict[str, Any]:
        rx = self.prescription
        return {
            'prescription_id': rx.id,
            'medication_name': rx.medication_name,
            'dosage': f"{rx.dosage} {rx.dosage_unit}".strip(),
            'refills_remaining': rx.refills,
            'patient_id': rx.patient_id,
            'patient_name': rx.patient.full_name,
            'pharmacy_name': rx.pharmacy_name,
            'refill_date': self.refill_date.isoformat(),
            'days_until': self.days_until,
            'urgency': self.urgency,
        }


def refill_candidates():
    return (
        Prescription.objects.using('default')
        .filter(status=Prescription.STATUS_ACTIVE, refills__gt=0)
        .select_related('patient')
        .prefetch_related('refill_records')
    )


def refill_schedule(
    prescriptions: Iterable[Prescription] | None = None,
    today: date | None = None,
    window_days: int | None = None,
) -> list[RefillDue]:
    """Active prescriptions with refills left whose next refill falls within the window.

    Refills already past due are included (negative ``days_until``).
    """
    today = today or timezone.localdate()
    if window_days is None:
        window_days = getattr(settings, 'PRESCRIPTION_REFILL_WINDOW_DAYS', 14)
    if prescriptions is None:
        prescriptions = refill_candidates()

    due = []
    for rx in prescriptions:
        if rx.status != Prescription.STATUS_ACTIVE or rx.refills <= 0:
            continue
        refill_date = next_refill_date(rx)
        days_until = (refill_date - today).days
        if days_until <= window_days:
            due.append(RefillDue(rx, refill_date, days_until, refill_urgency(days_until)))

    due.sort(key=lambda entry: (entry.days_until, entry.prescription.id))
    return due


def record_refill(
    rx: Prescription,
    user=None,
    refill_date: date | None = None,
    notes: str = '',
    method: str = 'pharmacy',
) -> RefillRecord:
    """Record a completed refill and decrement the remaining refills."""
    refill_date = refill_date or timezone.localdate()

    with transaction.atomic(using='default'):
        locked = Prescription.objects.using('default').select_for_update().get(pk=rx.pk)
        if locked.status != Prescription.STATUS_ACTIVE:
            raise RefillNotAllowed(f'Only active prescriptions can be refilled (status: {locked.status}).')
        if locked.refills <= 0:
            raise RefillNotAllowed('No refills remaining. A new prescription is required.')
        if refill_date < locked.start_date:
            raise PrescriptionValidationError('Refill date cannot be before the start date.', field='refill_date')
        if refill_date > timezone.localdate():
            raise PrescriptionValidationError('Refill date cannot be in the future.', field='refill_date')

        record = RefillRecord.objects.using('default').create(
            prescription=locked,
            refill_date=refill_date,
            status=RefillRecord.STATUS_COMPLETED,
            method=method,
            notes=notes or '',
            created_by=user if getattr(user, 'is_authenticated', False) else None,
        )
        locked.refills -= 1
        locked.save(using='default', update_fields=['refills', 'updated_at'])

    rx.refills = locked.refills
    logger.info(
        'Refill recorded for prescription %s (%s): %s refill(s) left',
        locked.id, locked.medication_name, locked.refills,
    )
    return record


# ============================================================================
# Status lifecycle
# ============================================================================
def change_status(rx: Prescription, new_status: str, reason: str = '', today: date | None = None) -> Prescription:
    today = today or timezone.localdate()
    reason = (reason or '').strip()

    with transaction.atomic(using='default'):
        locked = Prescription.objects.using('default').select_for_update().get(pk=rx.pk)
        allowed = ALLOWED_TRANSITIONS.get(locked.status, [])
        if new_status not in allowed:
            raise InvalidStatusTransition(locked.status, new_status, allowed)
        if new_status == Prescription.STATUS_DISCONTINUED and not reason:
            raise PrescriptionValidationError('A reason is required to discontinue a prescription.', field='reason')

        old_status = locked.status
        locked.status = new_status
        locked.status_reason = reason
        if new_status in (Prescription.STATUS_COMPLETED, Prescription.STATUS_DISCONTINUED) and locked.end_date is None:
            locked.end_date = max(today, locked.start_date)
        locked.save(using='default')

    logger.info('Prescription %s status %s -> %s', locked.id, old_status, new_status)
    return locked


# ============================================================================
# Safety checks
# ============================================================================
def _alert(severity: str, kind: str, message: str, recommendation: str = '') -> dict[str, str]:
    alert = {'severity': severity, 'type': kind, 'message': message}
    if recommendation:
        alert['recommendation'] = recommendation
    return alert


def check_drug_interactions(medication: str, current_medications: Iterable[str]) -> list[dict[str, str]]:
    """Interaction alerts for ``medication`` against the patient's current list.

    Matching is by case-insensitive substring on both sides.
    """
    medication = (medication or '').lower()
    if not medication:
        return []
    current = [m.lower() for m in current_medications or [] if m]

    alerts = []
    for drug, interacting in DRUG_INTERACTIONS.items():
        if drug not in medication:
            continue
        for other in interacting:
            if any(other in med for med in current):
                alerts.append(_alert(
                    'moderate',
                    'interaction',
                    f'{drug} may interact with {other}. Monitor closely.',
                    'Consider alternative medication or close monitoring',
                ))
    return alerts


def check_allergies(medication: str, allergies: Iterable[str]) -> list[dict[str, str]]:
    medication = (medication or '').lower()
    if not medication:
        return []
    return [
        _alert('critical', 'allergy', f'Patient has documented allergy to {allergy}')
        for allergy in allergies or []
        if allergy and allergy.lower() in medication
    ]


def check_dosage_guidelines(medication: str, age: int | None) -> list[dict[str, str]]:
    medication = (medication or '').lower()
    if age is None or age <= GERIATRIC_AGE or not medication:
        return []
    return [
        _alert('warning', 'dosage', f'Consider reduced dosing for geriatric patient (age {age})')
        for drug in GERIATRIC_CAUTION
        if drug in medication
    ]


def safety_check(patient, medication_name: str, today: date | None = None) -> dict[str, Any]:
    interactions = check_drug_interactions(medication_name, patient.current_medications)
    allergies = check_allergies(medication_name, patient.allergies)
    dosage = check_dosage_guidelines(medication_name, patient.age(today))
    return {
        'medication_name': medication_name,
        'patient_id': patient.id,
        'interactions': interactions,
        'allergies': allergies,
        'dosage': dosage,
        'has_critical': any(a['severity'] == 'critical' for a in allergies),
        'alert_count': len(interactions) + len(allergies) + len(dosage),
    }


# ============================================================================
# Adherence
# ============================================================================
def adherence_rate(rx: Prescription, today: date | None = None) -> float | None:
    """Proportion of days covered (0-100) from the start date to today/end date.

    The initial fill on the start date and every completed refill supply
    ``duration_days``; supply from an early refill carries forward. Returns
    None before the prescription has started.
    """
    today = today or timezone.localdate()
    period_end = min(today, rx.end_date) if rx.end_date else today
    observed = (period_end - rx.start_date).days + 1
    if observed <= 0:
        return None

    supply = timedelta(days=rx.duration_days or DEFAULT_DURATION_DAYS)
    fills = sorted(
        [rx.start_date]
        + [r.refill_date for r in rx.refill_records.all() if r.status == RefillRecord.STATUS_COMPLETED]
    )
    limit = period_end + timedelta(days=1)

    covered = 0
    covered_until = rx.start_date
    for fill in fills:
        begin = max(fill, covered_until)
        end = begin + supply
        covered_until = end
        if begin >= limit:
            break
        covered += (min(end, limit) - begin).days

    return round(min(covered / observed, 1.0) * 100, 1)


def patient_prescription_summary(patient, today: date | None = None) -> dict[str, Any]:
    today = today or timezone.localdate()
    prescriptions = list(
        Prescription.objects.using('default')
        .filter(patient=patient)
        .select_related('patient')
        .prefetch_related('refill_records')
    )
    active = [rx for rx in prescriptions if rx.status == Prescription.STATUS_ACTIVE]
    due = refill_schedule(active, today=today)

    return {
        'total_count': len(prescriptions),
        'active_count': len(active),
        'on_hold_count': sum(1 for rx in prescriptions if rx.status == Prescription.STATUS_ON_HOLD),
        'active_medications': sorted({rx.medication_name for rx in active}),
        'refills_due': len(due),
        'next_refill': due[0].to_dict() if due else None,
    }
