from __future__ import annotations

from datetime import date, timedelta
from unittest.mock import patch

from django.test import SimpleTestCase, TestCase
from django.utils import timezone

from clinicdesk.core.models import Role, User
from clinicdesk.patients.models import Patient
from clinicdesk.prescriptions.exceptions import (
    InvalidStatusTransition,
    PrescriptionValidationError,
    RefillNotAllowed,
)
from clinicdesk.prescriptions.models import Prescription, RefillRecord
from clinicdesk.prescriptions.services import (
    adherence_rate,
    change_status,
    check_allergies,
    check_dosage_guidelines,
    check_drug_interactions,
    next_refill_date,
    patient_prescription_summary,
    record_refill,
    refill_schedule,
    refill_urgency,
)


class SafetyCheckTest(SimpleTestCase):
    def test_interaction_table_matches_substrings(self):
        alerts = check_drug_interactions("Warfarin 5mg", ["Aspirin 81mg", "Lisinopril"])
        self.assertEqual(len(alerts), 1)
        self.assertEqual(alerts[0]["severity"], "moderate")
        self.assertIn("aspirin", alerts[0]["message"])

    def test_no_interaction_for_unlisted_drug(self):
        self.assertEqual(check_drug_interactions("Amoxicillin", ["Aspirin"]), [])
        self.assertEqual(check_drug_interactions("", ["Aspirin"]), [])

    def test_multiple_interactions(self):
        alerts = check_drug_interactions("methotrexate", ["NSAIDs", "aspirin"])
        self.assertEqual(len(alerts), 2)

    def test_allergy_alert_is_critical(self):
        alerts = check_allergies("Penicillin VK", ["penicillin", "Latex"])
        self.assertEqual(len(alerts), 1)
        self.assertEqual(alerts[0]["severity"], "critical")
        self.assertEqual(check_allergies("Ibuprofen", ["penicillin"]), [])

    def test_geriatric_dosage_warning(self):
        self.assertEqual(len(check_dosage_guidelines("Digoxin", 72)), 1)
        self.assertEqual(check_dosage_guidelines("Digoxin", 65), [])
        self.assertEqual(check_dosage_guidelines("Ibuprofen", 80), [])


class RefillUrgencyTest(SimpleTestCase):
    def test_thresholds(self):
        self.assertEqual(refill_urgency(-2), "critical")
        self.assertEqual(refill_urgency(1), "critical")
        self.assertEqual(refill_urgency(2), "urgent")
        self.assertEqual(refill_urgency(3), "urgent")
        self.assertEqual(refill_urgency(7), "soon")
        self.assertEqual(refill_urgency(8), "upcoming")


class PrescriptionServiceTest(TestCase):
    databases = {"default"}

    def setUp(self):
        self.today = timezone.localdate()
        role_doctor, _ = Role.objects.using("default").get_or_create(name="doctor", defaults={"label": "Doctor"})
        self.doctor = User.objects.db_manager("default").create_user(
            username="rx_doctor",
            email="rx_doctor@example.com",
            password="DummyPass123!",
            role=role_doctor,
        )
        self.patient = Patient.objects.using("default").create(
            first_name="Sophia",
            last_name="Anderson",
            birth_date=date(1950, 4, 4),
            allergies=["Sulfa"],
        )

    def _rx(self, days_ago=0, **overrides):
        values = {
            "patient": self.patient,
            "doctor": self.doctor,
            "medication_name": "Lisinopril",
            "dosage": "10",
            "frequency": "once daily",
            "refills": 3,
            "duration_days": 30,
            "start_date": self.today - timedelta(days=days_ago),
        }
        values.update(overrides)
        return Prescription.objects.using("default").create(**values)

    def _refill(self, rx, refill_date, status=RefillRecord.STATUS_COMPLETED):
        return RefillRecord.objects.using("default").create(prescription=rx, refill_date=refill_date, status=status)

    # ========== REFILL DATES ==========

    def test_next_refill_from_start_date(self):
        rx = self._rx(days_ago=10)
        self.assertEqual(next_refill_date(rx), rx.start_date + timedelta(days=30))

    def test_next_refill_from_last_completed_refill(self):
        rx = self._rx(days_ago=40)
        self._refill(rx, rx.start_date + timedelta(days=28))
        self._refill(rx, rx.start_date + timedelta(days=35), status=RefillRecord.STATUS_CANCELLED)
        self.assertEqual(next_refill_date(rx), rx.start_date + timedelta(days=58))

    def test_refill_schedule_window_and_order(self):
        soon = self._rx(days_ago=27, medication_name="Metformin")       # due in 3 days
        later = self._rx(days_ago=20, medication_name="Atorvastatin")   # due in 10 days
        self._rx(days_ago=0, medication_name="Amlodipine")              # due in 30 days
        self._rx(days_ago=29, medication_name="Omeprazole", refills=0)  # no refills left
        self._rx(days_ago=29, medication_name="Sertraline", status=Prescription.STATUS_ON_HOLD)

        due = refill_schedule(today=self.today, window_days=14)
        self.assertEqual([d.prescription.id for d in due], [soon.id, later.id])
        self.assertEqual(due[0].days_until, 3)
        self.assertEqual(due[0].urgency, "urgent")
        self.assertEqual(due[1].urgency, "upcoming")
        self.assertEqual(due[0].to_dict()["patient_name"], "Sophia Anderson")

    # ========== RECORD REFILL ==========

    def test_record_refill_decrements(self):
        rx = self._rx(days_ago=30, refills=1)
        record = record_refill(rx, user=self.doctor, refill_date=self.today)

        self.assertEqual(record.status, RefillRecord.STATUS_COMPLETED)
        rx.refresh_from_db()
        self.assertEqual(rx.refills, 0)

        with self.assertRaises(RefillNotAllowed):
            record_refill(rx, refill_date=self.today)

    def test_record_refill_requires_active(self):
        rx = self._rx(days_ago=5, status=Prescription.STATUS_ON_HOLD)
        with self.assertRaises(RefillNotAllowed):
            record_refill(rx)

    def test_record_refill_rejects_future_date(self):
        rx = self._rx(days_ago=5)
        with self.assertRaises(PrescriptionValidationError):
            record_refill(rx, refill_date=self.today + timedelta(days=1))

    def test_date_defaults_follow_local_date(self):
        rx = self._rx(days_ago=29)
        local_today = self.today + timedelta(days=30)

        with patch("clinicdesk.prescriptions.services.timezone.localdate", return_value=local_today):
            record = record_refill(rx, refill_date=self.today + timedelta(days=10))
            defaulted = record_refill(rx)
            rate = adherence_rate(rx)

        self.assertEqual(record.refill_date, self.today + timedelta(days=10))
        self.assertEqual(defaulted.refill_date, local_today)
        # 30 days initial supply plus 21 covered days from the refill, over 60 days
        self.assertEqual(rate, 85.0)

    # ========== STATUS ==========

    def test_status_transitions(self):
        rx = self._rx()
        rx = change_status(rx, Prescription.STATUS_ON_HOLD, "Awaiting lab results")
        self.assertEqual(rx.status, Prescription.STATUS_ON_HOLD)

        rx = change_status(rx, Prescription.STATUS_ACTIVE)
        rx = change_status(rx, Prescription.STATUS_COMPLETED, today=self.today)
        self.assertEqual(rx.end_date, self.today)

        with self.assertRaises(InvalidStatusTransition) as ctx:
            change_status(rx, Prescription.STATUS_ACTIVE)
        self.assertEqual(ctx.exception.allowed, [])

    def test_discontinue_requires_reason(self):
        rx = self._rx()
        with self.assertRaises(PrescriptionValidationError):
            change_status(rx, Prescription.STATUS_DISCONTINUED, "  ")

        rx = change_status(rx, Prescription.STATUS_DISCONTINUED, "Adverse reaction")
        self.assertEqual(rx.status_reason, "Adverse reaction")

    # ========== ADHERENCE ==========

    def test_adherence_without_refills(self):
        rx = self._rx(days_ago=59)
        self.assertEqual(adherence_rate(rx, self.today), 50.0)

    def test_adherence_with_timely_refill(self):
        rx = self._rx(days_ago=59)
        self._refill(rx, rx.start_date + timedelta(days=30))
        self.assertEqual(adherence_rate(rx, self.today), 100.0)

    def test_adherence_early_refill_carries_forward(self):
        rx = self._rx(days_ago=89)
        self._refill(rx, rx.start_date + timedelta(days=20))
        # 60 days of supply over a 90 day period
        self.assertEqual(adherence_rate(rx, self.today), 66.7)

    def test_adherence_before_start(self):
        rx = self._rx(days_ago=-5)
        self.assertIsNone(adherence_rate(rx, self.today))

    # ========== SUMMARY ==========

    def test_patient_prescription_summary(self):
        self._rx(days_ago=27, medication_name="Metformin")
        self._rx(days_ago=0, medication_name="Amlodipine")
        self._rx(medication_name="Sertraline", status=Prescription.STATUS_ON_HOLD)

        summary = patient_prescription_summary(self.patient, today=self.today)
        self.assertEqual(summary["total_count"], 3)
        self.assertEqual(summary["active_count"], 2)
        self.assertEqual(summary["on_hold_count"], 1)
        self.assertEqual(summary["active_medications"], ["Amlodipine", "Metformin"])
        self.assertEqual(summary["refills_due"], 1)
        self.assertEqual(summary["next_refill"]["medication_name"], "Metformin")
