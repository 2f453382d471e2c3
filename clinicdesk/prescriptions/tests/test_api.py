from __future__ import annotations

from datetime import date, timedelta

from django.test import TestCase
from django.utils import timezone

from rest_framework.test import APIClient

from clinicdesk.core.models import AuditLog, Role, User
from clinicdesk.patients.models import Patient
from clinicdesk.prescriptions.models import Prescription, RefillRecord


class PrescriptionAPITest(TestCase):
    """Tests for /api/prescriptions/ endpoints.

    RBAC: admin, doctor = read/write (doctor: own prescriptions only);
    assistant, nurse = read + refills; billing = no access.
    """

    databases = {"default"}

    def setUp(self):
        self.today = timezone.localdate()
        roles = {}
        for name in ("admin", "doctor", "assistant", "nurse", "billing"):
            roles[name], _ = Role.objects.using("default").get_or_create(name=name, defaults={"label": name.title()})

        def make_user(username, role):
            return User.objects.db_manager("default").create_user(
                username=username,
                email=f"{username}@example.com",
                password="DummyPass123!",
                role=roles[role],
            )

        self.admin = make_user("rx_admin", "admin")
        self.doctor = make_user("rx_doctor1", "doctor")
        self.other_doctor = make_user("rx_doctor2", "doctor")
        self.nurse = make_user("rx_nurse", "nurse")
        self.billing = make_user("rx_billing", "billing")

        self.patient = Patient.objects.using("default").create(
            first_name="Henry",
            last_name="Clark",
            birth_date=date(1948, 12, 1),
            allergies=["Penicillin"],
            current_medications=["Aspirin 81mg"],
        )
        self.rx = Prescription.objects.using("default").create(
            patient=self.patient,
            doctor=self.doctor,
            medication_name="Atorvastatin",
            dosage="20",
            frequency="once daily",
            refills=2,
            duration_days=30,
            start_date=self.today - timedelta(days=26),
        )
        self.other_rx = Prescription.objects.using("default").create(
            patient=self.patient,
            doctor=self.other_doctor,
            medication_name="Levothyroxine",
            dosage="50",
            dosage_unit="mcg",
            frequency="once daily",
            refills=1,
            start_date=self.today - timedelta(days=5),
        )

    def _client_for(self, user: User) -> APIClient:
        client = APIClient()
        client.defaults["HTTP_HOST"] = "localhost"
        client.force_authenticate(user=user)
        return client

    # ========== LIST / RBAC ==========

    def test_doctor_sees_only_own_prescriptions(self):
        response = self._client_for(self.doctor).get("/api/prescriptions/")
        self.assertEqual(response.status_code, 200)
        self.assertEqual([row["id"] for row in response.data["results"]], [self.rx.id])

        response = self._client_for(self.doctor).get(f"/api/prescriptions/{self.other_rx.id}/")
        self.assertEqual(response.status_code, 404)

    def test_admin_and_nurse_see_all(self):
        for user in (self.admin, self.nurse):
            response = self._client_for(user).get("/api/prescriptions/")
            self.assertEqual(response.status_code, 200)
            self.assertEqual(len(response.data["results"]), 2)

    def test_billing_has_no_access(self):
        response = self._client_for(self.billing).get("/api/prescriptions/")
        self.assertEqual(response.status_code, 403)

    def test_list_filters(self):
        client = self._client_for(self.admin)
        response = client.get("/api/prescriptions/", {"doctor_id": self.other_doctor.id})
        self.assertEqual([row["id"] for row in response.data["results"]], [self.other_rx.id])

        response = client.get("/api/prescriptions/", {"q": "atorva"})
        self.assertEqual([row["id"] for row in response.data["results"]], [self.rx.id])

    # ========== CREATE ==========

    def test_doctor_creates_with_safety_alerts(self):
        data = {
            "patient": self.patient.id,
            "medication_name": "Warfarin",
            "dosage": "5",
            "frequency": "once daily",
            "refills": 2,
            "start_date": self.today.isoformat(),
        }
        before = AuditLog.objects.using("default").count()
        response = self._client_for(self.doctor).post("/api/prescriptions/", data, format="json")

        self.assertEqual(response.status_code, 201)
        self.assertEqual(response.data["doctor"], self.doctor.id)
        self.assertEqual(response.data["status"], "active")
        self.assertEqual(len(response.data["safety"]["interactions"]), 1)
        self.assertEqual(len(response.data["safety"]["dosage"]), 1)
        self.assertEqual(AuditLog.objects.using("default").count(), before + 1)

    def test_doctor_cannot_prescribe_for_another_doctor(self):
        data = {
            "patient": self.patient.id,
            "doctor": self.other_doctor.id,
            "medication_name": "Ibuprofen",
            "dosage": "400",
            "frequency": "as needed",
            "start_date": self.today.isoformat(),
        }
        response = self._client_for(self.doctor).post("/api/prescriptions/", data, format="json")
        self.assertEqual(response.status_code, 400)
        self.assertIn("doctor", response.data)

    def test_admin_must_name_a_doctor(self):
        data = {
            "patient": self.patient.id,
            "medication_name": "Ibuprofen",
            "dosage": "400",
            "frequency": "as needed",
            "start_date": self.today.isoformat(),
        }
        client = self._client_for(self.admin)
        response = client.post("/api/prescriptions/", data, format="json")
        self.assertEqual(response.status_code, 400)

        data["doctor"] = self.nurse.id
        response = client.post("/api/prescriptions/", data, format="json")
        self.assertEqual(response.status_code, 400)

        data["doctor"] = self.doctor.id
        response = client.post("/api/prescriptions/", data, format="json")
        self.assertEqual(response.status_code, 201)

    def test_create_validation(self):
        base = {
            "patient": self.patient.id,
            "medication_name": "Ibuprofen",
            "dosage": "400",
            "frequency": "as needed",
            "start_date": self.today.isoformat(),
        }
        client = self._client_for(self.doctor)

        response = client.post("/api/prescriptions/", {**base, "refills": 12}, format="json")
        self.assertEqual(response.status_code, 400)
        self.assertIn("refills", response.data)

        response = client.post("/api/prescriptions/", {**base, "duration_days": 0}, format="json")
        self.assertEqual(response.status_code, 400)
        self.assertIn("duration_days", response.data)

        response = client.post(
            "/api/prescriptions/",
            {**base, "end_date": (self.today - timedelta(days=1)).isoformat()},
            format="json",
        )
        self.assertEqual(response.status_code, 400)
        self.assertIn("end_date", response.data)

    def test_nurse_cannot_create(self):
        data = {"patient": self.patient.id, "medication_name": "X", "dosage": "1", "frequency": "daily"}
        response = self._client_for(self.nurse).post("/api/prescriptions/", data, format="json")
        self.assertEqual(response.status_code, 403)

    # ========== STATUS ==========

    def test_status_change_flow(self):
        client = self._client_for(self.doctor)
        url = f"/api/prescriptions/{self.rx.id}/status/"

        response = client.post(url, {"status": "discontinued"}, format="json")
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.data["field"], "reason")

        response = client.post(url, {"status": "discontinued", "reason": "Myalgia"}, format="json")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data["status"], "discontinued")

        response = client.post(url, {"status": "active"}, format="json")
        self.assertEqual(response.status_code, 409)

        response = client.patch(f"/api/prescriptions/{self.rx.id}/", {"dosage": "40"}, format="json")
        self.assertEqual(response.status_code, 409)

    # ========== REFILLS ==========

    def test_nurse_records_refill(self):
        client = self._client_for(self.nurse)
        response = client.post(f"/api/prescriptions/{self.rx.id}/refills/", {"notes": "Picked up"}, format="json")

        self.assertEqual(response.status_code, 201)
        self.assertEqual(response.data["status"], RefillRecord.STATUS_COMPLETED)
        self.rx.refresh_from_db()
        self.assertEqual(self.rx.refills, 1)

        response = client.get(f"/api/prescriptions/{self.rx.id}/refills/")
        self.assertEqual(len(response.data["results"]), 1)

    def test_refill_on_exhausted_prescription_conflicts(self):
        Prescription.objects.using("default").filter(pk=self.rx.pk).update(refills=0)
        response = self._client_for(self.admin).post(f"/api/prescriptions/{self.rx.id}/refills/", {}, format="json")
        self.assertEqual(response.status_code, 409)
        self.assertEqual(response.data["code"], "refill_not_allowed")

    def test_refills_due(self):
        client = self._client_for(self.nurse)
        response = client.get("/api/prescriptions/refills/due/")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data["window_days"], 14)
        self.assertEqual(response.data["count"], 1)
        self.assertEqual(response.data["refills"][0]["prescription_id"], self.rx.id)
        self.assertEqual(response.data["refills"][0]["days_until"], 4)
        self.assertEqual(response.data["refills"][0]["urgency"], "soon")

        response = client.get("/api/prescriptions/refills/due/", {"window": 30})
        self.assertEqual(response.data["count"], 2)

        response = client.get("/api/prescriptions/refills/due/", {"window": "abc"})
        self.assertEqual(response.status_code, 400)

    # ========== SAFETY CHECK ==========

    def test_safety_check(self):
        response = self._client_for(self.nurse).post(
            "/api/prescriptions/safety-check/",
            {"patient_id": self.patient.id, "medication_name": "Penicillin VK"},
            format="json",
        )
        self.assertEqual(response.status_code, 200)
        self.assertTrue(response.data["has_critical"])
        self.assertEqual(len(response.data["allergies"]), 1)

        response = self._client_for(self.nurse).post(
            "/api/prescriptions/safety-check/",
            {"patient_id": 999999, "medication_name": "Ibuprofen"},
            format="json",
        )
        self.assertEqual(response.status_code, 400)
