from __future__ import annotations

from datetime import date, timedelta

from django.test import TestCase
from django.utils import timezone

from rest_framework.test import APIClient

from clinicdesk.billing.models import Invoice, Payment
from clinicdesk.billing.services import apply_payment, save_invoice
from clinicdesk.core.models import AuditLog, Role, User
from clinicdesk.patients.models import Patient


class BillingAPITest(TestCase):
    """Tests for /api/invoices/ and /api/payments/.

    RBAC: admin, billing = read/write; assistant = read-only; doctor, nurse = no access.
    """

    databases = {"default"}

    def setUp(self):
        self.today = timezone.localdate()
        self.users = {}
        for name in ("admin", "billing", "assistant", "doctor", "nurse"):
            role, _ = Role.objects.using("default").get_or_create(name=name, defaults={"label": name.title()})
            self.users[name] = User.objects.db_manager("default").create_user(
                username=f"{name}_billing_test",
                email=f"{name}_billing@example.com",
                password="DummyPass123!",
                role=role,
            )

        self.patient = Patient.objects.using("default").create(
            first_name="James",
            last_name="Taylor",
            birth_date=date(1965, 9, 9),
        )
        self.invoice = save_invoice(
            {"patient": self.patient, "invoice_date": self.today - timedelta(days=3)},
            [{"item": "Annual physical", "quantity": 1, "unit_price": "200.00"}],
        )

    def _client_for(self, name: str) -> APIClient:
        client = APIClient()
        client.defaults["HTTP_HOST"] = "localhost"
        client.force_authenticate(user=self.users[name])
        return client

    # ========== INVOICES ==========

    def test_list_rbac(self):
        for name in ("admin", "billing", "assistant"):
            response = self._client_for(name).get("/api/invoices/")
            self.assertEqual(response.status_code, 200, name)
            self.assertEqual(len(response.data["results"]), 1, name)

        for name in ("doctor", "nurse"):
            response = self._client_for(name).get("/api/invoices/")
            self.assertEqual(response.status_code, 403, name)

    def test_list_filters(self):
        client = self._client_for("billing")

        response = client.get("/api/invoices/", {"status": "paid"})
        self.assertEqual(response.data["results"], [])

        response = client.get("/api/invoices/", {"q": "taylor"})
        self.assertEqual(len(response.data["results"]), 1)

        response = client.get("/api/invoices/", {"from": self.today.isoformat()})
        self.assertEqual(response.data["results"], [])

        response = client.get("/api/invoices/", {"from": "not-a-date"})
        self.assertEqual(response.status_code, 400)

    def test_create_invoice_computes_totals(self):
        data = {
            "patient": self.patient.id,
            "service_type": "lab_test",
            "tax": "8.00",
            "discount": "3.00",
            "line_items": [
                {"item": "CBC panel", "quantity": "1", "unit_price": "45.00"},
                {"item": "Lipid panel", "quantity": "2", "unit_price": "30.00"},
            ],
        }
        before = AuditLog.objects.using("default").count()
        response = self._client_for("billing").post("/api/invoices/", data, format="json")

        self.assertEqual(response.status_code, 201)
        self.assertEqual(response.data["subtotal"], "105.00")
        self.assertEqual(response.data["total_amount"], "110.00")
        self.assertEqual(response.data["balance"], "110.00")
        self.assertEqual(response.data["status"], "pending")
        self.assertEqual(len(response.data["line_items"]), 2)
        self.assertEqual(response.data["due_date"], (self.today + timedelta(days=30)).isoformat())

        self.assertEqual(AuditLog.objects.using("default").count(), before + 1)
        last = AuditLog.objects.using("default").order_by("-id").first()
        self.assertEqual(last.action, "invoice_created")
        self.assertEqual(last.patient_id, self.patient.id)

    def test_create_requires_line_items(self):
        response = self._client_for("admin").post(
            "/api/invoices/",
            {"patient": self.patient.id},
            format="json",
        )
        self.assertEqual(response.status_code, 400)
        self.assertIn("line_items", response.data)

    def test_create_with_excessive_discount_returns_400(self):
        data = {
            "patient": self.patient.id,
            "discount": "60.00",
            "line_items": [{"item": "Consultation", "quantity": "1", "unit_price": "50.00"}],
        }
        response = self._client_for("admin").post("/api/invoices/", data, format="json")
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.data["code"], "invalid_invoice")
        self.assertEqual(response.data["field"], "discount")

    def test_assistant_cannot_create(self):
        data = {
            "patient": self.patient.id,
            "line_items": [{"item": "Consultation", "quantity": "1", "unit_price": "50.00"}],
        }
        response = self._client_for("assistant").post("/api/invoices/", data, format="json")
        self.assertEqual(response.status_code, 403)

    def test_patch_replaces_line_items(self):
        response = self._client_for("billing").patch(
            f"/api/invoices/{self.invoice.id}/",
            {"line_items": [{"item": "Follow-up", "quantity": "1", "unit_price": "80.00"}]},
            format="json",
        )
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data["total_amount"], "80.00")
        self.assertEqual([li["item"] for li in response.data["line_items"]], ["Follow-up"])

    def test_delete_with_payments_conflicts(self):
        apply_payment(self.invoice, "50.00", self.today)
        client = self._client_for("admin")

        response = client.delete(f"/api/invoices/{self.invoice.id}/")
        self.assertEqual(response.status_code, 409)
        self.assertTrue(Invoice.objects.using("default").filter(id=self.invoice.id).exists())

    def test_delete_without_payments(self):
        response = self._client_for("admin").delete(f"/api/invoices/{self.invoice.id}/")
        self.assertEqual(response.status_code, 204)
        self.assertFalse(Invoice.objects.using("default").filter(id=self.invoice.id).exists())

    def test_cancel_invoice(self):
        client = self._client_for("billing")
        response = client.post(f"/api/invoices/{self.invoice.id}/cancel/", {"reason": "Entered twice"}, format="json")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data["status"], "cancelled")

        response = client.post(f"/api/invoices/{self.invoice.id}/cancel/", {}, format="json")
        self.assertEqual(response.status_code, 409)

    # ========== PAYMENTS ==========

    def test_record_payment_updates_invoice(self):
        client = self._client_for("billing")
        response = client.post(
            f"/api/invoices/{self.invoice.id}/payments/",
            {"amount": "120.00", "payment_method": "debit_card", "reference": "TX-1"},
            format="json",
        )
        self.assertEqual(response.status_code, 201)
        self.assertEqual(response.data["amount"], "120.00")
        self.assertEqual(response.data["invoice_number"], self.invoice.invoice_number)

        self.invoice.refresh_from_db()
        self.assertEqual(self.invoice.status, Invoice.STATUS_PARTIALLY_PAID)
        self.assertEqual(str(self.invoice.balance), "80.00")

        response = client.get(f"/api/invoices/{self.invoice.id}/payments/")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(len(response.data["results"]), 1)

    def test_overpayment_rejected(self):
        response = self._client_for("billing").post(
            f"/api/invoices/{self.invoice.id}/payments/",
            {"amount": "200.01"},
            format="json",
        )
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.data["field"], "amount")

    def test_payments_for_missing_invoice_return_404(self):
        response = self._client_for("billing").get("/api/invoices/999999/payments/")
        self.assertEqual(response.status_code, 404)

    def test_payment_list_filters_and_revert(self):
        payment = apply_payment(self.invoice, "200.00", self.today, Payment.METHOD_INSURANCE)
        client = self._client_for("admin")

        response = client.get("/api/payments/", {"method": "insurance", "patient_id": self.patient.id})
        self.assertEqual(len(response.data["results"]), 1)
        response = client.get("/api/payments/", {"method": "cash"})
        self.assertEqual(response.data["results"], [])

        response = client.delete(f"/api/payments/{payment.id}/")
        self.assertEqual(response.status_code, 204)
        self.invoice.refresh_from_db()
        self.assertEqual(self.invoice.status, Invoice.STATUS_PENDING)
        self.assertEqual(str(self.invoice.balance), "200.00")

    def test_patch_payment(self):
        payment = apply_payment(self.invoice, "50.00", self.today)
        response = self._client_for("billing").patch(
            f"/api/payments/{payment.id}/",
            {"amount": "75.00"},
            format="json",
        )
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data["amount"], "75.00")
        self.invoice.refresh_from_db()
        self.assertEqual(str(self.invoice.amount_paid), "75.00")

    def test_export_json_and_csv(self):
        apply_payment(self.invoice, "50.00", self.today, Payment.METHOD_CASH)
        apply_payment(self.invoice, "25.00", self.today, Payment.METHOD_CHECK)
        client = self._client_for("billing")

        response = client.get("/api/payments/export/", {"file_format": "json"})
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data["summary"]["count"], 2)
        self.assertEqual(response.data["summary"]["total_amount"], "75.00")
        self.assertEqual(response.data["summary"]["by_method"]["check"]["count"], 1)
        self.assertEqual(response.data["summary"]["by_method"]["check"]["total"], "25.00")
        self.assertEqual(len(response.data["payments"]), 2)

        response = client.get("/api/payments/export/", {"file_format": "csv"})
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response["Content-Type"], "text/csv")
        lines = response.content.decode().strip().splitlines()
        self.assertEqual(lines[0].split(",")[0], "id")
        self.assertEqual(len(lines), 3)

        response = client.get("/api/payments/export/", {"file_format": "xml"})
        self.assertEqual(response.status_code, 400)

    def test_export_empty_summary_keeps_cents(self):
        response = self._client_for("billing").get("/api/payments/export/")

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data["summary"], {"count": 0, "total_amount": "0.00", "by_method": {}})
