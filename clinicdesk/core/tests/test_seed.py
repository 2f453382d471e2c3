from io import StringIO

from django.core.management import call_command
from django.test import TestCase

from clinicdesk.billing.models import Invoice, Payment
from clinicdesk.core.models import Role, User
from clinicdesk.patients.models import Patient
from clinicdesk.prescriptions.models import Prescription


class SeedCommandTest(TestCase):
    databases = {"default"}

    def test_seed_creates_consistent_data(self):
        call_command("seed", stdout=StringIO())

        self.assertEqual(
            set(Role.objects.values_list("name", flat=True)),
            {"admin", "assistant", "doctor", "billing", "nurse"},
        )
        self.assertTrue(User.objects.filter(role__name="doctor").exists())
        self.assertEqual(Patient.objects.count(), 20)
        self.assertTrue(Invoice.objects.exists())
        self.assertTrue(Prescription.objects.exists())

        for invoice in Invoice.objects.all():
            self.assertEqual(invoice.balance, invoice.total_amount - invoice.amount_paid)
        for payment in Payment.objects.select_related("invoice"):
            self.assertNotEqual(payment.invoice.status, Invoice.STATUS_CANCELLED)

    def test_seed_flush_is_repeatable(self):
        call_command("seed", stdout=StringIO())
        first = Invoice.objects.count()

        call_command("seed", "--flush", stdout=StringIO())

        self.assertEqual(Invoice.objects.count(), first)
        self.assertEqual(Patient.objects.count(), 20)
