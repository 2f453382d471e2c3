from __future__ import annotations

from datetime import date, timedelta
from decimal import Decimal
from types import SimpleNamespace
from unittest.mock import patch

from django.test import SimpleTestCase, TestCase
from django.utils import timezone

from clinicdesk.billing.exceptions import (
    InvoiceStateError,
    InvoiceValidationError,
    PaymentValidationError,
)
from clinicdesk.billing.models import Invoice, Payment
from clinicdesk.billing.services import (
    INVOICE_NUMBER_ATTEMPTS,
    apply_payment,
    calculate_totals,
    cancel_invoice,
    derive_status,
    generate_invoice_number,
    line_total,
    mark_overdue_invoices,
    patient_billing_summary,
    revert_payment,
    save_invoice,
    update_payment,
)
from clinicdesk.billing.tasks import mark_overdue_invoices_task
from clinicdesk.patients.models import Patient


class InvoiceArithmeticTest(SimpleTestCase):
    def test_line_total_rounds_half_up_to_cents(self):
        self.assertEqual(line_total(3, Decimal("0.335")), Decimal("1.01"))
        self.assertEqual(line_total("2", "49.99"), Decimal("99.98"))

    def test_calculate_totals(self):
        totals = calculate_totals(
            [
                {"quantity": 2, "unit_price": "50.00"},
                {"quantity": 1, "unit_price": "25.50"},
            ],
            tax="10",
            discount="5.50",
            amount_paid="30",
        )
        self.assertEqual(totals.subtotal, Decimal("125.50"))
        self.assertEqual(totals.total_amount, Decimal("130.00"))
        self.assertEqual(totals.balance, Decimal("100.00"))

    def test_calculate_totals_without_items(self):
        totals = calculate_totals([])
        self.assertEqual(totals.subtotal, Decimal("0.00"))
        self.assertEqual(totals.total_amount, Decimal("0.00"))


class DeriveStatusTest(SimpleTestCase):
    today = date(2026, 5, 15)

    def _invoice(self, **overrides):
        values = {
            "status": Invoice.STATUS_PENDING,
            "total_amount": Decimal("100.00"),
            "amount_paid": Decimal("0.00"),
            "balance": Decimal("100.00"),
            "due_date": date(2026, 6, 1),
        }
        values.update(overrides)
        return SimpleNamespace(**values)

    def test_draft_and_cancelled_are_sticky(self):
        for sticky in (Invoice.STATUS_DRAFT, Invoice.STATUS_CANCELLED):
            invoice = self._invoice(status=sticky, balance=Decimal("0.00"), amount_paid=Decimal("100.00"))
            self.assertEqual(derive_status(invoice, self.today), sticky)

    def test_fully_paid(self):
        invoice = self._invoice(amount_paid=Decimal("100.00"), balance=Decimal("0.00"))
        self.assertEqual(derive_status(invoice, self.today), Invoice.STATUS_PAID)

    def test_partially_paid_and_past_due(self):
        invoice = self._invoice(amount_paid=Decimal("40.00"), balance=Decimal("60.00"))
        self.assertEqual(derive_status(invoice, self.today), Invoice.STATUS_PARTIALLY_PAID)

        invoice.due_date = date(2026, 5, 1)
        self.assertEqual(derive_status(invoice, self.today), Invoice.STATUS_OVERDUE)

    def test_unpaid_past_due_is_overdue(self):
        invoice = self._invoice(due_date=date(2026, 5, 14))
        self.assertEqual(derive_status(invoice, self.today), Invoice.STATUS_OVERDUE)

    def test_due_today_is_still_pending(self):
        invoice = self._invoice(due_date=self.today)
        self.assertEqual(derive_status(invoice, self.today), Invoice.STATUS_PENDING)


class BillingServiceTest(TestCase):
    databases = {"default"}

    def setUp(self):
        self.today = timezone.localdate()
        self.patient = Patient.objects.using("default").create(
            first_name="Olivia",
            last_name="Martinez",
            birth_date=date(1978, 2, 2),
        )

    def _invoice(self, unit_price="100.00", invoice_date=None, **data):
        payload = {"patient": self.patient, "invoice_date": invoice_date or self.today - timedelta(days=5)}
        payload.update(data)
        return save_invoice(payload, [{"item": "Consultation", "quantity": 1, "unit_price": unit_price}])

    # ========== INVOICES ==========

    def test_save_invoice_defaults(self):
        invoice = self._invoice()

        self.assertEqual(invoice.status, Invoice.STATUS_PENDING)
        self.assertEqual(invoice.due_date, invoice.invoice_date + timedelta(days=30))
        self.assertEqual(invoice.total_amount, Decimal("100.00"))
        self.assertEqual(invoice.balance, Decimal("100.00"))
        self.assertTrue(invoice.invoice_number.startswith(f"INV-{invoice.invoice_date:%Y%m%d}-"))
        self.assertEqual(invoice.line_items.count(), 1)

    def test_generate_invoice_number_increments(self):
        on_date = date(2026, 1, 5)
        self._invoice(invoice_date=on_date, invoice_number="INV-20260105-0001")
        self.assertEqual(generate_invoice_number(on_date), "INV-20260105-0002")
        self.assertEqual(generate_invoice_number(date(2026, 1, 6)), "INV-20260106-0001")

    def test_generated_number_is_redrawn_when_taken(self):
        on_date = date(2026, 1, 5)
        self._invoice(invoice_date=on_date, invoice_number="INV-20260105-0001")

        with patch(
            "clinicdesk.billing.services.generate_invoice_number",
            side_effect=["INV-20260105-0001", "INV-20260105-0002"],
        ) as mock_generate:
            invoice = self._invoice(invoice_date=on_date)

        self.assertEqual(mock_generate.call_count, 2)
        self.assertEqual(invoice.invoice_number, "INV-20260105-0002")
        self.assertTrue(Invoice.objects.using("default").filter(invoice_number="INV-20260105-0002").exists())

    def test_generated_number_gives_up_after_bounded_attempts(self):
        on_date = date(2026, 1, 5)
        self._invoice(invoice_date=on_date, invoice_number="INV-20260105-0001")

        with patch(
            "clinicdesk.billing.services.generate_invoice_number",
            return_value="INV-20260105-0001",
        ) as mock_generate:
            with self.assertRaises(InvoiceStateError):
                self._invoice(invoice_date=on_date)

        self.assertEqual(mock_generate.call_count, INVOICE_NUMBER_ATTEMPTS)
        self.assertEqual(Invoice.objects.using("default").count(), 1)

    def test_date_defaults_follow_local_date(self):
        local_today = date(2026, 3, 1)
        with patch("clinicdesk.billing.services.timezone.localdate", return_value=local_today):
            invoice = save_invoice(
                {"patient": self.patient},
                [{"item": "Consultation", "quantity": 1, "unit_price": "80.00"}],
            )
            status = derive_status(
                SimpleNamespace(
                    status=Invoice.STATUS_PENDING,
                    total_amount=Decimal("10.00"),
                    amount_paid=Decimal("0.00"),
                    balance=Decimal("10.00"),
                    due_date=date(2026, 3, 2),
                )
            )

        self.assertEqual(invoice.invoice_date, local_today)
        self.assertEqual(invoice.due_date, date(2026, 3, 31))
        self.assertTrue(invoice.invoice_number.startswith("INV-20260301-"))
        self.assertEqual(status, Invoice.STATUS_PENDING)

    def test_discount_cannot_exceed_subtotal_plus_tax(self):
        with self.assertRaises(InvoiceValidationError) as ctx:
            self._invoice(tax="5.00", discount="105.01")
        self.assertEqual(ctx.exception.field, "discount")

    def test_zero_total_rejected_unless_draft(self):
        with self.assertRaises(InvoiceValidationError):
            save_invoice({"patient": self.patient}, [])

        draft = save_invoice({"patient": self.patient, "status": Invoice.STATUS_DRAFT}, [])
        self.assertEqual(draft.status, Invoice.STATUS_DRAFT)
        self.assertEqual(draft.total_amount, Decimal("0.00"))

    def test_update_keeps_line_items_when_omitted(self):
        invoice = self._invoice()
        updated = save_invoice({"tax": "10.00"}, None, instance=invoice)

        self.assertEqual(updated.line_items.count(), 1)
        self.assertEqual(updated.total_amount, Decimal("110.00"))

    def test_cancel_invoice(self):
        invoice = self._invoice()
        cancelled = cancel_invoice(invoice, reason="Duplicate")
        self.assertEqual(cancelled.status, Invoice.STATUS_CANCELLED)
        self.assertIn("Duplicate", cancelled.notes)

        with self.assertRaises(InvoiceStateError):
            cancel_invoice(cancelled)

    # ========== PAYMENTS ==========

    def test_partial_then_full_payment(self):
        invoice = self._invoice()

        apply_payment(invoice, "40.00", self.today, Payment.METHOD_CASH)
        invoice.refresh_from_db()
        self.assertEqual(invoice.amount_paid, Decimal("40.00"))
        self.assertEqual(invoice.balance, Decimal("60.00"))
        self.assertEqual(invoice.status, Invoice.STATUS_PARTIALLY_PAID)

        apply_payment(invoice, "60.00", self.today, Payment.METHOD_CREDIT_CARD)
        invoice.refresh_from_db()
        self.assertEqual(invoice.balance, Decimal("0.00"))
        self.assertEqual(invoice.status, Invoice.STATUS_PAID)
        self.assertEqual(invoice.payment_method, Payment.METHOD_CREDIT_CARD)

        with self.assertRaises(InvoiceStateError):
            apply_payment(invoice, "1.00", self.today)

    def test_payment_validation(self):
        invoice = self._invoice()

        with self.assertRaises(PaymentValidationError):
            apply_payment(invoice, "100.01", self.today)
        with self.assertRaises(PaymentValidationError):
            apply_payment(invoice, "0", self.today)
        with self.assertRaises(PaymentValidationError):
            apply_payment(invoice, "10.00", self.today + timedelta(days=1))
        with self.assertRaises(PaymentValidationError):
            apply_payment(invoice, "10.00", self.today - timedelta(days=366))
        with self.assertRaises(PaymentValidationError):
            apply_payment(invoice, "10.00", self.today, notes="x" * 501)

        self.assertEqual(invoice.payments.count(), 0)

    def test_payment_on_draft_or_cancelled_rejected(self):
        draft = save_invoice({"patient": self.patient, "status": Invoice.STATUS_DRAFT}, [])
        with self.assertRaises(InvoiceStateError):
            apply_payment(draft, "10.00", self.today)

        invoice = cancel_invoice(self._invoice())
        with self.assertRaises(InvoiceStateError):
            apply_payment(invoice, "10.00", self.today)

    def test_update_payment_checks_balance_with_old_amount_restored(self):
        invoice = self._invoice()
        payment = apply_payment(invoice, "30.00", self.today)

        payment = update_payment(payment, amount="100.00")
        invoice.refresh_from_db()
        self.assertEqual(payment.amount, Decimal("100.00"))
        self.assertEqual(invoice.status, Invoice.STATUS_PAID)

        with self.assertRaises(PaymentValidationError):
            update_payment(payment, amount="100.01")

    def test_revert_payment_restores_balance(self):
        invoice = self._invoice()
        payment = apply_payment(invoice, "100.00", self.today)

        invoice = revert_payment(payment)
        self.assertEqual(invoice.balance, Decimal("100.00"))
        self.assertEqual(invoice.amount_paid, Decimal("0.00"))
        self.assertEqual(invoice.status, Invoice.STATUS_PENDING)
        self.assertEqual(invoice.payment_method, "")
        self.assertFalse(Payment.objects.using("default").exists())

    # ========== OVERDUE / SUMMARY ==========

    def test_mark_overdue_invoices(self):
        overdue = self._invoice(
            invoice_date=self.today - timedelta(days=60),
            due_date=self.today - timedelta(days=30),
        )
        Invoice.objects.using("default").filter(pk=overdue.pk).update(status=Invoice.STATUS_PENDING)
        current = self._invoice()

        self.assertEqual(mark_overdue_invoices(self.today), 1)
        overdue.refresh_from_db()
        current.refresh_from_db()
        self.assertEqual(overdue.status, Invoice.STATUS_OVERDUE)
        self.assertEqual(current.status, Invoice.STATUS_PENDING)
        self.assertEqual(mark_overdue_invoices(self.today), 0)

    def test_mark_overdue_task(self):
        overdue = self._invoice(
            invoice_date=self.today - timedelta(days=60),
            due_date=self.today - timedelta(days=30),
        )
        Invoice.objects.using("default").filter(pk=overdue.pk).update(status=Invoice.STATUS_PARTIALLY_PAID)

        result = mark_overdue_invoices_task.apply()

        self.assertEqual(result.get(), 1)
        overdue.refresh_from_db()
        self.assertEqual(overdue.status, Invoice.STATUS_OVERDUE)

    def test_patient_billing_summary(self):
        invoice = self._invoice()
        self._invoice(unit_price="50.00")
        apply_payment(invoice, "25.00", self.today)
        cancel_invoice(self._invoice(unit_price="999.00"))

        summary = patient_billing_summary(self.patient)
        self.assertEqual(summary["invoice_count"], 3)
        self.assertEqual(summary["total_billed"], "150.00")
        self.assertEqual(summary["total_paid"], "25.00")
        self.assertEqual(summary["outstanding_balance"], "125.00")
        self.assertEqual(summary["last_payment_date"], self.today.isoformat())
