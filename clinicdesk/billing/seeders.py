import random
from datetime import timedelta
from decimal import Decimal

from django.db import transaction
from django.utils import timezone

from clinicdesk.patients.models import Patient

from .models import Invoice, Payment
from .services import apply_payment, cancel_invoice, save_invoice

RANDOM_SEED = 42

SERVICE_CATALOG = {
    Invoice.SERVICE_CONSULTATION: [("Office visit", Decimal("120.00")), ("Follow-up visit", Decimal("80.00"))],
    Invoice.SERVICE_LAB_TEST: [("Blood panel", Decimal("65.00")), ("Urinalysis", Decimal("25.00"))],
    Invoice.SERVICE_IMAGING: [("X-ray", Decimal("150.00")), ("Ultrasound", Decimal("220.00"))],
    Invoice.SERVICE_PROCEDURE: [("Minor procedure", Decimal("340.00")), ("Wound care", Decimal("95.00"))],
    Invoice.SERVICE_TELEMEDICINE: [("Video consultation", Decimal("60.00"))],
}

PAYMENT_METHODS = [
    Payment.METHOD_CASH,
    Payment.METHOD_CREDIT_CARD,
    Payment.METHOD_DEBIT_CARD,
    Payment.METHOD_INSURANCE,
    Payment.METHOD_BANK_TRANSFER,
]


def flush_billing() -> None:
    with transaction.atomic():
        Payment.objects.all().delete()
        Invoice.objects.all().delete()


def seed_billing(flush: bool = False, invoices_per_patient: int = 3) -> dict:
    """
    Seeds invoices and payments for existing patients over the last six months.

    Everything goes through the billing services so totals, balances and
    statuses are consistent.
    """
    random.seed(RANDOM_SEED)
    today = timezone.localdate()

    if flush:
        flush_billing()

    stats = {"billing_invoices": 0, "billing_payments": 0, "billing_cancelled": 0}

    for patient in Patient.objects.order_by("id"):
        for _ in range(random.randint(1, invoices_per_patient)):
            invoice_date = today - timedelta(days=random.randint(0, 180))
            service_type = random.choice(list(SERVICE_CATALOG))
            items = [
                {"item": item, "quantity": random.randint(1, 2), "unit_price": price}
                for item, price in random.sample(
                    SERVICE_CATALOG[service_type],
                    k=random.randint(1, len(SERVICE_CATALOG[service_type])),
                )
            ]
            invoice = save_invoice(
                {
                    "patient": patient,
                    "invoice_date": invoice_date,
                    "service_date": invoice_date,
                    "service_type": service_type,
                    "tax": Decimal("0.00"),
                    "discount": random.choice([Decimal("0.00"), Decimal("0.00"), Decimal("10.00")]),
                },
                items,
            )
            stats["billing_invoices"] += 1

            roll = random.random()
            if roll < 0.05:
                cancel_invoice(invoice, reason="Seed: duplicate")
                stats["billing_cancelled"] += 1
                continue
            if roll < 0.35:
                continue

            # full payment or one partial payment
            amount = invoice.balance if roll > 0.6 else (invoice.balance / 2).quantize(Decimal("0.01"))
            paid_on = min(today, invoice_date + timedelta(days=random.randint(0, 40)))
            apply_payment(invoice, amount, paid_on, random.choice(PAYMENT_METHODS), notes="seed")
            stats["billing_payments"] += 1

    return stats
