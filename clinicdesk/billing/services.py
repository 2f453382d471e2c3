"""Billing services.

The arithmetic (``line_total``, ``calculate_totals``, ``derive_status``) is
kept free of ORM access so it can be used by serializers, the dashboard and
tests alike. Everything that writes runs inside ``transaction.atomic`` and
locks the invoice row before touching balances.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, timedelta
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any, Iterable

from django.conf import settings
from django.db import IntegrityError, transaction
from django.db.models import Count, Max, Q, Sum
from django.utils import timezone

from clinicdesk.billing.exceptions import (
    InvoiceStateError,
    InvoiceValidationError,
    PaymentValidationError,
)
from clinicdesk.billing.models import Invoice, InvoiceLineItem, Payment

logger = logging.getLogger(__name__)

CENTS = Decimal('0.01')
ZERO = Decimal('0.00')

MAX_PAYMENT_NOTES_LENGTH = 500
PAYMENT_MAX_AGE_DAYS = 365
INVOICE_NUMBER_ATTEMPTS = 3


def to_money(value: Any) -> Decimal:
    """Coerce ``value`` to a Decimal rounded half-up to cents."""
    if value is None or value == '':
        return ZERO
    try:
        return Decimal(str(value)).quantize(CENTS, rounding=ROUND_HALF_UP)
    except (InvalidOperation, ValueError) as exc:
        raise InvoiceValidationError(f'Invalid amount: {value!r}') from exc


def line_total(quantity: Any, unit_price: Any) -> Decimal:
    """quantity * unit_price, rounded half-up to cents."""
    try:
        raw = Decimal(str(quantity)) * Decimal(str(unit_price))
    except (InvalidOperation, ValueError) as exc:
        raise InvoiceValidationError('Invalid quantity or unit price.') from exc
    return raw.quantize(CENTS, rounding=ROUND_HALF_UP)


def _item_value(item: Any, key: str, default: Any = None) -> Any:
    if isinstance(item, dict):
        return item.get(key, default)
    return getattr(item, key, default)


@dataclass(frozen=True)
class InvoiceTotals:
    subtotal: Decimal
    total_amount: Decimal
    balance: Decimal

    def to_dict(self) -> dict[str, str]:
        return {
            'subtotal': str(self.subtotal),
            'total_amount': str(self.total_amount),
            'balance': str(self.balance),
        }


def calculate_totals(
    line_items: Iterable[Any],
    tax: Any = ZERO,
    discount: Any = ZERO,
    amount_paid: Any = ZERO,
) -> InvoiceTotals:
    """Recompute subtotal, total and balance.

    ``line_items`` may be dicts or objects exposing ``quantity`` and
    ``unit_price``. Insurance coverage is informational and does not reduce
    the total.
    """
    subtotal = sum(
        (line_total(_item_value(li, 'quantity', 1), _item_value(li, 'unit_price', 0)) for li in line_items),
        ZERO,
    )
    total = subtotal + to_money(tax) - to_money(discount)
    balance = total - to_money(amount_paid)
    return InvoiceTotals(subtotal=subtotal, total_amount=total, balance=balance)


def derive_status(invoice: Any, today: date | None = None) -> str:
    """Status implied by the invoice's amounts and due date.

    draft and cancelled are only left through explicit actions.
    """
    today = today or timezone.localdate()
    status = invoice.status
    if status in (Invoice.STATUS_DRAFT, Invoice.STATUS_CANCELLED):
        return status

    total = to_money(invoice.total_amount)
    paid = to_money(invoice.amount_paid)
    balance = to_money(invoice.balance)
    past_due = invoice.due_date is not None and invoice.due_date < today

    if total > ZERO and balance <= ZERO:
        return Invoice.STATUS_PAID
    if paid > ZERO:
        return Invoice.STATUS_OVERDUE if past_due else Invoice.STATUS_PARTIALLY_PAID
    if past_due and balance > ZERO:
        return Invoice.STATUS_OVERDUE
    return Invoice.STATUS_PENDING


def default_due_date(invoice_date: date) -> date:
    return invoice_date + timedelta(days=getattr(settings, 'BILLING_DEFAULT_DUE_DAYS', 30))


def generate_invoice_number(on_date: date | None = None) -> str:
    """Next free number of the form INV-YYYYMMDD-NNNN for ``on_date``."""
    on_date = on_date or timezone.localdate()
    prefix = f"INV-{on_date:%Y%m%d}-"

    existing = Invoice.objects.using('default').filter(invoice_number__startswith=prefix)
    seq = existing.count() + 1
    last = existing.order_by('-invoice_number').values_list('invoice_number', flat=True).first()
    if last:
        try:
            seq = max(seq, int(last[len(prefix):]) + 1)
        except ValueError:
            pass
    return f"{prefix}{seq:04d}"


def _clean_line_items(line_items: Iterable[Any]) -> list[dict[str, Any]]:
    cleaned = []
    for index, li in enumerate(line_items):
        item = (_item_value(li, 'item') or '').strip()
        if not item:
            raise InvoiceValidationError('Line item description is required.', field=f'line_items[{index}].item')

        quantity = to_money(_item_value(li, 'quantity', 1))
        unit_price = to_money(_item_value(li, 'unit_price', 0))
        if quantity <= ZERO:
            raise InvoiceValidationError('Quantity must be greater than 0.', field=f'line_items[{index}].quantity')
        if unit_price < ZERO:
            raise InvoiceValidationError('Unit price cannot be negative.', field=f'line_items[{index}].unit_price')

        cleaned.append({
            'item': item,
            'quantity': quantity,
            'unit_price': unit_price,
            'total': line_total(quantity, unit_price),
        })
    return cleaned


def _save_with_number(invoice: Invoice, generated: bool) -> None:
    """Save ``invoice``, drawing a new number if a generated one was taken meanwhile."""
    if not generated:
        invoice.save(using='default')
        return

    for attempt in range(1, INVOICE_NUMBER_ATTEMPTS + 1):
        try:
            with transaction.atomic(using='default'):
                invoice.save(using='default')
            return
        except IntegrityError:
            taken = Invoice.objects.using('default').filter(invoice_number=invoice.invoice_number).exists()
            if not taken:
                raise
            if attempt == INVOICE_NUMBER_ATTEMPTS:
                raise InvoiceStateError(
                    'Could not allocate a free invoice number, please retry.',
                    status=invoice.status,
                    meta={'invoice_number': invoice.invoice_number},
                )
            logger.warning('Invoice number %s already taken, regenerating', invoice.invoice_number)
            invoice.invoice_number = generate_invoice_number(invoice.invoice_date)


INVOICE_FIELDS = (
    'patient',
    'invoice_number',
    'invoice_date',
    'service_date',
    'due_date',
    'service_type',
    'description',
    'tax',
    'discount',
    'insurance_coverage',
    'insurance_claim_number',
    'notes',
)


@transaction.atomic(using='default')
def save_invoice(
    data: dict[str, Any],
    line_items: Iterable[Any] | None,
    user=None,
    *,
    instance: Invoice | None = None,
    today: date | None = None,
) -> Invoice:
    """Create or update an invoice together with its line items.

    ``line_items=None`` keeps the existing items of ``instance``. A
    ``status`` of ``draft`` keeps the invoice out of the receivables; a
    draft is released by requesting ``pending``. The stored status is
    otherwise always the derived one.
    """
    today = today or timezone.localdate()
    creating = instance is None

    if creating:
        invoice = Invoice(created_by=user if getattr(user, 'is_authenticated', False) else None)
    else:
        invoice = Invoice.objects.using('default').select_for_update().get(pk=instance.pk)
        if invoice.status == Invoice.STATUS_CANCELLED:
            raise InvoiceStateError('Cancelled invoices cannot be edited.', status=invoice.status)

    for field in INVOICE_FIELDS:
        if field in data:
            setattr(invoice, field, data[field])

    if not invoice.invoice_date:
        invoice.invoice_date = today
    if not invoice.due_date:
        invoice.due_date = default_due_date(invoice.invoice_date)
    if invoice.due_date < invoice.invoice_date:
        raise InvoiceValidationError('Due date cannot be before the invoice date.', field='due_date')
    generated_number = not invoice.invoice_number
    if generated_number:
        invoice.invoice_number = generate_invoice_number(invoice.invoice_date)

    invoice.tax = to_money(invoice.tax)
    invoice.discount = to_money(invoice.discount)
    invoice.insurance_coverage = to_money(invoice.insurance_coverage)
    if invoice.tax < ZERO:
        raise InvoiceValidationError('Tax cannot be negative.', field='tax')
    if invoice.discount < ZERO:
        raise InvoiceValidationError('Discount cannot be negative.', field='discount')
    if invoice.insurance_coverage < ZERO:
        raise InvoiceValidationError('Insurance coverage cannot be negative.', field='insurance_coverage')

    if line_items is not None:
        items = _clean_line_items(line_items)
    elif creating:
        items = []
    else:
        items = list(invoice.line_items.values('item', 'quantity', 'unit_price', 'total'))

    requested_status = data.get('status')
    if requested_status == Invoice.STATUS_DRAFT:
        if to_money(invoice.amount_paid) > ZERO:
            raise InvoiceStateError('Invoices with payments cannot be set back to draft.', status=invoice.status)
        invoice.status = Invoice.STATUS_DRAFT
    elif creating or (requested_status == Invoice.STATUS_PENDING and invoice.status == Invoice.STATUS_DRAFT):
        invoice.status = Invoice.STATUS_PENDING

    totals = calculate_totals(items, invoice.tax, ZERO, invoice.amount_paid)
    if invoice.discount > totals.subtotal + invoice.tax:
        raise InvoiceValidationError('Discount cannot exceed subtotal plus tax.', field='discount')

    totals = calculate_totals(items, invoice.tax, invoice.discount, invoice.amount_paid)
    if invoice.status != Invoice.STATUS_DRAFT and totals.total_amount <= ZERO:
        raise InvoiceValidationError('Invoice total must be greater than 0.', field='line_items')
    if totals.balance < ZERO:
        raise InvoiceValidationError(
            'Invoice total cannot be lower than the amount already paid.',
            field='line_items',
            meta={'amount_paid': str(invoice.amount_paid)},
        )

    invoice.subtotal = totals.subtotal
    invoice.total_amount = totals.total_amount
    invoice.balance = totals.balance
    invoice.status = derive_status(invoice, today)
    _save_with_number(invoice, generated_number)

    if line_items is not None:
        invoice.line_items.all().delete()
        InvoiceLineItem.objects.using('default').bulk_create(
            [InvoiceLineItem(invoice=invoice, **li) for li in items]
        )

    logger.info(
        'Invoice %s %s: total=%s balance=%s status=%s',
        invoice.invoice_number,
        'created' if creating else 'updated',
        invoice.total_amount,
        invoice.balance,
        invoice.status,
    )
    return invoice


@transaction.atomic(using='default')
def cancel_invoice(invoice: Invoice, reason: str = '') -> Invoice:
    invoice = Invoice.objects.using('default').select_for_update().get(pk=invoice.pk)
    if invoice.status in (Invoice.STATUS_CANCELLED, Invoice.STATUS_PAID):
        raise InvoiceStateError(f'Invoice is already {invoice.status}.', status=invoice.status)
    if to_money(invoice.amount_paid) > ZERO:
        raise InvoiceStateError('Revert recorded payments before cancelling.', status=invoice.status)

    invoice.status = Invoice.STATUS_CANCELLED
    if reason:
        invoice.notes = f"{invoice.notes}\nCancelled: {reason}".strip()
    invoice.save(using='default')
    logger.info('Invoice %s cancelled', invoice.invoice_number)
    return invoice


def delete_invoice(invoice: Invoice) -> None:
    if invoice.payments.exists():
        raise InvoiceStateError(
            'Invoices with recorded payments cannot be deleted. Cancel the invoice instead.',
            status=invoice.status,
        )
    number = invoice.invoice_number
    invoice.delete()
    logger.info('Invoice %s deleted', number)


def _validate_payment_fields(
    amount: Decimal,
    payment_date: date,
    notes: str,
    today: date,
) -> None:
    if amount < CENTS:
        raise PaymentValidationError('Payment amount must be at least 0.01.', field='amount')
    if payment_date > today:
        raise PaymentValidationError('Payment date cannot be in the future.', field='payment_date')
    if payment_date < today - timedelta(days=PAYMENT_MAX_AGE_DAYS):
        raise PaymentValidationError('Payment date cannot be more than one year ago.', field='payment_date')
    if len(notes or '') > MAX_PAYMENT_NOTES_LENGTH:
        raise PaymentValidationError(
            f'Notes cannot exceed {MAX_PAYMENT_NOTES_LENGTH} characters.',
            field='notes',
        )


def _refresh_payment_state(invoice: Invoice, today: date) -> None:
    """Recompute amount_paid, balance, status and payment_method from payments."""
    payments = invoice.payments.using('default')
    paid = payments.aggregate(total=Sum('amount'))['total'] or ZERO
    latest = payments.order_by('-payment_date', '-id').values_list('payment_method', flat=True).first()

    invoice.amount_paid = to_money(paid)
    invoice.balance = to_money(invoice.total_amount) - invoice.amount_paid
    invoice.payment_method = latest or ''
    invoice.status = derive_status(invoice, today)
    invoice.save(using='default')


def apply_payment(
    invoice: Invoice,
    amount: Any,
    payment_date: date | None = None,
    payment_method: str = Payment.METHOD_CASH,
    *,
    reference: str = '',
    notes: str = '',
    user=None,
    today: date | None = None,
) -> Payment:
    """Record a payment against ``invoice`` and update its balance/status."""
    today = today or timezone.localdate()
    payment_date = payment_date or today
    amount = to_money(amount)
    _validate_payment_fields(amount, payment_date, notes, today)

    with transaction.atomic(using='default'):
        locked = Invoice.objects.using('default').select_for_update().get(pk=invoice.pk)
        if locked.status in (Invoice.STATUS_DRAFT, Invoice.STATUS_CANCELLED, Invoice.STATUS_PAID):
            raise InvoiceStateError(
                f'Payments cannot be recorded on a {locked.status} invoice.',
                status=locked.status,
            )
        if amount > locked.balance:
            raise PaymentValidationError(
                'Payment amount cannot exceed the outstanding balance.',
                field='amount',
                meta={'balance': str(locked.balance)},
            )

        payment = Payment.objects.using('default').create(
            invoice=locked,
            amount=amount,
            payment_date=payment_date,
            payment_method=payment_method,
            reference=reference or '',
            notes=notes or '',
            created_by=user if getattr(user, 'is_authenticated', False) else None,
        )
        _refresh_payment_state(locked, today)

    logger.info(
        'Payment %s applied to %s: amount=%s balance=%s status=%s',
        payment.id, locked.invoice_number, amount, locked.balance, locked.status,
    )
    return payment


def update_payment(
    payment: Payment,
    *,
    amount: Any = None,
    payment_date: date | None = None,
    payment_method: str | None = None,
    reference: str | None = None,
    notes: str | None = None,
    today: date | None = None,
) -> Payment:
    """Edit a payment; the new amount is checked against the balance with the old amount restored."""
    today = today or timezone.localdate()

    with transaction.atomic(using='default'):
        invoice = Invoice.objects.using('default').select_for_update().get(pk=payment.invoice_id)
        payment = Payment.objects.using('default').select_for_update().get(pk=payment.pk)
        if invoice.status in (Invoice.STATUS_DRAFT, Invoice.STATUS_CANCELLED):
            raise InvoiceStateError(
                f'Payments of a {invoice.status} invoice cannot be edited.',
                status=invoice.status,
            )

        new_amount = to_money(amount) if amount is not None else payment.amount
        new_date = payment_date or payment.payment_date
        new_notes = notes if notes is not None else payment.notes
        _validate_payment_fields(new_amount, new_date, new_notes, today)

        available = invoice.balance + payment.amount
        if new_amount > available:
            raise PaymentValidationError(
                'Payment amount cannot exceed the outstanding balance.',
                field='amount',
                meta={'balance': str(available)},
            )

        payment.amount = new_amount
        payment.payment_date = new_date
        payment.notes = new_notes
        if payment_method is not None:
            payment.payment_method = payment_method
        if reference is not None:
            payment.reference = reference
        payment.save(using='default')
        _refresh_payment_state(invoice, today)

    logger.info('Payment %s updated: amount=%s invoice=%s', payment.id, payment.amount, invoice.invoice_number)
    return payment


def revert_payment(payment: Payment, today: date | None = None) -> Invoice:
    """Delete a payment and restore the invoice balance."""
    today = today or timezone.localdate()

    with transaction.atomic(using='default'):
        invoice = Invoice.objects.using('default').select_for_update().get(pk=payment.invoice_id)
        payment_id, amount = payment.id, payment.amount
        Payment.objects.using('default').filter(pk=payment.pk).delete()
        _refresh_payment_state(invoice, today)

    logger.info(
        'Payment %s reverted on %s: amount=%s balance=%s status=%s',
        payment_id, invoice.invoice_number, amount, invoice.balance, invoice.status,
    )
    return invoice


def mark_overdue_invoices(today: date | None = None) -> int:
    """Flag open invoices past their due date as overdue. Returns the count."""
    today = today or timezone.localdate()
    updated = (
        Invoice.objects.using('default')
        .filter(
            status__in=(Invoice.STATUS_PENDING, Invoice.STATUS_PARTIALLY_PAID),
            due_date__lt=today,
            balance__gt=ZERO,
        )
        .update(status=Invoice.STATUS_OVERDUE)
    )
    if updated:
        logger.info('Marked %s invoice(s) overdue (as of %s)', updated, today)
    return updated


def patient_billing_summary(patient) -> dict[str, Any]:
    """Invoice count and money totals for one patient (drafts and cancelled excluded)."""
    qs = Invoice.objects.using('default').filter(patient=patient)
    billable = qs.exclude(status__in=(Invoice.STATUS_DRAFT, Invoice.STATUS_CANCELLED))
    agg = billable.aggregate(
        total_billed=Sum('total_amount'),
        total_paid=Sum('amount_paid'),
        outstanding=Sum('balance', filter=Q(status__in=Invoice.OPEN_STATUSES)),
        overdue_count=Count('id', filter=Q(status=Invoice.STATUS_OVERDUE)),
    )
    last_payment = Payment.objects.using('default').filter(invoice__patient=patient).aggregate(
        last=Max('payment_date')
    )['last']

    return {
        'invoice_count': qs.count(),
        'total_billed': str(to_money(agg['total_billed'])),
        'total_paid': str(to_money(agg['total_paid'])),
        'outstanding_balance': str(to_money(agg['outstanding'])),
        'overdue_count': agg['overdue_count'] or 0,
        'last_payment_date': last_payment.isoformat() if last_payment else None,
    }
