from decimal import Decimal

from django.conf import settings
from django.db import models


ZERO = Decimal('0.00')


class Invoice(models.Model):
    """Patient invoice.

    subtotal, total_amount and balance are derived from the line items and
    payments by ``billing.services``; they are stored for filtering and
    dashboard aggregation.
    """

    SERVICE_CONSULTATION = 'consultation'
    SERVICE_PROCEDURE = 'procedure'
    SERVICE_LAB_TEST = 'lab_test'
    SERVICE_IMAGING = 'imaging'
    SERVICE_SURGERY = 'surgery'
    SERVICE_MEDICATION = 'medication'
    SERVICE_TELEMEDICINE = 'telemedicine'
    SERVICE_OTHER = 'other'

    SERVICE_TYPE_CHOICES = (
        (SERVICE_CONSULTATION, 'Consultation'),
        (SERVICE_PROCEDURE, 'Procedure'),
        (SERVICE_LAB_TEST, 'Lab test'),
        (SERVICE_IMAGING, 'Imaging'),
        (SERVICE_SURGERY, 'Surgery'),
        (SERVICE_MEDICATION, 'Medication'),
        (SERVICE_TELEMEDICINE, 'Telemedicine'),
        (SERVICE_OTHER, 'Other'),
    )

    STATUS_DRAFT = 'draft'
    STATUS_PENDING = 'pending'
    STATUS_PARTIALLY_PAID = 'partially_paid'
    STATUS_PAID = 'paid'
    STATUS_OVERDUE = 'overdue'
    STATUS_CANCELLED = 'cancelled'

    STATUS_CHOICES = (
        (STATUS_DRAFT, 'Draft'),
        (STATUS_PENDING, 'Pending'),
        (STATUS_PARTIALLY_PAID, 'Partially paid'),
        (STATUS_PAID, 'Paid'),
        (STATUS_OVERDUE, 'Overdue'),
        (STATUS_CANCELLED, 'Cancelled'),
    )

    # Statuses that still expect money.
    OPEN_STATUSES = (STATUS_PENDING, STATUS_PARTIALLY_PAID, STATUS_OVERDUE)

    patient = models.ForeignKey(
        'patients.Patient',
        on_delete=models.PROTECT,
        related_name='invoices',
    )
    invoice_number = models.CharField(max_length=32, unique=True)
    invoice_date = models.DateField(db_index=True)
    service_date = models.DateField(null=True, blank=True)
    due_date = models.DateField(db_index=True)
    service_type = models.CharField(max_length=32, choices=SERVICE_TYPE_CHOICES, default=SERVICE_CONSULTATION)
    description = models.TextField(blank=True, default='')

    subtotal = models.DecimalField(max_digits=12, decimal_places=2, default=ZERO)
    tax = models.DecimalField(max_digits=12, decimal_places=2, default=ZERO)
    discount = models.DecimalField(max_digits=12, decimal_places=2, default=ZERO)
    insurance_coverage = models.DecimalField(max_digits=12, decimal_places=2, default=ZERO)
    insurance_claim_number = models.CharField(max_length=64, blank=True, default='')
    total_amount = models.DecimalField(max_digits=12, decimal_places=2, default=ZERO)
    amount_paid = models.DecimalField(max_digits=12, decimal_places=2, default=ZERO)
    balance = models.DecimalField(max_digits=12, decimal_places=2, default=ZERO)

    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default=STATUS_PENDING, db_index=True)
    payment_method = models.CharField(max_length=20, blank=True, default='')
    notes = models.TextField(blank=True, default='')

    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='created_invoices',
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'billing_invoice'
        ordering = ['-invoice_date', '-id']
        verbose_name = 'Invoice'
        verbose_name_plural = 'Invoices'

    def __str__(self) -> str:
        return self.invoice_number


class InvoiceLineItem(models.Model):
    invoice = models.ForeignKey(Invoice, on_delete=models.CASCADE, related_name='line_items')
    item = models.CharField(max_length=255)
    quantity = models.DecimalField(max_digits=10, decimal_places=2, default=Decimal('1.00'))
    unit_price = models.DecimalField(max_digits=12, decimal_places=2, default=ZERO)
    total = models.DecimalField(max_digits=12, decimal_places=2, default=ZERO)

    class Meta:
        db_table = 'billing_invoicelineitem'
        ordering = ['id']
        verbose_name = 'Invoice line item'
        verbose_name_plural = 'Invoice line items'

    def __str__(self) -> str:
        return f"{self.item} x{self.quantity}"


class Payment(models.Model):
    """A payment applied against an invoice balance."""

    METHOD_CASH = 'cash'
    METHOD_CREDIT_CARD = 'credit_card'
    METHOD_DEBIT_CARD = 'debit_card'
    METHOD_INSURANCE = 'insurance'
    METHOD_BANK_TRANSFER = 'bank_transfer'
    METHOD_CHECK = 'check'
    METHOD_OTHER = 'other'

    METHOD_CHOICES = (
        (METHOD_CASH, 'Cash'),
        (METHOD_CREDIT_CARD, 'Credit card'),
        (METHOD_DEBIT_CARD, 'Debit card'),
        (METHOD_INSURANCE, 'Insurance'),
        (METHOD_BANK_TRANSFER, 'Bank transfer'),
        (METHOD_CHECK, 'Check'),
        (METHOD_OTHER, 'Other'),
    )

    invoice = models.ForeignKey(Invoice, on_delete=models.PROTECT, related_name='payments')
    amount = models.DecimalField(max_digits=12, decimal_places=2)
    payment_date = models.DateField(db_index=True)
    payment_method = models.CharField(max_length=20, choices=METHOD_CHOICES, default=METHOD_CASH)
    reference = models.CharField(max_length=128, blank=True, default='')
    notes = models.TextField(blank=True, default='')

    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='recorded_payments',
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'billing_payment'
        ordering = ['-payment_date', '-id']
        verbose_name = 'Payment'
        verbose_name_plural = 'Payments'

    def __str__(self) -> str:
        return f"{self.amount} on {self.invoice_id} ({self.payment_method})"
