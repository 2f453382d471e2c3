from rest_framework import serializers

from clinicdesk.billing.models import Invoice, InvoiceLineItem, Payment
from clinicdesk.patients.models import Patient


class InvoiceLineItemSerializer(serializers.ModelSerializer):
    class Meta:
        model = InvoiceLineItem
        fields = ['id', 'item', 'quantity', 'unit_price', 'total']
        read_only_fields = ['id', 'total']


class InvoiceSerializer(serializers.ModelSerializer):
    """Read serializer for invoices (list/detail)."""

    patient_name = serializers.SerializerMethodField()
    line_items = InvoiceLineItemSerializer(many=True, read_only=True)
    created_by_name = serializers.SerializerMethodField()

    class Meta:
        model = Invoice
        fields = [
            'id',
            'invoice_number',
            'patient',
            'patient_name',
            'invoice_date',
            'service_date',
            'due_date',
            'service_type',
            'description',
            'line_items',
            'subtotal',
            'tax',
            'discount',
            'insurance_coverage',
            'insurance_claim_number',
            'total_amount',
            'amount_paid',
            'balance',
            'status',
            'payment_method',
            'notes',
            'created_by',
            'created_by_name',
            'created_at',
            'updated_at',
        ]
        read_only_fields = fields

    def get_patient_name(self, obj):
        return obj.patient.full_name

    def get_created_by_name(self, obj):
        return obj.created_by.display_name() if obj.created_by else None


class InvoiceWriteSerializer(serializers.ModelSerializer):
    """Validates invoice input; persistence goes through ``services.save_invoice``."""

    patient = serializers.PrimaryKeyRelatedField(queryset=Patient.objects.using('default').all())
    invoice_number = serializers.CharField(max_length=32, required=False, allow_blank=True)
    invoice_date = serializers.DateField(required=False)
    due_date = serializers.DateField(required=False)
    status = serializers.ChoiceField(
        choices=[Invoice.STATUS_DRAFT, Invoice.STATUS_PENDING],
        required=False,
    )
    line_items = InvoiceLineItemSerializer(many=True, required=False)

    class Meta:
        model = Invoice
        fields = [
            'patient',
            'invoice_number',
            'invoice_date',
            'service_date',
            'due_date',
            'service_type',
            'description',
            'line_items',
            'tax',
            'discount',
            'insurance_coverage',
            'insurance_claim_number',
            'status',
            'notes',
        ]

    def validate_invoice_number(self, value):
        value = (value or '').strip()
        if not value:
            return value
        qs = Invoice.objects.using('default').filter(invoice_number=value)
        if self.instance is not None:
            qs = qs.exclude(pk=self.instance.pk)
        if qs.exists():
            raise serializers.ValidationError('Invoice number already exists.')
        return value

    def validate_patient(self, value):
        if self.instance is not None and value.pk != self.instance.patient_id:
            raise serializers.ValidationError('The patient of an existing invoice cannot be changed.')
        return value

    def validate(self, attrs):
        invoice_date = attrs.get('invoice_date') or getattr(self.instance, 'invoice_date', None)
        service_date = attrs.get('service_date')
        if service_date and invoice_date and service_date > invoice_date:
            raise serializers.ValidationError({'service_date': 'Service date cannot be after the invoice date.'})
        if self.instance is None and not attrs.get('line_items') and attrs.get('status') != Invoice.STATUS_DRAFT:
            raise serializers.ValidationError({'line_items': 'At least one line item is required.'})
        return attrs


class PaymentSerializer(serializers.ModelSerializer):
    """Read serializer for payments."""

    invoice_number = serializers.CharField(source='invoice.invoice_number', read_only=True)
    patient_id = serializers.IntegerField(source='invoice.patient_id', read_only=True)
    patient_name = serializers.SerializerMethodField()

    class Meta:
        model = Payment
        fields = [
            'id',
            'invoice',
            'invoice_number',
            'patient_id',
            'patient_name',
            'amount',
            'payment_date',
            'payment_method',
            'reference',
            'notes',
            'created_by',
            'created_at',
            'updated_at',
        ]
        read_only_fields = fields

    def get_patient_name(self, obj):
        return obj.invoice.patient.full_name


class PaymentWriteSerializer(serializers.Serializer):
    """Field-level payment input; business rules are enforced by the services."""

    amount = serializers.DecimalField(max_digits=12, decimal_places=2)
    payment_date = serializers.DateField(required=False)
    payment_method = serializers.ChoiceField(choices=Payment.METHOD_CHOICES, default=Payment.METHOD_CASH)
    reference = serializers.CharField(max_length=128, required=False, allow_blank=True, default='')
    notes = serializers.CharField(required=False, allow_blank=True, default='')


class CancelInvoiceSerializer(serializers.Serializer):
    reason = serializers.CharField(required=False, allow_blank=True, default='')
