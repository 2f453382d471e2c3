"""Billing API views.

Serializers validate field shapes; every state change goes through
``billing.services``. ``BillingError`` subclasses are translated to responses
with their own status code (400 for invalid input, 409 for state conflicts).
"""

import csv
import logging

from django.db.models import Count, Q, Sum
from django.http import HttpResponse
from django.utils.dateparse import parse_date

from rest_framework import generics, serializers, status
from rest_framework.response import Response

from clinicdesk.billing.exceptions import BillingError
from clinicdesk.billing.models import Invoice, Payment
from clinicdesk.billing.permissions import InvoicePermission, PaymentPermission
from clinicdesk.billing.serializers import (
    CancelInvoiceSerializer,
    InvoiceSerializer,
    InvoiceWriteSerializer,
    PaymentSerializer,
    PaymentWriteSerializer,
)
from clinicdesk.billing.services import (
    apply_payment,
    cancel_invoice,
    delete_invoice,
    revert_payment,
    save_invoice,
    to_money,
    update_payment,
)
from clinicdesk.core.utils import log_patient_action

logger = logging.getLogger(__name__)


def _error_response(exc: BillingError) -> Response:
    return Response(exc.to_dict(), status=exc.status_code)


def _date_param(request, name):
    raw = (request.query_params.get(name) or '').strip()
    if not raw:
        return None
    value = parse_date(raw)
    if value is None:
        raise serializers.ValidationError({name: 'Invalid date. Use YYYY-MM-DD.'})
    return value


def _int_param(request, name):
    raw = (request.query_params.get(name) or '').strip()
    if not raw:
        return None
    try:
        return int(raw)
    except ValueError:
        raise serializers.ValidationError({name: 'Must be an integer.'}) from None


# ============================================================================
# Invoices
# ============================================================================
class InvoiceListCreateView(generics.ListCreateAPIView):
    """List invoices (?patient_id=, ?status=, ?q=, ?from=, ?to=) or create one."""

    permission_classes = [InvoicePermission]

    def get_queryset(self):
        qs = (
            Invoice.objects.using('default')
            .select_related('patient', 'created_by')
            .prefetch_related('line_items')
        )

        patient_id = _int_param(self.request, 'patient_id')
        if patient_id is not None:
            qs = qs.filter(patient_id=patient_id)

        status_param = (self.request.query_params.get('status') or '').strip()
        if status_param:
            qs = qs.filter(status=status_param)

        date_from = _date_param(self.request, 'from')
        if date_from:
            qs = qs.filter(invoice_date__gte=date_from)
        date_to = _date_param(self.request, 'to')
        if date_to:
            qs = qs.filter(invoice_date__lte=date_to)

        q = (self.request.query_params.get('q') or '').strip()
        if q:
            qs = qs.filter(
                Q(invoice_number__icontains=q)
                | Q(description__icontains=q)
                | Q(patient__first_name__icontains=q)
                | Q(patient__last_name__icontains=q)
            )
        return qs

    def get_serializer_class(self):
        if self.request.method == 'POST':
            return InvoiceWriteSerializer
        return InvoiceSerializer

    def list(self, request, *args, **kwargs):
        log_patient_action(request.user, 'invoice_list', patient_id=_int_param(request, 'patient_id'))
        return super().list(request, *args, **kwargs)

    def create(self, request, *args, **kwargs):
        write_serializer = self.get_serializer(data=request.data)
        write_serializer.is_valid(raise_exception=True)
        data = dict(write_serializer.validated_data)
        line_items = data.pop('line_items', None)

        try:
            invoice = save_invoice(data, line_items or [], user=request.user)
        except BillingError as e:
            return _error_response(e)

        log_patient_action(
            request.user,
            'invoice_created',
            patient_id=invoice.patient_id,
            meta={'invoice_id': invoice.id, 'total_amount': str(invoice.total_amount)},
        )
        read_serializer = InvoiceSerializer(invoice, context={'request': request})
        headers = self.get_success_headers(read_serializer.data)
        return Response(read_serializer.data, status=status.HTTP_201_CREATED, headers=headers)


class InvoiceDetailView(generics.RetrieveUpdateDestroyAPIView):
    permission_classes = [InvoicePermission]

    def get_queryset(self):
        return (
            Invoice.objects.using('default')
            .select_related('patient', 'created_by')
            .prefetch_related('line_items')
        )

    def get_serializer_class(self):
        if self.request.method in ('PUT', 'PATCH'):
            return InvoiceWriteSerializer
        return InvoiceSerializer

    def retrieve(self, request, *args, **kwargs):
        instance = self.get_object()
        log_patient_action(request.user, 'invoice_view', patient_id=instance.patient_id)
        return Response(InvoiceSerializer(instance, context={'request': request}).data)

    def update(self, request, *args, **kwargs):
        partial = kwargs.pop('partial', False)
        instance = self.get_object()
        write_serializer = self.get_serializer(instance, data=request.data, partial=partial)
        write_serializer.is_valid(raise_exception=True)
        data = dict(write_serializer.validated_data)
        line_items = data.pop('line_items', None)

        try:
            invoice = save_invoice(data, line_items, user=request.user, instance=instance)
        except BillingError as e:
            return _error_response(e)

        log_patient_action(
            request.user,
            'invoice_updated',
            patient_id=invoice.patient_id,
            meta={'invoice_id': invoice.id},
        )
        invoice = self.get_queryset().get(pk=invoice.pk)
        return Response(InvoiceSerializer(invoice, context={'request': request}).data)

    def destroy(self, request, *args, **kwargs):
        instance = self.get_object()
        patient_id, invoice_id = instance.patient_id, instance.id
        try:
            delete_invoice(instance)
        except BillingError as e:
            return _error_response(e)

        log_patient_action(request.user, 'invoice_deleted', patient_id=patient_id, meta={'invoice_id': invoice_id})
        return Response(status=status.HTTP_204_NO_CONTENT)


class InvoiceCancelView(generics.GenericAPIView):
    """POST /api/invoices/<pk>/cancel/"""

    permission_classes = [InvoicePermission]
    serializer_class = CancelInvoiceSerializer

    def get_queryset(self):
        return Invoice.objects.using('default').all()

    def post(self, request, *args, **kwargs):
        instance = self.get_object()
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        try:
            invoice = cancel_invoice(instance, reason=serializer.validated_data['reason'])
        except BillingError as e:
            return _error_response(e)

        log_patient_action(request.user, 'invoice_cancelled', patient_id=invoice.patient_id, meta={'invoice_id': invoice.id})
        return Response(InvoiceSerializer(invoice, context={'request': request}).data)


# ============================================================================
# Payments
# ============================================================================
class InvoicePaymentListCreateView(generics.ListCreateAPIView):
    """GET/POST /api/invoices/<pk>/payments/"""

    permission_classes = [PaymentPermission]

    def get_invoice(self):
        invoice = generics.get_object_or_404(Invoice.objects.using('default'), pk=self.kwargs['pk'])
        self.check_object_permissions(self.request, invoice)
        return invoice

    def get_queryset(self):
        return (
            Payment.objects.using('default')
            .filter(invoice_id=self.kwargs['pk'])
            .select_related('invoice', 'invoice__patient')
        )

    def get_serializer_class(self):
        if self.request.method == 'POST':
            return PaymentWriteSerializer
        return PaymentSerializer

    def list(self, request, *args, **kwargs):
        self.get_invoice()
        return super().list(request, *args, **kwargs)

    def create(self, request, *args, **kwargs):
        invoice = self.get_invoice()
        write_serializer = self.get_serializer(data=request.data)
        write_serializer.is_valid(raise_exception=True)
        data = write_serializer.validated_data

        try:
            payment = apply_payment(
                invoice,
                data['amount'],
                data.get('payment_date'),
                data['payment_method'],
                reference=data.get('reference', ''),
                notes=data.get('notes', ''),
                user=request.user,
            )
        except BillingError as e:
            return _error_response(e)

        log_patient_action(
            request.user,
            'payment_created',
            patient_id=invoice.patient_id,
            meta={'invoice_id': invoice.id, 'payment_id': payment.id, 'amount': str(payment.amount)},
        )
        read_serializer = PaymentSerializer(payment, context={'request': request})
        headers = self.get_success_headers(read_serializer.data)
        return Response(read_serializer.data, status=status.HTTP_201_CREATED, headers=headers)


class PaymentFilterMixin:
    """Query-param filtering shared by the payment list and export."""

    def get_queryset(self):
        qs = Payment.objects.using('default').select_related('invoice', 'invoice__patient')

        invoice_id = _int_param(self.request, 'invoice_id')
        if invoice_id is not None:
            qs = qs.filter(invoice_id=invoice_id)

        patient_id = _int_param(self.request, 'patient_id')
        if patient_id is not None:
            qs = qs.filter(invoice__patient_id=patient_id)

        method = (self.request.query_params.get('method') or '').strip()
        if method:
            qs = qs.filter(payment_method=method)

        date_from = _date_param(self.request, 'from')
        if date_from:
            qs = qs.filter(payment_date__gte=date_from)
        date_to = _date_param(self.request, 'to')
        if date_to:
            qs = qs.filter(payment_date__lte=date_to)
        return qs


class PaymentListView(PaymentFilterMixin, generics.ListAPIView):
    """GET /api/payments/ (?invoice_id=, ?patient_id=, ?method=, ?from=, ?to=)"""

    permission_classes = [PaymentPermission]
    serializer_class = PaymentSerializer


class PaymentDetailView(generics.RetrieveUpdateDestroyAPIView):
    """Retrieve, edit or revert a payment.

    DELETE reverts the payment: the amount is added back to the invoice
    balance and the invoice status is re-derived.
    """

    permission_classes = [PaymentPermission]

    def get_queryset(self):
        return Payment.objects.using('default').select_related('invoice', 'invoice__patient')

    def get_serializer_class(self):
        if self.request.method in ('PUT', 'PATCH'):
            return PaymentWriteSerializer
        return PaymentSerializer

    def update(self, request, *args, **kwargs):
        partial = kwargs.pop('partial', False)
        instance = self.get_object()
        write_serializer = self.get_serializer(data=request.data, partial=partial)
        write_serializer.is_valid(raise_exception=True)

        try:
            payment = update_payment(instance, **write_serializer.validated_data)
        except BillingError as e:
            return _error_response(e)

        log_patient_action(
            request.user,
            'payment_updated',
            patient_id=instance.invoice.patient_id,
            meta={'payment_id': payment.id, 'amount': str(payment.amount)},
        )
        payment = self.get_queryset().get(pk=payment.pk)
        return Response(PaymentSerializer(payment, context={'request': request}).data)

    def destroy(self, request, *args, **kwargs):
        instance = self.get_object()
        patient_id = instance.invoice.patient_id
        meta = {'payment_id': instance.id, 'invoice_id': instance.invoice_id, 'amount': str(instance.amount)}

        try:
            revert_payment(instance)
        except BillingError as e:
            return _error_response(e)

        log_patient_action(request.user, 'payment_reverted', patient_id=patient_id, meta=meta)
        return Response(status=status.HTTP_204_NO_CONTENT)


EXPORT_COLUMNS = (
    'id',
    'invoice_number',
    'patient_name',
    'amount',
    'payment_date',
    'payment_method',
    'reference',
    'notes',
)


class PaymentExportView(PaymentFilterMixin, generics.GenericAPIView):
    """GET /api/payments/export/?file_format=json|csv

    Uses the same filters as the payment list. The query parameter is not
    called ``format`` because DRF reserves that name for renderer selection.
    """

    permission_classes = [PaymentPermission]
    serializer_class = PaymentSerializer

    def _summary(self, qs):
        agg = qs.aggregate(total=Sum('amount'), count=Count('id'))
        by_method = {
            row['payment_method']: {'count': row['count'], 'total': str(to_money(row['total']))}
            for row in qs.order_by().values('payment_method').annotate(count=Count('id'), total=Sum('amount'))
        }
        return {
            'count': agg['count'] or 0,
            'total_amount': str(to_money(agg['total'])),
            'by_method': by_method,
        }

    def get(self, request, *args, **kwargs):
        file_format = (request.query_params.get('file_format') or 'json').strip().lower()
        if file_format not in ('json', 'csv'):
            return Response(
                {'detail': 'file_format must be "json" or "csv".'},
                status=status.HTTP_400_BAD_REQUEST,
            )

        qs = self.get_queryset()
        rows = PaymentSerializer(qs, many=True).data
        log_patient_action(request.user, 'payment_export', meta={'file_format': file_format, 'count': len(rows)})
        logger.info('Payment export (%s): %s rows by user %s', file_format, len(rows), request.user.pk)

        if file_format == 'json':
            return Response({'summary': self._summary(qs), 'payments': rows})

        response = HttpResponse(content_type='text/csv')
        response['Content-Disposition'] = 'attachment; filename="payments.csv"'
        writer = csv.writer(response)
        writer.writerow(EXPORT_COLUMNS)
        for row in rows:
            writer.writerow([row.get(col, '') for col in EXPORT_COLUMNS])
        return response
