from django.conf import settings
from django.db.models import Q
from django.utils import timezone

from rest_framework import generics, serializers, status
from rest_framework.response import Response

from clinicdesk.core.utils import log_patient_action, role_name_of
from clinicdesk.patients.models import Patient
from clinicdesk.prescriptions.exceptions import PrescriptionError
from clinicdesk.prescriptions.models import Prescription, RefillRecord
from clinicdesk.prescriptions.permissions import (
    PrescriptionPermission,
    RefillPermission,
    SafetyCheckPermission,
)
from clinicdesk.prescriptions.serializers import (
    PrescriptionSerializer,
    PrescriptionStatusSerializer,
    PrescriptionWriteSerializer,
    RefillCreateSerializer,
    RefillRecordSerializer,
    SafetyCheckSerializer,
)
from clinicdesk.prescriptions.services import (
    change_status,
    record_refill,
    refill_candidates,
    refill_schedule,
    safety_check,
)


def _visible_prescriptions(request):
    """Prescriptions the user may see: doctors only their own."""
    qs = (
        Prescription.objects.using('default')
        .select_related('patient', 'doctor')
        .prefetch_related('refill_records')
    )
    if role_name_of(request.user) == 'doctor':
        qs = qs.filter(doctor=request.user)
    return qs


class PrescriptionListCreateView(generics.ListCreateAPIView):
    """List prescriptions (?patient_id=, ?doctor_id=, ?status=, ?q=) or create one.

    The create response carries the safety check result for the new
    medication under ``safety``.
    """

    permission_classes = [PrescriptionPermission]

    def get_queryset(self):
        qs = _visible_prescriptions(self.request)
        params = self.request.query_params

        for param, lookup in (('patient_id', 'patient_id'), ('doctor_id', 'doctor_id')):
            raw = (params.get(param) or '').strip()
            if raw:
                try:
                    qs = qs.filter(**{lookup: int(raw)})
                except ValueError:
                    raise serializers.ValidationError({param: 'Must be an integer.'}) from None

        status_param = (params.get('status') or '').strip()
        if status_param:
            qs = qs.filter(status=status_param)

        q = (params.get('q') or '').strip()
        if q:
            qs = qs.filter(
                Q(medication_name__icontains=q)
                | Q(indication__icontains=q)
                | Q(patient__first_name__icontains=q)
                | Q(patient__last_name__icontains=q)
            )
        return qs

    def get_serializer_class(self):
        if self.request.method == 'POST':
            return PrescriptionWriteSerializer
        return PrescriptionSerializer

    def list(self, request, *args, **kwargs):
        log_patient_action(request.user, 'prescription_list')
        return super().list(request, *args, **kwargs)

    def create(self, request, *args, **kwargs):
        write_serializer = self.get_serializer(data=request.data)
        write_serializer.is_valid(raise_exception=True)
        rx = write_serializer.save()

        log_patient_action(
            request.user,
            'prescription_created',
            patient_id=rx.patient_id,
            meta={'prescription_id': rx.id, 'medication_name': rx.medication_name},
        )
        rx = _visible_prescriptions(request).get(pk=rx.pk)
        data = dict(PrescriptionSerializer(rx, context={'request': request}).data)
        data['safety'] = safety_check(rx.patient, rx.medication_name)
        headers = self.get_success_headers(data)
        return Response(data, status=status.HTTP_201_CREATED, headers=headers)


class PrescriptionDetailView(generics.RetrieveUpdateAPIView):
    permission_classes = [PrescriptionPermission]

    def get_queryset(self):
        return _visible_prescriptions(self.request)

    def get_serializer_class(self):
        if self.request.method in ('PUT', 'PATCH'):
            return PrescriptionWriteSerializer
        return PrescriptionSerializer

    def retrieve(self, request, *args, **kwargs):
        instance = self.get_object()
        log_patient_action(request.user, 'prescription_view', patient_id=instance.patient_id)
        return Response(PrescriptionSerializer(instance, context={'request': request}).data)

    def update(self, request, *args, **kwargs):
        partial = kwargs.pop('partial', False)
        instance = self.get_object()
        if instance.status in (Prescription.STATUS_COMPLETED, Prescription.STATUS_DISCONTINUED):
            return Response(
                {'detail': f'{instance.get_status_display()} prescriptions cannot be edited.'},
                status=status.HTTP_409_CONFLICT,
            )

        write_serializer = self.get_serializer(instance, data=request.data, partial=partial)
        write_serializer.is_valid(raise_exception=True)
        rx = write_serializer.save()

        log_patient_action(request.user, 'prescription_updated', patient_id=rx.patient_id, meta={'prescription_id': rx.id})
        rx = self.get_queryset().get(pk=rx.pk)
        return Response(PrescriptionSerializer(rx, context={'request': request}).data)


class PrescriptionStatusView(generics.GenericAPIView):
    """POST /api/prescriptions/<pk>/status/ {status, reason}"""

    permission_classes = [PrescriptionPermission]
    serializer_class = PrescriptionStatusSerializer

    def get_queryset(self):
        return _visible_prescriptions(self.request)

    def post(self, request, *args, **kwargs):
        instance = self.get_object()
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        try:
            rx = change_status(instance, serializer.validated_data['status'], serializer.validated_data['reason'])
        except PrescriptionError as e:
            return Response(e.to_dict(), status=e.status_code)

        log_patient_action(
            request.user,
            'prescription_status_changed',
            patient_id=rx.patient_id,
            meta={'prescription_id': rx.id, 'status': rx.status},
        )
        rx = self.get_queryset().get(pk=rx.pk)
        return Response(PrescriptionSerializer(rx, context={'request': request}).data)


class PrescriptionRefillListCreateView(generics.ListCreateAPIView):
    """GET/POST /api/prescriptions/<pk>/refills/"""

    permission_classes = [RefillPermission]

    def get_prescription(self):
        return generics.get_object_or_404(_visible_prescriptions(self.request), pk=self.kwargs['pk'])

    def get_queryset(self):
        return (
            RefillRecord.objects.using('default')
            .filter(prescription_id=self.kwargs['pk'])
            .select_related('created_by')
        )

    def get_serializer_class(self):
        if self.request.method == 'POST':
            return RefillCreateSerializer
        return RefillRecordSerializer

    def list(self, request, *args, **kwargs):
        self.get_prescription()
        return super().list(request, *args, **kwargs)

    def create(self, request, *args, **kwargs):
        rx = self.get_prescription()
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        try:
            record = record_refill(
                rx,
                user=request.user,
                refill_date=data.get('refill_date'),
                notes=data['notes'],
                method=data['method'],
            )
        except PrescriptionError as e:
            return Response(e.to_dict(), status=e.status_code)

        log_patient_action(
            request.user,
            'prescription_refill',
            patient_id=rx.patient_id,
            meta={'prescription_id': rx.id, 'refills_remaining': rx.refills},
        )
        return Response(RefillRecordSerializer(record).data, status=status.HTTP_201_CREATED)


class RefillsDueView(generics.GenericAPIView):
    """GET /api/prescriptions/refills/due/?window=14"""

    permission_classes = [RefillPermission]

    def get(self, request, *args, **kwargs):
        raw = (request.query_params.get('window') or '').strip()
        window = getattr(settings, 'PRESCRIPTION_REFILL_WINDOW_DAYS', 14)
        if raw:
            try:
                window = int(raw)
            except ValueError:
                return Response({'detail': 'window must be an integer.'}, status=status.HTTP_400_BAD_REQUEST)
            if window < 0 or window > 365:
                return Response({'detail': 'window must be between 0 and 365.'}, status=status.HTTP_400_BAD_REQUEST)

        candidates = refill_candidates()
        if role_name_of(request.user) == 'doctor':
            candidates = candidates.filter(doctor=request.user)

        today = timezone.localdate()
        due = refill_schedule(candidates, today=today, window_days=window)
        return Response({
            'date': today.isoformat(),
            'window_days': window,
            'count': len(due),
            'refills': [entry.to_dict() for entry in due],
        })


class SafetyCheckView(generics.GenericAPIView):
    """POST /api/prescriptions/safety-check/ {patient_id, medication_name}"""

    permission_classes = [SafetyCheckPermission]
    serializer_class = SafetyCheckSerializer

    def post(self, request, *args, **kwargs):
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        patient = Patient.objects.using('default').get(id=serializer.validated_data['patient_id'])

        result = safety_check(patient, serializer.validated_data['medication_name'])
        log_patient_action(
            request.user,
            'prescription_safety_check',
            patient_id=patient.id,
            meta={'medication_name': result['medication_name'], 'alert_count': result['alert_count']},
        )
        return Response(result)
