from django.db.models import ProtectedError, Q
from django.utils import timezone

from rest_framework import generics, status
from rest_framework.response import Response

from clinicdesk.billing.services import patient_billing_summary
from clinicdesk.core.utils import log_patient_action
from clinicdesk.patients.models import Patient
from clinicdesk.patients.permissions import PatientPermission
from clinicdesk.patients.serializers import PatientReadSerializer, patient_serializer_for
from clinicdesk.prescriptions.services import patient_prescription_summary


class PatientListCreateView(generics.ListCreateAPIView):
    """List patients (?q=, ?status=) or create a new patient."""

    permission_classes = [PatientPermission]

    def get_queryset(self):
        qs = Patient.objects.using('default').all()

        status_param = (self.request.query_params.get('status') or '').strip()
        if status_param:
            qs = qs.filter(status=status_param)

        q = (self.request.query_params.get('q') or '').strip()
        if q:
            qs = qs.filter(
                Q(first_name__icontains=q)
                | Q(last_name__icontains=q)
                | Q(email__icontains=q)
                | Q(phone__icontains=q)
                | Q(insurance_number__icontains=q)
            )
        return qs

    def get_serializer_class(self):
        return patient_serializer_for(self.request.user, write=self.request.method == 'POST')

    def list(self, request, *args, **kwargs):
        q = (request.query_params.get('q') or '').strip()
        log_patient_action(request.user, 'patient_list', meta={'query': q} if q else None)
        return super().list(request, *args, **kwargs)

    def perform_create(self, serializer):
        obj = serializer.save()
        log_patient_action(self.request.user, 'patient_created', patient_id=obj.id)


class PatientDetailView(generics.RetrieveUpdateDestroyAPIView):
    """Retrieve, update or delete a patient."""

    permission_classes = [PatientPermission]

    def get_queryset(self):
        return Patient.objects.using('default').all()

    def get_serializer_class(self):
        return patient_serializer_for(self.request.user, write=self.request.method in ('PUT', 'PATCH'))

    def retrieve(self, request, *args, **kwargs):
        instance = self.get_object()
        log_patient_action(request.user, 'patient_view', patient_id=instance.id)
        serializer = self.get_serializer(instance)
        return Response(serializer.data)

    def perform_update(self, serializer):
        obj = serializer.save()
        log_patient_action(self.request.user, 'patient_updated', patient_id=obj.id)

    def destroy(self, request, *args, **kwargs):
        instance = self.get_object()
        patient_id = instance.id
        try:
            instance.delete()
        except ProtectedError:
            return Response(
                {'detail': 'Patient has invoices or prescriptions and cannot be deleted. Set status to inactive instead.'},
                status=status.HTTP_409_CONFLICT,
            )
        log_patient_action(request.user, 'patient_deleted', patient_id=patient_id)
        return Response(status=status.HTTP_204_NO_CONTENT)


class PatientSummaryView(generics.GenericAPIView):
    """Patient profile: record plus billing and prescription summaries."""

    permission_classes = [PatientPermission]
    serializer_class = PatientReadSerializer

    def get_queryset(self):
        return Patient.objects.using('default').all()

    def get(self, request, *args, **kwargs):
        patient = self.get_object()
        serializer_class = patient_serializer_for(request.user)

        payload = {
            'patient': serializer_class(patient).data,
            'billing': patient_billing_summary(patient),
        }
        role = getattr(request.user, 'role', None)
        if role is None or role.name != 'billing':
            payload['prescriptions'] = patient_prescription_summary(patient, today=timezone.localdate())

        log_patient_action(request.user, 'patient_summary_view', patient_id=patient.id)
        return Response(payload, status=status.HTTP_200_OK)
