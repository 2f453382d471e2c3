from rest_framework import serializers

from clinicdesk.core.models import User
from clinicdesk.patients.models import Patient
from clinicdesk.prescriptions.models import Prescription, RefillRecord
from clinicdesk.prescriptions import services


class RefillRecordSerializer(serializers.ModelSerializer):
    created_by_name = serializers.SerializerMethodField()

    class Meta:
        model = RefillRecord
        fields = [
            'id',
            'prescription',
            'refill_date',
            'status',
            'method',
            'notes',
            'created_by',
            'created_by_name',
            'created_at',
        ]
        read_only_fields = fields

    def get_created_by_name(self, obj):
        return obj.created_by.display_name() if obj.created_by else None


class PrescriptionSerializer(serializers.ModelSerializer):
    """Read serializer; expects ``refill_records`` to be prefetched."""

    patient_name = serializers.CharField(source='patient.full_name', read_only=True)
    doctor_name = serializers.SerializerMethodField()
    next_refill_date = serializers.SerializerMethodField()
    adherence_rate = serializers.SerializerMethodField()

    class Meta:
        model = Prescription
        fields = [
            'id',
            'patient',
            'patient_name',
            'doctor',
            'doctor_name',
            'medication_name',
            'dosage',
            'dosage_unit',
            'frequency',
            'route',
            'quantity',
            'refills',
            'duration_days',
            'start_date',
            'end_date',
            'indication',
            'instructions',
            'pharmacy_name',
            'pharmacy_phone',
            'monitoring_required',
            'notes',
            'status',
            'status_reason',
            'next_refill_date',
            'adherence_rate',
            'created_at',
            'updated_at',
        ]
        read_only_fields = fields

    def get_doctor_name(self, obj):
        return obj.doctor.display_name()

    def get_next_refill_date(self, obj):
        if obj.status != Prescription.STATUS_ACTIVE:
            return None
        return services.next_refill_date(obj).isoformat()

    def get_adherence_rate(self, obj):
        return services.adherence_rate(obj)


class PrescriptionWriteSerializer(serializers.ModelSerializer):
    """Create/update serializer. Status is changed through the status endpoint only."""

    patient = serializers.PrimaryKeyRelatedField(queryset=Patient.objects.using('default').all())
    doctor = serializers.PrimaryKeyRelatedField(
        queryset=User.objects.using('default').all(),
        required=False,
    )

    class Meta:
        model = Prescription
        fields = [
            'id',
            'patient',
            'doctor',
            'medication_name',
            'dosage',
            'dosage_unit',
            'frequency',
            'route',
            'quantity',
            'refills',
            'duration_days',
            'start_date',
            'end_date',
            'indication',
            'instructions',
            'pharmacy_name',
            'pharmacy_phone',
            'monitoring_required',
            'notes',
        ]
        read_only_fields = ['id']

    def validate_medication_name(self, value):
        value = (value or '').strip()
        if not value:
            raise serializers.ValidationError('medication_name is required.')
        return value

    def validate_refills(self, value):
        if value < 0 or value > Prescription.MAX_REFILLS:
            raise serializers.ValidationError(f'refills must be between 0 and {Prescription.MAX_REFILLS}.')
        return value

    def validate_duration_days(self, value):
        if value <= 0:
            raise serializers.ValidationError('duration_days must be greater than 0.')
        return value

    def validate_doctor(self, value):
        if getattr(value.role, 'name', None) != 'doctor':
            raise serializers.ValidationError('Selected user is not a doctor.')
        return value

    def validate(self, attrs):
        request = self.context.get('request')
        user = getattr(request, 'user', None)
        user_is_doctor = getattr(getattr(user, 'role', None), 'name', None) == 'doctor'

        doctor = attrs.get('doctor') or getattr(self.instance, 'doctor', None)
        if doctor is None:
            if not user_is_doctor:
                raise serializers.ValidationError({'doctor': 'doctor is required.'})
            attrs['doctor'] = doctor = user
        if user_is_doctor and doctor.pk != user.pk:
            raise serializers.ValidationError({'doctor': 'Doctors can only prescribe under their own name.'})

        start_date = attrs.get('start_date') or getattr(self.instance, 'start_date', None)
        end_date = attrs.get('end_date', getattr(self.instance, 'end_date', None))
        if start_date and end_date and end_date < start_date:
            raise serializers.ValidationError({'end_date': 'end_date cannot be before start_date.'})
        return attrs

    def create(self, validated_data):
        return Prescription.objects.using('default').create(**validated_data)

    def update(self, instance, validated_data):
        for attr, value in validated_data.items():
            setattr(instance, attr, value)
        instance.save(using='default')
        return instance


class PrescriptionStatusSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=Prescription.STATUS_CHOICES)
    reason = serializers.CharField(required=False, allow_blank=True, default='')


class RefillCreateSerializer(serializers.Serializer):
    refill_date = serializers.DateField(required=False)
    method = serializers.ChoiceField(choices=RefillRecord.METHOD_CHOICES, default='pharmacy')
    notes = serializers.CharField(required=False, allow_blank=True, default='')


class SafetyCheckSerializer(serializers.Serializer):
    patient_id = serializers.IntegerField()
    medication_name = serializers.CharField(max_length=200)

    def validate_patient_id(self, value):
        if not Patient.objects.using('default').filter(id=value).exists():
            raise serializers.ValidationError('Patient not found.')
        return value
