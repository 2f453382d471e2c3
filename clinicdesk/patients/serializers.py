from django.utils import timezone

from rest_framework import serializers

from clinicdesk.patients.models import Patient


def _normalize_string_list(value, field_name):
    """Strip, drop empties and de-duplicate (case-insensitive, order kept)."""
    if value is None:
        return []
    if not isinstance(value, list):
        raise serializers.ValidationError(f'{field_name} must be a list of strings.')

    seen = set()
    cleaned = []
    for item in value:
        if not isinstance(item, str):
            raise serializers.ValidationError(f'{field_name} must be a list of strings.')
        item = item.strip()
        if not item or item.lower() in seen:
            continue
        seen.add(item.lower())
        cleaned.append(item)
    return cleaned


class PatientReadSerializer(serializers.ModelSerializer):
    """Full patient record for clinical roles."""

    full_name = serializers.CharField(read_only=True)
    age = serializers.SerializerMethodField()

    class Meta:
        model = Patient
        fields = [
            'id',
            'first_name',
            'last_name',
            'full_name',
            'birth_date',
            'age',
            'gender',
            'phone',
            'email',
            'address',
            'insurance_provider',
            'insurance_number',
            'allergies',
            'current_medications',
            'medical_history',
            'status',
            'created_at',
            'updated_at',
        ]
        read_only_fields = fields

    def get_age(self, obj):
        return obj.age()


class PatientBillingSerializer(serializers.ModelSerializer):
    """Reduced patient data for the billing role (no clinical info)."""

    full_name = serializers.CharField(read_only=True)

    class Meta:
        model = Patient
        fields = [
            'id',
            'first_name',
            'last_name',
            'full_name',
            'phone',
            'email',
            'address',
            'insurance_provider',
            'insurance_number',
            'status',
            'created_at',
            'updated_at',
        ]
        read_only_fields = fields


class PatientWriteSerializer(serializers.ModelSerializer):
    """Write serializer for create/update operations."""

    class Meta:
        model = Patient
        fields = [
            'id',
            'first_name',
            'last_name',
            'birth_date',
            'gender',
            'phone',
            'email',
            'address',
            'insurance_provider',
            'insurance_number',
            'allergies',
            'current_medications',
            'medical_history',
            'status',
        ]
        read_only_fields = ['id']

    def validate_first_name(self, value):
        value = (value or '').strip()
        if not value:
            raise serializers.ValidationError('first_name is required.')
        return value

    def validate_last_name(self, value):
        value = (value or '').strip()
        if not value:
            raise serializers.ValidationError('last_name is required.')
        return value

    def validate_birth_date(self, value):
        if value > timezone.localdate():
            raise serializers.ValidationError('birth_date cannot be in the future.')
        return value

    def validate_allergies(self, value):
        return _normalize_string_list(value, 'allergies')

    def validate_current_medications(self, value):
        return _normalize_string_list(value, 'current_medications')

    def create(self, validated_data):
        return Patient.objects.using('default').create(**validated_data)

    def update(self, instance, validated_data):
        for attr, value in validated_data.items():
            setattr(instance, attr, value)
        instance.save(using='default')
        return instance


def patient_serializer_for(user, *, write=False):
    """Pick the serializer class for a request user."""
    if write:
        return PatientWriteSerializer
    role = getattr(user, 'role', None)
    if role and role.name == 'billing':
        return PatientBillingSerializer
    return PatientReadSerializer
