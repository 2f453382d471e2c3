"""Serializers for the core app.

Contains serializers for User, Role, AuditLog and the JWT auth endpoints.
"""

from django.contrib.auth import authenticate

from rest_framework import serializers
from rest_framework_simplejwt.exceptions import TokenError
from rest_framework_simplejwt.tokens import RefreshToken

from clinicdesk.core.models import AuditLog, Role, User


# -----------------------------------------------------------------------------
# Role / User Serializers
# -----------------------------------------------------------------------------


class RoleSerializer(serializers.ModelSerializer):
    """Read-only serializer for Role model."""

    class Meta:
        model = Role
        fields = ['id', 'name', 'label']
        read_only_fields = fields


class UserListSerializer(serializers.ModelSerializer):
    """Lightweight serializer for User lists and nested references."""

    role_name = serializers.CharField(source='role.name', read_only=True, allow_null=True)
    display_name = serializers.CharField(read_only=True)

    class Meta:
        model = User
        fields = ['id', 'username', 'first_name', 'last_name', 'display_name', 'role_name']
        read_only_fields = fields


class UserMeSerializer(serializers.ModelSerializer):
    """Serializer for the /auth/me/ endpoint.

    Returns current user info with role details.
    """

    role = RoleSerializer(read_only=True)

    class Meta:
        model = User
        fields = [
            'id',
            'username',
            'email',
            'first_name',
            'last_name',
            'phone',
            'is_active',
            'role',
        ]
        read_only_fields = fields


# -----------------------------------------------------------------------------
# AuditLog Serializers
# -----------------------------------------------------------------------------


class AuditLogSerializer(serializers.ModelSerializer):
    """Read-only serializer for AuditLog model."""

    user_display = serializers.SerializerMethodField()

    class Meta:
        model = AuditLog
        fields = [
            'id',
            'user',
            'user_display',
            'role_name',
            'action',
            'patient_id',
            'timestamp',
            'meta',
        ]
        read_only_fields = fields

    def get_user_display(self, obj):
        """Return username or 'System' if no user."""
        user = getattr(obj, 'user', None)
        if user is None:
            return 'System'
        return getattr(user, 'username', 'Unknown')


# -----------------------------------------------------------------------------
# Authentication Serializers
# -----------------------------------------------------------------------------


class LoginSerializer(serializers.Serializer):
    """Validates credentials and returns the user."""

    username = serializers.CharField(required=True)
    password = serializers.CharField(required=True, write_only=True)

    def validate(self, attrs):
        username = attrs.get('username')
        password = attrs.get('password')

        if not username or not password:
            raise serializers.ValidationError('Username and password are required.')

        # ModelBackend refuses inactive users, so check them first to report
        # a specific error.
        candidate = User.objects.using('default').filter(username=username).first()
        if candidate is not None and not candidate.is_active and candidate.check_password(password):
            raise serializers.ValidationError('User account is disabled.')

        user = authenticate(username=username, password=password)
        if user is None:
            raise serializers.ValidationError('Invalid credentials.')

        attrs['user'] = user
        return attrs


class RefreshSerializer(serializers.Serializer):
    """Validates a refresh token."""

    refresh = serializers.CharField(required=True)

    def validate_refresh(self, value):
        try:
            RefreshToken(value)
        except TokenError as e:
            raise serializers.ValidationError(f'Invalid or expired refresh token: {e}')
        return value
