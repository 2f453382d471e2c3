"""Core app views.

Contains:
- health: Health check endpoint
- LoginView: JWT token obtain with user/role info
- RefreshView: JWT token refresh
- MeView: Current authenticated user info
- AuditLogListView: Audit trail (admin only)
"""

import logging

from django.db import DatabaseError, connection
from django.http import JsonResponse

from rest_framework import generics, status
from rest_framework.permissions import AllowAny, IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView
from rest_framework_simplejwt.tokens import RefreshToken

from clinicdesk.core.models import AuditLog
from clinicdesk.core.permissions import IsAdmin
from clinicdesk.core.serializers import (
    AuditLogSerializer,
    LoginSerializer,
    RefreshSerializer,
    RoleSerializer,
    UserMeSerializer,
)

logger = logging.getLogger(__name__)


def health(request):
    """Health check endpoint - no authentication required."""
    try:
        with connection.cursor() as cursor:
            cursor.execute('SELECT 1;')
    except DatabaseError as exc:
        logger.error('Health check failed: %s', exc)
        return JsonResponse({'status': 'error', 'detail': str(exc)}, status=503)

    return JsonResponse({'status': 'ok'})


class LoginView(APIView):
    """Obtain JWT access and refresh tokens.

    POST /api/auth/login/
    Body: {"username": "...", "password": "..."}
    Returns: {"user": {...}, "access": "...", "refresh": "..."}
    """

    permission_classes = [AllowAny]
    authentication_classes = []

    def post(self, request, *args, **kwargs):
        serializer = LoginSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        user = serializer.validated_data['user']

        refresh = RefreshToken.for_user(user)
        role = getattr(user, 'role', None)
        refresh['role'] = role.name if role else None
        access = refresh.access_token

        logger.info('User %s logged in (role=%s)', user.username, refresh['role'])

        return Response(
            {
                'user': {
                    'id': user.id,
                    'username': user.username,
                    'email': user.email,
                    'first_name': user.first_name,
                    'last_name': user.last_name,
                    'role': RoleSerializer(role).data if role else None,
                },
                'access': str(access),
                'refresh': str(refresh),
            },
            status=status.HTTP_200_OK,
        )


class RefreshView(APIView):
    """Refresh JWT access token.

    POST /api/auth/refresh/
    Body: {"refresh": "..."}
    Returns: {"access": "..."}
    """

    permission_classes = [AllowAny]
    authentication_classes = []

    def post(self, request, *args, **kwargs):
        serializer = RefreshSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        refresh = RefreshToken(serializer.validated_data['refresh'])
        return Response({'access': str(refresh.access_token)}, status=status.HTTP_200_OK)


class MeView(APIView):
    """Get current authenticated user info.

    GET /api/auth/me/
    """

    permission_classes = [IsAuthenticated]

    def get(self, request, *args, **kwargs):
        serializer = UserMeSerializer(request.user)
        return Response(serializer.data, status=status.HTTP_200_OK)


class AuditLogListView(generics.ListAPIView):
    """Audit trail, filterable by ?patient_id= and ?action=."""

    permission_classes = [IsAdmin]
    serializer_class = AuditLogSerializer

    def get_queryset(self):
        qs = AuditLog.objects.using('default').select_related('user')
        patient_id = self.request.query_params.get('patient_id')
        if patient_id and patient_id.isdigit():
            qs = qs.filter(patient_id=int(patient_id))
        action = (self.request.query_params.get('action') or '').strip()
        if action:
            qs = qs.filter(action=action)
        return qs
