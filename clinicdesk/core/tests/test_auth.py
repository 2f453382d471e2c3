"""Tests for authentication and health endpoints.

Tests cover:
- Health (GET /api/health/)
- Login (POST /api/auth/login/)
- Refresh (POST /api/auth/refresh/)
- Me (GET /api/auth/me/)
"""

from __future__ import annotations

from django.test import TestCase

from rest_framework import status
from rest_framework.test import APIClient
from rest_framework_simplejwt.tokens import AccessToken

from clinicdesk.core.models import Role, User


class AuthenticationTest(TestCase):
    """Tests for /api/auth/ endpoints."""

    databases = {"default"}

    def setUp(self):
        self.role_admin, _ = Role.objects.using("default").get_or_create(
            name="admin",
            defaults={"label": "Administrator"},
        )
        self.role_billing, _ = Role.objects.using("default").get_or_create(
            name="billing",
            defaults={"label": "Billing"},
        )

        self.admin = User.objects.db_manager("default").create_user(
            username="admin_auth_test",
            email="admin_auth@example.com",
            password="SecurePass123!",
            role=self.role_admin,
        )
        self.billing = User.objects.db_manager("default").create_user(
            username="billing_auth_test",
            email="billing_auth@example.com",
            password="SecurePass123!",
            role=self.role_billing,
        )
        User.objects.db_manager("default").create_user(
            username="inactive_auth_test",
            email="inactive_auth@example.com",
            password="SecurePass123!",
            role=self.role_billing,
            is_active=False,
        )

        self.client = APIClient()
        self.client.defaults["HTTP_HOST"] = "localhost"

    def _login(self, username="admin_auth_test", password="SecurePass123!"):
        return self.client.post(
            "/api/auth/login/",
            {"username": username, "password": password},
            format="json",
        )

    def test_health_needs_no_auth(self):
        response = self.client.get("/api/health/")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json(), {"status": "ok"})

    # ========== LOGIN ==========

    def test_login_success_returns_tokens_and_user(self):
        response = self._login()

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertIn("access", response.data)
        self.assertIn("refresh", response.data)
        self.assertEqual(response.data["user"]["id"], self.admin.id)
        self.assertEqual(response.data["user"]["role"]["name"], "admin")

    def test_login_wrong_password_returns_400(self):
        response = self._login(password="WrongPassword!")

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertNotIn("access", response.data)

    def test_login_inactive_user_returns_400(self):
        response = self._login(username="inactive_auth_test")
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_login_missing_fields_returns_400(self):
        response = self.client.post("/api/auth/login/", {"username": "admin_auth_test"}, format="json")
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_access_token_contains_role(self):
        response = self._login(username="billing_auth_test")
        token = AccessToken(response.data["access"])
        self.assertEqual(token["role"], "billing")

    # ========== REFRESH ==========

    def test_refresh_returns_new_access_token(self):
        refresh_token = self._login().data["refresh"]

        response = self.client.post("/api/auth/refresh/", {"refresh": refresh_token}, format="json")

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertTrue(response.data["access"])

    def test_refresh_invalid_token_returns_400(self):
        response = self.client.post("/api/auth/refresh/", {"refresh": "invalid_token_here"}, format="json")
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    # ========== ME ==========

    def test_me_with_valid_token_returns_user(self):
        access_token = self._login(username="billing_auth_test").data["access"]

        self.client.credentials(HTTP_AUTHORIZATION=f"Bearer {access_token}")
        response = self.client.get("/api/auth/me/")

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data["username"], "billing_auth_test")
        self.assertEqual(response.data["role"]["name"], "billing")

    def test_me_without_token_returns_401(self):
        response = self.client.get("/api/auth/me/")
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_me_with_invalid_token_returns_401(self):
        self.client.credentials(HTTP_AUTHORIZATION="Bearer invalid_token_here")
        response = self.client.get("/api/auth/me/")
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)
