"""Core permissions for RBAC (Role-Based Access Control).

This module provides the base permission class used by every app,
following the project's RBAC pattern with read_roles/write_roles.

Standard roles: admin, assistant, doctor, billing, nurse
"""

from rest_framework.permissions import BasePermission, SAFE_METHODS


class RBACPermission(BasePermission):
    """Base class for RBAC permissions with read_roles/write_roles pattern.

    Subclasses should define:
    - read_roles: set of role names that can perform GET/HEAD/OPTIONS
    - write_roles: set of role names that can perform POST/PUT/PATCH
    - delete_roles: optional set for DELETE (defaults to write_roles)

    Example:
        class InvoicePermission(RBACPermission):
            read_roles = {"admin", "billing", "assistant"}
            write_roles = {"admin", "billing"}
    """

    read_roles: set = set()
    write_roles: set = set()
    delete_roles: set | None = None

    def _role_name(self, request):
        user = getattr(request, "user", None)
        role = getattr(user, "role", None)
        return getattr(role, "name", None)

    def _allowed_roles(self, method):
        if method in SAFE_METHODS:
            return self.read_roles
        if method == "DELETE" and self.delete_roles is not None:
            return self.delete_roles
        return self.write_roles

    def has_permission(self, request, view):
        user = getattr(request, "user", None)
        if not user or not user.is_authenticated:
            return False

        role_name = self._role_name(request)
        if not role_name:
            return False

        return role_name in self._allowed_roles(request.method)

    def has_object_permission(self, request, view, obj):
        # Default: same as has_permission
        # Subclasses can override for object-level checks (e.g., doctor owns record)
        role_name = self._role_name(request)
        if not role_name:
            return False
        return role_name in self._allowed_roles(request.method)


class IsRole(BasePermission):
    """Simple role check for endpoints without a read/write split."""

    allowed_roles: list = []

    def has_permission(self, request, view):
        user = request.user
        if not user or not user.is_authenticated:
            return False
        if not getattr(user, 'role', None):
            return False
        return user.role.name in self.allowed_roles


class IsAdmin(IsRole):
    """Permission: user must have admin role."""

    allowed_roles = ["admin"]
