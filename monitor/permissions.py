"""
Custom permission classes for role based access control.
"""
from rest_framework.permissions import BasePermission

STAFF_ROLES = {"doctor", "receptionist"}


class _RolePermission(BasePermission):
    roles: set[str] = set()

    def has_permission(self, request, view) -> bool:  # type: ignore[override]
        user = getattr(request, "user", None)
        return bool(user and user.is_authenticated and getattr(user, "role", None) in self.roles)


class IsDoctor(_RolePermission):
    """Allow access only to doctors."""
    roles = {"doctor"}


class IsReceptionist(_RolePermission):
    """Allow access only to reception staff."""
    roles = {"receptionist"}
    message = "Only receptionists can perform this action"


class IsPatientRole(_RolePermission):
    """Allow access only to users with the patient role."""
    roles = {"patient"}


class IsStaffRole(_RolePermission):
    """doctor or receptionist."""
    roles = STAFF_ROLES
