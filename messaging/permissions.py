"""
Role based permission classes.
"""
from rest_framework.permissions import BasePermission

from messaging.types import ROLE_STAFF


class IsStaffRole(BasePermission):
    """Allow access only to clinic staff."""
    def has_permission(self, request, view) -> bool:  # type: ignore[override]
        user = getattr(request, "user", None)
        return bool(user and user.is_authenticated and getattr(user, "role", None) == ROLE_STAFF)

