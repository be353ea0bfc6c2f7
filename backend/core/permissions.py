"""
Permission classes for role-based access control.

Role is read from request.user (authenticated via JWT).
Role is NEVER read from request body, query parameters, or headers.
"""

from rest_framework import permissions

VALID_ROLES = ("user", "admin")


def _has_valid_role(request):
    if not request.user or not request.user.is_authenticated:
        return False

    if not hasattr(request.user, "role"):
        return False

    return request.user.role in VALID_ROLES


class IsAdmin(permissions.BasePermission):
    """Allow admin role only."""

    def has_permission(self, request, view):
        if not _has_valid_role(request):
            return False

        return request.user.role == "admin"


class IsReporterOrAdmin(permissions.BasePermission):
    """Allow any authenticated user carrying a known role."""

    def has_permission(self, request, view):
        return _has_valid_role(request)
