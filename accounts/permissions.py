# accounts/permissions.py
from rest_framework.permissions import BasePermission, SAFE_METHODS

ADMIN_ROLE = "admin"


def _role(user):
    return getattr(user, "role", None)


class IsAdmin(BasePermission):
    """
    Role claim `admin` gates every admin operation.
    Anonymous requests fail authentication (401); other roles get 403.
    """
    message = "Admin access required."

    def has_permission(self, request, view):
        return bool(request.user and request.user.is_authenticated and _role(request.user) == ADMIN_ROLE)


class IsAdminOrReadOnly(BasePermission):
    def has_permission(self, request, view):
        if request.method in SAFE_METHODS:
            return bool(request.user and request.user.is_authenticated)
        return IsAdmin().has_permission(request, view)
