"""
Role-based permissions on top of ``customers.Customer.role``.
"""
from rest_framework.permissions import SAFE_METHODS, BasePermission

from customers.models import Customer


def _is_admin(user) -> bool:
    return bool(
        user is not None
        and getattr(user, 'is_authenticated', False)
        and getattr(user, 'role', None) == Customer.Role.ADMIN
    )


class IsAdminRole(BasePermission):
    message = 'Admin role required'

    def has_permission(self, request, view):
        return _is_admin(request.user)


class IsAdminOrReadOnly(BasePermission):
    """Public reads, admin-only writes."""
    message = 'Admin role required'

    def has_permission(self, request, view):
        if request.method in SAFE_METHODS:
            return True
        return _is_admin(request.user)


class IsCustomerRole(BasePermission):
    """Logged-in shop customers; admins have no cart."""
    message = 'Administrators cannot use a cart'

    def has_permission(self, request, view):
        user = request.user
        return bool(
            user is not None
            and getattr(user, 'is_authenticated', False)
            and not _is_admin(user)
        )
