"""
Custom permission classes for the cold-storage marketplace.
"""

from rest_framework import permissions


class IsColdStorageOwner(permissions.BasePermission):
    """
    Permission class that allows only cold-storage operators to access the endpoint.

    This permission checks if the authenticated user has role='coldstorage'.
    Returns 403 Forbidden for every other role.

    Usage:
        class MyView(APIView):
            permission_classes = [IsAuthenticated, IsColdStorageOwner]
    """

    message = 'Only cold storage owners can perform this action.'

    def has_permission(self, request, view):
        """
        Check if user is authenticated and operates cold storage.

        Args:
            request: HTTP request object
            view: View being accessed

        Returns:
            bool: True if user is a cold-storage owner, False otherwise
        """
        if not request.user or not request.user.is_authenticated:
            return False

        return getattr(request.user, 'role', None) == 'coldstorage'


class IsFacilityOwner(permissions.BasePermission):
    """
    Object-level permission: only the owner of a facility may act on it.

    The booking ledger enforces the same rule for capacity and booking
    writes; this class covers plain listing edits.
    """

    message = 'Not authorized'

    def has_object_permission(self, request, view, obj):
        if not request.user or not request.user.is_authenticated:
            return False

        return obj.owner_id == request.user.id
