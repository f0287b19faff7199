"""
Custom permissions for autopilot endpoints.
"""
from rest_framework import permissions


class IsSchedulerAuthenticated(permissions.BasePermission):
    """
    Allow requests authenticated with the scheduler token.
    """
    def has_permission(self, request, view):
        return isinstance(request.auth, dict) and request.auth.get('auth_type') == 'scheduler'
