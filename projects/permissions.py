"""
Custom permissions for projects app.
"""
from rest_framework import permissions


class IsProjectOwner(permissions.BasePermission):
    """
    Permission to check if user owns the project.
    """
    def has_object_permission(self, request, view, obj):
        return obj.user == request.user
