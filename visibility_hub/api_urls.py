"""
API URL routing for visibility_hub.
All API endpoints are prefixed with /api/v1/
"""
from django.urls import path, include

from .views import health_check

urlpatterns = [
    # Health check (no auth) - GET /api/v1/health/
    path('health/', health_check),
    # Dashboard authentication
    path('auth/', include('accounts.urls')),
    # Projects, autopilot toggle, recommendations and changelog
    path('projects/', include('projects.urls')),
    # Autopilot endpoints: apply, rollback, tracker intake, scheduler, modifier
    path('', include('autopilot.urls')),
]
