"""
URL routing for autopilot endpoints.
Note: These URLs are included at /api/v1/ level, so paths here are relative to that.
"""
import importlib

from django.urls import path
from django.views.decorators.csrf import csrf_exempt


def _lazy(attr):
    """Lazy view import to avoid AppRegistryNotReady."""
    @csrf_exempt
    def view(*args, **kwargs):
        return getattr(importlib.import_module('autopilot.views'), attr)(*args, **kwargs)
    return view


urlpatterns = [
    path('apply-changes/', _lazy('apply_changes'), name='apply-changes'),
    path('rollback-changes/', _lazy('rollback_changes'), name='rollback-changes'),
    # Tracker script posts here from customer sites
    path('report-issues/', _lazy('report_issues'), name='report-issues'),
    path('autopilot-scheduler/', _lazy('autopilot_scheduler'), name='autopilot-scheduler'),
    path('website-modifier/', _lazy('website_modifier'), name='website-modifier'),
]
