from django.contrib import admin
from .models import Project


@admin.register(Project)
class ProjectAdmin(admin.ModelAdmin):
    list_display = ('name', 'site_url', 'user', 'cms_provider', 'autopilot_enabled', 'site_script_status', 'last_autopilot_run')
    list_filter = ('cms_provider', 'autopilot_enabled', 'site_script_status', 'autopilot_frequency')
    search_fields = ('name', 'site_url', 'user__email')
    readonly_fields = ('created_at', 'updated_at', 'last_autopilot_run', 'next_autopilot_run')
    exclude = ('cms_credentials',)
