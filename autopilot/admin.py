from django.contrib import admin
from .models import ChangelogEntry, Recommendation, TrackerLog


@admin.register(Recommendation)
class RecommendationAdmin(admin.ModelAdmin):
    list_display = ('title', 'action_type', 'project', 'impact', 'status', 'source', 'created_at')
    list_filter = ('status', 'action_type', 'impact', 'source')
    search_fields = ('title', 'target_page', 'project__name')
    readonly_fields = ('rollback_token', 'completed_at', 'created_at', 'updated_at')


@admin.register(ChangelogEntry)
class ChangelogEntryAdmin(admin.ModelAdmin):
    list_display = ('description', 'action_type', 'project', 'applied_at', 'rolled_back_at')
    list_filter = ('action_type', 'applied_at')
    search_fields = ('description', 'rollback_token', 'project__name')
    readonly_fields = ('rollback_token', 'rollback_data', 'diff', 'rollback_result', 'applied_at', 'rolled_back_at')


@admin.register(TrackerLog)
class TrackerLogAdmin(admin.ModelAdmin):
    list_display = ('page_url', 'project', 'issues_detected', 'tracker_version', 'detected_at')
    list_filter = ('tracker_version',)
    search_fields = ('page_url', 'project__name')
