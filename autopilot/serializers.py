"""
Serializers for autopilot requests and records.
"""
from rest_framework import serializers

from projects.models import Project
from .models import ChangelogEntry, Recommendation


class ApplyChangesSerializer(serializers.Serializer):
    projectId = serializers.UUIDField()


class RollbackChangesSerializer(serializers.Serializer):
    projectId = serializers.UUIDField()
    rollbackToken = serializers.CharField(max_length=64)
    reason = serializers.CharField(required=False, allow_blank=True, max_length=1000)


class TrackerIssueSerializer(serializers.Serializer):
    """One issue as emitted by the tracker script."""
    category = serializers.CharField(max_length=50)
    type = serializers.CharField(max_length=100, required=False, allow_blank=True, default='')
    description = serializers.CharField(required=False, allow_blank=True, default='')
    priority = serializers.ChoiceField(choices=['high', 'medium', 'low'], required=False, default='medium')
    element = serializers.CharField(required=False, allow_blank=True)
    url = serializers.CharField(required=False, allow_blank=True)
    timestamp = serializers.CharField(required=False, allow_blank=True)


class ReportIssuesSerializer(serializers.Serializer):
    projectId = serializers.UUIDField()
    pageUrl = serializers.CharField(max_length=2048)
    issues = TrackerIssueSerializer(many=True)
    pageData = serializers.DictField(required=False, default=dict)
    trackerVersion = serializers.CharField(max_length=50, required=False, allow_blank=True, default='')


class ScheduleSerializer(serializers.Serializer):
    action = serializers.ChoiceField(choices=['schedule'])
    projectId = serializers.UUIDField()
    frequency = serializers.ChoiceField(choices=list(Project.FREQUENCY_INTERVALS))


class ModificationChangesSerializer(serializers.Serializer):
    before = serializers.CharField(required=False, allow_blank=True, default='')
    after = serializers.JSONField()
    metadata = serializers.DictField(required=False, default=dict)


class WebsiteModifierSerializer(serializers.Serializer):
    projectId = serializers.UUIDField()
    actionType = serializers.ChoiceField(choices=Project.SCOPES)
    target = serializers.CharField(max_length=2048)
    changes = ModificationChangesSerializer()
    rollbackToken = serializers.CharField(max_length=64, required=False, allow_blank=True)


class RecommendationSerializer(serializers.ModelSerializer):

    class Meta:
        model = Recommendation
        fields = (
            'id', 'action_type', 'title', 'description', 'target_page', 'target_element',
            'current_value', 'suggested_value', 'impact', 'effort', 'status', 'source',
            'rollback_token', 'error_message', 'completed_at', 'created_at', 'updated_at',
        )
        read_only_fields = fields


class ChangelogEntrySerializer(serializers.ModelSerializer):
    recommendation_id = serializers.UUIDField(read_only=True, allow_null=True)
    rollback_type = serializers.CharField(read_only=True)
    is_rolled_back = serializers.BooleanField(read_only=True)

    class Meta:
        model = ChangelogEntry
        fields = (
            'id', 'recommendation_id', 'action_type', 'description', 'applied_at',
            'rollback_token', 'rollback_type', 'diff', 'is_rolled_back',
            'rolled_back_at', 'rollback_reason',
        )
        read_only_fields = fields
