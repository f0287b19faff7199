"""
Serializers for projects.
"""
from rest_framework import serializers

from .credentials import CredentialsError, validate_credentials
from .models import Project


class ProjectSerializer(serializers.ModelSerializer):
    """Project with write-only CMS credentials."""
    cms_credentials = serializers.JSONField(write_only=True, required=False)
    has_cms_connection = serializers.BooleanField(read_only=True)
    pending_recommendations = serializers.SerializerMethodField()

    class Meta:
        model = Project
        fields = (
            'id', 'name', 'site_url', 'cms_provider', 'cms_credentials', 'has_cms_connection',
            'site_script_status', 'autopilot_enabled', 'autopilot_scopes', 'autopilot_frequency',
            'last_autopilot_run', 'next_autopilot_run', 'pending_recommendations',
            'created_at', 'updated_at',
        )
        read_only_fields = (
            'id', 'autopilot_enabled', 'autopilot_scopes', 'last_autopilot_run',
            'next_autopilot_run', 'created_at', 'updated_at',
        )

    def get_pending_recommendations(self, obj):
        return obj.recommendations.filter(status='todo').count()

    def validate(self, attrs):
        provider = attrs.get('cms_provider', getattr(self.instance, 'cms_provider', 'manual'))
        if 'cms_credentials' in attrs:
            credentials = attrs['cms_credentials'] or {}
        else:
            credentials = getattr(self.instance, 'cms_credentials', None) or {}
        # Empty credentials are allowed: changes become manual instructions
        if credentials:
            try:
                validate_credentials(provider, credentials)
            except CredentialsError as e:
                raise serializers.ValidationError({'cms_credentials': str(e)})
        if 'cms_credentials' in attrs:
            attrs['cms_credentials'] = credentials
        return attrs


class ToggleAutopilotSerializer(serializers.Serializer):
    enabled = serializers.BooleanField()
    scopes = serializers.ListField(
        child=serializers.ChoiceField(choices=Project.SCOPES),
        required=False,
    )
