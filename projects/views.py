"""
Views for project management, the autopilot toggle, and a project's
recommendations and change log.
"""
import logging

from rest_framework import status, viewsets
from rest_framework.decorators import action
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from autopilot.models import Recommendation
from autopilot.serializers import ChangelogEntrySerializer, RecommendationSerializer

from .models import Project
from .permissions import IsProjectOwner
from .serializers import ProjectSerializer, ToggleAutopilotSerializer

logger = logging.getLogger(__name__)

DEFAULT_CHANGELOG_LIMIT = 10
MAX_CHANGELOG_LIMIT = 100


class ProjectViewSet(viewsets.ModelViewSet):
    """
    ViewSet for managing projects.

    list: GET /api/v1/projects/
    create: POST /api/v1/projects/
    retrieve: GET /api/v1/projects/{id}/
    update: PUT/PATCH /api/v1/projects/{id}/
    toggle_autopilot: POST /api/v1/projects/{id}/toggle-autopilot/
    recommendations: GET /api/v1/projects/{id}/recommendations/?status=todo
    changelog: GET /api/v1/projects/{id}/changelog/?limit=10
    """
    serializer_class = ProjectSerializer
    permission_classes = [IsAuthenticated, IsProjectOwner]
    # Projects are disabled, never deleted, so their change log survives
    http_method_names = ['get', 'post', 'put', 'patch', 'head', 'options']

    def get_queryset(self):
        """Return only projects owned by the current user."""
        return Project.objects.filter(user=self.request.user)

    def perform_create(self, serializer):
        project = serializer.save(user=self.request.user)
        logger.info("Project %s created for user %s", project.pk, self.request.user.pk)

    @action(detail=True, methods=['post'], url_path='toggle-autopilot')
    def toggle_autopilot(self, request, pk=None):
        """
        Enable or disable the autopilot.

        POST /api/v1/projects/{id}/toggle-autopilot/
        Body: { "enabled": true, "scopes": ["meta", "h1"] (optional) }
        """
        project = self.get_object()
        serializer = ToggleAutopilotSerializer(data=request.data)
        if not serializer.is_valid():
            return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

        enabled = serializer.validated_data['enabled']
        scopes = serializer.validated_data.get('scopes')
        if scopes is None:
            scopes = project.autopilot_scopes or Project.DEFAULT_AUTOPILOT_SCOPES
        project.autopilot_enabled = enabled
        project.autopilot_scopes = list(dict.fromkeys(scopes))
        project.save(update_fields=['autopilot_enabled', 'autopilot_scopes', 'updated_at'])
        logger.info("Autopilot %s for project %s (scopes %s)",
                    'enabled' if enabled else 'disabled', project.pk, project.autopilot_scopes)

        dry_run = None
        if enabled:
            pending = Recommendation.objects.pending_for(project).count()
            dry_run = {
                'canApplyFixes': project.site_script_status == 'connected',
                'cmsConnected': project.has_cms_connection,
                'pendingRecommendations': pending,
                'estimatedChanges': min(pending, 10),
            }

        return Response({
            'success': True,
            'project': ProjectSerializer(project).data,
            'dryRunResults': dry_run,
            'message': f'Autopilot {"enabled" if enabled else "disabled"} successfully',
        })

    @action(detail=True, methods=['get'])
    def recommendations(self, request, pk=None):
        """
        GET /api/v1/projects/{id}/recommendations/?status=todo&action_type=meta
        """
        project = self.get_object()
        queryset = project.recommendations.with_impact_rank().order_by('-impact_rank', '-created_at')
        status_filter = request.query_params.get('status')
        if status_filter:
            queryset = queryset.filter(status=status_filter)
        action_type = request.query_params.get('action_type')
        if action_type:
            queryset = queryset.filter(action_type=action_type)

        page = self.paginate_queryset(queryset)
        if page is not None:
            return self.get_paginated_response(RecommendationSerializer(page, many=True).data)
        return Response(RecommendationSerializer(queryset, many=True).data)

    @action(detail=True, methods=['get'])
    def changelog(self, request, pk=None):
        """
        Most recent applied changes first.

        GET /api/v1/projects/{id}/changelog/?limit=10
        """
        project = self.get_object()
        try:
            limit = int(request.query_params.get('limit', DEFAULT_CHANGELOG_LIMIT))
        except ValueError:
            return Response({'error': 'limit must be an integer'}, status=status.HTTP_400_BAD_REQUEST)
        limit = max(1, min(limit, MAX_CHANGELOG_LIMIT))

        entries = project.changelog.order_by('-applied_at')[:limit]
        data = ChangelogEntrySerializer(entries, many=True).data
        return Response({'changelog': data, 'count': len(data)})
