"""
Autopilot API views: apply, rollback, tracker intake, scheduler and the
direct website modifier.
"""
import logging

from django.utils import timezone
from rest_framework import status
from rest_framework.decorators import api_view, authentication_classes, permission_classes
from rest_framework.permissions import AllowAny, IsAuthenticated
from rest_framework.response import Response

from projects.models import Project
from visibility_hub.exceptions import flatten_errors

from .applier import ChangeApplier
from .authentication import SchedulerTokenAuthentication
from .cms import get_adapter
from .cms.base import Modification
from .config import AutopilotConfig
from .exceptions import AutopilotError, NotFound, PermissionDenied
from .issue_reporter import IssueReporter
from .permissions import IsSchedulerAuthenticated
from .rollback import RollbackService
from .scheduler import AutopilotScheduler
from .serializers import (
    ApplyChangesSerializer,
    ReportIssuesSerializer,
    RollbackChangesSerializer,
    ScheduleSerializer,
    WebsiteModifierSerializer,
)

logger = logging.getLogger(__name__)


def _invalid(serializer):
    return Response({
        'error': flatten_errors(serializer.errors),
        'details': serializer.errors,
    }, status=status.HTTP_400_BAD_REQUEST)


def _error(exc, **extra):
    return Response({'error': exc.message, **extra}, status=exc.status_code)


def _get_owned_project(request, project_id):
    """Return the project if the current user owns it."""
    project = Project.objects.filter(pk=project_id).first()
    if project is None:
        raise NotFound('Project not found')
    if project.user_id != request.user.id:
        raise PermissionDenied('You do not have permission to access this project')
    return project


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def apply_changes(request):
    """
    Apply the project's pending recommendations to its website.

    POST /api/v1/apply-changes/
    Body: { "projectId": "<uuid>" }

    Returns: { "appliedCount": 2, "appliedChanges": [...], "failedCount": 0, "message": "..." }
    """
    serializer = ApplyChangesSerializer(data=request.data)
    if not serializer.is_valid():
        return _invalid(serializer)

    try:
        project = _get_owned_project(request, serializer.validated_data['projectId'])
        summary = ChangeApplier(config=AutopilotConfig.from_settings()).apply_pending(project)
    except AutopilotError as e:
        return _error(e)
    return Response(summary, status=status.HTTP_200_OK)


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def rollback_changes(request):
    """
    Roll back one applied change.

    POST /api/v1/rollback-changes/
    Body: { "projectId": "<uuid>", "rollbackToken": "...", "reason": "..." (optional) }

    Returns: { "success": true, "message": "..." } or { "success": false, "error": "..." }
    """
    serializer = RollbackChangesSerializer(data=request.data)
    if not serializer.is_valid():
        return _invalid(serializer)
    data = serializer.validated_data

    try:
        project = _get_owned_project(request, data['projectId'])
        result = RollbackService(config=AutopilotConfig.from_settings()).rollback(
            project, data['rollbackToken'], reason=data.get('reason') or None,
        )
    except AutopilotError as e:
        return _error(e, success=False)

    if not result.success:
        return Response(result.as_dict(), status=status.HTTP_502_BAD_GATEWAY)
    return Response(result.as_dict(), status=status.HTTP_200_OK)


@api_view(['POST'])
@authentication_classes([])
@permission_classes([AllowAny])
def report_issues(request):
    """
    Tracker script intake. Called from customer websites, so no auth.

    POST /api/v1/report-issues/
    Body: { "projectId", "pageUrl", "issues": [...], "pageData": {...}, "trackerVersion" }

    Returns: { "success": true, "processedCount": 3, "recommendationsCreated": 2 }
    """
    serializer = ReportIssuesSerializer(data=request.data)
    if not serializer.is_valid():
        return _invalid(serializer)
    data = serializer.validated_data

    try:
        result = IssueReporter().report(
            data['projectId'],
            data['pageUrl'],
            data['issues'],
            page_data=data.get('pageData') or {},
            tracker_version=data.get('trackerVersion') or '',
        )
    except AutopilotError as e:
        return _error(e, success=False)
    return Response(result, status=status.HTTP_200_OK)


@api_view(['GET', 'POST'])
@authentication_classes([SchedulerTokenAuthentication])
@permission_classes([IsSchedulerAuthenticated])
def autopilot_scheduler(request):
    """
    Cron entry point.

    GET  /api/v1/autopilot-scheduler/  - run all due projects
    POST /api/v1/autopilot-scheduler/  - same, or { "action": "schedule", "projectId", "frequency" }
    Headers: X-Scheduler-Token: <AUTOPILOT_SCHEDULER_TOKEN>
    """
    scheduler = AutopilotScheduler(config=AutopilotConfig.from_settings())

    if request.method == 'POST' and request.data.get('action'):
        serializer = ScheduleSerializer(data=request.data)
        if not serializer.is_valid():
            return _invalid(serializer)
        project = Project.objects.filter(pk=serializer.validated_data['projectId']).first()
        if project is None:
            return _error(NotFound('Project not found'))
        try:
            result = scheduler.schedule(project, serializer.validated_data['frequency'])
        except AutopilotError as e:
            return _error(e)
        return Response(result, status=status.HTTP_200_OK)

    summary = scheduler.run_scheduled_tasks()
    if request.method == 'GET':
        summary = {
            'message': 'Scheduled tasks completed',
            'timestamp': timezone.now().isoformat(),
            **summary,
        }
    return Response(summary, status=status.HTTP_200_OK)


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def website_modifier(request):
    """
    Apply a single change through the project's CMS adapter, without
    touching recommendations or the changelog. The caller keeps the
    returned rollback data.

    POST /api/v1/website-modifier/
    Body: { "projectId", "actionType", "target",
            "changes": { "before", "after", "metadata" }, "rollbackToken" }

    Returns: { "success": true, "rollbackData": {...} } or { "success": false, "error": "..." }
    """
    serializer = WebsiteModifierSerializer(data=request.data)
    if not serializer.is_valid():
        return _invalid(serializer)
    data = serializer.validated_data

    try:
        project = _get_owned_project(request, data['projectId'])
    except AutopilotError as e:
        return _error(e, success=False)

    config = AutopilotConfig.from_settings()
    adapter = get_adapter(project.cms_provider, project.cms_credentials, config=config)
    modification = Modification(
        action_type=data['actionType'],
        target=data['target'],
        before=data['changes'].get('before') or '',
        after=data['changes']['after'],
        metadata=data['changes'].get('metadata') or {},
    )
    result = adapter.apply(modification)
    if adapter.refreshed_credentials is not None:
        project.store_credentials(adapter.refreshed_credentials)

    logger.info(
        "website-modifier %s on %s for project %s: %s",
        modification.action_type, modification.target, project.pk, 'ok' if result.success else result.error,
    )
    payload = result.as_dict()
    if data.get('rollbackToken'):
        payload['rollbackToken'] = data['rollbackToken']
    if not result.success:
        return Response(payload, status=status.HTTP_502_BAD_GATEWAY)
    return Response(payload, status=status.HTTP_200_OK)
