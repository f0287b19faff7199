"""
Autopilot models: recommendations, the change log and tracker reports.
"""
import uuid

from django.db import models
from django.db.models import Case, IntegerField, Q, Value, When
from django.utils import timezone

from projects.models import Project

from .cms.base import DEFAULT_CHANGE_FIELD, Modification

IMPACT_CHOICES = [
    ('high', 'High'),
    ('medium', 'Medium'),
    ('low', 'Low'),
]
IMPACT_RANK = {'high': 3, 'medium': 2, 'low': 1}


class RecommendationQuerySet(models.QuerySet):

    def with_impact_rank(self):
        return self.annotate(impact_rank=Case(
            When(impact='high', then=Value(3)),
            When(impact='medium', then=Value(2)),
            default=Value(1),
            output_field=IntegerField(),
        ))

    def open(self):
        return self.filter(status__in=[Recommendation.STATUS_TODO, Recommendation.STATUS_IN_PROGRESS])

    def pending_for(self, project):
        """Todo recommendations inside the project's scopes, highest impact first."""
        return (
            self.filter(
                project=project,
                status=Recommendation.STATUS_TODO,
                action_type__in=project.autopilot_scopes or [],
            )
            .with_impact_rank()
            .order_by('-impact_rank', 'created_at')
        )


class Recommendation(models.Model):
    """
    A single proposed change to a project's website.

    Created from tracker or audit issues (or by hand), applied by the
    ChangeApplier, and reset to ``todo`` when its change is rolled back.
    """
    STATUS_TODO = 'todo'
    STATUS_IN_PROGRESS = 'in_progress'
    STATUS_COMPLETED = 'completed'
    STATUS_FAILED = 'failed'

    STATUS_CHOICES = [
        (STATUS_TODO, 'To do'),
        (STATUS_IN_PROGRESS, 'In progress'),
        (STATUS_COMPLETED, 'Completed'),
        (STATUS_FAILED, 'Failed'),
    ]

    SOURCE_CHOICES = [
        ('manual', 'Manual'),
        ('tracker', 'Tracker script'),
        ('audit', 'Server-side audit'),
    ]

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    project = models.ForeignKey(Project, on_delete=models.CASCADE, related_name='recommendations')
    action_type = models.CharField(max_length=30, choices=Project.SCOPE_CHOICES)
    title = models.CharField(max_length=255)
    description = models.TextField(blank=True, default='')
    target_page = models.CharField(max_length=2048)
    target_element = models.CharField(max_length=2048, blank=True, null=True)
    current_value = models.TextField(blank=True, default='')
    suggested_value = models.TextField(blank=True, default='')
    impact = models.CharField(max_length=10, choices=IMPACT_CHOICES, default='medium')
    effort = models.CharField(max_length=10, choices=IMPACT_CHOICES, default='low')
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default=STATUS_TODO, db_index=True)
    source = models.CharField(max_length=20, choices=SOURCE_CHOICES, default='manual')
    rollback_token = models.CharField(max_length=64, unique=True, null=True, blank=True)
    error_message = models.TextField(blank=True, default='')
    metadata = models.JSONField(default=dict, blank=True)
    completed_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = RecommendationQuerySet.as_manager()

    class Meta:
        db_table = 'recommendations'
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['project', 'status'], name='recs_project_status_idx'),
            models.Index(fields=['project', 'action_type'], name='recs_project_action_idx'),
        ]

    def __str__(self):
        return f"{self.action_type}: {self.title} ({self.status})"

    @property
    def dedup_key(self):
        return (self.action_type, self.target_page, self.title)

    def change_payload(self):
        """The suggested value keyed by the field it writes (title, description, h1...)."""
        field = (self.metadata or {}).get('field') or DEFAULT_CHANGE_FIELD.get(self.action_type, 'value')
        return {field: self.suggested_value}

    def to_modification(self):
        # Alt text changes address the image, everything else the page
        target = self.target_page
        if self.action_type == 'altText' and self.target_element:
            target = self.target_element
        return Modification(
            action_type=self.action_type,
            target=target,
            before=self.current_value or '',
            after=self.change_payload(),
            metadata={
                'recommendationId': str(self.pk),
                'targetPage': self.target_page,
                **{k: v for k, v in (self.metadata or {}).items() if k in ('field', 'issueType', 'manualOnly', 'mediaId', 'productId', 'imageId')},
            },
        )


class ChangelogEntry(models.Model):
    """
    One applied change. ``rollback_token`` is single use: once
    ``rolled_back_at`` is set the entry can no longer be reverted.
    """
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    project = models.ForeignKey(Project, on_delete=models.CASCADE, related_name='changelog')
    recommendation = models.ForeignKey(
        Recommendation,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='changelog_entries'
    )
    action_type = models.CharField(max_length=30)
    description = models.TextField(blank=True, default='')
    applied_at = models.DateTimeField(default=timezone.now)
    rollback_token = models.CharField(max_length=64, unique=True)
    rollback_data = models.JSONField(default=dict, blank=True)
    diff = models.JSONField(default=dict, blank=True)
    rolled_back_at = models.DateTimeField(null=True, blank=True)
    rollback_reason = models.TextField(blank=True, null=True)
    rollback_result = models.JSONField(null=True, blank=True)

    class Meta:
        db_table = 'changelog'
        ordering = ['-applied_at']
        verbose_name_plural = 'changelog entries'
        constraints = [
            models.UniqueConstraint(
                fields=['recommendation'],
                condition=Q(rolled_back_at__isnull=True),
                name='changelog_one_active_per_rec',
            ),
        ]

    def __str__(self):
        return f"{self.action_type} @ {self.applied_at:%Y-%m-%d %H:%M} ({self.rollback_token})"

    @property
    def is_rolled_back(self):
        return self.rolled_back_at is not None

    @property
    def rollback_type(self):
        return (self.rollback_data or {}).get('type')


class TrackerLog(models.Model):
    """Append-only record of every tracker (or audit) report."""
    project = models.ForeignKey(Project, on_delete=models.CASCADE, related_name='tracker_logs')
    page_url = models.CharField(max_length=2048)
    issues_detected = models.PositiveIntegerField(default=0)
    issue_categories = models.JSONField(default=list, blank=True)
    tracker_version = models.CharField(max_length=50, blank=True, default='')
    page_data = models.JSONField(default=dict, blank=True)
    detected_at = models.DateTimeField(default=timezone.now)

    class Meta:
        db_table = 'tracker_logs'
        ordering = ['-detected_at']

    def __str__(self):
        return f"{self.page_url}: {self.issues_detected} issues"
