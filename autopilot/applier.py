"""
ChangeApplier: pushes a project's pending recommendations to its CMS.

Each recommendation is claimed (todo -> in_progress) before anything is
sent to the CMS, so two concurrent runs never apply the same item. A
successful change is recorded together with its changelog entry in one
transaction; a failure only marks the recommendation failed and the batch
moves on.
"""
import logging
import uuid

from django.db import DatabaseError, transaction
from django.utils import timezone

from .cms import get_adapter
from .config import AutopilotConfig
from .exceptions import ValidationError
from .models import ChangelogEntry, Recommendation

logger = logging.getLogger(__name__)


def new_rollback_token():
    return str(uuid.uuid4())


class ChangeApplier:

    def __init__(self, config=None, session=None, adapter_factory=get_adapter):
        self.config = config or AutopilotConfig.from_settings()
        self.session = session
        self.adapter_factory = adapter_factory

    def apply_pending(self, project):
        """
        Apply up to ``batch_size`` todo recommendations in the project's
        scopes, highest impact first.

        Returns ``{appliedCount, appliedChanges, failedCount, failedChanges, message}``.
        """
        if not project.autopilot_enabled:
            raise ValidationError('Autopilot is not enabled for this project')
        if project.site_script_status != 'connected':
            raise ValidationError('Site script is not connected. Install the tracking script before applying changes.')

        candidates = list(Recommendation.objects.pending_for(project)[:self.config.batch_size])
        if not candidates:
            return {
                'appliedCount': 0,
                'appliedChanges': [],
                'failedCount': 0,
                'failedChanges': [],
                'message': 'No pending recommendations to apply',
            }

        adapter = self.adapter_factory(
            project.cms_provider, project.cms_credentials, config=self.config, session=self.session,
        )
        applied, failed = [], []
        for recommendation in candidates:
            if not self.claim(recommendation):
                logger.info("Recommendation %s already claimed, skipping", recommendation.pk)
                continue
            token = self.apply_one(project, recommendation, adapter)
            if token:
                applied.append({
                    'id': str(recommendation.pk),
                    'title': recommendation.title,
                    'type': recommendation.action_type,
                    'impact': recommendation.impact,
                    'rollbackToken': token,
                })
            else:
                failed.append({
                    'id': str(recommendation.pk),
                    'title': recommendation.title,
                    'error': recommendation.error_message,
                })

        if adapter.refreshed_credentials is not None:
            project.store_credentials(adapter.refreshed_credentials)

        logger.info(
            "Applied %d/%d recommendations for project %s (%d failed)",
            len(applied), len(candidates), project.pk, len(failed),
        )
        return {
            'appliedCount': len(applied),
            'appliedChanges': applied,
            'failedCount': len(failed),
            'failedChanges': failed,
            'message': f'Successfully applied {len(applied)} changes',
        }

    @staticmethod
    def claim(recommendation):
        claimed = Recommendation.objects.filter(
            pk=recommendation.pk, status=Recommendation.STATUS_TODO,
        ).update(status=Recommendation.STATUS_IN_PROGRESS, updated_at=timezone.now())
        if claimed:
            recommendation.status = Recommendation.STATUS_IN_PROGRESS
        return claimed == 1

    def apply_one(self, project, recommendation, adapter):
        """Apply a claimed recommendation; returns its rollback token or None."""
        token = new_rollback_token()
        modification = recommendation.to_modification()
        try:
            result = adapter.apply(modification)
        except Exception as e:
            # Adapters report expected failures as results; anything else is a bug
            logger.exception("Unexpected error applying recommendation %s", recommendation.pk)
            self._mark_failed(recommendation, f'Unexpected error: {e}')
            return None

        if not result.success:
            logger.warning("Recommendation %s failed: %s", recommendation.pk, result.error)
            self._mark_failed(recommendation, result.error or 'Unknown error')
            return None

        now = timezone.now()
        try:
            with transaction.atomic():
                recommendation.status = Recommendation.STATUS_COMPLETED
                recommendation.rollback_token = token
                recommendation.completed_at = now
                recommendation.error_message = ''
                recommendation.save(
                    update_fields=['status', 'rollback_token', 'completed_at', 'error_message', 'updated_at'],
                )
                ChangelogEntry.objects.create(
                    project=project,
                    recommendation=recommendation,
                    action_type=recommendation.action_type,
                    description=recommendation.title,
                    applied_at=now,
                    rollback_token=token,
                    rollback_data=result.rollback_data or {},
                    diff={
                        'before': recommendation.current_value,
                        'after': recommendation.suggested_value,
                        'target': modification.target,
                        'message': result.message or '',
                        'instructions': result.instructions or '',
                    },
                )
        except DatabaseError as e:
            logger.exception("Could not record applied recommendation %s", recommendation.pk)
            recommendation.rollback_token = None
            recommendation.completed_at = None
            self._mark_failed(recommendation, f'Change applied but not recorded: {e}')
            return None
        return token

    @staticmethod
    def _mark_failed(recommendation, error):
        recommendation.status = Recommendation.STATUS_FAILED
        recommendation.error_message = error
        recommendation.save(update_fields=['status', 'error_message', 'updated_at'])
