"""
RollbackService: reverses one applied change by its rollback token.
"""
import logging

from django.db import transaction
from django.utils import timezone

from .cms import ADAPTERS, get_rollback_adapter
from .cms.base import ModificationResult
from .config import AutopilotConfig
from .exceptions import AlreadyRolledBack, NotFound
from .models import ChangelogEntry, Recommendation

logger = logging.getLogger(__name__)

DEFAULT_ROLLBACK_REASON = 'User requested rollback'


class RollbackService:

    def __init__(self, config=None, session=None):
        self.config = config or AutopilotConfig.from_settings()
        self.session = session

    def rollback(self, project, token, reason=None) -> ModificationResult:
        """
        Revert the change recorded under ``token``.

        Raises NotFound for an unknown token and AlreadyRolledBack for a
        used one. An adapter failure is returned as-is and leaves the entry
        untouched, so the same token can be retried.
        """
        entry = (
            ChangelogEntry.objects
            .filter(project=project, rollback_token=token)
            .select_related('recommendation')
            .first()
        )
        if entry is None:
            raise NotFound('Rollback token not found or invalid')
        if entry.is_rolled_back:
            raise AlreadyRolledBack('Change has already been rolled back')

        rollback_type = entry.rollback_type
        adapter = get_rollback_adapter(
            rollback_type, project.cms_credentials, config=self.config, session=self.session,
        )
        if adapter is None:
            return ModificationResult.failed(f'{ADAPTERS[rollback_type].label} credentials not found')

        try:
            result = adapter.revert(entry.rollback_data)
        finally:
            # Keep a rotated OAuth token even when the revert fails
            if adapter.refreshed_credentials is not None:
                project.store_credentials(adapter.refreshed_credentials)

        if not result.success:
            logger.warning("Rollback of %s failed: %s", token, result.error)
            return result

        now = timezone.now()
        with transaction.atomic():
            updated = ChangelogEntry.objects.filter(pk=entry.pk, rolled_back_at__isnull=True).update(
                rolled_back_at=now,
                rollback_reason=reason or DEFAULT_ROLLBACK_REASON,
                rollback_result=result.as_dict(),
            )
            if not updated:
                raise AlreadyRolledBack('Change has already been rolled back')
            if entry.recommendation_id:
                Recommendation.objects.filter(pk=entry.recommendation_id).update(
                    status=Recommendation.STATUS_TODO,
                    completed_at=None,
                    rollback_token=None,
                    updated_at=now,
                )

        logger.info("Rolled back change %s (%s) for project %s", token, rollback_type, project.pk)
        if not result.message:
            result.message = 'Changes rolled back successfully'
        return result
