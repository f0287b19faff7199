"""
AutopilotScheduler: the periodic autopilot loop.

Driven by ``python manage.py run_autopilot`` from cron or by the
token-protected ``autopilot-scheduler`` endpoint. For every project with
autopilot on and the site script connected it checks whether a run is
due, refreshes recommendations when none are fresh, applies them and
stamps the run.
"""
import logging
from datetime import timedelta

from django.utils import timezone

from ai.providers import SuggestionWriter
from projects.models import Project

from .applier import ChangeApplier
from .config import AutopilotConfig
from .exceptions import AutopilotError, ValidationError
from .issue_reporter import IssueReporter
from .models import Recommendation
from .site_audit import AUDIT_VERSION, audit_page

logger = logging.getLogger(__name__)

FRESH_RECOMMENDATION_WINDOW = timedelta(hours=24)


def should_run(project, now=None):
    """True when the project's autopilot frequency says a run is due."""
    if project.last_autopilot_run is None:
        return True
    interval = Project.FREQUENCY_INTERVALS.get(project.autopilot_frequency or 'daily')
    if interval is None:
        return False
    now = now or timezone.now()
    return now - project.last_autopilot_run >= interval


def next_run_at(frequency, now=None):
    interval = Project.FREQUENCY_INTERVALS.get(frequency or 'daily', Project.FREQUENCY_INTERVALS['daily'])
    return (now or timezone.now()) + interval


class AutopilotScheduler:

    def __init__(self, config=None, session=None, applier=None, reporter=None, auditor=audit_page):
        self.config = config or AutopilotConfig.from_settings()
        self.session = session
        self.applier = applier or ChangeApplier(config=self.config, session=session)
        self.reporter = reporter or IssueReporter(suggestion_writer=SuggestionWriter.from_config(self.config))
        self.auditor = auditor

    def due_projects(self):
        return Project.objects.filter(autopilot_enabled=True, site_script_status='connected').order_by('created_at')

    def run_scheduled_tasks(self, now=None):
        """
        Run every due project. One project failing never stops the loop.

        Returns ``{processed, successful, failed, results}``.
        """
        now = now or timezone.now()
        results = []
        successful = failed = 0

        for project in self.due_projects():
            if not should_run(project, now):
                results.append({'projectId': str(project.pk), 'status': 'skipped', 'reason': 'Not due for execution'})
                continue
            try:
                summary = self.run_for_project(project, now=now)
            except AutopilotError as e:
                logger.warning("Autopilot run failed for project %s: %s", project.pk, e)
                results.append({'projectId': str(project.pk), 'status': 'failed', 'error': e.message})
                failed += 1
                continue
            except Exception as e:
                logger.exception("Unexpected autopilot failure for project %s", project.pk)
                results.append({'projectId': str(project.pk), 'status': 'failed', 'error': str(e)})
                failed += 1
                continue
            results.append({
                'projectId': str(project.pk),
                'status': 'success',
                'appliedChanges': summary['appliedCount'],
                'message': summary['message'],
            })
            successful += 1

        logger.info("Scheduler processed %d projects: %d successful, %d failed", len(results), successful, failed)
        return {
            'processed': len(results),
            'successful': successful,
            'failed': failed,
            'results': results,
        }

    def run_for_project(self, project, now=None):
        self.refresh_recommendations(project, now=now)
        summary = self.applier.apply_pending(project)
        finished = timezone.now()
        project.last_autopilot_run = finished
        project.next_autopilot_run = next_run_at(project.autopilot_frequency, finished)
        project.save(update_fields=['last_autopilot_run', 'next_autopilot_run', 'updated_at'])
        return summary

    def refresh_recommendations(self, project, now=None):
        """
        Audit the site when no todo recommendation is younger than 24h.

        Returns the number of recommendations created. Audit failures are
        logged and the run carries on with what is already queued.
        """
        now = now or timezone.now()
        fresh = Recommendation.objects.filter(
            project=project,
            status=Recommendation.STATUS_TODO,
            created_at__gte=now - FRESH_RECOMMENDATION_WINDOW,
        ).exists()
        if fresh:
            return 0
        try:
            audit = self.auditor(project.site_url, session=self.session, timeout=self.config.request_timeout)
            result = self.reporter.report(
                project.pk,
                audit['pageUrl'],
                audit['issues'],
                page_data=audit['pageData'],
                tracker_version=AUDIT_VERSION,
                source='audit',
            )
        except AutopilotError as e:
            logger.warning("Could not refresh recommendations for project %s: %s", project.pk, e)
            return 0
        except Exception:
            logger.exception("Unexpected error refreshing recommendations for project %s", project.pk)
            return 0
        return result['recommendationsCreated']

    def schedule(self, project, frequency):
        """Store a new frequency and the next run time derived from it."""
        if frequency not in Project.FREQUENCY_INTERVALS:
            raise ValidationError(f'Invalid frequency: {frequency}')
        project.autopilot_frequency = frequency
        project.next_autopilot_run = next_run_at(frequency)
        project.save(update_fields=['autopilot_frequency', 'next_autopilot_run', 'updated_at'])
        logger.info("Project %s scheduled %s, next run %s", project.pk, frequency, project.next_autopilot_run)
        return {
            'success': True,
            'frequency': frequency,
            'nextRun': project.next_autopilot_run.isoformat(),
        }
