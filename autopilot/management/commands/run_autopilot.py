"""
Run the autopilot loop once. Meant for cron:

    */15 * * * * python manage.py run_autopilot
"""
from django.core.exceptions import ValidationError as DjangoValidationError
from django.core.management.base import BaseCommand, CommandError

from autopilot.applier import ChangeApplier
from autopilot.exceptions import AutopilotError
from autopilot.scheduler import AutopilotScheduler
from projects.models import Project


class Command(BaseCommand):
    help = 'Run scheduled autopilot tasks for all due projects'

    def add_arguments(self, parser):
        parser.add_argument(
            '--project',
            help='Apply pending changes for a single project now, ignoring its schedule',
        )

    def handle(self, *args, **options):
        if options.get('project'):
            self._run_single(options['project'])
            return

        summary = AutopilotScheduler().run_scheduled_tasks()
        for result in summary['results']:
            line = f"  {result['projectId']}: {result['status']}"
            if result['status'] == 'success':
                line += f" ({result['appliedChanges']} changes)"
            elif result.get('error'):
                line += f" ({result['error']})"
            self.stdout.write(line)

        style = self.style.SUCCESS if not summary['failed'] else self.style.WARNING
        self.stdout.write(style(
            f"Processed {summary['processed']} projects: "
            f"{summary['successful']} successful, {summary['failed']} failed"
        ))

    def _run_single(self, project_id):
        try:
            project = Project.objects.filter(pk=project_id).first()
        except DjangoValidationError:
            project = None
        if project is None:
            raise CommandError(f'Project {project_id} not found')
        try:
            summary = ChangeApplier().apply_pending(project)
        except AutopilotError as e:
            raise CommandError(e.message) from e
        self.stdout.write(self.style.SUCCESS(summary['message']))
