import uuid

import django.db.models.deletion
import django.utils.timezone
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ('projects', '0001_initial'),
    ]

    operations = [
        migrations.CreateModel(
            name='Recommendation',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('action_type', models.CharField(choices=[('meta', 'Meta tags'), ('h1', 'H1 headings'), ('altText', 'Image alt text'), ('internalLinks', 'Internal links'), ('robots', 'robots.txt'), ('sitemap', 'XML sitemap')], max_length=30)),
                ('title', models.CharField(max_length=255)),
                ('description', models.TextField(blank=True, default='')),
                ('target_page', models.CharField(max_length=2048)),
                ('target_element', models.CharField(blank=True, max_length=2048, null=True)),
                ('current_value', models.TextField(blank=True, default='')),
                ('suggested_value', models.TextField(blank=True, default='')),
                ('impact', models.CharField(choices=[('high', 'High'), ('medium', 'Medium'), ('low', 'Low')], default='medium', max_length=10)),
                ('effort', models.CharField(choices=[('high', 'High'), ('medium', 'Medium'), ('low', 'Low')], default='low', max_length=10)),
                ('status', models.CharField(choices=[('todo', 'To do'), ('in_progress', 'In progress'), ('completed', 'Completed'), ('failed', 'Failed')], db_index=True, default='todo', max_length=20)),
                ('source', models.CharField(choices=[('manual', 'Manual'), ('tracker', 'Tracker script'), ('audit', 'Server-side audit')], default='manual', max_length=20)),
                ('rollback_token', models.CharField(blank=True, max_length=64, null=True, unique=True)),
                ('error_message', models.TextField(blank=True, default='')),
                ('metadata', models.JSONField(blank=True, default=dict)),
                ('completed_at', models.DateTimeField(blank=True, null=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('project', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='recommendations', to='projects.project')),
            ],
            options={
                'db_table': 'recommendations',
                'ordering': ['-created_at'],
                'indexes': [
                    models.Index(fields=['project', 'status'], name='recs_project_status_idx'),
                    models.Index(fields=['project', 'action_type'], name='recs_project_action_idx'),
                ],
            },
        ),
        migrations.CreateModel(
            name='ChangelogEntry',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('action_type', models.CharField(max_length=30)),
                ('description', models.TextField(blank=True, default='')),
                ('applied_at', models.DateTimeField(default=django.utils.timezone.now)),
                ('rollback_token', models.CharField(max_length=64, unique=True)),
                ('rollback_data', models.JSONField(blank=True, default=dict)),
                ('diff', models.JSONField(blank=True, default=dict)),
                ('rolled_back_at', models.DateTimeField(blank=True, null=True)),
                ('rollback_reason', models.TextField(blank=True, null=True)),
                ('rollback_result', models.JSONField(blank=True, null=True)),
                ('project', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='changelog', to='projects.project')),
                ('recommendation', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='changelog_entries', to='autopilot.recommendation')),
            ],
            options={
                'db_table': 'changelog',
                'ordering': ['-applied_at'],
                'verbose_name_plural': 'changelog entries',
                'constraints': [
                    models.UniqueConstraint(condition=models.Q(('rolled_back_at__isnull', True)), fields=('recommendation',), name='changelog_one_active_per_rec'),
                ],
            },
        ),
        migrations.CreateModel(
            name='TrackerLog',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('page_url', models.CharField(max_length=2048)),
                ('issues_detected', models.PositiveIntegerField(default=0)),
                ('issue_categories', models.JSONField(blank=True, default=list)),
                ('tracker_version', models.CharField(blank=True, default='', max_length=50)),
                ('page_data', models.JSONField(blank=True, default=dict)),
                ('detected_at', models.DateTimeField(default=django.utils.timezone.now)),
                ('project', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='tracker_logs', to='projects.project')),
            ],
            options={
                'db_table': 'tracker_logs',
                'ordering': ['-detected_at'],
            },
        ),
    ]
