import uuid

import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name='Project',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('name', models.CharField(max_length=255)),
                ('site_url', models.URLField(help_text='Base URL of the website')),
                ('cms_provider', models.CharField(choices=[('manual', 'Manual'), ('wordpress', 'WordPress'), ('shopify', 'Shopify'), ('webflow', 'Webflow')], default='manual', max_length=20)),
                ('cms_credentials', models.JSONField(blank=True, default=dict, help_text='Provider credentials (camelCase keys); empty means manual instructions')),
                ('site_script_status', models.CharField(choices=[('pending', 'Pending'), ('connected', 'Connected'), ('disconnected', 'Disconnected')], default='pending', help_text='Whether the tracker script has reported in from the site', max_length=20)),
                ('autopilot_enabled', models.BooleanField(default=False)),
                ('autopilot_scopes', models.JSONField(blank=True, default=list)),
                ('autopilot_frequency', models.CharField(choices=[('hourly', 'Hourly'), ('daily', 'Daily'), ('weekly', 'Weekly')], default='daily', max_length=20)),
                ('last_autopilot_run', models.DateTimeField(blank=True, null=True)),
                ('next_autopilot_run', models.DateTimeField(blank=True, null=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('user', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='projects', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'db_table': 'projects',
                'ordering': ['-created_at'],
                'indexes': [models.Index(fields=['autopilot_enabled', 'site_script_status'], name='projects_autopilot_due_idx')],
            },
        ),
    ]
