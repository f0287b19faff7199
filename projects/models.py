"""
Project model: a customer website connected to the autopilot.
"""
import uuid
from datetime import timedelta
from urllib.parse import urlparse

from django.conf import settings
from django.db import models

from .credentials import parse_credentials


class Project(models.Model):
    """
    A website whose SEO issues are tracked and fixed by the autopilot.
    One user can have multiple projects.
    """
    CMS_PROVIDER_CHOICES = [
        ('manual', 'Manual'),
        ('wordpress', 'WordPress'),
        ('shopify', 'Shopify'),
        ('webflow', 'Webflow'),
    ]

    SITE_SCRIPT_STATUS_CHOICES = [
        ('pending', 'Pending'),
        ('connected', 'Connected'),
        ('disconnected', 'Disconnected'),
    ]

    # Action types the autopilot can work on
    SCOPE_CHOICES = [
        ('meta', 'Meta tags'),
        ('h1', 'H1 headings'),
        ('altText', 'Image alt text'),
        ('internalLinks', 'Internal links'),
        ('robots', 'robots.txt'),
        ('sitemap', 'XML sitemap'),
    ]
    SCOPES = [value for value, _ in SCOPE_CHOICES]
    DEFAULT_AUTOPILOT_SCOPES = ['meta', 'h1', 'altText', 'robots', 'sitemap']

    FREQUENCY_CHOICES = [
        ('hourly', 'Hourly'),
        ('daily', 'Daily'),
        ('weekly', 'Weekly'),
    ]
    FREQUENCY_INTERVALS = {
        'hourly': timedelta(hours=1),
        'daily': timedelta(days=1),
        'weekly': timedelta(days=7),
    }

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='projects'
    )
    name = models.CharField(max_length=255)
    site_url = models.URLField(help_text="Base URL of the website")
    cms_provider = models.CharField(max_length=20, choices=CMS_PROVIDER_CHOICES, default='manual')
    cms_credentials = models.JSONField(
        default=dict,
        blank=True,
        help_text="Provider credentials (camelCase keys); empty means manual instructions"
    )
    site_script_status = models.CharField(
        max_length=20,
        choices=SITE_SCRIPT_STATUS_CHOICES,
        default='pending',
        help_text="Whether the tracker script has reported in from the site"
    )
    autopilot_enabled = models.BooleanField(default=False)
    autopilot_scopes = models.JSONField(default=list, blank=True)
    autopilot_frequency = models.CharField(max_length=20, choices=FREQUENCY_CHOICES, default='daily')
    last_autopilot_run = models.DateTimeField(null=True, blank=True)
    next_autopilot_run = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'projects'
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['autopilot_enabled', 'site_script_status'], name='projects_autopilot_due_idx'),
        ]

    def __str__(self):
        return f"{self.name} ({self.site_url})"

    @property
    def credentials(self):
        """Parsed credentials, or None when they are missing or incomplete."""
        return parse_credentials(self.cms_provider, self.cms_credentials)

    @property
    def has_cms_connection(self):
        return self.cms_provider != 'manual' and self.credentials is not None

    @property
    def site_name(self):
        """Display name used in generated titles."""
        if self.name:
            return self.name
        host = urlparse(self.site_url).netloc
        return host[4:] if host.startswith('www.') else host

    def scope_enabled(self, scope):
        return scope in (self.autopilot_scopes or [])

    def store_credentials(self, credentials):
        """Persist refreshed credentials (e.g. a rotated OAuth token)."""
        self.cms_credentials = {**(self.cms_credentials or {}), **credentials.as_dict()}
        self.save(update_fields=['cms_credentials', 'updated_at'])
