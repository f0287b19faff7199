"""
IssueReporter: turns tracker (or audit) issue reports into recommendations.

Issues arrive in the tracker format::

    {"category": "meta", "type": "missing_title",
     "description": "Page is missing a title tag", "priority": "high",
     "url": "...", "timestamp": "..."}

Each issue whose category maps to an enabled scope becomes at most one
recommendation. Every report is logged, whether or not autopilot is on.
"""
import logging
import re
from urllib.parse import urlparse

from django.db import transaction
from django.utils import timezone

from projects.models import Project

from .exceptions import NotFound
from .models import IMPACT_RANK, Recommendation, TrackerLog

logger = logging.getLogger(__name__)

CATEGORY_SCOPES = {
    'meta': 'meta',
    'h1': 'h1',
    'altText': 'altText',
    'internalLinks': 'internalLinks',
    # Handled through meta optimisations
    'performance': 'meta',
    'mobile': 'meta',
    'structured_data': 'meta',
}

HIGH_EFFORT_TYPES = ('broken_hierarchy', 'insufficient_internal_links')
MEDIUM_EFFORT_TYPES = ('multiple_h1', 'long_title', 'long_description')

MAX_TITLE_LENGTH = 60
MAX_DESCRIPTION_LENGTH = 155


def map_category_to_scope(category):
    return CATEGORY_SCOPES.get(category, category)


def calculate_effort(issue_type):
    if issue_type in HIGH_EFFORT_TYPES:
        return 'high'
    if issue_type in MEDIUM_EFFORT_TYPES:
        return 'medium'
    return 'low'


def _shorten(text, limit):
    text = (text or '').strip()
    if len(text) <= limit:
        return text
    cut = text[:limit].rsplit(' ', 1)[0].rstrip(' ,.;:-|')
    return cut or text[:limit]


def _words_from_slug(segment):
    segment = segment.rsplit('.', 1)[0] if '.' in segment else segment
    return re.sub(r'[-_]+', ' ', segment).strip()


def suggest_title(page_url, site_name, current_title=''):
    """
    ``/blog/my-post`` -> ``My Post | Site``; the root gives ``Home | Site``.
    An existing (short) title is kept and branded instead.
    """
    if current_title:
        return f'{current_title.strip()} | {site_name}'
    segments = [s for s in urlparse(page_url or '').path.split('/') if s]
    if not segments:
        return f'Home | {site_name}'
    return f'{_words_from_slug(segments[-1]).title()} | {site_name}'


def suggest_description(page_title):
    return (
        f'Discover more about {page_title or "this page"} and how it can benefit you. '
        'Learn more about our services and solutions.'
    )


def suggest_heading(page_title):
    return page_title or 'Welcome to Our Website'


def suggest_alt_text(image_src, page_title=''):
    filename = urlparse(image_src or '').path.rsplit('/', 1)[-1]
    words = _words_from_slug(filename)
    if words and not words.isdigit():
        return words[:1].upper() + words[1:]
    return f'Image on {page_title}' if page_title else 'Descriptive image'


def deduplicate(recommendations):
    """Keep one recommendation per (action_type, target_page, title), the highest impact wins."""
    unique = {}
    for recommendation in recommendations:
        kept = unique.get(recommendation.dedup_key)
        if kept is None or IMPACT_RANK.get(recommendation.impact, 0) > IMPACT_RANK.get(kept.impact, 0):
            unique[recommendation.dedup_key] = recommendation
    return list(unique.values())


class IssueReporter:

    def __init__(self, suggestion_writer=None):
        # Optional AI rewrite of suggested values (see ai.providers)
        self.suggestion_writer = suggestion_writer

    def report(self, project_id, page_url, issues, page_data=None, tracker_version='', source='tracker'):
        """
        Process one page report.

        Returns ``{success, processedCount, recommendationsCreated}``.
        """
        project = Project.objects.filter(pk=project_id).first()
        if project is None:
            raise NotFound('Project not found')

        page_data = page_data or {}
        issues = issues or []

        created = []
        if project.autopilot_enabled:
            drafts = []
            for issue in issues:
                if not project.scope_enabled(map_category_to_scope(issue.get('category'))):
                    continue
                draft = self.build_recommendation(project, issue, page_url, page_data, tracker_version, source)
                if draft is not None:
                    drafts.append(draft)
            created = self._save(project, deduplicate(drafts))
        else:
            logger.info("Autopilot disabled for project %s, logging %d issues only", project.pk, len(issues))

        TrackerLog.objects.create(
            project=project,
            page_url=page_url,
            issues_detected=len(issues),
            issue_categories=sorted({issue.get('category') for issue in issues if issue.get('category')}),
            tracker_version=tracker_version or '',
            page_data=page_data,
            detected_at=timezone.now(),
        )
        logger.info(
            "Processed %d issues for %s (project %s), %d recommendations created",
            len(issues), page_url, project.pk, len(created),
        )
        return {
            'success': True,
            'processedCount': len(issues),
            'recommendationsCreated': len(created),
        }

    def _save(self, project, drafts):
        """Insert drafts that are not already open; bump impact on open duplicates."""
        if not drafts:
            return []
        open_recs = {
            rec.dedup_key: rec
            for rec in Recommendation.objects.filter(
                project=project, target_page__in={d.target_page for d in drafts},
            ).open()
        }
        new = []
        with transaction.atomic():
            for draft in drafts:
                existing = open_recs.get(draft.dedup_key)
                if existing is None:
                    new.append(draft)
                elif IMPACT_RANK[draft.impact] > IMPACT_RANK.get(existing.impact, 0):
                    existing.impact = draft.impact
                    existing.save(update_fields=['impact', 'updated_at'])
            if self.suggestion_writer is not None:
                for draft in new:
                    self._rewrite(project, draft)
            Recommendation.objects.bulk_create(new)
        return new

    def _rewrite(self, project, draft):
        if draft.action_type not in ('meta', 'h1', 'altText') or draft.metadata.get('manualOnly'):
            return
        rewritten = self.suggestion_writer.rewrite(draft, site_name=project.site_name)
        if rewritten:
            draft.metadata['heuristicSuggestion'] = draft.suggested_value
            draft.suggested_value = rewritten

    def build_recommendation(self, project, issue, page_url, page_data, tracker_version, source='tracker'):
        """Unsaved Recommendation for one issue, or None for categories with no conversion."""
        category = issue.get('category')
        issue_type = issue.get('type') or ''
        description = issue.get('description') or ''
        impact = issue.get('priority') if issue.get('priority') in IMPACT_RANK else 'medium'
        page_title = (page_data.get('title') or '').strip()
        url = page_data.get('url') or page_url

        fields = {
            'title': f'Fix: {description}',
            'description': description,
            'current_value': '',
            'suggested_value': description,
        }
        extra = {}

        if category == 'meta':
            action_type = 'meta'
            if issue_type == 'missing_title':
                fields.update(title='Add missing page title',
                              description='Create an SEO-optimized title tag for this page',
                              suggested_value=suggest_title(url, project.site_name))
                extra['field'] = 'title'
            elif issue_type == 'short_title':
                fields.update(title='Optimize short page title',
                              description='Expand the page title to improve SEO performance',
                              current_value=page_title,
                              suggested_value=suggest_title(url, project.site_name, page_title))
                extra['field'] = 'title'
            elif issue_type == 'long_title' and page_title:
                fields.update(title='Shorten long page title',
                              description=f'Keep the title under {MAX_TITLE_LENGTH} characters',
                              current_value=page_title,
                              suggested_value=_shorten(page_title, MAX_TITLE_LENGTH))
                extra['field'] = 'title'
            elif issue_type in ('missing_description', 'short_description'):
                fields.update(title='Add missing meta description' if issue_type == 'missing_description'
                              else 'Expand short meta description',
                              description='Create an engaging meta description for this page',
                              current_value=page_data.get('description') or '',
                              suggested_value=suggest_description(page_title))
                extra['field'] = 'description'
            elif issue_type == 'long_description' and page_data.get('description'):
                fields.update(title='Shorten long meta description',
                              description=f'Keep the meta description under {MAX_DESCRIPTION_LENGTH} characters',
                              current_value=page_data['description'],
                              suggested_value=_shorten(page_data['description'], MAX_DESCRIPTION_LENGTH))
                extra['field'] = 'description'
            else:
                extra['manualOnly'] = True
        elif category == 'h1':
            action_type = 'h1'
            if issue_type == 'missing_h1':
                fields.update(title='Add missing H1 tag',
                              description='Add a primary heading to improve page structure',
                              suggested_value=suggest_heading(page_title))
            elif issue_type == 'multiple_h1':
                fields.update(title='Fix multiple H1 tags',
                              description='Consolidate multiple H1 tags into a single primary heading',
                              suggested_value='Convert additional H1s to H2s')
                extra['manualOnly'] = True
            else:
                fields['suggested_value'] = 'Fix heading structure'
                extra['manualOnly'] = True
        elif category == 'altText':
            action_type = 'altText'
            image = issue.get('element') or (description.split(': ', 1)[1] if ': ' in description else '')
            fields.update(title='Add missing image alt text',
                          suggested_value=suggest_alt_text(image, page_title))
            extra['field'] = 'altText'
            if image:
                # One recommendation per image, not one per page
                fields['title'] = f'Add missing image alt text ({urlparse(image).path.rsplit("/", 1)[-1] or image})'
                fields['target_element'] = image
            if issue_type == 'oversized_image':
                fields['title'] = 'Resize oversized image'
                if image:
                    fields['title'] += f' ({urlparse(image).path.rsplit("/", 1)[-1] or image})'
                fields['suggested_value'] = description
                extra['manualOnly'] = True
        elif category == 'internalLinks':
            action_type = 'internalLinks'
            fields.update(title='Improve internal linking', suggested_value='Add contextual internal links')
        else:
            return None

        fields['title'] = fields['title'][:255]
        return Recommendation(
            project=project,
            action_type=action_type,
            target_page=page_url,
            impact=impact,
            effort=calculate_effort(issue_type),
            status=Recommendation.STATUS_TODO,
            source=source,
            metadata={
                'trackerVersion': tracker_version or '',
                'detectedAt': issue.get('timestamp'),
                'issueType': issue_type,
                'pageData': page_data,
                **extra,
            },
            **fields,
        )
