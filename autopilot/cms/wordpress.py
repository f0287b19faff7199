"""
WordPress adapter (REST API, wp/v2).

Authenticates with an Application Password (Basic) or a JWT (Bearer).
Meta titles go to the post/page title, descriptions to the excerpt and the
Yoast meta description; H1s are rewritten in the post content; alt text is
set on the media item.
"""
import logging
import re
from urllib.parse import urlparse

from ..exceptions import AuthError, UpstreamError, ValidationError
from .base import BaseCMSAdapter, ModificationResult, normalize_target, slug_from_target

logger = logging.getLogger(__name__)

YOAST_DESCRIPTION_KEY = '_yoast_wpseo_metadesc'
H1_PATTERN = re.compile(r'<h1[^>]*>.*?</h1>', re.IGNORECASE | re.DOTALL)


def _rendered(value):
    """WordPress returns title/excerpt/content as {raw, rendered} objects."""
    if isinstance(value, dict):
        return value.get('raw', value.get('rendered', ''))
    return value or ''


class WordPressAdapter(BaseCMSAdapter):
    provider = 'wordpress'
    label = 'WordPress'
    supported_actions = ('meta', 'h1', 'altText')

    def __init__(self, credentials, config=None, session=None):
        super().__init__(credentials, config=config, session=session)
        self.api = f'https://{credentials.host}/wp-json/wp/v2'

    def headers(self):
        return {**super().headers(), **self.credentials.auth_header()}

    def check_connection(self):
        response = self.request('GET', f'{self.api}/posts', params={'per_page': 1})
        if response.status_code in (401, 403):
            raise AuthError(f'WordPress rejected the credentials (HTTP {response.status_code})')
        if not response.ok:
            raise UpstreamError(f'WordPress API connection failed: HTTP {response.status_code}')

    def _apply(self, modification):
        self.check_connection()
        if modification.action_type == 'meta':
            return self._update_meta(modification)
        if modification.action_type == 'h1':
            return self._update_heading(modification)
        return self._update_alt_text(modification)

    # Lookups

    def _get_optional(self, url, **params):
        response = self.request('GET', url, params=params or None)
        if response.status_code == 404:
            return None
        if response.status_code in (401, 403):
            raise AuthError(f'WordPress rejected the credentials (HTTP {response.status_code})')
        if not response.ok:
            raise UpstreamError(f'WordPress lookup failed: HTTP {response.status_code}')
        return response.json()

    def _site_settings(self):
        return self._get_optional(f'{self.api}/settings')

    def _front_page(self):
        site_settings = self._site_settings() or {}
        page_id = site_settings.get('page_on_front') or 0
        if not page_id:
            return None
        return self._get_optional(f'{self.api}/pages/{page_id}', context='edit')

    def find_content(self, target):
        """Find a post or page by slug, falling back to a numeric ID."""
        slug = slug_from_target(target)
        for endpoint in ('posts', 'pages'):
            results = self._get_optional(f'{self.api}/{endpoint}', slug=slug, context='edit') or []
            if results:
                return results[0]
        if slug.isdigit():
            for endpoint in ('posts', 'pages'):
                content = self._get_optional(f'{self.api}/{endpoint}/{slug}', context='edit')
                if content:
                    return content
        return None

    def _resolve_content(self, modification):
        if modification.is_homepage:
            content = self._front_page()
        else:
            content = self.find_content(modification.target)
        if content is None and not modification.is_homepage:
            raise UpstreamError(f'WordPress content not found: {modification.target}')
        return content

    @staticmethod
    def _endpoint_for(content):
        return 'pages' if content.get('type') == 'page' else 'posts'

    # Meta

    def _update_meta(self, modification):
        changes = modification.changes
        title = changes.get('title')
        description = changes.get('description')
        if not title and not description:
            raise ValidationError('Meta change needs a title or a description')

        content = self._resolve_content(modification)
        if content is None:
            # Homepage that lists posts: the site title/tagline act as meta
            return self._update_site_settings(title, description)

        endpoint = self._endpoint_for(content)
        original_meta = content.get('meta') if isinstance(content.get('meta'), dict) else {}
        original = {
            'title': _rendered(content.get('title')),
            'excerpt': _rendered(content.get('excerpt')),
            'meta': {YOAST_DESCRIPTION_KEY: original_meta.get(YOAST_DESCRIPTION_KEY, '')},
        }
        payload = {}
        if title:
            payload['title'] = title
        if description:
            payload['excerpt'] = description
            payload['meta'] = {YOAST_DESCRIPTION_KEY: description}

        self.request_json('POST', f'{self.api}/{endpoint}/{content["id"]}', 'WordPress update failed', json=payload)
        logger.info("Updated WordPress %s %s meta", endpoint, content['id'])
        return ModificationResult(
            success=True,
            rollback_data={
                'type': 'wordpress',
                'endpoint': endpoint,
                'contentId': content['id'],
                'original': {key: original[key] for key in payload},
            },
            message=f'Updated meta for {endpoint[:-1]} {content["id"]}',
        )

    def _update_site_settings(self, title, description):
        current = self._site_settings() or {}
        payload = {}
        if title:
            payload['title'] = title
        if description:
            payload['description'] = description
        self.request_json('POST', f'{self.api}/settings', 'WordPress settings update failed', json=payload)
        logger.info("Updated WordPress site settings %s", sorted(payload))
        return ModificationResult(
            success=True,
            rollback_data={
                'type': 'wordpress',
                'endpoint': 'settings',
                'contentId': None,
                'original': {key: current.get(key, '') for key in payload},
            },
            message='Updated site title/tagline',
        )

    # Headings

    def _update_heading(self, modification):
        new_heading = modification.changes.get('h1')
        if not new_heading:
            raise ValidationError('H1 change needs a heading')
        content = self._resolve_content(modification)
        if content is None:
            raise UpstreamError('WordPress homepage is not a static page; cannot edit its H1')

        endpoint = self._endpoint_for(content)
        original_html = _rendered(content.get('content'))
        heading = f'<h1>{new_heading}</h1>'
        if H1_PATTERN.search(original_html):
            updated_html = H1_PATTERN.sub(lambda _: heading, original_html, count=1)
        else:
            updated_html = f'{heading}\n{original_html}'

        self.request_json(
            'POST', f'{self.api}/{endpoint}/{content["id"]}', 'WordPress update failed',
            json={'content': updated_html},
        )
        return ModificationResult(
            success=True,
            rollback_data={
                'type': 'wordpress',
                'endpoint': endpoint,
                'contentId': content['id'],
                'original': {'content': original_html},
            },
            message=f'Updated H1 for {endpoint[:-1]} {content["id"]}',
        )

    # Images

    def find_media(self, target, metadata=None):
        media_id = (metadata or {}).get('mediaId')
        if media_id:
            return self._get_optional(f'{self.api}/media/{media_id}', context='edit')
        normalized = normalize_target(target)
        if normalized.isdigit():
            return self._get_optional(f'{self.api}/media/{normalized}', context='edit')
        if '/wp-content/uploads/' in target:
            filename = urlparse(target).path.rsplit('/', 1)[-1]
            stem = filename.rsplit('.', 1)[0]
            results = self._get_optional(f'{self.api}/media', search=stem, context='edit') or []
            for item in results:
                if item.get('source_url', '').endswith(filename):
                    return item
            return results[0] if results else None
        return None

    def _update_alt_text(self, modification):
        alt_text = modification.changes.get('altText')
        if not alt_text:
            raise ValidationError('Alt text change needs a value')
        media = self.find_media(modification.target, modification.metadata)
        if media is None:
            raise UpstreamError(f'WordPress media not found: {modification.target}')

        self.request_json(
            'POST', f'{self.api}/media/{media["id"]}', 'WordPress media update failed',
            json={'alt_text': alt_text},
        )
        return ModificationResult(
            success=True,
            rollback_data={
                'type': 'wordpress',
                'endpoint': 'media',
                'contentId': media['id'],
                'original': {'alt_text': media.get('alt_text', '')},
            },
            message=f'Updated alt text for media {media["id"]}',
        )

    # Rollback

    def _revert(self, rollback_data):
        endpoint = rollback_data.get('endpoint')
        original = rollback_data.get('original') or {}
        if endpoint not in ('posts', 'pages', 'media', 'settings') or not original:
            raise ValidationError('Rollback data is missing the WordPress endpoint or original values')

        url = f'{self.api}/settings' if endpoint == 'settings' else f'{self.api}/{endpoint}/{rollback_data.get("contentId")}'
        self.request_json('POST', url, 'WordPress rollback failed', json=original)
        logger.info("Reverted WordPress %s %s", endpoint, rollback_data.get('contentId'))
        return ModificationResult(success=True, message='WordPress changes rolled back successfully')
