"""
Webflow adapter.

Page meta (title and description) is edited on the page itself. H1s can
only be changed on CMS-backed pages, through the heading (or title) field
of the collection item behind the page; static pages get manual
instructions. Every successful change is followed by a site publish.
"""
import logging

from ..exceptions import AuthError, UpstreamError, ValidationError
from .base import BaseCMSAdapter, ModificationResult, slug_from_target

logger = logging.getLogger(__name__)

WEBFLOW_API = 'https://api.webflow.com'
HEADING_FIELDS = ('heading', 'title')


class WebflowAdapter(BaseCMSAdapter):
    provider = 'webflow'
    label = 'Webflow'
    supported_actions = ('meta', 'h1')

    def headers(self):
        return {
            **super().headers(),
            'Authorization': f'Bearer {self.credentials.access_token}',
            'accept-version': '1.0.0',
        }

    def check_connection(self):
        url = f'{WEBFLOW_API}/sites/{self.credentials.site_id}'
        response = self.request('GET', url)
        if response.status_code == 401:
            self.refresh_access_token()
            response = self.request('GET', url)
        if response.status_code in (401, 403):
            raise AuthError(f'Webflow rejected the access token (HTTP {response.status_code})')
        if not response.ok:
            raise UpstreamError(f'Webflow API connection failed: HTTP {response.status_code}')

    def refresh_access_token(self):
        """Exchange the refresh token for a new access token, kept on ``self.credentials``."""
        if not (self.credentials.refresh_token and self.config.webflow_client_id and self.config.webflow_client_secret):
            raise AuthError('Webflow access token expired and cannot be refreshed')
        response = self.session.request(
            'POST',
            f'{WEBFLOW_API}/oauth/access_token',
            data={
                'client_id': self.config.webflow_client_id,
                'client_secret': self.config.webflow_client_secret,
                'refresh_token': self.credentials.refresh_token,
                'grant_type': 'refresh_token',
            },
            timeout=self.config.request_timeout,
        )
        if not response.ok:
            raise AuthError(f'Webflow token refresh failed: HTTP {response.status_code}')
        body = response.json()
        access_token = body.get('access_token')
        if not access_token:
            raise AuthError('Webflow token refresh returned no access token')
        self.credentials = self.credentials.with_access_token(access_token, body.get('refresh_token'))
        self.refreshed_credentials = self.credentials
        logger.info("Refreshed Webflow access token for site %s", self.credentials.site_id)

    def _apply(self, modification):
        self.check_connection()
        if modification.action_type == 'h1':
            return self._update_heading(modification)
        return self._update_meta(modification)

    def _update_meta(self, modification):
        changes = modification.changes
        title = changes.get('title')
        description = changes.get('description')
        if not title and not description:
            raise ValidationError('Meta change needs a title or a description')

        page = self.find_page(modification)
        original = {
            'title': page.get('title', ''),
            'metaDescription': page.get('metaDescription') or '',
        }
        payload = {}
        if title:
            payload['title'] = title
        if description:
            payload['metaDescription'] = description

        page_id = page.get('_id') or page.get('id')
        self.request_json('PATCH', f'{WEBFLOW_API}/pages/{page_id}', 'Webflow page update failed', json=payload)
        self.publish()
        return ModificationResult(
            success=True,
            rollback_data={
                'type': 'webflow',
                'pageId': page_id,
                'originalMeta': {key: original[key] for key in payload},
            },
            message=f'Updated meta for Webflow page {page.get("slug") or page_id}',
        )

    def find_page(self, modification):
        body = self.request_json(
            'GET', f'{WEBFLOW_API}/sites/{self.credentials.site_id}/pages', 'Webflow pages lookup failed',
        )
        pages = body.get('pages', []) if isinstance(body, dict) else body
        target = modification.target.strip()
        slug = '' if modification.is_homepage else slug_from_target(target)
        for page in pages:
            if target in (page.get('_id'), page.get('id')):
                return page
            if modification.is_homepage and page.get('slug') in ('', 'index', 'home'):
                return page
            if slug and slug in (page.get('slug'), (page.get('url') or '').strip('/')):
                return page
        raise UpstreamError(f'Webflow page not found: {modification.target}')

    def _update_heading(self, modification):
        heading = modification.changes.get('h1')
        if not heading:
            raise ValidationError('H1 change needs a heading')
        page = self.find_page(modification)
        if not (page.get('collectionId') or page.get('cmsLocaleId')):
            result = self._manual(modification)
            result.message = 'Webflow static page headings must be edited in the Designer'
            return result

        collection_id, collection, item = self.find_collection_item(page, slug_from_target(modification.target))
        field = next(
            (f['slug'] for f in collection.get('fields') or [] if f.get('slug') in HEADING_FIELDS), None,
        )
        if field is None:
            raise UpstreamError(f'Webflow collection {collection.get("name", collection_id)} has no heading field')

        original = {field: item.get(field, '')}
        self.request_json(
            'PATCH', f'{WEBFLOW_API}/collections/{collection_id}/items/{item["_id"]}',
            'Webflow CMS item update failed', json={'fields': {field: heading}},
        )
        self.publish()
        logger.info("Updated Webflow CMS item %s %s", item['_id'], field)
        return ModificationResult(
            success=True,
            rollback_data={
                'type': 'webflow',
                'collectionId': collection_id,
                'itemId': item['_id'],
                'original': original,
            },
            message=f'Updated {field} of Webflow CMS item {item.get("slug") or item["_id"]}',
        )

    def find_collection_item(self, page, target_slug=''):
        """``(collection_id, collection, item)`` for the CMS item whose slug matches the page or target."""
        site_id = self.credentials.site_id
        slugs = {s for s in (page.get('slug'), target_slug) if s}
        if page.get('collectionId'):
            collection_ids = [page['collectionId']]
        else:
            body = self.request_json('GET', f'{WEBFLOW_API}/sites/{site_id}/collections',
                                     'Webflow collections lookup failed')
            collections = body.get('collections', []) if isinstance(body, dict) else body
            collection_ids = [c['_id'] for c in collections]

        for collection_id in collection_ids:
            items = self.request_json(
                'GET', f'{WEBFLOW_API}/collections/{collection_id}/items', 'Webflow CMS items lookup failed',
            ).get('items') or []
            item = next((i for i in items if i.get('slug') in slugs), None)
            if item is not None:
                collection = self.request_json(
                    'GET', f'{WEBFLOW_API}/collections/{collection_id}', 'Webflow collection lookup failed',
                )
                return collection_id, collection, item
        raise UpstreamError(f'Webflow CMS item not found for page {page.get("slug")}')

    def publish(self):
        response = self.request(
            'POST', f'{WEBFLOW_API}/sites/{self.credentials.site_id}/publish', json={'domains': []},
        )
        if not response.ok:
            # Edits are saved as drafts; the next publish picks them up
            logger.warning("Webflow publish failed for site %s: HTTP %s", self.credentials.site_id, response.status_code)
            return False
        return True

    def _revert(self, rollback_data):
        if rollback_data.get('itemId'):
            return self._revert_collection_item(rollback_data)
        page_id = rollback_data.get('pageId')
        original = rollback_data.get('originalMeta') or {}
        if not page_id or not original:
            raise ValidationError('Rollback data is missing the Webflow page or original meta')
        self.check_connection()
        self.request_json('PATCH', f'{WEBFLOW_API}/pages/{page_id}', 'Webflow rollback failed', json=original)
        self.publish()
        return ModificationResult(success=True, message='Webflow changes rolled back successfully')

    def _revert_collection_item(self, rollback_data):
        collection_id = rollback_data.get('collectionId')
        original = rollback_data.get('original') or {}
        if not collection_id or not original:
            raise ValidationError('Rollback data is missing the Webflow collection or original fields')
        self.check_connection()
        self.request_json(
            'PATCH', f'{WEBFLOW_API}/collections/{collection_id}/items/{rollback_data["itemId"]}',
            'Webflow rollback failed', json={'fields': original},
        )
        self.publish()
        return ModificationResult(success=True, message='Webflow changes rolled back successfully')
