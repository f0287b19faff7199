"""
Shopify adapter (Admin REST API).

Products carry SEO title/description fields plus ``seo`` metafields;
pages only have a title and summary. H1 overrides live in the
``seo.custom_h1`` metafield and need a theme that renders it.
"""
import logging
import time

from ..exceptions import AuthError, UpstreamError, ValidationError
from .base import BaseCMSAdapter, ModificationResult, normalize_target, slug_from_target

logger = logging.getLogger(__name__)


class ShopifyAdapter(BaseCMSAdapter):
    provider = 'shopify'
    label = 'Shopify'
    supported_actions = ('meta', 'altText', 'h1')

    def __init__(self, credentials, config=None, session=None, sleep=time.sleep):
        super().__init__(credentials, config=config, session=session)
        self.api = f'https://{credentials.shop}.myshopify.com/admin/api/{credentials.api_version}'
        self._sleep = sleep

    def headers(self):
        return {**super().headers(), 'X-Shopify-Access-Token': self.credentials.access_token}

    def request(self, method, url, **kwargs):
        response = super().request(method, url, **kwargs)
        if response.status_code != 429:
            return response
        # One bounded back-off on rate limiting, then give up
        try:
            wait = float(response.headers.get('Retry-After', 2))
        except ValueError:
            wait = 2.0
        wait = max(0.0, min(wait, self.config.max_retry_after))
        logger.info("Shopify rate limited, retrying %s in %.1fs", url, wait)
        self._sleep(wait)
        response = super().request(method, url, **kwargs)
        if response.status_code == 429:
            raise UpstreamError('Shopify API rate limit exceeded. Please try again later.')
        return response

    def check_connection(self):
        response = self.request('GET', f'{self.api}/shop.json')
        if response.status_code == 401:
            raise AuthError('Invalid Shopify access token')
        if response.status_code == 403:
            raise AuthError('Shopify access token lacks the required scopes')
        if not response.ok:
            raise UpstreamError(f'Shopify API connection failed: HTTP {response.status_code}')

    def _apply(self, modification):
        if modification.is_homepage:
            # Homepage SEO lives in Online Store preferences, not the Admin API
            result = self._manual(modification)
            result.message = 'Shopify homepage SEO must be edited in Online Store preferences'
            return result
        self.check_connection()
        resource_type, resource = self.find_resource(modification)
        if modification.action_type == 'meta':
            return self._update_meta(resource_type, resource, modification.changes)
        if modification.action_type == 'altText':
            return self._update_alt_text(resource, modification)
        return self._update_heading(resource_type, resource, modification.changes)

    # Lookups

    def _get_optional(self, path, key, **params):
        response = self.request('GET', f'{self.api}/{path}', params=params or None)
        if response.status_code == 404:
            return None
        if not response.ok:
            raise UpstreamError(f'Shopify lookup failed: HTTP {response.status_code}')
        return response.json().get(key)

    def find_resource(self, modification):
        """
        Locate the product or page a target points to.

        Targets look like ``products/<handle-or-id>``, ``pages/<handle-or-id>``
        or a bare handle, which is tried as a product first.
        """
        target = modification.target
        if modification.action_type == 'altText':
            # The target is the image; the page it sits on names the product
            target = modification.metadata.get('targetPage') or target
        target = normalize_target(target)
        handle = slug_from_target(target)
        if modification.metadata.get('productId'):
            kinds = ('product',)
            handle = str(modification.metadata['productId'])
        elif target.startswith('pages/'):
            kinds = ('page',)
        elif target.startswith('products/'):
            kinds = ('product',)
        else:
            kinds = ('product', 'page')

        for kind in kinds:
            if handle.isdigit():
                found = self._get_optional(f'{kind}s/{handle}.json', kind)
            else:
                matches = self._get_optional(f'{kind}s.json', f'{kind}s', handle=handle) or []
                found = matches[0] if matches else None
            if found:
                return kind, found
        raise UpstreamError(f'Shopify product or page not found: {modification.target}')

    # Meta

    def _update_meta(self, resource_type, resource, changes):
        title = changes.get('title')
        description = changes.get('description')
        if not title and not description:
            raise ValidationError('Meta change needs a title or a description')

        resource_id = resource['id']
        if resource_type == 'page':
            payload = {'id': resource_id}
            original = {'title': resource.get('title', '')}
            if title:
                payload['title'] = title
            if description:
                payload['summary_html'] = description
                original['summary_html'] = resource.get('summary_html') or ''
            self.request_json('PUT', f'{self.api}/pages/{resource_id}.json', 'Shopify page update failed',
                              json={'page': payload})
            return ModificationResult(
                success=True,
                rollback_data={'type': 'shopify', 'resource': 'page', 'resourceId': resource_id, 'original': original},
                message=f'Updated meta for page {resource.get("handle", resource_id)}',
            )

        payload = {'id': resource_id}
        existing_metafields = self._seo_metafields(resource_id)
        original = {
            'seo_title': resource.get('seo_title') or resource.get('title', ''),
            'seo_description': resource.get('seo_description') or '',
        }
        metafields = []
        original_metafields = {}
        if title:
            payload['seo_title'] = title
            metafields.append(self._seo_metafield('title_tag', title))
            original_metafields['title_tag'] = existing_metafields.get('title_tag', {}).get('value') or ''
        if description:
            payload['seo_description'] = description
            metafields.append(self._seo_metafield('description_tag', description))
            original_metafields['description_tag'] = existing_metafields.get('description_tag', {}).get('value') or ''
        payload['metafields'] = metafields

        self.request_json('PUT', f'{self.api}/products/{resource_id}.json', 'Shopify product update failed',
                          json={'product': payload})
        logger.info("Updated Shopify product %s SEO", resource_id)
        return ModificationResult(
            success=True,
            rollback_data={
                'type': 'shopify',
                'resource': 'product',
                'resourceId': resource_id,
                'original': original,
                'metafields': original_metafields,
            },
            message=f'Updated SEO for product {resource.get("handle", resource_id)}',
        )

    @staticmethod
    def _seo_metafield(key, value):
        return {'namespace': 'seo', 'key': key, 'value': value, 'type': 'single_line_text_field'}

    def _seo_metafields(self, product_id):
        """Current ``seo`` namespace metafields of a product, keyed by metafield key."""
        body = self.request_json(
            'GET', f'{self.api}/products/{product_id}/metafields.json', 'Shopify metafield lookup failed',
            params={'namespace': 'seo'},
        )
        return {m.get('key'): m for m in body.get('metafields') or []}

    def _restore_seo_metafields(self, product_id, original_values):
        """Put back the ``seo`` metafields an update overwrote; ones that did not exist are deleted."""
        current = self._seo_metafields(product_id)
        for key, value in original_values.items():
            metafield = current.get(key)
            if metafield is None:
                continue
            url = f'{self.api}/metafields/{metafield["id"]}.json'
            if value:
                self.request_json('PUT', url, 'Shopify rollback failed', json={'metafield': {
                    'id': metafield['id'], 'value': value, 'type': 'single_line_text_field',
                }})
            else:
                self.request_json('DELETE', url, 'Shopify rollback failed')

    # Images

    def _update_alt_text(self, product, modification):
        alt_text = modification.changes.get('altText')
        if not alt_text:
            raise ValidationError('Alt text change needs a value')
        image_id = modification.metadata.get('imageId') or slug_from_target(modification.target)
        images = product.get('images') or []
        image = next((img for img in images if str(img.get('id')) == str(image_id)), None)
        if image is None:
            # Match by src when the target is the image URL
            image = next((img for img in images if img.get('src', '').split('?')[0].endswith(image_id)), None)
        if image is None:
            raise UpstreamError(f'Shopify image not found: {modification.target}')

        path = f'products/{product["id"]}/images/{image["id"]}.json'
        self.request_json('PUT', f'{self.api}/{path}', 'Shopify image update failed',
                          json={'image': {'id': image['id'], 'alt': alt_text}})
        return ModificationResult(
            success=True,
            rollback_data={
                'type': 'shopify',
                'resource': 'image',
                'resourceId': image['id'],
                'path': path,
                'original': {'alt': image.get('alt') or modification.before or ''},
            },
            message=f'Updated alt text for image {image["id"]}',
        )

    # Headings

    def _update_heading(self, resource_type, resource, changes):
        heading = changes.get('h1')
        if not heading:
            raise ValidationError('H1 change needs a heading')
        body = self.request_json(
            'POST', f'{self.api}/{resource_type}s/{resource["id"]}/metafields.json', 'Shopify metafield update failed',
            json={'metafield': {'namespace': 'seo', 'key': 'custom_h1', 'value': heading, 'type': 'single_line_text_field'}},
        )
        metafield_id = (body.get('metafield') or {}).get('id')
        return ModificationResult(
            success=True,
            rollback_data={'type': 'shopify', 'resource': 'metafield', 'resourceId': metafield_id, 'original': {}},
            message='H1 stored in the seo.custom_h1 metafield',
            instructions='Render {{ product.metafields.seo.custom_h1 }} (or page.metafields) in your theme to show the new H1.',
        )

    # Rollback

    def _revert(self, rollback_data):
        resource = rollback_data.get('resource')
        resource_id = rollback_data.get('resourceId')
        original = rollback_data.get('original') or {}
        if not resource_id:
            raise ValidationError('Rollback data is missing the Shopify resource id')

        if resource == 'product':
            self.request_json('PUT', f'{self.api}/products/{resource_id}.json', 'Shopify rollback failed',
                              json={'product': {'id': resource_id, **original}})
            self._restore_seo_metafields(resource_id, rollback_data.get('metafields') or {})
        elif resource == 'page':
            self.request_json('PUT', f'{self.api}/pages/{resource_id}.json', 'Shopify rollback failed',
                              json={'page': {'id': resource_id, **original}})
        elif resource == 'image':
            self.request_json('PUT', f'{self.api}/{rollback_data["path"]}', 'Shopify rollback failed',
                              json={'image': {'id': resource_id, **original}})
        elif resource == 'metafield':
            self.request_json('DELETE', f'{self.api}/metafields/{resource_id}.json', 'Shopify rollback failed')
        else:
            raise ValidationError(f'Unknown Shopify rollback resource: {resource}')
        logger.info("Reverted Shopify %s %s", resource, resource_id)
        return ModificationResult(success=True, message='Shopify changes rolled back successfully')
