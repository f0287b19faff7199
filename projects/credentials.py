"""
CMS credentials for a project, one dataclass per provider.

Projects store credentials as a JSON blob (camelCase keys, as the dashboard
sends them). ``parse_credentials`` is the lenient runtime path: it returns
``None`` for an empty or incomplete blob so callers can fall back to manual
instructions. ``validate_credentials`` is the strict path used when a blob is
written through the API.
"""
import base64
from dataclasses import dataclass, replace
from typing import Optional, Union

WORDPRESS_AUTH_METHODS = ('application_password', 'jwt')
DEFAULT_SHOPIFY_API_VERSION = '2023-10'


class CredentialsError(ValueError):
    """Raised when a credentials blob is missing required fields."""


def _pick(data, *keys):
    """First non-empty value among ``keys`` (camelCase and snake_case accepted)."""
    for key in keys:
        value = data.get(key)
        if isinstance(value, str):
            value = value.strip()
        if value:
            return value
    return ''


def _strip_scheme(value):
    for prefix in ('https://', 'http://'):
        if value.startswith(prefix):
            value = value[len(prefix):]
    return value.rstrip('/')


@dataclass(frozen=True)
class ManualCredentials:
    provider = 'manual'

    def as_dict(self):
        return {}


@dataclass(frozen=True)
class WordPressCredentials:
    domain: str
    auth_method: str = 'application_password'
    username: str = ''
    application_password: str = ''
    jwt: str = ''

    provider = 'wordpress'

    @classmethod
    def from_dict(cls, data):
        jwt = _pick(data, 'jwt', 'accessToken', 'access_token')
        username = _pick(data, 'username')
        application_password = _pick(data, 'applicationPassword', 'application_password')
        auth_method = _pick(data, 'authMethod', 'auth_method')
        if not auth_method:
            auth_method = 'application_password' if application_password else 'jwt'
        return cls(
            domain=_pick(data, 'domain', 'siteUrl', 'site_url'),
            auth_method=auth_method,
            username=username,
            application_password=application_password,
            jwt=jwt,
        )

    def missing_fields(self):
        missing = []
        if not self.domain:
            missing.append('domain')
        if self.auth_method not in WORDPRESS_AUTH_METHODS:
            missing.append('authMethod')
        elif self.auth_method == 'application_password':
            if not self.username:
                missing.append('username')
            if not self.application_password:
                missing.append('applicationPassword')
        elif not self.jwt:
            missing.append('jwt')
        return missing

    @property
    def host(self):
        return _strip_scheme(self.domain)

    def auth_header(self):
        if self.auth_method == 'application_password':
            raw = f'{self.username}:{self.application_password}'.encode()
            return {'Authorization': f'Basic {base64.b64encode(raw).decode()}'}
        return {'Authorization': f'Bearer {self.jwt}'}

    def as_dict(self):
        return {
            'domain': self.domain,
            'authMethod': self.auth_method,
            'username': self.username,
            'applicationPassword': self.application_password,
            'jwt': self.jwt,
        }


@dataclass(frozen=True)
class ShopifyCredentials:
    shop: str
    access_token: str
    api_version: str = DEFAULT_SHOPIFY_API_VERSION

    provider = 'shopify'

    @classmethod
    def from_dict(cls, data):
        shop = _strip_scheme(_pick(data, 'shop', 'shopDomain', 'shop_domain'))
        if shop.endswith('.myshopify.com'):
            shop = shop[:-len('.myshopify.com')]
        return cls(
            shop=shop,
            access_token=_pick(data, 'accessToken', 'access_token'),
            api_version=_pick(data, 'apiVersion', 'api_version') or DEFAULT_SHOPIFY_API_VERSION,
        )

    def missing_fields(self):
        return [name for name, value in (('shop', self.shop), ('accessToken', self.access_token)) if not value]

    def as_dict(self):
        return {'shop': self.shop, 'accessToken': self.access_token, 'apiVersion': self.api_version}


@dataclass(frozen=True)
class WebflowCredentials:
    site_id: str
    access_token: str
    refresh_token: str = ''

    provider = 'webflow'

    @classmethod
    def from_dict(cls, data):
        return cls(
            site_id=_pick(data, 'siteId', 'site_id'),
            access_token=_pick(data, 'accessToken', 'access_token'),
            refresh_token=_pick(data, 'refreshToken', 'refresh_token'),
        )

    def missing_fields(self):
        return [name for name, value in (('siteId', self.site_id), ('accessToken', self.access_token)) if not value]

    def with_access_token(self, access_token, refresh_token=None):
        return replace(self, access_token=access_token, refresh_token=refresh_token or self.refresh_token)

    def as_dict(self):
        return {'siteId': self.site_id, 'accessToken': self.access_token, 'refreshToken': self.refresh_token}


Credentials = Union[ManualCredentials, WordPressCredentials, ShopifyCredentials, WebflowCredentials]

CREDENTIAL_TYPES = {
    'wordpress': WordPressCredentials,
    'shopify': ShopifyCredentials,
    'webflow': WebflowCredentials,
}


def parse_credentials(provider, data) -> Optional[Credentials]:
    """
    Build the credentials object for ``provider`` or return None.

    ``manual`` always parses. For a CMS provider an empty, non-dict or
    incomplete blob yields None.
    """
    if provider == 'manual':
        return ManualCredentials()
    credential_type = CREDENTIAL_TYPES.get(provider)
    if credential_type is None or not isinstance(data, dict) or not data:
        return None
    credentials = credential_type.from_dict(data)
    if credentials.missing_fields():
        return None
    return credentials


def validate_credentials(provider, data) -> Credentials:
    """Strict variant of ``parse_credentials``; raises CredentialsError."""
    if provider == 'manual':
        return ManualCredentials()
    credential_type = CREDENTIAL_TYPES.get(provider)
    if credential_type is None:
        raise CredentialsError(f'Unknown CMS provider: {provider}')
    if not isinstance(data, dict):
        raise CredentialsError('Credentials must be an object')
    credentials = credential_type.from_dict(data)
    missing = credentials.missing_fields()
    if missing:
        raise CredentialsError(f'Missing {provider} credentials: {", ".join(missing)}')
    return credentials
