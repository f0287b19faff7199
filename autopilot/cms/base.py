"""
Common pieces of the CMS adapters: the change being applied, the result
handed back to the applier, and the adapter base class.

Adapters never raise for network or authentication problems. Every
outcome is a ModificationResult; the caller decides what to persist.
"""
import json
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Optional
from urllib.parse import urlparse

import requests

from ..config import AutopilotConfig
from ..exceptions import AuthError, UpstreamError, ValidationError

logger = logging.getLogger(__name__)

HOMEPAGE = 'homepage'

# Field written when ``after`` is a plain string
DEFAULT_CHANGE_FIELD = {
    'meta': 'title',
    'h1': 'h1',
    'altText': 'altText',
    'robots': 'robotsContent',
    'sitemap': 'urls',
    'internalLinks': 'links',
}

# Never automated on any CMS; always turned into instructions
MANUAL_ONLY_ACTIONS = ('robots', 'sitemap', 'internalLinks')


def normalize_target(target):
    """
    Reduce a target to what the CMS lookups need.

    Full URLs become their path without surrounding slashes; the site
    root (``/``, ``''`` or a bare domain) becomes ``homepage``.
    """
    target = (target or '').strip()
    if target.startswith(('http://', 'https://')):
        target = urlparse(target).path
    target = target.strip('/')
    if not target or target == HOMEPAGE:
        return HOMEPAGE
    return target


def slug_from_target(target):
    """Last path segment of a normalized target (``blog/my-post`` -> ``my-post``)."""
    return normalize_target(target).rsplit('/', 1)[-1]


@dataclass
class Modification:
    """An abstract change: what to do, where, and the before/after values."""
    action_type: str
    target: str
    before: str = ''
    after: Any = ''
    metadata: Dict[str, Any] = field(default_factory=dict)

    @property
    def changes(self):
        """``after`` as a dict of field name to new value."""
        after = self.after
        if isinstance(after, dict):
            return after
        if isinstance(after, str) and after.strip().startswith('{'):
            try:
                parsed = json.loads(after)
            except ValueError:
                parsed = None
            if isinstance(parsed, dict):
                return parsed
        return {DEFAULT_CHANGE_FIELD.get(self.action_type, 'value'): after}

    @property
    def is_homepage(self):
        return normalize_target(self.target) == HOMEPAGE


@dataclass
class ModificationResult:
    success: bool
    rollback_data: Optional[dict] = None
    error: Optional[str] = None
    message: Optional[str] = None
    instructions: Optional[str] = None

    @classmethod
    def failed(cls, error):
        return cls(success=False, error=error)

    def as_dict(self):
        data = {'success': self.success}
        if self.rollback_data is not None:
            data['rollbackData'] = self.rollback_data
        for key in ('error', 'message', 'instructions'):
            value = getattr(self, key)
            if value:
                data[key] = value
        return data


class BaseCMSAdapter:
    """
    Base class for provider adapters.

    Subclasses set ``provider``, ``label`` and ``supported_actions`` and
    implement ``_apply`` / ``_revert``. Those may raise AuthError,
    UpstreamError, ValidationError or requests exceptions; ``apply`` and
    ``revert`` turn them into results.
    """
    provider = None
    label = None
    supported_actions = ()

    def __init__(self, credentials, config=None, session=None):
        self.credentials = credentials
        self.config = config or AutopilotConfig()
        self.session = session or requests.Session()
        # Set when the adapter rotated an OAuth token the caller should store
        self.refreshed_credentials = None

    def apply(self, modification: Modification) -> ModificationResult:
        action_type = modification.action_type
        if action_type in MANUAL_ONLY_ACTIONS or modification.metadata.get('manualOnly'):
            return self._manual(modification)
        if action_type not in self.supported_actions:
            return ModificationResult.failed(f'Action type {action_type} not supported for {self.label}')
        try:
            return self._apply(modification)
        except AuthError as e:
            # Rejected credentials: hand the change to a human instead
            logger.warning("%s rejected credentials, falling back to manual instructions: %s", self.label, e)
            result = self._manual(modification)
            result.message = f'{e.message}. Manual instructions generated instead.'
            return result
        except (UpstreamError, ValidationError) as e:
            logger.warning("%s %s change failed for %s: %s", self.label, action_type, modification.target, e)
            return ModificationResult.failed(e.message)
        except requests.RequestException as e:
            logger.warning("%s request failed for %s: %s", self.label, modification.target, e)
            return ModificationResult.failed(f'{self.label} request failed: {e}')

    def revert(self, rollback_data) -> ModificationResult:
        try:
            return self._revert(rollback_data or {})
        except (AuthError, UpstreamError, ValidationError) as e:
            logger.warning("%s rollback failed: %s", self.label, e)
            return ModificationResult.failed(e.message)
        except requests.RequestException as e:
            logger.warning("%s rollback request failed: %s", self.label, e)
            return ModificationResult.failed(f'{self.label} request failed: {e}')

    def _apply(self, modification):
        raise NotImplementedError

    def _revert(self, rollback_data):
        raise NotImplementedError

    def _manual(self, modification):
        from .manual import ManualAdapter
        return ManualAdapter(config=self.config).apply(modification)

    # HTTP helpers

    def headers(self):
        return {'Content-Type': 'application/json', 'Accept': 'application/json'}

    def request(self, method, url, **kwargs):
        kwargs.setdefault('timeout', self.config.request_timeout)
        kwargs['headers'] = {**self.headers(), **kwargs.get('headers', {})}
        return self.session.request(method, url, **kwargs)

    def request_json(self, method, url, error_message, **kwargs):
        """Issue a request and return its JSON body, raising UpstreamError on non-2xx."""
        response = self.request(method, url, **kwargs)
        if response.status_code in (401, 403):
            raise AuthError(f'{self.label} rejected the credentials (HTTP {response.status_code})')
        if not response.ok:
            raise UpstreamError(f'{error_message}: HTTP {response.status_code}')
        if response.status_code == 204 or not response.content:
            return {}
        return response.json()
