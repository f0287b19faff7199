"""
CMS adapters and the factory that picks one for a project.
"""
from projects.credentials import parse_credentials

from ..exceptions import ValidationError
from .base import BaseCMSAdapter, Modification, ModificationResult
from .manual import ManualAdapter
from .shopify import ShopifyAdapter
from .webflow import WebflowAdapter
from .wordpress import WordPressAdapter

ADAPTERS = {
    'manual': ManualAdapter,
    'wordpress': WordPressAdapter,
    'shopify': ShopifyAdapter,
    'webflow': WebflowAdapter,
}


def get_adapter(provider, raw_credentials, config=None, session=None):
    """
    Adapter for ``provider``. Missing, incomplete or unknown credentials
    degrade to the manual adapter.
    """
    credentials = parse_credentials(provider, raw_credentials)
    if provider not in ADAPTERS or provider == 'manual' or credentials is None:
        return ManualAdapter(config=config)
    return ADAPTERS[provider](credentials, config=config, session=session)


def get_rollback_adapter(rollback_type, raw_credentials, config=None, session=None):
    """
    Adapter able to revert a change tagged ``rollback_type``.

    Returns None when the CMS credentials needed for the revert are gone.
    """
    if rollback_type == 'manual':
        return ManualAdapter(config=config)
    adapter_class = ADAPTERS.get(rollback_type)
    if adapter_class is None:
        raise ValidationError(f'Unsupported rollback type: {rollback_type}')
    credentials = parse_credentials(rollback_type, raw_credentials)
    if credentials is None:
        return None
    return adapter_class(credentials, config=config, session=session)


__all__ = [
    'ADAPTERS',
    'BaseCMSAdapter',
    'ManualAdapter',
    'Modification',
    'ModificationResult',
    'ShopifyAdapter',
    'WebflowAdapter',
    'WordPressAdapter',
    'get_adapter',
    'get_rollback_adapter',
]
