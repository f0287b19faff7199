"""
Runtime configuration handed to the autopilot services.
"""
from dataclasses import dataclass

from django.conf import settings


@dataclass(frozen=True)
class AutopilotConfig:
    batch_size: int = 10
    request_timeout: int = 15
    # Upper bound for honouring a Shopify Retry-After header, in seconds
    max_retry_after: float = 10.0
    webflow_client_id: str = ''
    webflow_client_secret: str = ''
    openai_api_key: str = ''
    openai_model: str = 'gpt-4o-mini'

    @classmethod
    def from_settings(cls):
        return cls(
            batch_size=getattr(settings, 'AUTOPILOT_BATCH_SIZE', 10),
            request_timeout=getattr(settings, 'CMS_REQUEST_TIMEOUT', 15),
            webflow_client_id=getattr(settings, 'WEBFLOW_CLIENT_ID', ''),
            webflow_client_secret=getattr(settings, 'WEBFLOW_CLIENT_SECRET', ''),
            openai_api_key=getattr(settings, 'OPENAI_API_KEY', ''),
            openai_model=getattr(settings, 'OPENAI_MODEL', 'gpt-4o-mini'),
        )
