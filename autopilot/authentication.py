"""
Authentication for the scheduler endpoint.

The hosting platform's cron calls ``autopilot-scheduler`` with a shared
secret (``AUTOPILOT_SCHEDULER_TOKEN``) in either:
- X-Scheduler-Token header: "<token>"
- Authorization header: "Bearer <token>"
"""
import hmac
import logging

from django.conf import settings
from django.contrib.auth.models import AnonymousUser
from rest_framework import authentication, exceptions

logger = logging.getLogger(__name__)


class SchedulerTokenAuthentication(authentication.BaseAuthentication):

    def authenticate(self, request):
        token = self._extract_token(request)
        if not token:
            return None

        expected = getattr(settings, 'AUTOPILOT_SCHEDULER_TOKEN', '')
        if not expected:
            logger.warning("Scheduler called but AUTOPILOT_SCHEDULER_TOKEN is not configured")
            raise exceptions.AuthenticationFailed('Scheduler token is not configured')
        if not hmac.compare_digest(token.encode(), expected.encode()):
            logger.warning("Scheduler called with an invalid token")
            raise exceptions.AuthenticationFailed('Invalid scheduler token')

        return (AnonymousUser(), {'auth_type': 'scheduler'})

    def authenticate_header(self, request):
        return 'Bearer'

    def _extract_token(self, request):
        token = request.META.get('HTTP_X_SCHEDULER_TOKEN', '').strip()
        if not token:
            auth_header = request.META.get('HTTP_AUTHORIZATION', '')
            if auth_header.startswith('Bearer '):
                token = auth_header[len('Bearer '):].strip()
        return token or None
