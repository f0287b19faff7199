"""
DRF exception handler that renders every API error as {"error": ...}.
"""
import logging

from rest_framework.views import exception_handler

logger = logging.getLogger(__name__)


def flatten_errors(detail):
    """Turn DRF's nested error detail into a single readable message."""
    if isinstance(detail, dict):
        parts = []
        for field, value in detail.items():
            message = flatten_errors(value)
            parts.append(message if field in ('detail', 'non_field_errors') else f'{field}: {message}')
        return '; '.join(parts)
    if isinstance(detail, (list, tuple)):
        return ' '.join(flatten_errors(item) for item in detail)
    return str(detail)


def api_exception_handler(exc, context):
    response = exception_handler(exc, context)
    if response is None:
        # Unhandled: Django turns it into a 500 through handler500
        return None

    view = context.get('view')
    logger.info(
        "API error in %s: %s (%s)",
        view.__class__.__name__ if view else 'unknown view',
        exc.__class__.__name__,
        response.status_code,
    )
    response.data = {
        'error': flatten_errors(response.data),
        'status': response.status_code,
    }
    return response
