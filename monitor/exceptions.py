import logging

from rest_framework.views import exception_handler as drf_exception_handler
from rest_framework.response import Response

logger = logging.getLogger(__name__)


class RegistrationError(Exception):
    """Account or profile creation failed; nothing was left behind."""


class FitnessNotConnected(Exception):
    """The doctor has no stored fitness provider tokens."""


class TokenRefreshError(Exception):
    """The fitness provider refused to refresh the access token."""


class ChatGatewayError(Exception):
    """The LLM gateway rejected or failed the completion request."""

    def __init__(self, message: str, status_code: int = 500):
        super().__init__(message)
        self.status_code = status_code


def _first_message(data):
    if isinstance(data, list):
        return _first_message(data[0]) if data else ''
    if isinstance(data, dict):
        for value in data.values():
            return _first_message(value)
        return ''
    return str(data)


def api_exception_handler(exc, context):
    resp = drf_exception_handler(exc, context)
    if resp is None:
        logger.exception('unhandled error in %s', context.get('view').__class__.__name__)
        return Response({'ok': False, 'error': str(exc) or 'An unexpected error occurred'}, status=500)
    # normalize response
    body = {'ok': False}
    if isinstance(resp.data, dict) and 'detail' in resp.data:
        body['error'] = str(resp.data['detail'])
    else:
        body['error'] = _first_message(resp.data)
        body['fields'] = resp.data
    headers = {k: resp[k] for k in ('WWW-Authenticate', 'Retry-After') if resp.has_header(k)}
    return Response(body, status=resp.status_code, headers=headers)
