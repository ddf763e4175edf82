import logging
import time
import uuid

logger = logging.getLogger(__name__)


class RequestLogMiddleware:
    """Tag each request with an ``X-Request-ID`` and log its outcome."""

    def __init__(self, get_response):
        self.get_response = get_response

    def __call__(self, request):
        req_id = request.headers.get('X-Request-ID') or uuid.uuid4().hex
        request.request_id = req_id
        start = time.monotonic()
        response = self.get_response(request)
        duration_ms = int((time.monotonic() - start) * 1000)
        response['X-Request-ID'] = req_id
        logger.info(
            'req_id=%s method=%s path=%s status=%s duration_ms=%s',
            req_id, request.method, request.path, response.status_code, duration_ms,
        )
        return response
