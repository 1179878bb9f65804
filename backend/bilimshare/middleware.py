"""
Request middleware for the API.

RequestLogMiddleware logs every API request with its origin.
OriginGuardMiddleware rejects browser requests from origins that are not
allowed; django-cors-headers (which runs before it) only adds headers and
never blocks on its own.
"""
import logging

from django.conf import settings
from django.http import JsonResponse

logger = logging.getLogger(__name__)

API_PREFIX = '/api/'


class RequestLogMiddleware:
    def __init__(self, get_response):
        self.get_response = get_response

    def __call__(self, request):
        if request.path.startswith(API_PREFIX):
            logger.info(
                f"{request.method} {request.get_full_path()} "
                f"origin={request.headers.get('Origin', '-')}"
            )
        return self.get_response(request)


def origin_allowed(origin):
    """No origin (curl, server-to-server) and an empty allow-list both pass."""
    if not origin:
        return True
    if getattr(settings, 'CORS_ALLOW_ALL_ORIGINS', False):
        return True
    return origin in settings.CORS_ALLOWED_ORIGINS


class OriginGuardMiddleware:
    def __init__(self, get_response):
        self.get_response = get_response

    def __call__(self, request):
        origin = request.headers.get('Origin')
        if request.path.startswith(API_PREFIX) and not origin_allowed(origin):
            logger.warning(f"Rejected {request.method} {request.path} from origin {origin}")
            return JsonResponse({'error': 'Not allowed by CORS'}, status=403)
        return self.get_response(request)
