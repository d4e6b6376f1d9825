import logging
import time

from django.conf import settings
from django.http import JsonResponse
from django.urls import reverse
from django_ratelimit.core import is_ratelimited

from .exceptions import ApiError, RateLimited

logger = logging.getLogger(__name__)
access_logger = logging.getLogger("qwiky.requests")


class RequestLogMiddleware:
    """One access line per request: method, path, status, duration, client."""

    def __init__(self, get_response):
        self.get_response = get_response

    def __call__(self, request):
        started = time.monotonic()
        response = self.get_response(request)
        access_logger.info(
            "%s %s %s %.1fms %s",
            request.method,
            request.get_full_path(),
            response.status_code,
            (time.monotonic() - started) * 1000,
            request.META.get("REMOTE_ADDR", "-"),
        )
        return response


class ApiRateLimitMiddleware:
    """Throttle ``/api/`` per client IP: ``API_RATE_LIMIT`` requests per 15 minutes.

    The gateway webhook is exempt; it has to be acknowledged with a 200.
    ``API_RATE_LIMIT = 0`` switches throttling off.
    """

    prefix = "/api/"
    window = "15m"

    def __init__(self, get_response):
        self.get_response = get_response

    def __call__(self, request):
        limit = getattr(settings, "API_RATE_LIMIT", 100)
        if limit and request.path.startswith(self.prefix) and request.path != reverse("payments:webhook"):
            if is_ratelimited(request, group="api", key="ip", rate=f"{limit}/{self.window}", increment=True):
                error = RateLimited()
                logger.warning("Rate limit hit for %s on %s %s", request.META.get("REMOTE_ADDR"), request.method, request.path)
                return JsonResponse(error.as_dict(), status=error.status_code)
        return self.get_response(request)


class ApiErrorMiddleware:
    """Render exceptions escaping an API view as JSON error bodies."""

    def __init__(self, get_response):
        self.get_response = get_response

    def __call__(self, request):
        return self.get_response(request)

    def process_exception(self, request, exception):
        if isinstance(exception, ApiError):
            log = logger.error if exception.status_code >= 500 else logger.warning
            log(
                "%s %s -> %s: %s",
                request.method,
                request.path,
                exception.status_code,
                exception.message,
            )
            return JsonResponse(exception.as_dict(), status=exception.status_code)

        logger.exception("Unhandled error on %s %s", request.method, request.path)
        body = {"success": False, "message": "Internal server error"}
        if settings.DEBUG:
            body["error"] = str(exception)
        return JsonResponse(body, status=500)
