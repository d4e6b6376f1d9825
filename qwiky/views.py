from django.conf import settings
from django.http import JsonResponse
from django.utils import timezone
from django.views.decorators.http import require_GET


@require_GET
def health_view(request):
    return JsonResponse({
        "status": "OK",
        "timestamp": timezone.now().isoformat(),
        "environment": settings.ENVIRONMENT,
        "version": settings.SERVICE_VERSION,
        "service": settings.SERVICE_NAME,
    })


def error_404_view(request, exception):
    return JsonResponse({"success": False, "message": "Route not found"}, status=404)
