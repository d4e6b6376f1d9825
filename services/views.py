import logging
from datetime import date

from django.utils import timezone
from django.views.decorators.http import require_GET

from qwiky.exceptions import NotFound, ValidationFailed
from qwiky.http import ok
from .models import Service
from .slots import generate_slots

logger = logging.getLogger(__name__)


@require_GET
def service_list_view(request):
    services = [s.to_dict() for s in Service.active.all()]
    return ok(services=services, count=len(services))


@require_GET
def service_detail_view(request, service_id):
    try:
        service = Service.active.get(pk=service_id)
    except Service.DoesNotExist:
        raise NotFound("Service not found or inactive")
    return ok(service=service.to_dict())


@require_GET
def slot_list_view(request, locality):
    raw = request.GET.get("date")
    if raw:
        try:
            target = date.fromisoformat(raw)
        except ValueError:
            raise ValidationFailed("Validation failed", errors={"date": ["Use YYYY-MM-DD"]})
    else:
        target = timezone.localdate()

    logger.info("Generating slots for locality=%s date=%s", locality, target)
    slots = generate_slots(locality, target)
    return ok(slots=slots, locality=locality, date=target.isoformat(), count=len(slots))
