import logging

from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_GET, require_POST

from qwiky.exceptions import NotFound
from qwiky.http import json_body, ok, validated
from .forms import BookingForm
from .models import Order
from .services import create_booking, resolve_booking_refs

logger = logging.getLogger(__name__)


def _with_relations(qs):
    return qs.select_related("address", "transaction").prefetch_related("items__service")


@csrf_exempt
@require_POST
def order_create_view(request):
    data = validated(BookingForm(json_body(request)))
    logger.info(
        "Creating order customer=%s service=%s date=%s time=%s",
        data["userId"], data["serviceId"], data["scheduledDate"], data["scheduledTime"],
    )
    refs = resolve_booking_refs(data["userId"], data["serviceId"], data.get("addressId"))
    order = create_booking(
        refs,
        amount=refs.service.price,
        scheduled_date=data["scheduledDate"],
        scheduled_time=data["scheduledTime"],
        notes=data.get("notes") or "",
    )
    logger.info("Order created id=%s", order.pk)
    return ok(status=201, message="Order created successfully", order=order.to_dict())


@require_GET
def customer_orders_view(request, customer_id):
    orders = _with_relations(Order.objects.filter(customer_id=customer_id))
    data = [o.to_dict(items=True, address=True, transaction=True) for o in orders]
    return ok(orders=data, count=len(data))


@require_GET
def order_detail_view(request, order_id):
    try:
        order = _with_relations(Order.objects.select_related("customer")).get(pk=order_id)
    except Order.DoesNotExist:
        raise NotFound("Order not found")
    data = order.to_dict(items=True, address=True, transaction=True)
    data["user"] = order.customer.to_dict()
    return ok(order=data)
