import logging

from django.conf import settings
from django.urls import reverse
from django.utils import timezone
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_GET, require_POST

from qwiky.exceptions import ValidationFailed
from qwiky.http import json_body, ok, validated
from .forms import CreatePaymentForm, CustomerDetailsForm
from .integrations.cashfree import build_gateway_client
from .services import BookingContext, PaymentOrchestrator

logger = logging.getLogger(__name__)


def _orchestrator() -> PaymentOrchestrator:
    return PaymentOrchestrator(build_gateway_client())


@csrf_exempt
@require_POST
def create_order_view(request):
    body = json_body(request)
    data = validated(CreatePaymentForm(body))
    details = body.get("customerDetails")
    if not isinstance(details, dict):
        raise ValidationFailed(errors={"customerDetails": ["Customer details are required"]})
    customer = validated(CustomerDetailsForm(details))

    logger.info(
        "Creating payment order ref=%s customer=%s service=%s amount=%s",
        data["orderId"], data["userId"], data["serviceId"], data["amount"],
    )
    booking = BookingContext(
        order_ref=data["orderId"],
        customer_id=data["userId"],
        service_id=data["serviceId"],
        amount=data["amount"],
        customer_phone=customer["customerPhone"],
        customer_name=customer.get("customerName") or "",
        customer_email=customer.get("customerEmail") or "",
        address_id=data.get("addressId"),
        scheduled_date=data.get("scheduledDate"),
        scheduled_time=data.get("scheduledTime"),
        notes=data.get("notes") or "",
        return_url=f"{settings.FRONTEND_URL}/payment/callback",
        notify_url=request.build_absolute_uri(reverse("payments:webhook")),
    )
    result = _orchestrator().initiate(booking)

    return ok(
        data={
            "paymentRequestBody": {
                "paymentSessionId": result.payment_session_id,
                "returnUrl": result.return_url,
            }
        },
        order={
            "id": str(result.order.pk),
            "orderId": result.order.order_ref,
            "amount": str(result.order.total_amount),
            "status": result.order.status,
        },
        transaction={
            "id": str(result.transaction.pk),
            "status": result.transaction.status,
        },
    )


@require_GET
def verify_view(request, order_ref):
    result = _orchestrator().verify(order_ref)
    status = result.gateway_status
    return ok(
        order_id=status.order_ref,
        order_status=status.order_status,
        payment_status=status.payment_status,
        transaction_status=result.transaction.status,
        order_amount=status.amount,
        payment_time=status.payment_time,
        cf_order_id=status.gateway_order_id,
        applied=result.applied,
        transaction=result.transaction.to_dict(),
        order=result.transaction.order.to_dict(),
    )


@require_GET
def payment_test_view(request):
    return ok(
        message="Payment API is accessible",
        timestamp=timezone.now().isoformat(),
        environment=settings.CASHFREE_ENV,
        service=settings.SERVICE_NAME,
    )
