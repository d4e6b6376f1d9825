import json
import logging

from django.conf import settings
from django.http import JsonResponse
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_POST

from qwiky.exceptions import NotFound
from .integrations.cashfree import CashfreeConfig, verify_webhook_signature
from .services import DROPPED, FAILED, PAID, reconcile

logger = logging.getLogger(__name__)

EVENT_OUTCOMES = {
    "PAYMENT_SUCCESS_WEBHOOK": PAID,
    "PAYMENT_FAILED_WEBHOOK": FAILED,
    "PAYMENT_USER_DROPPED_WEBHOOK": DROPPED,
}


def classify_event(event_type) -> str | None:
    """Map a webhook ``type`` to a payment outcome; ``None`` when we do not act on it."""
    return EVENT_OUTCOMES.get(str(event_type or "").upper())


def _signature_ok(request) -> bool:
    if not getattr(settings, "CASHFREE_WEBHOOK_VERIFY_SIGNATURE", True):
        return True
    return verify_webhook_signature(
        request.body,
        request.headers.get("x-webhook-timestamp", ""),
        request.headers.get("x-webhook-signature", ""),
        CashfreeConfig.from_settings().secret_key,
    )


def handle_event(request) -> bool:
    """Process one delivery. Returns False when the event could not be applied."""
    if not _signature_ok(request):
        logger.warning("Rejected Cashfree webhook with invalid signature")
        return False

    try:
        payload = json.loads(request.body.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError):
        logger.warning("Cashfree webhook body is not valid JSON")
        return False
    if not isinstance(payload, dict):
        logger.warning("Cashfree webhook body is not a JSON object")
        return False

    event_type = payload.get("type")
    data = payload.get("data") or {}
    order_ref = (data.get("order") or {}).get("order_id")
    logger.info(
        "Received Cashfree webhook type=%s ref=%s payment_status=%s",
        event_type, order_ref, (data.get("payment") or {}).get("payment_status"),
    )

    outcome = classify_event(event_type)
    if outcome is None:
        logger.info("Unhandled webhook type: %s", event_type)
        return True
    if not order_ref:
        logger.warning("Cashfree webhook %s carries no order reference", event_type)
        return False

    try:
        reconcile(order_ref, outcome, data)
    except NotFound:
        logger.warning("Cashfree webhook %s for unknown ref=%s", event_type, order_ref)
        return False
    return True


@csrf_exempt
@require_POST
def cashfree_webhook(request):
    # The gateway redelivers anything that is not a 2xx, so every outcome is acknowledged
    try:
        handled = handle_event(request)
    except Exception:
        logger.exception("Webhook processing error")
        handled = False
    return JsonResponse({"success": handled}, status=200)
