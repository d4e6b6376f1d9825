"""Payment initiation and reconciliation of gateway outcomes.

A payment is one ``Order`` plus exactly one ``Transaction``. Outcomes reach us
twice and in any order: the client polls :meth:`PaymentOrchestrator.verify`
and the gateway pushes webhooks. Both end in :func:`reconcile`, which moves a
pending Transaction to a terminal state at most once and projects that state
onto its Order in the same database transaction. Terminal states are never
left again.
"""
import logging
from dataclasses import dataclass
from datetime import date, time
from decimal import Decimal

from django.db import DatabaseError, IntegrityError, transaction
from django.utils import timezone

from orders.models import Order
from orders.services import BookingRefs, create_booking, resolve_booking_refs
from qwiky.exceptions import NotFound, PersistenceConflict, ValidationFailed
from .integrations.cashfree import GATEWAY_NAME, GatewayError, GatewayOrderStatus
from .models import Transaction

logger = logging.getLogger(__name__)

CURRENCY = "INR"
DEFAULT_SCHEDULED_TIME = time(10, 0)

# normalized gateway outcomes
PAID = "paid"
FAILED = "failed"
DROPPED = "dropped"
UNKNOWN = "unknown"

# outcome -> (Transaction.status, Order.status, Order.payment_status)
TRANSITIONS = {
    PAID: (Transaction.SUCCESS, Order.CONFIRMED, Order.PAYMENT_PAID),
    FAILED: (Transaction.FAILED, Order.CANCELLED, Order.PAYMENT_FAILED),
    DROPPED: (Transaction.CANCELLED, Order.CANCELLED, Order.PAYMENT_FAILED),
}


def outcome_from_status(order_status: str, payment_status: str) -> str:
    order_status = (order_status or "").upper()
    payment_status = (payment_status or "").upper()
    if order_status == "PAID" and payment_status == "SUCCESS":
        return PAID
    if payment_status == "FAILED":
        return FAILED
    if payment_status == "USER_DROPPED":
        return DROPPED
    return UNKNOWN


@dataclass
class BookingContext:
    order_ref: str
    customer_id: object
    service_id: object
    amount: Decimal
    customer_phone: str
    customer_name: str = ""
    customer_email: str = ""
    address_id: object = None
    scheduled_date: date | None = None
    scheduled_time: time | None = None
    notes: str = ""
    return_url: str = ""
    notify_url: str = ""


@dataclass
class InitiationResult:
    payment_session_id: str
    return_url: str
    order: Order
    transaction: Transaction


@dataclass
class ReconcileResult:
    applied: bool
    transaction: Transaction

    @property
    def order(self) -> Order:
        return self.transaction.order


@dataclass
class VerificationResult:
    gateway_status: GatewayOrderStatus
    outcome: str
    applied: bool
    transaction: Transaction


def _apply_transition(txn: Transaction, outcome: str, payload) -> bool:
    """Move ``txn`` and its order out of ``pending``; run inside ``transaction.atomic``.

    Both writes are conditional on the row still being pending. Returns False
    when another writer already resolved the Transaction.
    """
    now = timezone.now()
    target = TRANSITIONS.get(outcome)
    if target is None:
        if payload is not None:
            Transaction.objects.filter(pk=txn.pk, status=Transaction.PENDING).update(
                gateway_response=payload, updated_at=now
            )
        logger.info("Outcome %s for ref=%s leaves the transaction pending", outcome, txn.order_ref)
        return False

    txn_status, order_status, payment_status = target
    # Transaction goes first: a torn write may leave a pending Order behind a
    # resolved Transaction, never a resolved Order behind a pending one.
    claimed = Transaction.objects.filter(pk=txn.pk, status=Transaction.PENDING).update(
        status=txn_status,
        gateway_response=payload if payload is not None else txn.gateway_response,
        updated_at=now,
    )
    if not claimed:
        logger.info("Transaction ref=%s was resolved concurrently; %s ignored", txn.order_ref, outcome)
        return False

    moved = Order.objects.filter(pk=txn.order_id, status=Order.PENDING).update(
        status=order_status, payment_status=payment_status, updated_at=now
    )
    if not moved:
        logger.error(
            "Order %s for ref=%s is no longer pending; rolling back %s",
            txn.order_id, txn.order_ref, outcome,
        )
        raise PersistenceConflict("Order changed while applying payment outcome")
    return True


def reconcile(order_ref: str, outcome: str, payload=None) -> ReconcileResult:
    """Apply a normalized gateway outcome to the payment identified by ``order_ref``.

    Raises ``NotFound`` when no Transaction carries the reference. Returns
    ``applied=False`` when the Transaction is already terminal, when the outcome
    is ambiguous, or when a concurrent call got there first.
    """
    with transaction.atomic():
        txn = (
            Transaction.objects.select_for_update()
            .select_related("order")
            .filter(order_ref=order_ref)
            .first()
        )
        if txn is None:
            raise NotFound("Transaction not found")

        if txn.is_terminal:
            logger.info(
                "Reconcile no-op for ref=%s: already %s (incoming %s)",
                order_ref, txn.status, outcome,
            )
            return ReconcileResult(applied=False, transaction=txn)

        applied = _apply_transition(txn, outcome, payload)

    txn = Transaction.objects.select_related("order").get(pk=txn.pk)
    if applied:
        logger.info(
            "Payment reconciled ref=%s outcome=%s transaction=%s order=%s/%s",
            order_ref, outcome, txn.status, txn.order.status, txn.order.payment_status,
        )
    return ReconcileResult(applied=applied, transaction=txn)


class PaymentOrchestrator:
    """Starts payments with the gateway and pulls their outcome on demand.

    ``gateway`` is anything with the :class:`~payments.integrations.cashfree.CashfreeClient`
    ``create_order`` / ``get_order_status`` methods.
    """

    def __init__(self, gateway):
        self.gateway = gateway

    def initiate(self, booking: BookingContext) -> InitiationResult:
        refs = resolve_booking_refs(booking.customer_id, booking.service_id, booking.address_id)
        txn = self._reusable_transaction(refs, booking)
        if txn is None:
            txn = self._create_records(refs, booking)
        order = txn.order

        customer = {
            "customer_id": str(refs.customer.pk),
            "customer_name": booking.customer_name or refs.customer.name or "Customer",
            "customer_phone": booking.customer_phone,
        }
        email = booking.customer_email or refs.customer.email
        if email:
            customer["customer_email"] = email

        try:
            gateway_order = self.gateway.create_order(
                order_ref=booking.order_ref,
                amount=txn.amount,
                currency=txn.currency,
                customer=customer,
                return_url=booking.return_url,
                notify_url=booking.notify_url,
            )
        except GatewayError as e:
            logger.error(
                "Payment initiation failed at stage=gateway_create_order order=%s ref=%s: %s",
                order.pk, booking.order_ref, e,
            )
            raise

        Transaction.objects.filter(pk=txn.pk, status=Transaction.PENDING).update(
            gateway_transaction_id=gateway_order.gateway_order_id or None,
            gateway_response=gateway_order.raw,
            updated_at=timezone.now(),
        )
        txn.refresh_from_db()
        logger.info(
            "Payment initiated order=%s ref=%s transaction=%s cf_order_id=%s",
            order.pk, booking.order_ref, txn.pk, gateway_order.gateway_order_id,
        )
        return InitiationResult(
            payment_session_id=gateway_order.payment_session_id,
            return_url=booking.return_url,
            order=order,
            transaction=txn,
        )

    def _reusable_transaction(self, refs: BookingRefs, booking: BookingContext) -> Transaction | None:
        """Return the rows of an earlier attempt at the same booking whose gateway call never succeeded."""
        existing = Transaction.objects.select_related("order").filter(order_ref=booking.order_ref).first()
        if existing is None:
            return None
        order = existing.order
        same_booking = (
            order.customer_id == refs.customer.pk
            and order.address_id == (refs.address.pk if refs.address else None)
            and order.items.filter(service=refs.service).exists()
            and booking.scheduled_date in (None, order.scheduled_date)
            and booking.scheduled_time in (None, order.scheduled_time)
            and existing.amount == Decimal(booking.amount)
        )
        if existing.status == Transaction.PENDING and not existing.gateway_transaction_id and same_booking:
            logger.info("Retrying gateway order creation for ref=%s", booking.order_ref)
            return existing
        raise ValidationFailed(
            "Order reference already used",
            errors={"orderId": ["This order reference already has a payment"]},
        )

    def _create_records(self, refs: BookingRefs, booking: BookingContext) -> Transaction:
        stage = "order"
        try:
            with transaction.atomic():
                order = create_booking(
                    refs,
                    amount=booking.amount,
                    scheduled_date=booking.scheduled_date or timezone.localdate(),
                    scheduled_time=booking.scheduled_time or DEFAULT_SCHEDULED_TIME,
                    notes=booking.notes,
                    order_ref=booking.order_ref,
                )
                stage = "transaction"
                txn = Transaction.objects.create(
                    order=order,
                    order_ref=booking.order_ref,
                    gateway=GATEWAY_NAME,
                    amount=booking.amount,
                    currency=CURRENCY,
                )
        except IntegrityError:
            logger.warning(
                "Payment initiation conflict at stage=%s ref=%s", stage, booking.order_ref
            )
            raise PersistenceConflict("Order reference is already in use")
        except DatabaseError:
            logger.exception(
                "Payment initiation failed at stage=%s ref=%s customer=%s",
                stage, booking.order_ref, refs.customer.pk,
            )
            raise

        logger.info("Created order=%s transaction=%s for ref=%s", order.pk, txn.pk, booking.order_ref)
        return txn

    def verify(self, order_ref: str) -> VerificationResult:
        if not Transaction.objects.filter(order_ref=order_ref).exists():
            raise NotFound("Transaction not found")

        logger.info("Verifying payment for ref=%s", order_ref)
        status = self.gateway.get_order_status(order_ref)
        outcome = outcome_from_status(status.order_status, status.payment_status)
        result = reconcile(order_ref, outcome, status.raw)
        logger.info(
            "Payment verification completed ref=%s outcome=%s applied=%s transaction=%s",
            order_ref, outcome, result.applied, result.transaction.status,
        )
        return VerificationResult(
            gateway_status=status,
            outcome=outcome,
            applied=result.applied,
            transaction=result.transaction,
        )
