import json
from datetime import date, time
from decimal import Decimal
from unittest.mock import patch

from django.db import IntegrityError, transaction
from django.test import TestCase
from django.urls import reverse

from accounts.models import Address, Customer
from orders.models import Order, OrderItem
from qwiky.exceptions import Forbidden, NotFound, PersistenceConflict, ValidationFailed
from services.models import Service
from .integrations.cashfree import GatewayOrder, GatewayOrderStatus, GatewayRejected, GatewayUnavailable
from .models import Transaction
from .services import (
    DROPPED, FAILED, PAID, UNKNOWN, BookingContext, PaymentOrchestrator, _apply_transition,
    outcome_from_status, reconcile,
)


class FakeGateway:
    """Stands in for CashfreeClient; records calls and replays configured answers."""

    def __init__(self, order_status="ACTIVE", payment_status="", create_error=None, status_error=None):
        self.order_status = order_status
        self.payment_status = payment_status
        self.create_error = create_error
        self.status_error = status_error
        self.created = []
        self.status_calls = []

    def create_order(self, **kwargs):
        self.created.append(kwargs)
        if self.create_error:
            raise self.create_error
        raw = {"cf_order_id": "CF123", "order_id": kwargs["order_ref"], "payment_session_id": "session_abc"}
        return GatewayOrder(gateway_order_id="CF123", payment_session_id="session_abc", raw=raw)

    def get_order_status(self, order_ref):
        self.status_calls.append(order_ref)
        if self.status_error:
            raise self.status_error
        raw = {
            "order_id": order_ref,
            "cf_order_id": "CF123",
            "order_status": self.order_status,
            "payment_status": self.payment_status,
            "order_amount": 500.0,
            "payment_time": "2026-01-05T10:00:00+05:30",
        }
        return GatewayOrderStatus(
            order_ref=order_ref,
            order_status=self.order_status,
            payment_status=self.payment_status,
            amount=Decimal("500.00"),
            payment_time=raw["payment_time"],
            gateway_order_id="CF123",
            raw=raw,
        )


class PaymentFixtures:
    def setUp(self):
        self.customer = Customer.objects.create(mobile="9876543210", name="Asha", email="asha@example.com")
        self.service = Service.objects.create(name="Deep Cleaning", price=Decimal("500.00"), duration_minutes=120)
        self.address = Address.objects.create(
            customer=self.customer, address_line_1="12 MG Road", city="Jaipur", state="Rajasthan", postal_code="302001"
        )

    def booking(self, order_ref="ORDER001", **overrides):
        values = dict(
            order_ref=order_ref,
            customer_id=self.customer.pk,
            service_id=self.service.pk,
            amount=Decimal("500.00"),
            customer_phone="9876543210",
            scheduled_date=date(2026, 1, 5),
            return_url="https://app.example.com/payment/callback",
            notify_url="https://api.example.com/api/payment/webhook",
        )
        values.update(overrides)
        return BookingContext(**values)

    def initiated(self, order_ref="ORDER001", gateway=None):
        PaymentOrchestrator(gateway or FakeGateway()).initiate(self.booking(order_ref))
        return Transaction.objects.select_related("order").get(order_ref=order_ref)

    def assertState(self, order_ref, txn_status, order_status, payment_status):
        txn = Transaction.objects.select_related("order").get(order_ref=order_ref)
        self.assertEqual(txn.status, txn_status)
        self.assertEqual(txn.order.status, order_status)
        self.assertEqual(txn.order.payment_status, payment_status)


class InitiatePaymentTests(PaymentFixtures, TestCase):
    def test_initiate_creates_pending_order_and_transaction(self):
        gateway = FakeGateway()
        result = PaymentOrchestrator(gateway).initiate(self.booking())

        self.assertEqual(result.payment_session_id, "session_abc")
        order = Order.objects.get(order_ref="ORDER001")
        txn = Transaction.objects.get(order=order)
        self.assertEqual((order.status, order.payment_status), ("pending", "pending"))
        self.assertEqual(order.total_amount, Decimal("500.00"))
        self.assertEqual(txn.status, Transaction.PENDING)
        self.assertEqual(txn.amount, Decimal("500.00"))
        self.assertEqual(txn.currency, "INR")
        self.assertEqual(txn.gateway_transaction_id, "CF123")
        self.assertEqual(txn.gateway_response["payment_session_id"], "session_abc")
        self.assertEqual(OrderItem.objects.filter(order=order).count(), 1)

        sent = gateway.created[0]
        self.assertEqual(sent["order_ref"], "ORDER001")
        self.assertEqual(sent["currency"], "INR")
        self.assertEqual(sent["customer"]["customer_phone"], "9876543210")
        self.assertEqual(sent["customer"]["customer_email"], "asha@example.com")
        self.assertEqual(sent["notify_url"], "https://api.example.com/api/payment/webhook")

    def test_gateway_failure_never_marks_success(self):
        gateway = FakeGateway(create_error=GatewayUnavailable("Gateway error 502"))
        with self.assertRaises(GatewayUnavailable):
            PaymentOrchestrator(gateway).initiate(self.booking())

        self.assertState("ORDER001", Transaction.PENDING, Order.PENDING, Order.PAYMENT_PENDING)
        self.assertIsNone(Transaction.objects.get(order_ref="ORDER001").gateway_transaction_id)

    def test_retry_after_gateway_failure_reuses_records(self):
        with self.assertRaises(GatewayRejected):
            PaymentOrchestrator(FakeGateway(create_error=GatewayRejected("bad phone"))).initiate(self.booking())

        result = PaymentOrchestrator(FakeGateway()).initiate(self.booking())

        self.assertEqual(Order.objects.filter(order_ref="ORDER001").count(), 1)
        self.assertEqual(Transaction.objects.count(), 1)
        self.assertEqual(result.transaction.gateway_transaction_id, "CF123")

    def test_retry_for_a_different_booking_is_rejected(self):
        with self.assertRaises(GatewayUnavailable):
            PaymentOrchestrator(FakeGateway(create_error=GatewayUnavailable())).initiate(self.booking())

        other_service = Service.objects.create(name="Sofa Cleaning", price=Decimal("500.00"))
        changes = [
            {"service_id": other_service.pk},
            {"address_id": self.address.pk},
            {"scheduled_date": date(2026, 1, 6)},
            {"scheduled_time": time(15, 0)},
        ]
        for change in changes:
            with self.subTest(change=sorted(change)):
                gateway = FakeGateway()
                with self.assertRaises(ValidationFailed):
                    PaymentOrchestrator(gateway).initiate(self.booking(**change))
                self.assertEqual(gateway.created, [])

        order = Order.objects.get(order_ref="ORDER001")
        self.assertEqual(order.items.get().service, self.service)
        self.assertIsNone(order.address)

    def test_reused_reference_after_gateway_accepted_is_rejected(self):
        self.initiated()
        with self.assertRaises(ValidationFailed):
            PaymentOrchestrator(FakeGateway()).initiate(self.booking())
        self.assertEqual(Order.objects.count(), 1)

    def test_unknown_customer(self):
        with self.assertRaises(NotFound):
            PaymentOrchestrator(FakeGateway()).initiate(
                self.booking(customer_id="00000000-0000-0000-0000-000000000000")
            )
        self.assertFalse(Order.objects.exists())

    def test_inactive_service(self):
        self.service.is_active = False
        self.service.save()
        with self.assertRaises(NotFound):
            PaymentOrchestrator(FakeGateway()).initiate(self.booking())
        self.assertFalse(Order.objects.exists())

    def test_address_of_another_customer_is_forbidden(self):
        other = Customer.objects.create(mobile="9123456780")
        foreign = Address.objects.create(
            customer=other, address_line_1="1 Park St", city="Kolkata", state="WB", postal_code="700016"
        )
        gateway = FakeGateway()
        with self.assertRaises(Forbidden):
            PaymentOrchestrator(gateway).initiate(self.booking(address_id=foreign.pk))
        self.assertEqual(gateway.created, [])
        self.assertFalse(Order.objects.exists())

    def test_own_address_is_attached(self):
        PaymentOrchestrator(FakeGateway()).initiate(self.booking(address_id=self.address.pk))
        self.assertEqual(Order.objects.get().address, self.address)


class ReconcileTests(PaymentFixtures, TestCase):
    def test_outcome_mapping(self):
        expected = {
            PAID: ("success", "confirmed", "paid"),
            FAILED: ("failed", "cancelled", "failed"),
            DROPPED: ("cancelled", "cancelled", "failed"),
        }
        for i, (outcome, state) in enumerate(expected.items()):
            with self.subTest(outcome=outcome):
                ref = f"MAP{i}"
                self.initiated(ref)
                result = reconcile(ref, outcome, {"n": i})
                self.assertTrue(result.applied)
                self.assertState(ref, *state)
                self.assertEqual(result.transaction.gateway_response, {"n": i})

    def test_ambiguous_outcome_leaves_pending(self):
        self.initiated()
        result = reconcile("ORDER001", UNKNOWN, {"order_status": "ACTIVE"})
        self.assertFalse(result.applied)
        self.assertState("ORDER001", "pending", "pending", "pending")
        self.assertEqual(result.transaction.gateway_response, {"order_status": "ACTIVE"})

    def test_terminal_state_is_sticky(self):
        self.initiated()
        reconcile("ORDER001", PAID, {"first": True})
        before = Transaction.objects.get(order_ref="ORDER001")

        for outcome in (PAID, FAILED, DROPPED, UNKNOWN):
            with self.subTest(outcome=outcome):
                result = reconcile("ORDER001", outcome, {"late": outcome})
                self.assertFalse(result.applied)
                self.assertState("ORDER001", "success", "confirmed", "paid")

        after = Transaction.objects.get(order_ref="ORDER001")
        self.assertEqual(after.gateway_response, {"first": True})
        self.assertEqual(after.updated_at, before.updated_at)

    def test_unknown_reference(self):
        with self.assertRaises(NotFound):
            reconcile("NOPE", PAID, {})

    def test_concurrent_loser_observes_no_op(self):
        self.initiated()
        stale = Transaction.objects.get(order_ref="ORDER001")

        first = reconcile("ORDER001", PAID, {"winner": True})
        with transaction.atomic():
            second = _apply_transition(stale, FAILED, {"loser": True})

        self.assertTrue(first.applied)
        self.assertFalse(second)
        self.assertState("ORDER001", "success", "confirmed", "paid")
        self.assertEqual(Transaction.objects.get(order_ref="ORDER001").gateway_response, {"winner": True})

    def test_competing_reconciles_report_same_final_state(self):
        self.initiated()
        winner = reconcile("ORDER001", PAID, {"cf_payment_id": 1})
        loser = reconcile("ORDER001", FAILED, {"cf_payment_id": 2})

        self.assertTrue(winner.applied)
        self.assertFalse(loser.applied)
        for result in (winner, loser):
            self.assertEqual(result.transaction.status, "success")
            self.assertEqual((result.order.status, result.order.payment_status), ("confirmed", "paid"))
            self.assertEqual(result.transaction.gateway_response, {"cf_payment_id": 1})

    def test_interleaved_reconciles_converge(self):
        # The webhook commits between the poll reading the row and writing it
        self.initiated()
        started, competitor = [], []

        def apply_after_competitor(txn, outcome, payload):
            if not started:
                started.append(outcome)
                competitor.append(reconcile("ORDER001", FAILED, {"by": "webhook"}))
            return _apply_transition(txn, outcome, payload)

        with patch("payments.services._apply_transition", side_effect=apply_after_competitor):
            poll = reconcile("ORDER001", PAID, {"by": "verify"})

        webhook = competitor[0]
        self.assertTrue(webhook.applied)
        self.assertFalse(poll.applied)
        for result in (poll, webhook):
            self.assertEqual(result.transaction.status, "failed")
            self.assertEqual((result.order.status, result.order.payment_status), ("cancelled", "failed"))
        self.assertEqual(poll.transaction.gateway_response, {"by": "webhook"})

    def test_same_outcome_twice_applies_once(self):
        self.initiated()
        first = reconcile("ORDER001", PAID, {})
        second = reconcile("ORDER001", PAID, {})
        self.assertTrue(first.applied)
        self.assertFalse(second.applied)
        self.assertEqual(first.transaction.status, second.transaction.status)
        self.assertEqual(first.order.status, second.order.status)

    def test_order_moved_elsewhere_rolls_back_transaction(self):
        txn = self.initiated()
        Order.objects.filter(pk=txn.order_id).update(status="cancelled", payment_status="failed")

        with self.assertRaises(PersistenceConflict):
            reconcile("ORDER001", PAID, {})

        self.assertEqual(Transaction.objects.get(pk=txn.pk).status, Transaction.PENDING)

    def test_contradictory_order_state_is_rejected_by_database(self):
        txn = self.initiated()
        with self.assertRaises(IntegrityError):
            with transaction.atomic():
                Order.objects.filter(pk=txn.order_id).update(status="confirmed", payment_status="failed")


class OutcomeFromStatusTests(TestCase):
    def test_normalization(self):
        cases = [
            (("PAID", "SUCCESS"), PAID),
            (("paid", "success"), PAID),
            (("ACTIVE", "FAILED"), FAILED),
            (("ACTIVE", "USER_DROPPED"), DROPPED),
            (("PAID", ""), UNKNOWN),
            (("ACTIVE", "PENDING"), UNKNOWN),
            (("EXPIRED", None), UNKNOWN),
        ]
        for args, expected in cases:
            with self.subTest(args=args):
                self.assertEqual(outcome_from_status(*args), expected)


class VerifyTests(PaymentFixtures, TestCase):
    def test_verify_paid(self):
        self.initiated()
        result = PaymentOrchestrator(FakeGateway("PAID", "SUCCESS")).verify("ORDER001")

        self.assertTrue(result.applied)
        self.assertEqual(result.outcome, PAID)
        self.assertState("ORDER001", "success", "confirmed", "paid")
        self.assertEqual(result.transaction.gateway_response["order_status"], "PAID")

    def test_verify_failed_and_dropped(self):
        for i, (payment_status, txn_status) in enumerate([("FAILED", "failed"), ("USER_DROPPED", "cancelled")]):
            with self.subTest(payment_status=payment_status):
                ref = f"VER{i}"
                self.initiated(ref)
                PaymentOrchestrator(FakeGateway("ACTIVE", payment_status)).verify(ref)
                self.assertState(ref, txn_status, "cancelled", "failed")

    def test_verify_pending_is_repeatable(self):
        self.initiated()
        gateway = FakeGateway("ACTIVE", "")
        orchestrator = PaymentOrchestrator(gateway)
        orchestrator.verify("ORDER001")
        orchestrator.verify("ORDER001")
        self.assertEqual(len(gateway.status_calls), 2)
        self.assertState("ORDER001", "pending", "pending", "pending")

    def test_verify_never_downgrades(self):
        self.initiated()
        PaymentOrchestrator(FakeGateway("PAID", "SUCCESS")).verify("ORDER001")
        result = PaymentOrchestrator(FakeGateway("ACTIVE", "FAILED")).verify("ORDER001")
        self.assertFalse(result.applied)
        self.assertState("ORDER001", "success", "confirmed", "paid")

    def test_verify_unknown_reference(self):
        gateway = FakeGateway("PAID", "SUCCESS")
        with self.assertRaises(NotFound):
            PaymentOrchestrator(gateway).verify("MISSING")
        self.assertEqual(gateway.status_calls, [])

    def test_gateway_error_applies_nothing(self):
        self.initiated()
        with self.assertRaises(GatewayUnavailable):
            PaymentOrchestrator(FakeGateway(status_error=GatewayUnavailable())).verify("ORDER001")
        self.assertState("ORDER001", "pending", "pending", "pending")


class PaymentApiTests(PaymentFixtures, TestCase):
    def _create(self, payload):
        return self.client.post(
            reverse("payments:create_order"), data=json.dumps(payload), content_type="application/json"
        )

    def payload(self, **overrides):
        body = {
            "orderId": "ORDER001",
            "userId": str(self.customer.pk),
            "serviceId": str(self.service.pk),
            "amount": 500.00,
            "customerDetails": {"customerPhone": "9876543210", "customerName": "Asha"},
        }
        body.update(overrides)
        return body

    def test_create_order_returns_session(self):
        gateway = FakeGateway()
        with patch("payments.views.build_gateway_client", return_value=gateway):
            resp = self._create(self.payload())

        self.assertEqual(resp.status_code, 200)
        body = resp.json()
        self.assertTrue(body["success"])
        self.assertEqual(body["data"]["paymentRequestBody"]["paymentSessionId"], "session_abc")
        self.assertEqual(body["data"]["paymentRequestBody"]["returnUrl"], "https://app.example.com/payment/callback")
        self.assertEqual(body["order"]["orderId"], "ORDER001")
        self.assertEqual(body["order"]["status"], "pending")
        self.assertEqual(body["transaction"]["status"], "pending")
        self.assertEqual(gateway.created[0]["notify_url"], "http://testserver/api/payment/webhook")

    def test_create_order_requires_customer_phone(self):
        with patch("payments.views.build_gateway_client", return_value=FakeGateway()):
            resp = self._create(self.payload(customerDetails={"customerName": "Asha"}))
        self.assertEqual(resp.status_code, 400)
        self.assertIn("customerPhone", resp.json()["errors"])
        self.assertFalse(Order.objects.exists())

    def test_create_order_rejects_small_amount(self):
        with patch("payments.views.build_gateway_client", return_value=FakeGateway()):
            resp = self._create(self.payload(amount=0))
        self.assertEqual(resp.status_code, 400)
        self.assertIn("amount", resp.json()["errors"])

    def test_create_order_unknown_user(self):
        with patch("payments.views.build_gateway_client", return_value=FakeGateway()):
            resp = self._create(self.payload(userId="00000000-0000-0000-0000-000000000000"))
        self.assertEqual(resp.status_code, 404)
        self.assertEqual(resp.json(), {"success": False, "message": "User not found"})

    def test_create_order_gateway_rejection(self):
        error = GatewayRejected("customer_phone invalid", payload={"code": "customer_details.customer_phone_invalid"})
        with patch("payments.views.build_gateway_client", return_value=FakeGateway(create_error=error)):
            resp = self._create(self.payload())
        self.assertEqual(resp.status_code, 400)
        self.assertFalse(resp.json()["success"])
        self.assertState("ORDER001", "pending", "pending", "pending")

    def test_verify_endpoint(self):
        self.initiated()
        with patch("payments.views.build_gateway_client", return_value=FakeGateway("PAID", "SUCCESS")):
            resp = self.client.get(reverse("payments:verify", args=["ORDER001"]))

        self.assertEqual(resp.status_code, 200)
        body = resp.json()
        self.assertEqual(body["order_status"], "PAID")
        self.assertEqual(body["payment_status"], "SUCCESS")
        self.assertEqual(body["transaction_status"], "success")
        self.assertEqual(body["cf_order_id"], "CF123")
        self.assertEqual(body["order"]["status"], "confirmed")
        self.assertTrue(body["applied"])

    def test_verify_endpoint_unknown_reference(self):
        with patch("payments.views.build_gateway_client", return_value=FakeGateway()):
            resp = self.client.get(reverse("payments:verify", args=["MISSING"]))
        self.assertEqual(resp.status_code, 404)

    def test_verify_endpoint_gateway_down(self):
        self.initiated()
        gateway = FakeGateway(status_error=GatewayUnavailable("Gateway request failed: timeout"))
        with patch("payments.views.build_gateway_client", return_value=gateway):
            resp = self.client.get(reverse("payments:verify", args=["ORDER001"]))
        self.assertEqual(resp.status_code, 503)
        self.assertState("ORDER001", "pending", "pending", "pending")

    def test_test_endpoint(self):
        resp = self.client.get(reverse("payments:test"))
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.json()["environment"], "SANDBOX")
