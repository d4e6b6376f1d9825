import base64
import hashlib
import hmac
import json
from datetime import date
from decimal import Decimal
from unittest.mock import patch

from django.test import TestCase, override_settings
from django.urls import reverse

from accounts.models import Customer
from orders.models import Order
from services.models import Service
from .models import Transaction
from .services import BookingContext, PaymentOrchestrator
from .tests import FakeGateway
from .webhook import classify_event


def event(event_type, order_ref, payment_status='SUCCESS'):
    return {
        'type': event_type,
        'event_time': '2026-01-05T10:00:00+05:30',
        'data': {
            'order': {'order_id': order_ref, 'order_amount': 500.0, 'order_currency': 'INR'},
            'payment': {'cf_payment_id': 5114910, 'payment_status': payment_status},
        },
    }


class CashfreeWebhookTests(TestCase):
    def setUp(self):
        customer = Customer.objects.create(mobile='9876543210', name='Asha')
        service = Service.objects.create(name='Sofa Cleaning', price=Decimal('500.00'))
        PaymentOrchestrator(FakeGateway()).initiate(BookingContext(
            order_ref='ORDER001',
            customer_id=customer.pk,
            service_id=service.pk,
            amount=Decimal('500.00'),
            customer_phone='9876543210',
            scheduled_date=date(2026, 1, 5),
        ))

    def _post(self, payload, **headers):
        body = payload if isinstance(payload, (str, bytes)) else json.dumps(payload)
        return self.client.post(
            reverse('payments:webhook'),
            data=body,
            content_type='application/json',
            headers=headers,
        )

    def state(self):
        txn = Transaction.objects.select_related('order').get(order_ref='ORDER001')
        return txn.status, txn.order.status, txn.order.payment_status

    def test_success_webhook_confirms_order(self):
        resp = self._post(event('PAYMENT_SUCCESS_WEBHOOK', 'ORDER001'))
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.json(), {'success': True})
        self.assertEqual(self.state(), ('success', 'confirmed', 'paid'))
        txn = Transaction.objects.get(order_ref='ORDER001')
        self.assertEqual(txn.gateway_response['payment']['cf_payment_id'], 5114910)

    def test_failed_webhook(self):
        resp = self._post(event('PAYMENT_FAILED_WEBHOOK', 'ORDER001', 'FAILED'))
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(self.state(), ('failed', 'cancelled', 'failed'))

    def test_user_dropped_webhook(self):
        self._post(event('PAYMENT_USER_DROPPED_WEBHOOK', 'ORDER001', 'USER_DROPPED'))
        self.assertEqual(self.state(), ('cancelled', 'cancelled', 'failed'))

    def test_failure_after_success_is_ignored(self):
        self._post(event('PAYMENT_SUCCESS_WEBHOOK', 'ORDER001'))
        resp = self._post(event('PAYMENT_FAILED_WEBHOOK', 'ORDER001', 'FAILED'))
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.json(), {'success': True})
        self.assertEqual(self.state(), ('success', 'confirmed', 'paid'))

    def test_redelivered_success_is_idempotent(self):
        self._post(event('PAYMENT_SUCCESS_WEBHOOK', 'ORDER001'))
        first = Transaction.objects.get(order_ref='ORDER001').updated_at
        resp = self._post(event('PAYMENT_SUCCESS_WEBHOOK', 'ORDER001'))
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(Transaction.objects.get(order_ref='ORDER001').updated_at, first)

    def test_unrecognized_type_is_acknowledged(self):
        with self.assertLogs('payments.webhook', level='INFO') as logs:
            resp = self._post(event('REFUND_STATUS_WEBHOOK', 'ORDER001'))
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.json(), {'success': True})
        self.assertEqual(self.state(), ('pending', 'pending', 'pending'))
        self.assertTrue(any('Unhandled webhook type: REFUND_STATUS_WEBHOOK' in line for line in logs.output))

    def test_unknown_reference_is_acknowledged(self):
        resp = self._post(event('PAYMENT_SUCCESS_WEBHOOK', 'NOPE'))
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.json(), {'success': False})
        self.assertEqual(self.state(), ('pending', 'pending', 'pending'))

    def test_missing_reference(self):
        resp = self._post({'type': 'PAYMENT_SUCCESS_WEBHOOK', 'data': {}})
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.json(), {'success': False})

    def test_malformed_body(self):
        for body in ('{not json', '[1, 2]'):
            with self.subTest(body=body):
                resp = self._post(body)
                self.assertEqual(resp.status_code, 200)
                self.assertEqual(resp.json(), {'success': False})

    def test_processing_error_still_returns_200(self):
        with patch('payments.webhook.reconcile', side_effect=RuntimeError('db down')):
            with self.assertLogs('payments.webhook', level='ERROR'):
                resp = self._post(event('PAYMENT_SUCCESS_WEBHOOK', 'ORDER001'))
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.json(), {'success': False})
        self.assertEqual(self.state(), ('pending', 'pending', 'pending'))

    def test_get_not_allowed(self):
        resp = self.client.get(reverse('payments:webhook'))
        self.assertEqual(resp.status_code, 405)


@override_settings(CASHFREE_WEBHOOK_VERIFY_SIGNATURE=True)
class WebhookSignatureTests(TestCase):
    def setUp(self):
        customer = Customer.objects.create(mobile='9876543210')
        service = Service.objects.create(name='AC Service', price=Decimal('500.00'))
        PaymentOrchestrator(FakeGateway()).initiate(BookingContext(
            order_ref='ORDER001',
            customer_id=customer.pk,
            service_id=service.pk,
            amount=Decimal('500.00'),
            customer_phone='9876543210',
        ))
        self.body = json.dumps(event('PAYMENT_SUCCESS_WEBHOOK', 'ORDER001'))

    def sign(self, timestamp, body, secret='test-secret'):
        digest = hmac.new(secret.encode(), (timestamp + body).encode(), hashlib.sha256).digest()
        return base64.b64encode(digest).decode()

    def _post(self, signature, timestamp='1767587400'):
        return self.client.post(
            reverse('payments:webhook'),
            data=self.body,
            content_type='application/json',
            headers={'x-webhook-signature': signature, 'x-webhook-timestamp': timestamp},
        )

    def test_valid_signature_is_applied(self):
        resp = self._post(self.sign('1767587400', self.body))
        self.assertEqual(resp.json(), {'success': True})
        self.assertEqual(Order.objects.get(order_ref='ORDER001').status, 'confirmed')

    def test_invalid_signature_is_ignored(self):
        resp = self._post(self.sign('1767587400', self.body, secret='someone-else'))
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.json(), {'success': False})
        self.assertEqual(Order.objects.get(order_ref='ORDER001').status, 'pending')

    def test_missing_signature_is_ignored(self):
        resp = self._post('')
        self.assertEqual(resp.json(), {'success': False})
        self.assertEqual(Transaction.objects.get(order_ref='ORDER001').status, 'pending')


class ClassifyEventTests(TestCase):
    def test_known_types(self):
        self.assertEqual(classify_event('PAYMENT_SUCCESS_WEBHOOK'), 'paid')
        self.assertEqual(classify_event('payment_failed_webhook'), 'failed')
        self.assertEqual(classify_event('PAYMENT_USER_DROPPED_WEBHOOK'), 'dropped')

    def test_unknown_types(self):
        for value in ('REFUND_STATUS_WEBHOOK', '', None):
            with self.subTest(value=value):
                self.assertIsNone(classify_event(value))
