import base64
import hashlib
import hmac
from decimal import Decimal
from unittest.mock import Mock

import requests
from django.core.exceptions import ImproperlyConfigured
from django.test import SimpleTestCase, override_settings

from .integrations.cashfree import (
    CashfreeClient, CashfreeConfig, GatewayRejected, GatewayUnavailable, verify_webhook_signature,
)


class FakeResponse:
    def __init__(self, status_code=200, data=None, text=''):
        self.status_code = status_code
        self._data = data
        self.text = text

    def json(self):
        if self._data is None:
            raise ValueError('No JSON object could be decoded')
        return self._data


def client_with(response=None, error=None):
    session = Mock()
    if error is not None:
        session.request.side_effect = error
    else:
        session.request.return_value = response
    config = CashfreeConfig(environment='SANDBOX', app_id='app', secret_key='secret')
    return CashfreeClient(config, session=session), session


class CashfreeConfigTests(SimpleTestCase):
    @override_settings(CASHFREE_ENV='SANDBOX', CASHFREE_APP_ID='sb-id', CASHFREE_SECRET_KEY='sb-secret')
    def test_sandbox(self):
        config = CashfreeConfig.from_settings()
        self.assertEqual(config.base_url, 'https://sandbox.cashfree.com/pg')
        self.assertEqual(config.app_id, 'sb-id')
        self.assertFalse(config.is_production)

    @override_settings(CASHFREE_ENV='production', CASHFREE_APP_ID_PROD='live-id', CASHFREE_SECRET_KEY_PROD='live-secret')
    def test_production_uses_live_credentials(self):
        config = CashfreeConfig.from_settings()
        self.assertEqual(config.base_url, 'https://api.cashfree.com/pg')
        self.assertEqual(config.secret_key, 'live-secret')
        self.assertTrue(config.is_production)

    @override_settings(CASHFREE_ENV='PRODUCTION', CASHFREE_APP_ID_PROD='', CASHFREE_SECRET_KEY_PROD='')
    def test_missing_credentials(self):
        with self.assertRaises(ImproperlyConfigured):
            CashfreeConfig.from_settings()

    @override_settings(CASHFREE_ENV='STAGING')
    def test_unknown_environment(self):
        with self.assertRaises(ImproperlyConfigured):
            CashfreeConfig.from_settings()


class CashfreeClientTests(SimpleTestCase):
    def test_create_order(self):
        client, session = client_with(FakeResponse(200, {
            'cf_order_id': 2149460581,
            'order_id': 'ORDER001',
            'order_status': 'ACTIVE',
            'payment_session_id': 'session_abc',
        }))
        result = client.create_order(
            order_ref='ORDER001',
            amount=Decimal('500.00'),
            currency='INR',
            customer={'customer_id': 'c1', 'customer_phone': '9876543210'},
            return_url='https://app.example.com/payment/callback',
            notify_url='https://api.example.com/api/payment/webhook',
        )

        self.assertEqual(result.payment_session_id, 'session_abc')
        self.assertEqual(result.gateway_order_id, '2149460581')
        method, url = session.request.call_args.args
        kwargs = session.request.call_args.kwargs
        self.assertEqual((method, url), ('POST', 'https://sandbox.cashfree.com/pg/orders'))
        self.assertEqual(kwargs['json']['order_amount'], 500.0)
        self.assertEqual(kwargs['json']['order_meta']['notify_url'], 'https://api.example.com/api/payment/webhook')
        self.assertEqual(kwargs['headers']['x-client-id'], 'app')
        self.assertEqual(kwargs['headers']['x-api-version'], '2023-08-01')

    def test_create_order_without_session(self):
        client, _ = client_with(FakeResponse(200, {'cf_order_id': 1, 'order_id': 'ORDER001'}))
        with self.assertRaises(GatewayRejected):
            client.create_order(order_ref='ORDER001', amount=1, currency='INR', customer={},
                                return_url='', notify_url='')

    def test_client_error_is_rejection(self):
        client, _ = client_with(FakeResponse(400, {'message': 'order_id is invalid', 'code': 'order_id_invalid'}))
        with self.assertRaises(GatewayRejected) as ctx:
            client.get_order_status('bad ref')
        self.assertEqual(ctx.exception.message, 'order_id is invalid')
        self.assertEqual(ctx.exception.http_status, 400)
        self.assertEqual(ctx.exception.as_dict()['gatewayError']['code'], 'order_id_invalid')

    def test_server_error_is_unavailable(self):
        client, _ = client_with(FakeResponse(502, None, text='<html>Bad Gateway</html>'))
        with self.assertRaises(GatewayUnavailable):
            client.get_order_status('ORDER001')

    def test_transport_error_is_unavailable(self):
        client, _ = client_with(error=requests.Timeout('read timed out'))
        with self.assertRaises(GatewayUnavailable):
            client.get_order_status('ORDER001')

    def test_get_order_status(self):
        client, session = client_with(FakeResponse(200, {
            'cf_order_id': 2149460581,
            'order_id': 'ORDER001',
            'order_amount': 500,
            'order_status': 'PAID',
            'payment_status': 'success',
            'payment_time': '2026-01-05T10:00:00+05:30',
        }))
        status = client.get_order_status('ORDER001')

        self.assertEqual(session.request.call_args.args[1], 'https://sandbox.cashfree.com/pg/orders/ORDER001')
        self.assertEqual(status.order_status, 'PAID')
        self.assertEqual(status.payment_status, 'SUCCESS')
        self.assertEqual(status.amount, Decimal('500'))
        self.assertEqual(status.gateway_order_id, '2149460581')
        self.assertEqual(status.raw['order_id'], 'ORDER001')


class WebhookSignatureTests(SimpleTestCase):
    def _sign(self, timestamp, body, secret):
        return base64.b64encode(hmac.new(secret.encode(), timestamp.encode() + body, hashlib.sha256).digest()).decode()

    def test_valid(self):
        body = b'{"a":1}'
        signature = self._sign('1700000000', body, 'secret')
        self.assertTrue(verify_webhook_signature(body, '1700000000', signature, 'secret'))

    def test_tampered_body(self):
        signature = self._sign('1700000000', b'{"a":1}', 'secret')
        self.assertFalse(verify_webhook_signature(b'{"a":2}', '1700000000', signature, 'secret'))

    def test_missing_parts(self):
        self.assertFalse(verify_webhook_signature(b'{}', '', 'sig', 'secret'))
        self.assertFalse(verify_webhook_signature(b'{}', '1', '', 'secret'))
        self.assertFalse(verify_webhook_signature(b'{}', '1', 'sig', ''))

    def test_non_ascii_signature(self):
        self.assertFalse(verify_webhook_signature(b'{}', '1', 'sïg', 'secret'))
