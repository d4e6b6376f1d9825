from datetime import date, time
from decimal import Decimal
from io import StringIO
from unittest.mock import patch

from django.core.management import call_command
from django.db import DatabaseError
from django.test import TestCase

from accounts.models import Customer
from orders.services import BookingRefs, create_booking
from services.models import Service
from .integrations.cashfree import GatewayUnavailable
from .models import Transaction
from .services import BookingContext, PaymentOrchestrator
from .tests import FakeGateway

COMMAND = 'payments.management.commands.reconcile_pending_orders.build_gateway_client'


class LockedRowGateway(FakeGateway):
    def get_order_status(self, order_ref):
        if order_ref == 'ORDER001':
            raise DatabaseError('database is locked')
        return super().get_order_status(order_ref)


class ReconcilePendingOrdersTests(TestCase):
    def setUp(self):
        self.customer = Customer.objects.create(mobile='9876543210')
        self.service = Service.objects.create(name='Kitchen Cleaning', price=Decimal('500.00'))
        for ref in ('ORDER001', 'ORDER002'):
            PaymentOrchestrator(FakeGateway()).initiate(BookingContext(
                order_ref=ref,
                customer_id=self.customer.pk,
                service_id=self.service.pk,
                amount=Decimal('500.00'),
                customer_phone='9876543210',
            ))

    def run_command(self, gateway, *args):
        out = StringIO()
        with patch(COMMAND, return_value=gateway):
            call_command('reconcile_pending_orders', '--sleep=0', '--older-than-minutes=0', *args, stdout=out)
        return out.getvalue()

    def test_resolves_stale_payments(self):
        output = self.run_command(FakeGateway('PAID', 'SUCCESS'))

        self.assertEqual(
            set(Transaction.objects.values_list('status', flat=True)), {Transaction.SUCCESS}
        )
        self.assertIn('Updated ORDER001 -> success', output)
        self.assertIn('Checked 2, resolved 2 payments.', output)

    def test_pending_at_gateway_stays_pending(self):
        output = self.run_command(FakeGateway('ACTIVE', ''))
        self.assertIn('ORDER001: still pending', output)
        self.assertIn('Checked 2, resolved 0 payments.', output)

    def test_respects_max(self):
        gateway = FakeGateway('PAID', 'SUCCESS')
        output = self.run_command(gateway, '--max=1')
        self.assertEqual(len(gateway.status_calls), 1)
        self.assertIn('Checked 1, resolved 1 payments.', output)

    def test_recent_payments_are_skipped(self):
        gateway = FakeGateway('PAID', 'SUCCESS')
        out = StringIO()
        with patch(COMMAND, return_value=gateway):
            call_command('reconcile_pending_orders', '--sleep=0', stdout=out)
        self.assertEqual(gateway.status_calls, [])
        self.assertIn('Checked 0, resolved 0 payments.', out.getvalue())

    def test_gateway_errors_do_not_stop_the_run(self):
        output = self.run_command(FakeGateway(status_error=GatewayUnavailable('timeout')))
        self.assertIn('ORDER001: timeout', output)
        self.assertIn('ORDER002: timeout', output)
        self.assertEqual(Transaction.objects.filter(status=Transaction.PENDING).count(), 2)

    def test_reports_orders_without_transaction(self):
        order = create_booking(
            BookingRefs(customer=self.customer, service=self.service),
            amount=Decimal('500.00'),
            scheduled_date=date(2026, 1, 5),
            scheduled_time=time(10, 0),
            order_ref='ORPHAN01',
        )
        output = self.run_command(FakeGateway('ACTIVE', ''))
        self.assertIn(f'Order {order.pk} (ref ORPHAN01) has no transaction', output)

    def test_unexpected_error_on_one_row_does_not_stop_the_sweep(self):
        logger = 'payments.management.commands.reconcile_pending_orders'
        with self.assertLogs(logger, level='ERROR') as logs:
            output = self.run_command(LockedRowGateway('PAID', 'SUCCESS'))

        self.assertIn('ORDER001: unexpected error: database is locked', output)
        self.assertIn('Updated ORDER002 -> success', output)
        self.assertIn('Checked 2, resolved 1 payments.', output)
        self.assertIn('ref=ORDER001', logs.output[0])
        self.assertEqual(Transaction.objects.get(order_ref='ORDER001').status, Transaction.PENDING)
