import logging
import time
from datetime import timedelta

from django.core.management.base import BaseCommand
from django.utils import timezone

from orders.models import Order
from payments.integrations.cashfree import GatewayError, build_gateway_client
from payments.models import Transaction
from payments.services import PaymentOrchestrator
from qwiky.exceptions import ApiError

logger = logging.getLogger(__name__)


class Command(BaseCommand):
    help = "Force a verification pass for stale pending payments and report orders left without a transaction"

    def add_arguments(self, parser):
        parser.add_argument("--max", type=int, default=50)
        parser.add_argument("--sleep", type=float, default=0.5)
        parser.add_argument("--older-than-minutes", type=int, default=15)

    def handle(self, *args, **opts):
        cutoff = timezone.now() - timedelta(minutes=opts["older_than_minutes"])
        orchestrator = PaymentOrchestrator(build_gateway_client())

        qs = (
            Transaction.objects.filter(status=Transaction.PENDING, updated_at__lt=cutoff)
            .order_by("updated_at")[: opts["max"]]
        )
        checked = resolved = 0
        for txn in qs:
            checked += 1
            try:
                result = orchestrator.verify(txn.order_ref)
            except GatewayError as e:
                self.stdout.write(self.style.WARNING(f"{txn.order_ref}: {e}"))
            except ApiError as e:
                self.stdout.write(self.style.ERROR(f"{txn.order_ref}: {e}"))
            except Exception as e:
                logger.exception("Reconcile failed for ref=%s", txn.order_ref)
                self.stdout.write(self.style.ERROR(f"{txn.order_ref}: unexpected error: {e}"))
            else:
                if result.applied:
                    resolved += 1
                    self.stdout.write(self.style.SUCCESS(f"Updated {txn.order_ref} -> {result.transaction.status}"))
                else:
                    self.stdout.write(f"{txn.order_ref}: still {result.transaction.status}")
            if opts["sleep"]:
                time.sleep(opts["sleep"])

        orphans = Order.objects.filter(
            status=Order.PENDING, order_ref__isnull=False, transaction__isnull=True, created_at__lt=cutoff
        )
        for order in orphans:
            self.stdout.write(self.style.WARNING(
                f"Order {order.pk} (ref {order.order_ref}) has no transaction; needs manual cleanup"
            ))

        self.stdout.write(self.style.SUCCESS(f"Checked {checked}, resolved {resolved} payments."))
