import uuid

from django.db import models


class Transaction(models.Model):
    PENDING = "pending"
    SUCCESS = "success"
    FAILED = "failed"
    CANCELLED = "cancelled"
    STATUS_CHOICES = [
        (PENDING, "Pending"),
        (SUCCESS, "Success"),
        (FAILED, "Failed"),
        (CANCELLED, "Cancelled"),
    ]
    TERMINAL_STATUSES = frozenset({SUCCESS, FAILED, CANCELLED})

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    order = models.OneToOneField("orders.Order", on_delete=models.PROTECT, related_name="transaction")
    # lookup key for gateway callbacks, copied from Order.order_ref at creation
    order_ref = models.CharField(max_length=50, unique=True)
    gateway = models.CharField(max_length=32, default="Cashfree")
    gateway_transaction_id = models.CharField(max_length=64, null=True, blank=True, db_index=True)
    amount = models.DecimalField(max_digits=12, decimal_places=2)
    currency = models.CharField(max_length=8, default="INR")
    status = models.CharField(max_length=16, choices=STATUS_CHOICES, default=PENDING, db_index=True)
    gateway_response = models.JSONField(blank=True, null=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ("-created_at",)

    @property
    def is_terminal(self) -> bool:
        return self.status in self.TERMINAL_STATUSES

    def __str__(self):
        return f"{self.order_ref} ({self.status}) {self.currency} {self.amount}"

    def to_dict(self) -> dict:
        return {
            "id": str(self.id),
            "orderId": self.order_ref,
            "paymentGateway": self.gateway,
            "gatewayTransactionId": self.gateway_transaction_id,
            "amount": str(self.amount),
            "currency": self.currency,
            "status": self.status,
            "createdAt": self.created_at.isoformat() if self.created_at else None,
            "updatedAt": self.updated_at.isoformat() if self.updated_at else None,
        }
