import uuid
from decimal import Decimal

from django.core.validators import MinValueValidator
from django.db import models
from django.db.models import Q


class Order(models.Model):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"
    STATUS_CHOICES = [
        (PENDING, "Pending"),
        (CONFIRMED, "Confirmed"),
        (CANCELLED, "Cancelled"),
    ]

    PAYMENT_PENDING = "pending"
    PAYMENT_PAID = "paid"
    PAYMENT_FAILED = "failed"
    PAYMENT_STATUS_CHOICES = [
        (PAYMENT_PENDING, "Pending"),
        (PAYMENT_PAID, "Paid"),
        (PAYMENT_FAILED, "Failed"),
    ]

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    # caller supplied, echoed back by the gateway; null for bookings made without payment
    order_ref = models.CharField(max_length=50, unique=True, null=True, blank=True)
    customer = models.ForeignKey("accounts.Customer", on_delete=models.PROTECT, related_name="orders")
    address = models.ForeignKey(
        "accounts.Address", on_delete=models.SET_NULL, null=True, blank=True, related_name="orders"
    )
    subtotal = models.DecimalField(max_digits=12, decimal_places=2, validators=[MinValueValidator(0)])
    discount_amount = models.DecimalField(
        max_digits=12, decimal_places=2, default=Decimal("0.00"), validators=[MinValueValidator(0)]
    )
    total_amount = models.DecimalField(max_digits=12, decimal_places=2, validators=[MinValueValidator(0)])
    scheduled_date = models.DateField()
    scheduled_time = models.TimeField()
    status = models.CharField(max_length=16, choices=STATUS_CHOICES, default=PENDING, db_index=True)
    payment_status = models.CharField(
        max_length=16, choices=PAYMENT_STATUS_CHOICES, default=PAYMENT_PENDING, db_index=True
    )
    notes = models.TextField(blank=True, default="")
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ("-created_at",)
        constraints = [
            models.CheckConstraint(
                condition=(
                    Q(status="pending", payment_status="pending")
                    | Q(status="confirmed", payment_status="paid")
                    | Q(status="cancelled", payment_status="failed")
                ),
                name="order_status_matches_payment_status",
            ),
        ]

    def __str__(self):
        return f"{self.order_ref or self.pk} ({self.status}/{self.payment_status})"

    def save(self, *args, **kwargs):
        self.total_amount = self.subtotal - (self.discount_amount or Decimal("0"))
        super().save(*args, **kwargs)

    def to_dict(self, *, items=False, address=False, transaction=False) -> dict:
        data = {
            "id": str(self.id),
            "orderId": self.order_ref,
            "userId": str(self.customer_id),
            "status": self.status,
            "paymentStatus": self.payment_status,
            "subtotal": str(self.subtotal),
            "discountAmount": str(self.discount_amount),
            "totalAmount": str(self.total_amount),
            "scheduledDate": self.scheduled_date.isoformat(),
            "scheduledTime": self.scheduled_time.strftime("%H:%M"),
            "notes": self.notes,
            "createdAt": self.created_at.isoformat() if self.created_at else None,
            "updatedAt": self.updated_at.isoformat() if self.updated_at else None,
        }
        if items:
            data["items"] = [item.to_dict() for item in self.items.all()]
        if address:
            data["address"] = self.address.to_dict() if self.address_id else None
        if transaction:
            txn = getattr(self, "transaction", None)
            data["transaction"] = txn.to_dict() if txn else None
        return data


class OrderItem(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    order = models.ForeignKey(Order, on_delete=models.CASCADE, related_name="items")
    service = models.ForeignKey("services.Service", on_delete=models.PROTECT, related_name="order_items")
    quantity = models.PositiveIntegerField(default=1)
    unit_price = models.DecimalField(max_digits=12, decimal_places=2)
    total_price = models.DecimalField(max_digits=12, decimal_places=2)
    created_at = models.DateTimeField(auto_now_add=True)

    def __str__(self):
        return f"{self.quantity} x {self.service_id}"

    def to_dict(self) -> dict:
        return {
            "id": str(self.id),
            "serviceId": str(self.service_id),
            "quantity": self.quantity,
            "unitPrice": str(self.unit_price),
            "totalPrice": str(self.total_price),
            "service": self.service.to_dict(),
        }
