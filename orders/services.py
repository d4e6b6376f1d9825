"""Booking helpers shared by the plain order API and the payment flow."""
import logging
from dataclasses import dataclass
from datetime import date, time
from decimal import Decimal

from django.core.exceptions import ValidationError as DjangoValidationError
from django.db import transaction

from accounts.models import Address, Customer
from qwiky.exceptions import Forbidden, NotFound
from services.models import Service
from .models import Order, OrderItem

logger = logging.getLogger(__name__)


@dataclass
class BookingRefs:
    customer: Customer
    service: Service
    address: Address | None = None


def resolve_booking_refs(customer_id, service_id, address_id=None) -> BookingRefs:
    """Load the customer, the active service and, if given, the customer's address.

    Raises ``NotFound`` for a missing customer, service, inactive service or
    missing address, and ``Forbidden`` when the address belongs to someone else.
    """
    try:
        customer = Customer.objects.get(pk=customer_id)
    except (Customer.DoesNotExist, DjangoValidationError):
        raise NotFound("User not found")

    try:
        service = Service.active.get(pk=service_id)
    except (Service.DoesNotExist, DjangoValidationError):
        raise NotFound("Service not found or inactive")

    address = None
    if address_id:
        try:
            address = Address.objects.get(pk=address_id)
        except (Address.DoesNotExist, DjangoValidationError):
            raise NotFound("Address not found")
        if address.customer_id != customer.pk:
            raise Forbidden("Address does not belong to user")

    return BookingRefs(customer=customer, service=service, address=address)


@transaction.atomic
def create_booking(refs: BookingRefs, *, amount: Decimal, scheduled_date: date, scheduled_time: time,
                   notes: str = "", order_ref: str | None = None) -> Order:
    """Create a ``pending/pending`` order with its single line item."""
    order = Order.objects.create(
        order_ref=order_ref,
        customer=refs.customer,
        address=refs.address,
        subtotal=amount,
        discount_amount=Decimal("0.00"),
        total_amount=amount,
        scheduled_date=scheduled_date,
        scheduled_time=scheduled_time,
        notes=notes or "",
    )
    OrderItem.objects.create(
        order=order,
        service=refs.service,
        quantity=1,
        unit_price=amount,
        total_price=amount,
    )
    return order
