import logging

from django.core.exceptions import ValidationError as DjangoValidationError
from django.db import transaction
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_GET, require_http_methods, require_POST

from qwiky.exceptions import NotFound
from qwiky.http import json_body, ok, validated
from .forms import AddressForm, CustomerUpdateForm, SignUpForm
from .models import Address, Customer

logger = logging.getLogger(__name__)


def _get_customer(customer_id) -> Customer:
    try:
        return Customer.objects.get(pk=customer_id)
    except (Customer.DoesNotExist, DjangoValidationError):
        raise NotFound("User not found")


@csrf_exempt
@require_POST
def signup_view(request):
    data = validated(SignUpForm(json_body(request)))
    existing = Customer.objects.filter(mobile=data["mobile"]).first()
    if existing:
        return ok(message="User already exists", user=existing.to_dict(), isExisting=True)

    customer = Customer.objects.create(
        mobile=data["mobile"],
        name=data.get("name") or "",
        email=data.get("email") or "",
    )
    logger.info("Customer created id=%s mobile=%s", customer.pk, customer.mobile)
    return ok(status=201, message="User created successfully", user=customer.to_dict(), isExisting=False)


@csrf_exempt
@require_http_methods(["GET", "PUT"])
def customer_view(request, customer_id):
    customer = _get_customer(customer_id)
    if request.method == "GET":
        return ok(user=customer.to_dict())

    body = json_body(request)
    data = validated(CustomerUpdateForm(body))
    # Only fields present in the body are touched
    for field in ("name", "email"):
        if field in body:
            setattr(customer, field, data.get(field) or "")
    customer.save()
    logger.info("Customer updated id=%s", customer.pk)
    return ok(message="User updated successfully", user=customer.to_dict())


@csrf_exempt
@require_POST
def address_create_view(request):
    body = json_body(request)
    customer = _get_customer(body.get("userId"))
    form = AddressForm(body)
    validated(form)

    with transaction.atomic():
        address = form.save(commit=False)
        address.customer = customer
        if address.is_default:
            Address.objects.filter(customer=customer).update(is_default=False)
        address.save()

    logger.info("Address created id=%s customer=%s", address.pk, customer.pk)
    return ok(status=201, message="Address created successfully", address=address.to_dict())


@require_GET
def address_list_view(request, customer_id):
    customer = _get_customer(customer_id)
    addresses = [a.to_dict() for a in customer.addresses.all()]
    return ok(addresses=addresses, count=len(addresses))


@csrf_exempt
@require_http_methods(["PUT"])
def address_update_view(request, address_id):
    try:
        address = Address.objects.get(pk=address_id)
    except Address.DoesNotExist:
        raise NotFound("Address not found")

    form = AddressForm(json_body(request), instance=address, partial=True)
    validated(form)
    with transaction.atomic():
        address = form.save(commit=False)
        if address.is_default:
            Address.objects.filter(customer_id=address.customer_id).exclude(pk=address.pk).update(is_default=False)
        address.save()

    return ok(message="Address updated successfully", address=address.to_dict())
