from decimal import Decimal

from django import forms
from django.core.validators import RegexValidator

# Cashfree accepts alphanumerics, '-' and '_' up to 45 characters
order_ref_validator = RegexValidator(r"^[A-Za-z0-9_-]{1,45}$", "Order ID may contain letters, digits, '-' and '_' only")


class CreatePaymentForm(forms.Form):
    orderId = forms.CharField(max_length=45, validators=[order_ref_validator])
    userId = forms.UUIDField()
    serviceId = forms.UUIDField()
    amount = forms.DecimalField(min_value=Decimal("1"), max_digits=12, decimal_places=2)
    addressId = forms.UUIDField(required=False)
    scheduledDate = forms.DateField(required=False, input_formats=["%Y-%m-%d"])
    scheduledTime = forms.TimeField(required=False, input_formats=["%H:%M"])
    notes = forms.CharField(required=False)


class CustomerDetailsForm(forms.Form):
    customerPhone = forms.CharField(max_length=16)
    customerName = forms.CharField(max_length=150, required=False)
    customerEmail = forms.EmailField(required=False)
