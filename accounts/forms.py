from django import forms

from .models import Address, indian_mobile


class SignUpForm(forms.Form):
    mobile = forms.CharField(max_length=16, validators=[indian_mobile])
    name = forms.CharField(max_length=150, min_length=2, required=False)
    email = forms.EmailField(required=False)

    def clean_mobile(self):
        # Store numbers without the country prefix so one phone maps to one customer
        mobile = self.cleaned_data["mobile"].strip()
        return mobile[3:] if mobile.startswith("+91") else mobile


class CustomerUpdateForm(forms.Form):
    name = forms.CharField(max_length=150, min_length=2, required=False)
    email = forms.EmailField(required=False)


class AddressForm(forms.ModelForm):
    """Maps the camelCase API fields onto :class:`Address` columns."""

    FIELD_MAP = {
        "addressLine1": "address_line_1",
        "addressLine2": "address_line_2",
        "city": "city",
        "state": "state",
        "postalCode": "postal_code",
        "country": "country",
        "latitude": "latitude",
        "longitude": "longitude",
        "googlePlaceId": "google_place_id",
        "isDefault": "is_default",
    }

    class Meta:
        model = Address
        fields = (
            "address_line_1", "address_line_2", "city", "state", "postal_code",
            "country", "latitude", "longitude", "google_place_id", "is_default",
        )

    def __init__(self, payload=None, *args, partial=False, **kwargs):
        data = None
        if payload is not None:
            data = {model_field: payload[api_field]
                    for api_field, model_field in self.FIELD_MAP.items() if api_field in payload}
            instance = kwargs.get("instance")
            if partial and instance is not None:
                for field in self.Meta.fields:
                    data.setdefault(field, getattr(instance, field))
            data.setdefault("country", "India")
        super().__init__(data, *args, **kwargs)
