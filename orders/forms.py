from django import forms


class BookingForm(forms.Form):
    userId = forms.UUIDField()
    serviceId = forms.UUIDField()
    addressId = forms.UUIDField(required=False)
    scheduledDate = forms.DateField(input_formats=["%Y-%m-%d"])
    scheduledTime = forms.TimeField(input_formats=["%H:%M"])
    notes = forms.CharField(required=False)
