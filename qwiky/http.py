"""Small helpers shared by the JSON views."""
import json

from django.http import JsonResponse

from .exceptions import ValidationFailed


def json_body(request) -> dict:
    try:
        body = json.loads(request.body.decode("utf-8") or "{}")
    except (UnicodeDecodeError, json.JSONDecodeError):
        raise ValidationFailed("Invalid JSON body")
    if not isinstance(body, dict):
        raise ValidationFailed("JSON body must be an object")
    return body


def validated(form) -> dict:
    """Return ``form.cleaned_data`` or raise ``ValidationFailed`` with the form errors."""
    if not form.is_valid():
        errors = {field: [str(e) for e in errs] for field, errs in form.errors.items()}
        raise ValidationFailed("Validation failed", errors=errors)
    return form.cleaned_data


def ok(status=200, **payload) -> JsonResponse:
    return JsonResponse({"success": True, **payload}, status=status)
