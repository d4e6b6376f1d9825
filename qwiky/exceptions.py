"""Error taxonomy shared by the API views and the payment core.

Every error raised towards a client derives from :class:`ApiError`, which
carries the HTTP status the error middleware answers with.
"""


class ApiError(Exception):
    status_code = 500
    default_message = "Internal server error"

    def __init__(self, message: str | None = None, **extra):
        self.message = message or self.default_message
        self.extra = extra
        super().__init__(self.message)

    def as_dict(self) -> dict:
        return {"success": False, "message": self.message, **self.extra}


class NotFound(ApiError):
    status_code = 404
    default_message = "Not found"


class Forbidden(ApiError):
    status_code = 403
    default_message = "Forbidden"


class ValidationFailed(ApiError):
    status_code = 400
    default_message = "Validation failed"

    def __init__(self, message: str | None = None, errors=None):
        super().__init__(message, errors=errors or {})


class RateLimited(ApiError):
    status_code = 429
    default_message = "Too many requests from this IP, please try again later."


class PersistenceConflict(ApiError):
    """A concurrent writer won the race; re-read before retrying."""

    status_code = 409
    default_message = "Concurrent update conflict"
