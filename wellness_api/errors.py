"""
Error kinds raised by the service layer.

Services never raise HTTP exceptions; ``main.py`` maps every ``ServiceError``
to a status code and a ``{"success": false, "kind", "detail"}`` body.
"""


class ServiceError(Exception):
    kind = "server_error"
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NotFoundError(ServiceError):
    kind = "not_found"
    status_code = 404


class ForbiddenError(ServiceError):
    kind = "forbidden"
    status_code = 403


class AuthenticationError(ServiceError):
    kind = "unauthenticated"
    status_code = 401


class InvalidStateError(ServiceError):
    kind = "invalid_state"
    status_code = 400


class InsufficientStockError(InvalidStateError):
    kind = "insufficient_stock"

    def __init__(self, medicine_name: str, available: int):
        super().__init__(f"Not enough stock for {medicine_name}. Available: {available}")
        self.available = available


class ValidationFailure(ServiceError):
    kind = "validation_failure"
    status_code = 400


class UpstreamFailure(ServiceError):
    kind = "upstream_failure"
    status_code = 502
