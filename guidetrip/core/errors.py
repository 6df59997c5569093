"""Error taxonomy shared by the services and the HTTP layer.

Services raise these; ``guidetrip.main`` renders them as
``{"detail": ..., "code": ...}`` with the matching status code.
"""


class AppError(Exception):
    status_code = 500
    default_code = "INTERNAL_ERROR"

    def __init__(self, message: str, code: str | None = None):
        super().__init__(message)
        self.message = message
        self.code = code or self.default_code


class ValidationError(AppError):
    """Illegal transition, missing precondition or malformed amount. Never retried."""
    status_code = 400
    default_code = "VALIDATION_ERROR"


class ForbiddenError(AppError):
    status_code = 403
    default_code = "FORBIDDEN"


class NotFoundError(AppError):
    status_code = 404
    default_code = "NOT_FOUND"


class InternalError(AppError):
    """Data-integrity fault that needs an operator."""
    status_code = 500
    default_code = "INTERNAL_ERROR"


class PaymentProviderError(InternalError):
    status_code = 502
    default_code = "PAYMENT_PROVIDER_ERROR"
