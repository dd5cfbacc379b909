"""
Application error taxonomy.

Services raise these; the FastAPI app renders them through a single
exception handler (see app.main). PaymentDeclined never reaches HTTP: it is
raised by the payment gateway inside the lifecycle engine and turned into an
expiry transition there.
"""
from typing import Any, Dict, Optional


class AppException(Exception):
    """Base exception for all application-specific errors."""

    def __init__(
        self,
        code: str,
        message: str,
        status_code: int = 400,
        details: Optional[Any] = None,
    ):
        self.code = code
        self.message = message
        self.status_code = status_code
        self.details = details
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        error: Dict[str, Any] = {"code": self.code, "message": self.message}
        if self.details is not None:
            error["details"] = self.details
        return error


class QuotaExceededError(AppException):
    """User has no remaining messages for a metered action."""

    def __init__(
        self,
        message: str = "Insufficient message quota. Please upgrade your plan or wait for renewal.",
        details: Optional[Any] = None,
    ):
        super().__init__(
            code="QUOTA_EXCEEDED",
            message=message,
            status_code=403,
            details=details,
        )


class NotFoundError(AppException):
    """Subscription, bundle tier or user is missing."""

    def __init__(self, message: str = "Resource not found", details: Optional[Any] = None):
        super().__init__(
            code="NOT_FOUND",
            message=message,
            status_code=404,
            details=details,
        )


class ValidationError(AppException):
    """Bad input or an operation that the current state does not allow."""

    def __init__(
        self,
        message: str = "Validation failed",
        code: str = "VALIDATION_ERROR",
        details: Optional[Any] = None,
    ):
        super().__init__(
            code=code,
            message=message,
            status_code=400,
            details=details,
        )


class ForbiddenError(AppException):
    """Caller does not own the resource."""

    def __init__(self, message: str = "Forbidden", details: Optional[Any] = None):
        super().__init__(
            code="FORBIDDEN",
            message=message,
            status_code=403,
            details=details,
        )


class UnauthorizedError(AppException):
    """Missing or invalid session."""

    def __init__(self, message: str = "Not authenticated", details: Optional[Any] = None):
        super().__init__(
            code="UNAUTHORIZED",
            message=message,
            status_code=401,
            details=details,
        )


class PaymentDeclined(AppException):
    """Renewal charge was declined by the payment gateway."""

    def __init__(self, message: str = "Payment declined", details: Optional[Any] = None):
        super().__init__(
            code="PAYMENT_DECLINED",
            message=message,
            status_code=402,
            details=details,
        )
