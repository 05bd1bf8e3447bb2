"""
SpecDate Backend — Custom Exception Hierarchy
===============================================

What:  Application-specific exceptions for the error scenarios of the API.
How:   Each exception carries a user-facing message and an optional context
       dict. Global handlers (registered in main.py) translate them into the
       JSON error envelope with the right HTTP status code.
Who:   Raised by services, dependencies and middleware.

Exception Hierarchy:
    SpecDateError (base)
    ├── ValidationError          → 422 (field errors, unmet requirements)
    ├── BadRequestError          → 400 (state rule violated)
    ├── AuthenticationError      → 401
    ├── PermissionDeniedError    → 403 (optional machine code)
    ├── NotFoundError            → 404
    ├── RateLimitExceededError   → 429
    ├── FileStorageError         → 500
    ├── DatabaseError            → 500
    ├── CircuitBreakerOpenError  → 503
    └── GatewayError             → logged by the notification pipeline
        └── PushDeliveryError
"""

from typing import Any, Dict, List, Optional


class SpecDateError(Exception):
    """
    Base exception for all SpecDate application errors.

    Attributes:
        message:  User-facing error description (safe to return in API response)
        context:  Extra details; returned as `details` for 4xx, logged for 5xx
    """

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        context: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.context = context or {}
        super().__init__(self.message)


class ValidationError(SpecDateError):
    """
    Raised when client input fails a business validation rule.

    `errors` mirrors the framework's field error shape: {field: [messages]}.
    """

    def __init__(
        self,
        message: str = "Validation failed",
        field: Optional[str] = None,
        errors: Optional[Dict[str, List[str]]] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        self.errors = errors or ({field: [message]} if field else {})
        if self.errors:
            ctx["errors"] = self.errors
        super().__init__(message=message, context=ctx)
        self.field = field


class BadRequestError(SpecDateError):
    """Raised when the request is well-formed but the resource state forbids it."""

    def __init__(self, message: str = "Bad request", context: Optional[Dict[str, Any]] = None):
        super().__init__(message=message, context=context)


class AuthenticationError(SpecDateError):
    """Missing, malformed, expired or revoked bearer token; bad credentials."""

    def __init__(self, message: str = "Unauthenticated.", context: Optional[Dict[str, Any]] = None):
        super().__init__(message=message, context=context)


class PermissionDeniedError(SpecDateError):
    """
    Raised when an authenticated user may not perform an action.

    `code` is surfaced to clients that branch on it, e.g. INSUFFICIENT_FUNDS
    opens the spark shop and PROFILE_INCOMPLETE opens the profile editor.
    """

    def __init__(
        self,
        message: str = "Unauthorized.",
        code: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        if code:
            ctx["code"] = code
        super().__init__(message=message, context=ctx)
        self.code = code


class NotFoundError(SpecDateError):
    """
    Raised when a requested resource does not exist.

    SQLAlchemy returns None for missing rows; services convert that into this
    exception so the handler can answer 404.
    """

    def __init__(
        self,
        resource: str = "resource",
        resource_id: Optional[Any] = None,
        message: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        if message is None:
            message = f"The requested {resource} was not found"
            if resource_id is not None:
                message = f"{resource} with ID '{resource_id}' was not found"
        ctx = context or {}
        ctx["resource"] = resource
        if resource_id is not None:
            ctx["resource_id"] = str(resource_id)
        super().__init__(message=message, context=ctx)


class FileStorageError(SpecDateError):
    """Disk full, permission denied or another OS error on the media volume."""

    def __init__(
        self,
        message: str = "File storage operation failed",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class GatewayError(SpecDateError):
    """An outbound gateway (push, broadcast, OTP delivery) failed after retries."""

    def __init__(
        self,
        message: str = "Upstream service call failed",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class PushDeliveryError(GatewayError):
    """Expo rejected the push message or could not be reached."""

    def __init__(
        self,
        message: str = "Push notification delivery failed",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class CircuitBreakerOpenError(SpecDateError):
    """
    Raised when a gateway circuit breaker is OPEN.

    CLOSED → failures counted → OPEN (reject for recovery_time seconds)
    → HALF_OPEN (one trial call) → CLOSED on success / OPEN on failure.
    """

    def __init__(
        self,
        recovery_time: int = 60,
        service: str = "upstream",
        context: Optional[Dict[str, Any]] = None,
    ):
        message = (
            f"The {service} service is temporarily unavailable due to repeated failures. "
            f"It will be retried in approximately {recovery_time} seconds."
        )
        ctx = context or {}
        ctx["recovery_time"] = recovery_time
        ctx["service"] = service
        super().__init__(message=message, context=ctx)
        self.recovery_time = recovery_time


class DatabaseError(SpecDateError):
    """
    Raised when database operations fail unexpectedly.

    The client always receives a generic message; the context is logged only.
    """

    def __init__(
        self,
        message: str = "A database error occurred. Please try again later.",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class RateLimitExceededError(SpecDateError):
    """Client exceeded the per-IP request window."""

    def __init__(
        self,
        retry_after: int = 60,
        context: Optional[Dict[str, Any]] = None,
    ):
        message = (
            f"Rate limit exceeded. Please wait {retry_after} seconds before making more requests."
        )
        ctx = context or {}
        ctx["retry_after"] = retry_after
        super().__init__(message=message, context=ctx)
        self.retry_after = retry_after
