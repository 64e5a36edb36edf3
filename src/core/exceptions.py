"""Custom exceptions and error codes."""

from enum import StrEnum
from typing import Any


class ErrorCode(StrEnum):
    """Standardized error codes for the API."""

    # Authentication errors (401)
    UNAUTHORIZED = "UNAUTHORIZED"
    INVALID_TOKEN = "INVALID_TOKEN"
    TOKEN_EXPIRED = "TOKEN_EXPIRED"

    # Authorization errors (403)
    FORBIDDEN = "FORBIDDEN"
    INVALID_SERVICE_KEY = "INVALID_SERVICE_KEY"

    # Not found errors (404)
    NOTIFICATION_EVENT_NOT_FOUND = "NOTIFICATION_EVENT_NOT_FOUND"
    NOTIFICATION_NOT_FOUND = "NOTIFICATION_NOT_FOUND"

    # Validation errors (400)
    VALIDATION_ERROR = "VALIDATION_ERROR"

    # Delivery errors
    PREFERENCE_LOOKUP_FAILED = "PREFERENCE_LOOKUP_FAILED"
    DUPLICATE_DISPATCH = "DUPLICATE_DISPATCH"
    PUSH_SEND_FAILED = "PUSH_SEND_FAILED"

    # Push subscription errors
    PUSH_PERMISSION_DENIED = "PUSH_PERMISSION_DENIED"
    PUSH_REGISTRATION_FAILED = "PUSH_REGISTRATION_FAILED"

    # Rate limiting (429)
    RATE_LIMIT_EXCEEDED = "RATE_LIMIT_EXCEEDED"

    # Server errors (500)
    INTERNAL_ERROR = "INTERNAL_ERROR"
    DATABASE_ERROR = "DATABASE_ERROR"


class AppException(Exception):
    """Base application exception."""

    def __init__(
        self,
        error_code: ErrorCode,
        message: str,
        status_code: int = 400,
        details: Any | None = None,
    ) -> None:
        self.error_code = error_code
        self.message = message
        self.status_code = status_code
        self.details = details
        super().__init__(self.message)


class AuthenticationError(AppException):
    """Authentication failed."""

    def __init__(
        self,
        message: str = "Authentication required",
        error_code: ErrorCode = ErrorCode.UNAUTHORIZED,
    ) -> None:
        super().__init__(
            error_code=error_code,
            message=message,
            status_code=401,
        )


class AuthorizationError(AppException):
    """Authorization failed."""

    def __init__(
        self,
        message: str = "Access denied",
        error_code: ErrorCode = ErrorCode.FORBIDDEN,
    ) -> None:
        super().__init__(
            error_code=error_code,
            message=message,
            status_code=403,
        )


class NotificationEventNotFoundError(AppException):
    """Notification event not found."""

    def __init__(self, event_id: str) -> None:
        super().__init__(
            error_code=ErrorCode.NOTIFICATION_EVENT_NOT_FOUND,
            message=f"Notification event not found: {event_id}",
            status_code=404,
            details={"event_id": event_id},
        )


class NotificationNotFoundError(AppException):
    """In-app notification not found for this user."""

    def __init__(self, event_id: str) -> None:
        super().__init__(
            error_code=ErrorCode.NOTIFICATION_NOT_FOUND,
            message=f"Notification not found: {event_id}",
            status_code=404,
            details={"event_id": event_id},
        )


class PreferenceLookupFailure(AppException):
    """Preferences could not be loaded; routing falls back to degraded mode."""

    def __init__(self, user_id: str, reason: str = "") -> None:
        super().__init__(
            error_code=ErrorCode.PREFERENCE_LOOKUP_FAILED,
            message=f"Could not load notification preferences for {user_id}",
            status_code=503,
            details={"user_id": user_id, "reason": reason},
        )


class DispatchIdempotencyViolation(AppException):
    """An event was already moved out of pending by another dispatch."""

    def __init__(self, event_id: str) -> None:
        super().__init__(
            error_code=ErrorCode.DUPLICATE_DISPATCH,
            message=f"Notification event already processed: {event_id}",
            status_code=409,
            details={"event_id": event_id},
        )


class PushSendFailure(AppException):
    """A push send to one endpoint failed.

    ``gone`` is set when the provider reports the subscription no longer
    exists (HTTP 404/410); such rows are pruned immediately.
    """

    def __init__(
        self,
        endpoint: str,
        reason: str = "",
        status_code: int | None = None,
        gone: bool = False,
    ) -> None:
        self.endpoint = endpoint
        self.provider_status = status_code
        self.gone = gone
        super().__init__(
            error_code=ErrorCode.PUSH_SEND_FAILED,
            message=f"Push send failed: {reason or 'unknown error'}",
            status_code=502,
            details={"endpoint": endpoint, "provider_status": status_code, "gone": gone},
        )


class SubscriptionPermissionDenied(AppException):
    """The user did not grant notification permission on the device."""

    def __init__(self, permission: str) -> None:
        self.permission = permission
        super().__init__(
            error_code=ErrorCode.PUSH_PERMISSION_DENIED,
            message="Notification permission was not granted",
            status_code=403,
            details={"permission": permission},
        )


class SubscriptionRegistrationFailure(AppException):
    """Device registration or subscription storage failed. Safe to retry."""

    def __init__(self, reason: str) -> None:
        super().__init__(
            error_code=ErrorCode.PUSH_REGISTRATION_FAILED,
            message=f"Push registration failed: {reason}",
            status_code=502,
            details={"retryable": True},
        )
