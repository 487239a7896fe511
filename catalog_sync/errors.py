"""Classified domain errors shared by services and the HTTP layer.

Every error carries a stable short ``code`` (one per error kind) and an
optional ``reason`` naming the specific failure. Routes never build error
responses themselves; the exception handler registered in
``catalog_sync.application`` renders any ``DomainError``:

    raise NotFoundError("Product", product_id)
    # -> 404 {"error": {"code": "not-found", "reason": null, "message": ...}}
"""

from __future__ import annotations

from typing import Any


class ErrorReason:
    """Short reason codes attached to domain errors."""

    AUTH_REQUIRED = "auth-required"
    BUSINESS_NOT_FOUND = "business-not-found"
    WHATSAPP_NOT_CONFIGURED = "whatsapp-not-configured"
    INVALID_REQUEST = "invalid-request"
    SYNC_FAILED = "sync-failed"
    MEDIA_UPLOAD_FAILED = "media-upload-failed"
    NOTIFICATION_FAILED = "notification-failed"


class DomainError(Exception):
    """Base exception for all domain errors."""

    code = "internal"
    http_status = 500

    def __init__(self, message: str, *, reason: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.reason = reason

    def to_dict(self) -> dict[str, Any]:
        return {"code": self.code, "reason": self.reason, "message": self.message}


class UnauthenticatedError(DomainError):
    """No caller identity. Maps to HTTP 401."""

    code = "unauthenticated"
    http_status = 401

    def __init__(self, message: str = "Authentication required") -> None:
        super().__init__(message, reason=ErrorReason.AUTH_REQUIRED)


class PermissionDeniedError(DomainError):
    """Caller may not act on the business or entity. Maps to HTTP 403."""

    code = "permission-denied"
    http_status = 403


class NotFoundError(DomainError):
    """Resource was not found. Maps to HTTP 404."""

    code = "not-found"
    http_status = 404

    def __init__(
        self, resource_type: str, identifier: str, *, reason: str | None = None
    ) -> None:
        super().__init__(f"{resource_type} '{identifier}' not found", reason=reason)
        self.resource_type = resource_type
        self.identifier = identifier


class FailedPreconditionError(DomainError):
    """The business is not in a state that allows the operation. Maps to HTTP 412."""

    code = "failed-precondition"
    http_status = 412


class InvalidArgumentError(DomainError):
    """Malformed input. Maps to HTTP 400."""

    code = "invalid-argument"
    http_status = 400

    def __init__(self, message: str) -> None:
        super().__init__(message, reason=ErrorReason.INVALID_REQUEST)


class InternalError(DomainError):
    """Remote, persistence or processing failure. Maps to HTTP 500."""

    code = "internal"
    http_status = 500
