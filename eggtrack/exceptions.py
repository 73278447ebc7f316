"""
EggTrack Backend — Custom Exception Hierarchy
==============================================

What:  Application-specific exceptions, one per failure category.
How:   Each exception carries a user-facing message and an optional context
       dict. Global handlers (registered in main.py) map them to HTTP status
       codes and a uniform JSON error body.
Who:   Raised by storage backends, services, and dependencies.

Exception Hierarchy:
    EggTrackError (base)
    ├── ValidationError          → 400 Bad Request
    ├── AuthError                → 401 Unauthorized
    ├── NotFoundError            → 404 Not Found
    ├── RateLimitExceededError   → 429 Too Many Requests
    ├── StorageReadError         → never surfaced (store degrades to [])
    ├── StorageWriteError        → 500 Internal Server Error
    └── RenderError              → 500 Internal Server Error
"""

from typing import Any, Dict, Optional


class EggTrackError(Exception):
    """
    Base exception for all EggTrack application errors.

    Attributes:
        message:  User-facing error description (safe to return in API response)
        context:  Additional debug info (logged but NOT returned for 5xx errors)
    """

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        context: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.context = context or {}
        super().__init__(self.message)


class ValidationError(EggTrackError):
    """
    Raised when client input fails validation.

    When:    Missing/empty fields, non-JSON bodies, non-positive egg numbers,
             unparseable webhook payloads.
    HTTP:    400 Bad Request
    """

    def __init__(
        self,
        message: str = "Validation failed",
        field: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        if field:
            ctx["field"] = field
        super().__init__(message=message, context=ctx)
        self.field = field


class AuthError(EggTrackError):
    """
    Raised when the caller-supplied secret does not match the configured one.

    Covers wrong, empty, and missing secrets, and the case where no secret is
    configured at all. The response never says which of those it was.
    HTTP:    401 Unauthorized
    """

    def __init__(
        self,
        message: str = "Unauthorized",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class NotFoundError(EggTrackError):
    """
    Raised when a requested entry does not exist.

    When:    GET /api/pdf?id=<unknown>
    HTTP:    404 Not Found
    """

    def __init__(
        self,
        resource: str = "resource",
        resource_id: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        message = f"The requested {resource} was not found"
        if resource_id:
            message = f"{resource} with ID '{resource_id}' was not found"
        ctx = context or {}
        ctx["resource"] = resource
        if resource_id:
            ctx["resource_id"] = resource_id
        super().__init__(message=message, context=ctx)


class StorageReadError(EggTrackError):
    """
    Raised by a storage backend when the entries document cannot be fetched.

    Never reaches a client: EntryStore.read_all() catches it, logs it, and
    returns an empty collection.
    """

    def __init__(
        self,
        message: str = "Failed to read entries from storage",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class StorageWriteError(EggTrackError):
    """
    Raised when overwriting the entries document fails.

    No retry unless storage_write_attempts > 1.
    HTTP:    500 Internal Server Error (message returned, context logged only)
    """

    def __init__(
        self,
        message: str = "Failed to write entries to storage",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class RenderError(EggTrackError):
    """
    Raised when a QR code, label PDF, or label sheet cannot be produced.

    HTTP:    500 Internal Server Error
    """

    def __init__(
        self,
        message: str = "Failed to render artifact",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class RateLimitExceededError(EggTrackError):
    """
    Raised when a client exceeds the per-IP limit on secret-gated endpoints.

    HTTP:    429 Too Many Requests (with Retry-After)
    """

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
