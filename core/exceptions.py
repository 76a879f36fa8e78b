"""Custom exception classes for the application.

Every failure the program and review engine can report is an `AppException`
subclass carrying an HTTP status code and a details dictionary, so the API
handlers and the scheduled sweep can treat them uniformly.
"""

from typing import Optional, Any, Dict


class AppException(Exception):
    """Base exception class for all application exceptions.

    Attributes:
        message: Human-readable error message.
        status_code: HTTP status code to return.
        details: Optional additional error details.
    """

    def __init__(
        self,
        message: str,
        status_code: int = 500,
        details: Optional[Dict[str, Any]] = None
    ):
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        super().__init__(self.message)


class NotFoundError(AppException):
    """Raised when a resource is absent or not owned by the caller."""

    def __init__(self, resource: str, identifier: Any):
        """Initialize not found error.

        Args:
            resource: Type of resource (e.g., 'Program', 'Review').
            identifier: ID or identifier that was not found.
        """
        message = f"{resource} with id '{identifier}' not found"
        super().__init__(message, status_code=404, details={"resource": resource, "id": identifier})


class ValidationError(AppException):
    """Raised when input is missing or out of range."""

    def __init__(self, message: str, field: Optional[str] = None):
        details = {"field": field} if field else {}
        super().__init__(message, status_code=400, details=details)


class DatabaseError(AppException):
    """Raised when a database operation fails."""

    def __init__(self, message: str, operation: Optional[str] = None):
        details = {"operation": operation} if operation else {}
        super().__init__(message, status_code=500, details=details)


class PermissionDeniedError(AppException):
    """Raised when a caller lacks the credentials an endpoint requires."""

    def __init__(self, message: str = "Permission denied"):
        super().__init__(message, status_code=403)


class InsufficientDataError(AppException):
    """Raised when too few logged days exist for a review."""

    def __init__(self, message: str, minimum_required: Optional[int] = None, days_available: Optional[int] = None):
        """Initialize insufficient data error.

        Args:
            message: Error message.
            minimum_required: Minimum number of logged days required.
            days_available: Number of logged days actually found.
        """
        details = {}
        if minimum_required is not None:
            details["minimum_required"] = minimum_required
        if days_available is not None:
            details["days_available"] = days_available
        super().__init__(message, status_code=400, details=details)


class AlreadyReviewedError(AppException):
    """Raised when a review already exists for a program week."""

    def __init__(self, program_id: Any, review_week: int):
        super().__init__(
            f"Review already exists for program '{program_id}' week {review_week}",
            status_code=409,
            details={"program_id": program_id, "review_week": review_week},
        )


class InvalidStateError(AppException):
    """Raised when a state-machine guard rejects a transition."""

    def __init__(self, message: str, current_state: Optional[str] = None):
        details = {"current_state": current_state} if current_state else {}
        super().__init__(message, status_code=409, details=details)


class UpstreamFormatError(AppException):
    """Raised when the AI reasoning service returns no usable JSON object."""

    def __init__(self, message: str = "AI service returned an invalid response", excerpt: Optional[str] = None):
        details = {"excerpt": excerpt} if excerpt else {}
        super().__init__(message, status_code=502, details=details)


class UpstreamTimeoutError(AppException):
    """Raised when the AI reasoning service does not answer in time."""

    def __init__(self, timeout_seconds: float):
        super().__init__(
            f"AI service did not respond within {timeout_seconds:g}s",
            status_code=504,
            details={"timeout_seconds": timeout_seconds},
        )


class UpstreamUnavailableError(AppException):
    """Raised when the AI reasoning service is unconfigured or unreachable.

    Reviews cannot be generated in this mode; manual macro adjustments keep
    working.
    """

    def __init__(self, message: str = "AI service is not available"):
        super().__init__(message, status_code=503, details={"mode": "manual_only"})
