"""
PodOps - Custom Exception Hierarchy

Provides structured, typed exceptions with error codes for consistent
error handling across the application.

Usage:
    from app.exceptions import NotFoundError, PreconditionError

    # In a service
    raise NotFoundError("Batch", batch_id)

    # Wrong-stage scan
    raise PreconditionError(
        "Unit must be PRINTED before cutting",
        current_state="DESIGNED",
        allowed_states=["PRINTED", "CUTTING"],
    )
"""
from typing import Any, Dict, List, Optional


class PodOpsException(Exception):
    """
    Base exception for all PodOps errors.

    Attributes:
        message: Human-readable error message
        error_code: Machine-readable error code (e.g., "NOT_FOUND", "VALIDATION_ERROR")
        status_code: HTTP status code to return
        details: Additional context for debugging
    """

    error_code: str = "PODOPS_ERROR"
    status_code: int = 500
    retryable: bool = False

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        *,
        details: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for API response."""
        result = {
            "error": self.error_code,
            "message": self.message,
        }
        if self.details:
            result["details"] = self.details
        return result


# ===================
# 400 Bad Request Errors
# ===================


class ValidationError(PodOpsException):
    """Raised when input validation fails (unknown status, bad reason, bad quantity)."""

    error_code = "VALIDATION_ERROR"
    status_code = 400

    def __init__(
        self,
        message: str = "Validation failed",
        *,
        field: Optional[str] = None,
        value: Any = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        details = details or {}
        if field:
            details["field"] = field
        if value is not None:
            details["value"] = str(value)
        super().__init__(message, details=details)


# ===================
# 404 Not Found Errors
# ===================


class NotFoundError(PodOpsException):
    """Raised when a resource is not found."""

    error_code = "NOT_FOUND"
    status_code = 404

    def __init__(
        self,
        resource: str = "Resource",
        resource_id: Any = None,
        *,
        details: Optional[Dict[str, Any]] = None,
    ):
        details = details or {}
        details["resource"] = resource
        if resource_id is not None:
            details["resource_id"] = str(resource_id)
        message = f"{resource} not found"
        if resource_id is not None:
            message = f"{resource} with ID {resource_id} not found"
        super().__init__(message, details=details)


# ===================
# 409 Conflict Errors
# ===================


class PreconditionError(PodOpsException):
    """Raised when a transition is not allowed from the current state."""

    error_code = "PRECONDITION_FAILED"
    status_code = 409

    def __init__(
        self,
        message: str = "Operation not allowed in current state",
        *,
        current_state: Optional[str] = None,
        allowed_states: Optional[List[str]] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        details = details or {}
        if current_state:
            details["current_state"] = current_state
        if allowed_states:
            details["allowed_states"] = list(allowed_states)
        self.current_state = current_state
        self.allowed_states = list(allowed_states or [])
        super().__init__(message, details=details)


class ConflictError(PodOpsException):
    """Raised when a concurrent writer broke an invariant. Safe to retry."""

    error_code = "CONFLICT"
    status_code = 409
    retryable = True

    def __init__(
        self,
        message: str = "Resource conflict",
        *,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, details=details)


# ===================
# 422 Unprocessable Entity Errors
# ===================


class InsufficientStockError(PodOpsException):
    """Raised when a stock-tracked variant cannot cover the requested quantity."""

    error_code = "INSUFFICIENT_STOCK"
    status_code = 422

    def __init__(
        self,
        item_name: str,
        *,
        requested: int,
        available: int,
        details: Optional[Dict[str, Any]] = None,
    ):
        details = details or {}
        details["item"] = item_name
        details["requested"] = requested
        details["available"] = available
        message = f"Insufficient stock for {item_name}: requested {requested}, available {available}"
        super().__init__(message, details=details)


# ===================
# 502 External Service Errors
# ===================


class ExternalSyncError(PodOpsException):
    """Raised by commerce/shipping clients. Caught by the sync dispatcher."""

    error_code = "EXTERNAL_SYNC_ERROR"
    status_code = 502

    def __init__(
        self,
        service: str,
        message: str = "External service error",
        *,
        details: Optional[Dict[str, Any]] = None,
    ):
        details = details or {}
        details["service"] = service
        self.service = service
        super().__init__(f"{service}: {message}", details=details)
