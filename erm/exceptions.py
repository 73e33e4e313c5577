"""
Exception classes for the ERM service.

Every error raised by the library derives from ERMException so the HTTP
layer can render them uniformly. Plan limit hits are normally returned as
structured results; PlanLimitExceeded exists for callers (the HTTP routes)
that need to turn a denial into a response.

Exception Hierarchy:
    ERMException (base)
    ├── ValidationError (400)
    ├── PlanLimitExceeded (402)
    ├── AuthorizationError (403)
    └── StorageError (503)
"""

from enum import Enum
from typing import Any, Dict, Optional


class ErrorCode(str, Enum):
    """Machine-readable error identifiers returned in API error bodies."""

    # General errors
    INTERNAL_ERROR = "INTERNAL_ERROR"

    # Validation errors (400)
    VALIDATION_ERROR = "VALIDATION_ERROR"
    INVALID_PLAN = "INVALID_PLAN"
    INVALID_FEATURE = "INVALID_FEATURE"
    INVALID_EXPORT_TYPE = "INVALID_EXPORT_TYPE"
    INVALID_EXPORT_FORMAT = "INVALID_EXPORT_FORMAT"
    INVALID_RESOURCE = "INVALID_RESOURCE"
    INVALID_DATE = "INVALID_DATE"

    # Plan limit errors (402)
    LIMIT_REACHED = "LIMIT_REACHED"
    FEATURE_BLOCKED = "FEATURE_BLOCKED"
    EXPORT_LIMIT_REACHED = "EXPORT_LIMIT_REACHED"
    AI_LIMIT_REACHED = "AI_LIMIT_REACHED"

    # Authorization errors (403)
    PERMISSION_DENIED = "PERMISSION_DENIED"

    # Resource errors (404)
    RESOURCE_NOT_FOUND = "RESOURCE_NOT_FOUND"

    # Storage errors (503)
    STORAGE_ERROR = "STORAGE_ERROR"
    STORAGE_UNAVAILABLE = "STORAGE_UNAVAILABLE"
    CORRUPT_RECORD = "CORRUPT_RECORD"


class ERMException(Exception):
    """
    Base exception class for all ERM errors.

    Attributes:
        message: Human-readable error message (safe for clients).
        error_code: Machine-readable error code from ErrorCode enum.
        status_code: HTTP status code to return.
        details: Additional context about the error (optional).
        internal_message: Detailed message for logging (not exposed to clients).
    """

    status_code: int = 500
    default_error_code: ErrorCode = ErrorCode.INTERNAL_ERROR
    default_message: str = "An unexpected error occurred"

    def __init__(
        self,
        message: Optional[str] = None,
        error_code: Optional[ErrorCode] = None,
        details: Optional[Dict[str, Any]] = None,
        internal_message: Optional[str] = None,
    ):
        self.message = message or self.default_message
        self.error_code = error_code or self.default_error_code
        self.details = details or {}
        self.internal_message = internal_message
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert the exception into an API error body."""
        response = {
            "success": False,
            "error": self.message,
            "error_code": self.error_code.value,
        }
        if self.details:
            response["details"] = self.details
        return response

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}("
            f"message={self.message!r}, "
            f"error_code={self.error_code.value!r}, "
            f"status_code={self.status_code})"
        )


# =============================================================================
# Validation Errors (400 Bad Request)
# =============================================================================

class ValidationError(ERMException):
    """
    Raised for an invalid plan tier, feature, export type or resource name.
    """

    status_code = 400
    default_error_code = ErrorCode.VALIDATION_ERROR
    default_message = "Invalid request data"

    def __init__(
        self,
        message: Optional[str] = None,
        field: Optional[str] = None,
        value: Optional[Any] = None,
        error_code: Optional[ErrorCode] = None,
        details: Optional[Dict[str, Any]] = None,
        internal_message: Optional[str] = None,
    ):
        details = details or {}
        if field:
            details["field"] = field
        if value is not None:
            str_value = str(value)
            details["value"] = str_value[:100] + "..." if len(str_value) > 100 else str_value

        super().__init__(
            message=message,
            error_code=error_code,
            details=details,
            internal_message=internal_message,
        )


# =============================================================================
# Plan Limit Errors (402 Payment Required)
# =============================================================================

class PlanLimitExceeded(ERMException):
    """
    Raised by callers that convert a denied limit check into an error.

    ``result`` is the structured denial (enforcement result, AI call status
    or export check) dumped with its wire field names; it becomes the
    ``details`` of the error body.
    """

    status_code = 402
    default_error_code = ErrorCode.LIMIT_REACHED
    default_message = "Plan limit reached"

    def __init__(
        self,
        message: Optional[str] = None,
        result: Optional[Dict[str, Any]] = None,
        error_code: Optional[ErrorCode] = None,
        internal_message: Optional[str] = None,
    ):
        self.result = result or {}
        super().__init__(
            message=message or self.result.get("message"),
            error_code=error_code,
            details=dict(self.result),
            internal_message=internal_message,
        )


# =============================================================================
# Authorization Errors (403 Forbidden)
# =============================================================================

class AuthorizationError(ERMException):
    """
    Raised when the acting user may not perform an administrative action,
    such as resetting a metered counter outside a plan change.
    """

    status_code = 403
    default_error_code = ErrorCode.PERMISSION_DENIED
    default_message = "Permission denied"

    def __init__(
        self,
        message: Optional[str] = None,
        required_permission: Optional[str] = None,
        error_code: Optional[ErrorCode] = None,
        details: Optional[Dict[str, Any]] = None,
        internal_message: Optional[str] = None,
    ):
        details = details or {}
        if required_permission:
            details["required_permission"] = required_permission

        super().__init__(
            message=message,
            error_code=error_code,
            details=details,
            internal_message=internal_message,
        )


# =============================================================================
# Storage Errors (503 Service Unavailable)
# =============================================================================

class StorageError(ERMException):
    """
    Raised by strict store reads when the backend fails or a stored value
    cannot be decoded.

    Lenient reads never raise this; they log and return the default.
    """

    status_code = 503
    default_error_code = ErrorCode.STORAGE_ERROR
    default_message = "Storage is temporarily unavailable"

    def __init__(
        self,
        message: Optional[str] = None,
        key: Optional[str] = None,
        error_code: Optional[ErrorCode] = None,
        details: Optional[Dict[str, Any]] = None,
        internal_message: Optional[str] = None,
    ):
        details = details or {}
        if key:
            details["key"] = key

        super().__init__(
            message=message,
            error_code=error_code,
            details=details,
            internal_message=internal_message,
        )
