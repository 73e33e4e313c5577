"""
FastAPI exception handlers for the ERM API.

Maps the ERMException hierarchy, request validation errors and HTTP
exceptions onto one response format, and reports unexpected exceptions
to Sentry.

All error responses follow the format:
{
    "success": false,
    "error": "Human-readable message",
    "error_code": "MACHINE_READABLE_CODE",
    "details": {}  # Optional additional context
}

Plan limit denials (402) carry the structured denial in ``details``.
"""

import logging
import re
import uuid
from typing import Any, Dict, List, Optional

import sentry_sdk
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from erm.config import get_settings
from erm.exceptions import ERMException, ErrorCode

logger = logging.getLogger(__name__)

# Patterns that indicate sensitive information
SENSITIVE_PATTERNS = [
    r"api[_-]?key",
    r"secret",
    r"password",
    r"token",
    r"credential",
    r"bearer",
    r"redis://",
    r"rediss://",
    r"/home/",
    r"/var/",
    r"/etc/",
]

SENSITIVE_REGEX = re.compile("|".join(SENSITIVE_PATTERNS), re.IGNORECASE)

# Keys allowed through to clients in ``details``
SAFE_DETAIL_KEYS = {
    # validation
    "field", "value", "errors",
    # authorization
    "required_permission",
    # plan limit results
    "allowed", "reason", "feature", "current", "limit", "remaining",
    "percentage", "count", "atLimit", "unlimited", "watermark",
    "isNewExport", "message", "upgradeMessage",
    # diagnostics
    "error_reference", "sentry_event_id",
}


def sanitize_error_message(message: str) -> str:
    """
    Remove potentially sensitive information from error messages.

    Args:
        message: The error message to sanitize.

    Returns:
        Sanitized message with sensitive data redacted.
    """
    if not message:
        return message

    if SENSITIVE_REGEX.search(message):
        return "An error occurred while processing your request"

    # Remove IP addresses
    message = re.sub(r"\b\d{1,3}\.\d{1,3}\.\d{1,3}\.\d{1,3}\b", "[ip]", message)

    if len(message) > 500:
        message = message[:500] + "..."

    return message


def sanitize_details(details: Dict[str, Any]) -> Dict[str, Any]:
    """
    Keep only client-safe keys and primitive values from error details.
    """
    if not details:
        return {}

    sanitized = {}
    for key, value in details.items():
        if key not in SAFE_DETAIL_KEYS:
            continue

        if value is None or isinstance(value, (int, float, bool)):
            sanitized[key] = value
        elif isinstance(value, str):
            sanitized[key] = sanitize_error_message(value)
        elif isinstance(value, list):
            sanitized[key] = [
                v for v in value
                if isinstance(v, (str, int, float, bool, dict))
            ][:10]

    return sanitized


def format_request_errors(errors: List[Dict[str, Any]]) -> List[Dict[str, str]]:
    """
    Format request validation errors as ``{field, message}`` pairs.
    """
    formatted = []
    for error in errors:
        loc = error.get("loc", [])
        field_parts = [str(p) for p in loc if p not in ("body", "query", "path", "header")]
        field = ".".join(field_parts) if field_parts else "request"

        error_type = error.get("type", "")
        msg = error.get("msg", "Invalid value")

        if error_type == "missing":
            msg = f"Field '{field}' is required"
        elif error_type == "int_parsing":
            msg = f"Field '{field}' must be an integer"
        elif "enum" in error_type.lower():
            msg = f"Field '{field}' has an invalid value"
        else:
            msg = sanitize_error_message(msg)

        formatted.append({"field": field, "message": msg})

    return formatted[:10]


def create_error_response(
    status_code: int,
    error: str,
    error_code: str,
    details: Optional[Dict[str, Any]] = None,
    headers: Optional[Dict[str, str]] = None,
) -> JSONResponse:
    """
    Create a standardized error response.

    Args:
        status_code: HTTP status code.
        error: Human-readable error message.
        error_code: Machine-readable error code.
        details: Optional additional details.
        headers: Optional response headers.
    """
    content = {
        "success": False,
        "error": sanitize_error_message(error),
        "error_code": error_code,
    }

    if details:
        sanitized_details = sanitize_details(details)
        if sanitized_details:
            content["details"] = sanitized_details

    return JSONResponse(
        status_code=status_code,
        content=content,
        headers=headers,
    )


def report_to_sentry(
    exc: Exception,
    request: Optional[Request] = None,
    extra_context: Optional[Dict[str, Any]] = None,
) -> Optional[str]:
    """
    Report an exception to Sentry with request context.

    Returns:
        Sentry event ID if reported, None otherwise.
    """
    try:
        client = sentry_sdk.get_client()
        if not client.is_active():
            return None

        with sentry_sdk.new_scope() as scope:
            if request:
                scope.set_context("request", {
                    "method": request.method,
                    "path": request.url.path,
                    "query_params": dict(request.query_params),
                })

                workspace_id = request.headers.get("X-Workspace-ID")
                if workspace_id:
                    scope.set_tag("workspace_id", workspace_id)

                user_id = request.headers.get("X-User-ID")
                if user_id:
                    scope.set_user({"id": user_id})

                request_id = getattr(request.state, "request_id", None)
                if request_id:
                    scope.set_tag("request_id", request_id)

            if extra_context:
                scope.set_context("extra", extra_context)

            return sentry_sdk.capture_exception(exc)

    except Exception as e:
        logger.warning(f"Failed to report exception to Sentry: {e}")
        return None


# =============================================================================
# Exception Handlers
# =============================================================================

async def erm_exception_handler(
    request: Request,
    exc: ERMException,
) -> JSONResponse:
    """
    Handle ERMException and its subclasses.
    """
    log_message = f"{exc.__class__.__name__}: {exc.message}"
    if exc.internal_message:
        log_message += f" | Internal: {exc.internal_message}"

    if exc.status_code >= 500:
        logger.error(log_message)
        report_to_sentry(exc, request)
    elif exc.status_code >= 400:
        logger.warning(log_message)
    else:
        logger.info(log_message)

    return create_error_response(
        status_code=exc.status_code,
        error=exc.message,
        error_code=exc.error_code.value,
        details=exc.details,
    )


async def validation_exception_handler(
    request: Request,
    exc: RequestValidationError,
) -> JSONResponse:
    """
    Handle FastAPI request validation errors.
    """
    errors = format_request_errors(exc.errors())

    logger.warning(
        f"Validation error on {request.method} {request.url.path}: "
        f"{len(errors)} error(s)"
    )

    if len(errors) == 1:
        error_message = errors[0]["message"]
    else:
        error_message = f"Validation failed with {len(errors)} error(s)"

    return create_error_response(
        status_code=422,
        error=error_message,
        error_code=ErrorCode.VALIDATION_ERROR.value,
        details={"errors": errors},
    )


async def http_exception_handler(
    request: Request,
    exc: StarletteHTTPException,
) -> JSONResponse:
    """
    Convert HTTPException to the standard error format.
    """
    status_code_mapping = {
        400: ErrorCode.VALIDATION_ERROR,
        402: ErrorCode.LIMIT_REACHED,
        403: ErrorCode.PERMISSION_DENIED,
        404: ErrorCode.RESOURCE_NOT_FOUND,
        503: ErrorCode.STORAGE_UNAVAILABLE,
    }
    error_code = status_code_mapping.get(exc.status_code, ErrorCode.INTERNAL_ERROR)
    detail = exc.detail if isinstance(exc.detail, str) else "Request failed"

    if exc.status_code >= 500:
        logger.error(f"HTTP {exc.status_code}: {detail}")
    elif exc.status_code >= 400:
        logger.warning(f"HTTP {exc.status_code}: {detail}")

    return create_error_response(
        status_code=exc.status_code,
        error=detail,
        error_code=error_code.value,
    )


async def unhandled_exception_handler(
    request: Request,
    exc: Exception,
) -> JSONResponse:
    """
    Catch-all for unexpected errors: log with traceback, report to Sentry
    and return a generic message.
    """
    error_reference = str(uuid.uuid4())[:8]

    logger.error(
        f"Unhandled exception [ref:{error_reference}] on "
        f"{request.method} {request.url.path}: {exc}",
        exc_info=True,
    )

    event_id = report_to_sentry(
        exc,
        request,
        extra_context={"error_reference": error_reference},
    )

    if not get_settings().is_production:
        details = {"error_reference": error_reference}
        if event_id:
            details["sentry_event_id"] = event_id
        return create_error_response(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            error=f"Internal server error: {type(exc).__name__}",
            error_code=ErrorCode.INTERNAL_ERROR.value,
            details=details,
        )

    return create_error_response(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        error="An unexpected error occurred. Please try again later.",
        error_code=ErrorCode.INTERNAL_ERROR.value,
        details={"error_reference": error_reference},
    )


def register_exception_handlers(app: FastAPI) -> None:
    """
    Register all exception handlers with the FastAPI application.
    """
    app.add_exception_handler(ERMException, erm_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)

    logger.info("Exception handlers registered successfully")
