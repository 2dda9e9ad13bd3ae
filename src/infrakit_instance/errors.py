"""Error handling module for infrakit_instance.

This module defines error codes, exception classes, and response models.

Error Response Format:
{
    "error": {
        "code": "INVALID_SPEC",
        "message": "Properties must be set"
    }
}

Backend client exceptions (botocore ClientError, httpx errors) are not
wrapped by the plugins. They propagate unchanged and are mapped to
BACKEND_CALL_FAILED at the API boundary.
"""

from enum import Enum

from pydantic import BaseModel


class ErrorCode(str, Enum):
    """Error codes for instance plugins."""

    INVALID_SPEC = "INVALID_SPEC"
    MALFORMED_REQUEST = "MALFORMED_REQUEST"
    BACKEND_CALL_FAILED = "BACKEND_CALL_FAILED"
    BACKEND_PROTOCOL_ERROR = "BACKEND_PROTOCOL_ERROR"
    CLEANUP_QUEUE_CLOSED = "CLEANUP_QUEUE_CLOSED"
    INTERNAL_ERROR = "INTERNAL_ERROR"


class ErrorDetail(BaseModel):
    """Error detail containing code and message."""

    code: str
    message: str


class ErrorResponse(BaseModel):
    """Error response format."""

    error: ErrorDetail


class PluginError(Exception):
    """Base exception for infrakit_instance.

    Attributes:
        code: The error code from ErrorCode enum.
        message: Human-readable error message.
        status_code: HTTP status code to return.
    """

    def __init__(self, code: ErrorCode, message: str, status_code: int) -> None:
        self.code = code
        self.message = message
        self.status_code = status_code
        super().__init__(message)

    def to_response(self) -> ErrorResponse:
        """Convert exception to ErrorResponse model."""
        return ErrorResponse(
            error=ErrorDetail(code=self.code.value, message=self.message)
        )


class InvalidSpecError(PluginError):
    """400 Bad Request - Spec is missing properties or cannot be parsed."""

    def __init__(self, message: str = "Invalid instance spec") -> None:
        super().__init__(ErrorCode.INVALID_SPEC, message, 400)


class MalformedRequestError(PluginError):
    """400 Bad Request - Request does not match the backend request schema."""

    def __init__(self, message: str = "Malformed request") -> None:
        super().__init__(ErrorCode.MALFORMED_REQUEST, message, 400)


class BackendCallError(PluginError):
    """502 Bad Gateway - Backend call returned an error."""

    def __init__(self, message: str = "Backend call failed") -> None:
        super().__init__(ErrorCode.BACKEND_CALL_FAILED, message, 502)


class BackendProtocolError(PluginError):
    """502 Bad Gateway - Backend succeeded but returned data violating its contract."""

    def __init__(self, message: str = "Backend returned an invalid response") -> None:
        super().__init__(ErrorCode.BACKEND_PROTOCOL_ERROR, message, 502)


class CleanupQueueClosedError(PluginError):
    """503 Service Unavailable - Cleanup queue no longer accepts items."""

    def __init__(self, message: str = "Cleanup queue is closed") -> None:
        super().__init__(ErrorCode.CLEANUP_QUEUE_CLOSED, message, 503)


class InternalError(PluginError):
    """500 Internal Server Error - Internal error."""

    def __init__(self, message: str = "Internal server error") -> None:
        super().__init__(ErrorCode.INTERNAL_ERROR, message, 500)
