"""
Error kinds surfaced by the batch upload endpoint.

Every failure that reaches the client is a ``GatewayError``: it carries the
machine-readable ``code``, the HTTP status to answer with, and any extra
fields merged into the JSON error body.
"""
from typing import Any, Dict, List, Optional


class GatewayError(Exception):
    code = "INTERNAL_ERROR"
    status_code = 500

    def __init__(self, message: str, extra: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.extra = extra or {}

    def to_payload(self) -> Dict[str, Any]:
        return {"success": False, "code": self.code, "error": self.message, **self.extra}


class InvalidRequestError(GatewayError):
    code = "INVALID_REQUEST"
    status_code = 400


class ChannelNotFoundError(GatewayError):
    code = "CHANNEL_NOT_FOUND"
    status_code = 400


class AuthError(GatewayError):
    code = "AUTH_ERROR"
    status_code = 401


class RateLimitError(GatewayError):
    code = "RATE_LIMIT"
    status_code = 429

    def __init__(self, message: str, retry_after_seconds: Optional[int] = None):
        super().__init__(message, {"retryAfterSeconds": retry_after_seconds})
        self.retry_after_seconds = retry_after_seconds


class PartialUploadError(GatewayError):
    """Bytes were staged on the backend but no commit references them."""

    code = "PARTIAL_UPLOAD_NOT_COMMITTED"
    status_code = 502

    def __init__(
        self,
        message: str,
        uploaded_files: List[Dict[str, str]],
        retry_after_seconds: Optional[int] = None,
    ):
        super().__init__(
            message,
            {"retryAfterSeconds": retry_after_seconds, "uploadedFiles": uploaded_files},
        )
        self.uploaded_files = uploaded_files
        self.retry_after_seconds = retry_after_seconds


class InternalError(GatewayError):
    code = "INTERNAL_ERROR"
    status_code = 500
