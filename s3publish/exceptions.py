"""
Exception hierarchy for s3publish.

All custom exceptions inherit from S3PublishError base class.
"""

from typing import Optional


class S3PublishError(Exception):
    """Base exception for all s3publish errors."""
    pass


# Transport Errors
class TransportError(S3PublishError):
    """
    Raised when the host HTTP primitive fails or a request times out.

    The underlying exception reported by the primitive is kept in ``cause``
    (and chained as ``__cause__`` where it was raised from one).
    """

    def __init__(self, message: str, cause: Optional[BaseException] = None):
        super().__init__(message)
        self.cause = cause


class RequestTimeoutError(TransportError):
    """Raised when a request does not settle within its timeout budget."""

    name = "TimeoutError"

    def __init__(self, timeout_ms: int):
        super().__init__(f"Request did not complete within {timeout_ms} ms")
        self.timeout_ms = timeout_ms


class RequestAbortedError(S3PublishError):
    """Raised when the request's cancellation token was or became aborted."""

    name = "AbortError"

    def __init__(self, message: str = "Request aborted", reason: Optional[object] = None):
        super().__init__(message)
        self.reason = reason


class TranslationError(S3PublishError):
    """Raised when an outbound request cannot be represented (e.g., unsupported verb)."""
    pass


class StreamConsumedError(S3PublishError):
    """Raised when a single-consumption response body is read a second time."""
    pass


# Configuration Errors
class ConfigurationError(S3PublishError):
    """Base exception for configuration-related errors."""
    pass


class InvalidConfigurationError(ConfigurationError):
    """Raised when configuration is invalid or malformed."""
    pass


class MissingCredentialsError(ConfigurationError):
    """Raised when AWS credentials, region or bucket are not configured."""
    pass


# Rendering Errors
class RenderError(S3PublishError):
    """Raised when a note cannot be rendered to HTML."""
    pass


# Upload Errors
class UploadError(S3PublishError):
    """Raised when the storage service answers with a non-success status."""

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        error_code: Optional[str] = None,
        request_id: Optional[str] = None,
    ):
        super().__init__(message)
        self.status_code = status_code
        self.error_code = error_code
        self.request_id = request_id


class PublishError(S3PublishError):
    """Raised when publishing a note fails."""

    def __init__(self, message: str, cause: Optional[BaseException] = None):
        super().__init__(message)
        self.cause = cause
